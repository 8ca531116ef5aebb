"""Transform data structures for coordinate and state representation."""
from dataclasses import dataclass, replace

from curve_editor.constants import (
    DEFAULT_POSITION_X, DEFAULT_POSITION_Y, DEFAULT_SCALE, DEFAULT_ROTATION,
    SCALE_MIN, SCALE_MAX,
)


@dataclass
class Vec2:
    """2D vector for coordinate pairs.

    Used for any x/y coordinate pair across different spaces:
    - Screen / pointer pixels
    - Canvas display pixels (top-left origin)
    - Image pixels (native resolution, top-left origin)
    """
    x: float
    y: float

    def __iter__(self):
        """Allow tuple unpacking: x, y = vec2"""
        return iter((self.x, self.y))


@dataclass
class Transform:
    """Image transform: pan offset, uniform scale and rotation.

    x/y are canvas pixels relative to the canvas centre, rotation is in
    degrees. Applied as translate(centre + (x, y)) -> rotate -> scale.
    """
    x: float = DEFAULT_POSITION_X
    y: float = DEFAULT_POSITION_Y
    scale: float = DEFAULT_SCALE
    rotation: float = DEFAULT_ROTATION

    @classmethod
    def identity(cls) -> 'Transform':
        return cls()

    def copy(self, **changes) -> 'Transform':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {'x': self.x, 'y': self.y, 'scale': self.scale, 'rotation': self.rotation}

    @classmethod
    def from_dict(cls, data: dict) -> 'Transform':
        return cls(
            x=float(data.get('x', DEFAULT_POSITION_X)),
            y=float(data.get('y', DEFAULT_POSITION_Y)),
            scale=float(data.get('scale', DEFAULT_SCALE)),
            rotation=float(data.get('rotation', DEFAULT_ROTATION)),
        )


def clamp_scale(scale: float) -> float:
    """Clamp an interactive scale to [SCALE_MIN, SCALE_MAX]."""
    return max(SCALE_MIN, min(SCALE_MAX, scale))
