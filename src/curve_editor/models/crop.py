"""Crop rectangle state.

The rectangle lives in canvas display space. After every mutation it is
kept at least CROP_MIN_SIZE on each side and fully inside the canvas.
"""
from dataclasses import dataclass
from typing import Optional

from curve_editor.constants import CROP_MIN_SIZE

# Transient drag handles; None when no drag is in progress
HANDLE_TYPES = ('tl', 'tr', 'bl', 'br', 't', 'b', 'l', 'r', 'move', 'new')


@dataclass
class CropRect:
    x: float
    y: float
    w: float
    h: float
    drag_handle: Optional[str] = None
    straighten_angle: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self):
        return self.x + self.w / 2, self.y + self.h / 2

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def copy(self) -> 'CropRect':
        return CropRect(self.x, self.y, self.w, self.h, self.drag_handle, self.straighten_angle)

    def clamp(self, canvas_w: float, canvas_h: float) -> 'CropRect':
        """Enforce the minimum size and keep the rect inside the canvas (in place)."""
        min_w = min(CROP_MIN_SIZE, canvas_w)
        min_h = min(CROP_MIN_SIZE, canvas_h)
        self.w = max(min_w, min(self.w, canvas_w))
        self.h = max(min_h, min(self.h, canvas_h))
        self.x = max(0.0, min(self.x, canvas_w - self.w))
        self.y = max(0.0, min(self.y, canvas_h - self.h))
        return self

    def to_dict(self) -> dict:
        """Persistable fields only (the drag handle is interaction state)."""
        return {'x': self.x, 'y': self.y, 'w': self.w, 'h': self.h,
                'straighten_angle': self.straighten_angle}


def default_crop_rect(canvas_w: float, canvas_h: float, image_w: float, image_h: float) -> CropRect:
    """Initial crop: the displayed (fit-scaled, untransformed) image area."""
    left = (canvas_w - image_w) / 2
    top = (canvas_h - image_h) / 2
    return CropRect(left, top, image_w, image_h).clamp(canvas_w, canvas_h)
