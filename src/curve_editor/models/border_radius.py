"""Rounded-corner state for image layers.

A BorderRadius is either a single percentage (simple mode) or four
independent corner percentages (advanced mode). Percentages are relative
to half the shorter drawn side, so 100% turns the short edges into a full
semicircle.
"""
from dataclasses import dataclass, field
from typing import Dict

from curve_editor.constants import CORNER_NAMES, RADIUS_MIN, RADIUS_MAX


def _clamp_percent(value: float) -> float:
    return max(RADIUS_MIN, min(RADIUS_MAX, float(value)))


@dataclass
class BorderRadius:
    """Border radius percentages.

    Attributes:
        value: Simple-mode percentage (0-100)
        corners: Per-corner percentages {'tl', 'tr', 'bl', 'br'}
        advanced: True when corners are edited independently
    """
    value: float = 0.0
    corners: Dict[str, float] = field(default_factory=lambda: {name: 0.0 for name in CORNER_NAMES})
    advanced: bool = False

    def set_value(self, value: float):
        """Set the simple-mode radius. Mirrors into every corner outside advanced mode."""
        self.value = _clamp_percent(value)
        if not self.advanced:
            self.corners = {name: self.value for name in CORNER_NAMES}

    def set_corner(self, corner: str, value: float):
        if corner not in CORNER_NAMES:
            raise ValueError(f"Unknown corner '{corner}'")
        self.corners[corner] = _clamp_percent(value)

    def set_advanced(self, advanced: bool):
        self.advanced = bool(advanced)

    def percentages(self) -> Dict[str, float]:
        """Effective per-corner percentages for the current mode."""
        if self.advanced:
            return dict(self.corners)
        return {name: self.value for name in CORNER_NAMES}

    def resolve(self, draw_w: float, draw_h: float) -> Dict[str, float]:
        """Resolve percentages to pixel radii for a drawn size.

        radius_px = percent / 100 * min(draw_w, draw_h) / 2, clamped to
        min(draw_w, draw_h) / 2 so the rounded path never self-intersects.
        """
        return resolve_corner_radii(self.percentages(), draw_w, draw_h)

    def is_square(self) -> bool:
        return all(pct <= 0 for pct in self.percentages().values())

    def copy(self) -> 'BorderRadius':
        return BorderRadius(self.value, dict(self.corners), self.advanced)

    def to_dict(self) -> dict:
        return {'value': self.value, 'corners': dict(self.corners), 'advanced': self.advanced}

    @classmethod
    def from_dict(cls, data: dict) -> 'BorderRadius':
        corners = {name: float(data.get('corners', {}).get(name, 0.0)) for name in CORNER_NAMES}
        return cls(float(data.get('value', 0.0)), corners, bool(data.get('advanced', False)))


def resolve_corner_radii(percentages: Dict[str, float], draw_w: float, draw_h: float) -> Dict[str, float]:
    """Convert corner percentages to clamped pixel radii."""
    max_radius = min(draw_w, draw_h) / 2
    if max_radius <= 0:
        return {name: 0.0 for name in CORNER_NAMES}
    per_percent = max_radius / 100
    return {
        name: min(max(0.0, percentages.get(name, 0.0)) * per_percent, max_radius)
        for name in CORNER_NAMES
    }
