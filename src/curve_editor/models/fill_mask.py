"""Generative fill mask.

A single-channel bitmap at the base image's native resolution. Black marks
pixels to keep, white marks pixels the AI service should regenerate.
Strokes arrive already converted to image pixels by the gesture layer.
"""
import io

import numpy as np
from PIL import Image, ImageDraw

from curve_editor.constants import MASK_BRUSH_WIDTH, MASK_KEEP, MASK_FILL


class FillMask:
    """Paintable keep/fill mask for one generative fill session."""

    def __init__(self, width: int, height: int, brush_width: int = MASK_BRUSH_WIDTH):
        self.width = int(width)
        self.height = int(height)
        self.brush_width = brush_width
        self.bitmap = Image.new('L', (self.width, self.height), MASK_KEEP)
        self._draw = ImageDraw.Draw(self.bitmap)
        self.last_point = None

    @property
    def size(self):
        return (self.width, self.height)

    def _dot(self, x, y):
        r = self.brush_width / 2
        self._draw.ellipse((x - r, y - r, x + r, y + r), fill=MASK_FILL)

    def paint_dot(self, x: float, y: float):
        """Start a stroke: a round dot the width of the brush."""
        self._dot(x, y)
        self.last_point = (x, y)

    def paint_to(self, x: float, y: float):
        """Continue the stroke with a round-capped segment from the last point."""
        if self.last_point is None:
            self.paint_dot(x, y)
            return
        x0, y0 = self.last_point
        self._draw.line((x0, y0, x, y), fill=MASK_FILL, width=self.brush_width)
        self._dot(x0, y0)
        self._dot(x, y)
        self.last_point = (x, y)

    def end_stroke(self):
        self.last_point = None

    def is_empty(self) -> bool:
        return not np.any(np.asarray(self.bitmap) > MASK_KEEP)

    def coverage(self) -> float:
        """Fraction of pixels marked for fill."""
        pixels = np.asarray(self.bitmap)
        return float(np.count_nonzero(pixels)) / pixels.size

    def to_rgba(self) -> Image.Image:
        """Uniform-channel RGBA rendering (white = fill, black = keep)."""
        return Image.merge('RGBA', (self.bitmap, self.bitmap, self.bitmap,
                                    Image.new('L', self.size, 255)))

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.to_rgba().save(buffer, format='PNG')
        return buffer.getvalue()
