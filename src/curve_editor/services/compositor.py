"""Compositor Service.

Renders a Document into a Pillow RGBA buffer. The same procedure serves
two targets:

- Preview: the on-screen canvas at display size x device pixel ratio,
  including interaction overlays (selection outline, snap guides, crop
  overlay, fill mask).
- Export: an off-screen buffer at the base image's native resolution.
  Layers and text are reprojected from display space by 1 / fit scale
  around the base image centre, so the export matches the preview
  regardless of window size.

All drawing happens in display coordinates; a RenderView maps them to
buffer pixels (buffer = offset + k * display).

Compositing order:
    1. clear
    2. base image (pan/rotation suppressed while cropping), rounded clip
    3. image layers bottom-to-top
    4. text layers
    5. snap guides (preview, not cropping)
    6. crop overlay (preview, cropping)
    7. fill mask overlay (preview, mask active)
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from PIL import Image, ImageChops, ImageColor, ImageDraw

from curve_editor.constants import (
    SNAP_THRESHOLD, SELECTION_COLOR, SELECTION_LINE_WIDTH, SELECTION_DASH,
    GUIDE_COLOR, GUIDE_DASH,
    CROP_SCRIM_COLOR, CROP_BORDER_COLOR, CROP_BORDER_WIDTH, CROP_GRID_COLOR,
    CROP_HANDLE_DRAW_SIZE, MASK_OVERLAY_OPACITY,
)
from curve_editor.models.border_radius import resolve_corner_radii
from curve_editor.utils.coordinate_transforms import affine_coefficients, fit_scale, rotate_point
from curve_editor.utils.rounded_rect import rounded_rect_path
from curve_editor.utils.text_metrics import load_font

logger = logging.getLogger(__name__)

PREVIEW = 'preview'
EXPORT = 'export'


@dataclass
class RenderView:
    """Maps display coordinates to buffer pixels."""
    mode: str
    buffer_size: Tuple[int, int]
    display_size: Tuple[float, float]
    k: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    @classmethod
    def preview(cls, viewport) -> 'RenderView':
        return cls(PREVIEW, viewport.buffer_size, viewport.size, viewport.device_pixel_ratio)

    @classmethod
    def export(cls, document) -> 'RenderView':
        """Native-resolution view framed on the base image centre."""
        width, height = document.image_size
        vw, vh = document.viewport.size
        k = 1.0 / fit_scale(vw, vh, width, height)
        center_x = vw / 2 + document.transform.x
        center_y = vh / 2 + document.transform.y
        return cls(EXPORT, (width, height), (vw, vh), k,
                   width / 2 - k * center_x, height / 2 - k * center_y)

    @property
    def is_preview(self) -> bool:
        return self.mode == PREVIEW

    def map(self, x: float, y: float) -> Tuple[float, float]:
        return self.offset_x + self.k * x, self.offset_y + self.k * y


# ======================================================================
# Pixel helpers
# ======================================================================

def _scale_alpha(image: Image.Image, factor: float) -> Image.Image:
    """Multiply the alpha channel by factor (0..1)."""
    if factor >= 1.0:
        return image
    pixels = np.array(image, dtype=np.uint8)
    pixels[..., 3] = (pixels[..., 3].astype(np.float32) * max(0.0, factor)).round().astype(np.uint8)
    return Image.fromarray(pixels, 'RGBA')


def _rounded_clip(image: Image.Image, percentages) -> Image.Image:
    """Clip an RGBA image to its rounded-rect outline."""
    if all(pct <= 0 for pct in percentages.values()):
        return image
    width, height = image.size
    # Percentages are relative, so radii resolve identically at native size
    radii = resolve_corner_radii(percentages, width, height)
    mask = Image.new('L', image.size, 0)
    ImageDraw.Draw(mask).polygon(rounded_rect_path(0, 0, width, height, radii), fill=255)
    clipped = image.copy()
    clipped.putalpha(ImageChops.multiply(image.getchannel('A'), mask))
    return clipped


def _dashed_line(draw, start, end, dash, fill, width):
    x0, y0 = start
    x1, y1 = end
    length = math.hypot(x1 - x0, y1 - y0)
    if length == 0:
        return
    on, off = dash
    ux, uy = (x1 - x0) / length, (y1 - y0) / length
    pos = 0.0
    while pos < length:
        seg_end = min(pos + on, length)
        draw.line((x0 + ux * pos, y0 + uy * pos, x0 + ux * seg_end, y0 + uy * seg_end),
                  fill=fill, width=width)
        pos += on + off


def _dashed_polygon(draw, points, dash, fill, width):
    for i, start in enumerate(points):
        _dashed_line(draw, start, points[(i + 1) % len(points)], dash, fill, width)


def _box_corners(center_x, center_y, half_w, half_h, rotation):
    corners = []
    for sx, sy in ((-1, -1), (1, -1), (1, 1), (-1, 1)):
        dx, dy = rotate_point(sx * half_w, sy * half_h, rotation)
        corners.append((center_x + dx, center_y + dy))
    return corners


def _parse_color(color: str, opacity: float = 100):
    rgb = ImageColor.getrgb(color)
    alpha = rgb[3] if len(rgb) == 4 else 255
    return rgb[0], rgb[1], rgb[2], int(round(alpha * max(0.0, min(100.0, opacity)) / 100))


class Compositor:
    """Deterministic renderer of a Document."""

    def __init__(self):
        self._document = None
        self._view = None
        self._buffer = None

    # ========================================
    # Entry points
    # ========================================

    def render_preview(self, document) -> Image.Image:
        return self.render(document, RenderView.preview(document.viewport))

    def render_export(self, document) -> Image.Image:
        if not document.has_image:
            raise ValueError("Nothing to export: no base image")
        return self.render(document, RenderView.export(document))

    def render(self, document, view: RenderView) -> Image.Image:
        """Composite the document through the given view."""
        self._document = document
        self._view = view
        # 1. Clear
        self._buffer = Image.new('RGBA', view.buffer_size, (0, 0, 0, 0))
        try:
            if document.has_image:
                self._draw_base_image()
            for layer in document.layers.image_layers:
                if layer.visible and layer.is_renderable:
                    layer.render(self)
            for layer in document.layers.text_layers:
                if layer.visible:
                    layer.render(self)
            if view.is_preview:
                if document.has_image and not document.is_cropping:
                    self._draw_snap_guides()
                if document.is_cropping and document.crop is not None:
                    self._draw_crop_overlay()
                if document.fill_mask is not None and document.has_image:
                    self._draw_fill_mask()
            return self._buffer
        finally:
            self._document = None
            self._view = None

    # ========================================
    # Image drawing
    # ========================================

    def _place_image(self, source: Image.Image, center_x, center_y, display_scale, rotation):
        """Composite a native-resolution RGBA source centred at a display point.

        Args:
            display_scale: Display pixels per source pixel (fit x transform scale)
        """
        view = self._view
        buffer_scale = display_scale * view.k
        if buffer_scale <= 0:
            return
        # Pre-reduce large downscales so bilinear sampling does not alias
        if buffer_scale < 0.5:
            reduced_w = max(1, int(round(source.width * buffer_scale)))
            reduced_h = max(1, int(round(source.height * buffer_scale)))
            ratio = reduced_w / source.width
            source = source.resize((reduced_w, reduced_h), Image.LANCZOS)
            buffer_scale /= ratio

        bx, by = view.map(center_x, center_y)
        coeffs = affine_coefficients(bx, by, buffer_scale, rotation, source.width / 2, source.height / 2)
        placed = source.transform(view.buffer_size, Image.AFFINE, coeffs,
                                  resample=Image.BILINEAR, fillcolor=(0, 0, 0, 0))
        self._buffer.alpha_composite(placed)

    def _draw_base_image(self):
        doc = self._document
        transform = doc.effective_transform()
        factor = doc.base_fit_scale()
        source = _rounded_clip(doc.base_decoded.image, doc.border_radius.percentages())
        vw, vh = doc.viewport.size
        self._place_image(source, vw / 2 + transform.x, vh / 2 + transform.y,
                          factor * transform.scale, transform.rotation)

    def draw_image_layer(self, layer):
        doc = self._document
        vw, vh = doc.viewport.size
        decoded = layer.decoded
        factor = fit_scale(vw, vh, decoded.width, decoded.height)
        source = _rounded_clip(decoded.image, layer.border_radius.percentages())
        source = _scale_alpha(source, layer.opacity / 100)
        self._place_image(source, vw / 2 + layer.x, vh / 2 + layer.y, factor * layer.scale, layer.rotation)

        if (self._view.is_preview and layer.id == doc.layers.selected_layer_id
                and not doc.is_cropping):
            box = layer.bounds(doc.viewport.size)
            corners = [self._view.map(x, y) for x, y in
                       _box_corners(box.center_x, box.center_y, box.half_w, box.half_h, box.rotation)]
            _dashed_polygon(ImageDraw.Draw(self._buffer), corners, SELECTION_DASH,
                            SELECTION_COLOR, max(1, int(round(SELECTION_LINE_WIDTH * self._view.k))))

    # ========================================
    # Text drawing
    # ========================================

    def draw_text_layer(self, layer):
        view = self._view
        if not layer.text:
            return
        font = load_font(layer.font_family, max(1, int(round(layer.size * view.k))))
        x, y = view.map(layer.x, layer.y)
        overlay = Image.new('RGBA', view.buffer_size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        editing = view.is_preview and layer.id == self._document.layers.editing_text_id
        if editing:
            draw.text((x, y), layer.text, font=font, anchor='ms', fill=_parse_color(layer.color),
                      stroke_width=max(1, int(round(2 * view.k))), stroke_fill=SELECTION_COLOR)
        else:
            draw.text((x, y), layer.text, font=font, anchor='ms', fill=_parse_color(layer.color))
        self._buffer.alpha_composite(_scale_alpha(overlay, layer.opacity / 100))

    # ========================================
    # Overlays
    # ========================================

    def _draw_snap_guides(self):
        doc = self._document
        view = self._view
        vw, vh = doc.viewport.size
        draw = ImageDraw.Draw(self._buffer)
        width = max(1, int(round(view.k)))
        if abs(doc.transform.x) < SNAP_THRESHOLD:
            _dashed_line(draw, view.map(vw / 2, 0), view.map(vw / 2, vh), GUIDE_DASH, GUIDE_COLOR, width)
        if abs(doc.transform.y) < SNAP_THRESHOLD:
            _dashed_line(draw, view.map(0, vh / 2), view.map(vw, vh / 2), GUIDE_DASH, GUIDE_COLOR, width)

    def _draw_crop_overlay(self):
        crop = self._document.crop
        view = self._view
        cx, cy = crop.center
        outline = [view.map(x, y) for x, y in
                   _box_corners(cx, cy, crop.w / 2, crop.h / 2, crop.straighten_angle)]

        # Scrim with the crop area punched out
        scrim = Image.new('RGBA', view.buffer_size, CROP_SCRIM_COLOR)
        ImageDraw.Draw(scrim).polygon(outline, fill=(0, 0, 0, 0))
        self._buffer.alpha_composite(scrim)

        draw = ImageDraw.Draw(self._buffer)
        line_width = max(1, int(round(CROP_BORDER_WIDTH * view.k)))
        draw.polygon(outline, outline=CROP_BORDER_COLOR, width=line_width)

        if self._document.show_crop_grid:
            for fraction in (1 / 3, 2 / 3):
                offset_x = -crop.w / 2 + crop.w * fraction
                offset_y = -crop.h / 2 + crop.h * fraction
                vertical = [rotate_point(offset_x, sy * crop.h / 2, crop.straighten_angle) for sy in (-1, 1)]
                horizontal = [rotate_point(sx * crop.w / 2, offset_y, crop.straighten_angle) for sx in (-1, 1)]
                for (ax, ay), (bx, by) in (vertical, horizontal):
                    draw.line((*view.map(cx + ax, cy + ay), *view.map(cx + bx, cy + by)),
                              fill=CROP_GRID_COLOR, width=max(1, int(round(view.k))))

        half = CROP_HANDLE_DRAW_SIZE * view.k / 2
        for hx, hy in ((crop.x, crop.y), (crop.right, crop.y), (crop.x, crop.bottom), (crop.right, crop.bottom)):
            bx, by = view.map(hx, hy)
            draw.rectangle((bx - half, by - half, bx + half, by + half), fill=CROP_BORDER_COLOR)

    def _draw_fill_mask(self):
        doc = self._document
        mask = doc.fill_mask.bitmap
        alpha = Image.new('L', mask.size, int(round(255 * MASK_OVERLAY_OPACITY)))
        overlay = Image.merge('RGBA', (mask, mask, mask, alpha))
        # Full (non-suppressed) transform keeps the overlay on top of the image pixels
        transform = doc.transform
        factor = fit_scale(doc.viewport.width, doc.viewport.height, mask.width, mask.height)
        vw, vh = doc.viewport.size
        self._place_image(overlay, vw / 2 + transform.x, vh / 2 + transform.y,
                          factor * transform.scale, transform.rotation)
