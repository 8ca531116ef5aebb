"""
Curve Editor - Document Model

THE MODEL of the editing session. Owns the base image, its transform and
border radius, the layer stack, crop state and the generative fill mask.

The Document is INDEPENDENT of UI:
- No Qt imports
- No rendering logic
- No undo stack (the session manages that with snapshots)

Usage:
    doc = Document(Viewport(1024, 768))
    doc.set_base_image(png_bytes, decoded)
    doc.transform.x += 50
    snapshot = doc.get_snapshot()
    doc.set_snapshot(snapshot, base_decoded, {layer_id: decoded})
"""

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Dict, Optional, Any, Tuple

from curve_editor.models.border_radius import BorderRadius
from curve_editor.models.crop import CropRect
from curve_editor.models.fill_mask import FillMask
from curve_editor.models.layers import LayerStack
from curve_editor.models.transform import Transform
from curve_editor.utils.coordinate_transforms import draw_size, fit_scale


@dataclass
class Viewport:
    """On-screen canvas size in display pixels and its device pixel ratio."""
    width: float
    height: float
    device_pixel_ratio: float = 1.0

    @property
    def size(self) -> Tuple[float, float]:
        return (self.width, self.height)

    @property
    def buffer_size(self) -> Tuple[int, int]:
        """Backing store size for preview rendering."""
        return (max(1, int(round(self.width * self.device_pixel_ratio))),
                max(1, int(round(self.height * self.device_pixel_ratio))))


class Document:
    """Single active document of the editor."""

    def __init__(self, viewport: Viewport = None):
        self._logger = logging.getLogger('Document')
        self.viewport = viewport or Viewport(800, 600)

        self.base_image_data: Optional[bytes] = None
        self.base_decoded = None

        self.transform = Transform.identity()
        self.border_radius = BorderRadius()
        self.layers = LayerStack()

        self.is_cropping = False
        self.crop: Optional[CropRect] = None
        self.crop_aspect_ratio: Optional[float] = None
        self.show_crop_grid = True

        self.fill_mask: Optional[FillMask] = None
        self.dark_mode = False

    # ========================================
    # Base image
    # ========================================

    @property
    def has_image(self) -> bool:
        return self.base_decoded is not None

    @property
    def image_size(self) -> Tuple[int, int]:
        return (self.base_decoded.width, self.base_decoded.height)

    def set_base_image(self, image_data: bytes, decoded, reset_transform: bool = True):
        """Replace the base image. A fresh import also resets transform and radius."""
        self.base_image_data = image_data
        self.base_decoded = decoded
        if reset_transform:
            self.transform = Transform.identity()
        self._logger.debug(f"Base image set: {decoded.width}x{decoded.height}")

    def reset_for_import(self):
        """Clear everything a new import replaces."""
        self.transform = Transform.identity()
        self.border_radius = BorderRadius()
        self.layers.clear()
        self.is_cropping = False
        self.crop = None
        self.fill_mask = None

    def base_fit_scale(self) -> float:
        return fit_scale(self.viewport.width, self.viewport.height, *self.image_size)

    def base_draw_size(self) -> Tuple[float, float]:
        """Base image size on screen at transform scale 1."""
        return draw_size(self.viewport.width, self.viewport.height, *self.image_size)

    def effective_transform(self) -> Transform:
        """Transform used for the base image: pan and rotation suppressed while cropping."""
        if self.is_cropping:
            return Transform(0.0, 0.0, self.transform.scale, 0.0)
        return self.transform

    # ========================================
    # Snapshot API
    # ========================================

    def get_snapshot(self) -> Dict:
        """Complete editable state, decoded images stripped."""
        layers = self.layers.get_snapshot()
        return {
            'transform': self.transform.to_dict(),
            'border_radius': self.border_radius.value,
            'corner_radii': dict(self.border_radius.corners),
            'advanced_mode': self.border_radius.advanced,
            'text_layers': layers['text_layers'],
            'image_layers': layers['image_layers'],
            'selected_layer_id': layers['selected_layer_id'],
            'next_layer_id': layers['next_id'],
            'base_image_data': self.base_image_data,
        }

    def set_snapshot(self, snapshot: Dict, base_decoded, decoded_images: Dict[int, Any]):
        """Restore state from a snapshot. All decodes must already be done.

        Args:
            snapshot: Dictionary from get_snapshot()
            base_decoded: DecodedImage for snapshot['base_image_data'] (or None)
            decoded_images: {layer_id: DecodedImage} for every image layer
        """
        snapshot = deepcopy(snapshot)
        self.transform = Transform.from_dict(snapshot['transform'])
        self.border_radius = BorderRadius(
            snapshot['border_radius'], snapshot['corner_radii'], snapshot['advanced_mode'])
        self.layers.set_snapshot({
            'image_layers': snapshot['image_layers'],
            'text_layers': snapshot['text_layers'],
            'selected_layer_id': snapshot['selected_layer_id'],
            'next_id': snapshot.get('next_layer_id', 0),
        }, decoded_images)
        self.base_image_data = snapshot['base_image_data']
        self.base_decoded = base_decoded
        self._logger.debug("Restored from snapshot")
