"""
Curve Editor - Layer Model

Layers are a tagged union: ImageLayer | TextLayer, sharing the Layer
surface (kind, bounds, transform, render). The LayerStack owns the ordered
layer lists, the id counter and the selection state.

Image layers own a decoded image cache that is always derived from their
encoded image_data. The cache is excluded from equality and from snapshots
and is rebuilt after every history restore.

Text layers live in canvas space and are not affected by any image
transform.

Usage:
    stack = LayerStack()
    layer_id = stack.add_image_layer(png_bytes, decoded)
    stack.update_layer(layer_id, opacity=50)
    stack.reorder(layer_id, 'down')
    snapshot = stack.get_snapshot()
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple, Any, Union

from curve_editor.constants import (
    DEFAULT_TEXT, DEFAULT_TEXT_SIZE, DEFAULT_FONT_FAMILY,
    DEFAULT_TEXT_COLOR_LIGHT, DEFAULT_TEXT_COLOR_DARK,
    TEXT_HIT_HEIGHT_FACTOR, OPACITY_MIN, OPACITY_MAX,
)
from curve_editor.models.border_radius import BorderRadius
from curve_editor.models.transform import Transform
from curve_editor.services.image_codec import DecodedImage
from curve_editor.utils.coordinate_transforms import fit_scale, rotate_point


@dataclass
class LayerBounds:
    """Oriented box of a layer in canvas display space."""
    center_x: float
    center_y: float
    half_w: float
    half_h: float
    rotation: float = 0.0

    def contains(self, px: float, py: float) -> bool:
        local_x, local_y = rotate_point(px - self.center_x, py - self.center_y, -self.rotation)
        return abs(local_x) <= self.half_w and abs(local_y) <= self.half_h


class Layer:
    """Shared surface of every layer kind."""

    kind = 'layer'

    def bounds(self, canvas_size, measurer=None) -> Optional[LayerBounds]:
        raise NotImplementedError

    def transform(self) -> Transform:
        raise NotImplementedError

    def render(self, renderer):
        """Double dispatch into the compositor (renderer.draw_<kind>_layer)."""
        raise NotImplementedError


@dataclass(eq=True)
class ImageLayer(Layer):
    """An additional image layer stacked above the base image."""
    id: int
    name: str
    image_data: bytes
    visible: bool = True
    opacity: float = OPACITY_MAX
    locked: bool = False
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0
    border_radius: BorderRadius = field(default_factory=BorderRadius)
    decoded: Any = field(default=None, compare=False, repr=False)

    kind = 'image'

    @property
    def is_renderable(self) -> bool:
        return self.decoded is not None

    def transform(self) -> Transform:
        return Transform(self.x, self.y, self.scale, self.rotation)

    def draw_size(self, canvas_size) -> Tuple[float, float]:
        """Displayed size at layer scale 1."""
        factor = fit_scale(canvas_size[0], canvas_size[1], self.decoded.width, self.decoded.height)
        return self.decoded.width * factor, self.decoded.height * factor

    def bounds(self, canvas_size, measurer=None) -> Optional[LayerBounds]:
        if not self.is_renderable:
            return None
        draw_w, draw_h = self.draw_size(canvas_size)
        return LayerBounds(
            canvas_size[0] / 2 + self.x, canvas_size[1] / 2 + self.y,
            draw_w * self.scale / 2, draw_h * self.scale / 2, self.rotation,
        )

    def render(self, renderer):
        return renderer.draw_image_layer(self)

    def to_snapshot(self) -> dict:
        """Serializable copy: decoded cache stripped, encoded bytes kept."""
        return {
            'id': self.id,
            'type': self.kind,
            'name': self.name,
            'image_data': self.image_data,
            'visible': self.visible,
            'opacity': self.opacity,
            'locked': self.locked,
            'x': self.x,
            'y': self.y,
            'scale': self.scale,
            'rotation': self.rotation,
            'border_radius': self.border_radius.to_dict(),
        }

    @classmethod
    def from_snapshot(cls, data: dict, decoded=None) -> 'ImageLayer':
        return cls(
            id=data['id'],
            name=data['name'],
            image_data=data['image_data'],
            visible=data.get('visible', True),
            opacity=data.get('opacity', OPACITY_MAX),
            locked=data.get('locked', False),
            x=data.get('x', 0.0),
            y=data.get('y', 0.0),
            scale=data.get('scale', 1.0),
            rotation=data.get('rotation', 0.0),
            border_radius=BorderRadius.from_dict(data.get('border_radius', {})),
            decoded=decoded,
        )


@dataclass(eq=True)
class TextLayer(Layer):
    """A text overlay positioned in canvas space, horizontally centred on x."""
    id: int
    name: str
    text: str = DEFAULT_TEXT
    x: float = 0.0
    y: float = 0.0
    size: float = DEFAULT_TEXT_SIZE
    color: str = DEFAULT_TEXT_COLOR_LIGHT
    font_family: str = DEFAULT_FONT_FAMILY
    visible: bool = True
    opacity: float = OPACITY_MAX
    locked: bool = False

    kind = 'text'

    def transform(self) -> Transform:
        return Transform(self.x, self.y, 1.0, 0.0)

    def bounds(self, canvas_size=None, measurer=None) -> LayerBounds:
        """Hit box: measured width, height 1.5 x size starting one size above the baseline."""
        width = measurer.text_width(self.text, self.size, self.font_family) if measurer else 0.0
        height = self.size * TEXT_HIT_HEIGHT_FACTOR
        top = self.y - self.size
        return LayerBounds(self.x, top + height / 2, width / 2, height / 2)

    def hit_test(self, px: float, py: float, measurer) -> bool:
        box = self.bounds(measurer=measurer)
        # Strict inequalities, matching the pointer hit test of the canvas
        return (box.center_x - box.half_w < px < box.center_x + box.half_w
                and box.center_y - box.half_h < py < box.center_y + box.half_h)

    def render(self, renderer):
        return renderer.draw_text_layer(self)

    def to_snapshot(self) -> dict:
        data = asdict(self)
        data['type'] = self.kind
        return data

    @classmethod
    def from_snapshot(cls, data: dict) -> 'TextLayer':
        fields = {k: v for k, v in data.items() if k != 'type'}
        return cls(**fields)


AnyLayer = Union[ImageLayer, TextLayer]

_IMAGE_FIELDS = {'name', 'visible', 'opacity', 'locked', 'x', 'y', 'scale', 'rotation', 'border_radius'}
_TEXT_FIELDS = {'name', 'text', 'x', 'y', 'size', 'color', 'font_family', 'visible', 'opacity', 'locked'}


class LayerStack:
    """Ordered image and text layers plus selection state.

    Image layers composite bottom-to-top in list order above the base
    image; text layers always composite above every image layer. Ids come
    from one monotonic counter shared by both kinds.
    """

    def __init__(self):
        self._logger = logging.getLogger('LayerStack')
        self.image_layers: List[ImageLayer] = []
        self.text_layers: List[TextLayer] = []
        self.selected_layer_id: Optional[int] = None
        self.editing_text_id: Optional[int] = None
        self._next_id = 0

    # ========================================
    # Queries
    # ========================================

    def __len__(self):
        return len(self.image_layers) + len(self.text_layers)

    def get(self, layer_id) -> Optional[AnyLayer]:
        for layer in self.image_layers:
            if layer.id == layer_id:
                return layer
        for layer in self.text_layers:
            if layer.id == layer_id:
                return layer
        return None

    def _require(self, layer_id) -> AnyLayer:
        layer = self.get(layer_id)
        if layer is None:
            raise ValueError(f"Layer with id '{layer_id}' not found")
        return layer

    def _list_for(self, layer: AnyLayer) -> list:
        return self.image_layers if isinstance(layer, ImageLayer) else self.text_layers

    @property
    def selected_layer(self) -> Optional[ImageLayer]:
        layer = self.get(self.selected_layer_id)
        return layer if isinstance(layer, ImageLayer) else None

    @property
    def editing_text(self) -> Optional[TextLayer]:
        layer = self.get(self.editing_text_id)
        return layer if isinstance(layer, TextLayer) else None

    def ids(self) -> List[int]:
        return [layer.id for layer in self.image_layers] + [layer.id for layer in self.text_layers]

    def _allocate_id(self) -> int:
        layer_id = self._next_id
        self._next_id += 1
        return layer_id

    # ========================================
    # Mutations
    # ========================================

    def add_image_layer(self, image_data: bytes, decoded) -> int:
        """Append a decoded image layer on top and select it.

        The caller decodes first, so a layer never exists without its image.
        """
        if decoded is None:
            raise ValueError("Image layer requires a decoded image")
        layer_id = self._allocate_id()
        layer = ImageLayer(id=layer_id, name=f"Image {layer_id}", image_data=image_data, decoded=decoded)
        self.image_layers.append(layer)
        self.selected_layer_id = layer_id
        self._logger.debug(f"Added image layer: {layer_id}")
        return layer_id

    def add_text_layer(self, canvas_size, dark_mode: bool = False) -> int:
        """Add a placeholder text layer at the canvas centre and start editing it."""
        layer_id = self._allocate_id()
        layer = TextLayer(
            id=layer_id,
            name=f"Text {layer_id}",
            x=canvas_size[0] / 2,
            y=canvas_size[1] / 2,
            color=DEFAULT_TEXT_COLOR_DARK if dark_mode else DEFAULT_TEXT_COLOR_LIGHT,
        )
        self.text_layers.append(layer)
        self.editing_text_id = layer_id
        self._logger.debug(f"Added text layer: {layer_id}")
        return layer_id

    def update_layer(self, layer_id, **changes) -> AnyLayer:
        """Apply a partial update. No history commit happens here.

        Raises:
            ValueError: Unknown layer id or field
        """
        layer = self._require(layer_id)
        allowed = _IMAGE_FIELDS if isinstance(layer, ImageLayer) else _TEXT_FIELDS
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields {sorted(unknown)} on {layer.kind} layer")
        if 'opacity' in changes:
            changes['opacity'] = max(OPACITY_MIN, min(OPACITY_MAX, changes['opacity']))
        for key, value in changes.items():
            setattr(layer, key, value)
        return layer

    def delete_layer(self, layer_id):
        """Remove a layer. Selection falls back to the first remaining image layer."""
        layer = self._require(layer_id)
        self._list_for(layer).remove(layer)
        if self.selected_layer_id == layer_id:
            self.selected_layer_id = self.image_layers[0].id if self.image_layers else None
        if self.editing_text_id == layer_id:
            self.editing_text_id = None
        self._logger.debug(f"Removed layer: {layer_id}")

    def duplicate_layer(self, layer_id) -> int:
        """Copy a layer (new id, name + ' copy') directly above the original."""
        layer = self._require(layer_id)
        new_id = self._allocate_id()
        if isinstance(layer, ImageLayer):
            data = layer.to_snapshot()
            data['id'] = new_id
            data['name'] = f"{layer.name} copy"
            # Decoded cache is per layer; re-derive it from the same pixels
            new_layer = ImageLayer.from_snapshot(data, decoded=_copy_decoded(layer.decoded))
        else:
            data = layer.to_snapshot()
            data['id'] = new_id
            data['name'] = f"{layer.name} copy"
            new_layer = TextLayer.from_snapshot(data)
        layers = self._list_for(layer)
        layers.insert(layers.index(layer) + 1, new_layer)
        self._logger.debug(f"Duplicated layer {layer_id} -> {new_id}")
        return new_id

    def reorder(self, layer_id, direction: str) -> bool:
        """Swap a layer with its neighbour ('up' = towards the top).

        Returns:
            True if the layers were swapped, False at the boundary
        """
        if direction not in ('up', 'down'):
            raise ValueError(f"Direction must be 'up' or 'down', got '{direction}'")
        layer = self._require(layer_id)
        layers = self._list_for(layer)
        index = layers.index(layer)
        new_index = index + 1 if direction == 'up' else index - 1
        if new_index < 0 or new_index >= len(layers):
            return False
        layers[index], layers[new_index] = layers[new_index], layers[index]
        self._logger.debug(f"Moved layer {layer_id} {direction} to index {new_index}")
        return True

    def select(self, layer_id):
        if layer_id is not None and not isinstance(self.get(layer_id), ImageLayer):
            raise ValueError(f"Image layer with id '{layer_id}' not found")
        self.selected_layer_id = layer_id

    def start_editing_text(self, layer_id):
        if layer_id is not None and not isinstance(self.get(layer_id), TextLayer):
            raise ValueError(f"Text layer with id '{layer_id}' not found")
        self.editing_text_id = layer_id

    def clear(self):
        self.image_layers = []
        self.text_layers = []
        self.selected_layer_id = None
        self.editing_text_id = None

    # ========================================
    # Snapshot API
    # ========================================

    def get_snapshot(self) -> Dict:
        return {
            'image_layers': [layer.to_snapshot() for layer in self.image_layers],
            'text_layers': [layer.to_snapshot() for layer in self.text_layers],
            'selected_layer_id': self.selected_layer_id,
            'next_id': self._next_id,
        }

    def set_snapshot(self, snapshot: Dict, decoded_images: Dict[int, Any]):
        """Restore from a snapshot.

        Args:
            snapshot: Dictionary from get_snapshot()
            decoded_images: {layer_id: DecodedImage} rebuilt from image_data
        """
        missing = [data['id'] for data in snapshot['image_layers'] if decoded_images.get(data['id']) is None]
        if missing:
            raise ValueError(f"Missing decoded images for layers {missing}")
        self.image_layers = [
            ImageLayer.from_snapshot(deepcopy(data), decoded=decoded_images[data['id']])
            for data in snapshot['image_layers']
        ]
        self.text_layers = [TextLayer.from_snapshot(deepcopy(data)) for data in snapshot['text_layers']]
        self.selected_layer_id = snapshot.get('selected_layer_id')
        # Keep ids monotonic even when restoring an older snapshot
        self._next_id = max(self._next_id, snapshot.get('next_id', 0))
        if self.editing_text_id is not None and self.get(self.editing_text_id) is None:
            self.editing_text_id = None


def _copy_decoded(decoded):
    return DecodedImage(decoded.width, decoded.height, decoded.image.copy())
