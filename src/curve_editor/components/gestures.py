"""Gesture state machine.

Turns pointer and touch streams (already in canvas display pixels) into
edits of the document: pan, pinch zoom/rotate, crop handle drags and mask
painting. The active gesture is an explicit EditorMode; mode selection on
pointer-down is gated by the document (cropping, generative fill), the
open sheet and the Busy mode.

History commits happen on release only (pan, pinch) or on double tap.
Crop drags never commit; the crop is committed when it is applied.
"""
import enum
import logging
import math

from curve_editor.constants import SNAP_THRESHOLD
from curve_editor.components.crop_handles import CropMode
from curve_editor.components.drag_context import DragContext
from curve_editor.models.transform import Transform, Vec2, clamp_scale
from curve_editor.utils.coordinate_transforms import canvas_to_image
from curve_editor.utils.text_metrics import TextMeasurer

logger = logging.getLogger(__name__)


class EditorMode(enum.Enum):
    IDLE = 'idle'
    PANNING = 'panning'
    PINCHING = 'pinching'
    CROP_IDLE = 'crop_idle'
    CROP_DRAGGING = 'crop_dragging'
    PAINTING = 'painting'
    BUSY = 'busy'


def snap_to_zero(value, threshold=SNAP_THRESHOLD):
    """Magnetic snap: offsets within the threshold of the centre line become 0."""
    return 0.0 if abs(value) < threshold else value


def _touch_geometry(p1, p2):
    dx = p2[0] - p1[0]
    dy = p2[1] - p1[1]
    return math.hypot(dx, dy), math.atan2(dy, dx)


class GestureController:
    """Owns the current EditorMode and applies gestures to a document.

    Args:
        document: The Document being edited
        commit: Callable(description) that snapshots the document into history
        on_mask_released: Callable() invoked when a mask stroke ends
        measurer: Text width measurement for text hit-testing
    """

    def __init__(self, document, commit=None, on_mask_released=None, measurer=None):
        self.document = document
        self._commit = commit or (lambda description: None)
        self._on_mask_released = on_mask_released
        self.measurer = measurer or TextMeasurer()
        self.crop_mode = CropMode()

        self.active_sheet = None
        self.busy_operation = None
        self._mode = EditorMode.IDLE
        self._drag = None

    # ========================================
    # Mode and gates
    # ========================================

    @property
    def mode(self) -> EditorMode:
        if self.busy_operation is not None:
            return EditorMode.BUSY
        if self._mode == EditorMode.IDLE and self.document.is_cropping:
            return EditorMode.CROP_IDLE
        return self._mode

    @property
    def is_generative_fill(self) -> bool:
        return self.document.fill_mask is not None

    def set_busy(self, operation):
        """Enter (operation name) or leave (None) the Busy mode. Cancels any gesture."""
        self.busy_operation = operation
        if operation is not None:
            self._reset()

    def _reset(self):
        if self.document.crop is not None:
            self.document.crop.drag_handle = None
        if self.document.fill_mask is not None:
            self.document.fill_mask.end_stroke()
        self._mode = EditorMode.IDLE
        self._drag = None

    def _can_transform(self) -> bool:
        """Pan, pinch and text hit-testing need an image, no sheet and no crop/fill mode."""
        doc = self.document
        return (self.busy_operation is None and self.active_sheet is None and doc.has_image
                and not doc.is_cropping and not self.is_generative_fill)

    # ========================================
    # Pointer events
    # ========================================

    def pointer_down(self, x, y):
        doc = self.document
        if self.busy_operation is not None:
            return
        if doc.is_cropping and doc.crop is not None:
            self._begin_crop_drag(x, y)
        elif self.is_generative_fill and doc.has_image:
            self._begin_paint(x, y)
        elif self._can_transform():
            self._begin_pan(x, y)

    def pointer_move(self, x, y):
        if self._mode == EditorMode.PANNING:
            self._update_pan(x, y)
        elif self._mode == EditorMode.CROP_DRAGGING:
            self._update_crop_drag(x, y)
        elif self._mode == EditorMode.PAINTING:
            self._update_paint(x, y)

    def pointer_up(self):
        mode = self._mode
        drag = self._drag
        self._mode = EditorMode.IDLE
        self._drag = None
        if mode == EditorMode.PANNING:
            if drag.moved:
                self._commit("Pan")
        elif mode == EditorMode.CROP_DRAGGING:
            # Release only clears the transient handle
            self.document.crop.drag_handle = None
        elif mode == EditorMode.PAINTING:
            self.document.fill_mask.end_stroke()
            if self._on_mask_released is not None:
                self._on_mask_released()

    def double_tap(self):
        """Reset the image transform to identity and commit.

        Returns:
            True if the transform was reset
        """
        if not self._can_transform():
            return False
        self.document.transform = Transform.identity()
        self._commit("Reset transform")
        return True

    def hover_cursor(self, x, y):
        """Cursor shape of the crop handle under the pointer, or None."""
        doc = self.document
        if not doc.is_cropping or doc.crop is None:
            return None
        handle = self.crop_mode.get_handle_at_pos(x, y, doc.crop)
        return handle.get_cursor() if handle else None

    # ========================================
    # Touch events
    # ========================================

    def touch_start(self, points):
        """Touch-down with the current touch points [(x, y), ...]."""
        if len(points) >= 2:
            self._begin_pinch(points[0], points[1])
        elif len(points) == 1:
            self.pointer_down(*points[0])

    def touch_move(self, points):
        if len(points) >= 2 and self._mode == EditorMode.PINCHING:
            self._update_pinch(points[0], points[1])
        elif len(points) == 1:
            self.pointer_move(*points[0])

    def touch_end(self, remaining):
        """Touch-up; remaining holds the points still down."""
        if len(remaining) >= 2:
            return
        if self._mode == EditorMode.PINCHING:
            if len(remaining) == 0:
                self._mode = EditorMode.IDLE
                self._drag = None
                self._commit("Pinch transform")
            return
        self.pointer_up()

    # ========================================
    # Pan
    # ========================================

    def _hit_text_layer(self, x, y):
        for layer in self.document.layers.text_layers:
            if layer.visible and layer.hit_test(x, y, self.measurer):
                return layer
        return None

    def _begin_pan(self, x, y):
        layers = self.document.layers
        hit = self._hit_text_layer(x, y)
        if hit is not None:
            layers.start_editing_text(hit.id)
            logger.debug(f"Text layer {hit.id} selected for editing")
            return
        layers.start_editing_text(None)
        transform = self.document.transform
        self._mode = EditorMode.PANNING
        self._drag = DragContext('pan', start_x=x, start_y=y, last_x=x, last_y=y,
                                 metadata={'raw_x': transform.x, 'raw_y': transform.y})

    def _update_pan(self, x, y):
        drag = self._drag
        dx = x - drag.last_x
        dy = y - drag.last_y
        drag.last_x, drag.last_y = x, y
        if dx == 0 and dy == 0:
            return
        drag.moved = True
        # Unsnapped position accumulates so the pointer can leave the snap zone
        drag.metadata['raw_x'] += dx
        drag.metadata['raw_y'] += dy
        transform = self.document.transform
        transform.x = snap_to_zero(drag.metadata['raw_x'])
        transform.y = snap_to_zero(drag.metadata['raw_y'])

    # ========================================
    # Pinch
    # ========================================

    def _begin_pinch(self, p1, p2):
        if not self._can_transform():
            return
        distance, angle = _touch_geometry(p1, p2)
        if distance <= 0:
            return
        transform = self.document.transform
        self._mode = EditorMode.PINCHING
        self._drag = DragContext('pinch', metadata={
            'distance': distance, 'angle': angle,
            'scale': transform.scale, 'rotation': transform.rotation,
        })

    def _update_pinch(self, p1, p2):
        base = self._drag.metadata
        distance, angle = _touch_geometry(p1, p2)
        transform = self.document.transform
        transform.scale = clamp_scale(distance / base['distance'] * base['scale'])
        transform.rotation = base['rotation'] + math.degrees(angle - base['angle'])

    # ========================================
    # Crop
    # ========================================

    def _begin_crop_drag(self, x, y):
        doc = self.document
        handle = self.crop_mode.get_handle_at_pos(x, y, doc.crop)
        self._mode = EditorMode.CROP_DRAGGING
        self._drag = DragContext(handle.name, start_x=x, start_y=y, last_x=x, last_y=y,
                                 start_rect=doc.crop.copy(), canvas_size=doc.viewport.size,
                                 aspect_ratio=doc.crop_aspect_ratio, metadata={'handle': handle})
        doc.crop.drag_handle = handle.name

    def _update_crop_drag(self, x, y):
        drag = self._drag
        drag.moved = True
        self.document.crop = drag.metadata['handle'].drag(x, y, drag)

    # ========================================
    # Mask painting
    # ========================================

    def _to_image(self, x, y):
        doc = self.document
        return canvas_to_image(Vec2(x, y), doc.transform, doc.viewport.size, doc.image_size)

    def _begin_paint(self, x, y):
        point = self._to_image(x, y)
        self.document.fill_mask.paint_dot(point.x, point.y)
        self._mode = EditorMode.PAINTING
        self._drag = DragContext('paint', start_x=x, start_y=y, last_x=x, last_y=y)

    def _update_paint(self, x, y):
        point = self._to_image(x, y)
        self.document.fill_mask.paint_to(point.x, point.y)
        self._drag.last_x, self._drag.last_y = x, y
        self._drag.moved = True
