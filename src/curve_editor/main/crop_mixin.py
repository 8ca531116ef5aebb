"""Crop mode for EditorSession"""

from PIL import Image

from curve_editor.errors import GeometryError
from curve_editor.models.crop import default_crop_rect
from curve_editor.models.transform import Vec2
from curve_editor.services.image_codec import DecodedImage, encode_async
from curve_editor.utils.coordinate_transforms import canvas_to_image
from curve_editor.utils.logger import report_failure


class CropMixin:
    """Enter, adjust, cancel and apply a crop of the base image"""

    def start_crop(self):
        """Enter crop mode with the rect covering the displayed image"""
        doc = self.document
        if not doc.has_image:
            self.notifier.notify("Import an image first")
            return False
        draw_w, draw_h = doc.base_draw_size()
        scale = doc.transform.scale
        doc.is_cropping = True
        doc.crop = default_crop_rect(doc.viewport.width, doc.viewport.height, draw_w * scale, draw_h * scale)
        doc.crop_aspect_ratio = None
        doc.layers.start_editing_text(None)
        return True

    def set_crop_aspect_ratio(self, ratio):
        """Lock the crop to width/height = ratio (None unlocks); reshapes the current rect"""
        doc = self.document
        if ratio is not None and ratio <= 0:
            raise ValueError(f"Aspect ratio must be positive, got {ratio}")
        doc.crop_aspect_ratio = ratio
        if ratio is None or doc.crop is None:
            return
        crop = doc.crop
        cx, cy = crop.center
        w = crop.w
        h = w / ratio
        if h > doc.viewport.height:
            h = doc.viewport.height
            w = h * ratio
        crop.x, crop.y, crop.w, crop.h = cx - w / 2, cy - h / 2, w, h
        crop.clamp(doc.viewport.width, doc.viewport.height)

    def set_straighten_angle(self, angle):
        if self.document.crop is not None:
            self.document.crop.straighten_angle = float(angle)

    def toggle_crop_grid(self):
        self.document.show_crop_grid = not self.document.show_crop_grid

    def cancel_crop(self):
        doc = self.document
        doc.is_cropping = False
        doc.crop = None
        doc.crop_aspect_ratio = None

    def crop_box_in_image(self):
        """Crop rect mapped into base image pixels (left, top, right, bottom), before clipping"""
        doc = self.document
        crop = doc.crop
        transform = doc.effective_transform()
        top_left = canvas_to_image(Vec2(crop.x, crop.y), transform, doc.viewport.size, doc.image_size)
        bottom_right = canvas_to_image(Vec2(crop.right, crop.bottom), transform, doc.viewport.size, doc.image_size)
        return top_left.x, top_left.y, bottom_right.x, bottom_right.y

    async def apply_crop(self):
        """Cut the base image to the crop rect (straightened), leave crop mode and commit"""
        doc = self.document
        if not doc.is_cropping or doc.crop is None:
            return False

        left, top, right, bottom = self.crop_box_in_image()
        source = doc.base_decoded.image
        angle = doc.crop.straighten_angle
        if angle:
            # The overlay shows the rect rotated clockwise; turn the image back
            center = ((left + right) / 2, (top + bottom) / 2)
            source = source.rotate(angle, resample=Image.BICUBIC, center=center)

        box = (max(0, int(round(left))), max(0, int(round(top))),
               min(source.width, int(round(right))), min(source.height, int(round(bottom))))
        try:
            if box[2] - box[0] < 1 or box[3] - box[1] < 1:
                raise GeometryError("Crop area is outside the image")
            cropped = source.crop(box)
            data = await encode_async(cropped, 'png')
        except Exception as e:
            report_failure(e, "Crop failed", self.notifier)
            return False

        doc.set_base_image(data, DecodedImage(cropped.width, cropped.height, cropped), reset_transform=True)
        self.cancel_crop()
        self._save_state("Crop")
        return True
