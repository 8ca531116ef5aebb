"""Image codec boundary: bytes in, decoded image out (and back).

Decoding and encoding go through Pillow. The async variants push the work
onto a thread so the event loop keeps handling gestures.
"""
import asyncio
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from curve_editor.errors import ImageDecodeError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ('png', 'jpeg')


@dataclass
class DecodedImage:
    """A decoded RGBA image and its native size."""
    width: int
    height: int
    image: Image.Image

    @property
    def size(self):
        return (self.width, self.height)


def decode(data: bytes) -> DecodedImage:
    """Decode encoded bytes (PNG, JPEG, ...) to an RGBA image.

    Raises:
        ImageDecodeError: If the bytes are empty, corrupt or unsupported
    """
    if not data:
        raise ImageDecodeError("No image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgba = img.convert('RGBA')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e
    if rgba.width == 0 or rgba.height == 0:
        raise ImageDecodeError("Image has no pixels")
    logger.debug("Decoded %dx%d image (%d bytes)", rgba.width, rgba.height, len(data))
    return DecodedImage(rgba.width, rgba.height, rgba)


async def decode_async(data: bytes) -> DecodedImage:
    """Decode on a worker thread; resumes on the event loop."""
    return await asyncio.to_thread(decode, data)


def encode(image: Image.Image, fmt: str = 'png', quality: float = None) -> bytes:
    """Encode an image to PNG or JPEG bytes.

    Args:
        image: Pillow image (any mode)
        fmt: 'png' or 'jpeg'
        quality: JPEG quality in 0..1 (ignored for PNG, default 0.95)
    """
    fmt = fmt.lower()
    if fmt == 'jpg':
        fmt = 'jpeg'
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported export format '{fmt}'")

    buffer = io.BytesIO()
    if fmt == 'png':
        image.save(buffer, format='PNG')
    else:
        quality = 0.95 if quality is None else quality
        # JPEG has no alpha; flatten onto white like a browser canvas export
        if image.mode in ('RGBA', 'LA', 'P'):
            rgba = image.convert('RGBA')
            flat = Image.new('RGB', rgba.size, (255, 255, 255))
            flat.paste(rgba, mask=rgba.getchannel('A'))
            image = flat
        elif image.mode != 'RGB':
            image = image.convert('RGB')
        image.save(buffer, format='JPEG', quality=int(round(max(0.0, min(1.0, quality)) * 100)))
    return buffer.getvalue()


async def encode_async(image: Image.Image, fmt: str = 'png', quality: float = None) -> bytes:
    return await asyncio.to_thread(encode, image, fmt, quality)
