"""Font loading and text measurement for text layers."""
import functools
import logging

from PIL import ImageFont

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=64)
def load_font(family: str, size: int):
    """Load a TrueType font by family name, falling back to Pillow's default face.

    Args:
        family: Font family, e.g. "Arial" (looked up as "arial.ttf")
        size: Pixel size
    """
    size = max(1, int(round(size)))
    for candidate in (f"{family}.ttf", f"{family.lower()}.ttf", f"{family.replace(' ', '')}.ttf"):
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    logger.debug("Font '%s' not found, using default face", family)
    return ImageFont.load_default(size=size)


class TextMeasurer:
    """Measures rendered text width, standing in for canvas measureText()."""

    def text_width(self, text: str, size: float, family: str) -> float:
        if not text:
            return 0.0
        font = load_font(family, int(round(size)))
        return float(font.getlength(text))
