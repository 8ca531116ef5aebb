"""Export: flatten the document at native resolution and hand the bytes to a sink."""
import logging
import os

from curve_editor.constants import EXPORT_FILENAME_STEM, EXPORT_PRESETS
from curve_editor.services.compositor import Compositor
from curve_editor.services.image_codec import encode

logger = logging.getLogger(__name__)


class FileExportSink:
    """Writes exported bytes into a directory."""

    def __init__(self, directory):
        self.directory = directory
        self.saved = []  # Paths written, oldest first

    def save(self, data: bytes, filename: str) -> str:
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, filename)
        with open(path, 'wb') as f:
            f.write(data)
        self.saved.append(path)
        logger.info(f"Exported {len(data)} bytes to {path}")
        return path


def export_filename(preset: str) -> str:
    fmt, _ = resolve_preset(preset)
    return f"{EXPORT_FILENAME_STEM}.{fmt}"


def resolve_preset(preset: str):
    """(format, quality) for a preset name."""
    try:
        return EXPORT_PRESETS[preset]
    except KeyError:
        raise ValueError(f"Unknown export preset '{preset}', expected one of {sorted(EXPORT_PRESETS)}") from None


def export_document(document, preset: str = 'png', compositor: Compositor = None) -> bytes:
    """Render the document at native resolution and encode it."""
    fmt, quality = resolve_preset(preset)
    image = (compositor or Compositor()).render_export(document)
    return encode(image, fmt, quality)
