"""Import and export for EditorSession"""

import os

from curve_editor.errors import ImageDecodeError, SupersededError
from curve_editor.services.export_service import FileExportSink, export_filename, resolve_preset
from curve_editor.services.image_codec import decode_async, encode_async
from curve_editor.services.load_sequencer import BASE_IMAGE
from curve_editor.utils.logger import report_failure


class FileMixin:
    """Base image import (fresh document) and flattened export"""

    async def import_image(self, image_data):
        """Decode bytes and start a fresh document on them.

        A newer import started before this one finishes wins; a failed
        decode leaves the current document untouched.
        """
        try:
            decoded = await self.sequencer.run(BASE_IMAGE, decode_async(image_data))
        except SupersededError:
            self._logger.debug("Dropped superseded import")
            return False
        except ImageDecodeError as e:
            report_failure(e, "Could not load image", self.notifier)
            return False

        self.cancel_generative_fill()
        self.document.reset_for_import()
        self.document.set_base_image(image_data, decoded, reset_transform=True)
        self.history_manager.clear()
        self._save_state("Import image")
        self._logger.info(f"Imported {decoded.width}x{decoded.height} image")
        return True

    async def open_file(self, filepath):
        """Import an image file from disk and remember it"""
        try:
            with open(filepath, 'rb') as f:
                data = f.read()
        except OSError as e:
            report_failure(e, f"Could not open {os.path.basename(filepath)}", self.notifier)
            return False
        imported = await self.import_image(data)
        if imported:
            self._add_to_recent_files(filepath)
        return imported

    async def export(self, preset='png', sink=None):
        """Flatten at native resolution, encode with the preset and save.

        Returns:
            The encoded bytes, or None if nothing was exported
        """
        if not self.document.has_image:
            self.notifier.notify("Import an image first")
            return None
        fmt, quality = resolve_preset(preset)
        sink = sink or self.export_sink or FileExportSink(self.export_directory or os.getcwd())

        self.processing_message = "Exporting..."
        try:
            image = self.compositor.render_export(self.document)
            data = await encode_async(image, fmt, quality)
            sink.save(data, export_filename(preset))
        except Exception as e:
            report_failure(e, "Export failed", self.notifier)
            return None
        finally:
            self.processing_message = None

        self.gestures.active_sheet = None
        self.notifier.notify("Image exported successfully")
        return data
