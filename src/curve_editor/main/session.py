"""
Curve Editor - Editing Session

Composes the document, history, gestures and services into the single
active editing session. Behaviour is split across mixins the way the
main window is split:

- HistoryMixin: snapshots, async undo/redo restore
- LayerMixin: layer operations, sheets, border radius
- CropMixin: crop mode and apply
- AIMixin: AI operations, Busy mode, generative fill
- FileMixin: import and export
- ConfigMixin: JSON config, recent files, dark mode
"""

import asyncio
import logging

from curve_editor.components.gestures import GestureController
from curve_editor.main.ai_mixin import AIMixin
from curve_editor.main.config_mixin import ConfigMixin
from curve_editor.main.crop_mixin import CropMixin
from curve_editor.main.file_mixin import FileMixin
from curve_editor.main.history_mixin import HistoryMixin
from curve_editor.main.layer_mixin import LayerMixin
from curve_editor.models.document import Document, Viewport
from curve_editor.services.ai_service import AIConfig, AIImageService
from curve_editor.services.compositor import Compositor
from curve_editor.services.load_sequencer import LoadSequencer
from curve_editor.services.notifier import Notifier
from curve_editor.utils.history_manager import HistoryManager
from curve_editor.utils.logger import set_notifier


class EditorSession(HistoryMixin, LayerMixin, CropMixin, AIMixin, FileMixin, ConfigMixin):
    """Single active document plus everything that edits it.

    Args:
        viewport: Canvas size and device pixel ratio
        ai_service: AI collaborator (defaults to AIImageService from the environment)
        notifier: Notification sink (defaults to a new Notifier)
        prompt_provider: Callable() -> str or None, asked after each mask stroke
        export_sink: Object with save(bytes, filename)
        config_dir: Directory holding config.json
        loop: Event loop used by schedule() when called outside a running loop
        load_config: Read config.json on start
    """

    def __init__(self, viewport: Viewport = None, ai_service=None, notifier: Notifier = None,
                 prompt_provider=None, export_sink=None, config_dir=None, loop=None, load_config=False):
        self._logger = logging.getLogger('EditorSession')
        self._loop = loop

        self.document = Document(viewport)
        self.history_manager = HistoryManager()
        self.notifier = notifier or Notifier()
        set_notifier(self.notifier)
        self.sequencer = LoadSequencer()
        self.compositor = Compositor()
        self.export_sink = export_sink
        self.prompt_provider = prompt_provider

        self._is_applying_history = False
        self.can_undo = False
        self.can_redo = False
        self.status_text = "Ready"
        self.busy_targets = set()
        self.processing_message = None

        self._init_config(config_dir)
        if load_config:
            self._load_config()

        self.ai_service = ai_service or AIImageService(AIConfig.from_env(timeout=self.ai_timeout))
        self.gestures = GestureController(self.document, commit=self._save_state,
                                          on_mask_released=self._on_mask_stroke_released)
        self.history_manager.add_listener(self._on_history_changed)

    @property
    def mode(self):
        return self.gestures.mode

    def set_viewport(self, width, height, device_pixel_ratio=1.0):
        """Canvas resized; layer and text coordinates stay in display pixels"""
        viewport = self.document.viewport
        viewport.width = width
        viewport.height = height
        viewport.device_pixel_ratio = device_pixel_ratio

    def render_preview(self):
        return self.compositor.render_preview(self.document)

    def schedule(self, coro):
        """Run a coroutine as a task on the session's loop (or the running one)"""
        if self._loop is not None:
            return self._loop.create_task(coro)
        return asyncio.get_running_loop().create_task(coro)

    def shutdown(self):
        """Cancel in-flight loads and AI calls"""
        self.sequencer.cancel_all()
