"""History management and undo/redo for EditorSession"""

import asyncio

from curve_editor.errors import SupersededError
from curve_editor.services.image_codec import decode_async
from curve_editor.services.load_sequencer import HISTORY
from curve_editor.utils.logger import report_failure


class HistoryMixin:
    """Undo/redo system, state management, and status text"""

    def _capture_current_state(self):
        """Capture the current state for history"""
        return self.document.get_snapshot()

    async def _decode_snapshot(self, state):
        """Rebuild every decoded image a snapshot needs, concurrently."""
        base_data = state.get('base_image_data')
        layer_data = [(layer['id'], layer['image_data']) for layer in state['image_layers']]
        jobs = [decode_async(data) for _, data in layer_data]
        if base_data is not None:
            jobs.append(decode_async(base_data))
        results = await asyncio.gather(*jobs)
        base_decoded = results.pop() if base_data is not None else None
        decoded_images = {layer_id: decoded for (layer_id, _), decoded in zip(layer_data, results)}
        return base_decoded, decoded_images

    async def _restore_state(self, state):
        """Restore a state from history

        The document keeps its current state until every decode has
        finished; a restore superseded by a newer undo/redo is dropped.
        """
        if not state:
            return False

        try:
            base_decoded, decoded_images = await self.sequencer.run(HISTORY, self._decode_snapshot(state))
        except SupersededError:
            self._logger.debug("Dropped superseded history restore")
            return False
        except Exception as e:
            report_failure(e, "Could not restore history state", self.notifier)
            return False

        self._is_applying_history = True
        try:
            self.document.set_snapshot(state, base_decoded, decoded_images)
            self.document.layers.editing_text_id = None
        finally:
            self._is_applying_history = False
            self._update_status()
        return True

    def _save_state(self, description):
        """Save current state to history"""
        if self._is_applying_history:
            return  # Don't save state during undo/redo

        # A restore still decoding must not overwrite this newer entry
        self.sequencer.invalidate(HISTORY)
        state = self._capture_current_state()
        self.history_manager.commit(state, description)

    def _on_history_changed(self, can_undo, can_redo):
        """Called when history state changes to update UI"""
        self.can_undo = can_undo
        self.can_redo = can_redo
        self._update_status()

    def _update_status(self):
        """Update status text with current action and stats"""
        current_desc = self.history_manager.get_current_description()
        left_msg = f"Last action: {current_desc}" if current_desc else "Ready"

        layers = self.document.layers
        layer_count = len(layers)
        selected = layers.selected_layer
        if selected is not None:
            right_msg = f"Layers: {layer_count} | Selected: {selected.name}"
        else:
            right_msg = f"Layers: {layer_count} | No selection"
        self.status_text = f"{left_msg} | {right_msg}"

    async def undo(self):
        """Undo the last action"""
        state = self.history_manager.undo()
        if state:
            return await self._restore_state(state)
        return False

    async def redo(self):
        """Redo the last undone action"""
        state = self.history_manager.redo()
        if state:
            return await self._restore_state(state)
        return False
