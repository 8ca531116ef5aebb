"""Layer operations, sheets and border radius for EditorSession"""

from curve_editor.errors import ImageDecodeError, LayerBusyError, LayerLockedError
from curve_editor.models.layers import ImageLayer
from curve_editor.services.image_codec import decode_async
from curve_editor.utils.logger import report_failure

# Fields that stay editable on a locked layer
_LOCK_EXEMPT_FIELDS = {'locked', 'visible'}


class LayerMixin:
	"""Layer add/update/delete/reorder with history commit points"""

	def _check_not_busy(self, layer_id):
		if layer_id in self.busy_targets:
			raise LayerBusyError(f"An operation is still running on layer {layer_id}")

	def _check_unlocked(self, layer_id, changes=None):
		layer = self.document.layers.get(layer_id)
		if layer is None or not layer.locked:
			return
		if changes is not None and set(changes) <= _LOCK_EXEMPT_FIELDS:
			return
		raise LayerLockedError(f"Layer '{layer.name}' is locked")

	# ========================================
	# Add
	# ========================================

	async def add_image_layer(self, image_data):
		"""Decode and append an image layer on top; commits on success.

		Returns:
			New layer id, or None if the bytes could not be decoded
		"""
		try:
			decoded = await decode_async(image_data)
		except ImageDecodeError as e:
			report_failure(e, "Could not load image", self.notifier)
			return None

		layer_id = self.document.layers.add_image_layer(image_data, decoded)
		self._save_state("Add image layer")
		return layer_id

	def add_text_layer(self):
		"""Add a placeholder text layer at the canvas centre and start editing it"""
		layer_id = self.document.layers.add_text_layer(self.document.viewport.size, self.document.dark_mode)
		self._save_state("Add text layer")
		return layer_id

	# ========================================
	# Edit
	# ========================================

	def update_layer(self, layer_id, **changes):
		"""Live update (slider tick, typing). No history commit.

		Returns:
			True if applied, False if refused (locked layer)
		"""
		try:
			self._check_unlocked(layer_id, changes)
		except LayerLockedError as e:
			self.notifier.notify(str(e))
			return False
		self.document.layers.update_layer(layer_id, **changes)
		return True

	def commit_layer_changes(self, description="Edit layer"):
		"""Commit point for a series of update_layer calls"""
		self._save_state(description)

	def delete_layer(self, layer_id):
		try:
			self._check_not_busy(layer_id)
			self._check_unlocked(layer_id)
		except (LayerBusyError, LayerLockedError) as e:
			self.notifier.notify(str(e))
			return False
		self.document.layers.delete_layer(layer_id)
		self.sequencer.invalidate(layer_id)
		self._save_state("Delete layer")
		return True

	def duplicate_layer(self, layer_id):
		new_id = self.document.layers.duplicate_layer(layer_id)
		self._save_state("Duplicate layer")
		return new_id

	def reorder_layer(self, layer_id, direction):
		"""Move a layer one step; only an actual move is committed"""
		moved = self.document.layers.reorder(layer_id, direction)
		if moved:
			self._save_state(f"Move layer {direction}")
		return moved

	def select_layer(self, layer_id):
		self.document.layers.select(layer_id)
		self._update_status()

	def toggle_layer_visibility(self, layer_id):
		layer = self.document.layers.get(layer_id)
		self.document.layers.update_layer(layer_id, visible=not layer.visible)
		self._save_state("Toggle visibility")

	def toggle_layer_lock(self, layer_id):
		layer = self.document.layers.get(layer_id)
		self.document.layers.update_layer(layer_id, locked=not layer.locked)
		self._save_state("Toggle lock")

	# ========================================
	# Border radius (base image or selected image layer)
	# ========================================

	def _radius_target(self, layer_id=None):
		if layer_id is None:
			return self.document.border_radius
		layer = self.document.layers.get(layer_id)
		if not isinstance(layer, ImageLayer):
			raise ValueError(f"Image layer with id '{layer_id}' not found")
		return layer.border_radius

	def set_border_radius(self, value, layer_id=None):
		self._radius_target(layer_id).set_value(value)

	def set_corner_radius(self, corner, value, layer_id=None):
		self._radius_target(layer_id).set_corner(corner, value)

	def set_advanced_radius(self, advanced, layer_id=None):
		self._radius_target(layer_id).set_advanced(advanced)

	# ========================================
	# Sheets
	# ========================================

	def open_sheet(self, name):
		"""Open a bottom sheet; blocks pan and text hit-testing while open"""
		self.gestures.active_sheet = name

	def close_sheet(self):
		"""Close the active sheet. Text and border sheets are commit points."""
		sheet = self.gestures.active_sheet
		self.gestures.active_sheet = None
		if sheet == 'text':
			self.document.layers.start_editing_text(None)
			self._save_state("Edit text")
		elif sheet == 'border':
			self._save_state("Border radius")
		elif sheet == 'layers':
			self._save_state("Edit layers")
