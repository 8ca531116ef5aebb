"""AI operations and generative fill for EditorSession"""

from curve_editor.constants import DEFAULT_EXPAND_FACTOR
from curve_editor.errors import AIServiceError, GeometryError, ImageDecodeError, LayerBusyError, SupersededError
from curve_editor.models.fill_mask import FillMask
from curve_editor.models.layers import ImageLayer
from curve_editor.services.image_codec import decode_async
from curve_editor.services.load_sequencer import BASE_IMAGE
from curve_editor.utils.logger import report_failure


class AIMixin:
	"""Runs AI service calls in Busy mode and applies their results"""

	@property
	def is_processing(self):
		return bool(self.busy_targets)

	def _target_data(self, layer_id):
		"""Encoded bytes of the base image (layer_id None) or an image layer"""
		if layer_id is None:
			return self.document.base_image_data
		layer = self.document.layers.get(layer_id)
		if not isinstance(layer, ImageLayer):
			raise ValueError(f"Image layer with id '{layer_id}' not found")
		return layer.image_data

	def _apply_image(self, layer_id, data, decoded, reset_transform=False):
		if layer_id is None:
			self.document.set_base_image(data, decoded, reset_transform=reset_transform)
		else:
			layer = self.document.layers.get(layer_id)
			layer.image_data = data
			layer.decoded = decoded

	async def _run_ai(self, label, layer_id, call, success_message=None, reset_transform=False):
		"""Run one AI call against a target and apply the result.

		Busy mode blocks gestures while the call is outstanding. Failures
		leave the document untouched and surface a notice.

		Returns:
			True if the result was applied
		"""
		target = BASE_IMAGE if layer_id is None else layer_id
		try:
			self._check_not_busy(target)
		except LayerBusyError as e:
			self.notifier.notify(str(e))
			return False

		async def work():
			result = await call()
			return result, await decode_async(result.data)

		self.busy_targets.add(target)
		self.processing_message = f"{label}..."
		self.gestures.set_busy(label)
		try:
			result, decoded = await self.sequencer.run(target, work())
		except SupersededError:
			self._logger.debug(f"{label} result superseded")
			return False
		except (AIServiceError, ImageDecodeError) as e:
			report_failure(e, f"{label} failed", self.notifier)
			return False
		finally:
			self.busy_targets.discard(target)
			if not self.busy_targets:
				self.processing_message = None
				self.gestures.set_busy(None)

		if layer_id is not None and self.document.layers.get(layer_id) is None:
			return False
		self._apply_image(layer_id, result.data, decoded, reset_transform)
		self._save_state(label)
		self.gestures.active_sheet = None
		message = result.message or success_message
		if message:
			self.notifier.notify(message)
		return True

	# ========================================
	# Operations
	# ========================================

	async def ai_generate(self, prompt):
		"""Replace the base image with a generated one (transform reset)"""
		prompt = (prompt or "").strip()
		if not prompt:
			self.notifier.notify("Describe the image to generate")
			return False
		return await self._run_ai("AI generate", None, lambda: self.ai_service.generate(prompt),
		                          reset_transform=True)

	async def ai_enhance(self, layer_id=None):
		data = self._target_data(layer_id)
		if data is None:
			self.notifier.notify("Import an image first")
			return False
		return await self._run_ai("Enhance", layer_id, lambda: self.ai_service.enhance(data), "Image enhanced")

	async def ai_upscale(self, factor=2, layer_id=None):
		data = self._target_data(layer_id)
		if data is None:
			self.notifier.notify("Import an image first")
			return False
		return await self._run_ai("Upscale", layer_id, lambda: self.ai_service.upscale(data, factor),
		                          f"Image upscaled {factor}x")

	async def ai_remove_background(self, layer_id=None):
		data = self._target_data(layer_id)
		if data is None:
			self.notifier.notify("Import an image first")
			return False
		return await self._run_ai("Remove background", layer_id,
		                          lambda: self.ai_service.remove_background(data), "Background removed")

	async def ai_expand(self, factor=DEFAULT_EXPAND_FACTOR, prompt=""):
		data = self.document.base_image_data
		if data is None:
			self.notifier.notify("Import an image first")
			return False
		return await self._run_ai("Expand", None, lambda: self.ai_service.expand(data, factor, prompt),
		                          "Image expanded")

	# ========================================
	# Generative fill
	# ========================================

	def start_generative_fill(self):
		"""Start a mask painting session on a fresh mask at native resolution"""
		doc = self.document
		if not doc.has_image:
			self.notifier.notify("Import an image first")
			return False
		if doc.is_cropping:
			self.cancel_crop()
		doc.fill_mask = FillMask(*doc.image_size)
		return True

	def cancel_generative_fill(self):
		self.document.fill_mask = None

	def _on_mask_stroke_released(self):
		"""Stroke ended: ask for a description, then fill (or abandon on cancel)"""
		if self.prompt_provider is None:
			return
		prompt = self.prompt_provider()
		if prompt is None:
			self.cancel_generative_fill()
			return
		self.schedule(self.apply_generative_fill(prompt))

	async def apply_generative_fill(self, prompt):
		"""Send image + mask + prompt; the mask is discarded once the result is applied"""
		doc = self.document
		try:
			if doc.fill_mask is None or doc.fill_mask.is_empty():
				raise GeometryError("Draw a mask before submitting")
		except GeometryError as e:
			self.notifier.notify(str(e))
			return False
		image_data = doc.base_image_data
		mask_data = doc.fill_mask.to_png_bytes()
		applied = await self._run_ai("Generative fill", None,
		                             lambda: self.ai_service.generative_fill(image_data, mask_data, prompt),
		                             "Generative fill applied")
		if applied:
			self.cancel_generative_fill()
		return applied
