"""Canvas widget: Qt surface for the editing session.

Feeds mouse and touch events (as canvas display pixels) into the gesture
controller, paints the compositor's preview buffer and shows transient
notifications as a toast label.
"""
from PyQt5.QtCore import Qt, QEvent, QPoint, QTimer
from PyQt5.QtGui import QImage, QPainter
from PyQt5.QtWidgets import QApplication, QLabel, QWidget

from curve_editor.constants import DOUBLE_TAP_DISTANCE, TOAST_DURATION_MS
from curve_editor.components.gestures import EditorMode
from curve_editor.models.transform import Vec2
from curve_editor.utils.coordinate_transforms import screen_to_canvas


def pil_to_qimage(image):
	"""Copy an RGBA Pillow image into a QImage"""
	data = image.tobytes('raw', 'RGBA')
	qimage = QImage(data, image.width, image.height, image.width * 4, QImage.Format_RGBA8888)
	# QImage does not own the buffer; detach before it goes away
	return qimage.copy()


class CurveCanvas(QWidget):
	"""Interactive preview of an EditorSession"""

	def __init__(self, session, parent=None):
		super().__init__(parent)
		self.session = session
		self.setAttribute(Qt.WA_AcceptTouchEvents)
		self.setMouseTracking(True)
		self.setMinimumSize(200, 200)

		self.toast_label = QLabel(self)
		self.toast_label.setAlignment(Qt.AlignCenter)
		self.toast_label.setStyleSheet(
			"background-color: rgba(20, 20, 20, 200); color: white; padding: 8px 14px; border-radius: 8px;")
		self.toast_label.hide()
		self.toast_timer = QTimer(self)
		self.toast_timer.setSingleShot(True)
		self.toast_timer.timeout.connect(self.toast_label.hide)
		self._last_tap = None  # (timestamp ms, x, y) of the previous single-finger touch
		session.notifier.add_listener(self.show_toast)

	# ========================================
	# Geometry
	# ========================================

	def _canvas_pos(self, global_pos):
		origin = self.mapToGlobal(QPoint(0, 0))
		return screen_to_canvas(Vec2(global_pos.x(), global_pos.y()), Vec2(origin.x(), origin.y()))

	def _sync_viewport(self):
		self.session.set_viewport(self.width(), self.height(), self.devicePixelRatioF())

	def resizeEvent(self, event):
		self._sync_viewport()
		super().resizeEvent(event)

	# ========================================
	# Painting
	# ========================================

	def paintEvent(self, event):
		painter = QPainter(self)
		try:
			self._sync_viewport()
			image = pil_to_qimage(self.session.render_preview())
			image.setDevicePixelRatio(self.devicePixelRatioF())
			painter.drawImage(0, 0, image)
		finally:
			painter.end()

	def show_toast(self, message):
		self.toast_label.setText(message)
		self.toast_label.adjustSize()
		self.toast_label.move((self.width() - self.toast_label.width()) // 2,
		                      self.height() - self.toast_label.height() - 24)
		self.toast_label.show()
		self.toast_label.raise_()
		self.toast_timer.start(TOAST_DURATION_MS)

	# ========================================
	# Mouse
	# ========================================

	def mousePressEvent(self, event):
		if event.button() != Qt.LeftButton:
			super().mousePressEvent(event)
			return
		pos = self._canvas_pos(event.globalPos())
		self.session.gestures.pointer_down(pos.x, pos.y)
		self.update()
		event.accept()

	def mouseMoveEvent(self, event):
		pos = self._canvas_pos(event.globalPos())
		gestures = self.session.gestures
		cursor = gestures.hover_cursor(pos.x, pos.y)
		self.setCursor(cursor if cursor is not None else Qt.ArrowCursor)
		gestures.pointer_move(pos.x, pos.y)
		self.update()

	def mouseReleaseEvent(self, event):
		if event.button() != Qt.LeftButton:
			super().mouseReleaseEvent(event)
			return
		self.session.gestures.pointer_up()
		self.update()
		event.accept()

	def mouseDoubleClickEvent(self, event):
		if event.button() == Qt.LeftButton:
			self.session.gestures.double_tap()
			self.update()
			event.accept()

	# ========================================
	# Touch
	# ========================================

	def event(self, event):
		kind = event.type()
		if kind in (QEvent.TouchBegin, QEvent.TouchUpdate, QEvent.TouchEnd, QEvent.TouchCancel):
			touch_points = event.touchPoints()
			points = [(p.pos().x(), p.pos().y()) for p in touch_points if p.state() != Qt.TouchPointReleased]
			released = len(points) < len(touch_points)
			gestures = self.session.gestures
			if kind == QEvent.TouchBegin:
				if not (self._is_double_tap(event.timestamp(), points) and gestures.double_tap()):
					gestures.touch_start(points)
			elif kind == QEvent.TouchUpdate:
				if released:
					gestures.touch_end(points)
				elif len(points) >= 2 and gestures.mode != EditorMode.PINCHING:
					# Second finger landed after the first
					gestures.touch_start(points)
				else:
					gestures.touch_move(points)
			else:
				gestures.touch_end([])
			self.update()
			event.accept()
			return True
		return super().event(event)

	def _is_double_tap(self, timestamp, points):
		"""Record a touch-down; True when it completes a double tap."""
		if len(points) != 1:
			self._last_tap = None
			return False
		x, y = points[0]
		previous = self._last_tap
		self._last_tap = (timestamp, x, y)
		if previous is None:
			return False
		last_time, last_x, last_y = previous
		if (timestamp - last_time <= QApplication.doubleClickInterval()
				and abs(x - last_x) <= DOUBLE_TAP_DISTANCE and abs(y - last_y) <= DOUBLE_TAP_DISTANCE):
			# A third tap starts a new pair
			self._last_tap = None
			return True
		return False
