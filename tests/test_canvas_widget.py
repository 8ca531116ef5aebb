"""
pytest-qt tests for the canvas widget.

Mouse events are built by hand with explicit screen positions and fed to
the handlers, so the tests do not depend on the platform cursor.
"""
import pytest
from PIL import Image
from PyQt5.QtCore import QEvent, QPointF, Qt
from PyQt5.QtGui import QMouseEvent, QTouchEvent
from PyQt5.QtWidgets import QApplication

from curve_editor.components.canvas_widget import CurveCanvas, pil_to_qimage
from curve_editor.models.crop import CropRect


def mouse_event(widget, kind, x, y, button=Qt.LeftButton, buttons=None):
    local = QPointF(x, y)
    screen = QPointF(widget.mapToGlobal(local.toPoint()))
    if buttons is None:
        buttons = Qt.NoButton if kind == QEvent.MouseButtonRelease else button
    return QMouseEvent(kind, local, local, screen, button, buttons, Qt.NoModifier)


@pytest.fixture
def canvas(qtbot, loaded_session):
    widget = CurveCanvas(loaded_session)
    qtbot.addWidget(widget)
    widget.resize(800, 600)
    widget.show()
    qtbot.waitExposed(widget)
    return widget


def press(widget, x, y, button=Qt.LeftButton):
    widget.mousePressEvent(mouse_event(widget, QEvent.MouseButtonPress, x, y, button))


def move(widget, x, y, buttons=Qt.LeftButton):
    widget.mouseMoveEvent(mouse_event(widget, QEvent.MouseMove, x, y, Qt.NoButton, buttons))


def release(widget, x, y, button=Qt.LeftButton):
    widget.mouseReleaseEvent(mouse_event(widget, QEvent.MouseButtonRelease, x, y, button))


# ══════════════════════════════════════════════════════════════════════════
# Conversion / painting
# ══════════════════════════════════════════════════════════════════════════

class TestPainting:

    def test_pil_to_qimage(self):
        qimage = pil_to_qimage(Image.new('RGBA', (3, 2), (255, 0, 0, 255)))
        assert (qimage.width(), qimage.height()) == (3, 2)
        color = qimage.pixelColor(1, 1)
        assert (color.red(), color.green(), color.blue(), color.alpha()) == (255, 0, 0, 255)

    def test_viewport_follows_widget_size(self, canvas, loaded_session):
        assert loaded_session.document.viewport.size == (800, 600)

    def test_paint_shows_preview(self, canvas):
        image = canvas.grab().toImage()
        color = image.pixelColor(400, 300)
        assert abs(color.red() - 200) <= 3
        assert abs(color.green() - 40) <= 3


# ══════════════════════════════════════════════════════════════════════════
# Mouse
# ══════════════════════════════════════════════════════════════════════════

class TestMouse:

    def test_drag_pans_and_commits(self, canvas, loaded_session):
        press(canvas, 400, 300)
        move(canvas, 430, 300)
        move(canvas, 460, 320)
        release(canvas, 460, 320)
        t = loaded_session.document.transform
        assert (t.x, t.y) == (60, 20)
        assert loaded_session.history_manager.get_current_description() == "Pan"

    def test_right_button_ignored(self, canvas, loaded_session):
        press(canvas, 400, 300, Qt.RightButton)
        move(canvas, 460, 300, Qt.RightButton)
        release(canvas, 460, 300, Qt.RightButton)
        assert loaded_session.document.transform.x == 0
        assert len(loaded_session.history_manager) == 1

    def test_double_click_resets(self, canvas, loaded_session):
        loaded_session.document.transform.scale = 3
        canvas.mouseDoubleClickEvent(mouse_event(canvas, QEvent.MouseButtonDblClick, 400, 300))
        assert loaded_session.document.transform.scale == 1

    def test_crop_hover_cursor(self, canvas, loaded_session):
        doc = loaded_session.document
        doc.is_cropping = True
        doc.crop = CropRect(100, 100, 200, 200)
        move(canvas, 100, 100, Qt.NoButton)
        assert canvas.cursor().shape() == Qt.SizeFDiagCursor
        move(canvas, 600, 500, Qt.NoButton)
        assert canvas.cursor().shape() == Qt.CrossCursor


# ══════════════════════════════════════════════════════════════════════════
# Toast
# ══════════════════════════════════════════════════════════════════════════

class TestToast:

    def test_notification_shows_toast(self, canvas, loaded_session):
        loaded_session.notifier.notify("Image exported successfully")
        assert canvas.toast_label.text() == "Image exported successfully"
        assert not canvas.toast_label.isHidden()
        assert canvas.toast_timer.isActive()

    def test_toast_hides_after_timeout(self, canvas, loaded_session, qtbot):
        canvas.toast_timer.setInterval(10)
        loaded_session.notifier.notify("Hi")
        canvas.toast_timer.start(10)
        qtbot.waitUntil(lambda: canvas.toast_label.isHidden(), timeout=1000)


# ══════════════════════════════════════════════════════════════════════════
# Touch
# ══════════════════════════════════════════════════════════════════════════

def touch_event(kind, timestamp, x, y):
    point = QTouchEvent.TouchPoint()
    point.setPos(QPointF(x, y))
    state = Qt.TouchPointReleased if kind == QEvent.TouchEnd else Qt.TouchPointPressed
    point.setState(state)
    event = QTouchEvent(kind, None, Qt.NoModifier, state, [point])
    event.setTimestamp(timestamp)
    return event


def tap(widget, timestamp, x, y):
    widget.event(touch_event(QEvent.TouchBegin, timestamp, x, y))
    widget.event(touch_event(QEvent.TouchEnd, timestamp + 40, x, y))


class TestTouch:

    def test_double_tap_resets_transform(self, canvas, loaded_session):
        loaded_session.document.transform.scale = 3
        tap(canvas, 1000, 400, 300)
        assert loaded_session.document.transform.scale == 3
        tap(canvas, 1150, 405, 298)
        assert loaded_session.document.transform.scale == 1
        assert loaded_session.history_manager.get_current_description() == "Reset transform"

    def test_slow_taps_are_not_double(self, canvas):
        interval = QApplication.doubleClickInterval()
        assert not canvas._is_double_tap(1000, [(400, 300)])
        assert not canvas._is_double_tap(1000 + interval + 1, [(400, 300)])

    def test_distant_taps_are_not_double(self, canvas):
        assert not canvas._is_double_tap(1000, [(100, 100)])
        assert not canvas._is_double_tap(1100, [(300, 100)])

    def test_two_finger_touch_breaks_pair(self, canvas):
        assert not canvas._is_double_tap(1000, [(400, 300)])
        assert not canvas._is_double_tap(1050, [(400, 300), (500, 300)])
        assert not canvas._is_double_tap(1100, [(400, 300)])

    def test_third_tap_starts_new_pair(self, canvas):
        assert not canvas._is_double_tap(1000, [(400, 300)])
        assert canvas._is_double_tap(1100, [(400, 300)])
        assert not canvas._is_double_tap(1200, [(400, 300)])
