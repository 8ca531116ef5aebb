"""Transient user notifications (toasts).

Fire-and-forget: the editor core only calls notify(). A message stays
current for TOAST_DURATION_MS; listeners (e.g. the Qt toast label) are told
about every new message and schedule their own dismissal.
"""
import logging
import time

from curve_editor.constants import TOAST_DURATION_MS

logger = logging.getLogger(__name__)


class Notifier:
    """Notification sink with auto-dismiss bookkeeping."""

    def __init__(self, duration_ms=TOAST_DURATION_MS, clock=time.monotonic):
        self.duration_ms = duration_ms
        self._clock = clock
        self._message = None
        self._shown_at = 0.0
        self.messages = []  # Every message ever shown, oldest first
        self._listeners = []

    def notify(self, message: str):
        self._message = message
        self._shown_at = self._clock()
        self.messages.append(message)
        logger.info("Notification: %s", message)
        for callback in list(self._listeners):
            callback(message)

    @property
    def current(self):
        """Message still on screen, or None after it auto-dismissed."""
        if self._message is None:
            return None
        if (self._clock() - self._shown_at) * 1000 >= self.duration_ms:
            self._message = None
        return self._message

    def dismiss(self):
        self._message = None

    def add_listener(self, callback):
        self._listeners.append(callback)

    def remove_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)
