"""Exception types raised by the editor core."""


class EditorError(Exception):
    """Base class for editor errors that are reported to the user."""


class ImageDecodeError(EditorError):
    """Bytes could not be decoded into an image."""


class AIServiceError(EditorError):
    """An AI provider call failed (network, HTTP status or timeout)."""

    def __init__(self, operation, message):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class GeometryError(EditorError):
    """A geometric request was rejected (empty mask, zero-size crop, ...)."""


class LayerLockedError(EditorError):
    """The target layer is locked."""


class LayerBusyError(EditorError):
    """An asynchronous operation is still running on the target layer."""


class SupersededError(EditorError):
    """A newer load replaced this one before it completed."""

    def __init__(self, key):
        super().__init__(f"Load for {key!r} was superseded")
        self.key = key
