"""Global logging and error handling utilities"""
import logging
import sys
import traceback

# Detect debug mode - True if running from source, False if packaged
DEBUG_MODE = not getattr(sys, 'frozen', False)

logger = logging.getLogger('curve_editor')

_notifier = None


def set_notifier(notifier):
    """Set the notification sink used for user-facing error messages"""
    global _notifier
    _notifier = notifier


def _show(message):
    if _notifier is not None:
        _notifier.notify(message)
    else:
        # Fallback if no notifier set
        print(f"ERROR NOTICE (no notifier): {message}", file=sys.stderr)


def loggerRaise(e: Exception, user_message: str = None):
    """Handle exceptions with an optional notice in release mode

    Args:
        e: The exception to handle
        user_message: User-friendly message to show (optional)

    In DEBUG_MODE:
        - Just raises the exception (shows full traceback)

    In RELEASE_MODE:
        - Shows a notice with the user message or exception string
        - Logs the full traceback
        - Then raises the exception
    """
    if DEBUG_MODE:
        raise e

    logger.error("ERROR: %s", traceback.format_exc())
    _show(user_message if user_message else str(e))
    raise e


def report_failure(e: Exception, user_message: str = None, notifier=None):
    """Log an async operation failure and surface it without raising

    Failures of decodes and AI calls end here: the document keeps its last
    committed state and the user sees a transient notice.

    Args:
        e: The exception that ended the operation
        user_message: User-friendly message (defaults to str(e))
        notifier: Explicit sink; falls back to the registered one
    """
    logger.warning("%s: %s", user_message or "Operation failed", e,
                   exc_info=(type(e), e, e.__traceback__))
    message = user_message if user_message else str(e)
    if notifier is not None:
        notifier.notify(message)
    else:
        _show(message)
