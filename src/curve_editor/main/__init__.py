"""Editing session and its mixins"""

from .session import EditorSession

__all__ = ['EditorSession']
