"""Interaction components: gesture state machine, crop handles and the Qt canvas

The canvas widget is imported from its module directly so that headless
use does not build widgets:
    from curve_editor.components.canvas_widget import CurveCanvas
"""

from .gestures import EditorMode, GestureController
from .crop_handles import CropMode

__all__ = ['EditorMode', 'GestureController', 'CropMode']
