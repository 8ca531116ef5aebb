"""
Curve Editor - Data Models

This module contains the document and its parts. This is the MODEL:
no Qt imports, no rendering, no undo stack.

Import from the submodules, e.g. curve_editor.models.document.Document
"""
