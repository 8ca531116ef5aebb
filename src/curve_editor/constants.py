"""
Curve Editor - Constants and Configuration

This module contains all constant values used throughout the application:
- Transform limits and defaults
- Border radius limits
- Text layer defaults
- Crop, mask and gesture tolerances
- Rendering colours and export presets
"""

# ======================================================================
# TRANSFORM
# ======================================================================

# Fraction of the shorter canvas side an image may fill at scale=1
FIT_MARGIN = 0.8

# Interactive zoom limits (pinch / wheel)
SCALE_MIN = 0.1
SCALE_MAX = 5.0

DEFAULT_POSITION_X = 0.0
DEFAULT_POSITION_Y = 0.0
DEFAULT_SCALE = 1.0
DEFAULT_ROTATION = 0.0

# Magnetic snap to the canvas centre lines (pixels)
SNAP_THRESHOLD = 8.0

# Two taps closer than this (pixels) within the double-click interval reset the transform
DOUBLE_TAP_DISTANCE = 24.0

# ======================================================================
# BORDER RADIUS
# ======================================================================

# Percentages of half the shorter drawn side
RADIUS_MIN = 0
RADIUS_MAX = 100

CORNER_NAMES = ('tl', 'tr', 'bl', 'br')

# Line segments used to flatten each quadratic corner
CORNER_SEGMENTS = 12

# ======================================================================
# LAYERS
# ======================================================================

OPACITY_MIN = 0
OPACITY_MAX = 100

DEFAULT_TEXT = "Tap to edit"
DEFAULT_TEXT_SIZE = 32
DEFAULT_TEXT_COLOR_LIGHT = "#000000"
DEFAULT_TEXT_COLOR_DARK = "#ffffff"
DEFAULT_FONT_FAMILY = "Arial"
TEXT_SIZE_MIN = 10
TEXT_SIZE_MAX = 100

# Hit box height as a multiple of the font size
TEXT_HIT_HEIGHT_FACTOR = 1.5

# ======================================================================
# CROP
# ======================================================================

CROP_MIN_SIZE = 10.0
CROP_HANDLE_HIT_RADIUS = 15.0
CROP_HANDLE_DRAW_SIZE = 10
CROP_SCRIM_COLOR = (0, 0, 0, 128)
CROP_BORDER_COLOR = (255, 255, 255, 255)
CROP_BORDER_WIDTH = 2
CROP_GRID_COLOR = (255, 255, 255, 110)

# ======================================================================
# GENERATIVE FILL MASK
# ======================================================================

MASK_BRUSH_WIDTH = 50
MASK_OVERLAY_OPACITY = 0.6
MASK_KEEP = 0
MASK_FILL = 255

# ======================================================================
# RENDERING
# ======================================================================

SELECTION_COLOR = (102, 126, 234, 255)   # #667eea
SELECTION_LINE_WIDTH = 2
SELECTION_DASH = (5, 5)

GUIDE_COLOR = (102, 126, 234, 200)
GUIDE_DASH = (6, 4)

# ======================================================================
# HISTORY
# ======================================================================

MAX_HISTORY = 50

# ======================================================================
# EXPORT
# ======================================================================

EXPORT_FILENAME_STEM = "curve-export"

# name -> (format, quality)
EXPORT_PRESETS = {
    'png': ('png', None),
    'jpeg_max': ('jpeg', 0.95),
    'jpeg_high': ('jpeg', 0.9),
    'jpeg_medium': ('jpeg', 0.7),
}

# ======================================================================
# NOTIFICATIONS / AI
# ======================================================================

TOAST_DURATION_MS = 3000

DEFAULT_AI_TIMEOUT = 60.0
UPSCALE_FACTORS = (2, 4)
DEFAULT_EXPAND_FACTOR = 1.5
DEFAULT_EXPAND_PROMPT = "seamless extension, continuation"
MOCK_IMAGE_SIZE = 1024
