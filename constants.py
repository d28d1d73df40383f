"""
Constants for the run route overlay renderer.

Centralized definitions for canvas limits, colors, fonts, and the fixed
pixel offsets used by the lap panel and the bottom pace/distance bar.
"""

from enum import Enum
from typing import Dict, Tuple

import cv2


# =============================================================================
# Canvas
# =============================================================================

MAX_CANVAS_SIDE = 1080  # Background is scaled down so its longest side fits
BACKGROUND_INTERPOLATION = cv2.INTER_LANCZOS4


# =============================================================================
# Colors (BGR format for OpenCV)
# =============================================================================

class NamedColor(str, Enum):
    """Closed set of named colors accepted by the configuration."""
    BLACK = "black"
    WHITE = "white"
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    YELLOW_GREEN = "yellow_green"
    GREEN = "green"
    BLUE_GREEN = "blue_green"
    BLUE = "blue"
    BLUE_VIOLET = "blue_violet"
    VIOLET = "violet"
    RED_VIOLET = "red_violet"
    RED_ORANGE = "red_orange"
    YELLOW_ORANGE = "yellow_orange"
    CYAN = "cyan"
    MAGENTA = "magenta"


NAMED_COLOR_BGR: Dict[NamedColor, Tuple[int, int, int]] = {
    NamedColor.BLACK: (0, 0, 0),
    NamedColor.WHITE: (255, 255, 255),
    NamedColor.RED: (0, 0, 255),
    NamedColor.ORANGE: (0, 165, 255),
    NamedColor.YELLOW: (0, 255, 255),
    NamedColor.YELLOW_GREEN: (47, 255, 173),
    NamedColor.GREEN: (0, 255, 0),
    NamedColor.BLUE_GREEN: (128, 255, 0),
    NamedColor.BLUE: (255, 0, 0),
    NamedColor.BLUE_VIOLET: (226, 43, 138),
    NamedColor.VIOLET: (211, 0, 148),
    NamedColor.RED_VIOLET: (211, 0, 199),
    NamedColor.RED_ORANGE: (0, 69, 255),
    NamedColor.YELLOW_ORANGE: (0, 204, 255),
    NamedColor.CYAN: (255, 255, 0),
    NamedColor.MAGENTA: (255, 0, 255),
}


# =============================================================================
# Fonts
# =============================================================================

class Font(str, Enum):
    """Hershey font families available for overlay text."""
    SIMPLEX = "simplex"
    PLAIN = "plain"
    DUPLEX = "duplex"
    COMPLEX = "complex"
    TRIPLEX = "triplex"
    COMPLEX_SMALL = "complex_small"
    SCRIPT_SIMPLEX = "script_simplex"
    SCRIPT_COMPLEX = "script_complex"
    ITALIC = "italic"


FONT_CODES: Dict[Font, int] = {
    Font.SIMPLEX: cv2.FONT_HERSHEY_SIMPLEX,
    Font.PLAIN: cv2.FONT_HERSHEY_PLAIN,
    Font.DUPLEX: cv2.FONT_HERSHEY_DUPLEX,
    Font.COMPLEX: cv2.FONT_HERSHEY_COMPLEX,
    Font.TRIPLEX: cv2.FONT_HERSHEY_TRIPLEX,
    Font.COMPLEX_SMALL: cv2.FONT_HERSHEY_COMPLEX_SMALL,
    Font.SCRIPT_SIMPLEX: cv2.FONT_HERSHEY_SCRIPT_SIMPLEX,
    Font.SCRIPT_COMPLEX: cv2.FONT_HERSHEY_SCRIPT_COMPLEX,
    # Italic is a modifier flag; on its own it renders as italic simplex
    Font.ITALIC: cv2.FONT_HERSHEY_SIMPLEX | cv2.FONT_ITALIC,
}


# =============================================================================
# Route Drawing
# =============================================================================

VIDEO_LINE_THICKNESS = 4
IMAGE_LINE_THICKNESS = 2
MARKER_RADIUS = 8
LINE_TYPE = cv2.LINE_AA


# =============================================================================
# Lap Panel Layout (pixels)
# =============================================================================

# (label, x offset from the panel anchor)
PANEL_HEADER_COLUMNS: Tuple[Tuple[str, int], ...] = (
    ("KM  PACE", -20),
    ("BAR", 150),
    ("HR", 285),
    ("LENGTH", 320),
)
PANEL_HEADER_RISE = 20        # Header baseline sits this far above the anchor
PANEL_HEADER_FONT_SCALE = 0.5
PANEL_HEADER_THICKNESS = 2
PANEL_HEADER_COLOR = NamedColor.CYAN

PANEL_ROW_SPACING = 5         # Added to the measured row height
PANEL_HEART_RATE_OFFSET = 300  # From the pace column's left edge
PANEL_STRIDE_OFFSET = 350
PANEL_BAR_GUTTER = 60         # Between the pace text and its bar
PANEL_INDEX_GUTTER = 3        # Spaces between lap index and pace label

PACE_BUCKET_SECONDS = 30      # Baseline is floored to this bucket


# =============================================================================
# Bottom Bar Layout (pixels)
# =============================================================================

BOTTOM_BAR_MARGIN = 20
BOTTOM_BAR_PADDING = 30       # Added to the measured text height
BOTTOM_BAR_COLOR = NamedColor.BLACK
BOTTOM_BAR_TEXT_COLOR = NamedColor.WHITE
BOTTOM_BAR_SIZING_TEXT = "Dist: 0.00 km"  # Sizes the bar when distance is hidden


# =============================================================================
# Video Output
# =============================================================================

PLAYBACK_SECONDS = 15         # Frame rate is points // PLAYBACK_SECONDS
PROGRESS_LOG_INTERVAL = 100   # Log every N rendered points


# =============================================================================
# Pace
# =============================================================================

ZERO_PACE = "0:00"
METERS_PER_KM = 1000.0
