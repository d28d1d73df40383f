import logging
import os
from typing import Sequence, Tuple

import cv2
import numpy as np

from constants import (
    BACKGROUND_INTERPOLATION, FONT_CODES, Font, LINE_TYPE, MARKER_RADIUS,
    VIDEO_LINE_THICKNESS,
)
from errors import InputError
from route_data.data_models import CanvasSpec

logger = logging.getLogger(__name__)

Point = Tuple[int, int]
Color = Tuple[int, int, int]


def _pt(point) -> Point:
    # cv2 rejects numpy integer scalars inside point tuples
    return (int(point[0]), int(point[1]))


class Drawer:
    """
    Raster primitives on BGR uint8 canvases.

    Every draw call mutates the canvas passed in; callers decide whether
    that is the persistent buffer or a per-frame copy.
    """

    def __init__(self, font: Font = Font.SIMPLEX, line_type: int = LINE_TYPE):
        self.font = font
        self.line_type = line_type

    def _font_code(self, font) -> int:
        return FONT_CODES[font if font is not None else self.font]

    def line(self, canvas: np.ndarray, p1, p2, color: Color,
             thickness: int = VIDEO_LINE_THICKNESS) -> None:
        cv2.line(canvas, _pt(p1), _pt(p2), color, thickness, self.line_type)

    def polyline(self, canvas: np.ndarray, points: np.ndarray, color: Color, thickness: int) -> None:
        if len(points) < 2:
            return
        pts = np.asarray(points, dtype=np.int32).reshape((-1, 1, 2))
        cv2.polylines(canvas, [pts], False, color, thickness, self.line_type)

    def marker(self, canvas: np.ndarray, center, color: Color, radius: int = MARKER_RADIUS) -> None:
        cv2.circle(canvas, _pt(center), radius, color, -1, self.line_type)

    def filled_rect(self, canvas: np.ndarray, x: int, y: int, width: int, height: int,
                    color: Color) -> None:
        if width <= 0 or height <= 0:
            return
        # Axis-aligned fill, no antialiasing
        cv2.rectangle(canvas, (int(x), int(y)), (int(x + width - 1), int(y + height - 1)),
                      color, -1, cv2.LINE_8)

    def text(self, canvas: np.ndarray, text: str, origin, font_scale: float, thickness: int,
             color: Color, font: Font = None) -> None:
        """Draw text with its baseline-left corner at origin."""
        if not text:
            return
        cv2.putText(canvas, text, _pt(origin), self._font_code(font), font_scale,
                    color, thickness, self.line_type)

    def text_size(self, text: str, font_scale: float, thickness: int,
                  font: Font = None) -> Tuple[int, int]:
        """Return (width, height) of text above the baseline."""
        (width, height), _baseline = cv2.getTextSize(text, self._font_code(font), font_scale, thickness)
        return width, height

    def measure(self, font: Font, font_scale: float, thickness: int):
        """Bind a font/scale/thickness into a text -> (w, h) callable."""
        def _measure(text: str) -> Tuple[int, int]:
            return self.text_size(text, font_scale, thickness, font)
        return _measure


def fit_background(image: np.ndarray, max_side: int) -> Tuple[np.ndarray, CanvasSpec]:
    """
    Resize a decoded background so its longest side is at most max_side.

    Returns:
        Tuple of (resized BGR image, CanvasSpec)
    """
    if image is None or image.ndim < 2 or image.size == 0:
        raise InputError("Background image is empty")
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    orig_h, orig_w = image.shape[:2]
    canvas = CanvasSpec.fit(orig_w, orig_h, max_side)
    if (canvas.width, canvas.height) == (orig_w, orig_h):
        return image.copy(), canvas

    resized = cv2.resize(image, canvas.size, interpolation=BACKGROUND_INTERPOLATION)
    return resized, canvas


def load_background(path: str, max_side: int) -> Tuple[np.ndarray, CanvasSpec]:
    """
    Load a background image from disk and fit it to max_side.

    Raises:
        InputError: If the file is missing or cannot be decoded
    """
    if not os.path.isfile(path):
        raise InputError(f"Background image not found: {path}")
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise InputError(f"Background image could not be decoded: {path}")

    resized, canvas = fit_background(image, max_side)
    logger.debug(f"Background {image.shape[1]}x{image.shape[0]} -> {canvas.width}x{canvas.height}")
    return resized, canvas


def draw_route(drawer: Drawer, canvas: np.ndarray, pixel_points: Sequence, color: Color,
               thickness: int) -> None:
    """Draw the full route as a single open polyline."""
    drawer.polyline(canvas, np.asarray(pixel_points), color, thickness)
