"""
Overlay abstraction layer for the route renderer.

Overlays are drawn directly onto a canvas: either once onto the persistent
route buffer (the lap panel) or onto every per-frame copy (the position
marker and the bottom pace/distance bar).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import numpy as np

from constants import (
    BOTTOM_BAR_COLOR, BOTTOM_BAR_MARGIN, BOTTOM_BAR_PADDING, BOTTOM_BAR_SIZING_TEXT,
    BOTTOM_BAR_TEXT_COLOR, MARKER_RADIUS,
)
from render_config import BottomBarConfig, ColorValue, to_bgr
from route_data.data_models import CanvasSpec, GeoSample
from visualization import Drawer

Measure = Callable[[str], Tuple[int, int]]


@dataclass(frozen=True)
class FrameContext:
    """Per-index data handed to frame overlays."""
    index: int
    point: Tuple[int, int]
    sample: Optional[GeoSample]
    canvas: CanvasSpec


@dataclass(frozen=True)
class TextItem:
    text: str
    x: int
    y: int


@dataclass(frozen=True)
class RectItem:
    x: int
    y: int
    width: int
    height: int


class Overlay(ABC):
    """
    Abstract base class for everything drawn on top of the background.

    Subclasses implement draw(canvas, data), mutating the canvas in place.

    Example:
        class CrosshairOverlay(Overlay):
            def draw(self, canvas, ctx):
                self.drawer.marker(canvas, ctx.point, (255, 255, 255), radius=2)
                return canvas

        registry.register('crosshair', CrosshairOverlay(Drawer()))
    """

    def __init__(self, drawer: Optional[Drawer] = None):
        """
        Initialize overlay.

        Args:
            drawer: Raster primitives to draw with (default: a new Drawer)
        """
        self.drawer = drawer or Drawer()

    @abstractmethod
    def draw(self, canvas: np.ndarray, data: Any) -> np.ndarray:
        """
        Draw onto canvas.

        Args:
            canvas: Target BGR image (modified in place)
            data: Input data for this overlay

        Returns:
            The same canvas, for chaining
        """
        pass


class OverlayRegistry:
    """
    Ordered collection of overlays drawn onto each frame.

    Example:
        registry = OverlayRegistry()
        registry.register('marker', PositionMarkerOverlay(drawer, color))
        registry.register('bottom_bar', BottomBarOverlay(drawer, bar_cfg))

        frame = registry.compose_all(frame, ctx)
    """

    def __init__(self):
        self._overlays: dict[str, Overlay] = {}
        self._order: list[str] = []

    def register(self, name: str, overlay: Overlay) -> None:
        """
        Register an overlay with a unique name.

        Re-registering a name replaces the overlay but keeps its position.
        """
        if name not in self._overlays:
            self._order.append(name)
        self._overlays[name] = overlay

    def compose_all(self, canvas: np.ndarray, data: Any) -> np.ndarray:
        """Draw all registered overlays onto canvas in registration order."""
        for name in self._order:
            self._overlays[name].draw(canvas, data)
        return canvas

    def __len__(self) -> int:
        return len(self._overlays)

    def __iter__(self):
        for name in self._order:
            yield name, self._overlays[name]


class PositionMarkerOverlay(Overlay):
    """Filled circle at the current track position."""

    def __init__(self, drawer: Optional[Drawer] = None, color: ColorValue = (0, 255, 0),
                 radius: int = MARKER_RADIUS):
        super().__init__(drawer)
        self.color = to_bgr(color)
        self.radius = radius

    def draw(self, canvas: np.ndarray, ctx: FrameContext) -> np.ndarray:
        self.drawer.marker(canvas, ctx.point, self.color, self.radius)
        return canvas


# =============================================================================
# Bottom pace/distance bar
# =============================================================================

@dataclass(frozen=True)
class BottomBarLayout:
    bar: RectItem
    pace: TextItem
    distance: TextItem


def bottom_bar_texts(sample: GeoSample, config: BottomBarConfig) -> Tuple[str, str]:
    """Pace and distance strings for one sample; hidden fields are empty."""
    pace = f"Pace: {sample.pace_label} min/km" if config.show_pace else ""
    dist = f"Dist: {sample.distance_km:.2f} km" if config.show_distance else ""
    return pace, dist


def layout_bottom_bar(pace_text: str, dist_text: str, canvas: CanvasSpec,
                      measure: Measure, margin: int = BOTTOM_BAR_MARGIN,
                      padding: int = BOTTOM_BAR_PADDING) -> BottomBarLayout:
    """
    Position the bottom strip and its two texts.

    The strip spans the canvas width and is anchored at the bottom edge.
    Its height comes from the distance text, or from a fixed sizing string
    when the distance is hidden, so hiding a field never collapses it.

    Args:
        pace_text: Left-aligned text (may be empty)
        dist_text: Right-aligned text (may be empty)
        canvas: Target canvas
        measure: text -> (width, height) for the bar's font settings
        margin: Gap to the left, right and bottom edges
        padding: Added to the text height to size the strip

    Returns:
        BottomBarLayout with the strip rectangle and both text positions
    """
    _, text_h = measure(dist_text or BOTTOM_BAR_SIZING_TEXT)
    bar_h = text_h + padding
    bar = RectItem(0, canvas.height - bar_h, canvas.width, bar_h)

    y_text = canvas.height - margin
    dist_w = measure(dist_text)[0] if dist_text else 0
    return BottomBarLayout(
        bar=bar,
        pace=TextItem(pace_text, margin, y_text),
        distance=TextItem(dist_text, canvas.width - dist_w - margin, y_text),
    )


class BottomBarOverlay(Overlay):
    """Opaque strip along the bottom edge with pace (left) and distance (right)."""

    def __init__(self, drawer: Optional[Drawer] = None,
                 config: Optional[BottomBarConfig] = None,
                 text_color: ColorValue = BOTTOM_BAR_TEXT_COLOR):
        super().__init__(drawer)
        self.config = config or BottomBarConfig()
        self.text_color = to_bgr(text_color)
        self.bar_color = to_bgr(BOTTOM_BAR_COLOR)
        self._measure = self.drawer.measure(self.config.font, self.config.font_scale,
                                            self.config.thickness)

    def layout(self, sample: GeoSample, canvas: CanvasSpec) -> BottomBarLayout:
        pace, dist = bottom_bar_texts(sample, self.config)
        return layout_bottom_bar(pace, dist, canvas, self._measure)

    def draw(self, canvas: np.ndarray, ctx: FrameContext) -> np.ndarray:
        if ctx.sample is None:
            return canvas
        layout = self.layout(ctx.sample, ctx.canvas)
        bar = layout.bar
        self.drawer.filled_rect(canvas, bar.x, bar.y, bar.width, bar.height, self.bar_color)
        for item in (layout.pace, layout.distance):
            self.drawer.text(canvas, item.text, (item.x, item.y), self.config.font_scale,
                             self.config.thickness, self.text_color, self.config.font)
        return canvas
