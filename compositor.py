"""
Progressive frame compositor.

The route is accumulated on a persistent buffer one segment per frame;
each emitted frame is a copy of that buffer with the transient overlays
(position marker, bottom bar) drawn on top. History is never redrawn.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Iterator, Optional, Sequence

import numpy as np

from constants import PROGRESS_LOG_INTERVAL
from errors import InputError, RenderCancelled, RenderError
from lap_panel import LapPanelOverlay
from overlays import BottomBarOverlay, FrameContext, OverlayRegistry, PositionMarkerOverlay
from render_config import RenderConfig, to_bgr
from route_data.data_models import CanvasSpec, GeoSample, LapStat
from video_io import FrameSink
from visualization import Drawer, draw_route

logger = logging.getLogger(__name__)


class CompositorState(Enum):
    IDLE = "idle"
    INITIALIZED = "initialized"
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


class FrameCompositor:
    """
    Owns the persistent route buffer for one render.

    Args:
        background: BGR uint8 background, already fitted to the canvas
        config: Render settings
        drawer: Raster primitives (default: a new Drawer)

    Example:
        compositor = FrameCompositor(background, config)
        compositor.initialize(laps)
        for frame in compositor.frames(pixel_points, samples):
            sink.write(frame)
    """

    def __init__(self, background: np.ndarray, config: RenderConfig,
                 drawer: Optional[Drawer] = None):
        if background is None or background.ndim != 3 or background.size == 0:
            raise InputError("Background must be a non-empty HxWx3 image")
        self.background = background
        self.config = config
        self.drawer = drawer or Drawer()
        self.canvas = CanvasSpec(width=background.shape[1], height=background.shape[0])
        self.state = CompositorState.IDLE

        self._buffer: Optional[np.ndarray] = None
        self._next_index = 0
        self._stroke_count = 0
        self._route_color = to_bgr(config.colors.route)

        self.overlays = OverlayRegistry()
        self.overlays.register("marker", PositionMarkerOverlay(self.drawer, config.colors.marker))
        if config.bottom_bar is not None:
            self.overlays.register(
                "bottom_bar",
                BottomBarOverlay(self.drawer, config.bottom_bar, config.colors.text),
            )
        logger.debug(f"Frame overlays: {', '.join(name for name, _ in self.overlays)}")

    @property
    def stroke_count(self) -> int:
        return self._stroke_count

    @property
    def buffer(self) -> Optional[np.ndarray]:
        """Persistent buffer (read-only view for inspection)."""
        if self._buffer is None:
            return None
        view = self._buffer.view()
        view.flags.writeable = False
        return view

    def initialize(self, laps: Sequence[LapStat] = ()) -> None:
        """
        Copy the background into a fresh persistent buffer and draw the lap panel.

        Calling again resets all accumulated strokes.
        """
        self._buffer = self.background.copy()
        self._next_index = 0
        self._stroke_count = 0
        if self.config.lap_panel is not None:
            panel = LapPanelOverlay(self.drawer, self.config.lap_panel, self.config.colors.bars)
            panel.draw(self._buffer, laps)
        self.state = CompositorState.INITIALIZED
        logger.debug(f"Compositor initialized on {self.canvas.width}x{self.canvas.height} canvas")

    def render_frame(self, index: int, pixel_points: np.ndarray,
                     samples: Sequence[GeoSample]) -> np.ndarray:
        """
        Advance the route to index and return the composited frame.

        Args:
            index: Frame index; must be exactly one past the previous call
            pixel_points: (N, 2) projected points
            samples: Per-point samples feeding the bottom bar

        Returns:
            New BGR frame; never aliases the persistent buffer

        Raises:
            RenderError: If the compositor is not initialized or index is out of sequence
        """
        if self.state not in (CompositorState.INITIALIZED, CompositorState.ACCUMULATING):
            raise RenderError(f"Cannot render a frame in state {self.state.value}")
        if index != self._next_index:
            raise RenderError(f"Frame index {index} out of sequence, expected {self._next_index}")
        if index >= len(pixel_points):
            raise RenderError(f"Frame index {index} beyond {len(pixel_points)} points")

        self.state = CompositorState.ACCUMULATING
        if index > 0 and self.config.show_route:
            self.drawer.line(self._buffer, pixel_points[index - 1], pixel_points[index],
                             self._route_color, self.config.line_thickness)
            self._stroke_count += 1
        self._next_index = index + 1

        frame = self._buffer.copy()
        sample = samples[index] if index < len(samples) else None
        ctx = FrameContext(index=index, point=tuple(pixel_points[index]), sample=sample,
                           canvas=self.canvas)
        return self.overlays.compose_all(frame, ctx)

    def frames(self, pixel_points: np.ndarray,
               samples: Sequence[GeoSample]) -> Iterator[np.ndarray]:
        """Yield one frame per point, finalizing when exhausted."""
        total = len(pixel_points)
        for i in range(total):
            yield self.render_frame(i, pixel_points, samples)
            self._log_progress(i + 1, total)
        self.state = CompositorState.FINALIZED

    @staticmethod
    def _log_progress(done: int, total: int) -> None:
        if done % PROGRESS_LOG_INTERVAL == 0:
            logger.debug(f"Processed {done}/{total} points")

    def run(self, pixel_points: np.ndarray, samples: Sequence[GeoSample], sink: FrameSink,
            cancel_event: Optional[threading.Event] = None,
            on_progress: Optional[Callable[[int, int], None]] = None) -> int:
        """
        Render every frame into an already-open sink.

        The sink is closed on success and aborted on any failure.

        Args:
            pixel_points: (N, 2) projected points
            samples: Per-point samples
            sink: Open FrameSink
            cancel_event: Checked once per frame; set to stop the render
            on_progress: Called as on_progress(done, total) after each frame

        Returns:
            Number of frames written

        Raises:
            InputError: If there are no points
            RenderCancelled: If cancel_event was set
        """
        total = len(pixel_points)
        written = 0
        try:
            if total == 0:
                raise InputError("No points to render")
            if self.state is CompositorState.IDLE:
                raise RenderError("Compositor must be initialized before run()")
            for i in range(total):
                if cancel_event is not None and cancel_event.is_set():
                    raise RenderCancelled(f"Render cancelled after {written}/{total} frames")
                sink.write(self.render_frame(i, pixel_points, samples))
                written += 1
                self._log_progress(written, total)
                if on_progress is not None:
                    on_progress(written, total)
            self.state = CompositorState.FINALIZED
        except BaseException:
            sink.abort()
            raise
        sink.close()
        return written


def render_route_image(background: np.ndarray, pixel_points: np.ndarray,
                       laps: Sequence[LapStat], config: RenderConfig,
                       drawer: Optional[Drawer] = None) -> np.ndarray:
    """
    Single-pass still image: full route polyline, then the lap panel.

    Returns:
        New BGR image; the background is not modified
    """
    drawer = drawer or Drawer()
    image = background.copy()
    if config.show_route:
        draw_route(drawer, image, pixel_points, to_bgr(config.colors.route),
                   config.image_line_thickness)
    if config.lap_panel is not None:
        LapPanelOverlay(drawer, config.lap_panel, config.colors.bars).draw(image, laps)
    return image
