"""
Tests for the progressive frame compositor.

Tests the persistent buffer lifecycle, per-frame copies, cancellation and
the single-image path.
"""

import threading

import numpy as np
import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from compositor import CompositorState, FrameCompositor, render_route_image
from errors import InputError, RenderCancelled, RenderError
from projection import RouteProjector
from render_config import RenderConfig
from route_data.data_models import CanvasSpec
from visualization import Drawer


@pytest.fixture
def pixel_points(sample_track, background):
    canvas = CanvasSpec(width=background.shape[1], height=background.shape[0])
    return RouteProjector.for_track(sample_track, canvas,
                                    RenderConfig().scale_offset).project(sample_track)


@pytest.fixture
def compositor(background, sample_laps):
    comp = FrameCompositor(background, RenderConfig())
    comp.initialize(sample_laps)
    return comp


class TestLifecycle:
    """Tests for compositor state transitions."""

    def test_starts_idle(self, background):
        assert FrameCompositor(background, RenderConfig()).state is CompositorState.IDLE

    def test_render_before_initialize_raises(self, background, pixel_points, sample_track):
        comp = FrameCompositor(background, RenderConfig())
        with pytest.raises(RenderError):
            comp.render_frame(0, pixel_points, sample_track)

    def test_states_progress(self, compositor, pixel_points, sample_track):
        assert compositor.state is CompositorState.INITIALIZED
        compositor.render_frame(0, pixel_points, sample_track)
        assert compositor.state is CompositorState.ACCUMULATING
        compositor.initialize()
        list(compositor.frames(pixel_points, sample_track))
        assert compositor.state is CompositorState.FINALIZED

    def test_initialize_does_not_touch_background(self, background, sample_laps):
        original = background.copy()
        comp = FrameCompositor(background, RenderConfig())
        comp.initialize(sample_laps)
        np.testing.assert_array_equal(background, original)
        assert not np.array_equal(comp.buffer, original), "lap panel should be on the buffer"

    def test_empty_background_rejected(self):
        with pytest.raises(InputError):
            FrameCompositor(np.zeros((0, 0, 3), dtype=np.uint8), RenderConfig())


class TestAccumulation:
    """Tests for the persistent buffer."""

    def test_kth_frame_has_k_minus_one_strokes(self, compositor, pixel_points, sample_track):
        for i in range(len(pixel_points)):
            compositor.render_frame(i, pixel_points, sample_track)
            assert compositor.stroke_count == i

    def test_each_stroke_drawn_once(self, background, pixel_points, sample_track):
        drawer = Drawer()
        drawer.line = MagicMock(wraps=drawer.line)
        comp = FrameCompositor(background, RenderConfig(lap_panel=None), drawer)
        comp.initialize()
        list(comp.frames(pixel_points, sample_track))
        assert drawer.line.call_count == len(pixel_points) - 1

    def test_frames_never_alias_buffer(self, compositor, pixel_points, sample_track):
        buffer_before = compositor.buffer.copy()
        frame = compositor.render_frame(0, pixel_points, sample_track)
        assert not np.shares_memory(frame, compositor.buffer)
        # Marker and bottom bar land on the frame only
        np.testing.assert_array_equal(compositor.buffer, buffer_before)
        assert not np.array_equal(frame, buffer_before)

    def test_mutating_frame_leaves_buffer(self, compositor, pixel_points, sample_track):
        frame = compositor.render_frame(0, pixel_points, sample_track)
        frame[:] = 255
        assert not (compositor.buffer == 255).all()

    def test_out_of_sequence_index_raises(self, compositor, pixel_points, sample_track):
        compositor.render_frame(0, pixel_points, sample_track)
        with pytest.raises(RenderError):
            compositor.render_frame(2, pixel_points, sample_track)

    def test_repeated_index_raises(self, compositor, pixel_points, sample_track):
        compositor.render_frame(0, pixel_points, sample_track)
        with pytest.raises(RenderError):
            compositor.render_frame(0, pixel_points, sample_track)

    def test_route_hidden_draws_no_strokes(self, background, pixel_points, sample_track):
        comp = FrameCompositor(background, RenderConfig(show_route=False))
        comp.initialize()
        list(comp.frames(pixel_points, sample_track))
        assert comp.stroke_count == 0

    def test_missing_samples_skip_bottom_bar(self, background, pixel_points):
        """Indices without a sample still get a frame, just no bottom bar."""
        comp = FrameCompositor(background, RenderConfig(lap_panel=None))
        comp.initialize()
        frames = list(comp.frames(pixel_points, []))
        assert len(frames) == len(pixel_points)
        assert (frames[-1][-5:, :] == 40).all()

    def test_bottom_bar_hidden(self, background, pixel_points, sample_track):
        comp = FrameCompositor(background, RenderConfig(bottom_bar=None))
        assert [name for name, _ in comp.overlays] == ["marker"]


class TestRun:
    """Tests for writing a full render into a sink."""

    def test_writes_every_frame_and_closes(self, compositor, pixel_points, sample_track,
                                           recording_sink, background):
        recording_sink.open(CanvasSpec(width=background.shape[1], height=background.shape[0]), 1, None)
        written = compositor.run(pixel_points, sample_track, recording_sink)
        assert written == len(pixel_points)
        assert len(recording_sink.frames) == len(pixel_points)
        assert recording_sink.closed
        assert compositor.state is CompositorState.FINALIZED

    def test_progress_callback(self, compositor, pixel_points, sample_track,
                               recording_sink, background):
        recording_sink.open(CanvasSpec(width=background.shape[1], height=background.shape[0]), 1, None)
        calls = []
        compositor.run(pixel_points, sample_track, recording_sink,
                       on_progress=lambda done, total: calls.append((done, total)))
        assert calls[0] == (1, len(pixel_points))
        assert calls[-1] == (len(pixel_points), len(pixel_points))

    def test_empty_points_raise_and_abort(self, compositor, recording_sink):
        with pytest.raises(InputError):
            compositor.run(np.empty((0, 2), dtype=np.int32), [], recording_sink)
        assert recording_sink.aborted
        assert recording_sink.frames == []

    def test_cancel_event(self, compositor, pixel_points, sample_track,
                          recording_sink, background):
        recording_sink.open(CanvasSpec(width=background.shape[1], height=background.shape[0]), 1, None)
        event = threading.Event()

        def cancel_after_two(done, total):
            if done == 2:
                event.set()

        with pytest.raises(RenderCancelled):
            compositor.run(pixel_points, sample_track, recording_sink,
                           cancel_event=event, on_progress=cancel_after_two)
        assert len(recording_sink.frames) == 2
        assert recording_sink.aborted
        assert not recording_sink.closed


class TestRenderRouteImage:
    """Tests for the single-image path."""

    def test_draws_route_and_keeps_background(self, background, pixel_points, sample_laps):
        original = background.copy()
        config = RenderConfig(lap_panel=None)
        image = render_route_image(background, pixel_points, sample_laps, config)
        np.testing.assert_array_equal(background, original)
        x, y = pixel_points[0]
        b, _g, r = image[y, x]
        assert r > b, "route pixels should be tinted red"

    def test_no_route(self, background, pixel_points):
        config = RenderConfig(show_route=False, lap_panel=None)
        image = render_route_image(background, pixel_points, [], config)
        np.testing.assert_array_equal(image, background)
