"""
Pytest configuration and fixtures for route renderer tests.

Provides reusable sample tracks, lap statistics, background images and a
recording frame sink.
"""

import pytest
import numpy as np
from typing import List

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from route_data.data_models import CanvasSpec, GeoSample, LapStat
from video_io import FrameSink


class RecordingSink(FrameSink):
    """In-memory sink that keeps every frame it receives."""

    def __init__(self):
        self.frames: List[np.ndarray] = []
        self.frame_rate = None
        self.opened = False
        self.closed = False
        self.aborted = False

    def open(self, canvas, frame_rate, path):
        self.canvas = canvas
        self.frame_rate = frame_rate
        self.path = path
        self.opened = True
        return self

    def write(self, frame):
        self._check_frame(frame)
        self.frames.append(frame)

    def close(self):
        self.closed = True
        # Staged output must exist for the atomic move
        if self.path:
            with open(self.path, "wb") as f:
                f.write(b"frames")

    def abort(self):
        self.aborted = True


def fixed_measure(char_width: int = 10, height: int = 12):
    """Font-free text measure: every character is char_width pixels wide."""
    def _measure(text: str):
        return len(text) * char_width, height
    return _measure


@pytest.fixture
def measure():
    """Fixture providing a deterministic text measure."""
    return fixed_measure()


@pytest.fixture
def wide_measure():
    """Fixture providing a measure for a font twice as wide."""
    return fixed_measure(char_width=20)


@pytest.fixture
def sample_track() -> List[GeoSample]:
    """Fixture providing a short square-ish run loop."""
    coords = [
        (52.5200, 13.4050),
        (52.5205, 13.4058),
        (52.5211, 13.4061),
        (52.5216, 13.4055),
        (52.5214, 13.4046),
        (52.5207, 13.4041),
        (52.5201, 13.4044),
    ]
    return [
        GeoSample(latitude=lat, longitude=lon, pace_label="5:0{}".format(i),
                  distance_m=i * 85.0)
        for i, (lat, lon) in enumerate(coords)
    ]


@pytest.fixture
def long_track() -> List[GeoSample]:
    """Fixture providing a 60 point track (frame rate 4 at 15 s playback)."""
    angles = np.linspace(0, 2 * np.pi, 60, endpoint=False)
    return [
        GeoSample(latitude=52.52 + 0.002 * np.sin(a), longitude=13.405 + 0.003 * np.cos(a),
                  pace_label="5:30", distance_m=i * 20.0)
        for i, a in enumerate(angles)
    ]


@pytest.fixture
def sample_laps() -> List[LapStat]:
    """Fixture providing three laps at 5:00, 6:00 and 6:30 per km."""
    return [
        LapStat(avg_heart_rate=150, pace_label="5:00", avg_step_length=1085.0),
        LapStat(avg_heart_rate=156, pace_label="6:00", avg_step_length=1010.0),
        LapStat(avg_heart_rate=161, pace_label="6:30", avg_step_length=990.0),
    ]


@pytest.fixture
def canvas() -> CanvasSpec:
    """Fixture providing a 1080x607 canvas (16:9 background fitted to 1080)."""
    return CanvasSpec(width=1080, height=607)


@pytest.fixture
def background():
    """Fixture providing a small gray BGR background."""
    return np.full((240, 320, 3), 40, dtype=np.uint8)


@pytest.fixture
def background_file(tmp_path, background):
    """Fixture providing a background image written to disk."""
    import cv2
    path = str(tmp_path / "bg.png")
    cv2.imwrite(path, background)
    return path


@pytest.fixture
def recording_sink():
    """Fixture providing an in-memory frame sink."""
    return RecordingSink()
