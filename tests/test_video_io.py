"""
Tests for frame sinks and video probing.

FFmpeg is mocked; no encoder is needed to run these.
"""

import pytest
from unittest.mock import patch, MagicMock
import subprocess

import numpy as np

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import EncoderError
from route_data.data_models import CanvasSpec
from video_io import FFmpegVideoSink, ImageSink, compute_frame_rate, get_video_info


CANVAS = CanvasSpec(width=64, height=48)


def _frame(width=64, height=48):
    return np.zeros((height, width, 3), dtype=np.uint8)


def _mock_process(returncode=0, stderr=b""):
    process = MagicMock()
    process.returncode = returncode
    process.stderr.read.return_value = stderr
    return process


class TestComputeFrameRate:
    """Tests for playback frame rate."""

    @pytest.mark.parametrize("points,fps", [(0, 0), (14, 0), (15, 1), (150, 10), (1799, 119)])
    def test_integer_division_by_fifteen(self, points, fps):
        assert compute_frame_rate(points) == fps


class TestFFmpegVideoSink:
    """Tests for the FFmpeg pipe sink."""

    def test_zero_frame_rate_rejected(self):
        with pytest.raises(EncoderError):
            FFmpegVideoSink().open(CANVAS, 0, "out.mp4")

    @patch('video_io.shutil.which', return_value=None)
    def test_missing_ffmpeg(self, mock_which):
        with pytest.raises(EncoderError, match="not found"):
            FFmpegVideoSink().open(CANVAS, 10, "out.mp4")

    def test_command_line(self):
        cmd = FFmpegVideoSink().build_command(CANVAS, 12, "out.mp4")
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-pix_fmt") + 1] == "bgr24"
        assert cmd[cmd.index("-s") + 1] == "64x48"
        assert cmd[cmd.index("-r") + 1] == "12"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert "yuv420p" in cmd
        assert "+faststart" in cmd
        assert cmd[-1] == "out.mp4"

    @patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg")
    @patch('video_io.subprocess.Popen')
    def test_writes_raw_bytes(self, mock_popen, mock_which):
        process = _mock_process()
        mock_popen.return_value = process

        with FFmpegVideoSink().open(CANVAS, 10, "out.mp4") as sink:
            sink.write(_frame())
            sink.write(_frame())
            assert sink.frame_count == 2

        assert process.stdin.write.call_count == 2
        assert len(process.stdin.write.call_args[0][0]) == 64 * 48 * 3
        process.stdin.close.assert_called_once()

    @patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg")
    @patch('video_io.subprocess.Popen')
    def test_frame_size_mismatch(self, mock_popen, mock_which):
        mock_popen.return_value = _mock_process()
        sink = FFmpegVideoSink().open(CANVAS, 10, "out.mp4")
        with pytest.raises(EncoderError, match="mismatch"):
            sink.write(_frame(width=32))

    @patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg")
    @patch('video_io.subprocess.Popen')
    def test_broken_pipe(self, mock_popen, mock_which):
        process = _mock_process(stderr=b"Unknown encoder 'libx264'")
        process.stdin.write.side_effect = BrokenPipeError()
        mock_popen.return_value = process

        sink = FFmpegVideoSink().open(CANVAS, 10, "out.mp4")
        with pytest.raises(EncoderError, match="libx264"):
            sink.write(_frame())

    @patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg")
    @patch('video_io.subprocess.Popen')
    def test_nonzero_exit(self, mock_popen, mock_which):
        mock_popen.return_value = _mock_process(returncode=1, stderr=b"boom")
        sink = FFmpegVideoSink().open(CANVAS, 10, "out.mp4")
        with pytest.raises(EncoderError, match="status 1"):
            sink.close()

    @patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg")
    @patch('video_io.subprocess.Popen')
    def test_close_is_idempotent(self, mock_popen, mock_which):
        process = _mock_process()
        mock_popen.return_value = process
        sink = FFmpegVideoSink().open(CANVAS, 10, "out.mp4")
        sink.close()
        sink.close()
        process.wait.assert_called_once()

    @patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg")
    @patch('video_io.subprocess.Popen')
    def test_exception_in_context_aborts(self, mock_popen, mock_which):
        process = _mock_process()
        mock_popen.return_value = process
        with pytest.raises(RuntimeError):
            with FFmpegVideoSink().open(CANVAS, 10, "out.mp4"):
                raise RuntimeError("render failed")
        process.kill.assert_called_once()

    def test_write_before_open(self):
        with pytest.raises(EncoderError):
            FFmpegVideoSink().write(_frame())


class TestImageSink:
    """Tests for the still image sink."""

    def test_writes_png(self, tmp_path):
        path = str(tmp_path / "route.png")
        with ImageSink().open(CANVAS, 0, path) as sink:
            sink.write(_frame())
        assert os.path.isfile(path)

    def test_second_write_rejected(self, tmp_path):
        sink = ImageSink().open(CANVAS, 0, str(tmp_path / "route.png"))
        sink.write(_frame())
        with pytest.raises(EncoderError):
            sink.write(_frame())

    def test_close_without_frame(self, tmp_path):
        sink = ImageSink().open(CANVAS, 0, str(tmp_path / "route.png"))
        with pytest.raises(EncoderError):
            sink.close()

    def test_unwritable_path(self, tmp_path):
        sink = ImageSink().open(CANVAS, 0, str(tmp_path / "missing" / "route.png"))
        sink.write(_frame())
        with pytest.raises(EncoderError):
            sink.close()


class TestGetVideoInfo:
    """Tests for video metadata retrieval."""

    @patch('video_io.subprocess.run')
    def test_parses_output(self, mock_run):
        mock_run.return_value = MagicMock(stdout="1080,608,30000/1001,450\n")
        width, height, fps, frames = get_video_info("out.mp4")
        assert (width, height, frames) == (1080, 608, 450)
        assert fps == pytest.approx(29.97, abs=0.01)

    @patch('video_io.subprocess.run')
    def test_frame_count_not_available(self, mock_run):
        mock_run.return_value = MagicMock(stdout="640,480,25/1,N/A\n")
        assert get_video_info("out.mp4")[3] == 0

    @patch('video_io.subprocess.run')
    def test_ffprobe_failure(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, "ffprobe", stderr="bad file")
        with pytest.raises(EncoderError):
            get_video_info("missing.mp4")

    @patch('video_io.subprocess.run')
    def test_missing_stream(self, mock_run):
        mock_run.return_value = MagicMock(stdout="\n")
        with pytest.raises(EncoderError, match="no video stream"):
            get_video_info("audio_only.mp4")


class TestVerify:
    """Tests for probing finished video output."""

    def _opened_sink(self, canvas):
        with patch('video_io.shutil.which', return_value="/usr/bin/ffmpeg"), \
                patch('video_io.subprocess.Popen', return_value=_mock_process()):
            return FFmpegVideoSink().open(canvas, 4, "out.mp4")

    @patch('video_io.get_video_info')
    def test_matching_output(self, mock_info):
        mock_info.return_value = (64, 48, 4.0, 60)
        assert self._opened_sink(CANVAS).verify("out.mp4", 60) is True
        mock_info.assert_called_once_with("out.mp4")

    @patch('video_io.get_video_info')
    def test_odd_canvas_compared_to_padded_size(self, mock_info):
        mock_info.return_value = (1080, 608, 4.0, 60)
        sink = self._opened_sink(CanvasSpec(width=1080, height=607))
        assert sink.verify("out.mp4", 60) is True

    @patch('video_io.get_video_info')
    def test_frame_count_mismatch(self, mock_info):
        mock_info.return_value = (64, 48, 4.0, 59)
        assert self._opened_sink(CANVAS).verify("out.mp4", 60) is False

    @patch('video_io.get_video_info')
    def test_size_mismatch(self, mock_info):
        mock_info.return_value = (32, 24, 4.0, 60)
        assert self._opened_sink(CANVAS).verify("out.mp4", 60) is False

    @patch('video_io.get_video_info')
    def test_unreported_frame_count_accepted(self, mock_info):
        mock_info.return_value = (64, 48, 4.0, 0)
        assert self._opened_sink(CANVAS).verify("out.mp4", 60) is True

    def test_never_opened(self):
        assert FFmpegVideoSink().verify("out.mp4", 60) is None

    def test_image_sink_skips_verification(self, tmp_path):
        sink = ImageSink().open(CANVAS, 0, str(tmp_path / "route.png"))
        assert sink.verify(str(tmp_path / "route.png"), 1) is None
