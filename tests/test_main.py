"""
Tests for the command line interface.
"""

import json

import pytest
from unittest.mock import patch

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import main
from errors import EncoderError, InputError
from render_jobs import JobOutcome, RenderJob, RenderResult
from route_data.data_models import CanvasSpec, LapData, RouteData


def _args(*argv):
    return main.build_parser().parse_args(list(argv))


class TestBuildConfig:
    """Tests for turning arguments into a RenderConfig."""

    def test_default_preset(self):
        config = main.build_config(_args("image", "a.fit", "bg.jpg", "out.png"))
        assert config.scale_offset.scale == 0.2
        assert config.show_lap_panel and config.show_bottom_bar

    def test_overrides(self):
        config = main.build_config(_args(
            "video", "a.fit", "bg.jpg", "out.mp4",
            "--preset", "neon", "--scale", "0.5", "--offset-y", "0.05",
            "--no-route", "--no-bottom-bar", "--no-lap-panel",
        ))
        assert config.scale_offset.scale == 0.5
        assert config.scale_offset.offset_x_pct == 0.3
        assert config.scale_offset.offset_y_pct == 0.05
        assert not config.show_route
        assert not config.show_bottom_bar
        assert not config.show_lap_panel

    def test_config_file(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text(json.dumps({"scale_offset": {"scale": 0.7}}))
        config = main.build_config(_args("image", "a.fit", "bg.jpg", "out.png", "--config", str(path)))
        assert config.scale_offset.scale == 0.7

    def test_unknown_preset_rejected_by_parser(self):
        with pytest.raises(SystemExit):
            _args("image", "a.fit", "bg.jpg", "out.png", "--preset", "sparkly")

    def test_config_and_preset_are_exclusive(self):
        """A config file and a preset cannot both name the starting point."""
        with pytest.raises(SystemExit):
            _args("image", "a.fit", "bg.jpg", "out.png", "--config", "cfg.json", "--preset", "neon")


class TestMain:
    """Tests for end-to-end command dispatch."""

    @patch('main.render_image')
    @patch('main.read_fit_file')
    def test_image_success(self, mock_read, mock_render, sample_track):
        mock_read.return_value = (RouteData(samples=sample_track), LapData())
        mock_render.return_value = RenderResult("out.png", 7, 0, CanvasSpec(width=10, height=10))

        assert main.main(["image", "a.fit", "bg.jpg", "out.png"]) == 0
        mock_render.assert_called_once()

    @patch('main.render_video')
    @patch('main.read_fit_file')
    def test_video_reports_progress(self, mock_read, mock_render, long_track):
        mock_read.return_value = (RouteData(samples=long_track), LapData())

        def fake_render(route, laps, background, config, output, on_progress=None):
            on_progress(60, 60)
            return RenderResult(output, 60, 4, CanvasSpec(width=10, height=10))

        mock_render.side_effect = fake_render
        assert main.main(["video", "a.fit", "bg.jpg", "out.mp4"]) == 0

    @patch('main.read_fit_file')
    def test_input_error_exits_one(self, mock_read):
        mock_read.side_effect = InputError("Telemetry file not found: a.fit")
        with patch('main.print_error') as mock_error:
            assert main.main(["image", "a.fit", "bg.jpg", "out.png"]) == 1
        message, hint = mock_error.call_args[0]
        assert "a.fit" in message
        assert hint == main.ERROR_HINTS[InputError]

    @patch('main.render_video')
    @patch('main.read_fit_file')
    def test_encoder_error_hint(self, mock_read, mock_render, sample_track):
        mock_read.return_value = (RouteData(samples=sample_track), LapData())
        mock_render.side_effect = EncoderError("Frame rate must be positive, got 0")
        with patch('main.print_error') as mock_error:
            assert main.main(["video", "a.fit", "bg.jpg", "out.mp4"]) == 1
        assert "ffmpeg" in mock_error.call_args[0][1]

    @patch('main.read_fit_file')
    def test_output_path_is_directory_exits_one(self, mock_read, sample_track,
                                                background_file, tmp_path):
        """Moving the finished image onto a directory is reported, not raised."""
        mock_read.return_value = (RouteData(samples=sample_track), LapData())
        output = tmp_path / "route.png"
        output.mkdir()
        with patch('main.print_error') as mock_error:
            assert main.main(["image", "a.fit", background_file, str(output)]) == 1
        message, hint = mock_error.call_args[0]
        assert message.startswith("[encoder]")
        assert hint == main.ERROR_HINTS[EncoderError]


class TestBatch:
    """Tests for the batch command."""

    def test_load_batch_accepts_list(self, tmp_path):
        path = tmp_path / "jobs.json"
        path.write_text(json.dumps([
            {"fit_path": "a.fit", "background_path": "bg.jpg", "output_path": "a.mp4"},
        ]))
        batch = main.load_batch(str(path))
        assert batch.jobs[0].mode == "video"

    def test_invalid_batch_exits_one(self, tmp_path):
        path = tmp_path / "jobs.json"
        path.write_text(json.dumps({"jobs": [{"fit_path": "a.fit"}]}))
        assert main.main(["batch", str(path)]) == 1

    @patch('main.render_batch')
    def test_failed_job_exits_one(self, mock_batch, tmp_path):
        path = tmp_path / "jobs.json"
        path.write_text(json.dumps({"jobs": [
            {"fit_path": "a.fit", "background_path": "bg.jpg", "output_path": "a.mp4"},
        ]}))
        job = RenderJob(fit_path="a.fit", background_path="bg.jpg", output_path="a.mp4")
        mock_batch.return_value = [JobOutcome(job=job, error="[input] missing")]

        assert main.main(["batch", str(path), "--workers", "2"]) == 1
        mock_batch.assert_called_once()
        assert mock_batch.call_args[1]["workers"] == 2
