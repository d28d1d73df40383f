#!/usr/bin/env python3
import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from pydantic import ValidationError

from errors import ConfigError, EncoderError, InputError, RenderCancelled, RenderError
from render_config import PRESETS, RenderConfig, get_preset, load_render_config
from render_jobs import RenderBatch, render_batch, render_image, render_video
from rich_console import (
    create_render_progress, print_banner, print_batch_summary, print_completion_summary,
    print_config_summary, print_error, print_phase, setup_rich_logging,
)
from route_data import read_fit_file

logger = logging.getLogger(__name__)

__version__ = "0.1.0"

ERROR_HINTS = {
    InputError: "Check that the FIT file and background image exist and are readable.",
    ConfigError: f"Use one of the presets ({', '.join(sorted(PRESETS))}) or fix the JSON configuration.",
    EncoderError: "Make sure ffmpeg is installed with libx264 support and the track has at least 15 points.",
}


def _add_render_options(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--config", metavar="JSON", help="Render configuration file (JSON)")
    source.add_argument("--preset", choices=sorted(PRESETS),
                        help="Preset to start from (default: default)")
    parser.add_argument("--scale", type=float, help="Route size as a fraction of canvas width")
    parser.add_argument("--offset-x", type=float, help="Left offset as a fraction of canvas width")
    parser.add_argument("--offset-y", type=float, help="Top offset as a fraction of canvas width")
    parser.add_argument("--no-route", action="store_true", help="Do not draw the route line")
    parser.add_argument("--no-bottom-bar", action="store_true", help="Hide the pace/distance bar")
    parser.add_argument("--no-lap-panel", action="store_true", help="Hide the lap statistics panel")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a FIT activity route onto a background image or video."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for mode, help_text in (("video", "Render a progressively drawn route video"),
                            ("image", "Render the full route into a single image")):
        p = sub.add_parser(mode, help=help_text)
        p.add_argument("fit_file", help="FIT activity file")
        p.add_argument("background", help="Background image")
        p.add_argument("output", help=f"Output {mode} path")
        _add_render_options(p)

    batch = sub.add_parser("batch", help="Render independent jobs from a JSON job list")
    batch.add_argument("jobs_file", help='JSON file: {"jobs": [{fit_path, background_path, output_path, mode, config}]}')
    batch.add_argument("--workers", type=int, default=None,
                       help="Worker processes (default: CPU count)")
    return parser


def build_config(args: argparse.Namespace) -> RenderConfig:
    """Start from --config or --preset, then apply command line overrides."""
    config = load_render_config(args.config) if args.config else get_preset(args.preset or "default")

    offsets = {}
    if args.scale is not None:
        offsets["scale"] = args.scale
    if args.offset_x is not None:
        offsets["offset_x_pct"] = args.offset_x
    if args.offset_y is not None:
        offsets["offset_y_pct"] = args.offset_y

    update = {}
    if offsets:
        update["scale_offset"] = config.scale_offset.model_copy(update=offsets)
    if args.no_route:
        update["show_route"] = False
    if args.no_bottom_bar:
        update["bottom_bar"] = None
    if args.no_lap_panel:
        update["lap_panel"] = None
    return config.model_copy(update=update) if update else config


def load_batch(path: str) -> RenderBatch:
    """Load a batch file; a bare JSON list is accepted as the job list."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read batch file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Batch file {path} is not valid JSON: {e}") from e

    if isinstance(raw, list):
        raw = {"jobs": raw}
    try:
        return RenderBatch.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid batch file {path}: {e}") from e


def run_render(args: argparse.Namespace) -> None:
    config = build_config(args)
    source = f"config {args.config}" if args.config else f"preset {args.preset or 'default'}"

    print_phase(1, 3, "Decoding FIT activity")
    route, laps = read_fit_file(args.fit_file)

    print_phase(2, 3, "Configuration")
    so = config.scale_offset
    print_config_summary(
        mode=args.command,
        output_file=args.output,
        source=source,
        point_count=len(route),
        lap_count=len(laps),
        scale=so.scale,
        offset_x=so.offset_x_pct,
        offset_y=so.offset_y_pct,
        show_route=config.show_route,
        show_lap_panel=config.show_lap_panel,
        show_bottom_bar=config.show_bottom_bar,
    )

    start = time.monotonic()
    if args.command == "image":
        print_phase(3, 3, "Rendering image")
        result = render_image(route, laps, args.background, config, args.output)
    else:
        print_phase(3, 3, "Rendering video")
        with create_render_progress() as progress:
            task = progress.add_task("Rendering", total=len(route), status="")

            def on_progress(done: int, total: int) -> None:
                progress.update(task, completed=done, status=f"{done}/{total} points")

            result = render_video(route, laps, args.background, config, args.output,
                                  on_progress=on_progress)

    print_completion_summary(
        output_file=result.output_path,
        points_processed=result.points_processed,
        frame_rate=result.frame_rate,
        canvas_size=result.canvas.size,
        elapsed=time.monotonic() - start,
        verified=result.verified,
    )


def run_batch(args: argparse.Namespace) -> int:
    batch = load_batch(args.jobs_file)
    if not batch.jobs:
        print_error("Batch file contains no jobs")
        return 1

    print_phase(1, 1, f"Rendering {len(batch.jobs)} jobs")
    outcomes = render_batch(batch.jobs, workers=args.workers)
    failed = [o for o in outcomes if not o.ok]
    for outcome in failed:
        print_error(f"{outcome.job.output_path}: {outcome.error}")
    print_batch_summary(len(outcomes) - len(failed), len(failed))
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_rich_logging(args.verbose)
    print_banner(__version__)

    try:
        if args.command == "batch":
            return run_batch(args)
        run_render(args)
    except RenderCancelled as e:
        print_error(str(e))
        return 1
    except RenderError as e:
        logger.debug("Render failed", exc_info=True)
        print_error(str(e), ERROR_HINTS.get(type(e)))
        return 1
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
