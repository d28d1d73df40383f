"""
Render job orchestration.

Wires the pipeline together for one job (load background, project track,
composite, encode) and fans independent jobs out over worker processes.
Output is staged in a temporary directory next to the destination and
moved into place only when encoding succeeds.
"""

import logging
import multiprocessing
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field
from tqdm import tqdm

from compositor import FrameCompositor, render_route_image
from errors import EncoderError, InputError, RenderError
from projection import RouteProjector
from render_config import RenderConfig
from route_data import LapData, LapStat, RouteData, GeoSample, CanvasSpec, read_fit_file
from video_io import FFmpegVideoSink, FrameSink, ImageSink, compute_frame_rate
from visualization import Drawer, load_background

logger = logging.getLogger(__name__)

SamplesLike = Union[RouteData, Sequence[GeoSample]]
LapsLike = Union[LapData, Sequence[LapStat]]
ProgressCallback = Callable[[int, int], None]


@dataclass
class RenderResult:
    output_path: str
    points_processed: int
    frame_rate: int
    canvas: CanvasSpec
    verified: Optional[bool] = None


def _sample_list(samples: SamplesLike) -> List[GeoSample]:
    return list(samples.samples if isinstance(samples, RouteData) else samples)


def _lap_list(laps: Optional[LapsLike]) -> List[LapStat]:
    if laps is None:
        return []
    return list(laps.laps if isinstance(laps, LapData) else laps)


@contextmanager
def staged_output(output_path: str) -> Iterator[str]:
    """
    Yield a temporary path beside output_path; move it into place on success.

    The temporary directory (and any partial file in it) is removed whether
    or not the body raises.
    """
    out_dir = os.path.dirname(os.path.abspath(output_path))
    if not os.path.isdir(out_dir):
        raise InputError(f"Output directory does not exist: {out_dir}")

    try:
        staging = tempfile.TemporaryDirectory(dir=out_dir, prefix=".route-render-")
    except OSError as e:
        raise EncoderError(f"Cannot stage output in {out_dir}: {e}") from e

    with staging as temp_dir:
        temp_path = os.path.join(temp_dir, os.path.basename(output_path))
        yield temp_path
        if not os.path.exists(temp_path):
            raise RenderError(f"Renderer produced no output for {output_path}")
        try:
            os.replace(temp_path, output_path)
        except OSError as e:
            raise EncoderError(f"Cannot move output into place at {output_path}: {e}") from e


def _prepare(samples: List[GeoSample], background_path: str, config: RenderConfig):
    if not samples:
        raise InputError("Track contains no GPS samples")
    background, canvas = load_background(background_path, config.max_canvas_side)
    projector = RouteProjector.for_track(samples, canvas, config.scale_offset)
    (x_lo, x_hi), (y_lo, y_hi) = projector.pixel_band()
    if x_lo < 0 or y_lo < 0 or x_hi >= canvas.width or y_hi >= canvas.height:
        logger.warning(
            f"Route extends past the {canvas.width}x{canvas.height} canvas "
            f"(x {x_lo}..{x_hi}, y {y_lo}..{y_hi}); check scale and offsets"
        )
    return background, canvas, projector.project(samples)


def render_video(samples: SamplesLike, laps: Optional[LapsLike], background_path: str,
                 config: RenderConfig, output_path: str,
                 sink: Optional[FrameSink] = None,
                 drawer: Optional[Drawer] = None,
                 cancel_event: Optional[threading.Event] = None,
                 on_progress: Optional[ProgressCallback] = None) -> RenderResult:
    """
    Render a progressively drawn route video.

    Args:
        samples: Track samples in temporal order
        laps: Per-lap statistics for the panel (may be empty)
        background_path: Background image file
        config: Render settings
        output_path: Destination video file
        sink: Frame sink (default: FFmpegVideoSink)
        drawer: Raster primitives (default: a new Drawer)
        cancel_event: Set to abort between frames
        on_progress: Called as on_progress(done, total)

    Returns:
        RenderResult describing the written video

    Raises:
        InputError: Empty track, unreadable background, bad lap data
        EncoderError: Frame rate of zero, missing ffmpeg, encoder failure
        RenderCancelled: cancel_event was set
    """
    sample_list = _sample_list(samples)
    background, canvas, pixel_points = _prepare(sample_list, background_path, config)
    frame_rate = compute_frame_rate(len(pixel_points))

    compositor = FrameCompositor(background, config, drawer)
    compositor.initialize(_lap_list(laps))
    sink = sink or FFmpegVideoSink()

    logger.info(f"Rendering {len(pixel_points)} points at {frame_rate} fps to {output_path}")
    with staged_output(output_path) as temp_path:
        sink.open(canvas, frame_rate, temp_path)
        written = compositor.run(pixel_points, sample_list, sink,
                                 cancel_event=cancel_event, on_progress=on_progress)

    try:
        verified = sink.verify(output_path, written)
    except EncoderError as e:
        logger.warning(f"Could not verify {output_path}: {e}")
        verified = None

    logger.info(f"Video created: {output_path} with {written} points")
    return RenderResult(output_path=output_path, points_processed=written,
                        frame_rate=frame_rate, canvas=canvas, verified=verified)


def render_image(samples: SamplesLike, laps: Optional[LapsLike], background_path: str,
                 config: RenderConfig, output_path: str,
                 sink: Optional[FrameSink] = None,
                 drawer: Optional[Drawer] = None) -> RenderResult:
    """Render the full route and lap panel into a single still image."""
    sample_list = _sample_list(samples)
    background, canvas, pixel_points = _prepare(sample_list, background_path, config)
    image = render_route_image(background, pixel_points, _lap_list(laps), config, drawer)

    sink = sink or ImageSink()
    with staged_output(output_path) as temp_path:
        with sink.open(canvas, 0, temp_path):
            sink.write(image)

    logger.info(f"Image created: {output_path} with {len(pixel_points)} points")
    return RenderResult(output_path=output_path, points_processed=len(pixel_points),
                        frame_rate=0, canvas=canvas)


def render_fit_file(fit_path: str, background_path: str, output_path: str,
                    config: Optional[RenderConfig] = None, mode: str = "video",
                    **kwargs) -> RenderResult:
    """
    Decode a FIT activity and render it.

    Args:
        fit_path: FIT activity file
        background_path: Background image file
        output_path: Destination file
        config: Render settings (default: RenderConfig())
        mode: "video" or "image"
        **kwargs: Passed through to render_video / render_image

    Returns:
        RenderResult
    """
    config = config or RenderConfig()
    route, laps = read_fit_file(fit_path)
    logger.debug(f"Decoded {len(route)} samples and {len(laps)} laps from {fit_path}")
    if mode == "video":
        return render_video(route, laps, background_path, config, output_path, **kwargs)
    if mode == "image":
        return render_image(route, laps, background_path, config, output_path, **kwargs)
    raise InputError(f"Unknown render mode '{mode}', expected 'video' or 'image'")


# =============================================================================
# Batch rendering
# =============================================================================

class RenderJob(BaseModel):
    """One independent FIT-to-output render."""
    fit_path: str
    background_path: str
    output_path: str
    mode: Literal["video", "image"] = "video"
    config: RenderConfig = Field(default_factory=RenderConfig)


class RenderBatch(BaseModel):
    jobs: List[RenderJob] = Field(default_factory=list)


@dataclass
class JobOutcome:
    job: RenderJob
    result: Optional[RenderResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Worker function must be at module level for multiprocessing
def run_job(job: RenderJob) -> JobOutcome:
    """Run one job, recording a RenderError as a failed outcome."""
    try:
        result = render_fit_file(job.fit_path, job.background_path, job.output_path,
                                 job.config, job.mode)
    except RenderError as e:
        logger.error(f"Job {job.output_path} failed: {e}")
        return JobOutcome(job=job, error=str(e))
    return JobOutcome(job=job, result=result)


def render_batch(jobs: Sequence[RenderJob], workers: Optional[int] = None) -> List[JobOutcome]:
    """
    Render independent jobs, one per worker process.

    Each worker owns its own buffer, canvas and sink. A failing job does
    not stop the others; inspect JobOutcome.ok.

    Args:
        jobs: Jobs to run
        workers: Process count (default: min(cpu_count, len(jobs))); 1 runs inline

    Returns:
        One JobOutcome per job, in input order
    """
    jobs = list(jobs)
    if not jobs:
        return []
    num_processes = workers or min(multiprocessing.cpu_count(), len(jobs))
    num_processes = max(1, min(num_processes, len(jobs)))
    logger.info(f"Rendering {len(jobs)} jobs with {num_processes} worker(s)")

    if num_processes == 1:
        return [run_job(job) for job in tqdm(jobs, desc="Rendering", unit="job")]

    with multiprocessing.Pool(processes=num_processes) as pool:
        return list(tqdm(
            pool.imap(run_job, jobs),
            total=len(jobs),
            desc="Rendering",
            unit="job"
        ))
