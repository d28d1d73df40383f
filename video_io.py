"""
Frame sinks for rendered output.

Video frames are piped as raw BGR24 into an FFmpeg subprocess and encoded
to H.264; still images are written with OpenCV. Both follow the same
open/write/close contract so the compositor never knows which it feeds.
"""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from fractions import Fraction
from typing import List, Optional, Tuple

import cv2
import numpy as np

from constants import PLAYBACK_SECONDS
from errors import EncoderError
from route_data.data_models import CanvasSpec

logger = logging.getLogger(__name__)


def compute_frame_rate(point_count: int) -> int:
    """
    Frame rate that plays the whole track back in a fixed time.

    Integer division: tracks shorter than the playback window yield 0,
    which video sinks reject.
    """
    return point_count // PLAYBACK_SECONDS


def _parse_rate(value: str) -> float:
    """ffprobe reports rates as fractions, e.g. "30000/1001"."""
    try:
        rate = Fraction(value)
    except (ValueError, ZeroDivisionError):
        return 0.0
    return float(rate)


def get_video_info(path: str) -> Tuple[int, int, float, int]:
    """
    Read stream metadata of an encoded video with ffprobe.

    Args:
        path: Path to video file

    Returns:
        Tuple of (width, height, fps, frame_count); frame_count is 0 when
        the container does not report it

    Raises:
        EncoderError: If ffprobe is missing, fails, or prints no stream
    """
    cmd = [
        "ffprobe", "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height,r_frame_rate,nb_frames",
        "-of", "csv=p=0",
        path
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise EncoderError("ffprobe not found on PATH") from e
    except subprocess.CalledProcessError as e:
        logger.error(f"ffprobe failed for {path}: {e.stderr}")
        raise EncoderError(f"Failed to probe video: {path}") from e

    fields = result.stdout.strip().split(',')
    if len(fields) < 3:
        raise EncoderError(f"ffprobe reported no video stream for {path}")
    try:
        width, height = int(fields[0]), int(fields[1])
    except ValueError as e:
        raise EncoderError(f"Unreadable dimensions from ffprobe for {path}: {fields[:2]}") from e
    frames = fields[3] if len(fields) > 3 else ""
    frame_count = int(frames) if frames.isdigit() else 0
    return width, height, _parse_rate(fields[2]), frame_count


class FrameSink(ABC):
    """
    Destination for composited frames.

    Usage:
        with FFmpegVideoSink().open(canvas, fps, "out.mp4") as sink:
            for frame in frames:
                sink.write(frame)
    """

    canvas: Optional[CanvasSpec] = None
    path: Optional[str] = None

    @abstractmethod
    def open(self, canvas: CanvasSpec, frame_rate: int, path: str) -> "FrameSink":
        pass

    @abstractmethod
    def write(self, frame: np.ndarray) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        """Finalize output. Safe to call more than once."""
        pass

    def abort(self) -> None:
        """Release resources after a failure without finalizing output."""
        self.close()

    def verify(self, path: str, expected_frames: int) -> Optional[bool]:
        """
        Check a finalized output file against what was written.

        Returns None when the sink has no way to inspect its output.
        """
        return None

    def _check_frame(self, frame: np.ndarray) -> None:
        if self.canvas is None:
            raise EncoderError("Sink is not open")
        expected = (self.canvas.height, self.canvas.width, 3)
        if frame.shape != expected:
            raise EncoderError(
                f"Frame size mismatch: expected {self.canvas.width}x{self.canvas.height}, "
                f"got {frame.shape[1]}x{frame.shape[0]}"
            )

    def __enter__(self) -> "FrameSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()
        return False


class FFmpegVideoSink(FrameSink):
    """
    Encodes BGR frames to H.264 MP4 through an FFmpeg stdin pipe.

    Args:
        ffmpeg_binary: Executable name or path
        preset: libx264 preset
        crf: libx264 constant rate factor
    """

    def __init__(self, ffmpeg_binary: str = "ffmpeg", preset: str = "fast", crf: int = 23):
        self.ffmpeg_binary = ffmpeg_binary
        self.preset = preset
        self.crf = crf
        self.process: Optional[subprocess.Popen] = None
        self.frame_rate = 0
        self._frame_count = 0

    def build_command(self, canvas: CanvasSpec, frame_rate: int, path: str) -> List[str]:
        return [
            self.ffmpeg_binary, "-y", "-v", "error",
            "-f", "rawvideo",
            "-pix_fmt", "bgr24",
            "-s", f"{canvas.width}x{canvas.height}",
            "-r", str(frame_rate),
            "-i", "-",
            # yuv420p needs even dimensions
            "-vf", "pad=ceil(iw/2)*2:ceil(ih/2)*2",
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
            path
        ]

    def open(self, canvas: CanvasSpec, frame_rate: int, path: str) -> "FFmpegVideoSink":
        if frame_rate <= 0:
            raise EncoderError(
                f"Frame rate must be positive, got {frame_rate} "
                f"(tracks need at least {PLAYBACK_SECONDS} points)"
            )
        if shutil.which(self.ffmpeg_binary) is None:
            raise EncoderError(f"{self.ffmpeg_binary} not found on PATH")

        cmd = self.build_command(canvas, frame_rate, path)
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=canvas.width * canvas.height * 3 * 2
            )
        except OSError as e:
            raise EncoderError(f"Failed to start {self.ffmpeg_binary}: {e}") from e

        self.canvas = canvas
        self.path = path
        self.frame_rate = frame_rate
        self._frame_count = 0
        logger.debug(f"Opened FFmpegVideoSink: {path} ({canvas.width}x{canvas.height} @ {frame_rate} fps)")
        return self

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def _stderr_text(self) -> str:
        if self.process is None or self.process.stderr is None:
            return ""
        try:
            return self.process.stderr.read().decode(errors="replace").strip()
        except (OSError, ValueError):
            return ""

    def write(self, frame: np.ndarray) -> None:
        """Write one BGR uint8 frame."""
        if self.process is None or self.process.stdin is None:
            raise EncoderError("Sink is not open")
        self._check_frame(frame)

        try:
            self.process.stdin.write(np.ascontiguousarray(frame).tobytes())
        except (BrokenPipeError, ValueError) as e:
            stderr = self._stderr_text()
            raise EncoderError(f"FFmpeg stopped accepting frames for {self.path}: {stderr or e}") from e
        self._frame_count += 1

    def close(self) -> None:
        if self.process is None:
            return
        process, self.process = self.process, None
        try:
            if process.stdin:
                process.stdin.close()
        except BrokenPipeError:
            pass

        try:
            process.wait(timeout=30)
        except subprocess.TimeoutExpired as e:
            logger.warning("FFmpeg encoder timeout, killing process")
            process.kill()
            process.wait()
            raise EncoderError(f"FFmpeg timed out finalizing {self.path}") from e

        stderr = b''
        if process.stderr:
            stderr = process.stderr.read()
            process.stderr.close()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            logger.error(f"FFmpeg encoder failed: {message}")
            raise EncoderError(f"FFmpeg exited with status {process.returncode}: {message}")
        logger.debug(f"Released FFmpegVideoSink: {self.path} ({self._frame_count} frames)")

    def abort(self) -> None:
        if self.process is None:
            return
        process, self.process = self.process, None
        for stream in (process.stdin, process.stderr):
            try:
                if stream:
                    stream.close()
            except OSError as e:
                logger.debug(f"Error closing FFmpeg pipe: {e}")
        process.kill()
        process.wait()
        logger.debug(f"Aborted FFmpegVideoSink: {self.path} ({self._frame_count} frames)")

    def verify(self, path: str, expected_frames: int) -> Optional[bool]:
        """
        Inspect the encoded file with ffprobe.

        The stream must have the padded canvas size and, when the container
        reports it, one frame per written frame. Mismatches are logged.

        Raises:
            EncoderError: If the file cannot be probed
        """
        if self.canvas is None:
            return None
        width, height, _, frame_count = get_video_info(path)
        expected_size = (self.canvas.width + self.canvas.width % 2,
                         self.canvas.height + self.canvas.height % 2)
        if (width, height) != expected_size:
            logger.warning(f"{path} is {width}x{height}, expected {expected_size[0]}x{expected_size[1]}")
            return False
        if frame_count and frame_count != expected_frames:
            logger.warning(f"{path} holds {frame_count} frames, expected {expected_frames}")
            return False
        return True


class ImageSink(FrameSink):
    """Accepts exactly one frame and writes it with cv2.imwrite on close."""

    def __init__(self):
        self._frame: Optional[np.ndarray] = None
        self._closed = False

    def open(self, canvas: CanvasSpec, frame_rate: int, path: str) -> "ImageSink":
        # frame_rate is irrelevant for a still image
        self.canvas = canvas
        self.path = path
        self._frame = None
        self._closed = False
        return self

    def write(self, frame: np.ndarray) -> None:
        self._check_frame(frame)
        if self._frame is not None:
            raise EncoderError("ImageSink accepts a single frame")
        self._frame = frame

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._frame is None:
            raise EncoderError(f"No frame was written for {self.path}")
        try:
            ok = cv2.imwrite(self.path, self._frame)
        except cv2.error as e:
            raise EncoderError(f"Failed to write image {self.path}: {e}") from e
        if not ok:
            raise EncoderError(f"Failed to write image {self.path}")
        logger.debug(f"Wrote image {self.path}")

    def abort(self) -> None:
        self._closed = True
        self._frame = None
