"""
Pace and lap statistic derivation.

Converts speeds to "m:ss" pace labels, parses labels back to seconds, and
computes the quantized baseline that sizes every bar in the lap panel.
"""

import math
from typing import List, Sequence

from constants import METERS_PER_KM, PACE_BUCKET_SECONDS, PANEL_INDEX_GUTTER, ZERO_PACE
from errors import InputError


def format_pace(seconds: float) -> str:
    """
    Format a pace in seconds per km as "m:ss".

    Rounds to whole seconds before splitting so the seconds field never
    reads 60.

    Args:
        seconds: Pace in seconds per kilometre (>= 0)

    Returns:
        Pace label such as "5:07"
    """
    if seconds < 0 or not math.isfinite(seconds):
        raise ValueError(f"Pace must be a non-negative finite number, got {seconds}")
    total = int(round(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def speed_to_pace(speed_mps: float) -> str:
    """
    Convert a speed in m/s to a pace label in min/km.

    Stationary (or invalid) speeds map to "0:00" instead of failing.
    """
    if speed_mps is None or not math.isfinite(speed_mps) or speed_mps <= 0:
        return ZERO_PACE
    return format_pace(METERS_PER_KM / speed_mps)


def pace_to_seconds(label: str) -> float:
    """
    Parse a "m:ss" pace label back to seconds.

    Raises:
        InputError: If the label is not in m:ss form
    """
    try:
        minutes_str, seconds_str = label.strip().split(":")
        minutes = int(minutes_str)
        seconds = int(seconds_str)
    except (AttributeError, ValueError) as e:
        raise InputError(f"Invalid pace label: {label!r}") from e
    if minutes < 0 or not 0 <= seconds < 60:
        raise InputError(f"Invalid pace label: {label!r}")
    return float(minutes * 60 + seconds)


def pace_baseline(pace_seconds: Sequence[float]) -> float:
    """
    Fastest pace rounded down to a 30 second bucket.

    Used as the numerator of every lap bar percentage.
    """
    if not pace_seconds:
        raise InputError("Cannot compute a pace baseline without laps")
    fastest = min(pace_seconds)
    return math.floor(fastest / PACE_BUCKET_SECONDS) * PACE_BUCKET_SECONDS


def pace_percentage(baseline: float, seconds: float) -> float:
    """Bar fill for one lap: baseline / pace, clamped to [0, 1]."""
    if seconds <= 0:
        return 0.0
    return max(0.0, min(baseline / seconds, 1.0))


def pace_percentages(pace_seconds: Sequence[float]) -> List[float]:
    """Bar fill for every lap against the shared baseline."""
    if not pace_seconds:
        return []
    baseline = pace_baseline(pace_seconds)
    return [pace_percentage(baseline, s) for s in pace_seconds]


def lap_label(total: int, index: int, pace: str, gutter: int = PANEL_INDEX_GUTTER) -> str:
    """
    Prefix a pace label with its lap index, padded to a common column.

    Rows for lap 1 and lap 100 of a 100 lap set start their pace text at
    the same character position.

    Args:
        total: Number of laps in the panel
        index: 1-based lap number for this row
        pace: Pace label to print after the index
        gutter: Minimum spaces between the widest index and the pace

    Returns:
        Row text such as "1   5:07"
    """
    padding = len(str(total)) - len(str(index)) + gutter
    return f"{index}{' ' * padding}{pace}"


def format_stride(avg_step_length_mm: float) -> str:
    """Stride length in centimetres, without a trailing ".0"."""
    cm = round(avg_step_length_mm / 10.0, 1)
    return f"{cm:g}"
