"""
FIT activity reader.

Thin adapter over fitparse that turns the record and lap messages of a
Garmin-style FIT file into GeoSample and LapStat lists. Positions are
converted from semicircles to degrees and speeds to pace labels here, so
the renderer only ever sees unit-converted values.
"""

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from fitparse import FitFile, FitParseError

from errors import InputError
from pace import speed_to_pace
from route_data.data_models import GeoSample, LapData, LapStat, RouteData

logger = logging.getLogger(__name__)

SEMICIRCLES_TO_DEG = 180.0 / (2 ** 31)


def semicircles_to_degrees(semicircles: int) -> float:
    """Convert a FIT semicircle coordinate to degrees."""
    return semicircles * SEMICIRCLES_TO_DEG


def _first_number(fields: Dict[str, Any], *names: str) -> Optional[float]:
    for name in names:
        value = fields.get(name)
        if isinstance(value, (int, float)):
            return float(value)
    return None


def parse_records(messages) -> RouteData:
    """
    Build the sample track from FIT "record" messages.

    A sample is kept only when it carries latitude, longitude and speed.
    Records without a distance reuse the last known distance.
    """
    samples: List[GeoSample] = []
    last_distance = 0.0
    skipped = 0

    for msg in messages:
        fields = {f.name: f.value for f in msg}

        distance = _first_number(fields, "distance")
        if distance is not None:
            last_distance = distance

        lat = fields.get("position_lat")
        lon = fields.get("position_long")
        speed = _first_number(fields, "enhanced_speed", "speed")
        if not isinstance(lat, int) or not isinstance(lon, int) or speed is None:
            skipped += 1
            continue

        samples.append(GeoSample(
            latitude=semicircles_to_degrees(lat),
            longitude=semicircles_to_degrees(lon),
            pace_label=speed_to_pace(speed),
            distance_m=last_distance,
        ))

    if skipped:
        logger.debug(f"Skipped {skipped} records without position or speed")
    return RouteData(samples=samples)


def parse_laps(messages) -> LapData:
    """Build per-lap statistics from FIT "lap" messages."""
    laps: List[LapStat] = []
    for msg in messages:
        fields = {f.name: f.value for f in msg}
        speed = _first_number(fields, "enhanced_avg_speed", "avg_speed")
        if speed is None:
            continue
        heart_rate = _first_number(fields, "avg_heart_rate")
        step_length = _first_number(fields, "avg_step_length")
        laps.append(LapStat(
            avg_heart_rate=int(heart_rate) if heart_rate is not None else 0,
            pace_label=speed_to_pace(speed),
            avg_step_length=step_length if step_length is not None else 0.0,
        ))
    return LapData(laps=laps)


def read_fit_file(path: str) -> Tuple[RouteData, LapData]:
    """
    Read a FIT activity into its sample track and lap statistics.

    Args:
        path: Path to the .fit file

    Returns:
        Tuple of (RouteData, LapData)

    Raises:
        InputError: If the file is missing or cannot be decoded
    """
    if not os.path.isfile(path):
        raise InputError(f"Telemetry file not found: {path}")

    try:
        fit = FitFile(path)
    except (FitParseError, OSError) as e:
        raise InputError(f"Failed to decode telemetry file {path}: {e}") from e

    try:
        fit.parse()
        route = parse_records(fit.get_messages("record"))
        laps = parse_laps(fit.get_messages("lap"))
    except (FitParseError, OSError) as e:
        raise InputError(f"Failed to decode telemetry file {path}: {e}") from e
    finally:
        fit.close()

    logger.info(f"Read {len(route)} samples and {len(laps)} laps from {os.path.basename(path)}")
    return route, laps
