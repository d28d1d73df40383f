"""
Decoded run telemetry for the route renderer.

Data models for samples and laps, and the FIT reader that produces them.
"""

from route_data.data_models import (
    GeoSample,
    LapStat,
    RouteData,
    LapData,
    BoundingBox,
    CanvasSpec,
)
from route_data.fit_reader import read_fit_file

__all__ = [
    "GeoSample",
    "LapStat",
    "RouteData",
    "LapData",
    "BoundingBox",
    "CanvasSpec",
    "read_fit_file",
]
