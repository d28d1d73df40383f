"""
Data models for decoded run telemetry.

Pydantic models for the per-sample track, the per-lap statistics, and the
geometry derived from them (bounding box, canvas size).
"""

import math
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class GeoSample(BaseModel):
    """
    Single GPS sample from the activity record stream.

    Values are already unit-converted: degrees, a pace label, meters.
    """
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(description="WGS84 latitude in degrees")
    longitude: float = Field(description="WGS84 longitude in degrees")
    pace_label: str = Field(description="Instantaneous pace as m:ss per km")
    distance_m: float = Field(default=0.0, description="Cumulative distance in meters")

    @property
    def point(self) -> Tuple[float, float]:
        """(lat, lon) tuple."""
        return (self.latitude, self.longitude)

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000.0


class LapStat(BaseModel):
    """Aggregated statistics for one lap."""
    model_config = ConfigDict(frozen=True)

    avg_heart_rate: int = Field(default=0, description="Average heart rate in bpm")
    pace_label: str = Field(description="Average pace as m:ss per km")
    avg_step_length: float = Field(default=0.0, description="Average stride length in millimetres")


class RouteData(BaseModel):
    """Ordered sample track; temporal order is the list index."""
    samples: List[GeoSample] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.samples)


class LapData(BaseModel):
    """Ordered per-lap statistics, independent of the sample count."""
    laps: List[LapStat] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.laps)


class BoundingBox(BaseModel):
    """Latitude/longitude extent of a track."""
    model_config = ConfigDict(frozen=True)

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def contains(self, lat: float, lon: float) -> bool:
        return (self.lat_min <= lat <= self.lat_max
                and self.lon_min <= lon <= self.lon_max)


class CanvasSpec(BaseModel):
    """Pixel dimensions of the render target."""
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the order OpenCV and FFmpeg expect."""
        return (self.width, self.height)

    @classmethod
    def fit(cls, orig_width: int, orig_height: int, max_side: int) -> "CanvasSpec":
        """
        Scale source dimensions so the longest side is at most max_side.

        Images already within the limit keep their native size.

        Args:
            orig_width: Source image width in pixels
            orig_height: Source image height in pixels
            max_side: Maximum allowed length of the longest side

        Returns:
            CanvasSpec preserving the source aspect ratio
        """
        scale = min(max_side / max(orig_width, orig_height), 1.0)
        width = int(math.floor(orig_width * scale))
        height = int(math.floor(orig_height * scale))
        return cls(width=max(width, 1), height=max(height, 1))
