"""
Bounds extraction and coordinate projection.

Maps (lat, lon) pairs onto canvas pixels by linear min/max normalization
inside the track's own bounding box, then applies the configured scale and
percentage offsets.

Both axes are scaled by the canvas WIDTH, so on non-square canvases the
vertical extent of the route is measured in horizontal pixels.
"""

import logging
import math
from typing import Iterable, Sequence, Tuple, Union

import numpy as np

from errors import InputError
from route_data.data_models import BoundingBox, CanvasSpec, GeoSample

logger = logging.getLogger(__name__)

PointLike = Union[Tuple[float, float], GeoSample]


def _as_latlon_array(points: Iterable[PointLike]) -> np.ndarray:
    rows = [p.point if isinstance(p, GeoSample) else (p[0], p[1]) for p in points]
    if not rows:
        return np.empty((0, 2), dtype=np.float64)
    return np.asarray(rows, dtype=np.float64)


def get_bounds(points: Iterable[PointLike]) -> BoundingBox:
    """
    Compute the latitude/longitude extent of a track.

    Args:
        points: (lat, lon) tuples or GeoSample objects, in track order

    Returns:
        BoundingBox covering every point

    Raises:
        InputError: If the track is empty or contains non-finite coordinates
    """
    coords = _as_latlon_array(points)
    if coords.shape[0] == 0:
        raise InputError("Track contains no GPS samples")
    if not np.all(np.isfinite(coords)):
        raise InputError("Track contains non-finite coordinates")

    lat_min, lon_min = coords.min(axis=0)
    lat_max, lon_max = coords.max(axis=0)
    return BoundingBox(
        lat_min=float(lat_min), lat_max=float(lat_max),
        lon_min=float(lon_min), lon_max=float(lon_max),
    )


def normalize_axis(values: np.ndarray, lo: float, hi: float) -> np.ndarray:
    """Min/max scale values to [0, 1]; a zero-width axis maps to 0.5."""
    values = np.asarray(values, dtype=np.float64)
    if hi == lo:
        return np.full(values.shape, 0.5)
    return (values - lo) / (hi - lo)


def project_points(points: Sequence[PointLike], bounds: BoundingBox,
                   canvas: CanvasSpec, scale: float,
                   offset_x_pct: float, offset_y_pct: float) -> np.ndarray:
    """
    Project geographic points to integer pixel coordinates.

    x = (offset_x + nlon * scale) * width
    y = (offset_y + (1 - nlat) * scale) * width

    Values outside the canvas are returned as-is; nothing is clipped.

    Args:
        points: (lat, lon) tuples or GeoSample objects
        bounds: Bounding box used for normalization
        canvas: Target canvas
        scale: Fraction of the canvas width spanned by the route
        offset_x_pct: Left offset as a fraction of the canvas width
        offset_y_pct: Top offset as a fraction of the canvas width

    Returns:
        int32 array of shape (N, 2) holding (x, y) in input order
    """
    coords = _as_latlon_array(points)
    if coords.shape[0] == 0:
        return np.empty((0, 2), dtype=np.int32)

    nlat = normalize_axis(coords[:, 0], bounds.lat_min, bounds.lat_max)
    nlon = normalize_axis(coords[:, 1], bounds.lon_min, bounds.lon_max)

    width = float(canvas.width)
    xs = (offset_x_pct + nlon * scale) * width
    ys = (offset_y_pct + (1.0 - nlat) * scale) * width

    # astype truncates toward zero, matching an integer cast per point
    return np.stack([xs, ys], axis=1).astype(np.int32)


class RouteProjector:
    """
    Projection bound to one track and canvas.

    Example:
        projector = RouteProjector.for_track(route.samples, canvas, config.scale_offset)
        pixel_points = projector.project(route.samples)
    """

    def __init__(self, bounds: BoundingBox, canvas: CanvasSpec,
                 scale: float = 0.2, offset_x_pct: float = 0.1, offset_y_pct: float = 0.1):
        self.bounds = bounds
        self.canvas = canvas
        self.scale = scale
        self.offset_x_pct = offset_x_pct
        self.offset_y_pct = offset_y_pct

    @classmethod
    def for_track(cls, points: Sequence[PointLike], canvas: CanvasSpec,
                  scale_offset) -> "RouteProjector":
        """Build a projector from a track's own bounds and a ScaleOffset."""
        return cls(
            get_bounds(points), canvas,
            scale=scale_offset.scale,
            offset_x_pct=scale_offset.offset_x_pct,
            offset_y_pct=scale_offset.offset_y_pct,
        )

    def project(self, points: Sequence[PointLike]) -> np.ndarray:
        pixel_points = project_points(
            points, self.bounds, self.canvas,
            self.scale, self.offset_x_pct, self.offset_y_pct,
        )
        logger.debug(f"Projected {len(pixel_points)} points onto {self.canvas.width}x{self.canvas.height}")
        return pixel_points

    def pixel_band(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """
        Inclusive (min, max) pixel ranges any projected point can occupy.

        Returns:
            ((x_min, x_max), (y_min, y_max))
        """
        width = float(self.canvas.width)
        lo_x = self.offset_x_pct * width
        hi_x = (self.offset_x_pct + self.scale) * width
        lo_y = self.offset_y_pct * width
        hi_y = (self.offset_y_pct + self.scale) * width
        return ((int(math.trunc(min(lo_x, hi_x))), int(math.trunc(max(lo_x, hi_x)))),
                (int(math.trunc(min(lo_y, hi_y))), int(math.trunc(max(lo_y, hi_y)))))
