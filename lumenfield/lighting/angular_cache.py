"""Precomputed distance and angle tables for offsets around a light source.

Shadow casting works in polar terms: every offset ``(dx, dy)`` from a source
falls into one of ``ANGLE_BUCKETS`` angular sectors, and a unit-size occluder
at that offset covers a small span of sectors around its own. Both are pure
functions of the offset, so they are tabulated once over a square window and
shared read-only by every solver pass.

Tables are indexed ``[dx + radius, dy + radius]``.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from lumenfield import config

logger = logging.getLogger(__name__)


def _round_half_away(values: np.ndarray) -> np.ndarray:
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def _raw_bucket(x: np.ndarray, y: np.ndarray, buckets: int) -> np.ndarray:
    """Unwrapped bucket position of each offset. The sign of +0 is positive."""
    dist = np.hypot(x, y)
    with np.errstate(invalid="ignore", divide="ignore"):
        cos = np.clip(x / dist, -1.0, 1.0)
    angle = np.arccos(cos) * np.where(y >= 0, 1.0, -1.0)
    return angle * buckets / (2.0 * math.pi)


class AngularCache:
    """Immutable distance / angle-bucket / angle-range tables.

    Build it through `get_angular_cache()`; constructing one directly is only
    useful for tests that want a different window.
    """

    def __init__(
        self,
        radius: int = config.ANGULAR_CACHE_RADIUS,
        buckets: int = config.ANGLE_BUCKETS,
    ) -> None:
        self.radius = radius
        self.buckets = buckets

        coords = np.arange(-radius, radius + 1, dtype=np.float64)
        x, y = np.meshgrid(coords, coords, indexing="ij")

        self.distance = np.hypot(x, y)

        raw = _raw_bucket(x, y, buckets)
        bucket = np.mod(_round_half_away(np.nan_to_num(raw)), buckets).astype(np.int64)

        # Each corner of the unit square centered on the offset, as a bucket
        # delta wrapped into [-buckets/2, buckets/2].
        range_min = np.zeros_like(bucket)
        range_max = np.zeros_like(bucket)
        half = buckets // 2
        for sx in (-0.5, 0.5):
            for sy in (-0.5, 0.5):
                corner = _round_half_away(_raw_bucket(x + sx, y + sy, buckets))
                delta = corner.astype(np.int64) - bucket
                wrapped = delta - buckets * np.sign(delta)
                delta = np.where(np.abs(delta) > half, wrapped, delta)
                np.minimum(range_min, delta, out=range_min)
                np.maximum(range_max, delta, out=range_max)

        # The zero offset has no direction.
        bucket[radius, radius] = 0
        range_min[radius, radius] = 0
        range_max[radius, radius] = 0

        self.bucket = bucket
        self.range_min = range_min
        self.range_max = range_max

        for table in (self.distance, self.bucket, self.range_min, self.range_max):
            table.setflags(write=False)

    def _index(self, dx: int, dy: int) -> tuple[int, int]:
        if abs(dx) > self.radius or abs(dy) > self.radius:
            raise IndexError(
                f"Offset ({dx}, {dy}) is outside the angular cache window "
                f"of radius {self.radius}"
            )
        return dx + self.radius, dy + self.radius

    def distance_at(self, dx: int, dy: int) -> float:
        return float(self.distance[self._index(dx, dy)])

    def bucket_at(self, dx: int, dy: int) -> int:
        return int(self.bucket[self._index(dx, dy)])

    def range_at(self, dx: int, dy: int) -> tuple[int, int]:
        """Return ``(min, max)`` bucket deltas swept by an occluder at the offset."""
        idx = self._index(dx, dy)
        return int(self.range_min[idx]), int(self.range_max[idx])

    def window(self, radius: int) -> tuple[slice, slice]:
        """Return table slices covering offsets ``-radius..radius`` on both axes."""
        if radius > self.radius or radius < 0:
            raise IndexError(
                f"Window radius {radius} does not fit the angular cache "
                f"(radius {self.radius})"
            )
        window = slice(self.radius - radius, self.radius + radius + 1)
        return window, window


_angular_cache: AngularCache | None = None


def get_angular_cache() -> AngularCache:
    """Return the shared angular cache, building it on first use."""
    global _angular_cache
    if _angular_cache is None:
        _angular_cache = AngularCache()
        size = _angular_cache.radius * 2 + 1
        logger.debug(
            f"Angular cache built: {size}x{size} offsets, "
            f"{_angular_cache.buckets} buckets"
        )
    return _angular_cache
