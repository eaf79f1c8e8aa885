"""Decaying line-of-sight flood fill from a viewer.

Visibility says how perceivable a cell is from where the viewer stands,
independent of how bright it is. It spreads breadth-first out of the viewer's
cell and loses strength whenever a step does not move away from the viewer
(turning corners, bending around walls) and with distance. Cells that block
both movement and sight still receive a value so walls are seen, but the
flood never continues past them.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np

from lumenfield import config
from lumenfield.environment.fields import field_size
from lumenfield.geometry import Direction, GridPosition, Position
from lumenfield.lighting.base import register_lighting_metrics
from lumenfield.types import DeploymentProfileName
from lumenfield.util.live_vars import record_time_live_variable

logger = logging.getLogger(__name__)


@dataclass
class VisibilityConfig:
    """Falloff tuning for `compute_visibility`."""

    near_radius: float = config.VISIBILITY_NEAR_RADIUS
    threshold: float = config.VISIBILITY_THRESHOLD
    interior_range: float = config.VISIBILITY_INTERIOR_RANGE
    exterior_range: float = config.VISIBILITY_EXTERIOR_RANGE[config.DEPLOYMENT_PROFILE]
    unclassified_range: float = config.VISIBILITY_UNCLASSIFIED_RANGE
    max_range_penalty: float = config.VISIBILITY_MAX_RANGE_PENALTY

    @classmethod
    def for_profile(cls, profile: DeploymentProfileName) -> VisibilityConfig:
        return cls(exterior_range=config.VISIBILITY_EXTERIOR_RANGE[profile])


def compute_visibility(
    collision: np.ndarray,
    viewer: Position,
    interior: np.ndarray | None = None,
    visibility_config: VisibilityConfig | None = None,
) -> np.ndarray:
    """Flood visibility out of the viewer's cell.

    Args:
        collision: ``CollisionFieldData`` grid. Only ``player_free`` and
            ``see_through`` are read.
        viewer: Continuous viewer position. Its rounded cell gets 1.0.
        interior: Optional boolean grid marking room cells. Room cells use the
            shorter interior range; without a classifier every cell uses the
            unclassified range.
        visibility_config: Falloff tuning, defaults to the deployment profile.

    Returns:
        A float grid the shape of ``collision`` with values in [0, 1].
    """
    register_lighting_metrics()
    cfg = visibility_config or VisibilityConfig()
    map_size = field_size(collision)
    visibility = np.zeros(map_size, dtype=np.float64)

    start = viewer.to_grid()
    if not start.in_bounds(map_size):
        logger.debug(f"Viewer at {viewer} is outside the board, nothing visible")
        return visibility

    with record_time_live_variable("time.visibility.flood_ms"):
        expandable = collision["player_free"] | collision["see_through"]
        seen = np.zeros(map_size, dtype=bool)
        visibility[start.ndidx()] = 1.0
        seen[start.ndidx()] = True

        # Each entry carries the cell it was reached from.
        queue: deque[tuple[GridPosition, GridPosition]] = deque([(start, start)])
        while queue:
            pos, parent = queue.popleft()
            if not expandable[pos.ndidx()]:
                continue
            pds = viewer.distance_to_grid(pos)
            src = visibility[pos.ndidx()]

            for direction in Direction:
                npos = pos.step(direction)
                if not npos.in_bounds(map_size):
                    continue
                npds = viewer.distance_to_grid(npos)
                if npds < cfg.near_radius:
                    f = 1.0
                else:
                    advance = npos.distance(parent) / 2.0 + config.EPSILON
                    f = min(max((npds - pds) / advance, 0.0), 1.0) ** 2

                if interior is None:
                    k = cfg.unclassified_range
                elif interior[npos.ndidx()]:
                    k = cfg.interior_range
                else:
                    k = cfg.exterior_range
                penalty = min(
                    max((npds - cfg.near_radius) / k, 0.0), cfg.max_range_penalty
                )
                contribution = src * f / (1.0 + penalty)
                if contribution < cfg.threshold:
                    continue

                idx = npos.ndidx()
                visibility[idx] = 1.0 - (1.0 - visibility[idx]) * (1.0 - contribution)
                if not seen[idx]:
                    seen[idx] = True
                    queue.append((npos, pos))

    return visibility
