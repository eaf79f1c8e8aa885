"""Abstract interface for light field solvers.

The full propagation solver and the prebaked incremental optimizer both turn
the current placements into a complete light field. Consumers (the board,
the visibility and exposure engines) only rely on this contract, so either
solver can be swapped in without changing any other code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from lumenfield.util.live_vars import MetricSpec, live_variable_registry

if TYPE_CHECKING:
    from lumenfield.environment.behavior import Placement
    from lumenfield.types import MapSize


LIGHTING_METRICS: list[MetricSpec] = [
    MetricSpec("time.lighting.full_ms", "Full light field rebuild"),
    MetricSpec("time.lighting.pass_ms", "Single propagation pass", 300),
    MetricSpec("time.lighting.incremental_ms", "Prebaked re-propagation"),
    MetricSpec("time.lighting.bake_ms", "Static light bake"),
    MetricSpec("time.lighting.collision_ms", "Collision field rebuild"),
    MetricSpec("time.lighting.exposure_ms", "Exposure controller tick", 1000),
    MetricSpec("time.visibility.flood_ms", "Visibility flood fill"),
]


def register_lighting_metrics() -> None:
    """Register every timing metric the lighting engines record.

    Safe to call repeatedly. Solvers, the exposure controller and the board
    updater call it on construction; the free-function engines call it on
    entry.
    """
    live_variable_registry.register_metrics(LIGHTING_METRICS)


def exposure_lux_for(light_field: np.ndarray) -> float:
    """Baseline exposure reference derived from the mean lux of a field."""
    if light_field.size == 0:
        return 1.0
    mean = float(light_field["lux"].mean())
    return (mean + 2.0) / 2.0


class LightFieldSolver(ABC):
    """Contract for anything that produces a complete light field.

    Implementations must return a fresh ``LightFieldData`` array of exactly
    ``map_size`` with non-negative lux and transmissivity everywhere. They
    never mutate their inputs.
    """

    name: str = "solver"
    # Metric the solver records each solve under; the board reports it.
    timing_metric: str = "time.lighting.full_ms"

    def __init__(self, map_size: MapSize) -> None:
        self.map_size = map_size
        register_lighting_metrics()

    @abstractmethod
    def solve(
        self, placements: list[Placement], collision: np.ndarray
    ) -> np.ndarray:
        """Compute the light field for the current placements.

        Args:
            placements: Every placed entity as ``(Position, Behavior)``
            collision: The current ``CollisionFieldData`` grid

        Returns:
            A new ``LightFieldData`` array of shape ``map_size``
        """
        pass
