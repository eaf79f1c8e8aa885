"""
Prebaked static lighting and incremental re-propagation.

A full propagation rebuild is too slow to run every time a door opens or a
lamp is switched. Instead, lighting is baked once per map:

- every emitter gets a sequential source id;
- each source floods its light over static see-through cells, and every cell
  remembers the strongest source reaching it;
- where a flood runs into a dynamic cell (a door), the owning cell is marked
  as a wave edge carrying the residual light and distance travelled.

At runtime `PrebakedLightingSolver` re-applies the baked contributions of the
sources that are currently switched on, then resumes each cut-off flood from
its wave edges through whatever the dynamic cells look like *now*.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from lumenfield import config
from lumenfield.environment.behavior import placements_by_cell
from lumenfield.environment.fields import field_size, new_prebaked_field
from lumenfield.geometry import CARDINAL_DIRECTIONS, GridPosition
from lumenfield.lighting.base import LightFieldSolver, register_lighting_metrics
from lumenfield.lighting.propagation import seed_light_field
from lumenfield.types import NO_SOURCE, ColorRGBf, LightSourceId
from lumenfield.util.live_vars import record_time_live_variable

if TYPE_CHECKING:
    from lumenfield.environment.behavior import Placement
    from lumenfield.types import MapSize

logger = logging.getLogger(__name__)


@dataclass
class PrebakeConfig:
    """Tuning for baking and re-propagation. Defaults come from `config`."""

    static_step_transparency: float = config.STATIC_STEP_TRANSPARENCY
    dynamic_open_transparency: float = config.DYNAMIC_OPEN_TRANSPARENCY
    dynamic_closed_transparency: float = config.DYNAMIC_CLOSED_TRANSPARENCY
    min_applied_lux: float = config.PREBAKED_MIN_LUX
    wave_min_lux: float = config.WAVE_MIN_LUX
    diminishing_ratio: float = config.WAVE_DIMINISHING_RATIO


@dataclass
class PrebakedLighting:
    """Baked grid plus where each source id lives."""

    data: np.ndarray
    light_sources: dict[LightSourceId, GridPosition] = field(default_factory=dict)

    @property
    def map_size(self) -> MapSize:
        return field_size(self.data)


@dataclass(frozen=True)
class WaveFront:
    """One step of a re-propagating flood."""

    cell: GridPosition
    source_id: LightSourceId
    color: ColorRGBf
    residual_lux: float
    distance: float


def blend_colors(
    c1: ColorRGBf, lux1: float, c2: ColorRGBf, lux2: float
) -> ColorRGBf:
    """Lux-weighted average of two colors. Returns white when both are dark."""
    total = lux1 + lux2
    if total <= 0.0:
        return config.DEFAULT_LIGHT_COLOR
    return (
        (c1[0] * lux1 + c2[0] * lux2) / total,
        (c1[1] * lux1 + c2[1] * lux2) / total,
        (c1[2] * lux1 + c2[2] * lux2) / total,
    )


# ---------------------------------------------------------------------------
# Bake
# ---------------------------------------------------------------------------


def prebake_lighting(
    map_size: MapSize,
    placements: list[Placement],
    collision: np.ndarray,
    prebake_config: PrebakeConfig | None = None,
) -> PrebakedLighting:
    """Bake static lighting for every emitter, switched on or not.

    Floods only cross cells that are see-through and not dynamic. Dynamic cells
    are never baked into; the flood leaves a wave edge next to them instead.
    """
    cfg = prebake_config or PrebakeConfig()
    register_lighting_metrics()
    with record_time_live_variable("time.lighting.bake_ms"):
        prebaked = PrebakedLighting(new_prebaked_field(map_size))
        data = prebaked.data

        emitters: list[tuple[GridPosition, float, ColorRGBf]] = []
        for cell, behaviors in placements_by_cell(placements).items():
            if not cell.in_bounds(map_size):
                continue
            lights = [b.light for b in behaviors if b.light.is_emitter]
            if not lights:
                continue
            brightest = max(lights, key=lambda light: light.emissivity_lumens)
            lumens = sum(light.emissivity_lumens for light in lights)
            emitters.append((cell, lumens, brightest.color))

        # Stable ids regardless of placement order.
        emitters.sort(key=lambda e: (e[0].z, e[0].y, e[0].x))
        for source_index, (cell, lumens, color) in enumerate(emitters):
            source_id = LightSourceId(source_index)
            prebaked.light_sources[source_id] = cell
            _flood_source(data, collision, source_id, cell, lumens, color, cfg)

        wave_edges = int(data["wave_edge"].sum())
        lit = int((data["source_id"] != NO_SOURCE).sum())
        logger.info(
            f"Prebaked {len(emitters)} light sources: {lit} cells lit, "
            f"{wave_edges} wave edges"
        )
    return prebaked


def _flood_source(
    data: np.ndarray,
    collision: np.ndarray,
    source_id: LightSourceId,
    origin: GridPosition,
    lumens: float,
    color: ColorRGBf,
    cfg: PrebakeConfig,
) -> None:
    """Breadth-first flood of one emitter through static see-through cells.

    Each cell keeps a single owner, the brightest source to reach it. Wave
    edges are only recorded on cells this source owns, so a weaker source
    that reaches a door through a brighter source's cell leaves no edge
    there and will not re-propagate through that door at runtime.
    """
    map_size = field_size(data)
    visited = np.zeros(map_size, dtype=bool)
    visited[origin.ndidx()] = True
    _claim(data, origin, source_id, lumens, color)

    # (cell, steps from origin, light carried into the cell)
    queue: deque[tuple[GridPosition, int, float]] = deque([(origin, 0, lumens)])
    while queue:
        cell, steps, carried = queue.popleft()
        for direction in CARDINAL_DIRECTIONS:
            neighbor = cell.step(direction)
            if not neighbor.in_bounds(map_size):
                continue
            idx = neighbor.ndidx()
            next_carried = carried * cfg.static_step_transparency
            next_steps = steps + 1

            if collision["is_dynamic"][idx]:
                if data["source_id"][cell.ndidx()] == source_id:
                    _mark_wave_edge(data, cell, carried, float(next_steps))
                continue
            if visited[idx] or not collision["see_through"][idx]:
                continue
            visited[idx] = True

            new_lux = next_carried / (next_steps * next_steps)
            if new_lux < cfg.wave_min_lux:
                continue
            if new_lux > data["lux"][idx]:
                _claim(data, neighbor, source_id, new_lux, color)
            queue.append((neighbor, next_steps, next_carried))


def _claim(
    data: np.ndarray,
    cell: GridPosition,
    source_id: LightSourceId,
    lux: float,
    color: ColorRGBf,
) -> None:
    idx = cell.ndidx()
    if data["source_id"][idx] != source_id:
        # A new owner invalidates the previous owner's wave edge.
        data["wave_edge"][idx] = False
        data["wave_src_lux"][idx] = 0.0
        data["wave_distance"][idx] = 0.0
    data["source_id"][idx] = source_id
    data["lux"][idx] = lux
    data["color"][idx] = color


def _mark_wave_edge(
    data: np.ndarray, cell: GridPosition, residual_lux: float, distance: float
) -> None:
    idx = cell.ndidx()
    # Several dynamic neighbors share one edge; keep the strongest residual.
    if data["wave_edge"][idx] and data["wave_src_lux"][idx] >= residual_lux:
        return
    data["wave_edge"][idx] = True
    data["wave_src_lux"][idx] = residual_lux
    data["wave_distance"][idx] = distance


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


def identify_active_light_sources(
    prebaked: PrebakedLighting, placements: list[Placement]
) -> set[LightSourceId]:
    """Source ids whose emitter is currently switched on.

    A source whose emitter was removed since the bake counts as inactive.
    """
    cells = placements_by_cell(placements)
    active: set[LightSourceId] = set()
    for source_id, cell in prebaked.light_sources.items():
        behaviors = cells.get(cell, [])
        if any(b.light.is_emitter and b.light.emission_enabled for b in behaviors):
            active.add(source_id)
    logger.info(
        f"Active light sources: {len(active)}/{len(prebaked.light_sources)} (prebaked)"
    )
    return active


def apply_prebaked_contributions(
    light_field: np.ndarray,
    prebaked: PrebakedLighting,
    active: set[LightSourceId],
    min_lux: float = config.PREBAKED_MIN_LUX,
) -> int:
    """Copy baked lux and color of active sources into ``light_field``.

    Returns the number of cells lit.
    """
    data = prebaked.data
    if not active:
        return 0
    mask = np.isin(data["source_id"], np.fromiter(active, dtype=np.int32))
    mask &= data["lux"] > min_lux
    light_field["lux"][mask] = data["lux"][mask]
    light_field["color"][mask] = data["color"][mask]
    return int(mask.sum())


def find_wave_edges(
    prebaked: PrebakedLighting, active: set[LightSourceId]
) -> list[WaveFront]:
    """Wave edges left by active sources, in grid order."""
    data = prebaked.data
    fronts: list[WaveFront] = []
    for x, y, z in np.argwhere(data["wave_edge"]):
        source_id = LightSourceId(int(data["source_id"][x, y, z]))
        if source_id not in active:
            continue
        r, g, b = (float(c) for c in data["color"][x, y, z])
        fronts.append(
            WaveFront(
                cell=GridPosition(int(x), int(y), int(z)),
                source_id=source_id,
                color=(r, g, b),
                residual_lux=float(data["wave_src_lux"][x, y, z]),
                distance=float(data["wave_distance"][x, y, z]),
            )
        )
    return fronts


def propagate_from_wave_edges(
    light_field: np.ndarray,
    prebaked: PrebakedLighting,
    collision: np.ndarray,
    fronts: list[WaveFront],
    prebake_config: PrebakeConfig | None = None,
) -> int:
    """Resume cut-off floods through the current dynamic state.

    Returns the number of cells that received light.
    """
    cfg = prebake_config or PrebakeConfig()
    map_size = field_size(light_field)
    baked_source = prebaked.data["source_id"]
    visited: dict[LightSourceId, np.ndarray] = {}
    propagated = 0

    queue = deque(fronts)
    while queue:
        front = queue.popleft()
        seen = visited.setdefault(front.source_id, np.zeros(map_size, dtype=bool))
        for direction in CARDINAL_DIRECTIONS:
            neighbor = front.cell.step(direction)
            if not neighbor.in_bounds(map_size):
                continue
            idx = neighbor.ndidx()
            if baked_source[idx] == front.source_id or seen[idx]:
                continue
            seen[idx] = True

            see_through = collision["see_through"][idx]
            if not see_through and not collision["is_dynamic"][idx]:
                continue

            transparency = (
                cfg.dynamic_open_transparency
                if see_through
                else cfg.dynamic_closed_transparency
            )
            residual = front.residual_lux * transparency
            distance = max(front.distance, 1.0)
            new_lux = residual / (distance * distance)

            current = float(light_field["lux"][idx])
            if current > new_lux * cfg.diminishing_ratio or new_lux < cfg.wave_min_lux:
                continue

            if current > 0.0:
                r, g, b = (float(c) for c in light_field["color"][idx])
                light_field["color"][idx] = blend_colors(
                    (r, g, b), current, front.color, new_lux
                )
            else:
                light_field["color"][idx] = front.color
            light_field["lux"][idx] = current + new_lux
            propagated += 1

            queue.append(
                WaveFront(
                    cell=neighbor,
                    source_id=front.source_id,
                    color=front.color,
                    residual_lux=residual,
                    distance=front.distance + 1.0,
                )
            )
    return propagated


class PrebakedLightingSolver(LightFieldSolver):
    """Light field from baked contributions plus wave-edge re-propagation."""

    name = "prebaked"
    timing_metric = "time.lighting.incremental_ms"

    def __init__(
        self,
        prebaked: PrebakedLighting,
        prebake_config: PrebakeConfig | None = None,
    ) -> None:
        super().__init__(prebaked.map_size)
        self.prebaked = prebaked
        self.config = prebake_config or PrebakeConfig()

    def solve(
        self, placements: list[Placement], collision: np.ndarray
    ) -> np.ndarray:
        with record_time_live_variable(self.timing_metric):
            light_field = seed_light_field(self.map_size, placements)
            light_field["lux"] = 0.0

            active = identify_active_light_sources(self.prebaked, placements)
            lit = apply_prebaked_contributions(
                light_field, self.prebaked, active, self.config.min_applied_lux
            )
            fronts = find_wave_edges(self.prebaked, active)
            propagated = propagate_from_wave_edges(
                light_field, self.prebaked, collision, fronts, self.config
            )
            logger.info(
                f"Prebaked rebuild: {lit} cells from baked light, "
                f"{len(fronts)} wave edges, {propagated} cells re-propagated"
            )
            return light_field
