"""
Board state and rebuild coordination.

`BoardData` owns the committed fields of one board. Nothing writes into a
committed field: rebuilds build fresh arrays and `BoardData` swaps the
references in one assignment, so readers either see the previous field or the
new one, never a half-built grid.

`BoardUpdater` turns rebuild requests into rebuilds. Requests merge into one
pending request and are processed at most once per tick: collision first,
since lighting solvers may read it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np

from lumenfield.environment.behavior import placements_by_cell
from lumenfield.environment.fields import (
    field_size,
    new_collision_field,
    new_light_field,
)
from lumenfield.events import (
    BoardDataToRebuild,
    CollisionFieldPublished,
    LightFieldPublished,
    publish_event,
    subscribe_to_event,
    unsubscribe_from_event,
)
from lumenfield.lighting.base import (
    LightFieldSolver,
    exposure_lux_for,
    register_lighting_metrics,
)
from lumenfield.lighting.prebaked import (
    PrebakeConfig,
    PrebakedLighting,
    PrebakedLightingSolver,
    prebake_lighting,
)
from lumenfield.lighting.propagation import LightPropagationSolver
from lumenfield.util.live_vars import live_variable_registry, record_time_live_variable

if TYPE_CHECKING:
    from lumenfield.environment.behavior import Placement
    from lumenfield.types import MapSize

logger = logging.getLogger(__name__)


def rebuild_collision_field(
    map_size: MapSize, placements: list[Placement]
) -> np.ndarray:
    """Build a collision field from placements.

    Walkable entities open a cell first; colliding entities (walls, closed
    doors) then close it again, so a wall placed over a floor always wins.
    Cells with no walkable entity stay opaque and impassable.
    """
    collision = new_collision_field(map_size)
    cells = placements_by_cell(placements)

    for cell, behaviors in cells.items():
        if not cell.in_bounds(map_size):
            continue
        idx = cell.ndidx()
        for behavior in behaviors:
            if behavior.walkable:
                collision["player_free"][idx] = True
                collision["ghost_free"][idx] = True
                collision["see_through"][idx] = behavior.light.see_through
                collision["is_dynamic"][idx] |= behavior.light.is_dynamic

    for cell, behaviors in cells.items():
        if not cell.in_bounds(map_size):
            continue
        idx = cell.ndidx()
        for behavior in behaviors:
            if behavior.player_collision:
                collision["player_free"][idx] = False
                collision["ghost_free"][idx] = not behavior.ghost_collision
                collision["see_through"][idx] = behavior.light.see_through
                collision["is_dynamic"][idx] |= behavior.light.is_dynamic

    return collision


class BoardData:
    """Committed fields of one board."""

    def __init__(self, map_size: MapSize) -> None:
        self.map_size = map_size
        self.light_field = new_light_field(map_size)
        self.collision_field = new_collision_field(map_size)
        self.prebaked: PrebakedLighting | None = None
        self.exposure_lux = 1.0
        self.light_revision = 0
        self.collision_revision = 0

    def _matches(self, grid: np.ndarray, what: str) -> bool:
        if field_size(grid) != self.map_size:
            logger.warning(
                f"{what} of size {field_size(grid)} does not match board size "
                f"{self.map_size}; skipping"
            )
            return False
        return True

    def publish_collision_field(self, collision: np.ndarray) -> bool:
        if not self._matches(collision, "Collision field"):
            return False
        self.collision_field = collision
        self.collision_revision += 1
        publish_event(CollisionFieldPublished(self.collision_revision))
        return True

    def publish_light_field(self, light_field: np.ndarray, solver: str = "") -> bool:
        """Swap in a new light field. Returns ``False`` if the size is wrong."""
        if not self._matches(light_field, "Light field"):
            return False
        exposure_lux = exposure_lux_for(light_field)
        self.light_field = light_field
        self.exposure_lux = exposure_lux
        self.light_revision += 1
        publish_event(
            LightFieldPublished(
                revision=self.light_revision, exposure_lux=exposure_lux, solver=solver
            )
        )
        return True


class BoardUpdater:
    """Merges rebuild requests and runs them once per tick.

    Placements are pulled from ``placements_provider`` at rebuild time so the
    updater always sees the current state of the world.
    """

    def __init__(
        self,
        board: BoardData,
        placements_provider: Callable[[], list[Placement]],
        solver: LightFieldSolver | None = None,
        *,
        listen: bool = True,
    ) -> None:
        self.board = board
        self.placements_provider = placements_provider
        self.solver = solver or LightPropagationSolver(board.map_size)
        self.pending = BoardDataToRebuild()
        self.rebuild_counts = {"collision": 0, "lighting": 0}
        register_lighting_metrics()
        self._listening = listen
        if listen:
            subscribe_to_event(BoardDataToRebuild, self.on_rebuild_requested)

    def detach(self) -> None:
        if self._listening:
            unsubscribe_from_event(BoardDataToRebuild, self.on_rebuild_requested)
            self._listening = False

    def on_rebuild_requested(self, event: BoardDataToRebuild) -> None:
        self.pending.merge(event)

    def request(self, *, collision: bool = False, lighting: bool = False) -> None:
        self.pending.merge(BoardDataToRebuild(collision=collision, lighting=lighting))

    def tick(self) -> bool:
        """Run the merged pending request, if any. Returns whether work ran.

        A step that raises stays pending, merged with anything requested
        meanwhile, so the next tick retries it. The error propagates.
        """
        if self.pending.is_empty:
            return False
        request, self.pending = self.pending, BoardDataToRebuild()
        try:
            placements = self.placements_provider()
            if request.collision:
                self.rebuild_collision(placements)
                request.collision = False
            if request.lighting:
                self.rebuild_lighting(placements)
                request.lighting = False
        finally:
            self.pending.merge(request)
        return True

    def rebuild_collision(self, placements: list[Placement]) -> bool:
        logger.info("Collision rebuild")
        with record_time_live_variable("time.lighting.collision_ms"):
            collision = rebuild_collision_field(self.board.map_size, placements)
        self.rebuild_counts["collision"] += 1
        return self.board.publish_collision_field(collision)

    def rebuild_lighting(self, placements: list[Placement]) -> bool:
        board = self.board
        if field_size(board.light_field) != board.map_size:
            logger.warning(
                f"Stored light field {field_size(board.light_field)} does not match "
                f"board size {board.map_size}; lighting rebuild skipped"
            )
            return False
        if self.solver.map_size != board.map_size:
            logger.warning(
                f"Solver sized {self.solver.map_size} for board {board.map_size}; "
                f"lighting rebuild skipped"
            )
            return False

        light_field = self.solver.solve(placements, board.collision_field)
        self.rebuild_counts["lighting"] += 1
        published = board.publish_light_field(light_field, self.solver.name)
        if published:
            lux = light_field["lux"]
            lit = int((lux > 0.001).sum())
            timing = live_variable_registry.get_variable(self.solver.timing_metric)
            timing_summary = timing.get_value() if timing else "unregistered"
            logger.info(
                f"Lighting rebuild ({self.solver.name}) complete: {lit}/{lux.size} "
                f"cells lit, avg {float(lux.mean()):.6f}, max {float(lux.max()):.3f}, "
                f"exposure_lux {board.exposure_lux:.4f}, "
                f"{self.solver.timing_metric} {timing_summary}"
            )
        return published

    def use_prebaked_lighting(
        self, prebake_config: PrebakeConfig | None = None
    ) -> PrebakedLighting:
        """Bake the current board and switch to the incremental solver.

        Needs an up to date collision field; bake after a collision rebuild.
        """
        prebaked = prebake_lighting(
            self.board.map_size,
            self.placements_provider(),
            self.board.collision_field,
            prebake_config,
        )
        self.board.prebaked = prebaked
        self.solver = PrebakedLightingSolver(prebaked, prebake_config)
        return prebaked
