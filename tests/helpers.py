from __future__ import annotations

from collections.abc import Iterable
from typing import TypeAlias

import numpy as np

from lumenfield.environment.behavior import (
    Placement,
    door_behavior,
    floor_behavior,
    lamp_behavior,
    wall_behavior,
)
from lumenfield.environment.board import rebuild_collision_field
from lumenfield.geometry import Position
from lumenfield.types import MapSize

Cell: TypeAlias = tuple[int, int]


def build_room(
    width: int,
    height: int,
    *,
    walls: Iterable[Cell] = (),
    lamps: Iterable[tuple[int, int, float]] = (),
    doors: Iterable[tuple[int, int, bool]] = (),
    lamps_enabled: bool = True,
) -> list[Placement]:
    """A single-floor room: floor everywhere except on walls.

    Lamps sit on top of the floor. Doors replace the floor and carry their
    own walkability.
    """
    walls = set(walls)
    doors = {(x, y): is_open for x, y, is_open in doors}
    placements: list[Placement] = []
    for x in range(width):
        for y in range(height):
            if (x, y) in walls:
                placements.append((Position(x, y), wall_behavior()))
            elif (x, y) in doors:
                placements.append((Position(x, y), door_behavior(doors[(x, y)])))
            else:
                placements.append((Position(x, y), floor_behavior()))
    for x, y, lumens in lamps:
        placements.append(
            (Position(x, y), lamp_behavior(lumens, enabled=lamps_enabled))
        )
    return placements


def ring_walls(cx: int, cy: int) -> list[Cell]:
    """The eight cells around ``(cx, cy)``."""
    return [
        (cx + dx, cy + dy)
        for dx in (-1, 0, 1)
        for dy in (-1, 0, 1)
        if (dx, dy) != (0, 0)
    ]


def collision_for(map_size: MapSize, placements: list[Placement]) -> np.ndarray:
    return rebuild_collision_field(map_size, placements)
