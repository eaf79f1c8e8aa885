"""Continuous and grid positions on the 3-D board.

Every field grid is indexed by ``GridPosition.ndidx()``. Continuous positions
belong to whoever places entities; this package only reads them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from lumenfield.types import GridCoord, MapSize, NdIndex, WorldCoord


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class Direction(Enum):
    """The eight compass directions as (dx, dy) grid steps."""

    NORTH = (0, -1)
    NORTH_EAST = (1, -1)
    EAST = (1, 0)
    SOUTH_EAST = (1, 1)
    SOUTH = (0, 1)
    SOUTH_WEST = (-1, 1)
    WEST = (-1, 0)
    NORTH_WEST = (-1, -1)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]

    @property
    def is_cardinal(self) -> bool:
        return self.dx == 0 or self.dy == 0


CARDINAL_DIRECTIONS: tuple[Direction, ...] = tuple(
    d for d in Direction if d.is_cardinal
)


@dataclass(frozen=True, slots=True)
class GridPosition:
    """Integer cell coordinate; value-equal and hashable."""

    x: GridCoord
    y: GridCoord
    z: GridCoord = 0

    def ndidx(self) -> NdIndex:
        return (self.x, self.y, self.z)

    def step(self, direction: Direction) -> GridPosition:
        return GridPosition(self.x + direction.dx, self.y + direction.dy, self.z)

    def offset(self, dx: int, dy: int, dz: int = 0) -> GridPosition:
        return GridPosition(self.x + dx, self.y + dy, self.z + dz)

    def distance(self, other: GridPosition) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def in_bounds(self, map_size: MapSize) -> bool:
        width, height, depth = map_size
        return 0 <= self.x < width and 0 <= self.y < height and 0 <= self.z < depth

    def to_position(self) -> Position:
        return Position(float(self.x), float(self.y), float(self.z))


@dataclass(frozen=True, slots=True)
class Position:
    """Continuous world position.

    ``global_z`` is a presentation-only depth offset used for sprite ordering;
    nothing in the simulation reads it.
    """

    x: WorldCoord
    y: WorldCoord
    z: WorldCoord = 0.0
    global_z: WorldCoord = 0.0

    def to_grid(self) -> GridPosition:
        return GridPosition(
            round_half_away(self.x), round_half_away(self.y), round_half_away(self.z)
        )

    def distance(self, other: Position) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def distance_to_grid(self, cell: GridPosition) -> float:
        return math.sqrt(
            (self.x - cell.x) ** 2 + (self.y - cell.y) ** 2 + (self.z - cell.z) ** 2
        )
