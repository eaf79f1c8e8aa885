"""Plain data describing what a placed entity does to light and movement.

The placement system owns these records; the engines only read them. A board
is described by a list of ``(Position, Behavior)`` pairs, several of which may
land on the same cell (a floor tile under a lamp, a door inside a frame).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias

from lumenfield import config
from lumenfield.geometry import GridPosition, Position
from lumenfield.types import ColorRGBf, SpectralType

# Every tile emits a trace of light so nothing starts at exactly zero lux.
AMBIENT_EMISSIVITY = 0.000000001


@dataclass(frozen=True)
class LightBehavior:
    """How an entity emits and blocks light."""

    emissivity_lumens: float = AMBIENT_EMISSIVITY
    color: ColorRGBf = config.DEFAULT_LIGHT_COLOR
    transmissivity_factor: float = config.OPEN_TRANSMISSIVITY_FACTOR
    emission_enabled: bool = True
    see_through: bool = True
    # Switchable state (doors, lamps); baked lighting must not trust it.
    is_dynamic: bool = False
    spectral_type: SpectralType = SpectralType.VISIBLE

    def emissivity(self) -> float:
        """Lux this entity currently emits."""
        return self.emissivity_lumens if self.emission_enabled else 0.0

    @property
    def is_emitter(self) -> bool:
        return self.emissivity_lumens > AMBIENT_EMISSIVITY


@dataclass(frozen=True)
class Behavior:
    """Light and movement behavior of one placed entity."""

    light: LightBehavior = field(default_factory=LightBehavior)
    walkable: bool = False
    player_collision: bool = False
    ghost_collision: bool = False


Placement: TypeAlias = tuple[Position, Behavior]


# ---------------------------------------------------------------------------
# Common entity presets.
# ---------------------------------------------------------------------------


def floor_behavior() -> Behavior:
    return Behavior(walkable=True)


def wall_behavior() -> Behavior:
    return Behavior(
        light=LightBehavior(
            transmissivity_factor=config.OPAQUE_TRANSMISSIVITY_FACTOR,
            see_through=False,
        ),
        player_collision=True,
        ghost_collision=False,
    )


def door_behavior(is_open: bool) -> Behavior:
    """A door: walls off light and movement while closed."""
    return Behavior(
        light=LightBehavior(
            transmissivity_factor=(
                config.OPEN_TRANSMISSIVITY_FACTOR
                if is_open
                else config.OPAQUE_TRANSMISSIVITY_FACTOR
            ),
            see_through=is_open,
            is_dynamic=True,
        ),
        walkable=is_open,
        player_collision=not is_open,
        ghost_collision=False,
    )


def lamp_behavior(
    lumens: float = 1000.0,
    color: ColorRGBf = config.DEFAULT_LIGHT_COLOR,
    *,
    enabled: bool = True,
) -> Behavior:
    return Behavior(
        light=LightBehavior(
            emissivity_lumens=lumens,
            color=color,
            emission_enabled=enabled,
        ),
    )


def placements_by_cell(
    placements: list[Placement],
) -> dict[GridPosition, list[Behavior]]:
    """Group placements by the grid cell they round to."""
    cells: dict[GridPosition, list[Behavior]] = {}
    for pos, behavior in placements:
        cells.setdefault(pos.to_grid(), []).append(behavior)
    return cells
