"""Tests for the multi-pass light propagation solver."""

import itertools

import numpy as np
import pytest

from lumenfield import config
from lumenfield.environment.behavior import Behavior, LightBehavior, lamp_behavior
from lumenfield.environment.fields import LightFieldData
from lumenfield.geometry import Position
from lumenfield.lighting.propagation import (
    LightPropagationSolver,
    PropagationConfig,
    PropagationPass,
    seed_light_field,
)
from lumenfield.types import SpectralType
from tests.helpers import build_room, collision_for

ROOM = (5, 5, 1)


def solve(placements, map_size=ROOM) -> np.ndarray:
    solver = LightPropagationSolver(map_size)
    return solver.solve(placements, collision_for(map_size, placements))


class TestSeed:
    def test_empty_cells_keep_defaults(self) -> None:
        seed = seed_light_field((3, 3, 1), [])
        assert (seed["lux"] == 0.0).all()
        assert (seed["transmissivity"] == config.DEFAULT_TRANSMISSIVITY).all()
        np.testing.assert_array_equal(seed["color"][0, 0, 0], [1.0, 1.0, 1.0])

    def test_open_cell_retains_a_little_light(self) -> None:
        """Open geometry transmits slightly more than 1."""
        seed = seed_light_field((3, 3, 1), build_room(3, 3))
        assert (seed["transmissivity"] > 1.0).all()

    def test_stacked_entities_combine(self) -> None:
        placements = [
            (Position(1, 1), lamp_behavior(200.0, (1.0, 0.0, 0.0))),
            (Position(1, 1), lamp_behavior(300.0, (0.0, 0.0, 1.0))),
        ]
        seed = seed_light_field((3, 3, 1), placements)
        cell = seed[1, 1, 0]
        assert cell["lux"] == pytest.approx(500.0)
        # Brightest entity decides the color
        np.testing.assert_array_equal(cell["color"], [0.0, 0.0, 1.0])
        factor = config.OPEN_TRANSMISSIVITY_FACTOR + config.TRANSMISSIVITY_EPSILON
        assert cell["transmissivity"] == pytest.approx(factor * factor)

    def test_disabled_emitter_seeds_no_light(self) -> None:
        placements = [(Position(1, 1), lamp_behavior(1000.0, enabled=False))]
        seed = seed_light_field((3, 3, 1), placements)
        assert seed["lux"][1, 1, 0] == 0.0

    def test_spectral_lux_follows_emitter_band(self) -> None:
        uv = Behavior(
            light=LightBehavior(
                emissivity_lumens=50.0, spectral_type=SpectralType.ULTRAVIOLET
            )
        )
        seed = seed_light_field((3, 3, 1), [(Position(2, 0), uv)])
        spectral = seed["spectral"][2, 0, 0]
        assert spectral["ultraviolet"] == pytest.approx(50.0)
        assert spectral["visible"] == 0.0

    def test_out_of_bounds_placements_are_ignored(self) -> None:
        seed = seed_light_field((2, 2, 1), [(Position(5, 5), lamp_behavior())])
        assert (seed["lux"] == 0.0).all()


class TestOpenRoom:
    """A single emitter in the middle of an open 5x5 room."""

    @pytest.fixture
    def field(self) -> np.ndarray:
        return solve(build_room(5, 5, lamps=[(2, 2, 1000.0)]))

    def test_output_contract(self, field: np.ndarray) -> None:
        assert field.dtype == LightFieldData
        assert field.shape == ROOM
        assert (field["lux"] >= 0.0).all()
        assert (field["transmissivity"] >= 0.0).all()

    def test_lux_strictly_decreases_with_distance(self, field: np.ndarray) -> None:
        lux = field["lux"][:, :, 0]
        cells = [(x, y) for x in range(5) for y in range(5)]
        for (ax, ay), (bx, by) in itertools.combinations(cells, 2):
            da = np.hypot(ax - 2, ay - 2)
            db = np.hypot(bx - 2, by - 2)
            if np.isclose(da, db):
                assert lux[ax, ay] == pytest.approx(lux[bx, by], rel=1e-9)
            elif da < db:
                assert lux[ax, ay] > lux[bx, by]
            else:
                assert lux[ax, ay] < lux[bx, by]

    def test_rebuild_is_idempotent(self, field: np.ndarray) -> None:
        again = solve(build_room(5, 5, lamps=[(2, 2, 1000.0)]))
        np.testing.assert_allclose(again["lux"], field["lux"], rtol=1e-12)

    def test_solver_does_not_mutate_seed(self) -> None:
        solver = LightPropagationSolver(ROOM)
        seed = seed_light_field(ROOM, build_room(5, 5, lamps=[(2, 2, 1000.0)]))
        before = seed.copy()
        solver.propagate(seed)
        np.testing.assert_array_equal(seed["lux"], before["lux"])


class TestShadows:
    def test_obstructed_cell_is_darker_than_matched_open_cell(self) -> None:
        """Wall between source and (2, 0); (2, 4) is the same distance away."""
        field = solve(build_room(5, 5, walls=[(2, 1)], lamps=[(2, 2, 1000.0)]))
        lux = field["lux"][:, :, 0]
        assert lux[2, 0] < lux[2, 4]
        assert lux[2, 0] < lux[0, 2]

    def test_inserting_an_occluder_never_brightens_the_target(self) -> None:
        open_field = solve(build_room(5, 5, lamps=[(2, 2, 1000.0)]))
        walled = solve(build_room(5, 5, walls=[(2, 1)], lamps=[(2, 2, 1000.0)]))
        assert walled["lux"][2, 0, 0] <= open_field["lux"][2, 0, 0]

    def test_opaque_emitter_keeps_light_inside(self) -> None:
        """A glowing wall lights itself but not its surroundings."""
        glowing_wall = Behavior(
            light=LightBehavior(
                emissivity_lumens=1000.0,
                transmissivity_factor=config.OPAQUE_TRANSMISSIVITY_FACTOR,
                see_through=False,
            ),
            player_collision=True,
        )
        placements = [(Position(2, 2), glowing_wall)]
        field = solve(placements)
        lux = field["lux"][:, :, 0]
        assert lux[2, 2] > 0.0
        assert lux[0, 0] < 0.01 * lux[2, 2]
        open_lamp = solve([(Position(2, 2), lamp_behavior(1000.0))])
        assert lux[0, 0] < 0.01 * open_lamp["lux"][0, 0, 0]

    def test_transmissivity_is_unchanged_by_passes(self) -> None:
        placements = build_room(5, 5, walls=[(2, 1)], lamps=[(2, 2, 1000.0)])
        seed = seed_light_field(ROOM, placements)
        field = solve(placements)
        np.testing.assert_array_equal(field["transmissivity"], seed["transmissivity"])


class TestConfiguration:
    def test_default_passes_shrink_in_radius(self) -> None:
        radii = [p.radius for p in PropagationConfig().passes]
        assert radii == sorted(radii, reverse=True)
        assert radii[0] == 26

    def test_pass_radius_must_fit_the_angular_cache(self) -> None:
        too_wide = PropagationConfig(passes=[PropagationPass(40, 0.001, np.inf, 1.01)])
        with pytest.raises(ValueError):
            LightPropagationSolver(ROOM, too_wide)

    def test_each_depth_layer_propagates_independently(self) -> None:
        placements = [(Position(1, 1, 0), lamp_behavior(1000.0))]
        field = solve(placements, map_size=(3, 3, 2))
        assert field["lux"][1, 1, 0] > 0.0
        assert (field["lux"][:, :, 1] == 0.0).all()
