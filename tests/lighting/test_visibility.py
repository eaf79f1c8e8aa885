import numpy as np
import pytest

from lumenfield import config
from lumenfield.environment.fields import new_collision_field
from lumenfield.geometry import Position
from lumenfield.lighting.visibility import VisibilityConfig, compute_visibility
from tests.helpers import build_room, collision_for, ring_walls


def open_collision(width: int, height: int) -> np.ndarray:
    return collision_for((width, height, 1), build_room(width, height))


def test_viewer_cell_is_fully_visible() -> None:
    vis = compute_visibility(open_collision(9, 9), Position(4, 4))
    assert vis[4, 4, 0] == 1.0


def test_values_stay_in_unit_interval() -> None:
    vis = compute_visibility(open_collision(15, 15), Position(3.2, 7.6))
    assert vis.shape == (15, 15, 1)
    assert (vis >= 0.0).all()
    assert (vis <= 1.0).all()


def test_adjacent_cells_are_fully_visible() -> None:
    vis = compute_visibility(open_collision(9, 9), Position(4, 4))
    for dx in (-1, 0, 1):
        for dy in (-1, 0, 1):
            assert vis[4 + dx, 4 + dy, 0] == pytest.approx(1.0)


def test_visibility_fades_along_a_corridor() -> None:
    corridor = collision_for((30, 1, 1), build_room(30, 1))
    outdoors = np.zeros(corridor.shape, dtype=bool)
    vis = compute_visibility(corridor, Position(0, 0), interior=outdoors)
    line = vis[:, 0, 0]
    assert line[3] > line[6] > line[9] > 0.0


def test_enclosed_viewer_sees_only_the_ring() -> None:
    """Viewer boxed in by eight walls: nothing past the ring is reached."""
    placements = build_room(7, 7, walls=ring_walls(3, 3))
    vis = compute_visibility(collision_for((7, 7, 1), placements), Position(3, 3))

    assert vis[3, 3, 0] == 1.0
    ring = ring_walls(3, 3)
    for x, y in ring:
        # Walls themselves are seen, they just do not pass the flood on.
        assert vis[x, y, 0] > 0.0
    outside = np.ones((7, 7), dtype=bool)
    outside[2:5, 2:5] = False
    assert (vis[:, :, 0][outside] == 0.0).all()


def test_wall_casts_visibility_shadow() -> None:
    placements = build_room(11, 11, walls=[(5, 4), (4, 4), (6, 4)])
    vis = compute_visibility(collision_for((11, 11, 1), placements), Position(5, 6))
    # Straight behind the wall vs the same distance in the open.
    assert vis[5, 2, 0] < vis[5, 10, 0]


def test_absent_collision_data_blocks_the_flood() -> None:
    """Cells nobody placed anything on are opaque."""
    collision = new_collision_field((5, 5, 1))
    collision["player_free"][2, 2, 0] = True
    vis = compute_visibility(collision, Position(2, 2))
    assert vis[2, 2, 0] == 1.0
    assert vis[0, 0, 0] == 0.0


def test_viewer_off_the_board_sees_nothing() -> None:
    vis = compute_visibility(open_collision(5, 5), Position(-3, 2))
    assert (vis == 0.0).all()


def test_see_through_cells_expand_even_when_blocked() -> None:
    """Glass: not walkable, but the flood continues through it."""
    collision = open_collision(9, 3)
    collision["player_free"][4, :, 0] = False
    vis = compute_visibility(collision, Position(1, 1))
    assert vis[7, 1, 0] > 0.0

    collision["see_through"][4, :, 0] = False
    blocked = compute_visibility(collision, Position(1, 1))
    assert blocked[7, 1, 0] == 0.0


class TestRangeClassification:
    @pytest.fixture
    def collision(self) -> np.ndarray:
        return open_collision(21, 21)

    def test_interior_cells_fade_faster(self, collision: np.ndarray) -> None:
        viewer = Position(10, 10)
        indoors = compute_visibility(
            collision, viewer, interior=np.ones(collision.shape, dtype=bool)
        )
        outdoors = compute_visibility(
            collision, viewer, interior=np.zeros(collision.shape, dtype=bool)
        )
        assert indoors[10, 16, 0] < outdoors[10, 16, 0]

    def test_web_profile_has_shorter_exterior_range(
        self, collision: np.ndarray
    ) -> None:
        viewer = Position(10, 10)
        exterior = np.zeros(collision.shape, dtype=bool)
        desktop = compute_visibility(
            collision, viewer, exterior, VisibilityConfig.for_profile("desktop")
        )
        web = compute_visibility(
            collision, viewer, exterior, VisibilityConfig.for_profile("web")
        )
        assert web[10, 17, 0] < desktop[10, 17, 0]

    def test_unclassified_uses_short_range(self) -> None:
        cfg = VisibilityConfig()
        assert cfg.unclassified_range == config.VISIBILITY_UNCLASSIFIED_RANGE
        assert cfg.exterior_range == config.VISIBILITY_EXTERIOR_RANGE["desktop"]
