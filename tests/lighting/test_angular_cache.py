import numpy as np
import pytest

from lumenfield import config
from lumenfield.lighting.angular_cache import AngularCache, get_angular_cache


@pytest.fixture(scope="module")
def cache() -> AngularCache:
    return get_angular_cache()


def test_tables_cover_the_whole_window(cache: AngularCache) -> None:
    size = config.ANGULAR_CACHE_RADIUS * 2 + 1
    for table in (cache.distance, cache.bucket, cache.range_min, cache.range_max):
        assert table.shape == (size, size)


@pytest.mark.parametrize(
    ("dx", "dy", "expected"),
    [
        (1, 0, 0),
        (1, 1, 6),
        (0, 1, 12),
        (-1, 0, 24),  # y == 0 counts as the positive half-plane
        (0, -1, 36),
        (1, -1, 42),
    ],
)
def test_bucket_quantizes_direction(
    cache: AngularCache, dx: int, dy: int, expected: int
) -> None:
    assert cache.bucket_at(dx, dy) == expected


def test_distance_is_euclidean(cache: AngularCache) -> None:
    assert cache.distance_at(3, 4) == pytest.approx(5.0)
    assert cache.distance_at(-5, -12) == pytest.approx(13.0)
    assert cache.distance_at(0, 0) == 0.0


def test_zero_offset_is_special_cased(cache: AngularCache) -> None:
    assert cache.bucket_at(0, 0) == 0
    assert cache.range_at(0, 0) == (0, 0)


def test_adjacent_occluder_spans_a_quarter_turn(cache: AngularCache) -> None:
    """A wall right next to the source hides +-45 degrees around it."""
    assert cache.range_at(1, 0) == (-6, 6)
    assert cache.range_at(0, -1) == (-6, 6)


def test_distant_occluder_spans_a_single_bucket(cache: AngularCache) -> None:
    assert cache.range_at(30, 0) == (0, 0)


def test_range_always_contains_own_bucket(cache: AngularCache) -> None:
    assert (cache.range_min <= 0).all()
    assert (cache.range_max >= 0).all()
    assert (cache.range_min <= cache.range_max).all()
    assert ((cache.bucket >= 0) & (cache.bucket < config.ANGLE_BUCKETS)).all()


def test_tables_are_deterministic() -> None:
    a = AngularCache(radius=8)
    b = AngularCache(radius=8)
    np.testing.assert_array_equal(a.bucket, b.bucket)
    np.testing.assert_array_equal(a.range_min, b.range_min)
    np.testing.assert_array_equal(a.range_max, b.range_max)


def test_smaller_window_agrees_with_shared_cache(cache: AngularCache) -> None:
    small = AngularCache(radius=4)
    window = cache.window(4)
    np.testing.assert_array_equal(small.bucket, cache.bucket[window])
    np.testing.assert_array_equal(small.range_min, cache.range_min[window])


def test_offset_outside_window_raises(cache: AngularCache) -> None:
    with pytest.raises(IndexError):
        cache.bucket_at(config.ANGULAR_CACHE_RADIUS + 1, 0)
    with pytest.raises(IndexError):
        cache.window(config.ANGULAR_CACHE_RADIUS + 1)


def test_tables_are_read_only(cache: AngularCache) -> None:
    with pytest.raises(ValueError):
        cache.bucket[0, 0] = 1


def test_shared_cache_is_built_once() -> None:
    assert get_angular_cache() is get_angular_cache()
