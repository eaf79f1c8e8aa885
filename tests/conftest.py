from __future__ import annotations

from collections.abc import Iterator

import pytest

from lumenfield.events import reset_event_bus_for_testing
from lumenfield.util.live_vars import live_variable_registry


@pytest.fixture(autouse=True)
def clear_live_variable_registry() -> Iterator[None]:
    """Clear the global live variable registry before and after each test.

    Strict mode is off so tests can record ad hoc metric names; the engines
    register their own metrics either way.
    """
    live_variable_registry._variables.clear()
    live_variable_registry.strict = False
    yield
    live_variable_registry._variables.clear()
    live_variable_registry.strict = True


@pytest.fixture(autouse=True)
def fresh_event_bus() -> Iterator[None]:
    reset_event_bus_for_testing()
    yield
    reset_event_bus_for_testing()
