"""Global event bus for rebuild requests and publication notices.

Rebuild requests arrive from whoever changes geometry (a door opening, a lamp
switched off) and are merged by the board updater into one rebuild per tick.
Publication events tell readers that a new field has been swapped in.

The bus is fire-and-forget: handlers run immediately and synchronously, and
a failing handler is logged without stopping the others. Anything that needs
a return value should call the board directly.
"""

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class BoardEvent:
    """Base class for all board events."""


@dataclass
class BoardDataToRebuild(BoardEvent):
    """Request to rebuild the collision field, the light field, or both."""

    collision: bool = False
    lighting: bool = False

    def merge(self, other: "BoardDataToRebuild") -> None:
        self.collision = self.collision or other.collision
        self.lighting = self.lighting or other.lighting

    @property
    def is_empty(self) -> bool:
        return not (self.collision or self.lighting)


@dataclass
class CollisionFieldPublished(BoardEvent):
    revision: int


@dataclass
class LightFieldPublished(BoardEvent):
    """A new light field has been swapped into the board.

    Attributes:
        revision: Monotonic light field revision on the board.
        exposure_lux: Baseline exposure reference of the new field.
        solver: Name of the solver that produced it.
    """

    revision: int
    exposure_lux: float
    solver: str


class EventBus:
    """Simple event bus for publish/subscribe pattern."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable]] = {}

    def subscribe(self, event_type: type, handler: Callable) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type, handler: Callable) -> None:
        if event_type in self._handlers:
            with suppress(ValueError):
                self._handlers[event_type].remove(handler)

    def publish(self, event: BoardEvent) -> None:
        """Publish an event to all subscribed handlers."""
        event_type = type(event)
        if event_type in self._handlers:
            # Copy so handlers may subscribe/unsubscribe during dispatch
            for handler in list(self._handlers[event_type]):
                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error handling event {event_type.__name__}")


_global_event_bus = EventBus()


def subscribe_to_event(event_type: type, handler: Callable) -> None:
    _global_event_bus.subscribe(event_type, handler)


def unsubscribe_from_event(event_type: type, handler: Callable) -> None:
    _global_event_bus.unsubscribe(event_type, handler)


def publish_event(event: BoardEvent) -> None:
    _global_event_bus.publish(event)


def reset_event_bus_for_testing() -> None:
    """Reset the global event bus. Use only in tests."""
    global _global_event_bus
    _global_event_bus = EventBus()
