from __future__ import annotations

from collections.abc import Sequence
from contextlib import contextmanager, nullcontext, suppress
from dataclasses import dataclass
from time import perf_counter
from typing import NamedTuple

from .metrics import MostRecentNVar, StatsVar


class MetricSpec(NamedTuple):
    """Definition for a metric to register in batch."""

    name: str
    description: str
    num_samples: int = 100


@dataclass
class LiveVariable:
    """A timing metric exposed for live inspection."""

    name: str
    description: str
    stats_var: StatsVar

    def get_value(self) -> str:
        if self.stats_var.sample_count == 0:
            return "No samples"
        return self.stats_var.get_percentiles_string()

    def record_value(self, value: float) -> None:
        self.stats_var.record(value)


class LiveVariableRegistry:
    """Registry for all ``LiveVariable`` instances.

    When ``strict`` is ``True`` (the default), recording a metric that has not
    been registered raises immediately. The engines register their own metrics
    when they are constructed or first run.
    """

    def __init__(self) -> None:
        self._variables: dict[str, LiveVariable] = {}
        self.strict: bool = True

    def register_metric(
        self,
        name: str,
        description: str = "",
        stats_type: type[StatsVar] = MostRecentNVar,
        num_samples: int = 1000,
    ) -> LiveVariable:
        """Register a write-only variable that only tracks statistics.

        Args:
            name: Variable name, dotted by subsystem (``time.lighting.full_ms``)
            description: Human-readable description
            stats_type: StatsVar subclass used for the samples
            num_samples: Number of samples to keep

        Returns:
            The created LiveVariable
        """
        if name in self._variables:
            raise ValueError(f"Live variable '{name}' already registered")

        live_var = LiveVariable(
            name=name, description=description, stats_var=stats_type(num_samples)
        )
        self._variables[name] = live_var
        return live_var

    def register_metrics(self, specs: Sequence[MetricSpec]) -> None:
        """Register multiple metrics from a list of ``MetricSpec`` entries.

        Specs whose name is already registered are left untouched so repeated
        setup calls stay harmless.
        """
        for spec in specs:
            if spec.name in self._variables:
                continue
            self.register_metric(
                spec.name, description=spec.description, num_samples=spec.num_samples
            )

    def get_variable(self, name: str) -> LiveVariable | None:
        return self._variables.get(name)

    def record_metric(self, name: str, value: float) -> None:
        """Record a value to a metric variable.

        Raises:
            KeyError: If the metric name is not registered.
        """
        var = self.get_variable(name)
        if var is None:
            raise KeyError(f"Metric '{name}' is not registered")
        var.record_value(value)


# Global registry instance used by every engine
live_variable_registry = LiveVariableRegistry()


# Works as both a context manager and a decorator:
#   with record_time_live_variable("time.lighting.full_ms"): ...
#   @record_time_live_variable("time.lighting.full_ms")
@contextmanager
def record_time_live_variable(metric_name: str):
    """Record elapsed wall-clock time (ms) to the named metric.

    In strict mode, raises ``KeyError`` if the metric is not registered. With
    ``strict`` off, unregistered metrics are silently skipped.
    """
    start = perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (perf_counter() - start) * 1000
        ctx = nullcontext() if live_variable_registry.strict else suppress(KeyError)
        with ctx:
            live_variable_registry.record_metric(metric_name, elapsed_ms)
