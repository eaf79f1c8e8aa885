"""
Auto-exposure, modeled as an eye adapting to the light around the viewer.

Once per simulation tick the controller estimates a target exposure from the
lux around the viewer plus any handheld lights it can see, then moves the
current exposure toward it through a damped multiplicative loop. The
per-tick change is bounded so the scene never snaps between brightness
levels.

The presentation layer divides every lux value by the resulting exposure.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from lumenfield import config
from lumenfield.geometry import Position
from lumenfield.lighting.base import register_lighting_metrics
from lumenfield.lighting.sources import HandheldLight
from lumenfield.util.live_vars import record_time_live_variable

logger = logging.getLogger(__name__)


@dataclass
class ExposureConfig:
    """Tuning for the exposure controller. Defaults come from `config`."""

    environment_gamma: float = config.ENVIRONMENT_GAMMA
    darkness_intensity: float = config.DARKNESS_INTENSITY
    smoothing: float = config.EXPOSURE_SMOOTHING
    eye_speed: float = config.EYE_SPEED
    damping_power: int = config.EXPOSURE_ACCEL_DAMPING_POWER
    max_accel: float = config.EXPOSURE_MAX_ACCEL
    brightness_compensation: float = config.EXPOSURE_BRIGHTNESS_COMPENSATION
    min_floor: float = config.EXPOSURE_MIN_FLOOR
    handheld_weight: float = config.EXPOSURE_HANDHELD_WEIGHT

    @property
    def center(self) -> float:
        """Comfortable brightness the target is recentered around."""
        return 6.0 - self.environment_gamma

    @property
    def center_gamma(self) -> float:
        return 1.0 + self.darkness_intensity

    @property
    def speed(self) -> float:
        """Darker settings make the eye slower to adapt."""
        return self.eye_speed / math.sqrt(self.darkness_intensity)


@dataclass
class ExposureState:
    """Exposure that persists across ticks. Both values stay positive."""

    exposure: float = config.INITIAL_EXPOSURE
    exposure_accel: float = 1.0


class ExposureController:
    """Owns an `ExposureState` and advances it once per tick."""

    def __init__(
        self,
        exposure_config: ExposureConfig | None = None,
        state: ExposureState | None = None,
    ) -> None:
        self.config = exposure_config or ExposureConfig()
        self.state = state or ExposureState()
        register_lighting_metrics()

    @property
    def exposure(self) -> float:
        return self.state.exposure

    def target(
        self,
        light_field: np.ndarray,
        viewer: Position,
        lights: Iterable[HandheldLight] = (),
    ) -> float:
        """Exposure the eye would settle on if the scene stayed like this."""
        cfg = self.config
        gamma = cfg.environment_gamma

        cell = viewer.to_grid()
        width, height, depth = light_field.shape
        lux = np.zeros(0)
        if 0 <= cell.z < depth:
            lux = light_field["lux"][
                max(0, cell.x - 1) : max(0, min(width, cell.x + 2)),
                max(0, cell.y - 1) : max(0, min(height, cell.y + 2)),
                cell.z,
            ].ravel()

        # Gamma-weighted mean of the lux around the viewer.
        weighted = lux**gamma
        cursor = cfg.min_floor / gamma + float(weighted.sum())
        count = 0.1 + float((weighted / (lux + cfg.min_floor)).sum())
        cursor /= count
        cursor = (cursor / cfg.center) ** (1.0 / cfg.center_gamma) * cfg.center
        cursor += 0.00001

        handheld = sum(light.perceived_power(viewer) for light in lights if light.is_on)
        cursor += math.sqrt(handheld) * cfg.handheld_weight

        cursor += cfg.min_floor / gamma
        return cursor / cfg.brightness_compensation

    def update(
        self,
        light_field: np.ndarray,
        viewer: Position,
        lights: Iterable[HandheldLight] = (),
    ) -> float:
        """Advance exposure by one tick and return the new value.

        If any intermediate value is not finite the tick is discarded and the
        previous state is kept.
        """
        with record_time_live_variable("time.lighting.exposure_ms"):
            cfg = self.config
            state = self.state
            target = self.target(light_field, viewer, lights)

            desired = target / state.exposure / state.exposure_accel**cfg.damping_power
            accel = (state.exposure_accel * cfg.smoothing + desired * cfg.speed) / (
                cfg.smoothing + cfg.speed
            )
            accel = min(max(accel, 1.0 / cfg.max_accel), cfg.max_accel)
            exposure = state.exposure * accel

            if not all(math.isfinite(v) for v in (target, desired, accel, exposure)):
                logger.warning(
                    f"Discarding exposure update: target={target} desired={desired} "
                    f"accel={accel} exposure={exposure}"
                )
                return state.exposure

            state.exposure_accel = accel
            state.exposure = exposure
            return exposure
