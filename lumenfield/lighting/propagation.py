"""
Multi-pass light propagation.

The solver approximates diffuse light transport on the board in a fixed number
of passes over the whole grid:

1. Seed every cell from the entities placed on it (emissivity, color,
   transmissivity, spectral lux).
2. For each pass, every cell whose lux falls inside the pass bounds hands a
   portion of its light to all cells within the pass radius, with
   inverse-square falloff measured from a light mounted ``LIGHT_HEIGHT`` above
   the floor.
3. Shadows are rasterized per source cell: every occluder inside the radius
   floors a 48-sector ``shadow_dist`` buffer over the angular span it covers
   (looked up in the angular cache). Destinations beyond the floor for their
   sector fade out through a tanh edge instead of a hard cutoff.

The first pass has a large radius and carries primary falloff. Later passes
only bounce light locally, are damped harder, and skip cells whose
neighborhood has too little contrast to matter.

Every pass reads a snapshot of the previous pass and writes into a separate
accumulator, so cells inside a pass never observe each other's writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from lumenfield import config
from lumenfield.environment.behavior import placements_by_cell
from lumenfield.environment.fields import (
    SPECTRAL_CHANNELS,
    field_size,
    new_light_field,
)
from lumenfield.lighting.angular_cache import AngularCache, get_angular_cache
from lumenfield.lighting.base import LightFieldSolver
from lumenfield.util.live_vars import record_time_live_variable

if TYPE_CHECKING:
    from lumenfield.environment.behavior import Placement
    from lumenfield.types import MapSize

logger = logging.getLogger(__name__)


class PropagationPass(NamedTuple):
    """Settings for one pass over the grid."""

    radius: int
    min_lux: float
    max_lux: float
    damping: float


@dataclass
class PropagationConfig:
    """Tuning for `LightPropagationSolver`. Defaults come from `config`."""

    passes: list[PropagationPass] = field(
        default_factory=lambda: [PropagationPass(*p) for p in config.PROPAGATION_PASSES]
    )
    light_height: float = config.LIGHT_HEIGHT
    normalizer: float = config.DISTRIBUTION_NORMALIZER
    bleed_tiles: float = config.BLEED_TILES
    shadow_margin: float = config.SHADOW_MARGIN
    opaque_threshold: float = config.OPAQUE_THRESHOLD
    bounce_min_contrast: float = config.BOUNCE_MIN_CONTRAST
    bounce_clear_transmissivity: float = config.BOUNCE_CLEAR_TRANSMISSIVITY
    bounce_min_source_ratio: float = config.BOUNCE_MIN_SOURCE_RATIO


def seed_light_field(map_size: MapSize, placements: list[Placement]) -> np.ndarray:
    """Build the unpropagated light field from what is placed on each cell.

    Entities sharing a cell add their lux and spectral lux, multiply their
    transmissivity, and the brightest one decides the cell color. Cells with
    nothing on them keep the empty default. Placements outside the board are
    ignored.
    """
    seed = new_light_field(map_size)
    for cell, behaviors in placements_by_cell(placements).items():
        if not cell.in_bounds(map_size):
            continue
        lux = 0.0
        transmissivity = 1.0
        brightest = -1.0
        color = config.DEFAULT_LIGHT_COLOR
        spectral = dict.fromkeys(SPECTRAL_CHANNELS, 0.0)
        for behavior in behaviors:
            light = behavior.light
            emitted = light.emissivity()
            lux += emitted
            transmissivity *= (
                light.transmissivity_factor * config.DEFAULT_TRANSMISSIVITY
                + config.TRANSMISSIVITY_EPSILON
            )
            spectral[light.spectral_type.channel] += emitted
            if emitted > brightest:
                brightest = emitted
                color = light.color

        idx = cell.ndidx()
        seed["lux"][idx] = lux
        seed["color"][idx] = color
        seed["transmissivity"][idx] = transmissivity
        for channel, value in spectral.items():
            seed["spectral"][channel][idx] = value
    return seed


def _neighborhood_stats(
    lux: np.ndarray, transmissivity: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-cell min lux, max lux and min transmissivity over the 3x3 xy block.

    Out-of-bounds neighbors are ignored.
    """
    width, height, _depth = lux.shape
    pad = ((1, 1), (1, 1), (0, 0))
    lux_low = np.pad(lux, pad, constant_values=np.inf)
    lux_high = np.pad(lux, pad, constant_values=-np.inf)
    trans_low = np.pad(transmissivity, pad, constant_values=np.inf)

    min_lux = np.full(lux.shape, np.inf)
    max_lux = np.full(lux.shape, -np.inf)
    min_trans = np.full(lux.shape, np.inf)
    for dx in range(3):
        for dy in range(3):
            window = (slice(dx, dx + width), slice(dy, dy + height))
            np.minimum(min_lux, lux_low[window], out=min_lux)
            np.maximum(max_lux, lux_high[window], out=max_lux)
            np.minimum(min_trans, trans_low[window], out=min_trans)
    return min_lux, max_lux, min_trans


class LightPropagationSolver(LightFieldSolver):
    """Full rebuild of the light field from placements."""

    name = "propagation"

    def __init__(
        self,
        map_size: MapSize,
        propagation_config: PropagationConfig | None = None,
        cache: AngularCache | None = None,
    ) -> None:
        super().__init__(map_size)
        self.config = propagation_config or PropagationConfig()
        self.cache = cache or get_angular_cache()
        for step in self.config.passes:
            if step.radius > self.cache.radius:
                raise ValueError(
                    f"Pass radius {step.radius} exceeds angular cache radius "
                    f"{self.cache.radius}"
                )

    def solve(
        self, placements: list[Placement], collision: np.ndarray
    ) -> np.ndarray:
        # Occlusion comes from seeded transmissivity; collision is not read.
        with record_time_live_variable(self.timing_metric):
            light_field = seed_light_field(self.map_size, placements)
            return self.propagate(light_field)

    def propagate(self, seed: np.ndarray) -> np.ndarray:
        """Run every configured pass over a seeded field and return the result."""
        result = seed.copy()
        for index, step in enumerate(self.config.passes):
            with record_time_live_variable("time.lighting.pass_ms"):
                result["lux"] = self._run_pass(result, step, bounce=index > 0)
            logger.debug(
                f"Propagation pass {index} (radius {step.radius}): "
                f"total lux {float(result['lux'].sum()):.3f}"
            )
        return result

    def _run_pass(
        self, light_field: np.ndarray, step: PropagationPass, *, bounce: bool
    ) -> np.ndarray:
        cfg = self.config
        cache = self.cache
        snapshot = light_field["lux"].copy()
        transmissivity = light_field["transmissivity"]
        out = snapshot.copy()
        width, height, _depth = field_size(light_field)

        active = (snapshot >= step.min_lux) & (snapshot <= step.max_lux)
        if bounce:
            min_lux, max_lux, min_trans = _neighborhood_stats(snapshot, transmissivity)
            contrast = max_lux / (min_lux + config.EPSILON)
            low_contrast = contrast < cfg.bounce_min_contrast
            no_wall_nearby = (min_trans > cfg.bounce_clear_transmissivity) & (
                snapshot / (min_lux + config.EPSILON) < cfg.bounce_min_source_ratio
            )
            active &= ~(low_contrast | no_wall_nearby)

        radius = step.radius
        buckets = cache.buckets
        center = cache.radius
        for x, y, z in np.argwhere(active):
            portion = snapshot[x, y, z] / step.damping
            out[x, y, z] -= portion

            x0, x1 = max(0, x - radius), min(width, x + radius + 1)
            y0, y1 = max(0, y - radius), min(height, y + radius + 1)
            cx = slice(x0 - x + center, x1 - x + center)
            cy = slice(y0 - y + center, y1 - y + center)
            dist = cache.distance[cx, cy]
            bucket = cache.bucket[cx, cy]

            if transmissivity[x, y, z] < cfg.opaque_threshold:
                # An opaque emitter keeps its light to itself.
                shadow_dist = np.zeros(buckets)
            else:
                shadow_dist = np.full(buckets, radius + 1.0)
                occluders = transmissivity[x0:x1, y0:y1, z] < cfg.opaque_threshold
                if occluders.any():
                    self._cast_shadows(
                        shadow_dist,
                        dist[occluders],
                        bucket[occluders],
                        cache.range_min[cx, cy][occluders],
                        cache.range_max[cx, cy][occluders],
                    )

            sd = shadow_dist[bucket]
            add = portion / (dist + cfg.light_height) ** 2 / cfg.normalizer
            fade = (np.tanh((sd - dist - 0.5) / cfg.bleed_tiles) + 1.0) / 2.0
            out[x0:x1, y0:y1, z] += np.where(
                dist - cfg.shadow_margin < sd, add * fade, 0.0
            )

        return out

    @staticmethod
    def _cast_shadows(
        shadow_dist: np.ndarray,
        dist: np.ndarray,
        bucket: np.ndarray,
        range_min: np.ndarray,
        range_max: np.ndarray,
    ) -> None:
        """Floor ``shadow_dist`` with each occluder's distance across its span."""
        spans = range_max - range_min + 1
        starts = np.repeat(bucket + range_min, spans)
        # Position of each expanded entry within its own span.
        span_starts = np.cumsum(spans) - spans
        offsets = np.arange(int(spans.sum())) - np.repeat(span_starts, spans)
        sectors = np.mod(starts + offsets, shadow_dist.shape[0])
        np.minimum.at(shadow_dist, sectors, np.repeat(dist, spans))
