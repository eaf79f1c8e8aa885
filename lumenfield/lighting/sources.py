"""Handheld and deployed light sources.

These lights are not part of the propagated light field; the presentation
layer draws their beams separately. The engine only needs them for exposure,
because the eye adapts to a flashlight shining right next to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lumenfield import config
from lumenfield.geometry import Position
from lumenfield.types import ColorRGBf, SpectralType


class LightSourceKind(Enum):
    """The fixed set of gear that emits light."""

    FLASHLIGHT = SpectralType.VISIBLE
    UV_TORCH = SpectralType.ULTRAVIOLET
    RED_TORCH = SpectralType.RED
    VIDEOCAM = SpectralType.INFRARED  # Night-vision illuminator

    @property
    def spectral_type(self) -> SpectralType:
        return self.value


@dataclass(frozen=True)
class HandheldLight:
    """A light carried by a player or deployed on the floor."""

    kind: LightSourceKind
    power: float
    position: Position
    color: ColorRGBf = config.DEFAULT_LIGHT_COLOR

    @property
    def spectral_type(self) -> SpectralType:
        return self.kind.spectral_type

    @property
    def is_on(self) -> bool:
        return self.power > 0.0

    def perceived_power(self, viewer: Position) -> float:
        """Power as felt by the viewer's eye, with inverse-square falloff.

        The ``+ 1`` keeps a light held by the viewer finite.
        """
        dist2 = (
            (self.position.x - viewer.x) ** 2
            + (self.position.y - viewer.y) ** 2
            + (self.position.z - viewer.z) ** 2
        )
        return self.power * self.spectral_type.eye_sensitivity / (dist2 + 1.0)
