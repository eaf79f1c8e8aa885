from __future__ import annotations

from enum import Enum
from typing import Literal, NewType, TypeAlias

# =============================================================================
# SPATIAL TYPES
# =============================================================================

GridCoord: TypeAlias = int  # Always integer cell position

# Board dimensions as (width, height, depth) in cells.
MapSize: TypeAlias = tuple[int, int, int]  # Example: (40, 30, 2)

# NumPy index into a dense board array, always (x, y, z).
NdIndex: TypeAlias = tuple[int, int, int]

# Continuous world coordinate (sub-cell precision).
WorldCoord: TypeAlias = float

# =============================================================================
# LIGHT-RELATED TYPES
# =============================================================================

# Float RGB color in 0.0-1.0 linear space.
ColorRGBf: TypeAlias = tuple[float, float, float]

# Identifier assigned to each static light source at bake time.
LightSourceId = NewType("LightSourceId", int)

# Sentinel stored in prebaked grids for cells with no owning source.
NO_SOURCE: int = -1

# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

DeploymentProfileName: TypeAlias = Literal["desktop", "web"]


class SpectralType(Enum):
    """Spectral band of a light source.

    Each band has its own viewer-sensitivity multiplier used by the exposure
    controller: the eye barely reacts to a red torch but a white flashlight
    pulls exposure down hard.
    """

    VISIBLE = ("visible", 1.0)
    RED = ("red", 0.003)
    INFRARED = ("infrared", 0.5)
    ULTRAVIOLET = ("ultraviolet", 0.5)

    channel: str
    eye_sensitivity: float

    def __init__(self, channel: str, eye_sensitivity: float) -> None:
        self.channel = channel
        self.eye_sensitivity = eye_sensitivity
