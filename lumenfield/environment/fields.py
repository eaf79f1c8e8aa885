"""
Dense per-cell field grids.

Each field is a 3-D NumPy structured array of shape ``(width, height, depth)``
indexed with ``GridPosition.ndidx()``:

- `LightFieldData`: lux, color, transmissivity and per-band spectral lux.
  Written only by the light field solvers and replaced wholesale on publish.
- `CollisionFieldData`: passability and see-through flags, rebuilt from
  placements by the board. A cell nobody placed anything on keeps the
  default all-False record, i.e. opaque and impassable.
- `PrebakedLightingData`: the strongest static source reaching each cell, plus
  the wave edge left where that source's flood hit a dynamic cell.
"""

import numpy as np

from lumenfield import config
from lumenfield.types import NO_SOURCE, MapSize

# Lux per spectral band. Visible light drives presentation; the other bands
# are only read by gear that can sense them.
SpectralData = np.dtype(
    [
        ("visible", np.float64),
        ("infrared", np.float64),
        ("ultraviolet", np.float64),
        ("red", np.float64),
    ]
)

SPECTRAL_CHANNELS: tuple[str, ...] = SpectralData.names or ()

LightFieldData = np.dtype(
    [
        ("lux", np.float64),
        ("color", np.float64, (3,)),  # Linear RGB
        ("transmissivity", np.float64),  # < OPAQUE_THRESHOLD casts shadows
        ("spectral", SpectralData),
    ]
)

CollisionFieldData = np.dtype(
    [
        ("player_free", bool),
        ("ghost_free", bool),
        ("see_through", bool),
        ("is_dynamic", bool),  # Doors, switchable lamps: state may change later
    ]
)

PrebakedLightingData = np.dtype(
    [
        ("source_id", np.int32),  # NO_SOURCE when no static light reaches
        ("lux", np.float64),
        ("color", np.float64, (3,)),
        # Wave edge: where the static flood was cut by a dynamic cell.
        ("wave_edge", bool),
        ("wave_src_lux", np.float64),  # Residual light carried to the edge
        ("wave_distance", np.float64),  # Steps travelled from the source
    ]
)


def new_light_field(map_size: MapSize) -> np.ndarray:
    """Return an empty light field: no lux, white, default transmissivity."""
    field = np.zeros(map_size, dtype=LightFieldData)
    field["color"] = config.DEFAULT_LIGHT_COLOR
    field["transmissivity"] = config.DEFAULT_TRANSMISSIVITY
    return field


def new_collision_field(map_size: MapSize) -> np.ndarray:
    """Return a collision field where every cell is opaque and impassable."""
    return np.zeros(map_size, dtype=CollisionFieldData)


def new_prebaked_field(map_size: MapSize) -> np.ndarray:
    field = np.zeros(map_size, dtype=PrebakedLightingData)
    field["source_id"] = NO_SOURCE
    field["color"] = config.DEFAULT_LIGHT_COLOR
    return field


def field_size(field: np.ndarray) -> MapSize:
    width, height, depth = field.shape
    return (int(width), int(height), int(depth))
