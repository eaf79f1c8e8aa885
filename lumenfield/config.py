"""
Configuration constants.

Centralizes all magic numbers and tuning values used by the lighting and
visibility engines. Organized by functional area for easy maintenance.
Per-subsystem dataclass configs read their defaults from here.
"""

from lumenfield.types import ColorRGBf, DeploymentProfileName

# =============================================================================
# GENERAL
# =============================================================================

# "desktop" gives daylight a longer reach outdoors; "web" trades range for
# cheaper visibility floods on constrained targets.
DEPLOYMENT_PROFILE: DeploymentProfileName = "desktop"

# Generic guard added to denominators that can otherwise reach zero.
EPSILON = 1e-4

# =============================================================================
# ANGULAR CACHE
# =============================================================================

# Half-width of the cached offset window. Any propagation radius must fit.
ANGULAR_CACHE_RADIUS = 32

# Number of angular sectors (7.5 degrees each).
ANGLE_BUCKETS = 48

# =============================================================================
# LIGHT FIELD
# =============================================================================

# Transmissivity of a cell with no geometry on it.
DEFAULT_TRANSMISSIVITY = 1.0

# Transmissivity factor of non-opaque geometry. Slightly above 1 so open air
# retains a little light; this is a tuning value, not a physical transmittance.
OPEN_TRANSMISSIVITY_FACTOR = 1.01

# Factor used for walls and other light blockers.
OPAQUE_TRANSMISSIVITY_FACTOR = 0.00001

# Added to every seeded transmissivity so nothing divides by an exact zero.
TRANSMISSIVITY_EPSILON = 0.0001

# Cells below this transmissivity cast shadows.
OPAQUE_THRESHOLD = 0.5

DEFAULT_LIGHT_COLOR: ColorRGBf = (1.0, 1.0, 1.0)

# =============================================================================
# PROPAGATION
# =============================================================================

# Per-pass settings: (radius, min_lux, max_lux, damping). The first pass
# carries long-range falloff; the later ones only model local bounce.
PROPAGATION_PASSES: tuple[tuple[int, float, float, float], ...] = (
    (26, 0.001, float("inf"), 1.01),
    (6, 0.000001, 10000.0, 5.5),
    (3, 0.0000000001, 1000.0, 5.5),
)

# Height of the virtual light above the floor plane, in cells.
LIGHT_HEIGHT = 4.0

# Normalizer applied to every distributed contribution.
DISTRIBUTION_NORMALIZER = 2.0

# Width of the soft shadow edge, in cells. Values around 0.5 look uneven.
BLEED_TILES = 0.8

# Destinations further than this past their shadow floor get nothing.
SHADOW_MARGIN = 3.0

# Bounce-pass early exit: skip cells whose neighborhood contrast is low.
BOUNCE_MIN_CONTRAST = 1.2
# Bounce-pass early exit: no wall nearby and not much brighter than the
# darkest neighbor.
BOUNCE_CLEAR_TRANSMISSIVITY = 0.7
BOUNCE_MIN_SOURCE_RATIO = 1.9

# =============================================================================
# VISIBILITY
# =============================================================================

# Cells closer than this to the viewer always receive full visibility.
VISIBILITY_NEAR_RADIUS = 1.5

# Contributions below this are dropped; bounds the flood on open maps.
VISIBILITY_THRESHOLD = 0.00001

# Range constants dividing visibility with distance.
VISIBILITY_INTERIOR_RANGE = 3.0
VISIBILITY_EXTERIOR_RANGE: dict[DeploymentProfileName, float] = {
    "desktop": 7.0,
    "web": 4.0,
}
# Used when no interior classifier is supplied (deployed gear, sensors).
VISIBILITY_UNCLASSIFIED_RANGE = 3.0
VISIBILITY_MAX_RANGE_PENALTY = 6.0

# =============================================================================
# EXPOSURE
# =============================================================================

# Difficulty-style knobs. Higher gamma compresses bright areas, higher
# darkness makes the eye slower and the dark darker.
ENVIRONMENT_GAMMA = 1.0
DARKNESS_INTENSITY = 1.0

# Control loop: accel = (accel * K + desired * speed) / (K + speed)
EXPOSURE_SMOOTHING = 50.0
EYE_SPEED = 1.0
# Damps the loop by penalizing the current acceleration in the desired ratio.
EXPOSURE_ACCEL_DAMPING_POWER = 10
# Exposure may change by at most this factor per tick.
EXPOSURE_MAX_ACCEL = 1.05

# Divides the target so the scene reads a little brighter.
EXPOSURE_BRIGHTNESS_COMPENSATION = 2.4
# Floor on the target; controls how dark the viewer can still see.
EXPOSURE_MIN_FLOOR = 0.001
# Weight of handheld lights seen by the viewer.
EXPOSURE_HANDHELD_WEIGHT = 2.0

INITIAL_EXPOSURE = 1.0

# =============================================================================
# PREBAKED LIGHTING
# =============================================================================

# Transparency used for dynamic cells during re-propagation. Dynamic cells are
# modeled as fully open or closed, never by their authored value.
DYNAMIC_OPEN_TRANSPARENCY = 0.9
DYNAMIC_CLOSED_TRANSPARENCY = 0.05

# Transparency of each static see-through step while baking.
STATIC_STEP_TRANSPARENCY = 0.9

# Prebaked cells at or below this lux are not applied.
PREBAKED_MIN_LUX = 0.001

# Floods stop once a step contributes less than this.
WAVE_MIN_LUX = 0.0001

# A candidate addition must be at least half of the current value to spread.
WAVE_DIMINISHING_RATIO = 2.0
