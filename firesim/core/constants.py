"""
FireSim Constants

Global constants and enumerations used throughout the scenario generation pipeline.
"""

from enum import Enum
from typing import Dict

# =============================================================================
# VERSION INFO
# =============================================================================
VERSION = "1.0.0"
PROJECT_NAME = "FireSim Scenario Generator"


# =============================================================================
# VIEWPOINTS
# =============================================================================

class ViewPoint(str, Enum):
    """Camera positions available for scenario images."""
    AERIAL = "aerial"
    HELICOPTER_NORTH = "helicopter_north"
    HELICOPTER_SOUTH = "helicopter_south"
    HELICOPTER_EAST = "helicopter_east"
    HELICOPTER_WEST = "helicopter_west"
    HELICOPTER_ABOVE = "helicopter_above"
    GROUND_NORTH = "ground_north"
    GROUND_SOUTH = "ground_south"
    GROUND_EAST = "ground_east"
    GROUND_WEST = "ground_west"
    GROUND_ABOVE = "ground_above"
    RIDGE = "ridge"

    @property
    def category(self) -> str:
        """Viewpoint family, e.g. 'ground' for ground_north."""
        return self.value.split("_")[0]


MIN_VIEWPOINTS = 1
MAX_VIEWPOINTS = 10


# =============================================================================
# SCENARIO INPUT ENUMS
# =============================================================================

class CompassDirection(str, Enum):
    """8-point compass direction used for wind and aspect."""
    N = "N"
    NE = "NE"
    E = "E"
    SE = "SE"
    S = "S"
    SW = "SW"
    W = "W"
    NW = "NW"


class TimeOfDay(str, Enum):
    """Time of day driving the lighting description."""
    DAWN = "dawn"
    MORNING = "morning"
    MIDDAY = "midday"
    AFTERNOON = "afternoon"
    DUSK = "dusk"
    NIGHT = "night"


class FireIntensity(str, Enum):
    """Qualitative fire intensity tiers, lowest first."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "veryHigh"
    EXTREME = "extreme"
    CATASTROPHIC = "catastrophic"


class FireStage(str, Enum):
    """Development stage of the fire."""
    SPOT_FIRE = "spotFire"
    DEVELOPING = "developing"
    ESTABLISHED = "established"
    MAJOR = "major"


class DataConfidence(str, Enum):
    """Confidence reported by the geo/vegetation lookup."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Input ranges accepted by request validation
WIND_SPEED_RANGE = (0.0, 120.0)      # km/h
TEMPERATURE_RANGE = (-10.0, 55.0)    # degrees Celsius
HUMIDITY_RANGE = (0.0, 100.0)        # percent


# =============================================================================
# GENERATION JOB
# =============================================================================

class JobStatus(str, Enum):
    """Lifecycle states of a generation job."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed state transitions; terminal states have none
JOB_TRANSITIONS: Dict[JobStatus, tuple] = {
    JobStatus.PENDING: (JobStatus.IN_PROGRESS, JobStatus.FAILED),
    JobStatus.IN_PROGRESS: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
}

# Upper bound (exclusive) for randomly drawn seeds
MAX_SEED_VALUE = 1_000_000


# =============================================================================
# CONSISTENCY VALIDATION
# =============================================================================

CHECK_SMOKE_DIRECTION = "Smoke Direction Consistency"
CHECK_FIRE_SIZE = "Fire Size Proportionality"
CHECK_LIGHTING = "Lighting Consistency"
CHECK_COLOR_PALETTE = "Color Palette Similarity"

CONSISTENCY_WEIGHTS: Dict[str, float] = {
    CHECK_SMOKE_DIRECTION: 0.30,
    CHECK_FIRE_SIZE: 0.20,
    CHECK_LIGHTING: 0.25,
    CHECK_COLOR_PALETTE: 0.25,
}

# Per-check pass threshold for the prompt-coverage checks (percent)
COVERAGE_CHECK_THRESHOLD = 80
# Per-check threshold for heuristic checks and the aggregate score
CONSISTENCY_PASS_THRESHOLD = 70
