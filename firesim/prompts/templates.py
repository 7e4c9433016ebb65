"""
Prompt Templates

Mapping tables and the versioned section template used to turn a scenario
request into natural-language image prompts.

The template version is part of every prompt's identity: changing any table
or section text here requires bumping ``DEFAULT_TEMPLATE.version``.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from firesim.core.constants import CompassDirection, FireIntensity, FireStage, TimeOfDay, ViewPoint


@dataclass(frozen=True)
class IntensityVisuals:
    """Visual characteristics for one intensity tier."""
    flame_height: str
    smoke: str
    crown_involvement: str
    spotting: str
    descriptor: str


@dataclass(frozen=True)
class PromptTemplate:
    """
    Versioned section template.

    ``scene``, ``fire`` and ``weather`` are ``str.format`` patterns filled by
    the composer; ``style`` and ``safety`` are fixed text.
    """
    id: str
    version: str
    style: str
    scene: str
    fire: str
    weather: str
    safety: str


# =============================================================================
# FIRE BEHAVIOUR
# =============================================================================

INTENSITY_VISUALS: Dict[FireIntensity, IntensityVisuals] = {
    FireIntensity.LOW: IntensityVisuals(
        flame_height="0.5 to 1.5 metres",
        smoke="light grey smoke drifting upward",
        crown_involvement="surface fire only, no crown involvement",
        spotting="no spotting activity",
        descriptor="Low intensity surface fire",
    ),
    FireIntensity.MODERATE: IntensityVisuals(
        flame_height="1.5 to 3 metres",
        smoke="grey-white smoke columns rising steadily",
        crown_involvement="occasional torching of individual trees",
        spotting="minimal short-range spotting",
        descriptor="Moderate intensity with occasional tree torching",
    ),
    FireIntensity.HIGH: IntensityVisuals(
        flame_height="3 to 10 metres",
        smoke="dense grey-black smoke columns",
        crown_involvement="intermittent crown fire with active runs",
        spotting="short-range spotting occurring",
        descriptor="High intensity with intermittent crown fire",
    ),
    FireIntensity.VERY_HIGH: IntensityVisuals(
        flame_height="10 to 20 metres",
        smoke="massive dark smoke columns forming pyrocumulus cloud",
        crown_involvement="active crown fire with sustained crowning",
        spotting="medium-range spotting ahead of the head fire",
        descriptor="Very high intensity with active crown fire",
    ),
    FireIntensity.EXTREME: IntensityVisuals(
        flame_height="20+ metres",
        smoke="towering pyrocumulonimbus cloud with dense ember rain",
        crown_involvement="full crown fire with complete canopy involvement",
        spotting="long-range spotting creating spot fires kilometres ahead",
        descriptor="Extreme intensity with full crown fire and ember attack",
    ),
    FireIntensity.CATASTROPHIC: IntensityVisuals(
        flame_height="30+ metres",
        smoke="massive pyrocumulonimbus system with severe turbulence and ember storms",
        crown_involvement="total canopy consumption with erratic fire behaviour",
        spotting="extensive long-range mass spotting far ahead of the fire front",
        descriptor="Catastrophic intensity with erratic, uncontrollable fire behaviour",
    ),
}

# (upper bound in metres, qualifier); the last band is open-ended
FLAME_HEIGHT_BANDS: Tuple[Tuple[float, str], ...] = (
    (0.5, "Smouldering ground fire with minimal flames"),
    (1.5, "Low surface fire with small flames"),
    (3.0, "Moderate surface fire with flames reaching into the shrub layer"),
    (8.0, "Intense fire with flames torching into the lower canopy"),
    (20.0, "Very intense fire with active crown fire"),
    (float("inf"), "Extreme fire with full crown involvement and towering flames"),
)

FIRE_STAGE_DESCRIPTIONS: Dict[FireStage, str] = {
    FireStage.SPOT_FIRE: "spot fire",
    FireStage.DEVELOPING: "developing bushfire",
    FireStage.ESTABLISHED: "established bushfire",
    FireStage.MAJOR: "major campaign fire",
}

# Head fire runs downwind, i.e. opposite to where the wind comes from
SPREAD_DIRECTIONS: Dict[CompassDirection, str] = {
    CompassDirection.N: "south",
    CompassDirection.NE: "southwest",
    CompassDirection.E: "west",
    CompassDirection.SE: "northwest",
    CompassDirection.S: "north",
    CompassDirection.SW: "northeast",
    CompassDirection.W: "east",
    CompassDirection.NW: "southeast",
}

# (upper bound in km/h, wording)
WIND_STRENGTH_BANDS: Tuple[Tuple[float, str], ...] = (
    (10.0, "light"),
    (30.0, "moderate"),
    (50.0, "strong"),
    (70.0, "very strong"),
    (float("inf"), "extreme"),
)


# =============================================================================
# SCENE
# =============================================================================

# (upper bound in degrees, wording)
SLOPE_BANDS: Tuple[Tuple[float, str], ...] = (
    (5.0, "flat terrain"),
    (15.0, "gently sloping terrain"),
    (25.0, "moderate slopes"),
    (35.0, "steep slopes"),
    (float("inf"), "a very steep escarpment"),
)

VEGETATION_DESCRIPTORS: Dict[str, str] = {
    "Dry Sclerophyll Forest": "dry eucalyptus forest with sparse understorey and leaf litter",
    "Wet Sclerophyll Forest": "tall wet eucalyptus forest with dense fern understorey",
    "Grassland": "open grassland with cured dry grass",
    "Heath": "low dense coastal heath and scrubland",
    "Rainforest": "subtropical rainforest with dense canopy",
    "Grassy Woodland": "open woodland with scattered eucalypts over native grasses",
    "Cumberland Plain Woodland": "dry woodland on shale with sparse canopy and grassy groundlayer",
    "Riverine Forest": "eucalypt forest along waterways with moist understorey",
    "Swamp Sclerophyll Forest": "wet sclerophyll forest on poorly drained soils with paperbark and swamp mahogany",
    "Coastal Sand Heath": "wind-shaped coastal heath on sandy ridges with banksia and tea-tree",
    "Alpine Complex": "alpine heath and grass mosaic with stunted shrubs and herbfields",
    "Plantation Forest": "structured plantation rows with dense fuel between tree lines",
    "Cleared/Urban": "cleared land or urban area with minimal vegetation and structures",
}

FEATURE_DESCRIPTIONS: Dict[str, str] = {
    "road": "a road running nearby",
    "escarpment": "a steep escarpment to one side",
    "river": "a river valley",
    "residential_area": "residential areas in the distance",
    "rural_residential": "scattered rural properties",
}

NO_FEATURES = "remote bushland area"


# =============================================================================
# WEATHER & LIGHTING
# =============================================================================

TIME_OF_DAY_LIGHTING: Dict[TimeOfDay, str] = {
    TimeOfDay.DAWN: (
        "Dawn lighting: soft golden light from the east, long shadows across the landscape, "
        "cool blue sky warming towards the horizon"
    ),
    TimeOfDay.MORNING: (
        "Morning lighting: bright sun from the east, clear visibility, crisp natural light"
    ),
    TimeOfDay.MIDDAY: (
        "Midday lighting: harsh overhead sun, short shadows, washed-out pale sky above the smoke"
    ),
    TimeOfDay.AFTERNOON: (
        "Afternoon lighting: warm sun from the west, golden-orange tones, lengthening shadows"
    ),
    TimeOfDay.DUSK: (
        "Dusk lighting: deep orange and red sunset sky, fire glow standing out against the fading light"
    ),
    TimeOfDay.NIGHT: (
        "Night lighting: dark scene lit mainly by the fire itself, intense orange glow reflecting off the smoke"
    ),
}


# =============================================================================
# CAMERA
# =============================================================================

VIEWPOINT_PERSPECTIVES: Dict[ViewPoint, str] = {
    ViewPoint.AERIAL: (
        "Aerial photograph taken from 300 metres altitude, looking straight down on the fire."
    ),
    ViewPoint.HELICOPTER_NORTH: (
        "Oblique wide-angle photograph from a helicopter 150 metres up, north of the fire, "
        "looking south at the fire front."
    ),
    ViewPoint.HELICOPTER_SOUTH: (
        "Oblique wide-angle photograph from a helicopter 150 metres up, south of the fire, "
        "looking north across the burnt ground and the active fire."
    ),
    ViewPoint.HELICOPTER_EAST: (
        "Oblique wide-angle photograph from a helicopter 150 metres up, east of the fire, "
        "looking west at the flank of the fire."
    ),
    ViewPoint.HELICOPTER_WEST: (
        "Oblique wide-angle photograph from a helicopter 150 metres up, west of the fire, "
        "looking east at the flank of the fire."
    ),
    ViewPoint.HELICOPTER_ABOVE: (
        "Aerial photograph from a helicopter hovering 200 metres directly above the fire, "
        "capturing the full perimeter and smoke plume."
    ),
    ViewPoint.GROUND_NORTH: (
        "You are standing on the ground about 500 metres north of the fire, "
        "looking toward the flame front to the south at eye level."
    ),
    ViewPoint.GROUND_SOUTH: (
        "You are standing on the ground about 500 metres south of the fire, "
        "looking toward the fire to the north across the burnt ground."
    ),
    ViewPoint.GROUND_EAST: (
        "You are standing on the ground about 500 metres east of the fire, "
        "looking toward the western flank of the fire at eye level."
    ),
    ViewPoint.GROUND_WEST: (
        "You are standing on the ground about 500 metres west of the fire, "
        "looking toward the eastern flank of the fire at eye level."
    ),
    ViewPoint.GROUND_ABOVE: (
        "You are standing on slightly raised ground at the edge of the fire area, "
        "looking toward the whole perimeter and the smoke column."
    ),
    ViewPoint.RIDGE: (
        "Wide-angle photograph from a ridgeline about 300 metres above the fire, "
        "looking toward the fire across the broader landscape."
    ),
}


# =============================================================================
# TEMPLATE
# =============================================================================

DEFAULT_TEMPLATE = PromptTemplate(
    id="bushfire-photorealistic",
    version="2.0.0",
    style=(
        "A photorealistic on-location photograph of an Australian bushfire, captured with a "
        "DSLR camera in natural light. Follow the terrain reference strictly: this is a faithful "
        "photographic record of the real landscape, not an artistic interpretation."
    ),
    scene=(
        "{vegetation} on {terrain} in New South Wales, Australia. "
        "Elevation approximately {elevation} metres. Surroundings: {features}."
    ),
    fire=(
        "A {stage} burning through the vegetation. {qualifier}. "
        "Flames are {flame_height} high with {smoke}; {crown}; {spotting}. "
        "The head fire is spreading to the {spread} driven by {wind}. {rate_of_spread} "
        "The fire covers {footprint}. The burning area must fill this entire mapped extent, "
        "no smaller and no larger."
    ),
    weather=(
        "Temperature is {temperature}°C with {humidity}% relative humidity. "
        "{wind_speed} km/h {wind_direction} wind. {lighting}."
    ),
    safety=(
        "The scene is uninhabited wilderness containing only terrain, vegetation, fire, and smoke. "
        "No text, no watermarks, no fantasy elements."
    ),
)
