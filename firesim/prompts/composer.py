"""
Prompt Composer

Turns a validated ScenarioRequest into one natural-language prompt per
viewpoint. Composition is deterministic for a given template version and
request; an optional injected TTLCache memoises composed text.

Every composed prompt passes a blocked-term gate. A match is a hard failure
(PromptSafetyViolation), never a silent rewrite.
"""

import re
import uuid
from typing import List, Optional, Sequence, Tuple

from firesim.core.cache import TTLCache, make_cache_key
from firesim.core.constants import CompassDirection, ViewPoint
from firesim.core.exceptions import PromptSafetyViolation
from firesim.core.geometry import compute_footprint
from firesim.core.logging_config import get_logger
from firesim.core.models import GeneratedPrompt, PromptSet, ScenarioRequest, utc_now_iso
from firesim.prompts.templates import (
    DEFAULT_TEMPLATE,
    FEATURE_DESCRIPTIONS,
    FIRE_STAGE_DESCRIPTIONS,
    FLAME_HEIGHT_BANDS,
    INTENSITY_VISUALS,
    NO_FEATURES,
    SLOPE_BANDS,
    SPREAD_DIRECTIONS,
    TIME_OF_DAY_LIGHTING,
    VEGETATION_DESCRIPTORS,
    VIEWPOINT_PERSPECTIVES,
    WIND_STRENGTH_BANDS,
    PromptTemplate,
)

logger = get_logger("prompts.composer")

BLOCKED_TERMS: Tuple[str, ...] = (
    "explosion",
    "destruction",
    "casualties",
    "violence",
    "death",
    "people",
    "human",
    "person",
    "animal",
    "wildlife",
    "injury",
    "victim",
    "destroy",
    "devastation",
)

_WHITESPACE = re.compile(r"\s+")


def check_prompt_safety(prompt_text: str) -> List[str]:
    """Return the blocked terms found in ``prompt_text`` (case-insensitive substring match)."""
    lowered = prompt_text.lower()
    return [term for term in BLOCKED_TERMS if term in lowered]


# =============================================================================
# DESCRIPTORS
# =============================================================================

def _band(value: float, bands: Sequence[Tuple[float, str]]) -> str:
    for upper, text in bands:
        if value < upper:
            return text
    return bands[-1][1]


def terrain_descriptor(slope_mean: float) -> str:
    return _band(slope_mean, SLOPE_BANDS)


def vegetation_descriptor(vegetation_type: str) -> str:
    return VEGETATION_DESCRIPTORS.get(vegetation_type, vegetation_type.lower())


def wind_strength(wind_speed: float) -> str:
    return _band(wind_speed, WIND_STRENGTH_BANDS)


def flame_height_qualifier(flame_height_m: float) -> str:
    return _band(flame_height_m, FLAME_HEIGHT_BANDS)


def spread_direction(wind_direction: CompassDirection) -> str:
    return SPREAD_DIRECTIONS[wind_direction]


def describe_features(features: Sequence[str]) -> str:
    """Join nearby-feature tags into a readable list."""
    phrases = [FEATURE_DESCRIPTIONS.get(f, f.replace("_", " ")) for f in features if f and f.strip()]
    if not phrases:
        return NO_FEATURES
    if len(phrases) == 1:
        return phrases[0]
    return ", ".join(phrases[:-1]) + " and " + phrases[-1]


def _number(value: float) -> str:
    return f"{value:g}"


# =============================================================================
# COMPOSER
# =============================================================================

class PromptComposer:
    """
    Builds safety-checked prompts from a template.

    Usage:
        composer = PromptComposer(cache=TTLCache(ttl=3600))
        prompt_set = composer.generate_prompt_set(request)
    """

    def __init__(self, template: PromptTemplate = DEFAULT_TEMPLATE, cache: Optional[TTLCache] = None):
        self.template = template
        self._cache = cache

    @property
    def template_version(self) -> str:
        return self.template.version

    def compose(self, request: ScenarioRequest, viewpoint: ViewPoint) -> str:
        """
        Compose the prompt for one viewpoint.

        Raises:
            PromptSafetyViolation: if the text contains a blocked term
        """
        if self._cache is None:
            return self._compose(request, viewpoint)

        key = make_cache_key(self.template.id, self.template.version, request.to_dict(), viewpoint.value)
        return self._cache.get_or_set(key, lambda: self._compose(request, viewpoint))

    def generate_prompt_set(self, request: ScenarioRequest) -> PromptSet:
        """
        Compose prompts for every requested viewpoint, in request order.

        The set is built all-or-nothing: the first unsafe prompt aborts it.
        """
        prompt_set_id = str(uuid.uuid4())
        prompts = tuple(
            GeneratedPrompt(
                viewpoint=viewpoint,
                prompt_text=self.compose(request, viewpoint),
                prompt_set_id=prompt_set_id,
                template_version=self.template.version,
            )
            for viewpoint in request.requested_views
        )
        logger.debug(f"Prompt set {prompt_set_id} composed for {len(prompts)} viewpoints")
        return PromptSet(
            id=prompt_set_id,
            template_version=self.template.version,
            prompts=prompts,
            created_at=utc_now_iso(),
        )

    def _compose(self, request: ScenarioRequest, viewpoint: ViewPoint) -> str:
        sections = [
            self.template.style,
            self._scene_section(request),
            self._fire_section(request),
            self._weather_section(request),
            VIEWPOINT_PERSPECTIVES[viewpoint],
            self.template.safety,
        ]
        text = _WHITESPACE.sub(" ", " ".join(sections)).strip()

        blocked = check_prompt_safety(text)
        if blocked:
            logger.warning(f"Blocked terms in {viewpoint.value} prompt: {', '.join(blocked)}")
            raise PromptSafetyViolation(blocked, viewpoint=viewpoint.value)
        return text

    def _scene_section(self, request: ScenarioRequest) -> str:
        geo = request.geo_context
        vegetation = vegetation_descriptor(geo.vegetation_type)
        return self.template.scene.format(
            vegetation=vegetation[:1].upper() + vegetation[1:],
            terrain=terrain_descriptor(geo.slope.mean),
            elevation=round(geo.elevation.mean),
            features=describe_features(geo.nearby_features),
        )

    def _fire_section(self, request: ScenarioRequest) -> str:
        inputs = request.inputs
        visuals = INTENSITY_VISUALS[inputs.intensity]

        if inputs.flame_height_m is not None:
            flame_height = f"{_number(inputs.flame_height_m)} metres"
            qualifier = flame_height_qualifier(inputs.flame_height_m)
        else:
            flame_height = visuals.flame_height
            qualifier = visuals.descriptor

        rate_of_spread = ""
        if inputs.rate_of_spread_kmh is not None:
            rate_of_spread = f"The fire front is advancing at {_number(inputs.rate_of_spread_kmh)} km/h."

        footprint = compute_footprint(request.perimeter.outer_ring)

        return self.template.fire.format(
            stage=FIRE_STAGE_DESCRIPTIONS[inputs.fire_stage],
            qualifier=qualifier,
            flame_height=flame_height,
            smoke=visuals.smoke,
            crown=visuals.crown_involvement,
            spotting=visuals.spotting,
            spread=spread_direction(inputs.wind_direction),
            wind=f"{wind_strength(inputs.wind_speed)} {inputs.wind_direction.value.lower()} winds",
            rate_of_spread=rate_of_spread,
            footprint=footprint.describe(),
        )

    def _weather_section(self, request: ScenarioRequest) -> str:
        inputs = request.inputs
        return self.template.weather.format(
            temperature=_number(inputs.temperature),
            humidity=_number(inputs.humidity),
            wind_speed=_number(inputs.wind_speed),
            wind_direction=inputs.wind_direction.value,
            lighting=TIME_OF_DAY_LIGHTING[inputs.time_of_day],
        )


def compose(request: ScenarioRequest, viewpoint: ViewPoint) -> str:
    """Compose one prompt with the default template and no cache."""
    return PromptComposer().compose(request, viewpoint)


def generate_prompt_set(request: ScenarioRequest) -> PromptSet:
    """Compose a full prompt set with the default template and no cache."""
    return PromptComposer().generate_prompt_set(request)
