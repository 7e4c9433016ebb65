"""
FireSim Data Models

Domain records for scenario requests, prompt sets, generated images and
generation jobs.

Wire format: ``to_dict`` produces the camelCase shape used by the HTTP layer
and the job store, and ``from_dict`` accepts the same shape.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from .constants import (
    CompassDirection,
    DataConfidence,
    FireIntensity,
    FireStage,
    HUMIDITY_RANGE,
    JobStatus,
    MAX_VIEWPOINTS,
    MIN_VIEWPOINTS,
    TEMPERATURE_RANGE,
    TimeOfDay,
    ViewPoint,
    WIND_SPEED_RANGE,
)
from .exceptions import RequestValidationError
from .geometry import open_ring

E = TypeVar("E", bound=Enum)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _parse_enum(enum_cls: Type[E], value: Any, name: str, problems: List[str]) -> Optional[E]:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        problems.append(f"{name} must be one of [{allowed}], got {value!r}")
        return None


def _parse_number(
    data: Dict[str, Any],
    key: str,
    problems: List[str],
    bounds: Optional[Tuple[float, float]] = None,
    required: bool = True
) -> Optional[float]:
    value = data.get(key)
    if value is None:
        if required:
            problems.append(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        problems.append(f"{key} must be a number")
        return None
    if bounds and not bounds[0] <= value <= bounds[1]:
        problems.append(f"{key} must be between {bounds[0]:g} and {bounds[1]:g}, got {value}")
        return None
    return float(value)


# =============================================================================
# SCENARIO REQUEST
# =============================================================================

@dataclass(frozen=True)
class RangeStatistic:
    """Min/max/mean summary of a raster over the perimeter."""
    min: float
    max: float
    mean: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str, problems: List[str]) -> Optional['RangeStatistic']:
        if not isinstance(data, dict):
            problems.append(f"{name} must be an object with min/max/mean")
            return None
        sub: List[str] = []
        values = [_parse_number(data, k, sub) for k in ("min", "max", "mean")]
        problems.extend(f"{name}.{p}" for p in sub)
        if sub:
            return None
        return cls(*values)

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "mean": self.mean}


@dataclass(frozen=True)
class FirePerimeter:
    """GeoJSON polygon drawn by the trainer; rings hold (lng, lat) pairs."""
    coordinates: Tuple[Tuple[Tuple[float, float], ...], ...]
    properties: Tuple[Tuple[str, Any], ...] = ()

    @property
    def outer_ring(self) -> Tuple[Tuple[float, float], ...]:
        return self.coordinates[0]

    @classmethod
    def from_dict(cls, data: Any, problems: List[str]) -> Optional['FirePerimeter']:
        if not isinstance(data, dict):
            problems.append("perimeter must be a GeoJSON Feature or Polygon")
            return None

        geometry = data.get("geometry", data) if data.get("type") == "Feature" else data
        if not isinstance(geometry, dict) or geometry.get("type") != "Polygon":
            problems.append("perimeter geometry must be a Polygon")
            return None

        rings = geometry.get("coordinates")
        if not isinstance(rings, list) or not rings or not isinstance(rings[0], list):
            problems.append("perimeter coordinates must contain at least one ring")
            return None

        parsed_rings = []
        for ring in rings:
            try:
                if not isinstance(ring, (list, tuple)) or not all(isinstance(p, (list, tuple)) for p in ring):
                    raise TypeError("ring vertices must be arrays")
                parsed = tuple((float(p[0]), float(p[1])) for p in ring)
            except (TypeError, ValueError, IndexError):
                problems.append("perimeter coordinates must be [lng, lat] pairs")
                return None
            parsed_rings.append(parsed)

        outer = parsed_rings[0]
        if len(set(open_ring(outer))) < 3:
            problems.append("perimeter must have at least three distinct vertices")
            return None
        for lng, lat in outer:
            if not (-180.0 <= lng <= 180.0 and -90.0 <= lat <= 90.0):
                problems.append(f"perimeter vertex out of range: [{lng}, {lat}]")
                return None

        properties = data.get("properties") or {}
        return cls(
            coordinates=tuple(parsed_rings),
            properties=tuple(sorted(properties.items())) if isinstance(properties, dict) else (),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[list(p) for p in ring] for ring in self.coordinates],
            },
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class ScenarioInputs:
    """Weather and fire-behaviour parameters chosen by the trainer."""
    wind_speed: float
    wind_direction: CompassDirection
    temperature: float
    humidity: float
    time_of_day: TimeOfDay
    intensity: FireIntensity
    fire_stage: FireStage
    flame_height_m: Optional[float] = None
    rate_of_spread_kmh: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any, problems: List[str]) -> Optional['ScenarioInputs']:
        if not isinstance(data, dict):
            problems.append("inputs must be an object")
            return None

        before = len(problems)
        wind_speed = _parse_number(data, "windSpeed", problems, WIND_SPEED_RANGE)
        temperature = _parse_number(data, "temperature", problems, TEMPERATURE_RANGE)
        humidity = _parse_number(data, "humidity", problems, HUMIDITY_RANGE)
        flame_height = _parse_number(data, "flameHeightM", problems, required=False)
        rate_of_spread = _parse_number(data, "rateOfSpreadKmh", problems, required=False)
        if flame_height is not None and flame_height <= 0:
            problems.append("flameHeightM must be greater than 0")
        if rate_of_spread is not None and rate_of_spread < 0:
            problems.append("rateOfSpreadKmh must not be negative")

        wind_direction = _parse_enum(CompassDirection, data.get("windDirection"), "windDirection", problems)
        time_of_day = _parse_enum(TimeOfDay, data.get("timeOfDay"), "timeOfDay", problems)
        intensity = _parse_enum(FireIntensity, data.get("intensity"), "intensity", problems)
        fire_stage = _parse_enum(FireStage, data.get("fireStage"), "fireStage", problems)

        if len(problems) > before:
            return None

        return cls(
            wind_speed=wind_speed,
            wind_direction=wind_direction,
            temperature=temperature,
            humidity=humidity,
            time_of_day=time_of_day,
            intensity=intensity,
            fire_stage=fire_stage,
            flame_height_m=flame_height,
            rate_of_spread_kmh=rate_of_spread,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "windSpeed": self.wind_speed,
            "windDirection": self.wind_direction.value,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "timeOfDay": self.time_of_day.value,
            "intensity": self.intensity.value,
            "fireStage": self.fire_stage.value,
        }
        if self.flame_height_m is not None:
            data["flameHeightM"] = self.flame_height_m
        if self.rate_of_spread_kmh is not None:
            data["rateOfSpreadKmh"] = self.rate_of_spread_kmh
        return data


@dataclass(frozen=True)
class GeoContext:
    """Geographic context supplied by the geo/vegetation lookup."""
    vegetation_type: str
    elevation: RangeStatistic
    slope: RangeStatistic
    aspect: CompassDirection
    data_source: str
    confidence: DataConfidence
    nearby_features: Tuple[str, ...] = ()
    vegetation_subtype: Optional[str] = None
    dominant_species: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, problems: List[str]) -> Optional['GeoContext']:
        if not isinstance(data, dict):
            problems.append("geoContext must be an object")
            return None

        before = len(problems)
        vegetation_type = data.get("vegetationType")
        if not isinstance(vegetation_type, str) or not vegetation_type.strip():
            problems.append("geoContext.vegetationType is required")
        elevation = RangeStatistic.from_dict(data.get("elevation"), "geoContext.elevation", problems)
        slope = RangeStatistic.from_dict(data.get("slope"), "geoContext.slope", problems)
        aspect = _parse_enum(CompassDirection, data.get("aspect"), "geoContext.aspect", problems)
        confidence = _parse_enum(
            DataConfidence, data.get("confidence", "medium"), "geoContext.confidence", problems
        )
        features = data.get("nearbyFeatures") or []
        if not isinstance(features, list) or not all(isinstance(f, str) for f in features):
            problems.append("geoContext.nearbyFeatures must be a list of strings")
        subtype = data.get("vegetationSubtype")
        if subtype is not None and not isinstance(subtype, str):
            problems.append("geoContext.vegetationSubtype must be a string")
        species = data.get("dominantSpecies") or []
        if not isinstance(species, list) or not all(isinstance(s, str) for s in species):
            problems.append("geoContext.dominantSpecies must be a list of strings")

        if len(problems) > before:
            return None

        return cls(
            vegetation_type=vegetation_type.strip(),
            elevation=elevation,
            slope=slope,
            aspect=aspect,
            data_source=str(data.get("dataSource", "unknown")),
            confidence=confidence,
            nearby_features=tuple(features),
            vegetation_subtype=subtype or None,
            dominant_species=tuple(species),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "vegetationType": self.vegetation_type,
            "elevation": self.elevation.to_dict(),
            "slope": self.slope.to_dict(),
            "aspect": self.aspect.value,
            "nearbyFeatures": list(self.nearby_features),
            "dataSource": self.data_source,
            "confidence": self.confidence.value,
        }
        if self.vegetation_subtype:
            data["vegetationSubtype"] = self.vegetation_subtype
        if self.dominant_species:
            data["dominantSpecies"] = list(self.dominant_species)
        return data


@dataclass(frozen=True)
class ScenarioRequest:
    """A complete, validated scenario generation request."""
    perimeter: FirePerimeter
    inputs: ScenarioInputs
    geo_context: GeoContext
    requested_views: Tuple[ViewPoint, ...]
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'ScenarioRequest':
        """
        Parse and validate a request payload.

        Raises:
            RequestValidationError: listing every problem found
        """
        if not isinstance(data, dict):
            raise RequestValidationError(["request body must be an object"])

        problems: List[str] = []
        for key in ("perimeter", "inputs", "geoContext", "requestedViews"):
            if data.get(key) is None:
                problems.append(f"{key} is required")
        if problems:
            raise RequestValidationError(problems)

        perimeter = FirePerimeter.from_dict(data["perimeter"], problems)
        inputs = ScenarioInputs.from_dict(data["inputs"], problems)
        geo_context = GeoContext.from_dict(data["geoContext"], problems)
        views = _parse_views(data["requestedViews"], problems)

        seed = data.get("seed")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
            problems.append("seed must be a non-negative integer")

        if problems:
            raise RequestValidationError(problems)

        return cls(
            perimeter=perimeter,
            inputs=inputs,
            geo_context=geo_context,
            requested_views=views,
            seed=seed,
        )

    def with_seed(self, seed: int) -> 'ScenarioRequest':
        return replace(self, seed=seed)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "perimeter": self.perimeter.to_dict(),
            "inputs": self.inputs.to_dict(),
            "geoContext": self.geo_context.to_dict(),
            "requestedViews": [v.value for v in self.requested_views],
        }
        if self.seed is not None:
            data["seed"] = self.seed
        return data


def _parse_views(raw: Any, problems: List[str]) -> Tuple[ViewPoint, ...]:
    if not isinstance(raw, list):
        problems.append("requestedViews must be a list")
        return ()
    if not MIN_VIEWPOINTS <= len(raw) <= MAX_VIEWPOINTS:
        problems.append(
            f"requestedViews must contain {MIN_VIEWPOINTS} to {MAX_VIEWPOINTS} viewpoints, got {len(raw)}"
        )
        return ()

    views: List[ViewPoint] = []
    for value in raw:
        view = _parse_enum(ViewPoint, value, "requestedViews[]", problems)
        if view is None:
            continue
        if view in views:
            problems.append(f"viewpoint {view.value} requested more than once")
            continue
        views.append(view)
    return tuple(views)


# =============================================================================
# PROMPTS
# =============================================================================

@dataclass(frozen=True)
class GeneratedPrompt:
    """Final prompt text for one viewpoint."""
    viewpoint: ViewPoint
    prompt_text: str
    prompt_set_id: str
    template_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "viewpoint": self.viewpoint.value,
            "promptText": self.prompt_text,
            "promptSetId": self.prompt_set_id,
            "templateVersion": self.template_version,
        }


@dataclass(frozen=True)
class PromptSet:
    """All prompts generated for one job, in request order."""
    id: str
    template_version: str
    prompts: Tuple[GeneratedPrompt, ...]
    created_at: str

    def prompt_for(self, viewpoint: ViewPoint) -> GeneratedPrompt:
        for prompt in self.prompts:
            if prompt.viewpoint == viewpoint:
                return prompt
        raise KeyError(f"No prompt for viewpoint: {viewpoint.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "templateVersion": self.template_version,
            "prompts": [p.to_dict() for p in self.prompts],
            "createdAt": self.created_at,
        }


# =============================================================================
# IMAGES
# =============================================================================

@dataclass(frozen=True)
class ImageMetadata:
    """How an image was produced."""
    prompt: str
    model: str
    generation_time_ms: int
    generated_at: str
    seed: Optional[int] = None
    is_anchor: bool = False
    used_reference_image: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "model": self.model,
            "seed": self.seed,
            "generationTimeMs": self.generation_time_ms,
            "generatedAt": self.generated_at,
            "isAnchor": self.is_anchor,
            "usedReferenceImage": self.used_reference_image,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImageMetadata':
        return cls(
            prompt=data["prompt"],
            model=data["model"],
            seed=data.get("seed"),
            generation_time_ms=int(data.get("generationTimeMs", 0)),
            generated_at=data["generatedAt"],
            is_anchor=bool(data.get("isAnchor", False)),
            used_reference_image=bool(data.get("usedReferenceImage", False)),
        )


@dataclass(frozen=True)
class GeneratedImage:
    """One successfully generated viewpoint image."""
    view_point: ViewPoint
    image_ref: str
    metadata: ImageMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "viewPoint": self.view_point.value,
            "imageRef": self.image_ref,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeneratedImage':
        return cls(
            view_point=ViewPoint(data["viewPoint"]),
            image_ref=data["imageRef"],
            metadata=ImageMetadata.from_dict(data["metadata"]),
        )


# =============================================================================
# CONSISTENCY VALIDATION RESULTS
# =============================================================================

@dataclass(frozen=True)
class ConsistencyCheck:
    """Result of one named consistency heuristic."""
    name: str
    passed: bool
    score: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "passed": self.passed, "score": self.score, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConsistencyCheck':
        return cls(data["name"], bool(data["passed"]), float(data["score"]), data.get("message", ""))


@dataclass(frozen=True)
class ConsistencyValidationResult:
    """Aggregate consistency verdict for a finished image set."""
    passed: bool
    score: int
    checks: Tuple[ConsistencyCheck, ...]
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def check(self, name: str) -> ConsistencyCheck:
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "score": self.score,
            "checks": [c.to_dict() for c in self.checks],
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConsistencyValidationResult':
        return cls(
            passed=bool(data["passed"]),
            score=int(data["score"]),
            checks=tuple(ConsistencyCheck.from_dict(c) for c in data.get("checks", [])),
            warnings=tuple(data.get("warnings", [])),
            recommendations=tuple(data.get("recommendations", [])),
        )


# =============================================================================
# GENERATION JOB
# =============================================================================

@dataclass
class GenerationJob:
    """
    Progress record for one scenario.

    Mutated only by the orchestration task that owns ``scenario_id``;
    readers receive copies from ``snapshot()``.
    """
    scenario_id: str
    total_images: int
    requested_views: List[ViewPoint] = field(default_factory=list)
    status: JobStatus = JobStatus.PENDING
    completed_images: int = 0
    failed_images: int = 0
    images: List[GeneratedImage] = field(default_factory=list)
    anchor_image: Optional[GeneratedImage] = None
    thinking_text: Optional[str] = None
    error: Optional[str] = None
    seed: Optional[int] = None
    prompt_set_id: Optional[str] = None
    template_version: Optional[str] = None
    validation: Optional[ConsistencyValidationResult] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = ""

    def __post_init__(self):
        if not self.updated_at:
            self.updated_at = self.created_at

    @property
    def resolved_images(self) -> int:
        return self.completed_images + self.failed_images

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def touch(self) -> None:
        self.updated_at = utc_now_iso()

    def snapshot(self) -> 'GenerationJob':
        """Independent copy safe to hand to pollers."""
        return replace(self, images=list(self.images), requested_views=list(self.requested_views))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenarioId": self.scenario_id,
            "status": self.status.value,
            "totalImages": self.total_images,
            "requestedViews": [v.value for v in self.requested_views],
            "completedImages": self.completed_images,
            "failedImages": self.failed_images,
            "images": [img.to_dict() for img in self.images],
            "anchorImage": self.anchor_image.to_dict() if self.anchor_image else None,
            "thinkingText": self.thinking_text,
            "error": self.error,
            "seed": self.seed,
            "promptSetId": self.prompt_set_id,
            "templateVersion": self.template_version,
            "validation": self.validation.to_dict() if self.validation else None,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GenerationJob':
        anchor = data.get("anchorImage")
        validation = data.get("validation")
        return cls(
            scenario_id=data["scenarioId"],
            status=JobStatus(data["status"]),
            total_images=int(data["totalImages"]),
            requested_views=[ViewPoint(v) for v in data.get("requestedViews", [])],
            completed_images=int(data.get("completedImages", 0)),
            failed_images=int(data.get("failedImages", 0)),
            images=[GeneratedImage.from_dict(i) for i in data.get("images", [])],
            anchor_image=GeneratedImage.from_dict(anchor) if anchor else None,
            thinking_text=data.get("thinkingText"),
            error=data.get("error"),
            seed=data.get("seed"),
            prompt_set_id=data.get("promptSetId"),
            template_version=data.get("templateVersion"),
            validation=ConsistencyValidationResult.from_dict(validation) if validation else None,
            created_at=data["createdAt"],
            updated_at=data.get("updatedAt", data["createdAt"]),
        )


@dataclass(frozen=True)
class GenerationResult:
    """Final outcome of a terminal job."""
    scenario_id: str
    status: JobStatus
    images: Tuple[GeneratedImage, ...]
    anchor_image: Optional[GeneratedImage]
    validation: Optional[ConsistencyValidationResult]
    seed: Optional[int]
    template_version: Optional[str]
    created_at: str
    completed_at: str
    error: Optional[str] = None
    thinking_text: Optional[str] = None

    @classmethod
    def from_job(cls, job: GenerationJob) -> 'GenerationResult':
        return cls(
            scenario_id=job.scenario_id,
            status=job.status,
            images=tuple(_in_request_order(job.images, job.requested_views)),
            anchor_image=job.anchor_image,
            validation=job.validation,
            seed=job.seed,
            template_version=job.template_version,
            created_at=job.created_at,
            completed_at=job.updated_at,
            error=job.error,
            thinking_text=job.thinking_text,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.scenario_id,
            "status": self.status.value,
            "images": [img.to_dict() for img in self.images],
            "anchorImage": self.anchor_image.to_dict() if self.anchor_image else None,
            "validation": self.validation.to_dict() if self.validation else None,
            "seed": self.seed,
            "templateVersion": self.template_version,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
            "error": self.error,
            "thinkingText": self.thinking_text,
        }


def _in_request_order(images: List[GeneratedImage], views: List[ViewPoint]) -> List[GeneratedImage]:
    order = {view: index for index, view in enumerate(views)}
    return sorted(images, key=lambda img: order.get(img.view_point, len(order)))


def validate_request(data: Any) -> ScenarioRequest:
    """Validate a raw request payload; see ``ScenarioRequest.from_dict``."""
    return ScenarioRequest.from_dict(data)
