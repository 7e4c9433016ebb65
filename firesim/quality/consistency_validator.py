"""
Consistency Validator

Scores whether a finished multi-viewpoint image set is likely to be visually
coherent. The checks are heuristics over image metadata (prompt text, model,
seed, viewpoint family); no pixel analysis is performed.

Checks:
- Smoke Direction Consistency: prompts mention the wind direction
- Fire Size Proportionality: viewpoint variety plus an anchor reference
- Lighting Consistency: prompts mention the time of day or lighting
- Color Palette Similarity: same model and seed across the set

The validator never raises: an empty image set yields a failing, fully
populated result.
"""

import math
from typing import List, Optional, Sequence

from firesim.core.constants import (
    CHECK_COLOR_PALETTE,
    CHECK_FIRE_SIZE,
    CHECK_LIGHTING,
    CHECK_SMOKE_DIRECTION,
    CONSISTENCY_PASS_THRESHOLD,
    CONSISTENCY_WEIGHTS,
    COVERAGE_CHECK_THRESHOLD,
)
from firesim.core.logging_config import get_logger
from firesim.core.models import (
    ConsistencyCheck,
    ConsistencyValidationResult,
    GeneratedImage,
    ScenarioInputs,
)

logger = get_logger("quality.consistency")

RECOMMEND_NEW_SEED = "Regenerate with a different seed for better consistency"
RECOMMEND_REVIEW_WIND = "Review wind parameter and make sure prompts state the smoke direction"
RECOMMEND_COLOR_GRADING = "Apply color grading in post-processing to even out the palette across views"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _coverage(images: Sequence[GeneratedImage], tokens: Sequence[str]) -> float:
    """Percentage of images whose prompt mentions any of ``tokens``."""
    if not images:
        return 0.0
    hits = sum(
        1 for img in images
        if any(token in img.metadata.prompt.lower() for token in tokens)
    )
    return hits / len(images) * 100


class ConsistencyValidator:
    """
    Pure scoring over a finished image set.

    Usage:
        validator = ConsistencyValidator()
        result = validator.validate(job.images, request.inputs, job.anchor_image)
        print(generate_report(result))
    """

    def validate(
        self,
        images: Sequence[GeneratedImage],
        inputs: ScenarioInputs,
        anchor_image: Optional[GeneratedImage] = None
    ) -> ConsistencyValidationResult:
        checks = [
            self._check_smoke_direction(images, inputs),
            self._check_fire_size(images, anchor_image),
            self._check_lighting(images, inputs),
            self._check_color_palette(images),
        ]
        warnings = [c.message for c in checks if not c.passed]

        score = self._overall_score(checks)
        by_name = {c.name: c for c in checks}

        recommendations: List[str] = []
        if score < CONSISTENCY_PASS_THRESHOLD:
            recommendations.append(RECOMMEND_NEW_SEED)
        if not by_name[CHECK_SMOKE_DIRECTION].passed:
            recommendations.append(RECOMMEND_REVIEW_WIND)
        if not by_name[CHECK_COLOR_PALETTE].passed:
            recommendations.append(RECOMMEND_COLOR_GRADING)

        result = ConsistencyValidationResult(
            passed=score >= CONSISTENCY_PASS_THRESHOLD,
            score=score,
            checks=tuple(checks),
            warnings=tuple(warnings),
            recommendations=tuple(recommendations),
        )
        logger.info(f"Consistency score {score}/100 over {len(images)} images (passed={result.passed})")
        for warning in warnings:
            logger.warning(f"Consistency: {warning}")
        return result

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_smoke_direction(self, images: Sequence[GeneratedImage], inputs: ScenarioInputs) -> ConsistencyCheck:
        direction = inputs.wind_direction.value
        score = _coverage(images, (direction.lower(), "wind"))
        passed = score >= COVERAGE_CHECK_THRESHOLD
        return ConsistencyCheck(
            name=CHECK_SMOKE_DIRECTION,
            passed=passed,
            score=score,
            message=(
                f"Smoke direction aligned with wind ({direction})" if passed
                else f"Inconsistent smoke direction, expected {direction} wind"
            ),
        )

    def _check_fire_size(
        self,
        images: Sequence[GeneratedImage],
        anchor_image: Optional[GeneratedImage]
    ) -> ConsistencyCheck:
        categories = {img.view_point.category for img in images}
        multiple_categories = len(categories) > 1

        if multiple_categories and anchor_image is not None:
            score = 100.0
        elif multiple_categories:
            score = 70.0
        else:
            score = 50.0
        passed = score >= CONSISTENCY_PASS_THRESHOLD

        return ConsistencyCheck(
            name=CHECK_FIRE_SIZE,
            passed=passed,
            score=score,
            message=(
                "Fire scale appears consistent across viewpoint types" if passed
                else "Limited viewpoint variety, unable to verify fire size consistency"
            ),
        )

    def _check_lighting(self, images: Sequence[GeneratedImage], inputs: ScenarioInputs) -> ConsistencyCheck:
        time_of_day = inputs.time_of_day.value
        score = _coverage(images, (time_of_day.lower(), "lighting", "sun"))
        passed = score >= COVERAGE_CHECK_THRESHOLD
        return ConsistencyCheck(
            name=CHECK_LIGHTING,
            passed=passed,
            score=score,
            message=(
                f"Lighting consistent with {time_of_day} conditions" if passed
                else f"Inconsistent lighting, expected {time_of_day} conditions"
            ),
        )

    def _check_color_palette(self, images: Sequence[GeneratedImage]) -> ConsistencyCheck:
        models = {img.metadata.model for img in images}
        seeds = {img.metadata.seed for img in images if img.metadata.seed is not None}
        same_model = len(models) == 1
        same_seed = len(seeds) <= 1

        if same_model and same_seed:
            score = 100.0
        elif same_model:
            score = 80.0
        else:
            score = 60.0
        passed = score >= CONSISTENCY_PASS_THRESHOLD

        return ConsistencyCheck(
            name=CHECK_COLOR_PALETTE,
            passed=passed,
            score=score,
            message=(
                "Color palette likely consistent (same model and seed)" if passed
                else "Color palette may vary (different models or seeds)"
            ),
        )

    def _overall_score(self, checks: Sequence[ConsistencyCheck]) -> int:
        total_weight = sum(CONSISTENCY_WEIGHTS[c.name] for c in checks)
        if total_weight <= 0:
            return 0
        weighted = sum(c.score * CONSISTENCY_WEIGHTS[c.name] for c in checks)
        return _round_half_up(weighted / total_weight)


def generate_report(result: ConsistencyValidationResult) -> str:
    """Render a plain-text validation report."""
    lines = [
        "=== Visual Consistency Validation Report ===",
        "",
        f"Overall Score: {result.score}/100 {'PASSED' if result.passed else 'FAILED'}",
        "",
        "Individual Checks:",
    ]
    for check in result.checks:
        mark = "+" if check.passed else "x"
        lines.append(f"  [{mark}] {check.name}: {check.score:.0f}/100 - {check.message}")

    if result.warnings:
        lines.extend(["", "Warnings:"])
        lines.extend(f"  ! {warning}" for warning in result.warnings)

    if result.recommendations:
        lines.extend(["", "Recommendations:"])
        lines.extend(f"  -> {rec}" for rec in result.recommendations)

    lines.extend(["", "=== End of Report ==="])
    return "\n".join(lines)
