"""
Tests for Consistency Validator

Tests:
- Individual heuristics (smoke, fire size, lighting, color palette)
- Weighted overall score and pass threshold
- Recommendations and report rendering
"""

import pytest

from firesim.core.constants import (
    CHECK_COLOR_PALETTE,
    CHECK_FIRE_SIZE,
    CHECK_LIGHTING,
    CHECK_SMOKE_DIRECTION,
    ViewPoint,
)
from firesim.core.models import GeneratedImage, ImageMetadata
from firesim.quality.consistency_validator import (
    RECOMMEND_COLOR_GRADING,
    RECOMMEND_NEW_SEED,
    RECOMMEND_REVIEW_WIND,
    ConsistencyValidator,
    _round_half_up,
    generate_report,
)

GOOD_PROMPT = "Head fire driven by strong nw winds. 45 km/h NW wind. Afternoon lighting: warm sun."


def make_image(view: ViewPoint, prompt: str = GOOD_PROMPT, model: str = "image-model", seed=1234):
    return GeneratedImage(
        view_point=view,
        image_ref=f"{view.value}.png",
        metadata=ImageMetadata(
            prompt=prompt,
            model=model,
            generation_time_ms=10,
            generated_at="2026-01-01T00:00:00Z",
            seed=seed,
        ),
    )


@pytest.fixture
def validator():
    return ConsistencyValidator()


@pytest.fixture
def mixed_views():
    """Five views spanning ground and aerial families."""
    return [
        make_image(ViewPoint.GROUND_NORTH),
        make_image(ViewPoint.GROUND_SOUTH),
        make_image(ViewPoint.AERIAL),
        make_image(ViewPoint.HELICOPTER_EAST),
        make_image(ViewPoint.RIDGE),
    ]


class TestConsistencyValidator:
    """Tests for ConsistencyValidator.validate."""

    def test_consistent_set_passes(self, validator, mixed_views, sample_request):
        result = validator.validate(mixed_views, sample_request.inputs, anchor_image=mixed_views[0])

        assert result.passed
        assert result.score == 100
        assert result.check(CHECK_COLOR_PALETTE).score == 100
        assert result.check(CHECK_FIRE_SIZE).score == 100
        assert result.warnings == ()
        assert result.recommendations == ()

    def test_empty_set_fails_without_raising(self, validator, sample_request):
        result = validator.validate([], sample_request.inputs)

        assert not result.passed
        assert result.score == 25
        assert len(result.checks) == 4
        assert result.check(CHECK_SMOKE_DIRECTION).score == 0
        assert result.check(CHECK_FIRE_SIZE).score == 50
        assert result.check(CHECK_COLOR_PALETTE).score == 60
        assert RECOMMEND_NEW_SEED in result.recommendations

    def test_missing_anchor_lowers_size_score(self, validator, mixed_views, sample_request):
        result = validator.validate(mixed_views, sample_request.inputs)

        size = result.check(CHECK_FIRE_SIZE)
        assert size.score == 70
        assert size.passed
        assert result.score == 94

    def test_single_family_fails_size_check(self, validator, sample_request):
        images = [make_image(ViewPoint.GROUND_NORTH), make_image(ViewPoint.GROUND_EAST)]
        result = validator.validate(images, sample_request.inputs, anchor_image=images[0])

        size = result.check(CHECK_FIRE_SIZE)
        assert size.score == 50
        assert not size.passed
        assert "Limited viewpoint variety" in size.message
        assert result.score == 90
        assert result.passed

    def test_different_seeds(self, validator, sample_request):
        images = [make_image(ViewPoint.AERIAL, seed=1), make_image(ViewPoint.RIDGE, seed=2)]
        result = validator.validate(images, sample_request.inputs, anchor_image=images[0])

        color = result.check(CHECK_COLOR_PALETTE)
        assert color.score == 80
        assert color.passed
        assert result.score == 95

    def test_different_models(self, validator, sample_request):
        images = [make_image(ViewPoint.AERIAL, model="a"), make_image(ViewPoint.RIDGE, model="b")]
        result = validator.validate(images, sample_request.inputs, anchor_image=images[0])

        assert result.check(CHECK_COLOR_PALETTE).score == 60
        assert RECOMMEND_COLOR_GRADING in result.recommendations

    def test_missing_wind_and_lighting(self, validator, sample_request):
        """Test a set whose prompts never mention wind or lighting."""
        images = [
            make_image(ViewPoint.AERIAL, prompt="A forest on fire"),
            make_image(ViewPoint.GROUND_NORTH, prompt="Flames in the trees"),
        ]
        result = validator.validate(images, sample_request.inputs, anchor_image=images[0])

        assert result.check(CHECK_SMOKE_DIRECTION).score == 0
        assert result.check(CHECK_LIGHTING).score == 0
        assert result.score == 45
        assert not result.passed
        assert "Inconsistent smoke direction, expected NW wind" in result.warnings
        assert result.recommendations == (RECOMMEND_NEW_SEED, RECOMMEND_REVIEW_WIND)

    def test_partial_coverage(self, validator, sample_request):
        images = [
            make_image(ViewPoint.AERIAL),
            make_image(ViewPoint.GROUND_NORTH, prompt="Afternoon lighting only"),
        ]
        result = validator.validate(images, sample_request.inputs, anchor_image=images[0])

        smoke = result.check(CHECK_SMOKE_DIRECTION)
        assert smoke.score == 50
        assert not smoke.passed
        assert result.check(CHECK_LIGHTING).passed

    def test_round_half_up(self):
        assert _round_half_up(77.5) == 78
        assert _round_half_up(2.5) == 3
        assert _round_half_up(77.49) == 77


class TestReport:
    """Tests for generate_report."""

    def test_report_sections(self, validator, sample_request):
        images = [make_image(ViewPoint.AERIAL, prompt="A forest on fire")]
        report = generate_report(validator.validate(images, sample_request.inputs))

        assert report.startswith("=== Visual Consistency Validation Report ===")
        assert "FAILED" in report
        assert "Warnings:" in report
        assert "Recommendations:" in report
        assert RECOMMEND_REVIEW_WIND in report
        assert report.endswith("=== End of Report ===")

    def test_clean_report(self, validator, mixed_views, sample_request):
        report = generate_report(validator.validate(mixed_views, sample_request.inputs, mixed_views[0]))

        assert "Overall Score: 100/100 PASSED" in report
        assert "Warnings:" not in report
        assert f"[+] {CHECK_LIGHTING}" in report
