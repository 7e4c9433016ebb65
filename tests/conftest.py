"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import asyncio
import copy
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from firesim.core.config import Settings
from firesim.core.exceptions import ImageGenerationError, TransientImageGenerationError
from firesim.core.image_handler import ImageGenerationResult, ImageGenerator
from firesim.core.models import ScenarioRequest


class FakeImageGenerator(ImageGenerator):
    """
    In-process image generator for orchestrator tests.

    Fails any prompt containing one of ``fail_on`` (permanent failure), fails
    the first ``transient_failures`` calls with a retryable error, and records
    the order in which calls start and finish.
    """

    model_id = "fake-image-model"

    def __init__(
        self,
        fail_on: Optional[List[str]] = None,
        fail_all: bool = False,
        transient_failures: int = 0,
        delay: float = 0.0,
        available: bool = True,
        thinking: Optional[str] = None,
        max_concurrent: int = 4
    ):
        self.fail_on = fail_on or []
        self.fail_all = fail_all
        self.transient_failures = transient_failures
        self.delay = delay
        self.available = available
        self.thinking = thinking
        self.max_concurrent = max_concurrent

        self.calls: List[Dict[str, Any]] = []
        self.events: List[tuple] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def is_available(self) -> bool:
        return self.available

    async def generate(self, prompt, reference_image=None, seed=None, on_thinking=None):
        index = len(self.calls)
        self.calls.append({"prompt": prompt, "reference_image": reference_image, "seed": seed})
        self.events.append(("start", index))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.thinking and on_thinking:
                on_thinking(f"{self.thinking} #{index}")
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.transient_failures > 0:
                self.transient_failures -= 1
                raise TransientImageGenerationError("rate limited")
            if self.fail_all or any(marker in prompt for marker in self.fail_on):
                raise ImageGenerationError("model refused", thinking_text="could not render")
            return ImageGenerationResult(
                image_handle=f"memory://image-{index}.png",
                model_id=self.model_id,
                seed=seed,
                generation_time_ms=5,
            )
        finally:
            self.in_flight -= 1
            self.events.append(("end", index))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_settings(temp_dir) -> Settings:
    """Settings with fast retries and no .env lookup."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        max_concurrent_images=3,
        max_retries=1,
        retry_base_delay=0.0,
        image_timeout_seconds=5.0,
        job_timeout_seconds=30.0,
        image_output_dir=temp_dir / "images",
    )


@pytest.fixture
def fake_generator_cls():
    """The fake generator class, for tests that need custom behaviour."""
    return FakeImageGenerator


@pytest.fixture
def fake_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def sample_request_dict() -> Dict[str, Any]:
    """A valid scenario request payload (camelCase wire format)."""
    return {
        "perimeter": {
            "type": "Feature",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[
                    [150.30, -33.70],
                    [150.31, -33.70],
                    [150.31, -33.71],
                    [150.30, -33.71],
                    [150.30, -33.70],
                ]],
            },
            "properties": {},
        },
        "inputs": {
            "windSpeed": 45,
            "windDirection": "NW",
            "temperature": 38,
            "humidity": 12,
            "timeOfDay": "afternoon",
            "intensity": "veryHigh",
            "fireStage": "established",
        },
        "geoContext": {
            "vegetationType": "Dry Sclerophyll Forest",
            "elevation": {"min": 200, "max": 450, "mean": 320},
            "slope": {"min": 2, "max": 28, "mean": 12},
            "aspect": "N",
            "nearbyFeatures": ["road", "river"],
            "dataSource": "NVIS",
            "confidence": "high",
        },
        "requestedViews": ["ground_north", "aerial", "helicopter_east", "ridge"],
    }


@pytest.fixture
def make_request_dict(sample_request_dict):
    """Factory returning a deep-copied payload with top-level or nested overrides."""
    def _make(views=None, inputs=None, geo=None, **top_level):
        data = copy.deepcopy(sample_request_dict)
        if views is not None:
            data["requestedViews"] = views
        if inputs:
            data["inputs"].update(inputs)
        if geo:
            data["geoContext"].update(geo)
        data.update(top_level)
        return data
    return _make


@pytest.fixture
def sample_request(sample_request_dict) -> ScenarioRequest:
    return ScenarioRequest.from_dict(sample_request_dict)
