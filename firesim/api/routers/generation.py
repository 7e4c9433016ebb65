"""Generation router for the FireSim API.

Thin HTTP handlers over the GenerationOrchestrator: start a scenario, poll
its status, fetch final results.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from slowapi import Limiter
from slowapi.util import get_remote_address

from firesim.core.config import get_settings
from firesim.core.exceptions import JobNotFoundError
from firesim.core.logging_config import get_logger
from firesim.core.models import GenerationJob
from firesim.pipelines.generation_orchestrator import GenerationOrchestrator

logger = get_logger("api.generation")

router = APIRouter()

# Rate limiter for the expensive start endpoint
limiter = Limiter(key_func=get_remote_address)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateResponse(CamelModel):
    scenario_id: str
    status: str
    status_url: str


class StatusResults(CamelModel):
    images: List[Dict[str, Any]]
    anchor_image: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class StatusResponse(CamelModel):
    scenario_id: str
    status: str
    progress: str
    total_images: int
    completed_images: int
    failed_images: int
    thinking_text: Optional[str] = None
    seed: Optional[int] = None
    created_at: str
    updated_at: str
    results: StatusResults

    @classmethod
    def from_job(cls, job: GenerationJob) -> "StatusResponse":
        return cls(
            scenario_id=job.scenario_id,
            status=job.status.value,
            progress=f"{job.completed_images}/{job.total_images} images",
            total_images=job.total_images,
            completed_images=job.completed_images,
            failed_images=job.failed_images,
            thinking_text=job.thinking_text,
            seed=job.seed,
            created_at=job.created_at,
            updated_at=job.updated_at,
            results=StatusResults(
                images=[img.to_dict() for img in job.images],
                anchor_image=job.anchor_image.to_dict() if job.anchor_image else None,
                error=job.error,
            ),
        )


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """Orchestrator attached to the running app."""
    return request.app.state.orchestrator


@router.post("", status_code=202, response_model=GenerateResponse)
@limiter.limit(lambda: get_settings().rate_limit)
async def start_generation(
    request: Request,
    payload: Any = Body(...),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Accept a scenario and generate its images in the background.

    Invalid requests are rejected with 400 and unsafe prompts with 422; both
    are mapped by the app's exception handlers.
    """
    scenario_id = await orchestrator.start_generation(payload)
    return GenerateResponse(
        scenario_id=scenario_id,
        status="pending",
        status_url=str(request.url_for("get_generation_status", scenario_id=scenario_id)),
    )


@router.get("/{scenario_id}/status", response_model=StatusResponse)
async def get_generation_status(
    scenario_id: str,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Poll a scenario. A 404 right after creation is retryable."""
    job = await orchestrator.get_status(scenario_id)
    if job is None:
        raise JobNotFoundError(scenario_id)
    return StatusResponse.from_job(job)


@router.get("/{scenario_id}/results")
async def get_generation_results(
    scenario_id: str,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Final images and consistency validation; 409 until the job is finished."""
    result = await orchestrator.get_results(scenario_id)
    return result.to_dict()
