"""
Generation Orchestrator

Runs one background task per scenario that turns a validated request into a
set of images, keeping the job record current for pollers.

Job lifecycle:
    pending -> in_progress -> completed | failed

- The first requested viewpoint (the anchor) is generated alone; the rest
  start only once it has resolved, and then run with bounded concurrency,
  each passing the anchor image as a style reference.
- Every viewpoint outcome is written to the job immediately.
- completed: at least one image succeeded; the consistency validator runs
  once and its result is attached.
- failed: every viewpoint failed, the image model was unavailable, the job
  timed out, was cancelled, or hit an unexpected error. ``error`` says which.

Job writes are serialized per scenario by an asyncio.Lock; the record is
mutated without suspending and persisted while the lock is held, so stored
snapshots are linearizable.
"""

import asyncio
import random
import time
import uuid
from typing import Any, Awaitable, Dict, Optional, Set, Union

from firesim.core.cache import TTLCache
from firesim.core.config import Settings, get_settings
from firesim.core.constants import JOB_TRANSITIONS, JobStatus, MAX_SEED_VALUE
from firesim.core.exceptions import (
    InvalidJobTransitionError,
    JobNotFinishedError,
    JobNotFoundError,
    OrchestrationError,
    PromptSafetyViolation,
    StorageError,
)
from firesim.core.image_handler import ImageGenerationResult, ImageGenerator
from firesim.core.logging_config import get_logger
from firesim.core.models import (
    GeneratedImage,
    GeneratedPrompt,
    GenerationJob,
    GenerationResult,
    ImageMetadata,
    PromptSet,
    ScenarioRequest,
    utc_now_iso,
)
from firesim.core.retry import RetryConfig, retry_async_call
from firesim.prompts.composer import PromptComposer
from firesim.quality.consistency_validator import ConsistencyValidator
from firesim.storage.job_store import InMemoryJobStore, JobStore

logger = get_logger("pipelines.orchestrator")


class GenerationOrchestrator:
    """
    Schedules and tracks scenario generation jobs.

    Usage:
        orchestrator = GenerationOrchestrator(GeminiImageGenerator.from_settings(settings))
        scenario_id = await orchestrator.start_generation(payload)
        job = await orchestrator.get_status(scenario_id)
    """

    def __init__(
        self,
        image_generator: ImageGenerator,
        job_store: Optional[JobStore] = None,
        composer: Optional[PromptComposer] = None,
        validator: Optional[ConsistencyValidator] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.image_generator = image_generator
        self.job_store = job_store or InMemoryJobStore()
        self.composer = composer or PromptComposer()
        self.validator = validator or ConsistencyValidator()

        self.max_concurrent = max(1, min(self.settings.max_concurrent_images, image_generator.max_concurrent))
        self.retry_config = RetryConfig.from_settings(self.settings)

        # Live jobs, served to pollers ahead of the store
        self._jobs: Dict[str, GenerationJob] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._resolved: Dict[str, Set[str]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._unpersisted: Set[str] = set()
        # Finished jobs kept readable while a slow store catches up
        self._finished = TTLCache(
            ttl=self.settings.finished_job_ttl, max_size=self.settings.finished_job_cache_size
        )

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    # =========================================================================
    # Public API
    # =========================================================================

    async def start_generation(self, request: Union[ScenarioRequest, Dict[str, Any]]) -> str:
        """
        Accept a request and start generating in the background.

        Returns:
            The new scenario id

        Raises:
            RequestValidationError: request rejected, no job created
            PromptSafetyViolation: a failed job was recorded under
                ``error.scenario_id``; no image was requested
        """
        if not isinstance(request, ScenarioRequest):
            request = ScenarioRequest.from_dict(request)

        scenario_id = str(uuid.uuid4())
        seed = request.seed if request.seed is not None else random.randrange(MAX_SEED_VALUE)
        job = GenerationJob(
            scenario_id=scenario_id,
            total_images=len(request.requested_views),
            requested_views=list(request.requested_views),
            seed=seed,
            template_version=self.composer.template_version,
        )

        try:
            prompt_set = self.composer.generate_prompt_set(request)
        except PromptSafetyViolation as e:
            e.scenario_id = scenario_id
            job.error = f"Prompt safety violation: blocked terms {', '.join(e.blocked_terms)}"
            self._apply_transition(job, JobStatus.FAILED)
            job.touch()
            await self.job_store.create(job)
            logger.warning(f"Scenario {scenario_id} rejected: {job.error}")
            raise

        job.prompt_set_id = prompt_set.id
        await self.job_store.create(job)
        self._jobs[scenario_id] = job
        self._locks[scenario_id] = asyncio.Lock()
        self._resolved[scenario_id] = set()

        task = asyncio.create_task(self._run_job(job, request, prompt_set), name=f"scenario-{scenario_id}")
        self._tasks[scenario_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(scenario_id, None))

        logger.info(
            f"Scenario {scenario_id} accepted: {job.total_images} viewpoints, seed {seed}, "
            f"prompt set {prompt_set.id}"
        )
        return scenario_id

    async def get_status(self, scenario_id: str) -> Optional[GenerationJob]:
        """Snapshot of the job, or None if it is unknown or not yet visible."""
        job = self._jobs.get(scenario_id)
        if job is None:
            job = self._finished.get(scenario_id)
        if job is not None:
            return job.snapshot()
        return await self.job_store.get(scenario_id)

    async def get_results(self, scenario_id: str) -> GenerationResult:
        """
        Final result of a terminal job.

        Raises:
            JobNotFoundError: unknown (or not yet visible) scenario id
            JobNotFinishedError: job still pending or in progress
        """
        job = await self.get_status(scenario_id)
        if job is None:
            raise JobNotFoundError(scenario_id)
        if not job.is_terminal:
            raise JobNotFinishedError(scenario_id, job.status.value)
        return GenerationResult.from_job(job)

    async def wait_for(self, scenario_id: str) -> Optional[GenerationJob]:
        """Wait for a job's background task to finish and return its final snapshot."""
        task = self._tasks.get(scenario_id)
        if task is not None:
            await asyncio.wait({task})
        return await self.get_status(scenario_id)

    async def shutdown(self) -> None:
        """Cancel running jobs; each ends failed with 'Generation cancelled'."""
        running = dict(self._tasks)
        if not running:
            return
        logger.info(f"Cancelling {len(running)} running generation job(s)")
        for task in running.values():
            task.cancel()
        await asyncio.gather(*running.values(), return_exceptions=True)

        # Tasks cancelled before their first step never reach _run_job
        for scenario_id in running:
            job = self._jobs.get(scenario_id)
            if job is not None and not job.is_terminal:
                await self._fail(job, "Generation cancelled")
                self._release(job)

    # =========================================================================
    # Job execution
    # =========================================================================

    async def _run_job(self, job: GenerationJob, request: ScenarioRequest, prompt_set: PromptSet) -> None:
        timeout = self.settings.job_timeout_seconds
        try:
            await asyncio.wait_for(self._generate_all(job, request, prompt_set), timeout=timeout)
        except asyncio.TimeoutError:
            await self._fail(job, f"Generation timed out after {timeout:g} seconds")
        except asyncio.CancelledError:
            await self._fail(job, "Generation cancelled")
            raise
        except Exception as e:
            logger.exception(f"Scenario {job.scenario_id} crashed")
            await self._fail(job, f"Generation failed unexpectedly: {e}")
        finally:
            self._release(job)

    async def _generate_all(self, job: GenerationJob, request: ScenarioRequest, prompt_set: PromptSet) -> None:
        if not await self.image_generator.is_available():
            await self._fail(job, f"Image model {self.image_generator.model_id} is unavailable")
            return

        anchor_view, *other_views = request.requested_views

        async with self._locks[job.scenario_id]:
            self._apply_transition(job, JobStatus.IN_PROGRESS)
            job.touch()
            await self._persist(job)

        anchor = await self._generate_view(job, prompt_set.prompt_for(anchor_view), reference=None)
        reference = anchor.image_ref if anchor else None

        if other_views:
            semaphore = asyncio.Semaphore(self.max_concurrent)

            async def run(view):
                async with semaphore:
                    await self._generate_view(job, prompt_set.prompt_for(view), reference=reference)

            await asyncio.gather(*(run(view) for view in other_views))

        await self._finalize(job, request)

    async def _generate_view(
        self,
        job: GenerationJob,
        prompt: GeneratedPrompt,
        reference: Optional[str]
    ) -> Optional[GeneratedImage]:
        view = prompt.viewpoint

        def on_thinking(text: str) -> None:
            self._set_thinking(job, text)

        def call() -> Awaitable[ImageGenerationResult]:
            return self.image_generator.generate(
                prompt.prompt_text,
                reference_image=reference,
                seed=job.seed,
                on_thinking=on_thinking,
            )

        logger.info(f"Scenario {job.scenario_id}: generating {view.value}" + (" with reference" if reference else ""))
        start = time.monotonic()
        try:
            result = await retry_async_call(call, config=self.retry_config, label=f"Viewpoint {view.value}")
        except Exception as e:
            thinking = getattr(e, "thinking_text", None)
            if thinking:
                self._set_thinking(job, thinking)
            await self._record_failure(job, view.value, e)
            return None

        duration_ms = int((time.monotonic() - start) * 1000)
        if result.thinking_text:
            self._set_thinking(job, result.thinking_text)
        return await self._record_success(job, prompt, result, reference, duration_ms)

    # =========================================================================
    # Job record mutation (single writer per scenario)
    # =========================================================================

    async def _record_success(
        self,
        job: GenerationJob,
        prompt: GeneratedPrompt,
        result: ImageGenerationResult,
        reference: Optional[str],
        duration_ms: int
    ) -> Optional[GeneratedImage]:
        async with self._locks[job.scenario_id]:
            if job.is_terminal:
                return None
            self._mark_resolved(job, prompt.viewpoint.value)

            image = GeneratedImage(
                view_point=prompt.viewpoint,
                image_ref=result.image_handle,
                metadata=ImageMetadata(
                    prompt=prompt.prompt_text,
                    model=result.model_id,
                    seed=result.seed if result.seed is not None else job.seed,
                    generation_time_ms=result.generation_time_ms or duration_ms,
                    generated_at=utc_now_iso(),
                    is_anchor=job.anchor_image is None,
                    used_reference_image=reference is not None,
                ),
            )
            job.images.append(image)
            job.completed_images += 1
            if job.anchor_image is None:
                job.anchor_image = image
            job.touch()
            await self._persist(job)

        logger.info(
            f"Scenario {job.scenario_id}: {prompt.viewpoint.value} done "
            f"({job.resolved_images}/{job.total_images})"
        )
        return image

    async def _record_failure(self, job: GenerationJob, view: str, error: Exception) -> None:
        async with self._locks[job.scenario_id]:
            if job.is_terminal:
                return
            self._mark_resolved(job, view)
            job.failed_images += 1
            job.touch()
            await self._persist(job)

        logger.error(
            f"Scenario {job.scenario_id}: {view} failed ({job.resolved_images}/{job.total_images}): {error}"
        )

    async def _finalize(self, job: GenerationJob, request: ScenarioRequest) -> None:
        async with self._locks[job.scenario_id]:
            if job.is_terminal:
                return
            if job.completed_images > 0:
                job.validation = self.validator.validate(job.images, request.inputs, job.anchor_image)
                self._apply_transition(job, JobStatus.COMPLETED)
            else:
                job.error = f"All {job.total_images} viewpoint(s) failed to generate"
                self._apply_transition(job, JobStatus.FAILED)
            job.touch()
            await self._persist(job)

        logger.info(
            f"Scenario {job.scenario_id} {job.status.value}: "
            f"{job.completed_images} completed, {job.failed_images} failed"
        )

    async def _fail(self, job: GenerationJob, message: str) -> None:
        async with self._locks[job.scenario_id]:
            if job.is_terminal:
                return
            job.error = message
            self._apply_transition(job, JobStatus.FAILED)
            job.touch()
            await self._persist(job)
        logger.error(f"Scenario {job.scenario_id} failed: {message}")

    def _set_thinking(self, job: GenerationJob, text: str) -> None:
        # Last value wins; reaches the store with the next progress write
        if job.is_terminal:
            return
        job.thinking_text = text
        job.touch()

    def _mark_resolved(self, job: GenerationJob, view: str) -> None:
        resolved = self._resolved[job.scenario_id]
        if view in resolved or job.resolved_images >= job.total_images:
            raise OrchestrationError(
                f"Viewpoint {view} resolved twice for scenario {job.scenario_id}",
                {"scenario_id": job.scenario_id, "viewpoint": view},
            )
        resolved.add(view)

    def _apply_transition(self, job: GenerationJob, target: JobStatus) -> None:
        if target not in JOB_TRANSITIONS[job.status]:
            raise InvalidJobTransitionError(job.scenario_id, job.status.value, target.value)
        logger.debug(f"Scenario {job.scenario_id}: {job.status.value} -> {target.value}")
        job.status = target

    async def _persist(self, job: GenerationJob) -> bool:
        try:
            await self.job_store.update(job)
            self._unpersisted.discard(job.scenario_id)
            return True
        except StorageError as e:
            self._unpersisted.add(job.scenario_id)
            logger.error(f"Scenario {job.scenario_id}: failed to persist job: {e}")
            return False

    def _release(self, job: GenerationJob) -> None:
        """Drop a finished job from the live registry once the store holds its final state."""
        self._resolved.pop(job.scenario_id, None)
        if not job.is_terminal or job.scenario_id in self._unpersisted:
            return
        self._jobs.pop(job.scenario_id, None)
        self._locks.pop(job.scenario_id, None)
        if not self.job_store.read_after_write:
            self._finished.set(job.scenario_id, job)
