"""
FireSim Custom Exceptions

Exception classes for error handling throughout the scenario generation pipeline.
"""

from typing import List, Optional


class FireSimError(Exception):
    """Base exception for all FireSim errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(FireSimError):
    """Raised when there's an issue with configuration."""
    pass


# =============================================================================
# REQUEST ERRORS
# =============================================================================

class RequestValidationError(FireSimError):
    """Raised when a scenario request is rejected before a job is created."""

    def __init__(self, problems: List[str]):
        message = f"Invalid scenario request: {'; '.join(problems)}"
        super().__init__(message, {"problems": list(problems)})
        self.problems = list(problems)


# =============================================================================
# PROMPT ERRORS
# =============================================================================

class PromptError(FireSimError):
    """Base exception for prompt composition errors."""
    pass


class PromptSafetyViolation(PromptError):
    """Raised when a composed prompt contains blocked terms."""

    def __init__(
        self,
        blocked_terms: List[str],
        viewpoint: Optional[str] = None,
        scenario_id: Optional[str] = None
    ):
        message = f"Prompt contains blocked terms: {', '.join(blocked_terms)}"
        details = {"blocked_terms": list(blocked_terms)}
        if viewpoint:
            details["viewpoint"] = viewpoint
        super().__init__(message, details)
        self.blocked_terms = list(blocked_terms)
        self.viewpoint = viewpoint
        self.scenario_id = scenario_id


# =============================================================================
# IMAGE GENERATION ERRORS
# =============================================================================

class ImageGenerationError(FireSimError):
    """Base exception for image model failures."""

    def __init__(self, message: str, details: dict = None, thinking_text: Optional[str] = None):
        super().__init__(message, details)
        self.thinking_text = thinking_text


class TransientImageGenerationError(ImageGenerationError):
    """Raised for failures worth retrying (rate limits, 5xx, timeouts)."""
    pass


class ImageModelUnavailableError(ImageGenerationError):
    """Raised when the image model cannot be reached or is not configured."""
    pass


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================

class OrchestrationError(FireSimError):
    """Base exception for generation orchestration errors."""
    pass


class InvalidJobTransitionError(OrchestrationError):
    """Raised when a job is moved along an edge the state machine forbids."""

    def __init__(self, scenario_id: str, current: str, target: str):
        message = f"Job '{scenario_id}' cannot move from {current} to {target}"
        super().__init__(message, {
            "scenario_id": scenario_id,
            "current": current,
            "target": target
        })


# =============================================================================
# JOB ERRORS
# =============================================================================

class JobError(FireSimError):
    """Base exception for job lookup errors."""
    pass


class JobNotFoundError(JobError):
    """Raised when a scenario id is unknown (possibly not yet visible)."""

    def __init__(self, scenario_id: str):
        super().__init__(f"Scenario not found: '{scenario_id}'", {"scenario_id": scenario_id})
        self.scenario_id = scenario_id


class JobNotFinishedError(JobError):
    """Raised when results are requested before the job is terminal."""

    def __init__(self, scenario_id: str, status: str):
        super().__init__(
            f"Scenario '{scenario_id}' is still {status}",
            {"scenario_id": scenario_id, "status": status}
        )
        self.scenario_id = scenario_id
        self.status = status


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(FireSimError):
    """Raised when the job store cannot read or write a record."""
    pass


# =============================================================================
# CLIENT ERRORS
# =============================================================================

class GenerationClientError(FireSimError):
    """Raised by the HTTP client for non-retryable API responses."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: dict = None):
        super().__init__(message, details)
        self.status_code = status_code


class PollingTimeoutError(GenerationClientError):
    """Raised when a scenario does not finish within the polling budget."""
    pass
