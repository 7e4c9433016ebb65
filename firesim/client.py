"""
FireSim API Client

Async HTTP client for the generation endpoints, including a poller that
waits for a scenario to finish.

Job records become visible to the status endpoint eventually, not
instantly, so a 404 shortly after ``start_generation`` is expected. The
poller tolerates a bounded number of them with exponential backoff before
giving up.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from firesim.core.constants import JobStatus
from firesim.core.exceptions import GenerationClientError, PollingTimeoutError
from firesim.core.logging_config import get_logger

logger = get_logger("client")

ProgressCallback = Callable[[Dict[str, Any]], None]

TERMINAL_STATUSES = {JobStatus.COMPLETED.value, JobStatus.FAILED.value}


class GenerationClient:
    """
    Client for the FireSim generation API.

    Usage:
        async with GenerationClient("http://localhost:8000/api") as client:
            started = await client.start_generation(payload)
            result = await client.wait_for_completion(started["scenarioId"])
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def start_generation(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a scenario; returns ``{"scenarioId", "status", "statusUrl"}``."""
        response = await self._client.post(f"{self.base_url}/generate", json=request)
        return self._json_or_raise(response, "Failed to start generation")

    async def get_status(self, scenario_id: str) -> Optional[Dict[str, Any]]:
        """Current status, or None while the scenario is not (yet) visible."""
        response = await self._client.get(f"{self.base_url}/generate/{scenario_id}/status")
        if response.status_code == 404:
            return None
        return self._json_or_raise(response, "Failed to fetch status")

    async def get_results(self, scenario_id: str) -> Dict[str, Any]:
        response = await self._client.get(f"{self.base_url}/generate/{scenario_id}/results")
        return self._json_or_raise(response, "Failed to fetch results")

    async def wait_for_completion(
        self,
        scenario_id: str,
        on_progress: Optional[ProgressCallback] = None,
        poll_interval: float = 2.0,
        max_polls: int = 150,
        max_not_found: int = 5,
        not_found_backoff: float = 0.5
    ) -> Dict[str, Any]:
        """
        Poll until the scenario is terminal, then fetch its results.

        Args:
            scenario_id: Scenario to wait for
            on_progress: Called with every status payload
            poll_interval: Seconds between status polls
            max_polls: Status polls allowed before PollingTimeoutError
            max_not_found: 404 responses tolerated before giving up
            not_found_backoff: Initial delay after a 404, doubled each time

        Raises:
            GenerationClientError: scenario never became visible, or an API error
            PollingTimeoutError: scenario still running after ``max_polls``
        """
        polls = 0
        not_found = 0

        while polls < max_polls:
            status = await self.get_status(scenario_id)

            if status is None:
                not_found += 1
                if not_found > max_not_found:
                    raise GenerationClientError(
                        f"Scenario {scenario_id} not found after {max_not_found} retries",
                        status_code=404,
                    )
                delay = not_found_backoff * (2 ** (not_found - 1))
                logger.debug(f"Scenario {scenario_id} not visible yet, retrying in {delay:.2f}s")
                await self._sleep(delay)
                continue

            if on_progress:
                on_progress(status)

            if status.get("status") in TERMINAL_STATUSES:
                return await self.get_results(scenario_id)

            polls += 1
            await self._sleep(poll_interval)

        raise PollingTimeoutError(
            f"Scenario {scenario_id} still running after {max_polls} polls",
            details={"scenario_id": scenario_id},
        )

    def _json_or_raise(self, response: httpx.Response, fallback: str) -> Dict[str, Any]:
        if response.is_success:
            return response.json()
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("error") if isinstance(body, dict) else None
        raise GenerationClientError(
            message or f"{fallback}: HTTP {response.status_code}",
            status_code=response.status_code,
            details=body if isinstance(body, dict) else {},
        )
