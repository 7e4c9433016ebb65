"""
Job Store

Persistence for GenerationJob records, keyed by scenario id.

Consistency contract:
- ``read_after_write`` is True when a ``get`` issued after a completed
  ``create``/``update`` is guaranteed to observe it from any reader.
- InMemoryJobStore: read-after-write consistent within the process.
- FileJobStore: each write is an atomic file replace, so readers never see a
  torn record, but another process (or a shared/network volume) may observe a
  new job only after a delay. Callers polling across processes must treat a
  not-found result as retryable.

Writers: exactly one orchestration task writes a given scenario id.
"""

import asyncio
import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from firesim.core.exceptions import StorageError
from firesim.core.logging_config import get_logger
from firesim.core.models import GenerationJob

logger = get_logger("storage.job_store")

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class JobStore(ABC):
    """Create / read-by-id / update persistence for generation jobs."""

    read_after_write: bool = False

    @abstractmethod
    async def create(self, job: GenerationJob) -> None:
        """Store a new job. Raises StorageError if the id already exists."""
        pass

    @abstractmethod
    async def get(self, scenario_id: str) -> Optional[GenerationJob]:
        """Return a copy of the stored job, or None if not (yet) visible."""
        pass

    @abstractmethod
    async def update(self, job: GenerationJob) -> None:
        """Replace the stored job. Raises StorageError if it was never created."""
        pass


class InMemoryJobStore(JobStore):
    """Process-local store; snapshots in and out so callers never share state."""

    read_after_write = True

    def __init__(self):
        self._jobs: Dict[str, GenerationJob] = {}

    async def create(self, job: GenerationJob) -> None:
        if job.scenario_id in self._jobs:
            raise StorageError(f"Job already exists: {job.scenario_id}")
        self._jobs[job.scenario_id] = job.snapshot()

    async def get(self, scenario_id: str) -> Optional[GenerationJob]:
        job = self._jobs.get(scenario_id)
        return job.snapshot() if job else None

    async def update(self, job: GenerationJob) -> None:
        if job.scenario_id not in self._jobs:
            raise StorageError(f"Job not found for update: {job.scenario_id}")
        self._jobs[job.scenario_id] = job.snapshot()

    def __len__(self) -> int:
        return len(self._jobs)


class FileJobStore(JobStore):
    """
    One JSON document per job under ``root``.

    Writes go to a temporary file in the same directory followed by
    ``os.replace``, which is atomic on POSIX and Windows.
    """

    read_after_write = False

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, scenario_id: str) -> Path:
        if not _SAFE_ID.match(scenario_id):
            raise StorageError(f"Invalid scenario id: {scenario_id!r}")
        return self.root / f"{scenario_id}.json"

    async def create(self, job: GenerationJob) -> None:
        path = self._path(job.scenario_id)
        if path.exists():
            raise StorageError(f"Job already exists: {job.scenario_id}")
        await asyncio.to_thread(self._write, path, job.to_dict())

    async def get(self, scenario_id: str) -> Optional[GenerationJob]:
        # Nothing can be stored under an unsafe id
        if not _SAFE_ID.match(scenario_id):
            return None
        path = self._path(scenario_id)
        data = await asyncio.to_thread(self._read, path)
        return GenerationJob.from_dict(data) if data is not None else None

    async def update(self, job: GenerationJob) -> None:
        path = self._path(job.scenario_id)
        if not path.exists():
            raise StorageError(f"Job not found for update: {job.scenario_id}")
        await asyncio.to_thread(self._write, path, job.to_dict())

    def _write(self, path: Path, data: dict) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write job file {path.name}: {e}") from e

    def _read(self, path: Path) -> Optional[dict]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read job file {path.name}: {e}") from e
