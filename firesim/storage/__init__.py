"""FireSim job persistence."""

from .job_store import FileJobStore, InMemoryJobStore, JobStore

__all__ = ['JobStore', 'InMemoryJobStore', 'FileJobStore']
