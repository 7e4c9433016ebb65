"""
FireSim Pipelines Module

Background orchestration of scenario generation jobs.
"""

from .generation_orchestrator import GenerationOrchestrator

__all__ = ['GenerationOrchestrator']
