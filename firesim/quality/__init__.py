"""FireSim consistency validation."""

from .consistency_validator import ConsistencyValidator, generate_report

__all__ = ['ConsistencyValidator', 'generate_report']
