"""
FireSim Prompts Module

Template tables and the safety-checked prompt composer.
"""

from .composer import (
    BLOCKED_TERMS,
    PromptComposer,
    check_prompt_safety,
    compose,
    generate_prompt_set,
)
from .templates import DEFAULT_TEMPLATE, PromptTemplate

__all__ = [
    'BLOCKED_TERMS',
    'PromptComposer',
    'check_prompt_safety',
    'compose',
    'generate_prompt_set',
    'DEFAULT_TEMPLATE',
    'PromptTemplate',
]
