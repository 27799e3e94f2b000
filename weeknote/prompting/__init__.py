"""Prompt construction for weekly report generation."""

from .builder import DAILY_LOG_PLACEHOLDER, PromptBuilder, contains_placeholder
from .constants import DEFAULT_SYSTEM_PROMPT, DEFAULT_USER_PROMPT_TEMPLATE

__all__ = [
    "DAILY_LOG_PLACEHOLDER",
    "DEFAULT_SYSTEM_PROMPT",
    "DEFAULT_USER_PROMPT_TEMPLATE",
    "PromptBuilder",
    "contains_placeholder",
]
