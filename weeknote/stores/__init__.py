"""JSON document stores for prompt templates and daily records."""

from .base import (
    ConflictError,
    LastTemplateError,
    NotFoundError,
    StoreError,
    TemplateValidationError,
)
from .daily_logs import DailyLogStore, DailyRecord
from .prompt_templates import PromptTemplateState, PromptTemplateStore

__all__ = [
    "ConflictError",
    "DailyLogStore",
    "DailyRecord",
    "LastTemplateError",
    "NotFoundError",
    "PromptTemplateState",
    "PromptTemplateStore",
    "StoreError",
    "TemplateValidationError",
]
