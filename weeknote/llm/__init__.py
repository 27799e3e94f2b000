"""Model catalogue, chat provider and fallback orchestration."""

from .errors import ErrorType, GeneratorError, classify_error
from .manager import ModelManager
from .provider import ChatProvider
from .registry import (
    DEFAULT_MODEL,
    DEFAULT_REGISTRY,
    PLATFORM_DEFAULT_MODELS,
    ModelRegistry,
    get_free_models,
    get_model_meta,
    get_paid_models,
    is_reasoning_model,
    is_valid_model_id,
    platform_of,
)

__all__ = [
    "ChatProvider",
    "DEFAULT_MODEL",
    "DEFAULT_REGISTRY",
    "ErrorType",
    "GeneratorError",
    "ModelManager",
    "ModelRegistry",
    "PLATFORM_DEFAULT_MODELS",
    "classify_error",
    "get_free_models",
    "get_model_meta",
    "get_paid_models",
    "is_reasoning_model",
    "is_valid_model_id",
    "platform_of",
]
