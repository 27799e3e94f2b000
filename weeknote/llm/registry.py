"""Static catalogue of selectable LLM backends."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from ..models import ModelMeta

_ARK_BASE_URL = "https://ark.cn-beijing.volces.com/api/v3"
_DEEPSEEK_BASE_URL = "https://api.deepseek.com"
_OPENAI_BASE_URL = "https://api.openai.com/v1"
_SILICONFLOW_BASE_URL = "https://api.siliconflow.cn/v1"


def platform_of(model_id: str) -> str:
    """Return the platform prefix of a ``platform/name`` model id."""
    return model_id.split("/", 1)[0]


class ModelRegistry:
    """Read-only lookup over a fixed set of :class:`ModelMeta` entries."""

    def __init__(self, models: Iterable[ModelMeta]) -> None:
        catalogue: Dict[str, ModelMeta] = {}
        for meta in models:
            if meta.id in catalogue:
                raise ValueError(f"Duplicate model id: {meta.id}")
            catalogue[meta.id] = meta
        self._models: Mapping[str, ModelMeta] = MappingProxyType(catalogue)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def get(self, model_id: str) -> Optional[ModelMeta]:
        return self._models.get(model_id)

    def require(self, model_id: str) -> ModelMeta:
        meta = self._models.get(model_id)
        if meta is None:
            raise KeyError(f"Unknown model id: {model_id}")
        return meta

    def is_valid_model_id(self, model_id: object) -> bool:
        return isinstance(model_id, str) and model_id in self._models

    def all(self) -> List[ModelMeta]:
        return list(self._models.values())

    def free_models(self) -> List[ModelMeta]:
        return [meta for meta in self._models.values() if meta.is_free]

    def paid_models(self) -> List[ModelMeta]:
        return [meta for meta in self._models.values() if not meta.is_free]

    def platforms(self) -> List[str]:
        seen: List[str] = []
        for meta in self._models.values():
            if meta.platform not in seen:
                seen.append(meta.platform)
        return seen

    def models_for_platform(self, platform: str) -> List[ModelMeta]:
        return [meta for meta in self._models.values() if meta.platform == platform]

    def display_name(self, model_id: str) -> str:
        """Return the human-readable name, or the id itself when unknown."""
        meta = self._models.get(model_id)
        return meta.display_name if meta is not None else model_id

    def is_reasoning_model(self, model_id: str) -> bool:
        meta = self._models.get(model_id)
        return bool(meta and meta.reasoning)


DEFAULT_REGISTRY = ModelRegistry(
    [
        ModelMeta(
            id="doubao/seed-1.8",
            display_name="Doubao Seed 1.8 (reasoning)",
            api_model_name="doubao-seed-1.8",
            base_url=_ARK_BASE_URL,
            is_free=False,
            description="Reasoning model; thinks before answering, higher latency",
            reasoning=True,
        ),
        ModelMeta(
            id="doubao/seed-1.6",
            display_name="Doubao Seed 1.6 (reasoning)",
            api_model_name="doubao-seed-1.6",
            base_url=_ARK_BASE_URL,
            is_free=False,
            description="Reasoning model with adjustable thinking length",
            reasoning=True,
        ),
        ModelMeta(
            id="deepseek/deepseek-chat",
            display_name="DeepSeek Chat",
            api_model_name="deepseek-chat",
            base_url=_DEEPSEEK_BASE_URL,
            is_free=False,
            description="Official DeepSeek API, good value",
        ),
        ModelMeta(
            id="deepseek/deepseek-reasoner",
            display_name="DeepSeek R1 (reasoning)",
            api_model_name="deepseek-reasoner",
            base_url=_DEEPSEEK_BASE_URL,
            is_free=False,
            description="Reasoning model; slower but more thorough",
            reasoning=True,
        ),
        ModelMeta(
            id="openai/gpt-4o",
            display_name="GPT-4o",
            api_model_name="gpt-4o",
            base_url=_OPENAI_BASE_URL,
            is_free=False,
            description="OpenAI flagship model",
        ),
        ModelMeta(
            id="openai/gpt-4o-mini",
            display_name="GPT-4o Mini",
            api_model_name="gpt-4o-mini",
            base_url=_OPENAI_BASE_URL,
            is_free=False,
            description="Lightweight OpenAI model, fast",
        ),
        ModelMeta(
            id="siliconflow/qwen2.5-7b",
            display_name="Qwen 2.5 (7B)",
            api_model_name="Qwen/Qwen2.5-7B-Instruct",
            base_url=_SILICONFLOW_BASE_URL,
            is_free=True,
            description="Open Qwen model, fine for everyday use",
        ),
        ModelMeta(
            id="siliconflow/glm-4-9b",
            display_name="GLM-4 (9B)",
            api_model_name="THUDM/glm-4-9b-chat",
            base_url=_SILICONFLOW_BASE_URL,
            is_free=True,
            description="Open Zhipu model with strong Chinese support",
        ),
        ModelMeta(
            id="siliconflow/glm-z1-9b",
            display_name="GLM-Z1 (9B)",
            api_model_name="THUDM/GLM-Z1-9B-0414",
            base_url=_SILICONFLOW_BASE_URL,
            is_free=True,
            description="Latest open Zhipu model",
        ),
    ]
)

DEFAULT_MODEL = "siliconflow/qwen2.5-7b"

# Model used for a platform when it appears in an implicit fallback chain.
PLATFORM_DEFAULT_MODELS: Mapping[str, str] = MappingProxyType(
    {
        "siliconflow": "siliconflow/qwen2.5-7b",
        "deepseek": "deepseek/deepseek-chat",
        "openai": "openai/gpt-4o",
        "doubao": "doubao/seed-1.6",
    }
)


def is_valid_model_id(model_id: object) -> bool:
    return DEFAULT_REGISTRY.is_valid_model_id(model_id)


def get_free_models() -> List[ModelMeta]:
    return DEFAULT_REGISTRY.free_models()


def get_paid_models() -> List[ModelMeta]:
    return DEFAULT_REGISTRY.paid_models()


def get_model_meta(model_id: str) -> Optional[ModelMeta]:
    return DEFAULT_REGISTRY.get(model_id)


def is_reasoning_model(model_id: str) -> bool:
    return DEFAULT_REGISTRY.is_reasoning_model(model_id)


__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_REGISTRY",
    "ModelRegistry",
    "PLATFORM_DEFAULT_MODELS",
    "get_free_models",
    "get_model_meta",
    "get_paid_models",
    "is_reasoning_model",
    "is_valid_model_id",
    "platform_of",
]
