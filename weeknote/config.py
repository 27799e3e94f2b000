"""Configuration loading for weeknote (~/.weeknote/config.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .llm.registry import DEFAULT_MODEL, DEFAULT_REGISTRY, PLATFORM_DEFAULT_MODELS, ModelRegistry
from .models import GeneratorConfig, ModelConfig

CONFIG_FILENAME = "config.yml"
CONFIG_ENV_VAR = "WEEKNOTE_CONFIG"
DEFAULT_MODEL_ENV_VAR = "WEEKNOTE_DEFAULT_MODEL"

ENV_API_KEYS: Mapping[str, str] = {
    "siliconflow": "SILICONFLOW_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "openai": "OPENAI_API_KEY",
    "doubao": "DOUBAO_API_KEY",
}

THINKING_MODES = ("enabled", "disabled", "auto")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is incomplete."""


class MissingApiKeyError(ConfigError):
    """Raised when no API key is configured for the platform of the selected model."""

    def __init__(self, platform: str) -> None:
        env_var = ENV_API_KEYS.get(platform)
        hint = f" (set api_keys.{platform} in the config file"
        hint += f" or the {env_var} environment variable)" if env_var else ")"
        super().__init__(f"No API key configured for platform '{platform}'{hint}")
        self.platform = platform


@dataclass
class WeekNoteConfig:
    """Represents the settings stored in config.yml plus environment fallbacks."""

    path: Path
    default_model: Optional[str] = None
    api_keys: Dict[str, str] = field(default_factory=dict)
    fallback_models: List[str] = field(default_factory=list)
    enable_fallback: bool = True
    timeout: float = 60.0
    temperature: Optional[float] = None
    thinking_mode: Optional[str] = None
    doubao_endpoint: Optional[str] = None
    data_dir: Optional[Path] = None
    env_api_keys: Dict[str, str] = field(default_factory=dict, repr=False)
    env_default_model: Optional[str] = None

    @property
    def resolved_data_dir(self) -> Path:
        return self.data_dir or self.path.parent

    @property
    def effective_default_model(self) -> str:
        return self.default_model or self.env_default_model or DEFAULT_MODEL

    def api_key(self, platform: str) -> Optional[str]:
        """Return the key for ``platform``; the config file wins over the environment."""
        return self.api_keys.get(platform) or self.env_api_keys.get(platform)

    def configured_platforms(self) -> Dict[str, bool]:
        platforms = set(ENV_API_KEYS) | set(self.api_keys)
        return {platform: bool(self.api_key(platform)) for platform in sorted(platforms)}

    def to_dict(self) -> Dict[str, Any]:
        """Serialise file-backed values only; environment values are never written."""
        data: Dict[str, Any] = {}
        if self.default_model:
            data["default_model"] = self.default_model
        if self.api_keys:
            data["api_keys"] = dict(self.api_keys)
        if self.fallback_models:
            data["fallback_models"] = list(self.fallback_models)
        if not self.enable_fallback:
            data["enable_fallback"] = False
        if self.timeout != 60.0:
            data["timeout"] = self.timeout
        if self.temperature is not None:
            data["temperature"] = self.temperature
        if self.thinking_mode:
            data["thinking_mode"] = self.thinking_mode
        if self.doubao_endpoint:
            data["doubao_endpoint"] = self.doubao_endpoint
        if self.data_dir is not None:
            data["data_dir"] = str(self.data_dir)
        return data


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".weeknote" / CONFIG_FILENAME


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> WeekNoteConfig:
    """Load configuration from disk, filling gaps from the environment."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path or default_config_path(env))
    config = WeekNoteConfig(path=config_file)
    config.env_api_keys = {
        platform: env[var] for platform, var in ENV_API_KEYS.items() if env.get(var)
    }
    config.env_default_model = env.get(DEFAULT_MODEL_ENV_VAR) or None

    if not config_file.exists():
        return config

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    config.default_model = _as_str(data.get("default_model"))
    config.api_keys = {
        str(platform): str(key)
        for platform, key in _as_dict(data.get("api_keys")).items()
        if isinstance(key, str) and key.strip()
    }
    config.fallback_models = _as_str_list(data.get("fallback_models"))
    enable_fallback = _as_bool(data.get("enable_fallback"))
    if enable_fallback is not None:
        config.enable_fallback = enable_fallback
    timeout = _as_float(data.get("timeout"))
    if timeout is not None:
        if timeout <= 0:
            raise ConfigError("timeout must be a positive number of seconds")
        config.timeout = timeout
    config.temperature = _as_float(data.get("temperature"))
    config.thinking_mode = _as_str(data.get("thinking_mode"))
    if config.thinking_mode and config.thinking_mode not in THINKING_MODES:
        raise ConfigError(
            f"thinking_mode must be one of {', '.join(THINKING_MODES)}; got '{config.thinking_mode}'"
        )
    config.doubao_endpoint = _as_str(data.get("doubao_endpoint"))
    data_dir = _as_str(data.get("data_dir"))
    if data_dir:
        config.data_dir = (config_file.parent / Path(data_dir).expanduser()).resolve()
    return config


def save_config(config: WeekNoteConfig, config_path: Path | None = None) -> Path:
    """Write the file-backed settings of ``config`` as YAML and return the path."""
    target = _resolve_config_path(config_path) if config_path else config.path
    target.parent.mkdir(parents=True, exist_ok=True)
    text = yaml.safe_dump(config.to_dict(), allow_unicode=True, sort_keys=False)
    target.write_text(text, encoding="utf-8")
    return target


def build_generator_config(
    config: WeekNoteConfig,
    model_id: str | None = None,
    *,
    registry: ModelRegistry = DEFAULT_REGISTRY,
) -> GeneratorConfig:
    """Resolve the primary model, its credentials and the fallback chain."""
    resolved = model_id or config.effective_default_model
    meta = registry.get(resolved)
    if meta is None:
        raise ConfigError(f"Unknown model id: {resolved}")
    api_key = config.api_key(meta.platform)
    if not api_key:
        raise MissingApiKeyError(meta.platform)

    primary = _model_config(config, resolved, api_key, registry)
    fallback: List[ModelConfig] = []
    for candidate in _fallback_ids(config, resolved, registry):
        key = config.api_key(registry.require(candidate).platform)
        if key:
            fallback.append(_model_config(config, candidate, key, registry))

    return GeneratorConfig(
        primary=primary,
        fallback=fallback,
        enable_fallback=config.enable_fallback,
        timeout_ms=int(config.timeout * 1000),
    )


def _fallback_ids(config: WeekNoteConfig, primary_id: str, registry: ModelRegistry) -> List[str]:
    if config.fallback_models:
        ids = [model for model in config.fallback_models if registry.is_valid_model_id(model)]
    else:
        primary_platform = registry.require(primary_id).platform
        ids = [
            PLATFORM_DEFAULT_MODELS[platform]
            for platform in registry.platforms()
            if platform != primary_platform and platform in PLATFORM_DEFAULT_MODELS
        ]
    seen = {primary_id}
    ordered: List[str] = []
    for model in ids:
        if model not in seen:
            seen.add(model)
            ordered.append(model)
    return ordered


def _model_config(
    config: WeekNoteConfig, model_id: str, api_key: str, registry: ModelRegistry
) -> ModelConfig:
    meta = registry.require(model_id)
    return ModelConfig(
        model_id=model_id,
        api_key=api_key,
        temperature=config.temperature,
        endpoint_id=config.doubao_endpoint if meta.platform == "doubao" else None,
        thinking_mode=config.thinking_mode if meta.reasoning else None,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "ConfigError",
    "MissingApiKeyError",
    "WeekNoteConfig",
    "build_generator_config",
    "default_config_path",
    "load_config",
    "save_config",
]
