"""Runs a generation request across the primary model and its fallback chain."""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Sequence, Set

from ..logging import get_logger, log_context
from ..models import ChatMessage, Completion, GeneratorConfig, ModelConfig
from .errors import ErrorType, GeneratorError, classify_error
from .provider import ChatProvider, ChunkCallback
from .registry import DEFAULT_REGISTRY, ModelRegistry

_Attempt = Callable[[ModelConfig], Awaitable[str]]


class ModelManager:
    """Tries each configured model once, in order, until one produces output.

    Transient failures move on to the next candidate. An auth failure rules
    out the rest of that platform's candidates but not other platforms. An
    unclassified failure stops the chain immediately.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        *,
        registry: ModelRegistry | None = None,
        provider: ChatProvider | None = None,
    ) -> None:
        self.config = config
        self.registry = registry or DEFAULT_REGISTRY
        self.provider = provider or ChatProvider(
            self.registry, timeout=config.timeout_ms / 1000.0
        )
        self.logger = get_logger("llm.manager")

    def candidates(self) -> List[ModelConfig]:
        chain = [self.config.primary]
        if self.config.enable_fallback:
            chain.extend(self.config.fallback)
        return chain

    async def generate(self, messages: Sequence[ChatMessage]) -> Completion:
        async def attempt(model_config: ModelConfig) -> str:
            return await self.provider.generate(messages, model_config)

        return await self._run(attempt, delivered=lambda: False)

    async def generate_stream(
        self,
        messages: Sequence[ChatMessage],
        on_chunk: ChunkCallback,
        on_thinking: Optional[ChunkCallback] = None,
    ) -> Completion:
        delivered = False

        def forward(callback: ChunkCallback) -> ChunkCallback:
            def emit(text: str) -> None:
                nonlocal delivered
                delivered = True
                callback(text)

            return emit

        async def attempt(model_config: ModelConfig) -> str:
            return await self.provider.generate_stream(
                messages,
                model_config,
                forward(on_chunk),
                forward(on_thinking) if on_thinking is not None else None,
            )

        return await self._run(attempt, delivered=lambda: delivered)

    async def _run(self, attempt: _Attempt, *, delivered: Callable[[], bool]) -> Completion:
        failures: List[GeneratorError] = []
        failed_platforms: Set[str] = set()
        last_model_id: Optional[str] = None

        for model_config in self.candidates():
            model_id = model_config.model_id
            if model_config.platform in failed_platforms:
                self.logger.warning(
                    "Skipping %s: credentials for platform '%s' were rejected",
                    model_id,
                    model_config.platform,
                )
                continue

            last_model_id = model_id
            try:
                with log_context(model=model_id):
                    self.logger.info("Generating with %s", model_id)
                    content = await attempt(model_config)
            except Exception as exc:  # CancelledError is a BaseException and propagates
                error = classify_error(
                    exc, model_id=model_id, model_name=self.registry.display_name(model_id)
                )
                failures.append(error)
                self.logger.warning("Model %s failed (%s): %s", model_id, error.type.value, error)
                if delivered():
                    # Partial output (content or reasoning) already reached the caller.
                    if error is exc:
                        raise
                    raise error from exc
                if error.type is ErrorType.AUTH_ERROR:
                    failed_platforms.add(model_config.platform)
                    continue
                if not error.fallback_eligible:
                    break
                continue

            if failures:
                self.logger.info("Fallback model %s succeeded after %d failure(s)", model_id, len(failures))
            else:
                self.logger.info("Model %s succeeded", model_id)
            return Completion(content=content, model_id=model_id)

        raise self._exhausted(failures, last_model_id)

    @staticmethod
    def _exhausted(failures: List[GeneratorError], model_id: Optional[str]) -> GeneratorError:
        if not failures:
            return GeneratorError(ErrorType.UNKNOWN, "No model available for generation", model_id=model_id)
        last = failures[-1]
        if len(failures) == 1:
            return last
        tried = ", ".join(failure.model_id or "?" for failure in failures)
        return GeneratorError(
            last.type,
            f"All models failed ({tried}); last error: {last}",
            model_id=last.model_id or model_id,
            original=last.original or last,
            attempts=failures,
        )


__all__ = ["ModelManager"]
