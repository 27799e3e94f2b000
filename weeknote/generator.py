"""Report generation pipeline: prompt building, model invocation, report parsing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .llm.manager import ModelManager
from .llm.provider import ChunkCallback
from .llm.registry import DEFAULT_REGISTRY, ModelRegistry
from .logging import get_logger
from .models import CustomPromptTemplate, GenerateResult, GeneratorConfig, WeeklyLog
from .parsing.report import ReportParser
from .prompting.builder import PromptBuilder

ManagerFactory = Callable[[GeneratorConfig], ModelManager]


@dataclass
class GenerateOptions:
    """Per-request knobs for report generation."""

    custom_template: Optional[CustomPromptTemplate] = None


class ReportGenerator:
    """Composes :class:`PromptBuilder`, :class:`ModelManager` and :class:`ReportParser`."""

    def __init__(
        self,
        *,
        prompt_builder: PromptBuilder | None = None,
        report_parser: ReportParser | None = None,
        registry: ModelRegistry | None = None,
        manager_factory: ManagerFactory | None = None,
    ) -> None:
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.report_parser = report_parser or ReportParser()
        self.registry = registry or DEFAULT_REGISTRY
        self.manager_factory = manager_factory or self._default_manager
        self.logger = get_logger("generator")

    async def generate_report(
        self,
        weekly_log: WeeklyLog,
        config: GeneratorConfig,
        options: GenerateOptions | None = None,
    ) -> GenerateResult:
        messages = self._messages(weekly_log, options)
        completion = await self.manager_factory(config).generate(messages)
        return self._result(completion.content, completion.model_id)

    async def generate_report_stream(
        self,
        weekly_log: WeeklyLog,
        config: GeneratorConfig,
        on_chunk: ChunkCallback,
        options: GenerateOptions | None = None,
        on_thinking: Optional[ChunkCallback] = None,
    ) -> GenerateResult:
        """Stream the report to ``on_chunk``; the report is parsed once the stream ends."""
        messages = self._messages(weekly_log, options)
        completion = await self.manager_factory(config).generate_stream(
            messages, on_chunk, on_thinking
        )
        return self._result(completion.content, completion.model_id)

    def _messages(self, weekly_log: WeeklyLog, options: GenerateOptions | None):
        custom = options.custom_template if options else None
        self.logger.debug(
            "Building prompt for %d day(s)%s",
            len(weekly_log),
            " with custom template" if custom else "",
        )
        return self.prompt_builder.build_messages(weekly_log, custom)

    def _result(self, content: str, model_id: str) -> GenerateResult:
        report = self.report_parser.parse(content)
        return GenerateResult(
            report=report,
            model_id=model_id,
            model_name=self.registry.display_name(model_id),
        )

    def _default_manager(self, config: GeneratorConfig) -> ModelManager:
        return ModelManager(config, registry=self.registry)


_DEFAULT_GENERATOR: Optional[ReportGenerator] = None


def _default_generator() -> ReportGenerator:
    global _DEFAULT_GENERATOR
    if _DEFAULT_GENERATOR is None:
        _DEFAULT_GENERATOR = ReportGenerator()
    return _DEFAULT_GENERATOR


async def generate_report(
    weekly_log: WeeklyLog,
    config: GeneratorConfig,
    options: GenerateOptions | None = None,
) -> GenerateResult:
    return await _default_generator().generate_report(weekly_log, config, options)


async def generate_report_stream(
    weekly_log: WeeklyLog,
    config: GeneratorConfig,
    on_chunk: ChunkCallback,
    options: GenerateOptions | None = None,
    on_thinking: Optional[ChunkCallback] = None,
) -> GenerateResult:
    return await _default_generator().generate_report_stream(
        weekly_log, config, on_chunk, options, on_thinking
    )


__all__ = [
    "GenerateOptions",
    "ReportGenerator",
    "generate_report",
    "generate_report_stream",
]
