"""FastAPI application exposing weeknote generation, templates, config and daily records."""

from __future__ import annotations

import asyncio
import contextlib
import json
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException

from ..config import ConfigError, WeekNoteConfig, build_generator_config, load_config, save_config
from ..generator import GenerateOptions, ReportGenerator
from ..llm.errors import GeneratorError
from ..llm.registry import DEFAULT_REGISTRY, ModelRegistry
from ..logging import get_logger
from ..models import GenerateResult, GeneratorConfig, ValidationWarning, WeeklyLog
from ..parsing.daily_log import parse_daily_log, validate_daily_log
from ..stores import (
    ConflictError,
    DailyLogStore,
    LastTemplateError,
    NotFoundError,
    PromptTemplateStore,
    StoreError,
    TemplateValidationError,
)
from ..stores.daily_logs import DAILY_LOG_DIRNAME, week_start

logger = get_logger("service")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class GenerateRequest(_CamelModel):
    daily_log: Any = Field(default=None, alias="dailyLog")
    model_id: Optional[str] = Field(default=None, alias="modelId")


class TemplateCreateRequest(_CamelModel):
    name: str
    description: Optional[str] = None
    system_prompt: str = Field(alias="systemPrompt")
    user_prompt_template: str = Field(alias="userPromptTemplate")
    revision: Optional[int] = None


class TemplateUpdateRequest(_CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    user_prompt_template: Optional[str] = Field(default=None, alias="userPromptTemplate")
    revision: Optional[int] = None


class RevisionRequest(_CamelModel):
    revision: Optional[int] = None


class ConfigUpdateRequest(_CamelModel):
    default_model: Optional[str] = Field(default=None, alias="defaultModel")
    api_keys: Optional[Dict[str, str]] = Field(default=None, alias="apiKeys")
    fallback_models: Optional[List[str]] = Field(default=None, alias="fallbackModels")
    enable_fallback: Optional[bool] = Field(default=None, alias="enableFallback")


class DailyRecordRequest(_CamelModel):
    plan: List[str] = Field(default_factory=list)
    result: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    revision: Optional[int] = None


@dataclass
class _GenerationJob:
    weekly_log: WeeklyLog
    config: GeneratorConfig
    options: GenerateOptions
    warnings: List[ValidationWarning]


def create_app(
    *,
    config_loader: Callable[[], WeekNoteConfig] = load_config,
    config_saver: Callable[[WeekNoteConfig], Any] = save_config,
    generator_factory: Callable[[], ReportGenerator] = ReportGenerator,
    template_store: PromptTemplateStore | None = None,
    daily_log_store: DailyLogStore | None = None,
    registry: ModelRegistry = DEFAULT_REGISTRY,
    today: Callable[[], date] = date.today,
) -> FastAPI:
    """Create the FastAPI application exposing weeknote operations."""

    if template_store is None or daily_log_store is None:
        data_dir = config_loader().resolved_data_dir
        template_store = template_store or PromptTemplateStore(data_dir)
        daily_log_store = daily_log_store or DailyLogStore(data_dir / DAILY_LOG_DIRNAME)
    templates = template_store
    daily_logs = daily_log_store

    app = FastAPI(title="WeekNote Service", version="1.0.0")

    # ------------------------------------------------------------------
    # Error mapping

    def _error(status_code: int, message: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": message})

    @app.exception_handler(HTTPException)
    async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        )
        return _error(400, f"Invalid request: {problems}")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(LastTemplateError)
    async def last_template_handler(_: Request, exc: LastTemplateError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(TemplateValidationError)
    async def template_validation_handler(_: Request, exc: TemplateValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(ConflictError)
    async def conflict_handler(_: Request, exc: ConflictError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(_: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store failure: %s", exc)
        return _error(500, str(exc))

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Request, exc: ConfigError) -> JSONResponse:
        return _error(500, str(exc))

    @app.exception_handler(GeneratorError)
    async def generator_error_handler(_: Request, exc: GeneratorError) -> JSONResponse:
        logger.error("Generation failed [%s] on %s: %s", exc.type.value, exc.model_id, exc)
        return _error(500, str(exc))

    # ------------------------------------------------------------------
    # Helpers

    def _prepare(payload: GenerateRequest) -> _GenerationJob:
        validation = validate_daily_log(payload.daily_log)
        if not validation.valid:
            raise HTTPException(status_code=400, detail=validation.error or "Invalid daily log")
        if payload.model_id is not None and not registry.is_valid_model_id(payload.model_id):
            raise HTTPException(status_code=400, detail=f"Unknown model id: {payload.model_id}")
        generator_config = build_generator_config(
            config_loader(), payload.model_id, registry=registry
        )
        template = templates.get_active()
        return _GenerationJob(
            weekly_log=parse_daily_log(payload.daily_log),
            config=generator_config,
            options=GenerateOptions(custom_template=template.as_custom()),
            warnings=validation.warnings,
        )

    def _model_info(result: GenerateResult) -> Dict[str, str]:
        return {"id": result.model_id, "name": result.model_name}

    def _config_view(config: WeekNoteConfig) -> Dict[str, Any]:
        return {
            "defaultModel": config.effective_default_model,
            "apiKeys": config.configured_platforms(),
            "fallbackModels": list(config.fallback_models),
            "enableFallback": config.enable_fallback,
        }

    def _range(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
        if start is None and end is None:
            start = week_start(today())
            end = start + timedelta(days=6)
        elif start is None:
            start = end
        elif end is None:
            end = start
        return start, end  # type: ignore[return-value]

    def _ensure_not_future(day: date) -> None:
        if day > today():
            raise HTTPException(status_code=400, detail="Cannot record a future date")

    # ------------------------------------------------------------------
    # Status and metadata

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        config = config_loader()
        model_id = config.effective_default_model
        meta = registry.get(model_id)
        return {
            "status": "ok",
            "configured": bool(meta and config.api_key(meta.platform)),
            "model": meta.display_name if meta else None,
        }

    @app.get("/models")
    async def models() -> List[Dict[str, Any]]:
        return [
            {
                "id": meta.id,
                "name": meta.display_name,
                "description": meta.description,
                "isFree": meta.is_free,
            }
            for meta in registry.all()
        ]

    @app.get("/config")
    async def get_config() -> Dict[str, Any]:
        return _config_view(config_loader())

    @app.put("/config")
    async def put_config(payload: ConfigUpdateRequest) -> Dict[str, Any]:
        config = config_loader()
        if payload.default_model is not None:
            if not registry.is_valid_model_id(payload.default_model):
                raise HTTPException(status_code=400, detail=f"Unknown model id: {payload.default_model}")
            config.default_model = payload.default_model
        if payload.fallback_models is not None:
            unknown = [model for model in payload.fallback_models if not registry.is_valid_model_id(model)]
            if unknown:
                raise HTTPException(status_code=400, detail=f"Unknown model id: {', '.join(unknown)}")
            config.fallback_models = list(payload.fallback_models)
        if payload.enable_fallback is not None:
            config.enable_fallback = payload.enable_fallback
        if payload.api_keys is not None:
            for platform, key in payload.api_keys.items():
                if platform not in registry.platforms():
                    raise HTTPException(status_code=400, detail=f"Unknown platform: {platform}")
                if key.strip():
                    config.api_keys[platform] = key.strip()
                else:
                    config.api_keys.pop(platform, None)
        config_saver(config)
        logger.info("Configuration updated")
        return _config_view(config)

    # ------------------------------------------------------------------
    # Generation

    @app.post("/generate")
    async def generate(payload: GenerateRequest) -> Dict[str, Any]:
        job = _prepare(payload)
        result = await generator_factory().generate_report(job.weekly_log, job.config, job.options)
        body: Dict[str, Any] = {
            "success": True,
            "report": result.report.raw_markdown,
            "structured": result.report.to_dict(),
            "model": _model_info(result),
        }
        if job.warnings:
            body["warnings"] = [warning.to_dict() for warning in job.warnings]
        return body

    @app.post("/generate/stream", response_model=None)
    async def generate_stream(payload: GenerateRequest) -> StreamingResponse | JSONResponse:
        job = _prepare(payload)
        generator = generator_factory()
        queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue()
        thinking_enabled = job.config.primary.thinking_mode != "disabled"

        async def produce() -> None:
            try:
                result = await generator.generate_report_stream(
                    job.weekly_log,
                    job.config,
                    lambda chunk: queue.put_nowait({"chunk": chunk}),
                    job.options,
                    on_thinking=(
                        (lambda text: queue.put_nowait({"thinking": text}))
                        if thinking_enabled
                        else None
                    ),
                )
            except GeneratorError as exc:
                logger.error("Streaming generation failed [%s]: %s", exc.type.value, exc)
                queue.put_nowait({"error": str(exc)})
            except Exception as exc:
                logger.exception("Streaming generation failed")
                queue.put_nowait({"error": f"Generation failed: {exc}"})
            else:
                done: Dict[str, Any] = {"done": True, "model": _model_info(result)}
                if job.warnings:
                    done["warnings"] = [warning.to_dict() for warning in job.warnings]
                queue.put_nowait(done)
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(produce())
        first = await _first_event(queue, task)
        if first is None or "error" in first:
            await task
            message = first["error"] if first else "Generation produced no output"
            return JSONResponse(status_code=500, content={"error": message})

        async def events() -> AsyncIterator[str]:
            event: Optional[Dict[str, Any]] = first
            try:
                while event is not None:
                    yield _sse(event)
                    if "done" in event or "error" in event:
                        break
                    event = await queue.get()
            finally:
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    # ------------------------------------------------------------------
    # Prompt templates

    @app.get("/prompts")
    async def list_prompts() -> Dict[str, Any]:
        return templates.state().to_dict()

    @app.post("/prompts", status_code=201)
    async def create_prompt(payload: TemplateCreateRequest) -> Dict[str, Any]:
        template = templates.create(
            name=payload.name,
            description=payload.description,
            system_prompt=payload.system_prompt,
            user_prompt_template=payload.user_prompt_template,
            expected_revision=payload.revision,
        )
        return {"template": template.to_dict(), "revision": templates.revision}

    @app.put("/prompts/{template_id}")
    async def update_prompt(template_id: str, payload: TemplateUpdateRequest) -> Dict[str, Any]:
        template = templates.update(
            template_id,
            name=payload.name,
            description=payload.description,
            system_prompt=payload.system_prompt,
            user_prompt_template=payload.user_prompt_template,
            expected_revision=payload.revision,
        )
        return {"template": template.to_dict(), "revision": templates.revision}

    @app.delete("/prompts/{template_id}")
    async def delete_prompt(template_id: str, revision: Optional[int] = None) -> Dict[str, Any]:
        return templates.delete(template_id, expected_revision=revision).to_dict()

    @app.post("/prompts/reset")
    async def reset_prompts(payload: Optional[RevisionRequest] = None) -> Dict[str, Any]:
        expected = payload.revision if payload else None
        return templates.reset_to_default(expected_revision=expected).to_dict()

    @app.post("/prompts/{template_id}/activate")
    async def activate_prompt(
        template_id: str, payload: Optional[RevisionRequest] = None
    ) -> Dict[str, Any]:
        expected = payload.revision if payload else None
        templates.activate(template_id, expected_revision=expected)
        return templates.state().to_dict()

    # ------------------------------------------------------------------
    # Daily records

    @app.get("/daily-logs")
    async def list_daily_logs(start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
        first, last = _range(start, end)
        records = daily_logs.list_range(first, last)
        return {
            "start": first.isoformat(),
            "end": last.isoformat(),
            "records": [record.to_dict() for record in records],
        }

    @app.get("/daily-logs/export")
    async def export_daily_logs(start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
        first, last = _range(start, end)
        return {"text": daily_logs.export_text(first, last)}

    @app.get("/daily-logs/{day}")
    async def get_daily_log(day: date) -> Dict[str, Any]:
        record = daily_logs.get_day(day)
        if record is None:
            raise NotFoundError(f"No record for {day.isoformat()}")
        return {"record": record.to_dict(), "revision": daily_logs.week_revision(day)}

    @app.put("/daily-logs/{day}")
    async def put_daily_log(day: date, payload: DailyRecordRequest) -> Dict[str, Any]:
        _ensure_not_future(day)
        record = daily_logs.save_day(
            day,
            plan=payload.plan,
            result=payload.result,
            issues=payload.issues,
            notes=payload.notes,
            expected_revision=payload.revision,
        )
        return {"success": True, "record": record.to_dict(), "revision": daily_logs.week_revision(day)}

    @app.delete("/daily-logs/{day}")
    async def delete_daily_log(day: date, revision: Optional[int] = None) -> Dict[str, Any]:
        daily_logs.delete_day(day, expected_revision=revision)
        return {"success": True}

    return app


async def _first_event(
    queue: "asyncio.Queue[Optional[Dict[str, Any]]]", task: "asyncio.Task[None]"
) -> Optional[Dict[str, Any]]:
    """Wait for the first stream event; a disconnect before it cancels the producer."""
    try:
        return await queue.get()
    except asyncio.CancelledError:
        task.cancel()
        raise


def _sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def run_service(
    host: str = "127.0.0.1", port: int = 8000, *, config_path: Path | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(config_loader=lambda: load_config(config_path))
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
