"""Tests for the FastAPI service mode."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from weeknote.config import load_config, save_config
from weeknote.llm.errors import ErrorType, GeneratorError
from weeknote.models import GenerateResult
from weeknote.parsing.report import parse_report
from weeknote.prompting.constants import DEFAULT_TEMPLATE_ID
from weeknote.service import create_app
from weeknote.service.app import _first_event
from weeknote.stores import DailyLogStore, PromptTemplateStore

LOG = "2024-01-08 | Mon\nPlan\n- ship X\nResult\n- shipped X\n"


class _FakeGenerator:
    def __init__(self, report: str) -> None:
        self.report = report
        self.chunks: List[str] = [report[: len(report) // 2], report[len(report) // 2 :]]
        self.error: Optional[Exception] = None
        self.fail_after_first_chunk = False
        self.calls: List[Dict[str, Any]] = []

    async def generate_report(self, weekly_log, config, options=None) -> GenerateResult:
        self.calls.append({"log": weekly_log, "config": config, "options": options})
        if self.error is not None:
            raise self.error
        return self._result(config.primary.model_id)

    async def generate_report_stream(
        self, weekly_log, config, on_chunk, options=None, on_thinking=None
    ) -> GenerateResult:
        self.calls.append({"log": weekly_log, "config": config, "options": options})
        if self.error is not None and not self.fail_after_first_chunk:
            raise self.error
        if on_thinking is not None:
            on_thinking("pondering")
        for index, chunk in enumerate(self.chunks):
            on_chunk(chunk)
            if index == 0 and self.fail_after_first_chunk and self.error is not None:
                raise self.error
        return self._result(config.primary.model_id)

    def _result(self, model_id: str) -> GenerateResult:
        return GenerateResult(report=parse_report(self.report), model_id=model_id, model_name="GPT-4o")


@pytest.fixture
def generator(sample_report: str) -> _FakeGenerator:
    return _FakeGenerator(sample_report)


@pytest.fixture
def client(write_config, generator: _FakeGenerator) -> TestClient:
    config_dir = write_config("default_model: openai/gpt-4o\napi_keys:\n  openai: sk-test\n")
    app = create_app(
        config_loader=lambda: load_config(config_dir, environ={}),
        config_saver=save_config,
        generator_factory=lambda: generator,
        template_store=PromptTemplateStore(config_dir),
        daily_log_store=DailyLogStore(config_dir / "daily-logs"),
        today=lambda: date(2024, 1, 10),
    )
    return TestClient(app)


def _events(response) -> List[Dict[str, Any]]:
    events = []
    for block in response.text.split("\n\n"):
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: ") :]))
    return events


# ----------------------------------------------------------------------
# Status, models and config


def test_health_reports_configured_default_model(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "configured": True, "model": "GPT-4o"}


def test_models_lists_catalogue(client: TestClient) -> None:
    payload = client.get("/models").json()

    by_id = {entry["id"]: entry for entry in payload}
    assert len(payload) == 9
    assert by_id["siliconflow/qwen2.5-7b"]["isFree"] is True
    assert by_id["openai/gpt-4o"] == {
        "id": "openai/gpt-4o",
        "name": "GPT-4o",
        "description": by_id["openai/gpt-4o"]["description"],
        "isFree": False,
    }


def test_config_round_trip(client: TestClient, tmp_path: Path) -> None:
    initial = client.get("/config").json()
    assert initial["defaultModel"] == "openai/gpt-4o"
    assert initial["apiKeys"]["openai"] is True
    assert initial["apiKeys"]["deepseek"] is False

    response = client.put(
        "/config",
        json={
            "defaultModel": "deepseek/deepseek-chat",
            "apiKeys": {"deepseek": "sk-ds", "openai": ""},
            "enableFallback": False,
        },
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["defaultModel"] == "deepseek/deepseek-chat"
    assert updated["apiKeys"]["deepseek"] is True
    assert updated["apiKeys"]["openai"] is False
    assert updated["enableFallback"] is False
    assert client.get("/config").json() == updated
    assert "sk-ds" in (tmp_path / "config.yml").read_text(encoding="utf-8")


@pytest.mark.parametrize(
    "payload",
    [
        {"defaultModel": "openai/gpt-99"},
        {"fallbackModels": ["nope/model"]},
        {"apiKeys": {"anthropic": "sk"}},
    ],
)
def test_config_rejects_unknown_models_and_platforms(client: TestClient, payload) -> None:
    response = client.put("/config", json=payload)

    assert response.status_code == 400
    assert "error" in response.json()
    assert client.get("/config").json()["defaultModel"] == "openai/gpt-4o"


# ----------------------------------------------------------------------
# Generation


def test_generate_returns_report_and_model(client: TestClient, generator, sample_report) -> None:
    response = client.post("/generate", json={"dailyLog": LOG})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["report"] == sample_report
    assert payload["model"] == {"id": "openai/gpt-4o", "name": "GPT-4o"}
    assert payload["structured"]["issuesAndRisks"][0]["impact"] == "slow login"
    assert "warnings" not in payload
    call = generator.calls[0]
    assert call["log"].entries[0].plan == ["ship X"]
    assert "{{dailyLog}}" in call["options"].custom_template.user_prompt_template


def test_generate_uses_active_template(client: TestClient, generator) -> None:
    created = client.post(
        "/prompts",
        json={"name": "Mine", "systemPrompt": "Be brief.", "userPromptTemplate": "{{dailyLog}}"},
    ).json()
    client.post(f"/prompts/{created['template']['id']}/activate")

    client.post("/generate", json={"dailyLog": LOG})

    assert generator.calls[0]["options"].custom_template.system_prompt == "Be brief."


def test_generate_includes_format_warnings(client: TestClient) -> None:
    response = client.post("/generate", json={"dailyLog": "just some words"})

    assert response.status_code == 200
    types = {warning["type"] for warning in response.json()["warnings"]}
    assert types == {"MISSING_DATE", "MISSING_SECTIONS"}


@pytest.mark.parametrize(
    "payload",
    [{}, {"dailyLog": "   "}, {"dailyLog": 42}, {"dailyLog": LOG, "modelId": "unknown/model"}],
)
def test_generate_rejects_bad_input(client: TestClient, generator, payload) -> None:
    response = client.post("/generate", json=payload)

    assert response.status_code == 400
    assert response.json()["error"]
    assert generator.calls == []


def test_generate_without_api_key_is_server_error(client: TestClient) -> None:
    response = client.post("/generate", json={"dailyLog": LOG, "modelId": "deepseek/deepseek-chat"})

    assert response.status_code == 500
    assert "deepseek" in response.json()["error"]


def test_generate_maps_generator_errors(client: TestClient, generator) -> None:
    generator.error = GeneratorError(ErrorType.RATE_LIMIT, "Rate limited", model_id="openai/gpt-4o")

    response = client.post("/generate", json={"dailyLog": LOG})

    assert response.status_code == 500
    assert response.json() == {"error": "Rate limited"}


def test_stream_emits_chunks_then_done(client: TestClient, sample_report) -> None:
    response = client.post("/generate/stream", json={"dailyLog": LOG})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response)
    assert events[0] == {"thinking": "pondering"}
    assert "".join(event["chunk"] for event in events if "chunk" in event) == sample_report
    assert events[-1] == {"done": True, "model": {"id": "openai/gpt-4o", "name": "GPT-4o"}}


def test_stream_error_before_output_is_plain_json(client: TestClient, generator) -> None:
    generator.error = GeneratorError(ErrorType.AUTH_ERROR, "Bad key", model_id="openai/gpt-4o")

    response = client.post("/generate/stream", json={"dailyLog": LOG})

    assert response.status_code == 500
    assert response.json() == {"error": "Bad key"}


def test_stream_error_after_output_is_an_event(client: TestClient, generator) -> None:
    generator.error = GeneratorError(ErrorType.NETWORK_ERROR, "Connection dropped")
    generator.fail_after_first_chunk = True

    response = client.post("/generate/stream", json={"dailyLog": LOG})

    assert response.status_code == 200
    events = _events(response)
    assert events[-1] == {"error": "Connection dropped"}
    assert [event for event in events if "chunk" in event] == [{"chunk": generator.chunks[0]}]
    assert not any("done" in event for event in events)


def test_stream_validates_input_before_streaming(client: TestClient) -> None:
    response = client.post("/generate/stream", json={"dailyLog": ""})

    assert response.status_code == 400


# ----------------------------------------------------------------------
# Prompt templates


def test_prompt_template_lifecycle(client: TestClient) -> None:
    listing = client.get("/prompts").json()
    assert listing["activeTemplateId"] == DEFAULT_TEMPLATE_ID
    assert listing["revision"] == 0

    created = client.post(
        "/prompts",
        json={
            "name": "Team",
            "systemPrompt": "You write for the team.",
            "userPromptTemplate": "Log:\n{{dailyLog}}",
            "revision": 0,
        },
    )
    assert created.status_code == 201
    template_id = created.json()["template"]["id"]
    assert created.json()["revision"] == 1

    updated = client.put(f"/prompts/{template_id}", json={"name": "Team v2", "revision": 1})
    assert updated.status_code == 200
    assert updated.json()["template"]["name"] == "Team v2"

    activated = client.post(f"/prompts/{template_id}/activate", json={"revision": 2})
    assert activated.json()["activeTemplateId"] == template_id

    deleted = client.delete(f"/prompts/{template_id}")
    assert deleted.status_code == 200
    assert deleted.json()["activeTemplateId"] == DEFAULT_TEMPLATE_ID
    assert [entry["id"] for entry in deleted.json()["templates"]] == [DEFAULT_TEMPLATE_ID]


def test_prompt_errors_map_to_status_codes(client: TestClient) -> None:
    missing_placeholder = client.post(
        "/prompts", json={"name": "x", "systemPrompt": "s", "userPromptTemplate": "no slot"}
    )
    assert missing_placeholder.status_code == 400

    missing_field = client.post("/prompts", json={"systemPrompt": "s"})
    assert missing_field.status_code == 400
    assert missing_field.json()["error"].startswith("Invalid request")

    assert client.put("/prompts/nope", json={"name": "x"}).status_code == 404
    assert client.post("/prompts/nope/activate").status_code == 404
    assert client.delete(f"/prompts/{DEFAULT_TEMPLATE_ID}").status_code == 400

    stale = client.delete(f"/prompts/{DEFAULT_TEMPLATE_ID}", params={"revision": 7})
    assert stale.status_code == 409


def test_prompt_reset(client: TestClient) -> None:
    client.post(
        "/prompts",
        json={"name": "Temp", "systemPrompt": "s", "userPromptTemplate": "{{dailyLog}}"},
    )

    response = client.post("/prompts/reset")

    assert response.status_code == 200
    payload = response.json()
    assert [entry["id"] for entry in payload["templates"]] == [DEFAULT_TEMPLATE_ID]
    assert payload["revision"] == 2


# ----------------------------------------------------------------------
# Daily records


def test_daily_record_lifecycle(client: TestClient) -> None:
    saved = client.put("/daily-logs/2024-01-08", json={"plan": ["ship X"], "result": ["shipped X"]})
    assert saved.status_code == 200
    assert saved.json()["record"]["dayOfWeek"] == "Mon"
    assert saved.json()["revision"] == 1

    fetched = client.get("/daily-logs/2024-01-08").json()
    assert fetched["record"]["plan"] == ["ship X"]
    assert fetched["revision"] == 1

    week = client.get("/daily-logs").json()
    assert (week["start"], week["end"]) == ("2024-01-08", "2024-01-14")
    assert [record["date"] for record in week["records"]] == ["2024-01-08"]

    exported = client.get("/daily-logs/export").json()["text"]
    assert exported.startswith("2024-01-08 | Mon\nPlan\n- ship X")

    assert client.delete("/daily-logs/2024-01-08", params={"revision": 0}).status_code == 409
    assert client.delete("/daily-logs/2024-01-08").json() == {"success": True}
    assert client.get("/daily-logs/2024-01-08").status_code == 404


def test_daily_record_rejects_future_dates(client: TestClient) -> None:
    response = client.put("/daily-logs/2024-01-11", json={"plan": ["later"]})

    assert response.status_code == 400
    assert client.get("/daily-logs/2024-01-10").status_code == 404


def test_daily_record_rejects_stale_revision(client: TestClient) -> None:
    client.put("/daily-logs/2024-01-08", json={"plan": ["a"]})

    response = client.put("/daily-logs/2024-01-09", json={"plan": ["b"], "revision": 0})

    assert response.status_code == 409


def test_daily_record_list_with_explicit_range(client: TestClient) -> None:
    client.put("/daily-logs/2024-01-02", json={"notes": ["older week"]})
    client.put("/daily-logs/2024-01-09", json={"plan": ["this week"]})

    payload = client.get("/daily-logs", params={"start": "2024-01-01", "end": "2024-01-10"}).json()

    assert [record["date"] for record in payload["records"]] == ["2024-01-02", "2024-01-09"]


def test_daily_record_bad_date_is_bad_request(client: TestClient) -> None:
    assert client.get("/daily-logs/not-a-date").status_code == 400


@pytest.mark.asyncio
async def test_disconnect_before_first_event_cancels_generation() -> None:
    started = asyncio.Event()

    async def never_produces() -> None:
        started.set()
        await asyncio.Event().wait()

    queue: asyncio.Queue = asyncio.Queue()
    producer = asyncio.create_task(never_produces())
    waiter = asyncio.create_task(_first_event(queue, producer))
    await started.wait()

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    with pytest.raises(asyncio.CancelledError):
        await producer

    assert producer.cancelled()


@pytest.mark.asyncio
async def test_first_event_is_returned_without_cancelling() -> None:
    queue: asyncio.Queue = asyncio.Queue()
    producer = asyncio.create_task(asyncio.sleep(0))
    queue.put_nowait({"chunk": "A"})

    assert await _first_event(queue, producer) == {"chunk": "A"}
    await producer
    assert not producer.cancelled()
