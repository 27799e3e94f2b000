"""OpenAI-compatible chat completion client used for every registered model."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from ..logging import get_logger
from ..models import ChatMessage, ModelConfig, ModelMeta
from .errors import ErrorType, GeneratorError, classify_error
from .registry import DEFAULT_REGISTRY, ModelRegistry

ChunkCallback = Callable[[str], None]

DEFAULT_TEMPERATURE = 0.3
DEFAULT_TIMEOUT = 60.0

_DATA_PREFIX = "data:"
_DONE_MARKER = "[DONE]"


class ChatProvider:
    """Issues chat completion requests, blocking or streamed, for one model at a time.

    One ``httpx.AsyncClient`` is opened per call. ``transport`` lets tests plug
    in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        registry: ModelRegistry = DEFAULT_REGISTRY,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("llm.provider")

    async def generate(self, messages: Sequence[ChatMessage], model_config: ModelConfig) -> str:
        """Send one non-streaming request and return the completion text."""
        meta = self._meta(model_config)
        try:
            async with asyncio.timeout(self.timeout):
                async with self._client() as client:
                    response = await client.post(
                        self._endpoint(meta, model_config),
                        headers=self._headers(model_config),
                        json=self._payload(messages, meta, model_config, stream=False),
                    )
                    response.raise_for_status()
        except (httpx.HTTPError, TimeoutError) as exc:
            raise classify_error(exc, model_id=meta.id, model_name=meta.display_name) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeneratorError(
                ErrorType.INVALID_RESPONSE,
                f"{meta.display_name} returned a non-JSON body",
                model_id=meta.id,
                original=exc,
            ) from exc

        content = self._extract_content(payload)
        if not content:
            raise GeneratorError(
                ErrorType.INVALID_RESPONSE,
                f"{meta.display_name} returned empty content",
                model_id=meta.id,
            )
        return content

    async def generate_stream(
        self,
        messages: Sequence[ChatMessage],
        model_config: ModelConfig,
        on_chunk: ChunkCallback,
        on_thinking: Optional[ChunkCallback] = None,
    ) -> str:
        """Stream a completion, pushing content and reasoning deltas as they arrive.

        Returns the accumulated content. Reasoning text is forwarded to
        ``on_thinking`` only and is never part of the returned content. The
        attempt timeout bounds the wait for the response headers and then each
        gap between stream lines, not the total length of the stream.
        """
        meta = self._meta(model_config)
        parts: List[str] = []
        try:
            async with asyncio.timeout(self.timeout) as deadline:
                async with self._client() as client:
                    async with client.stream(
                        "POST",
                        self._endpoint(meta, model_config),
                        headers=self._headers(model_config),
                        json=self._payload(messages, meta, model_config, stream=True),
                    ) as response:
                        if response.status_code >= 400:
                            await response.aread()
                        response.raise_for_status()
                        loop = asyncio.get_running_loop()
                        deadline.reschedule(loop.time() + self.timeout)
                        async for line in response.aiter_lines():
                            deadline.reschedule(loop.time() + self.timeout)
                            event = self._decode_event(line)
                            if event is None:
                                continue
                            if event is _DONE_MARKER:
                                break
                            thinking, content = self._extract_delta(event)
                            if thinking and on_thinking is not None:
                                on_thinking(thinking)
                            if content:
                                on_chunk(content)
                                parts.append(content)
        except (httpx.HTTPError, TimeoutError) as exc:
            raise classify_error(exc, model_id=meta.id, model_name=meta.display_name) from exc

        content = "".join(parts)
        if not content:
            raise GeneratorError(
                ErrorType.INVALID_RESPONSE,
                f"{meta.display_name} returned empty content",
                model_id=meta.id,
            )
        return content

    # ------------------------------------------------------------------
    # Request helpers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    def _meta(self, model_config: ModelConfig) -> ModelMeta:
        meta = self.registry.get(model_config.model_id)
        if meta is None:
            raise GeneratorError(
                ErrorType.UNKNOWN,
                f"Unknown model: {model_config.model_id}",
                model_id=model_config.model_id,
            )
        return meta

    @staticmethod
    def _endpoint(meta: ModelMeta, model_config: ModelConfig) -> str:
        base_url = (model_config.base_url or meta.base_url).rstrip("/")
        return f"{base_url}/chat/completions"

    @staticmethod
    def _headers(model_config: ModelConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {model_config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        messages: Sequence[ChatMessage],
        meta: ModelMeta,
        model_config: ModelConfig,
        *,
        stream: bool,
    ) -> Dict[str, Any]:
        temperature = model_config.temperature
        payload: Dict[str, Any] = {
            "model": model_config.endpoint_id or meta.api_model_name,
            "messages": [message.to_dict() for message in messages],
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
        }
        if stream:
            payload["stream"] = True
        # Volcano Ark exposes the thinking switch on its seed reasoning models.
        if meta.reasoning and meta.platform == "doubao" and model_config.thinking_mode:
            payload["thinking"] = {"type": model_config.thinking_mode}
        return payload

    # ------------------------------------------------------------------
    # Response helpers

    def _decode_event(self, line: str) -> Any:
        stripped = line.strip()
        if not stripped.startswith(_DATA_PREFIX):
            return None
        data = stripped[len(_DATA_PREFIX):].strip()
        if not data:
            return None
        if data == _DONE_MARKER:
            return _DONE_MARKER
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            self.logger.debug("Skipping undecodable stream event: %s", data[:200])
            return None

    @staticmethod
    def _extract_delta(event: Any) -> tuple[str, str]:
        if not isinstance(event, dict):
            return "", ""
        choices = event.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return "", ""
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return "", ""
        thinking = delta.get("reasoning_content") or delta.get("reasoning") or ""
        content = delta.get("content") or ""
        return (
            thinking if isinstance(thinking, str) else "",
            content if isinstance(content, str) else "",
        )

    @staticmethod
    def _extract_content(payload: Any) -> str:
        if not isinstance(payload, dict):
            return ""
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str) and content:
                return content
        text = first.get("text")
        if isinstance(text, str):
            return text
        return ""


__all__ = ["ChatProvider", "ChunkCallback", "DEFAULT_TEMPERATURE", "DEFAULT_TIMEOUT"]
