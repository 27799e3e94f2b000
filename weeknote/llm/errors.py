"""Error taxonomy for model invocations."""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import List, Optional

import httpx


class ErrorType(str, Enum):
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNKNOWN = "UNKNOWN"


# Transient or model-specific failures; another model may still succeed.
TRANSIENT_ERROR_TYPES = frozenset(
    {
        ErrorType.RATE_LIMIT,
        ErrorType.QUOTA_EXCEEDED,
        ErrorType.NETWORK_ERROR,
        ErrorType.TIMEOUT,
        ErrorType.INVALID_RESPONSE,
    }
)

_QUOTA_HINT = re.compile(r"quota|balance|insufficient", re.IGNORECASE)


class GeneratorError(RuntimeError):
    """Raised when a model attempt (or a whole fallback chain) fails."""

    def __init__(
        self,
        type: ErrorType | str,
        message: str,
        *,
        model_id: Optional[str] = None,
        original: Optional[BaseException] = None,
        attempts: Optional[List["GeneratorError"]] = None,
    ) -> None:
        super().__init__(message)
        self.type = ErrorType(type)
        self.model_id = model_id
        self.original = original
        self.attempts: List[GeneratorError] = list(attempts or [])

    @property
    def fallback_eligible(self) -> bool:
        return self.type in TRANSIENT_ERROR_TYPES

    def __repr__(self) -> str:
        return f"GeneratorError(type={self.type.value}, model_id={self.model_id!r}, message={str(self)!r})"


def classify_status(status_code: int, body: str = "") -> ErrorType:
    if status_code in (401, 403):
        return ErrorType.AUTH_ERROR
    if status_code == 402 or _QUOTA_HINT.search(body or ""):
        return ErrorType.QUOTA_EXCEEDED
    if status_code == 429:
        return ErrorType.RATE_LIMIT
    if status_code == 504:
        return ErrorType.TIMEOUT
    if status_code >= 500:
        return ErrorType.NETWORK_ERROR
    return ErrorType.UNKNOWN


def classify_error(
    exc: BaseException, *, model_id: Optional[str] = None, model_name: Optional[str] = None
) -> GeneratorError:
    """Map an arbitrary exception raised during a model call onto :class:`GeneratorError`."""
    if isinstance(exc, GeneratorError):
        if exc.model_id is None:
            exc.model_id = model_id
        return exc

    label = model_name or model_id or "model"
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        error_type = classify_status(response.status_code, body)
        detail = _MESSAGES[error_type].format(label=label)
        message = f"{detail} (HTTP {response.status_code})"
    elif isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        error_type = ErrorType.TIMEOUT
        message = _MESSAGES[error_type].format(label=label)
    elif isinstance(exc, httpx.TransportError):
        error_type = ErrorType.NETWORK_ERROR
        message = _MESSAGES[error_type].format(label=label)
    else:
        error_type = ErrorType.UNKNOWN
        message = f"{label} error: {exc}"

    return GeneratorError(error_type, message, model_id=model_id, original=exc)


_MESSAGES = {
    ErrorType.AUTH_ERROR: "{label} API key is invalid or expired",
    ErrorType.RATE_LIMIT: "{label} rate limit reached, retry later",
    ErrorType.QUOTA_EXCEEDED: "{label} account quota exhausted",
    ErrorType.NETWORK_ERROR: "{label} network request failed",
    ErrorType.TIMEOUT: "{label} request timed out",
    ErrorType.INVALID_RESPONSE: "{label} returned an invalid response",
    ErrorType.UNKNOWN: "{label} API error",
}


__all__ = [
    "ErrorType",
    "GeneratorError",
    "TRANSIENT_ERROR_TYPES",
    "classify_error",
    "classify_status",
]
