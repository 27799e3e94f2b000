"""Logging setup for weeknote: per-attempt model context and API key redaction."""

from __future__ import annotations

import contextlib
import contextvars
import logging
import re
from pathlib import Path
from typing import Dict, Iterator

_ROOT = "weeknote"

_CONTEXT: contextvars.ContextVar[Dict[str, str]] = contextvars.ContextVar(
    "weeknote_log_context", default={}
)

# Bearer tokens and provider-style secret keys (sk-..., ark keys are UUIDs).
_SECRET_PATTERN = re.compile(
    r"(?P<prefix>Bearer\s+)\S+"
    r"|\bsk-[A-Za-z0-9_\-]{6,}"
    r"|\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b",
    re.IGNORECASE,
)
_REDACTED = "***"

CONSOLE_FORMAT = "[weeknote] %(levelname)s%(context)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s%(context)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(f"{_ROOT}.{name}" if name else _ROOT)


@contextlib.contextmanager
def log_context(**fields: str) -> Iterator[None]:
    """Tag every record logged inside the block, e.g. ``log_context(model=model_id)``.

    Context is stored in a ``ContextVar`` so concurrent requests served by the
    same event loop keep their own tags.
    """
    merged = {**_CONTEXT.get(), **{key: str(value) for key, value in fields.items()}}
    token = _CONTEXT.set(merged)
    try:
        yield
    finally:
        _CONTEXT.reset(token)


def redact(text: str) -> str:
    """Mask API keys and bearer tokens."""
    return _SECRET_PATTERN.sub(
        lambda match: f"{match.group('prefix')}{_REDACTED}" if match.group("prefix") else _REDACTED,
        text,
    )


class ContextFilter(logging.Filter):
    """Adds ``%(context)s`` (`` model=... request=...``) and redacts secrets in the message."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = _CONTEXT.get()
        record.context = "".join(f" {key}={value}" for key, value in fields.items())
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg, record.args = cleaned, None
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install console (and optional file) handlers on the ``weeknote`` logger.

    Calling it again replaces the handlers rather than stacking them.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [_handler(logging.StreamHandler(), CONSOLE_FORMAT)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_handler(logging.FileHandler(log_file, encoding="utf-8"), FILE_FORMAT))
    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)
    return logger


def _handler(handler: logging.Handler, fmt: str) -> logging.Handler:
    handler.addFilter(ContextFilter())
    handler.setFormatter(logging.Formatter(fmt))
    return handler


__all__ = [
    "CONSOLE_FORMAT",
    "ContextFilter",
    "FILE_FORMAT",
    "configure_logging",
    "get_logger",
    "log_context",
    "redact",
]
