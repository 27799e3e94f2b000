"""Shared plumbing for the JSON document stores."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Optional


class StoreError(RuntimeError):
    """Base class for persisted-document failures."""


class NotFoundError(StoreError):
    """Raised when a template or record id does not exist."""


class LastTemplateError(StoreError):
    """Raised when deleting the only remaining prompt template."""


class TemplateValidationError(StoreError):
    """Raised when a prompt template is missing required content."""


class ConflictError(StoreError):
    """Raised when a caller's expected revision no longer matches the stored one."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Document was modified concurrently (expected revision {expected}, found {actual})"
        )
        self.expected = expected
        self.actual = actual


def utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def check_revision(expected: Optional[int], actual: int) -> None:
    if expected is not None and expected != actual:
        raise ConflictError(expected, actual)


def read_json(path: Path) -> Optional[Dict[str, Any]]:
    """Return the decoded document, or ``None`` when the file does not exist."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StoreError(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise StoreError(f"{path.name} must contain a JSON object")
    return data


def write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    """Write ``payload`` next to ``path`` and swap it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


__all__ = [
    "ConflictError",
    "LastTemplateError",
    "NotFoundError",
    "StoreError",
    "TemplateValidationError",
    "check_revision",
    "read_json",
    "utc_now",
    "write_json_atomic",
]
