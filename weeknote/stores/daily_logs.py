"""Daily records stored as one JSON document per ISO week."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..logging import get_logger
from ..models import DailyEntry, WeeklyLog
from ..parsing.daily_log import format_weekly_log
from .base import NotFoundError, check_revision, read_json, utc_now, write_json_atomic

DAILY_LOG_DIRNAME = "daily-logs"
WEEKDAY_ABBREVIATIONS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_DOCUMENT_VERSION = 1


@dataclass
class DailyRecord:
    """One stored day."""

    date: str
    day_of_week: str
    plan: List[str] = field(default_factory=list)
    result: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_entry(self) -> DailyEntry:
        return DailyEntry(
            date=self.date,
            day_of_week=self.day_of_week,
            plan=list(self.plan),
            result=list(self.result),
            issues=list(self.issues),
            notes=list(self.notes),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "dayOfWeek": self.day_of_week,
            "plan": list(self.plan),
            "result": list(self.result),
            "issues": list(self.issues),
            "notes": list(self.notes),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DailyRecord":
        return cls(
            date=str(payload["date"]),
            day_of_week=str(payload.get("dayOfWeek", "")),
            plan=_as_items(payload.get("plan")),
            result=_as_items(payload.get("result")),
            issues=_as_items(payload.get("issues")),
            notes=_as_items(payload.get("notes")),
            created_at=str(payload.get("createdAt", "")),
            updated_at=str(payload.get("updatedAt", "")),
        )


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_file_name(day: date) -> str:
    """Return e.g. ``2024-W02_01-08~01-14.json`` for any day of that ISO week."""
    start = week_start(day)
    end = start + timedelta(days=6)
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}_{start:%m-%d}~{end:%m-%d}.json"


class DailyLogStore:
    """Reads and writes daily records grouped into weekly files."""

    def __init__(self, root: Path, *, clock: Callable[[], str] = utc_now) -> None:
        self.root = root
        self._clock = clock
        self._lock = threading.Lock()
        self.logger = get_logger("stores.daily_logs")

    def get_day(self, day: date) -> Optional[DailyRecord]:
        with self._lock:
            document = self._read_week(day)
        payload = document["days"].get(day.isoformat())
        return DailyRecord.from_dict(payload) if isinstance(payload, dict) else None

    def week_revision(self, day: date) -> int:
        with self._lock:
            return self._read_week(day)["revision"]

    def save_day(
        self,
        day: date,
        *,
        plan: Sequence[str] = (),
        result: Sequence[str] = (),
        issues: Sequence[str] = (),
        notes: Sequence[str] = (),
        expected_revision: Optional[int] = None,
    ) -> DailyRecord:
        """Create or replace the record for ``day``."""
        key = day.isoformat()
        with self._lock:
            document = self._read_week(day)
            check_revision(expected_revision, document["revision"])
            now = self._clock()
            existing = document["days"].get(key)
            created_at = existing.get("createdAt", now) if isinstance(existing, dict) else now
            record = DailyRecord(
                date=key,
                day_of_week=WEEKDAY_ABBREVIATIONS[day.weekday()],
                plan=_clean(plan),
                result=_clean(result),
                issues=_clean(issues),
                notes=_clean(notes),
                created_at=created_at,
                updated_at=now,
            )
            document["days"][key] = record.to_dict()
            self._write_week(day, document)
        self.logger.info("Saved daily record %s", key)
        return record

    def delete_day(self, day: date, *, expected_revision: Optional[int] = None) -> None:
        key = day.isoformat()
        with self._lock:
            document = self._read_week(day)
            check_revision(expected_revision, document["revision"])
            if key not in document["days"]:
                raise NotFoundError(f"No record for {key}")
            del document["days"][key]
            if document["days"]:
                self._write_week(day, document)
            else:
                (self.root / week_file_name(day)).unlink(missing_ok=True)
        self.logger.info("Deleted daily record %s", key)

    def list_range(self, start: date, end: date) -> List[DailyRecord]:
        """Return stored records between ``start`` and ``end`` inclusive, oldest first."""
        if end < start:
            start, end = end, start
        records: List[DailyRecord] = []
        with self._lock:
            cursor = week_start(start)
            while cursor <= end:
                document = self._read_week(cursor)
                for key in sorted(document["days"]):
                    if start.isoformat() <= key <= end.isoformat():
                        records.append(DailyRecord.from_dict(document["days"][key]))
                cursor += timedelta(days=7)
        return records

    def to_weekly_log(self, start: date, end: date) -> WeeklyLog:
        entries = [record.to_entry() for record in self.list_range(start, end)]
        return WeeklyLog(entries=tuple(entries))

    def export_text(self, start: date, end: date) -> str:
        """Render the range in the daily log text format accepted by the parser."""
        return format_weekly_log(self.to_weekly_log(start, end))

    # ------------------------------------------------------------------
    # Internal helpers

    def _read_week(self, day: date) -> Dict[str, Any]:
        data = read_json(self.root / week_file_name(day))
        start = week_start(day)
        if data is None:
            data = {
                "version": _DOCUMENT_VERSION,
                "weekStart": start.isoformat(),
                "weekEnd": (start + timedelta(days=6)).isoformat(),
                "days": {},
                "revision": 0,
            }
        if not isinstance(data.get("days"), dict):
            data["days"] = {}
        if not isinstance(data.get("revision"), int):
            data["revision"] = 0
        return data

    def _write_week(self, day: date, document: Dict[str, Any]) -> None:
        now = self._clock()
        document["revision"] += 1
        document.setdefault("createdAt", now)
        document["updatedAt"] = now
        write_json_atomic(self.root / week_file_name(day), document)


def _clean(items: Sequence[str]) -> List[str]:
    return [str(item).strip() for item in items if str(item).strip()]


def _as_items(value: Any) -> List[str]:
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    if isinstance(value, list):
        return [str(item) for item in value if str(item).strip()]
    return []


__all__ = [
    "DAILY_LOG_DIRNAME",
    "DailyLogStore",
    "DailyRecord",
    "WEEKDAY_ABBREVIATIONS",
    "week_file_name",
    "week_start",
]
