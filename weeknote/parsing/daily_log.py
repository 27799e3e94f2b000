"""Parse free-text daily logs into structured weekly logs."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from ..models import (
    SECTION_NAMES,
    DailyEntry,
    ValidationResult,
    ValidationWarning,
    WeeklyLog,
)

_WEEKDAY = (
    r"周[一二三四五六日天]|星期[一二三四五六日天]"
    r"|mon(?:day)?|tue(?:s|sday)?|wed(?:nesday)?|thu(?:r|rs|rsday)?"
    r"|fri(?:day)?|sat(?:urday)?|sun(?:day)?"
)

# "2024-01-08 | Mon", "12-15|周一", "2024/1/8", "12-15 周二"
DATE_LINE_PATTERN = re.compile(
    r"^(?:#+\s*)?(?P<date>(?:\d{4}[-/])?\d{1,2}[-/]\d{1,2})"
    rf"\s*(?:[|｜]\s*)?(?P<weekday>{_WEEKDAY})?\.?\s*$",
    re.IGNORECASE,
)

# "Plan", "## Result:", "【问题】", "Notes (background only)"
SECTION_PATTERN = re.compile(
    r"^(?:#+\s*)?[【\[]?\s*(?P<label>plan|results?|issues?|notes?|计划|结果|问题|备注)\s*[】\]]?"
    r"\s*(?:[（(][^）)]*[）)])?\s*[:：]?\s*$",
    re.IGNORECASE,
)

LIST_ITEM_PATTERN = re.compile(r"^(?:(?:[-•✓✔]|\*(?=\s))\s*)*(?:\[[ xX]?\]\s*)?(?P<text>.*)$")

_SECTION_ALIASES: Dict[str, str] = {
    "plan": "plan",
    "计划": "plan",
    "result": "result",
    "results": "result",
    "结果": "result",
    "issue": "issues",
    "issues": "issues",
    "问题": "issues",
    "note": "notes",
    "notes": "notes",
    "备注": "notes",
}

_DATE_SUGGESTION = "Start each day with a date line such as `2024-01-08 | Mon` or `12-15 | 周一`."
_SECTION_SUGGESTION = (
    "Group each day's lines under the headers Plan, Result, Issues and Notes, for example:\n"
    "Plan\n- ship the release\nResult\n- release shipped"
)


def parse_daily_log(raw_text: str) -> WeeklyLog:
    """Parse raw daily log text into a :class:`WeeklyLog`.

    Lines outside a recognised section are ignored. The parser never raises on
    odd formatting; unknown structure simply yields fewer items.
    """
    if not isinstance(raw_text, str):
        raise TypeError("daily log must be a string")

    entries: List[DailyEntry] = []
    current: Optional[DailyEntry] = None
    section: Optional[str] = None
    block_lines: List[str] = []

    def finalize() -> None:
        if current is not None:
            current.raw_content = "\n".join(block_lines).strip()
            entries.append(current)

    for line in raw_text.splitlines():
        stripped = line.strip()

        date_match = DATE_LINE_PATTERN.match(stripped)
        if date_match:
            finalize()
            current = DailyEntry(
                date=date_match.group("date"),
                day_of_week=date_match.group("weekday") or "",
            )
            section = None
            block_lines = [line]
            continue

        section_name = _match_section(stripped)
        if section_name is not None:
            if current is None:
                # Content before the first date line becomes an undated entry.
                current = DailyEntry(date="")
                block_lines = []
            section = section_name
            block_lines.append(line)
            continue

        if current is None:
            continue
        block_lines.append(line)

        if not stripped or section is None:
            continue
        item = _strip_list_marker(stripped)
        if item:
            current.section(section).append(item)

    finalize()
    return WeeklyLog(entries=tuple(_order_entries(entries)))


def validate_daily_log(raw_text: object) -> ValidationResult:
    """Check a daily log for structure problems.

    Only empty or non-string input is invalid. Missing dates or sections are
    reported as warnings so callers can show hints while still generating.
    """
    if not isinstance(raw_text, str):
        return ValidationResult(valid=False, error="Daily log must be a string")
    if not raw_text.strip():
        return ValidationResult(valid=False, error="Daily log is empty")

    warnings: List[ValidationWarning] = []
    has_date = False
    has_section = False
    for line in raw_text.splitlines():
        stripped = line.strip()
        if DATE_LINE_PATTERN.match(stripped):
            has_date = True
        elif _match_section(stripped) is not None:
            has_section = True

    if not has_date:
        warnings.append(
            ValidationWarning(
                type="MISSING_DATE",
                message="No date line found in the daily log",
                suggestion=_DATE_SUGGESTION,
            )
        )
    if not has_section:
        warnings.append(
            ValidationWarning(
                type="MISSING_SECTIONS",
                message="No Plan/Result/Issues/Notes headers found",
                suggestion=_SECTION_SUGGESTION,
            )
        )
    elif has_date:
        for entry in parse_daily_log(raw_text).entries:
            if entry.date and not entry.has_content():
                warnings.append(
                    ValidationWarning(
                        type="EMPTY_DAY",
                        message=f"{entry.date} has no Plan/Result/Issues/Notes content",
                        suggestion="Add at least one item or remove the empty day.",
                    )
                )

    return ValidationResult(valid=True, warnings=warnings)


def format_weekly_log(weekly_log: WeeklyLog) -> str:
    """Render a weekly log back into the canonical text format."""
    lines: List[str] = []
    for entry in weekly_log.entries:
        header = f"{entry.date} | {entry.day_of_week}" if entry.day_of_week else entry.date
        if header:
            lines.append(header)
        for name in SECTION_NAMES:
            items = entry.section(name)
            if not items:
                continue
            lines.append(name.capitalize())
            lines.extend(f"- {item}" for item in items)
        lines.append("")
    return "\n".join(lines).strip()


def _match_section(stripped: str) -> Optional[str]:
    match = SECTION_PATTERN.match(stripped)
    if not match:
        return None
    return _SECTION_ALIASES[match.group("label").lower()]


def _strip_list_marker(stripped: str) -> str:
    match = LIST_ITEM_PATTERN.match(stripped)
    text = match.group("text") if match else stripped
    return text.strip()


def _order_entries(entries: List[DailyEntry]) -> List[DailyEntry]:
    # Year-less dates keep input order so logs spanning New Year stay chronological.
    dated = [entry.calendar_date() for entry in entries]
    if entries and all(value is not None for value in dated):
        order = sorted(range(len(entries)), key=lambda index: dated[index])
        return [entries[index] for index in order]
    return entries


__all__ = [
    "DATE_LINE_PATTERN",
    "SECTION_PATTERN",
    "format_weekly_log",
    "parse_daily_log",
    "validate_daily_log",
]
