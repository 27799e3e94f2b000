"""Extract structured sections from LLM-generated weekly report Markdown."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from ..logging import get_logger
from ..models import IssueItem, WeeklyReport

_BRACKET_HEADER = re.compile(r"^(?:#{1,6}\s*)?(?:\*\*)?\s*【(?P<text>[^】]*)】(?P<trail>.*)$")
_MARKDOWN_HEADER = re.compile(r"^#{1,6}\s+(?P<text>.+?)\s*#*$")
_BOLD_HEADER = re.compile(r"^\*\*(?P<text>[^*]+)\*\*\s*[:：]?$")

# Checked in order; a header mentioning risks belongs to the issues zone.
_ZONE_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    (
        "issues_and_risks",
        re.compile(r"问题\s*[&＆和与/、]\s*风险|issues?\s*(?:&|＆|and|/)\s*risks?|风险|risks?", re.I),
    ),
    ("deliverables", re.compile(r"输出成果|交付物?|deliverables?", re.I)),
    ("next_week_plan", re.compile(r"下周(?:工作)?计划|next[\s-]*week", re.I)),
    ("summary", re.compile(r"工作总结|本周总结|summary", re.I)),
)

_BULLET = re.compile(
    r"^(?:(?:[-•·]|\*(?=\s)|\d+[.)、])\s*)?(?:[✓✔☑]\s*)?(?:\[[ xX]?\]\s*)?(?P<text>.*)$"
)
_BULLET_START = re.compile(r"^(?:[-•·✓✔☑]|\*(?=\s)|\d+[.)、])")

_PLACEHOLDERS = {"无", "暂无", "none", "n/a", "na", "nothing", "-"}

_IMPACT_LABEL = r"影响|impact"
_ACTION_LABEL = r"需要|缓解方案|缓解措施|缓解|应对|行动项?|action|mitigation|needs?"
_LABELS = rf"{_IMPACT_LABEL}|{_ACTION_LABEL}"
_MARKER_LINE = re.compile(rf"^(?P<label>{_LABELS})\s*[:：]\s*(?P<value>.*)$", re.I)
_INLINE_MARKER = re.compile(
    rf"(?<![A-Za-z])(?P<label>{_LABELS})\s*[:：]\s*(?P<value>.*?)"
    rf"(?=\s*(?:[/／;；()（）]|[，,]?\s*(?:{_LABELS})\s*[:：]|$))",
    re.I,
)
_IMPACT_ONLY = re.compile(rf"^(?:{_IMPACT_LABEL})$", re.I)
_TITLE_TRAILER = " \t，,;；:：-—–/／（("


class ReportParser:
    """Slices report Markdown into summary, deliverables, issues and next-week zones."""

    def __init__(self) -> None:
        self.logger = get_logger("parsing.report")

    def parse(self, markdown: str) -> WeeklyReport:
        """Return a :class:`WeeklyReport`; never raises on malformed content."""
        report = WeeklyReport(raw_markdown=markdown)
        try:
            zones = self._split_zones(markdown)
            report.summary = self._extract_items(zones.get("summary", []))
            report.deliverables = self._extract_items(zones.get("deliverables", []))
            report.issues_and_risks = self._extract_issues(zones.get("issues_and_risks", []))
            report.next_week_plan = self._extract_items(zones.get("next_week_plan", []))
        except Exception:  # pragma: no cover - raw markdown stays authoritative
            self.logger.warning(
                "Report structure extraction failed; using raw markdown", exc_info=True
            )
            return WeeklyReport(raw_markdown=markdown)
        if not any(
            (report.summary, report.deliverables, report.issues_and_risks, report.next_week_plan)
        ):
            self.logger.debug("No report sections recognised in model output")
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _split_zones(self, markdown: str) -> Dict[str, List[str]]:
        zones: Dict[str, List[str]] = {}
        current: Optional[str] = None
        current_level = 0
        for line in markdown.splitlines():
            header = self._header(line.strip())
            if header is None:
                if current is not None:
                    zones[current].append(line)
                continue
            text, level, bracketed = header
            zone = self._zone_for(text)
            if zone is not None:
                current, current_level = zone, level
                zones.setdefault(zone, [])
            elif bracketed or (level and level <= current_level):
                current = None
            # Deeper or bold sub-headings (per-project groups) stay in the open zone.
        return zones

    @staticmethod
    def _header(stripped: str) -> Optional[Tuple[str, int, bool]]:
        """Return ``(text, markdown level, is 【】 header)``; bold-only lines have level 0."""
        match = _BRACKET_HEADER.match(stripped)
        if match:
            level = len(stripped) - len(stripped.lstrip("#"))
            return f"{match.group('text')} {match.group('trail')}".strip(), level, True
        match = _MARKDOWN_HEADER.match(stripped)
        if match:
            level = len(stripped) - len(stripped.lstrip("#"))
            return match.group("text").strip("*【】 "), level, False
        match = _BOLD_HEADER.match(stripped)
        if match:
            return match.group("text").strip(), 0, False
        return None

    @staticmethod
    def _zone_for(header_text: str) -> Optional[str]:
        for zone, pattern in _ZONE_PATTERNS:
            if pattern.search(header_text):
                return zone
        return None

    def _extract_items(self, lines: List[str]) -> List[str]:
        items: List[str] = []
        for line in lines:
            stripped = line.strip()
            if not _BULLET_START.match(stripped):
                continue
            text = self._strip_bullet(stripped)
            if text and not self._is_placeholder(text):
                items.append(text)
        return items

    def _extract_issues(self, lines: List[str]) -> List[IssueItem]:
        issues: List[IssueItem] = []
        current: Optional[IssueItem] = None
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            is_bullet = bool(_BULLET_START.match(stripped))
            text = self._strip_bullet(stripped) if is_bullet else stripped
            if not text or self._is_placeholder(text):
                continue

            marker = _MARKER_LINE.match(text)
            if marker and current is not None:
                self._assign(current, marker.group("label"), marker.group("value"))
                continue
            if not is_bullet:
                continue

            current = self._issue_from_text(text)
            issues.append(current)
        return issues

    def _issue_from_text(self, text: str) -> IssueItem:
        markers = list(_INLINE_MARKER.finditer(text))
        if not markers:
            return IssueItem(title=text)
        title = text[: markers[0].start()].rstrip(_TITLE_TRAILER) or text
        issue = IssueItem(title=title)
        for marker in markers:
            self._assign(issue, marker.group("label"), marker.group("value"))
        return issue

    @staticmethod
    def _assign(issue: IssueItem, label: str, value: str) -> None:
        cleaned = value.strip().rstrip(" ，,;；)）")
        if not cleaned:
            return
        if _IMPACT_ONLY.match(label):
            if issue.impact is None:
                issue.impact = cleaned
        elif issue.action is None:
            issue.action = cleaned

    @staticmethod
    def _strip_bullet(stripped: str) -> str:
        match = _BULLET.match(stripped)
        text = match.group("text") if match else stripped
        return text.strip()

    @staticmethod
    def _is_placeholder(text: str) -> bool:
        return text.strip().strip("。.").lower() in _PLACEHOLDERS


def parse_report(markdown: str) -> WeeklyReport:
    """Parse report Markdown with a default :class:`ReportParser`."""
    return ReportParser().parse(markdown)


__all__ = ["ReportParser", "parse_report"]
