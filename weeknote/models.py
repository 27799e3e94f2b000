"""Core data models shared across weeknote components."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date as _date
from typing import Any, Dict, List, Optional, Tuple

_DATE_TOKEN = re.compile(r"^(?:(?P<year>\d{4})[-/])?(?P<month>\d{1,2})[-/](?P<day>\d{1,2})$")

SECTION_NAMES: Tuple[str, ...] = ("plan", "result", "issues", "notes")


@dataclass
class DailyEntry:
    """One calendar day of a daily log."""

    date: str
    day_of_week: str = ""
    plan: List[str] = field(default_factory=list)
    result: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    raw_content: str = field(default="", compare=False)

    def section(self, name: str) -> List[str]:
        if name not in SECTION_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def has_content(self) -> bool:
        return any(self.section(name) for name in SECTION_NAMES)

    def calendar_date(self, year: int | None = None) -> Optional[_date]:
        """Return the entry date, borrowing ``year`` when the token omits it."""
        match = _DATE_TOKEN.match(self.date.strip())
        if not match:
            return None
        token_year = match.group("year")
        resolved_year = int(token_year) if token_year else year
        if resolved_year is None:
            return None
        try:
            return _date(resolved_year, int(match.group("month")), int(match.group("day")))
        except ValueError:
            return None


@dataclass(frozen=True)
class WeeklyLog:
    """Parsed representation of one free-text log submission."""

    entries: Tuple[DailyEntry, ...] = ()

    @property
    def start_date(self) -> str:
        return self.entries[0].date if self.entries else ""

    @property
    def end_date(self) -> str:
        return self.entries[-1].date if self.entries else ""

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ValidationWarning:
    """Non-fatal formatting hint produced while validating a daily log."""

    type: str
    message: str
    suggestion: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message, "suggestion": self.suggestion}


@dataclass
class ValidationResult:
    """Outcome of daily log validation."""

    valid: bool
    warnings: List[ValidationWarning] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    """Represents a single chat message for LLM prompting."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CustomPromptTemplate:
    """System prompt and user template pair overriding the built-in defaults."""

    system_prompt: str
    user_prompt_template: str


@dataclass
class PromptTemplate:
    """A persisted, user-managed prompt template."""

    id: str
    name: str
    system_prompt: str
    user_prompt_template: str
    created_at: str
    updated_at: str
    description: Optional[str] = None

    def as_custom(self) -> CustomPromptTemplate:
        return CustomPromptTemplate(
            system_prompt=self.system_prompt,
            user_prompt_template=self.user_prompt_template,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "systemPrompt": self.system_prompt,
            "userPromptTemplate": self.user_prompt_template,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PromptTemplate":
        description = payload.get("description")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            description=str(description) if description is not None else None,
            system_prompt=str(payload["systemPrompt"]),
            user_prompt_template=str(payload["userPromptTemplate"]),
            created_at=str(payload.get("createdAt", "")),
            updated_at=str(payload.get("updatedAt", "")),
        )


@dataclass(frozen=True)
class ModelMeta:
    """Static catalogue entry describing one selectable LLM backend."""

    id: str
    display_name: str
    api_model_name: str
    base_url: str
    is_free: bool
    description: str
    reasoning: bool = False

    @property
    def platform(self) -> str:
        return self.id.split("/", 1)[0]


@dataclass
class ModelConfig:
    """Connection settings for one model attempt."""

    model_id: str
    api_key: str
    base_url: Optional[str] = None
    temperature: Optional[float] = None
    endpoint_id: Optional[str] = None
    thinking_mode: Optional[str] = None

    @property
    def platform(self) -> str:
        return self.model_id.split("/", 1)[0]


@dataclass
class GeneratorConfig:
    """Primary model plus optional fallback chain for one generation request."""

    primary: ModelConfig
    fallback: List[ModelConfig] = field(default_factory=list)
    enable_fallback: bool = True
    timeout_ms: int = 60_000


@dataclass
class IssueItem:
    """One entry of the issues & risks section."""

    title: str
    impact: Optional[str] = None
    action: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"title": self.title, "impact": self.impact, "action": self.action}


@dataclass
class WeeklyReport:
    """LLM output with a best-effort structured projection."""

    raw_markdown: str
    summary: List[str] = field(default_factory=list)
    deliverables: List[str] = field(default_factory=list)
    issues_and_risks: List[IssueItem] = field(default_factory=list)
    next_week_plan: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": list(self.summary),
            "deliverables": list(self.deliverables),
            "issuesAndRisks": [item.to_dict() for item in self.issues_and_risks],
            "nextWeekPlan": list(self.next_week_plan),
            "rawMarkdown": self.raw_markdown,
        }


@dataclass
class Completion:
    """Text produced by a model together with the id of the model that produced it."""

    content: str
    model_id: str


@dataclass
class GenerateResult:
    """Result of a report generation request."""

    report: WeeklyReport
    model_id: str
    model_name: str


__all__ = [
    "ChatMessage",
    "Completion",
    "CustomPromptTemplate",
    "DailyEntry",
    "GenerateResult",
    "GeneratorConfig",
    "IssueItem",
    "ModelConfig",
    "ModelMeta",
    "PromptTemplate",
    "SECTION_NAMES",
    "ValidationResult",
    "ValidationWarning",
    "WeeklyLog",
    "WeeklyReport",
]
