"""Builds chat messages for weekly report generation."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader

from ..models import ChatMessage, CustomPromptTemplate, WeeklyLog
from .constants import DEFAULT_SYSTEM_PROMPT, DEFAULT_USER_PROMPT_TEMPLATE, SECTION_LABELS

DAILY_LOG_PLACEHOLDER = "{{dailyLog}}"

_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*dailyLog\s*\}\}")


def contains_placeholder(template: str) -> bool:
    """Return True when ``template`` carries the ``{{dailyLog}}`` placeholder."""
    return bool(_PLACEHOLDER_PATTERN.search(template or ""))


class PromptBuilder:
    """Renders the system and user messages from a template and a parsed log.

    The default prompts are injected at construction so callers (and tests)
    can swap them without touching module state. User templates are treated
    as plain text: only the ``{{dailyLog}}`` placeholder is substituted.
    """

    def __init__(
        self,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        user_prompt_template: str = DEFAULT_USER_PROMPT_TEMPLATE,
        *,
        templates_dir: Path | None = None,
    ) -> None:
        self.system_prompt = system_prompt
        self.user_prompt_template = user_prompt_template
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def build_messages(
        self,
        weekly_log: WeeklyLog,
        custom_template: Optional[CustomPromptTemplate] = None,
    ) -> List[ChatMessage]:
        """Return exactly one system message and one user message."""
        system_prompt = self.system_prompt
        user_template: Optional[str] = None
        if custom_template is not None:
            system_prompt = custom_template.system_prompt or self.system_prompt
            user_template = custom_template.user_prompt_template or None
        return [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=self.build_user_prompt(weekly_log, user_template)),
        ]

    def build_user_prompt(self, weekly_log: WeeklyLog, template: str | None = None) -> str:
        formatted = self.format_log(weekly_log)
        user_template = template or self.user_prompt_template
        return _PLACEHOLDER_PATTERN.sub(lambda _: formatted, user_template)

    def format_log(self, weekly_log: WeeklyLog) -> str:
        """Render the log in the canonical day-block format the log parser reads."""
        template = self._env.get_template("daily_log.j2")
        rendered = template.render(entries=weekly_log.entries, sections=SECTION_LABELS)
        return rendered.strip()


__all__ = ["DAILY_LOG_PLACEHOLDER", "PromptBuilder", "contains_placeholder"]
