"""Persistent prompt template collection (prompts.json)."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..logging import get_logger
from ..models import PromptTemplate
from ..prompting.builder import contains_placeholder
from ..prompting.constants import (
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPLATE_DESCRIPTION,
    DEFAULT_TEMPLATE_ID,
    DEFAULT_TEMPLATE_NAME,
    DEFAULT_USER_PROMPT_TEMPLATE,
)
from .base import (
    LastTemplateError,
    NotFoundError,
    TemplateValidationError,
    check_revision,
    read_json,
    utc_now,
    write_json_atomic,
)

PROMPTS_FILENAME = "prompts.json"
_DOCUMENT_VERSION = 1


@dataclass
class PromptTemplateState:
    """Snapshot of the whole template document."""

    active_template_id: str
    templates: List[PromptTemplate] = field(default_factory=list)
    revision: int = 0

    def find(self, template_id: str) -> Optional[PromptTemplate]:
        for template in self.templates:
            if template.id == template_id:
                return template
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activeTemplateId": self.active_template_id,
            "templates": [template.to_dict() for template in self.templates],
            "revision": self.revision,
        }


def default_template(now: str) -> PromptTemplate:
    return PromptTemplate(
        id=DEFAULT_TEMPLATE_ID,
        name=DEFAULT_TEMPLATE_NAME,
        description=DEFAULT_TEMPLATE_DESCRIPTION,
        system_prompt=DEFAULT_SYSTEM_PROMPT,
        user_prompt_template=DEFAULT_USER_PROMPT_TEMPLATE,
        created_at=now,
        updated_at=now,
    )


class PromptTemplateStore:
    """CRUD over the prompt templates with an always-valid active template.

    The collection never becomes empty and ``active_template_id`` always names
    an existing template. Every mutation bumps ``revision``; passing
    ``expected_revision`` turns a stale write into :class:`ConflictError`.
    """

    def __init__(self, path: Path, *, clock: Callable[[], str] = utc_now) -> None:
        self.path = path / PROMPTS_FILENAME if path.suffix != ".json" else path
        self._clock = clock
        self._lock = threading.Lock()
        self.logger = get_logger("stores.prompts")

    # ------------------------------------------------------------------
    # Queries

    def state(self) -> PromptTemplateState:
        with self._lock:
            return self._load()

    @property
    def revision(self) -> int:
        return self.state().revision

    def list(self) -> List[PromptTemplate]:
        return self.state().templates

    def get(self, template_id: str) -> PromptTemplate:
        template = self.state().find(template_id)
        if template is None:
            raise NotFoundError(f"Template not found: {template_id}")
        return template

    def get_active(self) -> PromptTemplate:
        state = self.state()
        return state.find(state.active_template_id) or state.templates[0]

    # ------------------------------------------------------------------
    # Mutations

    def create(
        self,
        *,
        name: str,
        system_prompt: str,
        user_prompt_template: str,
        description: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> PromptTemplate:
        _validate(name, system_prompt, user_prompt_template)
        with self._lock:
            state = self._load()
            check_revision(expected_revision, state.revision)
            now = self._clock()
            template = PromptTemplate(
                id=f"template-{uuid.uuid4().hex[:12]}",
                name=name.strip(),
                description=description,
                system_prompt=system_prompt,
                user_prompt_template=user_prompt_template,
                created_at=now,
                updated_at=now,
            )
            state.templates.append(template)
            self._save(state)
        self.logger.info("Created prompt template %s (%s)", template.id, template.name)
        return template

    def update(
        self,
        template_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        system_prompt: Optional[str] = None,
        user_prompt_template: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> PromptTemplate:
        with self._lock:
            state = self._load()
            check_revision(expected_revision, state.revision)
            current = state.find(template_id)
            if current is None:
                raise NotFoundError(f"Template not found: {template_id}")
            updated = replace(
                current,
                name=current.name if name is None else name.strip(),
                description=current.description if description is None else description,
                system_prompt=current.system_prompt if system_prompt is None else system_prompt,
                user_prompt_template=(
                    current.user_prompt_template
                    if user_prompt_template is None
                    else user_prompt_template
                ),
                updated_at=self._clock(),
            )
            _validate(updated.name, updated.system_prompt, updated.user_prompt_template)
            state.templates[state.templates.index(current)] = updated
            self._save(state)
        self.logger.info("Updated prompt template %s", template_id)
        return updated

    def delete(self, template_id: str, *, expected_revision: Optional[int] = None) -> PromptTemplateState:
        with self._lock:
            state = self._load()
            check_revision(expected_revision, state.revision)
            current = state.find(template_id)
            if current is None:
                raise NotFoundError(f"Template not found: {template_id}")
            if len(state.templates) <= 1:
                raise LastTemplateError("Cannot delete the last remaining template")
            state.templates.remove(current)
            if state.active_template_id == template_id:
                state.active_template_id = state.templates[0].id
            self._save(state)
        self.logger.info("Deleted prompt template %s", template_id)
        return state

    def activate(self, template_id: str, *, expected_revision: Optional[int] = None) -> PromptTemplate:
        with self._lock:
            state = self._load()
            check_revision(expected_revision, state.revision)
            template = state.find(template_id)
            if template is None:
                raise NotFoundError(f"Template not found: {template_id}")
            state.active_template_id = template_id
            self._save(state)
        self.logger.info("Activated prompt template %s", template_id)
        return template

    def reset_to_default(self, *, expected_revision: Optional[int] = None) -> PromptTemplateState:
        """Drop every template and restore the built-in default as the only one."""
        with self._lock:
            state = self._load()
            check_revision(expected_revision, state.revision)
            fresh = PromptTemplateState(
                active_template_id=DEFAULT_TEMPLATE_ID,
                templates=[default_template(self._clock())],
                revision=state.revision,
            )
            self._save(fresh)
        self.logger.info("Prompt templates reset to default")
        return fresh

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self) -> PromptTemplateState:
        data = read_json(self.path)
        if data is None:
            return PromptTemplateState(
                active_template_id=DEFAULT_TEMPLATE_ID,
                templates=[default_template(self._clock())],
            )
        templates: List[PromptTemplate] = []
        for payload in data.get("templates") or []:
            try:
                templates.append(PromptTemplate.from_dict(payload))
            except (KeyError, TypeError):
                self.logger.warning("Ignoring malformed template entry in %s", self.path.name)
        if not templates:
            templates = [default_template(self._clock())]
        active = str(data.get("activeTemplateId") or "")
        if not any(template.id == active for template in templates):
            active = templates[0].id
        revision = data.get("revision")
        return PromptTemplateState(
            active_template_id=active,
            templates=templates,
            revision=revision if isinstance(revision, int) else 0,
        )

    def _save(self, state: PromptTemplateState) -> None:
        state.revision += 1
        payload = {"version": _DOCUMENT_VERSION, **state.to_dict()}
        write_json_atomic(self.path, payload)


def _validate(name: str, system_prompt: str, user_prompt_template: str) -> None:
    if not name or not name.strip():
        raise TemplateValidationError("Template name is required")
    if not system_prompt or not system_prompt.strip():
        raise TemplateValidationError("System prompt is required")
    if not contains_placeholder(user_prompt_template):
        raise TemplateValidationError("User prompt template must contain the {{dailyLog}} placeholder")


__all__ = ["PROMPTS_FILENAME", "PromptTemplateState", "PromptTemplateStore", "default_template"]
