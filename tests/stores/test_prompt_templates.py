"""Tests for the prompt template store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from weeknote.prompting.constants import DEFAULT_SYSTEM_PROMPT, DEFAULT_TEMPLATE_ID
from weeknote.stores import (
    ConflictError,
    LastTemplateError,
    NotFoundError,
    PromptTemplateStore,
    StoreError,
    TemplateValidationError,
)

USER_TEMPLATE = "Here is my week:\n{{dailyLog}}"


def _store(tmp_path: Path) -> PromptTemplateStore:
    return PromptTemplateStore(tmp_path, clock=lambda: "2024-01-08T09:00:00Z")


def _create(store: PromptTemplateStore, name: str = "Terse"):
    return store.create(name=name, system_prompt="Be terse.", user_prompt_template=USER_TEMPLATE)


def test_missing_file_yields_default_template(tmp_path: Path) -> None:
    store = _store(tmp_path)

    state = store.state()

    assert state.revision == 0
    assert state.active_template_id == DEFAULT_TEMPLATE_ID
    assert [template.id for template in state.templates] == [DEFAULT_TEMPLATE_ID]
    assert store.get_active().system_prompt == DEFAULT_SYSTEM_PROMPT
    assert not (tmp_path / "prompts.json").exists()


def test_create_persists_and_bumps_revision(tmp_path: Path) -> None:
    store = _store(tmp_path)

    template = _create(store)

    assert template.id.startswith("template-")
    assert template.created_at == template.updated_at == "2024-01-08T09:00:00Z"
    assert store.revision == 1
    document = json.loads((tmp_path / "prompts.json").read_text(encoding="utf-8"))
    assert document["version"] == 1
    assert document["activeTemplateId"] == DEFAULT_TEMPLATE_ID
    assert [entry["id"] for entry in document["templates"]] == [DEFAULT_TEMPLATE_ID, template.id]
    assert document["templates"][1]["userPromptTemplate"] == USER_TEMPLATE


def test_state_survives_a_new_store_instance(tmp_path: Path) -> None:
    template = _create(_store(tmp_path))
    _store(tmp_path).activate(template.id)

    reopened = _store(tmp_path)

    assert reopened.get_active().id == template.id
    assert reopened.revision == 2


@pytest.mark.parametrize(
    "fields",
    [
        {"name": " ", "system_prompt": "s", "user_prompt_template": USER_TEMPLATE},
        {"name": "n", "system_prompt": "", "user_prompt_template": USER_TEMPLATE},
        {"name": "n", "system_prompt": "s", "user_prompt_template": "no placeholder"},
    ],
)
def test_create_rejects_invalid_templates(tmp_path: Path, fields) -> None:
    store = _store(tmp_path)

    with pytest.raises(TemplateValidationError):
        store.create(**fields)

    assert store.revision == 0


def test_placeholder_may_contain_spaces(tmp_path: Path) -> None:
    template = _store(tmp_path).create(
        name="Spaced", system_prompt="s", user_prompt_template="log: {{ dailyLog }}"
    )

    assert template.user_prompt_template == "log: {{ dailyLog }}"


def test_update_changes_only_given_fields(tmp_path: Path) -> None:
    store = _store(tmp_path)
    template = _create(store)

    updated = store.update(template.id, name="Renamed", description="short")

    assert updated.name == "Renamed"
    assert updated.description == "short"
    assert updated.system_prompt == "Be terse."
    assert store.get(template.id) == updated


def test_update_rejects_removing_the_placeholder(tmp_path: Path) -> None:
    store = _store(tmp_path)
    template = _create(store)

    with pytest.raises(TemplateValidationError):
        store.update(template.id, user_prompt_template="plain text")

    assert store.get(template.id).user_prompt_template == USER_TEMPLATE


def test_deleting_active_template_reassigns_active(tmp_path: Path) -> None:
    store = _store(tmp_path)
    template = _create(store)
    store.activate(DEFAULT_TEMPLATE_ID)

    state = store.delete(DEFAULT_TEMPLATE_ID)

    assert [entry.id for entry in state.templates] == [template.id]
    assert state.active_template_id == template.id
    assert store.get_active().id == template.id


def test_last_template_cannot_be_deleted(tmp_path: Path) -> None:
    store = _store(tmp_path)
    before = store.state()

    with pytest.raises(LastTemplateError):
        store.delete(DEFAULT_TEMPLATE_ID)

    assert store.state() == before


def test_unknown_ids_raise_not_found(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(NotFoundError):
        store.get("missing")
    with pytest.raises(NotFoundError):
        store.activate("missing")
    with pytest.raises(NotFoundError):
        store.update("missing", name="x")
    with pytest.raises(NotFoundError):
        store.delete("missing")


def test_stale_revision_is_rejected(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _create(store, "first")

    with pytest.raises(ConflictError) as excinfo:
        store.create(
            name="second",
            system_prompt="s",
            user_prompt_template=USER_TEMPLATE,
            expected_revision=0,
        )

    assert (excinfo.value.expected, excinfo.value.actual) == (0, 1)
    assert len(store.list()) == 2
    store.activate(DEFAULT_TEMPLATE_ID, expected_revision=1)
    assert store.revision == 2


def test_reset_restores_single_default(tmp_path: Path) -> None:
    store = _store(tmp_path)
    template = _create(store)
    store.activate(template.id)

    state = store.reset_to_default()

    assert [entry.id for entry in state.templates] == [DEFAULT_TEMPLATE_ID]
    assert state.active_template_id == DEFAULT_TEMPLATE_ID
    assert state.revision == 3
    assert _store(tmp_path).revision == 3


def test_dangling_active_id_falls_back_to_first_template(tmp_path: Path) -> None:
    store = _store(tmp_path)
    template = _create(store)
    path = tmp_path / "prompts.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    document["activeTemplateId"] = "gone"
    path.write_text(json.dumps(document), encoding="utf-8")

    assert store.get_active().id == DEFAULT_TEMPLATE_ID
    assert store.get(template.id).name == "Terse"


def test_corrupt_file_raises_store_error(tmp_path: Path) -> None:
    (tmp_path / "prompts.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        _store(tmp_path).state()


def test_explicit_json_path_is_used_as_is(tmp_path: Path) -> None:
    target = tmp_path / "custom.json"
    store = PromptTemplateStore(target)

    _create(store)

    assert target.exists()
    assert not (tmp_path / "prompts.json").exists()
