"""Tests for the prompt builder."""

from __future__ import annotations

from weeknote.models import CustomPromptTemplate
from weeknote.parsing import parse_daily_log
from weeknote.prompting import (
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_USER_PROMPT_TEMPLATE,
    PromptBuilder,
    contains_placeholder,
)
from weeknote.prompting.constants import REPORT_SECTION_TITLES


def test_default_template_produces_system_and_user_messages(sample_log: str) -> None:
    messages = PromptBuilder().build_messages(parse_daily_log(sample_log))

    assert [message.role for message in messages] == ["system", "user"]
    assert messages[0].content == DEFAULT_SYSTEM_PROMPT
    assert "ship X" in messages[1].content
    assert "shipped X" in messages[1].content
    assert "{{dailyLog}}" not in messages[1].content


def test_default_prompts_carry_report_template() -> None:
    for title in REPORT_SECTION_TITLES.values():
        assert title in DEFAULT_SYSTEM_PROMPT
    assert contains_placeholder(DEFAULT_USER_PROMPT_TEMPLATE)


def test_custom_template_substitutes_every_placeholder(sample_log: str) -> None:
    builder = PromptBuilder()
    log = parse_daily_log(sample_log)
    template = CustomPromptTemplate(
        system_prompt="SYS",
        user_prompt_template="Log:\n{{ dailyLog }}\n---\n{{dailyLog}}",
    )

    system, user = builder.build_messages(log, template)

    formatted = builder.format_log(log)
    assert system.content == "SYS"
    assert user.content == f"Log:\n{formatted}\n---\n{formatted}"


def test_custom_template_text_is_not_evaluated(sample_log: str) -> None:
    builder = PromptBuilder()
    template = CustomPromptTemplate(
        system_prompt="SYS",
        user_prompt_template="{% if x %}{{ other }}{% endif %} {{dailyLog}}",
    )

    _, user = builder.build_messages(parse_daily_log(sample_log), template)

    assert user.content.startswith("{% if x %}{{ other }}{% endif %} ")


def test_empty_custom_parts_fall_back_to_defaults(sample_log: str) -> None:
    builder = PromptBuilder(system_prompt="DEFAULT SYS", user_prompt_template="U: {{dailyLog}}")
    template = CustomPromptTemplate(system_prompt="", user_prompt_template="")

    system, user = builder.build_messages(parse_daily_log(sample_log), template)

    assert system.content == "DEFAULT SYS"
    assert user.content.startswith("U: 2024-01-08 | Mon")


def test_format_log_renders_canonical_blocks(sample_log: str) -> None:
    formatted = PromptBuilder().format_log(parse_daily_log(sample_log))

    assert formatted == "2024-01-08 | Mon\nPlan\n- ship X\nResult\n- shipped X"


def test_format_log_round_trips_through_parser() -> None:
    text = (
        "12-30 | 周一\n【计划】\n- 写文档\n【问题】\n- 环境不稳定\n【备注】\n- 年底\n"
        "01-02 | 周四\nResult\n- [x] 文档完成\n"
    )
    log = parse_daily_log(text)

    formatted = PromptBuilder().format_log(log)

    assert "Notes (background only" in formatted
    assert parse_daily_log(formatted) == log


def test_contains_placeholder_tolerates_whitespace() -> None:
    assert contains_placeholder("{{ dailyLog }}")
    assert not contains_placeholder("{{daily_log}}")
    assert not contains_placeholder("")
