"""Built-in prompt text and section labels for report generation."""

from __future__ import annotations

SECTION_LABELS: tuple[tuple[str, str], ...] = (
    ("plan", "Plan"),
    ("result", "Result"),
    ("issues", "Issues"),
    ("notes", "Notes (background only, not part of the report)"),
)

REPORT_SECTION_TITLES: dict[str, str] = {
    "summary": "【本周工作总结】",
    "deliverables": "【本周输出成果（Deliverables）】",
    "issues_and_risks": "【问题 & 风险（Issues & Risks）】",
    "next_week_plan": "【下周工作计划】",
}

DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant that turns an engineer's daily log into a structured weekly report.\n"
    "\n"
    "Rules:\n"
    "1. Everything in the report must come from the daily log. Never invent work, numbers or outcomes.\n"
    "2. Be concise: mention each item once, merge duplicates across days, drop filler.\n"
    "3. Notes are background only and must not appear as report content.\n"
    "4. Follow the output template exactly and keep every section header as written.\n"
    "5. Output plain Markdown only, without any preface or closing remarks.\n"
    "\n"
    "Output template:\n"
    "【本周工作总结】\n"
    "- Project or topic: one sentence on this week's overall progress\n"
    "\n"
    "【本周输出成果（Deliverables）】\n"
    "- ✓ Deliverable name\n"
    "\n"
    "【问题 & 风险（Issues & Risks）】\n"
    "- Issue description (影响：impact / 需要：support needed)\n"
    "- Risk description (缓解方案：mitigation)\n"
    "\n"
    "【下周工作计划】\n"
    "- Planned item\n"
    "\n"
    "Section rules:\n"
    "- Summary: group by project or topic, 3-5 bullets, results rather than daily steps.\n"
    "- Deliverables: only finished, reviewable outputs such as documents, merged code or released features.\n"
    "- Issues & risks: merge similar problems, one bullet each.\n"
    "- Next week: infer from the last day's Plan and overall progress, at most 5 bullets.\n"
    "- If a section has no content keep its header and write \"- 无\"."
)

DEFAULT_USER_PROMPT_TEMPLATE = (
    "Turn the following daily log into this week's report:\n"
    "\n"
    "---\n"
    "{{dailyLog}}\n"
    "---\n"
    "\n"
    "Requirements:\n"
    "1. Summary: merge several days of work on the same project into one sentence.\n"
    "2. Deliverables: keep only finished outputs taken from Result items, without duplicates.\n"
    "3. Issues & risks: build them from Issues items and state their impact.\n"
    "4. Next week: infer from the last day's Plan.\n"
    "5. Notes are background only.\n"
    "\n"
    "Output the report directly, without explanations."
)

DEFAULT_TEMPLATE_ID = "default"
DEFAULT_TEMPLATE_NAME = "Default template"
DEFAULT_TEMPLATE_DESCRIPTION = (
    "Standard weekly report: summary, deliverables, issues & risks and next week's plan."
)


__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "DEFAULT_TEMPLATE_DESCRIPTION",
    "DEFAULT_TEMPLATE_ID",
    "DEFAULT_TEMPLATE_NAME",
    "DEFAULT_USER_PROMPT_TEMPLATE",
    "REPORT_SECTION_TITLES",
    "SECTION_LABELS",
]
