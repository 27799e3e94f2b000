from __future__ import annotations

from pathlib import Path

import pytest

SAMPLE_LOG = "2024-01-08 | Mon\nPlan\n- ship X\nResult\n- shipped X\nIssues\nNotes\n"

SAMPLE_REPORT = """【本周工作总结】
- Project A: login module finished and released

【本周输出成果（Deliverables）】
- ✓ Login module live

【问题 & 风险（Issues & Risks）】
- API latency（影响：slow login / 需要：scale backend）

【下周工作计划】
- Start the sign-up module
"""


@pytest.fixture
def sample_log() -> str:
    return SAMPLE_LOG


@pytest.fixture
def sample_report() -> str:
    return SAMPLE_REPORT


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a config.yml under tmp_path and return its directory."""

    def _write(text: str) -> Path:
        (tmp_path / "config.yml").write_text(text, encoding="utf-8")
        return tmp_path

    return _write
