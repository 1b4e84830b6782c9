"""Tests for ReportRenderer."""

import stat
from datetime import date
from pathlib import Path

import pytest

from issueparser.schemas.analysis import Analysis, Quote, Theme
from issueparser.services.report_renderer import ReportOptions, ReportRenderer, severity_badge

OPTIONS = ReportOptions(
    title="GitHub Issue Theme Analysis",
    repos=["ollama/ollama", "vllm-project/vllm"],
    keywords=["multi-gpu", "scale"],
    issue_count=45,
    model="qwen-2.5-14b",
)
DAY = date(2024, 3, 5)


@pytest.fixture
def renderer() -> ReportRenderer:
    return ReportRenderer()


@pytest.mark.parametrize(
    ("severity", "badge"),
    [("high", "🔴"), ("HIGH", "🔴"), ("Medium", "🟡"), ("low", "🟢"), ("critical", ""), ("", "")],
)
def test_severity_badge(severity: str, badge: str) -> None:
    assert severity_badge(severity) == badge


def test_header(renderer: ReportRenderer) -> None:
    report = renderer.render(Analysis(raw_issue_count=45), OPTIONS, generated_on=DAY)
    assert report.startswith("# GitHub Issue Theme Analysis\n\n")
    assert "**Generated:** March 5, 2024\n" in report
    assert "**Repositories:** ollama/ollama, vllm-project/vllm\n" in report
    assert "**Keywords:** multi-gpu, scale\n" in report
    assert "**Issues Analyzed:** 45\n" in report


def test_summary_falls_back_to_counts(renderer: ReportRenderer) -> None:
    analysis = Analysis(themes=(Theme(name="A"), Theme(name="B")), raw_issue_count=45)
    report = renderer.render(analysis, OPTIONS, generated_on=DAY)
    assert "Analyzed 45 issues and identified 2 common themes." in report


def test_summary_lists_key_insights(renderer: ReportRenderer) -> None:
    analysis = Analysis(key_insights=("Scaling dominates", "Docs lag"))
    report = renderer.render(analysis, OPTIONS, generated_on=DAY)
    assert "## Executive Summary\n\n- Scaling dominates\n- Docs lag\n" in report
    assert "common themes" not in report


def test_theme_section(renderer: ReportRenderer) -> None:
    theme = Theme(
        name="Multi-GPU",
        description="Sharding fails across devices.",
        issue_count=7,
        severity="High",
        issue_urls=("https://github.com/a/b/issues/1",),
        examples=("OOM on 2 GPUs", ""),
    )
    report = renderer.render(Analysis(themes=(theme,)), OPTIONS, generated_on=DAY)

    assert "### 1. Multi-GPU 🔴\n\n**Issues:** 7\n\nSharding fails across devices.\n" in report
    assert "**Example quotes:**\n> OOM on 2 GPUs\n\n" in report
    assert "**Related Issues:**\n- https://github.com/a/b/issues/1\n" in report


def test_theme_with_unknown_severity_and_no_count(renderer: ReportRenderer) -> None:
    theme = Theme(name="Odd", description="desc", severity="urgent")
    report = renderer.render(Analysis(themes=(theme,)), OPTIONS, generated_on=DAY)

    assert "### 1. Odd\n" in report
    assert "**Issues:**" not in report
    assert "**Example quotes:**" not in report
    assert "**Related Issues:**" not in report


def test_notable_quotes(renderer: ReportRenderer) -> None:
    analysis = Analysis(
        quotes=(
            Quote(text="it hangs", source="Issue #3", issue_url="https://x/3"),
            Quote(text="no source"),
        )
    )
    report = renderer.render(analysis, OPTIONS, generated_on=DAY)
    assert '## Notable Quotes\n\n> "it hangs"\n> — Issue #3 ([link](https://x/3))\n\n> "no source"\n\n' in report


def test_action_items_checklist(renderer: ReportRenderer) -> None:
    report = renderer.render(Analysis(action_items=("Fix docs", "Add test")), OPTIONS, generated_on=DAY)
    assert "## Potential Action Items\n\n- [ ] Fix docs\n- [ ] Add test\n" in report


def test_optional_sections_omitted_when_empty(renderer: ReportRenderer) -> None:
    report = renderer.render(Analysis(), OPTIONS, generated_on=DAY)
    assert "## Notable Quotes" not in report
    assert "## Potential Action Items" not in report


def test_methodology_footer(renderer: ReportRenderer) -> None:
    report = renderer.render(Analysis(), OPTIONS, generated_on=DAY)
    assert "## Methodology\n" in report
    assert "- **Model:** qwen-2.5-14b\n" in report
    assert report.endswith("using LLM-powered pattern recognition.\n")


def test_render_is_deterministic(renderer: ReportRenderer) -> None:
    analysis = Analysis(themes=(Theme(name="A", severity="low"),), key_insights=("x",))
    assert renderer.render(analysis, OPTIONS, generated_on=DAY) == renderer.render(analysis, OPTIONS, generated_on=DAY)


def test_write_overwrites_with_0644(renderer: ReportRenderer, tmp_path: Path) -> None:
    target = tmp_path / "report.md"
    target.write_text("old content that is longer than the new one")
    target.chmod(0o600)

    written = renderer.write(target, "# new\n")

    assert written == target
    assert target.read_text(encoding="utf-8") == "# new\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_write_to_missing_directory_raises(renderer: ReportRenderer, tmp_path: Path) -> None:
    with pytest.raises(OSError):
        renderer.write(tmp_path / "missing" / "report.md", "x")
