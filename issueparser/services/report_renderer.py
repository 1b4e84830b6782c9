"""ReportRenderer — renders an Analysis as a Markdown report."""

import os
from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field

from issueparser.schemas.analysis import Analysis, Theme

REPORT_FILE_MODE = 0o644

_SEVERITY_BADGES = {
    "high": "🔴",
    "medium": "🟡",
    "low": "🟢",
}


class ReportOptions(BaseModel):
    title: str = "GitHub Issue Theme Analysis"
    repos: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    issue_count: int = 0
    model: str = ""


def severity_badge(severity: str) -> str:
    """Return the colored circle for a known severity, or "" for anything else."""
    return _SEVERITY_BADGES.get(severity.lower(), "")


def _format_date(day: date) -> str:
    return f"{day:%B} {day.day}, {day.year}"


class ReportRenderer:
    def render(self, analysis: Analysis, options: ReportOptions, generated_on: date | None = None) -> str:
        lines: list[str] = []
        day = generated_on or date.today()

        lines.append(f"# {options.title}")
        lines.append("")
        lines.append(f"**Generated:** {_format_date(day)}")
        lines.append(f"**Repositories:** {', '.join(options.repos)}")
        lines.append(f"**Keywords:** {', '.join(options.keywords)}")
        lines.append(f"**Issues Analyzed:** {options.issue_count}")
        lines.append("")
        lines.append("---")
        lines.append("")

        lines.append("## Executive Summary")
        lines.append("")
        if analysis.key_insights:
            lines.extend(f"- {insight}" for insight in analysis.key_insights)
        else:
            lines.append(
                f"Analyzed {options.issue_count} issues and identified {len(analysis.themes)} common themes."
            )
        lines.append("")

        lines.append("---")
        lines.append("")
        lines.append("## Identified Themes")
        lines.append("")
        for index, theme in enumerate(analysis.themes, start=1):
            lines.extend(self._render_theme(index, theme))

        if analysis.quotes:
            lines.append("## Notable Quotes")
            lines.append("")
            for quote in analysis.quotes:
                lines.append(f'> "{quote.text}"')
                if quote.source:
                    attribution = f"> — {quote.source}"
                    if quote.issue_url:
                        attribution += f" ([link]({quote.issue_url}))"
                    lines.append(attribution)
                lines.append("")
            lines.append("---")
            lines.append("")

        if analysis.action_items:
            lines.append("## Potential Action Items")
            lines.append("")
            lines.extend(f"- [ ] {item}" for item in analysis.action_items)
            lines.append("")
            lines.append("---")
            lines.append("")

        lines.append("## Methodology")
        lines.append("")
        lines.append("This analysis was performed using:")
        lines.append("- **IssueParser** - GitHub issue theme analyzer")
        if options.model:
            lines.append(f"- **Model:** {options.model}")
        lines.append("")
        lines.append(
            "Issues were fetched via GitHub REST API, batched, and analyzed for common themes "
            "using LLM-powered pattern recognition."
        )

        return "\n".join(lines) + "\n"

    @staticmethod
    def _render_theme(index: int, theme: Theme) -> list[str]:
        lines = [f"### {index}. {theme.name} {severity_badge(theme.severity)}".rstrip(), ""]

        if theme.issue_count > 0:
            lines.append(f"**Issues:** {theme.issue_count}")
            lines.append("")

        lines.append(theme.description)
        lines.append("")

        examples = [example for example in theme.examples if example]
        if examples:
            lines.append("**Example quotes:**")
            for example in examples:
                lines.append(f"> {example}")
                lines.append("")

        if theme.issue_urls:
            lines.append("**Related Issues:**")
            lines.extend(f"- {url}" for url in theme.issue_urls)
            lines.append("")

        lines.append("---")
        lines.append("")
        return lines

    def write(self, path: str | os.PathLike[str], content: str) -> Path:
        """Write the report, replacing any existing file. Raises OSError on failure."""
        target = Path(path)
        target.write_text(content, encoding="utf-8")
        os.chmod(target, REPORT_FILE_MODE)
        return target
