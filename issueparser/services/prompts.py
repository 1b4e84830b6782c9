"""Prompt construction for batch analysis and cross-batch synthesis."""

from collections.abc import Sequence

from issueparser.adapters.github_models import GitHubIssue

BODY_LIMIT = 500
ELLIPSIS = "..."

BATCH_MAX_TOKENS = 1000
SYNTHESIS_MAX_TOKENS = 1500

BATCH_SYSTEM_PROMPT = """You are an expert software analyst. Analyze GitHub issues to identify recurring themes and pain points.

IMPORTANT: Respond with ONLY valid JSON, no markdown, no explanations. Keep responses concise.

Required JSON structure:
{"themes":[{"name":"string","description":"string","issue_numbers":[1,2],"severity":"high|medium|low","example_quotes":["quote"]}],"notable_quotes":[{"text":"quote","issue_number":1}]}"""

SYNTHESIS_SYSTEM_PROMPT = """You synthesize multiple issue analyses into a final report. Merge similar themes, rank by importance.

IMPORTANT: Respond with ONLY valid JSON. No markdown, no explanations. Be concise.

Required JSON structure:
{"themes":[{"name":"string","description":"string","issue_count":10,"severity":"high|medium|low","examples":["quote1","quote2"]}],"key_insights":["insight1"],"action_items":["action1"]}"""


def summarize_body(body: str | None) -> str:
    """Cut the body to ``BODY_LIMIT`` characters and flatten it onto one line."""
    text = body or ""
    if len(text) > BODY_LIMIT:
        text = text[:BODY_LIMIT] + ELLIPSIS
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def format_issue(issue: GitHubIssue) -> str:
    return (
        "---\n"
        f"Issue #{issue.number} [{issue.state}]: {issue.title}\n"
        f"Labels: {', '.join(issue.labels)}\n"
        f"Comments: {issue.comments}\n"
        f"Body: {summarize_body(issue.body)}\n"
        f"URL: {issue.html_url}\n"
    )


def build_batch_prompts(batch: Sequence[GitHubIssue], focus_areas: Sequence[str]) -> tuple[str, str]:
    """Return the (system, user) prompt pair for one batch of issues."""
    summaries = "".join(format_issue(issue) for issue in batch)
    user_prompt = (
        f"Analyze these issues for themes about: {', '.join(focus_areas)}\n\n"
        f"{summaries}\n"
        "Respond with JSON only. Identify 3-5 themes with severity ratings."
    )
    return BATCH_SYSTEM_PROMPT, user_prompt


def build_synthesis_prompts(batch_results: Sequence[str], focus_areas: Sequence[str]) -> tuple[str, str]:
    """Return the (system, user) prompt pair that merges per-batch analyses."""
    analyses = "".join(f"Batch {i}:\n{result}\n" for i, result in enumerate(batch_results, start=1))
    user_prompt = (
        f"Synthesize these analyses about {', '.join(focus_areas)} into 5-7 final themes:\n\n"
        f"{analyses}\n"
        "Respond with JSON only."
    )
    return SYNTHESIS_SYSTEM_PROMPT, user_prompt
