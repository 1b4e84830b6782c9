"""AnalysisParser — turns a model's free-text reply into an Analysis."""

import json
from collections.abc import Mapping

import pydantic

from issueparser.schemas.analysis import Analysis, Quote, RawAnalysis, Theme

_JSON_FENCE = "```json"
_FENCE = "```"

FALLBACK_THEME_NAME = "Raw Analysis"
FALLBACK_SEVERITY = "medium"


def strip_code_fence(response: str) -> str:
    """Return the JSON candidate inside a Markdown code fence, if any.

    A ```json fence is preferred over a bare one. An unterminated fence yields
    everything after the opening marker. The result is whitespace-trimmed.
    """
    json_idx = response.find(_JSON_FENCE)
    fence_idx = response.find(_FENCE)
    if json_idx != -1:
        candidate = response[json_idx + len(_JSON_FENCE) :]
    elif fence_idx != -1:
        candidate = response[fence_idx + len(_FENCE) :]
    else:
        return response.strip()

    end = candidate.find(_FENCE)
    if end != -1:
        candidate = candidate[:end]
    return candidate.strip()


def decode_raw_analysis(candidate: str) -> RawAnalysis | None:
    """Strictly decode a JSON object into RawAnalysis. Returns None on any failure."""
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return RawAnalysis.model_validate(data)
    except pydantic.ValidationError:
        return None


def fallback_analysis(response: str, issue_count: int) -> Analysis:
    """Wrap an unparseable reply in a single medium-severity theme."""
    return Analysis(
        themes=(
            Theme(
                name=FALLBACK_THEME_NAME,
                description=response,
                issue_count=issue_count,
                severity=FALLBACK_SEVERITY,
            ),
        ),
        raw_issue_count=issue_count,
    )


class AnalysisParser:
    """Builds an Analysis from a model response.

    Never raises on malformed output: anything that does not decode into the
    expected shape becomes a single "Raw Analysis" theme carrying the reply.
    """

    def parse(self, response: str, issue_urls: Mapping[int, str], issue_count: int) -> Analysis:
        raw = decode_raw_analysis(strip_code_fence(response))
        if raw is None:
            return fallback_analysis(response, issue_count)
        return self.to_analysis(raw, issue_urls, issue_count)

    @staticmethod
    def to_analysis(raw: RawAnalysis, issue_urls: Mapping[int, str], issue_count: int) -> Analysis:
        themes = []
        for t in raw.themes:
            count = t.issue_count or len(t.issue_numbers)
            themes.append(
                Theme(
                    name=t.name,
                    description=t.description,
                    issue_count=count,
                    severity=t.severity,
                    issue_urls=tuple(issue_urls[n] for n in t.issue_numbers if n in issue_urls),
                    examples=(*t.examples, *t.example_quotes),
                )
            )

        quotes = []
        for q in raw.notable_quotes:
            url = issue_urls.get(q.issue_number)
            if url is not None:
                quotes.append(Quote(text=q.text, source=f"Issue #{q.issue_number}", issue_url=url))
            else:
                quotes.append(Quote(text=q.text))

        return Analysis(
            themes=tuple(themes),
            key_insights=tuple(raw.key_insights),
            quotes=tuple(quotes),
            action_items=tuple(raw.action_items),
            raw_issue_count=issue_count,
        )
