"""ThemeAnalyzer — batches issues through the LLM and synthesizes final themes."""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

import structlog

from issueparser.adapters.github_models import GitHubIssue
from issueparser.adapters.llm_client import LLMClient, LLMClientError
from issueparser.schemas.analysis import Analysis
from issueparser.services.analysis_parser import AnalysisParser
from issueparser.services.prompts import (
    BATCH_MAX_TOKENS,
    SYNTHESIS_MAX_TOKENS,
    build_batch_prompts,
    build_synthesis_prompts,
)

logger = structlog.get_logger(__name__)

BATCH_SIZE = 20


class AnalysisError(Exception):
    """Raised when the cross-batch synthesis call fails."""


class SynthesisKind(StrEnum):
    empty = "empty"
    single = "single"
    merged = "merged"


@dataclass(frozen=True)
class SynthesisPlan:
    """Which synthesis path applies to a set of successful batch results."""

    kind: SynthesisKind
    batch_results: tuple[str, ...] = ()

    @classmethod
    def from_results(cls, batch_results: Sequence[str]) -> "SynthesisPlan":
        results = tuple(batch_results)
        if not results:
            return cls(SynthesisKind.empty)
        if len(results) == 1:
            return cls(SynthesisKind.single, results)
        return cls(SynthesisKind.merged, results)


def batch_issues(issues: Sequence[GitHubIssue], size: int = BATCH_SIZE) -> list[list[GitHubIssue]]:
    """Split issues into contiguous batches of at most ``size``, preserving order."""
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [list(issues[i : i + size]) for i in range(0, len(issues), size)]


def build_issue_url_lookup(issues: Sequence[GitHubIssue]) -> Mapping[int, str]:
    """Read-only issue number -> URL mapping for one run. Later issues win on collisions."""
    return MappingProxyType({issue.number: issue.html_url for issue in issues})


class ThemeAnalyzer:
    """Runs the batch -> synthesis pipeline against a completion endpoint.

    Batches are analyzed one after another. A failed batch is logged and left
    out of synthesis; it is never retried. Progress lines go to ``progress``
    when given, otherwise to the debug log.
    """

    def __init__(
        self,
        client: LLMClient,
        parser: AnalysisParser | None = None,
        batch_size: int = BATCH_SIZE,
        progress: Callable[[str], None] | None = None,
    ) -> None:
        self._client = client
        self._parser = parser or AnalysisParser()
        self._batch_size = batch_size
        self._on_progress = progress

    def _progress(self, message: str) -> None:
        if self._on_progress is None:
            logger.debug("analysis_progress", message=message.strip())
            return
        self._on_progress(message)

    async def analyze_issues(self, issues: Sequence[GitHubIssue], focus_areas: Sequence[str]) -> Analysis:
        """Analyze all issues and return the synthesized Analysis.

        Raises:
            AnalysisError: if two or more batches succeeded but the merge call failed.
        """
        issue_urls = build_issue_url_lookup(issues)
        batch_results: list[str] = []

        start = 0
        for batch in batch_issues(issues, self._batch_size):
            end = start + len(batch)
            self._progress(f"  Analyzing batch {start + 1}-{end} of {len(issues)} issues...")
            try:
                batch_results.append(await self.analyze_batch(batch, focus_areas))
            except LLMClientError as exc:
                logger.warning("batch_analysis_failed", first=start + 1, last=end, error=str(exc))
            start = end

        self._progress("  Synthesizing themes across all batches...")
        return await self.synthesize(batch_results, issue_urls, len(issues), focus_areas)

    async def analyze_batch(self, batch: Sequence[GitHubIssue], focus_areas: Sequence[str]) -> str:
        system_prompt, user_prompt = build_batch_prompts(batch, focus_areas)
        return await self._client.complete(system_prompt, user_prompt, BATCH_MAX_TOKENS)

    async def synthesize(
        self,
        batch_results: Sequence[str],
        issue_urls: Mapping[int, str],
        issue_count: int,
        focus_areas: Sequence[str],
    ) -> Analysis:
        plan = SynthesisPlan.from_results(batch_results)
        logger.debug("synthesis_plan", kind=str(plan.kind), batches=len(plan.batch_results))

        if plan.kind is SynthesisKind.empty:
            return Analysis(raw_issue_count=issue_count)

        if plan.kind is SynthesisKind.single:
            return self._parser.parse(plan.batch_results[0], issue_urls, issue_count)

        system_prompt, user_prompt = build_synthesis_prompts(plan.batch_results, focus_areas)
        try:
            response = await self._client.complete(system_prompt, user_prompt, SYNTHESIS_MAX_TOKENS)
        except LLMClientError as exc:
            raise AnalysisError(f"synthesis failed: {exc}") from exc
        return self._parser.parse(response, issue_urls, issue_count)
