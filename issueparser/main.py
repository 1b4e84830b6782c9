"""Command-line entry point: fetch issues, extract themes, write a Markdown report."""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Sequence
from typing import Literal, TypeVar

import structlog
from pydantic import BaseModel, Field

from issueparser.adapters.github_client import GitHubClient, GitHubClientError
from issueparser.adapters.github_models import FetchOptions, GitHubIssue
from issueparser.adapters.llm_client import LLMClient
from issueparser.config.config import ConfigError, RunConfig, Settings, load_run_config, settings
from issueparser.schemas.analysis import Analysis
from issueparser.services.report_renderer import ReportOptions, ReportRenderer
from issueparser.services.theme_analyzer import AnalysisError, ThemeAnalyzer

logger = structlog.get_logger(__name__)

DEFAULT_REPOS = "ollama/ollama,vllm-project/vllm"
DEFAULT_KEYWORDS = "multi-gpu,scale,concurrency,production,performance"
DEFAULT_MAX_ISSUES = 100
DEFAULT_OUTPUT = "issue-analysis-report.md"
REPORT_TITLE = "GitHub Issue Theme Analysis"
SUMMARY_THEME_LIMIT = 5

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

T = TypeVar("T")


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


class RunOptions(BaseModel):
    """Fully resolved options for one run: flags > run file > defaults."""

    repos: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    max_issues: int = DEFAULT_MAX_ISSUES
    state: Literal["open", "closed", "all"] = "all"
    llm_endpoint: str = settings.llm_endpoint
    llm_model: str = settings.llm_model
    output: str = DEFAULT_OUTPUT
    check_llm: bool = False
    verbose: bool = False


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated flag value, dropping blank entries."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_repo(spec: str) -> tuple[str, str] | None:
    """Parse ``owner/repo``. Returns None for anything else."""
    parts = spec.strip().split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="issueparser",
        description="Extract recurring themes from GitHub issues with an LLM and write a Markdown report.",
    )
    parser.add_argument(
        "--repos",
        help=f"Comma-separated list of repos (owner/repo). Default: {DEFAULT_REPOS}",
    )
    parser.add_argument("--labels", help="Filter by labels (comma-separated)")
    parser.add_argument("--keywords", help=f"Keywords to search for in issues. Default: {DEFAULT_KEYWORDS}")
    parser.add_argument("--max-issues", type=int, help=f"Maximum issues to fetch per repo. Default: {DEFAULT_MAX_ISSUES}")
    parser.add_argument("--state", choices=["open", "closed", "all"], help="Issue state filter. Default: all")
    parser.add_argument("--llm-endpoint", help="Base URL of the chat completions service")
    parser.add_argument("--llm-model", help="Model name for API calls")
    parser.add_argument("--output", help=f"Output file for the report. Default: {DEFAULT_OUTPUT}")
    parser.add_argument("--config", help="YAML file with run options; explicit flags take precedence")
    parser.add_argument("--check-llm", action="store_true", help="Probe the LLM endpoint health before analyzing")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser


def resolve_options(args: argparse.Namespace, run_config: RunConfig, config: Settings = settings) -> RunOptions:
    def pick(flag: T | None, from_file: T | None, default: T) -> T:
        if flag is not None:
            return flag
        if from_file is not None:
            return from_file
        return default

    return RunOptions(
        repos=split_csv(args.repos) if args.repos is not None else (run_config.repos or split_csv(DEFAULT_REPOS)),
        labels=split_csv(args.labels) if args.labels is not None else (run_config.labels or []),
        keywords=(
            split_csv(args.keywords)
            if args.keywords is not None
            else (run_config.keywords if run_config.keywords is not None else split_csv(DEFAULT_KEYWORDS))
        ),
        max_issues=pick(args.max_issues, run_config.max_issues, DEFAULT_MAX_ISSUES),
        state=pick(args.state, run_config.state, "all"),
        llm_endpoint=pick(args.llm_endpoint, run_config.llm_endpoint, config.llm_endpoint),
        llm_model=pick(args.llm_model, run_config.llm_model, config.llm_model),
        output=pick(args.output, run_config.output, DEFAULT_OUTPUT),
        check_llm=args.check_llm,
        verbose=args.verbose,
    )


async def fetch_all_issues(
    client: GitHubClient, repos: Sequence[str], fetch_options: FetchOptions
) -> tuple[list[GitHubIssue], list[str]]:
    """Fetch issues from every well-formed repo, one repo at a time.

    Returns the flattened issue list and the repos that were actually queried.
    Malformed specs and repos whose fetch fails are reported and skipped.
    """
    all_issues: list[GitHubIssue] = []
    queried: list[str] = []
    for spec in repos:
        parsed = parse_repo(spec)
        if parsed is None:
            print(f"Invalid repo format: {spec} (expected owner/repo)", file=sys.stderr)
            continue
        owner, name = parsed
        queried.append(f"{owner}/{name}")

        print(f"Fetching issues from {owner}/{name}...")
        try:
            issues = await client.fetch_issues(owner, name, fetch_options)
        except GitHubClientError as exc:
            print(f"Error fetching issues from {owner}/{name}: {exc}", file=sys.stderr)
            continue

        print(f"  Found {len(issues)} relevant issues")
        all_issues.extend(issues)
    return all_issues, queried


def print_summary(analysis: Analysis, output: str) -> None:
    print("\n=== Analysis Complete ===")
    print(f"Report saved to: {output}")
    print(f"Themes identified: {len(analysis.themes)}")
    print("\n--- Quick Summary ---")
    for i, theme in enumerate(analysis.themes, start=1):
        if i > SUMMARY_THEME_LIMIT:
            print(f"  ... and {len(analysis.themes) - SUMMARY_THEME_LIMIT} more themes")
            break
        print(f"  {i}. {theme.name} ({theme.issue_count} issues)")


async def run(
    options: RunOptions,
    github_client: GitHubClient | None = None,
    llm_client: LLMClient | None = None,
    config: Settings = settings,
) -> int:
    """Execute one analysis run and return the process exit code."""
    logger.debug("run_options", **options.model_dump())
    if not config.github_token:
        print("Warning: GITHUB_TOKEN not set, API rate limits will be restrictive", file=sys.stderr)

    github_client = github_client or GitHubClient(
        token=config.github_token,
        base_url=config.github_api_url,
        timeout=config.github_timeout_seconds,
    )
    llm_client = llm_client or LLMClient(
        endpoint=options.llm_endpoint,
        model=options.llm_model,
        timeout=config.llm_timeout_seconds,
    )

    async with github_client, llm_client:
        print("=== IssueParser: GitHub Issue Theme Analyzer ===")
        print(f"Repos: {', '.join(options.repos)}")
        print(f"Keywords: {', '.join(options.keywords)}")
        print(f"LLM Endpoint: {options.llm_endpoint}")
        print()

        if options.check_llm and not await llm_client.health_check():
            print(f"Warning: LLM endpoint {options.llm_endpoint} did not report healthy", file=sys.stderr)

        fetch_options = FetchOptions(
            labels=options.labels,
            keywords=options.keywords,
            max_items=options.max_issues,
            state=options.state,
        )
        issues, queried = await fetch_all_issues(github_client, options.repos, fetch_options)
        if not issues:
            print("No issues found matching criteria")
            return EXIT_OK

        print(f"\nTotal issues to analyze: {len(issues)}")
        print("\nAnalyzing issues with LLM (this may take a while)...")
        try:
            analysis = await ThemeAnalyzer(llm_client, progress=print).analyze_issues(issues, options.keywords)
        except AnalysisError as exc:
            print(f"Error analyzing issues: {exc}", file=sys.stderr)
            return EXIT_FAILURE

    print(f"\nGenerating report to {options.output}...")
    renderer = ReportRenderer()
    report = renderer.render(
        analysis,
        ReportOptions(
            title=REPORT_TITLE,
            repos=queried,
            keywords=options.keywords,
            issue_count=len(issues),
            model=llm_client.model,
        ),
    )
    try:
        renderer.write(options.output, report)
    except OSError as exc:
        print(f"Error writing report: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    print_summary(analysis, options.output)
    return EXIT_OK


async def _run_cancellable(options: RunOptions) -> int:
    """Run with SIGINT/SIGTERM wired to cancel the whole pipeline."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform's event loop.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, task.cancel)
            installed.append(sig)
    try:
        return await run(options)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def cli(argv: Sequence[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, json_logs=settings.log_json)

    try:
        run_config = load_run_config(args.config) if args.config else RunConfig()
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    options = resolve_options(args, run_config)
    try:
        return asyncio.run(_run_cancellable(options))
    except (asyncio.CancelledError, KeyboardInterrupt):
        print("\nCancelled; no report written.", file=sys.stderr)
        return EXIT_CANCELLED


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
