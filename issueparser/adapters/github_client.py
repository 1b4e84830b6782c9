"""HTTP adapter for the GitHub REST API v3."""

from typing import Any

import httpx
import pydantic
import structlog

from issueparser.adapters.github_models import FetchOptions, GitHubIssue

logger = structlog.get_logger(__name__)

_PER_PAGE_MAX = 100


class GitHubClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubRateLimitError(GitHubClientError):
    def __init__(self, message: str, status_code: int | None = None, reset_at: str | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.reset_at = reset_at


class GitHubClient:
    _BASE_URL = "https://api.github.com"

    def __init__(self, token: str | None = None, base_url: str | None = None, timeout: float = 30.0) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            # GitHub rejects requests without a User-Agent.
            "User-Agent": "issueparser/1.0",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=(base_url or self._BASE_URL).rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()

    async def fetch_issues(self, owner: str, repo: str, options: FetchOptions) -> list[GitHubIssue]:
        """Fetch up to ``options.max_items`` issues from ``owner/repo``.

        Uses the search API when keywords are given (one query per keyword,
        deduplicated by issue number and repo), otherwise the issues list
        endpoint filtered by state and labels. Pull requests are excluded.

        Raises:
            GitHubClientError: when the very first page or query fails. Failures
                after that stop the fetch early and return what was collected.
        """
        if options.max_items <= 0:
            return []
        keywords = [k.strip() for k in options.keywords if k.strip()]
        if keywords:
            issues = await self._search_issues(owner, repo, keywords, options)
        else:
            issues = await self._list_issues(owner, repo, options)
        return issues[: options.max_items]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _list_issues(self, owner: str, repo: str, options: FetchOptions) -> list[GitHubIssue]:
        full_name = f"{owner}/{repo}"
        per_page = min(_PER_PAGE_MAX, options.max_items)
        labels = [label.strip() for label in options.labels if label.strip()]

        collected: list[GitHubIssue] = []
        page = 1
        while len(collected) < options.max_items:
            params: dict[str, Any] = {"page": page, "per_page": per_page, "state": options.state}
            if labels:
                params["labels"] = ",".join(labels)
            try:
                items = await self._get_json(f"/repos/{owner}/{repo}/issues", params)
            except GitHubClientError as exc:
                if page == 1:
                    raise
                logger.warning("issues_page_failed", repo=full_name, page=page, error=str(exc))
                break
            if not isinstance(items, list):
                raise GitHubClientError(f"Unexpected issues payload for {full_name}: {type(items).__name__}")
            if not items:
                break

            collected.extend(
                self._to_issue(item, full_name) for item in items if "pull_request" not in item
            )
            if len(items) < per_page:
                break
            page += 1

        return collected

    async def _search_issues(
        self, owner: str, repo: str, keywords: list[str], options: FetchOptions
    ) -> list[GitHubIssue]:
        full_name = f"{owner}/{repo}"
        collected: list[GitHubIssue] = []
        seen: set[tuple[int, str]] = set()
        first_call = True

        for keyword in keywords:
            query = self._build_search_query(keyword, full_name, options)
            page = 1
            while len(collected) < options.max_items:
                try:
                    result = await self._get_json(
                        "/search/issues", {"q": query, "page": page, "per_page": _PER_PAGE_MAX}
                    )
                except GitHubClientError as exc:
                    if first_call:
                        raise
                    logger.warning("search_page_failed", repo=full_name, keyword=keyword, page=page, error=str(exc))
                    break
                finally:
                    first_call = False

                items = result.get("items", []) if isinstance(result, dict) else []
                if not items:
                    break
                for item in items:
                    issue = self._to_issue(item, full_name)
                    key = (issue.number, issue.repo)
                    if key in seen:
                        continue
                    seen.add(key)
                    collected.append(issue)

                if len(items) < _PER_PAGE_MAX:
                    break
                page += 1

        return collected

    @staticmethod
    def _build_search_query(keyword: str, full_name: str, options: FetchOptions) -> str:
        parts = [keyword, f"repo:{full_name}", "is:issue"]
        if options.state != "all":
            parts.append(f"state:{options.state}")
        for label in options.labels:
            if label.strip():
                parts.append(f'label:"{label.strip()}"')
        return " ".join(parts)

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        try:
            resp = await self._http.get(path, params=params)
        except httpx.HTTPError as exc:
            raise GitHubClientError(f"GitHub request to {path} failed: {exc}") from exc
        self._raise_for_status(resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise GitHubClientError(
                f"GitHub returned non-JSON body (status {resp.status_code}): {exc}",
                status_code=resp.status_code,
            ) from exc

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.headers.get("X-RateLimit-Remaining") == "0":
            reset_at = resp.headers.get("X-RateLimit-Reset")
            raise GitHubRateLimitError(
                f"GitHub rate limit exhausted, resets at {reset_at}",
                status_code=resp.status_code,
                reset_at=reset_at,
            )
        if resp.status_code == 403:
            raise GitHubRateLimitError("GitHub API rate limited or forbidden", status_code=403)
        if resp.is_error:
            raise GitHubClientError(
                f"GitHub API error {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

    @staticmethod
    def _to_issue(data: dict[str, Any], full_name: str) -> GitHubIssue:
        try:
            return GitHubIssue.model_validate({**data, "repo": full_name})
        except pydantic.ValidationError as exc:
            raise GitHubClientError(f"GitHub issue schema mismatch: {exc}") from exc
