import pytest
import structlog

from issueparser.adapters.github_models import GitHubIssue
from issueparser.tests.factories import REPO


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_issue():
    def _factory(number: int, **overrides) -> GitHubIssue:
        fields = {
            "number": number,
            "title": f"Issue {number}",
            "body": f"Body of issue {number}",
            "state": "open",
            "labels": ["bug"],
            "comments": 1,
            "html_url": f"https://github.com/{REPO}/issues/{number}",
            "repo": REPO,
        }
        fields.update(overrides)
        return GitHubIssue(**fields)

    return _factory


@pytest.fixture
def make_issues(make_issue):
    def _factory(count: int, start: int = 1) -> list[GitHubIssue]:
        return [make_issue(n) for n in range(start, start + count)]

    return _factory
