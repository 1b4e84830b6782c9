"""Pydantic models for the GitHub API adapter."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GitHubIssue(BaseModel):
    """An issue as returned by the issues list or search endpoints.

    ``repo`` is not part of the GitHub payload; the client stamps it with the
    ``owner/repo`` the issue was fetched from.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    number: int
    title: str
    body: str | None = None
    state: str = "open"
    labels: tuple[str, ...] = ()
    comments: int = 0
    html_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    repo: str = ""

    @field_validator("labels", mode="before")
    @classmethod
    def _label_names(cls, value: Any) -> Any:
        # The API returns label objects; tests and callers may pass plain names.
        if isinstance(value, list | tuple):
            return tuple(label["name"] if isinstance(label, dict) else label for label in value)
        return value


class FetchOptions(BaseModel):
    labels: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    max_items: int = 100
    state: Literal["open", "closed", "all"] = "all"
