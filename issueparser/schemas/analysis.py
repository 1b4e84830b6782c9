"""Pydantic schemas for theme analysis results.

Two families live here: the ``Raw*`` models mirror what the model is asked to
emit (both the per-batch and the synthesis shape, so every field is optional),
while ``Theme``, ``Quote`` and ``Analysis`` are the immutable results handed to
the report renderer.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Models emit `null` for fields they have nothing for; treat it as absent.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class RawTheme(_Raw):
    name: str = ""
    description: str = ""
    issue_numbers: list[int] = Field(default_factory=list)
    issue_count: int = 0
    severity: str = ""
    examples: list[str] = Field(default_factory=list)
    example_quotes: list[str] = Field(default_factory=list)


class RawQuote(_Raw):
    text: str = ""
    issue_number: int = 0


class RawAnalysis(_Raw):
    themes: list[RawTheme] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)
    notable_quotes: list[RawQuote] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)


class Theme(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    issue_count: int = 0
    # Free-form: only high/medium/low get special treatment in the report.
    severity: str = ""
    issue_urls: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    source: str | None = None
    issue_url: str | None = None


class Analysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    themes: tuple[Theme, ...] = ()
    key_insights: tuple[str, ...] = ()
    quotes: tuple[Quote, ...] = ()
    action_items: tuple[str, ...] = ()
    raw_issue_count: int = 0
