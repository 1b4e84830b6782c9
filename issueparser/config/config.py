from pathlib import Path
from typing import Literal

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    github_token: str | None = None
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30
    llm_endpoint: str = "http://qwen-14b-issueparser-service:8080"
    llm_model: str = "qwen-2.5-14b"
    llm_timeout_seconds: float = 300
    log_json: bool = False


settings = Settings()


class ConfigError(Exception):
    """Raised when a YAML run file cannot be read or does not validate."""


class RunConfig(BaseModel):
    """Per-run options that may be stored in a YAML file instead of passed as flags.

    Every field is optional; CLI flags win over file values.
    """

    model_config = ConfigDict(extra="forbid")

    repos: list[str] | None = None
    labels: list[str] | None = None
    keywords: list[str] | None = None
    max_issues: int | None = None
    state: Literal["open", "closed", "all"] | None = None
    llm_endpoint: str | None = None
    llm_model: str | None = None
    output: str | None = None


def load_run_config(path: str) -> RunConfig:
    try:
        with open(Path(path)) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read run config {path}: {exc}") from exc

    if data is None:
        return RunConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Run config {path} must be a mapping, got {type(data).__name__}")
    try:
        return RunConfig.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ConfigError(f"Invalid run config {path}: {exc}") from exc
