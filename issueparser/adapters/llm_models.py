from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Base(BaseModel):
    """Shared config: silently ignore unknown fields from the completion API."""

    model_config = ConfigDict(extra="ignore")


class ChatMessage(_Base):
    role: Literal["system", "user", "assistant"]
    content: str | None = None


class ChatRequest(_Base):
    model: str
    messages: list[ChatMessage]
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    # llama.cpp extension; OpenAI-compatible servers ignore it.
    repeat_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None


class Choice(_Base):
    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class Usage(_Base):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(_Base):
    id: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None
