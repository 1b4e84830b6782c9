"""HTTP adapter for an OpenAI-compatible chat completions endpoint."""

import httpx
import pydantic
import structlog

from issueparser.adapters.llm_models import ChatMessage, ChatRequest, ChatResponse

logger = structlog.get_logger(__name__)

# Generation policy shared by every call.
TEMPERATURE = 0.7
TOP_P = 0.9
REPEAT_PENALTY = 1.15
PRESENCE_PENALTY = 0.1
STOP_SEQUENCES = ["```\n\n", "\n\n\n\n"]


class LLMClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMClient:
    def __init__(self, endpoint: str, model: str, timeout: float = 300.0) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._model = model
        # Generation is slow; the default timeout is measured in minutes.
        self._http = httpx.AsyncClient(base_url=self._endpoint, timeout=timeout)

    @property
    def model(self) -> str:
        return self._model

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()

    async def health_check(self) -> bool:
        try:
            resp = await self._http.get("/health")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def chat(self, messages: list[ChatMessage], max_tokens: int) -> ChatResponse:
        request = ChatRequest(
            model=self._model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=TEMPERATURE,
            top_p=TOP_P,
            repeat_penalty=REPEAT_PENALTY,
            presence_penalty=PRESENCE_PENALTY,
            stop=STOP_SEQUENCES,
        )
        try:
            resp = await self._http.post("/v1/chat/completions", json=request.model_dump(exclude_none=True))
        except httpx.HTTPError as exc:
            raise LLMClientError(f"LLM request failed: {exc}") from exc

        if resp.status_code != 200:
            raise LLMClientError(f"LLM API error {resp.status_code}: {resp.text}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMClientError(
                f"LLM returned non-JSON body (status {resp.status_code}): {exc}",
                status_code=resp.status_code,
            ) from exc
        try:
            return ChatResponse.model_validate(data)
        except pydantic.ValidationError as exc:
            raise LLMClientError(f"LLM response schema mismatch: {exc}", status_code=resp.status_code) from exc

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Send a system + user prompt pair and return the first choice's text.

        Raises:
            LLMClientError: on transport failure, non-200 status, an undecodable
                body, or a response without choices.
        """
        response = await self.chat(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_prompt),
            ],
            max_tokens,
        )
        if not response.choices:
            raise LLMClientError("no choices in response")
        if response.usage is not None:
            logger.debug(
                "llm_usage",
                model=self._model,
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )
        return response.choices[0].message.content or ""
