import json

import httpx
import pytest
import respx

from issueparser.adapters.llm_client import STOP_SEQUENCES, LLMClient, LLMClientError
from issueparser.adapters.llm_models import ChatMessage, ChatResponse
from issueparser.schemas.analysis import Analysis
from issueparser.services.theme_analyzer import ThemeAnalyzer

BASE_URL = "http://llm.test:8080"
COMPLETIONS = "/v1/chat/completions"


def completion(content: str | None = "hello") -> dict:
    return {
        "id": "cmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class TestComplete:
    async def test_returns_first_choice_text(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, json=completion("the themes"))
            async with LLMClient(BASE_URL, "qwen") as client:
                result = await client.complete("sys", "user", 1000)
        assert result == "the themes"

    async def test_sends_prompts_and_generation_policy(self):
        with respx.mock(base_url=BASE_URL) as mock:
            route = mock.post(COMPLETIONS).respond(200, json=completion())
            async with LLMClient(BASE_URL + "/", "qwen-2.5-14b") as client:
                await client.complete("be an analyst", "analyze this", 1500)

        body = json.loads(route.calls.last.request.content)
        assert body["model"] == "qwen-2.5-14b"
        assert body["messages"] == [
            {"role": "system", "content": "be an analyst"},
            {"role": "user", "content": "analyze this"},
        ]
        assert body["max_tokens"] == 1500
        assert body["temperature"] == 0.7
        assert body["top_p"] == 0.9
        assert body["repeat_penalty"] == 1.15
        assert body["presence_penalty"] == 0.1
        assert body["stop"] == STOP_SEQUENCES

    async def test_null_content_becomes_empty_string(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, json=completion(None))
            async with LLMClient(BASE_URL, "qwen") as client:
                assert await client.complete("s", "u", 10) == ""

    async def test_empty_choices_raise(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, json={"id": "x", "choices": []})
            async with LLMClient(BASE_URL, "qwen") as client:
                with pytest.raises(LLMClientError, match="no choices"):
                    await client.complete("s", "u", 10)

    async def test_non_200_raises_with_status(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(503, text="loading model")
            async with LLMClient(BASE_URL, "qwen") as client:
                with pytest.raises(LLMClientError) as exc_info:
                    await client.complete("s", "u", 10)
        assert exc_info.value.status_code == 503
        assert "loading model" in str(exc_info.value)

    async def test_transport_error_raises(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).mock(side_effect=httpx.ReadTimeout("slow"))
            async with LLMClient(BASE_URL, "qwen") as client:
                with pytest.raises(LLMClientError):
                    await client.complete("s", "u", 10)

    async def test_non_json_body_raises(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, text="<html>oops</html>")
            async with LLMClient(BASE_URL, "qwen") as client:
                with pytest.raises(LLMClientError, match="non-JSON"):
                    await client.complete("s", "u", 10)

    async def test_undecodable_bytes_raise_client_error(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, content=b'{"a": "\x80"}')
            async with LLMClient(BASE_URL, "qwen") as client:
                with pytest.raises(LLMClientError) as exc_info:
                    await client.complete("s", "u", 10)

        assert exc_info.value.status_code == 200

    async def test_undecodable_batch_is_skipped_by_analyzer(self, make_issues):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, content=b'{"a": "\x80"}')
            async with LLMClient(BASE_URL, "qwen") as client:
                analysis = await ThemeAnalyzer(client).analyze_issues(make_issues(3), ["scale"])

        assert analysis == Analysis(raw_issue_count=3)


class TestChat:
    async def test_parses_usage(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, json=completion())
            async with LLMClient(BASE_URL, "qwen") as client:
                response = await client.chat([ChatMessage(role="user", content="hi")], 50)
        assert isinstance(response, ChatResponse)
        assert response.usage is not None
        assert response.usage.total_tokens == 15

    async def test_schema_mismatch_raises(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post(COMPLETIONS).respond(200, json={"choices": [{"message": {"role": "robot"}}]})
            async with LLMClient(BASE_URL, "qwen") as client:
                with pytest.raises(LLMClientError, match="schema mismatch"):
                    await client.chat([ChatMessage(role="user", content="hi")], 50)


class TestHealthCheck:
    async def test_healthy(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/health").respond(200, json={"status": "ok"})
            async with LLMClient(BASE_URL, "qwen") as client:
                assert await client.health_check() is True

    async def test_unhealthy_status(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/health").respond(503)
            async with LLMClient(BASE_URL, "qwen") as client:
                assert await client.health_check() is False

    async def test_connection_error(self):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/health").mock(side_effect=httpx.ConnectError("refused"))
            async with LLMClient(BASE_URL, "qwen") as client:
                assert await client.health_check() is False
