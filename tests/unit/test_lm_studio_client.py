# tests/unit/test_lm_studio_client.py
"""Unit tests for LMStudioClient."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from fitai_pipeline.llm.lm_studio import LMStudioClient

SCHEMA = {"title": "MealPlan", "type": "object"}
MESSAGES = [{"role": "user", "content": "plan"}]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_client(**kwargs):
    """Create LMStudioClient with openai patched out."""
    with patch("fitai_pipeline.llm.lm_studio.AsyncOpenAI"):
        client = LMStudioClient(**kwargs)
    client._client.chat.completions.create = AsyncMock()
    return client


def _make_completion(content='{"meals": []}', usage=True, finish_reason="stop"):
    """Build a mock openai ChatCompletion response."""
    choice = MagicMock()
    choice.message.content = content
    choice.finish_reason = finish_reason

    response = MagicMock()
    response.choices = [choice]
    response.model = "qwen2.5-14b"
    if usage:
        response.usage.prompt_tokens = 300
        response.usage.completion_tokens = 120
    else:
        response.usage = None
    return response


class _FakeAPIError(Exception):
    pass


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestInit:
    def test_missing_openai_package(self):
        with patch("fitai_pipeline.llm.lm_studio.AsyncOpenAI", None):
            with pytest.raises(ImportError, match="lm-studio"):
                LMStudioClient()


class TestGenerateStructured:
    @pytest.mark.asyncio
    async def test_json_schema_response_format(self):
        client = _make_client()
        client._client.chat.completions.create.return_value = _make_completion()

        response = await client.generate_structured(MESSAGES, SCHEMA)

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "MealPlan", "schema": SCHEMA},
        }
        assert kwargs["stream"] is False
        assert response.content == '{"meals": []}'
        assert response.model == "qwen2.5-14b"
        assert response.prompt_tokens == 300
        assert response.completion_tokens == 120

    @pytest.mark.asyncio
    async def test_missing_usage(self):
        client = _make_client()
        client._client.chat.completions.create.return_value = _make_completion(
            content=None, usage=False
        )

        response = await client.generate_structured(MESSAGES, SCHEMA)

        assert response.content == ""
        assert response.prompt_tokens is None
        assert response.total_tokens is None

    @pytest.mark.asyncio
    async def test_api_error_becomes_connection_error(self):
        client = _make_client()
        client._client.chat.completions.create.side_effect = _FakeAPIError("server exploded")

        with patch("fitai_pipeline.llm.lm_studio.APIError", _FakeAPIError):
            with pytest.raises(ConnectionError, match="LM Studio request failed"):
                await client.generate_structured(MESSAGES, SCHEMA)


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_reachable(self):
        client = _make_client(base_url="http://localhost:1234/v1")

        with patch("fitai_pipeline.llm.lm_studio.httpx.AsyncClient") as mock_http:
            http = mock_http.return_value.__aenter__.return_value
            http.get = AsyncMock(return_value=MagicMock(status_code=200))

            assert await client.health_check() is True
            http.get.assert_awaited_once_with("http://localhost:1234/v1/models")

    @pytest.mark.asyncio
    async def test_unreachable(self):
        client = _make_client()

        with patch("fitai_pipeline.llm.lm_studio.httpx.AsyncClient") as mock_http:
            http = mock_http.return_value.__aenter__.return_value
            http.get = AsyncMock(side_effect=httpx.ConnectError("refused"))

            assert await client.health_check() is False
