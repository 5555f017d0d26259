"""Tests for the Gemini client, using httpx.MockTransport."""

import json

import httpx
import pytest

from probableplay.config import Settings
from probableplay.errors import UpstreamUnavailable
from probableplay.llm.gemini_client import GeminiClient
from probableplay.models import Source


def _gemini_body(parts, chunks=None, finish_reason="STOP"):
    candidate = {"content": {"parts": [{"text": p} for p in parts]}, "finishReason": finish_reason}
    if chunks is not None:
        candidate["groundingMetadata"] = {"groundingChunks": chunks}
    return {
        "candidates": [candidate],
        "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 34},
        "modelVersion": "gemini-test-001",
    }


def _client(settings, handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient(settings=settings, http_client=http_client)


class TestGenerate:
    """Raw generate() results."""

    @pytest.mark.asyncio
    async def test_request_shape(self, settings):
        """Model, key, grounding tool, temperature and system instruction."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body(["{}"]))

        client = _client(settings, handler)
        result = await client.generate("prompt text", system_instruction="be precise", temperature=0.1)

        assert result.status == "COMPLETED"
        assert seen["url"].startswith("https://gemini.test/v1beta/models/gemini-test:generateContent")
        assert "key=test-key" in seen["url"]
        body = seen["body"]
        assert body["contents"][0]["parts"][0]["text"] == "prompt text"
        assert body["systemInstruction"]["parts"][0]["text"] == "be precise"
        assert body["generationConfig"]["temperature"] == 0.1
        assert body["tools"] == [{"google_search": {}}]

    @pytest.mark.asyncio
    async def test_grounding_disabled(self):
        settings = Settings(GEMINI_API_KEY="k", LLM_SEARCH_GROUNDING=False)
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body(["{}"]))

        await _client(settings, handler).generate("p")
        assert "tools" not in seen["body"]
        assert "temperature" not in seen["body"]["generationConfig"]

    @pytest.mark.asyncio
    async def test_not_configured(self):
        """No key: no request, NOT_CONFIGURED status."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_gemini_body(["{}"]))

        client = _client(Settings(GEMINI_API_KEY=""), handler)
        result = await client.generate("p")
        assert result.status == "NOT_CONFIGURED"
        assert calls == []
        assert client.is_configured is False

    @pytest.mark.asyncio
    async def test_http_error(self, settings):
        client = _client(settings, lambda request: httpx.Response(503, text="overloaded"))
        result = await client.generate("p")
        assert result.status == "ERROR"
        assert "503" in result.error

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = await _client(settings, handler).generate("p")
        assert result.status == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_usage_and_parts(self, settings):
        """Split text parts are joined; usage metadata is read."""
        body = _gemini_body(['{"a":', " 1}"])
        result = await _client(settings, lambda request: httpx.Response(200, json=body)).generate("p")
        assert result.text == '{"a": 1}'
        assert (result.tokens_in, result.tokens_out) == (12, 34)
        assert result.model_version == "gemini-test-001"


class TestQuery:
    """Model Query seam."""

    @pytest.mark.asyncio
    async def test_returns_text_and_sources(self, settings):
        chunks = [
            {"web": {"uri": "https://bbc.co.uk/sport/1", "title": "BBC Sport"}},
            {"web": {"uri": "https://example.com/no-title"}},
            {"retrievedContext": {"uri": "ignored"}},
        ]
        body = _gemini_body(['{"summary": "ok"}'], chunks=chunks)
        client = _client(settings, lambda request: httpx.Response(200, json=body))

        response = await client.query("subject", instructions="sys", temperature=0.7)
        assert response.text == '{"summary": "ok"}'
        assert response.sources == (Source(title="BBC Sport", uri="https://bbc.co.uk/sport/1"),)

    @pytest.mark.asyncio
    async def test_failure_raises_with_status(self, settings):
        def handler(request):
            raise httpx.ConnectTimeout("down", request=request)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await _client(settings, handler).query("subject")
        assert exc_info.value.status == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_not_configured_raises(self):
        client = _client(Settings(GEMINI_API_KEY=""), lambda request: httpx.Response(200))
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await client.query("subject")
        assert exc_info.value.status == "NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_empty_answer_raises(self, settings):
        client = _client(settings, lambda request: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(UpstreamUnavailable):
            await client.query("subject")

    @pytest.mark.asyncio
    async def test_close(self, settings):
        client = _client(settings, lambda request: httpx.Response(200, json=_gemini_body(["x"])))
        await client.query("subject")
        await client.close()
        assert client._client is None
