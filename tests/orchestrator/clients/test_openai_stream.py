"""Tests for the direct OpenAI-compatible streaming backend."""

import json

import pytest
from pytest_httpserver import HTTPServer
from werkzeug.wrappers import Request, Response

from orchestrator.clients import OpenAIStreamingBackend
from orchestrator.exceptions import ProviderTransportError
from orchestrator.models import DoneEvent, GenerationRequest, TokenEvent


def chunk(content: str | None, finish: str | None = None) -> str:
    data = {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "delta": {"content": content} if content is not None else {},
                "finish_reason": finish,
            }
        ],
    }
    return f"data: {json.dumps(data)}\n\n"


@pytest.fixture
def backend(httpserver: HTTPServer) -> OpenAIStreamingBackend:
    return OpenAIStreamingBackend(
        api_key="test-api-key",
        base_url=httpserver.url_for("/v1"),
        timeout=10.0,
        model="gpt-4o-mini",
        max_retries=0,
    )


class TestOpenAIStreamingBackend:
    def test_model_for(self, backend):
        assert backend.model == "gpt-4o-mini"
        assert backend.model_for("gpt-4.1") == "gpt-4.1"
        assert backend.model_for("o3-mini") == "o3-mini"
        assert backend.model_for("gemini") == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_streams_tokens(self, backend, httpserver):
        def handler(request: Request) -> Response:
            body = json.loads(request.data)
            assert body["stream"] is True
            assert body["model"] == "gpt-4o-mini"
            assert body["max_tokens"] == 50
            assert body["messages"] == [{"role": "user", "content": "Say hi"}]
            stream = chunk("Hel") + chunk("lo") + chunk(None, "stop")
            stream += "data: [DONE]\n\n"
            return Response(stream, content_type="text/event-stream")

        httpserver.expect_request(
            "/v1/chat/completions", method="POST"
        ).respond_with_handler(handler)

        request = GenerationRequest(provider="gemini", prompt="Say hi", max_tokens=50)
        events = [e async for e in backend.stream_generation(request)]
        await backend.aclose()

        assert events == [
            TokenEvent(text="Hel"),
            TokenEvent(text="lo"),
            DoneEvent(full_text="Hello"),
        ]

    @pytest.mark.asyncio
    async def test_status_error(self, backend, httpserver):
        httpserver.expect_request(
            "/v1/chat/completions", method="POST"
        ).respond_with_json({"error": {"message": "overloaded"}}, status=500)

        request = GenerationRequest(provider="gpt-4o", prompt="Say hi", max_tokens=50)
        with pytest.raises(ProviderTransportError) as exc_info:
            async for _ in backend.stream_generation(request):
                pass
        await backend.aclose()

        assert exc_info.value.status_code == 500
