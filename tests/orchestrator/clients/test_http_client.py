"""Tests for the REST API client."""

import json

import pytest
from pytest_httpserver import HTTPServer
from werkzeug.wrappers import Request, Response

from orchestrator.clients import LernApiClient, parse_stream_line
from orchestrator.exceptions import (
    ProviderResponseError,
    ProviderTransportError,
    UploadError,
)
from orchestrator.models import (
    DocumentReference,
    DoneEvent,
    ErrorEvent,
    GenerationPayload,
    GenerationRequest,
    IntakeMessage,
    IntakePayload,
    IntakeReady,
    NeedsMoreInfo,
    RefinePayload,
    TokenEvent,
    UploadFile,
)

from tests.utils.fakes import make_result


@pytest.fixture
def client(httpserver: HTTPServer) -> LernApiClient:
    return LernApiClient(base_url=httpserver.url_for("/api"), api_token="secret")


def sse(*payloads: dict | str) -> str:
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    return "".join(lines)


class TestParseStreamLine:
    """Test server-sent event line parsing."""

    def test_typed_events(self):
        assert parse_stream_line('data: {"type": "token", "text": "Hi"}') == TokenEvent(
            text="Hi"
        )
        assert parse_stream_line(
            'data: {"type": "done", "full_text": "Hi"}'
        ) == DoneEvent(full_text="Hi")
        assert parse_stream_line(
            'data: {"type": "error", "message": "quota"}'
        ) == ErrorEvent(message="quota")

    def test_short_forms(self):
        assert parse_stream_line('data: {"token": "a"}') == TokenEvent(text="a")
        assert parse_stream_line(
            'data: {"done": true, "full_text": "abc"}'
        ) == DoneEvent(full_text="abc")
        assert parse_stream_line('data: {"error": "boom"}') == ErrorEvent(
            message="boom"
        )

    @pytest.mark.parametrize(
        "line", ["", ": keep-alive", "event: message", "data: [DONE]", "data:"]
    )
    def test_ignored_lines(self, line):
        assert parse_stream_line(line) is None

    def test_malformed_payload(self):
        with pytest.raises(ProviderResponseError):
            parse_stream_line("data: {not json")

    def test_invalid_typed_event(self):
        with pytest.raises(ProviderResponseError):
            parse_stream_line('data: {"type": "token"}')


class TestStreaming:
    """Test the streamed generation endpoint."""

    @pytest.mark.asyncio
    async def test_stream_generation(self, client, httpserver):
        def handler(request: Request) -> Response:
            body = json.loads(request.data)
            assert body["provider"] == "gemini"
            assert body["reference_document_ids"] == [3]
            assert request.headers["Authorization"] == "Bearer secret"
            return Response(
                sse({"token": "Sec"}, {"token": "tion 8"}, {"done": True}),
                content_type="text/event-stream",
            )

        httpserver.expect_request(
            "/api/ai-tools/generate_stream/", method="POST"
        ).respond_with_handler(handler)

        request = GenerationRequest(
            provider="gemini",
            prompt="What is s.8?",
            max_tokens=100,
            reference_document_ids=(3,),
        )
        async with client:
            events = [e async for e in client.stream_generation(request)]

        assert events == [
            TokenEvent(text="Sec"),
            TokenEvent(text="tion 8"),
            DoneEvent(full_text=""),
        ]

    @pytest.mark.asyncio
    async def test_stream_http_error(self, client, httpserver):
        httpserver.expect_request(
            "/api/ai-tools/generate_stream/", method="POST"
        ).respond_with_data("overloaded", status=503)

        request = GenerationRequest(provider="gemini", prompt="q", max_tokens=10)
        with pytest.raises(ProviderTransportError) as exc_info:
            async with client:
                async for _ in client.stream_generation(request):
                    pass

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client = LernApiClient(base_url="http://127.0.0.1:1/api", timeout=2.0)
        request = GenerationRequest(provider="gemini", prompt="q", max_tokens=10)

        with pytest.raises(ProviderTransportError):
            async for _ in client.stream_generation(request):
                pass
        await client.aclose()


class TestEndpoints:
    """Test the JSON endpoints."""

    @pytest.mark.asyncio
    async def test_generate(self, client, httpserver):
        result = make_result("claude").model_dump(mode="json", exclude={"provider"})
        httpserver.expect_request(
            "/api/ai-tools/generate_motion/", method="POST"
        ).respond_with_json({"results": {"claude": result}})

        payload = GenerationPayload(
            motion_type="charter_s8", case_description="x", providers=["claude"]
        )
        async with client:
            results = await client.generate(payload)

        assert results["claude"].provider == "claude"
        assert results["claude"].motion.title == "NOTICE OF APPLICATION"

    @pytest.mark.asyncio
    async def test_generate_without_results(self, client, httpserver):
        httpserver.expect_request(
            "/api/ai-tools/generate_motion/", method="POST"
        ).respond_with_json({"detail": "nope"})

        payload = GenerationPayload(
            motion_type="charter_s8", case_description="x", providers=["claude"]
        )
        with pytest.raises(ProviderResponseError):
            async with client:
                await client.generate(payload)

    @pytest.mark.asyncio
    async def test_refine(self, client, httpserver):
        refined = make_result("gemini", title="REFINED").model_dump(mode="json")
        httpserver.expect_request(
            "/api/ai-tools/refine_draft/", method="POST"
        ).respond_with_json(
            {
                "success": True,
                "refined_result": refined,
                "improvements_made": ["Added R v Grant"],
            }
        )

        payload = RefinePayload(
            motion_type="charter_s8",
            case_description="x",
            original_motion=make_result(),
            refiner_provider="gemini",
        )
        async with client:
            outcome = await client.refine(payload)

        assert outcome.success
        assert outcome.refined_result.motion.title == "REFINED"
        assert outcome.change_notes == ["Added R v Grant"]

    @pytest.mark.asyncio
    async def test_intake(self, client, httpserver):
        httpserver.expect_oneshot_request(
            "/api/ai-tools/motion_intake/", method="POST"
        ).respond_with_json({"ready": False, "question": "Client name?"})
        httpserver.expect_oneshot_request(
            "/api/ai-tools/motion_intake/", method="POST"
        ).respond_with_json(
            {
                "ready": True,
                "case_details": {"client_name": "J. Doe", "court_file_no": None},
                "case_description": "Vehicle search",
                "motion_type": "charter_s8",
            }
        )

        payload = IntakePayload(
            conversation=[IntakeMessage(role="user", content="Draft a motion")],
            motion_type="charter_s8",
            provider="gemini",
        )
        async with client:
            first = await client.intake(payload)
            second = await client.intake(payload)

        assert first == NeedsMoreInfo(question="Client name?")
        assert isinstance(second, IntakeReady)
        assert second.case_details == {"client_name": "J. Doe"}

    @pytest.mark.asyncio
    async def test_intake_without_question(self, client, httpserver):
        httpserver.expect_request(
            "/api/ai-tools/motion_intake/", method="POST"
        ).respond_with_json({"ready": False})

        payload = IntakePayload(
            conversation=[], motion_type="charter_s8", provider="gemini"
        )
        with pytest.raises(ProviderResponseError):
            async with client:
                await client.intake(payload)

    @pytest.mark.asyncio
    async def test_non_json_response(self, client, httpserver):
        httpserver.expect_request("/api/data-sources/").respond_with_data("<html>")

        with pytest.raises(ProviderResponseError):
            async with client:
                await client.list_documents()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            [{"id": 1, "name": "a.pdf", "type": "pdf"}],
            {"results": [{"id": 1, "name": "a.pdf", "type": "pdf"}]},
        ],
    )
    async def test_list_documents(self, client, httpserver, body):
        httpserver.expect_request("/api/data-sources/").respond_with_json(body)

        async with client:
            documents = await client.list_documents()

        assert documents == [DocumentReference(id=1, name="a.pdf", type="pdf")]

    @pytest.mark.asyncio
    async def test_upload_document(self, client, httpserver):
        def handler(request: Request) -> Response:
            assert request.form["name"] == "brief.pdf"
            assert request.form["type"] == "pdf"
            assert request.files["file"].read() == b"%PDF"
            return Response(
                json.dumps({"id": 12, "name": "brief.pdf"}),
                content_type="application/json",
            )

        httpserver.expect_request(
            "/api/data-sources/", method="POST"
        ).respond_with_handler(handler)

        async with client:
            reference = await client.upload_document(
                UploadFile(name="brief.pdf", content=b"%PDF")
            )

        assert reference == DocumentReference(id=12, name="brief.pdf", type="pdf")

    @pytest.mark.asyncio
    async def test_upload_failure(self, client, httpserver):
        httpserver.expect_request(
            "/api/data-sources/", method="POST"
        ).respond_with_data("too large", status=413)

        with pytest.raises(UploadError) as exc_info:
            async with client:
                await client.upload_document(UploadFile(name="big.pdf", content=b"x"))

        assert exc_info.value.filename == "big.pdf"
