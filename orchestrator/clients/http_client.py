"""HTTP client for the product REST API (generation, intake, documents)."""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import ValidationError

from orchestrator.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
)
from orchestrator.exceptions import (
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
    UploadError,
)
from orchestrator.log import get_logger
from orchestrator.models import (
    DocumentReference,
    DoneEvent,
    ErrorEvent,
    GenerationPayload,
    GenerationRequest,
    GenerationResult,
    IntakePayload,
    IntakeResult,
    RefineOutcome,
    RefinePayload,
    StreamEvent,
    TokenEvent,
    UploadFile,
    is_terminal,
    parse_intake_response,
    stream_event_adapter,
)

from .base import DocumentStore, GenerationBackend, StreamingBackend

logger = get_logger(__name__)

STREAM_PATH = "/ai-tools/generate_stream/"
GENERATE_PATH = "/ai-tools/generate_motion/"
REFINE_PATH = "/ai-tools/refine_draft/"
INTAKE_PATH = "/ai-tools/motion_intake/"
DOCUMENTS_PATH = "/data-sources/"


class LernApiClient(StreamingBackend, GenerationBackend, DocumentStore):
    """Async client for the product REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        api_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: Base URL of the REST API (e.g. http://host:8000/api)
            api_token: Optional bearer token
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_token = api_token
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "LernApiClient":
        """Async context manager entry."""
        _ = self.client
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        """Underlying httpx client, created on first use."""
        if self._client is None:
            headers = {"User-Agent": DEFAULT_USER_AGENT}
            if self._api_token:
                headers["Authorization"] = f"Bearer {self._api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers=headers,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def stream_generation(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamEvent]:
        """Stream a free-form answer as server-sent events."""
        body: dict[str, Any] = {
            "prompt": request.prompt,
            "provider": request.provider,
            "max_tokens": request.max_tokens,
        }
        if request.reference_document_ids:
            body["reference_document_ids"] = list(request.reference_document_ids)

        logger.debug(f"POST {STREAM_PATH} provider={request.provider}")
        try:
            async with self.client.stream("POST", STREAM_PATH, json=body) as response:
                if response.is_error:
                    await response.aread()
                    raise ProviderTransportError(
                        f"HTTP {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    event = parse_stream_line(line)
                    if event is None:
                        continue
                    yield event
                    if is_terminal(event):
                        return
        except httpx.TimeoutException:
            logger.error(f"Timeout streaming from {request.provider}")
            raise ProviderTimeoutError(f"{request.provider} timed out")
        except httpx.RequestError as e:
            logger.error(f"Request error streaming from {request.provider}: {e}")
            raise ProviderTransportError(f"Request failed: {e}")

    async def generate(self, payload: GenerationPayload) -> dict[str, GenerationResult]:
        """Generate a motion with each requested provider."""
        data = await self._request(
            "POST",
            GENERATE_PATH,
            json=payload.model_dump(mode="json", exclude_none=True),
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, dict):
            raise ProviderResponseError(
                "Generation response has no results", error_data=data
            )

        parsed: dict[str, GenerationResult] = {}
        for provider, raw in results.items():
            if not isinstance(raw, dict):
                continue
            try:
                result = GenerationResult.model_validate({"provider": provider, **raw})
            except ValidationError as e:
                raise ProviderResponseError(f"Invalid result from {provider}: {e}")
            parsed[provider] = result
        return parsed

    async def refine(self, payload: RefinePayload) -> RefineOutcome:
        """Refine an existing result with the refiner provider."""
        data = await self._request(
            "POST", REFINE_PATH, json=payload.model_dump(mode="json", exclude_none=True)
        )
        try:
            return RefineOutcome.model_validate(data)
        except ValidationError as e:
            raise ProviderResponseError(f"Invalid refine response: {e}")

    async def intake(self, payload: IntakePayload) -> IntakeResult:
        """Send the intake conversation and parse the verdict."""
        data = await self._request(
            "POST", INTAKE_PATH, json=payload.model_dump(mode="json", exclude_none=True)
        )
        if not isinstance(data, dict):
            raise ProviderResponseError("Intake response is not an object")
        return parse_intake_response(data)

    async def list_documents(self) -> list[DocumentReference]:
        """List stored documents."""
        data = await self._request("GET", DOCUMENTS_PATH)
        items = data if isinstance(data, list) else (data or {}).get("results") or []
        return [
            DocumentReference(
                id=item["id"], name=item["name"], type=item.get("type") or "file"
            )
            for item in items
        ]

    async def upload_document(self, file: UploadFile) -> DocumentReference:
        """Upload a file as a new document."""
        form = {"name": file.name, "type": file.type_tag}
        if file.description:
            form["description"] = file.description

        try:
            data = await self._request(
                "POST",
                DOCUMENTS_PATH,
                data=form,
                files={"file": (file.name, file.content)},
            )
            return DocumentReference(
                id=data["id"],
                name=data.get("name", file.name),
                type=data.get("type") or file.type_tag,
            )
        except (ProviderError, KeyError, TypeError) as e:
            raise UploadError(file.name, str(e))

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            ProviderTransportError: On HTTP or connection errors
            ProviderTimeoutError: On timeouts
            ProviderResponseError: If the body is not JSON
        """
        logger.debug(f"{method} {path}")
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error on {method} {path}: {e}")
            raise ProviderTransportError(
                f"HTTP {e.response.status_code}: {e.response.text}",
                status_code=e.response.status_code,
            )
        except httpx.TimeoutException:
            logger.error(f"Timeout on {method} {path}")
            raise ProviderTimeoutError(f"Timeout on {path}")
        except httpx.RequestError as e:
            logger.error(f"Request error on {method} {path}: {e}")
            raise ProviderTransportError(f"Request failed: {e}")

        try:
            return response.json()
        except json.JSONDecodeError:
            raise ProviderResponseError(f"Non-JSON response from {path}")


def parse_stream_line(line: str) -> StreamEvent | None:
    """Parse one server-sent event line.

    Accepts type-tagged events (``{"type": "token", "text": ...}``) and the
    short form ``{"token": ...}`` / ``{"done": true, "full_text": ...}`` /
    ``{"error": ...}``. Blank lines, comments and ``[DONE]`` yield None.

    Raises:
        ProviderResponseError: If the payload is not valid JSON
    """
    line = line.strip()
    if not line or line.startswith(":"):
        return None
    if not line.startswith("data:"):
        return None

    payload = line[len("data:"):].strip()
    if not payload or payload == "[DONE]":
        return None

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        raise ProviderResponseError(f"Malformed stream payload: {payload[:80]}")

    if not isinstance(data, dict):
        raise ProviderResponseError(f"Unexpected stream payload: {payload[:80]}")
    if "type" in data:
        try:
            return stream_event_adapter.validate_python(data)
        except ValidationError as e:
            raise ProviderResponseError(f"Invalid stream event: {e}")
    if "error" in data:
        return ErrorEvent(message=str(data["error"]))
    if "token" in data:
        return TokenEvent(text=str(data["token"]))
    if data.get("done"):
        return DoneEvent(full_text=str(data.get("full_text") or data.get("text") or ""))
    return None
