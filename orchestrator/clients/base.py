"""Base classes for the external collaborators of the orchestrator."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from orchestrator.models import (
    DocumentReference,
    GenerationPayload,
    GenerationRequest,
    GenerationResult,
    IntakePayload,
    IntakeResult,
    RefineOutcome,
    RefinePayload,
    StreamEvent,
    UploadFile,
)


class StreamingBackend(ABC):
    """Provider that streams a generated answer token by token."""

    @abstractmethod
    def stream_generation(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamEvent]:
        """Yield the provider's raw event feed for ``request``.

        Implementations may raise ProviderError subclasses for transport
        failures; closing the iterator must release the underlying connection.
        """
        pass


class GenerationBackend(ABC):
    """Single-shot generation, refinement and intake endpoints."""

    @abstractmethod
    async def generate(self, payload: GenerationPayload) -> dict[str, GenerationResult]:
        """Generate with every provider in ``payload.providers``.

        Returns:
            Mapping of provider id to its result
        """
        pass

    @abstractmethod
    async def refine(self, payload: RefinePayload) -> RefineOutcome:
        """Improve ``payload.original_motion`` with the refiner provider."""
        pass

    @abstractmethod
    async def intake(self, payload: IntakePayload) -> IntakeResult:
        """Ask the intake endpoint whether enough information was gathered."""
        pass


class DocumentStore(ABC):
    """Document listing and upload service."""

    @abstractmethod
    async def list_documents(self) -> list[DocumentReference]:
        """Return the authoritative document list."""
        pass

    @abstractmethod
    async def upload_document(self, file: UploadFile) -> DocumentReference:
        """Store ``file`` and return its canonical reference."""
        pass
