"""Free-form conversation path: streamed answer plus feedback rounds."""

from orchestrator.cancellation import CancellationToken
from orchestrator.clients.base import StreamingBackend
from orchestrator.config import Settings
from orchestrator.exceptions import GenerationFailedError
from orchestrator.log import get_logger
from orchestrator.models import DoneEvent, ErrorEvent, GenerationRequest, TokenEvent
from orchestrator.prompts import (
    build_context_prefix,
    detect_future_dates,
    feedback_prompt,
    jurisdiction_context,
    selected_documents_context,
    uploaded_documents_context,
)
from orchestrator.session import ConversationSession
from orchestrator.types import MessageRole, TaskDomain

from .document_resolver import DocumentContextResolver
from .stream_reader import StreamingResponseReader

logger = get_logger(__name__)


class ConversationService:
    """Streams free-form answers into a conversation session."""

    def __init__(self, backend: StreamingBackend, settings: Settings) -> None:
        self.backend = backend
        self.settings = settings

    def context_prefix(
        self, documents: DocumentContextResolver, detailed: bool = True
    ) -> str:
        """Jurisdiction and document hints prepended to a request.

        Args:
            documents: Resolver holding the uploaded and selected documents
            detailed: Whether the hints also tell the provider how to use them
        """
        parts = []
        if self.settings.domain == TaskDomain.LEGAL:
            parts.append(
                jurisdiction_context(
                    self.settings.jurisdiction_country,
                    self.settings.jurisdiction_region,
                )
            )
        parts.append(
            uploaded_documents_context(documents.uploaded_names(), analyze=detailed)
        )
        parts.append(
            selected_documents_context(documents.selected_names(), reference=detailed)
        )
        return build_context_prefix(parts)

    def build_prompt(self, query: str, documents: DocumentContextResolver) -> str:
        """Prefix the query with jurisdiction and document context."""
        return self.context_prefix(documents) + query

    async def answer(
        self,
        session: ConversationSession,
        query: str,
        documents: DocumentContextResolver,
        token: CancellationToken,
    ) -> str:
        """Stream the primary provider's answer to ``query``.

        Raises:
            GenerationFailedError: If the stream ended with an error
            OperationCancelledError: If the token fires
        """
        prompt = self.build_prompt(query, documents)
        return await self._stream(
            session,
            prompt,
            self.settings.primary_provider,
            MessageRole.ASSISTANT_PRIMARY,
            documents.resolve(),
            token,
        )

    async def revise(
        self,
        session: ConversationSession,
        feedback: str,
        documents: DocumentContextResolver,
        token: CancellationToken,
    ) -> str:
        """Stream the secondary provider's improved answer after feedback.

        The prompt carries the original query, the latest answer and the
        feedback, so any number of rounds can follow each other.
        """
        prompt = feedback_prompt(
            session.original_query, session.latest_response(), feedback
        )
        return await self._stream(
            session,
            prompt,
            self.settings.secondary_provider,
            MessageRole.ASSISTANT_SECONDARY,
            documents.resolve(),
            token,
        )

    async def _stream(
        self,
        session: ConversationSession,
        prompt: str,
        provider: str,
        role: MessageRole,
        document_ids: list[int],
        token: CancellationToken,
    ) -> str:
        request = GenerationRequest(
            provider=self.settings.resolve_provider(provider),
            prompt=prompt,
            max_tokens=self.settings.stream_max_tokens,
            reference_document_ids=tuple(document_ids),
        )
        reader = StreamingResponseReader(self.backend, request, token)
        logger.info(f"Streaming answer from {request.provider}")

        try:
            async for event in reader:
                if isinstance(event, TokenEvent):
                    session.set_streaming_text(reader.partial_text)
                elif isinstance(event, DoneEvent):
                    session.streaming_text = ""
                    session.append(role, event.full_text)
                    session.detected_dates = detect_future_dates(event.full_text)
                    return event.full_text
                elif isinstance(event, ErrorEvent):
                    raise GenerationFailedError(event.message)
        finally:
            if session.streaming_text:
                session.set_streaming_text("")

        # The reader stops silently once the token fires
        token.raise_if_cancelled()
        raise GenerationFailedError(f"{request.provider} ended without a response")
