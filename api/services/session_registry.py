"""In-memory registry of live orchestrator sessions."""

from orchestrator.clients.base import DocumentStore, GenerationBackend, StreamingBackend
from orchestrator.config import Settings
from orchestrator.log import get_logger
from orchestrator.services import TaskOrchestrator
from orchestrator.types import WorkflowMode

logger = get_logger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when a session id is not registered."""

    pass


class SessionRegistry:
    """Creates orchestrators on demand and keeps them by session id."""

    def __init__(
        self,
        settings: Settings,
        streaming: StreamingBackend,
        generation: GenerationBackend,
        documents: DocumentStore | None = None,
    ) -> None:
        self.settings = settings
        self.streaming = streaming
        self.generation = generation
        self.documents = documents
        self._sessions: dict[str, TaskOrchestrator] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(
        self,
        workflow: WorkflowMode | None = None,
        document_ids: list[int] | None = None,
    ) -> TaskOrchestrator:
        """Start a new orchestrator session."""
        orchestrator = TaskOrchestrator(
            self.streaming,
            self.generation,
            self.settings,
            documents=self.documents,
        )
        if workflow is not None:
            orchestrator.set_workflow(workflow)
        if document_ids:
            orchestrator.carry_over_documents(document_ids)

        self._sessions[orchestrator.session_id] = orchestrator
        logger.info(f"Created session {orchestrator.session_id[:8]}")
        return orchestrator

    def get(self, session_id: str) -> TaskOrchestrator:
        """Look up a session.

        Raises:
            SessionNotFoundError: If the id is unknown
        """
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    async def remove(self, session_id: str) -> None:
        """Stop and forget a session."""
        orchestrator = self.get(session_id)
        await orchestrator.close()
        del self._sessions[session_id]
        logger.info(f"Removed session {session_id[:8]}")

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.remove(session_id)
