"""Models package for the orchestrator."""

from orchestrator.models.conversation import (
    ConversationMessage,
    Notification,
    SessionSnapshot,
)
from orchestrator.models.documents import DocumentReference, PendingUpload, UploadFile
from orchestrator.models.events import (
    DoneEvent,
    ErrorEvent,
    StreamEvent,
    TokenEvent,
    is_terminal,
    stream_event_adapter,
)
from orchestrator.models.generation import (
    CaseLawEntry,
    GenerationPayload,
    GenerationRequest,
    GenerationResult,
    MotionDocument,
    RefineOutcome,
    RefinePayload,
)
from orchestrator.models.intake import (
    IntakeMessage,
    IntakePayload,
    IntakeReady,
    IntakeResult,
    NeedsMoreInfo,
    parse_intake_response,
)
from orchestrator.models.pipeline import PipelineRun, ResultHolder

__all__ = [
    "CaseLawEntry",
    "ConversationMessage",
    "DocumentReference",
    "DoneEvent",
    "ErrorEvent",
    "GenerationPayload",
    "GenerationRequest",
    "GenerationResult",
    "IntakeMessage",
    "IntakePayload",
    "IntakeReady",
    "IntakeResult",
    "MotionDocument",
    "NeedsMoreInfo",
    "Notification",
    "PendingUpload",
    "PipelineRun",
    "RefineOutcome",
    "RefinePayload",
    "ResultHolder",
    "SessionSnapshot",
    "StreamEvent",
    "TokenEvent",
    "UploadFile",
    "is_terminal",
    "parse_intake_response",
    "stream_event_adapter",
]
