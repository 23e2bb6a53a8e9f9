"""Services package for the orchestrator."""

from .conversation_service import ConversationService
from .document_resolver import DocumentContextResolver
from .intake_dialogue import IntakeDialogue
from .pipeline_service import PipelineService
from .stream_reader import StreamHandle, StreamingResponseReader
from .task_orchestrator import TaskOrchestrator

__all__ = [
    "ConversationService",
    "DocumentContextResolver",
    "IntakeDialogue",
    "PipelineService",
    "StreamHandle",
    "StreamingResponseReader",
    "TaskOrchestrator",
]
