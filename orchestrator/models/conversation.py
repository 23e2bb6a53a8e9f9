"""Conversation session models."""

from datetime import datetime

from pydantic import BaseModel, Field

from orchestrator.models.generation import GenerationResult
from orchestrator.types import (
    IntakeState,
    MessageRole,
    NoticeLevel,
    PipelineStage,
    SessionMode,
    SessionStage,
)


class ConversationMessage(BaseModel):
    """Entry of the session message log."""

    role: MessageRole
    content: str


class Notification(BaseModel):
    """Transient notification shown to the user."""

    level: NoticeLevel
    message: str
    created_at: datetime = Field(default_factory=datetime.now)


class SessionSnapshot(BaseModel):
    """Read-only view of a session handed to the presentation layer."""

    session_id: str
    mode: SessionMode
    stage: SessionStage
    intake_state: IntakeState
    pipeline_stage: PipelineStage | None = None
    motion_type: str | None = None
    messages: list[ConversationMessage]
    streaming_text: str = ""
    active_tag: str | None = None
    active_result: GenerationResult | None = None
    results: dict[str, GenerationResult] = Field(default_factory=dict)
    change_notes: list[str] = Field(default_factory=list)
    progress: float = 0.0
    elapsed_seconds: int = 0
    busy: bool = False
    reference_document_ids: list[int] = Field(default_factory=list)
    pending_uploads: list[str] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
    detected_dates: list[str] = Field(default_factory=list)
