"""Request and response models for the session endpoints."""

from pydantic import BaseModel, Field

from orchestrator.types import WorkflowMode


class CreateSessionRequest(BaseModel):
    """Options for a new conversation session."""

    workflow: WorkflowMode | None = Field(
        None, description="Generation mode; defaults to the configured workflow"
    )
    document_ids: list[int] = Field(
        default_factory=list, description="Documents carried over as context"
    )


class TextRequest(BaseModel):
    """User text for a submit or feedback intent."""

    text: str = Field(..., min_length=1, description="Query, reply or feedback")


class SelectResultRequest(BaseModel):
    """Result to make active: a slot name or a provider id."""

    tag: str = Field(..., description="'initial', 'refined' or a provider id")


class ToggleDocumentRequest(BaseModel):
    document_id: int


class CancelResponse(BaseModel):
    cancelled: bool


class DeleteSessionResponse(BaseModel):
    session_id: str
    deleted: bool = True
