"""Intake dialogue models."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from orchestrator.exceptions import ProviderResponseError


class IntakeMessage(BaseModel):
    """Message in the sequence sent to the intake endpoint."""

    role: Literal["user", "assistant"]
    content: str


class IntakePayload(BaseModel):
    """Body of an intake call."""

    conversation: list[IntakeMessage]
    motion_type: str
    provider: str
    reference_document_ids: list[int] | None = None


class NeedsMoreInfo(BaseModel):
    """Intake wants another answer from the user."""

    ready: Literal[False] = False
    question: str


class IntakeReady(BaseModel):
    """Intake gathered enough structured information to generate."""

    ready: Literal[True] = True
    case_details: dict[str, str] = Field(default_factory=dict)
    case_description: str = ""
    motion_type: str


IntakeResult = NeedsMoreInfo | IntakeReady


def parse_intake_response(data: dict[str, Any]) -> IntakeResult:
    """Convert an intake endpoint response body into an IntakeResult.

    Raises:
        ProviderResponseError: If the body matches neither variant
    """
    if data.get("ready"):
        details = data.get("case_details") or {}
        return IntakeReady(
            case_details={k: str(v) for k, v in details.items() if v is not None},
            case_description=data.get("case_description") or "",
            motion_type=data.get("motion_type") or "",
        )

    question = data.get("question")
    if not question:
        raise ProviderResponseError(
            "Intake response has neither a question nor a ready payload",
            error_data=data,
        )
    return NeedsMoreInfo(question=question)
