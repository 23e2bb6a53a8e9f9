"""API models package."""

from .requests import (
    CancelResponse,
    CreateSessionRequest,
    DeleteSessionResponse,
    SelectResultRequest,
    TextRequest,
    ToggleDocumentRequest,
)

__all__ = [
    "CancelResponse",
    "CreateSessionRequest",
    "DeleteSessionResponse",
    "SelectResultRequest",
    "TextRequest",
    "ToggleDocumentRequest",
]
