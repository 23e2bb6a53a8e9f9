"""Stream event models for token-streamed provider responses."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter


class TokenEvent(BaseModel):
    """Incremental text fragment."""

    type: Literal["token"] = "token"
    text: str


class DoneEvent(BaseModel):
    """Terminal event carrying the complete text."""

    type: Literal["done"] = "done"
    full_text: str


class ErrorEvent(BaseModel):
    """Terminal event carrying a human-readable error message."""

    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    TokenEvent | DoneEvent | ErrorEvent, Field(discriminator="type")
]

stream_event_adapter: TypeAdapter[TokenEvent | DoneEvent | ErrorEvent] = TypeAdapter(
    StreamEvent
)


def is_terminal(event: TokenEvent | DoneEvent | ErrorEvent) -> bool:
    """Check whether an event ends the stream."""
    return not isinstance(event, TokenEvent)
