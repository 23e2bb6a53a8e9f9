"""Clients for external generation providers and the document service."""

from .base import DocumentStore, GenerationBackend, StreamingBackend
from .http_client import LernApiClient, parse_stream_line
from .openai_stream import OpenAIStreamingBackend

__all__ = [
    "DocumentStore",
    "GenerationBackend",
    "LernApiClient",
    "OpenAIStreamingBackend",
    "StreamingBackend",
    "parse_stream_line",
]
