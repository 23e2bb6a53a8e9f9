"""Exceptions raised by the orchestrator and its provider clients."""

from typing import Any


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""

    pass


class ProviderError(OrchestratorError):
    """Raised when a call to an external provider fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_data = error_data


class ProviderTransportError(ProviderError):
    """Raised when the provider could not be reached or returned an HTTP error."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a provider request times out."""

    pass


class ProviderResponseError(ProviderError):
    """Raised when a provider response cannot be parsed."""

    pass


class GenerationFailedError(OrchestratorError):
    """Raised when a generation stage produced no usable result."""

    pass


class UploadError(OrchestratorError):
    """Raised when a single document upload fails."""

    def __init__(self, filename: str, message: str):
        super().__init__(f"Failed to upload {filename}: {message}")
        self.filename = filename


class OperationCancelledError(OrchestratorError):
    """Raised inside an operation whose cancellation token fired."""

    pass


class InvalidStateError(OrchestratorError):
    """Raised when an intent is not valid in the current session state."""

    pass


class ConcurrentOperationError(InvalidStateError):
    """Raised when an intent would start a second in-flight operation."""

    pass
