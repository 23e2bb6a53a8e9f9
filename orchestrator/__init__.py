"""Core functionality for the LERN orchestrator."""

from .cancellation import CancellationToken
from .config import Settings, load_settings
from .log import (
    configure_logging,
    get_logger,
    setup_logging,
    setup_production_logging,
    setup_test_logging,
)
from .services import (
    StreamingResponseReader,
    TaskOrchestrator,
)
from .types import Environment

__all__ = [
    "CancellationToken",
    "Environment",
    "Settings",
    "load_settings",
    "configure_logging",
    "get_logger",
    "setup_logging",
    "setup_production_logging",
    "setup_test_logging",
    "StreamingResponseReader",
    "TaskOrchestrator",
]
