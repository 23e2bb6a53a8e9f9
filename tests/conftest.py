"""Global pytest configuration and fixtures."""

from logging import Logger

import pytest

from orchestrator import setup_test_logging
from orchestrator.config import Settings
from orchestrator.types import Environment

from tests.utils.fakes import (
    FakeDocumentStore,
    FakeGenerationBackend,
    FakeStreamingBackend,
)


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Setup test logging for all tests."""
    setup_test_logging()


@pytest.fixture(scope="function")
def logger() -> Logger:
    """Provide a logger instance for tests."""
    from orchestrator import get_logger

    return get_logger("test")


@pytest.fixture
def settings() -> Settings:
    """Settings for the test environment with fast progress ticks."""
    return Settings(
        environment=Environment.TESTING,
        progress_tick_seconds=0.01,
        elapsed_tick_seconds=0.01,
    )


@pytest.fixture
def streaming() -> FakeStreamingBackend:
    return FakeStreamingBackend()


@pytest.fixture
def generation() -> FakeGenerationBackend:
    return FakeGenerationBackend()


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore("disclosure.pdf", "notes.txt")
