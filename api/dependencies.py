"""FastAPI dependencies for the session endpoints."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from api.services.session_registry import SessionNotFoundError, SessionRegistry
from orchestrator.config import Settings
from orchestrator.log import get_logger
from orchestrator.services import TaskOrchestrator

logger = get_logger(__name__)


def get_settings(request: Request) -> Settings:
    """Get settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_registry(request: Request) -> SessionRegistry:
    """Get the session registry from app state."""
    registry: SessionRegistry = request.app.state.registry
    return registry


def get_orchestrator(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> TaskOrchestrator:
    """Resolve the orchestrator for the session in the path."""
    try:
        return registry.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
