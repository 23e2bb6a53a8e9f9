"""Common API endpoints router."""

import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_registry, get_settings
from api.services.session_registry import SessionRegistry
from orchestrator.config import Settings
from orchestrator.log import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["common"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: str
    sessions: int


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings),
    registry: SessionRegistry = Depends(get_registry),
) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=settings.api_version,
        timestamp=datetime.datetime.now().isoformat(),
        sessions=len(registry),
    )
