"""Conversation session router."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, File
from fastapi import UploadFile as FormFile
from fastapi.responses import StreamingResponse

from api.dependencies import get_orchestrator, get_registry
from api.models import (
    CancelResponse,
    CreateSessionRequest,
    DeleteSessionResponse,
    SelectResultRequest,
    TextRequest,
    ToggleDocumentRequest,
)
from api.services.session_registry import SessionRegistry
from api.utils.error_handler import handle_api_operation, handle_async_api_operation
from orchestrator.log import get_logger
from orchestrator.models import (
    DocumentReference,
    Notification,
    SessionSnapshot,
    UploadFile,
)
from orchestrator.services import TaskOrchestrator
from orchestrator.types import WorkflowMode

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])

Orchestrator = Annotated[TaskOrchestrator, Depends(get_orchestrator)]


@router.post("", response_model=SessionSnapshot)
async def create_session(
    request: CreateSessionRequest,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> SessionSnapshot:
    """Start a new conversation session."""
    orchestrator = handle_api_operation(
        lambda: registry.create(request.workflow, request.document_ids),
        "Failed to create session",
    )
    return orchestrator.snapshot()


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_session(orchestrator: Orchestrator) -> SessionSnapshot:
    return orchestrator.snapshot()


@router.delete("/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(
    session_id: str,
    orchestrator: Orchestrator,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> DeleteSessionResponse:
    await handle_async_api_operation(
        lambda: registry.remove(session_id), "Failed to delete session"
    )
    return DeleteSessionResponse(session_id=session_id)


@router.post("/{session_id}/submit", response_model=SessionSnapshot)
async def submit(request: TextRequest, orchestrator: Orchestrator) -> SessionSnapshot:
    """Submit a query, or answer the open intake question.

    Returns:
        Snapshot taken right after the operation started
    """
    await handle_async_api_operation(
        lambda: orchestrator.submit(request.text), "Failed to submit query"
    )
    return orchestrator.snapshot()


@router.post("/{session_id}/feedback", response_model=SessionSnapshot)
async def submit_feedback(
    request: TextRequest, orchestrator: Orchestrator
) -> SessionSnapshot:
    await handle_async_api_operation(
        lambda: orchestrator.submit_feedback(request.text),
        "Failed to submit feedback",
    )
    return orchestrator.snapshot()


@router.post("/{session_id}/generate", response_model=SessionSnapshot)
async def force_generate(orchestrator: Orchestrator) -> SessionSnapshot:
    """Skip the remaining intake questions and generate now."""
    await handle_async_api_operation(
        orchestrator.force_generate_now, "Failed to start generation"
    )
    return orchestrator.snapshot()


@router.post("/{session_id}/select", response_model=SessionSnapshot)
async def select_result(
    request: SelectResultRequest, orchestrator: Orchestrator
) -> SessionSnapshot:
    handle_api_operation(
        lambda: orchestrator.select_active_result(request.tag),
        "Failed to select result",
    )
    return orchestrator.snapshot()


@router.post("/{session_id}/workflow/{mode}", response_model=SessionSnapshot)
async def set_workflow(
    mode: WorkflowMode, orchestrator: Orchestrator
) -> SessionSnapshot:
    handle_api_operation(
        lambda: orchestrator.set_workflow(mode), "Failed to change workflow"
    )
    return orchestrator.snapshot()


@router.post("/{session_id}/cancel", response_model=CancelResponse)
async def cancel(orchestrator: Orchestrator) -> CancelResponse:
    cancelled = await handle_async_api_operation(
        orchestrator.cancel, "Failed to cancel operation"
    )
    return CancelResponse(cancelled=cancelled)


@router.post("/{session_id}/reset", response_model=SessionSnapshot)
async def reset(orchestrator: Orchestrator) -> SessionSnapshot:
    await handle_async_api_operation(orchestrator.reset, "Failed to reset session")
    return orchestrator.snapshot()


@router.get("/{session_id}/notifications", response_model=list[Notification])
async def drain_notifications(orchestrator: Orchestrator) -> list[Notification]:
    """Return and clear the pending notifications."""
    return orchestrator.drain_notifications()


@router.post("/{session_id}/documents/toggle", response_model=SessionSnapshot)
async def toggle_document(
    request: ToggleDocumentRequest, orchestrator: Orchestrator
) -> SessionSnapshot:
    orchestrator.toggle_document(request.document_id)
    return orchestrator.snapshot()


@router.post(
    "/{session_id}/documents/refresh", response_model=list[DocumentReference]
)
async def refresh_documents(orchestrator: Orchestrator) -> list[DocumentReference]:
    return await handle_async_api_operation(
        orchestrator.refresh_documents, "Failed to refresh documents"
    )


@router.post("/{session_id}/documents", response_model=list[DocumentReference])
async def upload_documents(
    orchestrator: Orchestrator,
    files: Annotated[list[FormFile], File(description="Reference documents")],
) -> list[DocumentReference]:
    """Upload files into the session's working set.

    Files with the name of an existing document reuse that document.
    """
    uploads = [
        UploadFile(name=file.filename or "upload", content=await file.read())
        for file in files
    ]
    return await handle_async_api_operation(
        lambda: orchestrator.upload_files(uploads), "Failed to upload documents"
    )


@router.get("/{session_id}/events")
async def stream_events(orchestrator: Orchestrator) -> StreamingResponse:
    """Stream session snapshots as Server-Sent Events.

    A snapshot is sent immediately and again after every change.
    """

    async def generate_stream() -> AsyncGenerator[str, None]:
        async for snapshot in orchestrator.updates():
            yield f"data: {snapshot.model_dump_json()}\n\n"

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
