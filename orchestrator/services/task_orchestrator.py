"""Task orchestrator: the facade the presentation layer talks to."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from orchestrator.cancellation import CancellationToken
from orchestrator.clients.base import DocumentStore, GenerationBackend, StreamingBackend
from orchestrator.config import Settings
from orchestrator.constants import DEFAULT_MOTION_TYPE
from orchestrator.exceptions import (
    ConcurrentOperationError,
    GenerationFailedError,
    InvalidStateError,
    OperationCancelledError,
    ProviderError,
)
from orchestrator.log import get_logger
from orchestrator.models import (
    DocumentReference,
    Notification,
    PipelineRun,
    SessionSnapshot,
    UploadFile,
)
from orchestrator.progress import StageProgress
from orchestrator.prompts import (
    PROCEED_DISPLAY_TEXT,
    detect_motion_type,
    is_motion_intent,
    motion_label,
)
from orchestrator.session import ConversationSession
from orchestrator.types import (
    IntakeState,
    MessageRole,
    NoticeLevel,
    PipelineStage,
    SessionMode,
    SessionStage,
    TaskDomain,
    WorkflowMode,
)

from .conversation_service import ConversationService
from .document_resolver import DocumentContextResolver
from .intake_dialogue import IntakeDialogue
from .pipeline_service import PipelineService

logger = get_logger(__name__)

REFINED_MESSAGE = (
    "Done! I've refined the motion based on your feedback. "
    "The changes have been applied."
)
UNCHANGED_MESSAGE = (
    "Refinement returned without changes. Please try a more specific request."
)
DEFAULT_ERROR_MESSAGE = "AI failed to respond."

Operation = Callable[[CancellationToken], Awaitable[None]]


class TaskOrchestrator:
    """Owns one conversation and turns user intents into provider calls.

    Every top-level intent runs as a single background operation with its
    own cancellation token. Starting a new operation cancels the previous
    one and waits for it to unwind first, so at most one operation touches
    the session at a time. Intents return once the operation is started;
    ``join`` waits for it to finish.
    """

    def __init__(
        self,
        streaming: StreamingBackend,
        generation: GenerationBackend,
        settings: Settings,
        documents: DocumentStore | None = None,
        session_id: str | None = None,
        progress: StageProgress | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            streaming: Backend for free-form streamed answers
            generation: Generation, refine and intake endpoints
            settings: Application settings
            documents: Document listing and upload service
            session_id: Id kept across session resets
            progress: Progress driver for generation stages
        """
        self.settings = settings
        self.workflow = settings.workflow
        self.progress = progress or StageProgress.from_settings(settings)
        self.documents = DocumentContextResolver(on_notice=self._notify)
        self.conversation = ConversationService(streaming, settings)
        self.pipeline = PipelineService(generation, settings, self.progress)
        self.dialogue: IntakeDialogue | None = None

        self._generation = generation
        self._store = documents
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[None] | None = None
        self._pending_run: PipelineRun | None = None
        self._changed = asyncio.Event()
        self.session = self._new_session(session_id)

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def busy(self) -> bool:
        """Whether an operation is in flight."""
        return self._task is not None and not self._task.done()

    # Intents

    async def submit(self, query: str) -> None:
        """Start a new request, or answer the intake's open question.

        Raises:
            ValueError: If the query is empty
        """
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")

        if self._collecting():
            await self._intake_reply(query)
            return

        await self._cancel_current()
        self._replace_session()
        self.session.original_query = query
        self.session.append(MessageRole.USER, query)

        if self.settings.domain == TaskDomain.LEGAL and is_motion_intent(query):
            self._begin_motion(detect_motion_type(query))
            prefix = self.conversation.context_prefix(self.documents, detailed=False)
            self._require_dialogue().queue(prefix + query)
            await self._launch("intake", self._run_intake)
        else:
            self.session.mode = SessionMode.FREE_FORM
            self.session.set_stage(SessionStage.PRIMARY_STREAMING)
            await self._launch("answer", lambda token: self._run_answer(query, token))

    async def submit_feedback(self, text: str) -> None:
        """Send feedback on the current answer or result.

        Free-form answers get another round from the secondary provider, an
        open intake gets the reply, and a finished motion is refined.

        Raises:
            ValueError: If the text is empty
            ConcurrentOperationError: If a call this feedback depends on is running
            InvalidStateError: If there is nothing to give feedback on
        """
        text = text.strip()
        if not text:
            raise ValueError("Feedback must not be empty")

        session = self.session
        if session.mode == SessionMode.FREE_FORM:
            if session.stage in (
                SessionStage.PRIMARY_STREAMING,
                SessionStage.SECONDARY_STREAMING,
            ):
                raise ConcurrentOperationError("Wait for the current answer to finish")
            if session.stage in (
                SessionStage.PRIMARY_DONE,
                SessionStage.SECONDARY_DONE,
            ):
                previous = session.stage
                session.append(MessageRole.USER, text)
                session.set_stage(SessionStage.SECONDARY_STREAMING)
                await self._launch(
                    "feedback", lambda token: self._run_revise(text, previous, token)
                )
                return

        if session.mode == SessionMode.MOTION:
            if self._collecting():
                await self._intake_reply(text)
                return
            if self.pipeline.refining or (
                session.stage == SessionStage.REFINING and session.run is not None
            ):
                raise ConcurrentOperationError("A refinement is already in progress")
            if session.stage in (SessionStage.CREATING, SessionStage.REFINING):
                raise ConcurrentOperationError(
                    "Wait for the motion to finish generating"
                )
            if session.stage == SessionStage.DONE and session.run is not None:
                session.append(MessageRole.USER, text)
                session.set_stage(SessionStage.REFINING)
                await self._launch(
                    "refine", lambda token: self._run_refinement(text, token)
                )
                return

        raise InvalidStateError("There is nothing to give feedback on")

    async def force_generate_now(self) -> None:
        """Skip remaining intake questions and generate with defaults.

        Works before any question was answered and also retries a failed
        generation.

        Raises:
            ConcurrentOperationError: If a generation is already running
            InvalidStateError: If the motion was already generated
        """
        session = self.session
        if session.mode == SessionMode.MOTION:
            if session.stage in (SessionStage.CREATING, SessionStage.REFINING):
                raise ConcurrentOperationError("A generation is already running")
            if session.stage == SessionStage.DONE:
                raise InvalidStateError("The motion has already been generated")
        else:
            await self._cancel_current()
            self._replace_session()
            self._begin_motion(DEFAULT_MOTION_TYPE)

        session = self.session
        session.append(MessageRole.USER, PROCEED_DISPLAY_TEXT)
        await self._launch("generate", self._run_forced_generation)

    def select_active_result(self, tag: str) -> None:
        """Make another result active (slot name or provider id).

        Raises:
            InvalidStateError: If there is no result or the tag is unknown
        """
        run = self._visible_run()
        if run is None:
            raise InvalidStateError("No generated result to select")
        run.select(tag)
        logger.debug(f"Active result is now {tag}")
        self.session.touch()

    async def cancel(self) -> bool:
        """Cancel the in-flight operation.

        Returns:
            True if an operation was running
        """
        was_busy = self.busy
        await self._cancel_current()
        if was_busy:
            logger.info(f"Cancelled operation in session {self.session_id[:8]}")
            self.session.touch()
        return was_busy

    async def reset(self) -> None:
        """Cancel everything and start a new, empty conversation."""
        await self._cancel_current()
        await self.progress.halt()
        self._replace_session()
        logger.info(f"Reset session {self.session_id[:8]}")

    async def join(self) -> None:
        """Wait until the in-flight operation finished."""
        if self._task is not None:
            await self._task

    async def close(self) -> None:
        """Stop the in-flight operation and the progress loops."""
        await self._cancel_current()
        await self.progress.halt()

    # Documents

    def toggle_document(self, document_id: int) -> bool:
        selected = self.documents.toggle(document_id)
        self.session.touch()
        return selected

    def carry_over_documents(self, document_ids: list[int]) -> None:
        self.documents.carry_over(document_ids)
        self.session.touch()

    async def refresh_documents(self) -> list[DocumentReference]:
        """Re-fetch the document list and resolve pending upload names."""
        store = self._require_store()
        self.documents.refresh(await store.list_documents())
        self.session.touch()
        return self.documents.documents

    async def upload_files(self, files: list[UploadFile]) -> list[DocumentReference]:
        """Upload files into the working set, reusing same-name documents."""
        store = self._require_store()
        try:
            return await self.documents.upload_files(store, files)
        finally:
            self.session.touch()

    # Read side

    def drain_notifications(self) -> list[Notification]:
        return self.session.drain_notifications()

    def snapshot(self) -> SessionSnapshot:
        """Read-only view of the session."""
        session = self.session
        run = self._visible_run()
        current_run = self._pending_run or session.run
        pipeline_stage = current_run.stage if current_run else None
        active = run.active_result if run else None

        return SessionSnapshot(
            session_id=session.session_id,
            mode=session.mode,
            stage=session.stage,
            intake_state=self.dialogue.state if self.dialogue else IntakeState.IDLE,
            pipeline_stage=pipeline_stage,
            motion_type=session.motion_type,
            messages=list(session.messages),
            streaming_text=session.streaming_text,
            active_tag=run.active_tag if run else None,
            active_result=active,
            results=run.available_results() if run else {},
            change_notes=list(run.change_notes) if run else [],
            progress=self.progress.value,
            elapsed_seconds=self.progress.elapsed_seconds,
            busy=self.busy,
            reference_document_ids=self.documents.resolve(),
            pending_uploads=[p.name for p in self.documents.pending_uploads],
            notifications=list(session.notifications),
            detected_dates=list(session.detected_dates),
        )

    async def updates(
        self, interval: float | None = None
    ) -> AsyncIterator[SessionSnapshot]:
        """Yield a snapshot now and after every change.

        While an operation runs, a snapshot is also produced every
        ``interval`` seconds so progress and elapsed time stay current.
        """
        interval = interval or self.settings.progress_tick_seconds
        last: SessionSnapshot | None = None
        while True:
            snapshot = self.snapshot()
            if snapshot != last:
                yield snapshot
                last = snapshot
            try:
                await asyncio.wait_for(self._changed.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            self._changed.clear()

    # Operations

    async def _run_answer(self, query: str, token: CancellationToken) -> None:
        session = self.session
        try:
            await self.conversation.answer(session, query, self.documents, token)
        except OperationCancelledError:
            session.set_stage(SessionStage.IDLE)
            raise
        except (GenerationFailedError, ProviderError) as e:
            logger.error(f"Primary answer failed: {e}")
            session.notify(NoticeLevel.ERROR, str(e) or DEFAULT_ERROR_MESSAGE)
            session.set_stage(SessionStage.IDLE)
            return
        session.set_stage(SessionStage.PRIMARY_DONE)

    async def _run_revise(
        self, feedback: str, previous: SessionStage, token: CancellationToken
    ) -> None:
        session = self.session
        try:
            await self.conversation.revise(session, feedback, self.documents, token)
        except OperationCancelledError:
            session.set_stage(previous)
            raise
        except (GenerationFailedError, ProviderError) as e:
            logger.error(f"Feedback answer failed: {e}")
            session.append(MessageRole.SYSTEM, str(e) or DEFAULT_ERROR_MESSAGE)
            session.set_stage(previous)
            return
        session.set_stage(SessionStage.SECONDARY_DONE)

    async def _run_intake(self, token: CancellationToken) -> None:
        dialogue = self._require_dialogue()
        try:
            await dialogue.exchange(token)
        except ProviderError as e:
            logger.error(f"Intake call failed: {e}")
            self.session.notify(NoticeLevel.ERROR, "Failed to process response")
            return
        if dialogue.ready is not None:
            await self._generate(token)

    async def _run_forced_generation(self, token: CancellationToken) -> None:
        dialogue = self._require_dialogue()
        await dialogue.force_ready(token)
        await self._generate(token)

    async def _generate(self, token: CancellationToken) -> None:
        session = self.session
        dialogue = self._require_dialogue()
        ready = dialogue.begin_generation()
        session.append(
            MessageRole.ASSISTANT_PRIMARY,
            f"Got it. I have everything I need. "
            f"Generating your {motion_label(ready.motion_type)} now...",
        )

        run = self.pipeline.new_run(ready, self.workflow)
        self._pending_run = run
        try:
            await self.pipeline.execute(
                run, token, self.documents.resolve(), on_stage=self._on_pipeline_stage
            )
        except OperationCancelledError:
            dialogue.generation_failed()
            session.set_stage(SessionStage.COLLECTING)
            raise
        except (GenerationFailedError, ProviderError) as e:
            logger.error(f"Motion generation failed: {e}")
            dialogue.generation_failed()
            session.notify(NoticeLevel.ERROR, "Motion generation failed")
            session.set_stage(SessionStage.COLLECTING)
            return
        finally:
            self._pending_run = None

        session.run = run
        session.set_stage(SessionStage.DONE)
        logger.info(f"Motion ready, active result: {run.active_tag}")

    async def _run_refinement(self, feedback: str, token: CancellationToken) -> None:
        session = self.session
        run = session.run
        if run is None:
            raise InvalidStateError("No generated result to refine")
        try:
            refined = await self.pipeline.refine_active(run, feedback, token)
        except (ProviderError, GenerationFailedError) as e:
            logger.error(f"Refinement failed: {e}")
            session.notify(NoticeLevel.ERROR, "Refinement failed")
            return
        finally:
            session.set_stage(SessionStage.DONE)

        session.append(
            MessageRole.ASSISTANT_PRIMARY,
            REFINED_MESSAGE if refined is not None else UNCHANGED_MESSAGE,
        )

    async def _intake_reply(self, text: str) -> None:
        dialogue = self._require_dialogue()
        self.session.append(MessageRole.USER, text)
        dialogue.queue(text)
        if self.busy:
            # Sent as the tail of the outstanding intake call
            return
        await self._launch("intake", self._run_intake)

    # Plumbing

    async def _launch(self, name: str, operation: Operation) -> None:
        await self._cancel_current()
        token = CancellationToken(name)
        self._token = token
        self._task = asyncio.create_task(self._guard(name, operation, token))
        self.session.touch()

    async def _guard(
        self, name: str, operation: Operation, token: CancellationToken
    ) -> None:
        try:
            await operation(token)
        except OperationCancelledError:
            logger.info(f"Operation {name!r} cancelled")
        except Exception as e:
            logger.error(f"Operation {name!r} failed: {e}", exc_info=True)
            self.session.notify(NoticeLevel.ERROR, str(e) or DEFAULT_ERROR_MESSAGE)
        finally:
            self.session.touch()

    async def _cancel_current(self) -> None:
        if self._token is not None:
            self._token.cancel()
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            await task

    def _collecting(self) -> bool:
        return (
            self.session.mode == SessionMode.MOTION
            and self.session.stage == SessionStage.COLLECTING
            and self.dialogue is not None
            and self.dialogue.state in (IntakeState.IDLE, IntakeState.COLLECTING)
        )

    def _begin_motion(self, motion_type: str) -> None:
        session = self.session
        session.mode = SessionMode.MOTION
        session.motion_type = motion_type
        self.dialogue = IntakeDialogue(
            self._generation,
            motion_type=motion_type,
            provider=self.settings.resolve_provider(self.settings.intake_provider),
            document_ids=self.documents.resolve,
            on_question=self._on_question,
        )
        session.set_stage(SessionStage.COLLECTING)
        logger.info(
            f"Drafting {motion_label(motion_type)} in {self.workflow.value} mode"
        )

    def _on_question(self, question: str) -> None:
        self.session.append(MessageRole.ASSISTANT_PRIMARY, question)

    def _on_pipeline_stage(self, run: PipelineRun) -> None:
        if run.stage == PipelineStage.CREATING:
            self.session.set_stage(SessionStage.CREATING)
        elif run.stage == PipelineStage.REFINING:
            self.session.set_stage(SessionStage.REFINING)
        else:
            self.session.touch()

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self.session.notify(level, message)

    def _new_session(self, session_id: str | None) -> ConversationSession:
        session = ConversationSession(session_id)
        session.subscribe(self._changed.set)
        return session

    def _visible_run(self) -> PipelineRun | None:
        """Run whose results the user can see and select.

        The stage-1 result of a run still in its refine stage is visible
        alongside the finished run of the session.
        """
        pending = self._pending_run
        if pending is not None and pending.holder is not None:
            return pending
        return self.session.run

    def _replace_session(self) -> None:
        self.session = self._new_session(self.session.session_id)
        self.dialogue = None
        self._pending_run = None

    def _require_dialogue(self) -> IntakeDialogue:
        if self.dialogue is None:
            raise InvalidStateError("No motion intake in progress")
        return self.dialogue

    def _require_store(self) -> DocumentStore:
        if self._store is None:
            raise InvalidStateError("No document store configured")
        return self._store

    def set_workflow(self, mode: WorkflowMode) -> None:
        """Choose the generation mode before intake completes.

        Raises:
            InvalidStateError: If generation already started
        """
        if self.session.stage in (
            SessionStage.CREATING,
            SessionStage.REFINING,
            SessionStage.DONE,
        ):
            raise InvalidStateError("The workflow can only change before generation")
        self.workflow = mode
        self.session.touch()
