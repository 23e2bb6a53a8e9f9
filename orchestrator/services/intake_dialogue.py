"""Intake dialogue state machine.

The dialogue exchanges messages with the intake endpoint until it reports
that enough structured information was gathered, or until the user forces
generation with defaults.
"""

from collections.abc import Callable

from orchestrator.cancellation import CancellationToken
from orchestrator.clients.base import GenerationBackend
from orchestrator.constants import DEFAULT_CASE_DETAILS
from orchestrator.exceptions import InvalidStateError, ProviderError
from orchestrator.log import get_logger
from orchestrator.models import (
    IntakeMessage,
    IntakePayload,
    IntakeReady,
    IntakeResult,
    NeedsMoreInfo,
)
from orchestrator.prompts import PROCEED_WITH_DEFAULTS
from orchestrator.types import IntakeState

logger = get_logger(__name__)

NO_DETAILS_DESCRIPTION = "No additional details were provided."


class IntakeDialogue:
    """Collects case information through the intake endpoint.

    States move ``IDLE -> COLLECTING -> READY -> GENERATING``. Only one
    intake call is outstanding at a time: a user message that arrives while
    a call is in flight is queued and sent as the tail of the next call.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        motion_type: str,
        provider: str,
        document_ids: Callable[[], list[int]] | None = None,
        on_question: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the dialogue.

        Args:
            backend: Service exposing the intake endpoint
            motion_type: Motion type the case information is gathered for
            provider: Back-end provider answering intake calls
            document_ids: Returns the resolved reference document ids
            on_question: Called with each follow-up question, in order
        """
        self.backend = backend
        self.motion_type = motion_type
        self.provider = provider
        self._document_ids = document_ids or (lambda: [])
        self._on_question = on_question

        self.state = IntakeState.IDLE
        self.conversation: list[IntakeMessage] = []
        self.ready: IntakeReady | None = None
        self.degraded = False
        self._pending: list[str] = []
        self._in_flight = False
        self._forced = False

    @property
    def in_flight(self) -> bool:
        """Whether an intake call is outstanding."""
        return self._in_flight

    @property
    def pending(self) -> list[str]:
        """User messages queued for the next call."""
        return list(self._pending)

    @property
    def questions_asked(self) -> int:
        return sum(1 for m in self.conversation if m.role == "assistant")

    def queue(self, text: str) -> None:
        """Queue a user message without dispatching a call."""
        self._ensure_collecting()
        self._pending.append(text)
        logger.debug(f"Queued intake reply ({len(self._pending)} pending)")

    async def send(self, text: str, token: CancellationToken) -> IntakeResult | None:
        """Add a user message and exchange it with the intake endpoint.

        Returns:
            The endpoint's verdict, or None if the message was queued behind
            an outstanding call

        Raises:
            InvalidStateError: If intake already completed
            ProviderError: If the intake call fails
            OperationCancelledError: If the token fires
        """
        self.queue(text)
        if self._in_flight:
            return None
        return await self.exchange(token)

    async def exchange(self, token: CancellationToken) -> IntakeResult | None:
        """Send queued messages until the endpoint has nothing more to ask them.

        Each call carries the full conversation. If more replies were queued
        while a call was outstanding, they become the tail of the next call.
        """
        if self._in_flight:
            return None

        self._in_flight = True
        result: IntakeResult | None = None
        try:
            while self._pending and self.ready is None:
                self.conversation.extend(
                    IntakeMessage(role="user", content=text) for text in self._pending
                )
                self._pending.clear()
                self.state = IntakeState.COLLECTING

                result = await token.run(self.backend.intake(self._payload()))
                if isinstance(result, NeedsMoreInfo):
                    self.conversation.append(
                        IntakeMessage(role="assistant", content=result.question)
                    )
                    if self._on_question is not None:
                        self._on_question(result.question)
                else:
                    self._mark_ready(result)
        finally:
            self._in_flight = False

        if self.ready is not None and self._pending:
            logger.info(
                f"Intake ready; ignoring {len(self._pending)} queued replies"
            )
            self._pending.clear()
        return result

    async def force_ready(self, token: CancellationToken) -> IntakeReady:
        """Skip the remaining questions and produce a ready payload.

        The "proceed with defaults" instruction is sent once. Fields the
        endpoint does not supply are filled with defaults, also when the
        endpoint keeps asking or fails. Never raises for provider errors.
        """
        if self.ready is not None:
            return self.ready

        result: IntakeResult | None = None
        if not self._forced:
            self._forced = True
            self.conversation.extend(
                IntakeMessage(role="user", content=text) for text in self._pending
            )
            self._pending.clear()
            self.conversation.append(
                IntakeMessage(role="user", content=PROCEED_WITH_DEFAULTS)
            )
            self.state = IntakeState.COLLECTING
            self._in_flight = True
            try:
                result = await token.run(self.backend.intake(self._payload()))
            except ProviderError as e:
                logger.warning(f"Intake failed while forcing generation: {e}")
            finally:
                self._in_flight = False

        ready = result if isinstance(result, IntakeReady) else None
        if ready is None or self._missing_fields(ready):
            self.degraded = True
            logger.warning(
                "Generating with default case details for fields intake did not supply"
            )
            ready = self._with_defaults(ready)

        self._mark_ready(ready)
        return ready

    def begin_generation(self) -> IntakeReady:
        """Move from READY to GENERATING.

        Raises:
            InvalidStateError: If intake is not ready
        """
        if self.ready is None or self.state != IntakeState.READY:
            raise InvalidStateError(f"Intake is {self.state.value}, not ready")
        self.state = IntakeState.GENERATING
        return self.ready

    def generation_failed(self) -> None:
        """Return to READY so generation can be retried."""
        if self.ready is not None:
            self.state = IntakeState.READY

    def _ensure_collecting(self) -> None:
        if self.state in (IntakeState.READY, IntakeState.GENERATING):
            raise InvalidStateError(f"Intake is already {self.state.value}")

    def _payload(self) -> IntakePayload:
        ids = self._document_ids()
        return IntakePayload(
            conversation=list(self.conversation),
            motion_type=self.motion_type,
            provider=self.provider,
            reference_document_ids=ids or None,
        )

    def _mark_ready(self, ready: IntakeReady) -> None:
        if not ready.motion_type:
            ready = ready.model_copy(update={"motion_type": self.motion_type})
        self.ready = ready
        self.state = IntakeState.READY
        logger.info(
            f"Intake ready for {ready.motion_type} after "
            f"{self.questions_asked} question(s)"
        )

    def _missing_fields(self, ready: IntakeReady) -> list[str]:
        missing = [k for k in DEFAULT_CASE_DETAILS if not ready.case_details.get(k)]
        if not ready.case_description.strip():
            missing.append("case_description")
        return missing

    def _with_defaults(self, partial: IntakeReady | None) -> IntakeReady:
        details = dict(DEFAULT_CASE_DETAILS)
        description = ""
        motion_type = self.motion_type
        if partial is not None:
            details.update({k: v for k, v in partial.case_details.items() if v})
            description = partial.case_description
            motion_type = partial.motion_type or motion_type

        if not description.strip():
            user_text = [
                m.content
                for m in self.conversation
                if m.role == "user" and m.content != PROCEED_WITH_DEFAULTS
            ]
            description = ". ".join(user_text) or NO_DETAILS_DESCRIPTION

        return IntakeReady(
            case_details=details,
            case_description=description,
            motion_type=motion_type,
        )
