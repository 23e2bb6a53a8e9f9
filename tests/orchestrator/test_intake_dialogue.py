"""Tests for the intake dialogue state machine."""

import asyncio

import pytest

from orchestrator.cancellation import CancellationToken
from orchestrator.constants import DEFAULT_CASE_DETAILS
from orchestrator.exceptions import (
    InvalidStateError,
    OperationCancelledError,
    ProviderTransportError,
)
from orchestrator.models import IntakeReady, NeedsMoreInfo
from orchestrator.prompts import PROCEED_WITH_DEFAULTS
from orchestrator.services import IntakeDialogue
from orchestrator.services.intake_dialogue import NO_DETAILS_DESCRIPTION
from orchestrator.types import IntakeState

from tests.utils.fakes import Gate, ready
from tests.utils.helpers import wait_until


@pytest.fixture
def questions() -> list[str]:
    return []


@pytest.fixture
def dialogue(generation, questions) -> IntakeDialogue:
    return IntakeDialogue(
        generation,
        motion_type="charter_s8",
        provider="gemini",
        document_ids=lambda: [4],
        on_question=questions.append,
    )


def contents(payload) -> list[tuple[str, str]]:
    return [(m.role, m.content) for m in payload.conversation]


class TestExchange:
    """Test the question/answer loop."""

    @pytest.mark.asyncio
    async def test_follow_up_question(self, dialogue, generation, questions):
        generation.intake_responses = [NeedsMoreInfo(question="Who is the client?")]

        result = await dialogue.send("Draft a charter motion", CancellationToken())

        assert result == NeedsMoreInfo(question="Who is the client?")
        assert dialogue.state == IntakeState.COLLECTING
        assert questions == ["Who is the client?"]
        assert dialogue.questions_asked == 1
        payload = generation.intake_calls[0]
        assert payload.motion_type == "charter_s8"
        assert payload.provider == "gemini"
        assert payload.reference_document_ids == [4]
        assert contents(payload) == [("user", "Draft a charter motion")]

    @pytest.mark.asyncio
    async def test_full_conversation_is_resent(self, dialogue, generation):
        generation.intake_responses = [
            NeedsMoreInfo(question="Who is the client?"),
            ready(),
        ]
        token = CancellationToken()

        await dialogue.send("Draft a charter motion", token)
        result = await dialogue.send("Jane Doe", token)

        assert isinstance(result, IntakeReady)
        assert contents(generation.intake_calls[1]) == [
            ("user", "Draft a charter motion"),
            ("assistant", "Who is the client?"),
            ("user", "Jane Doe"),
        ]
        assert dialogue.state == IntakeState.READY
        assert dialogue.ready == result

    @pytest.mark.asyncio
    async def test_reply_during_call_is_queued(self, dialogue, generation):
        generation.intake_responses = [
            NeedsMoreInfo(question="Which court?"),
            NeedsMoreInfo(question="Which date?"),
        ]
        generation.intake_gate = Gate()
        token = CancellationToken()

        first = asyncio.create_task(dialogue.send("Draft a motion", token))
        await wait_until(lambda: generation.intake_gate.waiting == 1)

        assert dialogue.in_flight
        assert await dialogue.send("It was in Toronto", token) is None
        assert dialogue.pending == ["It was in Toronto"]
        assert len(generation.intake_calls) == 1

        generation.intake_gate.open()
        await first

        assert len(generation.intake_calls) == 2
        assert contents(generation.intake_calls[1])[-1] == ("user", "It was in Toronto")
        assert dialogue.pending == []
        assert not dialogue.in_flight

    @pytest.mark.asyncio
    async def test_motion_type_filled_in(self, dialogue, generation):
        generation.intake_responses = [
            IntakeReady(case_details={}, case_description="x", motion_type="")
        ]

        result = await dialogue.send("go", CancellationToken())

        assert dialogue.ready is not None
        assert dialogue.ready.motion_type == "charter_s8"
        assert isinstance(result, IntakeReady)

    @pytest.mark.asyncio
    async def test_no_replies_after_ready(self, dialogue, generation):
        generation.intake_responses = [ready()]
        await dialogue.send("Everything you need", CancellationToken())

        with pytest.raises(InvalidStateError):
            dialogue.queue("one more thing")

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, dialogue, generation):
        generation.intake_responses = [ProviderTransportError("HTTP 500")]

        with pytest.raises(ProviderTransportError):
            await dialogue.send("hello", CancellationToken())
        assert not dialogue.in_flight

    @pytest.mark.asyncio
    async def test_cancelled_call(self, dialogue, generation):
        generation.intake_gate = Gate()
        token = CancellationToken()

        task = asyncio.create_task(dialogue.send("hello", token))
        await wait_until(lambda: generation.intake_gate.waiting == 1)
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await task
        assert not dialogue.in_flight
        assert dialogue.ready is None


class TestForceReady:
    """Test generating before intake is complete."""

    @pytest.mark.asyncio
    async def test_force_with_zero_exchanges(self, dialogue, generation):
        generation.intake_responses = [NeedsMoreInfo(question="Client name?")]

        result = await dialogue.force_ready(CancellationToken())

        assert len(generation.intake_calls) == 1
        assert contents(generation.intake_calls[0]) == [
            ("user", PROCEED_WITH_DEFAULTS)
        ]
        assert result.case_details == DEFAULT_CASE_DETAILS
        assert result.case_description == NO_DETAILS_DESCRIPTION
        assert result.motion_type == "charter_s8"
        assert dialogue.degraded
        assert dialogue.state == IntakeState.READY

    @pytest.mark.asyncio
    async def test_force_after_failure_uses_user_messages(self, dialogue, generation):
        generation.intake_responses = [
            NeedsMoreInfo(question="When?"),
            ProviderTransportError("HTTP 503"),
        ]
        token = CancellationToken()
        await dialogue.send("Car was searched", token)
        dialogue.queue("Last March")

        result = await dialogue.force_ready(token)

        assert result.case_description == "Car was searched. Last March"
        assert result.case_details["client_name"] == DEFAULT_CASE_DETAILS["client_name"]

    @pytest.mark.asyncio
    async def test_partial_details_are_merged(self, dialogue, generation):
        generation.intake_responses = [
            IntakeReady(
                case_details={"client_name": "R. Roe", "charges": ""},
                case_description="Traffic stop",
                motion_type="charter_s8",
            )
        ]

        result = await dialogue.force_ready(CancellationToken())

        assert result.case_details["client_name"] == "R. Roe"
        assert result.case_details["charges"] == DEFAULT_CASE_DETAILS["charges"]
        assert result.case_description == "Traffic stop"
        assert dialogue.degraded

    @pytest.mark.asyncio
    async def test_complete_details_are_not_degraded(self, dialogue, generation):
        generation.intake_responses = [ready()]

        result = await dialogue.force_ready(CancellationToken())

        assert result == ready()
        assert not dialogue.degraded

    @pytest.mark.asyncio
    async def test_proceed_instruction_sent_once(self, dialogue, generation):
        generation.intake_responses = [ProviderTransportError("down")]
        token = CancellationToken()
        first = await dialogue.force_ready(token)

        dialogue.begin_generation()
        dialogue.generation_failed()
        second = await dialogue.force_ready(token)

        assert first == second
        assert len(generation.intake_calls) == 1


class TestGenerationStates:
    @pytest.mark.asyncio
    async def test_begin_and_fail(self, dialogue, generation):
        with pytest.raises(InvalidStateError):
            dialogue.begin_generation()

        generation.intake_responses = [ready()]
        await dialogue.send("go", CancellationToken())

        assert dialogue.begin_generation() == dialogue.ready
        assert dialogue.state == IntakeState.GENERATING
        with pytest.raises(InvalidStateError):
            dialogue.queue("late reply")

        dialogue.generation_failed()
        assert dialogue.state == IntakeState.READY
