"""Tests for the generation pipeline."""

import asyncio

import pytest

from orchestrator.cancellation import CancellationToken
from orchestrator.exceptions import (
    ConcurrentOperationError,
    GenerationFailedError,
    InvalidStateError,
    OperationCancelledError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from orchestrator.models import GenerationResult, RefineOutcome
from orchestrator.prompts import CASE_LAW_SUFFIX
from orchestrator.services import PipelineService
from orchestrator.types import PipelineStage, ResultSlot, WorkflowMode

from tests.utils.fakes import Gate, make_outcome, make_result, ready
from tests.utils.helpers import wait_until


@pytest.fixture
def pipeline(generation, settings) -> PipelineService:
    return PipelineService(generation, settings)


class TestNewRun:
    def test_refine_run(self, pipeline):
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)

        assert run.creator_provider == "claude"
        assert run.refiner_provider == "gemini"
        assert run.case_description.endswith(CASE_LAW_SUFFIX)
        assert run.stage == PipelineStage.CREATING

    def test_parallel_run(self, pipeline, settings):
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)
        assert run.providers == settings.parallel_providers

    def test_default_mode_from_settings(self, pipeline, settings):
        assert pipeline.new_run(ready()).mode == settings.workflow


class TestRefineMode:
    """Test create-then-refine runs."""

    @pytest.mark.asyncio
    async def test_refined_result_becomes_active(self, pipeline, generation):
        generation.results["claude"] = make_result("claude", case_law=["R v Grant"])
        generation.refine_outcomes = [make_outcome("gemini", improvements=["Tighter"])]
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        stages: list[PipelineStage] = []

        await pipeline.execute(
            run, CancellationToken(), [9], on_stage=lambda r: stages.append(r.stage)
        )

        assert stages == [
            PipelineStage.CREATING,
            PipelineStage.REFINING,
            PipelineStage.DONE,
        ]
        assert run.is_done
        assert run.holder is not None
        assert run.holder.initial.key_case_law[0].case == "R v Grant"
        assert run.active_slot == ResultSlot.REFINED
        assert run.active_result.motion.title == "AMENDED NOTICE OF APPLICATION"
        assert run.change_notes == ["Tighter"]
        assert pipeline.progress.value == 100.0

        payload = generation.generate_calls[0]
        assert payload.providers == ["claude"]
        assert payload.reference_document_ids == [9]
        refine = generation.refine_calls[0]
        assert refine.original_motion == run.holder.initial
        assert refine.refiner_provider == "gemini"

    @pytest.mark.asyncio
    async def test_refiner_failure_keeps_initial(self, pipeline, generation):
        generation.refine_outcomes = [ProviderTransportError("HTTP 502")]
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)

        await pipeline.execute(run, CancellationToken())

        assert run.is_done
        assert run.holder.refined is None
        assert run.active_slot == ResultSlot.INITIAL
        assert run.active_result == run.holder.initial

    @pytest.mark.asyncio
    async def test_unsuccessful_refine_keeps_initial(self, pipeline, generation):
        generation.refine_outcomes = [RefineOutcome(success=False, error="refused")]
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)

        await pipeline.execute(run, CancellationToken())

        assert run.is_done
        assert run.active_slot == ResultSlot.INITIAL

    @pytest.mark.asyncio
    async def test_creator_failure(self, pipeline, generation):
        generation.results["claude"] = ProviderTimeoutError("claude timed out")
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)

        with pytest.raises(ProviderTimeoutError):
            await pipeline.execute(run, CancellationToken())
        assert run.stage == PipelineStage.CREATING
        assert generation.refine_calls == []
        assert pipeline.progress.value < 100.0

    @pytest.mark.asyncio
    async def test_unsuccessful_creator(self, pipeline, generation):
        generation.results["claude"] = make_result("claude", success=False)
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)

        with pytest.raises(GenerationFailedError):
            await pipeline.execute(run, CancellationToken())

    @pytest.mark.asyncio
    async def test_provider_alias_is_resolved(self, generation, settings):
        settings.creator_provider = "lern-1.9"
        pipeline = PipelineService(generation, settings)
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)

        await pipeline.execute(run, CancellationToken())

        assert generation.generate_calls[0].providers == ["claude"]

    @pytest.mark.asyncio
    async def test_cancel_during_refine(self, pipeline, generation):
        generation.refine_gate = Gate()
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        token = CancellationToken()

        task = asyncio.create_task(pipeline.execute(run, token))
        await wait_until(lambda: generation.refine_gate.waiting == 1)
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await task
        assert run.stage == PipelineStage.REFINING


class TestParallelMode:
    """Test one call fanned out to every provider."""

    @pytest.mark.asyncio
    async def test_all_succeed(self, pipeline, generation):
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)

        await pipeline.execute(run, CancellationToken(), [4])

        assert run.is_done
        assert set(run.results) == {"claude", "gemini", "gpt4"}
        assert run.active_tag == "claude"
        assert len(generation.generate_calls) == 1
        payload = generation.generate_calls[0]
        assert payload.providers == ["claude", "gemini", "gpt4"]
        assert payload.reference_document_ids == [4]

    @pytest.mark.asyncio
    async def test_aliases_are_keyed_by_product_name(self, generation, settings):
        settings.parallel_providers = ["lern-1.9", "gpt4"]
        pipeline = PipelineService(generation, settings)
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)

        await pipeline.execute(run, CancellationToken())

        assert generation.generate_calls[0].providers == ["claude", "gpt4"]
        assert set(run.results) == {"lern-1.9", "gpt4"}
        assert run.active_tag == "lern-1.9"

    @pytest.mark.asyncio
    async def test_first_successful_provider_is_active(self, pipeline, generation):
        generation.results["claude"] = GenerationResult(
            success=False, provider="claude", error="HTTP 500"
        )
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)

        await pipeline.execute(run, CancellationToken())

        assert run.results["claude"].success is False
        assert "HTTP 500" in run.results["claude"].error
        assert run.active_tag == "gemini"
        with pytest.raises(InvalidStateError):
            run.select("claude")

    @pytest.mark.asyncio
    async def test_missing_provider_is_recorded_as_failed(self, pipeline, generation):
        generation.results["gpt4"] = None
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)

        await pipeline.execute(run, CancellationToken())

        assert run.results["gpt4"].success is False
        assert run.results["gpt4"].provider == "gpt4"
        assert run.results["claude"].success is True

    @pytest.mark.asyncio
    async def test_all_fail(self, pipeline, generation):
        for provider in ("claude", "gemini", "gpt4"):
            generation.results[provider] = make_result(provider, success=False)
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)

        with pytest.raises(GenerationFailedError):
            await pipeline.execute(run, CancellationToken())

    @pytest.mark.asyncio
    async def test_call_failure(self, pipeline, generation):
        generation.results["gemini"] = ProviderTransportError("HTTP 503")
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)

        with pytest.raises(ProviderTransportError):
            await pipeline.execute(run, CancellationToken())
        assert run.results == {}
        assert pipeline.progress.value < 100.0


class TestRefineActive:
    """Test post-completion refinement."""

    @pytest.mark.asyncio
    async def test_refine_finished_run(self, pipeline, generation):
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        await pipeline.execute(run, CancellationToken())
        generation.refine_outcomes = [make_outcome(title="SECOND DRAFT")]

        refined = await pipeline.refine_active(run, "cite Jordan", CancellationToken())

        assert refined is not None
        assert run.active_result.motion.title == "SECOND DRAFT"
        assert len(run.holder.history) == 1
        assert run.stage == PipelineStage.DONE
        assert not pipeline.refining
        assert 'User refinement request: "cite Jordan"' in (
            generation.refine_calls[-1].case_description
        )

    @pytest.mark.asyncio
    async def test_refine_error_propagates(self, pipeline, generation):
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        await pipeline.execute(run, CancellationToken())
        generation.refine_outcomes = [ProviderTransportError("HTTP 500")]
        before = run.active_result

        with pytest.raises(ProviderTransportError):
            await pipeline.refine_active(run, "shorter", CancellationToken())

        assert run.active_result == before
        assert run.stage == PipelineStage.DONE
        assert not pipeline.refining

    @pytest.mark.asyncio
    async def test_refine_without_change(self, pipeline, generation):
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        await pipeline.execute(run, CancellationToken())
        generation.refine_outcomes = [RefineOutcome(success=True)]

        assert await pipeline.refine_active(run, "x", CancellationToken()) is None

    @pytest.mark.asyncio
    async def test_second_refinement_rejected(self, pipeline, generation):
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        await pipeline.execute(run, CancellationToken())
        generation.refine_gate = Gate()

        task = asyncio.create_task(
            pipeline.refine_active(run, "first", CancellationToken())
        )
        await wait_until(lambda: generation.refine_gate.waiting == 1)

        with pytest.raises(ConcurrentOperationError):
            await pipeline.refine_active(run, "second", CancellationToken())

        generation.refine_gate.open()
        await task

    @pytest.mark.asyncio
    async def test_refine_unfinished_run(self, pipeline):
        run = pipeline.new_run(ready(), WorkflowMode.REFINE)
        with pytest.raises(InvalidStateError):
            await pipeline.refine_active(run, "x", CancellationToken())

    @pytest.mark.asyncio
    async def test_refine_parallel_result(self, pipeline, generation):
        run = pipeline.new_run(ready(), WorkflowMode.PARALLEL)
        await pipeline.execute(run, CancellationToken())
        run.select("gpt4")

        await pipeline.refine_active(run, "more detail", CancellationToken())

        assert run.active_tag == "gpt4"
        assert run.active_slot == ResultSlot.REFINED
        assert generation.refine_calls[-1].original_motion.provider == "gpt4"

        # Other providers are untouched
        run.select("gemini")
        assert run.active_result == run.results["gemini"]
        assert run.active_slot is None
        run.select("gpt4")
        assert run.active_slot == ResultSlot.REFINED
