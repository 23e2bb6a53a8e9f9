"""Pipeline orchestration for motion generation."""

import asyncio
from collections.abc import Callable

from orchestrator.cancellation import CancellationToken
from orchestrator.clients.base import GenerationBackend
from orchestrator.config import Settings
from orchestrator.exceptions import (
    ConcurrentOperationError,
    GenerationFailedError,
    InvalidStateError,
    OperationCancelledError,
    ProviderResponseError,
)
from orchestrator.log import get_logger
from orchestrator.models import (
    GenerationPayload,
    GenerationResult,
    IntakeReady,
    PipelineRun,
    RefineOutcome,
    RefinePayload,
    ResultHolder,
)
from orchestrator.progress import StageProgress
from orchestrator.prompts import refinement_instruction, with_case_law
from orchestrator.types import PipelineStage, WorkflowMode

logger = get_logger(__name__)


class PipelineService:
    """Drives parallel and create-then-refine generation runs."""

    def __init__(
        self,
        backend: GenerationBackend,
        settings: Settings,
        progress: StageProgress | None = None,
    ) -> None:
        """Initialize the pipeline service.

        Args:
            backend: Generation and refine endpoints
            settings: Provider and workflow settings
            progress: Progress driver shown while stages run
        """
        self.backend = backend
        self.settings = settings
        self.progress = progress or StageProgress.from_settings(settings)
        self._refining = False

    @property
    def refining(self) -> bool:
        """Whether a post-completion refinement is in flight."""
        return self._refining

    def new_run(
        self, ready: IntakeReady, mode: WorkflowMode | None = None
    ) -> PipelineRun:
        """Create a run for an intake payload.

        The narrative is enhanced to ask for thorough case law citations.
        """
        mode = mode or self.settings.workflow
        run = PipelineRun(
            mode=mode,
            motion_type=ready.motion_type,
            case_details=dict(ready.case_details),
            case_description=with_case_law(ready.case_description),
        )
        if mode == WorkflowMode.REFINE:
            run.creator_provider = self.settings.creator_provider
            run.refiner_provider = self.settings.refiner_provider
        else:
            run.providers = list(self.settings.parallel_providers)
        return run

    async def execute(
        self,
        run: PipelineRun,
        token: CancellationToken,
        document_ids: list[int] | None = None,
        on_stage: Callable[[PipelineRun], None] | None = None,
    ) -> PipelineRun:
        """Run all stages of ``run``.

        Raises:
            GenerationFailedError: If no usable result was produced
            ProviderError: If the stage-1 call fails
            OperationCancelledError: If the token fires
        """
        logger.info(
            f"Generating {run.motion_type} in {run.mode.value} mode "
            f"with {len(document_ids or [])} reference document(s)"
        )
        try:
            if run.mode == WorkflowMode.PARALLEL:
                await self._run_parallel(run, token, document_ids or [], on_stage)
            else:
                await self._run_refine(run, token, document_ids or [], on_stage)
        except Exception:
            await self.progress.halt()
            raise
        return run

    async def _run_parallel(
        self,
        run: PipelineRun,
        token: CancellationToken,
        document_ids: list[int],
        on_stage: Callable[[PipelineRun], None] | None,
    ) -> None:
        if not run.providers:
            raise GenerationFailedError("No providers selected")

        self._set_stage(run, PipelineStage.CREATING, on_stage)
        await self.progress.begin()

        # One call fans the request out to every provider
        backend_names = {p: self.settings.resolve_provider(p) for p in run.providers}
        payload = GenerationPayload(
            motion_type=run.motion_type,
            case_details=run.case_details,
            case_description=run.case_description,
            reference_document_ids=document_ids,
            providers=list(dict.fromkeys(backend_names.values())),
        )
        results = await token.run(self.backend.generate(payload))

        for provider in run.providers:
            result = results.get(backend_names[provider]) or results.get(provider)
            if result is None:
                logger.warning(f"No result returned for {provider}")
                result = GenerationResult(
                    success=False, provider=provider, error="No result returned"
                )
            elif not result.success:
                logger.warning(f"Provider {provider} failed: {result.error}")
            run.results[provider] = result

        successful = [p for p in run.providers if run.results[p].success]
        if not successful:
            raise GenerationFailedError("All providers failed to generate a motion")

        run.active_provider = successful[0]
        await self.progress.complete()
        self._set_stage(run, PipelineStage.DONE, on_stage)
        logger.info(
            f"Parallel generation finished: {len(successful)}/{len(run.providers)} "
            f"succeeded, active={run.active_provider}"
        )

    async def _run_refine(
        self,
        run: PipelineRun,
        token: CancellationToken,
        document_ids: list[int],
        on_stage: Callable[[PipelineRun], None] | None,
    ) -> None:
        creator = run.creator_provider or self.settings.creator_provider
        refiner = run.refiner_provider or self.settings.refiner_provider

        # Stage 1: create
        self._set_stage(run, PipelineStage.CREATING, on_stage)
        await self.progress.begin()
        initial = await token.run(self._generate_one(run, creator, document_ids))
        if not initial.success:
            raise GenerationFailedError(
                initial.error or f"{creator} returned no motion"
            )
        await self.progress.complete()
        run.holder = ResultHolder(initial=initial)

        if self.settings.stage_transition_delay > 0:
            await token.run(asyncio.sleep(self.settings.stage_transition_delay))

        # Stage 2: refine with the entire stage-1 result as context
        self._set_stage(run, PipelineStage.REFINING, on_stage)
        await self.progress.begin()
        outcome = await self._refine(
            run, run.case_description, initial, refiner, token
        )
        if outcome is not None:
            run.holder.apply_refinement(self._refined_result(outcome, refiner))
            run.change_notes = outcome.change_notes
        else:
            logger.warning("Refinement failed, keeping the initial draft")

        await self.progress.complete()
        self._set_stage(run, PipelineStage.DONE, on_stage)

    async def refine_active(
        self, run: PipelineRun, feedback: str, token: CancellationToken
    ) -> GenerationResult | None:
        """Refine the active result of a finished run with user feedback.

        Returns:
            The new refined result, or None if the refiner made no change

        Raises:
            ConcurrentOperationError: If a refinement is already in flight
            InvalidStateError: If the run is not done
            ProviderError: If the refine call fails
        """
        if self._refining:
            raise ConcurrentOperationError("A refinement is already in progress")
        if not run.is_done:
            raise InvalidStateError("The run has not finished yet")

        current = run.active_result
        if current is None:
            raise InvalidStateError("No result to refine")
        holder = run.open_refinement()
        refiner = run.refiner_provider or self.settings.refiner_provider

        self._refining = True
        run.stage = PipelineStage.REFINING
        await self.progress.begin()
        try:
            outcome = await self._refine(
                run,
                refinement_instruction(feedback),
                current,
                refiner,
                token,
                degrade=False,
            )
        except Exception:
            await self.progress.halt()
            raise
        finally:
            self._refining = False
            run.stage = PipelineStage.DONE

        await self.progress.complete()
        if outcome is None:
            return None

        refined = self._refined_result(outcome, refiner)
        holder.apply_refinement(refined)
        run.change_notes = outcome.change_notes
        return refined

    async def _generate_one(
        self, run: PipelineRun, provider: str, document_ids: list[int]
    ) -> GenerationResult:
        backend_provider = self.settings.resolve_provider(provider)
        payload = GenerationPayload(
            motion_type=run.motion_type,
            case_details=run.case_details,
            case_description=run.case_description,
            reference_document_ids=document_ids,
            providers=[backend_provider],
        )
        results = await self.backend.generate(payload)
        result = results.get(backend_provider) or results.get(provider)
        if result is None:
            raise ProviderResponseError(f"No result returned for {provider}")
        return result

    async def _refine(
        self,
        run: PipelineRun,
        description: str,
        original: GenerationResult,
        refiner: str,
        token: CancellationToken,
        degrade: bool = True,
    ) -> RefineOutcome | None:
        """Call the refiner.

        An unsuccessful outcome yields None. A failed call also yields None
        when ``degrade`` is set and is raised otherwise.
        """
        payload = RefinePayload(
            motion_type=run.motion_type,
            case_details=run.case_details,
            case_description=description,
            original_motion=original,
            refiner_provider=self.settings.resolve_provider(refiner),
        )
        try:
            outcome = await token.run(self.backend.refine(payload))
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Refiner {refiner} failed: {e}")
            if not degrade:
                raise
            return None

        if not outcome.success or outcome.refined_result is None:
            logger.warning(f"Refiner {refiner} returned no result: {outcome.error}")
            return None
        return outcome

    def _refined_result(
        self, outcome: RefineOutcome, refiner: str
    ) -> GenerationResult:
        result = outcome.refined_result
        if result is None:
            raise ProviderResponseError(f"{refiner} returned no refined document")
        update: dict[str, object] = {}
        if result.provider is None:
            update["provider"] = refiner
        if result.refinement_notes is None and outcome.refinement_notes:
            update["refinement_notes"] = outcome.refinement_notes
        if not result.improvements_made and outcome.improvements_made:
            update["improvements_made"] = list(outcome.improvements_made)
        return result.model_copy(update=update) if update else result

    def _set_stage(
        self,
        run: PipelineRun,
        stage: PipelineStage,
        on_stage: Callable[[PipelineRun], None] | None,
    ) -> None:
        run.stage = stage
        logger.debug(f"Pipeline stage -> {stage.value}")
        if on_stage is not None:
            on_stage(run)
