"""Pipeline run models."""

from pydantic import BaseModel, Field

from orchestrator.exceptions import InvalidStateError
from orchestrator.models.generation import GenerationResult
from orchestrator.types import PipelineStage, ResultSlot, WorkflowMode


class ResultHolder(BaseModel):
    """Two-slot holder for the pre- and post-refinement results."""

    initial: GenerationResult
    refined: GenerationResult | None = None
    selected: ResultSlot = ResultSlot.INITIAL
    history: list[GenerationResult] = Field(default_factory=list)

    @property
    def active(self) -> GenerationResult:
        """Result in the selected slot."""
        if self.selected == ResultSlot.REFINED and self.refined is not None:
            return self.refined
        return self.initial

    def select(self, slot: ResultSlot) -> None:
        """Make ``slot`` the active result.

        Raises:
            InvalidStateError: If the slot holds no result
        """
        if slot == ResultSlot.REFINED and self.refined is None:
            raise InvalidStateError("No refined result to select")
        self.selected = slot

    def apply_refinement(self, result: GenerationResult) -> None:
        """Store a new refined result and make it active.

        A superseded refined result is kept in ``history``.
        """
        if self.refined is not None:
            self.history.append(self.refined)
        self.refined = result
        self.selected = ResultSlot.REFINED


class PipelineRun(BaseModel):
    """State of one generation attempt.

    Create-then-refine runs keep their results in ``holder``. Parallel runs
    key results by provider; a post-completion refinement of a provider's
    result opens a holder for that provider in ``refinements``.
    """

    mode: WorkflowMode
    stage: PipelineStage = PipelineStage.CREATING
    motion_type: str
    case_details: dict[str, str] = Field(default_factory=dict)
    case_description: str = ""
    creator_provider: str | None = None
    refiner_provider: str | None = None
    providers: list[str] = Field(default_factory=list)
    holder: ResultHolder | None = None
    results: dict[str, GenerationResult] = Field(default_factory=dict)
    refinements: dict[str, ResultHolder] = Field(default_factory=dict)
    active_provider: str | None = None
    change_notes: list[str] = Field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.stage == PipelineStage.DONE

    @property
    def current_holder(self) -> ResultHolder | None:
        """Two-slot holder backing the active result, if any."""
        if self.mode == WorkflowMode.REFINE:
            return self.holder
        if self.active_provider is None:
            return None
        return self.refinements.get(self.active_provider)

    @property
    def active_tag(self) -> str | None:
        """Selector of the active result (slot name or provider id)."""
        if self.mode == WorkflowMode.PARALLEL:
            return self.active_provider
        return self.holder.selected.value if self.holder else None

    @property
    def active_slot(self) -> ResultSlot | None:
        holder = self.current_holder
        return holder.selected if holder else None

    @property
    def active_result(self) -> GenerationResult | None:
        """Currently active result, if any."""
        holder = self.current_holder
        if holder is not None:
            return holder.active
        if self.mode == WorkflowMode.PARALLEL and self.active_provider:
            return self.results.get(self.active_provider)
        return None

    def available_results(self) -> dict[str, GenerationResult]:
        """All selectable results keyed by their selector."""
        available: dict[str, GenerationResult] = {}
        if self.mode == WorkflowMode.PARALLEL:
            available.update(self.results)

        holder = self.current_holder
        if holder is not None:
            available[ResultSlot.INITIAL.value] = holder.initial
            if holder.refined is not None:
                available[ResultSlot.REFINED.value] = holder.refined
        return available

    def select(self, tag: str) -> GenerationResult:
        """Select the active result by slot name or provider id.

        Raises:
            InvalidStateError: If the tag does not name an available result
        """
        if tag in (ResultSlot.INITIAL.value, ResultSlot.REFINED.value):
            holder = self.current_holder
            if holder is None:
                raise InvalidStateError("No result to select yet")
            holder.select(ResultSlot(tag))
            return holder.active

        candidate = self.results.get(tag)
        if self.mode != WorkflowMode.PARALLEL or candidate is None:
            raise InvalidStateError(f"Unknown result: {tag}")
        if not candidate.success:
            raise InvalidStateError(f"{tag} has no result to select")

        self.active_provider = tag
        holder = self.refinements.get(tag)
        return holder.active if holder is not None else candidate

    def open_refinement(self) -> ResultHolder:
        """Holder that a post-completion refinement writes into.

        Raises:
            InvalidStateError: If there is no active result to refine
        """
        holder = self.current_holder
        if holder is not None:
            return holder

        if self.mode == WorkflowMode.PARALLEL and self.active_provider:
            result = self.results.get(self.active_provider)
            if result is not None:
                holder = ResultHolder(initial=result)
                self.refinements[self.active_provider] = holder
                return holder

        raise InvalidStateError("No result to refine")
