"""Generation request and result models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
    """Single streamed generation call. Immutable once issued."""

    model_config = ConfigDict(frozen=True)

    provider: str
    prompt: str
    max_tokens: int = Field(gt=0)
    reference_document_ids: tuple[int, ...] = ()


class GrantAnalysis(BaseModel):
    """Analysis of the factors weighed before excluding evidence."""

    seriousness_of_breach: str | None = None
    impact_on_accused: str | None = None
    society_interest: str | None = None


class LegalArgument(BaseModel):
    """Legal argument section of a drafted motion."""

    charter_violation: str | None = None
    grant_analysis: GrantAnalysis | None = None
    case_law: list[str] = Field(default_factory=list)


class MotionDocument(BaseModel):
    """Structured motion document."""

    model_config = ConfigDict(extra="allow")

    header: str | None = None
    title: str | None = None
    introduction: str | None = None
    relief_sought: list[str] = Field(default_factory=list)
    grounds: list[str] = Field(default_factory=list)
    factual_background: str | None = None
    legal_argument: LegalArgument | None = None
    conclusion: str | None = None
    signature_block: str | None = None


class CaseLawEntry(BaseModel):
    """Cited decision and why it matters."""

    case: str
    relevance: str = ""


class RiskAssessment(BaseModel):
    """Provider's estimate of the motion's strength."""

    strength: str | None = None
    explanation: str | None = None


class GenerationResult(BaseModel):
    """Result produced by one provider.

    Either ``motion`` holds the structured document or ``raw_motion`` holds
    fallback text. Unknown keys returned by the provider are kept as
    free-form metadata.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    provider: str | None = None
    motion_type: str | None = None
    motion: MotionDocument | None = None
    supporting_arguments: list[str] = Field(default_factory=list)
    potential_crown_responses: list[str] = Field(default_factory=list)
    key_case_law: list[CaseLawEntry] = Field(default_factory=list)
    evidence_to_gather: list[str] = Field(default_factory=list)
    risk_assessment: RiskAssessment | None = None
    raw_motion: str | None = None
    refinement_notes: str | None = None
    improvements_made: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def metadata(self) -> dict[str, Any]:
        """Provider-specific keys not covered by the model."""
        return dict(self.model_extra or {})

    def to_text(self) -> str:
        """Render the motion as plain text for download or copy."""
        if self.motion is None:
            return self.raw_motion or ""

        m = self.motion
        relief = "\n".join(f"{i + 1}. {r}" for i, r in enumerate(m.relief_sought))
        grounds = "\n".join(f"{i + 1}. {g}" for i, g in enumerate(m.grounds))
        argument = ""
        if m.legal_argument is not None:
            argument = m.legal_argument.charter_violation or ""
        return (
            f"{m.header or ''}\n\n{m.title or ''}\n\n{m.introduction or ''}\n\n"
            f"RELIEF SOUGHT:\n{relief}\n\n"
            f"GROUNDS:\n{grounds}\n\n"
            f"FACTUAL BACKGROUND:\n{m.factual_background or ''}\n\n"
            f"LEGAL ARGUMENT:\n{argument}\n\n"
            f"{m.conclusion or ''}\n\n{m.signature_block or ''}"
        )


class GenerationPayload(BaseModel):
    """Body of a single-shot multi-provider generation call."""

    motion_type: str
    case_details: dict[str, str] = Field(default_factory=dict)
    case_description: str
    reference_document_ids: list[int] = Field(default_factory=list)
    providers: list[str]
    data_source_id: int | None = None


class RefinePayload(BaseModel):
    """Body of a refine call."""

    motion_type: str
    case_details: dict[str, str] = Field(default_factory=dict)
    case_description: str
    original_motion: GenerationResult
    refiner_provider: str


class RefineOutcome(BaseModel):
    """Refiner response: the improved document plus change notes."""

    success: bool
    refined_result: GenerationResult | None = None
    refinement_notes: str | None = None
    improvements_made: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def change_notes(self) -> list[str]:
        """Natural-language list of what changed."""
        notes = list(self.improvements_made)
        if self.refined_result is not None:
            notes.extend(
                n for n in self.refined_result.improvements_made if n not in notes
            )
        return notes
