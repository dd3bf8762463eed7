"""Gap analysis and assembly plan types."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from resume_pipeline.models.confidence import MatchedContent, ReframingStrategy
from resume_pipeline.models.requirement import Importance


class GapType(StrEnum):
    MISSING_SKILL = "missing_skill"
    INSUFFICIENT_EXPERIENCE = "insufficient_experience"
    MISSING_CERTIFICATION = "missing_certification"
    INDUSTRY_MISMATCH = "industry_mismatch"
    SENIORITY_GAP = "seniority_gap"
    TECHNICAL_GAP = "technical_gap"


class GapSeverity(StrEnum):
    CRITICAL = "critical"
    SIGNIFICANT = "significant"
    MINOR = "minor"


SEVERITY_BY_IMPORTANCE: dict[Importance, GapSeverity] = {
    Importance.REQUIRED: GapSeverity.CRITICAL,
    Importance.PREFERRED: GapSeverity.SIGNIFICANT,
    Importance.NICE_TO_HAVE: GapSeverity.MINOR,
}


def severity_for(importance: Importance) -> GapSeverity:
    return SEVERITY_BY_IMPORTANCE[importance]


class MitigationType(StrEnum):
    REFRAME_ADJACENT = "reframe_adjacent"
    HIGHLIGHT_TRANSFERABLE = "highlight_transferable"
    COVER_LETTER = "cover_letter"
    ACKNOWLEDGE_LEARNING = "acknowledge_learning"


class MitigationStrategy(BaseModel):
    type: MitigationType
    description: str
    content: str | None = None
    confidence: int = Field(ge=0, le=100)


class GapAnalysis(BaseModel):
    requirement_id: str
    requirement: str
    importance: Importance
    gap_type: GapType
    mitigation_strategies: list[MitigationStrategy] = Field(default_factory=list)

    @computed_field
    @property
    def severity(self) -> GapSeverity:
        return severity_for(self.importance)


class ReframingPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"


class ReframingPlanItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_content_id: str
    target_requirement_id: str
    strategy: ReframingStrategy
    priority: ReframingPriority


class CoverLetterPlacement(StrEnum):
    OPENING = "opening"
    BODY = "body"
    CLOSING = "closing"


class CoverLetterRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    gap_id: str | None = None
    recommendation: str
    suggested_phrasing: str
    placement: CoverLetterPlacement


class AssemblyPlan(BaseModel):
    """Frozen, generation-ready view of matches, gaps and rewrites."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    matched_requirements: tuple[MatchedContent, ...] = ()
    gaps: tuple[GapAnalysis, ...] = ()
    reframing_plan: tuple[ReframingPlanItem, ...] = ()
    cover_letter_recommendations: tuple[CoverLetterRecommendation, ...] = ()
