"""Confidence scoring types: how well profile content meets a requirement."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from resume_pipeline.utils.normalize import round_half_up

KEYWORD_WEIGHT = 0.4
TRANSFERABLE_WEIGHT = 0.3
ADJACENT_WEIGHT = 0.2
IMPACT_WEIGHT = 0.1


class ConfidenceTier(StrEnum):
    DIRECT = "direct"
    TRANSFERABLE = "transferable"
    ADJACENT = "adjacent"
    WEAK = "weak"
    GAP = "gap"


# Lower bound of each tier, highest first.
TIER_CUTOFFS: tuple[tuple[int, ConfidenceTier], ...] = (
    (90, ConfidenceTier.DIRECT),
    (75, ConfidenceTier.TRANSFERABLE),
    (60, ConfidenceTier.ADJACENT),
    (45, ConfidenceTier.WEAK),
)


def tier_for(overall: int) -> ConfidenceTier:
    for cutoff, tier in TIER_CUTOFFS:
        if overall >= cutoff:
            return tier
    return ConfidenceTier.GAP


class ConfidenceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    keyword: int = Field(default=0, ge=0, le=100)
    transferable: int = Field(default=0, ge=0, le=100)
    adjacent: int = Field(default=0, ge=0, le=100)
    impact: int = Field(default=0, ge=0, le=100)

    def weighted_overall(self) -> int:
        return round_half_up(
            self.keyword * KEYWORD_WEIGHT
            + self.transferable * TRANSFERABLE_WEIGHT
            + self.adjacent * ADJACENT_WEIGHT
            + self.impact * IMPACT_WEIGHT
        )


class ConfidenceScore(BaseModel):
    """Overall 0-100 confidence; the tier is always derived from it."""

    model_config = ConfigDict(frozen=True)

    overall: int = Field(ge=0, le=100)
    breakdown: ConfidenceBreakdown = Field(default_factory=ConfidenceBreakdown)

    @computed_field
    @property
    def tier(self) -> ConfidenceTier:
        return tier_for(self.overall)

    @classmethod
    def from_breakdown(cls, breakdown: ConfidenceBreakdown) -> ConfidenceScore:
        return cls(overall=breakdown.weighted_overall(), breakdown=breakdown)

    @classmethod
    def gap(cls) -> ConfidenceScore:
        return cls(overall=0, breakdown=ConfidenceBreakdown())


class ContentSourceType(StrEnum):
    EXPERIENCE = "experience"
    SKILL = "skill"
    PROJECT = "project"
    EDUCATION = "education"
    CERTIFICATION = "certification"


class ContentSource(BaseModel):
    """One fact from the candidate profile usable as evidence."""

    model_config = ConfigDict(frozen=True)

    type: ContentSourceType
    id: str
    original_text: str
    relevance_score: int = Field(default=0, ge=0, le=100)


class ReframingStrategyType(StrEnum):
    KEYWORD_ALIGNMENT = "keyword_alignment"
    EMPHASIS_SHIFT = "emphasis_shift"
    ABSTRACTION_ADJUST = "abstraction_adjust"
    SCALE_EMPHASIS = "scale_emphasis"


class ReframingStrategy(BaseModel):
    type: ReframingStrategyType
    original_text: str
    reframed_text: str = ""
    preserved_meaning: str = ""
    adapted_elements: list[str] = Field(default_factory=list)


class MatchedContent(BaseModel):
    """Binds a requirement to its best evidence and the text finally used."""

    requirement_id: str
    requirement: str
    confidence: ConfidenceScore
    source_content: list[ContentSource] = Field(default_factory=list)
    reframing_strategy: ReframingStrategy | None = None
    selected_content: str | None = None

    @property
    def best_source(self) -> ContentSource | None:
        return self.source_content[0] if self.source_content else None
