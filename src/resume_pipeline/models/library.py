"""Resume library records: stored past resumes and the patterns they yield."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from resume_pipeline.models.assembly import GapAnalysis
from resume_pipeline.models.confidence import MatchedContent


class PatternType(StrEnum):
    SKILL_MATCH = "skill_match"
    REFRAMING = "reframing"
    GAP_MITIGATION = "gap_mitigation"
    STRUCTURE = "structure"


class OutcomeResponse(StrEnum):
    INTERVIEW = "interview"
    REJECTION = "rejection"
    OFFER = "offer"
    NO_RESPONSE = "no_response"


class ApplicablePattern(BaseModel):
    pattern_type: PatternType
    description: str
    confidence: int = Field(ge=0, le=100)


class LibraryOutcome(BaseModel):
    applied: bool = False
    response: OutcomeResponse | None = None
    updated_at: datetime = Field(default_factory=datetime.now)


class LibraryEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    profile_id: str
    job_id: str
    job_title: str
    company: str
    industry: str | None = None
    resume_content: str
    match_score: int = 0
    ats_score: int = 0
    quality_score: int = 0
    matched_requirements: list[MatchedContent] = Field(default_factory=list)
    gaps: list[GapAnalysis] = Field(default_factory=list)
    outcome: LibraryOutcome | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_successful(self) -> bool:
        """Applied and reached an interview or an offer."""
        return (
            self.outcome is not None
            and self.outcome.applied
            and self.outcome.response in (OutcomeResponse.INTERVIEW, OutcomeResponse.OFFER)
        )


class LibrarySearchResult(BaseModel):
    entry: LibraryEntry
    similarity: int = Field(ge=0, le=100)
    applicable_patterns: list[ApplicablePattern] = Field(default_factory=list)
