"""Data models for the resume tailoring pipeline."""

from resume_pipeline.models.assembly import (
    AssemblyPlan,
    CoverLetterPlacement,
    CoverLetterRecommendation,
    GapAnalysis,
    GapSeverity,
    GapType,
    MitigationStrategy,
    MitigationType,
    ReframingPlanItem,
    ReframingPriority,
)
from resume_pipeline.models.company import CompanyProfile
from resume_pipeline.models.confidence import (
    ConfidenceBreakdown,
    ConfidenceScore,
    ConfidenceTier,
    ContentSource,
    ContentSourceType,
    MatchedContent,
    ReframingStrategy,
    ReframingStrategyType,
)
from resume_pipeline.models.library import (
    ApplicablePattern,
    LibraryEntry,
    LibraryOutcome,
    LibrarySearchResult,
    OutcomeResponse,
    PatternType,
)
from resume_pipeline.models.profile import (
    CandidateProfile,
    EducationItem,
    ExperienceItem,
    JobContext,
    JobPosting,
)
from resume_pipeline.models.quality import (
    ContentType,
    IssueCategory,
    IssueType,
    QualityIssue,
    QualityScore,
)
from resume_pipeline.models.requirement import Importance, Requirement, SkillCategory

__all__ = [
    "ApplicablePattern",
    "AssemblyPlan",
    "CandidateProfile",
    "CompanyProfile",
    "ConfidenceBreakdown",
    "ConfidenceScore",
    "ConfidenceTier",
    "ContentSource",
    "ContentSourceType",
    "ContentType",
    "CoverLetterPlacement",
    "CoverLetterRecommendation",
    "EducationItem",
    "ExperienceItem",
    "GapAnalysis",
    "GapSeverity",
    "GapType",
    "Importance",
    "IssueCategory",
    "IssueType",
    "JobContext",
    "JobPosting",
    "LibraryEntry",
    "LibraryOutcome",
    "LibrarySearchResult",
    "MatchedContent",
    "MitigationStrategy",
    "MitigationType",
    "OutcomeResponse",
    "PatternType",
    "QualityIssue",
    "QualityScore",
    "ReframingPlanItem",
    "ReframingPriority",
    "ReframingStrategy",
    "ReframingStrategyType",
    "Requirement",
    "SkillCategory",
]
