"""Quality scoring results for generated documents."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class ContentType(StrEnum):
    RESUME = "resume"
    COVER_LETTER = "cover_letter"


class IssueType(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(StrEnum):
    ATS = "ats"
    KEYWORD = "keyword"
    FORMAT = "format"
    CONTENT = "content"


class QualityIssue(BaseModel):
    type: IssueType
    category: IssueCategory
    message: str
    location: str | None = None


class QualityScore(BaseModel):
    overall: int = Field(ge=0, le=100)
    ats_compatibility: int = Field(ge=0, le=100)
    keyword_coverage: int = Field(ge=0, le=100)
    format_quality: int = Field(ge=0, le=100)
    content_relevance: int = Field(ge=0, le=100)
    issues: list[QualityIssue] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    passed: bool

    @property
    def critical_issues(self) -> list[QualityIssue]:
        return [i for i in self.issues if i.type == IssueType.ERROR]
