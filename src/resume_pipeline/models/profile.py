"""Job posting and candidate profile inputs."""

from __future__ import annotations

from pydantic import BaseModel, Field


class JobPosting(BaseModel):
    id: str
    title: str
    company: str
    description: str
    requirements: list[str] = Field(default_factory=list)
    location: str | None = None
    is_remote: bool = False
    experience_level: str | None = None


class ExperienceItem(BaseModel):
    title: str
    company: str
    start_date: str = ""
    end_date: str | None = None
    current: bool = False
    location: str | None = None
    description: str | None = None
    skills: list[str] = Field(default_factory=list)

    @property
    def summary_line(self) -> str:
        return f"{self.title} at {self.company}: {self.description or ''}"


class EducationItem(BaseModel):
    institution: str
    degree: str
    field: str | None = None
    start_date: str | None = None
    end_date: str | None = None


class CandidateProfile(BaseModel):
    id: str
    full_name: str
    email: str | None = None
    phone: str | None = None
    headline: str | None = None
    summary: str | None = None
    location: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: list[ExperienceItem] = Field(default_factory=list)
    education: list[EducationItem] = Field(default_factory=list)


class JobContext(BaseModel):
    """The slice of a job posting the scoring and reframing prompts need."""

    title: str
    company: str
    industry: str | None = None
    keywords: list[str] = Field(default_factory=list)
