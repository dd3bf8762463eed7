"""Job requirements as produced by requirement extraction."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, computed_field

from resume_pipeline.utils.normalize import slugify


class Importance(StrEnum):
    REQUIRED = "required"
    PREFERRED = "preferred"
    NICE_TO_HAVE = "nice_to_have"


class SkillCategory(StrEnum):
    PROGRAMMING_LANGUAGE = "programming_language"
    FRAMEWORK = "framework"
    DATABASE = "database"
    CLOUD = "cloud"
    DEVOPS = "devops"
    SOFT_SKILL = "soft_skill"
    METHODOLOGY = "methodology"
    TOOL = "tool"
    DOMAIN = "domain"
    CERTIFICATION = "certification"
    OTHER = "other"


TECHNICAL_CATEGORIES = frozenset({
    SkillCategory.PROGRAMMING_LANGUAGE,
    SkillCategory.FRAMEWORK,
    SkillCategory.DATABASE,
    SkillCategory.CLOUD,
    SkillCategory.DEVOPS,
    SkillCategory.TOOL,
})


def requirement_id_for(name: str) -> str:
    return f"req-{slugify(name)}"


class Requirement(BaseModel):
    """One atomic qualification extracted from a job posting."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: SkillCategory = SkillCategory.OTHER
    importance: Importance = Importance.REQUIRED
    years_required: int | None = None
    source_text: str | None = None

    @computed_field
    @property
    def requirement_id(self) -> str:
        return requirement_id_for(self.name)
