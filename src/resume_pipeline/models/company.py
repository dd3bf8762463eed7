"""Company research enrichment."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CompanyProfile(BaseModel):
    name: str
    industry: str | None = None
    description: str = ""
    culture_values: list[str] = Field(default_factory=list)
    tech_stack: list[str] = Field(default_factory=list)
    recent_news: list[str] = Field(default_factory=list)
