"""Run log record for one pipeline invocation."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RunLog(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=datetime.now)
    profile_id: str | None = None
    job_id: str | None = None
    company: str | None = None
    job_title: str | None = None
    match_score: int | None = None
    ats_score: int | None = None
    quality_score: int | None = None
    generation_attempts: int = 0
    gaps_count: int = 0
    critical_gaps_count: int = 0
    phase_durations: dict[str, float] = Field(default_factory=dict)
    phase_costs: dict[str, float] = Field(default_factory=dict)
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    search_count: int = 0
    estimated_cost_usd: float = 0.0
    success: bool = True
    error_message: str | None = None
