"""Assembly Planner - applies reframings and freezes the generation plan."""

from __future__ import annotations

import asyncio
import logging

from resume_pipeline.clients.llm_client import LLMTransportError
from resume_pipeline.errors import check_cancelled
from resume_pipeline.models.assembly import (
    AssemblyPlan,
    CoverLetterRecommendation,
    GapAnalysis,
    GapSeverity,
    ReframingPlanItem,
    ReframingPriority,
)
from resume_pipeline.models.confidence import (
    ConfidenceTier,
    ContentSource,
    ContentSourceType,
    MatchedContent,
)
from resume_pipeline.models.profile import CandidateProfile, JobContext
from resume_pipeline.models.requirement import Requirement
from resume_pipeline.pipeline.content_reframer import (
    MIN_CONFIDENCE,
    ContentReframer,
    find_unsupported_claims,
)
from resume_pipeline.utils.normalize import round_half_up, slugify

logger = logging.getLogger(__name__)

MAX_CONTENT_SOURCES = 5
SKILL_RELEVANCE = 95
EXPERIENCE_RELEVANCE = 80
HIGH_PRIORITY_CONFIDENCE = 70

REFRAME_TIERS = frozenset({ConfidenceTier.TRANSFERABLE, ConfidenceTier.ADJACENT})
TIER_WEIGHTS = {ConfidenceTier.DIRECT: 3, ConfidenceTier.TRANSFERABLE: 2}


def build_content_sources(profile: CandidateProfile, requirement: Requirement) -> list[ContentSource]:
    """Collect profile skills and experience entries that mention the requirement."""
    name = requirement.name.lower()
    sources = [
        ContentSource(
            type=ContentSourceType.SKILL,
            id=f"skill-{slugify(skill)}",
            original_text=skill,
            relevance_score=SKILL_RELEVANCE,
        )
        for skill in profile.skills
        if name in skill.lower()
    ]

    keywords = name.split()
    for exp in profile.experience:
        text = exp.summary_line
        lower = text.lower()
        exp_skills = [s.lower() for s in exp.skills]
        if any(kw in lower or any(kw in s for s in exp_skills) for kw in keywords):
            sources.append(
                ContentSource(
                    type=ContentSourceType.EXPERIENCE,
                    id=slugify(f"exp-{exp.company}-{exp.title}"),
                    original_text=text,
                    relevance_score=EXPERIENCE_RELEVANCE,
                )
            )

    sources.sort(key=lambda s: s.relevance_score, reverse=True)
    return sources[:MAX_CONTENT_SOURCES]


def calculate_match_score(matches: list[MatchedContent], gaps: list[GapAnalysis]) -> int:
    """Tier-weighted mean confidence minus 10 per critical and 5 per significant gap."""
    if not matches:
        return 0
    total_weight = 0
    weighted = 0
    for match in matches:
        weight = TIER_WEIGHTS.get(match.confidence.tier, 1)
        total_weight += weight
        weighted += match.confidence.overall * weight

    critical = sum(1 for g in gaps if g.severity == GapSeverity.CRITICAL)
    significant = sum(1 for g in gaps if g.severity == GapSeverity.SIGNIFICANT)
    penalty = critical * 10 + significant * 5
    return max(0, round_half_up(weighted / total_weight - penalty))


def _discard_strategy(match: MatchedContent) -> None:
    """Drop a strategy with no accepted rewrite and fall back to the source text."""
    match.reframing_strategy = None
    source = match.best_source
    if source is not None:
        match.selected_content = source.original_text


def build_assembly_plan(
    job_id: str,
    matches: list[MatchedContent],
    gaps: list[GapAnalysis],
    reframing_plan: list[ReframingPlanItem],
    cover_letter_recommendations: list[CoverLetterRecommendation],
) -> AssemblyPlan:
    """Freeze the inputs into a plan; later changes to them do not leak in."""
    return AssemblyPlan(
        job_id=job_id,
        matched_requirements=tuple(m.model_copy(deep=True) for m in matches),
        gaps=tuple(g.model_copy(deep=True) for g in gaps),
        reframing_plan=tuple(r.model_copy(deep=True) for r in reframing_plan),
        cover_letter_recommendations=tuple(cover_letter_recommendations),
    )


class AssemblyPlanner:
    def __init__(self, reframer: ContentReframer, min_confidence: int = MIN_CONFIDENCE):
        self.reframer = reframer
        self.min_confidence = min_confidence

    async def plan(
        self,
        job_id: str,
        matches: list[MatchedContent],
        gaps: list[GapAnalysis],
        cover_letter_recommendations: list[CoverLetterRecommendation],
        job_context: JobContext,
        cancel_event: asyncio.Event | None = None,
    ) -> AssemblyPlan:
        """Reframe eligible matches in place, then build the frozen plan."""
        reframing_plan = []
        for match in matches:
            item = await self._reframe(match, job_context, cancel_event)
            if item is not None:
                reframing_plan.append(item)

        logger.info("Assembly: %d of %d matches reframed", len(reframing_plan), len(matches))
        return build_assembly_plan(job_id, matches, gaps, reframing_plan, cover_letter_recommendations)

    async def _reframe(
        self,
        match: MatchedContent,
        job_context: JobContext,
        cancel_event: asyncio.Event | None,
    ) -> ReframingPlanItem | None:
        source = match.best_source
        strategy = match.reframing_strategy
        if strategy is None:
            return None
        if match.confidence.tier not in REFRAME_TIERS or source is None:
            _discard_strategy(match)
            return None

        check_cancelled(cancel_event, "Assembly")
        try:
            result = await self.reframer.reframe(
                original_content=source.original_text,
                target_requirement=match.requirement,
                strategy=strategy.type,
                job_context=job_context,
                cancel_event=cancel_event,
            )
        except LLMTransportError:
            logger.warning("Reframing failed for %r; keeping original", match.requirement, exc_info=True)
            _discard_strategy(match)
            return None

        if result.unchanged or result.confidence < self.min_confidence:
            _discard_strategy(match)
            return None

        allowed = [match.requirement, job_context.title, job_context.company, *job_context.keywords]
        problems = find_unsupported_claims(source.original_text, result.reframed_content, allowed)
        if problems:
            logger.warning(
                "Rejected reframing for %r: %s", match.requirement, "; ".join(problems)
            )
            _discard_strategy(match)
            return None

        match.selected_content = result.reframed_content
        strategy.reframed_text = result.reframed_content
        strategy.preserved_meaning = result.preserved_meaning
        strategy.adapted_elements = list(result.adapted_elements)

        priority = (
            ReframingPriority.HIGH
            if match.confidence.overall >= HIGH_PRIORITY_CONFIDENCE
            else ReframingPriority.MEDIUM
        )
        return ReframingPlanItem(
            source_content_id=source.id,
            target_requirement_id=match.requirement_id,
            strategy=strategy.model_copy(deep=True),
            priority=priority,
        )
