"""Confidence Scorer - rates how well profile content meets one requirement."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass

from resume_pipeline.clients.llm_client import DEFAULT_MODEL, LLMClient
from resume_pipeline.errors import check_cancelled
from resume_pipeline.models.confidence import (
    ConfidenceBreakdown,
    ConfidenceScore,
    ConfidenceTier,
    ContentSource,
    ReframingStrategy,
    ReframingStrategyType,
)
from resume_pipeline.models.profile import JobContext
from resume_pipeline.utils.normalize import clamp_score, parse_or_default

logger = logging.getLogger(__name__)

NO_CONTENT_RATIONALE = "No candidate content available to match against this requirement."
PARSE_FAILURE_RATIONALE = "Failed to analyze content match. Treating as unmatched requirement."
MISSING_RATIONALE = "Unable to determine match rationale."

REFRAMABLE_TIERS = frozenset({ConfidenceTier.ADJACENT, ConfidenceTier.WEAK})
CORE_MEANING_LENGTH = 100

SYSTEM_PROMPT = """\
You are an expert resume optimization specialist. You analyze how well a \
candidate's existing content matches a single job requirement and answer \
only with JSON."""

SCORING_RUBRIC = """\
Score each dimension from 0-100:

1. KEYWORD MATCH (40% weight): How directly do keywords, terminology, and specific skills match?
   - 90-100: Exact or near-exact keyword matches
   - 70-89: Similar terminology that clearly relates
   - 50-69: Loosely related terms
   - 0-49: No meaningful keyword overlap

2. TRANSFERABLE SKILLS (30% weight): How well do the underlying skills transfer?
   - 90-100: Skills directly transfer with no adaptation needed
   - 70-89: Skills transfer with minor reframing
   - 50-69: Skills partially transfer, some gaps exist
   - 0-49: Skills don't meaningfully transfer

3. ADJACENT EXPERIENCE (20% weight): How related is the experience context?
   - 90-100: Same or very similar domain/context
   - 70-89: Related domain with clear parallels
   - 50-69: Different domain but applicable patterns
   - 0-49: Unrelated experience context

4. IMPACT ALIGNMENT (10% weight): Do the results/outcomes align with what's needed?
   - 90-100: Demonstrated impact directly relevant to requirement
   - 70-89: Impact shows relevant capabilities
   - 50-69: Impact partially relevant
   - 0-49: Impact not relevant to requirement

Return ONLY a JSON object with this structure:
{
  "breakdown": {"keyword": 0-100, "transferable": 0-100, "adjacent": 0-100, "impact": 0-100},
  "bestMatchIndex": <0-based index of the best matching content, or -1 if none>,
  "rationale": "<2-3 sentence explanation of the scoring>",
  "reframingStrategy": {
    "needed": true/false,
    "type": "keyword_alignment|emphasis_shift|abstraction_adjust|scale_emphasis",
    "suggestion": "<how to reframe the content if needed>"
  }
}"""


@dataclass
class ScoringResult:
    """Outcome of scoring one requirement."""

    score: ConfidenceScore
    best_match: ContentSource | None
    reframing_strategy: ReframingStrategy | None
    rationale: str


def extract_core_meaning(text: str) -> str:
    if len(text) <= CORE_MEANING_LENGTH:
        return text
    return text[: CORE_MEANING_LENGTH - 3] + "..."


class ConfidenceScorer:
    def __init__(
        self,
        llm: LLMClient,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.2,
    ):
        self.llm = llm
        self.model = model
        self.temperature = temperature

    async def score(
        self,
        requirement: str,
        candidate_content: list[ContentSource],
        job_context: JobContext,
        cancel_event: asyncio.Event | None = None,
    ) -> ScoringResult:
        """Score *candidate_content* against one requirement.

        Empty content short-circuits to a gap score without calling the model.
        Unusable model output also yields a gap score; transport failures
        propagate to the caller.
        """
        check_cancelled(cancel_event, "Scoring")

        if not candidate_content:
            return ScoringResult(
                score=ConfidenceScore.gap(),
                best_match=None,
                reframing_strategy=None,
                rationale=NO_CONTENT_RATIONALE,
            )

        try:
            data = await self.llm.generate_json(
                prompt=self._build_prompt(requirement, candidate_content, job_context),
                system=SYSTEM_PROMPT,
                model=self.model,
                temperature=self.temperature,
                max_tokens=2000,
                expect=dict,
            )
            return self._parse(data, candidate_content)
        except ValueError:
            logger.warning(
                "Could not parse confidence score for %r; treating as gap",
                requirement,
                exc_info=True,
            )
            return ScoringResult(
                score=ConfidenceScore.gap(),
                best_match=None,
                reframing_strategy=None,
                rationale=PARSE_FAILURE_RATIONALE,
            )

    def _build_prompt(
        self,
        requirement: str,
        candidate_content: list[ContentSource],
        job_context: JobContext,
    ) -> str:
        content_summary = "\n".join(
            f"[{i}] ({c.type}) {c.original_text}"
            for i, c in enumerate(candidate_content)
        )
        context_lines = [
            f"- Title: {job_context.title}",
            f"- Company: {job_context.company}",
        ]
        if job_context.industry:
            context_lines.append(f"- Industry: {job_context.industry}")
        if job_context.keywords:
            context_lines.append(f"- Key terms: {', '.join(job_context.keywords)}")

        return f"""Analyze how well the candidate's content matches the job requirement.

JOB REQUIREMENT:
"{requirement}"

JOB CONTEXT:
{chr(10).join(context_lines)}

CANDIDATE CONTENT (0-based index):
{content_summary}

{SCORING_RUBRIC}"""

    @staticmethod
    def _parse(data: dict, candidate_content: list[ContentSource]) -> ScoringResult:
        """Build a ScoringResult from model JSON; raises ValueError on bad shape."""
        raw = data.get("breakdown")
        if not isinstance(raw, dict):
            raise ValueError("Scoring response has no breakdown object")
        values = {}
        for key in ("keyword", "transferable", "adjacent", "impact"):
            value = raw.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"Breakdown field {key!r} is not a finite number: {value!r}")
            values[key] = clamp_score(value)

        score = ConfidenceScore.from_breakdown(ConfidenceBreakdown(**values))

        index = data.get("bestMatchIndex", -1)
        best_match = None
        if isinstance(index, int) and not isinstance(index, bool):
            if 0 <= index < len(candidate_content):
                best_match = candidate_content[index]

        reframing = None
        suggestion = data.get("reframingStrategy")
        if (
            isinstance(suggestion, dict)
            and suggestion.get("needed") is True
            and score.tier in REFRAMABLE_TIERS
            and best_match is not None
        ):
            hint = suggestion.get("suggestion")
            reframing = ReframingStrategy(
                type=parse_or_default(
                    suggestion.get("type"), ReframingStrategyType.EMPHASIS_SHIFT
                ),
                original_text=best_match.original_text,
                preserved_meaning=extract_core_meaning(best_match.original_text),
                adapted_elements=[hint] if isinstance(hint, str) and hint else [],
            )

        rationale = data.get("rationale")
        if not isinstance(rationale, str) or not rationale.strip():
            rationale = MISSING_RATIONALE

        return ScoringResult(
            score=score,
            best_match=best_match,
            reframing_strategy=reframing,
            rationale=rationale,
        )
