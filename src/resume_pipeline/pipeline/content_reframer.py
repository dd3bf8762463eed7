"""Content Reframer - truthfully rephrases profile content toward a requirement."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field

from resume_pipeline.clients.llm_client import DEFAULT_MODEL, LLMClient, LLMParseError
from resume_pipeline.errors import EmptyContentError, check_cancelled
from resume_pipeline.models.confidence import ReframingStrategyType
from resume_pipeline.models.profile import JobContext
from resume_pipeline.utils.normalize import clamp_score

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 50

STRATEGY_DESCRIPTIONS: dict[ReframingStrategyType, str] = {
    ReframingStrategyType.KEYWORD_ALIGNMENT: (
        "Preserve the core meaning but adjust terminology to match job posting language. "
        'Example: "Led experimental design" -> "Led data science programs"'
    ),
    ReframingStrategyType.EMPHASIS_SHIFT: (
        "Keep all facts the same but shift the focus to different aspects. "
        "Example: Focus on business outcomes instead of technical methods."
    ),
    ReframingStrategyType.ABSTRACTION_ADJUST: (
        "Adjust the level of technical specificity - make more general or more specific as needed. "
        'Example: "Built MATLAB-based system" -> "Developed automated evaluation system"'
    ),
    ReframingStrategyType.SCALE_EMPHASIS: (
        "Highlight the relevant scale aspects of the achievement. "
        'Example: "Managed project with 3 stakeholders" -> "Led cross-functional initiative"'
    ),
}

SYSTEM_PROMPT = """\
You are a professional resume content reframer. You reframe a candidate's \
content to better align with a job requirement without ever changing the facts.

CRITICAL RULES - YOU MUST FOLLOW THESE EXACTLY:
1. NEVER fabricate or exaggerate any claims
2. NEVER add skills, experiences, or achievements not present in the original content
3. NEVER change factual claims (numbers, dates, titles, companies)
4. ONLY adjust framing, emphasis, and terminology
5. Preserve ALL factual claims from the original
6. If the original content CANNOT be truthfully reframed to align with the requirement, return it UNCHANGED with confidence below 50"""

SCALE_KEYWORDS = ("led", "managed", "scale", "team", "cross-functional", "enterprise")
OUTCOME_KEYWORDS = ("improved", "increased", "reduced", "delivered", "achieved", "impact")
TECHNICAL_VERBS = ("implemented", "built", "developed", "coded", "engineered")
GENERAL_PHRASES = ("experience with", "knowledge of", "familiar with", "understanding")

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*%?")
_CAPITALIZED_RE = re.compile(r"(?<![\w/])[A-Z][A-Za-z0-9+#]*(?:\.[A-Za-z0-9]+)*")
_SENTENCE_START_RE = re.compile(r"(?:^|[.!?:;\n-]\s*)$")


@dataclass
class ReframeResult:
    reframed_content: str
    preserved_meaning: str
    confidence: int
    strategy_applied: ReframingStrategyType
    unchanged: bool
    adapted_elements: list[str] = field(default_factory=list)
    unchanged_reason: str | None = None


def suggest_strategy(content: str, requirement: str) -> ReframingStrategyType:
    """Pick a reframing strategy from keyword cues in the requirement."""
    content_lower = content.lower()
    requirement_lower = requirement.lower()
    if any(k in requirement_lower for k in SCALE_KEYWORDS):
        return ReframingStrategyType.SCALE_EMPHASIS
    if any(k in requirement_lower for k in OUTCOME_KEYWORDS):
        return ReframingStrategyType.EMPHASIS_SHIFT
    if any(t in content_lower for t in TECHNICAL_VERBS) and any(
        p in requirement_lower for p in GENERAL_PHRASES
    ):
        return ReframingStrategyType.ABSTRACTION_ADJUST
    return ReframingStrategyType.KEYWORD_ALIGNMENT


def _proper_nouns(text: str) -> set[str]:
    """Capitalized tokens that do not open a sentence."""
    nouns = set()
    for match in _CAPITALIZED_RE.finditer(text):
        if _SENTENCE_START_RE.search(text[: match.start()]):
            continue
        nouns.add(match.group())
    return nouns


def find_unsupported_claims(
    original: str,
    reframed: str,
    allowed_terms: list[str] | None = None,
) -> list[str]:
    """List factual differences between *original* and *reframed*.

    Flags numbers that appear or disappear, and proper nouns in the reframed
    text found neither in the original nor in *allowed_terms*.
    """
    problems = []
    original_numbers = set(_NUMBER_RE.findall(original))
    reframed_numbers = set(_NUMBER_RE.findall(reframed))
    for number in sorted(reframed_numbers - original_numbers):
        problems.append(f"new figure '{number}'")
    for number in sorted(original_numbers - reframed_numbers):
        problems.append(f"dropped figure '{number}'")

    known = " ".join([original, *(allowed_terms or [])]).lower()
    for noun in sorted(_proper_nouns(reframed)):
        if noun.lower() not in known:
            problems.append(f"new name '{noun}'")
    return problems


class ContentReframer:
    def __init__(
        self,
        llm: LLMClient,
        model: str = DEFAULT_MODEL,
        min_confidence: int = MIN_CONFIDENCE,
    ):
        self.llm = llm
        self.model = model
        self.min_confidence = min_confidence

    async def reframe(
        self,
        original_content: str,
        target_requirement: str,
        strategy: ReframingStrategyType,
        job_context: JobContext,
        cancel_event: asyncio.Event | None = None,
    ) -> ReframeResult:
        """Reframe *original_content* toward *target_requirement*.

        Results below the confidence floor come back unchanged. Unparseable
        output also yields the original text with confidence 0.
        """
        check_cancelled(cancel_event, "Reframing")
        if not original_content.strip():
            raise EmptyContentError("Original content cannot be empty")

        prompt = self._build_prompt(original_content, target_requirement, strategy, job_context)
        try:
            data = await self.llm.generate_json(
                prompt=prompt,
                system=SYSTEM_PROMPT,
                model=self.model,
                temperature=0.3,
                max_tokens=1000,
                expect=dict,
            )
        except LLMParseError:
            logger.warning("Could not parse reframing result; keeping original", exc_info=True)
            return ReframeResult(
                reframed_content=original_content,
                preserved_meaning="Unable to parse reframing result",
                confidence=0,
                strategy_applied=strategy,
                unchanged=True,
                unchanged_reason="Failed to parse model response",
            )

        return self._parse(data, original_content, strategy)

    def _parse(
        self,
        data: dict,
        original_content: str,
        strategy: ReframingStrategyType,
    ) -> ReframeResult:
        confidence = clamp_score(data.get("confidence"), default=50)
        unchanged = data.get("unchanged") is True or confidence < self.min_confidence

        reframed = data.get("reframedContent")
        if unchanged or not isinstance(reframed, str) or not reframed.strip():
            reframed = original_content

        preserved = data.get("preservedMeaning")
        elements = data.get("adaptedElements")
        reason = data.get("unchangedReason")
        return ReframeResult(
            reframed_content=reframed,
            preserved_meaning=preserved if isinstance(preserved, str) and preserved else "Core meaning preserved",
            confidence=confidence,
            strategy_applied=strategy,
            unchanged=unchanged,
            adapted_elements=[e for e in elements if isinstance(e, str)] if isinstance(elements, list) else [],
            unchanged_reason=(
                (reason if isinstance(reason, str) and reason else "Content could not be truthfully reframed")
                if unchanged
                else None
            ),
        )

    @staticmethod
    def _build_prompt(
        original_content: str,
        target_requirement: str,
        strategy: ReframingStrategyType,
        job_context: JobContext,
    ) -> str:
        context_lines = [f"- Position: {job_context.title} at {job_context.company}"]
        if job_context.industry:
            context_lines.append(f"- Industry: {job_context.industry}")
        if job_context.keywords:
            context_lines.append(f"- Relevant keywords: {', '.join(job_context.keywords)}")

        return f"""ORIGINAL CONTENT:
"{original_content}"

TARGET JOB REQUIREMENT:
"{target_requirement}"

JOB CONTEXT:
{chr(10).join(context_lines)}

REFRAMING STRATEGY: {strategy}
{STRATEGY_DESCRIPTIONS[strategy]}

Analyze whether the original content can be truthfully reframed to better align with the requirement using the {strategy} strategy.

Return ONLY a JSON object with this exact structure:
{{
  "reframedContent": "the reframed content (or original if unchanged)",
  "preservedMeaning": "explanation of what core meaning/facts were preserved",
  "adaptedElements": ["elements", "that", "were", "adapted"],
  "confidence": <number 0-100>,
  "unchanged": <true if content couldn't be truthfully reframed, false otherwise>,
  "unchangedReason": "reason if unchanged (optional)"
}}

CONFIDENCE SCORING:
- 90-100: Strong alignment possible with truthful reframing
- 70-89: Good alignment with minor adaptations
- 50-69: Moderate alignment, some stretching of framing
- Below 50: Cannot truthfully reframe - return unchanged"""
