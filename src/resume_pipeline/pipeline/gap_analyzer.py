"""Gap Analyzer - classifies unmatched requirements and ranks mitigations."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field

from resume_pipeline.clients.llm_client import DEFAULT_MODEL, LLMClient, LLMError
from resume_pipeline.errors import check_cancelled
from resume_pipeline.models.assembly import (
    CoverLetterPlacement,
    CoverLetterRecommendation,
    GapAnalysis,
    GapSeverity,
    GapType,
    MitigationStrategy,
    MitigationType,
)
from resume_pipeline.models.confidence import MatchedContent
from resume_pipeline.models.profile import CandidateProfile
from resume_pipeline.models.requirement import (
    TECHNICAL_CATEGORIES,
    Importance,
    Requirement,
    SkillCategory,
)
from resume_pipeline.utils.normalize import clamp_score, parse_or_default, round_half_up

logger = logging.getLogger(__name__)

VIABLE_CONFIDENCE = 50
MAX_COVER_LETTER_RECS = 4

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "experience", "skills", "ability", "knowledge",
    "understanding", "familiarity",
})

CERTIFICATION_TERMS = ("certif", "license", "cpa", "pmp")
SENIORITY_TERMS = ("years", "senior", "lead", "principal")
INDUSTRY_TERMS = ("industry", "domain", "sector")

RELATED_TERMS: dict[str, list[str]] = {
    "react": ["javascript", "frontend", "ui", "component", "redux", "hooks"],
    "node": ["javascript", "backend", "express", "api", "server"],
    "python": ["django", "flask", "pandas", "numpy", "scripting"],
    "java": ["spring", "maven", "gradle", "jvm", "backend"],
    "aws": ["cloud", "ec2", "s3", "lambda", "infrastructure"],
    "docker": ["container", "kubernetes", "devops", "deployment"],
    "sql": ["database", "postgres", "mysql", "query", "data"],
    "leadership": ["management", "team", "lead", "mentor", "coordinate"],
    "agile": ["scrum", "sprint", "kanban", "methodology", "iterative"],
    "typescript": ["javascript", "typing", "frontend", "node"],
}

CLOSE_RELATIONS: dict[str, list[str]] = {
    "javascript": ["typescript", "react", "node", "vue"],
    "python": ["django", "flask", "fastapi"],
    "java": ["kotlin", "spring", "scala"],
    "leadership": ["management", "lead", "mentor"],
}

TECH_FAMILIES: dict[str, list[str]] = {
    "frontend": ["react", "vue", "angular", "javascript", "typescript", "html", "css"],
    "backend": ["node", "python", "java", "go", "ruby", "php", "api", "rest"],
    "data": ["sql", "python", "pandas", "spark", "analytics", "visualization"],
    "cloud": ["aws", "azure", "gcp", "kubernetes", "docker", "terraform"],
    "mobile": ["react native", "flutter", "swift", "kotlin", "android", "ios"],
}

COVER_LETTER_STRATEGY_TEMPLATES: dict[GapType, str] = {
    GapType.MISSING_SKILL: "While I am currently developing my {req} expertise, my strong foundation in related technologies enables rapid skill acquisition.",
    GapType.INSUFFICIENT_EXPERIENCE: "Although my direct experience with {req} is developing, I bring transferable experience from related areas.",
    GapType.MISSING_CERTIFICATION: "I am actively pursuing {req} and expect to complete it within the near term.",
    GapType.INDUSTRY_MISMATCH: "My experience in adjacent industries provides fresh perspectives applicable to {req}.",
    GapType.SENIORITY_GAP: "My accelerated growth trajectory and demonstrated leadership abilities position me well for {req} responsibilities.",
    GapType.TECHNICAL_GAP: "My proven ability to rapidly master new technologies ensures I can quickly develop {req} proficiency.",
}

PHRASING_TEMPLATES: dict[GapType, str] = {
    GapType.MISSING_SKILL: "My experience with related technologies has prepared me to quickly develop proficiency in {req}.",
    GapType.INSUFFICIENT_EXPERIENCE: "My background provides a solid foundation that directly applies to {req} requirements.",
    GapType.MISSING_CERTIFICATION: "I am committed to obtaining {req} and am actively working toward this goal.",
    GapType.INDUSTRY_MISMATCH: "My cross-industry experience brings valuable perspectives to {req}.",
    GapType.SENIORITY_GAP: "My track record of rapid professional growth positions me well for {req}.",
    GapType.TECHNICAL_GAP: "My demonstrated ability to master new technologies ensures I can excel in {req}.",
}

NON_CRITICAL_PLACEMENTS = (
    CoverLetterPlacement.BODY,
    CoverLetterPlacement.CLOSING,
    CoverLetterPlacement.BODY,
)

REJECTED_OPENINGS = ("while", "although")

ESCALATION_SYSTEM_PROMPT = """\
You are a career coach who helps candidates address qualification gaps \
honestly. You answer only with a JSON array."""


@dataclass(frozen=True)
class GapOptions:
    gap_threshold: int = 60
    include_cover_letter_recs: bool = True
    max_mitigations_per_gap: int = 3


@dataclass
class GapReport:
    gaps: list[GapAnalysis] = field(default_factory=list)
    critical_gaps_count: int = 0
    mitigation_coverage: int = 100
    cover_letter_recommendations: list[CoverLetterRecommendation] = field(
        default_factory=list
    )


@dataclass
class _IdentifiedGap:
    requirement: Requirement
    confidence: int


def extract_keywords(text: str) -> list[str]:
    words = (re.sub(r"[^a-z0-9]", "", w) for w in text.lower().split())
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def classify_gap_type(requirement: Requirement, confidence: int) -> GapType:
    """Classify a gap; the first matching rule wins."""
    name = requirement.name.lower()
    if requirement.category == SkillCategory.CERTIFICATION or any(
        t in name for t in CERTIFICATION_TERMS
    ):
        return GapType.MISSING_CERTIFICATION
    if any(t in name for t in SENIORITY_TERMS):
        return GapType.INSUFFICIENT_EXPERIENCE if confidence > 0 else GapType.SENIORITY_GAP
    if requirement.category == SkillCategory.DOMAIN or any(
        t in name for t in INDUSTRY_TERMS
    ):
        return GapType.INDUSTRY_MISMATCH
    if requirement.category in TECHNICAL_CATEGORIES:
        return GapType.TECHNICAL_GAP
    return GapType.MISSING_SKILL


def extract_relevant_snippet(text: str, keyword: str) -> str:
    index = text.lower().find(keyword.lower())
    if index == -1:
        return text[:100]
    start = max(0, index - 30)
    end = min(len(text), index + len(keyword) + 50)
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet


def adjacent_confidence(related_term: str, target_keyword: str) -> int:
    score = 55
    for base, related in CLOSE_RELATIONS.items():
        if (base in target_keyword and related_term in related) or (
            base in related_term and target_keyword in related
        ):
            score += 15
            break
    return min(score, 80)


def transferability(skill: str, target_keywords: list[str]) -> int:
    score = sum(40 for k in target_keywords if k in skill or skill in k)
    for members in TECH_FAMILIES.values():
        skill_in_family = any(m in skill for m in members)
        target_in_family = any(m in k for k in target_keywords for m in members)
        if skill_in_family and target_in_family:
            score += 25
            break
    return min(score, 85)


class GapAnalyzer:
    def __init__(self, llm: LLMClient, model: str = DEFAULT_MODEL):
        self.llm = llm
        self.model = model

    async def analyze(
        self,
        requirements: list[Requirement],
        matched_content: list[MatchedContent],
        profile: CandidateProfile,
        options: GapOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> GapReport:
        """Find requirements scored below the gap threshold and plan mitigations."""
        options = options or GapOptions()
        check_cancelled(cancel_event, "Gap analysis")

        identified = self._identify_gaps(requirements, matched_content, options.gap_threshold)
        gaps = []
        for gap in identified:
            gap_type = classify_gap_type(gap.requirement, gap.confidence)
            strategies = await self._mitigations(
                gap, gap_type, profile, options.max_mitigations_per_gap, cancel_event
            )
            gaps.append(
                GapAnalysis(
                    requirement_id=gap.requirement.requirement_id,
                    requirement=gap.requirement.name,
                    importance=gap.requirement.importance,
                    gap_type=gap_type,
                    mitigation_strategies=strategies,
                )
            )

        recommendations = []
        if options.include_cover_letter_recs:
            recommendations = await self._cover_letter_recommendations(
                gaps, profile, cancel_event
            )

        viable = sum(
            1
            for g in gaps
            if any(s.confidence >= VIABLE_CONFIDENCE for s in g.mitigation_strategies)
        )
        coverage = round_half_up(viable / len(gaps) * 100) if gaps else 100
        critical = sum(1 for g in gaps if g.severity == GapSeverity.CRITICAL)
        logger.info("Gap analysis: %d gaps, %d critical, coverage %d%%", len(gaps), critical, coverage)

        return GapReport(
            gaps=gaps,
            critical_gaps_count=critical,
            mitigation_coverage=coverage,
            cover_letter_recommendations=recommendations,
        )

    @staticmethod
    def _identify_gaps(
        requirements: list[Requirement],
        matched_content: list[MatchedContent],
        threshold: int,
    ) -> list[_IdentifiedGap]:
        by_id = {m.requirement_id: m for m in matched_content}
        gaps = []
        for req in requirements:
            match = by_id.get(req.requirement_id)
            confidence = match.confidence.overall if match else 0
            if confidence < threshold:
                gaps.append(_IdentifiedGap(requirement=req, confidence=confidence))
        return gaps

    async def _mitigations(
        self,
        gap: _IdentifiedGap,
        gap_type: GapType,
        profile: CandidateProfile,
        max_strategies: int,
        cancel_event: asyncio.Event | None,
    ) -> list[MitigationStrategy]:
        req = gap.requirement
        strategies: list[MitigationStrategy] = []

        adjacent = self._adjacent_experience(req, profile)
        if adjacent:
            strategies.append(adjacent)

        transferable = self._transferable_skills(req, profile)
        if transferable:
            strategies.append(transferable)

        if req.importance != Importance.NICE_TO_HAVE:
            strategies.append(
                MitigationStrategy(
                    type=MitigationType.COVER_LETTER,
                    description=f"Address {req.name} gap directly in cover letter",
                    content=COVER_LETTER_STRATEGY_TEMPLATES[gap_type].format(req=req.name),
                    confidence=60 if req.importance == Importance.REQUIRED else 70,
                )
            )

        if len(strategies) < 2 and req.importance == Importance.REQUIRED:
            strategies.extend(
                await self._escalate(gap, gap_type, profile, cancel_event)
            )

        if len(strategies) < max_strategies or all(
            s.confidence < VIABLE_CONFIDENCE for s in strategies
        ):
            strategies.append(self._learning_strategy(req, gap_type))

        strategies.sort(key=lambda s: s.confidence, reverse=True)
        return strategies[:max_strategies]

    @staticmethod
    def _adjacent_experience(
        req: Requirement, profile: CandidateProfile
    ) -> MitigationStrategy | None:
        keywords = extract_keywords(req.name)
        for exp in profile.experience:
            description = (exp.description or "").lower()
            title = exp.title.lower()
            skills = [s.lower() for s in exp.skills]
            for keyword in keywords:
                for related in RELATED_TERMS.get(keyword, []):
                    if related in description or related in title or related in skills:
                        snippet = extract_relevant_snippet(exp.description or exp.title, related)
                        return MitigationStrategy(
                            type=MitigationType.REFRAME_ADJACENT,
                            description=f"Reframe {exp.title} experience to emphasize {req.name} aspects",
                            content=(
                                f"Experience with {related} in {exp.title} role demonstrates "
                                f'foundational {req.name} capabilities. Source: "{snippet}"'
                            ),
                            confidence=adjacent_confidence(related, keyword),
                        )
        return None

    @staticmethod
    def _transferable_skills(
        req: Requirement, profile: CandidateProfile
    ) -> MitigationStrategy | None:
        keywords = extract_keywords(req.name)
        matches = [
            (skill, score)
            for skill in profile.skills
            if (score := transferability(skill.lower(), keywords)) > 30
        ]
        if not matches:
            return None
        matches.sort(key=lambda m: m[1], reverse=True)
        top = matches[:3]
        average = sum(score for _, score in top) / len(top)
        return MitigationStrategy(
            type=MitigationType.HIGHLIGHT_TRANSFERABLE,
            description=f"Highlight transferable skills: {', '.join(s for s, _ in top)}",
            content=f"Strong foundation in {top[0][0]} provides transferable basis for {req.name}",
            confidence=min(round_half_up(average), 85),
        )

    @staticmethod
    def _learning_strategy(req: Requirement, gap_type: GapType) -> MitigationStrategy:
        if gap_type in (GapType.TECHNICAL_GAP, GapType.MISSING_CERTIFICATION):
            content = (
                f"I am actively developing my {req.name} skills through courses and "
                "projects and am committed to rapid proficiency."
            )
        else:
            content = (
                f"My demonstrated ability to quickly master new concepts will enable "
                f"me to excel in {req.name}."
            )
        return MitigationStrategy(
            type=MitigationType.ACKNOWLEDGE_LEARNING,
            description=f"Express commitment to learning {req.name}",
            content=content,
            confidence=75 if req.importance == Importance.NICE_TO_HAVE else 45,
        )

    async def _escalate(
        self,
        gap: _IdentifiedGap,
        gap_type: GapType,
        profile: CandidateProfile,
        cancel_event: asyncio.Event | None,
    ) -> list[MitigationStrategy]:
        """Ask the model for extra strategies; any failure yields none."""
        check_cancelled(cancel_event, "Gap mitigation")
        req = gap.requirement
        experience = "\n".join(
            f"{e.title} at {e.company}: {(e.description or 'No description')[:100]}"
            for e in profile.experience[:3]
        )
        prompt = f"""Analyze this resume gap and suggest mitigation strategies.

GAP REQUIREMENT: {req.name}
GAP TYPE: {gap_type}
IMPORTANCE: {req.importance}
CURRENT CONFIDENCE: {gap.confidence}%

CANDIDATE PROFILE:
Skills: {', '.join(profile.skills[:15])}
Recent Experience:
{experience}

Generate 1-2 mitigation strategies. For each strategy, provide:
1. Strategy type: "reframe_adjacent" or "highlight_transferable"
2. Description of approach
3. Content/phrasing to use
4. Confidence score (0-100)

Return ONLY a JSON array:
[{{"type": "reframe_adjacent", "description": "...", "content": "...", "confidence": 70}}]"""

        try:
            data = await self.llm.generate_json(
                prompt=prompt,
                system=ESCALATION_SYSTEM_PROMPT,
                model=self.model,
                temperature=0.4,
                max_tokens=800,
                expect=list,
            )
        except LLMError:
            logger.warning("Mitigation escalation failed for %r", req.name, exc_info=True)
            return []

        strategies = []
        for item in data:
            if not isinstance(item, dict) or not isinstance(item.get("description"), str):
                continue
            content = item.get("content")
            strategies.append(
                MitigationStrategy(
                    type=parse_or_default(item.get("type"), MitigationType.HIGHLIGHT_TRANSFERABLE),
                    description=item["description"],
                    content=content if isinstance(content, str) else None,
                    confidence=clamp_score(item.get("confidence")),
                )
            )
        return strategies

    async def _cover_letter_recommendations(
        self,
        gaps: list[GapAnalysis],
        profile: CandidateProfile,
        cancel_event: asyncio.Event | None,
    ) -> list[CoverLetterRecommendation]:
        candidates = [g for g in gaps if g.severity != GapSeverity.MINOR]
        candidates.sort(
            key=lambda g: (g.severity != GapSeverity.CRITICAL, len(g.mitigation_strategies))
        )

        recommendations = []
        for index, gap in enumerate(candidates[:MAX_COVER_LETTER_RECS]):
            critical = gap.severity == GapSeverity.CRITICAL
            if critical:
                placement = CoverLetterPlacement.BODY
                phrasing = await self._critical_phrasing(gap, profile, cancel_event)
            else:
                placement = NON_CRITICAL_PLACEMENTS[index % len(NON_CRITICAL_PLACEMENTS)]
                phrasing = PHRASING_TEMPLATES[gap.gap_type].format(req=gap.requirement)
            framing = "proactive" if critical else "positive"
            recommendations.append(
                CoverLetterRecommendation(
                    gap_id=gap.requirement_id,
                    recommendation=f"Address {gap.requirement} gap with a {framing} framing",
                    suggested_phrasing=phrasing,
                    placement=placement,
                )
            )
        return recommendations

    async def _critical_phrasing(
        self,
        gap: GapAnalysis,
        profile: CandidateProfile,
        cancel_event: asyncio.Event | None,
    ) -> str:
        template = PHRASING_TEMPLATES[gap.gap_type].format(req=gap.requirement)
        check_cancelled(cancel_event, "Cover letter phrasing")
        prompt = f"""Write a single sentence for a cover letter that positively addresses a gap in the candidate's qualifications.

REQUIREMENT: {gap.requirement}
GAP TYPE: {gap.gap_type}
CANDIDATE'S RELEVANT SKILLS: {', '.join(profile.skills[:8])}

Guidelines:
- Be honest but positive
- Focus on transferable skills or willingness to learn
- Keep to 1-2 sentences maximum
- Avoid cliches like "quick learner" - be specific
- Do not start with "While" or "Although"

Write ONLY the sentence(s), no explanation."""

        try:
            response = await self.llm.generate(
                prompt=prompt,
                model=self.model,
                temperature=0.6,
                max_tokens=150,
            )
        except LLMError:
            logger.warning("Cover letter phrasing failed for %r", gap.requirement, exc_info=True)
            return template

        phrasing = response.text.strip()
        if not phrasing or phrasing.lower().startswith(REJECTED_OPENINGS):
            logger.debug("Rejected cover letter phrasing for %r", gap.requirement)
            return template
        return phrasing
