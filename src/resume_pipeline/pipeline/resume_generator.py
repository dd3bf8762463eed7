"""Resume Generator - writes the tailored Markdown resume from an assembly plan."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from resume_pipeline.clients.llm_client import LLMClient, LLMError
from resume_pipeline.errors import GenerationError, check_cancelled
from resume_pipeline.models.assembly import AssemblyPlan, GapSeverity
from resume_pipeline.models.company import CompanyProfile
from resume_pipeline.models.library import ApplicablePattern
from resume_pipeline.models.profile import CandidateProfile, JobPosting

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_MODEL = "claude-sonnet-4-5-20250929"
MATCH_DISPLAY_THRESHOLD = 60
LENGTH_LABELS = {"one_page": "One page", "two_page": "Two pages"}

SYSTEM_PROMPT = """\
You are an expert resume writer specializing in highly targeted, ATS-optimized resumes.

CRITICAL RULES:
1. NEVER fabricate experience, skills, or achievements
2. Only highlight and reframe EXISTING qualifications
3. Use keywords from the job description naturally
4. Quantify achievements wherever data is available
5. Keep format clean and ATS-friendly (no tables, columns, or graphics)
6. Maximum 2 pages
7. Use the provided matched content and reframed text exactly as given
8. Include the candidate's contact details and standard section headers \
(Experience, Education, Skills)

Output the resume in clean Markdown only."""


@dataclass
class GenerationContext:
    """Everything one generation attempt needs besides the plan."""

    job: JobPosting
    profile: CandidateProfile
    company: CompanyProfile | None = None
    existing_resume: str | None = None
    focus_areas: list[str] = field(default_factory=list)
    max_length: str | None = None
    library_patterns: list[ApplicablePattern] = field(default_factory=list)


class ResumeGenerator:
    def __init__(
        self,
        llm: LLMClient,
        model: str = DEFAULT_GENERATION_MODEL,
        temperature: float = 0.5,
    ):
        self.llm = llm
        self.model = model
        self.temperature = temperature

    async def generate(
        self,
        context: GenerationContext,
        plan: AssemblyPlan,
        feedback: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Generate a resume; *feedback* carries the previous attempt's suggestions."""
        check_cancelled(cancel_event, "Generation")
        prompt = self._build_prompt(context, plan, feedback or [])
        try:
            response = await self.llm.generate(
                prompt=prompt,
                system=SYSTEM_PROMPT,
                model=self.model,
                temperature=self.temperature,
                max_tokens=4000,
            )
        except LLMError as exc:
            raise GenerationError(f"Resume generation failed: {exc}") from exc

        document = response.text.strip()
        if not document:
            raise GenerationError("Resume generation returned an empty document")
        return document

    def _build_prompt(
        self,
        context: GenerationContext,
        plan: AssemblyPlan,
        feedback: list[str],
    ) -> str:
        sections = [
            self._format_job(context.job),
            self._format_company(context.company),
            self._format_profile(context.profile),
            self._format_existing(context.existing_resume),
            self._format_plan(plan),
            self._format_patterns(context.library_patterns),
            self._format_feedback(feedback),
            self._format_focus(context.focus_areas, context.max_length),
        ]
        instructions = [
            "Uses the EXACT matched content and reframed text provided above",
            "Emphasizes the candidate's most relevant experience for this role",
            "Incorporates required and preferred skills naturally",
            "Addresses identified gaps through strategic framing (not fabrication)",
            "Highlights achievements with quantifiable results",
            "Uses language and keywords from the job description",
        ]
        if feedback:
            instructions.append("Addresses all improvement suggestions from the quality check")

        body = "\n\n".join(s for s in sections if s)
        numbered = "\n".join(f"{i}. {line}" for i, line in enumerate(instructions, 1))
        return f"{body}\n\n---\n\nCreate a tailored resume that:\n{numbered}"

    @staticmethod
    def _format_job(job: JobPosting) -> str:
        lines = ["# Job Details", f"**Position:** {job.title}", f"**Company:** {job.company}"]
        if job.location:
            remote = " (Remote)" if job.is_remote else ""
            lines.append(f"**Location:** {job.location}{remote}")
        lines.append(f"\n**Description:**\n{job.description}")
        return "\n".join(lines)

    @staticmethod
    def _format_company(company: CompanyProfile | None) -> str:
        if company is None:
            return ""
        return "\n".join([
            "# Company Research",
            f"**Industry:** {company.industry or 'N/A'}",
            f"**Culture:** {', '.join(company.culture_values) or 'N/A'}",
            f"**Technologies:** {', '.join(company.tech_stack) or 'N/A'}",
        ])

    @staticmethod
    def _format_profile(profile: CandidateProfile) -> str:
        lines = ["# Candidate Profile", f"**Name:** {profile.full_name}"]
        if profile.email:
            lines.append(f"**Email:** {profile.email}")
        if profile.phone:
            lines.append(f"**Phone:** {profile.phone}")
        if profile.location:
            lines.append(f"**Location:** {profile.location}")
        lines.append(f"**Headline:** {profile.headline or 'Professional'}")
        lines.append(f"\n**Summary:**\n{profile.summary or 'Not provided'}")
        lines.append(f"\n**Skills:** {', '.join(profile.skills)}")

        lines.append("\n**Experience:**")
        for exp in profile.experience:
            end = "Present" if exp.current else exp.end_date or "N/A"
            lines.append(f"\n### {exp.title} at {exp.company}\n{exp.start_date} - {end}")
            if exp.location:
                lines.append(f"Location: {exp.location}")
            if exp.description:
                lines.append(exp.description)
            if exp.skills:
                lines.append(f"Technologies: {', '.join(exp.skills)}")

        lines.append("\n**Education:**")
        for edu in profile.education:
            field_text = f" in {edu.field}" if edu.field else ""
            lines.append(
                f"- {edu.degree}{field_text} - {edu.institution} "
                f"({edu.start_date or ''} - {edu.end_date or ''})"
            )
        return "\n".join(lines)

    @staticmethod
    def _format_existing(existing_resume: str | None) -> str:
        if not existing_resume:
            return ""
        return f"# Current Resume (reference for structure and facts)\n{existing_resume}"

    @staticmethod
    def _format_plan(plan: AssemblyPlan) -> str:
        matched = [
            f"- {m.requirement} ({m.confidence.tier}, {m.confidence.overall}%): "
            f"{m.selected_content or 'No content'}"
            for m in plan.matched_requirements
            if m.confidence.overall >= MATCH_DISPLAY_THRESHOLD
        ]
        gaps = [
            f"- {g.requirement} ({g.severity}): "
            f"{g.mitigation_strategies[0].description if g.mitigation_strategies else 'No mitigation'}"
            for g in plan.gaps
            if g.severity != GapSeverity.MINOR
        ]

        parts = ["# Assembly Plan", "**Matched Requirements (Use This Content):**"]
        parts.append("\n".join(matched) or "- None")
        if gaps:
            parts.append("**Gaps to Address Strategically:**")
            parts.append("\n".join(gaps))
        if plan.cover_letter_recommendations:
            parts.append(
                "**Note:** Some gaps are better addressed in the cover letter "
                "rather than stretching resume content."
            )
        return "\n".join(parts)

    @staticmethod
    def _format_patterns(patterns: list[ApplicablePattern]) -> str:
        if not patterns:
            return ""
        lines = ["# Patterns From Past Successful Resumes"]
        lines.extend(f"- [{p.pattern_type}] {p.description}" for p in patterns)
        return "\n".join(lines)

    @staticmethod
    def _format_feedback(feedback: list[str]) -> str:
        if not feedback:
            return ""
        lines = ["# Improvements Needed (Previous Attempt Failed Quality Check)"]
        lines.extend(f"- {s}" for s in feedback)
        return "\n".join(lines)

    @staticmethod
    def _format_focus(focus_areas: list[str], max_length: str | None) -> str:
        lines = []
        if focus_areas:
            lines.append(f"**Focus Areas:** {', '.join(focus_areas)}")
        if max_length:
            lines.append(f"**Target Length:** {LENGTH_LABELS.get(max_length, max_length)}")
        return "\n".join(lines)
