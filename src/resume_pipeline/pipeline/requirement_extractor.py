"""Requirement Extractor - turns a job posting into atomic requirements."""

from __future__ import annotations

import asyncio
import logging

from resume_pipeline.clients.llm_client import DEFAULT_MODEL, LLMClient, LLMError
from resume_pipeline.errors import RequirementExtractionError, check_cancelled
from resume_pipeline.models.profile import JobPosting
from resume_pipeline.models.requirement import Importance, Requirement, SkillCategory
from resume_pipeline.utils.normalize import parse_or_default

logger = logging.getLogger(__name__)

IMPORTANCE_ALIASES = {"must_have": Importance.REQUIRED, "must have": Importance.REQUIRED}

SYSTEM_PROMPT = """\
You are a recruiting analyst. You extract the skills and qualifications a job \
posting asks for and answer only with a JSON array.

Each element has this structure:
{
  "name": "skill name (normalized, e.g., 'Python' not 'python programming')",
  "category": "one of: programming_language, framework, database, cloud, devops, soft_skill, methodology, tool, domain, certification, other",
  "importance": "one of: required, preferred, nice_to_have",
  "yearsRequired": number or null,
  "sourceText": "brief quote from the posting showing the skill"
}

Guidelines:
- Normalize skill names (e.g., "JS" -> "JavaScript", "React.js" -> "React")
- Use "required" for explicit requirements and "preferred" for nice-to-haves
- Include years of experience if mentioned
- Keep sourceText brief (max 50 chars)
- Do not infer requirements the posting does not state"""


def format_posting(job: JobPosting) -> str:
    parts = [f"Position: {job.title}", f"Company: {job.company}"]
    if job.experience_level:
        parts.append(f"Experience level: {job.experience_level}")
    parts.append(f"\n{job.description}")
    if job.requirements:
        parts.append("\nListed requirements:")
        parts.extend(f"- {r}" for r in job.requirements)
    return "\n".join(parts)


def _importance(raw: object) -> Importance:
    if isinstance(raw, str) and raw.strip().lower() in IMPORTANCE_ALIASES:
        return IMPORTANCE_ALIASES[raw.strip().lower()]
    return parse_or_default(raw, Importance.NICE_TO_HAVE)


class RequirementExtractor:
    def __init__(self, llm: LLMClient, model: str = DEFAULT_MODEL):
        self.llm = llm
        self.model = model

    async def extract(
        self,
        job: JobPosting,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Requirement]:
        """Extract requirements; raises RequirementExtractionError on any failure."""
        check_cancelled(cancel_event, "Requirement extraction")
        prompt = f"""Extract all skills from the following job description. Identify required vs preferred skills.

---
{format_posting(job)}
---

Return ONLY the JSON array."""

        try:
            data = await self.llm.generate_json(
                prompt=prompt,
                system=SYSTEM_PROMPT,
                model=self.model,
                temperature=0.1,
                max_tokens=2000,
                expect=list,
            )
        except LLMError as exc:
            raise RequirementExtractionError(f"Requirement extraction failed: {exc}") from exc

        requirements: dict[str, Requirement] = {}
        for item in data:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            if not isinstance(name, str) or not name.strip():
                continue
            years = item.get("yearsRequired")
            source = item.get("sourceText")
            req = Requirement(
                name=name.strip(),
                category=parse_or_default(item.get("category"), SkillCategory.OTHER),
                importance=_importance(item.get("importance")),
                years_required=years if isinstance(years, int) and not isinstance(years, bool) else None,
                source_text=source if isinstance(source, str) else None,
            )
            requirements.setdefault(req.requirement_id, req)

        if data and not requirements:
            raise RequirementExtractionError("No usable requirements in extraction output")
        logger.info("Extracted %d requirements for %s", len(requirements), job.title)
        return list(requirements.values())
