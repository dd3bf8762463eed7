"""Company Researcher - optional enrichment from web search."""

from __future__ import annotations

import asyncio
import logging

from resume_pipeline.clients.llm_client import DEFAULT_MODEL, LLMClient
from resume_pipeline.clients.search_client import SearchClient
from resume_pipeline.errors import check_cancelled
from resume_pipeline.models.company import CompanyProfile
from resume_pipeline.models.profile import JobContext

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a recruiting-market researcher. From web search results about a \
company you write a compact company profile for a job applicant.

Respond ONLY with JSON in this format:
{
  "name": "Company name",
  "industry": "Industry",
  "description": "2-3 sentence description",
  "culture_values": ["value 1", "value 2"],
  "tech_stack": ["technology 1", "technology 2"],
  "recent_news": ["recent news item 1", "recent news item 2"]
}

Only include facts supported by the search results."""


class CompanyResearcher:
    def __init__(
        self,
        llm: LLMClient,
        search: SearchClient,
        model: str = DEFAULT_MODEL,
    ):
        self.llm = llm
        self.search = search
        self.model = model

    async def research(
        self,
        company_name: str,
        job_context: JobContext,
        cancel_event: asyncio.Event | None = None,
    ) -> CompanyProfile:
        """Research a company and return a structured profile."""
        check_cancelled(cancel_event, "Company research")
        results = await self._search_company(company_name, job_context.title)
        check_cancelled(cancel_event, "Company research")

        prompt = f"""Write the company profile of '{company_name}' from these search results.
The applicant is targeting the role: {job_context.title}.

Search results:
{self._format_search_results(results)}

Respond only in JSON."""

        data = await self.llm.generate_json(
            prompt=prompt,
            system=SYSTEM_PROMPT,
            model=self.model,
            expect=dict,
        )
        data.setdefault("name", company_name)
        return CompanyProfile(**data)

    async def _search_company(self, company_name: str, role: str) -> list[dict]:
        """Run the culture, stack and news searches concurrently."""
        queries = [
            f"{company_name} company culture values",
            f"{company_name} technology stack {role}",
            f"{company_name} recent news business direction",
        ]
        batches = await asyncio.gather(*(self.search.search(q) for q in queries))
        results = [r for batch in batches for r in batch]
        logger.info("Company research for %s: %d search results", company_name, len(results))
        return results

    @staticmethod
    def _format_search_results(results: list[dict]) -> str:
        return "\n".join(
            f"[{i}] {r['title']}\n{r['content']}\n" for i, r in enumerate(results, 1)
        )
