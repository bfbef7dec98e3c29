"""Sumble API client for verified organization and people data.

Provides async access to Sumble v2 endpoints for:
- Technology stack (verified from job posts)
- Executive contacts
- Organization metadata (industry, headcount, headquarters)

API Documentation: https://docs.sumble.com

Usage:
    from dossier.config import settings
    from dossier.clients.sumble import SumbleClient

    async with SumbleClient(settings.sumble_api_key) as client:
        result = await client.fetch("acme.com", "tech_stack")
        for tech in result.data:
            print(tech["name"], tech["jobs_count"])
"""

import logging
from typing import Any

from dossier.clients.base import APIProviderError, BaseAsyncClient, ProviderResult
from dossier.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

# Categories that carry the strongest buying signals; each extra category costs credits
TECH_CATEGORIES = [
    "cloud-vendor",
    "cloud-data-warehouse",
    "data-pipeline-orchestration",
    "gen-ai",
    "business-intelligence",
    "ci-cd",
    "customer-data-platform",
    "cybersecurity",
]

DEFAULT_JOB_LEVELS = ["CXO", "VP", "Director"]
DEFAULT_JOB_FUNCTIONS = [
    "Executive",
    "Engineering",
    "Product",
    "Sales",
    "Marketing",
    "Operations",
]

COST_PER_CREDIT = 0.04  # USD

CAPABILITIES = ("tech_stack", "contacts", "organization")


class SumbleClient(BaseAsyncClient):
    """Async client for the Sumble v2 API.

    An instance without an API key is valid but unconfigured: fetch()
    raises ProviderUnavailable so callers fall back immediately.

    Args:
        api_key: Sumble API key (from settings.sumble_api_key)
        base_url: API base URL
        rate_limit: Max requests per second (default: 5)
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.sumble.com/v2",
        rate_limit: int = 5,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            rate_limit=rate_limit,
        )
        self.api_key = api_key
        self.credits_remaining: int | None = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def calculate_cost(credits_used: int) -> float:
        """Convert credits to USD."""
        if not credits_used or credits_used <= 0:
            return 0.0
        return round(credits_used * COST_PER_CREDIT, 2)

    def _track_credits(self, data: dict[str, Any]) -> int:
        if data.get("credits_remaining") is not None:
            self.credits_remaining = data["credits_remaining"]
        return int(data.get("credits_used") or 0)

    async def get_tech_stack(
        self,
        domain: str,
        technologies: list[str] | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Get technologies an organization uses, verified from job posts.

        Args:
            domain: Company domain (e.g., "anthropic.com")
            technologies: Specific technologies to look for. Defaults to
                the TECH_CATEGORIES category filter.

        Returns:
            (technologies, credits_used). Each technology dict has name,
            jobs_count, teams_count, people_count, last_job_post,
            jobs_data_url, teams_data_url.
        """
        filters: dict[str, Any] = {}
        if technologies:
            filters["technologies"] = technologies
        else:
            filters["technology_categories"] = TECH_CATEGORIES

        data = await self.post(
            "/organizations/enrich",
            json_data={"organization": {"domain": domain}, "filters": filters},
        )
        credits = self._track_credits(data)
        return list(data.get("technologies") or []), credits

    async def find_contacts(
        self,
        domain: str,
        job_levels: list[str] | None = None,
        job_functions: list[str] | None = None,
        limit: int = 10,
    ) -> tuple[list[dict[str, Any]], int]:
        """Find senior people at an organization.

        A filtered search that returns nobody is repeated once without
        level/function filters.

        Args:
            domain: Company domain
            job_levels: Seniority filter (default: CXO, VP, Director)
            job_functions: Function filter (default: DEFAULT_JOB_FUNCTIONS)
            limit: Max people returned

        Returns:
            (people, credits_used). Each person dict has name, job_title,
            linkedin_url, job_function, job_level, location, country,
            country_code, start_date, id, url.
        """
        payload = {
            "organization": {"domain": domain},
            "filters": {
                "job_levels": job_levels if job_levels is not None else DEFAULT_JOB_LEVELS,
                "job_functions": (
                    job_functions if job_functions is not None else DEFAULT_JOB_FUNCTIONS
                ),
            },
            "limit": limit,
        }
        data = await self.post("/people/find", json_data=payload)
        credits = self._track_credits(data)
        people = list(data.get("people") or [])

        if not people:
            logger.info("No filtered contacts at %s, retrying without filters", domain)
            payload["filters"] = {"job_levels": [], "job_functions": []}
            data = await self.post("/people/find", json_data=payload)
            credits += self._track_credits(data)
            people = list(data.get("people") or [])

        return people, credits

    async def get_organization(self, domain: str) -> tuple[dict[str, Any] | None, int]:
        """Look up organization metadata by exact domain match.

        Args:
            domain: Company domain

        Returns:
            (organization or None, credits_used). The organization dict has
            industry, total_employees, headquarters_state,
            headquarters_country, linkedin_url.
        """
        name = domain.split(".")[0]
        data = await self.post(
            "/organizations/find",
            json_data={"filters": {"query": f"organization EQ '{name}'"}, "limit": 5},
        )
        credits = self._track_credits(data)

        match = next(
            (org for org in data.get("organizations") or [] if org.get("domain") == domain),
            None,
        )
        if match is None:
            return None, credits

        return {
            "id": match.get("id"),
            "name": match.get("name"),
            "domain": match.get("domain"),
            "industry": match.get("industry") or None,
            "total_employees": match.get("total_employees") or None,
            "headquarters_state": match.get("headquarters_state") or None,
            "headquarters_country": match.get("headquarters_country") or None,
            "linkedin_url": match.get("linkedin_organization_url") or None,
        }, credits

    async def fetch(self, identifier: str, capability: str, **params: Any) -> ProviderResult:
        """Query one capability for a domain through the uniform envelope.

        Args:
            identifier: Company domain
            capability: One of "tech_stack", "contacts", "organization"
            **params: Passed through to the capability method

        Returns:
            ProviderResult. An empty answer is a failure with zero-or-more
            credits consumed, so callers can fall back.

        Raises:
            ProviderUnavailable: If no API key is configured
            ValueError: On an unknown capability
        """
        if not self.configured:
            raise ProviderUnavailable("sumble", "API key not configured")
        if capability not in CAPABILITIES:
            raise ValueError(f"Unknown Sumble capability: {capability}")

        try:
            if capability == "tech_stack":
                data, credits = await self.get_tech_stack(identifier, **params)
            elif capability == "contacts":
                data, credits = await self.find_contacts(identifier, **params)
            else:
                data, credits = await self.get_organization(identifier)
        except APIProviderError as e:
            logger.warning("Sumble %s for %s failed: %s", capability, identifier, e)
            return ProviderResult.fail(str(e), status_code=e.status_code)

        logger.info(
            "Sumble %s for %s: %d credits ($%.2f), %s remaining",
            capability, identifier, credits, self.calculate_cost(credits),
            self.credits_remaining if self.credits_remaining is not None else "unknown",
        )

        if not data:
            return ProviderResult.fail(
                f"No {capability} data for {identifier}", units_consumed=credits
            )
        return ProviderResult.ok(data, units_consumed=credits)
