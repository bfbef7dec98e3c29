"""Task Template Registry.

A closed set of named knowledge-retrieval tasks. Each TaskSpec pairs the
prompt text from dossier.tasks.prompts with token, temperature and search
settings. Search settings come from the declarative SEARCH_CONFIG table,
which is validated against the task list at import.

Usage:
    from dossier.tasks import TASKS, get_task

    spec = get_task("recent_news")
    messages = spec.build_messages("Acme Corp")
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dossier.errors import TaskBuildError
from dossier.tasks import prompts

# Token budgets
TOKEN_LIMITS = {
    "minimal": 300,
    "small": 700,
    "medium": 1200,
    "large": 1600,
    "xlarge": 2000,
}

# Sampling temperatures
TEMPERATURES = {
    "factual": 0.0,  # Financial data, dates
    "low_variance": 0.1,  # News, events
    "balanced": 0.2,  # Analysis
}


class SearchConfig(BaseModel):
    """Web search settings for one task."""

    model_config = ConfigDict(frozen=True)

    domains: tuple[str, ...] = Field(default=(), description="Restrict search to these domains")
    recency: Literal["day", "week", "month", "year"] | None = Field(
        default=None,
        description="Only consider sources this recent",
    )
    context_size: Literal["low", "medium", "high"] = Field(
        default="medium",
        description="Amount of retrieved context given to the model",
    )

    @field_validator("domains")
    @classmethod
    def validate_domains(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Domains are bare hostnames."""
        for domain in v:
            if "/" in domain or " " in domain or "." not in domain:
                raise ValueError(f"search domain must be a bare hostname, got '{domain}'")
        return v


_NEWS_DOMAINS = ("reuters.com", "bloomberg.com", "businesswire.com", "techcrunch.com", "forbes.com")
_SOCIAL_DOMAINS = ("linkedin.com", "twitter.com", "medium.com", "techcrunch.com", "forbes.com")

SEARCH_CONFIG: Mapping[str, SearchConfig] = MappingProxyType({
    "company_domain": SearchConfig(context_size="medium"),
    "financial_snapshot": SearchConfig(
        domains=(
            "finance.yahoo.com",
            "marketwatch.com",
            "bloomberg.com",
            "sec.gov",
            "investor.gov",
            "morningstar.com",
            "investing.com",
        ),
        recency="day",
        context_size="high",
    ),
    "private_financials": SearchConfig(
        domains=(
            "crunchbase.com",
            "pitchbook.com",
            "techcrunch.com",
            "businesswire.com",
            "prnewswire.com",
        ),
        context_size="high",
    ),
    "recent_news": SearchConfig(domains=_NEWS_DOMAINS, recency="month"),
    "growth_events": SearchConfig(recency="year", context_size="high"),
    "company_challenges": SearchConfig(recency="year", context_size="high"),
    "industry_context": SearchConfig(context_size="high"),
    "tech_stack": SearchConfig(
        domains=("stackshare.io", "builtwith.com", "linkedin.com", "github.com", "medium.com"),
        recency="year",
    ),
    "priority_contacts": SearchConfig(context_size="medium"),
    "organization_profile": SearchConfig(context_size="medium"),
    "company_intelligence": SearchConfig(context_size="high"),
    "company_activity": SearchConfig(recency="year", context_size="high"),
    "person_basic_info": SearchConfig(context_size="medium"),
    "person_media_presence": SearchConfig(domains=_SOCIAL_DOMAINS, recency="month"),
    "person_social_activity": SearchConfig(domains=_SOCIAL_DOMAINS, recency="month"),
    "person_quoted_challenges": SearchConfig(recency="year", context_size="high"),
    "person_risk_signals": SearchConfig(recency="year", context_size="high"),
})


@dataclass(frozen=True)
class TaskSpec:
    """One named knowledge-retrieval task.

    Attributes:
        name: Registry key
        system: System instruction text
        build_user: Prompt builder taking the entity arguments
        max_tokens: Completion token limit
        temperature: Sampling temperature
        search: Web search settings
    """

    name: str
    system: str
    build_user: Callable[..., str]
    max_tokens: int
    temperature: float
    search: SearchConfig

    def build_messages(self, *args: Any) -> list[dict[str, str]]:
        """Render the chat messages for this task.

        Raises:
            TaskBuildError: If the prompt builder fails
        """
        try:
            user = self.build_user(*args)
        except Exception as e:
            raise TaskBuildError(self.name, str(e)) from e
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": user},
        ]


def _spec(name: str, tokens: str, temperature: str = "low_variance") -> TaskSpec:
    return TaskSpec(
        name=name,
        system=prompts.SYSTEMS[name],
        build_user=prompts.BUILDERS[name],
        max_tokens=TOKEN_LIMITS[tokens],
        temperature=TEMPERATURES[temperature],
        search=SEARCH_CONFIG[name],
    )


TASKS: Mapping[str, TaskSpec] = MappingProxyType({
    spec.name: spec
    for spec in (
        _spec("company_domain", "minimal", "factual"),
        _spec("financial_snapshot", "large", "factual"),
        _spec("private_financials", "large", "factual"),
        _spec("recent_news", "medium"),
        _spec("growth_events", "medium"),
        _spec("company_challenges", "xlarge"),
        _spec("industry_context", "medium"),
        _spec("tech_stack", "small"),
        _spec("priority_contacts", "medium"),
        _spec("organization_profile", "minimal", "factual"),
        _spec("company_intelligence", "medium", "balanced"),
        _spec("company_activity", "large"),
        _spec("person_basic_info", "small", "factual"),
        _spec("person_media_presence", "large"),
        _spec("person_social_activity", "large"),
        _spec("person_quoted_challenges", "medium"),
        _spec("person_risk_signals", "medium", "balanced"),
    )
})


def get_task(name: str) -> TaskSpec:
    """Look up a task by name.

    Raises:
        TaskBuildError: If no task has that name
    """
    try:
        return TASKS[name]
    except KeyError:
        raise TaskBuildError(name, "unknown task") from None


def validate_registry(
    tasks: Mapping[str, TaskSpec] = TASKS,
    search_config: Mapping[str, SearchConfig] = SEARCH_CONFIG,
) -> None:
    """Check the task table and search table describe the same tasks.

    Raises:
        ValueError: On a task without search settings, a search entry
            without a task, or an out-of-range token or temperature setting
    """
    missing = set(tasks) - set(search_config)
    if missing:
        raise ValueError(f"tasks without search configuration: {sorted(missing)}")
    orphaned = set(search_config) - set(tasks)
    if orphaned:
        raise ValueError(f"search configuration for unknown tasks: {sorted(orphaned)}")
    for name, spec in tasks.items():
        if spec.name != name:
            raise ValueError(f"task registered as '{name}' is named '{spec.name}'")
        if spec.max_tokens <= 0:
            raise ValueError(f"task '{name}' has non-positive max_tokens")
        if not 0.0 <= spec.temperature <= 2.0:
            raise ValueError(f"task '{name}' temperature out of range: {spec.temperature}")


validate_registry()
