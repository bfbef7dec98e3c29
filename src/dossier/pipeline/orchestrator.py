"""Orchestrator: runs named tasks and the fixed analysis pipeline.

Company pipeline:
  Domain: resolve the canonical domain (knowledge task, deterministic fallback)
  Batch 1: snapshot, news, growth, challenges, industry (fail-fast)
  Private financials: only for private companies, screened for fabrication
  Batch 2: tech stack, contacts, organization from the primary source,
           each falling back to a knowledge task (tolerant)
  Batch 3: company intelligence (uses Batch 1 context) and activity
           merged with Batch 2 hiring signals (tolerant)
  Combine: one record plus usage, cost and data-source breakdowns

Person pipeline: five independent tasks joined tolerantly.

Usage:
    async with Orchestrator.from_settings() as orchestrator:
        result = await orchestrator.analyze_company("Acme Corp")
        print(result.to_dict()["costBreakdown"])
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from dossier.cache import CacheService, component_key, extract_domain
from dossier.clients.base import APIProviderError, Provider, ProviderResult
from dossier.clients.perplexity import CompletionRequest, PerplexityClient
from dossier.clients.sumble import SumbleClient
from dossier.errors import (
    DossierError,
    ProviderUnavailable,
    ResponseParseError,
    TaskBuildError,
    TaskExecutionError,
    ValidationError,
)
from dossier.parsing import extract_structure, screen_private_financials, validate
from dossier.pipeline import combine, enrichment
from dossier.pipeline.results import AnalysisResult, TaskResult, Usage, cost_breakdown
from dossier.schemas import SCHEMA_VERSION
from dossier.tasks import TASKS, TaskSpec

logger = logging.getLogger(__name__)

BATCH1_TASKS = (
    "financial_snapshot",
    "recent_news",
    "growth_events",
    "company_challenges",
    "industry_context",
)
PERSON_TASKS = (
    "person_basic_info",
    "person_media_presence",
    "person_social_activity",
    "person_quoted_challenges",
    "person_risk_signals",
)

# Errors that make one attempt fail and another attempt worthwhile
_RETRYABLE = (APIProviderError, TimeoutError, ResponseParseError, ValidationError)


class JoinPolicy(str, Enum):
    """How a batch reacts to a failing member."""

    FAIL_FAST = "fail_fast"  # first failure cancels the siblings and propagates
    TOLERANT = "tolerant"  # failures are logged and replaced by defaults


DEFAULT_POLICIES = {
    "batch1": JoinPolicy.FAIL_FAST,
    "batch2": JoinPolicy.TOLERANT,
    "batch3": JoinPolicy.TOLERANT,
    "person": JoinPolicy.TOLERANT,
}


class Orchestrator:
    """Coordinates the knowledge and primary providers through the pipeline.

    Args:
        knowledge: Knowledge-retrieval provider (fetch answers tasks)
        primary: Primary-source provider (None means always fall back)
        cache: Cache for component sub-fetches such as the tech stack
        registry: Task table (default: TASKS)
        max_attempts: Attempts per task
        backoff_base: Base retry delay in seconds; attempt n waits base * 2**(n-1)
        call_timeout: Wall-clock bound on each external call in seconds
        policies: Join policy per batch name
        fabrication_threshold: Funding signals that trigger sentinel substitution
        tech_stack_ttl: Cache lifetime of primary tech stack lookups in seconds
        contacts_limit: Maximum contacts requested from the primary source
        model: Knowledge model id, used for pricing
        today: Reference-date source (for tenure, hiring and fabrication checks)
    """

    def __init__(
        self,
        knowledge: Provider,
        primary: Provider | None = None,
        cache: CacheService | None = None,
        registry: Mapping[str, TaskSpec] = TASKS,
        max_attempts: int = 2,
        backoff_base: float = 1.0,
        call_timeout: float = 120.0,
        policies: Mapping[str, JoinPolicy | str] | None = None,
        fabrication_threshold: int = 2,
        tech_stack_ttl: float = 7 * 86400,
        contacts_limit: int = 10,
        model: str = "sonar",
        today: Callable[[], date] = date.today,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.knowledge = knowledge
        self.primary = primary
        self.cache = cache
        self.registry = registry
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.call_timeout = call_timeout
        self.policies = dict(DEFAULT_POLICIES)
        for batch, policy in (policies or {}).items():
            self.policies[batch] = JoinPolicy(policy)
        self.fabrication_threshold = fabrication_threshold
        self.tech_stack_ttl = tech_stack_ttl
        self.contacts_limit = contacts_limit
        self.model = model
        self._today = today
        self._stack: AsyncExitStack | None = None

    @classmethod
    def from_settings(cls, cfg: Any = None, cache: CacheService | None = None) -> "Orchestrator":
        """Build an orchestrator with Perplexity and Sumble clients from Settings."""
        if cfg is None:
            from dossier.config import settings as cfg
        knowledge = PerplexityClient(
            api_key=cfg.perplexity_api_key,
            model=cfg.perplexity_model,
            base_url=cfg.perplexity_base_url,
            rate_limit=cfg.perplexity_rate_limit,
            timeout=cfg.call_timeout_seconds,
        )
        primary = SumbleClient(
            api_key=cfg.sumble_api_key,
            base_url=cfg.sumble_base_url,
            rate_limit=cfg.sumble_rate_limit,
        )
        return cls(
            knowledge=knowledge,
            primary=primary,
            cache=cache,
            max_attempts=cfg.task_max_attempts,
            backoff_base=cfg.task_backoff_seconds,
            call_timeout=cfg.call_timeout_seconds,
            policies=cfg.batch_policies,
            fabrication_threshold=cfg.fabrication_threshold,
            tech_stack_ttl=cfg.tech_stack_ttl_seconds,
            contacts_limit=cfg.contacts_limit,
            model=cfg.perplexity_model,
        )

    async def __aenter__(self) -> "Orchestrator":
        """Open provider clients that are async context managers."""
        self._stack = AsyncExitStack()
        for provider in (self.knowledge, self.primary):
            if provider is not None and hasattr(provider, "__aenter__"):
                await self._stack.enter_async_context(provider)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None

    # -- single task --------------------------------------------------------

    async def execute_task(
        self,
        name: str,
        *args: Any,
        search_overrides: dict[str, Any] | None = None,
    ) -> TaskResult:
        """Run one named knowledge task with retry.

        Args:
            name: Task name from the registry
            *args: Prompt builder arguments (entity name first)
            search_overrides: SearchConfig fields to override for this call

        Returns:
            Successful TaskResult with parsed, validated data

        Raises:
            TaskBuildError: Unknown task or prompt builder failure (not retried)
            ProviderUnavailable: Knowledge provider is not configured
            TaskExecutionError: Every attempt failed
        """
        spec = self.registry.get(name)
        if spec is None:
            raise TaskBuildError(name, "unknown task")
        messages = spec.build_messages(*args)

        search = spec.search
        if search_overrides:
            search = search.model_copy(update=search_overrides)
        request = CompletionRequest(
            messages=messages,
            max_tokens=spec.max_tokens,
            temperature=spec.temperature,
            search_domains=list(search.domains),
            search_recency=search.recency,
            search_context_size=search.context_size,
        )
        identifier = str(args[0]) if args else name

        usage = Usage()
        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with asyncio.timeout(self.call_timeout):
                    envelope = await self.knowledge.fetch(identifier, name, request=request)
                if not envelope.success:
                    raise APIProviderError(envelope.error or "provider failure", envelope.status_code)

                completion = envelope.data
                usage += Usage.from_dict(completion.usage)
                data = extract_structure(completion.content)
                warnings = validate(data, name)
            except _RETRYABLE as e:
                last_error = e
                if attempt < self.max_attempts:
                    delay = self.backoff_base * 2 ** (attempt - 1)
                    logger.warning(
                        "Task %s attempt %d/%d failed (%s), retrying in %.1fs",
                        name, attempt, self.max_attempts, e or type(e).__name__, delay,
                    )
                    await asyncio.sleep(delay)
                continue

            for warning in warnings:
                logger.warning("Task %s: %s", name, warning)
            logger.debug("Task %s succeeded on attempt %d", name, attempt)
            return TaskResult(
                task=name,
                success=True,
                data=data,
                attempts=attempt,
                usage=usage,
                citations=list(completion.citations),
                warnings=warnings,
            )

        logger.error("Task %s failed after %d attempts: %s", name, self.max_attempts, last_error)
        raise TaskExecutionError(name, self.max_attempts, last_error)

    # -- joins --------------------------------------------------------------

    async def _join(
        self,
        batch: str,
        coros: dict[str, Awaitable[TaskResult]],
    ) -> dict[str, TaskResult]:
        """Run a batch concurrently under its configured join policy."""
        tasks = {name: asyncio.ensure_future(coro) for name, coro in coros.items()}
        policy = self.policies.get(batch, JoinPolicy.TOLERANT)

        if policy is JoinPolicy.FAIL_FAST:
            try:
                values = await asyncio.gather(*tasks.values())
            except BaseException:
                for task in tasks.values():
                    if not task.done():
                        task.cancel()
                await asyncio.gather(*tasks.values(), return_exceptions=True)
                raise
            return dict(zip(tasks, values))

        values = await asyncio.gather(*tasks.values(), return_exceptions=True)
        results: dict[str, TaskResult] = {}
        for name, value in zip(tasks, values):
            if isinstance(value, asyncio.CancelledError):
                raise value
            if isinstance(value, BaseException):
                logger.warning("[%s] %s failed, using default: %s", batch, name, value)
                value = TaskResult.failure(name, value)
            results[name] = value
        return results

    # -- company ------------------------------------------------------------

    async def resolve_domain(self, company_name: str) -> tuple[str, TaskResult | None]:
        """Resolve a company's canonical domain.

        Returns:
            (domain, task result or None when the deterministic fallback was used)
        """
        try:
            result = await self.execute_task("company_domain", company_name)
        except DossierError as e:
            logger.warning("Domain lookup for %s failed: %s", company_name, e)
            result = None
        else:
            raw = str(result.data.get("domain") or "").strip().lower()
            if "." in raw and not any(c.isspace() for c in raw):
                return extract_domain(raw), result
            logger.warning("Domain lookup for %s returned unusable value %r", company_name, raw)

        domain = extract_domain(company_name)
        logger.info("Using derived domain %s for %s", domain, company_name)
        return domain, result

    async def _call_primary(self, domain: str, capability: str, **params: Any) -> ProviderResult:
        if self.primary is None:
            raise ProviderUnavailable("primary source")
        async with asyncio.timeout(self.call_timeout):
            return await self.primary.fetch(domain, capability, **params)

    async def _primary_with_fallback(
        self,
        capability: str,
        domain: str,
        company_name: str,
        fallback_task: str,
        formatter: Callable[[Any], Any],
        **params: Any,
    ) -> TaskResult:
        """Query the primary source, falling back to a knowledge task.

        Falls back when the primary source is unavailable, fails, or
        returns nothing usable. Fallback data is tagged unverified.
        """
        units = 0
        try:
            envelope = await self._call_primary(domain, capability, **params)
        except ProviderUnavailable as e:
            logger.info("Primary %s unavailable (%s), using %s", capability, e, fallback_task)
        except (APIProviderError, TimeoutError) as e:
            logger.warning("Primary %s for %s failed (%s), using %s", capability, domain, e, fallback_task)
        else:
            units = envelope.units_consumed
            data = formatter(envelope.data) if envelope.success and envelope.data else None
            if data:
                return TaskResult(
                    task=fallback_task,
                    success=True,
                    data=data,
                    attempts=1,
                    source=enrichment.PRIMARY_SOURCE,
                    units_consumed=units,
                )
            logger.warning(
                "Primary %s for %s returned nothing (%s), using %s",
                capability, domain, envelope.error or "empty", fallback_task,
            )

        result = await self.execute_task(fallback_task, company_name)
        if isinstance(result.data, list):
            result.data = enrichment.tag_fallback(result.data)
        elif isinstance(result.data, dict):
            result.data = {**result.data, "source": enrichment.FALLBACK_SOURCE, "verified": False}
        result.source = enrichment.FALLBACK_SOURCE
        result.units_consumed = units
        return result

    async def _tech_stack(self, domain: str, company_name: str) -> TaskResult:
        key = component_key("tech", domain)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached:
                logger.info("Tech stack for %s served from cache", domain)
                return TaskResult(
                    task="tech_stack", success=True, data=cached, source=enrichment.PRIMARY_SOURCE,
                )

        result = await self._primary_with_fallback(
            "tech_stack",
            domain,
            company_name,
            "tech_stack",
            lambda technologies: enrichment.format_tech_stack(technologies, self._today()),
        )
        if self.cache is not None and result.source == enrichment.PRIMARY_SOURCE:
            await self.cache.set(key, result.data, ttl=self.tech_stack_ttl)
        return result

    async def _contacts(self, domain: str, company_name: str) -> TaskResult:
        return await self._primary_with_fallback(
            "contacts",
            domain,
            company_name,
            "priority_contacts",
            lambda people: enrichment.format_contacts(people, self._today()),
            limit=self.contacts_limit,
        )

    async def _organization(self, domain: str, company_name: str) -> TaskResult:
        def _normalize(org: dict[str, Any]) -> dict[str, Any]:
            return {
                "industry": org.get("industry"),
                "employeeCount": org.get("total_employees"),
                "headquartersState": org.get("headquarters_state"),
                "headquartersCountry": org.get("headquarters_country"),
                "linkedinUrl": org.get("linkedin_url"),
                "source": enrichment.PRIMARY_SOURCE,
                "verified": True,
            }

        return await self._primary_with_fallback(
            "organization", domain, company_name, "organization_profile", _normalize,
        )

    async def _private_financials(self, company_name: str) -> TaskResult:
        """Fetch and screen private funding data. Never raises a task error."""
        try:
            result = await self.execute_task("private_financials", company_name)
        except (TaskExecutionError, ProviderUnavailable) as e:
            logger.warning("Private financials for %s unavailable: %s", company_name, e)
            return TaskResult.failure("private_financials", e)

        data, assessment = screen_private_financials(
            result.data,
            company_name=company_name,
            threshold=self.fabrication_threshold,
            today=self._today(),
        )
        result.data = data
        result.warnings.extend(assessment.signals)
        return result

    async def analyze_company(self, company_name: str) -> AnalysisResult:
        """Run the full company pipeline.

        Args:
            company_name: Company to analyze

        Returns:
            AnalysisResult with the combined record, usage and cost

        Raises:
            TaskExecutionError: A Batch 1 task exhausted its retries
            ProviderUnavailable: The knowledge provider is not configured
        """
        logger.info("Analyzing company %s", company_name)
        domain, domain_result = await self.resolve_domain(company_name)

        logger.info("[Batch 1] Core company data for %s", company_name)
        batch1 = await self._join(
            "batch1",
            {name: self.execute_task(name, company_name) for name in BATCH1_TASKS},
        )

        extra: dict[str, TaskResult] = {}
        snapshot = batch1["financial_snapshot"].data
        if isinstance(snapshot, dict) and snapshot.get("isPublic") is False:
            extra["private_financials"] = await self._private_financials(company_name)

        logger.info("[Batch 2] Primary-source data for %s (%s)", company_name, domain)
        batch2 = await self._join(
            "batch2",
            {
                "tech_stack": self._tech_stack(domain, company_name),
                "priority_contacts": self._contacts(domain, company_name),
                "organization_profile": self._organization(domain, company_name),
            },
        )

        logger.info("[Batch 3] Context-dependent data for %s", company_name)
        context = combine.build_context(batch1)
        batch3 = await self._join(
            "batch3",
            {
                "company_intelligence": self.execute_task(
                    "company_intelligence", company_name, context,
                ),
                "company_activity": self.execute_task("company_activity", company_name),
            },
        )

        tech_items = batch2["tech_stack"].data if batch2["tech_stack"].success else []
        signals = enrichment.hiring_signals(tech_items or [], today=self._today())
        activity = batch3["company_activity"]
        if signals:
            activity.data = enrichment.merge_activity(
                activity.data if activity.success else [], signals,
            )
            activity.success = True
            activity.source = enrichment.HYBRID_SOURCE

        results = {**batch1, **extra, **batch2, **batch3}
        record = combine.combine_company(company_name, domain, results, SCHEMA_VERSION)

        all_results = list(results.values()) + ([domain_result] if domain_result else [])
        usage = sum((r.usage for r in all_results), Usage())
        primary_units = sum(r.units_consumed for r in all_results)

        logger.info(
            "Company %s analyzed: %d tokens, %d primary credits",
            company_name, usage.total_tokens, primary_units,
        )
        return AnalysisResult(
            success=True,
            data=record,
            usage=usage,
            cost_breakdown=cost_breakdown(usage, primary_units, self.model),
            data_source_breakdown={
                "techStack": _source_of(batch2["tech_stack"]),
                "priorityContacts": _source_of(batch2["priority_contacts"]),
                "organization": _source_of(batch2["organization_profile"]),
                "companyActivity": _source_of(activity),
            },
            primary_units_used=primary_units,
        )

    # -- person -------------------------------------------------------------

    async def analyze_person(self, name: str, title: str = "", company: str = "") -> AnalysisResult:
        """Run the person pipeline; individual task failures become defaults."""
        logger.info("Analyzing person %s (%s at %s)", name, title or "?", company or "?")
        results = await self._join(
            "person",
            {task: self.execute_task(task, name, title, company) for task in PERSON_TASKS},
        )
        failed = [task for task, result in results.items() if not result.success]
        if failed:
            logger.warning("Person %s: %d/%d tasks defaulted: %s", name, len(failed), len(results), failed)

        record = combine.combine_person(
            name, title, company, results, SCHEMA_VERSION, today=self._today(),
        )
        usage = sum((r.usage for r in results.values()), Usage())
        return AnalysisResult(
            success=True,
            data=record,
            usage=usage,
            cost_breakdown=cost_breakdown(usage, 0, self.model),
        )


def _source_of(result: TaskResult) -> str:
    return result.source if result.success else "default"
