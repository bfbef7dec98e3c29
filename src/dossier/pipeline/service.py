"""Cached analysis facade.

The request pattern callers (an HTTP route, the CLI) use around the
orchestrator:

1. Serve a valid cached record; an invalid one is purged everywhere
2. Otherwise share an in-flight fetch for the same key if there is one
3. Otherwise register a fetch, run it, cache the record, clear the registration
4. Record an audit row for every outcome

Usage:
    async with CacheService.from_settings() as cache, Orchestrator.from_settings(cache=cache) as orch:
        service = AnalysisService(orch, cache)
        response = await service.company("Acme Corp")
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from dossier.cache import CacheService, ValidationReport, generate_company_key, generate_person_key
from dossier.errors import public_error
from dossier.pipeline.orchestrator import Orchestrator
from dossier.pipeline.results import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResponse:
    """What a caller gets back from AnalysisService."""

    success: bool
    data: dict[str, Any] | None = None
    cached: bool = False
    coalesced: bool = False
    usage: dict[str, int] | None = None
    cost_breakdown: dict[str, float] | None = None
    error: str | None = None
    status: int = 200

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "data": self.data,
            "cached": self.cached,
            "coalesced": self.coalesced,
        }
        if self.usage is not None:
            result["usage"] = self.usage
        if self.cost_breakdown is not None:
            result["costBreakdown"] = self.cost_breakdown
        if self.error is not None:
            result["error"] = self.error
            result["status"] = self.status
        return result


class AnalysisService:
    """Serves company and person analyses through the cache.

    Args:
        orchestrator: Runs fresh analyses
        cache: Two-tier cache; its store (if any) also receives audit rows
    """

    def __init__(self, orchestrator: Orchestrator, cache: CacheService) -> None:
        self.orchestrator = orchestrator
        self.cache = cache

    async def company(self, company_name: str) -> AnalysisResponse:
        return await self._serve(
            key=generate_company_key(company_name),
            entity_type="company",
            entity_name=company_name,
            validator=self.cache.validate_company,
            run=lambda: self.orchestrator.analyze_company(company_name),
        )

    async def person(self, name: str, title: str = "", company: str = "") -> AnalysisResponse:
        return await self._serve(
            key=generate_person_key(name, company),
            entity_type="person",
            entity_name=name,
            validator=self.cache.validate_person,
            run=lambda: self.orchestrator.analyze_person(name, title, company),
        )

    async def _serve(
        self,
        key: str,
        entity_type: str,
        entity_name: str,
        validator: Callable[[Any], ValidationReport],
        run: Callable[[], Awaitable[AnalysisResult]],
    ) -> AnalysisResponse:
        cached = await self.cache.get(key)
        if cached is not None:
            report = validator(cached)
            if report.valid:
                logger.info("Serving %s from cache", key)
                await self._audit(entity_type, entity_name, "cached", key)
                return AnalysisResponse(success=True, data=cached, cached=True)
            logger.warning("Discarding invalid cached record %s: %s", key, report.errors)
            await self.cache.delete_from_all_sources(key)

        if self.cache.has_pending_request(key):
            shared = await self.cache.wait_for_pending_request(key)
            if shared is not None:
                await self._audit(entity_type, entity_name, "coalesced", key)
                return AnalysisResponse(success=True, data=shared.data, coalesced=True)
            logger.info("Shared request for %s did not produce a record, fetching", key)

        future = self.cache.register_pending_request(key, self._run_and_store(key, run))
        try:
            result = await future
        except Exception as e:
            error = public_error(e)
            logger.error("Analysis of %s %s failed: %s", entity_type, entity_name, e)
            await self._audit(entity_type, entity_name, "failed", None)
            return AnalysisResponse(success=False, error=error.message, status=error.status)
        finally:
            self.cache.clear_pending_request(key, future)

        await self._audit(entity_type, entity_name, "fresh", key, result.primary_units_used)
        return AnalysisResponse(
            success=True,
            data=result.data,
            usage=result.usage.to_dict(),
            cost_breakdown=result.cost_breakdown,
        )

    async def _run_and_store(
        self,
        key: str,
        run: Callable[[], Awaitable[AnalysisResult]],
    ) -> AnalysisResult:
        """Run an analysis and cache it before anyone sees the result."""
        result = await run()
        if result.success and result.data is not None:
            await self.cache.set(key, result.data)
        return result

    async def _audit(
        self,
        entity_type: str,
        entity_name: str,
        outcome: str,
        cache_key: str | None,
        units_consumed: int = 0,
    ) -> None:
        if self.cache.store is None:
            return
        try:
            await self.cache.store.record_audit(
                entity_type, entity_name, outcome, cache_key=cache_key, units_consumed=units_consumed,
            )
        except Exception as e:
            logger.warning("Audit row for %s %s not recorded: %s", entity_type, entity_name, e)
