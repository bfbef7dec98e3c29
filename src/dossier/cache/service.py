"""Two-tier cache with schema versioning and request coalescing.

L1 is an in-process LRU map with sliding TTL. L2 is the SQLite store and
only holds complete analyses (company:* and person:* keys). Every entry is
tagged with the schema version it was written under; a version mismatch in
either tier reads as a miss, so bumping the version invalidates everything
without a migration.

Pending-request coalescing lets concurrent callers share one in-flight
fetch per key. Each registration owns a cancellable safety timer that
force-clears it if the owner never does.

All state is mutated only from the event loop thread, so no locks are
needed; the check-then-register sequence in callers must not await between
wait_for_pending_request() returning None and register_pending_request().

Usage:
    cache = CacheService(store=SQLiteStore("data/dossier.db"), ttl=86400)
    async with cache:  # starts/stops the cleanup loop
        await cache.set("company:acme", record)
        record = await cache.get("company:acme")
"""

import asyncio
import copy
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import pydantic

from dossier.cache import keys
from dossier.cache.store import SQLiteStore
from dossier.schemas import SCHEMA_VERSION, CompanyRecord, PersonRecord

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """One L1 entry."""

    key: str
    value: Any
    version: int
    created_at: float
    accessed_at: float
    expires_at: float
    ttl: float


@dataclass
class PendingRequest:
    """An in-flight fetch other callers may await."""

    key: str
    future: asyncio.Future
    registered_at: float
    timer: asyncio.TimerHandle | None = None


@dataclass
class ValidationReport:
    """Outcome of validating a cached record."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    schema_version: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "schemaVersion": self.schema_version}


class CacheService:
    """L1 memory + L2 persistent cache.

    Args:
        store: Persistent tier. None keeps everything in memory only.
        ttl: Default entry lifetime in seconds
        capacity: Maximum number of L1 entries
        version: Current record schema version
        pending_timeout: Seconds before a pending registration is force-cleared
        cleanup_interval: Seconds between expired-entry sweeps once started
        clock: Epoch-seconds time source
    """

    def __init__(
        self,
        store: SQLiteStore | None = None,
        ttl: float = 86400,
        capacity: int = 1000,
        version: int = SCHEMA_VERSION,
        pending_timeout: float = 120.0,
        cleanup_interval: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.store = store
        self.ttl = ttl
        self.capacity = capacity
        self.version = version
        self.pending_timeout = pending_timeout
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._memory: OrderedDict[str, CacheEntry] = OrderedDict()
        self._pending: dict[str, PendingRequest] = {}
        self._cleanup_task: asyncio.Task | None = None
        self._counters = {"l1_hits": 0, "l2_hits": 0, "misses": 0, "evictions": 0}

    @classmethod
    def from_settings(cls, cfg: Any = None) -> "CacheService":
        """Build a cache service from a Settings instance."""
        if cfg is None:
            from dossier.config import settings as cfg
        return cls(
            store=SQLiteStore(cfg.cache_db_path),
            ttl=cfg.cache_ttl_seconds,
            capacity=cfg.cache_capacity,
            version=cfg.schema_version,
            pending_timeout=cfg.pending_timeout_seconds,
            cleanup_interval=cfg.cache_cleanup_interval_seconds,
        )

    # -- lifecycle ----------------------------------------------------------

    async def __aenter__(self) -> "CacheService":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def start(self) -> None:
        """Start the periodic cleanup loop (idempotent)."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())
        logger.debug("Cache cleanup loop started (every %ss)", self.cleanup_interval)

    async def stop(self) -> None:
        """Stop the cleanup loop and cancel pending-registration timers."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        for pending in self._pending.values():
            if pending.timer is not None:
                pending.timer.cancel()
        self._pending.clear()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            try:
                await self.cleanup()
            except Exception as e:
                logger.warning("Cache cleanup failed: %s", e)

    # -- reads and writes ---------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Read a value from L1, falling back to L2.

        An L1 hit slides the entry's expiry forward. An L2 hit is promoted
        into L1. Expired or version-mismatched entries are misses. Callers
        get their own copy; mutating it never changes the cached entry.

        Args:
            key: Cache key

        Returns:
            Cached value, or None on a miss
        """
        now = self._clock()
        entry = self._memory.get(key)
        if entry is not None:
            if entry.version != self.version:
                logger.info("L1 version mismatch for %s (v%s != v%s)", key, entry.version, self.version)
                del self._memory[key]
            elif entry.expires_at <= now:
                del self._memory[key]
            else:
                entry.accessed_at = now
                entry.expires_at = now + entry.ttl
                self._memory.move_to_end(key)
                self._counters["l1_hits"] += 1
                logger.debug("L1 hit: %s", key)
                return copy.deepcopy(entry.value)

        if self.store is not None and keys.is_persistent(key):
            try:
                record = await self.store.get(key, now=now)
            except Exception as e:
                logger.warning("L2 read failed for %s: %s", key, e)
                record = None

            if record is not None:
                if record.schema_version != self.version:
                    logger.info(
                        "L2 version mismatch for %s (v%s != v%s)", key, record.schema_version, self.version,
                    )
                else:
                    self._set_memory(key, copy.deepcopy(record.value), self.ttl)
                    self._counters["l2_hits"] += 1
                    logger.debug("L2 hit: %s", key)
                    return record.value

        self._counters["misses"] += 1
        logger.debug("Cache miss: %s", key)
        return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Write a value to L1 and, for full analyses, to L2.

        Full-analysis records are tagged with metadata.schemaVersion. An L2
        write failure is logged; the L1 copy still serves reads.

        Args:
            key: Cache key
            value: Value to store
            ttl: Lifetime in seconds (default: service TTL)
        """
        ttl = self.ttl if ttl is None else ttl
        persistent = keys.is_persistent(key)
        if persistent and isinstance(value, dict):
            metadata = dict(value.get("metadata") or {})
            metadata["schemaVersion"] = self.version
            value = {**value, "metadata": metadata}

        self._set_memory(key, copy.deepcopy(value), ttl)

        if persistent and self.store is not None:
            now = self._clock()
            try:
                await self.store.put(
                    key,
                    keys.namespace(key),
                    value,
                    schema_version=self.version,
                    created_at=now,
                    expires_at=now + ttl,
                )
            except Exception as e:
                logger.warning("L2 write failed for %s (L1 still populated): %s", key, e)

    def _set_memory(self, key: str, value: Any, ttl: float) -> None:
        if key not in self._memory and len(self._memory) >= self.capacity:
            self._evict_oldest()
        now = self._clock()
        self._memory[key] = CacheEntry(
            key=key,
            value=value,
            version=self.version,
            created_at=now,
            accessed_at=now,
            expires_at=now + ttl,
            ttl=ttl,
        )
        self._memory.move_to_end(key)

    def _evict_oldest(self) -> None:
        key, _ = self._memory.popitem(last=False)
        self._counters["evictions"] += 1
        logger.debug("Evicted least-recently-used entry: %s", key)

    def __contains__(self, key: str) -> bool:
        return key in self._memory

    def __len__(self) -> int:
        return len(self._memory)

    # -- invalidation -------------------------------------------------------

    async def delete_from_both_layers(self, key: str) -> bool:
        """Delete a key from L1 and L2. Returns True if either held it."""
        in_memory = self._memory.pop(key, None) is not None
        in_store = False
        if self.store is not None:
            try:
                in_store = await self.store.delete(key)
            except Exception as e:
                logger.warning("L2 delete failed for %s: %s", key, e)
        return in_memory or in_store

    async def delete_from_all_sources(self, key: str) -> dict[str, Any]:
        """Invalidate a key everywhere it is referenced.

        Removes the L1 entry, deletes the L2 record and unlinks audit rows
        that point at it (the last two in one transaction).

        Returns:
            {"l1", "l2", "auditReferences", "success"}
        """
        result: dict[str, Any] = {"l1": False, "l2": False, "auditReferences": 0, "success": True}
        result["l1"] = self._memory.pop(key, None) is not None

        if self.store is not None:
            try:
                result["l2"], result["auditReferences"] = await self.store.purge(key)
            except Exception as e:
                logger.error("Failed to purge %s from persistent store: %s", key, e)
                result["success"] = False

        logger.info(
            "Invalidated %s (l1=%s, l2=%s, audit refs=%d)",
            key, result["l1"], result["l2"], result["auditReferences"],
        )
        return result

    async def cleanup(self) -> dict[str, int]:
        """Remove expired entries from both tiers."""
        now = self._clock()
        expired = [k for k, e in self._memory.items() if e.expires_at <= now]
        for key in expired:
            del self._memory[key]

        removed_l2 = 0
        if self.store is not None:
            removed_l2 = await self.store.cleanup_expired(now)

        if expired or removed_l2:
            logger.info("Cache cleanup: %d L1, %d L2 entries expired", len(expired), removed_l2)
        return {"l1": len(expired), "l2": removed_l2}

    # -- coalescing ---------------------------------------------------------

    def has_pending_request(self, key: str) -> bool:
        return key in self._pending

    async def wait_for_pending_request(self, key: str) -> Any | None:
        """Await an in-flight fetch for key, if there is one.

        The shared future is shielded so a waiter being cancelled does not
        cancel the fetch for everyone else.

        Returns:
            The fetch result, or None when nothing is pending or the
            shared fetch failed
        """
        pending = self._pending.get(key)
        if pending is None:
            return None

        logger.info("Awaiting in-flight request for %s", key)
        try:
            return await asyncio.shield(pending.future)
        except asyncio.CancelledError:
            if pending.future.cancelled():
                return None
            raise
        except Exception as e:
            logger.warning("Shared request for %s failed: %s", key, e)
            return None

    def register_pending_request(self, key: str, awaitable: Awaitable[Any]) -> asyncio.Future:
        """Register an in-flight fetch so concurrent callers can share it.

        Args:
            key: Cache key being fetched
            awaitable: Coroutine, task or future performing the fetch

        Returns:
            The future that waiters will share (await it to get the result)
        """
        loop = asyncio.get_running_loop()
        future = asyncio.ensure_future(awaitable)

        previous = self._pending.get(key)
        if previous is not None and previous.timer is not None:
            previous.timer.cancel()

        pending = PendingRequest(key=key, future=future, registered_at=self._clock())
        pending.timer = loop.call_later(self.pending_timeout, self._force_clear, key, future)
        self._pending[key] = pending
        return future

    def clear_pending_request(self, key: str, future: asyncio.Future | None = None) -> None:
        """Remove a registration and cancel its safety timer.

        Args:
            key: Cache key
            future: If given, only clear when the registration still owns
                this future (a newer registration is left alone)
        """
        pending = self._pending.get(key)
        if pending is None or (future is not None and pending.future is not future):
            return
        del self._pending[key]
        if pending.timer is not None:
            pending.timer.cancel()

    def _force_clear(self, key: str, future: asyncio.Future) -> None:
        pending = self._pending.get(key)
        if pending is not None and pending.future is future:
            del self._pending[key]
            logger.warning(
                "Force-cleared pending request for %s after %ss", key, self.pending_timeout,
            )

    def pending_requests_stats(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "count": len(self._pending),
            "requests": [
                {"key": key, "age_seconds": round(now - p.registered_at, 3)}
                for key, p in self._pending.items()
            ],
        }

    # -- validation ---------------------------------------------------------

    def validate_company(self, record: Any) -> ValidationReport:
        return self._validate(record, CompanyRecord)

    def validate_person(self, record: Any) -> ValidationReport:
        return self._validate(record, PersonRecord)

    def _validate(self, record: Any, model: type[pydantic.BaseModel]) -> ValidationReport:
        if not isinstance(record, dict):
            return ValidationReport(False, ["Record is not an object"])

        version = (record.get("metadata") or {}).get("schemaVersion")
        if version is None:
            return ValidationReport(False, ["Missing schema version (legacy cache format)"])
        if version != self.version:
            return ValidationReport(
                False,
                [f"Schema version outdated: {version} (current: {self.version})"],
                version,
            )

        try:
            model.model_validate(record)
        except pydantic.ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ]
            return ValidationReport(False, errors, version)
        return ValidationReport(True, [], version)

    # -- stats --------------------------------------------------------------

    def estimate_memory_usage(self) -> dict[str, Any]:
        """Approximate L1 size from the serialized length of each value."""
        size = sum(
            len(json.dumps(entry.value, default=str)) + len(key)
            for key, entry in self._memory.items()
        )
        return {"entries": len(self._memory), "bytes": size, "megabytes": round(size / 1_048_576, 3)}

    async def stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "l1": {
                "size": len(self._memory),
                "capacity": self.capacity,
                "memory": self.estimate_memory_usage(),
            },
            "counters": dict(self._counters),
            "pending": self.pending_requests_stats(),
            "version": self.version,
            "ttl": self.ttl,
        }
        if self.store is not None:
            try:
                stats["l2"] = await self.store.stats(now=self._clock())
            except Exception as e:
                logger.warning("L2 stats unavailable: %s", e)
                stats["l2"] = None
        return stats
