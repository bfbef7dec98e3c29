"""Two-tier cache: in-memory L1 with SQLite-backed L2."""

from dossier.cache.keys import (
    component_key,
    extract_domain,
    generate_company_key,
    generate_person_key,
    normalize_identifier,
)
from dossier.cache.service import CacheEntry, CacheService, PendingRequest, ValidationReport
from dossier.cache.store import SQLiteStore, StoredRecord

__all__ = [
    "CacheEntry",
    "CacheService",
    "PendingRequest",
    "SQLiteStore",
    "StoredRecord",
    "ValidationReport",
    "component_key",
    "extract_domain",
    "generate_company_key",
    "generate_person_key",
    "normalize_identifier",
]
