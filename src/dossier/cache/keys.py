"""Cache key generation.

Keys have the form "{entityType}:{normalizedIdentifier}[:{secondary}]" so
cosmetically different spellings of one entity share an entry:

    generate_company_key("Acme, Inc.")  -> "company:acme-inc"
    generate_company_key("ACME INC")    -> "company:acme-inc"
"""

import re
from urllib.parse import urlparse

COMPANY = "company"
PERSON = "person"
PRIMARY = "primary"

# Namespaces whose entries are complete analyses and persist to L2
PERSISTENT_NAMESPACES = frozenset({COMPANY, PERSON})

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def normalize_identifier(text: str) -> str:
    """Lower-case, strip punctuation, and hyphenate whitespace."""
    normalized = _PUNCTUATION.sub("", (text or "").lower().strip())
    normalized = _WHITESPACE.sub("-", normalized)
    return _HYPHENS.sub("-", normalized).strip("-")


def generate_company_key(company_name: str) -> str:
    return f"{COMPANY}:{normalize_identifier(company_name)}"


def generate_person_key(person_name: str, company_name: str | None = None) -> str:
    key = f"{PERSON}:{normalize_identifier(person_name)}"
    if company_name:
        key = f"{key}:{normalize_identifier(company_name)}"
    return key


def component_key(kind: str, identifier: str) -> str:
    """Key for a component sub-fetch (kept in L1 only)."""
    return f"{PRIMARY}:{kind}:{normalize_identifier(identifier)}"


def namespace(key: str) -> str:
    return key.split(":", 1)[0]


def is_persistent(key: str) -> bool:
    return namespace(key) in PERSISTENT_NAMESPACES


def extract_domain(value: str) -> str:
    """Derive a domain deterministically from a URL, domain, or company name.

    "https://www.acme.com/about" -> "acme.com"
    "acme.io"                    -> "acme.io"
    "Acme Corp"                  -> "acmecorp.com"
    """
    value = (value or "").strip()
    if value.startswith(("http://", "https://")):
        host = urlparse(value).hostname or ""
        return host.removeprefix("www.")
    if "." in value and " " not in value:
        return value.lower().removeprefix("www.")
    slug = re.sub(r"[^a-z0-9]", "", value.lower())
    return f"{slug}.com"
