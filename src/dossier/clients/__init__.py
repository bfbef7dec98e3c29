"""Provider client layer for DOSSIER.

Async HTTP clients for:
- Perplexity: web-search-augmented knowledge retrieval (free text)
- Sumble: verified technology, people, and organization data
"""

from dossier.clients.base import (
    APIProviderError,
    BaseAsyncClient,
    Provider,
    ProviderResult,
    RateLimiter,
)
from dossier.clients.perplexity import Completion, CompletionRequest, PerplexityClient
from dossier.clients.sumble import SumbleClient

__all__ = [
    "BaseAsyncClient",
    "RateLimiter",
    "APIProviderError",
    "Provider",
    "ProviderResult",
    "Completion",
    "CompletionRequest",
    "PerplexityClient",
    "SumbleClient",
]
