"""Perplexity API client for web-search-augmented knowledge retrieval.

Wraps the chat completions endpoint. Every task in the registry is answered
here as free text that the parser turns into structure.

API Documentation: https://docs.perplexity.ai/api-reference/chat-completions

Usage:
    from dossier.config import settings
    from dossier.clients.perplexity import CompletionRequest, PerplexityClient

    async with PerplexityClient(settings.perplexity_api_key) as client:
        request = CompletionRequest(messages=[{"role": "user", "content": "..."}])
        result = await client.fetch("Acme Corp", "recent_news", request=request)
        print(result.data.content)
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from dossier.clients.base import APIProviderError, BaseAsyncClient, ProviderResult
from dossier.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

_DEFAULT_RECENCY = "year"


@dataclass
class CompletionRequest:
    """Provider-neutral description of one knowledge query."""

    messages: list[dict[str, str]]
    max_tokens: int = 1000
    temperature: float = 0.1
    search_domains: list[str] = field(default_factory=list)
    search_recency: str | None = None
    search_context_size: str = "medium"
    return_citations: bool = True


@dataclass
class Completion:
    """Knowledge provider answer."""

    content: str
    usage: dict[str, int]
    citations: list[str]
    search_results: list[dict[str, Any]]


class PerplexityClient(BaseAsyncClient):
    """Async client for the Perplexity chat completions API.

    Transport retries are disabled: the orchestrator owns the retry loop,
    so a failed call surfaces immediately as a failure envelope.

    Args:
        api_key: Perplexity API key (from settings.perplexity_api_key)
        model: Default model id
        base_url: API base URL
        rate_limit: Max requests per second (default: 5)
        timeout: HTTP timeout in seconds (default: 120)
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "sonar",
        base_url: str = "https://api.perplexity.ai",
        rate_limit: int = 5,
        timeout: float = 120.0,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            rate_limit=rate_limit,
            timeout=timeout,
            max_retries=0,
        )
        self.api_key = api_key
        self.model = model

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def build_body(self, request: CompletionRequest) -> dict[str, Any]:
        """Translate a CompletionRequest into the provider's request body."""
        body: dict[str, Any] = {
            "model": self.model,
            "messages": request.messages,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": 0.9,
            "return_citations": request.return_citations,
            "web_search_options": {"search_context_size": request.search_context_size},
        }
        if request.search_domains:
            body["search_domain_filter"] = request.search_domains
        if request.search_recency:
            body["search_recency_filter"] = request.search_recency
        elif not request.search_domains:
            body["search_recency_filter"] = _DEFAULT_RECENCY
        return body

    async def complete(self, request: CompletionRequest) -> Completion:
        """Run one chat completion.

        Args:
            request: Messages and search settings

        Returns:
            Completion with content, token usage, and citations

        Raises:
            APIProviderError: On HTTP failure or an empty answer
        """
        data = await self.post("/chat/completions", json_data=self.build_body(request))

        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise APIProviderError("No content in provider response")

        usage = data.get("usage") or {}
        return Completion(
            content=content,
            usage={
                "prompt_tokens": int(usage.get("prompt_tokens", 0)),
                "completion_tokens": int(usage.get("completion_tokens", 0)),
                "total_tokens": int(usage.get("total_tokens", 0)),
            },
            citations=list(data.get("citations") or []),
            search_results=list(data.get("search_results") or []),
        )

    async def fetch(
        self,
        identifier: str,
        capability: str,
        request: CompletionRequest | None = None,
        **params: Any,
    ) -> ProviderResult:
        """Answer one task for an entity through the uniform envelope.

        Args:
            identifier: Entity the task is about (used for logging)
            capability: Task name
            request: Completion request built from the task spec

        Returns:
            ProviderResult whose data is a Completion

        Raises:
            ProviderUnavailable: If no API key is configured
        """
        if not self.configured:
            raise ProviderUnavailable("perplexity")
        if request is None:
            raise ValueError("PerplexityClient.fetch requires a CompletionRequest")

        try:
            completion = await self.complete(request)
        except APIProviderError as e:
            logger.warning("Perplexity %s for %s failed: %s", capability, identifier, e)
            return ProviderResult.fail(str(e), status_code=e.status_code)

        logger.debug(
            "Perplexity %s for %s: %d tokens",
            capability, identifier, completion.usage["total_tokens"],
        )
        return ProviderResult.ok(completion, units_consumed=completion.usage["total_tokens"])
