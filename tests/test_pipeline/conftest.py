"""Fake providers shared by the pipeline tests.

FakeKnowledge answers every task with valid JSON by default. Tests
override answers per task; an answer is a content string, a
ProviderResult, an exception instance, or a list of those consumed one
per attempt (the last one repeats).
"""

import asyncio
import json
from datetime import date

import pytest

from dossier.cache import CacheService
from dossier.clients.base import ProviderResult
from dossier.clients.perplexity import Completion
from dossier.pipeline import Orchestrator

TODAY = date(2026, 10, 17)

USAGE = {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150}

DEFAULT_ANSWERS = {
    "company_domain": {"domain": "acme.com"},
    "financial_snapshot": {"isPublic": False, "industry": "Software"},
    "private_financials": {
        "fundingRounds": [{
            "round": "Seed",
            "amount": "$2M",
            "date": "2024-01-10",
            "source": "TechCrunch",
            "url": "https://techcrunch.com/2024/01/10/acme-seed",
        }],
        "totalFunding": "$2M",
        "fundingStage": "Seed",
    },
    "recent_news": [{"title": "Acme launches platform", "date": "2026-09-01", "sentiment": "positive"}],
    "growth_events": [{"type": "expansion", "activity": "Opened Berlin office", "date": "2026-06-01"}],
    "company_challenges": {"summary": "Scaling customer support"},
    "industry_context": {"description": "Logistics software", "competitors": ["Globex"]},
    "tech_stack": [{"category": "CRM", "tool": "Salesforce"}],
    "priority_contacts": [{"name": "Jane Doe", "title": "CTO"}],
    "organization_profile": {"industry": "Software", "employeeCount": "250"},
    "company_intelligence": {
        "painPoints": [],
        "recentActivities": ["Opened Berlin office"],
        "industryContext": "Growing mid-market vendor",
        "executiveQuotes": [],
    },
    "company_activity": [
        {"type": "partnership", "date": "2026-08-01", "description": "Partnered with Initech"},
    ],
    "person_basic_info": {"currentTitle": "CTO", "isCXO": True, "linkedinUrl": None},
    "person_media_presence": {"pressFeatures": [], "speakingEngagements": [], "awards": []},
    "person_social_activity": {
        "posts": [{
            "content": "Excited to speak at the Data Leaders Summit next week!",
            "date": "2026-09-01",
            "topics": ["data"],
        }],
        "postingFrequency": "weekly",
    },
    "person_quoted_challenges": {
        "quotedChallenges": ["Our biggest challenge is scaling data infrastructure"],
    },
    "person_risk_signals": {"realityCheck": []},
}


class FakeKnowledge:
    """Knowledge provider answering from a table."""

    def __init__(self, delay: float = 0.0) -> None:
        self.answers = {name: json.dumps(value) for name, value in DEFAULT_ANSWERS.items()}
        self.delay = delay
        self.calls: list[str] = []
        self.requests: dict[str, object] = {}
        self.hang: set[str] = set()
        self.cancelled: list[str] = []

    async def fetch(self, identifier, capability, request=None, **params):
        self.calls.append(capability)
        self.requests[capability] = request
        if capability in self.hang:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled.append(capability)
                raise
        if self.delay:
            await asyncio.sleep(self.delay)

        answer = self.answers[capability]
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        if isinstance(answer, BaseException):
            raise answer
        if isinstance(answer, ProviderResult):
            return answer
        completion = Completion(
            content=answer,
            usage=dict(USAGE),
            citations=["https://example.com/source"],
            search_results=[],
        )
        return ProviderResult.ok(completion, units_consumed=USAGE["total_tokens"])

    def count(self, capability: str) -> int:
        return self.calls.count(capability)


class FakePrimary:
    """Primary-source provider answering from a table of envelopes."""

    def __init__(self) -> None:
        self.responses: dict[str, object] = {}
        self.calls: list[tuple[str, str, dict]] = []

    async def fetch(self, identifier, capability, **params):
        self.calls.append((identifier, capability, params))
        response = self.responses.get(capability)
        if response is None:
            return ProviderResult.fail(f"No {capability} data for {identifier}")
        if isinstance(response, BaseException):
            raise response
        return response

    def count(self, capability: str) -> int:
        return sum(1 for _, cap, _ in self.calls if cap == capability)


@pytest.fixture
def knowledge():
    return FakeKnowledge()


@pytest.fixture
def primary():
    return FakePrimary()


@pytest.fixture
def make_orchestrator(knowledge):
    """Build an orchestrator with no retry delay and a fixed date."""

    def _make(**kwargs):
        kwargs.setdefault("backoff_base", 0.0)
        kwargs.setdefault("today", lambda: TODAY)
        kwargs.setdefault("knowledge", knowledge)
        return Orchestrator(**kwargs)

    return _make


@pytest.fixture
def memory_cache():
    return CacheService()
