"""Pydantic schemas for cached analysis records.

Used by the cache service to validate records read back from either tier.
Records themselves stay plain camelCase dicts; the models accept them via
camelCase aliases and allow extra fields so that enrichment metadata does
not invalidate an entry.

To change the record structure:
1. Increment SCHEMA_VERSION (settings.schema_version)
2. Update the models below
3. Old cache entries are treated as misses on next read
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 6


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# -- Company ----------------------------------------------------------------

class Overview(_Record):
    is_public: bool
    employee_count: str | None = None
    industry: str | None = None
    headquarters: str | None = None


class DynamicFinancial(_Record):
    label: str
    value: str | None


class StockInfo(_Record):
    symbol: str | None = None
    exchange: str | None = None
    price: float | None = None
    ytd: float | None = None
    yoy: float | None = None
    market_cap: str | None = None
    currency: str = "USD"
    is_subsidiary: bool | None = None
    parent_company: str | None = None
    dynamic_financials: list[DynamicFinancial] = Field(default_factory=list)
    performance_trend: dict[str, Any] | None = None
    financial_summary: dict[str, Any] | None = None


class FundingRound(_Record):
    round: str
    amount: str | None = None
    date: str | None = None
    investors: list[str] | None = None
    lead_investor: str | None = None
    source: str | None = None
    url: str | None = None


class PrivateFinancials(_Record):
    funding_rounds: list[FundingRound] | None = None
    total_funding: str | None = None
    latest_valuation: str | None = None
    revenue_estimate: str | None = None
    growth_metrics: dict[str, Any] | None = None
    sources: list[str] | None = None


class IndustryContext(_Record):
    description: str = ""
    competitors: list[str] = Field(default_factory=list)


class NewsItem(_Record):
    title: str
    summary: str | None = None
    date: str | None = None
    sentiment: str | None = None
    source: str | None = None
    url: str | None = None


class GrowthEvent(_Record):
    type: str
    activity: str
    date: str | None = None
    amount: str | None = None


class TechStackItem(_Record):
    category: str
    tool: str
    verified: bool
    source: str
    hiring_intensity: str | None = None
    days_since_last_post: int | None = None


class CompanyChallenges(_Record):
    summary: str
    challenges: list[dict[str, Any]] = Field(default_factory=list)


class ActivityItem(_Record):
    type: str
    date: str | None = None
    description: str | None = None


class Contact(_Record):
    name: str
    title: str
    profile_url: str | None = None
    verified: bool | None = None
    source: str | None = None


class CompanyIntelligence(_Record):
    pain_points: list[dict[str, Any]] = Field(default_factory=list)
    recent_activities: list[Any] = Field(default_factory=list)
    industry_context: str = ""
    executive_quotes: list[dict[str, Any]] = Field(default_factory=list)


class RecordMetadata(_Record):
    schema_version: int
    sources: list[str] = Field(default_factory=list)


class CompanyRecord(_Record):
    company_name: str
    domain: str | None = None
    overview: Overview
    stock_info: StockInfo | None = None
    private_financials: PrivateFinancials | None = None
    industry_context: IndustryContext | None = None
    recent_news: list[NewsItem]
    growth_events: list[GrowthEvent]
    tech_stack: list[TechStackItem]
    company_challenges: CompanyChallenges | None = None
    company_activity: list[ActivityItem]
    priority_contacts: list[Contact]
    company_intelligence: CompanyIntelligence | None = None
    metadata: RecordMetadata


# -- Person -----------------------------------------------------------------

class SpeakingEngagements(_Record):
    events: list[dict[str, Any]] = Field(default_factory=list)
    awards: list[dict[str, Any]] = Field(default_factory=list)
    industry_involvement: list[Any] = Field(default_factory=list)


class ContentCreation(_Record):
    published_content: list[Any] = Field(default_factory=list)
    media_appearances: list[Any] = Field(default_factory=list)
    content_frequency: str | None = None
    expertise_areas: list[str] = Field(default_factory=list)


class MediaPresence(_Record):
    press_features: list[Any] = Field(default_factory=list)
    thought_leadership: str | None = None
    speaking_engagements: list[Any] = Field(default_factory=list)
    awards: list[Any] = Field(default_factory=list)
    published_content: list[Any] = Field(default_factory=list)


class PainPoint(_Record):
    tag: str
    priority: str
    context: str | None = None
    source: str | None = None
    date: str | None = None


class PersonRecord(_Record):
    name: str
    title: str
    company: str
    is_cxo: dict[str, Any] | None = Field(default=None, alias="isCXO")
    recent_activity: dict[str, Any] | None = None
    speaking_engagements: SpeakingEngagements
    content_creation: ContentCreation
    media_presence: MediaPresence
    quoted_challenges: list[dict[str, Any]] = Field(default_factory=list)
    publicly_stated_pain_points: list[PainPoint] = Field(default_factory=list)
    reality_check: list[dict[str, Any]] = Field(default_factory=list)
    recent_achievements: list[dict[str, Any]] = Field(default_factory=list)
    metadata: RecordMetadata
