"""Combine step: merge batch outputs into one analysis record.

Every record starts from a complete default structure, so a failed task
leaves its documented default in place rather than a missing key.
Provider items are coerced to the cached record schema (dossier.schemas)
on the way in, so a combined record always reads back as a valid cache
entry.
"""

import copy
import logging
import math
import re
from datetime import date
from typing import Any

from dossier.parsing.validation import filter_placeholder_metrics
from dossier.pipeline import enrichment
from dossier.pipeline.results import TaskResult
from dossier.schemas import SCHEMA_VERSION

logger = logging.getLogger(__name__)

NO_CHALLENGES = "No significant challenges detected"

DEFAULT_COMPANY_INTELLIGENCE = {
    "painPoints": [],
    "recentActivities": [],
    "industryContext": "",
    "executiveQuotes": [],
}

DEFAULT_COMPANY_CHALLENGES = {
    "isPrivateCompany": False,
    "summary": NO_CHALLENGES,
    "negativeNewsSummary": "No significant negative news found in the last 12 months.",
    "earningsCallNegativeNews": None,
    "layoffNews": {"hasLayoffs": False, "summary": None, "layoffEvents": []},
    "challenges": [],
    "timelineOfEvents": [],
}

DEFAULT_INDUSTRY_CONTEXT = {
    "description": "",
    "foundedYear": None,
    "headquarters": None,
    "productsAndVerticals": None,
    "customerSegments": None,
    "competitors": [],
    "customers": [],
}


def _ok(results: dict[str, TaskResult], name: str) -> Any:
    """Data of a successful result, or None."""
    result = results.get(name)
    if result is None or not result.success:
        return None
    return result.data


def _list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _sources(results: dict[str, TaskResult]) -> list[str]:
    return sorted({r.source for r in results.values() if r is not None and r.success})


# -- Coercion ---------------------------------------------------------------

_NUMBER_NOISE = re.compile(r"[,$%+\s]")
_FLAGS = {"true": True, "yes": True, "false": False, "no": False}


def _text(value: Any) -> str | None:
    """String form of a scalar; containers have none."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    return None


def _number(value: Any) -> float | None:
    """Float from a number or a string like "$1,234.5" or "-3.2%"."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(_NUMBER_NOISE.sub("", value))
        except ValueError:
            return None
    return None


def _whole(value: Any) -> int | None:
    number = _number(value)
    if number is None or not math.isfinite(number):
        return None
    return int(number)


def _flag(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return _FLAGS.get(value.strip().lower())
    return None


def _strings(value: Any, keys: tuple[str, ...] = ("name", "title")) -> list[str]:
    """Flatten a list of names; an object contributes its first name-like field."""
    if not isinstance(value, list):
        return []
    names = []
    for item in value:
        if isinstance(item, dict):
            item = next((item[k] for k in keys if item.get(k)), None)
        text = _text(item)
        if text:
            names.append(text)
    return names


def _objects(value: Any, key: str) -> list[dict[str, Any]]:
    """Dicts from a list; bare strings are wrapped as {key: text}."""
    if not isinstance(value, list):
        return []
    return [
        item if isinstance(item, dict) else {key: item}
        for item in value
        if isinstance(item, dict) or (isinstance(item, str) and item)
    ]


def _coerce(item: dict[str, Any], texts: tuple[str, ...] = (), **fields: Any) -> dict[str, Any]:
    """Copy of an item with its present string fields coerced and `fields` set."""
    out = dict(item)
    for key in texts:
        if key in out:
            out[key] = _text(out[key])
    out.update(fields)
    return out


# Items without their identifying field (a news title, a tool name) are dropped.

def normalize_news(items: Any) -> list[dict[str, Any]]:
    news = []
    for item in _dicts(items):
        title = _text(item.get("title") or item.get("headline"))
        if title:
            news.append(_coerce(item, ("summary", "date", "sentiment", "source", "url"), title=title))
    return news


def normalize_growth_events(items: Any) -> list[dict[str, Any]]:
    events = []
    for item in _dicts(items):
        activity = _text(item.get("activity") or item.get("description") or item.get("title"))
        if activity:
            events.append(_coerce(
                item, ("date", "amount"), type=_text(item.get("type")) or "other", activity=activity,
            ))
    return events


def normalize_tech_stack(items: Any) -> list[dict[str, Any]]:
    stack = []
    for item in _dicts(items):
        tool = _text(item.get("tool") or item.get("name"))
        if not tool:
            continue
        entry = _coerce(
            item,
            ("hiringIntensity",),
            category=_text(item.get("category")) or enrichment.TECH_CATEGORY_MAP.get(tool, "Technology"),
            tool=tool,
            verified=bool(_flag(item.get("verified"))),
            source=_text(item.get("source")) or enrichment.FALLBACK_SOURCE,
        )
        if "daysSinceLastPost" in item:
            entry["daysSinceLastPost"] = _whole(item["daysSinceLastPost"])
        stack.append(entry)
    return stack


def normalize_activity(items: Any) -> list[dict[str, Any]]:
    return [
        _coerce(item, ("date", "description"), type=_text(item.get("type")) or "update")
        for item in _dicts(items)
    ]


def normalize_contacts(items: Any) -> list[dict[str, Any]]:
    contacts = []
    for item in _dicts(items):
        name, title = _text(item.get("name")), _text(item.get("title"))
        if not name or not title:
            continue
        contact = _coerce(item, ("profileUrl", "source"), name=name, title=title)
        if "verified" in item:
            contact["verified"] = _flag(item["verified"])
        contacts.append(contact)
    return contacts


def normalize_metrics(items: Any) -> list[dict[str, Any]]:
    """Placeholder-free dynamic financials with string labels and values."""
    metrics = []
    for item in filter_placeholder_metrics(items):
        label = _text(item.get("label") or item.get("name"))
        if label:
            metrics.append(_coerce(item, label=label, value=_text(item.get("value"))))
    return metrics


def normalize_private_financials(data: dict[str, Any]) -> dict[str, Any]:
    out = _coerce(data, ("totalFunding", "latestValuation", "revenueEstimate"))
    if out.get("fundingRounds") is not None:
        rounds = []
        for item in _dicts(out["fundingRounds"]):
            entry = _coerce(
                item,
                ("amount", "date", "leadInvestor", "source", "url"),
                round=_text(item.get("round") or item.get("type")) or "Undisclosed",
            )
            if entry.get("investors") is not None:
                entry["investors"] = _strings(entry["investors"])
            rounds.append(entry)
        out["fundingRounds"] = rounds
    if "growthMetrics" in out and not isinstance(out["growthMetrics"], dict):
        out["growthMetrics"] = None
    if out.get("sources") is not None:
        out["sources"] = _strings(out["sources"], ("name", "url"))
    return out


def default_company(company_name: str, domain: str | None = None) -> dict[str, Any]:
    """Company record with every section at its default."""
    return {
        "companyName": company_name,
        "domain": domain,
        "overview": {"isPublic": False, "employeeCount": None, "industry": "", "headquarters": None},
        "stockInfo": {
            "symbol": "",
            "exchange": "",
            "price": None,
            "ytd": None,
            "yoy": None,
            "marketCap": "",
            "currency": "USD",
            "isSubsidiary": False,
            "parentCompany": None,
            "dynamicFinancials": [],
            "performanceTrend": {
                "direction": "sideways",
                "momentum": "steady",
                "volatility": "moderate",
                "context": "",
            },
            "financialSummary": {"sentiment": "neutral", "sentimentReason": ""},
        },
        "privateFinancials": None,
        "industryContext": copy.deepcopy(DEFAULT_INDUSTRY_CONTEXT),
        "recentNews": [],
        "growthEvents": [],
        "techStack": [],
        "companyChallenges": copy.deepcopy(DEFAULT_COMPANY_CHALLENGES),
        "companyActivity": [],
        "priorityContacts": [],
        "companyIntelligence": copy.deepcopy(DEFAULT_COMPANY_INTELLIGENCE),
        "metadata": {"schemaVersion": SCHEMA_VERSION, "sources": []},
    }


def build_context(results: dict[str, TaskResult]) -> str:
    """Summarize Batch 1 output as background for the intelligence prompt."""
    lines = []

    industry = _ok(results, "industry_context")
    if isinstance(industry, dict) and industry.get("description"):
        lines.append(f"Business: {industry['description']}")
        competitors = _strings(industry.get("competitors"))
        if competitors:
            lines.append(f"Competitors: {', '.join(competitors[:5])}")

    snapshot = _ok(results, "financial_snapshot")
    if isinstance(snapshot, dict):
        status = "public" if snapshot.get("isPublic") else "private"
        line = f"Status: {status}"
        if snapshot.get("marketCap"):
            line += f", market cap {snapshot['marketCap']}"
        lines.append(line)

    news = _dicts(_ok(results, "recent_news"))
    if news:
        lines.append("Recent news: " + "; ".join(str(n.get("title")) for n in news[:3]))

    events = _dicts(_ok(results, "growth_events"))
    if events:
        lines.append("Growth events: " + "; ".join(str(e.get("activity")) for e in events[:3]))

    challenges = _ok(results, "company_challenges")
    if isinstance(challenges, dict) and challenges.get("summary"):
        lines.append(f"Challenges: {challenges['summary']}")

    return "\n".join(lines)


def combine_company(
    company_name: str,
    domain: str | None,
    results: dict[str, TaskResult],
    schema_version: int = SCHEMA_VERSION,
) -> dict[str, Any]:
    """Merge company task results into one record.

    Args:
        company_name: Company name as requested
        domain: Resolved domain
        results: Task results keyed by task name. "organization_profile"
            carries normalized org metadata from either provider.
        schema_version: Version tag written to metadata

    Returns:
        Company analysis record (camelCase dict)
    """
    record = default_company(company_name, domain)
    organization = _ok(results, "organization_profile")
    if not isinstance(organization, dict):
        organization = {}

    snapshot = _ok(results, "financial_snapshot")
    if isinstance(snapshot, dict):
        record["overview"].update({
            "isPublic": bool(_flag(snapshot.get("isPublic"))),
            "employeeCount": _employee_count(organization) or _text(snapshot.get("employeeCount")),
            "industry": _text(organization.get("industry") or snapshot.get("industry")) or "",
        })
        stock = record["stockInfo"]
        for field in ("symbol", "exchange", "marketCap", "currency", "parentCompany"):
            if snapshot.get(field) is not None:
                stock[field] = _text(snapshot[field])
        for field in ("price", "ytd", "yoy"):
            if snapshot.get(field) is not None:
                stock[field] = _number(snapshot[field])
        if snapshot.get("isSubsidiary") is not None:
            stock["isSubsidiary"] = _flag(snapshot["isSubsidiary"])
        stock["currency"] = stock["currency"] or "USD"
        if isinstance(snapshot.get("performanceTrend"), dict):
            stock["performanceTrend"].update(snapshot["performanceTrend"])
        if isinstance(snapshot.get("financialSummary"), dict):
            stock["financialSummary"].update(snapshot["financialSummary"])
        stock["dynamicFinancials"] = normalize_metrics(snapshot.get("dynamicFinancials"))
    elif organization:
        record["overview"]["employeeCount"] = _employee_count(organization)
        record["overview"]["industry"] = _text(organization.get("industry")) or ""

    industry = _ok(results, "industry_context")
    context = record["industryContext"]
    if isinstance(industry, dict):
        context.update(industry)
        context["description"] = _text(context.get("description")) or ""
        context["competitors"] = _strings(context.get("competitors"))
    headquarters = _headquarters(organization)
    if headquarters:
        context["headquarters"] = headquarters
    record["overview"]["headquarters"] = _text(context.get("headquarters"))

    private = _ok(results, "private_financials")
    if isinstance(private, dict):
        record["privateFinancials"] = normalize_private_financials(private)
        record["companyChallenges"]["isPrivateCompany"] = True

    record["recentNews"] = normalize_news(_ok(results, "recent_news"))
    record["growthEvents"] = normalize_growth_events(_ok(results, "growth_events"))
    record["techStack"] = normalize_tech_stack(_ok(results, "tech_stack"))
    record["priorityContacts"] = normalize_contacts(_ok(results, "priority_contacts"))
    record["companyActivity"] = normalize_activity(_ok(results, "company_activity"))

    challenges = _ok(results, "company_challenges")
    if isinstance(challenges, dict):
        section = record["companyChallenges"]
        section.update({k: v for k, v in challenges.items() if v is not None})
        section["summary"] = _text(section.get("summary")) or NO_CHALLENGES
        section["challenges"] = _objects(section.get("challenges"), "description")

    intelligence = _ok(results, "company_intelligence")
    if isinstance(intelligence, dict):
        section = record["companyIntelligence"]
        section.update({k: v for k, v in intelligence.items() if v is not None})
        summary = section.get("industryContext")
        if isinstance(summary, dict):
            summary = summary.get("description") or summary.get("summary")
        section["industryContext"] = _text(summary) or ""
        section["painPoints"] = _objects(section.get("painPoints"), "description")
        section["executiveQuotes"] = _objects(section.get("executiveQuotes"), "quote")
        if not isinstance(section.get("recentActivities"), list):
            section["recentActivities"] = []

    record["metadata"] = {"schemaVersion": schema_version, "sources": _sources(results)}
    return record


def _employee_count(organization: dict[str, Any]) -> str | None:
    return _text(organization.get("employeeCount")) or None


def _headquarters(organization: dict[str, Any]) -> str | None:
    state = organization.get("headquartersState")
    country = organization.get("headquartersCountry")
    if state and country:
        return f"{state}, {country}"
    return None


# -- Person -----------------------------------------------------------------

def default_person(name: str, title: str, company: str) -> dict[str, Any]:
    """Person record with every section at its default."""
    return {
        "name": name,
        "title": title,
        "company": company,
        "isCXO": None,
        "budgetAuthority": None,
        "authorityIndicators": [],
        "budgetCycle": None,
        "linkedinUrl": None,
        "contactPreferences": None,
        "recentActivity": {"posts": [], "postingFrequency": None},
        "speakingEngagements": {"events": [], "awards": [], "industryInvolvement": []},
        "contentCreation": {
            "publishedContent": [],
            "mediaAppearances": [],
            "contentFrequency": None,
            "expertiseAreas": [],
        },
        "mediaPresence": {
            "pressFeatures": [],
            "speakingEngagements": [],
            "awards": [],
            "publishedContent": [],
            "thoughtLeadership": None,
        },
        "quotedChallenges": [],
        "publiclyStatedPainPoints": [],
        "realityCheck": [],
        "recentAchievements": [],
        "metadata": {"schemaVersion": SCHEMA_VERSION, "sources": []},
    }


def _post(post: dict[str, Any]) -> dict[str, Any]:
    return {
        "date": post.get("date"),
        "platform": post.get("platform"),
        "type": post.get("type") or "post",
        "content": post.get("content"),
        "topics": post.get("topics") or [],
        "sentiment": post.get("sentiment") or "neutral",
        "url": post.get("url"),
    }


def _quoted_challenge(item: Any) -> dict[str, Any]:
    if isinstance(item, str):
        return {"challenge": item, "quote": item, "source": "", "date": "", "url": ""}
    text = _text(item.get("quote") or item.get("challenge")) or ""
    return {
        "challenge": _text(item.get("challenge")) or text,
        "quote": text,
        "source": _text(item.get("source")) or "",
        "date": _text(item.get("date")) or "",
        "url": _text(item.get("url")) or "",
    }


def _pain_point(text: str, context: str = "", source: Any = None, date_: Any = None) -> dict[str, Any]:
    return {
        "tag": enrichment.pain_point_tag(text),
        "priority": enrichment.pain_point_priority(text),
        "context": context or text,
        "source": _text(source),
        "date": _text(date_),
    }


def _activity_from_media(record: dict[str, Any]) -> list[dict[str, Any]]:
    """Activity entries derived from press, speaking and awards."""
    posts = []
    for feature in _dicts(record["mediaPresence"]["pressFeatures"]):
        outlet = feature.get("publication") or feature.get("outlet") or "the press"
        posts.append({
            "date": feature.get("date"),
            "platform": "Press",
            "type": feature.get("type") or "interview",
            "content": f"Featured in {outlet}: {feature.get('title') or ''}".rstrip(": "),
            "topics": feature.get("topics") or [],
            "sentiment": "professional",
            "url": feature.get("url"),
            "isEnriched": True,
        })
    for event in _dicts(record["speakingEngagements"]["events"]):
        posts.append({
            "date": event.get("date"),
            "platform": "Event",
            "type": "speaking",
            "content": f"{event.get('role') or 'Speaker'} at {event.get('event')}: {event.get('topic') or ''}".rstrip(": "),
            "topics": [event["topic"]] if event.get("topic") else [],
            "sentiment": "thought-leadership",
            "url": event.get("url"),
            "isEnriched": True,
        })
    for award in _dicts(record["speakingEngagements"]["awards"]):
        posts.append({
            "date": award.get("date"),
            "platform": "Recognition",
            "type": "award",
            "content": f"Recognized: {award.get('award')} by {award.get('organization')}",
            "topics": [],
            "sentiment": "promotional",
            "url": award.get("url"),
            "isEnriched": True,
        })
    return posts


def combine_person(
    name: str,
    title: str,
    company: str,
    results: dict[str, TaskResult],
    schema_version: int = SCHEMA_VERSION,
    today: date | None = None,
) -> dict[str, Any]:
    """Merge person task results into one record.

    When the media task found no speaking engagements or awards, they are
    recovered from social post text instead.

    Args:
        name: Person name as requested
        title: Job title as requested
        company: Company name as requested
        results: Task results keyed by task name
        schema_version: Version tag written to metadata
        today: Reference date for undated extracted items

    Returns:
        Person analysis record (camelCase dict)
    """
    record = default_person(name, title, company)

    basic = _ok(results, "person_basic_info")
    if isinstance(basic, dict):
        record["title"] = _text(basic.get("currentTitle")) or title
        is_cxo = basic.get("isCXO")
        record["isCXO"] = is_cxo if isinstance(is_cxo, dict) or is_cxo is None else {"value": bool(_flag(is_cxo))}
        for field in ("budgetAuthority", "budgetCycle", "linkedinUrl", "contactPreferences"):
            if basic.get(field) is not None:
                record[field] = basic[field]
        record["authorityIndicators"] = _list(basic.get("authorityIndicators"))

    media = _ok(results, "person_media_presence")
    if isinstance(media, dict):
        presence = record["mediaPresence"]
        presence["pressFeatures"] = _dicts(media.get("pressFeatures"))
        presence["speakingEngagements"] = _dicts(media.get("speakingEngagements"))
        presence["awards"] = _dicts(media.get("awards"))
        presence["publishedContent"] = _list(media.get("publishedContent"))
        presence["thoughtLeadership"] = _text(media.get("thoughtLeadership"))
        record["speakingEngagements"]["events"] = list(presence["speakingEngagements"])
        record["speakingEngagements"]["awards"] = list(presence["awards"])
        record["contentCreation"]["publishedContent"] = list(presence["publishedContent"])

    social = _ok(results, "person_social_activity")
    posts = _dicts(social.get("posts")) if isinstance(social, dict) else []
    if isinstance(social, dict):
        record["recentActivity"] = {
            "posts": [_post(p) for p in posts],
            "postingFrequency": social.get("postingFrequency"),
        }
        record["contentCreation"]["contentFrequency"] = _text(social.get("postingFrequency"))
        record["contentCreation"]["expertiseAreas"] = _strings(social.get("expertiseAreas"))

    speaking = record["speakingEngagements"]
    if not speaking["events"] and not speaking["awards"] and posts:
        logger.info("No thought leadership data for %s, extracting from %d posts", name, len(posts))
        extracted = enrichment.extract_thought_leadership(posts, today=today)
        speaking["events"].extend(extracted["speaking"])
        speaking["awards"].extend(extracted["awards"])
        record["mediaPresence"]["speakingEngagements"].extend(extracted["speaking"])
        record["mediaPresence"]["awards"].extend(extracted["awards"])
        record["mediaPresence"]["pressFeatures"].extend(extracted["media"])

    quoted = _ok(results, "person_quoted_challenges")
    if isinstance(quoted, dict):
        challenges = [
            _quoted_challenge(item)
            for item in quoted.get("quotedChallenges") or []
            if isinstance(item, (str, dict))
        ]
        record["quotedChallenges"] = challenges
        stated = _dicts(quoted.get("publiclyStatedPainPoints"))
        if stated:
            record["publiclyStatedPainPoints"] = [
                _pain_point(
                    str(p.get("context") or p.get("challenge") or ""),
                    source=p.get("source"),
                    date_=p.get("date"),
                )
                for p in stated
            ]
        else:
            record["publiclyStatedPainPoints"] = [
                _pain_point(c["quote"], source=c["source"] or None, date_=c["date"] or None)
                for c in challenges
                if c["quote"]
            ]

    risk = _ok(results, "person_risk_signals")
    if isinstance(risk, dict):
        record["realityCheck"] = _dicts(risk.get("realityCheck"))

    if not record["recentActivity"]["posts"]:
        enriched = _activity_from_media(record)
        if enriched:
            record["recentActivity"] = {"posts": enriched, "postingFrequency": "sporadic"}

    awards: dict[tuple[Any, Any], dict[str, Any]] = {}
    for award in _dicts(speaking["awards"]):
        awards.setdefault((award.get("award"), award.get("date")), award)
    record["recentAchievements"] = [
        {
            "achievement": award.get("award"),
            "date": award.get("date"),
            "source": award.get("organization"),
            "url": award.get("url"),
        }
        for award in awards.values()
    ]

    record["metadata"] = {"schemaVersion": schema_version, "sources": _sources(results)}
    return record
