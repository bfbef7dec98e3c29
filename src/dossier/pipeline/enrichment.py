"""Formatting and enrichment helpers for analysis records.

Turns raw primary-source payloads into record items (tech stack, contacts,
hiring signals) and derives secondary fields with keyword rules (pain-point
tags and priorities, thought leadership recovered from social posts).

All functions are pure; dates are compared against an optional `today`
so results are reproducible in tests.
"""

import logging
import math
import re
from datetime import date
from typing import Any

logger = logging.getLogger(__name__)

PRIMARY_SOURCE = "primary"
FALLBACK_SOURCE = "knowledge-fallback"
HYBRID_SOURCE = "hybrid"
EXTRACTED_SOURCE = "extracted_from_social_post"

HIRING_WINDOW_DAYS = 30
HOT_JOB_COUNT = 20
WARM_JOB_COUNT = 5

TECH_CATEGORY_MAP = {
    # CRM & Sales
    "Salesforce": "CRM",
    "HubSpot": "CRM",
    "Microsoft Dynamics": "CRM",
    "Zoho CRM": "CRM",
    "Pipedrive": "CRM",
    # Cloud
    "AWS": "Cloud Platform",
    "Azure": "Cloud Platform",
    "Google Cloud": "Cloud Platform",
    "GCP": "Cloud Platform",
    "IBM Cloud": "Cloud Platform",
    "Oracle Cloud": "Cloud Platform",
    "DigitalOcean": "Cloud Platform",
    "Heroku": "Cloud Platform",
    # Containers
    "Kubernetes": "Container Orchestration",
    "Docker": "Containerization",
    "OpenShift": "Container Platform",
    "ECS": "Container Orchestration",
    "EKS": "Container Orchestration",
    # Databases
    "PostgreSQL": "Database",
    "MySQL": "Database",
    "MongoDB": "Database",
    "Redis": "Database",
    "Elasticsearch": "Database",
    "SQL Server": "Database",
    "Oracle Database": "Database",
    "DynamoDB": "Database",
    "Cassandra": "Database",
    # Languages
    "Python": "Programming Language",
    "Java": "Programming Language",
    "JavaScript": "Programming Language",
    "TypeScript": "Programming Language",
    "C#": "Programming Language",
    "Go": "Programming Language",
    "Ruby": "Programming Language",
    "PHP": "Programming Language",
    "Swift": "Programming Language",
    "Kotlin": "Programming Language",
    # Frameworks
    "React": "Frontend Framework",
    "Angular": "Frontend Framework",
    "Vue.js": "Frontend Framework",
    "Next.js": "Frontend Framework",
    "Node.js": "Backend Framework",
    "Django": "Backend Framework",
    "Flask": "Backend Framework",
    "Spring Boot": "Backend Framework",
    "Express": "Backend Framework",
    "Laravel": "Backend Framework",
    "Ruby on Rails": "Backend Framework",
    # DevOps
    "Jenkins": "CI/CD",
    "GitLab CI": "CI/CD",
    "GitHub Actions": "CI/CD",
    "CircleCI": "CI/CD",
    "Terraform": "Infrastructure as Code",
    "CloudFormation": "Infrastructure as Code",
    "Ansible": "Configuration Management",
    # Monitoring
    "Datadog": "Monitoring",
    "New Relic": "Monitoring",
    "Prometheus": "Monitoring",
    "Grafana": "Monitoring",
    "Splunk": "Monitoring",
    # Messaging
    "Kafka": "Message Queue",
    "RabbitMQ": "Message Queue",
    "Amazon SQS": "Message Queue",
    # Analytics
    "Tableau": "Analytics",
    "Power BI": "Analytics",
    "Looker": "Analytics",
    "Google Analytics": "Analytics",
    # Security
    "Okta": "Identity Management",
    "Auth0": "Identity Management",
    "Vault": "Security",
    # Collaboration
    "GitHub": "Version Control",
    "GitLab": "Version Control",
    "Bitbucket": "Version Control",
    "Jira": "Project Management",
    "Asana": "Project Management",
    "Trello": "Project Management",
    "Confluence": "Collaboration",
    "Slack": "Communication",
    "Microsoft Teams": "Communication",
    "Zoom": "Communication",
    # Marketing
    "Marketo": "Marketing Automation",
    "Pardot": "Marketing Automation",
    "Mailchimp": "Marketing Automation",
    "SendGrid": "Email Service",
    # Commerce
    "Shopify": "E-Commerce",
    "Stripe": "Payment Processing",
    "PayPal": "Payment Processing",
    # Mobile and ML
    "React Native": "Mobile Development",
    "Flutter": "Mobile Development",
    "TensorFlow": "Machine Learning",
    "PyTorch": "Machine Learning",
    "OpenAI": "AI Platform",
    "Anthropic": "AI Platform",
}


def _parse_date(value: Any) -> date | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.debug("Unparseable date: %r", value)
        return None


def days_since(value: Any, today: date | None = None) -> int | None:
    """Whole days between an ISO date string and today (None if unparseable)."""
    parsed = _parse_date(value)
    if parsed is None:
        return None
    return abs(((today or date.today()) - parsed).days)


# -- Tech stack -------------------------------------------------------------

def hiring_intensity(tech: dict[str, Any], today: date | None = None) -> str:
    """Classify hiring activity for one technology as HOT, WARM or COLD."""
    jobs = tech.get("jobs_count") or 0
    days = days_since(tech.get("last_job_post"), today)
    if days is None or not jobs:
        return "COLD"
    if days <= HIRING_WINDOW_DAYS and jobs >= HOT_JOB_COUNT:
        return "HOT"
    if days <= HIRING_WINDOW_DAYS and jobs >= WARM_JOB_COUNT:
        return "WARM"
    return "COLD"


def format_tech_stack(
    technologies: list[dict[str, Any]],
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Convert primary-source technologies into tech stack record items."""
    return [
        {
            "category": TECH_CATEGORY_MAP.get(tech.get("name", ""), "Technology"),
            "tool": tech.get("name"),
            "verified": True,
            "source": PRIMARY_SOURCE,
            "jobsCount": tech.get("jobs_count"),
            "teamsCount": tech.get("teams_count"),
            "peopleCount": tech.get("people_count"),
            "lastJobPost": tech.get("last_job_post"),
            "verificationUrl": tech.get("jobs_data_url"),
            "teamsDataUrl": tech.get("teams_data_url"),
            "hiringIntensity": hiring_intensity(tech, today),
            "daysSinceLastPost": days_since(tech.get("last_job_post"), today),
        }
        for tech in technologies
        if tech.get("name")
    ]


def hiring_signals(
    tech_stack: list[dict[str, Any]],
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Activity items for tech stack entries with recent, sizable hiring.

    Only primary-source entries carry job counts, so knowledge-fallback
    entries never produce a signal.
    """
    signals = []
    for item in tech_stack:
        jobs = item.get("jobsCount") or 0
        days = days_since(item.get("lastJobPost"), today)
        if days is None or days > HIRING_WINDOW_DAYS or jobs < WARM_JOB_COUNT:
            continue
        hot = jobs >= HOT_JOB_COUNT
        signals.append({
            "type": "hiring",
            "strength": "hot" if hot else "warm",
            "note": f"Posted {jobs} {item.get('tool')} jobs in last {HIRING_WINDOW_DAYS} days",
            "date": item.get("lastJobPost"),
            "timestamp": item.get("lastJobPost"),
            "technology": item.get("tool"),
            "jobCount": jobs,
            "peopleCount": item.get("peopleCount"),
            "teamsCount": item.get("teamsCount"),
            "sourceUrl": item.get("verificationUrl"),
            "urgency": "immediate" if hot else "moderate",
            "source": PRIMARY_SOURCE,
        })
    return signals


def _is_hiring_activity(item: dict[str, Any]) -> bool:
    if item.get("type") in ("hiring", "talent-acquisition"):
        return True
    text = f"{item.get('description') or ''} {item.get('note') or ''}".lower()
    return "hiring" in text


def merge_activity(
    activity: list[dict[str, Any]],
    signals: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge hiring signals with knowledge-retrieved company activity.

    Hiring items from the knowledge side are dropped in favour of the
    signals. The result is sorted newest first; undated items sort last.
    """
    merged = list(signals) + [
        item for item in activity if isinstance(item, dict) and not _is_hiring_activity(item)
    ]
    return sorted(merged, key=lambda item: str(item.get("date") or ""), reverse=True)


# -- Contacts ---------------------------------------------------------------

def tenure(start_date: Any, today: date | None = None) -> dict[str, Any]:
    """Describe how long someone has been in their role.

    Returns:
        Dictionary with totalMonths, category (NEW, RECENT, ESTABLISHED or
        UNKNOWN) and displayText
    """
    days = days_since(start_date, today)
    if days is None:
        return {"totalMonths": None, "category": "UNKNOWN", "displayText": None}

    months = math.floor(days / 30.44)
    if months < 6:
        category = "NEW"
    elif months < 18:
        category = "RECENT"
    else:
        category = "ESTABLISHED"

    if months < 12:
        text = f"{months} month{'' if months == 1 else 's'}"
    elif months % 12 == 0:
        years = months // 12
        text = f"{years} year{'' if years == 1 else 's'}"
    else:
        text = f"{months / 12:.1f} years"
    return {"totalMonths": months, "category": category, "displayText": text}


def format_contacts(
    people: list[dict[str, Any]],
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Convert primary-source people into priority contact record items."""
    contacts = []
    for person in people:
        if not person.get("name"):
            continue
        term = tenure(person.get("start_date"), today)
        level = person.get("job_level")
        contacts.append({
            "name": person.get("name"),
            "title": person.get("job_title") or "Unknown",
            "profileUrl": person.get("linkedin_url") or None,
            "verified": True,
            "source": PRIMARY_SOURCE,
            "jobFunction": person.get("job_function"),
            "jobLevel": level,
            "location": person.get("location"),
            "country": person.get("country"),
            "countryCode": person.get("country_code"),
            "startDate": person.get("start_date"),
            "tenure": term["displayText"],
            "tenureCategory": term["category"],
            "tenureMonths": term["totalMonths"],
            "providerId": person.get("id"),
            "providerUrl": person.get("url"),
            "recentActivity": (
                f"Joined as {level} on {person['start_date']}"
                if person.get("start_date")
                else f"Verified {level} at company"
            ),
        })
    return contacts


def tag_fallback(items: list[Any]) -> list[dict[str, Any]]:
    """Mark knowledge-retrieved items standing in for primary-source data."""
    return [
        {**item, "source": FALLBACK_SOURCE, "verified": False}
        for item in items
        if isinstance(item, dict)
    ]


# -- Pain points ------------------------------------------------------------

_PAIN_POINT_TAGS = (
    ("scaling", ("scal", "growth", "expand")),
    ("compliance", ("compli", "regulat", "hipaa", "gdpr")),
    ("hiring", ("hir", "talent", "recruit")),
    ("budget", ("budget", "cost", "expense")),
    ("infrastructure", ("infrastructure", "architect", "system")),
    ("security", ("security", "cyber")),
    ("data", ("data", "analytics")),
    ("ai-ml", ("ai", "machine learning")),
    ("customer", ("customer", "client")),
    ("integration", ("integrat", "legacy")),
    ("transformation", ("transform", "moderniz")),
    ("team", ("team", "culture")),
)

_PRIORITY_KEYWORDS = (
    ("critical", ("critical", "urgent", "must", "immediately", "top priority")),
    ("high", ("biggest", "major", "significant", "key", "essential", "primary")),
    ("low", ("minor", "small", "exploring", "considering")),
)


def pain_point_tag(text: Any) -> str:
    """Categorize a stated challenge by keyword; first matching rule wins."""
    if not text or not isinstance(text, str):
        return "general"
    lowered = text.lower()
    for tag, needles in _PAIN_POINT_TAGS:
        if any(needle in lowered for needle in needles):
            return tag
    return "general"


def pain_point_priority(text: Any) -> str:
    """Infer critical, high, medium or low priority from a stated challenge."""
    if not text or not isinstance(text, str):
        return "medium"
    lowered = text.lower()
    for priority, needles in _PRIORITY_KEYWORDS:
        if any(needle in lowered for needle in needles):
            return priority
    return "medium"


# -- Thought leadership -----------------------------------------------------

_SPEAKING_KEYWORDS = (
    "spoke at", "speaking at", "excited to speak", "presented at", "presenting at",
    "keynote", "panel", "panelist", "moderator", "conference", "summit", "webinar",
    "workshop", "fireside", "session",
)
_AWARD_KEYWORDS = (
    "honored", "grateful", "recognized as", "finalist", "winner", "award",
    "top 50", "top 100", "named to", "selected as",
)
_MEDIA_KEYWORDS = (
    "featured in", "interviewed by", "profiled in", "quoted in", "article in", "published in",
)

_EVENT_PATTERNS = (
    re.compile(r"(?:at|for) the ([A-Z][^,.!?]{5,50}(?:Summit|Conference|Event|Forum|Symposium))", re.I),
    re.compile(r"(?:at|for) ([A-Z][^,.!?]{5,50})", re.I),
)
_AWARD_PATTERNS = (
    re.compile(
        r"(?:as|for|to) (?:a )?(?:finalist|winner|recipient) (?:of|for) (?:the )?([A-Z][^,.!?]{5,60})",
        re.I,
    ),
    re.compile(
        r"(?:honored|recognized|named) (?:as|to) (?:a )?([A-Z][^,.!?]{5,60}(?:Award|Leader|List|Recognition))",
        re.I,
    ),
)
_ORGANIZATION_PATTERN = re.compile(r"by ([A-Z][^,.!?]{3,40})(?:\.|,|$)", re.I)
_PUBLICATION_PATTERN = re.compile(
    r"(?:featured in|interviewed by|profiled in|quoted in|published in) ([A-Z][^,.!?]{3,40})",
    re.I,
)


def _first_match(patterns: tuple[re.Pattern, ...], text: str, default: str) -> str:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return default


def _speaking_role(lowered: str) -> str:
    if "keynote" in lowered:
        return "keynote"
    if "panel" in lowered:
        return "panelist"
    if "moderator" in lowered:
        return "moderator"
    return "speaker"


def _dedupe(items: list[dict[str, Any]], field: str) -> list[dict[str, Any]]:
    seen: dict[tuple[Any, Any], dict[str, Any]] = {}
    for item in items:
        seen.setdefault((item.get(field), item.get("date")), item)
    return list(seen.values())


def extract_thought_leadership(
    posts: list[Any],
    today: date | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """Recover speaking engagements, awards and media mentions from post text.

    Args:
        posts: Social activity posts (dicts with content, date, type, topics, url)
        today: Date used for posts without one

    Returns:
        {"speaking": [...], "awards": [...], "media": [...]}, with speaking
        deduplicated by event and date and awards by award and date
    """
    speaking: list[dict[str, Any]] = []
    awards: list[dict[str, Any]] = []
    media: list[dict[str, Any]] = []
    fallback_date = (today or date.today()).isoformat()

    for post in posts or []:
        if not isinstance(post, dict):
            continue
        content = post.get("content") or ""
        lowered = content.lower()
        post_date = post.get("date") or fallback_date
        topics = post.get("topics") or []

        if post.get("type") != "award" and any(k in lowered for k in _SPEAKING_KEYWORDS):
            speaking.append({
                "event": _first_match(_EVENT_PATTERNS, content, "Conference/Event"),
                "role": _speaking_role(lowered),
                "topic": ", ".join(topics) if topics else "Industry insights and trends",
                "date": post_date,
                "url": post.get("url"),
                "source": EXTRACTED_SOURCE,
            })

        if post.get("type") == "award" or any(k in lowered for k in _AWARD_KEYWORDS):
            awards.append({
                "award": _first_match(_AWARD_PATTERNS, content, "Industry Recognition"),
                "organization": _first_match(
                    (_ORGANIZATION_PATTERN,), content, "Industry Organization"
                ),
                "date": post_date,
                "url": post.get("url"),
                "source": EXTRACTED_SOURCE,
            })

        if any(k in lowered for k in _MEDIA_KEYWORDS):
            media.append({
                "publication": _first_match((_PUBLICATION_PATTERN,), content, "Media Publication"),
                "title": content[:100] + "...",
                "type": "interview",
                "date": post_date,
                "url": post.get("url"),
                "topics": topics,
                "source": EXTRACTED_SOURCE,
            })

    logger.debug(
        "Extracted from posts: %d speaking, %d awards, %d media",
        len(speaking), len(awards), len(media),
    )
    return {
        "speaking": _dedupe(speaking, "event"),
        "awards": _dedupe(awards, "award"),
        "media": media,
    }
