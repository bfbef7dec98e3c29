"""Per-task structural validation and the funding fabrication screen.

validate() raises ValidationError for output that should be re-sampled and
returns non-fatal warnings for output that is merely unusual.
screen_private_financials() never raises: suspicious funding data is
replaced with explicit "Not disclosed" sentinels.

Usage:
    from dossier.parsing import validate, screen_private_financials

    warnings = validate(data, "financial_snapshot")
    cleaned, assessment = screen_private_financials(funding, threshold=2)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import urlparse

from dossier.errors import FabricationSuspected, ValidationError

logger = logging.getLogger(__name__)

NOT_DISCLOSED = "Not disclosed"

ARRAY_TASKS = frozenset({
    "recent_news",
    "growth_events",
    "tech_stack",
    "company_activity",
    "priority_contacts",
})
OBJECT_TASKS = frozenset({
    "company_domain",
    "financial_snapshot",
    "private_financials",
    "company_challenges",
    "industry_context",
    "organization_profile",
    "company_intelligence",
    "person_basic_info",
    "person_media_presence",
    "person_social_activity",
    "person_quoted_challenges",
    "person_risk_signals",
})

NEWS_SENTIMENTS = frozenset({"positive", "neutral", "negative"})

_MARKET_CAP = re.compile(r"^[$€£¥]?\d+(\.\d+)?[MBT]$")
_MARKET_CAP_FLAG_MILLIONS = 50_000  # $50B
_PROFILE_PREFIXES = ("https://www.linkedin.com/in/", "https://linkedin.com/in/")
_SYNTHETIC_SLUG = re.compile(r"123456789|abcdefgh|test-user|example", re.IGNORECASE)

# Fabrication screen
SERIES_ROUND_LIMIT = 50_000_000  # USD
_GENERIC_SOURCES = frozenset({"company announcement", "news", "..."})
_AMOUNT = re.compile(r"([\d.]+)\s*([KMB])?", re.IGNORECASE)
_AMOUNT_UNITS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}
_PLACEHOLDER_VALUES = frozenset({"not disclosed", "not available", "n/a", "null", "unknown", ""})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_market_cap(value: str | None) -> float | None:
    """Convert a market cap string like "$94B" to millions of dollars."""
    if not value or not isinstance(value, str):
        return None
    match = re.match(r"^[$€£¥]?([\d.]+)\s*([MBT])$", value.strip(), re.IGNORECASE)
    if not match:
        return None
    try:
        amount = float(match.group(1))
    except ValueError:
        return None
    multiplier = {"M": 1, "B": 1_000, "T": 1_000_000}[match.group(2).upper()]
    return amount * multiplier


def is_valid_profile_url(url: Any) -> bool:
    """Check a person profile URL has the provider's shape and is not synthetic.

    None is valid (unknown profile). Anything else must be an https
    linkedin.com/in/<slug> URL whose slug is not an obvious placeholder.
    """
    if url is None:
        return True
    if not isinstance(url, str) or not url.startswith(_PROFILE_PREFIXES):
        return False
    slug = urlparse(url).path.removeprefix("/in/").strip("/")
    if not slug:
        return False
    return not _SYNTHETIC_SLUG.search(slug)


def _validate_financial_snapshot(data: dict[str, Any]) -> list[str]:
    warnings: list[str] = []
    if data.get("isPublic"):
        for key in ("symbol", "exchange", "currency"):
            if not data.get(key):
                raise ValidationError("financial_snapshot", f"public company missing '{key}'")

    price = data.get("price")
    if price is not None and (not _is_number(price) or price <= 0):
        raise ValidationError("financial_snapshot", f"price must be a positive number, got {price!r}")

    ytd = data.get("ytd")
    if ytd is not None and not _is_number(ytd):
        raise ValidationError("financial_snapshot", f"ytd must be a number, got {ytd!r}")
    if ytd == 0 and price is None:
        raise ValidationError("financial_snapshot", "ytd of 0 with no price looks like a placeholder")

    market_cap = data.get("marketCap")
    if market_cap is not None:
        if not isinstance(market_cap, str) or not _MARKET_CAP.match(market_cap):
            raise ValidationError(
                "financial_snapshot", f"marketCap must look like '94B', got {market_cap!r}"
            )
        millions = parse_market_cap(market_cap)
        if millions is not None and millions > _MARKET_CAP_FLAG_MILLIONS:
            warnings.append(f"marketCap {market_cap} exceeds $50B, verify against source")
    return warnings


def _validate_news(items: list[Any]) -> None:
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("recent_news", f"item {i} is not an object")
        sentiment = item.get("sentiment")
        if sentiment is not None and sentiment not in NEWS_SENTIMENTS:
            raise ValidationError("recent_news", f"item {i} has unknown sentiment {sentiment!r}")


def _validate_contacts(items: list[Any]) -> None:
    for i, contact in enumerate(items):
        if not isinstance(contact, dict):
            raise ValidationError("priority_contacts", f"contact {i} is not an object")
        if not contact.get("name") or not contact.get("title"):
            raise ValidationError("priority_contacts", f"contact {i} missing name or title")
        if not is_valid_profile_url(contact.get("profileUrl")):
            raise ValidationError(
                "priority_contacts", f"contact {i} has invalid profileUrl {contact.get('profileUrl')!r}"
            )


def validate(data: Any, task_type: str) -> list[str]:
    """Structurally validate parsed output for one task type.

    Args:
        data: Parsed provider output
        task_type: Task name from the registry

    Returns:
        Non-fatal warnings (possibly empty)

    Raises:
        ValidationError: If the data should be discarded and re-sampled
    """
    if data is None:
        raise ValidationError(task_type, "empty data")

    if task_type in ARRAY_TASKS:
        if not isinstance(data, list):
            raise ValidationError(task_type, f"expected array, got {type(data).__name__}")
        if task_type == "recent_news":
            _validate_news(data)
        elif task_type == "priority_contacts":
            _validate_contacts(data)
        return []

    if task_type in OBJECT_TASKS:
        if not isinstance(data, dict):
            raise ValidationError(task_type, f"expected object, got {type(data).__name__}")
        if task_type == "financial_snapshot":
            return _validate_financial_snapshot(data)
        if task_type == "company_domain":
            if not isinstance(data.get("domain"), str) or not data["domain"].strip():
                raise ValidationError(task_type, "missing 'domain'")
        elif task_type == "person_basic_info":
            if not is_valid_profile_url(data.get("linkedinUrl")):
                raise ValidationError(task_type, f"invalid linkedinUrl {data.get('linkedinUrl')!r}")
        return []

    return []


# -- Fabrication screen -----------------------------------------------------

def parse_amount(value: Any) -> float | None:
    """Parse a funding amount like "$5M", "$500K" or "$1.2B" into dollars."""
    if _is_number(value):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _AMOUNT.search(value.replace(",", ""))
    if not match:
        return None
    try:
        number = float(match.group(1))
    except ValueError:
        return None
    unit = (match.group(2) or "").upper()
    return number * _AMOUNT_UNITS.get(unit, 1)


@dataclass
class FundingAssessment:
    """Result of the funding fabrication screen."""

    signals: list[str] = field(default_factory=list)
    threshold: int = 2

    @property
    def suspicious(self) -> bool:
        return len(self.signals) >= self.threshold

    def to_error(self) -> FabricationSuspected:
        return FabricationSuspected(self.signals)


def _round_signals(index: int, funding_round: dict[str, Any], today: date) -> list[str]:
    signals = []
    label = str(funding_round.get("round") or "")

    if "series" in label.lower():
        amount = parse_amount(funding_round.get("amount"))
        if amount and amount > SERIES_ROUND_LIMIT:
            signals.append(f"{label} of ${amount / 1_000_000:g}M is unusually high")

    round_date = funding_round.get("date")
    if round_date:
        try:
            if date.fromisoformat(str(round_date)[:10]) > today:
                signals.append(f"Future date detected: {round_date}")
        except ValueError:
            pass

    url = funding_round.get("url")
    if not url or "..." in str(url):
        signals.append(f"Round {index + 1} missing verifiable source URL")

    source = funding_round.get("source")
    if source is not None and str(source).strip().lower() in _GENERIC_SOURCES | {""}:
        signals.append(f'Vague source: "{source}"')

    return signals


def assess_funding(
    financials: dict[str, Any] | None,
    threshold: int = 2,
    today: date | None = None,
) -> FundingAssessment:
    """Count suspicious signals across all funding rounds.

    Args:
        financials: Parsed private financials (may be None)
        threshold: Signal count at which the data is considered fabricated
        today: Reference date for the future-date check

    Returns:
        FundingAssessment with one entry per signal
    """
    assessment = FundingAssessment(threshold=threshold)
    rounds = (financials or {}).get("fundingRounds") or []
    today = today or date.today()
    for i, funding_round in enumerate(rounds):
        if isinstance(funding_round, dict):
            assessment.signals.extend(_round_signals(i, funding_round, today))
    return assessment


def filter_placeholder_metrics(metrics: Any) -> list[dict[str, Any]]:
    """Drop dynamic financial metrics whose value is a placeholder."""
    if not isinstance(metrics, list):
        return []
    return [
        m for m in metrics
        if isinstance(m, dict)
        and m.get("value") is not None
        and str(m.get("value")).strip().lower() not in _PLACEHOLDER_VALUES
    ]


def not_disclosed_financials(
    original: dict[str, Any],
    today: date | None = None,
) -> dict[str, Any]:
    """Sentinel structure substituted for untrustworthy funding data."""
    return {
        "fundingRounds": None,
        "totalFunding": NOT_DISCLOSED,
        "latestValuation": NOT_DISCLOSED,
        "fundingStage": original.get("fundingStage") or NOT_DISCLOSED,
        "revenueEstimate": NOT_DISCLOSED,
        "employees": original.get("employees") or NOT_DISCLOSED,
        "growthMetrics": {
            "revenueGrowth": NOT_DISCLOSED,
            "employeeGrowth": NOT_DISCLOSED,
            "customerGrowth": NOT_DISCLOSED,
        },
        "notableInvestors": None,
        "dynamicFinancials": filter_placeholder_metrics(original.get("dynamicFinancials")),
        "financialSummary": {
            "sentiment": "neutral",
            "sentimentReason": "Insufficient verified financial data available",
            "revenueChange": None,
            "lastFunding": None,
        },
        "lastUpdated": (today or date.today()).isoformat(),
        "sources": ["Data validation failed - awaiting manual verification"],
    }


def screen_private_financials(
    financials: dict[str, Any],
    company_name: str = "",
    threshold: int = 2,
    today: date | None = None,
) -> tuple[dict[str, Any], FundingAssessment]:
    """Apply the fabrication screen to private funding data.

    At or above the threshold the funding substructure is discarded and
    replaced by NOT_DISCLOSED sentinels. Below it the data is returned
    unchanged.

    Args:
        financials: Parsed private financials
        company_name: Used in log messages
        threshold: Signal count that triggers substitution
        today: Reference date for the future-date check

    Returns:
        (financials to use, assessment)
    """
    assessment = assess_funding(financials, threshold=threshold, today=today)

    if assessment.suspicious:
        logger.warning(
            "Funding data for %s rejected: %s", company_name or "company", assessment.to_error()
        )
        return not_disclosed_financials(financials, today=today), assessment

    if assessment.signals:
        logger.info(
            "Funding data for %s kept with %d signal(s): %s",
            company_name or "company", len(assessment.signals), "; ".join(assessment.signals),
        )
    return financials, assessment
