"""Response parsing, validation, and fabrication screening."""

from dossier.parsing.extraction import REPAIR_RULES, RepairRule, extract_structure
from dossier.parsing.validation import (
    NOT_DISCLOSED,
    FundingAssessment,
    assess_funding,
    is_valid_profile_url,
    parse_amount,
    parse_market_cap,
    screen_private_financials,
    validate,
)

__all__ = [
    "REPAIR_RULES",
    "RepairRule",
    "extract_structure",
    "NOT_DISCLOSED",
    "FundingAssessment",
    "assess_funding",
    "is_valid_profile_url",
    "parse_amount",
    "parse_market_cap",
    "screen_private_financials",
    "validate",
]
