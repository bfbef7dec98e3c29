"""Tests for the funding fabrication screen."""

from datetime import date

from dossier.parsing import NOT_DISCLOSED, assess_funding, parse_amount, screen_private_financials
from dossier.parsing.validation import filter_placeholder_metrics

TODAY = date(2026, 10, 17)


def _round(**overrides):
    funding_round = {
        "round": "Series A",
        "amount": "$12M",
        "date": "2025-03-01",
        "investors": ["Example Ventures"],
        "source": "TechCrunch",
        "url": "https://techcrunch.com/2025/03/01/acme-series-a",
    }
    funding_round.update(overrides)
    return funding_round


def _financials(*rounds):
    return {
        "fundingRounds": list(rounds),
        "totalFunding": "$12M",
        "latestValuation": "$60M",
        "fundingStage": "Series A",
        "employees": 85,
        "dynamicFinancials": [
            {"label": "ARR", "value": "$8M"},
            {"label": "Burn", "value": "Not disclosed"},
        ],
    }


class TestParseAmount:
    """Tests for funding amount parsing."""

    def test_units(self):
        """K, M and B suffixes scale the number."""
        assert parse_amount("$500K") == 500_000
        assert parse_amount("$5M") == 5_000_000
        assert parse_amount("$1.2B") == 1_200_000_000
        assert parse_amount("$1,500,000") == 1_500_000
        assert parse_amount(2_000_000) == 2_000_000.0

    def test_unparseable(self):
        """Non-amounts return None."""
        assert parse_amount("undisclosed") is None
        assert parse_amount(None) is None


class TestAssessFunding:
    """Tests for signal counting."""

    def test_clean_round(self):
        """A sourced, plausible, past round has no signals."""
        assert assess_funding(_financials(_round()), today=TODAY).signals == []

    def test_each_signal(self):
        """Every heuristic contributes one signal."""
        suspicious = _round(
            amount="$120M",
            date="2027-01-01",
            url="https://...",
            source="news",
        )

        signals = assess_funding(_financials(suspicious), today=TODAY).signals

        assert len(signals) == 4
        assert any("unusually high" in s for s in signals)
        assert any("Future date" in s for s in signals)
        assert any("missing verifiable source URL" in s for s in signals)
        assert any("Vague source" in s for s in signals)

    def test_large_non_series_round_not_flagged(self):
        """The size check applies to Series rounds only."""
        signals = assess_funding(_financials(_round(round="Private equity", amount="$900M")), today=TODAY)

        assert signals.signals == []

    def test_no_financials(self):
        """Missing data is not suspicious."""
        assert not assess_funding(None).suspicious


class TestScreen:
    """Tests for the substitution decision."""

    def test_two_signals_replace_funding(self):
        """At the threshold, funding data becomes explicit sentinels."""
        financials = _financials(_round(amount="$200M", url=None))

        cleaned, assessment = screen_private_financials(financials, "Acme", threshold=2, today=TODAY)

        assert assessment.suspicious
        assert cleaned["fundingRounds"] is None
        assert cleaned["totalFunding"] == NOT_DISCLOSED
        assert cleaned["latestValuation"] == NOT_DISCLOSED
        assert cleaned["fundingStage"] == "Series A"
        assert cleaned["employees"] == 85
        assert cleaned["dynamicFinancials"] == [{"label": "ARR", "value": "$8M"}]
        assert cleaned["lastUpdated"] == "2026-10-17"

    def test_one_signal_keeps_data(self):
        """Below the threshold the data is returned unchanged."""
        financials = _financials(_round(url=None))

        cleaned, assessment = screen_private_financials(financials, "Acme", threshold=2, today=TODAY)

        assert cleaned is financials
        assert len(assessment.signals) == 1
        assert not assessment.suspicious

    def test_threshold_is_configurable(self):
        """A threshold of one rejects on a single signal."""
        cleaned, _ = screen_private_financials(
            _financials(_round(url=None)), threshold=1, today=TODAY
        )

        assert cleaned["fundingRounds"] is None

    def test_to_error(self):
        """An assessment converts to a FabricationSuspected carrying its signals."""
        assessment = assess_funding(_financials(_round(amount="$200M", url=None)), today=TODAY)

        assert assessment.to_error().signals == assessment.signals


def test_filter_placeholder_metrics():
    """Placeholder values are dropped, real ones kept."""
    metrics = [
        {"label": "ARR", "value": "$8M"},
        {"label": "Burn", "value": "N/A"},
        {"label": "Runway", "value": None},
        "not a metric",
    ]

    assert filter_placeholder_metrics(metrics) == [{"label": "ARR", "value": "$8M"}]
    assert filter_placeholder_metrics(None) == []
