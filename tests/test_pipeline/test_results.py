"""Tests for pipeline result types and cost accounting."""

import pytest

from dossier.pipeline import AnalysisResult, TaskResult, Usage
from dossier.pipeline.results import cost_breakdown


class TestUsage:
    """Tests for token usage arithmetic."""

    def test_add(self):
        """Usage sums field by field."""
        total = Usage(10, 5, 15) + Usage(1, 2, 3)

        assert total == Usage(11, 7, 18)

    def test_from_dict(self):
        """Missing fields default to zero."""
        assert Usage.from_dict({"total_tokens": 9}) == Usage(0, 0, 9)
        assert Usage.from_dict(None) == Usage()


class TestCost:
    """Tests for the cost breakdown."""

    def test_sonar(self):
        """Tokens are priced per million; credits at the per-credit rate."""
        breakdown = cost_breakdown(Usage(1_000_000, 500_000, 1_500_000), primary_units=10)

        assert breakdown["knowledgeUsd"] == pytest.approx(1.5)
        assert breakdown["primaryUsd"] == pytest.approx(0.4)
        assert breakdown["totalUsd"] == pytest.approx(1.9)

    def test_pro_model(self):
        """sonar-pro prices output tokens higher."""
        breakdown = cost_breakdown(Usage(1_000_000, 1_000_000, 2_000_000), 0, model="sonar-pro")

        assert breakdown["knowledgeUsd"] == pytest.approx(18.0)

    def test_unknown_model_priced_as_default(self):
        """Unknown models fall back to sonar pricing."""
        usage = Usage(1000, 1000, 2000)

        assert cost_breakdown(usage, 0, model="mystery") == cost_breakdown(usage, 0)


class TestSerialization:
    """Tests for to_dict()."""

    def test_task_result_failure(self):
        """Failures carry the error text."""
        payload = TaskResult.failure("recent_news", ValueError("bad"), attempts=2).to_dict()

        assert payload["success"] is False
        assert payload["error"] == "bad"
        assert payload["attempts"] == 2
        assert payload["usage"] == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}

    def test_analysis_result_error(self):
        """Errors are included only when set."""
        assert "error" not in AnalysisResult(success=True, data={}).to_dict()
        assert AnalysisResult(success=False, data=None, error="x").to_dict()["error"] == "x"
