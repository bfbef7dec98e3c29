"""Result types produced by the analysis pipeline.

TaskResult is the outcome of one knowledge-retrieval task. AnalysisResult
is the outcome of a whole company or person analysis, including token
usage and the cost breakdown across both providers.
"""

from dataclasses import dataclass, field
from typing import Any

from dossier.clients.sumble import COST_PER_CREDIT

# USD per million tokens (input, output)
PRICING_PER_MILLION = {
    "sonar": (1.0, 1.0),
    "sonar-pro": (3.0, 15.0),
}


@dataclass
class Usage:
    """Token counts reported by the knowledge provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Usage":
        data = data or {}
        return cls(
            prompt_tokens=int(data.get("prompt_tokens", 0)),
            completion_tokens=int(data.get("completion_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


def cost_breakdown(usage: Usage, primary_units: int, model: str = "sonar") -> dict[str, float]:
    """Estimate the USD cost of one analysis.

    Args:
        usage: Aggregate knowledge-provider token usage
        primary_units: Primary-source credits consumed
        model: Knowledge model id (unknown models are priced as sonar)

    Returns:
        Dictionary with knowledgeUsd, primaryUsd and totalUsd
    """
    input_price, output_price = PRICING_PER_MILLION.get(model, PRICING_PER_MILLION["sonar"])
    knowledge = (
        usage.prompt_tokens * input_price + usage.completion_tokens * output_price
    ) / 1_000_000
    primary = primary_units * COST_PER_CREDIT
    return {
        "knowledgeUsd": round(knowledge, 6),
        "primaryUsd": round(primary, 4),
        "totalUsd": round(knowledge + primary, 6),
    }


@dataclass
class TaskResult:
    """Outcome of one task execution.

    Attributes:
        task: Task name
        success: Whether the task produced validated data
        data: Parsed and validated response (None on failure)
        error: Failure description (None on success)
        attempts: Attempts made
        usage: Token usage summed over all attempts
        citations: Source URLs returned with the answer
        source: Which provider produced the data
        warnings: Non-fatal validation warnings
    """

    task: str
    success: bool
    data: Any = None
    error: str | None = None
    attempts: int = 0
    usage: Usage = field(default_factory=Usage)
    citations: list[str] = field(default_factory=list)
    source: str = "knowledge"
    warnings: list[str] = field(default_factory=list)
    units_consumed: int = 0

    @classmethod
    def failure(cls, task: str, error: BaseException | str, attempts: int = 0) -> "TaskResult":
        return cls(task=task, success=False, error=str(error), attempts=attempts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "task": self.task,
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "attempts": self.attempts,
            "usage": self.usage.to_dict(),
            "citations": self.citations,
            "source": self.source,
            "warnings": self.warnings,
        }


@dataclass
class AnalysisResult:
    """Complete output of a company or person analysis."""

    success: bool
    data: dict[str, Any] | None
    usage: Usage = field(default_factory=Usage)
    cost_breakdown: dict[str, float] = field(default_factory=dict)
    data_source_breakdown: dict[str, str] = field(default_factory=dict)
    primary_units_used: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "data": self.data,
            "usage": self.usage.to_dict(),
            "costBreakdown": self.cost_breakdown,
        }
        if self.data_source_breakdown:
            result["dataSourceBreakdown"] = self.data_source_breakdown
            result["primaryUnitsUsed"] = self.primary_units_used
        if self.error is not None:
            result["error"] = self.error
        return result
