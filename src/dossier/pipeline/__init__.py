"""Analysis pipeline: task execution, batch orchestration, and the cached facade.

The pipeline coordinates the entire flow:
1. Resolve the company domain
2. Run the three fixed batches against both providers
3. Combine batch outputs into one versioned record
4. Serve records through the two-tier cache with request coalescing

Components:
- Orchestrator: Task execution with retry, batch joins, provider fallback
- AnalysisService: Cache check, coalescing, audit rows around the orchestrator
"""

from dossier.pipeline.orchestrator import JoinPolicy, Orchestrator
from dossier.pipeline.results import AnalysisResult, TaskResult, Usage
from dossier.pipeline.service import AnalysisResponse, AnalysisService

__all__ = [
    "AnalysisResponse",
    "AnalysisResult",
    "AnalysisService",
    "JoinPolicy",
    "Orchestrator",
    "TaskResult",
    "Usage",
]
