"""Knowledge-retrieval task registry."""

from dossier.tasks.registry import (
    SEARCH_CONFIG,
    TASKS,
    SearchConfig,
    TaskSpec,
    get_task,
    validate_registry,
)

__all__ = [
    "SEARCH_CONFIG",
    "TASKS",
    "SearchConfig",
    "TaskSpec",
    "get_task",
    "validate_registry",
]
