"""Memory intelligence: importance scoring used by consolidation and forgetting."""

from casual_recall.intelligence.importance import (
    access_frequency,
    calculate_importance,
    uniqueness_from_neighbours,
)

__all__ = [
    "calculate_importance",
    "uniqueness_from_neighbours",
    "access_frequency",
]
