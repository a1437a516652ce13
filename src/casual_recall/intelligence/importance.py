"""
Importance calculation for stored memories.

Importance blends emotional intensity, social breadth, uniqueness among
existing memories, recency and access frequency into a score between 0 and 1.
It decides which old memories the forgetting job may drop.
"""

import logging
from datetime import datetime
from typing import Optional

from casual_recall.models import Memory, local_naive

logger = logging.getLogger(__name__)

EMOTIONAL_WEIGHT = 0.3
SOCIAL_WEIGHT = 0.2
UNIQUENESS_WEIGHT = 0.2
RECENCY_WEIGHT = 0.15
ACCESS_WEIGHT = 0.15

# People count at which the social score saturates
SOCIAL_SATURATION = 10
# Near-duplicates counted when measuring uniqueness
UNIQUENESS_NEIGHBOURS = 10
UNIQUENESS_THRESHOLD = 0.9
RECENCY_HORIZON_DAYS = 365
# Recalls at which the access score saturates
ACCESS_SATURATION = 10


def uniqueness_from_neighbours(near_duplicates: int) -> float:
    """
    Uniqueness from the number of near-duplicate memories.

    Args:
        near_duplicates: Memories above UNIQUENESS_THRESHOLD similarity
            (at most UNIQUENESS_NEIGHBOURS are counted)

    Returns:
        1.0 for a unique memory, 0.0 when the neighbourhood is saturated
    """
    return 1.0 - min(near_duplicates, UNIQUENESS_NEIGHBOURS) / UNIQUENESS_NEIGHBOURS


def access_frequency(access_count: int) -> float:
    return min(1.0, access_count / ACCESS_SATURATION)


def calculate_importance(
    memory: Memory,
    uniqueness: float = 1.0,
    access: float = 0.0,
    now: Optional[datetime] = None,
) -> float:
    """
    Calculate the importance of a memory.

    Args:
        memory: The memory being scored
        uniqueness: 0..1, see uniqueness_from_neighbours()
        access: 0..1, see access_frequency()
        now: Reference time for recency (defaults to the current time)

    Returns:
        Importance between 0.0 and 1.0
    """
    if memory.emotions:
        emotional = sum(emotion.intensity for emotion in memory.emotions) / len(memory.emotions)
    else:
        emotional = 0.0

    social = min(1.0, len(memory.people) / SOCIAL_SATURATION)

    age_days = (local_naive(now or datetime.now()) - memory.timestamp).total_seconds() / 86400
    recency = min(1.0, max(0.0, 1.0 - age_days / RECENCY_HORIZON_DAYS))

    importance = (
        emotional * EMOTIONAL_WEIGHT
        + social * SOCIAL_WEIGHT
        + uniqueness * UNIQUENESS_WEIGHT
        + recency * RECENCY_WEIGHT
        + access * ACCESS_WEIGHT
    )
    importance = min(1.0, max(0.0, importance))

    logger.debug(
        f"Importance calculation: emotional={emotional:.2f}, social={social:.2f}, "
        f"uniqueness={uniqueness:.2f}, recency={recency:.2f}, access={access:.2f}, "
        f"final={importance:.2f}"
    )

    return importance
