"""
Contextual re-scoring and multi-signal merge.

Semantic hits are first adjusted for the caller's situation (place, company,
recency). The three candidate lists are then merged into one coarse ranking
that the reranker refines.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from casual_recall.config import RetrievalConfig
from casual_recall.models import (
    LocationContext,
    Memory,
    MemoryContext,
    RetrievalSignal,
    local_naive,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6_371_000.0

# Upper bound of each age bucket and its weight; older memories get the floor
TIME_RELEVANCE_BUCKETS = (
    (timedelta(hours=1), 1.0),
    (timedelta(hours=24), 0.8),
    (timedelta(weeks=1), 0.6),
    (timedelta(days=30), 0.4),
    (timedelta(days=365), 0.2),
)
TIME_RELEVANCE_FLOOR = 0.1


def haversine_distance(a: LocationContext, b: LocationContext) -> float:
    """Great-circle distance between two locations, in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def time_relevance(timestamp: datetime, now: Optional[datetime] = None) -> float:
    """
    Weight of a memory's age, strictly decreasing across bucket boundaries.

    Timestamps in the future count as brand new.
    """
    age = local_naive(now or datetime.now()) - local_naive(timestamp)
    for limit, weight in TIME_RELEVANCE_BUCKETS:
        if age < limit:
            return weight
    return TIME_RELEVANCE_FLOOR


def contextual_score(
    memory: Memory,
    similarity: float,
    context: MemoryContext,
    config: RetrievalConfig,
    now: Optional[datetime] = None,
) -> float:
    """
    Adjust a semantic similarity for the retrieval context.

    Args:
        memory: Candidate memory
        similarity: Its cosine similarity to the query
        context: Current situation of the user
        config: Boost weights and proximity radius
        now: Reference time (defaults to the current time)

    Returns:
        similarity plus location, shared-people and recency boosts
    """
    score = similarity

    if context.current_location is not None and memory.location is not None:
        distance = haversine_distance(context.current_location, memory.location)
        if distance < config.proximity_radius_meters:
            score += config.location_boost

    if context.recent_people and memory.people:
        recent = {person.id for person in context.recent_people}
        shared = sum(1 for person in memory.people if person.id in recent)
        score += config.person_boost * shared

    score += config.time_weight * time_relevance(memory.timestamp, now)
    return score


@dataclass
class MergedCandidate:
    """A memory in the merged candidate set with its coarse score."""

    memory: Memory
    score: float
    signals: List[RetrievalSignal] = field(default_factory=list)


def merge_candidates(
    semantic: Sequence[Memory],
    temporal: Sequence[Memory],
    relational: Sequence[Memory],
    config: RetrievalConfig,
) -> List[MergedCandidate]:
    """
    Merge the three candidate lists into one scored set.

    Semantic candidates start at semantic_base. A temporal candidate already
    present gains temporal_boost, otherwise it enters at temporal_base; the
    same holds for relational candidates with their own boost and base.

    Returns:
        Candidates sorted by score, highest first; ties keep first-seen order
    """
    merged: Dict[str, MergedCandidate] = {}

    for memory in semantic:
        if memory.id not in merged:
            merged[memory.id] = MergedCandidate(memory, config.semantic_base, ["semantic"])

    for signal, memories, boost, base in (
        ("temporal", temporal, config.temporal_boost, config.temporal_base),
        ("relational", relational, config.relational_boost, config.relational_base),
    ):
        seen = set()
        for memory in memories:
            if memory.id in seen:
                continue
            seen.add(memory.id)

            candidate = merged.get(memory.id)
            if candidate is None:
                merged[memory.id] = MergedCandidate(memory, base, [signal])
            else:
                candidate.score += boost
                candidate.signals.append(signal)

    ranked = sorted(merged.values(), key=lambda candidate: -candidate.score)

    logger.debug(
        f"Merged {len(ranked)} candidates "
        f"(semantic={len(semantic)}, temporal={len(temporal)}, relational={len(relational)})"
    )
    return ranked
