"""
Knowledge graph linking memories through shared entities.

Memories are connected to the people, places, tags and emotions they mention.
Two memories are related when they share an entity node; a query is related
to every memory attached to an entity whose label appears in the query text.
"""

import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple

import networkx as nx

from casual_recall.models import Memory

logger = logging.getLogger(__name__)

MEMORY_KIND = "memory"


def _memory_node(memory_id: str) -> str:
    return f"memory:{memory_id}"


def _entities(memory: Memory) -> List[Tuple[str, str, str]]:
    """(node, kind, label) for every entity a memory mentions."""
    entities = []
    for person in memory.people:
        entities.append((f"person:{person.id}", "person", person.name))
    if memory.location is not None and memory.location.place_name:
        place = memory.location.place_name
        entities.append((f"place:{place.lower()}", "place", place))
    for tag in memory.tags:
        entities.append((f"tag:{tag.lower()}", "tag", tag))
    for emotion in memory.emotions:
        entities.append((f"emotion:{emotion.emotion.lower()}", "emotion", emotion.emotion))
    # A blank label would match every query
    return [entity for entity in entities if entity[2].strip()]


class KnowledgeGraph:
    """
    Undirected memory/entity graph backed by networkx.

    Satisfies the RelationalSource protocol.
    """

    def __init__(self):
        self.graph = nx.Graph()

    def add_memory(self, memory: Memory) -> None:
        """Attach a memory to its entities, replacing an earlier version."""
        node = _memory_node(memory.id)
        if node in self.graph:
            self.remove_memory(memory.id)

        self.graph.add_node(node, kind=MEMORY_KIND, memory=memory)
        for entity, kind, label in _entities(memory):
            if entity not in self.graph:
                self.graph.add_node(entity, kind=kind, label=label)
            self.graph.add_edge(node, entity)

        logger.debug(f"Added memory {memory.id} with {self.graph.degree(node)} entities")

    def remove_memory(self, memory_id: str) -> bool:
        """Detach a memory; entities left without memories are pruned."""
        node = _memory_node(memory_id)
        if node not in self.graph:
            return False

        entities = list(self.graph.neighbors(node))
        self.graph.remove_node(node)
        orphans = [entity for entity in entities if self.graph.degree(entity) == 0]
        self.graph.remove_nodes_from(orphans)
        return True

    def get_memory(self, memory_id: str) -> Optional[Memory]:
        node = _memory_node(memory_id)
        if node not in self.graph:
            return None
        return self.graph.nodes[node]["memory"]

    def _rank(self, matches: Dict[str, int], limit: int) -> List[Memory]:
        memories = [(self.graph.nodes[node]["memory"], count) for node, count in matches.items()]
        memories.sort(
            key=lambda item: (-item[1], -item[0].importance, -item[0].timestamp.timestamp(), item[0].id)
        )
        return [memory for memory, _ in memories[:limit]]

    async def find_related(self, query: str, limit: int = 10) -> List[Memory]:
        """
        Memories attached to entities whose label occurs in the query.

        Ranked by number of matched entities, then importance, then recency.
        """
        if limit <= 0 or not query.strip():
            return []

        text = query.lower()
        matches: Counter = Counter()
        for entity, data in self.graph.nodes(data=True):
            if data["kind"] == MEMORY_KIND:
                continue
            if re.search(rf"\b{re.escape(data['label'].lower())}\b", text):
                matches.update(self.graph.neighbors(entity))

        related = self._rank(matches, limit)
        logger.debug(f"{len(related)} related memories for query: {query[:50]}")
        return related

    def related_memories(self, memory_id: str, limit: int = 10) -> List[Memory]:
        """Memories sharing at least one entity with the given memory."""
        node = _memory_node(memory_id)
        if node not in self.graph:
            return []

        matches: Counter = Counter()
        for entity in self.graph.neighbors(node):
            matches.update(other for other in self.graph.neighbors(entity) if other != node)

        return self._rank(matches, limit)

    def get_metrics(self) -> dict:
        memory_nodes = sum(1 for _, kind in self.graph.nodes(data="kind") if kind == MEMORY_KIND)
        return {
            "memories": memory_nodes,
            "entities": self.graph.number_of_nodes() - memory_nodes,
            "edges": self.graph.number_of_edges(),
        }
