"""
AdaTopo Topology Builders
=========================

One construction strategy per topology family. ``TopologyBuilder.build``
replaces the whole edge set (clear, then rebuild); builders are never applied
incrementally on top of a different topology.
"""

from __future__ import annotations

import itertools
import logging
import math
import random
from typing import Callable, Optional

from adatopo.graph import TopologyGraph, TopologyNode
from adatopo.models import AgentType, TopologyType
from adatopo.scoring import ConnectionScorer

logger = logging.getLogger("adatopo.builders")

SMALL_WORLD_MAX_K = 6
SMALL_WORLD_REWIRE_P = 0.1
SCALE_FREE_HUB_FRACTION = 0.2
SCALE_FREE_HUBS_PER_NODE = 3
HYBRID_EXTRA_EDGE_FRACTION = 0.3


class TopologyBuilder:
    """Builds a topology of a given type over the nodes currently in the graph.

    Usage:
        builder = TopologyBuilder(graph, scorer, rng=random.Random(7))
        created = builder.build(TopologyType.RING)
    """

    def __init__(
        self,
        graph: TopologyGraph,
        scorer: ConnectionScorer,
        rng: Optional[random.Random] = None,
    ):
        self.graph = graph
        self.scorer = scorer
        self.rng = rng or random.Random()
        self._builders: dict[TopologyType, Callable[[], int]] = {
            TopologyType.MESH: self.build_mesh,
            TopologyType.HIERARCHICAL: self.build_hierarchical,
            TopologyType.RING: self.build_ring,
            TopologyType.STAR: self.build_star,
            TopologyType.SMALL_WORLD: self.build_small_world,
            TopologyType.SCALE_FREE: self.build_scale_free,
            TopologyType.HYBRID: self.build_hybrid,
        }

    def build(self, topology_type: TopologyType) -> int:
        """Clear every connection and rebuild as ``topology_type``.

        Returns:
            Number of connections in the rebuilt graph.
        """
        dropped = self.graph.clear_connections()
        self._builders[TopologyType(topology_type)]()
        logger.info(
            f"Rebuilt topology as {TopologyType(topology_type).value}: "
            f"dropped {dropped}, now {self.graph.connection_count} connections "
            f"across {len(self.graph)} nodes"
        )
        return self.graph.connection_count

    def connect(self, a: TopologyNode, b: TopologyNode) -> bool:
        if a.id == b.id or self.graph.has_connection(a.id, b.id):
            return False
        return self.graph.add_connection(self.scorer.make_connection(a.agent, b.agent))

    # ── Strategies ───────────────────────────────────────────────────────────

    def build_mesh(self) -> int:
        return sum(self.connect(a, b) for a, b in itertools.combinations(self.graph.nodes, 2))

    def build_hierarchical(self) -> int:
        nodes = self.graph.nodes
        coordinators = [n for n in nodes if n.agent.type == AgentType.COORDINATOR]
        others = [n for n in nodes if n.agent.type != AgentType.COORDINATOR]

        created = sum(self.connect(a, b) for a, b in itertools.combinations(coordinators, 2))
        if not coordinators:
            logger.debug("Hierarchical build: no coordinators, non-coordinators left unattached")
            return created

        for node in others:
            best = min(coordinators, key=lambda c: c.agent.load)
            created += self.connect(node, best)
        return created

    def build_ring(self) -> int:
        nodes = self.graph.nodes
        n = len(nodes)
        if n < 2:
            return 0
        return sum(self.connect(nodes[i], nodes[(i + 1) % n]) for i in range(n))

    def build_star(self) -> int:
        nodes = self.graph.nodes
        if not nodes:
            return 0
        hub = next((n for n in nodes if n.agent.type == AgentType.COORDINATOR), nodes[0])
        return sum(self.connect(hub, n) for n in nodes if n.id != hub.id)

    def build_small_world(self) -> int:
        """Watts-Strogatz style: ring lattice, then rewire each edge with p=0.1."""
        nodes = self.graph.nodes
        n = len(nodes)
        if n < 2:
            return 0
        k = min(SMALL_WORLD_MAX_K, n - 1)
        for i in range(n):
            for j in range(1, k // 2 + 1):
                self.connect(nodes[i], nodes[(i + j) % n])

        rewired = 0
        for connection in self.graph.connections:
            if self.rng.random() >= SMALL_WORLD_REWIRE_P:
                continue
            self.graph.remove_connection(connection.source, connection.target)
            anchor = self.graph.get(connection.source)
            others = [x for x in nodes if x.id != anchor.id]
            if self.connect(anchor, self.rng.choice(others)):
                rewired += 1
        logger.debug(f"Small-world build: k={k}, rewired {rewired} edges")
        return self.graph.connection_count

    def build_scale_free(self) -> int:
        nodes = self.graph.nodes
        if not nodes:
            return 0
        hub_count = math.ceil(len(nodes) * SCALE_FREE_HUB_FRACTION)
        hubs = sorted(nodes, key=lambda x: x.agent.performance.throughput, reverse=True)[:hub_count]
        hub_ids = {h.id for h in hubs}

        created = sum(self.connect(a, b) for a, b in itertools.combinations(hubs, 2))
        for node in nodes:
            if node.id in hub_ids:
                continue
            ranked = sorted(
                hubs,
                key=lambda h: h.degree + h.agent.performance.throughput,
                reverse=True,
            )
            for hub in ranked[:SCALE_FREE_HUBS_PER_NODE]:
                created += self.connect(node, hub)
        return created

    def build_hybrid(self) -> int:
        created = self.build_hierarchical()
        nodes = self.graph.nodes
        wanted = round(HYBRID_EXTRA_EDGE_FRACTION * len(nodes))
        open_pairs = [
            (a, b)
            for a, b in itertools.combinations(nodes, 2)
            if not self.graph.has_connection(a.id, b.id)
        ]
        for a, b in self.rng.sample(open_pairs, min(wanted, len(open_pairs))):
            created += self.connect(a, b)
        return created
