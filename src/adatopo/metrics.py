"""
AdaTopo Metrics Engine
======================

Computes the topology metrics and per-node centrality from scratch.

The engine is a pure function of a detached ``networkx.Graph`` (see
``TopologyGraph.to_networkx``), so it can run in a worker thread while the
manager holds its mutation lock. Results come back as a ``MetricsReport``
that the manager swaps in as a whole.

Metric definitions:
- connectivity: |E| / (N(N-1)/2)
- average_path_length / network_diameter: BFS hop counts over reachable
  unordered pairs, UNREACHABLE (inf) when no pair is reachable
- clustering_coefficient: mean local coefficient over nodes of degree >= 2
- load_balance: 1 - population stddev of agent loads
- resilience: share of Monte-Carlo trials in which removing a random 20% of
  nodes leaves the remainder connected
- efficiency: equal-weight blend of connectivity, load balance, resilience
  and 1 / max(average_path_length, 1)

Betweenness counts a single BFS shortest path per pair. Graphs with several
equal-length shortest paths therefore get an approximate (understated)
betweenness for nodes on the paths not taken.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Optional

import networkx as nx
import numpy as np

from adatopo.models import UNREACHABLE, Centrality, TopologyMetrics

logger = logging.getLogger("adatopo.metrics")


@dataclass
class MetricsReport:
    """Output of one full recomputation."""

    metrics: TopologyMetrics
    centrality: dict[str, Centrality] = field(default_factory=dict)


class MetricsEngine:
    """Stateless metric computation over an undirected agent graph.

    Args:
        rng: Random source for the resilience trials.
        resilience_trials: Number of Monte-Carlo trials.
        failure_fraction: Share of nodes removed per trial (floored).
        eigenvector_iterations: Power-iteration rounds.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        resilience_trials: int = 10,
        failure_fraction: float = 0.2,
        eigenvector_iterations: int = 100,
    ):
        self.rng = rng or random.Random()
        self.resilience_trials = resilience_trials
        self.failure_fraction = failure_fraction
        self.eigenvector_iterations = eigenvector_iterations

    def compute(self, G: nx.Graph) -> MetricsReport:
        n = G.number_of_nodes()
        if n == 0:
            return MetricsReport(metrics=TopologyMetrics())

        order = list(G.nodes())
        lengths = dict(nx.all_pairs_shortest_path_length(G))

        connectivity = self.connectivity(G)
        avg_path, diameter = self.path_lengths(order, lengths)
        clustering = self.clustering_coefficient(G)
        load_balance = self.load_balance(G)
        resilience = self.resilience(G)

        efficiency = 0.25 * (
            connectivity
            + load_balance
            + resilience
            + 1.0 / max(avg_path, 1.0)
        )

        metrics = TopologyMetrics(
            efficiency=efficiency,
            resilience=resilience,
            connectivity=connectivity,
            load_balance=load_balance,
            average_path_length=avg_path,
            clustering_coefficient=clustering,
            network_diameter=diameter,
        )
        centrality = self.centrality(G, order, lengths)
        return MetricsReport(metrics=metrics, centrality=centrality)

    # ── Global metrics ───────────────────────────────────────────────────────

    @staticmethod
    def connectivity(G: nx.Graph) -> float:
        n = G.number_of_nodes()
        if n <= 1:
            return 0.0
        return G.number_of_edges() / (n * (n - 1) / 2)

    @staticmethod
    def path_lengths(order: list[str], lengths: dict[str, dict[str, int]]) -> tuple[float, float]:
        distances = [
            lengths[a][b]
            for i, a in enumerate(order)
            for b in order[i + 1:]
            if b in lengths[a]
        ]
        if not distances:
            return UNREACHABLE, UNREACHABLE
        return sum(distances) / len(distances), float(max(distances))

    @staticmethod
    def clustering_coefficient(G: nx.Graph) -> float:
        local = nx.clustering(G)
        qualifying = [c for node, c in local.items() if G.degree(node) >= 2]
        if not qualifying:
            return 0.0
        return sum(qualifying) / len(qualifying)

    @staticmethod
    def load_balance(G: nx.Graph) -> float:
        loads = [load for _, load in G.nodes(data="load", default=0.0)]
        if len(loads) <= 1:
            return 1.0
        return 1.0 - float(np.std(loads))

    def resilience(self, G: nx.Graph) -> float:
        n = G.number_of_nodes()
        if n <= 1:
            return 1.0
        removed = math.floor(n * self.failure_fraction)
        nodes = list(G.nodes())
        survived = 0
        for _ in range(self.resilience_trials):
            failed = set(self.rng.sample(nodes, removed))
            remaining = [x for x in nodes if x not in failed]
            if len(remaining) <= 1 or nx.is_connected(G.subgraph(remaining)):
                survived += 1
        return survived / self.resilience_trials

    # ── Centrality ───────────────────────────────────────────────────────────

    def centrality(
        self,
        G: nx.Graph,
        order: list[str],
        lengths: dict[str, dict[str, int]],
    ) -> dict[str, Centrality]:
        degree = self.degree_centrality(G)
        betweenness = self.betweenness_centrality(G, order)
        closeness = self.closeness_centrality(order, lengths)
        eigenvector = self.eigenvector_centrality(G, order)
        return {
            node: Centrality(
                degree=degree[node],
                betweenness=betweenness[node],
                closeness=closeness[node],
                eigenvector=eigenvector[node],
            )
            for node in order
        }

    @staticmethod
    def degree_centrality(G: nx.Graph) -> dict[str, float]:
        degrees = dict(G.degree())
        max_degree = max(degrees.values(), default=0)
        return {node: (d / max_degree if max_degree > 0 else 0.0) for node, d in degrees.items()}

    @staticmethod
    def betweenness_centrality(G: nx.Graph, order: list[str]) -> dict[str, float]:
        counts = {node: 0.0 for node in order}
        for i, source in enumerate(order):
            paths = nx.single_source_shortest_path(G, source)
            for target in order[i + 1:]:
                path = paths.get(target)
                if path is None:
                    continue
                for hop in path[1:-1]:
                    counts[hop] += 1.0
        peak = max(counts.values(), default=0.0)
        if peak <= 0:
            return {node: 0.0 for node in order}
        return {node: value / peak for node, value in counts.items()}

    @staticmethod
    def closeness_centrality(order: list[str], lengths: dict[str, dict[str, int]]) -> dict[str, float]:
        result = {}
        for node in order:
            distances = [d for other, d in lengths[node].items() if other != node]
            total = sum(distances)
            result[node] = len(distances) / total if total > 0 else 0.0
        return result

    def eigenvector_centrality(self, G: nx.Graph, order: list[str]) -> dict[str, float]:
        A = nx.to_numpy_array(G, nodelist=order)
        x = np.ones(len(order))
        for _ in range(self.eigenvector_iterations):
            x = A @ x
            norm = np.linalg.norm(x)
            if norm > 0:
                x = x / norm
        return {node: float(v) for node, v in zip(order, x)}
