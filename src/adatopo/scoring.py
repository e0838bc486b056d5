"""
AdaTopo Connection Scoring
==========================

Pairwise desirability between agents, connection property estimates, and
the candidate selection every builder and the healing controller rely on.

score(a, b) = 0.3 * capability overlap (Jaccard)
            + 0.3 * (1 - |load_a - load_b|)
            + 0.2 * (1 - |success_a - success_b|)
            + 0.2 * type compatibility
"""

from __future__ import annotations

import logging
import random
import time
from typing import Iterable, Optional

from adatopo.graph import TopologyGraph, TopologyNode
from adatopo.models import Agent, AgentType, Connection, TopologyType

logger = logging.getLogger("adatopo.scoring")

_C, _W, _S, _B = (
    AgentType.COORDINATOR,
    AgentType.WORKER,
    AgentType.SPECIALIST,
    AgentType.BRIDGE,
)

TYPE_COMPATIBILITY: dict[tuple[AgentType, AgentType], float] = {
    (_C, _C): 0.8, (_C, _W): 0.9, (_C, _S): 0.7, (_C, _B): 0.9,
    (_W, _C): 0.9, (_W, _W): 0.6, (_W, _S): 0.8, (_W, _B): 0.7,
    (_S, _C): 0.7, (_S, _W): 0.8, (_S, _S): 0.9, (_S, _B): 0.8,
    (_B, _C): 0.9, (_B, _W): 0.7, (_B, _S): 0.8, (_B, _B): 0.6,
}
DEFAULT_COMPATIBILITY = 0.5

INITIAL_RELIABILITY = 0.95
MESH_EXTENSION_THRESHOLD = 0.6


def capability_overlap(a: Agent, b: Agent) -> float:
    """Jaccard overlap of capability sets; 0 when both are empty."""
    union = a.capabilities | b.capabilities
    if not union:
        return 0.0
    return len(a.capabilities & b.capabilities) / len(union)


def type_compatibility(a: AgentType, b: AgentType) -> float:
    return TYPE_COMPATIBILITY.get((a, b), DEFAULT_COMPATIBILITY)


class ConnectionScorer:
    """Scores agent pairs and selects connection candidates.

    Args:
        rng: Random source for latency fallback and small-world sampling.
            Inject a seeded ``random.Random`` for deterministic runs.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def score(self, a: Agent, b: Agent) -> float:
        value = (
            0.3 * capability_overlap(a, b)
            + 0.3 * (1.0 - abs(a.load - b.load))
            + 0.2 * (1.0 - abs(a.performance.success_rate - b.performance.success_rate))
            + 0.2 * type_compatibility(a.type, b.type)
        )
        return max(0.0, min(value, 1.0))

    # ── Connection properties ────────────────────────────────────────────────

    def make_connection(self, a: Agent, b: Agent, now: Optional[float] = None) -> Connection:
        """Build a Connection with estimated properties for the pair (a, b)."""
        perf_match = 1.0 - abs(a.performance.success_rate - b.performance.success_rate)
        load_match = 1.0 - abs(a.load - b.load)

        if a.location is not None and b.location is not None:
            latency = abs(a.location.latency - b.location.latency)
        else:
            latency = self.rng.random() * 100.0

        return Connection(
            source=a.id,
            target=b.id,
            weight=(perf_match + load_match) / 2,
            latency=latency,
            bandwidth=(a.performance.throughput + b.performance.throughput) / 2 * 1000.0,
            reliability=INITIAL_RELIABILITY,
            last_active=time.time() if now is None else now,
        )

    # ── Candidate selection ──────────────────────────────────────────────────

    def rank_candidates(
        self,
        agent: Agent,
        graph: TopologyGraph,
        exclude: Iterable[str] = (),
    ) -> list[TopologyNode]:
        """Every other node, best score first (ties keep registration order)."""
        skip = set(exclude)
        skip.add(agent.id)
        candidates = [n for n in graph.nodes if n.id not in skip]
        return sorted(candidates, key=lambda n: self.score(agent, n.agent), reverse=True)

    def optimal_connections(
        self,
        agent: Agent,
        graph: TopologyGraph,
        topology_type: TopologyType,
        min_connections: int,
        max_connections: int,
        exclude: Iterable[str] = (),
    ) -> list[str]:
        """Choose the ids ``agent`` should connect to under ``topology_type``.

        The top ``min(min_connections, len(candidates))`` are always included,
        then the type-specific extension is applied. Existing connections are
        not filtered here; callers skip pairs that are already linked.
        """
        candidates = self.rank_candidates(agent, graph, exclude)
        if not candidates:
            return []

        upper = min(max_connections, len(candidates))
        lower = min(min_connections, len(candidates))
        chosen = [c.id for c in candidates[:lower]]

        if topology_type in (TopologyType.MESH, TopologyType.SCALE_FREE):
            for c in candidates[lower:upper]:
                if self.score(agent, c.agent) > MESH_EXTENSION_THRESHOLD:
                    chosen.append(c.id)

        elif topology_type in (TopologyType.HIERARCHICAL, TopologyType.HYBRID):
            coordinators = [c for c in candidates if c.agent.type == AgentType.COORDINATOR]
            peers = [c for c in candidates if c.agent.type == agent.type]
            chosen.extend(c.id for c in coordinators[:2])
            chosen.extend(c.id for c in peers[:3])

        elif topology_type == TopologyType.SMALL_WORLD:
            local = candidates[lower:lower + 3]
            chosen.extend(c.id for c in local)
            taken = set(chosen)
            pool = [c.id for c in candidates if c.id not in taken]
            chosen.extend(self.rng.sample(pool, min(2, len(pool))))

        # ring and star keep only the minimum set

        return list(dict.fromkeys(chosen))
