"""
AdaTopo Optimization
====================

Closed-loop reshaping of the topology.

A pass runs, in order:
1. analyze: bottlenecks, underutilized nodes, critical paths
2. decide: target topology type (pure function of current state)
3. migrate: full rebuild, only when the target differs from the current type
4. prune: drop unreliable or idle connections
5. extend: up to 2 new high-score connections per node with spare capacity
6. rebalance: link bottlenecks to an underloaded node
The manager then recomputes metrics and emits ``topology_optimized``.

Strategies plug in through ``OptimizationStrategy``. Only the default pass is
implemented; genetic, swarm and reinforcement-learning kinds are reserved
slots that hosts fill with ``register_strategy``.
"""

from __future__ import annotations

import logging
import statistics
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from adatopo.builders import TopologyBuilder
from adatopo.errors import StrategyUnavailable
from adatopo.graph import TopologyGraph
from adatopo.models import TopologyConfiguration, TopologyMetrics, TopologyType
from adatopo.scoring import ConnectionScorer

logger = logging.getLogger("adatopo.optimization")

BOTTLENECK_LOAD = 0.8
UNDERUTILIZED_LOAD = 0.2
REBALANCE_TARGET_LOAD = 0.3
CRITICAL_PATH_MARGIN = 0.2
MIN_RELIABILITY = 0.5
MAX_IDLE_SECONDS = 300.0
MAX_NEW_CONNECTIONS_PER_NODE = 2


class StrategyKind(str, Enum):
    DEFAULT = "default"
    GENETIC = "genetic"
    SWARM = "swarm"
    REINFORCEMENT_LEARNING = "reinforcement_learning"


@dataclass
class TopologyAnalysis:
    bottlenecks: list[str] = field(default_factory=list)
    underutilized: list[str] = field(default_factory=list)
    critical_paths: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class OptimizationContext:
    """Everything a strategy may read or mutate during one pass."""

    graph: TopologyGraph
    scorer: ConnectionScorer
    builder: TopologyBuilder
    config: TopologyConfiguration
    metrics: TopologyMetrics
    now: float = field(default_factory=time.time)


@dataclass
class OptimizationResult:
    previous_type: TopologyType
    target_type: TopologyType
    migrated: bool = False
    pruned: int = 0
    extended: int = 0
    rebalanced: int = 0
    analysis: TopologyAnalysis = field(default_factory=TopologyAnalysis)


# ── Analysis and decision ────────────────────────────────────────────────────


def analyze_topology(
    graph: TopologyGraph,
    metrics: TopologyMetrics,
    config: TopologyConfiguration,
) -> TopologyAnalysis:
    analysis = TopologyAnalysis()
    nodes = graph.nodes
    if not nodes:
        return analysis

    for node in nodes:
        if node.agent.load > BOTTLENECK_LOAD:
            analysis.bottlenecks.append(node.id)
        elif node.agent.load < UNDERUTILIZED_LOAD:
            analysis.underutilized.append(node.id)

    threshold = statistics.fmean(n.centrality.betweenness for n in nodes) + CRITICAL_PATH_MARGIN
    analysis.critical_paths = [n.id for n in nodes if n.centrality.betweenness > threshold]

    if analysis.bottlenecks:
        analysis.recommendations.append(
            "Consider load balancing or adding more connections to bottleneck agents"
        )
    if analysis.underutilized:
        analysis.recommendations.append("Redistribute workload to underutilized agents")
    if metrics.efficiency < config.target_efficiency:
        analysis.recommendations.append("Topology optimization needed to improve efficiency")
    return analysis


def decide_topology_type(
    node_count: int,
    load_stddev: float,
    average_load: float,
    has_bottlenecks: bool,
    resilience: float,
) -> TopologyType:
    """Pick the topology family for the current conditions (first match wins)."""
    if node_count < 5:
        return TopologyType.MESH
    if load_stddev > 0.3:
        return TopologyType.HIERARCHICAL
    if average_load > 0.7 and has_bottlenecks:
        return TopologyType.SCALE_FREE
    if resilience < 0.6:
        return TopologyType.MESH
    if node_count > 20:
        return TopologyType.SMALL_WORLD
    return TopologyType.HYBRID


def load_statistics(graph: TopologyGraph) -> tuple[float, float]:
    """(mean, population stddev) of agent loads; (0, 0) for an empty graph."""
    loads = [n.agent.load for n in graph.nodes]
    if not loads:
        return 0.0, 0.0
    return statistics.fmean(loads), statistics.pstdev(loads)


def should_optimize(metrics: TopologyMetrics, config: TopologyConfiguration) -> bool:
    return (
        metrics.efficiency < config.target_efficiency
        or metrics.load_balance < 0.6
        or metrics.resilience < 0.5
    )


# ── Strategies ───────────────────────────────────────────────────────────────


class OptimizationStrategy(ABC):
    """One way of reshaping the topology during an optimization pass."""

    kind: StrategyKind

    @abstractmethod
    def optimize(self, ctx: OptimizationContext) -> OptimizationResult:
        """Mutate ``ctx.graph`` in place and report what changed."""


class DefaultOptimizationStrategy(OptimizationStrategy):
    kind = StrategyKind.DEFAULT

    def optimize(self, ctx: OptimizationContext) -> OptimizationResult:
        analysis = analyze_topology(ctx.graph, ctx.metrics, ctx.config)
        average_load, load_stddev = load_statistics(ctx.graph)
        target = decide_topology_type(
            node_count=len(ctx.graph),
            load_stddev=load_stddev,
            average_load=average_load,
            has_bottlenecks=bool(analysis.bottlenecks),
            resilience=ctx.metrics.resilience,
        )

        result = OptimizationResult(
            previous_type=ctx.config.type,
            target_type=target,
            analysis=analysis,
        )
        if target != ctx.config.type:
            logger.info(f"Migrating from {ctx.config.type.value} to {target.value}")
            ctx.builder.build(target)
            result.migrated = True

        result.pruned = self.prune(ctx)
        result.extended = self.extend(ctx, target)
        result.rebalanced = self.rebalance(ctx)
        return result

    @staticmethod
    def prune(ctx: OptimizationContext) -> int:
        stale = [
            c for c in ctx.graph.connections
            if c.reliability < MIN_RELIABILITY or ctx.now - c.last_active > MAX_IDLE_SECONDS
        ]
        for c in stale:
            ctx.graph.remove_connection(c.source, c.target)
        if stale:
            logger.info(f"Pruned {len(stale)} unreliable or idle connections")
        return len(stale)

    @staticmethod
    def extend(ctx: OptimizationContext, topology_type: TopologyType) -> int:
        created = 0
        cfg = ctx.config
        for node in ctx.graph.nodes:
            room = cfg.max_connections - node.degree
            if room <= 0:
                continue
            wanted = min(room, MAX_NEW_CONNECTIONS_PER_NODE)
            candidates = ctx.scorer.optimal_connections(
                node.agent, ctx.graph, topology_type, cfg.min_connections, cfg.max_connections,
            )
            added = 0
            for target_id in candidates:
                if added >= wanted:
                    break
                if ctx.graph.has_connection(node.id, target_id):
                    continue
                target = ctx.graph.get(target_id)
                if ctx.graph.add_connection(ctx.scorer.make_connection(node.agent, target.agent, ctx.now)):
                    added += 1
            created += added
        return created

    @staticmethod
    def rebalance(ctx: OptimizationContext) -> int:
        nodes = ctx.graph.nodes
        overloaded = sorted(
            (n for n in nodes if n.agent.load > BOTTLENECK_LOAD),
            key=lambda n: n.agent.load,
            reverse=True,
        )
        underloaded = sorted(
            (n for n in nodes if n.agent.load < REBALANCE_TARGET_LOAD),
            key=lambda n: n.agent.load,
        )
        if not underloaded:
            return 0

        created = 0
        for busy in overloaded:
            neighbors = set(ctx.graph.neighbors(busy.id))
            if any(u.id in neighbors for u in underloaded):
                continue
            target = underloaded[0]
            if ctx.graph.add_connection(ctx.scorer.make_connection(busy.agent, target.agent, ctx.now)):
                created += 1
        if created:
            logger.info(f"Rebalanced {created} bottleneck agents onto underloaded peers")
        return created


_REGISTRY: dict[StrategyKind, type[OptimizationStrategy]] = {
    StrategyKind.DEFAULT: DefaultOptimizationStrategy,
}


def register_strategy(kind: StrategyKind, strategy_cls: type[OptimizationStrategy]) -> None:
    """Install an implementation for ``kind`` (replaces any existing one)."""
    _REGISTRY[StrategyKind(kind)] = strategy_cls


def get_strategy(kind: StrategyKind | str = StrategyKind.DEFAULT) -> OptimizationStrategy:
    kind = StrategyKind(kind)
    strategy_cls: Optional[type[OptimizationStrategy]] = _REGISTRY.get(kind)
    if strategy_cls is None:
        raise StrategyUnavailable(
            f"No optimization strategy registered for '{kind.value}'. "
            f"Available: {sorted(k.value for k in _REGISTRY)}"
        )
    return strategy_cls()
