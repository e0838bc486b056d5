"""
AdaTopo Manager
===============

``AdaptiveTopologyManager`` owns the agent graph and is the single entry
point for orchestrators.

Concurrency:
- Every mutating call (add/remove/fail/connect/disconnect/heartbeat/optimize/
  reset) runs under one ``asyncio.Lock``, so mutations never interleave.
- ``optimize_topology`` is single-flight: a call made while a pass is in
  flight (running or queued on the lock) returns False immediately.
- Metric recomputation is offloaded with ``asyncio.to_thread`` on a detached
  graph copy while the lock is held. Readers always see the previous complete
  ``TopologyMetrics`` until the new one is swapped in.
- Change notifications are fire-and-forget through ``ChangeNotifier``.
- A mutation emits its own event before any optimization pass it triggers,
  so sinks see causes before effects.

Usage:
    manager = AdaptiveTopologyManager(
        TopologyConfiguration(type=TopologyType.MESH, min_connections=2),
        sink=LoggingChangeSink(),
        rng=random.Random(42),
    )
    await manager.add_agent(Agent(id="c1", type=AgentType.COORDINATOR))
    info = manager.get_topology_info()
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from typing import Any, Optional

from adatopo.builders import TopologyBuilder
from adatopo.config import topology_config_from
from adatopo.errors import CapacityExceeded, DuplicateAgent
from adatopo.graph import TopologyGraph
from adatopo.healing import HealingController
from adatopo.metrics import MetricsEngine
from adatopo.models import (
    Agent,
    AgentInfo,
    AgentPerformance,
    ChangeType,
    Connection,
    PerformanceSample,
    TopologyChangeEvent,
    TopologyConfiguration,
    TopologyInfo,
    TopologyMetrics,
)
from adatopo.notify import ChangeNotifier, ChangeSink, JsonlChangeSink
from adatopo.optimization import (
    OptimizationContext,
    OptimizationStrategy,
    StrategyKind,
    get_strategy,
    should_optimize,
)
from adatopo.scoring import ConnectionScorer
from adatopo.telemetry import TopologyTelemetry

logger = logging.getLogger("adatopo.manager")

HISTORY_SIZE = 100


def derive_load(performance: AgentPerformance) -> float:
    """Load estimate from a heartbeat's performance figures, in [0, 1]."""
    response_factor = min(performance.response_time / 1000.0, 1.0)
    failure_factor = 1.0 - performance.success_rate
    throughput_factor = max(0.0, 1.0 - performance.throughput)
    return (response_factor + failure_factor + throughput_factor) / 3


class AdaptiveTopologyManager:
    """Maintains and continuously reshapes the connectivity graph among agents.

    Args:
        config: Immutable configuration; only its ``type`` is swapped by optimization.
        sink: Optional change sink (sync or async ``notify``).
        rng: Random source shared by scoring, builders and resilience trials.
        strategy: Optimization strategy; defaults to the registered DEFAULT kind.
        metrics_engine: Override the metrics engine (e.g. fewer resilience trials).
        telemetry: Optional gauge recorder, fed after every metrics refresh.
        history_size: Capacity of the performance history ring buffer.
    """

    def __init__(
        self,
        config: Optional[TopologyConfiguration] = None,
        *,
        sink: Optional[ChangeSink] = None,
        rng: Optional[random.Random] = None,
        strategy: Optional[OptimizationStrategy] = None,
        metrics_engine: Optional[MetricsEngine] = None,
        telemetry: Optional[TopologyTelemetry] = None,
        history_size: int = HISTORY_SIZE,
    ):
        self._config = config or TopologyConfiguration()
        self._rng = rng or random.Random()
        self._graph = TopologyGraph()
        self._scorer = ConnectionScorer(self._rng)
        self._builder = TopologyBuilder(self._graph, self._scorer, self._rng)
        self._healer = HealingController(self._graph, self._scorer)
        self._engine = metrics_engine or MetricsEngine(rng=self._rng)
        self._strategy = strategy or get_strategy(StrategyKind.DEFAULT)
        self._notifier = ChangeNotifier(sink)
        self._telemetry = telemetry

        self._metrics = TopologyMetrics()
        self._history: deque[PerformanceSample] = deque(maxlen=history_size)
        self._lock = asyncio.Lock()
        self._is_optimizing = False
        self.optimization_count = 0
        self.last_optimization: Optional[float] = None

        logger.info(
            f"Initialized with {self._config.type.value} topology "
            f"(max_nodes={self._config.max_nodes}, "
            f"connections={self._config.min_connections}..{self._config.max_connections})"
        )

    @classmethod
    def from_config(cls, config: dict, **kwargs: Any) -> "AdaptiveTopologyManager":
        """Build a manager from a ``load_config()`` dict.

        A ``logging.change_log_path`` setting installs a JsonlChangeSink unless
        ``sink`` is passed explicitly.
        """
        metrics_cfg = config.get("metrics", {})
        monitoring_cfg = config.get("monitoring", {})
        change_log = config.get("logging", {}).get("change_log_path")

        if "sink" not in kwargs and change_log:
            kwargs["sink"] = JsonlChangeSink(change_log)
        rng = kwargs.setdefault("rng", random.Random())
        kwargs.setdefault(
            "metrics_engine",
            MetricsEngine(
                rng=rng,
                resilience_trials=metrics_cfg.get("resilience_trials", 10),
                failure_fraction=metrics_cfg.get("failure_fraction", 0.2),
                eigenvector_iterations=metrics_cfg.get("eigenvector_iterations", 100),
            ),
        )
        kwargs.setdefault("history_size", monitoring_cfg.get("history_size", HISTORY_SIZE))
        return cls(topology_config_from(config), **kwargs)

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def config(self) -> TopologyConfiguration:
        return self._config

    @property
    def graph(self) -> TopologyGraph:
        """The live graph. Treat as read-only outside the manager."""
        return self._graph

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def is_optimizing(self) -> bool:
        return self._is_optimizing

    # ── Agent lifecycle ──────────────────────────────────────────────────────

    async def add_agent(self, agent: Agent) -> list[str]:
        """Register ``agent`` and connect it to its best candidates.

        Returns:
            Ids the new agent was connected to.

        Raises:
            DuplicateAgent: ``agent.id`` is already registered.
            CapacityExceeded: the graph already holds ``max_nodes`` agents.
        """
        async with self._lock:
            if agent.id in self._graph:
                raise DuplicateAgent(f"Agent {agent.id} is already registered")
            if len(self._graph) >= self._config.max_nodes:
                raise CapacityExceeded(
                    f"Cannot add {agent.id}: topology is at max_nodes={self._config.max_nodes}"
                )

            logger.info(f"Adding agent {agent.id} of type {agent.type.value}")
            self._graph.add_node(agent)
            targets = self._scorer.optimal_connections(
                agent,
                self._graph,
                self._config.type,
                self._config.min_connections,
                self._config.max_connections,
            )
            linked = [t for t in targets if self._connect(agent.id, t)]

            await self._refresh_metrics()
            self._emit(ChangeType.AGENT_ADDED, {
                "agent_id": agent.id,
                "agent_type": agent.type.value,
                "connections": len(linked),
            })

            if self.should_optimize():
                await self._optimize_locked()
            return linked

    async def remove_agent(self, agent_id: str) -> bool:
        """Unregister an agent, drop its connections and heal its former neighbours.

        Returns:
            False (and no state change) for an unknown id.
        """
        async with self._lock:
            if agent_id not in self._graph:
                logger.warning(f"remove_agent: unknown agent {agent_id}, ignoring")
                return False

            logger.info(f"Removing agent {agent_id}")
            former = self._graph.remove_node(agent_id)
            healed = self._healer.heal_after_removal(agent_id, former, self._config)

            await self._refresh_metrics()
            self._emit(ChangeType.AGENT_REMOVED, {
                "agent_id": agent_id,
                "impacted_connections": len(former),
                "healed_connections": healed,
            })

            if self.should_optimize():
                await self._optimize_locked()
            return True

    async def handle_agent_failure(self, agent_id: str) -> bool:
        """Mark an agent failed and route its neighbours around it.

        The failed node keeps its place and its edges.
        """
        async with self._lock:
            node = self._graph.get(agent_id)
            if node is None:
                logger.warning(f"handle_agent_failure: unknown agent {agent_id}, ignoring")
                return False

            logger.info(f"Handling failure of agent {agent_id}")
            failure_time = time.time()
            node.agent.last_seen = failure_time
            node.agent.performance.success_rate = 0.0
            node.failed = True
            healed = self._healer.heal_after_failure(agent_id, self._config)

            await self._refresh_metrics()
            criticality = self.agent_criticality(agent_id)
            self._emit(ChangeType.AGENT_FAILED, {
                "agent_id": agent_id,
                "failure_time": failure_time,
                "criticality": criticality,
                "bypass_connections": healed,
            })

            if self.should_optimize():
                await self._optimize_locked()
            return True

    async def record_heartbeat(
        self,
        agent_id: str,
        performance: Optional[AgentPerformance] = None,
        load: Optional[float] = None,
    ) -> bool:
        """Refresh an agent's liveness and workload signals.

        When only ``performance`` is given the load is derived from it. A
        heartbeat clears the failed flag. Not a structural change: metrics are
        refreshed but no optimization is triggered.
        """
        async with self._lock:
            node = self._graph.get(agent_id)
            if node is None:
                logger.warning(f"record_heartbeat: unknown agent {agent_id}, ignoring")
                return False

            agent = node.agent
            agent.last_seen = time.time()
            if performance is not None:
                agent.performance = performance.model_copy()
                if load is None:
                    load = derive_load(performance)
            if load is not None:
                agent.load = min(max(load, 0.0), 1.0)
            node.failed = False

            await self._refresh_metrics()
            self._emit(ChangeType.AGENT_UPDATED, {"agent_id": agent_id, "load": agent.load})
            return True

    # ── Manual connection operations ─────────────────────────────────────────

    async def connect_agents(self, a: str, b: str) -> bool:
        async with self._lock:
            if not self._connect(a, b):
                return False
            await self._refresh_metrics()
            self._emit(ChangeType.CONNECTION_ADDED, {"source": a, "target": b})
            if self.should_optimize():
                await self._optimize_locked()
            return True

    async def disconnect_agents(self, a: str, b: str) -> bool:
        async with self._lock:
            if self._graph.remove_connection(a, b) is None:
                logger.warning(f"disconnect_agents: no connection between {a} and {b}")
                return False
            await self._refresh_metrics()
            self._emit(ChangeType.CONNECTION_REMOVED, {"source": a, "target": b})
            if self.should_optimize():
                await self._optimize_locked()
            return True

    def mark_connection_activity(self, a: str, b: str, reliability: Optional[float] = None) -> bool:
        """Record traffic on a connection so pruning treats it as live."""
        connection = self._graph.get_connection(a, b)
        if connection is None:
            logger.warning(f"mark_connection_activity: no connection between {a} and {b}")
            return False
        connection.last_active = time.time()
        if reliability is not None:
            connection.reliability = min(max(reliability, 0.0), 1.0)
        return True

    # ── Optimization ─────────────────────────────────────────────────────────

    def should_optimize(self) -> bool:
        if len(self._graph) == 0:
            return False
        return should_optimize(self._metrics, self._config)

    async def force_optimization(self) -> bool:
        return await self.optimize_topology()

    async def optimize_topology(self) -> bool:
        """Run one optimization pass.

        Returns:
            False without doing anything if a pass is already in flight.
        """
        if self._is_optimizing:
            logger.debug("Optimization already in flight, ignoring request")
            return False
        self._is_optimizing = True
        try:
            async with self._lock:
                await self._run_optimization()
        finally:
            self._is_optimizing = False
        return True

    async def _optimize_locked(self) -> bool:
        # caller holds self._lock
        if self._is_optimizing:
            return False
        self._is_optimizing = True
        try:
            await self._run_optimization()
        finally:
            self._is_optimizing = False
        return True

    async def _run_optimization(self) -> None:
        logger.info("Starting topology optimization")
        started = time.perf_counter()

        ctx = OptimizationContext(
            graph=self._graph,
            scorer=self._scorer,
            builder=self._builder,
            config=self._config,
            metrics=self._metrics,
        )
        result = self._strategy.optimize(ctx)
        if result.target_type != self._config.type:
            self._config = self._config.model_copy(update={"type": result.target_type})

        await self._refresh_metrics()
        self.optimization_count += 1
        self.last_optimization = time.time()
        duration = time.perf_counter() - started

        if self._telemetry is not None:
            await self._telemetry.record(
                "adatopo_optimization_duration_seconds",
                duration,
                topology=self._config.type.value,
            )
        logger.info(
            f"Optimization complete in {duration:.3f}s: {result.previous_type.value} -> "
            f"{result.target_type.value}, pruned={result.pruned}, extended={result.extended}, "
            f"rebalanced={result.rebalanced}, efficiency={self._metrics.efficiency:.3f}"
        )
        self._emit(ChangeType.TOPOLOGY_OPTIMIZED, {
            "previous_type": result.previous_type.value,
            "new_type": result.target_type.value,
            "migrated": result.migrated,
            "pruned": result.pruned,
            "extended": result.extended,
            "rebalanced": result.rebalanced,
            "bottlenecks": result.analysis.bottlenecks,
            "critical_paths": result.analysis.critical_paths,
            "recommendations": result.analysis.recommendations,
            "efficiency": self._metrics.efficiency,
            "resilience": self._metrics.resilience,
        })

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_metrics(self) -> TopologyMetrics:
        return self._metrics.model_copy()

    def get_topology_info(self) -> TopologyInfo:
        return TopologyInfo(
            type=self._config.type,
            node_count=len(self._graph),
            connection_count=self._graph.connection_count,
            config=self._config,
        )

    def get_agent_info(self, agent_id: str) -> Optional[AgentInfo]:
        node = self._graph.get(agent_id)
        if node is None:
            return None
        return AgentInfo(
            agent=node.agent.model_copy(deep=True),
            connection_count=node.degree,
            centrality=node.centrality.model_copy(),
            failed=node.failed,
        )

    def list_agents(self) -> list[Agent]:
        return [n.agent.model_copy(deep=True) for n in self._graph.nodes]

    def get_connections(self) -> list[Connection]:
        return [c.model_copy() for c in self._graph.connections]

    def get_performance_history(self) -> list[PerformanceSample]:
        return list(self._history)

    def agent_criticality(self, agent_id: str) -> float:
        node = self._graph.get(agent_id)
        if node is None or len(self._graph) == 0:
            return 0.0
        c = node.centrality
        return (
            0.4 * c.betweenness
            + 0.3 * c.degree
            + 0.2 * c.closeness
            + 0.1 * (node.degree / len(self._graph))
        )

    def sample_metrics(self) -> PerformanceSample:
        """Append the current metrics snapshot to the history ring buffer.

        Lock-free: reads the last complete snapshot, never a partial one.
        """
        sample = PerformanceSample(metrics=self._metrics.model_copy(), topology=self._config.type)
        self._history.append(sample)
        return sample

    async def reset(self) -> None:
        """Drop every agent, connection, metric and history sample."""
        async with self._lock:
            self._graph.clear()
            self._metrics = TopologyMetrics()
            self._history.clear()
            logger.info("Topology reset")

    # ── Internals ────────────────────────────────────────────────────────────

    def _connect(self, a: str, b: str) -> bool:
        source, target = self._graph.get(a), self._graph.get(b)
        if source is None or target is None:
            logger.warning(f"connect: unknown agent(s) in {a} <-> {b}, ignoring")
            return False
        if a == b or self._graph.has_connection(a, b):
            return False
        return self._graph.add_connection(self._scorer.make_connection(source.agent, target.agent))

    async def _refresh_metrics(self) -> None:
        snapshot = self._graph.to_networkx()
        report = await asyncio.to_thread(self._engine.compute, snapshot)
        for node_id, centrality in report.centrality.items():
            node = self._graph.get(node_id)
            if node is not None:
                node.centrality = centrality
        self._metrics = report.metrics

        if self._telemetry is not None:
            await self._telemetry.record_metrics(
                self._metrics,
                self._config.type,
                nodes=len(self._graph),
                connections=self._graph.connection_count,
            )

    def _emit(self, change_type: ChangeType, details: dict[str, Any]) -> None:
        event = TopologyChangeEvent(
            change_type=change_type,
            details=details,
            metrics=self._metrics.model_copy(),
        )
        logger.debug(f"Topology change {change_type.value}: {details}")
        self._notifier.notify(event)
