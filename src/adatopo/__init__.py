"""
AdaTopo: Adaptive Topology Management for Multi-Agent Systems
=============================================================

Maintains the connectivity graph among a dynamic set of cooperating agents
and reshapes it in response to workload, performance and failures.

Core modules:
- models: Pydantic v2 data structures (Agent, Connection, TopologyMetrics, ...)
- config: YAML configuration loader with defaults
- graph: Node/connection store backed by networkx
- scoring: Pairwise connection scoring and candidate selection
- builders: Mesh, hierarchical, ring, star, small-world, scale-free, hybrid
- metrics: Path length, clustering, centrality, Monte-Carlo resilience
- healing: Repair after agent removal or failure
- optimization: Closed-loop topology optimization and strategy registry
- manager: AdaptiveTopologyManager, the orchestrator-facing API
- monitoring: Periodic metrics sampling task
- notify: Fire-and-forget change sinks
- telemetry: Gauge recording and Prometheus export
"""

from adatopo.models import (
    UNREACHABLE,
    Agent,
    AgentInfo,
    AgentLocation,
    AgentPerformance,
    AgentType,
    Centrality,
    ChangeType,
    Connection,
    PerformanceSample,
    TopologyChangeEvent,
    TopologyConfiguration,
    TopologyInfo,
    TopologyMetrics,
    TopologyType,
)
from adatopo.config import configure_logging, load_config, topology_config_from
from adatopo.errors import CapacityExceeded, DuplicateAgent, StrategyUnavailable, TopologyError
from adatopo.graph import TopologyGraph, TopologyNode
from adatopo.scoring import ConnectionScorer
from adatopo.builders import TopologyBuilder
from adatopo.metrics import MetricsEngine, MetricsReport
from adatopo.healing import HealingController
from adatopo.optimization import (
    DefaultOptimizationStrategy,
    OptimizationStrategy,
    StrategyKind,
    get_strategy,
    register_strategy,
)
from adatopo.manager import AdaptiveTopologyManager
from adatopo.monitoring import MetricsSampler
from adatopo.notify import ChangeNotifier, ChangeSink, JsonlChangeSink, LoggingChangeSink, MemoryChangeSink
from adatopo.telemetry import TopologyTelemetry

__all__ = [
    # Models
    "UNREACHABLE",
    "Agent",
    "AgentInfo",
    "AgentLocation",
    "AgentPerformance",
    "AgentType",
    "Centrality",
    "ChangeType",
    "Connection",
    "PerformanceSample",
    "TopologyChangeEvent",
    "TopologyConfiguration",
    "TopologyInfo",
    "TopologyMetrics",
    "TopologyType",
    # Config
    "configure_logging",
    "load_config",
    "topology_config_from",
    # Errors
    "CapacityExceeded",
    "DuplicateAgent",
    "StrategyUnavailable",
    "TopologyError",
    # Graph and algorithms
    "TopologyGraph",
    "TopologyNode",
    "ConnectionScorer",
    "TopologyBuilder",
    "MetricsEngine",
    "MetricsReport",
    "HealingController",
    # Optimization
    "DefaultOptimizationStrategy",
    "OptimizationStrategy",
    "StrategyKind",
    "get_strategy",
    "register_strategy",
    # Manager
    "AdaptiveTopologyManager",
    "MetricsSampler",
    # Notification and telemetry
    "ChangeNotifier",
    "ChangeSink",
    "JsonlChangeSink",
    "LoggingChangeSink",
    "MemoryChangeSink",
    "TopologyTelemetry",
]
