"""
AdaTopo Data Models
===================

Pydantic v2 data structures for agents, connections, metrics and
topology change events.
"""

from __future__ import annotations

import math
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

UNREACHABLE = math.inf


class AgentType(str, Enum):
    COORDINATOR = "coordinator"
    WORKER = "worker"
    SPECIALIST = "specialist"
    BRIDGE = "bridge"


class TopologyType(str, Enum):
    MESH = "mesh"
    HIERARCHICAL = "hierarchical"
    RING = "ring"
    STAR = "star"
    SMALL_WORLD = "small-world"
    SCALE_FREE = "scale-free"
    HYBRID = "hybrid"


class ChangeType(str, Enum):
    AGENT_ADDED = "agent_added"
    AGENT_REMOVED = "agent_removed"
    AGENT_FAILED = "agent_failed"
    AGENT_UPDATED = "agent_updated"
    TOPOLOGY_OPTIMIZED = "topology_optimized"
    CONNECTION_ADDED = "connection_added"
    CONNECTION_REMOVED = "connection_removed"


class AgentPerformance(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    response_time: float = Field(default=0.0, ge=0.0)  # milliseconds
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    throughput: float = Field(default=0.0, ge=0.0)


class AgentLocation(BaseModel):
    region: str
    latency: float = Field(default=0.0, ge=0.0)


class Agent(BaseModel):
    """One participant whose connectivity is managed."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(min_length=1)
    type: AgentType = AgentType.WORKER
    capabilities: set[str] = Field(default_factory=set)
    load: float = Field(default=0.0, ge=0.0, le=1.0)
    performance: AgentPerformance = Field(default_factory=AgentPerformance)
    location: Optional[AgentLocation] = None
    last_seen: float = Field(default_factory=time.time)


class Centrality(BaseModel):
    degree: float = 0.0
    betweenness: float = 0.0
    closeness: float = 0.0
    eigenvector: float = 0.0


class Connection(BaseModel):
    """Undirected link between two agents, keyed by the unordered id pair."""

    model_config = ConfigDict(validate_assignment=True)

    source: str
    target: str
    weight: float = 1.0
    latency: float = 0.0        # milliseconds
    bandwidth: float = 0.0
    reliability: float = Field(default=0.95, ge=0.0, le=1.0)
    last_active: float = Field(default_factory=time.time)

    @property
    def id(self) -> str:
        return connection_id(self.source, self.target)

    def other(self, agent_id: str) -> str:
        return self.target if agent_id == self.source else self.source


def connection_id(a: str, b: str) -> str:
    """Stable id for the unordered pair (a, b)."""
    lo, hi = sorted((a, b))
    return f"{lo}::{hi}"


class TopologyMetrics(BaseModel):
    efficiency: float = 0.0
    resilience: float = 0.0
    connectivity: float = 0.0
    load_balance: float = 0.0
    average_path_length: float = 0.0   # UNREACHABLE when no pair is reachable
    clustering_coefficient: float = 0.0
    network_diameter: float = 0.0      # UNREACHABLE when no pair is reachable


class TopologyConfiguration(BaseModel):
    """Immutable manager configuration.

    Only ``type`` changes over the manager's lifetime, and only by the manager
    swapping in a copy (``model_copy(update={"type": ...})``).
    """

    model_config = ConfigDict(frozen=True)

    type: TopologyType = TopologyType.MESH
    max_nodes: int = Field(default=100, ge=1, le=1000)
    min_connections: int = Field(default=2, ge=0)
    max_connections: int = Field(default=6, ge=0)
    rebalance_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    healing_enabled: bool = True
    adaptation_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    target_efficiency: float = Field(default=0.7, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "TopologyConfiguration":
        if self.max_connections < self.min_connections:
            raise ValueError(
                f"max_connections ({self.max_connections}) must be >= "
                f"min_connections ({self.min_connections})"
            )
        return self


class TopologyChangeEvent(BaseModel):
    type: str = "topology_change"
    change_type: ChangeType
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)
    metrics: TopologyMetrics


class PerformanceSample(BaseModel):
    timestamp: float = Field(default_factory=time.time)
    metrics: TopologyMetrics
    topology: TopologyType


class TopologyInfo(BaseModel):
    type: TopologyType
    node_count: int
    connection_count: int
    config: TopologyConfiguration


class AgentInfo(BaseModel):
    agent: Agent
    connection_count: int
    centrality: Centrality
    failed: bool = False
