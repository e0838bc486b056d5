"""
AdaTopo Graph
=============

Node/connection store for the managed topology.

Connections live both in a ``networkx.Graph`` adjacency index (edge attribute
``connection``) and in each endpoint's ``TopologyNode.connections`` map. Every
mutation goes through this class so the two views never diverge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

import networkx as nx

from adatopo.models import Agent, Centrality, Connection, connection_id

logger = logging.getLogger("adatopo.graph")


@dataclass
class TopologyNode:
    """Graph-side view of one agent.

    Attributes:
        agent: The registered agent (shared with the manager, not copied).
        connections: connection_id -> Connection for every incident edge.
        centrality: Last computed centrality scores.
        cluster: Optional cluster tag.
        failed: Set when the agent was reported failed; cleared by a heartbeat.
    """

    agent: Agent
    connections: dict[str, Connection] = field(default_factory=dict)
    centrality: Centrality = field(default_factory=Centrality)
    cluster: Optional[str] = None
    failed: bool = False

    @property
    def id(self) -> str:
        return self.agent.id

    @property
    def degree(self) -> int:
        return len(self.connections)


class TopologyGraph:
    """Undirected agent graph with at most one connection per unordered pair."""

    def __init__(self) -> None:
        self._graph = nx.Graph()
        self._nodes: dict[str, TopologyNode] = {}
        self._connections: dict[str, Connection] = {}

    # ── Nodes ────────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._nodes

    def __iter__(self) -> Iterator[TopologyNode]:
        return iter(list(self._nodes.values()))

    @property
    def nodes(self) -> list[TopologyNode]:
        """Nodes in registration order."""
        return list(self._nodes.values())

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    def get(self, agent_id: str) -> Optional[TopologyNode]:
        return self._nodes.get(agent_id)

    def add_node(self, agent: Agent) -> TopologyNode:
        node = TopologyNode(agent=agent)
        self._nodes[agent.id] = node
        self._graph.add_node(agent.id)
        return node

    def remove_node(self, agent_id: str) -> list[str]:
        """Delete a node and all incident connections.

        Returns:
            Ids of the nodes that were adjacent to the removed one.
        """
        node = self._nodes.get(agent_id)
        if node is None:
            logger.warning(f"remove_node: unknown agent {agent_id}")
            return []
        former = self.neighbors(agent_id)
        for other in former:
            self.remove_connection(agent_id, other)
        del self._nodes[agent_id]
        self._graph.remove_node(agent_id)
        return former

    # ── Connections ──────────────────────────────────────────────────────────

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_connection(self, a: str, b: str) -> Optional[Connection]:
        return self._connections.get(connection_id(a, b))

    def has_connection(self, a: str, b: str) -> bool:
        return connection_id(a, b) in self._connections

    def add_connection(self, connection: Connection) -> bool:
        """Insert a connection. Unknown endpoints, self-loops and duplicates are no-ops.

        Returns:
            True if the connection was added.
        """
        a, b = connection.source, connection.target
        if a not in self._nodes or b not in self._nodes:
            missing = [x for x in (a, b) if x not in self._nodes]
            logger.warning(f"add_connection: unknown agent(s) {missing}, ignoring {a} <-> {b}")
            return False
        if a == b:
            logger.warning(f"add_connection: refusing self-loop on {a}")
            return False
        cid = connection.id
        if cid in self._connections:
            return False

        self._connections[cid] = connection
        self._nodes[a].connections[cid] = connection
        self._nodes[b].connections[cid] = connection
        self._graph.add_edge(a, b, connection=connection)
        logger.debug(f"Created connection {cid}")
        return True

    def remove_connection(self, a: str, b: str) -> Optional[Connection]:
        """Remove the connection between a and b, if any."""
        cid = connection_id(a, b)
        connection = self._connections.pop(cid, None)
        if connection is None:
            return None
        for endpoint in (a, b):
            node = self._nodes.get(endpoint)
            if node is not None:
                node.connections.pop(cid, None)
        if self._graph.has_edge(a, b):
            self._graph.remove_edge(a, b)
        logger.debug(f"Removed connection {cid}")
        return connection

    def clear_connections(self) -> int:
        """Drop every connection, keeping nodes. Returns the number removed."""
        removed = len(self._connections)
        self._connections.clear()
        for node in self._nodes.values():
            node.connections.clear()
        self._graph.remove_edges_from(list(self._graph.edges()))
        return removed

    def clear(self) -> None:
        self._connections.clear()
        self._nodes.clear()
        self._graph.clear()

    # ── Adjacency ────────────────────────────────────────────────────────────

    def neighbors(self, agent_id: str) -> list[str]:
        if agent_id not in self._graph:
            return []
        return list(self._graph.neighbors(agent_id))

    def degree(self, agent_id: str) -> int:
        node = self._nodes.get(agent_id)
        return node.degree if node else 0

    def to_networkx(self) -> nx.Graph:
        """Detached copy of the adjacency with a ``load`` attribute per node.

        Safe to hand to a worker thread: later mutations do not affect it.
        """
        G = nx.Graph()
        for node_id, node in self._nodes.items():
            G.add_node(node_id, load=node.agent.load)
        G.add_edges_from(self._graph.edges())
        return G
