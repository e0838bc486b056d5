"""Tests for the topology construction strategies."""

import random

import pytest

from adatopo.builders import TopologyBuilder
from adatopo.graph import TopologyGraph
from adatopo.models import AgentType, TopologyType
from adatopo.scoring import ConnectionScorer


def _builder(agents, seed=7):
    graph = TopologyGraph()
    for agent in agents:
        graph.add_node(agent)
    rng = random.Random(seed)
    return TopologyBuilder(graph, ConnectionScorer(rng), rng)


class TestMesh:
    @pytest.mark.parametrize("n", [0, 1, 2, 5, 9])
    def test_edge_count(self, make_agent, n):
        builder = _builder([make_agent(f"n{i}") for i in range(n)])
        builder.build(TopologyType.MESH)
        assert builder.graph.connection_count == n * (n - 1) // 2


class TestRing:
    @pytest.mark.parametrize("n", [3, 4, 10])
    def test_every_node_degree_two(self, make_agent, n):
        builder = _builder([make_agent(f"n{i}") for i in range(n)])
        builder.build(TopologyType.RING)
        assert builder.graph.connection_count == n
        assert all(node.degree == 2 for node in builder.graph.nodes)

    def test_two_nodes_single_edge(self, make_agent):
        builder = _builder([make_agent("a"), make_agent("b")])
        builder.build(TopologyType.RING)
        assert builder.graph.connection_count == 1


class TestStar:
    def test_hub_is_first_coordinator(self, make_agent):
        agents = [
            make_agent("w1"),
            make_agent("c1", AgentType.COORDINATOR),
            make_agent("w2"),
            make_agent("c2", AgentType.COORDINATOR),
        ]
        builder = _builder(agents)
        builder.build(TopologyType.STAR)
        graph = builder.graph
        assert graph.connection_count == 3
        assert all("c1" in (c.source, c.target) for c in graph.connections)
        assert graph.get("c1").degree == 3

    def test_hub_falls_back_to_first_node(self, make_agent):
        builder = _builder([make_agent(f"n{i}") for i in range(5)])
        builder.build(TopologyType.STAR)
        assert builder.graph.get("n0").degree == 4


class TestHierarchical:
    def test_workers_attach_to_least_loaded_coordinator(self, make_agent):
        agents = [
            make_agent("c-busy", AgentType.COORDINATOR, load=0.9),
            make_agent("c-idle", AgentType.COORDINATOR, load=0.1),
            make_agent("c-mid", AgentType.COORDINATOR, load=0.5),
            make_agent("w1"),
            make_agent("w2", AgentType.SPECIALIST),
        ]
        builder = _builder(agents)
        builder.build(TopologyType.HIERARCHICAL)
        graph = builder.graph

        assert graph.has_connection("c-busy", "c-idle")
        assert graph.has_connection("c-busy", "c-mid")
        assert graph.has_connection("c-idle", "c-mid")
        assert graph.neighbors("w1") == ["c-idle"]
        assert graph.neighbors("w2") == ["c-idle"]
        assert graph.connection_count == 3 + 2

    def test_no_coordinators_leaves_workers_unattached(self, make_agent):
        builder = _builder([make_agent(f"w{i}") for i in range(4)])
        builder.build(TopologyType.HIERARCHICAL)
        assert builder.graph.connection_count == 0


class TestSmallWorld:
    def test_rewired_lattice_shape(self, make_agent):
        n = 12
        builder = _builder([make_agent(f"n{i}") for i in range(n)], seed=11)
        builder.build(TopologyType.SMALL_WORLD)
        graph = builder.graph
        lattice_edges = n * 6 // 2
        assert 0 < graph.connection_count <= lattice_edges
        assert all(c.source != c.target for c in graph.connections)

    def test_small_graph_caps_k(self, make_agent):
        builder = _builder([make_agent(f"n{i}") for i in range(3)], seed=2)
        builder.build(TopologyType.SMALL_WORLD)
        # k = min(6, n - 1) = 2 -> one neighbour each side -> ring of 3 before rewiring
        assert builder.graph.connection_count <= 3


class TestScaleFree:
    def test_hubs_by_throughput(self, make_agent):
        agents = [make_agent(f"n{i}", throughput=float(i)) for i in range(10)]
        builder = _builder(agents)
        builder.build(TopologyType.SCALE_FREE)
        graph = builder.graph

        # top 20% of 10 nodes -> n9 and n8 are hubs
        assert graph.has_connection("n9", "n8")
        for i in range(8):
            assert sorted(graph.neighbors(f"n{i}")) == ["n8", "n9"]
        assert graph.connection_count == 1 + 8 * 2


class TestHybrid:
    def test_hierarchy_plus_random_edges(self, make_agent):
        agents = [make_agent("c1", AgentType.COORDINATOR, load=0.2), make_agent("c2", AgentType.COORDINATOR)]
        agents += [make_agent(f"w{i}") for i in range(8)]
        builder = _builder(agents, seed=3)
        builder.build(TopologyType.HYBRID)
        # 1 coordinator link + 8 worker links + round(0.3 * 10) extra
        assert builder.graph.connection_count == 1 + 8 + 3


class TestMigration:
    def test_build_replaces_existing_edges(self, make_agent):
        builder = _builder([make_agent(f"n{i}") for i in range(6)])
        builder.build(TopologyType.MESH)
        assert builder.graph.connection_count == 15
        builder.build(TopologyType.RING)
        assert builder.graph.connection_count == 6
        assert all(node.degree == 2 for node in builder.graph.nodes)
