"""Tests for the TopologyGraph node/connection store."""

from adatopo.graph import TopologyGraph
from adatopo.models import Connection


def _graph(make_agent, ids):
    graph = TopologyGraph()
    for agent_id in ids:
        graph.add_node(make_agent(agent_id))
    return graph


class TestConnections:
    def test_one_connection_per_unordered_pair(self, make_agent):
        graph = _graph(make_agent, "ab")
        assert graph.add_connection(Connection(source="a", target="b"))
        assert not graph.add_connection(Connection(source="b", target="a"))
        assert graph.connection_count == 1
        assert graph.get("a").degree == 1
        assert graph.get("b").degree == 1

    def test_unknown_endpoint_is_noop(self, make_agent, caplog):
        graph = _graph(make_agent, "a")
        assert not graph.add_connection(Connection(source="a", target="ghost"))
        assert graph.connection_count == 0
        assert "unknown agent" in caplog.text

    def test_self_loop_rejected(self, make_agent):
        graph = _graph(make_agent, "a")
        assert not graph.add_connection(Connection(source="a", target="a"))

    def test_remove_connection_updates_both_views(self, make_agent):
        graph = _graph(make_agent, "abc")
        graph.add_connection(Connection(source="a", target="b"))
        graph.add_connection(Connection(source="b", target="c"))

        removed = graph.remove_connection("b", "a")

        assert removed is not None
        assert not graph.has_connection("a", "b")
        assert graph.neighbors("b") == ["c"]
        assert graph.get("a").connections == {}
        assert graph.remove_connection("a", "b") is None

    def test_clear_connections_keeps_nodes(self, make_agent):
        graph = _graph(make_agent, "abc")
        graph.add_connection(Connection(source="a", target="b"))
        graph.add_connection(Connection(source="a", target="c"))
        assert graph.clear_connections() == 2
        assert len(graph) == 3
        assert all(n.degree == 0 for n in graph.nodes)


class TestNodes:
    def test_registration_order_preserved(self, make_agent):
        graph = _graph(make_agent, ["z", "a", "m"])
        assert graph.node_ids == ["z", "a", "m"]

    def test_remove_node_returns_former_neighbors(self, make_agent):
        graph = _graph(make_agent, "abcd")
        for other in "bcd":
            graph.add_connection(Connection(source="a", target=other))
        graph.add_connection(Connection(source="b", target="c"))

        former = graph.remove_node("a")

        assert sorted(former) == ["b", "c", "d"]
        assert "a" not in graph
        assert all("a" not in (c.source, c.target) for c in graph.connections)
        assert graph.connection_count == 1

    def test_remove_unknown_node(self, make_agent):
        graph = _graph(make_agent, "a")
        assert graph.remove_node("ghost") == []
        assert len(graph) == 1

    def test_networkx_copy_is_detached(self, make_agent):
        graph = _graph(make_agent, "ab")
        graph.add_connection(Connection(source="a", target="b"))
        snapshot = graph.to_networkx()
        graph.remove_connection("a", "b")
        assert snapshot.has_edge("a", "b")
        assert snapshot.nodes["a"]["load"] == 0.5
