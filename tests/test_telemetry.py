"""Tests for topology telemetry recording and Prometheus export."""

import math

import pytest

from adatopo.models import TopologyMetrics, TopologyType
from adatopo.telemetry import TopologyTelemetry


@pytest.fixture
def telemetry():
    return TopologyTelemetry(max_points=100)


class TestRecording:
    @pytest.mark.asyncio
    async def test_record_and_stats(self, telemetry):
        for value in (0.2, 0.4, 0.6):
            await telemetry.record("adatopo_custom", value, topology="mesh")
        await telemetry.record("adatopo_custom", 9.0, topology="ring")

        stats = await telemetry.get_stats("adatopo_custom", topology="mesh")
        assert stats["count"] == 3
        assert stats["min"] == 0.2
        assert stats["max"] == 0.6
        assert stats["mean"] == pytest.approx(0.4)
        assert stats["last"] == 0.6

    @pytest.mark.asyncio
    async def test_unknown_series(self, telemetry):
        assert await telemetry.get_stats("adatopo_missing") == {}

    @pytest.mark.asyncio
    async def test_record_metrics_skips_unreachable(self, telemetry):
        metrics = TopologyMetrics(
            efficiency=0.5,
            resilience=1.0,
            average_path_length=math.inf,
            network_diameter=math.inf,
        )
        await telemetry.record_metrics(metrics, TopologyType.STAR, nodes=1, connections=0)

        assert len(telemetry) == 7
        assert await telemetry.get_stats("adatopo_topology_diameter") == {}
        stats = await telemetry.get_stats("adatopo_topology_efficiency", topology="star")
        assert stats["last"] == 0.5

    @pytest.mark.asyncio
    async def test_bounded(self):
        telemetry = TopologyTelemetry(max_points=5)
        for i in range(10):
            await telemetry.record("adatopo_x", i)
        assert len(telemetry) == 5
        assert (await telemetry.get_stats("adatopo_x"))["min"] == 5

    @pytest.mark.asyncio
    async def test_clear(self, telemetry):
        await telemetry.record("adatopo_x", 1)
        await telemetry.clear()
        assert len(telemetry) == 0


class TestPrometheusExport:
    @pytest.mark.asyncio
    async def test_latest_value_per_series(self, telemetry, tmp_path):
        await telemetry.record("adatopo_topology_nodes", 3, topology="mesh")
        await telemetry.record("adatopo_topology_nodes", 4, topology="mesh")
        await telemetry.record("adatopo_topology_nodes", 2, topology="ring")

        out = tmp_path / "prom" / "topology.prom"
        written = await telemetry.export_prometheus(out)

        assert written == 2
        text = out.read_text(encoding="utf-8")
        assert text.count("# TYPE adatopo_topology_nodes gauge") == 1
        assert 'adatopo_topology_nodes{topology="mesh"} 4.0' in text
        assert 'adatopo_topology_nodes{topology="ring"} 2.0' in text
