"""Put ``src/`` on sys.path so ``import adatopo`` works without installing,
and provide shared agent/graph fixtures."""

import random
import sys
from pathlib import Path

import pytest

_src = str(Path(__file__).resolve().parent.parent / "src")
if _src not in sys.path:
    sys.path.insert(0, _src)

from adatopo.models import Agent, AgentPerformance, AgentType  # noqa: E402


@pytest.fixture
def make_agent():
    """Factory for agents with compact keyword overrides."""

    def _make(
        agent_id: str,
        agent_type: AgentType = AgentType.WORKER,
        load: float = 0.5,
        capabilities=("compute",),
        success_rate: float = 1.0,
        throughput: float = 1.0,
    ) -> Agent:
        return Agent(
            id=agent_id,
            type=agent_type,
            capabilities=set(capabilities),
            load=load,
            performance=AgentPerformance(
                response_time=100.0,
                success_rate=success_rate,
                throughput=throughput,
            ),
        )

    return _make


@pytest.fixture
def rng():
    return random.Random(1234)
