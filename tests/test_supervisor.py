from __future__ import annotations

import asyncio
import logging

import pytest

from chainstream.errors import ConfigError
from chainstream.supervisor import Supervisor

from conftest import make_settings


class FakeEngine:
    runs: list[str] = []

    def __init__(self, network, pools, gate, policy, executor, identity, session, reconnect_delay=5.0):
        self.network = network
        self.gate = gate
        self.reconnect_delay = reconnect_delay
        self.stopped = False

    async def run_forever(self):
        if self.network.name == "ETHEREUM":
            raise ConfigError("[ETHEREUM] Missing RPC/WSS endpoints.")
        for _ in range(3):
            await asyncio.sleep(0)
        FakeEngine.runs.append(self.network.name)

    def stop(self):
        self.stopped = True


@pytest.mark.asyncio
async def test_one_failing_network_does_not_stop_the_others(identity, caplog) -> None:
    FakeEngine.runs = []
    supervisor = Supervisor(make_settings(), identity, logging.getLogger("test.supervisor"),
                            engine_factory=FakeEngine)

    with caplog.at_level(logging.INFO):
        await supervisor.run(session=object())

    assert FakeEngine.runs == ["BASE"]
    assert "[ETHEREUM] Init Error: ConfigError" in caplog.text
    assert "[BASE] Engine stopped." in caplog.text
    assert all(e.stopped for e in supervisor.engines)


def test_engines_share_one_gate_bound_to_the_reference_pool(identity) -> None:
    supervisor = Supervisor(make_settings(reconnect_delay_seconds=1.5), identity,
                            logging.getLogger("test.supervisor"), engine_factory=FakeEngine)

    engines = supervisor.build_engines(session=object())

    assert [e.network.name for e in engines] == ["ETHEREUM", "BASE"]
    assert all(e.gate is supervisor.gate for e in engines)
    assert supervisor.gate.pool is supervisor.pools["BASE"]
    assert all(e.reconnect_delay == 1.5 for e in engines)
