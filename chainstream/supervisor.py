# chainstream/supervisor.py
import asyncio
import logging
from typing import Callable, Dict, List, Optional

import aiohttp

from .balance_gate import BalanceGate
from .chain_engine import ChainEngine
from .config import Settings
from .endpoint_pool import PoolRegistry
from .execution import AtomicExecutor
from .logger import network_logger
from .signals import RandomDeltaPolicy, SignalPolicy
from .signing import OperatingIdentity


class Supervisor:
    """
    Runs one ChainEngine per configured network. Engines share the identity,
    the reference balance gate and the pool registry; a failing engine is
    logged and never takes the others down.
    """
    def __init__(self, settings: Settings, identity: OperatingIdentity, logger: logging.Logger,
                 policy: Optional[SignalPolicy] = None,
                 engine_factory: Callable[..., ChainEngine] = ChainEngine):
        self.settings = settings
        self.identity = identity
        self.logger = logger
        self.policy = policy or RandomDeltaPolicy(settings.signal)
        self.pools = PoolRegistry(settings.networks)
        self.executor = AtomicExecutor(settings.execution, identity, dry_run=settings.dry_run)
        self.gate = BalanceGate(self.pools[settings.reference_network], settings.min_reference_balance_wei,
                                network_logger(settings.reference_network))
        self._engine_factory = engine_factory
        self.engines: List[ChainEngine] = []
        self.tasks: Dict[str, asyncio.Task] = {}

    def build_engines(self, session: aiohttp.ClientSession) -> List[ChainEngine]:
        self.engines = [
            self._engine_factory(net, self.pools, self.gate, self.policy, self.executor, self.identity,
                                 session, reconnect_delay=self.settings.reconnect_delay_seconds)
            for net in self.settings.networks
        ]
        return self.engines

    def _on_done(self, task: asyncio.Task):
        name = task.get_name()
        if task.cancelled():
            self.logger.info(f"[{name}] Engine cancelled.")
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(f"[{name}] Init Error: {type(exc).__name__}: {exc}")
        else:
            self.logger.info(f"[{name}] Engine stopped.")

    async def run(self, session: Optional[aiohttp.ClientSession] = None):
        own_session = session is None
        session = session or aiohttp.ClientSession()
        try:
            for engine in self.build_engines(session):
                task = asyncio.create_task(engine.run_forever(), name=engine.network.name)
                task.add_done_callback(self._on_done)
                self.tasks[engine.network.name] = task

            # Failures are reported by _on_done as they happen
            await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        finally:
            await self.shutdown()
            if own_session:
                await session.close()

    async def shutdown(self):
        for engine in self.engines:
            engine.stop()
        pending = [t for t in self.tasks.values() if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
