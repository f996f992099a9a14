# chainstream/chain_engine.py
import asyncio
import time
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

import aiohttp

from .balance_gate import BalanceGate
from .endpoint_pool import PoolRegistry
from .execution import AtomicExecutor
from .logger import network_logger
from .models import EngineState, Envelope, ExecutionResult, NetworkConfig
from .relay import FlashbotsRelay
from .rpc import ChainClient
from .signals import SignalPolicy
from .signing import OperatingIdentity
from .stream import SUBSCRIPTION_ID, parse_envelope, subscription_request


class StreamClosed(Exception):
    pass


class ChainEngine:
    """
    One network's connection loop: CONNECTING -> SUBSCRIBED -> LISTENING <-> HANDLING -> CLOSED,
    then back to CONNECTING after a fixed delay on the next endpoint.
    Inbound events are handled one at a time, in delivery order, so two
    submissions on the same network never overlap.
    """
    def __init__(self, network: NetworkConfig, pools: PoolRegistry, gate: BalanceGate,
                 policy: SignalPolicy, executor: AtomicExecutor, identity: OperatingIdentity,
                 session: aiohttp.ClientSession, reconnect_delay: float = 5.0,
                 client_factory: Callable[..., ChainClient] = ChainClient,
                 relay_factory: Callable[..., FlashbotsRelay] = FlashbotsRelay,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.network = network
        self.pool = pools[network.name]
        self.gate = gate
        self.policy = policy
        self.executor = executor
        self.identity = identity
        self.session = session
        self.reconnect_delay = reconnect_delay
        self.logger = network_logger(network.name)

        self._client_factory = client_factory
        self._relay_factory = relay_factory
        self._sleep = sleep

        self.state = EngineState.CONNECTING
        self.running = False
        self.relay: Optional[FlashbotsRelay] = None
        self.events_seen = 0

    def _transition(self, state: EngineState):
        if state is self.state:
            return
        # LISTENING <-> HANDLING flips on every event
        log = self.logger.debug if state in (EngineState.LISTENING, EngineState.HANDLING) else self.logger.info
        log(f"{self.state.value} -> {state.value}")
        self.state = state

    def prepare(self):
        """
        Startup checks. Raises ConfigError for missing endpoints; relay setup
        errors propagate too, so the supervisor can leave this network unstarted.
        """
        self.pool.select()
        if self.network.uses_relay and self.relay is None:
            self.relay = self._relay_factory(self.network.relay_url, self.session)

    async def run_forever(self):
        self.prepare()
        self.running = True
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error(f"Stream error: {type(e).__name__}: {e}")
            self._transition(EngineState.CLOSED)
            if not self.running:
                break
            await self.schedule_reconnect()

    async def schedule_reconnect(self):
        index = self.pool.advance()
        self.logger.warning(f"Connection lost. Cycling to provider #{index} in {self.reconnect_delay:g}s...")
        await self._sleep(self.reconnect_delay)

    def stop(self):
        self.running = False

    async def run_once(self):
        """A single CONNECTING -> CLOSED pass. Returns on graceful close, raises on error."""
        self._transition(EngineState.CONNECTING)
        rpc_url, stream_url = self.pool.select()
        client = self._client_factory(self.network, rpc_url)
        await client.verify_chain()

        async with self.session.ws_connect(stream_url, heartbeat=30) as ws:
            self.logger.info(f"SpeedStream connected to [{urlparse(stream_url).hostname}] (Pool: {self.pool.slot()})")
            await ws.send_json(subscription_request())
            self._transition(EngineState.SUBSCRIBED)

            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    envelope = parse_envelope(msg.data)
                    if envelope is not None:
                        await self.on_envelope(envelope, client)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise StreamClosed(f"websocket error: {ws.exception()}")
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break

    async def on_envelope(self, envelope: Envelope, client: ChainClient) -> Optional[ExecutionResult]:
        if envelope.kind == "ack" and envelope.request_id == SUBSCRIPTION_ID:
            self.logger.info(f"Subscribed to pending transactions (sub: {envelope.subscription})")
            self._transition(EngineState.LISTENING)
            return None
        if envelope.kind == "error":
            raise StreamClosed(f"subscription rejected: {envelope.error}")
        if envelope.kind == "event" and envelope.tx_hash:
            return await self.handle(envelope.tx_hash, client)
        return None

    async def handle(self, tx_hash: str, client: ChainClient) -> Optional[ExecutionResult]:
        """
        Gate -> policy -> executor for one event. Never raises; the loop
        always goes back to listening.
        """
        t0 = time.perf_counter_ns()
        self.events_seen += 1
        self._transition(EngineState.HANDLING)
        try:
            balance = await self.gate.check(self.identity.address)
            if balance is None:
                return None

            signal = await self.policy.evaluate(tx_hash)
            if not signal.valid:
                self.logger.debug(f"Signal rejected for {tx_hash} (gain {signal.gain_percent}%)")
                return None

            latency = (time.perf_counter_ns() - t0) / 1000
            self.logger.info(f"Signal: {signal.action.value} | Gain: {signal.gain_percent:.2f}% | "
                             f"Confidence: {signal.confidence:.2f} | Latency: {latency:.2f}μs | Tx: {tx_hash}")
            return await self.executor.execute(self.network, client, signal, balance, self.logger, relay=self.relay)
        except Exception as e:
            self.logger.error(f"Handling failed for {tx_hash}: {e}")
            return None
        finally:
            self._transition(EngineState.LISTENING)
