from __future__ import annotations

import json
from collections import namedtuple
from typing import Any

import aiohttp
import pytest

from chainstream.config import ExecutionSettings, Settings, SignalSettings
from chainstream.errors import ChainIdMismatch
from chainstream.models import FeeData, NetworkConfig
from chainstream.signing import OperatingIdentity

TEST_KEY = "0x" + "11" * 32
EXECUTOR = "0x000000000000000000000000000000000000dEaD"
GWEI = 10**9
ETH = 10**18

WSMsg = namedtuple("WSMsg", "type data extra")

ETHEREUM = NetworkConfig("ETHEREUM", 1, ("https://eth-a", "https://eth-b"), ("wss://eth-a", "wss://eth-b"),
                         relay_url="https://relay.example", is_layer2=False)
BASE = NetworkConfig("BASE", 8453, ("https://base-a", "https://base-b", "https://base-c"),
                     ("wss://base-a", "wss://base-b", "wss://base-c"), is_layer2=True)


class FakeClient:
    def __init__(self, network: NetworkConfig = BASE, rpc_url: str = "https://fake", *, balance: int = ETH,
                 fee: FeeData | None = None, block: int = 100, chain_id: int | None = None,
                 balance_error: Exception | None = None, estimate_error: Exception | None = None,
                 send_error: Exception | None = None):
        self.network = network
        self.rpc_url = rpc_url
        self.balance = balance
        self.fee = fee or FeeData(legacy_price=10 * GWEI, max_fee_per_unit=20 * GWEI, priority_fee_per_unit=2 * GWEI)
        self.block = block
        self.chain_id = network.chain_id if chain_id is None else chain_id
        self.balance_error = balance_error
        self.estimate_error = estimate_error
        self.send_error = send_error
        self.calls: list[str] = []
        self.sent: list[bytes] = []
        self.estimated: list[dict] = []

    async def verify_chain(self) -> int:
        self.calls.append("verify_chain")
        if self.chain_id != self.network.chain_id:
            raise ChainIdMismatch(self.network.name, self.network.chain_id, self.chain_id)
        return self.chain_id

    async def get_balance(self, address: str) -> int:
        self.calls.append("get_balance")
        if self.balance_error:
            raise self.balance_error
        return self.balance

    async def get_fee_data(self) -> FeeData:
        self.calls.append("get_fee_data")
        return self.fee

    async def get_block_number(self) -> int:
        self.calls.append("get_block_number")
        return self.block

    async def get_nonce(self, address: str) -> int:
        self.calls.append("get_nonce")
        return 7

    async def estimate_gas(self, tx: dict) -> int:
        self.calls.append("estimate_gas")
        self.estimated.append(tx)
        if self.estimate_error:
            raise self.estimate_error
        return 300_000

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        self.calls.append("send_raw_transaction")
        if self.send_error:
            raise self.send_error
        self.sent.append(raw_tx)
        return "0x" + "ab" * 32


class FakeRelay:
    def __init__(self, simulation: dict | None = None):
        self.simulation = simulation if simulation is not None else {"results": [{"txHash": "0x01"}]}
        self.simulated: list[tuple[list[bytes], int]] = []
        self.bundles: list[tuple[list[bytes], int]] = []

    async def simulate(self, signed_txs, target_block):
        self.simulated.append((signed_txs, target_block))
        return self.simulation

    async def send_bundle(self, signed_txs, target_block):
        self.bundles.append((signed_txs, target_block))
        return "0xbundle"


class FakeWebSocket:
    def __init__(self, messages: list[Any]):
        self._messages = list(messages)
        self.sent: list[dict] = []

    async def send_json(self, data: dict):
        self.sent.append(data)

    def exception(self):
        return ConnectionResetError("peer reset")

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, *sockets: FakeWebSocket):
        self._sockets = list(sockets)
        self.connected: list[str] = []

    def ws_connect(self, url: str, **kwargs):
        self.connected.append(url)
        return self._sockets.pop(0) if self._sockets else FakeWebSocket([close_msg()])


def text_msg(payload: dict) -> WSMsg:
    return WSMsg(aiohttp.WSMsgType.TEXT, json.dumps(payload), None)


def close_msg() -> WSMsg:
    return WSMsg(aiohttp.WSMsgType.CLOSE, 1000, "")


def ack_msg(sub: str = "0xsub") -> WSMsg:
    return text_msg({"jsonrpc": "2.0", "id": 1, "result": sub})


def event_msg(tx_hash: str) -> WSMsg:
    return text_msg({"jsonrpc": "2.0", "method": "eth_subscription",
                     "params": {"subscription": "0xsub", "result": tx_hash}})


def make_execution(**overrides) -> ExecutionSettings:
    params = dict(executor_address=EXECUTOR, min_priority_fee_wei=1 * GWEI)
    params.update(overrides)
    return ExecutionSettings(**params)


def make_settings(dry_run: bool = False, **overrides) -> Settings:
    params = dict(
        networks=[ETHEREUM, BASE],
        reference_network="BASE",
        min_reference_balance_wei=5 * 10**15,
        execution=make_execution(),
        signal=SignalSettings(),
        private_key=TEST_KEY,
        dry_run=dry_run,
        reconnect_delay_seconds=5.0,
    )
    params.update(overrides)
    return Settings(**params)


@pytest.fixture
def identity() -> OperatingIdentity:
    return OperatingIdentity.from_key(TEST_KEY)
