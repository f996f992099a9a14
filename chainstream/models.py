# chainstream/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class Action(Enum):
    BUY = "BUY"
    SELL = "SELL"


class EngineState(Enum):
    """
    Connection lifecycle of a single ChainEngine.
    CLOSED always loops back to CONNECTING after the reconnect delay.
    """
    CONNECTING = "CONNECTING"
    SUBSCRIBED = "SUBSCRIBED"
    LISTENING = "LISTENING"
    HANDLING = "HANDLING"
    CLOSED = "CLOSED"


class ExecutionStatus(Enum):
    SUBMITTED = "SUBMITTED"                  # bundle accepted by the relay
    BROADCAST = "BROADCAST"                  # raw tx sent on the direct path
    DRY_RUN = "DRY_RUN"
    ABORTED_COST = "ABORTED_COST"
    SIMULATION_FAILED = "SIMULATION_FAILED"
    REVERTED = "REVERTED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """
    Static description of one network. Endpoint lists are ordered by
    preference; the rotation cursor walks them in order.
    """
    name: str
    chain_id: int
    rpc_endpoints: Tuple[str, ...]
    stream_endpoints: Tuple[str, ...]
    relay_url: Optional[str] = None
    is_layer2: bool = False

    @property
    def uses_relay(self) -> bool:
        return bool(self.relay_url) and not self.is_layer2


@dataclass(slots=True)
class Signal:
    valid: bool
    action: Action
    gain_percent: float
    confidence: float
    is_high_conviction: bool = False


@dataclass(slots=True)
class FeeData:
    """Mirror of a provider fee snapshot. EIP-1559 fields are None on legacy chains."""
    legacy_price: int
    max_fee_per_unit: Optional[int] = None
    priority_fee_per_unit: Optional[int] = None

    @property
    def effective_fee_per_unit(self) -> int:
        return self.max_fee_per_unit or self.legacy_price


@dataclass(slots=True)
class CostEstimate:
    estimated_gas_fee: int
    premium: int
    total_cost: int


@dataclass(slots=True)
class TradeIntent:
    """Built fresh for every execution attempt, never reused."""
    destination: str
    payload: bytes
    value: int
    gas_limit: int
    max_fee_per_unit: int
    max_priority_fee_per_unit: int
    chain_id: int
    nonce: int = 0
    legacy: bool = False

    def to_tx(self) -> dict:
        if self.legacy:
            # No base fee on this chain: plain gasPrice transaction
            return {
                "to": self.destination,
                "data": self.payload,
                "value": self.value,
                "gas": self.gas_limit,
                "gasPrice": self.max_fee_per_unit,
                "chainId": self.chain_id,
                "nonce": self.nonce,
            }
        return {
            "to": self.destination,
            "data": self.payload,
            "value": self.value,
            "gas": self.gas_limit,
            "maxFeePerGas": self.max_fee_per_unit,
            "maxPriorityFeePerGas": self.max_priority_fee_per_unit,
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "type": 2,
        }


@dataclass(slots=True)
class ExecutionResult:
    network: str
    status: ExecutionStatus
    amount: int = 0
    cost: Optional[CostEstimate] = None
    target_block: Optional[int] = None
    tx_hash: Optional[str] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (ExecutionStatus.SUBMITTED, ExecutionStatus.BROADCAST, ExecutionStatus.DRY_RUN)


@dataclass(slots=True)
class Envelope:
    """One parsed inbound stream message."""
    kind: str  # "ack" | "event" | "error"
    request_id: Optional[int] = None
    subscription: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[dict] = field(default=None)
