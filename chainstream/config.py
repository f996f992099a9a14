# chainstream/config.py
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from web3 import Web3

from .errors import ConfigError
from .models import NetworkConfig

DEFAULT_CONFIG = "config.yaml"


@dataclass(frozen=True)
class ExecutionSettings:
    executor_address: Optional[str]
    payload: bytes = b""
    gas_limit: int = 650_000
    base_allocation_percent: int = 50
    aggressive_allocation_percent: int = 50
    premium_numerator: int = 9
    premium_denominator: int = 10_000
    max_fee_uplift_percent: int = 115
    priority_fee_uplift_percent: int = 125
    min_priority_fee_wei: int = Web3.to_wei(Decimal("3.5"), "gwei")
    gas_reserve_wei: int = 0
    estimate_gas_preflight: bool = True


@dataclass(frozen=True)
class SignalSettings:
    spread: float = 0.15
    min_gain_percent: float = 0.0
    conviction_threshold: Optional[float] = None


@dataclass(frozen=True)
class Settings:
    networks: List[NetworkConfig]
    reference_network: str
    min_reference_balance_wei: int
    execution: ExecutionSettings
    signal: SignalSettings
    private_key: Optional[str] = field(default=None, repr=False)
    dry_run: bool = True
    log_level: str = "INFO"
    reconnect_delay_seconds: float = 5.0

    def network(self, name: str) -> NetworkConfig:
        for net in self.networks:
            if net.name == name:
                return net
        raise ConfigError(f"Unknown network: {name}")


# Short env prefixes kept from earlier deployments (ETH_RPC, ETH_WSS)
ENV_ALIASES = {"ETHEREUM": "ETH"}


def _endpoints(network: str, suffix: str, configured: Optional[List[str]]) -> tuple:
    # The env override goes first so a private endpoint is preferred over public ones.
    env_names = [f"{network}_{suffix}"]
    if network in ENV_ALIASES:
        env_names.append(f"{ENV_ALIASES[network]}_{suffix}")
    candidates = [os.getenv(n) for n in env_names] + list(configured or [])
    seen = []
    for url in candidates:
        if url and url not in seen:
            seen.append(url)
    return tuple(seen)


def _parse_networks(raw: Dict[str, Any]) -> List[NetworkConfig]:
    networks = []
    for name, conf in (raw or {}).items():
        name = name.upper()
        if 'chain_id' not in conf:
            raise ConfigError(f"{name}: chain_id is required")
        networks.append(NetworkConfig(
            name=name,
            chain_id=int(conf['chain_id']),
            rpc_endpoints=_endpoints(name, "RPC", conf.get('rpc')),
            stream_endpoints=_endpoints(name, "WSS", conf.get('wss')),
            relay_url=conf.get('relay') or None,
            is_layer2=bool(conf.get('is_l2', False)),
        ))
    return networks


def _parse_payload(value: Optional[str]) -> bytes:
    if not value:
        return b""
    try:
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except ValueError as e:
        raise ConfigError(f"execution.payload is not valid hex: {value!r}") from e


def load_settings(path: Optional[str] = None, env_file: Optional[str] = ".env") -> Settings:
    """
    Reads config.yaml and overlays secrets from the environment.
    Raises ConfigError when a live run lacks its signing key or executor address.
    """
    if env_file and Path(env_file).exists():
        load_dotenv(env_file)

    config_path = Path(path or os.getenv("CHAINSTREAM_CONFIG", DEFAULT_CONFIG))
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    system = cfg.get('system', {})
    ex = cfg.get('execution', {})
    sig = cfg.get('signal', {})
    gate = cfg.get('gate', {})

    networks = _parse_networks(cfg.get('networks'))
    if not networks:
        raise ConfigError("No networks configured")

    reference = str(system.get('reference_network', 'BASE')).upper()
    if reference not in {n.name for n in networks}:
        raise ConfigError(f"Reference network {reference} is not configured")

    defaults = ExecutionSettings(executor_address=None)
    execution = ExecutionSettings(
        executor_address=os.getenv("EXECUTOR_ADDRESS") or ex.get('executor_address'),
        payload=_parse_payload(ex.get('payload')),
        gas_limit=int(ex.get('gas_limit', defaults.gas_limit)),
        base_allocation_percent=int(ex.get('base_allocation_percent', defaults.base_allocation_percent)),
        aggressive_allocation_percent=int(ex.get('aggressive_allocation_percent',
                                                 ex.get('base_allocation_percent', defaults.aggressive_allocation_percent))),
        premium_numerator=int(ex.get('premium_numerator', defaults.premium_numerator)),
        premium_denominator=int(ex.get('premium_denominator', defaults.premium_denominator)),
        max_fee_uplift_percent=int(ex.get('max_fee_uplift_percent', defaults.max_fee_uplift_percent)),
        priority_fee_uplift_percent=int(ex.get('priority_fee_uplift_percent', defaults.priority_fee_uplift_percent)),
        min_priority_fee_wei=Web3.to_wei(Decimal(str(ex.get('min_priority_fee_gwei', "3.5"))), "gwei"),
        gas_reserve_wei=Web3.to_wei(Decimal(str(ex.get('gas_reserve_eth', "0"))), "ether"),
        estimate_gas_preflight=bool(ex.get('estimate_gas_preflight', True)),
    )

    for pct in (execution.base_allocation_percent, execution.aggressive_allocation_percent):
        if not 0 < pct < 100:
            # gas, premium and reserve must fit in what the allocation leaves behind
            raise ConfigError(f"Allocation percent must be within (0, 100) so costs fit in the remainder, got {pct}")
    if execution.premium_denominator <= 0:
        raise ConfigError("execution.premium_denominator must be positive")

    settings = Settings(
        networks=networks,
        reference_network=reference,
        min_reference_balance_wei=Web3.to_wei(Decimal(str(gate.get('min_reference_balance_eth', "0.005"))), "ether"),
        execution=execution,
        signal=SignalSettings(
            spread=float(sig.get('spread', 0.15)),
            min_gain_percent=float(sig.get('min_gain_percent', 0.0)),
            conviction_threshold=(float(sig['conviction_threshold'])
                                  if sig.get('conviction_threshold') is not None else None),
        ),
        private_key=os.getenv("PRIVATE_KEY") or None,
        # Defaults to a dry run unless explicitly switched off
        dry_run=bool(system.get('dry_run', True)),
        log_level=str(system.get('log_level', 'INFO')),
        reconnect_delay_seconds=float(system.get('reconnect_delay_seconds', 5.0)),
    )

    if not settings.private_key:
        raise ConfigError("PRIVATE_KEY is not set")
    if not execution.executor_address:
        raise ConfigError("EXECUTOR_ADDRESS is not set")
    return settings
