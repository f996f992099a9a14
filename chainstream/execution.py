# chainstream/execution.py
import asyncio
import logging
from typing import Optional

from .config import ExecutionSettings
from .errors import RelayError
from .fees import FeeModel
from .models import ExecutionResult, ExecutionStatus, NetworkConfig, Signal, TradeIntent
from .relay import FlashbotsRelay, simulation_failed
from .rpc import ChainClient
from .signing import OperatingIdentity


class AtomicExecutor:
    """
    Builds one TradeIntent per valid signal and submits it at most once.
    Relay networks simulate first and never submit after a failing simulation;
    every other network broadcasts directly after an optional gas estimate.
    """
    def __init__(self, cfg: ExecutionSettings, identity: OperatingIdentity, dry_run: bool = True):
        self.cfg = cfg
        self.identity = identity
        self.model = FeeModel(cfg)
        self.dry_run = dry_run

    async def execute(self, network: NetworkConfig, client: ChainClient, signal: Signal,
                      reference_balance: int, logger: logging.Logger,
                      relay: Optional[FlashbotsRelay] = None) -> ExecutionResult:
        percent = self.model.allocation_percent(signal)
        amount = self.model.allocation_amount(reference_balance, percent)

        try:
            fee = await client.get_fee_data()
            target_block = await client.get_block_number() + 1
            local_balance = await client.get_balance(self.identity.address)
        except Exception as e:
            return self._report(logger, ExecutionResult(network.name, ExecutionStatus.FAILED, amount,
                                                         detail=f"fee/block/balance query failed: {e}"))

        # The executing chain pays for the attempt, the reference chain only sizes it
        available = min(local_balance, reference_balance)
        cost = self.model.estimate(fee, amount)
        if not self.model.is_viable(available, amount, cost):
            return self._report(logger, ExecutionResult(
                network.name, ExecutionStatus.ABORTED_COST, amount, cost, target_block,
                detail=f"needs {self.model.required_funds(amount, cost)} wei, has {available}"))

        legacy = fee.max_fee_per_unit is None
        if legacy:
            max_fee = tip = self.model.legacy_gas_price(fee)
        else:
            max_fee, tip = self.model.gas_prices(fee)
        try:
            nonce = await client.get_nonce(self.identity.address)
        except Exception as e:
            return self._report(logger, ExecutionResult(network.name, ExecutionStatus.FAILED, amount, cost,
                                                         target_block, detail=f"nonce query failed: {e}"))

        intent = TradeIntent(
            destination=self.cfg.executor_address,
            payload=self.cfg.payload,
            value=amount,
            gas_limit=self.cfg.gas_limit,
            max_fee_per_unit=max_fee,
            max_priority_fee_per_unit=tip,
            chain_id=network.chain_id,
            nonce=nonce,
            legacy=legacy,
        )
        logger.info(f"⚡ EXECUTION TRIGGERED: {signal.action.value} | {percent}% allocation | "
                    f"Amt: {amount} wei | Cost: {cost.total_cost} wei | Block: {target_block}")

        if relay is not None and network.uses_relay:
            result = await self._via_relay(network, relay, intent, target_block)
        else:
            result = await self._direct(network, client, intent)
        result.cost = cost
        result.target_block = target_block
        return self._report(logger, result)

    async def _via_relay(self, network: NetworkConfig, relay: FlashbotsRelay,
                         intent: TradeIntent, target_block: int) -> ExecutionResult:
        bundle = [self.identity.sign(intent.to_tx())]
        try:
            simulation = await relay.simulate(bundle, target_block)
        except (RelayError, asyncio.TimeoutError) as e:
            return ExecutionResult(network.name, ExecutionStatus.SIMULATION_FAILED, intent.value, detail=str(e))

        reason = simulation_failed(simulation)
        if reason:
            # Atomic guard: nothing leaves the process after a failing simulation
            return ExecutionResult(network.name, ExecutionStatus.SIMULATION_FAILED, intent.value, detail=reason)

        if self.dry_run:
            return ExecutionResult(network.name, ExecutionStatus.DRY_RUN, intent.value,
                                   detail="simulation passed, bundle not sent")
        try:
            bundle_hash = await relay.send_bundle(bundle, target_block)
        except (RelayError, asyncio.TimeoutError) as e:
            return ExecutionResult(network.name, ExecutionStatus.FAILED, intent.value, detail=str(e))
        return ExecutionResult(network.name, ExecutionStatus.SUBMITTED, intent.value, tx_hash=bundle_hash,
                               detail=f"bundle targets block {target_block} only")

    async def _direct(self, network: NetworkConfig, client: ChainClient, intent: TradeIntent) -> ExecutionResult:
        tx = intent.to_tx()
        if self.cfg.estimate_gas_preflight:
            try:
                await client.estimate_gas({**tx, "from": self.identity.address})
            except Exception as e:
                return ExecutionResult(network.name, ExecutionStatus.REVERTED, intent.value,
                                       detail=f"gas estimate rejected: {e}")

        if self.dry_run:
            return ExecutionResult(network.name, ExecutionStatus.DRY_RUN, intent.value,
                                   detail="pre-flight passed, transaction not broadcast")
        try:
            tx_hash = await client.send_raw_transaction(self.identity.sign(tx))
        except Exception as e:
            status = ExecutionStatus.REVERTED if "revert" in str(e).lower() else ExecutionStatus.FAILED
            return ExecutionResult(network.name, status, intent.value, detail=str(e))
        return ExecutionResult(network.name, ExecutionStatus.BROADCAST, intent.value, tx_hash=tx_hash)

    @staticmethod
    def _report(logger: logging.Logger, result: ExecutionResult) -> ExecutionResult:
        msg = f"{result.status.value} | Amt: {result.amount} wei"
        if result.tx_hash:
            msg += f" | Hash: {result.tx_hash}"
        if result.detail:
            msg += f" | {result.detail}"

        if result.ok:
            logger.info(f"✅ {msg}")
        elif result.status is ExecutionStatus.FAILED:
            logger.error(f"❌ {msg}")
        else:
            logger.warning(f"⚠️ {msg}")
        return result
