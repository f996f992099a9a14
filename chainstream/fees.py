# chainstream/fees.py
from typing import Tuple

from .config import ExecutionSettings
from .models import CostEstimate, FeeData, Signal


class FeeModel:
    """
    Capital sizing and cost model for one execution attempt.
    All arithmetic is integer wei; nothing is rounded up.
    """
    def __init__(self, cfg: ExecutionSettings):
        self.cfg = cfg

    def allocation_percent(self, signal: Signal) -> int:
        # Two tiers only: high conviction takes the aggressive size
        if signal.is_high_conviction:
            return self.cfg.aggressive_allocation_percent
        return self.cfg.base_allocation_percent

    @staticmethod
    def allocation_amount(balance: int, percent: int) -> int:
        return (balance * percent) // 100

    def estimate(self, fee: FeeData, amount: int) -> CostEstimate:
        gas_fee = self.cfg.gas_limit * fee.effective_fee_per_unit
        premium = (amount * self.cfg.premium_numerator) // self.cfg.premium_denominator
        return CostEstimate(estimated_gas_fee=gas_fee, premium=premium, total_cost=gas_fee + premium)

    def required_funds(self, amount: int, cost: CostEstimate) -> int:
        return amount + cost.total_cost + self.cfg.gas_reserve_wei

    def is_viable(self, available: int, amount: int, cost: CostEstimate) -> bool:
        """The attempt must be fully funded: value + gas + premium + reserve."""
        return available >= self.required_funds(amount, cost)

    def gas_prices(self, fee: FeeData) -> Tuple[int, int]:
        """
        (maxFeePerGas, maxPriorityFeePerGas) with the inclusion uplift applied.
        The tip never drops below the configured floor, and the cap always covers the tip.
        """
        base_tip = fee.priority_fee_per_unit or 0
        tip = max(base_tip * self.cfg.priority_fee_uplift_percent // 100, self.cfg.min_priority_fee_wei)
        max_fee = fee.effective_fee_per_unit * self.cfg.max_fee_uplift_percent // 100
        return max(max_fee, tip), tip

    def legacy_gas_price(self, fee: FeeData) -> int:
        """gasPrice for chains without a base fee, uplifted like maxFeePerGas."""
        return fee.legacy_price * self.cfg.max_fee_uplift_percent // 100
