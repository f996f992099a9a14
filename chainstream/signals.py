# chainstream/signals.py
import random
from abc import ABC, abstractmethod
from typing import Optional

from .config import SignalSettings
from .models import Action, Signal


class SignalPolicy(ABC):
    """
    Scores one observed pending transaction.
    Sits on the hot path, so implementations own their latency budget.
    """
    @abstractmethod
    async def evaluate(self, tx_hash: str) -> Signal:
        ...


class RandomDeltaPolicy(SignalPolicy):
    """
    Scaffolding policy: a uniform price delta in [-spread/2, spread/2).
    Not a market model; swap in a real policy at construction time.
    """
    def __init__(self, cfg: SignalSettings, rng: Optional[random.Random] = None):
        self.cfg = cfg
        self._rng = rng or random.Random()

    async def evaluate(self, tx_hash: str) -> Signal:
        delta = (self._rng.random() - 0.5) * self.cfg.spread
        gain = abs(delta * 100)
        half = self.cfg.spread / 2
        confidence = min(abs(delta) / half, 1.0) if half > 0 else 0.0

        threshold = self.cfg.conviction_threshold
        return Signal(
            valid=gain >= self.cfg.min_gain_percent,
            action=Action.BUY if delta < 0 else Action.SELL,
            gain_percent=round(gain, 2),
            confidence=confidence,
            is_high_conviction=threshold is not None and confidence >= threshold,
        )
