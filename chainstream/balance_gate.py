# chainstream/balance_gate.py
import logging
from typing import Callable, Dict, Optional

from .endpoint_pool import EndpointPool
from .errors import is_transient
from .rpc import ChainClient


class BalanceGate:
    """
    Eligibility check against the reference network's balance, no matter
    which network observed the event. Failing the gate is a normal no-op.
    """
    def __init__(self, pool: EndpointPool, threshold: int, logger: logging.Logger,
                 client_factory: Callable[..., ChainClient] = ChainClient):
        self.pool = pool
        self.threshold = threshold
        self.logger = logger
        self._client_factory = client_factory
        self._clients: Dict[str, ChainClient] = {}

    def _client(self) -> ChainClient:
        url = self.pool.select_rpc()
        if url not in self._clients:
            self._clients[url] = self._client_factory(self.pool.network, url)
        return self._clients[url]

    def passes(self, balance: int) -> bool:
        return balance >= self.threshold

    async def check(self, address: str) -> Optional[int]:
        """
        Returns the reference balance when it meets the threshold, else None.
        RPC failures never propagate; transient ones rotate the reference pool.
        """
        try:
            balance = await self._client().get_balance(address)
        except Exception as e:
            if is_transient(e):
                index = self.pool.advance()
                self.logger.warning(f"Reference RPC failure ({e}). Rotating {self.pool.network.name} pool to #{index}.")
            else:
                self.logger.error(f"Reference balance check failed: {e}")
            return None

        if not self.passes(balance):
            return None
        return balance
