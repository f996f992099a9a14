# chainstream/rpc.py
from typing import Optional

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from .errors import ChainIdMismatch
from .models import FeeData, NetworkConfig


class ChainClient:
    """
    Thin RPC capability over AsyncWeb3, bound to one network's declared chain id.
    Every call suspends the caller; no timeout is added beyond the provider's own.
    """
    def __init__(self, network: NetworkConfig, rpc_url: str, request_timeout: float = 15.0,
                 web3: Optional[AsyncWeb3] = None):
        self.network = network
        self.rpc_url = rpc_url
        self.w3 = web3 or AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))

    async def verify_chain(self) -> int:
        actual = await self.w3.eth.chain_id
        if actual != self.network.chain_id:
            raise ChainIdMismatch(self.network.name, self.network.chain_id, actual)
        return actual

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(address)

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_nonce(self, address: str) -> int:
        return await self.w3.eth.get_transaction_count(address, "pending")

    async def get_fee_data(self) -> FeeData:
        """
        Same shape ethers' getFeeData returns: maxFee = 2 * baseFee + tip.
        Chains without a base fee only report the legacy gas price.
        """
        block = await self.w3.eth.get_block("latest")
        gas_price = await self.w3.eth.gas_price
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeData(legacy_price=gas_price)

        priority = await self.w3.eth.max_priority_fee
        return FeeData(
            legacy_price=gas_price,
            max_fee_per_unit=base_fee * 2 + priority,
            priority_fee_per_unit=priority,
        )

    async def estimate_gas(self, tx: dict) -> int:
        return await self.w3.eth.estimate_gas(tx)

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        tx_hash = await self.w3.eth.send_raw_transaction(raw_tx)
        return Web3.to_hex(tx_hash)
