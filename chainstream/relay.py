# chainstream/relay.py
import asyncio
import json
from typing import Any, Dict, List, Optional

import aiohttp
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import RelayError


class FlashbotsRelay:
    """
    Private-relay capability: simulate a bundle against a target block, then
    submit it for inclusion in that block only.
    Requests are authenticated with a throwaway reputation key, not the trading wallet.
    """
    def __init__(self, relay_url: str, session: aiohttp.ClientSession,
                 auth_signer: Optional[LocalAccount] = None, timeout: float = 15.0):
        self.relay_url = relay_url
        self._session = session
        self._signer = auth_signer or Account.create()
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._request_id = 0

    def _headers(self, body: str) -> Dict[str, str]:
        message = encode_defunct(text=Web3.to_hex(Web3.keccak(text=body)))
        signature = self._signer.sign_message(message).signature
        return {
            "Content-Type": "application/json",
            "X-Flashbots-Signature": f"{self._signer.address}:{Web3.to_hex(signature)}",
        }

    async def _call(self, method: str, params: List[Any]) -> Dict[str, Any]:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        body = json.dumps(payload, separators=(",", ":"))
        try:
            async with self._session.post(self.relay_url, data=body, headers=self._headers(body),
                                          timeout=self._timeout) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RelayError(f"{method} transport failure: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise RelayError(f"{method} returned a non-JSON body: {e}") from e

    async def simulate(self, signed_txs: List[bytes], target_block: int) -> Dict[str, Any]:
        """
        Returns {"error": ...} or {"results": [...]}; each result may carry
        "error"/"revert" when that transaction would fail.
        """
        data = await self._call("eth_callBundle", [{
            "txs": [Web3.to_hex(tx) for tx in signed_txs],
            "blockNumber": hex(target_block),
            "stateBlockNumber": "latest",
        }])
        if "error" in data:
            return {"error": data["error"]}
        result = data.get("result") or {}
        return {"results": result.get("results", []),
                "bundle_hash": result.get("bundleHash")}

    async def send_bundle(self, signed_txs: List[bytes], target_block: int) -> str:
        data = await self._call("eth_sendBundle", [{
            "txs": [Web3.to_hex(tx) for tx in signed_txs],
            "blockNumber": hex(target_block),
        }])
        if "error" in data:
            err = data["error"]
            raise RelayError(f"Bundle submission failed: {err.get('message', err) if isinstance(err, dict) else err}")
        result = data.get("result")
        if isinstance(result, dict):
            return result.get("bundleHash", "")
        return str(result or "")


def simulation_failed(simulation: Dict[str, Any]) -> Optional[str]:
    """Reason string when the simulation must block submission, else None."""
    if "error" in simulation:
        return f"simulation error: {simulation['error']}"
    results = simulation.get("results")
    if not results:
        return "simulation returned no results"
    for res in results:
        if res.get("revert") or res.get("error"):
            return f"simulated revert: {res.get('revert') or res.get('error')}"
    return None
