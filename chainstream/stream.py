# chainstream/stream.py
import json
from typing import Optional, Union

from .models import Envelope

SUBSCRIPTION_ID = 1


def subscription_request(request_id: int = SUBSCRIPTION_ID) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "eth_subscribe",
        "params": ["newPendingTransactions"],
    }


def parse_envelope(raw: Union[str, bytes, dict]) -> Optional[Envelope]:
    """
    Classifies one inbound message. Returns None for anything that is
    neither the subscription ack, an error reply, nor a pending-tx notification.
    """
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            return None
    if not isinstance(data, dict):
        return None

    params = data.get("params")
    if isinstance(params, dict) and params.get("result"):
        result = params["result"]
        # Some nodes push full transaction objects instead of bare hashes
        tx_hash = result.get("hash") if isinstance(result, dict) else result
        if isinstance(tx_hash, str):
            return Envelope(kind="event", subscription=params.get("subscription"), tx_hash=tx_hash)
        return None

    if "id" in data:
        if "error" in data:
            return Envelope(kind="error", request_id=data["id"], error=data["error"])
        if "result" in data:
            return Envelope(kind="ack", request_id=data["id"], subscription=data["result"])
    return None
