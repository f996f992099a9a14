# chainstream/endpoint_pool.py
import threading
from typing import Dict, Iterable, Tuple

from .errors import ConfigError
from .models import NetworkConfig


class EndpointPool:
    """
    Rotation cursor over one network's RPC and stream endpoints.
    The cursor only ever grows; selection wraps with modulo so it never exhausts.
    The reference network's pool is advanced from every engine, so increments
    are lock-guarded.
    """
    def __init__(self, network: NetworkConfig):
        self.network = network
        self._index = 0
        self._lock = threading.Lock()

    @property
    def rotation_index(self) -> int:
        return self._index

    @staticmethod
    def _pick(endpoints: Tuple[str, ...], index: int):
        if not endpoints:
            return None
        return endpoints[index % len(endpoints)] or endpoints[0]

    def select(self) -> Tuple[str, str]:
        index = self._index
        rpc_url = self._pick(self.network.rpc_endpoints, index)
        stream_url = self._pick(self.network.stream_endpoints, index)
        if not rpc_url or not stream_url:
            raise ConfigError(f"[{self.network.name}] Missing RPC/WSS endpoints.")
        return rpc_url, stream_url

    def select_rpc(self) -> str:
        rpc_url = self._pick(self.network.rpc_endpoints, self._index)
        if not rpc_url:
            raise ConfigError(f"[{self.network.name}] Missing RPC endpoints.")
        return rpc_url

    def advance(self) -> int:
        with self._lock:
            self._index += 1
            return self._index

    def slot(self) -> int:
        """Position in the stream list, for log lines."""
        return self._index % max(len(self.network.stream_endpoints), 1)


class PoolRegistry:
    """One EndpointPool per network, threaded explicitly through engine construction."""
    def __init__(self, networks: Iterable[NetworkConfig]):
        self._pools: Dict[str, EndpointPool] = {n.name: EndpointPool(n) for n in networks}

    def __getitem__(self, name: str) -> EndpointPool:
        return self._pools[name]

    def __contains__(self, name: str) -> bool:
        return name in self._pools
