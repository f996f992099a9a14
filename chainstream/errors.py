# chainstream/errors.py
import asyncio
import re

import aiohttp

_TRANSIENT_PATTERN = re.compile(r"network|timeout|timed out|429|too many requests|\b5\d\d\b", re.IGNORECASE)


class ChainstreamError(Exception):
    pass


class ConfigError(ChainstreamError):
    """Missing endpoint or credential. Fatal for the affected network only."""


class ChainIdMismatch(ChainstreamError):
    def __init__(self, network: str, expected: int, actual: int):
        super().__init__(f"{network}: endpoint reports chain id {actual}, expected {expected}")
        self.expected = expected
        self.actual = actual


class RelayError(ChainstreamError):
    pass


def is_transient(exc: BaseException) -> bool:
    """
    Classifies an RPC failure as network/rate-limit/server-side.
    Only transient failures rotate the reference endpoint pool.
    """
    if isinstance(exc, (asyncio.TimeoutError, ConnectionError, aiohttp.ClientConnectionError)):
        return True
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status == 429 or 500 <= exc.status < 600
    return bool(_TRANSIENT_PATTERN.search(str(exc)))
