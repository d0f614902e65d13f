"""Historical contract reads for token metadata and LP supply."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, TypeVar

import requests
from cachetools import LRUCache
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from ..config.settings import RPCConfig, get_app_config
from ..monitoring.logger import get_logger
from ..utils.constants import is_null_eth_value

UNKNOWN = "unknown"
DEFAULT_DECIMALS = 18

ERC20_ABI = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
]

# Older tokens (MKR style) return bytes32 from symbol()/name().
ERC20_BYTES_ABI = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
]

# Reverts and undecodable return data; both mean "the call has no usable answer".
CALL_FAILURES = (ContractLogicError, BadFunctionCallOutput, Web3Exception, ValueError, OverflowError, RetryError)
TRANSIENT_ERRORS = (requests.ConnectionError, requests.Timeout)

T = TypeVar("T")


class ChainReader(Protocol):
    """Contract reads the handlers depend on, evaluated at a historical block."""

    def token_symbol(self, address: str, block_number: int) -> str:
        ...

    def token_name(self, address: str, block_number: int) -> str:
        ...

    def token_decimals(self, address: str, block_number: int) -> int:
        ...

    def token_total_supply(self, address: str, block_number: int) -> int:
        ...

    def pair_total_supply(self, address: str, block_number: int) -> Optional[int]:
        """Raw LP supply, or ``None`` when the read fails."""
        ...


def decode_bytes32_text(value: bytes) -> Optional[str]:
    """Decode a bytes32 symbol/name; ``None`` for the null sentinel."""

    if is_null_eth_value("0x" + bytes(value).hex()):
        return None
    return bytes(value).rstrip(b"\x00").decode("utf-8", errors="ignore")


class Web3ChainReader:
    """ChainReader backed by a web3 HTTP provider."""

    def __init__(self, config: Optional[RPCConfig] = None, web3: Optional[Web3] = None) -> None:
        self._config = config or get_app_config().rpc
        self._web3 = web3 or Web3(
            Web3.HTTPProvider(
                str(self._config.primary_url),
                request_kwargs={"timeout": self._config.request_timeout},
            )
        )
        self._logger = get_logger(__name__)
        self._metadata_cache: LRUCache[tuple[str, str], Any] = LRUCache(
            maxsize=max(1, self._config.metadata_cache_size)
        )
        self._call = retry(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            stop=stop_after_attempt(self._config.max_retry_attempts),
        )(self._call_once)

    def _contract(self, address: str, abi: list[dict]) -> Any:
        return self._web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def _call_once(self, address: str, abi: list[dict], function: str, block_number: int) -> Any:
        contract = self._contract(address, abi)
        return getattr(contract.functions, function)().call(block_identifier=block_number)

    def _try_call(self, address: str, abi: list[dict], function: str, block_number: int) -> tuple[bool, Any]:
        try:
            return True, self._call(address, abi, function, block_number)
        except CALL_FAILURES as exc:
            self._logger.debug("%s() reverted on %s at block %s: %s", function, address, block_number, exc)
            return False, None

    def _cached(self, address: str, key: str, loader: Callable[[], T]) -> T:
        cache_key = (address, key)
        if cache_key in self._metadata_cache:
            return self._metadata_cache[cache_key]
        value = loader()
        self._metadata_cache[cache_key] = value
        return value

    def _text(self, address: str, function: str, block_number: int) -> str:
        ok, value = self._try_call(address, ERC20_ABI, function, block_number)
        if ok and isinstance(value, str):
            return value
        ok, raw = self._try_call(address, ERC20_BYTES_ABI, function, block_number)
        if ok and isinstance(raw, (bytes, bytearray)):
            decoded = decode_bytes32_text(raw)
            if decoded is not None:
                return decoded
        self._logger.warning("Falling back to %r for %s() of %s", UNKNOWN, function, address)
        return UNKNOWN

    def token_symbol(self, address: str, block_number: int) -> str:
        return self._cached(address, "symbol", lambda: self._text(address, "symbol", block_number))

    def token_name(self, address: str, block_number: int) -> str:
        return self._cached(address, "name", lambda: self._text(address, "name", block_number))

    def token_decimals(self, address: str, block_number: int) -> int:
        def load() -> int:
            ok, value = self._try_call(address, ERC20_ABI, "decimals", block_number)
            if ok and isinstance(value, int):
                return value
            self._logger.warning("Defaulting decimals of %s to %d", address, DEFAULT_DECIMALS)
            return DEFAULT_DECIMALS

        return self._cached(address, "decimals", load)

    def token_total_supply(self, address: str, block_number: int) -> int:
        ok, value = self._try_call(address, ERC20_ABI, "totalSupply", block_number)
        if ok and isinstance(value, int):
            return value
        return 0

    def pair_total_supply(self, address: str, block_number: int) -> Optional[int]:
        ok, value = self._try_call(address, ERC20_ABI, "totalSupply", block_number)
        if ok and isinstance(value, int):
            return value
        return None


__all__ = [
    "ChainReader",
    "DEFAULT_DECIMALS",
    "UNKNOWN",
    "Web3ChainReader",
    "decode_bytes32_text",
]
