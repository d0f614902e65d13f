"""Entity records maintained by the indexer."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, List, Optional, Type, TypeVar, get_type_hints

from ..utils.constants import BUNDLE_ID, ZERO_BD


@dataclass(slots=True)
class Token:
    """ERC-20 token seen in at least one pair."""

    id: str
    symbol: str
    name: str
    decimals: int
    total_supply: int = 0
    trade_volume: Decimal = ZERO_BD
    trade_volume_usd: Decimal = ZERO_BD
    tx_count: int = 0
    # Declared but not maintained by any handler.
    total_liquidity: Decimal = ZERO_BD
    derived_eth: Optional[Decimal] = None
    whitelist_pairs: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Pair:
    """Trading pair; reserves are authoritative only from sync events."""

    id: str
    token0: str
    token1: str
    created_at_timestamp: int = 0
    created_at_block_number: int = 0
    reserve0: Decimal = ZERO_BD
    reserve1: Decimal = ZERO_BD
    total_supply: Decimal = ZERO_BD
    reserve_eth: Decimal = ZERO_BD
    tracked_reserve_eth: Decimal = ZERO_BD
    reserve_usd: Decimal = ZERO_BD
    token0_price: Decimal = ZERO_BD
    token1_price: Decimal = ZERO_BD
    volume_token0: Decimal = ZERO_BD
    volume_token1: Decimal = ZERO_BD
    volume_usd: Decimal = ZERO_BD
    tx_count: int = 0
    liquidity_provider_count: int = 0


@dataclass(slots=True)
class Bundle:
    """Singleton holding the base asset USD price."""

    id: str = BUNDLE_ID
    eth_price: Decimal = ZERO_BD


@dataclass(slots=True)
class Factory:
    """Singleton aggregating protocol-wide counters."""

    id: str
    pair_count: int = 0
    total_volume_usd: Decimal = ZERO_BD
    # Never updated by the handlers in this package.
    total_liquidity_usd: Decimal = ZERO_BD
    tx_count: int = 0


@dataclass(slots=True)
class Transaction:
    id: str
    block_number: int
    timestamp: int
    mints: List[str] = field(default_factory=list)
    burns: List[str] = field(default_factory=list)
    swaps: List[str] = field(default_factory=list)


@dataclass(slots=True)
class MintRecord:
    id: str
    transaction: str
    pair: str
    timestamp: int
    to: str
    sender: str
    liquidity: Decimal
    amount0: Decimal = ZERO_BD
    amount1: Decimal = ZERO_BD
    log_index: Optional[int] = None


@dataclass(slots=True)
class BurnRecord:
    id: str
    transaction: str
    pair: str
    timestamp: int
    to: str
    sender: str
    liquidity: Decimal
    amount0: Decimal = ZERO_BD
    amount1: Decimal = ZERO_BD
    needs_complete: bool = False
    log_index: Optional[int] = None


@dataclass(slots=True)
class SwapRecord:
    id: str
    transaction: str
    pair: str
    timestamp: int
    sender: str
    from_address: str
    to: str
    amount0_in: Decimal
    amount1_in: Decimal
    amount0_out: Decimal
    amount1_out: Decimal
    amount_usd: Decimal
    log_index: Optional[int] = None


Entity = TypeVar("Entity")


@lru_cache(maxsize=None)
def _decimal_fields(cls: type) -> frozenset[str]:
    hints = get_type_hints(cls)
    return frozenset(
        name for name, hint in hints.items() if hint in (Decimal, Optional[Decimal])
    )


def entity_to_payload(entity: Any) -> Dict[str, Any]:
    """Convert an entity into a JSON-serialisable dictionary."""

    decimal_fields = _decimal_fields(type(entity))
    payload: Dict[str, Any] = {}
    for field_info in fields(entity):
        value = getattr(entity, field_info.name)
        if field_info.name in decimal_fields and value is not None:
            payload[field_info.name] = str(value)
        elif isinstance(value, list):
            payload[field_info.name] = list(value)
        else:
            payload[field_info.name] = value
    return payload


def entity_from_payload(cls: Type[Entity], payload: Dict[str, Any]) -> Entity:
    """Rebuild an entity from :func:`entity_to_payload` output."""

    decimal_fields = _decimal_fields(cls)
    kwargs: Dict[str, Any] = {}
    for field_info in fields(cls):  # type: ignore[arg-type]
        if field_info.name not in payload:
            continue
        value = payload[field_info.name]
        if field_info.name in decimal_fields and value is not None:
            value = Decimal(value)
        elif isinstance(value, list):
            value = list(value)
        kwargs[field_info.name] = value
    return cls(**kwargs)


__all__ = [
    "Bundle",
    "BurnRecord",
    "Factory",
    "MintRecord",
    "Pair",
    "SwapRecord",
    "Token",
    "Transaction",
    "entity_from_payload",
    "entity_to_payload",
]
