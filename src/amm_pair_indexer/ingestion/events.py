"""Typed pair and factory events delivered by the host, plus the replay decoder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from ..utils.constants import ADDRESS_ZERO


class EventDecodeError(ValueError):
    """Raised when a replay record cannot be turned into a typed event."""


@dataclass(slots=True, frozen=True)
class EventContext:
    """Chain provenance shared by every event."""

    block_number: int
    timestamp: int
    tx_hash: str
    log_index: int
    # Contract that emitted the log: the factory or the pair.
    address: str
    tx_from: str = ADDRESS_ZERO

    @property
    def correlation_id(self) -> str:
        return f"{self.tx_hash}:{self.log_index}"


@dataclass(slots=True, frozen=True)
class PairCreatedEvent:
    context: EventContext
    token0: str
    token1: str
    pair: str


@dataclass(slots=True, frozen=True)
class SyncEvent:
    context: EventContext
    reserve0: int
    reserve1: int


@dataclass(slots=True, frozen=True)
class MintEvent:
    context: EventContext
    sender: str
    amount0: int
    amount1: int


@dataclass(slots=True, frozen=True)
class BurnEvent:
    context: EventContext
    sender: str
    to: str
    amount0: int
    amount1: int


@dataclass(slots=True, frozen=True)
class SwapEvent:
    context: EventContext
    sender: str
    to: str
    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int


@dataclass(slots=True, frozen=True)
class TransferEvent:
    context: EventContext
    from_address: str
    to: str
    value: int


PairEvent = Union[SyncEvent, MintEvent, BurnEvent, SwapEvent, TransferEvent]
IndexerEvent = Union[PairCreatedEvent, PairEvent]


def _hex_string(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise EventDecodeError(f"missing hex field {key!r}")
    return value.lower()


def _integer(params: Mapping[str, Any], key: str) -> int:
    value = params.get(key)
    if isinstance(value, bool) or value is None:
        raise EventDecodeError(f"missing integer field {key!r}")
    try:
        # Raw uint256 values may arrive as decimal or 0x-prefixed strings.
        return int(value, 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError) as exc:
        raise EventDecodeError(f"invalid integer field {key!r}: {value!r}") from exc


def _context(record: Mapping[str, Any]) -> EventContext:
    return EventContext(
        block_number=_integer(record, "blockNumber"),
        timestamp=_integer(record, "timestamp"),
        tx_hash=_hex_string(record, "transactionHash"),
        log_index=_integer(record, "logIndex"),
        address=_hex_string(record, "address"),
        tx_from=str(record.get("from") or ADDRESS_ZERO).lower(),
    )


def event_from_dict(record: Mapping[str, Any]) -> IndexerEvent:
    """Decode one JSON replay record.

    Records look like ``{"event": "Sync", "blockNumber": 1, "timestamp": 2,
    "transactionHash": "0x..", "logIndex": 0, "address": "0x..",
    "params": {"reserve0": "10", "reserve1": "20"}}``.
    """

    name = record.get("event")
    params: Dict[str, Any] = dict(record.get("params") or {})
    context = _context(record)
    if name == "PairCreated":
        return PairCreatedEvent(
            context=context,
            token0=_hex_string(params, "token0"),
            token1=_hex_string(params, "token1"),
            pair=_hex_string(params, "pair"),
        )
    if name == "Sync":
        return SyncEvent(context, _integer(params, "reserve0"), _integer(params, "reserve1"))
    if name == "Mint":
        return MintEvent(
            context,
            sender=_hex_string(params, "sender"),
            amount0=_integer(params, "amount0"),
            amount1=_integer(params, "amount1"),
        )
    if name == "Burn":
        return BurnEvent(
            context,
            sender=_hex_string(params, "sender"),
            to=_hex_string(params, "to"),
            amount0=_integer(params, "amount0"),
            amount1=_integer(params, "amount1"),
        )
    if name == "Swap":
        return SwapEvent(
            context,
            sender=_hex_string(params, "sender"),
            to=_hex_string(params, "to"),
            amount0_in=_integer(params, "amount0In"),
            amount1_in=_integer(params, "amount1In"),
            amount0_out=_integer(params, "amount0Out"),
            amount1_out=_integer(params, "amount1Out"),
        )
    if name == "Transfer":
        return TransferEvent(
            context,
            from_address=_hex_string(params, "from"),
            to=_hex_string(params, "to"),
            value=_integer(params, "value"),
        )
    raise EventDecodeError(f"unsupported event type: {name!r}")


__all__ = [
    "BurnEvent",
    "EventContext",
    "EventDecodeError",
    "IndexerEvent",
    "MintEvent",
    "PairCreatedEvent",
    "PairEvent",
    "SwapEvent",
    "SyncEvent",
    "TransferEvent",
    "event_from_dict",
]
