"""Append-only ledgers fed by swap and liquidity events."""

from .liquidity import LiquidityEventLedger
from .trades import TradeLedger, tracked_amount_usd

__all__ = ["LiquidityEventLedger", "TradeLedger", "tracked_amount_usd"]
