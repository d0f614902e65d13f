"""Swap accounting: volumes, tracked USD and swap records."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..config.settings import ChainConfig, get_app_config
from ..datalake.schemas import SwapRecord, Token
from ..datalake.storage import EntityStore
from ..ingestion.events import SwapEvent
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.constants import BUNDLE_ID, TWO_BD, ZERO_BD, convert_token_to_decimal
from .ledger import load_or_create_transaction, next_record_id


def tracked_amount_usd(amount0_usd: Decimal, amount1_usd: Decimal) -> Decimal:
    """USD value of one swap counted once.

    Both legs priced: their average. One leg priced: that leg. Neither: zero.
    """

    if amount0_usd > ZERO_BD and amount1_usd > ZERO_BD:
        return (amount0_usd + amount1_usd) / TWO_BD
    if amount0_usd > ZERO_BD:
        return amount0_usd
    if amount1_usd > ZERO_BD:
        return amount1_usd
    return ZERO_BD


def leg_usd(amount: Decimal, token: Token, eth_price: Decimal) -> Decimal:
    if eth_price <= ZERO_BD or token.derived_eth is None:
        return ZERO_BD
    return amount * token.derived_eth * eth_price


class TradeLedger:
    """Consumes swap events; reads but never recomputes oracle output."""

    def __init__(self, storage: EntityStore, config: Optional[ChainConfig] = None) -> None:
        self._storage = storage
        self._config = config or get_app_config().chain
        self._logger = get_logger(__name__)

    def handle_swap(self, event: SwapEvent) -> bool:
        context = event.context
        pair = self._storage.get_pair(context.address)
        if pair is None:
            self._logger.debug("Swap for unknown pair %s dropped", context.address)
            METRICS.increment("events.skipped.missing_pair")
            return False
        token0 = self._storage.get_token(pair.token0)
        token1 = self._storage.get_token(pair.token1)
        if token0 is None or token1 is None:
            self._logger.debug("Swap for pair %s with unknown tokens dropped", pair.id)
            METRICS.increment("events.skipped.missing_token")
            return False

        amount0_in = convert_token_to_decimal(event.amount0_in, token0.decimals)
        amount1_in = convert_token_to_decimal(event.amount1_in, token1.decimals)
        amount0_out = convert_token_to_decimal(event.amount0_out, token0.decimals)
        amount1_out = convert_token_to_decimal(event.amount1_out, token1.decimals)
        amount0_total = amount0_out + amount0_in
        amount1_total = amount1_out + amount1_in

        bundle = self._storage.get_bundle(BUNDLE_ID)
        eth_price = bundle.eth_price if bundle is not None else ZERO_BD
        amount0_usd = leg_usd(amount0_total, token0, eth_price)
        amount1_usd = leg_usd(amount1_total, token1, eth_price)
        tracked_usd = tracked_amount_usd(amount0_usd, amount1_usd)

        pair.volume_token0 += amount0_total
        pair.volume_token1 += amount1_total
        pair.volume_usd += tracked_usd
        pair.tx_count += 1
        self._storage.save_pair(pair)

        token0.trade_volume += amount0_total
        token0.trade_volume_usd += amount0_usd
        token0.tx_count += 1
        token1.trade_volume += amount1_total
        token1.trade_volume_usd += amount1_usd
        token1.tx_count += 1
        self._storage.save_token(token0)
        self._storage.save_token(token1)

        transaction = load_or_create_transaction(self._storage, context)
        swap = SwapRecord(
            id=next_record_id(transaction, transaction.swaps),
            transaction=transaction.id,
            pair=pair.id,
            timestamp=transaction.timestamp,
            sender=event.sender,
            from_address=context.tx_from,
            to=event.to,
            amount0_in=amount0_in,
            amount1_in=amount1_in,
            amount0_out=amount0_out,
            amount1_out=amount1_out,
            amount_usd=tracked_usd,
            log_index=context.log_index,
        )
        self._storage.save_swap(swap)
        transaction.swaps.append(swap.id)
        self._storage.save_transaction(transaction)

        factory = self._storage.get_factory(self._config.factory_address)
        if factory is not None:
            factory.total_volume_usd += swap.amount_usd
            factory.tx_count += 1
            self._storage.save_factory(factory)

        METRICS.observe("swaps.tracked_usd", float(tracked_usd))
        return True


__all__ = ["TradeLedger", "leg_usd", "tracked_amount_usd"]
