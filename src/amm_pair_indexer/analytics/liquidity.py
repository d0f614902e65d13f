"""Mint, burn and LP-token transfer accounting."""

from __future__ import annotations

from typing import Optional, Tuple

from ..datalake.schemas import BurnRecord, MintRecord, Pair, Token
from ..datalake.storage import EntityStore
from ..ingestion.events import BurnEvent, EventContext, MintEvent, TransferEvent
from ..ingestion.onchain import ChainReader
from ..ingestion.reserves import refresh_total_supply
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.constants import ADDRESS_ZERO, MINIMUM_LIQUIDITY, convert_token_to_decimal
from .ledger import load_or_create_transaction, next_record_id


def is_liquidity_lock(event: TransferEvent) -> bool:
    """The permanent MINIMUM_LIQUIDITY mint to the zero address on first deposit."""

    return event.to == ADDRESS_ZERO and event.value == MINIMUM_LIQUIDITY


class LiquidityEventLedger:
    """Appends mint/burn records and tracks LP holder counts."""

    def __init__(self, storage: EntityStore, chain: ChainReader) -> None:
        self._storage = storage
        self._chain = chain
        self._logger = get_logger(__name__)

    def _load(self, context: EventContext, kind: str) -> Optional[Tuple[Pair, Token, Token]]:
        pair = self._storage.get_pair(context.address)
        if pair is None:
            self._logger.debug("%s for unknown pair %s dropped", kind, context.address)
            METRICS.increment("events.skipped.missing_pair")
            return None
        token0 = self._storage.get_token(pair.token0)
        token1 = self._storage.get_token(pair.token1)
        if token0 is None or token1 is None:
            self._logger.debug("%s for pair %s with unknown tokens dropped", kind, pair.id)
            METRICS.increment("events.skipped.missing_token")
            return None
        return pair, token0, token1

    def handle_mint(self, event: MintEvent) -> bool:
        loaded = self._load(event.context, "Mint")
        if loaded is None:
            return False
        pair, token0, token1 = loaded
        context = event.context

        pair.tx_count += 1
        refresh_total_supply(pair, self._chain, context)

        transaction = load_or_create_transaction(self._storage, context)
        mint = MintRecord(
            id=next_record_id(transaction, transaction.mints),
            transaction=transaction.id,
            pair=pair.id,
            timestamp=transaction.timestamp,
            to=event.sender,
            sender=event.sender,
            # Denominated with token0's precision, as the deployed indexer does.
            liquidity=convert_token_to_decimal(event.amount0, token0.decimals),
            amount0=convert_token_to_decimal(event.amount0, token0.decimals),
            amount1=convert_token_to_decimal(event.amount1, token1.decimals),
            log_index=context.log_index,
        )
        self._storage.save_mint(mint)
        transaction.mints.append(mint.id)
        self._storage.save_transaction(transaction)
        self._storage.save_pair(pair)
        return True

    def handle_burn(self, event: BurnEvent) -> bool:
        loaded = self._load(event.context, "Burn")
        if loaded is None:
            return False
        pair, token0, token1 = loaded
        context = event.context

        pair.tx_count += 1
        refresh_total_supply(pair, self._chain, context)

        transaction = load_or_create_transaction(self._storage, context)
        burn = BurnRecord(
            id=next_record_id(transaction, transaction.burns),
            transaction=transaction.id,
            pair=pair.id,
            timestamp=transaction.timestamp,
            to=event.to,
            sender=event.sender,
            liquidity=convert_token_to_decimal(event.amount0, token0.decimals),
            amount0=convert_token_to_decimal(event.amount0, token0.decimals),
            amount1=convert_token_to_decimal(event.amount1, token1.decimals),
            needs_complete=False,
            log_index=context.log_index,
        )
        self._storage.save_burn(burn)
        transaction.burns.append(burn.id)
        self._storage.save_transaction(transaction)
        self._storage.save_pair(pair)
        return True

    def handle_transfer(self, event: TransferEvent) -> bool:
        if is_liquidity_lock(event):
            return False

        pair = self._storage.get_pair(event.context.address)
        if pair is None:
            METRICS.increment("events.skipped.missing_pair")
            return False

        if event.from_address == ADDRESS_ZERO:
            pair.liquidity_provider_count += 1
        if event.to == ADDRESS_ZERO and pair.liquidity_provider_count > 0:
            pair.liquidity_provider_count -= 1

        self._storage.save_pair(pair)
        return True


__all__ = ["LiquidityEventLedger", "is_liquidity_lock"]
