"""Sync handling: authoritative reserves, spot prices and the price pass."""

from __future__ import annotations

from typing import Optional

from ..datalake.schemas import Pair
from ..datalake.storage import EntityStore
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.constants import BI_18, ZERO_BD, convert_token_to_decimal
from .events import EventContext, SyncEvent
from .onchain import ChainReader
from .pricing import PriceOracle


def refresh_total_supply(pair: Pair, chain: ChainReader, context: EventContext) -> None:
    """Overwrite the pair's LP supply from chain state; keep it when the read fails."""

    raw_supply = chain.pair_total_supply(pair.id, context.block_number)
    if raw_supply is not None:
        pair.total_supply = convert_token_to_decimal(raw_supply, BI_18)


class ReserveAccountant:
    """Applies sync events to pairs and triggers re-pricing."""

    def __init__(
        self,
        storage: EntityStore,
        chain: ChainReader,
        oracle: Optional[PriceOracle] = None,
    ) -> None:
        self._storage = storage
        self._chain = chain
        self._oracle = oracle or PriceOracle(storage)
        self._logger = get_logger(__name__)

    def handle_sync(self, event: SyncEvent) -> bool:
        """Returns ``False`` when the event referenced unknown entities."""

        pair = self._storage.get_pair(event.context.address)
        if pair is None:
            self._logger.debug("Sync for unknown pair %s dropped", event.context.address)
            METRICS.increment("events.skipped.missing_pair")
            return False
        token0 = self._storage.get_token(pair.token0)
        token1 = self._storage.get_token(pair.token1)
        if token0 is None or token1 is None:
            self._logger.debug("Sync for pair %s with unknown tokens dropped", pair.id)
            METRICS.increment("events.skipped.missing_token")
            return False

        refresh_total_supply(pair, self._chain, event.context)

        pair.reserve0 = convert_token_to_decimal(event.reserve0, token0.decimals)
        pair.reserve1 = convert_token_to_decimal(event.reserve1, token1.decimals)
        # token0_price is token1 per token0, token1_price is token0 per token1.
        pair.token0_price = pair.reserve1 / pair.reserve0 if pair.reserve0 != ZERO_BD else ZERO_BD
        pair.token1_price = pair.reserve0 / pair.reserve1 if pair.reserve1 != ZERO_BD else ZERO_BD
        self._storage.save_pair(pair)

        self._oracle.update_prices(pair)
        return True


__all__ = ["ReserveAccountant", "refresh_total_supply"]
