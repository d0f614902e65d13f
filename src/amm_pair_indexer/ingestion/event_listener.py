"""Sequential dispatcher routing typed events to their handlers."""

from __future__ import annotations

from typing import Iterable, Optional

from ..analytics.liquidity import LiquidityEventLedger
from ..analytics.trades import TradeLedger
from ..config.settings import AppConfig, get_app_config
from ..datalake.storage import EntityStore
from ..monitoring.logger import correlation_scope, get_logger
from ..monitoring.metrics import METRICS
from ..utils.constants import BUNDLE_ID
from .events import (
    BurnEvent,
    IndexerEvent,
    MintEvent,
    PairCreatedEvent,
    SwapEvent,
    SyncEvent,
    TransferEvent,
)
from .onchain import ChainReader
from .pair_registry import PairRegistry
from .pricing import PriceOracle
from .reserves import ReserveAccountant


class EventProcessor:
    """Runs each event's handler to completion before accepting the next.

    The host is responsible for delivery order (block, transaction index, log
    index) and for delivering each event at most once.
    """

    def __init__(
        self,
        storage: EntityStore,
        chain: ChainReader,
        app_config: Optional[AppConfig] = None,
    ) -> None:
        self._config = app_config or get_app_config()
        self._storage = storage
        self.oracle = PriceOracle(storage, self._config.chain)
        self.pairs = PairRegistry(storage, chain, self._config.chain)
        self.reserves = ReserveAccountant(storage, chain, self.oracle)
        self.trades = TradeLedger(storage, self._config.chain)
        self.liquidity = LiquidityEventLedger(storage, chain)
        self._logger = get_logger(__name__)

    def process(self, event: IndexerEvent) -> bool:
        """Apply one event. Returns ``False`` when the handler skipped it."""

        kind = type(event).__name__
        context = event.context
        scope = correlation_scope(
            context.correlation_id,
            kind=kind,
            block_number=context.block_number,
            address=context.address,
        )
        with METRICS.timer("events.handler_seconds"), scope:
            if isinstance(event, PairCreatedEvent):
                applied = self.pairs.handle_pair_created(event)
            elif isinstance(event, SyncEvent):
                applied = self.reserves.handle_sync(event)
                if applied:
                    self._publish_bundle_price()
            elif isinstance(event, SwapEvent):
                applied = self.trades.handle_swap(event)
            elif isinstance(event, MintEvent):
                applied = self.liquidity.handle_mint(event)
            elif isinstance(event, BurnEvent):
                applied = self.liquidity.handle_burn(event)
            elif isinstance(event, TransferEvent):
                applied = self.liquidity.handle_transfer(event)
            else:
                raise TypeError(f"Unsupported event type: {kind}")
        METRICS.increment(f"events.{kind}.{'applied' if applied else 'skipped'}")
        return applied

    def process_many(self, events: Iterable[IndexerEvent]) -> int:
        applied = 0
        for event in events:
            if self.process(event):
                applied += 1
        return applied

    def _publish_bundle_price(self) -> None:
        bundle = self._storage.get_bundle(BUNDLE_ID)
        if bundle is not None:
            METRICS.gauge("bundle.eth_price", float(bundle.eth_price))


__all__ = ["EventProcessor"]
