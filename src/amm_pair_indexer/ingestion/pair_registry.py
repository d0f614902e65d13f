"""Pair creation: factory counters, token records and whitelist membership."""

from __future__ import annotations

from typing import Optional

from ..config.settings import ChainConfig, get_app_config
from ..datalake.schemas import Bundle, Factory, Pair, Token
from ..datalake.storage import EntityStore
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.constants import BI_18, BUNDLE_ID, ZERO_BD, convert_token_to_decimal
from .events import EventContext, PairCreatedEvent
from .onchain import ChainReader


class PairRegistry:
    """Creates the entities every later pair event depends on."""

    def __init__(
        self,
        storage: EntityStore,
        chain: ChainReader,
        config: Optional[ChainConfig] = None,
    ) -> None:
        self._storage = storage
        self._chain = chain
        self._config = config or get_app_config().chain
        self._logger = get_logger(__name__)

    def _load_or_create_token(self, address: str, context: EventContext) -> Token:
        token = self._storage.get_token(address)
        if token is not None:
            return token
        block = context.block_number
        return Token(
            id=address,
            symbol=self._chain.token_symbol(address, block),
            name=self._chain.token_name(address, block),
            decimals=self._chain.token_decimals(address, block),
            total_supply=self._chain.token_total_supply(address, block),
            derived_eth=ZERO_BD,
        )

    def handle_pair_created(self, event: PairCreatedEvent) -> bool:
        context = event.context
        factory = self._storage.get_factory(self._config.factory_address)
        if factory is None:
            factory = Factory(id=self._config.factory_address)
        factory.pair_count += 1
        self._storage.save_factory(factory)

        token0 = self._load_or_create_token(event.token0, context)
        token1 = self._load_or_create_token(event.token1, context)

        pair = Pair(
            id=event.pair,
            token0=token0.id,
            token1=token1.id,
            created_at_timestamp=context.timestamp,
            created_at_block_number=context.block_number,
        )
        raw_supply = self._chain.pair_total_supply(event.pair, context.block_number)
        if raw_supply is not None:
            pair.total_supply = convert_token_to_decimal(raw_supply, BI_18)

        # A pair prices the token on the *other* side of a base/stable token.
        if self._config.is_whitelisted(token1.id):
            token0.whitelist_pairs.append(pair.id)
        if self._config.is_whitelisted(token0.id):
            token1.whitelist_pairs.append(pair.id)

        if self._storage.get_bundle(BUNDLE_ID) is None:
            self._storage.save_bundle(Bundle(id=BUNDLE_ID))

        self._storage.save_token(token0)
        self._storage.save_token(token1)
        self._storage.save_pair(pair)
        self._logger.info(
            "Registered pair %s (%s/%s)",
            pair.id,
            token0.symbol,
            token1.symbol,
            extra={"pair_count": factory.pair_count},
        )
        METRICS.gauge("factory.pair_count", factory.pair_count)
        return True


__all__ = ["PairRegistry"]
