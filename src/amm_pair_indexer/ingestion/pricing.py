"""Liquidity-weighted price discovery over stored pair reserves.

The oracle never calls out to a price feed. Every answer is a pure function
of the entities currently in the store:

* the base asset USD price comes from a canonical base/stablecoin pair, or
  failing that from the deepest base/stablecoin pair on the base asset's
  whitelist;
* a token's derived value (base-asset units per token) comes from the
  whitelist pair with the largest effective base-asset reserve.

Prices propagate one hop per evaluation. A token priced through a
non-base counterpart uses that counterpart's *stored* derived value, which
may predate the counterpart's latest reserve change; it catches up the next
time a sync on one of the counterpart's pairs re-prices it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..config.settings import ChainConfig, get_app_config
from ..datalake.schemas import Bundle, Pair, Token
from ..datalake.storage import EntityStore
from ..monitoring.logger import get_logger
from ..utils.constants import BUNDLE_ID, ONE_BD, TWO_BD, ZERO_BD


class PriceOracle:
    """Answers base-asset USD price and per-token derived value queries."""

    def __init__(self, storage: EntityStore, config: Optional[ChainConfig] = None) -> None:
        self._storage = storage
        self._config = config or get_app_config().chain
        self._logger = get_logger(__name__)

    @property
    def base_asset(self) -> str:
        return self._config.base_asset_address

    def base_asset_usd_price(self) -> Decimal:
        """USD per unit of base asset."""

        canonical = self._storage.get_pair(self._config.canonical_pair_address)
        if canonical is not None:
            if canonical.token0 == self.base_asset:
                return canonical.token0_price
            if canonical.token1 == self.base_asset:
                return canonical.token1_price

        base_token = self._storage.get_token(self.base_asset)
        if base_token is None:
            return ZERO_BD

        largest_liquidity_eth = ZERO_BD
        price_so_far = ZERO_BD
        for pair_id in base_token.whitelist_pairs:
            pair = self._storage.get_pair(pair_id)
            if pair is None:
                continue
            token0_stable = self._config.is_stablecoin(pair.token0)
            token1_stable = self._config.is_stablecoin(pair.token1)
            if not token0_stable and not token1_stable:
                continue

            eth_reserve = ZERO_BD
            if pair.token0 == self.base_asset:
                eth_reserve = pair.reserve0
            elif pair.token1 == self.base_asset:
                eth_reserve = pair.reserve1

            if eth_reserve > largest_liquidity_eth and eth_reserve > self._config.minimum_liquidity_threshold_eth:
                largest_liquidity_eth = eth_reserve
                if pair.token0 == self.base_asset and token1_stable:
                    price_so_far = pair.token0_price
                elif pair.token1 == self.base_asset and token0_stable:
                    price_so_far = pair.token1_price
        return price_so_far

    def derived_value(self, token: Token) -> Decimal:
        """Base-asset units per one unit of ``token``."""

        if token.id == self.base_asset:
            return ONE_BD

        if self._config.is_stablecoin(token.id):
            eth_price = self.base_asset_usd_price()
            if eth_price > ZERO_BD:
                return ONE_BD / eth_price
            return ZERO_BD

        # No minimum-liquidity floor here, unlike the base asset USD scan.
        largest_liquidity_eth = ZERO_BD
        price_so_far = ZERO_BD
        for pair_id in token.whitelist_pairs:
            pair = self._storage.get_pair(pair_id)
            if pair is None:
                continue
            if pair.token0 == token.id:
                counterpart_id, counterpart_reserve, counterpart_price = pair.token1, pair.reserve1, pair.token1_price
            elif pair.token1 == token.id:
                counterpart_id, counterpart_reserve, counterpart_price = pair.token0, pair.reserve0, pair.token0_price
            else:
                continue

            if counterpart_id == self.base_asset:
                eth_reserve = counterpart_reserve
                if eth_reserve > largest_liquidity_eth:
                    largest_liquidity_eth = eth_reserve
                    price_so_far = counterpart_price
                continue

            counterpart_derived = self._stored_derived_value(counterpart_id)
            if counterpart_derived is None or counterpart_derived <= ZERO_BD:
                continue
            eth_reserve = counterpart_reserve * counterpart_derived
            if eth_reserve > largest_liquidity_eth:
                largest_liquidity_eth = eth_reserve
                price_so_far = counterpart_price * counterpart_derived
        return price_so_far

    def _stored_derived_value(self, token_id: str) -> Optional[Decimal]:
        token = self._storage.get_token(token_id)
        if token is None:
            return None
        return token.derived_eth

    def update_prices(self, pair: Pair) -> None:
        """Re-price the bundle, both pair tokens and the pair's reserve valuation."""

        bundle = self._storage.get_bundle(BUNDLE_ID) or Bundle(id=BUNDLE_ID)
        bundle.eth_price = self.base_asset_usd_price()
        self._storage.save_bundle(bundle)

        token0 = self._storage.get_token(pair.token0)
        token1 = self._storage.get_token(pair.token1)
        if token0 is None or token1 is None:
            return

        # Both are evaluated against stored state before either is saved.
        token0.derived_eth = self.derived_value(token0)
        token1.derived_eth = self.derived_value(token1)
        self._storage.save_token(token0)
        self._storage.save_token(token1)

        pair.reserve_eth = self._reserve_eth(pair, token0, token1)
        pair.reserve_usd = self._reserve_usd(pair, bundle.eth_price)
        pair.tracked_reserve_eth = pair.reserve_eth
        self._storage.save_pair(pair)
        self._logger.debug(
            "Re-priced pair %s: eth_price=%s derived0=%s derived1=%s reserve_usd=%s",
            pair.id,
            bundle.eth_price,
            token0.derived_eth,
            token1.derived_eth,
            pair.reserve_usd,
        )

    def _reserve_eth(self, pair: Pair, token0: Token, token1: Token) -> Decimal:
        # A base-asset side counts twice: both sides are assumed equal in value.
        if pair.token0 == self.base_asset:
            return pair.reserve0 * TWO_BD
        if pair.token1 == self.base_asset:
            return pair.reserve1 * TWO_BD
        if token0.derived_eth is not None and token1.derived_eth is not None:
            return pair.reserve0 * token0.derived_eth + pair.reserve1 * token1.derived_eth
        return ZERO_BD

    def _reserve_usd(self, pair: Pair, eth_price: Decimal) -> Decimal:
        if eth_price <= ZERO_BD:
            return ZERO_BD
        if pair.reserve_eth > ZERO_BD:
            return pair.reserve_eth * eth_price
        if self._config.is_stablecoin(pair.token0):
            return pair.reserve0 * TWO_BD
        if self._config.is_stablecoin(pair.token1):
            return pair.reserve1 * TWO_BD
        return ZERO_BD


__all__ = ["PriceOracle"]
