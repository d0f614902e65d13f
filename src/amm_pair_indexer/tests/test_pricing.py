from __future__ import annotations

from decimal import Decimal

from amm_pair_indexer.datalake.schemas import Token
from amm_pair_indexer.ingestion.pricing import PriceOracle

from .helpers import (
    DAI,
    E18,
    E6,
    TOKEN_A,
    TOKEN_B,
    USDBC,
    USDC,
    WETH,
    build_processor,
    create_pair,
    pair_address,
    priced_canonical,
    sync,
)


def test_new_token_is_priced_from_its_base_asset_pair() -> None:
    processor, storage, _ = build_processor()
    pair = pair_address(1)
    create_pair(processor, TOKEN_A, WETH, pair)

    assert storage.get_token(TOKEN_A).whitelist_pairs == [pair]
    assert storage.get_token(WETH).whitelist_pairs == []
    assert storage.get_token(TOKEN_A).derived_eth == Decimal(0)

    sync(processor, pair, 10 * E18, 2 * E18)

    stored_pair = storage.get_pair(pair)
    assert stored_pair.token0_price == Decimal("0.2")
    assert stored_pair.token1_price == Decimal(5)
    assert storage.get_bundle("1").eth_price == Decimal(0)
    assert storage.get_token(TOKEN_A).derived_eth == Decimal(5)
    assert storage.get_token(WETH).derived_eth == Decimal(1)


def test_canonical_pair_price_is_used_regardless_of_depth() -> None:
    processor, storage, _ = build_processor()
    canonical = processor.oracle._config.canonical_pair_address
    create_pair(processor, WETH, USDC, canonical)
    # 0.001 WETH is below the liquidity floor; the canonical pair ignores it.
    sync(processor, canonical, E18 // 1000, 3 * E6)

    assert processor.oracle.base_asset_usd_price() == Decimal(3000)
    assert storage.get_bundle("1").eth_price == Decimal(3000)


def test_canonical_pair_quoted_as_token1() -> None:
    processor, storage, _ = build_processor()
    canonical = processor.oracle._config.canonical_pair_address
    create_pair(processor, USDC, WETH, canonical)
    sync(processor, canonical, 2_000 * E6, E18)

    assert processor.oracle.base_asset_usd_price() == Decimal(2000)


def test_fallback_uses_deepest_stable_pair_above_floor() -> None:
    processor, _, _ = build_processor()
    shallow, usdc_pair, dai_pair = pair_address(1), pair_address(2), pair_address(3)
    create_pair(processor, WETH, USDBC, shallow)
    create_pair(processor, WETH, USDC, usdc_pair)
    create_pair(processor, WETH, DAI, dai_pair)

    sync(processor, shallow, 5 * E18 // 1000, 50 * E6)
    sync(processor, usdc_pair, 5 * E18, 15_000 * E6)
    sync(processor, dai_pair, 10 * E18, 29_000 * E18)

    assert processor.oracle.base_asset_usd_price() == Decimal(2900)


def test_fallback_keeps_first_pair_on_equal_depth() -> None:
    processor, _, _ = build_processor()
    first, second = pair_address(1), pair_address(2)
    create_pair(processor, WETH, USDC, first)
    create_pair(processor, DAI, WETH, second)

    sync(processor, first, 5 * E18, 15_000 * E6)
    sync(processor, second, 15_500 * E18, 5 * E18)

    assert processor.oracle.base_asset_usd_price() == Decimal(3000)


def test_fallback_ignores_pairs_without_a_stablecoin() -> None:
    processor, storage, _ = build_processor()
    pair = pair_address(1)
    create_pair(processor, WETH, TOKEN_A, pair)
    weth = storage.get_token(WETH)
    weth.whitelist_pairs.append(pair)
    storage.save_token(weth)
    sync(processor, pair, 1_000 * E18, 1_000 * E18)

    assert processor.oracle.base_asset_usd_price() == Decimal(0)


def test_fallback_requires_base_asset_record() -> None:
    processor, _, _ = build_processor()

    assert processor.oracle.base_asset_usd_price() == Decimal(0)


def test_base_asset_derived_value_is_one() -> None:
    processor, storage, _ = build_processor()
    create_pair(processor, WETH, TOKEN_A, pair_address(1))

    assert processor.oracle.derived_value(storage.get_token(WETH)) == Decimal(1)


def test_stablecoin_derived_value_is_reciprocal_of_usd_price() -> None:
    processor, storage, _ = build_processor()
    priced_canonical(processor, 2_500)

    assert processor.oracle.derived_value(storage.get_token(USDC)) == Decimal(1) / Decimal(2500)
    assert storage.get_token(USDC).derived_eth == Decimal("0.0004")


def test_stablecoin_derived_value_is_zero_without_usd_price() -> None:
    processor, _, _ = build_processor()
    dai = Token(id=DAI, symbol="DAI", name="Dai", decimals=18, derived_eth=Decimal(0))

    assert processor.oracle.derived_value(dai) == Decimal(0)


def test_one_hop_price_through_stablecoin() -> None:
    processor, storage, _ = build_processor()
    priced_canonical(processor, 2_000)
    pair = pair_address(7)
    create_pair(processor, TOKEN_B, USDC, pair)
    sync(processor, pair, 100 * E18, 50 * E6)

    stored_pair = storage.get_pair(pair)
    usdc = storage.get_token(USDC)
    assert usdc.derived_eth == Decimal("0.0005")
    # Counterpart's spot price field times its stored derived value.
    assert storage.get_token(TOKEN_B).derived_eth == stored_pair.token1_price * usdc.derived_eth
    assert storage.get_token(TOKEN_B).derived_eth == Decimal("0.001")


def test_derived_value_lags_until_its_own_pair_syncs() -> None:
    processor, storage, _ = build_processor()
    canonical = priced_canonical(processor, 2_000)
    pair = pair_address(7)
    create_pair(processor, TOKEN_B, USDC, pair)
    sync(processor, pair, 100 * E18, 50 * E6)
    before = storage.get_token(TOKEN_B).derived_eth

    sync(processor, canonical, 10 * E18, 40_000 * E6)

    assert storage.get_token(USDC).derived_eth == Decimal("0.00025")
    assert storage.get_token(TOKEN_B).derived_eth == before

    sync(processor, pair, 100 * E18, 50 * E6)

    assert storage.get_token(TOKEN_B).derived_eth == Decimal("0.0005")


def test_deepest_whitelist_pair_wins() -> None:
    processor, storage, _ = build_processor()
    priced_canonical(processor, 2_000)
    weth_pair, usdc_pair = pair_address(1), pair_address(2)
    create_pair(processor, TOKEN_A, WETH, weth_pair)
    create_pair(processor, TOKEN_A, USDC, usdc_pair)

    # 1 WETH of depth.
    sync(processor, weth_pair, 100 * E18, E18)
    assert storage.get_token(TOKEN_A).derived_eth == Decimal(100)
    # 10,000 USDC is 5 WETH of depth.
    sync(processor, usdc_pair, 10_000 * E18, 10_000 * E6)

    assert storage.get_token(TOKEN_A).derived_eth == Decimal("0.0005")


def test_token_scan_has_no_liquidity_floor() -> None:
    processor, storage, _ = build_processor()
    pair = pair_address(1)
    create_pair(processor, TOKEN_A, WETH, pair)
    sync(processor, pair, E18, E18 // 1000)

    assert storage.get_token(TOKEN_A).derived_eth == Decimal(1000)
    assert storage.get_token(TOKEN_A).derived_eth == storage.get_pair(pair).token1_price


def test_oracle_queries_are_idempotent_and_read_only() -> None:
    processor, storage, _ = build_processor()
    priced_canonical(processor, 2_000)
    pair = pair_address(7)
    create_pair(processor, TOKEN_B, USDC, pair)
    sync(processor, pair, 100 * E18, 50 * E6)
    oracle = PriceOracle(storage, processor.oracle._config)
    token = storage.get_token(TOKEN_B)
    snapshot = storage.get_token(TOKEN_B)

    assert oracle.base_asset_usd_price() == oracle.base_asset_usd_price()
    assert oracle.derived_value(token) == oracle.derived_value(token)
    assert storage.get_token(TOKEN_B) == snapshot
