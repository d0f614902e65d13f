"""Fakes and builders shared by the handler tests."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from amm_pair_indexer.config import settings
from amm_pair_indexer.datalake.storage import EntityStore, InMemoryStorage
from amm_pair_indexer.ingestion.event_listener import EventProcessor
from amm_pair_indexer.ingestion.events import EventContext, PairCreatedEvent, SwapEvent, SyncEvent

E18 = 10**18
E6 = 10**6

WETH = settings.WETH_ADDRESS
USDC = settings.USDC_ADDRESS
USDBC = settings.USDBC_ADDRESS
DAI = settings.DAI_ADDRESS
TOKEN_A = "0x" + "a1" * 20
TOKEN_B = "0x" + "b2" * 20
FACTORY = settings.FACTORY_ADDRESS
CANONICAL_PAIR = settings.WETH_USDC_PAIR_ADDRESS
UNUSED_CANONICAL = "0x" + "ce" * 20
USER = "0x" + "99" * 20


def pair_address(n: int) -> str:
    return "0x" + f"{n:040x}"


class FakeChainReader:
    """ChainReader returning canned metadata and LP supplies."""

    def __init__(self, decimals: Optional[Dict[str, int]] = None) -> None:
        self.decimals: Dict[str, int] = {USDC: 6, USDBC: 6, DAI: 18, WETH: 18}
        self.decimals.update(decimals or {})
        self.pair_supplies: Dict[str, Optional[int]] = {}
        self.metadata_calls: List[Tuple[str, str]] = []

    def token_symbol(self, address: str, block_number: int) -> str:
        self.metadata_calls.append(("symbol", address))
        return f"SYM{address[-4:]}"

    def token_name(self, address: str, block_number: int) -> str:
        self.metadata_calls.append(("name", address))
        return f"Token {address[-4:]}"

    def token_decimals(self, address: str, block_number: int) -> int:
        self.metadata_calls.append(("decimals", address))
        return self.decimals.get(address, 18)

    def token_total_supply(self, address: str, block_number: int) -> int:
        return 1_000 * E18

    def pair_total_supply(self, address: str, block_number: int) -> Optional[int]:
        return self.pair_supplies.get(address)


def chain_config(**overrides) -> settings.ChainConfig:
    values = {"canonical_pair_address": UNUSED_CANONICAL}
    values.update(overrides)
    return settings.ChainConfig(**values)


def app_config(**chain_overrides) -> settings.AppConfig:
    return settings.AppConfig(
        chain=chain_config(**chain_overrides),
        storage=settings.StorageConfig(backend=settings.StorageBackend.MEMORY),
    )


def build_processor(
    storage: Optional[EntityStore] = None,
    chain: Optional[FakeChainReader] = None,
    **chain_overrides,
) -> Tuple[EventProcessor, EntityStore, FakeChainReader]:
    storage = storage or InMemoryStorage()
    chain = chain or FakeChainReader()
    processor = EventProcessor(storage, chain, app_config=app_config(**chain_overrides))
    return processor, storage, chain


def context(
    address: str,
    *,
    block: int = 100,
    timestamp: int = 1_700_000_000,
    tx_hash: str = "0x" + "11" * 32,
    log_index: int = 0,
    tx_from: str = USER,
) -> EventContext:
    return EventContext(
        block_number=block,
        timestamp=timestamp,
        tx_hash=tx_hash,
        log_index=log_index,
        address=address,
        tx_from=tx_from,
    )


def create_pair(processor: EventProcessor, token0: str, token1: str, pair: str, **ctx) -> None:
    processor.process(PairCreatedEvent(context(FACTORY, **ctx), token0=token0, token1=token1, pair=pair))


def sync(processor: EventProcessor, pair: str, reserve0: int, reserve1: int, **ctx) -> None:
    processor.process(SyncEvent(context(pair, **ctx), reserve0=reserve0, reserve1=reserve1))


def swap(
    processor: EventProcessor,
    pair: str,
    *,
    amount0_in: int = 0,
    amount1_in: int = 0,
    amount0_out: int = 0,
    amount1_out: int = 0,
    **ctx,
) -> bool:
    return processor.process(
        SwapEvent(
            context(pair, **ctx),
            sender=USER,
            to=USER,
            amount0_in=amount0_in,
            amount1_in=amount1_in,
            amount0_out=amount0_out,
            amount1_out=amount1_out,
        )
    )


def priced_canonical(processor: EventProcessor, eth_price: int, weth_reserve: int = 10) -> str:
    """Create and sync a WETH/USDC pair at the configured canonical address."""

    pair = processor.oracle._config.canonical_pair_address
    create_pair(processor, WETH, USDC, pair)
    sync(processor, pair, weth_reserve * E18, weth_reserve * eth_price * E6)
    return pair


def dec(value) -> Decimal:
    return Decimal(str(value))
