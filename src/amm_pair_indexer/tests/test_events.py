from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from amm_pair_indexer import main as main_module
from amm_pair_indexer.config import settings
from amm_pair_indexer.datalake.storage import SQLiteStorage
from amm_pair_indexer.ingestion.events import (
    EventDecodeError,
    SwapEvent,
    SyncEvent,
    TransferEvent,
    event_from_dict,
)
from amm_pair_indexer.monitoring.metrics import METRICS

from .helpers import E18, E6, FakeChainReader

PAIR = settings.WETH_USDC_PAIR_ADDRESS
TX_HASH = "0x" + "ef" * 32


def _record(event: str, params: dict, log_index: int = 0) -> dict:
    return {
        "event": event,
        "blockNumber": 1_000,
        "timestamp": 1_700_000_000,
        "transactionHash": TX_HASH.upper().replace("0X", "0x"),
        "logIndex": log_index,
        "address": PAIR,
        "from": "0x" + "AB" * 20,
        "params": params,
    }


def test_event_from_dict_decodes_sync_with_hex_amounts() -> None:
    event = event_from_dict(_record("Sync", {"reserve0": hex(5 * E18), "reserve1": str(E6)}))

    assert isinstance(event, SyncEvent)
    assert event.reserve0 == 5 * E18
    assert event.reserve1 == E6
    assert event.context.tx_hash == TX_HASH
    assert event.context.tx_from == "0x" + "ab" * 20
    assert event.context.correlation_id == f"{TX_HASH}:0"


def test_event_from_dict_decodes_swap_and_transfer() -> None:
    swap = event_from_dict(
        _record(
            "Swap",
            {
                "sender": "0x" + "11" * 20,
                "to": "0x" + "22" * 20,
                "amount0In": 100,
                "amount1In": 0,
                "amount0Out": 0,
                "amount1Out": "98",
            },
        )
    )
    transfer = event_from_dict(
        _record("Transfer", {"from": "0x" + "00" * 20, "to": "0x" + "22" * 20, "value": 1000}, log_index=2)
    )

    assert isinstance(swap, SwapEvent)
    assert (swap.amount0_in, swap.amount1_out) == (100, 98)
    assert isinstance(transfer, TransferEvent)
    assert transfer.from_address == "0x" + "00" * 20
    assert transfer.value == 1000


@pytest.mark.parametrize(
    "record",
    [
        {"event": "Sync", "blockNumber": 1, "timestamp": 2, "logIndex": 0, "address": PAIR, "params": {}},
        _record("Sync", {"reserve0": "ten", "reserve1": 1}),
        _record("Sync", {"reserve0": True, "reserve1": 1}),
        _record("Approval", {}),
    ],
)
def test_event_from_dict_rejects_malformed_records(record: dict) -> None:
    with pytest.raises(EventDecodeError):
        event_from_dict(record)


def test_read_events_reports_line_numbers(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    path.write_text(json.dumps(_record("Sync", {"reserve0": 1, "reserve1": 1})) + "\n\n{not json\n")

    events = main_module.read_events(path)

    assert isinstance(next(events), SyncEvent)
    with pytest.raises(EventDecodeError, match="events.jsonl:3"):
        next(events)


def test_replay_populates_sqlite_store(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("APP_CONFIG_FILE", raising=False)
    monkeypatch.delenv("INDEXER_PROFILE", raising=False)
    monkeypatch.setattr(main_module, "Web3ChainReader", lambda config: FakeChainReader())
    monkeypatch.setattr(main_module, "bootstrap_observability", lambda config: METRICS.reset())
    records = [
        {
            **_record(
                "PairCreated",
                {"token0": settings.WETH_ADDRESS, "token1": settings.USDC_ADDRESS, "pair": PAIR},
            ),
            "address": settings.FACTORY_ADDRESS,
        },
        _record("Sync", {"reserve0": 10 * E18, "reserve1": 20_000 * E6}, log_index=1),
        _record(
            "Swap",
            {
                "sender": "0x" + "11" * 20,
                "to": "0x" + "22" * 20,
                "amount0In": E18,
                "amount1In": 0,
                "amount0Out": 0,
                "amount1Out": 2_000 * E6,
            },
            log_index=2,
        ),
    ]
    events_path = tmp_path / "events.jsonl"
    events_path.write_text("\n".join(json.dumps(record) for record in records) + "\n")
    database = tmp_path / "indexer.sqlite3"

    settings.get_app_config.cache_clear()
    try:
        applied = main_module.run(events_path, database_path=database)
    finally:
        settings.get_app_config.cache_clear()

    assert applied == 3
    storage = SQLiteStorage(database)
    assert storage.get_bundle("1").eth_price == Decimal(2000)
    assert storage.get_pair(PAIR).volume_usd == Decimal(2000)
    assert storage.get_swap(f"{TX_HASH}-0").from_address == "0x" + "ab" * 20
    assert METRICS.get_gauge("bundle.eth_price") == 2000.0
