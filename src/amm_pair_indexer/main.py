"""Entrypoint replaying a JSON-lines event log into the entity store."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .config.settings import StorageBackend, get_app_config
from .datalake.storage import build_storage
from .ingestion.event_listener import EventProcessor
from .ingestion.events import EventDecodeError, IndexerEvent, event_from_dict
from .ingestion.onchain import Web3ChainReader
from .monitoring import bootstrap_observability
from .monitoring.logger import get_logger
from .monitoring.metrics import METRICS

logger = get_logger(__name__)


def read_events(path: Path) -> Iterator[IndexerEvent]:
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield event_from_dict(json.loads(line))
            except (json.JSONDecodeError, EventDecodeError) as exc:
                raise EventDecodeError(f"{path}:{line_number}: {exc}") from exc


def run(events_path: Path, database_path: Optional[Path] = None, in_memory: bool = False) -> int:
    config = get_app_config()
    bootstrap_observability(config)
    storage_config = config.storage.model_copy()
    if in_memory:
        storage_config.backend = StorageBackend.MEMORY
    if database_path is not None:
        storage_config.database_path = database_path
    storage = build_storage(storage_config)
    processor = EventProcessor(storage, Web3ChainReader(config.rpc), app_config=config)

    with METRICS.timer("indexer.replay.duration_seconds"):
        applied = processor.process_many(read_events(events_path))
    logger.info(
        "Replayed %s: %d events applied",
        events_path,
        applied,
        extra={"eth_price": METRICS.get_gauge("bundle.eth_price")},
    )
    return applied


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Replay AMM pair events into the analytics store")
    parser.add_argument("events", type=Path, help="JSON-lines file of decoded events, in chain order")
    parser.add_argument("--database", type=Path, default=None, help="SQLite path (overrides config)")
    parser.add_argument("--in-memory", action="store_true", default=False)
    parser.add_argument(
        "--metrics",
        action="store_true",
        default=False,
        help="Print Prometheus-formatted metrics after the replay.",
    )
    args = parser.parse_args(argv)
    run(args.events, database_path=args.database, in_memory=args.in_memory)
    if args.metrics:
        print(METRICS.export_prometheus(), end="")


if __name__ == "__main__":
    main()
