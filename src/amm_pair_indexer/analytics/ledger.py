"""Transaction bookkeeping shared by the append-only ledgers."""

from __future__ import annotations

from typing import List

from ..datalake.schemas import Transaction
from ..datalake.storage import EntityStore
from ..ingestion.events import EventContext


def load_or_create_transaction(storage: EntityStore, context: EventContext) -> Transaction:
    """Return the stored transaction for the event, or a new unsaved one."""

    transaction = storage.get_transaction(context.tx_hash)
    if transaction is None:
        transaction = Transaction(
            id=context.tx_hash,
            block_number=context.block_number,
            timestamp=context.timestamp,
        )
    return transaction


def next_record_id(transaction: Transaction, records: List[str]) -> str:
    """``{txHash}-{n}`` where ``n`` counts records of this kind already in the transaction."""

    return f"{transaction.id}-{len(records)}"


__all__ = ["load_or_create_transaction", "next_record_id"]
