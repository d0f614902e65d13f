"""Entity persistence: typed load/save over in-memory or SQLite backends."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from ..config.settings import StorageBackend, StorageConfig
from .schemas import (
    Bundle,
    BurnRecord,
    Factory,
    MintRecord,
    Pair,
    SwapRecord,
    Token,
    Transaction,
    entity_from_payload,
    entity_to_payload,
)

SCHEMA_VERSION = 1

# Entity kind -> table name. Each table stores the JSON payload keyed by id.
ENTITY_TABLES: Dict[str, str] = {
    "token": "tokens",
    "pair": "pairs",
    "bundle": "bundles",
    "factory": "factories",
    "transaction": "transactions",
    "mint": "mints",
    "burn": "burns",
    "swap": "swaps",
}

CREATE_ENTITY_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    payload TEXT NOT NULL
);
"""

CREATE_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER NOT NULL
);
"""

T = TypeVar("T")


class EntityStore:
    """Typed entity access shared by every backend.

    Loads always return a fresh copy: changes to a loaded entity are only
    visible to later loads once the entity has been saved.
    """

    def _read(self, kind: str, entity_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, kind: str, entity_id: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _read_all(self, kind: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _load(self, kind: str, cls: Type[T], entity_id: str) -> Optional[T]:
        payload = self._read(kind, entity_id)
        if payload is None:
            return None
        return entity_from_payload(cls, payload)

    def _save(self, kind: str, entity: Any) -> None:
        self._write(kind, entity.id, entity_to_payload(entity))

    def get_token(self, token_id: str) -> Optional[Token]:
        return self._load("token", Token, token_id)

    def save_token(self, token: Token) -> None:
        self._save("token", token)

    def list_tokens(self) -> List[Token]:
        return [entity_from_payload(Token, payload) for payload in self._read_all("token")]

    def get_pair(self, pair_id: str) -> Optional[Pair]:
        return self._load("pair", Pair, pair_id)

    def save_pair(self, pair: Pair) -> None:
        self._save("pair", pair)

    def list_pairs(self) -> List[Pair]:
        return [entity_from_payload(Pair, payload) for payload in self._read_all("pair")]

    def get_bundle(self, bundle_id: str) -> Optional[Bundle]:
        return self._load("bundle", Bundle, bundle_id)

    def save_bundle(self, bundle: Bundle) -> None:
        self._save("bundle", bundle)

    def get_factory(self, factory_id: str) -> Optional[Factory]:
        return self._load("factory", Factory, factory_id)

    def save_factory(self, factory: Factory) -> None:
        self._save("factory", factory)

    def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        return self._load("transaction", Transaction, tx_hash)

    def save_transaction(self, transaction: Transaction) -> None:
        self._save("transaction", transaction)

    def get_mint(self, mint_id: str) -> Optional[MintRecord]:
        return self._load("mint", MintRecord, mint_id)

    def save_mint(self, mint: MintRecord) -> None:
        self._save("mint", mint)

    def get_burn(self, burn_id: str) -> Optional[BurnRecord]:
        return self._load("burn", BurnRecord, burn_id)

    def save_burn(self, burn: BurnRecord) -> None:
        self._save("burn", burn)

    def get_swap(self, swap_id: str) -> Optional[SwapRecord]:
        return self._load("swap", SwapRecord, swap_id)

    def save_swap(self, swap: SwapRecord) -> None:
        self._save("swap", swap)


class InMemoryStorage(EntityStore):
    """Dictionary-backed store used for replays and tests."""

    def __init__(self) -> None:
        self._entities: Dict[Tuple[str, str], str] = {}

    def _read(self, kind: str, entity_id: str) -> Optional[Dict[str, Any]]:
        raw = self._entities.get((kind, entity_id))
        if raw is None:
            return None
        return json.loads(raw)

    def _write(self, kind: str, entity_id: str, payload: Dict[str, Any]) -> None:
        self._entities[(kind, entity_id)] = json.dumps(payload)

    def _read_all(self, kind: str) -> List[Dict[str, Any]]:
        return [json.loads(raw) for (entry_kind, _), raw in self._entities.items() if entry_kind == kind]


class SQLiteStorage(EntityStore):
    """Persists entities in SQLite, one table per entity kind."""

    def __init__(self, database_path: Path) -> None:
        self._database_path = Path(database_path)
        self._initialize()

    def _initialize(self) -> None:
        self._database_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as con:
            for table in ENTITY_TABLES.values():
                con.execute(CREATE_ENTITY_TABLE.format(table=table))
            con.execute(CREATE_SCHEMA_VERSION_TABLE)
            self._apply_migrations(con)
            con.commit()

    def _apply_migrations(self, con: sqlite3.Connection) -> None:
        current = self._get_schema_version(con)
        if current != SCHEMA_VERSION:
            self._set_schema_version(con, SCHEMA_VERSION)

    def _get_schema_version(self, con: sqlite3.Connection) -> int:
        cur = con.execute("SELECT version FROM schema_migrations ORDER BY ROWID DESC LIMIT 1")
        row = cur.fetchone()
        if row is None:
            return 0
        return int(row[0])

    def _set_schema_version(self, con: sqlite3.Connection, version: int) -> None:
        con.execute("DELETE FROM schema_migrations")
        con.execute("INSERT INTO schema_migrations (version) VALUES (?)", (version,))

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        con = sqlite3.connect(self._database_path)
        try:
            yield con
        finally:
            con.close()

    def _read(self, kind: str, entity_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as con:
            row = con.execute(
                f"SELECT payload FROM {ENTITY_TABLES[kind]} WHERE id = ?", (entity_id,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def _write(self, kind: str, entity_id: str, payload: Dict[str, Any]) -> None:
        with self._connect() as con:
            con.execute(
                f"""
                INSERT INTO {ENTITY_TABLES[kind]} (id, payload) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET payload = excluded.payload
                """,
                (entity_id, json.dumps(payload)),
            )
            con.commit()

    def _read_all(self, kind: str) -> List[Dict[str, Any]]:
        with self._connect() as con:
            rows = con.execute(
                f"SELECT payload FROM {ENTITY_TABLES[kind]} ORDER BY ROWID"
            ).fetchall()
        return [json.loads(row[0]) for row in rows]


def build_storage(config: StorageConfig) -> EntityStore:
    """Instantiate the backend selected in configuration."""

    if config.backend == StorageBackend.MEMORY:
        return InMemoryStorage()
    return SQLiteStorage(config.database_path)


__all__ = [
    "ENTITY_TABLES",
    "EntityStore",
    "InMemoryStorage",
    "SQLiteStorage",
    "build_storage",
]
