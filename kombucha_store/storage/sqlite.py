"""SQLite tree store driver (default local persistence).

The tree is stored one row per `collection/key` pair; each row holds the JSON
subtree below that pair. Deeper paths are read and written by editing the
subtree of the owning row. Every write runs in its own immediate transaction,
so a single `set` or `update` is atomic. Read-merge-write sequences spanning
several calls are not.

sqlite3 is blocking, so every operation runs in a worker thread and opens its
own connection.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, TypeVar

from kombucha_store.errors import ConfigurationError, ContractViolationError, TransportError
from kombucha_store.storage.interfaces import TreeStore
from kombucha_store.storage.paths import get_in, set_in, split_path, validate_key
from kombucha_store.utils import json_dumps, prune_nulls

T = TypeVar("T")

_SCHEMA_VERSION = 1


class SQLiteDatabase:
    def __init__(self, path: Path):
        self.path = path.resolve()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._migrate()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.path), timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")

    def _migrate(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                  version INTEGER NOT NULL
                );
                """
            )
            row = conn.execute("SELECT version FROM schema_version LIMIT 1;").fetchone()
            if row is None:
                conn.execute("INSERT INTO schema_version(version) VALUES (?);", (_SCHEMA_VERSION,))
                version = _SCHEMA_VERSION
            else:
                version = int(row["version"])

            if version != _SCHEMA_VERSION:
                raise ConfigurationError(f"Unsupported SQLite schema_version: {version}")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS nodes (
                  collection TEXT NOT NULL,
                  key TEXT NOT NULL,
                  doc_json TEXT NOT NULL,
                  PRIMARY KEY (collection, key)
                );
                """
            )


def _require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ContractViolationError(f"Only keyed children may be stored at {path or '/'}", code="INVALID_TREE_VALUE")
    return value


class SQLiteTreeStore(TreeStore):
    def __init__(self, db_or_path: SQLiteDatabase | Path):
        self._db = db_or_path if isinstance(db_or_path, SQLiteDatabase) else SQLiteDatabase(db_or_path)

    async def get(self, path: str) -> Any | None:
        segments = split_path(path)
        return await self._run(path, lambda: self._get_sync(segments))

    async def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        await self._run(path, lambda: self._write_sync([(segments, value)]))

    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        base = split_path(path)
        writes = [(base + split_path(key), value) for key, value in values.items()]
        await self._run(path, lambda: self._write_sync(writes))

    async def delete(self, path: str) -> None:
        await self.set(path, None)

    async def _run(self, path: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except sqlite3.Error as e:
            raise TransportError(f"SQLite operation failed at {path or '/'}: {e}", path=path) from e

    def _get_sync(self, segments: list[str]) -> Any | None:
        with self._db.connect() as conn:
            if not segments:
                rows = conn.execute("SELECT collection, key, doc_json FROM nodes ORDER BY collection, key;").fetchall()
                tree: dict[str, Any] = {}
                for r in rows:
                    tree.setdefault(r["collection"], {})[r["key"]] = json.loads(r["doc_json"])
                return tree or None

            if len(segments) == 1:
                rows = conn.execute("SELECT key, doc_json FROM nodes WHERE collection = ? ORDER BY key;", (segments[0],)).fetchall()
                return {r["key"]: json.loads(r["doc_json"]) for r in rows} or None

            row = conn.execute(
                "SELECT doc_json FROM nodes WHERE collection = ? AND key = ?;",
                (segments[0], segments[1]),
            ).fetchone()
            if row is None:
                return None
            return get_in(json.loads(row["doc_json"]), segments[2:])

    def _write_sync(self, writes: list[tuple[list[str], Any]]) -> None:
        with self._db.transaction() as conn:
            for segments, value in writes:
                self._write_one(conn, segments, value)

    def _write_one(self, conn: sqlite3.Connection, segments: list[str], value: Any) -> None:
        if not segments:
            conn.execute("DELETE FROM nodes;")
            if value is not None:
                for collection, children in _require_mapping(value, "").items():
                    self._write_one(conn, [validate_key(collection)], children)
            return

        if len(segments) == 1:
            collection = segments[0]
            conn.execute("DELETE FROM nodes WHERE collection = ?;", (collection,))
            if value is None:
                return
            for key, child in _require_mapping(value, collection).items():
                child = prune_nulls(child)
                if child is not None:
                    self._upsert(conn, collection, validate_key(key), child)
            return

        collection, key = segments[0], segments[1]
        row = conn.execute("SELECT doc_json FROM nodes WHERE collection = ? AND key = ?;", (collection, key)).fetchone()
        current = json.loads(row["doc_json"]) if row is not None else None
        updated = set_in(current, segments[2:], value)
        if updated is None:
            conn.execute("DELETE FROM nodes WHERE collection = ? AND key = ?;", (collection, key))
        else:
            self._upsert(conn, collection, key, updated)

    @staticmethod
    def _upsert(conn: sqlite3.Connection, collection: str, key: str, doc: Any) -> None:
        conn.execute(
            """
            INSERT INTO nodes(collection, key, doc_json) VALUES (?, ?, ?)
            ON CONFLICT(collection, key) DO UPDATE SET doc_json = excluded.doc_json;
            """,
            (collection, key, json_dumps(doc)),
        )
