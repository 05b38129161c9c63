"""
Persistent storage for the planner records.

This module manages the file:

    data/planner.json

Layout:

    {"version": "1", "collections": {"trimesters": [...], "holidays": [...], ...}}

Every collection holds plain dict records keyed by their "id" field.

Design rationale:
- authored collections (trimesters, holidays, levels, groups, schedules,
  lessons) are only read by the recurrence engine
- placeholder_slots is a derived cache, rebuilt from the authored data

All access is async. Writes happen either as single operations or inside
``transaction()``, which holds the store lock, restores a snapshot of the
named collections on error and flushes the file once on commit. Only the
named collections may be written inside a transaction. Tasks spawned from
inside it (e.g. ``asyncio.gather``) belong to the same transaction.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from contextlib import asynccontextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

STORE_VERSION = "1"
STORE_ENV_VAR = "AGENDAPLANNER_STORE"

COLLECTIONS = (
    "trimesters",
    "holidays",
    "levels",
    "groups",
    "schedules",
    "lessons",
    "placeholder_slots",
)

Record = dict[str, Any]


class StoreError(Exception):
    """Raised when the persisted store cannot be read or written."""


class UnknownCollectionError(StoreError):
    pass


class RecordNotFoundError(StoreError):
    pass


def default_store_path() -> Path:
    """
    Return the path of planner.json.

    The AGENDAPLANNER_STORE environment variable wins; otherwise the file
    lives inside the package data folder. Using a function instead of a
    constant makes testing easier, because tests can override the path.
    """
    override = os.environ.get(STORE_ENV_VAR, "").strip()
    if override:
        return Path(override)
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "planner.json"


class _TransactionScope:
    """Marker for one open transaction and the collections it may write."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = frozenset(names)


_open_transactions: ContextVar[tuple[_TransactionScope, ...]] = ContextVar("agendaplanner_open_transactions", default=())


def _empty_collections() -> dict[str, dict[str, Record]]:
    return {name: {} for name in COLLECTIONS}


class DataStore:
    """
    Async document store backed by one JSON file.

    ``path=None`` keeps everything in memory (nothing is flushed).
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._collections: Optional[dict[str, dict[str, Record]]] = None
        self._lock = asyncio.Lock()
        self._active_tx: Optional[_TransactionScope] = None

    # ------------------------------------------------------------------
    # Loading / flushing
    # ------------------------------------------------------------------

    def _read_file(self) -> dict[str, dict[str, Record]]:
        collections = _empty_collections()
        if self.path is None or not self.path.exists():
            return collections

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StoreError(f"Cannot read store file {self.path}: {exc}") from exc

        raw = data.get("collections") if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            raise StoreError(f"Store file {self.path} has no 'collections' object")

        for name in COLLECTIONS:
            rows = raw.get(name, [])
            if not isinstance(rows, list):
                continue
            for row in rows:
                if isinstance(row, dict) and str(row.get("id", "")).strip():
                    collections[name][str(row["id"])] = row
        return collections

    def _write_file(self, snapshot: dict[str, list[Record]]) -> None:
        assert self.path is not None
        payload = {"version": STORE_VERSION, "collections": snapshot}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"Cannot write store file {self.path}: {exc}") from exc

    async def _ensure_loaded(self) -> dict[str, dict[str, Record]]:
        if self._collections is None:
            self._collections = await asyncio.to_thread(self._read_file)
        return self._collections

    async def _flush(self) -> None:
        if self.path is None or self._collections is None:
            return
        snapshot = {name: list(rows.values()) for name, rows in self._collections.items()}
        await asyncio.to_thread(self._write_file, snapshot)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _current_scope(self) -> Optional[_TransactionScope]:
        """
        The transaction this store has open in the current context, if any.
        Child tasks started inside a transaction inherit the context.
        """
        active = self._active_tx
        if active is None:
            return None
        return active if active in _open_transactions.get() else None

    @asynccontextmanager
    async def _access(self, collection: str, write: bool) -> AsyncIterator[dict[str, dict[str, Record]]]:
        """
        Run one operation. Inside an open transaction no lock is taken and
        nothing is flushed; otherwise the store lock is held and writes are
        flushed right away.
        """
        scope = self._current_scope()
        if scope is not None:
            if write and collection not in scope.names:
                raise StoreError(
                    f"Transaction on {', '.join(sorted(scope.names))} cannot write to {collection!r}"
                )
            yield await self._ensure_loaded()
            return

        async with self._lock:
            collections = await self._ensure_loaded()
            if not write:
                yield collections
                return
            before = copy.deepcopy(collections)
            try:
                yield collections
                await self._flush()
            except BaseException:
                self._collections = before
                raise

    @asynccontextmanager
    async def transaction(self, *names: str) -> AsyncIterator["DataStore"]:
        """
        Atomic multi-step unit spanning the named collections (all when none
        are named). Only those collections may be written inside it, and
        other tasks cannot observe the intermediate state.
        """
        targets = names or COLLECTIONS
        for name in targets:
            _check_collection(name)

        outer = self._current_scope()
        if outer is not None:
            # nested: must stay within the outer scope, which decides
            outside = set(names) - outer.names
            if outside:
                raise StoreError(f"Nested transaction widens scope with {', '.join(sorted(outside))}")
            yield self
            return

        async with self._lock:
            collections = await self._ensure_loaded()
            snapshot = {name: copy.deepcopy(collections[name]) for name in targets}
            scope = _TransactionScope(targets)
            self._active_tx = scope
            token = _open_transactions.set(_open_transactions.get() + (scope,))
            try:
                yield self
                await self._flush()
            except BaseException:
                for name, rows in snapshot.items():
                    collections[name] = rows
                logger.warning("Store transaction on %s rolled back", ", ".join(targets))
                raise
            finally:
                self._active_tx = None
                _open_transactions.reset(token)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_all(self, collection: str) -> list[Record]:
        _check_collection(collection)
        async with self._access(collection, write=False) as cols:
            return [copy.deepcopy(r) for r in cols[collection].values()]

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        _check_collection(collection)
        async with self._access(collection, write=False) as cols:
            row = cols[collection].get(str(record_id))
            return copy.deepcopy(row) if row is not None else None

    async def get_in_date_range(self, collection: str, start: str, end: str) -> list[Record]:
        """
        Records whose 'date' lies within [start, end] (ISO strings, inclusive).
        """
        _check_collection(collection)
        async with self._access(collection, write=False) as cols:
            return [
                copy.deepcopy(r)
                for r in cols[collection].values()
                if start <= str(r.get("date", "")) <= end
            ]

    async def count(self, collection: str) -> int:
        _check_collection(collection)
        async with self._access(collection, write=False) as cols:
            return len(cols[collection])

    async def put(self, collection: str, record: Record) -> None:
        await self.bulk_put(collection, [record])

    async def bulk_put(self, collection: str, records: Iterable[Record]) -> None:
        _check_collection(collection)
        rows = [_checked_record(r) for r in records]
        if not rows:
            return
        async with self._access(collection, write=True) as cols:
            for row in rows:
                cols[collection][str(row["id"])] = row

    async def update(self, collection: str, record_id: str, updates: Record) -> Record:
        _check_collection(collection)
        async with self._access(collection, write=True) as cols:
            current = cols[collection].get(str(record_id))
            if current is None:
                raise RecordNotFoundError(f"Cannot update missing {collection} record with id {record_id!r}")
            merged = {**current, **copy.deepcopy(updates), "id": current["id"]}
            cols[collection][str(record_id)] = merged
            return copy.deepcopy(merged)

    async def delete(self, collection: str, record_id: str) -> None:
        _check_collection(collection)
        async with self._access(collection, write=True) as cols:
            cols[collection].pop(str(record_id), None)

    async def delete_where(self, collection: str, predicate: Callable[[Record], bool]) -> int:
        _check_collection(collection)
        async with self._access(collection, write=True) as cols:
            doomed = [rid for rid, row in cols[collection].items() if predicate(row)]
            for rid in doomed:
                del cols[collection][rid]
            return len(doomed)

    async def clear(self, collection: str) -> None:
        _check_collection(collection)
        async with self._access(collection, write=True) as cols:
            cols[collection].clear()


def _check_collection(name: str) -> None:
    if name not in COLLECTIONS:
        raise UnknownCollectionError(f"Unknown collection: {name!r}")


def _checked_record(record: Record) -> Record:
    if not isinstance(record, dict) or not str(record.get("id", "")).strip():
        raise StoreError(f"Record without an id: {record!r}")
    return copy.deepcopy(record)
