# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""SQLite-backed persistent cache tier shared by concurrent shell processes."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

from ..errors import CacheStoreError
from ..fragments.models import ParsingMode
from .keys import CacheKey
from .protocols import PersistentStore, PrefetchedEntries

LOGGER = logging.getLogger(__name__)

DATABASE_FILENAME: Final[str] = "fragment-cache.db"
CONTENT_TABLE: Final[Literal["fragment_content"]] = "fragment_content"
AST_TABLE: Final[Literal["fragment_ast"]] = "fragment_ast"

_SCHEMA: Final[tuple[str, ...]] = (
    f"""
    CREATE TABLE IF NOT EXISTS {CONTENT_TABLE} (
        file_path TEXT NOT NULL,
        mtime_ns INTEGER NOT NULL,
        parsing_mode TEXT NOT NULL,
        raw_content TEXT NOT NULL,
        updated_at REAL NOT NULL,
        PRIMARY KEY (file_path, mtime_ns, parsing_mode)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {AST_TABLE} (
        file_path TEXT NOT NULL,
        mtime_ns INTEGER NOT NULL,
        parsing_mode TEXT NOT NULL,
        function_names TEXT NOT NULL,
        updated_at REAL NOT NULL,
        PRIMARY KEY (file_path, mtime_ns, parsing_mode)
    )
    """,
)

_KEY_PREDICATE: Final[str] = "file_path = ? AND mtime_ns = ? AND parsing_mode = ?"


@dataclass(slots=True)
class StoreCounters:
    """Count persistent-tier operations performed by this process.

    Attributes:
        lookups: Single-key reads.
        bulk_lookups: Keys read through :meth:`SqliteFragmentStore.fetch_many`.
        writes: Upserts performed.
    """

    lookups: int = 0
    bulk_lookups: int = 0
    writes: int = 0


@dataclass(frozen=True, slots=True)
class StoreStatistics:
    """Describe the size and contents of the cache database.

    Attributes:
        path: Database file location.
        exists: Whether the database file exists.
        size_bytes: Size of the database file on disk.
        content_entries: Rows in the content table.
        ast_entries: Rows in the AST table.
    """

    path: Path
    exists: bool
    size_bytes: int
    content_entries: int
    ast_entries: int


@dataclass(frozen=True, slots=True)
class StoredEntry:
    """Identify one stored row without its payload."""

    table: str
    key: CacheKey


@dataclass(frozen=True, slots=True)
class RepairResult:
    """Outcome of :meth:`SqliteFragmentStore.repair`.

    Attributes:
        integrity: Integrity verdict (or open error) found before any repair.
        rebuilt: Whether the database was dropped and re-created.
    """

    integrity: str
    rebuilt: bool


def _key_params(key: CacheKey) -> tuple[str, int, str]:
    return key.file_path, key.mtime_ns, key.parsing_mode.value


def _decode_names(raw: str) -> tuple[str, ...] | None:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(decoded, list) or not all(isinstance(item, str) for item in decoded):
        return None
    return tuple(decoded)


class SqliteFragmentStore(PersistentStore):
    """Persist fragment content and function names in an SQLite database.

    Each operation opens its own short-lived connection with a bounded lock
    timeout, so a database deleted between operations is re-created on next
    use and a writer that cannot obtain the lock fails soft.
    """

    def __init__(self, directory: Path, *, timeout: float = 0.5) -> None:
        """Initialise the store rooted at ``directory``.

        Args:
            directory: Cache directory holding the database file.
            timeout: Seconds to wait for locks held by other processes.
        """

        self._directory = directory
        self._path = directory / DATABASE_FILENAME
        self._timeout = timeout
        self.counters = StoreCounters()

    @property
    def path(self) -> Path:
        """Return the database file location."""

        return self._path

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a configured connection, committing on success.

        Raises:
            CacheStoreError: If the database cannot be opened or a statement fails.
        """

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(str(self._path), timeout=self._timeout)
        except (OSError, sqlite3.Error) as exc:
            raise CacheStoreError(f"unable to open cache store {self._path}: {exc}") from exc
        try:
            connection.execute(f"PRAGMA busy_timeout = {int(self._timeout * 1000)}")
            self._ensure_schema(connection)
            yield connection
            connection.commit()
        except sqlite3.Error as exc:
            raise CacheStoreError(f"cache store {self._path} failed: {exc}") from exc
        finally:
            connection.close()

    @staticmethod
    def _ensure_schema(connection: sqlite3.Connection) -> None:
        try:
            connection.execute("PRAGMA journal_mode=WAL")
        except sqlite3.OperationalError as exc:
            # WAL is unavailable on some filesystems (network mounts, read-only media).
            LOGGER.debug("cache store journal_mode=WAL unavailable: %s", exc)
        for statement in _SCHEMA:
            connection.execute(statement)

    def probe(self) -> bool:
        """Return whether the store can be opened, created and queried."""

        try:
            with self._connection() as connection:
                connection.execute("SELECT 1").fetchone()
        except CacheStoreError as exc:
            LOGGER.debug("cache store probe failed: %s", exc)
            return False
        return True

    def get_content(self, key: CacheKey) -> str | None:
        """Return raw content stored under ``key``, or ``None`` on a miss."""

        self.counters.lookups += 1
        with self._connection() as connection:
            row = connection.execute(
                f"SELECT raw_content FROM {CONTENT_TABLE} WHERE {_KEY_PREDICATE}",
                _key_params(key),
            ).fetchone()
        return None if row is None else str(row[0])

    def set_content(self, key: CacheKey, value: str) -> None:
        """Upsert raw content for ``key``."""

        self.counters.writes += 1
        with self._connection() as connection:
            connection.execute(
                f"INSERT INTO {CONTENT_TABLE} (file_path, mtime_ns, parsing_mode, raw_content, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(file_path, mtime_ns, parsing_mode) "
                "DO UPDATE SET raw_content = excluded.raw_content, updated_at = excluded.updated_at",
                (*_key_params(key), value, time.time()),
            )

    def get_ast(self, key: CacheKey) -> tuple[str, ...] | None:
        """Return function names stored under ``key``, or ``None`` on a miss."""

        self.counters.lookups += 1
        with self._connection() as connection:
            row = connection.execute(
                f"SELECT function_names FROM {AST_TABLE} WHERE {_KEY_PREDICATE}",
                _key_params(key),
            ).fetchone()
        if row is None:
            return None
        names = _decode_names(str(row[0]))
        if names is None:
            LOGGER.debug("ignoring corrupt AST cache row for %s", key.file_path)
        return names

    def set_ast(self, key: CacheKey, value: Sequence[str]) -> None:
        """Upsert the function names for ``key``."""

        self.counters.writes += 1
        with self._connection() as connection:
            connection.execute(
                f"INSERT INTO {AST_TABLE} (file_path, mtime_ns, parsing_mode, function_names, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(file_path, mtime_ns, parsing_mode) "
                "DO UPDATE SET function_names = excluded.function_names, updated_at = excluded.updated_at",
                (*_key_params(key), json.dumps(list(value)), time.time()),
            )

    def fetch_many(self, keys: Sequence[CacheKey]) -> PrefetchedEntries:
        """Return every stored entry for ``keys`` using one connection."""

        entries = PrefetchedEntries()
        if not keys:
            return entries
        self.counters.bulk_lookups += len(keys)
        with self._connection() as connection:
            for key in keys:
                params = _key_params(key)
                content_row = connection.execute(
                    f"SELECT raw_content FROM {CONTENT_TABLE} WHERE {_KEY_PREDICATE}",
                    params,
                ).fetchone()
                if content_row is not None:
                    entries.content[key] = str(content_row[0])
                ast_row = connection.execute(
                    f"SELECT function_names FROM {AST_TABLE} WHERE {_KEY_PREDICATE}",
                    params,
                ).fetchone()
                if ast_row is not None:
                    names = _decode_names(str(ast_row[0]))
                    if names is not None:
                        entries.ast[key] = names
        return entries

    def clear(self) -> None:
        """Remove every stored entry."""

        with self._connection() as connection:
            connection.execute(f"DELETE FROM {CONTENT_TABLE}")
            connection.execute(f"DELETE FROM {AST_TABLE}")

    def delete(self, entries: Sequence[StoredEntry]) -> int:
        """Delete the rows identified by ``entries`` and return how many went."""

        removed = 0
        with self._connection() as connection:
            for entry in entries:
                cursor = connection.execute(
                    f"DELETE FROM {entry.table} WHERE {_KEY_PREDICATE}",
                    _key_params(entry.key),
                )
                removed += cursor.rowcount
        return removed

    def entries(self) -> list[StoredEntry]:
        """Return the keys of every stored row, content rows first."""

        results: list[StoredEntry] = []
        with self._connection() as connection:
            for table in (CONTENT_TABLE, AST_TABLE):
                rows = connection.execute(
                    f"SELECT file_path, mtime_ns, parsing_mode FROM {table} ORDER BY file_path, mtime_ns",
                ).fetchall()
                for file_path, mtime_ns, mode in rows:
                    parsing_mode = ParsingMode.from_raw(str(mode))
                    if parsing_mode is None:
                        continue
                    results.append(StoredEntry(table, CacheKey(str(file_path), int(mtime_ns), parsing_mode)))
        return results

    def statistics(self) -> StoreStatistics:
        """Return row counts and the on-disk size of the database."""

        exists = self._path.is_file()
        with self._connection() as connection:
            content_entries = connection.execute(f"SELECT COUNT(*) FROM {CONTENT_TABLE}").fetchone()[0]
            ast_entries = connection.execute(f"SELECT COUNT(*) FROM {AST_TABLE}").fetchone()[0]
        size = self._path.stat().st_size if self._path.is_file() else 0
        return StoreStatistics(
            path=self._path,
            exists=exists,
            size_bytes=size,
            content_entries=int(content_entries),
            ast_entries=int(ast_entries),
        )

    def integrity_check(self) -> str:
        """Return SQLite's integrity check verdict (``"ok"`` when healthy)."""

        with self._connection() as connection:
            rows = connection.execute("PRAGMA integrity_check").fetchall()
        return "; ".join(str(row[0]) for row in rows)

    def optimize(self) -> None:
        """Refresh the query planner statistics and compact the database file."""

        with self._connection() as connection:
            connection.execute("PRAGMA optimize")
            connection.execute("VACUUM")

    def backup(self, destination: Path) -> Path:
        """Copy the database to ``destination`` using SQLite's online backup.

        Args:
            destination: Target file, or a directory that receives a file named
                like the live database.

        Returns:
            Path: File the backup was written to.

        Raises:
            CacheStoreError: If either database cannot be opened or the copy fails.
        """

        target = destination / DATABASE_FILENAME if destination.is_dir() else destination
        if target.absolute() == self._path.absolute():
            raise CacheStoreError(f"refusing to back up {self._path} onto itself")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            copy = sqlite3.connect(str(target))
        except (OSError, sqlite3.Error) as exc:
            raise CacheStoreError(f"unable to open backup target {target}: {exc}") from exc
        try:
            with self._connection() as connection:
                connection.backup(copy)
        finally:
            copy.close()
        LOGGER.debug("cache store %s backed up to %s", self._path, target)
        return target

    def repair(self) -> RepairResult:
        """Rebuild an empty database when the current one fails its integrity check.

        Cached rows are derived from fragment files, so a damaged database is
        dropped rather than salvaged.

        Returns:
            RepairResult: The verdict that was found and whether a rebuild ran.

        Raises:
            CacheStoreError: If the damaged files cannot be removed or the new
                database cannot be created.
        """

        try:
            verdict = self.integrity_check()
        except CacheStoreError as exc:
            verdict = str(exc)
        if verdict == "ok":
            return RepairResult(integrity=verdict, rebuilt=False)

        for suffix in ("", "-wal", "-shm", "-journal"):
            leftover = self._path.with_name(self._path.name + suffix)
            try:
                leftover.unlink(missing_ok=True)
            except OSError as exc:
                raise CacheStoreError(f"unable to remove damaged cache file {leftover}: {exc}") from exc
        with self._connection() as connection:
            connection.execute("SELECT 1").fetchone()
        LOGGER.debug("cache store %s rebuilt after integrity failure: %s", self._path, verdict)
        return RepairResult(integrity=verdict, rebuilt=True)


__all__ = [
    "AST_TABLE",
    "CONTENT_TABLE",
    "DATABASE_FILENAME",
    "RepairResult",
    "SqliteFragmentStore",
    "StoreCounters",
    "StoreStatistics",
    "StoredEntry",
]
