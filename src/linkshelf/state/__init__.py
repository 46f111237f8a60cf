"""Processed-item ledger persistence for linkshelf."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from .errors import LedgerError, StateError

DEFAULT_STATE_DIRNAME = ".linkshelf"
LEDGER_FILENAME = "ledger.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS processed_items (
    path TEXT PRIMARY KEY
);
"""


class LedgerStore(Protocol):
    """Durable set of source entry names that have already been handled."""

    def is_processed(self, name: str) -> bool: ...

    def mark_processed(self, name: str) -> None: ...


class SQLiteLedger:
    """SQLite-backed ledger keyed by source entry name.

    Each operation opens its own connection so the ledger can be shared by
    scheduler worker threads.
    """

    def __init__(self, path: Path, *, read_only: bool = False) -> None:
        """Open (and, unless read-only, initialize) the ledger database.

        Args:
            path: Location of the SQLite database file.
            read_only: Refuse writes and never create the database file.

        Raises:
            LedgerError: If the database cannot be created or opened.
        """
        self._path = path
        self._read_only = read_only
        if read_only:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise LedgerError(f"Unable to initialize ledger at {path}: {exc}") from exc

    @property
    def path(self) -> Path:
        """Return the database location."""
        return self._path

    @property
    def read_only(self) -> bool:
        """Return whether the ledger refuses writes."""
        return self._read_only

    def is_processed(self, name: str) -> bool:
        """Return True when ``name`` has been recorded.

        Raises:
            LedgerError: If the database cannot be queried.
        """
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT count(*) FROM processed_items WHERE path = ?", (_encode_key(name),)
                ).fetchone()
        except (sqlite3.Error, ValueError) as exc:
            raise LedgerError(f"Unable to query ledger for {name!r}: {exc}") from exc
        return bool(row and row[0] > 0)

    def mark_processed(self, name: str) -> None:
        """Record ``name``; repeated calls overwrite the same row.

        Raises:
            LedgerError: If the ledger is read-only or the write fails.
        """
        if self._read_only:
            raise LedgerError(f"Ledger at {self._path} is read-only")
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO processed_items (path) VALUES (?)",
                    (_encode_key(name),),
                )
        except (sqlite3.Error, ValueError) as exc:
            raise LedgerError(f"Unable to mark {name!r} as processed: {exc}") from exc

    def names(self) -> list[str]:
        """Return every recorded name in sorted order."""
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT path FROM processed_items").fetchall()
        except sqlite3.Error as exc:
            raise LedgerError(f"Unable to read ledger: {exc}") from exc
        return sorted(_decode_key(row[0]) for row in rows)

    def count(self) -> int:
        """Return the number of recorded names."""
        try:
            with self._connect() as conn:
                (total,) = conn.execute("SELECT count(*) FROM processed_items").fetchone()
        except sqlite3.Error as exc:
            raise LedgerError(f"Unable to read ledger: {exc}") from exc
        return int(total)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""
        if self._read_only:
            conn = sqlite3.connect(f"{self._path.resolve().as_uri()}?mode=ro", uri=True)
        else:
            conn = sqlite3.connect(self._path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()


class MemoryLedger:
    """In-memory ledger used for dry runs and tests."""

    def __init__(self, names: list[str] | None = None) -> None:
        self._names: set[str] = set(names or [])
        self._lock = threading.Lock()

    def is_processed(self, name: str) -> bool:
        with self._lock:
            return name in self._names

    def mark_processed(self, name: str) -> None:
        with self._lock:
            self._names.add(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._names)

    def count(self) -> int:
        return len(self.names())


def _encode_key(name: str) -> str | bytes:
    """Return the stored form of ``name``.

    Names that are valid UTF-8 are stored as TEXT. Names carrying undecodable
    bytes (listed by the OS as lone surrogates) are stored as their raw bytes
    in a BLOB, so they round-trip instead of failing to bind.
    """
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return name.encode("utf-8", "surrogateescape")
    return name


def _decode_key(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "surrogateescape")
    return value


def default_ledger_path(target_root: Path) -> Path:
    """Return the default ledger location inside the target root.

    The database file keeps its directory non-empty, so the tree cleaner never
    prunes it.
    """
    return target_root / DEFAULT_STATE_DIRNAME / LEDGER_FILENAME


__all__ = [
    "DEFAULT_STATE_DIRNAME",
    "LEDGER_FILENAME",
    "LedgerStore",
    "SQLiteLedger",
    "MemoryLedger",
    "default_ledger_path",
    "StateError",
    "LedgerError",
]
