"""
Persistent Index Store

SQLite-backed tables for the document index.
Used by both the Indexer (single writer) and the SearchEngine (read-only).

Every transaction runs on its own short-lived connection, so the store can be
shared freely between worker threads. WAL journaling keeps readers on the
last committed snapshot while a writer is active.
"""

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterable, Iterator

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from docindex.core.infrastructure_config import settings
from docindex.db.errors import IdentifierRace, StoreUnavailable, TransactionFailed

logger = logging.getLogger(__name__)

PRAGMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;
"""

SCHEMA_SQL = """
-- Identifier mappings (text <-> id)
CREATE TABLE IF NOT EXISTS url_to_page_id (
  text TEXT PRIMARY KEY,
  id INTEGER NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS page_id_to_url (
  id INTEGER PRIMARY KEY,
  text TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS term_to_word_id (
  text TEXT PRIMARY KEY,
  id INTEGER NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS word_id_to_term (
  id INTEGER PRIMARY KEY,
  text TEXT NOT NULL UNIQUE
);

-- Atomic id allocation, one row per mapping
CREATE TABLE IF NOT EXISTS sequences (
  name TEXT PRIMARY KEY,
  value INTEGER NOT NULL
);

-- Forward index: per page, per word term frequency
CREATE TABLE IF NOT EXISTS forward_index (
  page_id INTEGER NOT NULL,
  word_id INTEGER NOT NULL,
  term_freq INTEGER NOT NULL,
  PRIMARY KEY (page_id, word_id)
);

-- Maximum term frequency of each page
CREATE TABLE IF NOT EXISTS page_max_tf (
  page_id INTEGER PRIMARY KEY,
  max_tf INTEGER NOT NULL
);

-- Inverted index: word -> pages
CREATE TABLE IF NOT EXISTS inverted_index (
  word_id INTEGER NOT NULL,
  page_id INTEGER NOT NULL,
  PRIMARY KEY (word_id, page_id)
) WITHOUT ROWID;

-- Token offsets of a word within a page (JSON array)
CREATE TABLE IF NOT EXISTS positions (
  page_id INTEGER NOT NULL,
  word_id INTEGER NOT NULL,
  offsets TEXT NOT NULL,
  PRIMARY KEY (page_id, word_id)
);

-- Serialized document metadata
CREATE TABLE IF NOT EXISTS page_info (
  page_id INTEGER PRIMARY KEY,
  document TEXT NOT NULL
);
"""

TABLE_NAMES = (
    "url_to_page_id",
    "page_id_to_url",
    "term_to_word_id",
    "word_id_to_term",
    "sequences",
    "forward_index",
    "page_max_tf",
    "inverted_index",
    "positions",
    "page_info",
)


class IdMapping(str, Enum):
    """Identifier spaces managed by the store."""

    URL = "url"
    TERM = "term"


# (forward table, inverse table) per mapping
_MAPPING_TABLES = {
    IdMapping.URL: ("url_to_page_id", "page_id_to_url"),
    IdMapping.TERM: ("term_to_word_id", "word_id_to_term"),
}


def _schema_statements() -> list[str]:
    lines = [ln for ln in SCHEMA_SQL.splitlines() if not ln.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def _is_busy(exc: BaseException) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


@retry(
    retry=retry_if_exception(_is_busy),
    stop=stop_after_attempt(max(1, settings.STORE_WRITE_ATTEMPTS)),
    wait=wait_exponential(multiplier=0.05, max=2),
    reraise=True,
)
def _begin_immediate(conn: sqlite3.Connection) -> None:
    """Take the database write lock, retrying while another writer holds it."""
    conn.execute("BEGIN IMMEDIATE")


def _rollback(conn: sqlite3.Connection) -> None:
    if not conn.in_transaction:
        return
    try:
        conn.execute("ROLLBACK")
    except sqlite3.Error:
        logger.exception("Rollback failed")


class IndexStore:
    """Transactional storage for the forward/inverted index and id mappings."""

    def __init__(self, path: str):
        self.path = path
        self._allocation_lock = threading.Lock()

    @classmethod
    def open(cls, path: str = settings.DB_PATH) -> "IndexStore":
        """
        Open (or create) the index database and ensure every table exists.

        Raises:
            StoreUnavailable: If the database file cannot be opened or initialized
        """
        try:
            db_dir = os.path.dirname(path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
            con = sqlite3.connect(path, timeout=settings.STORE_BUSY_TIMEOUT_SEC)
            try:
                con.executescript(PRAGMA_SQL + SCHEMA_SQL)
            finally:
                con.close()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Cannot open index store at {path}: {e}", exc_info=True)
            raise StoreUnavailable(f"Cannot open index store at {path}: {e}") from e

        logger.info("Opened index store at %s", path)
        return cls(path)

    def close(self) -> None:
        """Connections are per transaction; nothing is held between calls."""

    def __enter__(self) -> "IndexStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Transactions

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self.path,
                timeout=settings.STORE_BUSY_TIMEOUT_SEC,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise TransactionFailed(f"Cannot connect to {self.path}: {e}") from e
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def read_transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block against one consistent snapshot of the index."""
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            _rollback(conn)
            raise TransactionFailed(f"Read transaction failed: {e}") from e
        except BaseException:
            _rollback(conn)
            raise
        finally:
            conn.close()

    @contextmanager
    def write_transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run the block as one atomic write.

        The transaction is committed when the block exits normally and rolled
        back on any exception, so readers never observe partial writes.

        Raises:
            TransactionFailed: If SQLite reports an error for this transaction
        """
        conn = self._connect()
        try:
            _begin_immediate(conn)
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            _rollback(conn)
            logger.error(f"Write transaction failed: {e}")
            raise TransactionFailed(f"Write transaction failed: {e}") from e
        except BaseException:
            _rollback(conn)
            raise
        finally:
            conn.close()

    def drop_all(self) -> None:
        """Replace every table with an empty one in a single transaction."""
        with self.write_transaction() as conn:
            for table in TABLE_NAMES:
                conn.execute(f"DROP TABLE IF EXISTS {table}")
            for stmt in _schema_statements():
                conn.execute(stmt)
        logger.info("Dropped all index tables in %s", self.path)

    # Identifier mappings

    def lookup_id(self, text: str, mapping: IdMapping) -> int | None:
        """Return the id assigned to text, or None if it has none yet."""
        forward, _ = _MAPPING_TABLES[mapping]
        with self.read_transaction() as conn:
            row = conn.execute(
                f"SELECT id FROM {forward} WHERE text = ?", (text,)
            ).fetchone()
        return row[0] if row else None

    def lookup_text(self, ident: int, mapping: IdMapping) -> str | None:
        """Return the text an id was assigned to, or None."""
        _, inverse = _MAPPING_TABLES[mapping]
        with self.read_transaction() as conn:
            row = conn.execute(
                f"SELECT text FROM {inverse} WHERE id = ?", (ident,)
            ).fetchone()
        return row[0] if row else None

    def get_or_create_id(self, text: str, mapping: IdMapping) -> int:
        """
        Get the id for text, allocating the next sequence value on first sight.

        Allocation holds both the process allocation lock and the database
        write lock, and re-checks for the text before allocating, so one text
        never receives two ids.

        Raises:
            IdentifierRace: If the mapping tables reject the new pair
            TransactionFailed: If the allocation transaction fails
        """
        existing = self.lookup_id(text, mapping)
        if existing is not None:
            return existing

        forward, inverse = _MAPPING_TABLES[mapping]
        with self._allocation_lock:
            with self.write_transaction() as conn:
                row = conn.execute(
                    f"SELECT id FROM {forward} WHERE text = ?", (text,)
                ).fetchone()
                if row:
                    return row[0]

                new_id = self._next_sequence(conn, mapping.value)
                try:
                    conn.execute(
                        f"INSERT INTO {forward} (text, id) VALUES (?, ?)",
                        (text, new_id),
                    )
                    conn.execute(
                        f"INSERT INTO {inverse} (id, text) VALUES (?, ?)",
                        (new_id, text),
                    )
                except sqlite3.IntegrityError as e:
                    raise IdentifierRace(
                        f"Conflicting {mapping.value} id allocation for {text!r}"
                    ) from e
                return new_id

    @staticmethod
    def _next_sequence(conn: sqlite3.Connection, name: str) -> int:
        conn.execute(
            """
            INSERT INTO sequences (name, value) VALUES (?, 1)
            ON CONFLICT (name) DO UPDATE SET value = value + 1
            """,
            (name,),
        )
        return conn.execute(
            "SELECT value FROM sequences WHERE name = ?", (name,)
        ).fetchone()[0]

    # Read interface

    def contains_url(self, url: str) -> bool:
        return self.lookup_id(url, IdMapping.URL) is not None

    def page_url(self, page_id: int) -> str | None:
        return self.lookup_text(page_id, IdMapping.URL)

    def posting_list(self, word_id: int) -> list[int]:
        """Page ids containing the word, ascending."""
        with self.read_transaction() as conn:
            rows = conn.execute(
                "SELECT page_id FROM inverted_index WHERE word_id = ? ORDER BY page_id",
                (word_id,),
            ).fetchall()
        return [row[0] for row in rows]

    def forward_entry(self, page_id: int) -> dict[int, int]:
        """Word id -> term frequency for one page."""
        with self.read_transaction() as conn:
            rows = conn.execute(
                "SELECT word_id, term_freq FROM forward_index WHERE page_id = ?",
                (page_id,),
            ).fetchall()
        return {word_id: tf for word_id, tf in rows}

    def max_tf(self, page_id: int) -> int | None:
        with self.read_transaction() as conn:
            row = conn.execute(
                "SELECT max_tf FROM page_max_tf WHERE page_id = ?", (page_id,)
            ).fetchone()
        return row[0] if row else None

    def page_info(self, page_id: int) -> dict[str, Any] | None:
        """Decoded document metadata record, or None if the page has none."""
        with self.read_transaction() as conn:
            row = conn.execute(
                "SELECT document FROM page_info WHERE page_id = ?", (page_id,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def position_indices(self, page_id: int, term: str) -> list[int]:
        """Ascending token offsets of term within the page (empty if unknown)."""
        with self.read_transaction() as conn:
            row = conn.execute(
                """
                SELECT p.offsets FROM positions p
                JOIN term_to_word_id t ON t.id = p.word_id
                WHERE p.page_id = ? AND t.text = ?
                """,
                (page_id, term),
            ).fetchone()
        return json.loads(row[0]) if row else []

    def document_count(self) -> int:
        """Number of pages with a metadata record."""
        with self.read_transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM page_info").fetchone()[0]

    def document_frequencies(self, word_ids: Iterable[int]) -> dict[int, int]:
        """Posting list sizes for the given words (missing words map to 0)."""
        ids = list(dict.fromkeys(word_ids))
        if not ids:
            return {}

        result = {word_id: 0 for word_id in ids}
        with self.read_transaction() as conn:
            # Stay below SQLite's bound-parameter limit
            for start in range(0, len(ids), 500):
                chunk = ids[start : start + 500]
                phs = ",".join(["?"] * len(chunk))
                rows = conn.execute(
                    f"""
                    SELECT word_id, COUNT(*) FROM inverted_index
                    WHERE word_id IN ({phs}) GROUP BY word_id
                    """,
                    chunk,
                ).fetchall()
                for word_id, df in rows:
                    result[word_id] = df
        return result
