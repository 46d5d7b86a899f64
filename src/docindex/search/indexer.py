"""
Document Indexer

Builds the forward index eagerly and the inverted index in bulk.

Ingestion writes forward entries straight to the store and stages
word -> page pairs in memory; flush_inverted() then writes one transaction
per distinct word instead of one per (word, page) pair.
"""

import json
import logging
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, wait

from docindex.analyzer import analyzer
from docindex.core.infrastructure_config import settings
from docindex.db.store import IdMapping, IndexStore
from docindex.search.models import Document
from docindex.search.staging import StagingBuffer

logger = logging.getLogger(__name__)


def build_document(uri: str, title: str, content: str) -> Document:
    """Tokenize raw content into a Document with terms, positions and max tf."""
    tokens = analyzer.tokenize(content) if content else []
    freq_map: Counter[str] = Counter(tokens)
    return Document(
        uri=uri,
        title=title,
        terms=dict(freq_map),
        max_tf=max(freq_map.values(), default=0),
        tokens=tokens,
    )


def _join(futures: list[Future]) -> None:
    """Wait for every task, then re-raise the first failure, if any."""
    wait(futures)
    for future in futures:
        exc = future.exception()
        if exc is not None:
            raise exc


class Indexer:
    """
    Makes documents searchable.

    Only one Indexer should write to a given index database at a time;
    any number of SearchEngine instances may read it concurrently.
    """

    def __init__(
        self,
        store: IndexStore,
        workers: int = settings.INDEXER_WORKERS,
        shards: int = settings.STAGING_SHARDS,
    ):
        self.store = store
        self.staging = StagingBuffer(shards)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="indexer"
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "Indexer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def staged_word_count(self) -> int:
        """Distinct words waiting for flush_inverted()."""
        return len(self.staging)

    def contains_url(self, url: str) -> bool:
        """Check if the URL has already been assigned a page id."""
        return self.store.contains_url(url)

    def update_or_add_page(self, doc: Document) -> int:
        """
        Index a document, overwriting any previous version of the same URL.

        The inverted index is only staged here; call flush_inverted() after
        a batch of documents to make them findable by term.

        Terms missing from a new version of a page are not removed: their
        forward entries, positions and postings from the earlier version
        stay in place.

        Args:
            doc: Parsed document

        Returns:
            The document's page id
        """
        page_id = self.store.get_or_create_id(doc.uri, IdMapping.URL)

        terms = [(term, tf) for term, tf in doc.terms.items() if tf > 0]
        word_ids = list(
            self._executor.map(
                lambda term: self.store.get_or_create_id(term, IdMapping.TERM),
                [term for term, _ in terms],
            )
        )

        pos_map = doc.positions()
        futures: list[Future] = []
        for (term, tf), word_id in zip(terms, word_ids):
            futures.append(self._executor.submit(self.staging.stage, word_id, page_id))
            futures.append(
                self._executor.submit(
                    self._update_forward, page_id, word_id, tf, pos_map.get(term)
                )
            )
        _join(futures)

        with self.store.write_transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO page_max_tf (page_id, max_tf) VALUES (?, ?)",
                (page_id, doc.max_tf),
            )
        with self.store.write_transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO page_info (page_id, document) VALUES (?, ?)",
                (page_id, doc.metadata_json()),
            )

        logger.debug("Indexed %s as page %d (%d terms)", doc.uri, page_id, len(terms))
        return page_id

    def _update_forward(
        self,
        page_id: int,
        word_id: int,
        tf: int,
        positions: list[int] | None,
    ) -> None:
        with self.store.write_transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO forward_index (page_id, word_id, term_freq)
                VALUES (?, ?, ?)
                """,
                (page_id, word_id, tf),
            )
            if positions is not None:
                conn.execute(
                    "INSERT OR REPLACE INTO positions (page_id, word_id, offsets) VALUES (?, ?, ?)",
                    (page_id, word_id, json.dumps(positions)),
                )

    def flush_inverted(self) -> int:
        """
        Merge staged postings into the inverted index.

        Words are written in ascending id order, one transaction each.
        Blocks until every word has been written.

        Returns:
            Number of distinct words flushed
        """
        staged = self.staging.drain()
        word_ids = sorted(staged)
        total = len(word_ids)
        if not total:
            return 0

        futures = []
        for index, word_id in enumerate(word_ids, start=1):
            logger.debug("Merging word %d out of %d | WordID: %d", index, total, word_id)
            futures.append(
                self._executor.submit(self._write_postings, word_id, staged[word_id])
            )

        try:
            _join(futures)
        except Exception:
            # Put the batch back so a retry can flush it again
            for word_id, page_ids in staged.items():
                for page_id in page_ids:
                    self.staging.stage(word_id, page_id)
            raise

        logger.info("Flushed inverted index for %d words", total)
        return total

    def _write_postings(self, word_id: int, page_ids: set[int]) -> None:
        with self.store.write_transaction() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO inverted_index (word_id, page_id) VALUES (?, ?)",
                [(word_id, page_id) for page_id in sorted(page_ids)],
            )

    def drop_all(self) -> None:
        """Reset the whole index and discard anything staged."""
        self.staging.clear()
        self.store.drop_all()
