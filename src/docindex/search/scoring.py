"""
Vector Space Scoring

Ranks documents by cosine similarity of tf-idf weighted term vectors.
"""

import math
from collections.abc import Iterable, Mapping

import numpy as np

from docindex.db.store import IndexStore


class VectorSpaceScorer:
    """
    tf-idf / cosine scoring implementation.

    Term weight in a document (and likewise in the query):
    w(t, d) = (tf(t, d) / max_tf(d)) * IDF(t)

    Where:
    - IDF(t) = ln(N / df)
    - N = total number of indexed documents
    - df = number of documents whose posting list contains t
    - max_tf(d) = highest term frequency in d, which discounts long documents

    score(q, d) = (q . d) / (|q| * |d|), 0.0 when either vector is zero.
    """

    def __init__(self, store: IndexStore):
        self.store = store

    @staticmethod
    def idf(total_docs: int, df: int) -> float:
        """Inverse document frequency, 0.0 for unseen terms."""
        if df <= 0 or total_docs <= 0:
            return 0.0
        # df can briefly exceed N while metadata writes lag the flush
        return max(math.log(total_docs / df), 0.0)

    def score_batch(
        self,
        candidates: Iterable[int],
        query_tf: Mapping[int, int],
    ) -> list[tuple[int, float]]:
        """
        Score every candidate page against the query.

        Args:
            candidates: Page ids to score
            query_tf: Word id -> frequency of the word in the query

        Returns:
            (page_id, cosine score) in candidate order
        """
        page_ids = list(candidates)
        if not page_ids or not query_tf:
            return [(page_id, 0.0) for page_id in page_ids]

        total_docs = self.store.document_count()
        forward = {page_id: self.store.forward_entry(page_id) for page_id in page_ids}

        vocabulary = set(query_tf)
        for entry in forward.values():
            vocabulary.update(entry)
        df_map = self.store.document_frequencies(vocabulary)
        idf_map = {w: self.idf(total_docs, df_map.get(w, 0)) for w in vocabulary}

        query_max = max(query_tf.values())
        query_weights = {
            w: (tf / query_max) * idf_map[w] for w, tf in query_tf.items()
        }
        query_norm = float(np.linalg.norm(list(query_weights.values())))

        results: list[tuple[int, float]] = []
        for page_id in page_ids:
            entry = forward[page_id]
            if query_norm == 0.0 or not entry:
                results.append((page_id, 0.0))
                continue

            max_tf = self.store.max_tf(page_id) or max(entry.values())
            words = list(entry)
            doc_vec = np.array(
                [(entry[w] / max_tf) * idf_map[w] for w in words], dtype=np.float64
            )
            query_vec = np.array(
                [query_weights.get(w, 0.0) for w in words], dtype=np.float64
            )

            doc_norm = float(np.linalg.norm(doc_vec))
            if doc_norm == 0.0:
                results.append((page_id, 0.0))
                continue

            score = float(np.dot(doc_vec, query_vec)) / (doc_norm * query_norm)
            results.append((page_id, score))

        return results
