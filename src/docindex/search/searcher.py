"""
Retrieval Engine

Answers queries against an index built by the Indexer.
Supports boolean AND filtering, exact phrase search, and ranked
vector-space retrieval. Read-only: never writes to the store.
"""

import re
from collections import Counter
from collections.abc import Sequence

from docindex.analyzer import analyzer
from docindex.core.infrastructure_config import settings
from docindex.db.store import IdMapping, IndexStore
from docindex.search.models import Bigram, DocumentView, SearchResult
from docindex.search.postings import intersect_all, intersect_sorted
from docindex.search.scoring import VectorSpaceScorer

_PHRASE_RE = re.compile(r'"([^"]+)"')


def split_to_bigrams(terms: Sequence[str]) -> list[Bigram]:
    """Adjacent term pairs in query order; n terms give n - 1 bigrams."""
    return [Bigram(terms[i], terms[i + 1]) for i in range(len(terms) - 1)]


class SearchEngine:
    """
    Query processor over an IndexStore.

    Query modes:
    - boolean_filter: pages containing every term
    - search_phrase: pages containing the terms as one consecutive phrase
    - retrieve_vspace: pages ranked by tf-idf cosine similarity
    - search: ranked retrieval where "quoted" parts must match as phrases
    """

    def __init__(self, store: IndexStore, scorer: VectorSpaceScorer | None = None):
        self.store = store
        self.scorer = scorer or VectorSpaceScorer(store)

    # Boolean and phrase matching

    def boolean_filter(self, terms: Sequence[str]) -> list[int]:
        """
        Find pages containing ALL terms, as ascending page ids.

        Posting lists are intersected smallest first; any unknown term
        makes the result empty.
        """
        if not terms:
            return []

        postings = []
        for term in terms:
            word_id = self.store.lookup_id(term, IdMapping.TERM)
            if word_id is None:
                return []
            posting = self.store.posting_list(word_id)
            if not posting:
                return []
            postings.append(posting)

        if len(postings) == 1:
            return postings[0]
        return intersect_all(postings)

    def has_phrase(self, bigram: Bigram) -> list[int]:
        """Pages where bigram.second occurs directly after bigram.first."""
        matches = []
        for page_id in self.boolean_filter([bigram.first, bigram.second]):
            first = self.store.position_indices(page_id, bigram.first)
            # Shift so that an adjacent pair lands on the same offset
            second = [pos - 1 for pos in self.store.position_indices(page_id, bigram.second)]
            if intersect_sorted(first, second):
                matches.append(page_id)
        return matches

    def search_phrase(self, terms: Sequence[str]) -> list[int]:
        """
        Treat terms as one phrase and return the pages containing it.

        The phrase is split into bigrams; pages must contain every bigram.
        Term order matters: ["a", "b"] and ["b", "a"] are different phrases.
        """
        if len(terms) <= 1:
            return self.boolean_filter(terms)

        pages_per_bigram = [self.has_phrase(bigram) for bigram in split_to_bigrams(terms)]
        return intersect_all(pages_per_bigram)

    # Ranked retrieval

    def retrieve_vspace(
        self,
        query: str | Sequence[str],
        limit: int | None = None,
        page: int = 1,
    ) -> SearchResult:
        """
        Rank pages containing any query term by cosine similarity.

        Args:
            query: Free text (tokenized with the analyzer) or a list of terms
            limit: Results per page (defaults to SEARCH_RESULT_LIMIT)
            page: Page number (1-indexed)

        Returns:
            SearchResult ordered by score, ties broken by ascending page id
        """
        if isinstance(query, str):
            query_text = query
            terms = analyzer.tokenize(query)
        else:
            query_text = " ".join(query)
            terms = list(query)
        return self._retrieve(query_text, terms, limit, page)

    def search(self, query: str, limit: int | None = None, page: int = 1) -> SearchResult:
        """
        Ranked retrieval where each "quoted phrase" must appear verbatim.

        Unquoted queries behave exactly like retrieve_vspace().
        """
        terms = analyzer.tokenize(query)
        allowed: set[int] | None = None
        for phrase in _PHRASE_RE.findall(query):
            phrase_terms = analyzer.tokenize(phrase)
            if not phrase_terms:
                continue
            matches = set(self.search_phrase(phrase_terms))
            allowed = matches if allowed is None else allowed & matches
        return self._retrieve(query, terms, limit, page, allowed)

    def _retrieve(
        self,
        query_text: str,
        terms: list[str],
        limit: int | None,
        page: int,
        allowed: set[int] | None = None,
    ) -> SearchResult:
        limit = limit or settings.SEARCH_RESULT_LIMIT
        page = max(page, 1)

        query_tf: Counter[int] = Counter()
        for term in terms:
            word_id = self.store.lookup_id(term, IdMapping.TERM)
            if word_id is not None:
                query_tf[word_id] += 1
        if not query_tf:
            return self._empty_result(query_text, limit)

        # Candidate documents (OR logic)
        candidates: set[int] = set()
        for word_id in query_tf:
            candidates.update(self.store.posting_list(word_id))
        if allowed is not None:
            candidates &= allowed
        if not candidates:
            return self._empty_result(query_text, limit)

        scored = self.scorer.score_batch(sorted(candidates), query_tf)
        scored.sort(key=lambda item: (-item[1], item[0]))

        total = len(scored)
        offset = (page - 1) * limit
        hits = [
            self._document_view(page_id, score)
            for page_id, score in scored[offset : offset + limit]
        ]
        last_page = max((total + limit - 1) // limit, 1)

        return SearchResult(
            query=query_text,
            total=total,
            hits=hits,
            page=page,
            per_page=limit,
            last_page=last_page,
        )

    def _document_view(self, page_id: int, score: float) -> DocumentView:
        info = self.store.page_info(page_id) or {}
        url = info.get("uri") or self.store.page_url(page_id) or ""
        return DocumentView(
            page_id=page_id,
            url=url,
            title=info.get("title", ""),
            score=score,
        )

    def _empty_result(self, query: str, limit: int) -> SearchResult:
        """Return empty search result."""
        return SearchResult(
            query=query,
            total=0,
            hits=[],
            page=1,
            per_page=limit,
            last_page=1,
        )
