"""Document indexing and retrieval."""

from docindex.search.indexer import Indexer, build_document
from docindex.search.models import Bigram, Document, DocumentView, SearchResult
from docindex.search.scoring import VectorSpaceScorer
from docindex.search.searcher import SearchEngine, split_to_bigrams

__all__ = [
    "Indexer",
    "build_document",
    "Document",
    "Bigram",
    "DocumentView",
    "SearchResult",
    "SearchEngine",
    "split_to_bigrams",
    "VectorSpaceScorer",
]
