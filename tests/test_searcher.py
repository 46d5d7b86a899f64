"""
Tests for the Retrieval Engine
"""

import math

import pytest

from docindex.search.models import Bigram, Document
from docindex.search.searcher import split_to_bigrams


@pytest.fixture
def quick_fox_index(indexer):
    """Doc A and Doc B from the basic scenario, flushed."""
    a = indexer.update_or_add_page(
        Document(uri="u1", title="Doc A", terms={"quick": 1, "fox": 2}, max_tf=2)
    )
    b = indexer.update_or_add_page(
        Document(uri="u2", title="Doc B", terms={"quick": 3, "brown": 1}, max_tf=3)
    )
    indexer.flush_inverted()
    return a, b


@pytest.fixture
def phrase_index(indexer):
    """One page with the literal phrase, one with the same words apart."""
    exact = indexer.update_or_add_page(
        Document(uri="u3", title="Exact", tokens=["quick", "brown", "fox"])
    )
    scattered = indexer.update_or_add_page(
        Document(
            uri="u4",
            title="Scattered",
            tokens=["quick", "red", "brown", "lazy", "fox"],
        )
    )
    indexer.flush_inverted()
    return exact, scattered


class TestBooleanFilter:
    """Tests for AND filtering."""

    def test_single_term(self, engine, quick_fox_index):
        """A single term returns its posting list unchanged."""
        a, b = quick_fox_index
        assert engine.boolean_filter(["quick"]) == [a, b]

    def test_intersection(self, engine, quick_fox_index):
        a, _ = quick_fox_index
        assert engine.boolean_filter(["quick", "fox"]) == [a]

    def test_term_order_irrelevant(self, engine, quick_fox_index):
        """Supplying terms in a different order gives the same result."""
        assert engine.boolean_filter(["fox", "quick"]) == engine.boolean_filter(
            ["quick", "fox"]
        )

    def test_disjoint_terms(self, engine, quick_fox_index):
        assert engine.boolean_filter(["fox", "brown"]) == []

    def test_unknown_term(self, engine, quick_fox_index):
        """A term that was never indexed matches nothing."""
        assert engine.boolean_filter(["quick", "zebra"]) == []

    def test_empty_query(self, engine, quick_fox_index):
        assert engine.boolean_filter([]) == []


class TestPhraseSearch:
    """Tests for bigram phrase matching."""

    def test_split_to_bigrams(self):
        assert split_to_bigrams(["a", "b", "c"]) == [Bigram("a", "b"), Bigram("b", "c")]

    def test_split_short_queries(self):
        assert split_to_bigrams(["a"]) == []
        assert split_to_bigrams([]) == []

    def test_has_phrase(self, engine, phrase_index):
        exact, _ = phrase_index
        assert engine.has_phrase(Bigram("quick", "brown")) == [exact]

    def test_three_term_phrase(self, engine, phrase_index):
        """Only the page with the terms at consecutive offsets matches."""
        exact, _ = phrase_index
        assert engine.search_phrase(["quick", "brown", "fox"]) == [exact]

    def test_phrase_is_order_sensitive(self, engine, phrase_index):
        """'quick brown' and 'brown quick' are different phrases."""
        exact, _ = phrase_index
        assert exact in engine.search_phrase(["quick", "brown"])
        assert exact not in engine.search_phrase(["brown", "quick"])

    def test_single_term_equals_boolean(self, engine, phrase_index):
        assert engine.search_phrase(["fox"]) == engine.boolean_filter(["fox"])

    def test_empty_phrase(self, engine, phrase_index):
        assert engine.search_phrase([]) == []

    def test_repeated_term_phrase(self, indexer, engine):
        """A bigram of one term matches back-to-back occurrences."""
        page_id = indexer.update_or_add_page(
            Document(uri="u5", tokens=["very", "very", "good"])
        )
        indexer.update_or_add_page(Document(uri="u6", tokens=["very", "good", "very"]))
        indexer.flush_inverted()

        assert engine.search_phrase(["very", "very"]) == [page_id]


class TestVectorSpaceRetrieval:
    """Tests for ranked retrieval."""

    @pytest.fixture
    def language_index(self, indexer):
        d1 = indexer.update_or_add_page(
            Document(uri="http://example.com/python", title="Python", terms={"python": 3, "snake": 1})
        )
        d2 = indexer.update_or_add_page(
            Document(uri="http://example.com/jvm", title="JVM", terms={"python": 1, "java": 3})
        )
        d3 = indexer.update_or_add_page(
            Document(uri="http://example.com/coffee", title="Coffee", terms={"java": 2, "coffee": 2})
        )
        indexer.flush_inverted()
        return d1, d2, d3

    def test_ranking_order(self, engine, language_index):
        """The page where the term dominates should rank first."""
        d1, d2, _ = language_index
        result = engine.retrieve_vspace("python")

        assert [hit.page_id for hit in result.hits] == [d1, d2]
        assert result.hits[0].title == "Python"
        assert result.hits[0].url == "http://example.com/python"
        assert result.hits[0].score > result.hits[1].score

    def test_cosine_score(self, engine, language_index):
        """Scores follow tf/max_tf * ln(N/df) weighting and cosine similarity."""
        idf_python = math.log(3 / 2)
        idf_snake = math.log(3 / 1)
        w_python = 1.0 * idf_python
        w_snake = (1 / 3) * idf_snake
        expected = w_python / math.sqrt(w_python**2 + w_snake**2)

        result = engine.retrieve_vspace(["python"])
        assert result.hits[0].score == pytest.approx(expected)

    def test_single_term_exact_match_scores_one(self, engine, quick_fox_index):
        a, _ = quick_fox_index
        result = engine.retrieve_vspace(["fox"])

        assert [hit.page_id for hit in result.hits] == [a]
        assert result.hits[0].score == pytest.approx(1.0)

    def test_term_in_every_document_scores_zero(self, engine, quick_fox_index):
        """With idf 0 every candidate is still returned, in page id order."""
        a, b = quick_fox_index
        result = engine.retrieve_vspace(["quick"])

        assert result.total == 2
        assert [hit.page_id for hit in result.hits] == [a, b]
        assert [hit.score for hit in result.hits] == [0.0, 0.0]

    def test_zero_scores_rank_after_positive(self, engine, quick_fox_index):
        a, b = quick_fox_index
        result = engine.retrieve_vspace(["quick", "brown"])

        assert [hit.page_id for hit in result.hits] == [b, a]
        assert result.hits[0].score > 0.0
        assert result.hits[1].score == 0.0

    def test_ties_broken_by_page_id(self, indexer, engine):
        first = indexer.update_or_add_page(Document(uri="u-b", terms={"apple": 1}))
        second = indexer.update_or_add_page(Document(uri="u-a", terms={"apple": 1}))
        indexer.update_or_add_page(Document(uri="u-c", terms={"pear": 1}))
        indexer.flush_inverted()

        result = engine.retrieve_vspace("apple")
        assert [hit.page_id for hit in result.hits] == [first, second]
        assert result.hits[0].score == result.hits[1].score

    def test_pagination(self, indexer, engine):
        for i in range(5):
            indexer.update_or_add_page(Document(uri=f"u{i}", terms={"apple": 1}))
        indexer.update_or_add_page(Document(uri="other", terms={"pear": 1}))
        indexer.flush_inverted()

        result = engine.retrieve_vspace("apple", limit=2, page=3)
        assert result.total == 5
        assert result.last_page == 3
        assert result.per_page == 2
        assert len(result.hits) == 1

    def test_unknown_query(self, engine, language_index):
        result = engine.retrieve_vspace("zebra")
        assert result.total == 0
        assert result.last_page == 1

    def test_empty_query(self, engine, language_index):
        result = engine.retrieve_vspace("")
        assert result.total == 0
        assert result.hits == []


class TestQuotedSearch:
    """Tests for ranked search with quoted phrases."""

    def test_quoted_phrase_restricts_results(self, indexer, engine, phrase_index):
        indexer.update_or_add_page(Document(uri="u7", tokens=["slow", "turtle"]))
        indexer.flush_inverted()
        exact, scattered = phrase_index

        unquoted = engine.search("quick brown")
        quoted = engine.search('"quick brown"')

        assert {hit.page_id for hit in unquoted.hits} == {exact, scattered}
        assert [hit.page_id for hit in quoted.hits] == [exact]

    def test_unquoted_matches_retrieve_vspace(self, engine, phrase_index):
        expected = engine.retrieve_vspace("red fox")
        assert expected.total == 2
        assert engine.search("red fox") == expected
