"""Test fixtures for docindex tests."""

import os

# Set ENVIRONMENT before importing any modules that use infrastructure_config
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402

from docindex.db.store import IndexStore  # noqa: E402
from docindex.search.indexer import Indexer  # noqa: E402
from docindex.search.searcher import SearchEngine  # noqa: E402


@pytest.fixture
def test_db_path(tmp_path):
    """Provide a temporary database path."""
    db_file = tmp_path / "test_index.db"
    return str(db_file)


@pytest.fixture
def store(test_db_path):
    """An empty, initialized index store."""
    return IndexStore.open(test_db_path)


@pytest.fixture
def indexer(store):
    """Indexer writing to the temporary store."""
    idx = Indexer(store, workers=4, shards=4)
    yield idx
    idx.close()


@pytest.fixture
def engine(store):
    """SearchEngine reading the temporary store."""
    return SearchEngine(store)
