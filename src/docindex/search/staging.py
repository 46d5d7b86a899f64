"""
Posting Staging Buffer

Holds word id -> page ids seen during an ingestion session until the
Indexer flushes them into the inverted index.

The buffer is split into shards by word id, each with its own lock, so
concurrent documents only contend when they stage words of the same shard.
"""

import threading


class _Shard:
    __slots__ = ("lock", "postings")

    def __init__(self):
        self.lock = threading.Lock()
        self.postings: dict[int, set[int]] = {}


class StagingBuffer:
    """Sharded in-memory staging for inverted index updates."""

    def __init__(self, shards: int = 16):
        if shards < 1:
            raise ValueError("shards must be at least 1")
        self._shards = [_Shard() for _ in range(shards)]

    def _shard_for(self, word_id: int) -> _Shard:
        return self._shards[word_id % len(self._shards)]

    def stage(self, word_id: int, page_id: int) -> None:
        """Record that page_id contains word_id."""
        shard = self._shard_for(word_id)
        with shard.lock:
            shard.postings.setdefault(word_id, set()).add(page_id)

    def drain(self) -> dict[int, set[int]]:
        """Remove and return everything staged so far."""
        drained: dict[int, set[int]] = {}
        for shard in self._shards:
            with shard.lock:
                postings, shard.postings = shard.postings, {}
            drained.update(postings)
        return drained

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.postings = {}

    def __len__(self) -> int:
        """Number of distinct staged words."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.postings)
        return total
