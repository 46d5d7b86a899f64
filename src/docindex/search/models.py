"""
Index Models

Document is the unit handed to the Indexer by the crawler/parser.
DocumentView and SearchResult are what the SearchEngine hands back.
"""

from collections import Counter
from dataclasses import dataclass

from pydantic import BaseModel, Field, NonNegativeInt, model_validator


class Document(BaseModel):
    """A parsed web document ready for indexing"""

    uri: str = Field(..., min_length=1, description="Document URL")
    title: str = Field(default="", description="Document title")
    terms: dict[str, NonNegativeInt] = Field(
        default_factory=dict,
        description="Term -> frequency within the document",
    )
    max_tf: int = Field(
        default=0,
        ge=0,
        description="Highest term frequency (derived from terms when 0)",
    )
    tokens: list[str] = Field(
        default_factory=list,
        description="Content terms in document order, used for phrase positions",
    )

    @model_validator(mode="after")
    def _derive_counts(self) -> "Document":
        if not self.terms and self.tokens:
            self.terms = dict(Counter(self.tokens))
        if self.max_tf == 0 and self.terms:
            self.max_tf = max(self.terms.values())
        return self

    def positions(self) -> dict[str, list[int]]:
        """Term -> ascending zero-based offsets of each occurrence in tokens."""
        pos_map: dict[str, list[int]] = {}
        for i, token in enumerate(self.tokens):
            pos_map.setdefault(token, []).append(i)
        return pos_map

    def metadata_json(self) -> str:
        """Serialized metadata record stored per page."""
        return self.model_dump_json(include={"uri", "title", "max_tf"})


@dataclass(frozen=True)
class Bigram:
    """Two adjacent query terms, in query order."""

    first: str
    second: str


@dataclass
class DocumentView:
    """A single ranked result."""

    page_id: int
    url: str
    title: str
    score: float


@dataclass
class SearchResult:
    """Ranked results with paging metadata."""

    query: str
    total: int
    hits: list[DocumentView]
    page: int
    per_page: int
    last_page: int
