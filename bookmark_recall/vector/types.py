"""
Record types shared by the embedder, the semantic index and the resolver.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import numpy as np


@dataclass(frozen=True)
class BookmarkRecord:
    """A saved link as supplied by the bookmark source."""

    url: str
    """Opaque unique key within a collection (not checked for well-formedness)"""

    title: str
    """Bookmark title (required)"""

    description: str = ""
    """Optional free-text description, empty when absent"""


@dataclass(frozen=True)
class IndexEntry:
    """A bookmark with its embedding, as stored in the semantic index."""

    record: BookmarkRecord
    """The bookmark this entry was built from"""

    vector: np.ndarray
    """L2-normalized, read-only embedding vector"""

    version: int
    """Index-wide sequence number assigned at upsert time"""

    @property
    def url(self) -> str:
        return self.record.url


@dataclass(frozen=True)
class RankedResult:
    """Read-only projection of a search hit."""

    title: str
    url: str
    description: str
    score: float
    """Relevance in [0, 1]"""

    rank: int
    """1-based position in the result list"""

    @classmethod
    def from_entry(cls, entry: IndexEntry, score: float, rank: int) -> "RankedResult":
        return cls(
            title=entry.record.title,
            url=entry.record.url,
            description=entry.record.description,
            score=score,
            rank=rank,
        )


@dataclass
class SearchOutcome:
    """Result of resolving one query.

    ``summary`` and ``no_results_message`` are never both set, and a summary
    only accompanies a non-empty result list.
    """

    results: List[RankedResult] = field(default_factory=list)
    summary: Optional[str] = None
    no_results_message: Optional[str] = None

    def __post_init__(self):
        if self.summary is not None and self.no_results_message is not None:
            raise ValueError("summary and no_results_message are mutually exclusive")
        if self.summary is not None and not self.results:
            raise ValueError("summary requires at least one result")
