"""
bookmark_recall - semantic indexing and natural-language search over saved links.
"""

from .core.errors import (
    BookmarkRecallError,
    DimensionMismatchError,
    EmbedderUnavailableError,
    EmbeddingModelMismatchError,
    EmptyInputError,
    EmptyQueryError,
    InvalidSearchParameterError,
    SearchUnavailableError,
    SummarizerUnavailableError,
)
from .core.indexing import IndexingPipeline, IndexingReport
from .core.search_service import QueryResolver
from .vector.index import SemanticIndex
from .vector.types import BookmarkRecord, RankedResult, SearchOutcome

__version__ = "0.1.0"

__all__ = [
    'BookmarkRecallError',
    'DimensionMismatchError',
    'EmbedderUnavailableError',
    'EmbeddingModelMismatchError',
    'EmptyInputError',
    'EmptyQueryError',
    'InvalidSearchParameterError',
    'SearchUnavailableError',
    'SummarizerUnavailableError',
    'IndexingPipeline',
    'IndexingReport',
    'QueryResolver',
    'SemanticIndex',
    'BookmarkRecord',
    'RankedResult',
    'SearchOutcome',
]
