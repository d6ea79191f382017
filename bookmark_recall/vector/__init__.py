"""
Vector layer - embedders, the semantic index and its approximate structure.
"""

from .index import IVectorStore, SemanticIndex, cosine_to_score
from .faiss_store import FaissHNSWStructure, recall_at_k
from .types import BookmarkRecord, IndexEntry, RankedResult, SearchOutcome
from .embeddings import (
    IEmbeddingProvider,
    HashingEmbedding,
    SentenceTransformerEmbedding,
    OllamaEmbedding,
    bookmark_text,
)

__all__ = [
    'IVectorStore',
    'SemanticIndex',
    'cosine_to_score',
    'FaissHNSWStructure',
    'recall_at_k',
    'BookmarkRecord',
    'IndexEntry',
    'RankedResult',
    'SearchOutcome',
    'IEmbeddingProvider',
    'HashingEmbedding',
    'SentenceTransformerEmbedding',
    'OllamaEmbedding',
    'bookmark_text',
]
