"""
Approximate nearest-neighbor structure backed by a FAISS HNSW graph.

A structure is an immutable snapshot of the index taken at build time. The
semantic index swaps a new one in after each rebuild and re-scores its
candidates exactly, so stale graphs only affect recall.
"""

from typing import List, Sequence
import numpy as np

from .types import IndexEntry

DEFAULT_HNSW_M = 32
DEFAULT_EF_CONSTRUCTION = 100
DEFAULT_EF_SEARCH = 64

# Minimum recall@k of the HNSW path relative to exhaustive search
RECALL_TOLERANCE = 0.9


class FaissHNSWStructure:
    """HNSW graph over normalized vectors (inner product == cosine)."""

    def __init__(self, urls: List[str], index, dimension: int):
        self.urls = urls
        self.index = index
        self.dimension = dimension

    @classmethod
    def build(cls, entries: Sequence[IndexEntry], m: int = DEFAULT_HNSW_M,
              ef_construction: int = DEFAULT_EF_CONSTRUCTION,
              ef_search: int = DEFAULT_EF_SEARCH):
        """
        Build a structure from index entries.

        Args:
            entries: Snapshot of index entries (vectors already normalized)
            m: HNSW graph degree
            ef_construction: Candidate list size while building
            ef_search: Candidate list size while searching

        Returns:
            FaissHNSWStructure, or None when there are no entries
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        if not entries:
            return None

        matrix = np.vstack([entry.vector for entry in entries]).astype(np.float32)
        dimension = int(matrix.shape[1])

        index = faiss.IndexHNSWFlat(dimension, m, faiss.METRIC_INNER_PRODUCT)
        index.hnsw.efConstruction = ef_construction
        index.add(matrix)
        index.hnsw.efSearch = ef_search

        return cls(urls=[entry.url for entry in entries], index=index, dimension=dimension)

    def __len__(self) -> int:
        return len(self.urls)

    def search(self, query_vector: np.ndarray, k: int) -> List[str]:
        """Return URLs of up to k approximate nearest neighbors."""
        k = min(k, len(self.urls))
        if k <= 0:
            return []

        query_array = np.asarray(query_vector, dtype=np.float32).reshape(1, -1)
        _, indices = self.index.search(query_array, k)

        # FAISS pads with -1 when the graph yields fewer than k hits
        return [self.urls[i] for i in indices[0] if i >= 0]


def recall_at_k(index, query_vectors, k: int = 10) -> float:
    """
    Measure recall of the index's approximate path against exhaustive search.

    Args:
        index: SemanticIndex with an HNSW structure built
        query_vectors: Iterable of query vectors
        k: Result list length compared

    Returns:
        Mean fraction of exhaustive top-k URLs also returned by the approximate path
    """
    ratios = []
    for vector in query_vectors:
        exact = {entry.url for entry, _ in index.query(vector, k, 0.0, exhaustive=True)}
        if not exact:
            continue
        approx = {entry.url for entry, _ in index.query(vector, k, 0.0)}
        ratios.append(len(exact & approx) / len(exact))

    return float(np.mean(ratios)) if ratios else 1.0
