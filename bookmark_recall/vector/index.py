"""
Semantic index - bookmark URL -> IndexEntry, with cosine nearest-neighbor query.

Writers replace whole entries under a short lock; readers take a snapshot and
score it without holding the lock, so a search sees either the old or the new
version of an entry, never a mix.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set, Tuple
import os
import pickle
import tempfile
import threading
import time

import numpy as np

from ..core.errors import (
    DimensionMismatchError,
    EmbeddingModelMismatchError,
    InputValidationError,
    InvalidSearchParameterError,
    StaleEntryError,
)
from ..util.logging import logger
from .types import BookmarkRecord, IndexEntry

SCORE_MODES = ("affine", "clamp")

PERSIST_FORMAT_VERSION = 1

ScoredEntry = Tuple[IndexEntry, float]


def cosine_to_score(cosine, mode: str = "affine"):
    """Map cosine similarity in [-1, 1] to a relevance score in [0, 1].

    ``affine`` rescales linearly, ``clamp`` keeps positive cosines as-is and
    floors the rest at 0. Works on scalars and numpy arrays.
    """
    cosine = np.clip(cosine, -1.0, 1.0)
    if mode == "affine":
        return (cosine + 1.0) / 2.0
    if mode == "clamp":
        return np.clip(cosine, 0.0, 1.0)
    raise ValueError(f"Unknown score mode: {mode}")


def normalize_vector(vector) -> np.ndarray:
    """Return a read-only, L2-normalized float64 copy of ``vector``."""
    array = np.array(vector, dtype=np.float64)
    if array.ndim != 1 or array.size == 0:
        raise InputValidationError(f"Expected a non-empty 1-D vector, got shape {array.shape}")
    if not np.all(np.isfinite(array)):
        raise InputValidationError("Vector contains NaN or infinite values")

    norm = np.linalg.norm(array)
    if norm == 0:
        raise InputValidationError("Cannot use a zero vector for cosine similarity")

    array /= norm
    array.setflags(write=False)
    return array


def validate_query_params(k: int, min_score: float) -> None:
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise InvalidSearchParameterError(f"k must be a positive integer: {k!r}")
    if not 0.0 <= min_score <= 1.0:
        raise InvalidSearchParameterError(f"min_score must be within [0, 1]: {min_score!r}")


class IVectorStore(ABC):
    """Abstract interface for bookmark vector storage."""

    @abstractmethod
    def upsert(self, record: BookmarkRecord, vector, expected_version: Optional[int] = None) -> int:
        """Insert or replace the entry for ``record.url``; return its new version."""
        pass

    @abstractmethod
    def remove(self, url: str) -> bool:
        """Remove an entry; True if it existed."""
        pass

    @abstractmethod
    def query(self, vector, k: int, min_score: float = 0.0) -> List[ScoredEntry]:
        """Return up to k entries scoring >= min_score, best first."""
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def dimension(self) -> Optional[int]:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass


class SemanticIndex(IVectorStore):
    """In-memory semantic index with exhaustive cosine search.

    Optionally keeps a FAISS HNSW structure for large collections; see
    ``vector.faiss_store``. Approximate candidates are always re-scored
    exactly against current vectors, so the ANN path changes recall, never
    scores.
    """

    def __init__(self, score_mode: str = "affine", ann_enabled: bool = False,
                 ann_min_entries: int = 2000, ann_params: Optional[Dict[str, int]] = None,
                 ann_oversample: int = 3):
        if score_mode not in SCORE_MODES:
            raise ValueError(f"score_mode must be one of {SCORE_MODES}: {score_mode}")

        self.score_mode = score_mode
        self.ann_enabled = ann_enabled
        self.ann_min_entries = ann_min_entries
        self.ann_params = dict(ann_params or {})
        self.ann_oversample = max(1, ann_oversample)

        self._entries: Dict[str, IndexEntry] = {}
        self._lock = threading.Lock()
        self._sequence = 0
        self._dimension: Optional[int] = None
        self._model_version: Optional[str] = None
        self._generation = 0
        self._matrix_cache = None  # (generation, entries, matrix)

        self._ann = None
        self._dirty: Set[str] = set()
        self._dirty_building: Set[str] = set()
        self._rebuild_lock = threading.Lock()
        self._rebuild_thread: Optional[threading.Thread] = None

    # -- write path ---------------------------------------------------------

    def upsert(self, record: BookmarkRecord, vector, expected_version: Optional[int] = None) -> int:
        """Insert or replace the entry for ``record.url``.

        ``expected_version`` makes the write conditional: pass the version
        previously read (or 0 for "must not exist yet"); a mismatch raises
        StaleEntryError and leaves the entry untouched.
        """
        array = normalize_vector(vector)

        with self._lock:
            if self._dimension is not None and array.size != self._dimension:
                raise DimensionMismatchError(self._dimension, array.size)

            current = self._entries.get(record.url)
            current_version = current.version if current else 0
            if expected_version is not None and expected_version != current_version:
                raise StaleEntryError(record.url, expected_version, current_version)

            self._sequence += 1
            entry = IndexEntry(record=record, vector=array, version=self._sequence)
            self._entries[record.url] = entry
            self._dimension = array.size
            self._generation += 1
            if self.ann_enabled:
                self._dirty.add(record.url)

        logger.log_index_operation("upsert", record.url, {"version": entry.version})
        return entry.version

    def remove(self, url: str) -> bool:
        """Remove an entry; True if it existed."""
        with self._lock:
            entry = self._entries.pop(url, None)
            if entry is None:
                return False
            self._generation += 1
            if not self._entries:
                self._reset_locked()

        logger.log_index_operation("remove", url, {"version": entry.version})
        return True

    def remove_many(self, urls: Iterable[str]) -> int:
        """Remove several entries; return how many existed."""
        return sum(1 for url in list(urls) if self.remove(url))

    def clear(self) -> None:
        """Clear all records and forget the established dimension."""
        with self._lock:
            self._entries.clear()
            self._generation += 1
            self._reset_locked()

    def bind_model(self, model_version: str) -> None:
        """Tie the index to the embedding model that writes into it.

        An empty (or never bound) index adopts ``model_version``; otherwise a
        different model raises EmbeddingModelMismatchError.
        """
        with self._lock:
            if self._entries and self._model_version is not None:
                if model_version != self._model_version:
                    raise EmbeddingModelMismatchError(self._model_version, model_version)
                return
            self._model_version = model_version

    def _reset_locked(self) -> None:
        self._dimension = None
        self._model_version = None
        self._matrix_cache = None
        self._ann = None
        self._dirty = set()
        self._dirty_building = set()

    # -- read path ----------------------------------------------------------

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return url in self._entries

    def dimension(self) -> Optional[int]:
        """Established vector dimension, or None while the index is empty."""
        return self._dimension

    def model_version(self) -> Optional[str]:
        """Embedding model the entries were built with, or None if unbound."""
        return self._model_version

    def check_model(self, model_version: str) -> None:
        """Raise EmbeddingModelMismatchError if ``model_version`` cannot query this index."""
        bound = self._model_version
        if self._entries and bound is not None and model_version != bound:
            raise EmbeddingModelMismatchError(bound, model_version)

    def get(self, url: str) -> Optional[IndexEntry]:
        return self._entries.get(url)

    def urls(self) -> Set[str]:
        with self._lock:
            return set(self._entries)

    def entries(self) -> List[IndexEntry]:
        with self._lock:
            return list(self._entries.values())

    def _snapshot_matrix(self):
        with self._lock:
            cache = self._matrix_cache
            if cache is not None and cache[0] == self._generation:
                return cache[1], cache[2]
            generation = self._generation
            entries = list(self._entries.values())

        if not entries:
            return entries, None

        matrix = np.vstack([entry.vector for entry in entries])
        self._matrix_cache = (generation, entries, matrix)
        return entries, matrix

    def _use_ann(self) -> bool:
        ann = self._ann
        return (
            self.ann_enabled
            and ann is not None
            and ann.dimension == self._dimension
            and len(self._entries) >= self.ann_min_entries
        )

    def query(self, vector, k: int, min_score: float = 0.0, exhaustive: bool = False) -> List[ScoredEntry]:
        """Return up to ``k`` (entry, score) pairs with score >= ``min_score``.

        Sorted by descending score, ties broken by ascending URL. An empty
        index yields an empty list.
        """
        validate_query_params(k, min_score)

        if not self._entries:
            return []

        query_vector = normalize_vector(vector)
        dimension = self._dimension
        if dimension is not None and query_vector.size != dimension:
            raise DimensionMismatchError(dimension, query_vector.size)

        if not exhaustive and self._use_ann():
            candidates = self._ann_candidates(query_vector, k)
            if not candidates:
                return []
            matrix = np.vstack([entry.vector for entry in candidates])
        else:
            candidates, matrix = self._snapshot_matrix()
            if matrix is None:
                return []

        scores = cosine_to_score(matrix @ query_vector, self.score_mode)

        hits = [
            (entry, float(score))
            for entry, score in zip(candidates, scores)
            if score >= min_score
        ]
        hits.sort(key=lambda hit: (-hit[1], hit[0].url))
        return hits[:k]

    def _ann_candidates(self, query_vector: np.ndarray, k: int) -> List[IndexEntry]:
        ann = self._ann
        with self._lock:
            changed = self._dirty | self._dirty_building

        urls = set(ann.search(query_vector, k * self.ann_oversample))
        urls.update(changed)

        candidates = []
        for url in urls:
            entry = self._entries.get(url)
            if entry is not None:
                candidates.append(entry)
        return candidates

    # -- approximate structure ----------------------------------------------

    def needs_ann(self) -> bool:
        return self.ann_enabled and len(self._entries) >= self.ann_min_entries

    def rebuild_ann(self):
        """Build a fresh HNSW structure from the current entries and swap it in.

        Queries keep using the previous structure until the swap.
        """
        from .faiss_store import FaissHNSWStructure

        with self._rebuild_lock:
            with self._lock:
                snapshot = list(self._entries.values())
                self._dirty_building |= self._dirty
                self._dirty = set()

            start_time = time.time()
            try:
                structure = FaissHNSWStructure.build(snapshot, **self.ann_params)
            except Exception as e:
                with self._lock:
                    self._dirty |= self._dirty_building
                    self._dirty_building = set()
                logger.log_ann_rebuild(len(snapshot), start_time, time.time(), status="failed",
                                       details={"error": str(e)})
                raise

            with self._lock:
                self._ann = structure
                self._dirty_building = set()

            logger.log_ann_rebuild(len(snapshot), start_time, time.time())
            return structure

    def schedule_rebuild(self) -> Optional[threading.Thread]:
        """Rebuild the HNSW structure on a background thread.

        Returns the running thread, or None when ANN is disabled or the index
        is below ``ann_min_entries``. If a rebuild is already in flight it is
        returned instead of starting another one.
        """
        if not self.needs_ann():
            return None

        thread = self._rebuild_thread
        if thread is not None and thread.is_alive():
            return thread

        thread = threading.Thread(target=self._rebuild_worker, name="ann-rebuild", daemon=True)
        self._rebuild_thread = thread
        thread.start()
        return thread

    def _rebuild_worker(self) -> None:
        try:
            self.rebuild_ann()
        except Exception as e:
            # Already logged with timing; queries fall back to the previous structure
            logger.error(f"Background ANN rebuild failed: {e}")

    # -- persistence --------------------------------------------------------

    def save(self, path: str) -> None:
        """Persist entries to ``path`` atomically (temp file + rename)."""
        with self._lock:
            state = {
                "format": PERSIST_FORMAT_VERSION,
                "score_mode": self.score_mode,
                "dimension": self._dimension,
                "model_version": self._model_version,
                "sequence": self._sequence,
                "entries": [
                    (entry.record.url, entry.record.title, entry.record.description,
                     np.asarray(entry.vector), entry.version)
                    for entry in self._entries.values()
                ],
            }

        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                pickle.dump(state, f)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.log_operation("index.save", "success", {"path": path, "entries": len(state["entries"])})

    @classmethod
    def load(cls, path: str, **kwargs) -> "SemanticIndex":
        """Load an index saved with ``save``. Extra kwargs go to the constructor."""
        with open(path, "rb") as f:
            state = pickle.load(f)

        if state.get("format") != PERSIST_FORMAT_VERSION:
            raise ValueError(f"Unsupported index file format: {state.get('format')!r}")

        kwargs.setdefault("score_mode", state.get("score_mode", "affine"))
        index = cls(**kwargs)
        for url, title, description, vector, version in state["entries"]:
            record = BookmarkRecord(url=url, title=title, description=description)
            index._entries[url] = IndexEntry(record=record, vector=normalize_vector(vector), version=version)

        index._dimension = state["dimension"] if index._entries else None
        index._model_version = state.get("model_version") if index._entries else None
        index._sequence = state["sequence"]
        index._generation = 1

        logger.log_operation("index.load", "success", {
            "path": path,
            "entries": len(index._entries),
            "model_version": index._model_version,
        })
        return index
