"""
Semantic index tests - upsert/remove/query contract, ordering, dimensions, persistence.
"""

import threading

import numpy as np
import pytest

from bookmark_recall.core.errors import (
    DimensionMismatchError,
    EmbeddingModelMismatchError,
    InputValidationError,
    InvalidSearchParameterError,
    StaleEntryError,
)
from bookmark_recall.vector.index import IVectorStore, SemanticIndex, cosine_to_score
from bookmark_recall.vector.types import BookmarkRecord


def record(url, title="title", description=""):
    return BookmarkRecord(url=url, title=title, description=description)


def test_vector_store_interface():
    """Test that SemanticIndex implements the IVectorStore interface."""
    assert isinstance(SemanticIndex(), IVectorStore)


def test_upsert_then_query_same_vector_scores_one():
    """An entry queried with its own vector comes back first with score 1.0."""
    index = SemanticIndex()
    index.upsert(record("https://a.example"), [0.3, 0.4, 0.5])
    index.upsert(record("https://b.example"), [0.5, -0.4, 0.1])

    hits = index.query([0.3, 0.4, 0.5], k=2, min_score=0.0)

    assert hits[0][0].url == "https://a.example"
    assert hits[0][1] == pytest.approx(1.0)


def test_upsert_versions_increase():
    """Each write gets a new, larger sequence number; re-upserts replace."""
    index = SemanticIndex()
    v1 = index.upsert(record("a"), [1.0, 0.0])
    v2 = index.upsert(record("b"), [0.0, 1.0])
    v3 = index.upsert(record("a", title="renamed"), [1.0, 1.0])

    assert v1 < v2 < v3
    assert index.size() == 2
    assert index.get("a").version == v3
    assert index.get("a").record.title == "renamed"


def test_search_similarity_order():
    """Test that query returns results ordered by similarity."""
    index = SemanticIndex()
    index.upsert(record("a"), [1.0, 0.0])
    index.upsert(record("b"), [0.0, 1.0])
    index.upsert(record("c"), [1.0, 1.0])

    hits = index.query([1.0, 0.1], k=3)

    assert [entry.url for entry, _ in hits] == ["a", "c", "b"]
    scores = [score for _, score in hits]
    assert scores == sorted(scores, reverse=True)


def test_ties_broken_by_url():
    """Identical scores are ordered by ascending URL."""
    index = SemanticIndex()
    for url in ["https://z.example", "https://m.example", "https://a.example"]:
        index.upsert(record(url), [0.0, 1.0])

    hits = index.query([0.0, 1.0], k=3)

    assert [entry.url for entry, _ in hits] == [
        "https://a.example", "https://m.example", "https://z.example"
    ]


def test_query_respects_k_and_min_score():
    """Never more than k results, and every score clears min_score."""
    rng = np.random.default_rng(7)
    index = SemanticIndex()
    for i in range(50):
        index.upsert(record(f"url-{i:02d}"), rng.normal(size=16))

    query = rng.normal(size=16)
    assert len(index.query(query, k=5)) == 5

    hits = index.query(query, k=50, min_score=0.6)
    assert len(hits) <= 50
    assert all(score >= 0.6 for _, score in hits)


def test_empty_index_returns_empty_list():
    assert SemanticIndex().query([1.0, 0.0], k=3) == []


@pytest.mark.parametrize("k", [0, -1])
def test_invalid_k(k):
    """k <= 0 is an error, even against an empty index."""
    with pytest.raises(InvalidSearchParameterError):
        SemanticIndex().query([1.0, 0.0], k=k)


@pytest.mark.parametrize("min_score", [-0.1, 1.5])
def test_invalid_min_score(min_score):
    with pytest.raises(InvalidSearchParameterError):
        SemanticIndex().query([1.0, 0.0], k=1, min_score=min_score)


def test_dimension_mismatch_on_upsert():
    """The index refuses vectors of a different dimension and stays unchanged."""
    index = SemanticIndex()
    index.upsert(record("a"), [1.0, 0.0, 0.0])

    with pytest.raises(DimensionMismatchError) as exc_info:
        index.upsert(record("b"), [1.0, 0.0])

    assert exc_info.value.expected == 3
    assert exc_info.value.actual == 2
    assert index.size() == 1
    assert "b" not in index


def test_dimension_mismatch_on_query():
    index = SemanticIndex()
    index.upsert(record("a"), [1.0, 0.0, 0.0])

    with pytest.raises(DimensionMismatchError):
        index.query([1.0, 0.0], k=1)


def test_dimension_unset_when_empty():
    """Dimension is established by the first vector and cleared when the index empties."""
    index = SemanticIndex()
    assert index.dimension() is None

    index.upsert(record("a"), [1.0, 0.0])
    assert index.dimension() == 2

    assert index.remove("a") is True
    assert index.dimension() is None

    index.upsert(record("a"), [1.0, 0.0, 0.0])
    assert index.dimension() == 3


def test_remove_record():
    """remove() reports whether an entry existed."""
    index = SemanticIndex()
    index.upsert(record("delete_test"), [1.0, 0.0])
    index.upsert(record("keep"), [0.0, 1.0])

    assert index.remove("delete_test") is True
    assert index.remove("delete_test") is False
    assert [entry.url for entry, _ in index.query([1.0, 0.0], k=5)] == ["keep"]


def test_clear_store():
    """Test clearing all records from the store."""
    index = SemanticIndex()
    index.upsert(record("a"), [1.0, 0.0])
    index.clear()

    assert index.size() == 0
    assert index.dimension() is None
    assert index.query([1.0, 0.0], k=1) == []


def test_zero_vector_rejected():
    """A zero vector has no direction and would corrupt cosine scores."""
    with pytest.raises(InputValidationError):
        SemanticIndex().upsert(record("a"), [0.0, 0.0])


def test_conditional_upsert_detects_stale_writer():
    """A write based on an outdated version is refused."""
    index = SemanticIndex()
    first = index.upsert(record("a"), [1.0, 0.0], expected_version=0)
    index.upsert(record("a", title="newer"), [0.0, 1.0])

    with pytest.raises(StaleEntryError):
        index.upsert(record("a", title="stale"), [1.0, 1.0], expected_version=first)

    assert index.get("a").record.title == "newer"


def test_stored_vectors_are_read_only():
    """Entries are replaced whole, never modified in place."""
    index = SemanticIndex()
    index.upsert(record("a"), [1.0, 0.0])

    with pytest.raises(ValueError):
        index.get("a").vector[0] = 5.0


def test_score_modes():
    """affine maps [-1, 1] linearly; clamp floors negative cosines at 0."""
    assert cosine_to_score(1.0, "affine") == pytest.approx(1.0)
    assert cosine_to_score(0.0, "affine") == pytest.approx(0.5)
    assert cosine_to_score(-1.0, "affine") == pytest.approx(0.0)
    assert cosine_to_score(0.4, "clamp") == pytest.approx(0.4)
    assert cosine_to_score(-0.4, "clamp") == pytest.approx(0.0)

    with pytest.raises(ValueError):
        cosine_to_score(0.1, "linear")


def test_clamp_mode_index_filters_orthogonal_entries():
    index = SemanticIndex(score_mode="clamp")
    index.upsert(record("a"), [1.0, 0.0])
    index.upsert(record("b"), [0.0, 1.0])

    hits = index.query([1.0, 0.0], k=5, min_score=0.1)

    assert [entry.url for entry, _ in hits] == ["a"]


def test_save_and_load(tmp_path):
    """A saved index reloads with the same entries, versions and dimension."""
    index = SemanticIndex()
    index.upsert(record("a", "Alpha", "first"), [1.0, 0.0, 0.0])
    version_b = index.upsert(record("b", "Beta"), [0.0, 1.0, 0.0])
    path = tmp_path / "nested" / "index.pkl"

    index.save(str(path))
    loaded = SemanticIndex.load(str(path))

    assert loaded.size() == 2
    assert loaded.dimension() == 3
    assert loaded.get("a").record == record("a", "Alpha", "first")
    assert loaded.get("b").version == version_b
    assert loaded.upsert(record("c"), [0.0, 0.0, 1.0]) > version_b
    assert loaded.query([0.0, 1.0, 0.0], k=1)[0][0].url == "b"


def test_bind_model():
    """The first model to write owns the index until it is emptied."""
    index = SemanticIndex()
    index.bind_model("model-a")
    index.upsert(record("a"), [1.0, 0.0])

    index.bind_model("model-a")
    index.check_model("model-a")
    with pytest.raises(EmbeddingModelMismatchError):
        index.bind_model("model-b")
    with pytest.raises(EmbeddingModelMismatchError):
        index.check_model("model-b")
    assert index.model_version() == "model-a"

    index.remove("a")
    assert index.model_version() is None
    index.bind_model("model-b")
    assert index.model_version() == "model-b"


def test_unbound_index_accepts_any_model():
    index = SemanticIndex()
    index.upsert(record("a"), [1.0, 0.0])

    index.check_model("anything")
    index.bind_model("model-a")
    assert index.model_version() == "model-a"


def test_model_version_survives_save_and_load(tmp_path):
    index = SemanticIndex()
    index.bind_model("hashing-v1-3")
    index.upsert(record("a"), [1.0, 0.0, 0.0])
    path = tmp_path / "index.pkl"

    index.save(str(path))
    loaded = SemanticIndex.load(str(path))

    assert loaded.model_version() == "hashing-v1-3"
    with pytest.raises(EmbeddingModelMismatchError):
        loaded.check_model("sentence-transformers/all-MiniLM-L6-v2")


def test_concurrent_queries_see_whole_entries():
    """Queries racing with re-upserts always see a complete, normalized vector."""
    index = SemanticIndex()
    rng = np.random.default_rng(3)
    for i in range(100):
        index.upsert(record(f"u{i}"), rng.normal(size=8))

    errors = []
    stop = threading.Event()

    def writer():
        local_rng = np.random.default_rng(4)
        while not stop.is_set():
            index.upsert(record(f"u{local_rng.integers(100)}"), local_rng.normal(size=8))

    def reader():
        try:
            for _ in range(200):
                for entry, score in index.query(rng.normal(size=8), k=10):
                    assert np.linalg.norm(entry.vector) == pytest.approx(1.0)
                    assert 0.0 <= score <= 1.0
        except AssertionError as e:
            errors.append(e)

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        reader()
    finally:
        stop.set()
        thread.join()

    assert errors == []
    assert index.size() == 100
