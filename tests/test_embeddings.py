"""
Embedding provider tests - determinism, dimensions, empty input and backends.
"""

import sys
from unittest.mock import MagicMock, patch

import httpx
import numpy as np
import pytest

from bookmark_recall.core.errors import EmbedderUnavailableError, EmptyInputError
from bookmark_recall.vector.embeddings import (
    IEmbeddingProvider,
    HashingEmbedding,
    OllamaEmbedding,
    SentenceTransformerEmbedding,
    bookmark_text,
    tokenize,
)
from bookmark_recall.vector.types import BookmarkRecord


def cosine(a, b):
    a, b = np.asarray(a), np.asarray(b)
    return float(a @ b / (np.linalg.norm(a) * np.linalg.norm(b)))


def test_embedding_interface():
    """Test that the embedding provider implements the interface correctly."""
    embedder = HashingEmbedding(dimension=384)

    assert isinstance(embedder, IEmbeddingProvider)
    assert embedder.get_dimension() == 384


def test_deterministic_embedding():
    """Test that the same input always produces the same output."""
    embedder = HashingEmbedding(dimension=384)

    text = "Hello, world!"
    vector1 = embedder.embed_text(text)
    vector2 = embedder.embed_text(text)

    assert vector1 == vector2
    assert len(vector1) == 384


def test_consistent_output_across_instances():
    """Two separate instances agree, so vectors can be cached or used as fixtures."""
    text = "This is a test string"
    assert HashingEmbedding(384).embed_text(text) == HashingEmbedding(384).embed_text(text)


def test_different_inputs_produce_different_vectors():
    """Test that different inputs produce different vectors."""
    embedder = HashingEmbedding(dimension=384)

    assert embedder.embed_text("Hello, world!") != embedder.embed_text("Goodbye, moon!")


def test_embedding_with_different_dimensions():
    """Test embedding with different dimension sizes."""
    assert len(HashingEmbedding(dimension=64).embed_text("test")) == 64
    assert len(HashingEmbedding(dimension=512).embed_text("test")) == 512


def test_vectors_are_unit_length():
    vector = HashingEmbedding().embed_text("utility-first CSS framework")
    assert np.linalg.norm(vector) == pytest.approx(1.0)


def test_shared_words_are_closer_than_disjoint_text():
    """Lexical overlap should translate into cosine similarity."""
    embedder = HashingEmbedding()

    query = embedder.embed_text("CSS framework")
    related = embedder.embed_text("Tailwind is a CSS framework")
    unrelated = embedder.embed_text("knife skills and seasoning")

    assert cosine(query, related) > cosine(query, unrelated)
    assert cosine(query, related) > 0.5


@pytest.mark.parametrize("text", ["", "   ", "\n\t", "!!! ??? ..."])
def test_empty_input_is_rejected(text):
    """Empty, whitespace-only or token-free text cannot be embedded."""
    with pytest.raises(EmptyInputError):
        HashingEmbedding().embed_text(text)


def test_embedding_edge_cases():
    """Long strings and special characters still embed to the fixed dimension."""
    embedder = HashingEmbedding(dimension=384)

    assert len(embedder.embed_text("A" * 1000)) == 384
    assert len(embedder.embed_text("Hello\n\t\rWorld!@#$%^&*()")) == 384


def test_stop_words_kept_when_nothing_else_remains():
    assert tokenize("the and of") == ["the", "and", "of"]
    assert tokenize("The CSS of it") == ["css"]


def test_invalid_dimension():
    with pytest.raises(ValueError):
        HashingEmbedding(dimension=0)


def test_bookmark_text_includes_title_description_and_host():
    record = BookmarkRecord(url="https://tailwindcss.com/docs", title=" Tailwind CSS ",
                            description="utility-first CSS framework")

    assert bookmark_text(record) == "Tailwind CSS. utility-first CSS framework. tailwindcss.com"


def test_bookmark_text_accepts_malformed_url():
    """Malformed URLs are opaque keys; they just contribute no host tokens."""
    record = BookmarkRecord(url="http://[::1", title="Broken link")

    assert bookmark_text(record) == "Broken link"


def test_ollama_embedding_returns_vector():
    """Ollama embeddings come back as plain float lists."""
    with patch('bookmark_recall.vector.embeddings.ollama.Client') as client_cls:
        client_cls.return_value.embed.return_value = {'embeddings': [[0.1, 0.2, 0.3]]}
        embedder = OllamaEmbedding("nomic-embed-text", host="http://ollama:11434", timeout=5)

        assert embedder.embed_text("hello") == [0.1, 0.2, 0.3]
        assert embedder.get_dimension() == 3
        client_cls.assert_called_with(host="http://ollama:11434", timeout=5)


def test_ollama_embedding_transport_error():
    """Transport failures surface as EmbedderUnavailableError."""
    with patch('bookmark_recall.vector.embeddings.ollama.Client') as client_cls:
        client_cls.return_value.embed.side_effect = httpx.ConnectError("connection refused")
        embedder = OllamaEmbedding()

        with pytest.raises(EmbedderUnavailableError):
            embedder.embed_text("hello")


def test_ollama_embedding_rejects_empty_text_without_calling_backend():
    with patch('bookmark_recall.vector.embeddings.ollama.Client') as client_cls:
        with pytest.raises(EmptyInputError):
            OllamaEmbedding().embed_text("  ")
        client_cls.assert_not_called()


def test_sentence_transformer_embedding_uses_lazy_model():
    """The model is only constructed on first use."""
    fake_module = MagicMock()
    model = fake_module.SentenceTransformer.return_value
    model.encode.return_value = np.array([0.6, 0.8])
    model.get_sentence_embedding_dimension.return_value = 2

    with patch.dict(sys.modules, {'sentence_transformers': fake_module}):
        embedder = SentenceTransformerEmbedding("all-MiniLM-L6-v2")
        fake_module.SentenceTransformer.assert_not_called()

        assert embedder.embed_text("hello") == [0.6, 0.8]
        assert embedder.get_dimension() == 2
        fake_module.SentenceTransformer.assert_called_once_with("all-MiniLM-L6-v2")
