"""
Text embedders. Every provider maps non-empty text to a fixed-dimension
vector and is deterministic for a fixed model version.
"""

from abc import ABC, abstractmethod
from collections import Counter
from typing import List, Optional
from urllib.parse import urlsplit
import hashlib
import math
import re

import httpx
import numpy as np
import ollama

from ..core.errors import EmbedderUnavailableError, EmptyInputError
from .types import BookmarkRecord

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "how",
    "in", "into", "is", "it", "its", "of", "on", "or", "that", "the", "this",
    "to", "was", "what", "where", "which", "with", "you", "your",
    "http", "https", "www", "com", "org", "net",
})


def require_text(text: str) -> str:
    """Return ``text`` stripped, or raise EmptyInputError."""
    if text is None or not text.strip():
        raise EmptyInputError("Cannot embed empty or whitespace-only text")
    return text.strip()


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens; stop words are dropped only if something else remains."""
    tokens = TOKEN_PATTERN.findall(text.lower())
    content = [token for token in tokens if token not in STOP_WORDS]
    return content or tokens


def bookmark_text(record: BookmarkRecord) -> str:
    """Text embedded for a bookmark: title, description and host name."""
    parts = [record.title.strip()]
    if record.description and record.description.strip():
        parts.append(record.description.strip())

    try:
        host = urlsplit(record.url).hostname or ""
    except ValueError:
        # Malformed URLs are still indexed, just without host tokens
        host = ""
    if host:
        parts.append(host)

    return ". ".join(parts)


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    model_version = "unversioned"

    @abstractmethod
    def embed_text(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class HashingEmbedding(IEmbeddingProvider):
    """Offline lexical embedder using signed feature hashing.

    Each token is hashed (blake2b) to a bucket and a sign; bucket weights use
    sublinear term frequency and the result is L2-normalized. Texts sharing
    words land close together, which is enough for deterministic tests and
    for running without any model download.
    """

    def __init__(self, dimension: int = 384):
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1: {dimension}")
        self.dimension = dimension
        self.model_version = f"hashing-v1-{dimension}"

    def _bucket(self, token: str):
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "little")
        sign = -1.0 if (value >> 63) & 1 else 1.0
        return value % self.dimension, sign

    def embed_text(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """Generate deterministic embedding vector from hashed word counts."""
        tokens = tokenize(require_text(text))
        if not tokens:
            raise EmptyInputError(f"No embeddable tokens in text: {text[:50]!r}")

        vector = np.zeros(self.dimension, dtype=np.float64)
        for token, count in Counter(tokens).items():
            bucket, sign = self._bucket(token)
            vector[bucket] += sign * (1.0 + math.log(count))

        norm = np.linalg.norm(vector)
        if norm == 0:
            # Only possible when colliding tokens cancel exactly
            raise EmptyInputError(f"Text hashed to a zero vector: {text[:50]!r}")

        return (vector / norm).tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The model is loaded on first use. Local inference has no transport, so
    ``timeout`` is accepted for interface compatibility and ignored.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self.model_version = f"sentence-transformers/{model_name}"
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            try:
                self._model = SentenceTransformer(self.model_name)
            except OSError as e:
                raise EmbedderUnavailableError(f"Could not load model {self.model_name}: {e}") from e
        return self._model

    def embed_text(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(
            require_text(text),
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class OllamaEmbedding(IEmbeddingProvider):
    """Remote embeddings served by an Ollama instance."""

    def __init__(self, model_name: str = "nomic-embed-text", host: str = None, timeout: float = 10.0):
        self.model_name = model_name
        self.model_version = f"ollama/{model_name}"
        self.host = host
        self.timeout = timeout
        self._client = None
        self._dimension = None

    def _client_for(self, timeout: Optional[float]):
        if timeout is None or timeout == self.timeout:
            if self._client is None:
                self._client = ollama.Client(host=self.host, timeout=self.timeout)
            return self._client
        return ollama.Client(host=self.host, timeout=timeout)

    def embed_text(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """Generate embedding vector via the Ollama embed endpoint."""
        text = require_text(text)
        try:
            response = self._client_for(timeout).embed(model=self.model_name, input=text)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise EmbedderUnavailableError(f"Ollama embedding failed: {e}") from e

        embeddings = response["embeddings"]
        if not embeddings:
            raise EmbedderUnavailableError(f"Ollama returned no embedding for model {self.model_name}")
        return list(embeddings[0])

    def get_dimension(self) -> int:
        """Get the dimension by embedding a probe string once."""
        if self._dimension is None:
            self._dimension = len(self.embed_text("dimension probe"))
        return self._dimension
