"""
Configuration from environment variables (a local .env file is honored).

Factories build fresh objects on every call; callers own the lifecycle of
the index they create.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Embedding backend
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence_transformer|ollama
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_TIMEOUT_SEC = float(os.getenv("EMBED_TIMEOUT_SEC", "10"))

# Ollama backend (embeddings and/or summaries)
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.2")

# Summaries
SUMMARIZER_PROVIDER = os.getenv("SUMMARIZER_PROVIDER", "extractive")  # extractive|ollama|none
SUMMARIZER_TIMEOUT_SEC = float(os.getenv("SUMMARIZER_TIMEOUT_SEC", "20"))
SUMMARY_MAX_RESULTS = int(os.getenv("SUMMARY_MAX_RESULTS", "5"))

# Search defaults
SCORE_MODE = os.getenv("SCORE_MODE", "affine")  # affine|clamp
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "10"))
SEARCH_MIN_SCORE = float(os.getenv("SEARCH_MIN_SCORE", "0.15"))
SUMMARY_MIN_SCORE = float(os.getenv("SUMMARY_MIN_SCORE", "0.55" if SCORE_MODE == "affine" else "0.1"))

# Approximate nearest neighbor (default disabled)
ANN_ENABLED = os.getenv("ANN_ENABLED", "false").lower() == "true"
ANN_MIN_ENTRIES = int(os.getenv("ANN_MIN_ENTRIES", "2000"))
ANN_HNSW_M = int(os.getenv("ANN_HNSW_M", "32"))
ANN_EF_CONSTRUCTION = int(os.getenv("ANN_EF_CONSTRUCTION", "100"))
ANN_EF_SEARCH = int(os.getenv("ANN_EF_SEARCH", "64"))
ANN_OVERSAMPLE = int(os.getenv("ANN_OVERSAMPLE", "3"))

# Optional persistence
INDEX_PATH = os.getenv("INDEX_PATH", "./data/bookmark_index.pkl")


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    from ..vector.embeddings import HashingEmbedding, OllamaEmbedding, SentenceTransformerEmbedding

    if EMBED_PROVIDER == "sentence_transformer":
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    elif EMBED_PROVIDER == "ollama":
        return OllamaEmbedding(OLLAMA_EMBED_MODEL, host=OLLAMA_HOST, timeout=EMBED_TIMEOUT_SEC)
    else:
        return HashingEmbedding(dimension=EMBED_DIM)


def get_summarizer():
    """Get configured summarizer implementation."""
    from .summarizer import ExtractiveSummarizer, NullSummarizer, OllamaSummarizer

    if SUMMARIZER_PROVIDER == "ollama":
        return OllamaSummarizer(OLLAMA_MODEL, host=OLLAMA_HOST, timeout=SUMMARIZER_TIMEOUT_SEC)
    elif SUMMARIZER_PROVIDER == "none":
        return NullSummarizer()
    else:
        return ExtractiveSummarizer(min_score=SUMMARY_MIN_SCORE)


def get_semantic_index(load_existing: bool = False, model_version: str = None):
    """Create a semantic index from config, loading INDEX_PATH when asked and present.

    With ``model_version``, a saved index built by another embedding model
    raises EmbeddingModelMismatchError instead of being returned.
    """
    from ..vector.index import SemanticIndex

    kwargs = {
        "score_mode": SCORE_MODE,
        "ann_enabled": ANN_ENABLED,
        "ann_min_entries": ANN_MIN_ENTRIES,
        "ann_params": get_ann_params(),
        "ann_oversample": ANN_OVERSAMPLE,
    }
    if load_existing and os.path.exists(INDEX_PATH):
        index = SemanticIndex.load(INDEX_PATH, **kwargs)
        if model_version is not None:
            index.check_model(model_version)
        return index
    return SemanticIndex(**kwargs)


def get_ann_params():
    """HNSW build/search parameters."""
    return {
        "m": ANN_HNSW_M,
        "ef_construction": ANN_EF_CONSTRUCTION,
        "ef_search": ANN_EF_SEARCH,
    }


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def validate_search_config():
    """Validate search configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER not in ["hash", "sentence_transformer", "ollama"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if SUMMARIZER_PROVIDER not in ["extractive", "ollama", "none"]:
        issues.append(f"Invalid SUMMARIZER_PROVIDER: {SUMMARIZER_PROVIDER}")

    if SCORE_MODE not in ["affine", "clamp"]:
        issues.append(f"Invalid SCORE_MODE: {SCORE_MODE}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if SEARCH_TOP_K < 1:
        issues.append("SEARCH_TOP_K must be >= 1")

    if not 0.0 <= SEARCH_MIN_SCORE <= 1.0:
        issues.append("SEARCH_MIN_SCORE must be within [0, 1]")

    if SUMMARY_MAX_RESULTS < 1:
        issues.append("SUMMARY_MAX_RESULTS must be >= 1")

    if ANN_ENABLED and ANN_MIN_ENTRIES < 1:
        issues.append("ANN_MIN_ENTRIES must be >= 1")

    return issues
