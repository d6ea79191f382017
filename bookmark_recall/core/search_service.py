"""
Query resolver - embeds a query, ranks bookmarks by cosine similarity and
optionally attaches a summary of the best matches.

Ranking failures are errors; summary failures only drop the summary.
"""

from typing import Optional
import threading

from .errors import EmptyInputError, EmptyQueryError, InputValidationError, SearchUnavailableError
from .summarizer import DEFAULT_MAX_RESULTS, ISummarizer
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import SemanticIndex, validate_query_params
from ..vector.types import RankedResult, SearchOutcome

DEFAULT_TOP_K = 10
DEFAULT_MIN_SCORE = 0.15

NO_RESULTS_MESSAGE = "No bookmarks matched your search."


class QueryResolver:
    """Resolves free-form queries against a semantic index."""

    def __init__(self, index: SemanticIndex, embedder: IEmbeddingProvider,
                 summarizer: Optional[ISummarizer] = None, summarizer_timeout: Optional[float] = None,
                 summary_max_results: int = DEFAULT_MAX_RESULTS):
        self.index = index
        self.embedder = embedder
        self.summarizer = summarizer
        self.summarizer_timeout = summarizer_timeout
        self.summary_max_results = summary_max_results

    def search(self, query: str, top_k: int = DEFAULT_TOP_K, min_score: float = DEFAULT_MIN_SCORE,
               summarize: bool = True, cancel_event: Optional[threading.Event] = None,
               timeout: Optional[float] = None) -> SearchOutcome:
        """
        Resolve a query into ranked results.

        Args:
            query: Natural-language query
            top_k: Maximum number of results
            min_score: Relevance floor in [0, 1]
            summarize: Attempt a summary when there are results
            cancel_event: When set before summarization, the summary is skipped
            timeout: Seconds allowed for embedding the query

        Returns:
            SearchOutcome with results and either a summary, a no-results
            message, or neither

        Raises:
            EmptyQueryError: query is empty or whitespace-only
            InvalidSearchParameterError: top_k <= 0 or min_score outside [0, 1]
            EmbeddingModelMismatchError: the index was built with a different
                embedding model than the resolver's
            SearchUnavailableError: the query could not be embedded
        """
        if query is None or not query.strip():
            raise EmptyQueryError("Search query cannot be empty.")
        validate_query_params(top_k, min_score)
        self.index.check_model(self.embedder.model_version)

        query = query.strip()
        try:
            query_vector = self.embedder.embed_text(query, timeout=timeout)
        except EmptyInputError as e:
            raise EmptyQueryError(f"Search query has no searchable words: {query[:50]!r}") from e
        except InputValidationError:
            raise
        except Exception as e:
            logger.log_backend_failure("embedder", e, {"stage": "query"})
            raise SearchUnavailableError("Failed to perform search. Please try again.") from e

        hits = self.index.query(query_vector, top_k, min_score)
        results = [
            RankedResult.from_entry(entry, score, rank)
            for rank, (entry, score) in enumerate(hits, start=1)
        ]

        if not results:
            logger.log_search(query, 0)
            return SearchOutcome(results=[], no_results_message=NO_RESULTS_MESSAGE)

        summary = None
        if summarize and self.summarizer is not None:
            if cancel_event is not None and cancel_event.is_set():
                logger.debug("Search cancelled before summarization")
            else:
                summary = self._summarize(query, results)

        logger.log_search(query, len(results), results[0].score, summary=summary is not None)
        return SearchOutcome(results=results, summary=summary)

    def _summarize(self, query: str, results) -> Optional[str]:
        try:
            summary = self.summarizer.summarize(
                query,
                results,
                max_results=self.summary_max_results,
                timeout=self.summarizer_timeout,
            )
        except Exception as e:
            # Best effort: the ranked results stand on their own
            logger.log_backend_failure("summarizer", e)
            return None

        if summary is None or not summary.strip():
            return None
        return summary.strip()


def semantic_search(query: str, top_k: int = None, min_score: float = None,
                    _index: SemanticIndex = None, _embedding_provider: IEmbeddingProvider = None,
                    _summarizer: ISummarizer = None) -> SearchOutcome:
    """
    One-shot search using configured collaborators.

    Args:
        query: The search query string
        top_k: Maximum number of results (defaults to SEARCH_TOP_K)
        min_score: Relevance floor (defaults to SEARCH_MIN_SCORE)
        _index: Optional index for testing (default: load INDEX_PATH)
        _embedding_provider: Optional embedding provider for testing
        _summarizer: Optional summarizer for testing

    Returns:
        SearchOutcome
    """
    from . import config

    embedder = _embedding_provider if _embedding_provider is not None else config.get_embedding_provider()
    if _index is not None:
        index = _index
    else:
        index = config.get_semantic_index(load_existing=True, model_version=embedder.model_version)
    summarizer = _summarizer if _summarizer is not None else config.get_summarizer()

    resolver = QueryResolver(
        index,
        embedder,
        summarizer,
        summarizer_timeout=config.SUMMARIZER_TIMEOUT_SEC,
        summary_max_results=config.SUMMARY_MAX_RESULTS,
    )
    return resolver.search(
        query,
        top_k=top_k if top_k is not None else config.SEARCH_TOP_K,
        min_score=min_score if min_score is not None else config.SEARCH_MIN_SCORE,
        timeout=config.EMBED_TIMEOUT_SEC,
    )
