"""
Summarizers - turn the top-ranked bookmarks for a query into a short synopsis.

Returning None is a normal outcome (nothing worth summarizing). Backend
failures raise SummarizerUnavailableError and the resolver drops the summary.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from urllib.parse import urlsplit
import re

import httpx
import ollama

from .errors import InvalidSearchParameterError, SummarizerUnavailableError
from ..util.logging import logger
from ..vector.types import RankedResult

DEFAULT_MAX_RESULTS = 5

NO_SUMMARY_TOKEN = "NONE"

SUMMARY_SYSTEM_PROMPT = (
    "You help a user search their own bookmarks. You are given a search query "
    "and the bookmarks that ranked highest for it. Write a brief summary (two or "
    "three sentences) of what these bookmarks offer for the query. Only mention "
    "bookmarks from the list. If none of them substantively address the query, "
    f"reply with exactly {NO_SUMMARY_TOKEN}."
)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s")


def _host(url: str) -> str:
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


def _first_sentence(text: str, limit: int = 160) -> str:
    sentence = _SENTENCE_END.split(text.strip(), maxsplit=1)[0]
    if len(sentence) > limit:
        sentence = sentence[:limit - 3].rstrip() + "..."
    return sentence


def _check_max_results(max_results: int) -> None:
    if max_results <= 0:
        raise InvalidSearchParameterError(f"max_results must be positive: {max_results}")


class ISummarizer(ABC):
    """Abstract interface for result summarizers."""

    @abstractmethod
    def summarize(self, query: str, results: Sequence[RankedResult],
                  max_results: int = DEFAULT_MAX_RESULTS, timeout: Optional[float] = None) -> Optional[str]:
        """
        Summarize the top results for a query.

        Args:
            query: The user's search query
            results: Ranked results, best first
            max_results: Only the first max_results results are considered
            timeout: Seconds allowed for a backend call

        Returns:
            Summary text, or None when no result addresses the query
        """
        pass


class NullSummarizer(ISummarizer):
    """Summaries disabled."""

    def summarize(self, query, results, max_results=DEFAULT_MAX_RESULTS, timeout=None):
        return None


class ExtractiveSummarizer(ISummarizer):
    """Offline summarizer built from titles and first description sentences.

    Results below ``min_score`` are treated as not addressing the query.
    """

    def __init__(self, min_score: float = 0.55):
        self.min_score = min_score

    def summarize(self, query: str, results: Sequence[RankedResult],
                  max_results: int = DEFAULT_MAX_RESULTS, timeout: Optional[float] = None) -> Optional[str]:
        _check_max_results(max_results)

        relevant = [r for r in list(results)[:max_results] if r.score >= self.min_score]
        if not relevant:
            return None

        parts = []
        for result in relevant:
            label = result.title
            host = _host(result.url)
            if host:
                label += f" ({host})"
            if result.description and result.description.strip():
                label += f": {_first_sentence(result.description)}"
            parts.append(label)

        return f'Your most relevant bookmarks for "{query.strip()}": ' + "; ".join(parts)


class OllamaSummarizer(ISummarizer):
    """Summaries generated by a chat model served by Ollama."""

    def __init__(self, model_name: str = "llama3.2", host: str = None, timeout: float = 20.0):
        self.model_name = model_name
        self.host = host
        self.timeout = timeout

    def _build_messages(self, query: str, results: List[RankedResult]):
        lines = [f"Search query: {query.strip()}", "", "Bookmarks:"]
        for result in results:
            lines.append(f"- Title: {result.title}")
            lines.append(f"  URL: {result.url}")
            if result.description:
                lines.append(f"  Description: {result.description}")
            lines.append(f"  Relevance: {result.score:.2f}")

        return [
            {'role': 'system', 'content': SUMMARY_SYSTEM_PROMPT},
            {'role': 'user', 'content': "\n".join(lines)},
        ]

    def summarize(self, query: str, results: Sequence[RankedResult],
                  max_results: int = DEFAULT_MAX_RESULTS, timeout: Optional[float] = None) -> Optional[str]:
        _check_max_results(max_results)

        top = list(results)[:max_results]
        if not top:
            return None

        client = ollama.Client(host=self.host, timeout=timeout if timeout is not None else self.timeout)
        try:
            response = client.chat(
                model=self.model_name,
                messages=self._build_messages(query, top),
                options={'temperature': 0.2},
            )
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise SummarizerUnavailableError(f"Ollama summary failed: {e}") from e

        content = (response['message']['content'] or "").strip()
        if not content or content.upper().startswith(NO_SUMMARY_TOKEN):
            logger.debug(f"Summarizer judged no result relevant for model {self.model_name}")
            return None
        return content
