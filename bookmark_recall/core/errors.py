"""
Exception hierarchy for the bookmark engine.

Input errors are raised immediately and never retried. Backend errors are
transient and are retried (if at all) by whoever owns the transport.
"""


class BookmarkRecallError(Exception):
    """Base class for all engine errors."""

    kind = "error"


class InputValidationError(BookmarkRecallError, ValueError):
    """Invalid caller input; retrying the same request cannot succeed."""

    kind = "invalid_input"


class EmptyInputError(InputValidationError):
    """Text to embed is empty, whitespace-only, or has nothing embeddable."""

    kind = "empty_input"


class EmptyQueryError(InputValidationError):
    """Search query is empty or whitespace-only."""

    kind = "empty_query"


class InvalidSearchParameterError(InputValidationError):
    """top_k <= 0 or min_score outside [0, 1]."""

    kind = "invalid_parameter"


class InvalidRecordError(InputValidationError):
    """A bookmark record is missing its url or title."""

    kind = "invalid_record"


class DimensionMismatchError(InputValidationError):
    """Vector dimension differs from the index's established dimension.

    This is a configuration error (embedder swapped mid-lifetime) and stops
    further writes in the batch that hit it.
    """

    kind = "dimension_mismatch"

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension {actual} does not match index dimension {expected}")
        self.expected = expected
        self.actual = actual


class EmbeddingModelMismatchError(BookmarkRecallError):
    """The index holds vectors from a different embedding model.

    Raised before any write or search; vectors from two models are not
    comparable even when their dimensions agree.
    """

    kind = "model_mismatch"

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Embedding model {actual!r} does not match index model {expected!r}")
        self.expected = expected
        self.actual = actual


class StaleEntryError(BookmarkRecallError):
    """Conditional upsert lost a race with a newer version of the entry."""

    kind = "stale_entry"

    def __init__(self, url: str, expected_version, current_version):
        super().__init__(
            f"Entry {url} is at version {current_version}, expected {expected_version}"
        )
        self.url = url
        self.expected_version = expected_version
        self.current_version = current_version


class BackendUnavailableError(BookmarkRecallError):
    """An external embedding or generation backend failed or timed out."""

    kind = "backend_unavailable"


class EmbedderUnavailableError(BackendUnavailableError):
    kind = "embedder_unavailable"


class SummarizerUnavailableError(BackendUnavailableError):
    kind = "summarizer_unavailable"


class SearchUnavailableError(BookmarkRecallError):
    """The query could not be embedded, so no ranking is possible."""

    kind = "search_unavailable"
