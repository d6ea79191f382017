"""
Structured logging for indexing, search and backend operations.
Bookmark text is truncated before it reaches the log.
"""

import logging
from typing import Any, Dict, Optional

from ..core.config import debug_enabled

MAX_LOGGED_TEXT = 50


def sanitize_text(text: Optional[str], limit: int = MAX_LOGGED_TEXT) -> str:
    """Truncate free text (queries, descriptions) for logging."""
    if not text:
        return ""
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for index, search and backend operations."""

    def __init__(self, name: str = "bookmark_recall"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_index_operation(self, operation: str, url: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a single-entry index operation (upsert/remove)."""
        log_details = {"url": sanitize_text(url, 100)}
        if details:
            log_details.update(details)

        self.log_operation(f"index.{operation}", status, log_details, level=logging.DEBUG)

    def log_indexing_report(self, attempted: int, succeeded: int, failed: int, removed: int,
                            cancelled: bool = False, duration_ms: float = None):
        """Log the outcome of an indexing batch."""
        log_details = {
            "attempted": attempted,
            "succeeded": succeeded,
            "failed": failed,
            "removed": removed,
        }
        if duration_ms is not None:
            log_details["duration_ms"] = duration_ms

        if cancelled:
            status = "cancelled"
        elif attempted and succeeded == 0:
            status = "failed"
        elif failed:
            status = "partial"
        else:
            status = "success"

        level = logging.WARNING if status in ("failed", "cancelled") else logging.INFO
        self.log_operation("indexing.batch", status, log_details, level=level)

    def log_search(self, query: str, hits: int, top_score: float = None,
                   summary: bool = False, status: str = "success"):
        """Log a resolved search."""
        log_details = {"query": sanitize_text(query), "hits": hits, "summary": summary}
        if top_score is not None:
            log_details["top_score"] = round(top_score, 4)

        self.log_operation("search.query", status, log_details)

    def log_backend_failure(self, backend: str, error: Exception, details: Dict[str, Any] = None):
        """Log a transient embedder/summarizer failure."""
        log_details = {
            "error_type": type(error).__name__,
            "error": sanitize_text(str(error), 100),
        }
        if details:
            log_details.update(details)

        self.log_operation(f"backend.{backend}", "unavailable", log_details, level=logging.WARNING)

    def log_ann_rebuild(self, entries: int, start_time: float, end_time: float,
                        status: str = "success", details: Dict[str, Any] = None):
        """Log an approximate-index rebuild."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"entries": entries, "duration_ms": duration_ms}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.ERROR
        self.log_operation("ann.rebuild", status, log_details, level=level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
