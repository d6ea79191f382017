"""
Boundary schemas - validation of bookmark payloads coming in, and the
serialized shapes of search outcomes and indexing reports going out.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidRecordError
from .indexing import IndexingFailure, IndexingReport
from ..vector.types import BookmarkRecord, SearchOutcome


class BookmarkIn(BaseModel):
    """A bookmark as supplied by the upstream source."""

    title: str
    url: str
    description: Optional[str] = None

    @field_validator('title')
    @classmethod
    def title_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('title cannot be empty')
        return v.strip()

    @field_validator('url')
    @classmethod
    def url_must_not_be_empty(cls, v):
        # Opaque key: no well-formedness check beyond presence
        if not v.strip():
            raise ValueError('url cannot be empty')
        return v

    @field_validator('description')
    @classmethod
    def description_strip(cls, v):
        return v.strip() if v is not None else v

    def to_record(self) -> BookmarkRecord:
        return BookmarkRecord(url=self.url, title=self.title, description=self.description or "")


def _error_summary(error: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors())


def validate_payload(payload: Sequence[Dict[str, Any]]) -> List[Union[BookmarkRecord, IndexingFailure]]:
    """
    Validate raw bookmark dicts, keeping payload order.

    Returns:
        One item per dict: the BookmarkRecord, or an IndexingFailure whose
        url is the raw url when the dict carried a string one, else ""
    """
    items = []
    for position, item in enumerate(payload):
        try:
            items.append(BookmarkIn.model_validate(item).to_record())
        except ValidationError as e:
            url = item.get('url') if isinstance(item, dict) else None
            items.append(IndexingFailure(
                url=url if isinstance(url, str) else "",
                kind=InvalidRecordError.kind,
                message=f"bookmark[{position}]: {_error_summary(e)}",
            ))
    return items


def validate_bookmarks(payload: Sequence[Dict[str, Any]]) -> Tuple[List[BookmarkRecord], List[IndexingFailure]]:
    """Validate raw bookmark dicts into (valid records, failures for the invalid ones)."""
    items = validate_payload(payload)
    records = [item for item in items if isinstance(item, BookmarkRecord)]
    failures = [item for item in items if isinstance(item, IndexingFailure)]
    return records, failures


def parse_bookmarks(payload: Sequence[Dict[str, Any]]) -> List[BookmarkRecord]:
    """Strict variant of validate_bookmarks: any invalid dict raises InvalidRecordError."""
    records, failures = validate_bookmarks(payload)
    if failures:
        raise InvalidRecordError("Invalid bookmarks: " + " | ".join(f.message for f in failures))
    return records


class RankedResultOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    url: str
    description: Optional[str] = None
    relevance_score: float = Field(alias='relevanceScore')
    rank: int


class SearchOutcomeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    results: List[RankedResultOut]
    summary: Optional[str] = None
    no_results_message: Optional[str] = Field(default=None, alias='noResultsMessage')

    @classmethod
    def from_outcome(cls, outcome: SearchOutcome) -> "SearchOutcomeOut":
        return cls(
            results=[
                RankedResultOut(
                    title=r.title,
                    url=r.url,
                    description=r.description or None,
                    relevance_score=round(r.score, 4),
                    rank=r.rank,
                )
                for r in outcome.results
            ],
            summary=outcome.summary,
            no_results_message=outcome.no_results_message,
        )


class IndexingFailureOut(BaseModel):
    url: str
    kind: str
    message: str


class IndexingReportOut(BaseModel):
    success: bool
    message: str
    attempted: int
    succeeded: int
    failed: int
    removed: int
    cancelled: bool
    failures: List[IndexingFailureOut]

    @classmethod
    def from_report(cls, report: IndexingReport) -> "IndexingReportOut":
        return cls(
            success=report.success,
            message=report.message,
            attempted=report.attempted,
            succeeded=report.succeeded,
            failed=report.failed,
            removed=report.removed,
            cancelled=report.cancelled,
            failures=[IndexingFailureOut(url=f.url, kind=f.kind, message=f.message) for f in report.failures],
        )
