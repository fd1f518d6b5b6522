"""
Tagged fetch results.

An upstream source can legitimately publish nothing (a holiday bulletin)
or fail to answer at all. Both used to look like an empty list; the ingest
layer now returns a FetchResult so callers can tell them apart.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class SourceUnavailable(Exception):
    """
    Upstream fetch failed: network error, non-success status code,
    HTML error page instead of data, or a malformed payload.

    `status_code` is set when the source answered with an HTTP error.
    """

    def __init__(self, source: str, reason: str, status_code: Optional[int] = None):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
        self.status_code = status_code


class FetchStatus(str, Enum):
    """
    Outcome of fetching one unit (a day, a page, a document).

    OK: records were retrieved
    EMPTY: the source answered successfully with nothing to report
    FAILED: the source could not be read
    """
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class FetchResult(Generic[T]):
    """Records plus the status that produced them."""
    status: FetchStatus
    records: List[T] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, records: List[T]) -> "FetchResult[T]":
        """Success; downgrades to EMPTY when there are no records."""
        if not records:
            return cls(status=FetchStatus.EMPTY)
        return cls(status=FetchStatus.OK, records=list(records))

    @classmethod
    def empty(cls) -> "FetchResult[T]":
        return cls(status=FetchStatus.EMPTY)

    @classmethod
    def failed(cls, error: str) -> "FetchResult[T]":
        return cls(status=FetchStatus.FAILED, error=error)

    @property
    def succeeded(self) -> bool:
        return self.status != FetchStatus.FAILED

    def __len__(self) -> int:
        return len(self.records)
