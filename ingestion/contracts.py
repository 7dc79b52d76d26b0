"""
Ingestion Contracts

Immutable data structures for the source ingestion pipeline.

BOUNDARY: Ingestion Layer
All upstream data enters through these contracts.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class PayloadFormat(Enum):
    """Shape of the payload a source returns."""
    LISTING = "listing"  # Structured JSON listing
    FEED = "feed"        # Atom/RSS feed


class FetchStatus(Enum):
    """Status of a fetch attempt."""
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    THROTTLED = "throttled"
    FORBIDDEN = "forbidden"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"


class MalformedPayloadError(ValueError):
    """Raised by parsers when a payload has no usable listing."""


# =============================================================================
# SOURCE CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class SourceConfig:
    """Configuration for a single upstream source."""
    name: str
    url: str
    payload_format: PayloadFormat = PayloadFormat.LISTING
    origin: str = "reddit"
    enabled: bool = True

    def resolve_url(self) -> str:
        """Expand the `{name}` placeholder in the URL template."""
        return self.url.replace("{name}", self.name)

    def __hash__(self):
        return hash(self.name)


# =============================================================================
# DOCUMENT
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Document:
    """
    Canonical normalized record ingested from any source.

    INVARIANT: external_id is already origin-qualified (e.g. "reddit_abc123"),
    so it is unique across sources on its own.
    """
    external_id: str
    origin: str
    title: str
    url: str
    created_at: datetime
    body: str = ""
    author: str = "unknown"
    score: int = 0
    comment_count: int = 0
    ingested_at: datetime = field(default_factory=utcnow)

    def to_record(self) -> Dict[str, Any]:
        """Flat row representation for the store."""
        return {
            'external_id': self.external_id,
            'origin': self.origin,
            'title': self.title,
            'body': self.body,
            'author': self.author,
            'score': self.score,
            'comment_count': self.comment_count,
            'url': self.url,
            'created_at': self.created_at.isoformat(),
            'ingested_at': self.ingested_at.isoformat(),
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> 'Document':
        return cls(
            external_id=row['external_id'],
            origin=row['origin'],
            title=row.get('title') or '',
            body=row.get('body') or '',
            author=row.get('author') or 'unknown',
            score=int(row.get('score') or 0),
            comment_count=int(row.get('comment_count') or 0),
            url=row.get('url') or '',
            created_at=_parse_timestamp(row.get('created_at')),
            ingested_at=_parse_timestamp(row.get('ingested_at')),
        )

    def short_title(self, width: int = 50) -> str:
        return self.title[:width]


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# FETCH RESULTS
# =============================================================================

@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of fetching one source.

    Failed fetches are first-class results, never exceptions.
    """
    source_name: str
    url: str
    status: FetchStatus
    attempted_at: datetime
    completed_at: datetime
    attempts: int = 1
    items_count: int = 0
    http_status: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == FetchStatus.SUCCESS


@dataclass(frozen=True)
class FetchBatch:
    """Results of one fetch cycle across several sources."""
    started_at: datetime
    completed_at: datetime
    results: Tuple[FetchResult, ...]
    documents: Tuple[Document, ...]

    @property
    def failed_sources(self) -> List[FetchResult]:
        return [r for r in self.results if not r.success]

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_items(self) -> int:
        return len(self.documents)
