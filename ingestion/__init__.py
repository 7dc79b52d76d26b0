"""
Ingestion Package

Source fetching, payload normalization and document storage.
"""

from .contracts import (
    Document,
    FetchBatch,
    FetchResult,
    FetchStatus,
    MalformedPayloadError,
    PayloadFormat,
    SourceConfig,
)
from .fetcher import SourceFetcher
from .parsers import FeedParser, ListingParser, PayloadParser, parser_for
from .registry import SourceRegistry
from .storage import DocumentStore, SQLiteDocumentStore, StoreOutcome, StoreStats, StoredDocument

__all__ = [
    'Document', 'FetchBatch', 'FetchResult', 'FetchStatus', 'MalformedPayloadError',
    'PayloadFormat', 'SourceConfig',
    'SourceFetcher',
    'FeedParser', 'ListingParser', 'PayloadParser', 'parser_for',
    'SourceRegistry',
    'DocumentStore', 'SQLiteDocumentStore', 'StoreOutcome', 'StoreStats', 'StoredDocument',
]
