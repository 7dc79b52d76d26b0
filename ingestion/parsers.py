"""
Payload Parsers

Normalize the two upstream payload shapes into Documents.

PRINCIPLES:
===========
1. The parser is chosen by source configuration, never by sniffing
2. Missing optional fields default, they never fail the item
3. A payload with no usable listing is MALFORMED, not empty
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
import calendar
import hashlib
import html
import json
import random
import re
import time

import feedparser
import structlog

from .contracts import (
    Document, MalformedPayloadError, PayloadFormat, SourceConfig, utcnow
)


logger = structlog.get_logger(__name__)

RawPayload = Union[bytes, str]

_TAG_RE = re.compile(r'<[^>]+>')
_THING_ID_RE = re.compile(r'^t\d_(\w+)$')


class PayloadParser(ABC):
    """Capability interface: raw payload in, Documents out."""

    @abstractmethod
    def parse(self, raw: RawPayload, source: SourceConfig) -> List[Document]:
        """
        Parse a raw payload.

        Raises MalformedPayloadError when the payload cannot be read at all.
        Individual bad items are dropped, not raised.
        """


# =============================================================================
# STRUCTURED LISTING
# =============================================================================

class ListingParser(PayloadParser):
    """
    Parses a JSON listing of the form::

        {"data": {"children": [{"data": {...post...}}, ...]}}
    """

    def __init__(self, permalink_base: str = "https://reddit.com"):
        self._permalink_base = permalink_base

    def parse(self, raw: RawPayload, source: SourceConfig) -> List[Document]:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Listing is not valid JSON: {e}") from e

        children = None
        if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
            children = payload['data'].get('children')
        if not isinstance(children, list):
            raise MalformedPayloadError("Listing has no data.children")

        documents = []
        for child in children:
            post = child.get('data') if isinstance(child, dict) else None
            if not isinstance(post, dict) or not post.get('id'):
                logger.warning("parse.listing_item_skipped", source=source.name)
                continue
            documents.append(self._to_document(post, source))
        return documents

    def _to_document(self, post: Dict[str, Any], source: SourceConfig) -> Document:
        url = post.get('url') or f"{self._permalink_base}{post.get('permalink', '')}"
        return Document(
            external_id=f"{source.origin}_{post['id']}",
            origin=source.name,
            title=post.get('title') or '',
            body=post.get('selftext') or '',
            author=post.get('author') or 'unknown',
            score=_as_int(post.get('score')),
            comment_count=_as_int(post.get('num_comments')),
            url=url,
            created_at=_from_epoch(post.get('created_utc')),
        )


# =============================================================================
# FEED (ATOM / RSS)
# =============================================================================

class FeedParser(PayloadParser):
    """
    Parses Atom/RSS feeds with feedparser.

    Feeds carry no score or comment count; those default to zero.
    Entries without an id get a synthesized one (time + random), so
    re-fetching such entries can produce duplicates.
    """

    def parse(self, raw: RawPayload, source: SourceConfig) -> List[Document]:
        feed = feedparser.parse(raw)
        if feed.bozo and not feed.entries:
            raise MalformedPayloadError(
                f"Feed could not be parsed: {feed.get('bozo_exception')}"
            )

        documents = []
        for entry in feed.entries:
            link = entry.get('link', '')
            title = _strip_html(entry.get('title', ''))
            if not link and not title:
                logger.warning("parse.feed_entry_skipped", source=source.name)
                continue
            documents.append(Document(
                external_id=self._entry_id(entry.get('id'), source),
                origin=source.name,
                title=title,
                body=self._entry_body(entry),
                author=self._entry_author(entry),
                url=link,
                created_at=self._entry_time(entry),
            ))
        return documents

    def _entry_id(self, raw_id: Optional[str], source: SourceConfig) -> str:
        if not raw_id:
            suffix = f"{random.getrandbits(32):08x}"
            return f"{source.origin}_{int(time.time() * 1000)}_{suffix}"
        match = _THING_ID_RE.match(raw_id)
        if match:
            return f"{source.origin}_{match.group(1)}"
        return f"{source.origin}_{hashlib.sha256(raw_id.encode()).hexdigest()[:12]}"

    def _entry_body(self, entry) -> str:
        content = entry.get('content')
        if content:
            return _strip_html(content[0].get('value', ''))
        return _strip_html(entry.get('summary', ''))

    def _entry_author(self, entry) -> str:
        author = entry.get('author') or ''
        author = author.strip()
        if author.startswith('/u/'):
            author = author[3:]
        return author or 'unknown'

    def _entry_time(self, entry) -> datetime:
        parsed = entry.get('published_parsed') or entry.get('updated_parsed')
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
        return utcnow()


# =============================================================================
# HELPERS
# =============================================================================

_PARSERS = {
    PayloadFormat.LISTING: ListingParser,
    PayloadFormat.FEED: FeedParser,
}


def parser_for(payload_format: PayloadFormat) -> PayloadParser:
    """Parser variant for a configured payload format."""
    return _PARSERS[payload_format]()


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _from_epoch(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return utcnow()


def _strip_html(text: str) -> str:
    text = _TAG_RE.sub(' ', text or '')
    return re.sub(r'\s+', ' ', html.unescape(text)).strip()
