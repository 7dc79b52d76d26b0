import hashlib
import json
from datetime import datetime, timezone

import pytest

from ingestion.contracts import MalformedPayloadError, PayloadFormat, SourceConfig
from ingestion.parsers import FeedParser, ListingParser, parser_for


LISTING_SOURCE = SourceConfig(name="marketing", url="https://www.reddit.com/r/{name}/top.json")
FEED_SOURCE = SourceConfig(
    name="marketing",
    url="https://www.reddit.com/r/{name}/top/.rss",
    payload_format=PayloadFormat.FEED,
)

T1 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def _listing(*posts):
    return json.dumps({"data": {"children": [{"kind": "t3", "data": p} for p in posts]}})


ATOM_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>top scoring links : marketing</title>
  <entry>
    <author><name>/u/alice</name></author>
    <content type="html">&lt;p&gt;Great &lt;b&gt;growth&lt;/b&gt; tips&lt;/p&gt;</content>
    <id>t3_abc123</id>
    <link href="https://www.reddit.com/r/marketing/comments/abc123/growth_tips/" />
    <updated>2026-01-01T10:00:00+00:00</updated>
    <published>2026-01-01T10:00:00+00:00</published>
    <title>Growth tips</title>
  </entry>
  <entry>
    <id>tag:example.com,2026:entry-2</id>
    <link href="https://example.com/entry-2" />
    <updated>2026-01-01T10:00:00+00:00</updated>
    <title>Second entry</title>
    <summary>Plain summary</summary>
  </entry>
</feed>
"""


# =============================================================================
# LISTING
# =============================================================================

def test_listing_maps_post_fields():
    raw = _listing({
        "id": "abc",
        "title": "Best tools for social media",
        "selftext": "Looking for suggestions",
        "author": "bob",
        "score": 42,
        "num_comments": 7,
        "url": "https://example.com/abc",
        "permalink": "/r/marketing/comments/abc/",
        "created_utc": T1.timestamp(),
    })

    [doc] = ListingParser().parse(raw, LISTING_SOURCE)

    assert doc.external_id == "reddit_abc"
    assert doc.origin == "marketing"
    assert doc.title == "Best tools for social media"
    assert doc.body == "Looking for suggestions"
    assert doc.author == "bob"
    assert doc.score == 42
    assert doc.comment_count == 7
    assert doc.url == "https://example.com/abc"
    assert doc.created_at == T1


def test_listing_defaults_missing_optional_fields():
    raw = _listing({"id": "xyz", "permalink": "/r/marketing/comments/xyz/"})

    [doc] = ListingParser().parse(raw, LISTING_SOURCE)

    assert doc.title == ""
    assert doc.body == ""
    assert doc.author == "unknown"
    assert doc.score == 0
    assert doc.comment_count == 0
    assert doc.url == "https://reddit.com/r/marketing/comments/xyz/"


def test_listing_skips_bad_children_only():
    raw = json.dumps({"data": {"children": [
        {"kind": "t3"},
        {"kind": "t3", "data": {"title": "no id"}},
        "garbage",
        {"kind": "t3", "data": {"id": "ok", "title": "kept"}},
    ]}})

    docs = ListingParser().parse(raw, LISTING_SOURCE)

    assert [d.external_id for d in docs] == ["reddit_ok"]


@pytest.mark.parametrize("raw", [
    "not json",
    json.dumps({"error": 404}),
    json.dumps({"data": {"after": None}}),
    json.dumps([1, 2, 3]),
])
def test_listing_without_children_is_malformed(raw):
    with pytest.raises(MalformedPayloadError):
        ListingParser().parse(raw, LISTING_SOURCE)


def test_listing_empty_children_is_empty_not_malformed():
    assert ListingParser().parse(_listing(), LISTING_SOURCE) == []


# =============================================================================
# FEED
# =============================================================================

def test_feed_maps_entry_fields():
    docs = FeedParser().parse(ATOM_FEED, FEED_SOURCE)

    assert len(docs) == 2
    first = docs[0]
    assert first.external_id == "reddit_abc123"
    assert first.origin == "marketing"
    assert first.title == "Growth tips"
    assert first.body == "Great growth tips"
    assert first.author == "alice"
    assert first.url == "https://www.reddit.com/r/marketing/comments/abc123/growth_tips/"
    assert first.created_at == T1
    assert first.score == 0
    assert first.comment_count == 0


def test_feed_hashes_foreign_entry_ids():
    docs = FeedParser().parse(ATOM_FEED, FEED_SOURCE)

    expected = hashlib.sha256(b"tag:example.com,2026:entry-2").hexdigest()[:12]
    assert docs[1].external_id == f"reddit_{expected}"
    assert docs[1].body == "Plain summary"
    assert docs[1].author == "unknown"


def test_feed_ids_are_stable_across_parses():
    first = [d.external_id for d in FeedParser().parse(ATOM_FEED, FEED_SOURCE)]
    second = [d.external_id for d in FeedParser().parse(ATOM_FEED, FEED_SOURCE)]
    assert first == second


def test_unreadable_feed_is_malformed():
    with pytest.raises(MalformedPayloadError):
        FeedParser().parse(b"\x00\x01 this is not a feed", FEED_SOURCE)


def test_parser_selected_by_configuration():
    assert isinstance(parser_for(PayloadFormat.LISTING), ListingParser)
    assert isinstance(parser_for(PayloadFormat.FEED), FeedParser)
