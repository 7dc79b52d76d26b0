"""
Integration Test Fixtures

Explicit payload builders and pipeline wiring for deterministic runs.
"""

import json
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from adapter import AnalysisEngine, RateLimiter, WindowedRateLimiter
from adapter.providers import ScriptedProvider
from backend.engine import PipelineOrchestrator
from ingestion.fetcher import SourceFetcher
from ingestion.registry import SourceRegistry


# =============================================================================
# FIXED TIMESTAMPS
# =============================================================================

T1 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
T1_EPOCH = T1.timestamp()


# =============================================================================
# PAYLOADS
# =============================================================================

def listing_post(post_id: str, title: str = "", **overrides) -> Dict:
    post = {
        "id": post_id,
        "title": title or f"Post {post_id}",
        "selftext": "",
        "author": "someone",
        "score": 10,
        "num_comments": 2,
        "url": f"https://example.com/{post_id}",
        "permalink": f"/r/test/comments/{post_id}/",
        "created_utc": T1_EPOCH,
    }
    post.update(overrides)
    return post


def listing_payload(posts: Iterable[Dict]) -> Dict:
    return {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": p} for p in posts]}}


def listing_handler(listings: Dict[str, List[Dict]], status_for: Optional[Dict[str, int]] = None) -> Callable:
    """
    httpx handler serving /r/<name>/top.json.

    `listings` maps source name to posts; `status_for` forces an HTTP status
    for a source name. Unknown names answer 404.
    """
    status_for = status_for or {}

    def handler(request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        name = parts[1] if len(parts) > 1 else ""
        if name in status_for:
            return httpx.Response(status_for[name], json={"error": status_for[name]})
        if name not in listings:
            return httpx.Response(404, json={"error": 404})
        return httpx.Response(200, json=listing_payload(listings[name]))

    return handler


def analysis_json(sentiment: str = "positive", keywords: Optional[List[str]] = None) -> str:
    return json.dumps({
        "sentiment": sentiment,
        "summary": "Remote summary.",
        "keywords": keywords or ["marketing", "growth", "brand"],
    })


# =============================================================================
# WIRING
# =============================================================================

def build_pipeline(handler: Callable, provider, store, clock, **engine_kwargs) -> PipelineOrchestrator:
    """Orchestrator over a MockTransport upstream, with every wait on `clock`."""
    fetcher = SourceFetcher(
        registry=SourceRegistry(),
        http_client=httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True),
        sleep=clock.sleep,
    )
    engine = AnalysisEngine(
        provider=provider,
        limiter=WindowedRateLimiter(clock=clock, sleep=clock.sleep),
        sleep=clock.sleep,
        **engine_kwargs,
    )
    return PipelineOrchestrator(
        fetcher=fetcher,
        store=store,
        engine=engine,
        scrape_limiter=RateLimiter(1.0, clock=clock, sleep=clock.sleep),
        analyze_limiter=RateLimiter(0.25, clock=clock, sleep=clock.sleep),
        sleep=clock.sleep,
    )


def scripted(*outcomes) -> ScriptedProvider:
    return ScriptedProvider(list(outcomes))
