"""
Source Fetcher

Fetches the top items of each requested source and normalizes them.

PRINCIPLES:
===========
1. Failed fetches are first-class results, never exceptions
2. One source failing never stops the others
3. Throttling is answered with a cooldown and a bounded retry
4. Sources are fetched sequentially with a fixed delay in between
"""

from __future__ import annotations
from typing import Callable, Iterable, List, Optional, Tuple
from datetime import datetime
import time

import httpx
import structlog

from .contracts import (
    Document, FetchBatch, FetchResult, FetchStatus, MalformedPayloadError,
    SourceConfig, utcnow
)
from .parsers import parser_for
from .registry import SourceRegistry


logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class SourceFetcher:
    """
    Fetches and parses upstream sources.

    GUARANTEES:
    ===========
    1. fetch() never raises; it returns whatever was gathered
    2. Every source attempted yields exactly one FetchResult
    3. A throttled source is retried at most `throttle_retries` times
    """

    def __init__(
        self,
        registry: Optional[SourceRegistry] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        inter_source_delay: float = 2.0,
        throttle_cooldown: float = 60.0,
        throttle_retries: int = 1,
        recency_window: str = "week",
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._registry = registry or SourceRegistry()
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(follow_redirects=True)
        self._timeout = timeout
        self._user_agent = user_agent
        self._inter_source_delay = inter_source_delay
        self._throttle_cooldown = throttle_cooldown
        self._throttle_retries = max(0, throttle_retries)
        self._recency_window = recency_window
        self._sleep = sleep

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> 'SourceFetcher':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # MULTI-SOURCE
    # =========================================================================

    def fetch(self, source_names: Iterable[str], limit: int) -> FetchBatch:
        """
        Fetch up to `limit` items from each named source, in order.

        Returns a batch with one result per source and all documents
        gathered from the successful ones (possibly none).
        """
        started_at = utcnow()
        names = [n.strip() for n in source_names if n and n.strip()]
        results: List[FetchResult] = []
        documents: List[Document] = []

        for index, name in enumerate(names):
            source = self._registry.resolve(name)
            if not source.enabled:
                logger.info("fetch.source_disabled", source=source.name)
                continue
            result, items = self.fetch_source(source, limit)
            results.append(result)
            documents.extend(items)

            if index < len(names) - 1 and self._inter_source_delay > 0:
                logger.debug("fetch.inter_source_delay", seconds=self._inter_source_delay)
                self._sleep(self._inter_source_delay)

        logger.info(
            "fetch.batch_completed",
            sources=len(names),
            succeeded=sum(1 for r in results if r.success),
            documents=len(documents),
        )
        return FetchBatch(
            started_at=started_at,
            completed_at=utcnow(),
            results=tuple(results),
            documents=tuple(documents),
        )

    # =========================================================================
    # SINGLE SOURCE
    # =========================================================================

    def fetch_source(self, source: SourceConfig, limit: int) -> Tuple[FetchResult, List[Document]]:
        """
        Fetch one source.

        Returns:
            - FetchResult (always)
            - List[Document] (empty unless status is SUCCESS)
        """
        attempted_at = utcnow()
        url = source.resolve_url()
        max_attempts = 1 + self._throttle_retries
        attempts = 0

        while True:
            attempts += 1
            try:
                response = self._client.get(
                    url,
                    params={'limit': limit, 't': self._recency_window},
                    headers={'User-Agent': self._user_agent},
                    timeout=self._timeout,
                )
            except httpx.TimeoutException:
                return self._failure(source, url, attempted_at, attempts,
                                     FetchStatus.TIMEOUT, "Request timed out"), []
            except httpx.TransportError as e:
                return self._failure(source, url, attempted_at, attempts,
                                     FetchStatus.NETWORK_ERROR, str(e) or type(e).__name__), []
            except httpx.HTTPError as e:
                # Redirect loops, undecodable bodies
                return self._failure(source, url, attempted_at, attempts,
                                     FetchStatus.HTTP_ERROR, str(e) or type(e).__name__), []
            except Exception as e:
                return self._failure(source, url, attempted_at, attempts,
                                     FetchStatus.NETWORK_ERROR, f"Unexpected error: {e}"), []

            if response.status_code == 429:
                if attempts < max_attempts:
                    logger.warning(
                        "fetch.source_throttled",
                        source=source.name,
                        cooldown_seconds=self._throttle_cooldown,
                        attempt=attempts,
                    )
                    self._sleep(self._throttle_cooldown)
                    continue
                return self._failure(source, url, attempted_at, attempts,
                                     FetchStatus.THROTTLED, "Rate limited by upstream",
                                     http_status=429), []

            if response.status_code != 200:
                status = _status_for_http(response.status_code)
                return self._failure(source, url, attempted_at, attempts, status,
                                     f"HTTP {response.status_code}",
                                     http_status=response.status_code), []

            return self._parse(source, url, attempted_at, attempts, response, limit)

    def _parse(
        self,
        source: SourceConfig,
        url: str,
        attempted_at: datetime,
        attempts: int,
        response: httpx.Response,
        limit: int
    ) -> Tuple[FetchResult, List[Document]]:
        parser = parser_for(source.payload_format)
        try:
            documents = parser.parse(response.content, source)
        except MalformedPayloadError as e:
            return self._failure(source, url, attempted_at, attempts,
                                 FetchStatus.MALFORMED, str(e), http_status=200), []
        except Exception as e:
            return self._failure(source, url, attempted_at, attempts,
                                 FetchStatus.MALFORMED, f"Parse error: {e}", http_status=200), []

        if not documents:
            return self._failure(source, url, attempted_at, attempts,
                                 FetchStatus.MALFORMED, "Empty payload", http_status=200), []

        documents = documents[:limit]
        logger.info("fetch.source_fetched", source=source.name, items=len(documents))
        result = FetchResult(
            source_name=source.name,
            url=url,
            status=FetchStatus.SUCCESS,
            attempted_at=attempted_at,
            completed_at=utcnow(),
            attempts=attempts,
            items_count=len(documents),
            http_status=200,
        )
        return result, documents

    def _failure(
        self,
        source: SourceConfig,
        url: str,
        attempted_at: datetime,
        attempts: int,
        status: FetchStatus,
        message: str,
        http_status: Optional[int] = None
    ) -> FetchResult:
        logger.warning(
            "fetch.source_skipped",
            source=source.name,
            status=status.value,
            reason=message,
            attempts=attempts,
        )
        return FetchResult(
            source_name=source.name,
            url=url,
            status=status,
            attempted_at=attempted_at,
            completed_at=utcnow(),
            attempts=attempts,
            http_status=http_status,
            error_message=message,
        )


def _status_for_http(status_code: int) -> FetchStatus:
    if status_code == 404:
        return FetchStatus.NOT_FOUND
    if status_code == 403:
        return FetchStatus.FORBIDDEN
    if status_code == 429:
        return FetchStatus.THROTTLED
    return FetchStatus.HTTP_ERROR
