"""
Pipeline Orchestration Module

Sequences fetch → dedupe → persist → rate-limited analyze and
aggregates partial failures into a run result.

DESIGN PRINCIPLES:
==================
1. One logical flow per run; sources and analyses are sequential
2. A single item's failure is recorded and skipped, never raised
3. Only "nothing fetched" (or a run that cannot start) fails the run
4. The analysis engine and its limiter are long-lived and shared
   across runs; runs are serialized around them
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
import threading
import time
import uuid

import structlog

from adapter import AnalysisEngine, RateLimiter, WindowedRateLimiter
from adapter.providers import GeminiProvider, InvocationParams
from ingestion.contracts import Document, utcnow
from ingestion.fetcher import SourceFetcher
from ingestion.registry import SourceRegistry
from ingestion.storage import DocumentStore, SQLiteDocumentStore, StoredDocument, StoreStats

from .config import PipelineConfig
from .observability import bind_run_context, clear_run_context


logger = structlog.get_logger(__name__)


# =============================================================================
# RUN RESULT
# =============================================================================

@dataclass(frozen=True)
class ItemError:
    item_id: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {'item_id': self.item_id, 'error': self.error}


@dataclass(frozen=True)
class SourceSkip:
    """A source that yielded nothing. Logged, not counted as an item error."""
    source: str
    status: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {'source': self.source, 'status': self.status, 'reason': self.reason}


@dataclass
class PipelineRunResult:
    """
    Aggregate outcome of one pipeline run.

    INVARIANT: analyzed <= stored (scrape runs), analyzed <= total
    (analyze-only runs).
    """
    run_type: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    success: bool = True
    message: str = ""
    fetched: int = 0
    stored: int = 0
    analyzed: int = 0
    total: int = 0
    fallbacks: int = 0
    errors: List[ItemError] = field(default_factory=list)
    skipped_sources: List[SourceSkip] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def add_error(self, item_id: str, error: str) -> None:
        self.errors.append(ItemError(item_id=item_id, error=error))

    def fail(self, message: str) -> None:
        self.success = False
        self.message = message

    def finish(self) -> 'PipelineRunResult':
        self.completed_at = utcnow()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'run_type': self.run_type,
            'success': self.success,
            'message': self.message,
            'fetched': self.fetched,
            'stored': self.stored,
            'analyzed': self.analyzed,
            'total': self.total,
            'fallbacks': self.fallbacks,
            'errors': [e.to_dict() for e in self.errors],
            'skipped_sources': [s.to_dict() for s in self.skipped_sources],
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class PipelineOrchestrator:
    """
    Runs the scrape-and-analyze and analyze-only pipelines.

    LAYER FLOW:
    ===========
    1. SourceFetcher: source names → Documents (per-source isolation)
    2. DocumentStore: exists? → insert (dedupe on external_id)
    3. AnalysisEngine: Document → AnalysisResult (rate limited, degrades)
    4. DocumentStore: update_analysis, in fetch order
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        store: DocumentStore,
        engine: AnalysisEngine,
        scrape_limiter: Optional[RateLimiter] = None,
        analyze_limiter: Optional[RateLimiter] = None,
        insert_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._fetcher = fetcher
        self._store = store
        self._engine = engine
        self._scrape_limiter = scrape_limiter or RateLimiter(1.0)
        self._analyze_limiter = analyze_limiter or RateLimiter(0.25)
        self._insert_delay = insert_delay
        self._sleep = sleep
        self._run_lock = threading.Lock()

    @property
    def engine(self) -> AnalysisEngine:
        return self._engine

    @property
    def store(self) -> DocumentStore:
        return self._store

    # =========================================================================
    # RUNS
    # =========================================================================

    def run_scrape_and_analyze(
        self,
        sources: Optional[Sequence[str]] = None,
        per_source_limit: Optional[int] = None
    ) -> PipelineRunResult:
        """Fetch, store what is new, analyze what was stored."""
        registry = self._fetcher.registry
        names = [s for s in (sources or registry.default_names) if s and s.strip()]
        limit = registry.default_limit if per_source_limit is None else per_source_limit

        if limit < 1:
            result = PipelineRunResult(run_type="scrape")
            result.fail(f"per_source_limit must be at least 1, got {limit}")
            logger.error("pipeline.invalid_limit", per_source_limit=limit)
            return result.finish()

        with self._run_lock:
            result = PipelineRunResult(run_type="scrape")
            bind_run_context(run_id=result.run_id)
            logger.info("pipeline.scrape_started", sources=names, per_source_limit=limit)
            try:
                batch = self._fetcher.fetch(names, limit)
                result.fetched = batch.total_items
                for failed in batch.failed_sources:
                    result.skipped_sources.append(SourceSkip(
                        source=failed.source_name,
                        status=failed.status.value,
                        reason=failed.error_message or "",
                    ))

                if not batch.documents:
                    result.fail("No documents fetched from any source")
                    logger.error("pipeline.nothing_fetched", sources=names)
                    return result.finish()

                stored = self._store_new(batch.documents, result)
                self._analyze_all(stored, self._scrape_limiter, result)
                result.message = "Scrape and analysis complete"
            except Exception as e:
                logger.exception("pipeline.scrape_aborted")
                result.fail(f"Run failed: {e}")
            finally:
                logger.info(
                    "pipeline.scrape_finished",
                    fetched=result.fetched,
                    stored=result.stored,
                    analyzed=result.analyzed,
                    errors=len(result.errors),
                )
                clear_run_context()
            return result.finish()

    def run_analyze_only(self) -> PipelineRunResult:
        """Analyze every stored document that has no analysis yet."""
        with self._run_lock:
            result = PipelineRunResult(run_type="analyze")
            bind_run_context(run_id=result.run_id)
            try:
                try:
                    pending = self._store.query_pending()
                except Exception as e:
                    logger.exception("pipeline.pending_query_failed")
                    result.fail(f"Could not query pending documents: {e}")
                    return result.finish()

                result.total = len(pending)
                if not pending:
                    result.message = "No documents to analyze"
                    return result.finish()

                logger.info("pipeline.analyze_started", pending=len(pending))
                self._analyze_all(pending, self._analyze_limiter, result)
                result.message = f"Analyzed {result.analyzed}/{result.total} documents"
                logger.info(
                    "pipeline.analyze_finished",
                    analyzed=result.analyzed,
                    total=result.total,
                    errors=len(result.errors),
                )
            finally:
                clear_run_context()
            return result.finish()

    # =========================================================================
    # STAGES
    # =========================================================================

    def _store_new(self, documents: Iterable[Document], result: PipelineRunResult) -> List[Document]:
        stored: List[Document] = []
        for index, document in enumerate(documents):
            if index and self._insert_delay > 0:
                self._sleep(self._insert_delay)
            try:
                if self._store.exists(document.external_id):
                    logger.debug("pipeline.duplicate_skipped", external_id=document.external_id)
                    continue
                outcome = self._store.insert(document)
            except Exception as e:
                result.add_error(document.external_id, f"Store error: {e}")
                continue

            if not outcome.success:
                logger.warning("pipeline.insert_failed", external_id=document.external_id,
                               error=outcome.error)
                result.add_error(document.external_id, outcome.error or "Insert failed")
            elif outcome.created:
                stored.append(document)
                logger.info("pipeline.stored", external_id=document.external_id,
                            title=document.short_title())

        result.stored = len(stored)
        return stored

    def _analyze_all(
        self,
        documents: Iterable[Document],
        limiter: RateLimiter,
        result: PipelineRunResult
    ) -> None:
        for document in documents:
            try:
                limiter.wait()
                analysis = self._engine.analyze(document.title, document.body)
                outcome = self._store.update_analysis(document.external_id, analysis)
            except Exception as e:
                logger.exception("pipeline.analyze_error", external_id=document.external_id)
                result.add_error(document.external_id, f"Analysis error: {e}")
                continue

            if outcome.success:
                result.analyzed += 1
                if analysis.is_fallback:
                    result.fallbacks += 1
            else:
                logger.warning("pipeline.update_failed", external_id=document.external_id,
                               error=outcome.error)
                result.add_error(document.external_id, outcome.error or "Update failed")

    # =========================================================================
    # PASSTHROUGHS
    # =========================================================================

    def completed_documents(self) -> List[StoredDocument]:
        return self._store.query_completed()

    def stats(self) -> StoreStats:
        return self._store.stats()

    def clear(self) -> int:
        with self._run_lock:
            return self._store.clear()

    def reset_degradation(self) -> None:
        self._engine.reset_degradation()

    def status(self) -> Dict[str, Any]:
        return {
            'engine': self._engine.status(),
            'sources': self._fetcher.registry.stats(),
        }

    def close(self) -> None:
        self._fetcher.close()


# =============================================================================
# FACTORY
# =============================================================================

def build_orchestrator(config: Optional[PipelineConfig] = None) -> PipelineOrchestrator:
    """Wire every layer from configuration."""
    config = config or PipelineConfig.from_env()

    registry = SourceRegistry.load(
        config.fetch.sources_config,
        default_format=config.fetch.payload_format,
    )
    fetcher = SourceFetcher(
        registry=registry,
        timeout=config.fetch.timeout_seconds,
        inter_source_delay=config.fetch.inter_source_delay,
        throttle_cooldown=config.fetch.throttle_cooldown,
        throttle_retries=config.fetch.throttle_retries,
        recency_window=config.fetch.recency_window,
    )
    store = SQLiteDocumentStore(config.storage.db_path)

    provider = None
    if config.inference.api_key:
        provider = GeminiProvider(api_key=config.inference.api_key, model=config.inference.model)
    else:
        logger.warning("pipeline.no_api_key", detail="analysis engine starts degraded")

    limits = config.rate_limit
    engine = AnalysisEngine(
        provider=provider,
        limiter=WindowedRateLimiter(
            max_calls=limits.max_calls,
            window_seconds=limits.window_seconds,
            min_interval_seconds=limits.min_interval_seconds,
            safety_margin_seconds=limits.safety_margin_seconds,
        ),
        params=InvocationParams(timeout_seconds=config.inference.timeout_seconds),
        throttle_retries=config.inference.throttle_retries,
        throttle_backoff=config.inference.throttle_backoff,
    )

    return PipelineOrchestrator(
        fetcher=fetcher,
        store=store,
        engine=engine,
        scrape_limiter=RateLimiter(limits.scrape_calls_per_second),
        analyze_limiter=RateLimiter(limits.analyze_calls_per_second),
    )
