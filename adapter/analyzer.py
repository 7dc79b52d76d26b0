"""
Analysis Engine
===============

Wraps one remote "analyze a document" capability with rate limiting,
response validation, retry-on-throttle and permanent fallback.

STATE MACHINE:
==============
    PRIMARY --(throttled, retry budget exhausted)--> DEGRADED
    DEGRADED --(reset_degradation())--> PRIMARY

There is no automatic re-promotion. Other failures (bad request,
unauthorized, malformed output, timeout, network) fall back for the
current call only.

The state object is explicit and injectable so a long-lived engine can
be shared across runs, and tests can start from a degraded state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional
import json
import threading
import time

import structlog

from .contracts import AnalysisResult, Provenance, Sentiment, extract_json, validate_payload
from .heuristic import HeuristicClassifier
from .prompts import AnalysisPrompt
from .providers.base import InferenceProvider, InvocationParams, ProviderErrorCode, ProviderResponse
from .rate_limit import WindowedRateLimiter


logger = structlog.get_logger(__name__)


class EngineMode(Enum):
    PRIMARY = "primary"
    DEGRADED = "degraded"


@dataclass
class EngineState:
    """Mutable engine state, shared by reference for the engine's lifetime."""
    mode: EngineMode = EngineMode.PRIMARY
    consecutive_throttles: int = 0
    degraded_at: Optional[datetime] = None
    primary_count: int = 0
    fallback_count: int = 0
    last_error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.mode == EngineMode.DEGRADED

    @classmethod
    def degraded_state(cls, reason: str = "started degraded") -> 'EngineState':
        return cls(
            mode=EngineMode.DEGRADED,
            degraded_at=datetime.now(timezone.utc),
            last_error=reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mode': self.mode.value,
            'consecutive_throttles': self.consecutive_throttles,
            'degraded_at': self.degraded_at.isoformat() if self.degraded_at else None,
            'primary_count': self.primary_count,
            'fallback_count': self.fallback_count,
            'last_error': self.last_error,
        }


class AnalysisEngine:
    """
    Primary/fallback document analyzer.

    GUARANTEES:
    ===========
    1. analyze() never raises; it always returns a result
    2. DEGRADED calls make no remote call and no rate-limit wait
    3. At most 1 + throttle_retries remote calls per document
    """

    def __init__(
        self,
        provider: Optional[InferenceProvider],
        limiter: Optional[WindowedRateLimiter] = None,
        state: Optional[EngineState] = None,
        heuristic: Optional[HeuristicClassifier] = None,
        params: Optional[InvocationParams] = None,
        throttle_retries: int = 1,
        throttle_backoff: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._provider = provider
        self._limiter = limiter or WindowedRateLimiter()
        self._heuristic = heuristic or HeuristicClassifier()
        self._params = params or InvocationParams()
        self._throttle_retries = max(0, throttle_retries)
        self._throttle_backoff = throttle_backoff
        self._sleep = sleep
        self._lock = threading.RLock()

        if state is None:
            state = EngineState() if provider is not None else EngineState.degraded_state(
                "no inference provider configured"
            )
        self._state = state

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def degraded(self) -> bool:
        return self._state.degraded

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    def analyze(self, title: str, body: str) -> AnalysisResult:
        """Analyze one document. Falls back rather than failing."""
        with self._lock:
            if self._state.degraded or self._provider is None:
                return self._fallback(title, body, reason="degraded")

            prompt = AnalysisPrompt.create(title, body)
            retries = 0

            while True:
                self._limiter.wait()
                response = self._invoke(prompt.prompt_text)

                if response.success:
                    self._state.consecutive_throttles = 0
                    result = self._to_result(response)
                    if result is None:
                        return self._fallback(title, body, reason="invalid_response")
                    self._state.primary_count += 1
                    logger.info(
                        "analysis.primary",
                        sentiment=result.sentiment.value,
                        keywords=list(result.keywords[:3]),
                    )
                    return result

                if response.throttled:
                    self._state.consecutive_throttles += 1
                    if retries < self._throttle_retries:
                        retries += 1
                        logger.warning(
                            "analysis.throttled",
                            retry=retries,
                            backoff_seconds=self._throttle_backoff,
                        )
                        self._sleep(self._throttle_backoff)
                        self._limiter.reset_window()
                        continue
                    self._degrade(response.error_message or "rate limited")
                    return self._fallback(title, body, reason="throttled")

                self._state.last_error = response.error_message
                logger.warning(
                    "analysis.call_failed",
                    error_code=response.error_code.value,
                    error=response.error_message,
                )
                return self._fallback(title, body, reason=response.error_code.value)

    def reset_degradation(self) -> None:
        """The only way back from DEGRADED to PRIMARY."""
        with self._lock:
            was = self._state.mode
            self._state.mode = EngineMode.PRIMARY
            self._state.consecutive_throttles = 0
            self._state.degraded_at = None
            self._state.last_error = None
            self._limiter.reset_window()
        logger.info("analysis.reset", previous_mode=was.value)

    def status(self) -> Dict[str, Any]:
        data = self._state.to_dict()
        data['provider'] = self._provider.provider_id if self._provider else None
        data['rate_limit'] = self._limiter.snapshot().to_dict()
        return data

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _invoke(self, prompt: str) -> ProviderResponse:
        try:
            return self._provider.invoke(prompt, self._params)
        except Exception as e:
            logger.exception("analysis.provider_raised")
            return ProviderResponse(
                success=False,
                error_code=ProviderErrorCode.API_ERROR,
                error_message=f"Provider raised: {e}",
            )

    def _to_result(self, response: ProviderResponse) -> Optional[AnalysisResult]:
        if not isinstance(response.content, str):
            self._state.last_error = "Response content is not text"
            logger.warning("analysis.non_text_response", content_type=type(response.content).__name__)
            return None
        try:
            payload = json.loads(extract_json(response.content))
        except ValueError as e:
            self._state.last_error = f"JSON parse error: {e}"
            logger.warning("analysis.unparseable_response", error=str(e))
            return None

        problems = validate_payload(payload)
        if problems:
            self._state.last_error = "; ".join(problems)
            logger.warning("analysis.invalid_response", problems=problems)
            return None

        return AnalysisResult(
            sentiment=Sentiment(payload['sentiment']),
            summary=payload['summary'],
            keywords=tuple(payload['keywords']),
            provenance=Provenance.PRIMARY,
            model_id=self._provider.get_version().model_id,
        )

    def _degrade(self, reason: str) -> None:
        self._state.mode = EngineMode.DEGRADED
        self._state.degraded_at = datetime.now(timezone.utc)
        self._state.last_error = reason
        logger.error(
            "analysis.degraded",
            consecutive_throttles=self._state.consecutive_throttles,
            reason=reason,
        )

    def _fallback(self, title: str, body: str, reason: str) -> AnalysisResult:
        self._state.fallback_count += 1
        logger.info("analysis.fallback", reason=reason)
        return self._heuristic.classify(title, body)
