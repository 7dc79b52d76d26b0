"""
Property Tests for Pipeline Contracts

Sentiment domain, keyword bounds, heuristic determinism, sticky
degradation and idempotent ingestion, over generated inputs.
"""

import json
from datetime import datetime, timezone

from hypothesis import given, settings, HealthCheck, strategies as st
from hypothesis.strategies import composite

from adapter.analyzer import AnalysisEngine
from adapter.contracts import MAX_KEYWORDS, MIN_KEYWORDS, Provenance, Sentiment
from adapter.heuristic import HeuristicClassifier
from adapter.providers import ProviderErrorCode, ScriptedProvider
from adapter.rate_limit import WindowedRateLimiter
from ingestion.contracts import Document
from ingestion.storage import SQLiteDocumentStore


SENTIMENTS = set(Sentiment)
T1 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += max(0.0, seconds)


def _engine(provider, **kwargs):
    clock = _Clock()
    return AnalysisEngine(
        provider=provider,
        limiter=WindowedRateLimiter(clock=clock, sleep=clock.sleep),
        sleep=clock.sleep,
        **kwargs,
    )


# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

titles = st.text(max_size=200)
bodies = st.text(max_size=500)
word = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=12)


@composite
def remote_payloads(draw):
    """Valid remote responses, possibly wrapped in fences or prose."""
    payload = json.dumps({
        "sentiment": draw(st.sampled_from([s.value for s in Sentiment])),
        "summary": draw(st.text(min_size=1, max_size=200).filter(lambda s: s.strip())),
        "keywords": draw(st.lists(word, min_size=MIN_KEYWORDS, max_size=MAX_KEYWORDS)),
    })
    wrapper = draw(st.sampled_from(["{}", "```json\n{}\n```", "Result: {} done"]))
    return wrapper.replace("{}", payload, 1)


outcomes = st.one_of(
    remote_payloads(),
    st.sampled_from(list(ProviderErrorCode)),
    st.text(max_size=50),
)


# =============================================================================
# PROPERTIES
# =============================================================================

@given(titles, bodies)
def test_heuristic_sentiment_in_domain(title, body):
    result = HeuristicClassifier().classify(title, body)

    assert result.sentiment in SENTIMENTS
    assert len(result.keywords) <= 5
    assert result.summary


@given(titles, bodies)
def test_heuristic_is_deterministic(title, body):
    assert HeuristicClassifier().classify(title, body) == HeuristicClassifier().classify(title, body)


@given(st.lists(outcomes, max_size=6), titles, bodies)
def test_analyze_never_raises_and_stays_in_domain(script, title, body):
    engine = _engine(ScriptedProvider(script))

    for _ in range(len(script) + 1):
        result = engine.analyze(title, body)
        assert result.sentiment in SENTIMENTS
        if result.provenance == Provenance.PRIMARY:
            assert MIN_KEYWORDS <= len(result.keywords) <= MAX_KEYWORDS


@given(st.integers(min_value=0, max_value=3), st.lists(st.tuples(titles, bodies), min_size=1, max_size=10))
def test_degradation_is_sticky_until_reset(retries, documents):
    provider = ScriptedProvider([ProviderErrorCode.RATE_LIMITED] * (retries + 1))
    engine = _engine(provider, throttle_retries=retries)
    engine.analyze("trigger", "")
    calls_after_degrade = provider.call_count

    for title, body in documents:
        assert engine.analyze(title, body).provenance == Provenance.FALLBACK
    assert provider.call_count == calls_after_degrade == retries + 1

    engine.reset_degradation()
    assert engine.analyze("after reset", "").provenance == Provenance.PRIMARY


@settings(max_examples=25, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(st.lists(word, min_size=1, max_size=8))
def test_repeated_inserts_keep_one_row_per_id(tmp_path_factory, ids):
    store = SQLiteDocumentStore(tmp_path_factory.mktemp("store") / "pulse.db")

    for external_id in ids + ids:
        store.insert(Document(
            external_id=f"reddit_{external_id}",
            origin="prop",
            title=external_id,
            url="https://example.com",
            created_at=T1,
        ))

    assert store.stats().total == len(set(ids))
