"""
Analysis Contracts
==================

Typed result schema for document enrichment.

DESIGN PRINCIPLES:
==================
1. Every result is tagged with the engine that produced it
2. Remote payloads are validated before they become results
3. Results are immutable
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


SUMMARY_MAX_LENGTH = 500
MIN_KEYWORDS = 3
MAX_KEYWORDS = 10


class Sentiment(Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Provenance(Enum):
    """Which engine produced a result."""
    PRIMARY = "primary"    # Remote inference service
    FALLBACK = "fallback"  # Local heuristic classifier


@dataclass(frozen=True)
class AnalysisResult:
    """
    Structured enrichment attached to a document.

    INVARIANT: summary is non-empty and shorter than SUMMARY_MAX_LENGTH.
    Primary results carry 3-10 keywords; fallback results carry at most 5.
    """
    sentiment: Sentiment
    summary: str
    keywords: Tuple[str, ...]
    provenance: Provenance
    model_id: Optional[str] = None

    def __post_init__(self):
        if not self.summary or len(self.summary) >= SUMMARY_MAX_LENGTH:
            raise ValueError("Summary must be non-empty and under the length ceiling")
        if len(self.keywords) > MAX_KEYWORDS:
            raise ValueError(f"At most {MAX_KEYWORDS} keywords allowed")
        if any(not k for k in self.keywords):
            raise ValueError("Keywords must be non-empty")

    @property
    def is_fallback(self) -> bool:
        return self.provenance == Provenance.FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sentiment': self.sentiment.value,
            'summary': self.summary,
            'keywords': list(self.keywords),
            'provenance': self.provenance.value,
            'model_id': self.model_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisResult':
        return cls(
            sentiment=Sentiment(data['sentiment']),
            summary=data['summary'],
            keywords=tuple(data['keywords']),
            provenance=Provenance(data.get('provenance', Provenance.PRIMARY.value)),
            model_id=data.get('model_id'),
        )


def validate_payload(payload: Any) -> List[str]:
    """
    Check a parsed remote payload.

    Returns the list of problems found; empty means valid.
    """
    if not isinstance(payload, dict):
        return ["payload is not an object"]

    problems = []
    if payload.get('sentiment') not in {s.value for s in Sentiment}:
        problems.append(f"invalid sentiment: {payload.get('sentiment')!r}")

    summary = payload.get('summary')
    if not isinstance(summary, str) or not summary:
        problems.append("summary missing or empty")
    elif len(summary) >= SUMMARY_MAX_LENGTH:
        problems.append(f"summary too long ({len(summary)} chars)")

    keywords = payload.get('keywords')
    if not isinstance(keywords, list):
        problems.append("keywords is not a list")
    else:
        if not MIN_KEYWORDS <= len(keywords) <= MAX_KEYWORDS:
            problems.append(f"keyword count {len(keywords)} outside {MIN_KEYWORDS}-{MAX_KEYWORDS}")
        if not all(isinstance(k, str) and k for k in keywords):
            problems.append("keywords must be non-empty strings")

    return problems


def extract_json(text: str) -> str:
    """
    Recover a single JSON object from model output.

    Strips code fences, then keeps the span from the first '{' to the last '}'.
    """
    cleaned = text.strip()
    cleaned = cleaned.replace('```json', '').replace('```JSON', '').replace('```', '')

    first = cleaned.find('{')
    last = cleaned.rfind('}')
    if first != -1 and last != -1 and last > first:
        cleaned = cleaned[first:last + 1]
    return cleaned.strip()
