"""
Analysis Adapter Package

ARCHITECTURAL BOUNDARY:
=======================
This package is the ONLY interface between the pipeline and the
remote inference service. All enrichment flows through AnalysisEngine.

DIRECTION OF DEPENDENCY:
========================
backend → adapter → providers

DESIGN PRINCIPLES:
==================
1. Typed results only, tagged with their provenance
2. Remote calls are rate limited and validated
3. Quota exhaustion degrades to the local heuristic, never to an error
"""

from .contracts import (
    AnalysisResult,
    Provenance,
    Sentiment,
    validate_payload,
    extract_json,
)

from .rate_limit import (
    RateLimiter,
    WindowedRateLimiter,
)

from .heuristic import HeuristicClassifier

from .analyzer import (
    AnalysisEngine,
    EngineMode,
    EngineState,
)

__all__ = [
    # Contracts
    'AnalysisResult', 'Provenance', 'Sentiment', 'validate_payload', 'extract_json',
    # Rate limiting
    'RateLimiter', 'WindowedRateLimiter',
    # Engine
    'HeuristicClassifier', 'AnalysisEngine', 'EngineMode', 'EngineState',
]
