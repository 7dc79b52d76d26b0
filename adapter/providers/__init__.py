"""
Inference Providers Package
===========================

Provider implementations for remote inference.

Available providers:
- GeminiProvider: Gemini generateContent over HTTP
- ScriptedProvider: Deterministic scripted responses for testing
"""

from .base import (
    InferenceProvider,
    ProviderVersion,
    ProviderResponse,
    ProviderErrorCode,
    InvocationParams,
)
from .gemini import GeminiProvider
from .mock import ScriptedProvider

__all__ = [
    'InferenceProvider',
    'ProviderVersion',
    'ProviderResponse',
    'ProviderErrorCode',
    'InvocationParams',
    'GeminiProvider',
    'ScriptedProvider',
]
