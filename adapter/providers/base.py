"""
Inference Provider Abstraction Layer
====================================

Abstract interface for remote inference services.

BOUNDARY ENFORCEMENT:
- Providers are stateless invocation handlers
- Failures are explicit, never silent and never raised
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from enum import Enum


class ProviderErrorCode(Enum):
    """Explicit failure codes for inference invocations."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    INVALID_RESPONSE = "invalid_response"
    API_ERROR = "api_error"
    NETWORK_ERROR = "network_error"


@dataclass(frozen=True)
class ProviderVersion:
    """Immutable provider version info."""
    provider_id: str       # "gemini" | "scripted"
    model_id: str          # "gemini-2.5-flash"
    api_version: str


@dataclass(frozen=True)
class ProviderResponse:
    """
    Immutable response from a provider.

    INVARIANT: Either (success=True, content set) or (success=False, error set)
    """
    success: bool
    content: Optional[str] = None

    # Failure info (only set if success=False)
    error_code: Optional[ProviderErrorCode] = None
    error_message: Optional[str] = None
    http_status: Optional[int] = None
    retry_after_seconds: Optional[float] = None

    # Invocation metadata (always set)
    provider_version: Optional[ProviderVersion] = None
    invoked_at: Optional[datetime] = None
    latency_ms: float = 0.0

    def __post_init__(self):
        if self.success and self.content is None:
            raise ValueError("Successful response must have content")
        if not self.success and self.error_code is None:
            raise ValueError("Failed response must have error_code")

    @property
    def throttled(self) -> bool:
        return self.error_code == ProviderErrorCode.RATE_LIMITED


@dataclass(frozen=True)
class InvocationParams:
    """
    Frozen decoding parameters.

    Low randomness and a small output budget; the response is a short
    JSON object.
    """
    temperature: float = 0.4
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 512
    timeout_seconds: float = 30.0


class InferenceProvider(ABC):
    """
    Abstract inference provider interface.

    GUARANTEES:
    - Invocations are stateless
    - Failures are explicit ProviderResponse with error_code

    EXPLICIT FAILURE STATES:
    - TIMEOUT: Invocation exceeded timeout_seconds
    - RATE_LIMITED: Provider rejected due to quota (HTTP 429)
    - BAD_REQUEST: Provider rejected the input (HTTP 400)
    - UNAUTHORIZED: Key missing, invalid or forbidden (HTTP 401/403)
    - INVALID_RESPONSE: Response had no usable text
    - API_ERROR: Any other error status
    - NETWORK_ERROR: Connection failed
    """

    @abstractmethod
    def invoke(
        self,
        prompt: str,
        params: InvocationParams
    ) -> ProviderResponse:
        """
        Invoke the service with the given prompt and parameters.

        MUST return ProviderResponse, never raise exceptions.
        """
        pass

    @abstractmethod
    def get_version(self) -> ProviderVersion:
        pass

    @property
    @abstractmethod
    def provider_id(self) -> str:
        pass
