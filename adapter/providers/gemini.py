"""
Gemini Provider
===============

Remote inference over the Gemini generateContent REST endpoint.

One POST per prompt. HTTP failures are mapped onto ProviderErrorCode;
nothing is raised to the caller.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import time

import httpx

from .base import (
    InferenceProvider,
    InvocationParams,
    ProviderErrorCode,
    ProviderResponse,
    ProviderVersion,
)


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiProvider(InferenceProvider):
    """Gemini REST provider."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        http_client: Optional[httpx.Client] = None
    ):
        if not api_key:
            raise ValueError("Gemini provider requires an API key")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip('/')
        self._client = http_client or httpx.Client()
        self._version = ProviderVersion(
            provider_id="gemini",
            model_id=model,
            api_version="v1beta",
        )

    @property
    def provider_id(self) -> str:
        return "gemini"

    def get_version(self) -> ProviderVersion:
        return self._version

    def invoke(
        self,
        prompt: str,
        params: InvocationParams
    ) -> ProviderResponse:
        invoked_at = datetime.now(timezone.utc)
        start_time = time.time()

        try:
            response = self._client.post(
                f"{self._base_url}/{self._model}:generateContent",
                headers={
                    'Content-Type': 'application/json',
                    'x-goog-api-key': self._api_key,
                },
                json=self._request_body(prompt, params),
                timeout=params.timeout_seconds,
            )
        except httpx.TimeoutException:
            return self._failure(ProviderErrorCode.TIMEOUT, "Request timed out",
                                 invoked_at, start_time)
        except httpx.TransportError as e:
            return self._failure(ProviderErrorCode.NETWORK_ERROR, str(e) or type(e).__name__,
                                 invoked_at, start_time)
        except httpx.HTTPError as e:
            return self._failure(ProviderErrorCode.API_ERROR, str(e) or type(e).__name__,
                                 invoked_at, start_time)

        if response.status_code != 200:
            return self._http_failure(response, invoked_at, start_time)

        try:
            text = response.json()['candidates'][0]['content']['parts'][0]['text']
        except (ValueError, KeyError, IndexError, TypeError):
            text = None

        if not isinstance(text, str) or not text.strip():
            return self._failure(ProviderErrorCode.INVALID_RESPONSE, "Empty response from Gemini API",
                                 invoked_at, start_time, http_status=200)

        return ProviderResponse(
            success=True,
            content=text,
            provider_version=self._version,
            invoked_at=invoked_at,
            latency_ms=(time.time() - start_time) * 1000,
        )

    def _request_body(self, prompt: str, params: InvocationParams) -> Dict[str, Any]:
        return {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': {
                'temperature': params.temperature,
                'topK': params.top_k,
                'topP': params.top_p,
                'maxOutputTokens': params.max_output_tokens,
                'responseMimeType': 'application/json',
            },
        }

    def _http_failure(
        self,
        response: httpx.Response,
        invoked_at: datetime,
        start_time: float
    ) -> ProviderResponse:
        status = response.status_code
        if status == 429:
            return self._failure(
                ProviderErrorCode.RATE_LIMITED, "Rate limited by Gemini",
                invoked_at, start_time, http_status=status,
                retry_after=_retry_after(response),
            )
        if status == 400:
            code, message = ProviderErrorCode.BAD_REQUEST, "Bad Request: Invalid input format"
        elif status in (401, 403):
            code, message = ProviderErrorCode.UNAUTHORIZED, "API Key Invalid or Unauthorized"
        else:
            code, message = ProviderErrorCode.API_ERROR, f"HTTP {status}: {_error_detail(response)}"
        return self._failure(code, message, invoked_at, start_time, http_status=status)

    def _failure(
        self,
        code: ProviderErrorCode,
        message: str,
        invoked_at: datetime,
        start_time: float,
        http_status: Optional[int] = None,
        retry_after: Optional[float] = None
    ) -> ProviderResponse:
        return ProviderResponse(
            success=False,
            error_code=code,
            error_message=message,
            http_status=http_status,
            retry_after_seconds=retry_after,
            provider_version=self._version,
            invoked_at=invoked_at,
            latency_ms=(time.time() - start_time) * 1000,
        )


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get('retry-after')
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json()['error']['message']
    except (ValueError, KeyError, TypeError):
        return response.text[:200]
