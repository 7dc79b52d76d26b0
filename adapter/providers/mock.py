"""
Scripted Provider
=================

Deterministic provider for testing and offline runs.

GUARANTEES:
- Replays a queue of scripted outcomes in order
- Once the script is exhausted, repeats the default outcome
- No external dependencies, no network
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union
import json

from .base import (
    InferenceProvider,
    ProviderVersion,
    ProviderResponse,
    ProviderErrorCode,
    InvocationParams,
)


DEFAULT_CONTENT = json.dumps({
    "sentiment": "neutral",
    "summary": "A scripted summary of the document.",
    "keywords": ["scripted", "document", "summary"],
})

Outcome = Union[str, ProviderErrorCode]


class ScriptedProvider(InferenceProvider):
    """
    Provider whose responses are given up front.

    Each outcome is either response text (success) or a ProviderErrorCode
    (failure with that code).
    """

    def __init__(
        self,
        script: Optional[Iterable[Outcome]] = None,
        default: Outcome = DEFAULT_CONTENT
    ):
        self._script: List[Outcome] = list(script or [])
        self._default = default
        self.prompts: List[str] = []
        self._version = ProviderVersion(
            provider_id="scripted",
            model_id="scripted-v1",
            api_version="1.0.0",
        )

    @property
    def provider_id(self) -> str:
        return "scripted"

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    def get_version(self) -> ProviderVersion:
        return self._version

    def invoke(
        self,
        prompt: str,
        params: InvocationParams
    ) -> ProviderResponse:
        self.prompts.append(prompt)
        outcome = self._script.pop(0) if self._script else self._default
        invoked_at = datetime.now(timezone.utc)

        if isinstance(outcome, ProviderErrorCode):
            return ProviderResponse(
                success=False,
                error_code=outcome,
                error_message=f"Scripted provider configured to fail: {outcome.value}",
                http_status=429 if outcome == ProviderErrorCode.RATE_LIMITED else None,
                provider_version=self._version,
                invoked_at=invoked_at,
            )

        return ProviderResponse(
            success=True,
            content=outcome,
            provider_version=self._version,
            invoked_at=invoked_at,
        )
