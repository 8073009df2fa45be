from __future__ import annotations

import httpx

from atlas_gateway.core.cascade import VersionCascade
from atlas_gateway.core.deadline import CancellationToken, ProviderCall
from atlas_gateway.core.normalizer import extract_prompt_text
from atlas_gateway.core.types import (
    CascadeEndpoint,
    ConfigMissing,
    DispatchOutcome,
    ProviderCandidate,
    ProviderReply,
    ProviderRequest,
)

from .base import ProviderClient


class GeminiPromptClient(ProviderClient):
    """Single-prompt provider reached through an API-version/model cascade.

    ``invoke`` walks the candidate's ``endpoint_cascade``; each endpoint is
    one deadline-bounded ``generateContent`` call.
    """

    credential_key = "GEMINI_API_KEY"

    def __init__(
        self,
        candidate: ProviderCandidate,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        *,
        base_url: str,
    ) -> None:
        super().__init__(candidate, http_client, api_key)
        self.base_url = base_url.rstrip("/")
        self.cascade = VersionCascade(candidate.endpoint_cascade)

    async def invoke(self, request: ProviderRequest, deadline: float) -> DispatchOutcome:
        if not self._api_key:
            return ConfigMissing(self.credential_key)

        def _call_for(endpoint: CascadeEndpoint) -> ProviderCall:
            async def _call(token: CancellationToken) -> ProviderReply:
                return await self.complete(request, token, endpoint=endpoint)

            return _call

        return await self.cascade.try_all(_call_for, deadline)

    async def complete(
        self,
        request: ProviderRequest,
        token: CancellationToken,
        endpoint: CascadeEndpoint | None = None,
    ) -> ProviderReply:
        api_key = self._require_key()
        if endpoint is None:
            endpoint = self.candidate.endpoint_cascade[0]

        payload = await self._post_json(
            self.endpoint_url(endpoint),
            token,
            json={"contents": [{"parts": [{"text": request.prompt}]}]},
            params={"key": api_key},
        )
        return ProviderReply(text=extract_prompt_text(payload), payload=payload)

    def endpoint_url(self, endpoint: CascadeEndpoint) -> str:
        return (
            f"{self.base_url}/{endpoint.api_version}/models/"
            f"{endpoint.model_id}:generateContent"
        )
