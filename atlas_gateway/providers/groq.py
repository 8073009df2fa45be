from __future__ import annotations

from typing import Any

import httpx

from atlas_gateway.core.deadline import CancellationToken
from atlas_gateway.core.normalizer import extract_chat_text
from atlas_gateway.core.types import ProviderCandidate, ProviderReply, ProviderRequest

from .base import ProviderClient


class GroqChatClient(ProviderClient):
    """Chat-style provider speaking the OpenAI chat-completions protocol."""

    credential_key = "GROQ_API_KEY"

    def __init__(
        self,
        candidate: ProviderCandidate,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        *,
        url: str,
        default_model: str,
    ) -> None:
        super().__init__(candidate, http_client, api_key)
        self.url = url
        self.default_model = default_model

    async def complete(
        self,
        request: ProviderRequest,
        token: CancellationToken,
    ) -> ProviderReply:
        api_key = self._require_key()
        payload = await self._post_json(
            self.url,
            token,
            json=self._request_body(request),
            headers={"Authorization": f"Bearer {api_key}"},
        )
        return ProviderReply(text=extract_chat_text(payload), payload=payload)

    def _request_body(self, request: ProviderRequest) -> dict[str, Any]:
        if request.messages:
            messages = [dict(message) for message in request.messages]
        else:
            messages = [{"role": "user", "content": request.prompt}]

        body: dict[str, Any] = dict(request.options)
        body["messages"] = messages
        body["model"] = request.model or self.default_model

        if request.json_output:
            body.setdefault("temperature", 0.7)
            body["response_format"] = {"type": "json_object"}

        return body
