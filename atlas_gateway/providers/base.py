from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from atlas_gateway.core.deadline import CancellationToken, dispatch
from atlas_gateway.core.errors import ConfigError, UpstreamError
from atlas_gateway.core.types import (
    ConfigMissing,
    DispatchOutcome,
    ProviderCandidate,
    ProviderReply,
    ProviderRequest,
)


class ProviderClient(ABC):
    """One concrete provider family behind a uniform ``invoke`` capability."""

    credential_key: str

    def __init__(
        self,
        candidate: ProviderCandidate,
        http_client: httpx.AsyncClient,
        api_key: str | None,
    ) -> None:
        self.candidate = candidate
        self.http_client = http_client
        self._api_key = api_key

    async def invoke(self, request: ProviderRequest, deadline: float) -> DispatchOutcome:
        if not self._api_key:
            return ConfigMissing(self.credential_key)

        async def _call(token: CancellationToken) -> ProviderReply:
            return await self.complete(request, token)

        return await dispatch(_call, deadline)

    @abstractmethod
    async def complete(
        self,
        request: ProviderRequest,
        token: CancellationToken,
    ) -> ProviderReply:
        """Perform exactly one outbound call."""

    def _require_key(self) -> str:
        if not self._api_key:
            raise ConfigError(self.credential_key)
        return self._api_key

    async def _post_json(
        self,
        url: str,
        token: CancellationToken,
        *,
        json: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        token.raise_if_cancelled()
        response = await self.http_client.post(
            url,
            json=json,
            headers=headers,
            params=params,
            timeout=token.remaining(),
        )
        token.raise_if_cancelled()

        if response.is_success:
            try:
                payload = response.json()
            except ValueError as exc:
                raise UpstreamError(response.status_code, "Provider returned a non-JSON body") from exc
            return payload if isinstance(payload, dict) else {}

        raise UpstreamError(response.status_code, self._error_message(response))

    def _error_message(self, response: httpx.Response) -> str:
        detail = response.reason_phrase or f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                detail = error["message"]
            elif isinstance(error, str):
                detail = error

        return f"{self.candidate.provider_id.value} API Error: {detail}"
