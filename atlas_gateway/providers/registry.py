"""
Provider candidate table.

Built once at startup from ``Settings``; the returned mappings are
read-only and shared by every request. Rotating a credential means
restarting the process.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

import httpx

from atlas_gateway.config import Settings
from atlas_gateway.core.types import CallStyle, CascadeEndpoint, ProviderCandidate, ProviderId

from .base import ProviderClient
from .gemini import GeminiPromptClient
from .groq import GroqChatClient

logger = logging.getLogger(__name__)


def build_candidates(settings: Settings) -> Mapping[ProviderId, ProviderCandidate]:
    cascade = tuple(
        CascadeEndpoint(api_version=version, model_id=model)
        for version in settings.gemini_api_versions
        for model in settings.gemini_models
    )

    candidates = {
        ProviderId.GEMINI: ProviderCandidate(
            provider_id=ProviderId.GEMINI,
            has_credentials=bool(settings.gemini_api_key),
            call_style=CallStyle.SINGLE_PROMPT,
            endpoint_cascade=cascade,
        ),
        ProviderId.GROQ: ProviderCandidate(
            provider_id=ProviderId.GROQ,
            has_credentials=bool(settings.groq_api_key),
            call_style=CallStyle.CHAT,
        ),
    }

    for candidate in candidates.values():
        logger.info(
            "Provider %s key loaded: %s",
            candidate.provider_id.value,
            candidate.has_credentials,
        )

    return MappingProxyType(candidates)


def build_priority(settings: Settings) -> tuple[ProviderId, ...]:
    priority: list[ProviderId] = []
    for name in settings.provider_priority:
        try:
            provider_id = ProviderId(name)
        except ValueError:
            logger.warning("Ignoring unknown provider %r in PROVIDER_PRIORITY", name)
            continue
        if provider_id not in priority:
            priority.append(provider_id)

    # Providers left out of the configured order still trail it
    for provider_id in ProviderId:
        if provider_id not in priority:
            priority.append(provider_id)

    return tuple(priority)


def build_clients(
    settings: Settings,
    candidates: Mapping[ProviderId, ProviderCandidate],
    http_client: httpx.AsyncClient,
) -> Mapping[ProviderId, ProviderClient]:
    clients: dict[ProviderId, ProviderClient] = {
        ProviderId.GEMINI: GeminiPromptClient(
            candidates[ProviderId.GEMINI],
            http_client,
            settings.gemini_api_key,
            base_url=settings.gemini_base_url,
        ),
        ProviderId.GROQ: GroqChatClient(
            candidates[ProviderId.GROQ],
            http_client,
            settings.groq_api_key,
            url=settings.groq_url,
            default_model=settings.groq_model,
        ),
    }
    return MappingProxyType(clients)
