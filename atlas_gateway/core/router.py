from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Sequence

from .errors import ConfigError, OrchestrationError
from .normalizer import parse_structured
from .prompts import build_podcast_prompt
from .types import (
    ChatReply,
    ConfigMissing,
    ProviderCandidate,
    ProviderId,
    ProviderReply,
    ProviderRequest,
    StructuredScript,
    Success,
    TaskKind,
)

if TYPE_CHECKING:
    from atlas_gateway.providers.base import ProviderClient
    from atlas_gateway.schemas import ChatRequest, ScriptRequest, SimpleRequest

logger = logging.getLogger(__name__)

AUTO = "auto"
CHAT_PROVIDER = ProviderId.GROQ
PROMPT_PROVIDER = ProviderId.GEMINI


class ProviderRouter:
    """Pick an ordered fallback sequence and walk it one provider at a time."""

    def __init__(
        self,
        candidates: Mapping[ProviderId, ProviderCandidate],
        clients: Mapping[ProviderId, ProviderClient],
        priority: Sequence[ProviderId],
        deadline: float,
    ) -> None:
        self.candidates = candidates
        self.clients = clients
        self.priority = tuple(priority)
        self.deadline = deadline

    def available(self) -> list[ProviderId]:
        return [pid for pid in self.priority if self.candidates[pid].has_credentials]

    def plan(self, preference: str, task: TaskKind) -> list[ProviderCandidate]:
        if preference != AUTO:
            return [self.candidates[ProviderId(preference)]]

        usable = [self.candidates[pid] for pid in self.available()]
        if not usable:
            # Surfaces as ConfigError without any network call
            return [self.candidates[self.priority[0]]]

        if task is TaskKind.SCRIPT:
            return usable
        return usable[:1]

    async def route_chat(self, request: ChatRequest) -> ChatReply:
        extra = dict(request.model_extra or {})
        extra.pop("stream", None)
        provider_request = ProviderRequest(
            prompt=request.messages[-1].content,
            messages=tuple(turn.model_dump() for turn in request.messages),
            model=request.model,
            options=extra,
        )
        provider_id, reply = await self._dispatch_sequence(
            self.plan(CHAT_PROVIDER.value, TaskKind.CHAT),
            provider_request,
        )
        return ChatReply(text=reply.text, payload=reply.payload, provider=provider_id)

    async def route_simple(self, request: SimpleRequest) -> ChatReply:
        prompt = request.messages[-1].content.strip() or "Hello"
        provider_id, reply = await self._dispatch_sequence(
            self.plan(PROMPT_PROVIDER.value, TaskKind.SIMPLE),
            ProviderRequest(prompt=prompt),
        )
        return ChatReply(text=reply.text, payload=reply.payload, provider=provider_id)

    async def route_script(self, task: ScriptRequest) -> StructuredScript:
        provider_request = ProviderRequest(prompt=build_podcast_prompt(task), json_output=True)
        provider_id, reply = await self._dispatch_sequence(
            self.plan(task.provider, TaskKind.SCRIPT),
            provider_request,
        )

        logger.info("Script raw result length: %d (provider=%s)", len(reply.text), provider_id.value)
        # StructuralError propagates as-is; it never moves on to another provider
        turns = parse_structured(reply.text)
        logger.info("Parsed script with %d lines", len(turns))
        return StructuredScript(turns=turns, provider=provider_id)

    async def _dispatch_sequence(
        self,
        sequence: Sequence[ProviderCandidate],
        request: ProviderRequest,
    ) -> tuple[ProviderId, ProviderReply]:
        last_cause = "No provider candidates"

        for index, candidate in enumerate(sequence):
            provider_id = candidate.provider_id
            logger.info(
                "Dispatching to %s (candidate %d of %d)",
                provider_id.value,
                index + 1,
                len(sequence),
            )
            outcome = await self.clients[provider_id].invoke(request, self.deadline)

            if isinstance(outcome, Success):
                return provider_id, outcome.reply

            if isinstance(outcome, ConfigMissing):
                logger.error("Provider %s is not configured: missing %s", provider_id.value, outcome.missing_key)
                raise ConfigError(outcome.missing_key)

            last_cause = outcome.describe()
            if index + 1 < len(sequence):
                logger.warning(
                    "%s failed, falling back to %s: %s",
                    provider_id.value,
                    sequence[index + 1].provider_id.value,
                    last_cause,
                )
            else:
                logger.error("%s failed: %s", provider_id.value, last_cause)

        raise OrchestrationError(last_cause=last_cause, attempts=len(sequence))
