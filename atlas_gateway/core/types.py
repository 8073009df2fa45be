from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict


class ProviderId(str, Enum):
    GEMINI = "gemini"
    GROQ = "groq"


class CallStyle(str, Enum):
    CHAT = "chat"
    SINGLE_PROMPT = "single_prompt"


class TaskKind(str, Enum):
    CHAT = "chat"
    SIMPLE = "simple"
    SCRIPT = "script"


@dataclass(frozen=True, slots=True)
class Identity:
    subject: str | None
    claims: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    anonymous: bool = False


ANONYMOUS_IDENTITY = Identity(subject=None, anonymous=True)


@dataclass(frozen=True, slots=True)
class CascadeEndpoint:
    api_version: str
    model_id: str

    def __str__(self) -> str:
        return f"{self.api_version}/{self.model_id}"


@dataclass(frozen=True, slots=True)
class ProviderCandidate:
    provider_id: ProviderId
    has_credentials: bool
    call_style: CallStyle
    endpoint_cascade: tuple[CascadeEndpoint, ...] = ()


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    """What one outbound call needs, regardless of provider shape."""

    prompt: str
    messages: tuple[Mapping[str, str], ...] = ()
    model: str | None = None
    json_output: bool = False
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class ProviderReply:
    text: str
    payload: dict[str, Any]


# Dispatch outcomes


@dataclass(frozen=True, slots=True)
class Success:
    reply: ProviderReply


@dataclass(frozen=True, slots=True)
class TimedOut:
    detail: str = "Provider call exceeded its deadline"

    def describe(self) -> str:
        return self.detail


@dataclass(frozen=True, slots=True)
class UpstreamFailure:
    status_code: int | None
    message: str

    def describe(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class ConfigMissing:
    missing_key: str

    def describe(self) -> str:
        return f"Missing {self.missing_key}"


@dataclass(frozen=True, slots=True)
class CascadeExhausted:
    attempts: int
    last: TimedOut | UpstreamFailure

    def describe(self) -> str:
        return self.last.describe()


Failure = TimedOut | UpstreamFailure | ConfigMissing | CascadeExhausted
DispatchOutcome = Success | Failure


class ScriptTurn(BaseModel):
    speaker: str
    text: str

    model_config = ConfigDict(extra="allow")


@dataclass(slots=True)
class ChatReply:
    text: str
    payload: dict[str, Any]
    provider: ProviderId


@dataclass(slots=True)
class StructuredScript:
    turns: list[ScriptTurn]
    provider: ProviderId
