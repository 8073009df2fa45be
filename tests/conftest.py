from __future__ import annotations

import inspect

import pytest

from atlas_gateway.config import Settings
from atlas_gateway.core.types import ProviderId, ProviderReply, Success

_PROVIDER_ENV = (
    "GROQ_API_KEY",
    "GEMINI_API_KEY",
    "VITE_GEMINI_API_KEY",
    "FIREBASE_PROJECT_ID",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "ATLAS_DEADLINE_SECONDS",
    "PROVIDER_PRIORITY",
)


@pytest.fixture(autouse=True)
def clean_provider_env(monkeypatch):
    for name in _PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = {
            "GOOGLE_APPLICATION_CREDENTIALS": str(tmp_path / "missing.json"),
            "ATLAS_DEADLINE_SECONDS": 0.5,
            "LOG_JSON": False,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


class ScriptedClient:
    """Stands in for a provider client; replays outcomes in order."""

    def __init__(self, provider_id: ProviderId, *outcomes):
        self.provider_id = provider_id
        self.outcomes = list(outcomes)
        self.calls = []

    async def invoke(self, request, deadline):
        self.calls.append((request, deadline))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if inspect.iscoroutinefunction(outcome):
            return await outcome()
        return outcome


def chat_success(text: str) -> Success:
    payload = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
    }
    return Success(ProviderReply(text=text, payload=payload))


def prompt_success(text: str) -> Success:
    payload = {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}
    return Success(ProviderReply(text=text, payload=payload))


@pytest.fixture()
def scripted():
    return ScriptedClient


@pytest.fixture()
def chat_reply():
    return chat_success


@pytest.fixture()
def prompt_reply():
    return prompt_success
