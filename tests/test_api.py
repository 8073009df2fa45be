from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from atlas_gateway.core.gate import AuthMode
from atlas_gateway.core.types import ProviderId, TimedOut, UpstreamFailure
from atlas_gateway.main import create_app

SCENARIO_REPLY = '```json {"script":[{"speaker":"A","text":"..."}]} ```'


class StubVerifier:
    def verify(self, token):
        if token != "good-token":
            raise ValueError("invalid token")
        return {"sub": "student-1"}


@pytest.fixture()
def providers(scripted, chat_reply, prompt_reply):
    return {
        ProviderId.GEMINI: scripted(ProviderId.GEMINI, prompt_reply(SCENARIO_REPLY)),
        ProviderId.GROQ: scripted(ProviderId.GROQ, chat_reply("Hello! How can I help you study?")),
    }


@pytest.fixture()
def client(make_settings, providers) -> TestClient:
    app = create_app(
        make_settings(GEMINI_API_KEY="gemini-key", GROQ_API_KEY="groq-key"),
        auth_mode=AuthMode.anonymous(),
        clients=providers,
    )
    return TestClient(app)


@pytest.fixture()
def secured_client(make_settings, providers) -> TestClient:
    app = create_app(
        make_settings(GEMINI_API_KEY="gemini-key", GROQ_API_KEY="groq-key"),
        auth_mode=AuthMode.verified(StubVerifier()),
        clients=providers,
    )
    return TestClient(app)


def test_health_endpoint(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["providers"] == ["gemini", "groq"]
    assert body["auth"] == "anonymous"


def test_responses_carry_correlation_id(client: TestClient):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_chat_passes_provider_envelope_through(client: TestClient, providers):
    response = client.post(
        "/generate/chat",
        json={"messages": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "chat.completion"
    message = body["choices"][0]["message"]
    assert message["role"] == "assistant"
    assert message["content"]

    sent = providers[ProviderId.GROQ].calls[0][0]
    assert list(sent.messages) == [{"role": "user", "content": "hi"}]
    assert providers[ProviderId.GEMINI].calls == []


def test_chat_validation_error_is_generic_400(client: TestClient, providers):
    response = client.post(
        "/generate/chat",
        json={"messages": [{"role": "wizard", "content": "hi"}]},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
    assert providers[ProviderId.GROQ].calls == []


def test_chat_malformed_json_is_400(client: TestClient):
    response = client.post(
        "/generate/chat",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}


def test_chat_upstream_failure_is_500(make_settings, scripted):
    app = create_app(
        make_settings(GROQ_API_KEY="groq-key"),
        auth_mode=AuthMode.anonymous(),
        clients={
            ProviderId.GEMINI: scripted(ProviderId.GEMINI, TimedOut()),
            ProviderId.GROQ: scripted(
                ProviderId.GROQ,
                UpstreamFailure(401, "groq API Error: Invalid API Key"),
            ),
        },
    )

    response = TestClient(app).post(
        "/generate/chat",
        json={"messages": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "groq API Error: Invalid API Key"}


def test_chat_missing_key_is_config_error_without_network_call(make_settings):
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    app = create_app(
        make_settings(),
        auth_mode=AuthMode.anonymous(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    response = TestClient(app).post(
        "/generate/chat",
        json={"messages": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Server configuration error: Missing GROQ_API_KEY"}
    assert calls == []


def test_secured_chat_requires_bearer_token(secured_client: TestClient, providers):
    response = secured_client.post(
        "/generate/chat",
        json={"messages": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert providers[ProviderId.GROQ].calls == []


def test_secured_chat_rejects_invalid_token(secured_client: TestClient, providers):
    response = secured_client.post(
        "/generate/chat",
        json={"messages": [{"role": "user", "content": "hi"}]},
        headers={"Authorization": "Bearer expired-token"},
    )

    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden"}
    assert providers[ProviderId.GROQ].calls == []


def test_secured_chat_authenticates_before_validating(secured_client: TestClient):
    response = secured_client.post("/generate/chat", json={"messages": []})

    assert response.status_code == 401


def test_secured_chat_accepts_valid_token(secured_client: TestClient):
    response = secured_client.post(
        "/generate/chat",
        json={"messages": [{"role": "user", "content": "hi"}]},
        headers={"Authorization": "Bearer good-token"},
    )

    assert response.status_code == 200


def test_script_scenario_from_primary_provider(client: TestClient, providers):
    response = client.post(
        "/generate/script",
        json={"mode": "content", "content": "photosynthesis basics"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "script": [{"speaker": "A", "text": "..."}],
        "provider": "gemini",
    }
    assert providers[ProviderId.GROQ].calls == []


def test_script_syllabus_mode_builds_prompt_from_syllabus(client: TestClient, providers):
    response = client.post(
        "/generate/script",
        json={
            "mode": "syllabus",
            "syllabus": {"subject": "Biology", "topic": "Cell division", "level": "Grade 10"},
        },
    )

    assert response.status_code == 200
    prompt = providers[ProviderId.GEMINI].calls[0][0].prompt
    assert "SUBJECT: Biology" in prompt
    assert "TOPIC: Cell division" in prompt
    assert "LEVEL: Grade 10" in prompt


def test_script_falls_back_to_secondary_on_primary_timeout(make_settings, scripted, chat_reply):
    app = create_app(
        make_settings(GEMINI_API_KEY="gemini-key", GROQ_API_KEY="groq-key"),
        auth_mode=AuthMode.anonymous(),
        clients={
            ProviderId.GEMINI: scripted(ProviderId.GEMINI, TimedOut()),
            ProviderId.GROQ: scripted(
                ProviderId.GROQ,
                chat_reply('{"script": [{"speaker": "Sam", "text": "Light drives it."}]}'),
            ),
        },
    )

    response = TestClient(app).post(
        "/generate/script",
        json={"mode": "content", "content": "photosynthesis basics"},
    )

    assert response.status_code == 200
    assert response.json()["provider"] == "groq"
    assert response.json()["script"] == [{"speaker": "Sam", "text": "Light drives it."}]


def test_script_unparseable_output_is_generation_failure(make_settings, scripted, prompt_reply, chat_reply):
    groq = scripted(ProviderId.GROQ, chat_reply('{"script": []}'))
    app = create_app(
        make_settings(GEMINI_API_KEY="gemini-key", GROQ_API_KEY="groq-key"),
        auth_mode=AuthMode.anonymous(),
        clients={
            ProviderId.GEMINI: scripted(ProviderId.GEMINI, prompt_reply("Sorry, I can't do that.")),
            ProviderId.GROQ: groq,
        },
    )

    response = TestClient(app).post(
        "/generate/script",
        json={"mode": "content", "content": "photosynthesis basics"},
    )

    assert response.status_code == 500
    assert response.json() == {
        "error": "Generation Failed",
        "message": "AI returned invalid JSON structure",
    }
    assert groq.calls == []


def test_script_validation_error_shape(client: TestClient):
    response = client.post("/generate/script", json={"content": "missing mode"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request", "message": "Invalid request"}


def test_simple_returns_chat_shaped_envelope(client: TestClient, providers):
    response = client.post(
        "/generate/simple",
        json={"messages": [{"role": "user", "content": "Explain osmosis"}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["choices"][0]["message"] == {"role": "assistant", "content": SCENARIO_REPLY}
    assert body["provider"] == "gemini"
    assert providers[ProviderId.GEMINI].calls[0][0].prompt == "Explain osmosis"


def test_unexpected_error_is_rendered_as_json_500(make_settings, scripted):
    async def explode():
        raise RuntimeError("provider client bug")

    app = create_app(
        make_settings(GEMINI_API_KEY="gemini-key"),
        auth_mode=AuthMode.anonymous(),
        clients={
            ProviderId.GEMINI: scripted(ProviderId.GEMINI, explode),
            ProviderId.GROQ: scripted(ProviderId.GROQ, explode),
        },
    )
    client = TestClient(app, raise_server_exceptions=False)

    chat = client.post("/generate/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    script = client.post(
        "/generate/script",
        json={"mode": "content", "content": "photosynthesis basics"},
    )

    assert chat.status_code == 500
    assert chat.json() == {"error": "Internal Server Error"}
    assert script.status_code == 500
    assert script.json() == {"error": "Generation Failed", "message": "Internal Server Error"}


def test_lifespan_owns_and_closes_the_shared_http_client(make_settings):
    app = create_app(make_settings(GROQ_API_KEY="groq-key"), auth_mode=AuthMode.anonymous())

    assert not hasattr(app.state, "provider_router")

    with TestClient(app) as client:
        http_client = app.state.http_client
        response = client.get("/health")
        assert http_client.is_closed is False

    assert response.json()["providers"] == ["groq"]
    assert http_client.is_closed is True
