"""Tests for the Gemini runner."""

from __future__ import annotations

import asyncio
import http.client
import io
import json
from urllib.error import HTTPError, URLError

import pytest

from sitegen.acquirer import ContentAcquirer
from sitegen.errors import ConfigurationError, GenerationServiceError, TransientServiceError
from sitegen.llm.retry import RetryPolicy
from sitegen.llm.runner import GeminiRunner
from tests._fixtures.fakes import RecordingSleep


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def read(self):
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _http_error(code: int, body: dict) -> HTTPError:
    return HTTPError(
        "https://example.invalid",
        code,
        "error",
        hdrs=None,  # type: ignore[arg-type]
        fp=io.BytesIO(json.dumps(body).encode("utf-8")),
    )


def test_runner_constructs_request() -> None:
    captured = {}

    def fake_runner(request):
        captured["prompt"] = request.prompt
        captured["system"] = request.system
        captured["model"] = request.model
        captured["temperature"] = request.temperature
        captured["max_tokens"] = request.max_tokens
        captured["api_key"] = request.api_key
        captured["request_timeout"] = request.request_timeout
        return "response"

    runner = GeminiRunner(
        model="gemini-test",
        api_key="secret",
        temperature=0.3,
        max_tokens=2048,
        request_timeout=42.0,
        runner=fake_runner,
    )
    result = runner.run("Build a todo app", system="be terse")

    assert result == "response"
    assert captured == {
        "prompt": "Build a todo app",
        "system": "be terse",
        "model": "gemini-test",
        "temperature": 0.3,
        "max_tokens": 2048,
        "api_key": "secret",
        "request_timeout": 42.0,
    }


def test_runner_http_posts_generate_content(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        captured["payload"] = json.loads(request.data.decode("utf-8"))
        captured["timeout"] = timeout
        return FakeResponse(
            {"candidates": [{"content": {"parts": [{"text": "<file name=\"a\">"}, {"text": "x</file>"}]}}]}
        )

    monkeypatch.setattr("sitegen.llm.runner.urlopen", fake_urlopen)

    runner = GeminiRunner(
        model="gemini-1.5-flash",
        base_url="https://generativelanguage.googleapis.com/v1beta/",
        api_key="key-123",
        temperature=0.5,
        max_tokens=100,
        request_timeout=30.0,
    )
    result = runner.run("make a site")

    assert result == '<file name="a">x</file>'
    assert captured["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
    )
    assert captured["headers"]["x-goog-api-key"] == "key-123"
    assert captured["headers"]["content-type"] == "application/json"
    payload = captured["payload"]
    assert payload["contents"] == [{"role": "user", "parts": [{"text": "make a site"}]}]
    assert payload["generationConfig"] == {"temperature": 0.5, "maxOutputTokens": 100}
    assert captured["timeout"] == 30.0


@pytest.mark.parametrize("status", [500, 502, 503, 504])
def test_unavailable_statuses_are_transient(monkeypatch, status: int) -> None:
    def fake_urlopen(request, timeout=None):
        raise _http_error(status, {"error": {"status": "UNAVAILABLE", "message": "overloaded"}})

    monkeypatch.setattr("sitegen.llm.runner.urlopen", fake_urlopen)

    with pytest.raises(TransientServiceError) as excinfo:
        GeminiRunner(api_key="k").run("prompt")

    assert excinfo.value.status == status
    assert "UNAVAILABLE overloaded" in str(excinfo.value)


@pytest.mark.parametrize("status", [400, 401, 403, 429])
def test_client_and_quota_errors_are_terminal(monkeypatch, status: int) -> None:
    def fake_urlopen(request, timeout=None):
        raise _http_error(status, {"error": {"status": "RESOURCE_EXHAUSTED", "message": "quota"}})

    monkeypatch.setattr("sitegen.llm.runner.urlopen", fake_urlopen)

    with pytest.raises(GenerationServiceError) as excinfo:
        GeminiRunner(api_key="k").run("prompt")

    assert not isinstance(excinfo.value, TransientServiceError)
    assert excinfo.value.status == status


def test_connection_failure_is_transient(monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise URLError("connection refused")

    monkeypatch.setattr("sitegen.llm.runner.urlopen", fake_urlopen)

    with pytest.raises(TransientServiceError, match="unreachable"):
        GeminiRunner(api_key="k").run("prompt")


@pytest.mark.parametrize(
    "error",
    [
        http.client.RemoteDisconnected("Remote end closed connection without response"),
        ConnectionResetError(104, "Connection reset by peer"),
    ],
)
def test_dropped_connection_is_transient(monkeypatch, error: Exception) -> None:
    def fake_urlopen(request, timeout=None):
        raise error

    monkeypatch.setattr("sitegen.llm.runner.urlopen", fake_urlopen)

    with pytest.raises(TransientServiceError, match="connection failed"):
        GeminiRunner(api_key="k").run("prompt")


def test_truncated_body_is_transient(monkeypatch) -> None:
    class TruncatedResponse(FakeResponse):
        def read(self):
            raise http.client.IncompleteRead(b'{"candi', 512)

    monkeypatch.setattr(
        "sitegen.llm.runner.urlopen", lambda request, timeout=None: TruncatedResponse({})
    )

    with pytest.raises(TransientServiceError):
        GeminiRunner(api_key="k").run("prompt")


def test_dropped_connection_is_retried_then_falls_back(monkeypatch) -> None:
    calls = []

    def fake_urlopen(request, timeout=None):
        calls.append(request)
        raise http.client.RemoteDisconnected("Remote end closed connection without response")

    monkeypatch.setattr("sitegen.llm.runner.urlopen", fake_urlopen)
    acquirer = ContentAcquirer(
        GeminiRunner(api_key="k"),
        policy=RetryPolicy(max_attempts=3, initial_delay=0.0),
        on_exhaustion="fallback",
        sleep=RecordingSleep(),
    )

    result = asyncio.run(acquirer.acquire("prompt"))

    assert len(calls) == 3
    assert result.degraded is True


def test_empty_candidates_are_rejected(monkeypatch) -> None:
    monkeypatch.setattr(
        "sitegen.llm.runner.urlopen", lambda request, timeout=None: FakeResponse({"candidates": []})
    )

    with pytest.raises(GenerationServiceError, match="empty response"):
        GeminiRunner(api_key="k").run("prompt")


def test_missing_credential_is_a_configuration_error(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("SITEGEN_API_KEY", raising=False)

    runner = GeminiRunner()

    assert runner.configured is False
    with pytest.raises(ConfigurationError):
        runner.run("prompt")


def test_credential_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    assert GeminiRunner().api_key == "from-env"
