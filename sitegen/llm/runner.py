"""Adapter around the remote Gemini text-generation endpoint."""

from __future__ import annotations

import http.client
import json
import os
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..errors import ConfigurationError, GenerationServiceError, TransientServiceError

_AUTO_API_KEY = object()

# Statuses the service uses for "try again later". 429 is excluded:
# Gemini reports quota exhaustion with it and that does not clear on retry.
TRANSIENT_STATUSES = frozenset({408, 500, 502, 503, 504})


@dataclass
class LLMRequest:
    """Represents one generateContent call."""

    prompt: str
    system: Optional[str]
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


class GeminiRunner:
    """Executes prompts against the Gemini ``generateContent`` REST API."""

    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    ENV_API_KEY_KEYS = ("GEMINI_API_KEY", "SITEGEN_API_KEY")

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None | object = _AUTO_API_KEY,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        request_timeout: Optional[float] = 120.0,
        runner: Callable[[LLMRequest], str] | None = None,
    ) -> None:
        self.model = model or self.DEFAULT_MODEL
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.api_key = self._resolve_api_key(api_key)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self._runner = runner or self._http_runner

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def run(self, prompt: str, *, system: str | None = None) -> str:
        """Send the prompt to the remote model and return the response text."""
        if not self.api_key and self._runner is self._http_runner:
            raise ConfigurationError(
                "GEMINI_API_KEY is not configured; generation is disabled."
            )
        request = LLMRequest(
            prompt=prompt,
            system=system,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            base_url=self.base_url,
            api_key=self.api_key,
            request_timeout=self.request_timeout,
        )
        return self._runner(request)

    @staticmethod
    def _http_runner(request: LLMRequest) -> str:
        endpoint = f"{request.base_url}/models/{quote(request.model, safe='')}:generateContent"
        payload: dict[str, object] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
        }
        if request.system:
            payload["systemInstruction"] = {"parts": [{"text": request.system}]}
        generation_config: dict[str, object] = {}
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config

        data = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if request.api_key:
            headers["x-goog-api-key"] = request.api_key

        http_request = Request(endpoint, data=data, headers=headers, method="POST")
        timeout = request.request_timeout or 120.0

        try:
            with urlopen(http_request, timeout=timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            raise GeminiRunner._classify_http_error(exc) from exc
        except URLError as exc:
            raise TransientServiceError(f"Generation service unreachable: {exc.reason}") from exc
        except TimeoutError as exc:
            raise TransientServiceError("Generation service timed out") from exc
        except (http.client.HTTPException, OSError) as exc:
            # Dropped connections and truncated bodies, including resets during read().
            raise TransientServiceError(
                f"Generation service connection failed: {exc.__class__.__name__}: {exc}"
            ) from exc

        try:
            response_payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GenerationServiceError("Generation service returned invalid JSON") from exc

        content = GeminiRunner._extract_content(response_payload)
        if not content:
            raise GenerationServiceError("Generation service returned an empty response")
        return content

    @staticmethod
    def _classify_http_error(exc: HTTPError) -> GenerationServiceError:
        detail = ""
        try:
            detail = exc.read().decode("utf-8", errors="ignore")
        except (AttributeError, OSError):
            detail = ""
        message = GeminiRunner._error_message(detail) or str(exc.reason)
        text = f"Generation service failed with status {exc.code}: {message}"
        if exc.code in TRANSIENT_STATUSES:
            return TransientServiceError(text, status=exc.code)
        return GenerationServiceError(text, status=exc.code)

    @staticmethod
    def _error_message(detail: str) -> str:
        detail = detail.strip()
        if not detail:
            return ""
        try:
            payload = json.loads(detail)
        except json.JSONDecodeError:
            return detail[:500]
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            status = error.get("status")
            message = error.get("message")
            parts = [str(part) for part in (status, message) if part]
            if parts:
                return " ".join(parts)
        return detail[:500]

    @staticmethod
    def _extract_content(payload: object) -> str:
        if not isinstance(payload, dict):
            return ""
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ""
        first = candidates[0]
        if not isinstance(first, dict):
            return ""
        content = first.get("content")
        if not isinstance(content, dict):
            return ""
        parts = content.get("parts")
        if not isinstance(parts, list):
            return ""
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "".join(texts)

    def _resolve_api_key(self, api_key: str | None | object) -> str | None:
        if api_key is _AUTO_API_KEY:
            return self._first_env_value(self.ENV_API_KEY_KEYS)
        return api_key  # type: ignore[return-value]

    @staticmethod
    def _first_env_value(keys: Sequence[str]) -> str | None:
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        return None


__all__ = ["GeminiRunner", "LLMRequest", "TRANSIENT_STATUSES"]
