"""
Provider-neutral request/response contract and the shared HTTP exchange.

Concrete clients only describe their wire format (endpoint, headers,
payload envelope, where the text lives in the reply); everything else,
including error mapping, happens here so provider quirks never leak out.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests

from ..cli_display import log, token_tracker
from ..errors import InvalidModel, NoProviderConfigured, ProviderRejected, TransportError

_EXCERPT_CHARS = 300


@dataclass(frozen=True)
class ProviderConfig:
    """Read-only provider settings, built once at startup."""
    provider_id: str
    base_url: str
    auth_token: str
    available_models: tuple[str, ...]
    api_format: str = "openai"

    def __repr__(self) -> str:
        # auth_token stays out of reprs, tracebacks and logs
        return (f"ProviderConfig(provider_id={self.provider_id!r}, "
                f"base_url={self.base_url!r}, models={len(self.available_models)})")


@dataclass(frozen=True)
class CompletionRequest:
    system_prompt: str
    user_prompt: str
    file_content: str
    model_id: str


@dataclass(frozen=True)
class CompletionResponse:
    raw_text: str
    provider_id: str
    model_id: str
    success: bool = True


def _excerpt(text: str) -> str:
    text = (text or "").strip()
    if len(text) > _EXCERPT_CHARS:
        return text[:_EXCERPT_CHARS] + "..."
    return text


class LLMClient(ABC):
    """One completion exchange against one provider family."""

    label = "LLM"

    def __init__(self, config: ProviderConfig, max_tokens: int = 2048,
                 temperature: float = 0.7, top_p: float = 0.9,
                 timeout: float = 300.0, connect_timeout: float = 10.0):
        if not config.auth_token:
            raise NoProviderConfigured(config.provider_id)
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.timeout = (connect_timeout, timeout)

    @property
    def provider_id(self) -> str:
        return self.config.provider_id

    def list_models(self) -> list[str]:
        """Configured models for this provider, first one is the default."""
        return list(self.config.available_models)

    def check_model(self, model_id: str) -> None:
        if model_id not in self.config.available_models:
            raise InvalidModel(model_id, self.provider_id)

    # ── Public entry point ──

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send exactly one request and normalise the reply.

        Raises :class:`InvalidModel` before touching the network,
        :class:`TransportError` on timeouts and connection failures and
        :class:`ProviderRejected` for non-2xx or malformed replies.
        """
        self.check_model(request.model_id)

        url = self._endpoint()
        payload = self._build_payload(request)
        est_tokens = int(len(self.format_user_content(request).split()) * 1.3)
        log.debug(f"[{self.label}] POST {url} model={request.model_id} "
                  f"(~{est_tokens} est. tokens)")
        log.debug(f"[{self.label}] Request body:\n{_dump_payload(payload)}")

        try:
            response = requests.post(url, headers=self._headers(), json=payload,
                                     timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            log.warning(f"[{self.label}] Transport error: {e}")
            raise TransportError(f"{self.provider_id}: {e}") from e

        log.debug(f"[{self.label}] Response status: {response.status_code}")
        if not 200 <= response.status_code < 300:
            raise ProviderRejected(response.status_code, _excerpt(response.text))

        try:
            data = response.json()
            text = self._extract_text(data)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            log.error(f"[{self.label}] Parse error: {e}")
            raise ProviderRejected(response.status_code, _excerpt(response.text)) from e

        self._record_usage(data, est_tokens)
        text = text or ""
        log.debug(f"[{self.label}] Response:\n{text}")
        if not text.strip():
            log.warning(f"[{self.label}] Empty completion from {self.provider_id}")

        return CompletionResponse(
            raw_text=text,
            provider_id=self.provider_id,
            model_id=request.model_id,
            success=bool(text.strip()),
        )

    def _record_usage(self, data: dict, est_tokens: int) -> None:
        prompt_tokens, completion_tokens = self._usage(data)
        token_tracker.record(
            prompt_tokens if isinstance(prompt_tokens, int) else est_tokens,
            completion_tokens if isinstance(completion_tokens, int) else 0,
        )
        log.debug(f"[{self.label}] Usage: prompt={prompt_tokens} "
                  f"completion={completion_tokens}")

    @staticmethod
    def format_user_content(request: CompletionRequest) -> str:
        """Instruction followed by the file, as one user message."""
        if not request.file_content:
            return request.user_prompt
        return f"{request.user_prompt}\n\n{request.file_content}"

    # ── Subclass hooks ──

    @abstractmethod
    def _endpoint(self) -> str:
        """Full URL of the completion endpoint."""

    @abstractmethod
    def _headers(self) -> dict:
        """Request headers, including authentication."""

    @abstractmethod
    def _build_payload(self, request: CompletionRequest) -> dict:
        """JSON body for *request* in the provider's envelope."""

    @abstractmethod
    def _extract_text(self, data: dict) -> str:
        """Generated text from the decoded JSON reply."""

    def _usage(self, data: dict) -> tuple:
        return None, None


def _dump_payload(payload: dict) -> str:
    """Pretty JSON for debug logs."""
    return json.dumps(payload, indent=2, ensure_ascii=False)
