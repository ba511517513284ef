"""
Provider router — picks the client for a provider and the model to use.

Selection only: the router never talks to the network itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from .anthropic_client import AnthropicClient
from .base import CompletionRequest, CompletionResponse, LLMClient, ProviderConfig
from .openai_client import OpenAIClient
from ..cli_display import log
from ..errors import InvalidModel, NoProviderConfigured

# api_format -> client class
CLIENT_REGISTRY: dict[str, type[LLMClient]] = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
}


class ModelSelection(str, Enum):
    DEFAULT = "default"
    INTERACTIVE = "interactive"


@dataclass(frozen=True)
class ActiveProvider:
    """A ready client bound to the model chosen for this session."""
    client: LLMClient
    model_id: str

    @property
    def provider_id(self) -> str:
        return self.client.provider_id

    def complete(self, system_prompt: str, user_prompt: str,
                 file_content: str) -> CompletionResponse:
        return self.client.complete(CompletionRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            file_content=file_content,
            model_id=self.model_id,
        ))


class ProviderRouter:
    """Uniform entry point over every configured provider."""

    def __init__(self, providers: Mapping[str, ProviderConfig],
                 client_options: dict | None = None):
        self._providers = dict(providers)
        self._client_options = dict(client_options or {})

    def provider_ids(self) -> list[str]:
        return list(self._providers)

    def _config_for(self, provider_id: str) -> ProviderConfig:
        config = self._providers.get(provider_id)
        if config is None:
            raise NoProviderConfigured(provider_id, f"unknown provider '{provider_id}'")
        if not config.auth_token:
            raise NoProviderConfigured(provider_id)
        if not config.available_models:
            raise NoProviderConfigured(provider_id, f"no models configured for '{provider_id}'")
        return config

    def client_for(self, provider_id: str) -> LLMClient:
        config = self._config_for(provider_id)
        client_cls = CLIENT_REGISTRY.get(config.api_format)
        if client_cls is None:
            raise NoProviderConfigured(
                provider_id, f"unsupported api_format '{config.api_format}'")
        return client_cls(config, **self._client_options)

    def list_models(self, provider_id: str) -> list[str]:
        return self.client_for(provider_id).list_models()

    def route(self, provider_id: str,
              mode: ModelSelection = ModelSelection.DEFAULT,
              chosen_model: str | None = None) -> ActiveProvider:
        """Return the active client for *provider_id*.

        In ``DEFAULT`` mode the provider's first configured model is used;
        in ``INTERACTIVE`` mode *chosen_model* must be one of
        :meth:`list_models`.
        """
        client = self.client_for(provider_id)
        models = client.list_models()

        if mode is ModelSelection.INTERACTIVE:
            if chosen_model is None:
                raise InvalidModel("", provider_id,
                                   detail="interactive selection requires a chosen model")
            client.check_model(chosen_model)
            model_id = chosen_model
        else:
            model_id = models[0]

        log.info(f"[Router] provider={provider_id} model={model_id} mode={mode.value}")
        return ActiveProvider(client=client, model_id=model_id)
