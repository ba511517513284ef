"""
Configuration — loads settings from .llmedit.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

from __future__ import annotations

import copy
import os

import yaml

from .llm.base import ProviderConfig

_DEFAULTS = {
    "provider": "hyperbolic",
    "max_retries": 3,
    "retry_delay": 2.0,
    "request_timeout": 300.0,
    "connect_timeout": 10.0,
    "max_tokens": 2048,
    "temperature": 0.7,
    "top_p": 0.9,
    "backup": True,
    "backup_suffix": ".bak",
    "tui": True,
    "log_dir": os.path.join("~", ".llmedit", "logs"),
}

# Built-in providers; the first model of each list is its default
_PROVIDERS = {
    "hyperbolic": {
        "base_url": "https://api.hyperbolic.xyz/v1",
        "api_format": "openai",
        "models": [
            "meta-llama/Meta-Llama-3.1-405B-Instruct",
            "NousResearch/Hermes-3-Llama-3.1-70B",
            "meta-llama/Meta-Llama-3.1-70B-Instruct",
            "meta-llama/Meta-Llama-3.1-8B-Instruct",
            "meta-llama/Meta-Llama-3-70B-Instruct",
        ],
    },
    "openrouter": {
        "base_url": "https://openrouter.ai/api/v1",
        "api_format": "openai",
        "models": [
            "nousresearch/hermes-3-llama-3.1-405b",
            "meta-llama/llama-3.1-405b-instruct",
            "meta-llama/llama-3.1-70b-instruct",
            "meta-llama/llama-3.1-8b-instruct",
        ],
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "api_format": "openai",
        "models": ["gpt-4o", "gpt-4o-mini"],
    },
    "anthropic": {
        "base_url": "https://api.anthropic.com/v1",
        "api_format": "anthropic",
        "models": ["claude-3-5-sonnet-latest", "claude-3-5-haiku-latest"],
    },
}

# Config file search locations
_CONFIG_FILENAMES = [".llmedit.yaml", ".llmedit.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


def env_prefix(provider_id: str) -> str:
    """``open-router`` -> ``OPEN_ROUTER`` for env var names."""
    return "".join(c if c.isalnum() else "_" for c in provider_id).upper()


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .llmedit.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        self.PROVIDER = _get("LLMEDIT_PROVIDER", "provider", _DEFAULTS["provider"])

        self.MAX_RETRIES = _get("LLMEDIT_MAX_RETRIES", "max_retries",
                                _DEFAULTS["max_retries"], cast=int)
        self.RETRY_DELAY = _get("LLMEDIT_RETRY_DELAY", "retry_delay",
                                _DEFAULTS["retry_delay"], cast=float)
        self.REQUEST_TIMEOUT = _get("LLMEDIT_REQUEST_TIMEOUT", "request_timeout",
                                    _DEFAULTS["request_timeout"], cast=float)
        self.CONNECT_TIMEOUT = _get("LLMEDIT_CONNECT_TIMEOUT", "connect_timeout",
                                    _DEFAULTS["connect_timeout"], cast=float)

        self.MAX_TOKENS = _get("LLMEDIT_MAX_TOKENS", "max_tokens",
                               _DEFAULTS["max_tokens"], cast=int)
        self.TEMPERATURE = _get("LLMEDIT_TEMPERATURE", "temperature",
                                _DEFAULTS["temperature"], cast=float)
        self.TOP_P = _get("LLMEDIT_TOP_P", "top_p", _DEFAULTS["top_p"], cast=float)

        self.BACKUP = _get_bool("LLMEDIT_BACKUP", "backup", _DEFAULTS["backup"])
        self.BACKUP_SUFFIX = _get("LLMEDIT_BACKUP_SUFFIX", "backup_suffix",
                                  _DEFAULTS["backup_suffix"])
        self.TUI = _get_bool("LLMEDIT_TUI", "tui", _DEFAULTS["tui"])
        self.LOG_DIR = os.path.expanduser(
            _get("LLMEDIT_LOG_DIR", "log_dir", _DEFAULTS["log_dir"]))

        # Providers: built-ins, then YAML overrides / additions
        self.PROVIDERS: dict[str, dict] = copy.deepcopy(_PROVIDERS)
        self._api_keys: dict[str, str] = {}
        providers_section = yd.get("providers", {})
        if isinstance(providers_section, dict):
            for provider_id, section in providers_section.items():
                if not isinstance(section, dict):
                    continue
                provider_id = str(provider_id)
                entry = self.PROVIDERS.setdefault(
                    provider_id, {"base_url": "", "api_format": "openai", "models": []})
                if section.get("base_url"):
                    entry["base_url"] = str(section["base_url"])
                if section.get("api_format"):
                    entry["api_format"] = str(section["api_format"])
                if isinstance(section.get("models"), list):
                    entry["models"] = [str(m) for m in section["models"]]
                if section.get("api_key"):
                    self._api_keys[provider_id] = str(section["api_key"]).strip()

        for provider_id, entry in self.PROVIDERS.items():
            env_url = os.getenv(f"{env_prefix(provider_id)}_BASE_URL")
            if env_url:
                entry["base_url"] = env_url

    def yaml_api_key(self, provider_id: str) -> str:
        """API key given in the YAML file, or empty string."""
        return self._api_keys.get(provider_id, "")

    def provider_config(self, provider_id: str, auth_token: str) -> ProviderConfig | None:
        """Immutable :class:`ProviderConfig` for *provider_id*, or None if unknown."""
        entry = self.PROVIDERS.get(provider_id)
        if entry is None:
            return None
        return ProviderConfig(
            provider_id=provider_id,
            base_url=entry["base_url"],
            auth_token=auth_token,
            available_models=tuple(entry["models"]),
            api_format=entry["api_format"],
        )

    def client_options(self) -> dict:
        """Keyword arguments shared by every provider client."""
        return {
            "max_tokens": self.MAX_TOKENS,
            "temperature": self.TEMPERATURE,
            "top_p": self.TOP_P,
            "timeout": self.REQUEST_TIMEOUT,
            "connect_timeout": self.CONNECT_TIMEOUT,
        }

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
