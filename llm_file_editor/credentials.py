"""
Credential store — resolves provider API keys and persists new ones.

Lookup order: ``<PROVIDER>_API_KEY`` env var, then the YAML config, then
``$XDG_CONFIG_HOME/llmedit/<provider>_api_key.txt``.  Tokens are never
logged.
"""

from __future__ import annotations

import os

from .cli_display import log
from .config import Config, env_prefix


def default_config_dir() -> str:
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, "llmedit")


class CredentialStore:

    def __init__(self, config: Config | None = None, config_dir: str | None = None):
        self._config = config
        self.config_dir = config_dir or default_config_dir()

    def key_file(self, provider_id: str) -> str:
        return os.path.join(self.config_dir, f"{provider_id.lower()}_api_key.txt")

    def get(self, provider_id: str) -> str:
        """API key for *provider_id*, or empty string when none is stored."""
        env_val = os.getenv(f"{env_prefix(provider_id)}_API_KEY")
        if env_val and env_val.strip():
            return env_val.strip()

        if self._config is not None:
            yaml_key = self._config.yaml_api_key(provider_id)
            if yaml_key:
                return yaml_key

        path = self.key_file(provider_id)
        if os.path.isfile(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return f.read().strip()
            except OSError as e:
                log.warning(f"[Credentials] Could not read {path}: {e}")
        return ""

    def save(self, provider_id: str, token: str) -> str:
        """Store *token* for *provider_id* (mode 0600). Returns the file path."""
        token = token.strip()
        if not token:
            raise ValueError("refusing to store an empty API key")

        os.makedirs(self.config_dir, exist_ok=True)
        path = self.key_file(provider_id)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(token)
        os.chmod(path, 0o600)
        log.info(f"[Credentials] Saved API key for {provider_id} to {path}")
        return path
