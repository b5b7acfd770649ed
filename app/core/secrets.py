"""Secret lookup used by services that need API keys or signing secrets."""

import os
from typing import Protocol, Optional

from app.config.settings import settings

class SecretProvider(Protocol):
    """A protocol for any class that provides secrets."""
    def get(self, key: str) -> Optional[str]:
        ...

class EnvSecrets(SecretProvider):
    """
    Reads secrets from the Pydantic settings first and falls back to the raw
    process environment, so keys added at deploy time without a matching
    settings field still resolve.
    """
    def get(self, key: str) -> Optional[str]:
        value = getattr(settings, key, None)
        if value is not None:
            return str(value)
        return os.getenv(key)

# Default provider instance
env_secrets_provider = EnvSecrets()
