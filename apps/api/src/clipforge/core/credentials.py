"""
Credential resolution for providers and publishing platforms.

Credentials are looked up by provider or platform identifier and handed to
adapters as opaque strings. Callers must never log the returned values.
"""

from typing import Protocol

from clipforge.core.config import Settings, get_settings


class CredentialStore(Protocol):
    """Anything that can resolve a credential for a provider/platform id."""

    def get_credential(self, key: str) -> str | None: ...


class SettingsCredentialStore:
    """
    Credential store backed by application settings.

    Maps each provider/platform identifier to the settings attribute that
    holds its key or token.
    """

    SETTINGS_KEYS: dict[str, str] = {
        "openai": "openai_api_key",
        "elevenlabs": "elevenlabs_api_key",
        "runway": "runway_api_key",
        "luma": "luma_api_key",
        "shotstack": "shotstack_api_key",
        "tiktok": "tiktok_access_token",
    }

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_credential(self, key: str) -> str | None:
        attribute = self.SETTINGS_KEYS.get(key)
        if attribute is None:
            return None
        return getattr(self._settings, attribute, None)


def get_credential_store() -> CredentialStore:
    """Return the default credential store."""
    return SettingsCredentialStore()
