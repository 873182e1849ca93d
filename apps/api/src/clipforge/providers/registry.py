"""
Provider registry.

Maps (role, provider id) to an adapter factory. Adapters are built per
resolution with the credential looked up for that provider id, so the
pipeline never handles raw keys itself.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol

from clipforge.core.config import Settings, get_settings
from clipforge.core.credentials import CredentialStore, get_credential_store
from clipforge.core.exceptions import ProviderError
from clipforge.models.enums import ProviderRole
from clipforge.providers.assembly import ShotstackAssemblyProvider
from clipforge.providers.llm import OpenAIScriptProvider
from clipforge.providers.video import LumaVideoProvider, RunwayVideoProvider
from clipforge.providers.voice import ElevenLabsVoiceProvider

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str, Settings], Any]

PROVIDERS: dict[tuple[ProviderRole, str], AdapterFactory] = {
    (ProviderRole.LLM, "openai"): lambda key, settings: OpenAIScriptProvider(api_key=key, settings=settings),
    (ProviderRole.VOICE, "elevenlabs"): lambda key, settings: ElevenLabsVoiceProvider(api_key=key, settings=settings),
    (ProviderRole.VIDEO, "runway"): lambda key, settings: RunwayVideoProvider(api_key=key, settings=settings),
    (ProviderRole.VIDEO, "luma"): lambda key, settings: LumaVideoProvider(api_key=key, settings=settings),
    (ProviderRole.ASSEMBLY, "shotstack"): lambda key, settings: ShotstackAssemblyProvider(api_key=key, settings=settings),
}


class ProviderResolver(Protocol):
    def resolve(self, role: ProviderRole, provider_id: str) -> Any: ...


class ProviderRegistry:
    """Default resolver backed by PROVIDERS and a credential store."""

    def __init__(
        self,
        credentials: CredentialStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._credentials = credentials or get_credential_store()
        self._settings = settings or get_settings()

    def resolve(self, role: ProviderRole, provider_id: str) -> Any:
        """
        Build the adapter for a role.

        Raises:
            ProviderError: Unknown provider for the role, or no credential (not retryable)
        """
        factory = PROVIDERS.get((role, provider_id))
        if factory is None:
            raise ProviderError(
                provider_id,
                f"Unknown {role.value} provider: {provider_id}",
                code="UNKNOWN_PROVIDER",
                retryable=False,
            )

        credential = self._credentials.get_credential(provider_id)
        if not credential:
            raise ProviderError(
                provider_id,
                f"No credential configured for provider '{provider_id}'",
                code="MISSING_CREDENTIALS",
                retryable=False,
            )

        logger.debug("Resolved provider", extra={"role": role.value, "provider": provider_id})
        return factory(credential, self._settings)


def available_providers() -> dict[str, list[str]]:
    """List registered provider ids per role."""
    result: dict[str, list[str]] = {role.value: [] for role in ProviderRole}
    for role, provider_id in PROVIDERS:
        result[role.value].append(provider_id)
    return result
