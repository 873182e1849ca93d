"""
Generation provider adapters and registry.
"""

from clipforge.providers.base import (
    AssemblyProvider,
    ClipInput,
    ClipState,
    ClipStatus,
    ClipSubmission,
    LLMProvider,
    SubmissionMode,
    VideoClipProvider,
    VoiceProvider,
    translate_provider_errors,
)
from clipforge.providers.registry import ProviderRegistry, ProviderResolver, available_providers
from clipforge.providers.video import WEBHOOK_PARSERS

__all__ = [
    "AssemblyProvider",
    "ClipInput",
    "ClipState",
    "ClipStatus",
    "ClipSubmission",
    "LLMProvider",
    "SubmissionMode",
    "VideoClipProvider",
    "VoiceProvider",
    "translate_provider_errors",
    "ProviderRegistry",
    "ProviderResolver",
    "available_providers",
    "WEBHOOK_PARSERS",
]
