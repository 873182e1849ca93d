"""
Social platform publishers.
"""

from clipforge.publishers.base import (
    HASHTAG_PATTERN,
    PlatformConfig,
    Publisher,
    PublishRequest,
    PublishResult,
)
from clipforge.publishers.registry import PublisherRegistry, PublisherResolver, supported_platforms
from clipforge.publishers.tiktok import TIKTOK_CONFIG, TikTokPublisher

__all__ = [
    "HASHTAG_PATTERN",
    "PlatformConfig",
    "Publisher",
    "PublishRequest",
    "PublishResult",
    "PublisherRegistry",
    "PublisherResolver",
    "supported_platforms",
    "TIKTOK_CONFIG",
    "TikTokPublisher",
]
