"""
Publisher registry keyed by platform identifier.
"""

from collections.abc import Callable
from typing import Protocol

from clipforge.core.config import Settings, get_settings
from clipforge.publishers.base import Publisher
from clipforge.publishers.tiktok import TikTokPublisher

PUBLISHERS: dict[str, Callable[[Settings], Publisher]] = {
    "tiktok": lambda settings: TikTokPublisher(
        poll_interval=settings.publish_poll_interval_seconds,
        max_poll_attempts=settings.publish_poll_max_attempts,
    ),
}


class PublisherResolver(Protocol):
    def get_publisher(self, platform: str) -> Publisher | None: ...


class PublisherRegistry:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_publisher(self, platform: str) -> Publisher | None:
        """Return a publisher for ``platform``, or None if unsupported."""
        factory = PUBLISHERS.get(platform.lower())
        return factory(self._settings) if factory else None


def supported_platforms() -> list[str]:
    return sorted(PUBLISHERS)
