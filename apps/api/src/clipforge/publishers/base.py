"""
Publisher interface and result types.

Each platform publisher runs one publish attempt through
validate -> submit -> poll and returns a PublishResult. Publishers never
raise: every failure path comes back as a result with an error code and a
retryable flag for the queue worker to act on.
"""

import functools
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#\w+")

# Tokens that must never reach logs or persisted error text
_SENSITIVE_PATTERNS = [
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_\.]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"access_token=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), "access_token=***"),
    (re.compile(r"[A-Za-z0-9\-_]{40,}"), "***TOKEN***"),
]


def sanitize(text: str | None) -> str | None:
    """Strip credentials and tokens from error messages and response text."""
    if not text:
        return text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


@dataclass(frozen=True)
class PlatformConfig:
    """Static platform limits checked during validation."""

    name: str
    max_caption_length: int
    max_hashtags: int
    supported_aspect_ratios: tuple[str, ...] = ()
    min_video_duration: int | None = None
    max_video_duration: int | None = None
    required_scopes: tuple[str, ...] = ()


@dataclass
class PublishRequest:
    """
    Everything a publisher needs for one attempt.

    Attributes:
        video_url: Publicly reachable video URL
        caption: Post caption
        hashtags: Extra hashtags, with or without a leading '#'
        access_token: Opaque platform credential
        privacy_level: Platform privacy setting
        metadata: Opaque extras (e.g. username for URL building)
    """

    video_url: str | None
    caption: str = ""
    hashtags: list[str] = field(default_factory=list)
    access_token: str | None = None
    privacy_level: str = "PUBLIC_TO_EVERYONE"
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def full_caption(self) -> str:
        """Caption with any hashtags not already present appended to it."""
        caption = (self.caption or "").strip()
        present = {tag.lower() for tag in HASHTAG_PATTERN.findall(caption)}
        extra = []
        for tag in self.hashtags:
            tag = tag.strip()
            if not tag:
                continue
            tag = tag if tag.startswith("#") else f"#{tag}"
            if tag.lower() not in present:
                present.add(tag.lower())
                extra.append(tag)
        return " ".join(part for part in [caption, " ".join(extra)] if part)


@dataclass
class PublishResult:
    """Uniform outcome of a publish attempt (or of one of its phases)."""

    success: bool
    platform_post_id: str | None = None
    platform_url: str | None = None
    error: str | None = None
    error_code: str | None = None
    retryable: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        error_code: str,
        error: str,
        retryable: bool,
        metadata: dict[str, Any] | None = None,
    ) -> "PublishResult":
        return cls(
            success=False,
            error=sanitize(error),
            error_code=error_code,
            retryable=retryable,
            metadata=metadata or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "platform_post_id": self.platform_post_id,
            "platform_url": self.platform_url,
            "error": self.error,
            "error_code": self.error_code,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }


class Publisher(Protocol):
    platform: str
    config: PlatformConfig

    def validate(self, request: PublishRequest) -> PublishResult | None: ...

    def publish(self, request: PublishRequest) -> PublishResult: ...


F = TypeVar("F", bound=Callable[..., PublishResult | None])


def contained(method: F) -> F:
    """
    Turn any exception escaping a publisher method into UNEXPECTED_ERROR.

    Applied to every public publisher entry point.
    """

    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> PublishResult | None:
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            logger.exception(
                "Unexpected publisher error",
                extra={"platform": getattr(self, "platform", None), "method": method.__name__},
            )
            return PublishResult.failure(
                "UNEXPECTED_ERROR",
                str(e) or type(e).__name__,
                retryable=True,
            )

    return wrapper  # type: ignore[return-value]
