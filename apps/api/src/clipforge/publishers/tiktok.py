"""
TikTok Direct Post publisher.

One publish attempt initializes a PULL_FROM_URL direct post, then polls the
publish status at a fixed interval until TikTok reports a terminal state or
the attempt ceiling is reached.

API Reference: https://developers.tiktok.com/doc/content-posting-api-reference-direct-post
"""

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

import httpx

from clipforge.publishers.base import (
    HASHTAG_PATTERN,
    PlatformConfig,
    PublishRequest,
    PublishResult,
    contained,
    sanitize,
)

logger = logging.getLogger(__name__)

TIKTOK_CONFIG = PlatformConfig(
    name="TikTok",
    max_caption_length=2200,
    max_hashtags=30,
    supported_aspect_ratios=("9:16", "1:1"),
    min_video_duration=3,
    max_video_duration=600,  # 10 minutes
    required_scopes=("video.publish", "video.upload"),
)

STATUS_COMPLETE = "PUBLISH_COMPLETE"
STATUS_FAILED = "FAILED"


def classify_status_code(status_code: int) -> tuple[str, bool]:
    """
    Map a non-2xx init response to ``(error_code, retryable)``.

    401 is an auth failure and never retried; anything else may succeed later.
    """
    if status_code == 401:
        return "AUTH_ERROR", False
    if status_code == 429:
        return "RATE_LIMITED", True
    if status_code >= 500:
        return "TIKTOK_SERVER_ERROR", True
    return "TIKTOK_API_ERROR", True


class TikTokPublisher:
    """
    TikTok publisher.

    Example:
        ```python
        publisher = TikTokPublisher()
        result = publisher.publish(
            PublishRequest(video_url=url, caption="New drop #launch", access_token=token)
        )
        if not result.success and result.retryable:
            ...
        ```
    """

    platform = "tiktok"
    config = TIKTOK_CONFIG
    BASE_URL = "https://open.tiktokapis.com/v2"

    def __init__(
        self,
        client: httpx.Client | None = None,
        poll_interval: float = 5.0,
        max_poll_attempts: int = 30,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the publisher.

        Args:
            client: httpx client (tests pass one with a MockTransport)
            poll_interval: Seconds between status checks
            max_poll_attempts: Status checks before giving up with TIMEOUT
            sleep: Sleep function used between status checks
            timeout: Per-request timeout in seconds
        """
        self._client = client or httpx.Client(base_url=self.BASE_URL, timeout=timeout)
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._sleep = sleep

    @staticmethod
    def _headers(access_token: str | None) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token or ''}",
            "Content-Type": "application/json; charset=UTF-8",
        }

    @contained
    def validate(self, request: PublishRequest) -> PublishResult | None:
        """
        Check a request against TikTok's limits.

        Returns:
            None when valid, otherwise a non-retryable VALIDATION_ERROR result
        """
        errors: list[str] = []
        caption = request.full_caption

        if not request.video_url:
            errors.append("Video URL is required")
        if not request.access_token:
            errors.append("Access token is required")
        if len(caption) > self.config.max_caption_length:
            errors.append(f"Caption exceeds {self.config.max_caption_length} characters")

        hashtag_count = len(HASHTAG_PATTERN.findall(caption))
        if hashtag_count > self.config.max_hashtags:
            errors.append(f"Too many hashtags ({hashtag_count}/{self.config.max_hashtags})")

        if errors:
            return PublishResult.failure(
                "VALIDATION_ERROR",
                ", ".join(errors),
                retryable=False,
                metadata={"errors": errors},
            )
        return None

    @contained
    def submit(self, request: PublishRequest) -> PublishResult:
        """
        Initialize a direct post.

        Returns:
            A successful result carrying ``metadata["publish_id"]``, or a
            failure classified by status code
        """
        payload: dict[str, Any] = {
            "post_info": {
                "title": request.full_caption or "Video",
                "privacy_level": request.privacy_level,
                "disable_duet": False,
                "disable_comment": False,
                "disable_stitch": False,
                "video_cover_timestamp_ms": 1000,
            },
            "source_info": {
                "source": "PULL_FROM_URL",
                "video_url": request.video_url,
            },
            "post_mode": "DIRECT_POST",
            "media_type": "VIDEO",
        }

        response = self._client.post(
            "/post/publish/video/init/",
            json=payload,
            headers=self._headers(request.access_token),
        )

        if response.is_error:
            error_code, retryable = classify_status_code(response.status_code)
            logger.error(
                "TikTok init failed",
                extra={
                    "status_code": response.status_code,
                    "error_code": error_code,
                    "error": sanitize(response.text[:500]),
                },
            )
            return PublishResult.failure(
                error_code,
                f"TikTok API error ({response.status_code}): {response.text[:500]}",
                retryable=retryable,
                metadata={"status_code": response.status_code},
            )

        publish_id = (response.json().get("data") or {}).get("publish_id")
        if not publish_id:
            return PublishResult.failure(
                "MISSING_PUBLISH_ID",
                "No publish ID returned from TikTok",
                retryable=True,
            )

        logger.info("TikTok publish initiated", extra={"publish_id": publish_id})
        return PublishResult(success=True, metadata={"publish_id": publish_id})

    @contained
    def poll(self, publish_id: str, access_token: str | None, username: str | None = None) -> PublishResult:
        """
        Poll publish status until a terminal state or the attempt ceiling.

        Non-2xx status responses are logged and count as an attempt.
        """
        for attempt in range(1, self._max_poll_attempts + 1):
            self._sleep(self._poll_interval)

            response = self._client.post(
                "/post/publish/status/fetch/",
                json={"publish_id": publish_id},
                headers=self._headers(access_token),
            )
            if response.is_error:
                logger.warning(
                    "TikTok status check failed",
                    extra={"publish_id": publish_id, "attempt": attempt, "status_code": response.status_code},
                )
                continue

            data = response.json().get("data") or {}
            status = data.get("status")
            logger.info(
                "TikTok publish status",
                extra={"publish_id": publish_id, "status": status, "attempt": attempt},
            )

            if status == STATUS_COMPLETE:
                public_ids = data.get("publicaly_available_post_id") or []
                public_id = str(public_ids[0]) if public_ids else data.get("public_post_id")
                return PublishResult(
                    success=True,
                    platform_post_id=public_id or publish_id,
                    platform_url=(
                        f"https://www.tiktok.com/@{username or 'user'}/video/{public_id}"
                        if public_id
                        else None
                    ),
                    metadata={"publish_id": publish_id, "attempts": attempt},
                )

            if status == STATUS_FAILED:
                return PublishResult.failure(
                    "PUBLISH_FAILED",
                    data.get("fail_reason") or "Publish failed",
                    retryable=True,
                    metadata={"publish_id": publish_id, "attempts": attempt},
                )
            # PROCESSING_DOWNLOAD, PROCESSING_UPLOAD, SEND_TO_USER_INBOX: keep polling

        return PublishResult.failure(
            "TIMEOUT",
            "Timeout waiting for TikTok to process video",
            retryable=True,
            metadata={"publish_id": publish_id, "attempts": self._max_poll_attempts},
        )

    @contained
    def publish(self, request: PublishRequest) -> PublishResult:
        """Run one full publish attempt."""
        correlation_id = f"tiktok_{uuid.uuid4().hex[:12]}"
        logger.info(
            "Starting TikTok publish",
            extra={"correlation_id": correlation_id, "caption_length": len(request.full_caption)},
        )

        invalid = self.validate(request)
        if invalid is not None:
            return invalid

        submitted = self.submit(request)
        if not submitted.success:
            return submitted

        result = self.poll(
            submitted.metadata["publish_id"],
            request.access_token,
            username=request.metadata.get("username"),
        )
        logger.info(
            "TikTok publish finished",
            extra={
                "correlation_id": correlation_id,
                "success": result.success,
                "error_code": result.error_code,
            },
        )
        return result
