"""
Shotstack API client for final video assembly.

Builds a single-track timeline of scene clips laid end to end with the
voiceover as soundtrack, submits the render and waits for it.

API Reference: https://shotstack.io/docs/api/
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ExternalServiceError, ValidationError
from clipforge.integrations.base_client import SyncBaseHTTPClient

logger = logging.getLogger(__name__)

OUTPUT_SIZES: dict[str, dict[str, int]] = {
    "9:16": {"width": 1080, "height": 1920},
    "16:9": {"width": 1920, "height": 1080},
    "1:1": {"width": 1080, "height": 1080},
}


@dataclass
class TimelineClip:
    """A clip placed on the timeline."""

    url: str
    duration: float


def build_timeline(clips: list[TimelineClip], audio_url: str | None) -> dict[str, Any]:
    """
    Lay clips end to end on one video track.

    Each clip starts where the previous one ends and is cropped to cover
    the output frame.
    """
    track_clips: list[dict[str, Any]] = []
    start = 0.0
    for clip in clips:
        track_clips.append(
            {
                "asset": {"type": "video", "src": clip.url},
                "start": round(start, 3),
                "length": clip.duration,
                "fit": "cover",
            }
        )
        start += clip.duration

    timeline: dict[str, Any] = {"tracks": [{"clips": track_clips}]}
    if audio_url:
        timeline["soundtrack"] = {"src": audio_url, "effect": "fadeInFadeOut"}
    return timeline


class ShotstackClient(SyncBaseHTTPClient):
    """Shotstack render client."""

    BASE_URL_TEMPLATE = "https://api.shotstack.io/{environment}"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        max_retries: int = 3,
        timeout: float = 60.0,
        poll_interval: float = 5.0,
        max_poll_attempts: int = 120,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = settings or get_settings()
        api_key = api_key or settings.shotstack_api_key

        if not api_key:
            raise ValidationError(
                message="Shotstack API key is required",
                field="shotstack_api_key",
            )

        super().__init__(
            base_url=self.BASE_URL_TEMPLATE.format(environment=settings.shotstack_environment),
            api_key=api_key,
            settings=settings,
            max_retries=max_retries,
            timeout=timeout,
            transport=transport,
        )
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._sleep = sleep

    @property
    def service_name(self) -> str:
        return "Shotstack"

    def _get_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def render(self, timeline: dict[str, Any], aspect_ratio: str = "9:16") -> str:
        """
        Submit a render.

        Returns:
            Shotstack render id
        """
        output = {
            "format": "mp4",
            "size": OUTPUT_SIZES.get(aspect_ratio, OUTPUT_SIZES["1:1"]),
            "fps": 30,
        }
        data = self._post("render", json_data={"timeline": timeline, "output": output}).json()
        render_id = (data.get("response") or {}).get("id")
        if not render_id:
            raise ExternalServiceError(
                service="Shotstack",
                message="No render ID returned from Shotstack API",
                original_error=str(data)[:500],
            )

        logger.info("Shotstack render started", extra={"render_id": render_id})
        return render_id

    def wait_for_render(self, render_id: str) -> str:
        """
        Poll a render until it is done.

        Returns:
            URL of the rendered video

        Raises:
            ExternalServiceError: If the render fails or does not finish in time
        """
        for attempt in range(1, self._max_poll_attempts + 1):
            self._sleep(self._poll_interval)
            body = self._get(f"render/{render_id}").json().get("response") or {}
            status = body.get("status")

            if status == "done" and body.get("url"):
                logger.info(
                    "Shotstack render finished",
                    extra={"render_id": render_id, "attempts": attempt},
                )
                return body["url"]
            if status == "failed":
                raise ExternalServiceError(
                    service="Shotstack",
                    message="Shotstack render failed",
                    original_error=body.get("error"),
                )

        raise ExternalServiceError(
            service="Shotstack",
            message=f"Shotstack render timed out after {self._max_poll_attempts} polls",
        )
