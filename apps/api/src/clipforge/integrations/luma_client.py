"""
Luma Dream Machine API client.

Luma renders asynchronously: a generation is created with a callback URL and
Luma posts the finished generation back to it. ``get_generation`` is used by
the pending-clip watchdog when a callback never arrives.

API Reference: https://docs.lumalabs.ai/docs/api
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ExternalServiceError, ValidationError
from clipforge.integrations.base_client import SyncBaseHTTPClient

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({"completed", "failed"})


@dataclass
class LumaGeneration:
    """
    A Luma generation as returned by the API or delivered to the callback.

    Attributes:
        generation_id: Luma generation id
        state: queued, dreaming, completed or failed
        video_url: assets.video once completed
        failure_reason: Failure details
        raw: Full payload
    """

    generation_id: str
    state: str
    video_url: str | None = None
    failure_reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "LumaGeneration":
        assets = data.get("assets") or {}
        return cls(
            generation_id=str(data.get("id") or ""),
            state=str(data.get("state") or "queued").lower(),
            video_url=assets.get("video"),
            failure_reason=data.get("failure_reason"),
            raw=data,
        )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class LumaClient(SyncBaseHTTPClient):
    """Luma Dream Machine video generation client."""

    BASE_URL = "https://api.lumalabs.ai/dream-machine/v1"
    DEFAULT_MODEL = "ray-2"
    DEFAULT_RESOLUTION = "720p"
    SUPPORTED_ASPECT_RATIOS = ("16:9", "9:16", "1:1")

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        model: str = DEFAULT_MODEL,
        max_retries: int = 3,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        api_key = api_key or settings.luma_api_key

        if not api_key:
            raise ValidationError(message="Luma API key is required", field="luma_api_key")

        super().__init__(
            base_url=self.BASE_URL,
            api_key=api_key,
            settings=settings,
            max_retries=max_retries,
            timeout=timeout,
            transport=transport,
        )
        self._model = model

    @property
    def service_name(self) -> str:
        return "Luma"

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key or ''}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @staticmethod
    def supported_duration(seconds: int) -> int:
        """
        Map a clip length onto the durations Luma renders (5s, 9s, 10s).

        Scene clips are 4-8 seconds, so in practice this yields 5 or 9.
        """
        if seconds <= 5:
            return 5
        if seconds <= 9:
            return 9
        return 10

    def create_generation(
        self,
        prompt: str,
        duration: int,
        aspect_ratio: str | None = None,
        callback_url: str | None = None,
    ) -> LumaGeneration:
        """
        Create a video generation.

        Raises:
            ValidationError: If the prompt is empty
            ExternalServiceError: If Luma does not return a generation id
        """
        if not prompt or not prompt.strip():
            raise ValidationError(message="Prompt cannot be empty", field="prompt")

        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "duration": f"{self.supported_duration(duration)}s",
            "resolution": self.DEFAULT_RESOLUTION,
        }
        if aspect_ratio in self.SUPPORTED_ASPECT_RATIOS:
            payload["aspect_ratio"] = aspect_ratio
        if callback_url:
            payload["callback_url"] = callback_url

        logger.info(
            "Creating Luma generation",
            extra={
                "prompt_preview": prompt[:100],
                "duration": payload["duration"],
                "aspect_ratio": aspect_ratio,
                "has_callback": callback_url is not None,
            },
        )

        generation = LumaGeneration.from_payload(
            self._post("generations/video", json_data=payload).json()
        )
        if not generation.generation_id:
            raise ExternalServiceError(
                service="Luma",
                message="No generation ID returned from Luma API",
                original_error=str(generation.raw)[:500],
            )
        return generation

    def get_generation(self, generation_id: str) -> LumaGeneration:
        """Fetch a generation by id."""
        return LumaGeneration.from_payload(self._get(f"generations/{generation_id}").json())
