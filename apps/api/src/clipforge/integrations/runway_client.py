"""
Runway API client for text-to-video generation.

Runway renders are awaited inline: the client submits a task and polls it
until it finishes, so callers get a finished clip URL back.

API Reference: https://docs.dev.runwayml.com/
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ExternalServiceError, ValidationError
from clipforge.integrations.base_client import SyncBaseHTTPClient

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    """Runway task status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


STATUS_MAPPING: dict[str, GenerationStatus] = {
    "pending": GenerationStatus.PENDING,
    "queued": GenerationStatus.PENDING,
    "throttled": GenerationStatus.PENDING,
    "running": GenerationStatus.PROCESSING,
    "processing": GenerationStatus.PROCESSING,
    "succeeded": GenerationStatus.SUCCEEDED,
    "failed": GenerationStatus.FAILED,
    "cancelled": GenerationStatus.CANCELLED,
}

# Aspect ratio -> Runway output resolution
RATIO_RESOLUTIONS: dict[str, str] = {
    "16:9": "1280:720",
    "9:16": "720:1280",
    "1:1": "960:960",
}


@dataclass
class GenerationJob:
    """
    Runway generation task.

    Attributes:
        generation_id: Task identifier
        status: Current task status
        progress: 0.0-1.0 progress reported by Runway
        video_url: Output URL when succeeded
        error_message: Failure details
    """

    generation_id: str
    status: GenerationStatus = GenerationStatus.PENDING
    progress: float = 0.0
    video_url: str | None = None
    error_message: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "GenerationJob":
        """Create GenerationJob from a task payload."""
        status = STATUS_MAPPING.get(
            (data.get("status") or "pending").lower(),
            GenerationStatus.PENDING,
        )

        output = data.get("output") or []
        video_url = None
        if isinstance(output, list) and output:
            video_url = output[0] if isinstance(output[0], str) else output[0].get("url")
        elif isinstance(output, str):
            video_url = output

        return cls(
            generation_id=data.get("id", ""),
            status=status,
            progress=float(data.get("progress") or 0.0),
            video_url=video_url,
            error_message=data.get("failure") or data.get("error"),
        )


class RunwayClient(SyncBaseHTTPClient):
    """
    Runway text-to-video with submit and bounded wait.

    ``sleep`` is injectable so tests can poll without waiting.
    """

    BASE_URL = "https://api.dev.runwayml.com/v1"
    API_VERSION = "2024-11-06"
    DEFAULT_MODEL = "gen4_turbo"
    SUPPORTED_DURATIONS = (5, 10)

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        model: str = DEFAULT_MODEL,
        max_retries: int = 3,
        timeout: float = 60.0,
        poll_interval: float = 10.0,
        max_poll_time: float = 600.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = settings or get_settings()
        api_key = api_key or settings.runway_api_key

        if not api_key:
            raise ValidationError(
                message="Runway API key is required",
                field="runway_api_key",
            )

        super().__init__(
            base_url=self.BASE_URL,
            api_key=api_key,
            settings=settings,
            max_retries=max_retries,
            timeout=timeout,
            transport=transport,
        )

        self._model = model
        self._poll_interval = poll_interval
        self._max_poll_time = max_poll_time
        self._sleep = sleep

    @property
    def service_name(self) -> str:
        return "Runway"

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key or ''}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Runway-Version": self.API_VERSION,
        }

    @classmethod
    def supported_duration(cls, seconds: int) -> int:
        """Snap a requested duration to the nearest duration Runway renders."""
        return min(cls.SUPPORTED_DURATIONS, key=lambda d: (abs(d - seconds), d))

    def generate_video(
        self,
        prompt: str,
        duration: int = 5,
        aspect_ratio: str = "9:16",
    ) -> GenerationJob:
        """
        Submit a text-to-video task.

        Raises:
            ValidationError: If prompt is empty or the aspect ratio unsupported
            ExternalServiceError: If submission fails
        """
        if not prompt or not prompt.strip():
            raise ValidationError(message="Prompt cannot be empty", field="prompt")
        if aspect_ratio not in RATIO_RESOLUTIONS:
            raise ValidationError(
                message=f"Unsupported aspect ratio for Runway: {aspect_ratio}",
                field="aspect_ratio",
            )

        payload: dict[str, Any] = {
            "promptText": prompt,
            "model": self._model,
            "duration": self.supported_duration(duration),
            "ratio": RATIO_RESOLUTIONS[aspect_ratio],
        }

        logger.info(
            "Creating Runway video generation",
            extra={
                "prompt_preview": prompt[:100],
                "duration": payload["duration"],
                "aspect_ratio": aspect_ratio,
                "model": self._model,
            },
        )

        data = self._post("text_to_video", json_data=payload).json()
        generation_id = data.get("id", "")
        if not generation_id:
            raise ExternalServiceError(
                service="Runway",
                message="No generation ID returned from Runway API",
                original_error=str(data),
            )

        return GenerationJob(generation_id=generation_id)

    def get_generation_status(self, generation_id: str) -> GenerationJob:
        """Fetch the current state of a task."""
        data = self._get(f"tasks/{generation_id}").json()
        job = GenerationJob.from_api_response(data)
        job.generation_id = generation_id
        return job

    def wait_for_generation(self, generation_id: str) -> GenerationJob:
        """
        Poll a task until it succeeds.

        Raises:
            ExternalServiceError: If the task fails, is cancelled or times out
        """
        start_time = time.monotonic()

        while True:
            job = self.get_generation_status(generation_id)

            if job.status == GenerationStatus.SUCCEEDED:
                logger.info(
                    "Runway generation completed",
                    extra={"generation_id": generation_id, "video_url": job.video_url},
                )
                return job

            if job.status in (GenerationStatus.FAILED, GenerationStatus.CANCELLED):
                raise ExternalServiceError(
                    service="Runway",
                    message=f"Video generation {job.status.value}: {job.error_message}",
                    original_error=job.error_message,
                )

            elapsed = time.monotonic() - start_time
            if elapsed >= self._max_poll_time:
                raise ExternalServiceError(
                    service="Runway",
                    message=f"Video generation timed out after {elapsed:.0f} seconds",
                )

            logger.debug(
                "Runway generation still processing",
                extra={
                    "generation_id": generation_id,
                    "status": job.status.value,
                    "elapsed_seconds": elapsed,
                },
            )
            self._sleep(self._poll_interval)
