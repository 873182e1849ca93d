"""
Video clip provider adapters.

Runway clips are awaited inline and come back finished. Luma clips are
submitted with a callback URL and come back as a provider job id that the
reconciler resolves later.
"""

import logging
from collections.abc import Callable
from typing import Any

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ProviderError
from clipforge.integrations.luma_client import LumaClient, LumaGeneration
from clipforge.integrations.runway_client import GenerationStatus, RunwayClient
from clipforge.providers.base import (
    ClipState,
    ClipStatus,
    ClipSubmission,
    translate_provider_errors,
)

logger = logging.getLogger(__name__)


class RunwayVideoProvider:
    provider_id = "runway"
    max_concurrent_jobs: int | None = None

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        client: RunwayClient | None = None,
    ) -> None:
        self._client = client or RunwayClient(api_key=api_key, settings=settings)

    def generate(
        self,
        prompt: str,
        duration_seconds: int,
        aspect_ratio: str = "9:16",
        callback_url: str | None = None,
    ) -> ClipSubmission:
        with translate_provider_errors(self.provider_id):
            job = self._client.generate_video(prompt, duration_seconds, aspect_ratio)
            finished = self._client.wait_for_generation(job.generation_id)

        if not finished.video_url:
            raise ProviderError(
                self.provider_id,
                f"Runway generation {finished.generation_id} finished without an output URL",
                code="MISSING_OUTPUT",
            )

        return ClipSubmission.finished(
            finished.video_url,
            duration=float(RunwayClient.supported_duration(duration_seconds)),
            metadata={"generation_id": finished.generation_id},
        )

    def get_status(self, provider_job_id: str) -> ClipStatus:
        with translate_provider_errors(self.provider_id):
            job = self._client.get_generation_status(provider_job_id)

        if job.status == GenerationStatus.SUCCEEDED:
            return ClipStatus(provider_job_id, ClipState.COMPLETED, file_url=job.video_url)
        if job.status in (GenerationStatus.FAILED, GenerationStatus.CANCELLED):
            return ClipStatus(provider_job_id, ClipState.FAILED, failure_reason=job.error_message)
        return ClipStatus(provider_job_id, ClipState.PENDING)


def luma_clip_status(generation: LumaGeneration) -> ClipStatus:
    """Translate a Luma generation (API response or callback body) into a ClipStatus."""
    if generation.state == "completed":
        if generation.video_url:
            return ClipStatus(
                generation.generation_id,
                ClipState.COMPLETED,
                file_url=generation.video_url,
                raw=generation.raw,
            )
        return ClipStatus(
            generation.generation_id,
            ClipState.FAILED,
            failure_reason="Generation completed without a video asset",
            raw=generation.raw,
        )
    if generation.state == "failed":
        return ClipStatus(
            generation.generation_id,
            ClipState.FAILED,
            failure_reason=generation.failure_reason or "Luma generation failed",
            raw=generation.raw,
        )
    return ClipStatus(generation.generation_id, ClipState.PENDING, raw=generation.raw)


def parse_luma_webhook(payload: dict[str, Any]) -> ClipStatus:
    return luma_clip_status(LumaGeneration.from_payload(payload))


class LumaVideoProvider:
    provider_id = "luma"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        client: LumaClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._client = client or LumaClient(api_key=api_key, settings=settings)
        self.max_concurrent_jobs: int | None = settings.luma_max_concurrent_jobs

    def generate(
        self,
        prompt: str,
        duration_seconds: int,
        aspect_ratio: str = "9:16",
        callback_url: str | None = None,
    ) -> ClipSubmission:
        with translate_provider_errors(self.provider_id):
            generation = self._client.create_generation(
                prompt=prompt,
                duration=duration_seconds,
                aspect_ratio=aspect_ratio,
                callback_url=callback_url,
            )

        return ClipSubmission.pending(
            generation.generation_id,
            duration=float(LumaClient.supported_duration(duration_seconds)),
            metadata={"state": generation.state, "callback_url": callback_url},
        )

    def get_status(self, provider_job_id: str) -> ClipStatus:
        with translate_provider_errors(self.provider_id):
            generation = self._client.get_generation(provider_job_id)
        return luma_clip_status(generation)


# Webhook body parsers for providers that call back
WEBHOOK_PARSERS: dict[str, Callable[[dict[str, Any]], ClipStatus]] = {
    LumaVideoProvider.provider_id: parse_luma_webhook,
}
