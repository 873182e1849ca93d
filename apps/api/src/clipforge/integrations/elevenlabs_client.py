"""
ElevenLabs text-to-speech client.

API Reference: https://elevenlabs.io/docs/api-reference/text-to-speech
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ValidationError
from clipforge.integrations.base_client import SyncBaseHTTPClient

logger = logging.getLogger(__name__)

# mp3 at 44.1kHz / 128kbps unless a caller asks otherwise
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"


@dataclass
class SpeechResult:
    audio_data: bytes
    content_type: str
    voice_id: str
    model_id: str

    @property
    def extension(self) -> str:
        return "mp3" if self.content_type == "audio/mpeg" else "wav"


class ElevenLabsClient(SyncBaseHTTPClient):
    """ElevenLabs TTS over the v1 REST API."""

    BASE_URL = "https://api.elevenlabs.io/v1"

    # Sent with every request; the defaults ElevenLabs recommends for narration
    VOICE_SETTINGS: dict[str, Any] = {
        "stability": 0.5,
        "similarity_boost": 0.75,
        "style": 0.0,
        "use_speaker_boost": True,
    }

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        max_retries: int = 3,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        api_key = api_key or settings.elevenlabs_api_key
        if not api_key:
            raise ValidationError(message="ElevenLabs API key is required", field="elevenlabs_api_key")

        super().__init__(
            base_url=self.BASE_URL,
            api_key=api_key,
            settings=settings,
            max_retries=max_retries,
            timeout=timeout,
            transport=transport,
        )

    @property
    def service_name(self) -> str:
        return "ElevenLabs"

    def _get_headers(self) -> dict[str, str]:
        return {"xi-api-key": self._api_key or "", "Content-Type": "application/json"}

    def generate_speech(
        self,
        text: str,
        voice_id: str,
        model_id: str = "eleven_multilingual_v2",
        language: str | None = None,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
    ) -> SpeechResult:
        """
        Synthesize ``text`` with the given voice.

        Args:
            text: Narration to speak
            voice_id: ElevenLabs voice identifier
            model_id: TTS model
            language: BCP 47 tag such as "en-US"; only the primary subtag is sent
            output_format: ElevenLabs output format name

        Raises:
            ValidationError: If text is blank
            ExternalServiceError: If ElevenLabs rejects the request
        """
        if not text.strip():
            raise ValidationError(message="Text cannot be empty", field="text")

        payload: dict[str, Any] = {
            "text": text,
            "model_id": model_id,
            "voice_settings": self.VOICE_SETTINGS,
        }
        if language:
            payload["language_code"] = language.split("-")[0].lower()

        response = self._post(
            f"text-to-speech/{voice_id}",
            json_data=payload,
            headers={"Accept": "audio/mpeg"},
            params={"output_format": output_format},
        )
        content_type = "audio/mpeg" if output_format.startswith("mp3") else "audio/wav"

        logger.info(
            "Generated speech with ElevenLabs",
            extra={
                "voice_id": voice_id,
                "model_id": model_id,
                "character_count": len(text),
                "audio_size_bytes": len(response.content),
            },
        )
        return SpeechResult(
            audio_data=response.content,
            content_type=content_type,
            voice_id=voice_id,
            model_id=model_id,
        )
