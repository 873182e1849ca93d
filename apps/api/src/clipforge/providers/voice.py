"""
Voice provider adapter (ElevenLabs TTS + S3 hosting).
"""

import uuid

from clipforge.core.config import Settings, get_settings
from clipforge.integrations.elevenlabs_client import ElevenLabsClient
from clipforge.integrations.storage_client import StorageClient
from clipforge.providers.base import translate_provider_errors


class ElevenLabsVoiceProvider:
    """Synthesizes the script and uploads the audio so other providers can fetch it."""

    provider_id = "elevenlabs"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        client: ElevenLabsClient | None = None,
        storage: StorageClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or ElevenLabsClient(api_key=api_key, settings=self._settings)
        self._storage = storage or StorageClient(settings=self._settings)

    def synthesize(self, script: str, language: str) -> str:
        with translate_provider_errors(self.provider_id):
            speech = self._client.generate_speech(
                text=script,
                voice_id=self._settings.elevenlabs_voice_id,
                model_id=self._settings.elevenlabs_model_id,
                language=language or None,
            )
            upload = self._storage.upload_bytes(
                data=speech.audio_data,
                key=f"voiceovers/{uuid.uuid4()}.{speech.extension}",
                content_type=speech.content_type,
                metadata={"voice_id": speech.voice_id, "language": language or ""},
            )
        return upload.url
