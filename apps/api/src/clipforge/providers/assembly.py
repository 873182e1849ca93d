"""
Assembly provider adapter (Shotstack).
"""

from clipforge.core.config import Settings
from clipforge.integrations.shotstack_client import ShotstackClient, TimelineClip, build_timeline
from clipforge.providers.base import ClipInput, translate_provider_errors


class ShotstackAssemblyProvider:
    """Concatenates scene clips over the voiceover and renders an mp4."""

    provider_id = "shotstack"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        client: ShotstackClient | None = None,
    ) -> None:
        self._client = client or ShotstackClient(api_key=api_key, settings=settings)

    def assemble(self, clips: list[ClipInput], audio_url: str | None, aspect_ratio: str = "9:16") -> str:
        timeline = build_timeline(
            [TimelineClip(url=clip.url, duration=clip.duration) for clip in clips],
            audio_url,
        )
        with translate_provider_errors(self.provider_id):
            render_id = self._client.render(timeline, aspect_ratio=aspect_ratio)
            return self._client.wait_for_render(render_id)
