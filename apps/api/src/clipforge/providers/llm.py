"""
LLM provider adapter (OpenAI) for scripts and draft scene plans.
"""

import logging
from typing import Any

from clipforge.core.config import Settings, get_settings
from clipforge.integrations.openai_client import OpenAIClient
from clipforge.providers.base import translate_provider_errors

logger = logging.getLogger(__name__)

# Roughly 2.5 spoken words per second of voiceover
WORDS_PER_SECOND = 2.5

SCRIPT_SYSTEM_PROMPT = "You are a professional short-form video script writer."
PLANNER_SYSTEM_PROMPT = (
    "You are a video production planner. Always respond with a JSON object "
    'of the form {"scenes": [{"text": str, "prompt": str, "duration": number}]}.'
)


class OpenAIScriptProvider:
    """Writes voiceover scripts and drafts scene lists with OpenAI."""

    provider_id = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        client: OpenAIClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or OpenAIClient(api_key=api_key, settings=self._settings)

    def generate_script(self, topic: str, style: str | None, duration: int, language: str) -> str:
        """Return narration text sized for ``duration`` seconds."""
        target_words = int(duration * WORDS_PER_SECOND)
        prompt = (
            f"Write a voiceover script about: {topic}\n"
            f"Style: {style or 'engaging'}\n"
            f"Language: {language}\n"
            f"Length: about {target_words} words ({duration} seconds when read aloud).\n"
            "Return only the narration text, no headings or stage directions."
        )

        with translate_provider_errors(self.provider_id):
            result = self._client.complete(
                messages=[{"role": "user", "content": prompt}],
                model=self._settings.openai_model_scripting,
                system_message=SCRIPT_SYSTEM_PROMPT,
            )

        return result.content.strip()

    def plan_scenes(self, script: str, duration: int, style: str | None) -> list[dict[str, Any]]:
        """
        Ask the model for a draft split of the script into scenes.

        The returned durations are only a starting point for rebalancing.
        """
        prompt = (
            f"Split this {duration}-second voiceover script into 3-5 scenes.\n"
            "Each scene needs the narration text it covers, a visual prompt for a "
            f"text-to-video model in a {style or 'cinematic'} style, and a duration "
            "between 4 and 8 seconds.\n\n"
            f"Script:\n{script}"
        )

        with translate_provider_errors(self.provider_id):
            result = self._client.complete_json(
                messages=[{"role": "user", "content": prompt}],
                model=self._settings.openai_model_planning,
                system_message=PLANNER_SYSTEM_PROMPT,
            )

        scenes = result.parsed.get("scenes")
        if not isinstance(scenes, list):
            logger.warning(
                "Scene plan response had no scenes list",
                extra={"keys": sorted(result.parsed.keys())},
            )
            return []
        return [scene for scene in scenes if isinstance(scene, dict)]
