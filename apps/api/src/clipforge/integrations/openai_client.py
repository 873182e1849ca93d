"""
OpenAI chat completions for scripts and scene plans.

Wraps the OpenAI SDK with the same retry policy as the HTTP clients:
rate limits, connection errors and 5xx are retried with backoff; other
4xx responses fail at once.
"""

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ExternalServiceError
from clipforge.core.exceptions import RateLimitError as ClipForgeRateLimitError

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    content: str
    model: str
    finish_reason: str = "unknown"
    input_tokens: int = 0
    output_tokens: int = 0
    # Decoded body of a JSON-mode completion
    parsed: dict[str, Any] = field(default_factory=dict)


class OpenAIClient:
    """
    Chat completions with retry handling.

    Example:
        ```python
        client = OpenAIClient(api_key=key)
        plan = client.complete_json([{"role": "user", "content": prompt}])
        plan.parsed["scenes"]
        ```
    """

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        client: OpenAI | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        # SDK-level retries are disabled; the loop in _create owns the policy
        self._client = client or OpenAI(api_key=api_key or self._settings.openai_api_key, max_retries=0)
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay

    def _calculate_backoff(self, attempt: int) -> float:
        delay = min(self._base_delay * (2**attempt), self._max_delay)
        return delay + delay * (0.1 + 0.2 * random.random())

    def _create(self, model: str, messages: list[dict[str, str]], **kwargs: Any) -> Any:
        """
        Raises:
            ClipForgeRateLimitError: Still rate limited on the last attempt
            ExternalServiceError: A 4xx other than 429, or retries exhausted
        """
        last_error = "Unknown error"

        for attempt in range(self._max_retries):
            final = attempt == self._max_retries - 1
            delay = self._calculate_backoff(attempt)
            try:
                return self._client.chat.completions.create(
                    model=model,
                    messages=messages,  # type: ignore[arg-type]
                    **kwargs,
                )
            except RateLimitError as e:
                if final:
                    raise ClipForgeRateLimitError(
                        message="OpenAI rate limit exceeded after retries",
                        retry_after=int(delay),
                    ) from e
                last_error = str(e)
            except APIStatusError as e:
                if e.status_code < 500:
                    logger.error("OpenAI API client error", extra={"status_code": e.status_code, "error": str(e)})
                    raise ExternalServiceError(
                        service="OpenAI",
                        message=f"OpenAI API error: {e.message}",
                        original_error=str(e),
                        status_code=e.status_code,
                    ) from e
                last_error = str(e)
            except APIConnectionError as e:
                last_error = str(e)

            if not final:
                logger.warning(
                    "OpenAI request failed, retrying",
                    extra={"attempt": attempt + 1, "delay_seconds": round(delay, 2), "error": last_error},
                )
                time.sleep(delay)

        logger.error("OpenAI completion failed after all retries", extra={"error": last_error})
        raise ExternalServiceError(
            service="OpenAI",
            message="OpenAI API call failed after retries",
            original_error=last_error,
        )

    def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        system_message: str | None = None,
        json_mode: bool = False,
    ) -> CompletionResult:
        """
        Run a chat completion.

        Args:
            messages: Conversation as role/content dicts
            model: Defaults to the scripting model from settings
            temperature: Sampling temperature (0-2)
            max_tokens: Completion cap, or the model default
            system_message: Prepended as a system turn
            json_mode: Request ``response_format=json_object`` and decode it

        Raises:
            ExternalServiceError: If a JSON-mode reply is not a JSON object
        """
        model = model or self._settings.openai_model_scripting
        if system_message:
            messages = [{"role": "system", "content": system_message}, *messages]

        kwargs: dict[str, Any] = {"temperature": temperature, "max_tokens": max_tokens}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        started = time.monotonic()
        response = self._create(model, messages, **kwargs)
        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        result = CompletionResult(
            content=choice.message.content or "",
            model=model,
            finish_reason=choice.finish_reason or "unknown",
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        logger.info(
            "OpenAI completion success",
            extra={
                "model": model,
                "elapsed_seconds": round(time.monotonic() - started, 2),
                "input_tokens": result.input_tokens,
                "output_tokens": result.output_tokens,
                "finish_reason": result.finish_reason,
            },
        )

        if json_mode:
            result.parsed = self._decode_object(result.content)
        return result

    def complete_json(self, messages: list[dict[str, str]], model: str | None = None, **kwargs: Any) -> CompletionResult:
        """JSON-mode completion on the planning model; see ``complete``."""
        return self.complete(messages, model=model or self._settings.openai_model_planning, json_mode=True, **kwargs)

    @staticmethod
    def _decode_object(content: str) -> dict[str, Any]:
        try:
            parsed = json.loads(content or "{}")
        except json.JSONDecodeError as e:
            logger.error("OpenAI returned invalid JSON", extra={"content": content[:500], "error": str(e)})
            raise ExternalServiceError(
                service="OpenAI",
                message="Failed to parse JSON response from OpenAI",
                original_error=str(e),
            ) from e
        if not isinstance(parsed, dict):
            raise ExternalServiceError(service="OpenAI", message="OpenAI JSON response was not an object")
        return parsed
