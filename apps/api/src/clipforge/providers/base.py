"""
Provider capability interfaces.

Each pipeline role has one flat interface. Concrete adapters are looked up
by provider id in the registry; the orchestrator only ever talks to these
protocols. Adapter failures surface as ProviderError.
"""

import enum
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from clipforge.core.exceptions import (
    ExternalServiceError,
    ProviderError,
    RateLimitError,
    ValidationError,
)


class SubmissionMode(str, enum.Enum):
    SYNC = "sync"
    ASYNC = "async"


class ClipState(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ClipSubmission:
    """
    Outcome of submitting a clip.

    Synchronous providers return the finished ``file_url``; asynchronous
    ones return the ``provider_job_id`` to reconcile later.
    """

    mode: SubmissionMode
    file_url: str | None = None
    provider_job_id: str | None = None
    duration: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def finished(cls, file_url: str, **kwargs: Any) -> "ClipSubmission":
        return cls(mode=SubmissionMode.SYNC, file_url=file_url, **kwargs)

    @classmethod
    def pending(cls, provider_job_id: str, **kwargs: Any) -> "ClipSubmission":
        return cls(mode=SubmissionMode.ASYNC, provider_job_id=provider_job_id, **kwargs)

    @property
    def is_async(self) -> bool:
        return self.mode == SubmissionMode.ASYNC


@dataclass
class ClipStatus:
    """Provider-reported state of an asynchronous clip."""

    provider_job_id: str
    state: ClipState
    file_url: str | None = None
    failure_reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.state != ClipState.PENDING


@dataclass
class ClipInput:
    """A resolved clip handed to assembly."""

    url: str
    duration: float


class LLMProvider(Protocol):
    provider_id: str

    def generate_script(self, topic: str, style: str | None, duration: int, language: str) -> str: ...

    def plan_scenes(self, script: str, duration: int, style: str | None) -> list[dict[str, Any]]: ...


class VoiceProvider(Protocol):
    provider_id: str

    def synthesize(self, script: str, language: str) -> str: ...


class VideoClipProvider(Protocol):
    provider_id: str
    max_concurrent_jobs: int | None

    def generate(
        self,
        prompt: str,
        duration_seconds: int,
        aspect_ratio: str = "9:16",
        callback_url: str | None = None,
    ) -> ClipSubmission: ...

    def get_status(self, provider_job_id: str) -> ClipStatus: ...


class AssemblyProvider(Protocol):
    provider_id: str

    def assemble(self, clips: list[ClipInput], audio_url: str | None, aspect_ratio: str = "9:16") -> str: ...


@contextmanager
def translate_provider_errors(provider: str) -> Iterator[None]:
    """
    Convert client-level failures into ProviderError.

    Rate limits, upstream 5xx and transport errors are retryable; upstream
    4xx responses and local validation failures are not.
    """
    try:
        yield
    except ProviderError:
        raise
    except RateLimitError as e:
        raise ProviderError(provider, e.message, code="RATE_LIMITED", retryable=True) from e
    except ExternalServiceError as e:
        status = e.upstream_status
        retryable = status is None or status >= 500 or status == 408
        code = "AUTH_ERROR" if status in (401, 403) else "PROVIDER_ERROR"
        raise ProviderError(
            provider,
            e.message,
            code=code,
            retryable=retryable and code != "AUTH_ERROR",
            details={"upstream_status": status} if status else None,
        ) from e
    except ValidationError as e:
        raise ProviderError(provider, e.message, code="VALIDATION_ERROR", retryable=False) from e
    except httpx.HTTPError as e:
        raise ProviderError(provider, str(e) or type(e).__name__, code="TRANSPORT_ERROR", retryable=True) from e
