"""
Exception hierarchy for ClipForge.

Every error carries a machine-readable ``code`` and an HTTP status so the
API layer can render it as ``{"error": {"code", "message", "details"}}``
without knowing where it came from. Pipeline steps and publishers record
the same codes on jobs and posts.
"""

from typing import Any


class ClipForgeException(Exception):
    """
    Base class for ClipForge errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Extra context included in API responses
        status_code: HTTP status the API responds with
    """

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class NotFoundError(ClipForgeException):
    """A project, job, artifact or post does not exist (404)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str | None = None,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = (
                f"{resource_type} with ID '{resource_id}' not found"
                if resource_id
                else f"{resource_type} not found"
            )
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
            status_code=404,
        )


class ValidationError(ClipForgeException):
    """
    Semantic validation failure (422).

    Raised for checks Pydantic cannot express, such as an unsupported
    platform or a caption over the platform limit. Never retried.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, code="VALIDATION_ERROR", details=details, status_code=422)


class AuthenticationError(ClipForgeException):
    """Webhook signature missing or wrong (401)."""

    def __init__(self, message: str = "Authentication required", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="AUTHENTICATION_ERROR", details=details, status_code=401)


class ConflictError(ClipForgeException):
    """
    The operation does not fit the resource's current state (409).

    Examples: starting a second job on a project that already has one
    running, or retrying a post that has not failed.
    """

    def __init__(
        self,
        message: str,
        resource_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if resource_type:
            details["resource_type"] = resource_type
        super().__init__(message, code="CONFLICT", details=details, status_code=409)


class ExternalServiceError(ClipForgeException):
    """
    An upstream HTTP API failed (502).

    Args:
        service: Service name, e.g. "runway"
        message: What went wrong
        original_error: Raw error text from the service
        retry_after: Seconds the service asked us to wait
        status_code: Upstream HTTP status, when a response was received
    """

    def __init__(
        self,
        service: str,
        message: str,
        original_error: str | None = None,
        retry_after: int | None = None,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.upstream_status = status_code

        details: dict[str, Any] = {"service": service}
        if original_error:
            details["original_error"] = original_error
        if retry_after:
            details["retry_after"] = retry_after
        if status_code:
            details["upstream_status"] = status_code
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", details=details, status_code=502)


class RateLimitError(ClipForgeException):
    """An upstream API kept rate limiting us after retries (429)."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None) -> None:
        details = {"retry_after": retry_after} if retry_after else {}
        super().__init__(message, code="RATE_LIMIT_EXCEEDED", details=details, status_code=429)


class ProviderError(ClipForgeException):
    """
    Normalized failure from a generation provider adapter.

    Adapters convert their client errors into this one shape, so the
    pipeline sees ``{retryable, code, message}`` whichever vendor failed.

    Attributes:
        provider: Provider identifier, e.g. "openai" or "luma"
        retryable: Whether the same request could succeed later
    """

    def __init__(
        self,
        provider: str,
        message: str,
        code: str = "PROVIDER_ERROR",
        retryable: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.provider = provider
        self.retryable = retryable

        details = dict(details or {})
        details.update(provider=provider, retryable=retryable)
        super().__init__(message, code=code, details=details, status_code=502)
