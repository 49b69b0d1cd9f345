"""Exception taxonomy for the generation pipeline.

Each error carries the HTTP status the orchestrator answers with and a short
``error_type`` tag that is safe to show to callers.
"""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for every failure the orchestrator turns into a response."""

    status_code: int = 500
    error_type: str = "GenerationError"

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        extra: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]
        # Additional response fields, e.g. supportedLanguages
        self.extra = dict(extra or {})


class ValidationError(GenerationError):
    """Bad or missing input. Details are returned to the caller verbatim."""

    status_code = 400
    error_type = "ValidationError"


class NotFoundError(GenerationError):
    status_code = 404
    error_type = "NotFoundError"


class TemplateNotFoundError(NotFoundError):
    """The template id is unknown or its binary is missing on disk."""

    error_type = "TemplateNotFound"


class SizeLimitError(GenerationError):
    status_code = 413
    error_type = "SizeLimitError"


class TemplateTooLargeError(SizeLimitError):
    error_type = "TemplateTooLarge"


class PayloadTooLargeError(SizeLimitError):
    error_type = "PayloadTooLarge"


class RateLimitError(GenerationError):
    """Raised when a client exceeds its request window. Recoverable by waiting."""

    status_code = 429
    error_type = "RateLimitError"

    def __init__(self, message: str, *, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class FillError(GenerationError):
    """Template merge failed. Treated as a server defect.

    ``cause`` keeps the underlying exception for logs; callers only ever see
    the generic message.
    """

    status_code = 500
    error_type = "FillError"

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ConversionUnavailableError(GenerationError):
    """A rendering-only request could not be converted."""

    status_code = 500
    error_type = "ConversionFailed"
