"""
Domain error hierarchy.

Every failure the engine reports to a caller is an EngineError subclass
carrying:
  • kind        — the error category (drives logging + client handling)
  • status_code — HTTP status used by the API exception handler
  • retryable   — whether the caller may retry with the same/adjusted input
  • message_key — key into the localized message catalogue

`detail` is for internal logging only — the client always receives the
catalogue message, never raw upstream error text.
"""

from __future__ import annotations

import enum
from typing import Any

from pagesmith.core import messages


class ErrorKind(str, enum.Enum):
    CONFIGURATION = "configuration"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    INVALID_TRANSITION = "invalid_transition"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    INVALID_OUTPUT = "invalid_output"
    UPSTREAM = "upstream"
    CONFLICT = "conflict"


class EngineError(Exception):
    """Base class for all expected engine failures."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400
    retryable: bool = False
    message_key: str = "validation"

    def __init__(
        self,
        detail: str = "",
        *,
        message_key: str | None = None,
        **params: Any,
    ) -> None:
        self.detail = detail or self.__class__.__name__
        if message_key is not None:
            self.message_key = message_key
        self.params = params
        super().__init__(self.detail)

    def user_message(self, locale: str = messages.DEFAULT_LOCALE) -> str:
        return messages.render(self.message_key, locale, **self.params)

    def to_payload(self, locale: str = messages.DEFAULT_LOCALE) -> dict[str, Any]:
        """Client-safe representation (no internal detail)."""
        return {
            "kind": self.kind.value,
            "code": self.message_key,
            "message": self.user_message(locale),
            "retryable": self.retryable,
            **self.params,
        }


# ── Non-retryable ───────────────────────────────────────────
class ConfigurationError(EngineError):
    """External model or storage is not configured. Fails before any state change."""

    kind = ErrorKind.CONFIGURATION
    status_code = 503
    message_key = "configuration"


class AuthenticationFailed(EngineError):
    kind = ErrorKind.AUTHORIZATION
    status_code = 401
    message_key = "authentication"


class ProjectNotFound(EngineError):
    """Missing project OR a project owned by someone else — same answer for both."""

    kind = ErrorKind.AUTHORIZATION
    status_code = 404
    message_key = "project_not_found"


class ContentValidationError(EngineError):
    kind = ErrorKind.VALIDATION
    status_code = 422
    message_key = "validation"


class DomainInUse(EngineError):
    kind = ErrorKind.VALIDATION
    status_code = 409
    message_key = "domain_in_use"


class InvalidTransition(EngineError):
    """A lifecycle edge that is not allowed from the project's current status."""

    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409
    message_key = "invalid_transition"


class NothingToUndo(EngineError):
    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409
    message_key = "nothing_to_undo"


class DuplicatePurchase(EngineError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    message_key = "duplicate_purchase"


# ── Retryable ───────────────────────────────────────────────
class InsufficientTokens(EngineError):
    kind = ErrorKind.INSUFFICIENT_FUNDS
    status_code = 402
    retryable = True
    message_key = "insufficient_tokens"

    def __init__(self, tokens_needed: int, tokens_remaining: int) -> None:
        super().__init__(
            f"need {tokens_needed}, have {tokens_remaining}",
            tokens_needed=tokens_needed,
            tokens_remaining=tokens_remaining,
        )
        self.tokens_needed = tokens_needed
        self.tokens_remaining = tokens_remaining


class RateLimitExceeded(EngineError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    retryable = True
    message_key = "rate_limited"


class GenerationTimeout(EngineError):
    kind = ErrorKind.TIMEOUT
    status_code = 504
    retryable = True
    message_key = "timeout"


class InvalidModelOutput(EngineError):
    kind = ErrorKind.INVALID_OUTPUT
    status_code = 502
    retryable = True
    message_key = "invalid_output"


class UpstreamError(EngineError):
    """An external collaborator (model, storage, DNS API) failed."""

    kind = ErrorKind.UPSTREAM
    status_code = 502
    retryable = True
    message_key = "upstream"


class ModelUnavailable(UpstreamError):
    pass


class EditConflict(EngineError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    retryable = True
    message_key = "edit_conflict"
