# =============================================================================
# Error Taxonomy & Classification
# =============================================================================
#
# Every failure the core can surface is one of the classes below. Memory-side
# errors (DataAccessError, EmbeddingError, NotInitializedError) abort or
# short-circuit index work; API-side errors (PeacockApiError subclasses)
# carry an ApiErrorInfo describing the failed endpoint.
#
# Classification is string-pattern based as well as status based. The
# upstream Peacock API and the SDKs it sits behind do not type their errors
# consistently, so the message text is often the only signal. All of that
# matching is confined to classify_error() and its two tables.
# =============================================================================

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field


class ErrorKind(str, enum.Enum):
    """Coarse category used to pick a stable user-facing message."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    QUOTA = "quota"
    GENERIC = "generic"


# Status codes that decide the kind on their own.
_STATUS_KINDS: dict[int, ErrorKind] = {
    401: ErrorKind.AUTH,
    402: ErrorKind.QUOTA,
    429: ErrorKind.RATE_LIMIT,
}

# Checked in order against the lower-cased message; first match wins.
_PATTERN_KINDS: tuple[tuple[str, ErrorKind], ...] = (
    ("timeout", ErrorKind.TIMEOUT),
    ("timed out", ErrorKind.TIMEOUT),
    ("login failed", ErrorKind.AUTH),
    ("session cookie", ErrorKind.AUTH),
    ("authentication failed", ErrorKind.AUTH),
    ("invalid api key", ErrorKind.AUTH),
    ("incorrect api key", ErrorKind.AUTH),
    ("rate limit", ErrorKind.RATE_LIMIT),
    ("too many requests", ErrorKind.RATE_LIMIT),
    ("insufficient quota", ErrorKind.QUOTA),
    ("billing", ErrorKind.QUOTA),
    ("network", ErrorKind.NETWORK),
    ("fetch", ErrorKind.NETWORK),
    ("connect", ErrorKind.NETWORK),
)

_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: (
        "Unable to connect to Peacock API. Please check your connection "
        "and try again."
    ),
    ErrorKind.TIMEOUT: "Request to Peacock API timed out. Please try again.",
    ErrorKind.AUTH: (
        "Authentication failed: invalid credentials for Peacock API."
    ),
    ErrorKind.RATE_LIMIT: "Rate limit reached. Please try again shortly.",
    ErrorKind.QUOTA: "Usage quota exceeded. Please contact an administrator.",
}

_STATUS_IN_TEXT = re.compile(r"\b([1-5]\d{2})\b")


def classify_error(message: str, status_code: int | None = None) -> ErrorKind:
    """
    Classify a failure from its status code and/or message text.

    A known status code wins outright; otherwise the first matching
    pattern in _PATTERN_KINDS decides. Anything else is GENERIC.
    """
    if status_code is not None and status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]

    normalized = (message or "").lower()
    for pattern, kind in _PATTERN_KINDS:
        if pattern in normalized:
            return kind
    return ErrorKind.GENERIC


@dataclass
class ApiErrorInfo:
    """Structured description of a failed upstream call."""

    kind: ErrorKind
    message: str
    endpoint: str
    status_code: int | None = None
    # Server-side logs only; never rendered to users.
    original_error: BaseException | None = field(default=None, repr=False)

    @property
    def user_message(self) -> str:
        """Stable message safe to show in chat."""
        if self.kind in _USER_MESSAGES:
            return _USER_MESSAGES[self.kind]
        return f"{self.message} (endpoint: {self.endpoint})"


def format_api_error(error: BaseException, endpoint: str) -> ApiErrorInfo:
    """
    Build an ApiErrorInfo for any exception raised around an API call.

    PeacockApiError instances already carry their info and are returned
    as-is. For everything else, the status code is taken from a
    `status_code`/`status` attribute or, failing that, a 3-digit number
    in the message.
    """
    if isinstance(error, PeacockApiError):
        return error.info

    message = str(error) or error.__class__.__name__
    status_code = getattr(error, "status_code", None) or getattr(
        error, "status", None
    )
    if not isinstance(status_code, int):
        match = _STATUS_IN_TEXT.search(message)
        status_code = int(match.group(1)) if match else None

    return ApiErrorInfo(
        kind=classify_error(message, status_code),
        message=message,
        endpoint=endpoint,
        status_code=status_code,
        original_error=error,
    )


# ---------------------------------------------------------------------------
# Exception Hierarchy
# ---------------------------------------------------------------------------


class PeacockError(Exception):
    """Base class for every error raised by this package."""


class DataAccessError(PeacockError):
    """Fetching accounts or transactions from the ledger failed."""


class EmbeddingError(PeacockError):
    """The embedding provider failed; the index build is aborted."""


class NotInitializedError(PeacockError):
    """Memory search was attempted before any store was installed."""


class PeacockApiError(PeacockError):
    """A call to the upstream Peacock API failed."""

    default_kind = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: int | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message)
        self.info = ApiErrorInfo(
            kind=kind or self.default_kind,
            message=message,
            endpoint=endpoint,
            status_code=status_code,
            original_error=self,
        )

    @property
    def endpoint(self) -> str:
        return self.info.endpoint

    @property
    def status_code(self) -> int | None:
        return self.info.status_code


class AuthError(PeacockApiError):
    """Login to the Peacock API failed."""

    default_kind = ErrorKind.AUTH


class UpstreamHTTPError(PeacockApiError):
    """Non-2xx or unparseable response from the Peacock API."""

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message,
            endpoint,
            status_code=status_code,
            kind=classify_error(message, status_code),
        )


class NetworkError(PeacockApiError):
    """Transport-level failure talking to the Peacock API."""

    default_kind = ErrorKind.NETWORK


class RequestTimeoutError(PeacockApiError):
    """The Peacock API did not answer within the configured timeout."""

    default_kind = ErrorKind.TIMEOUT
