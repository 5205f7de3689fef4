"""Error taxonomy for the ledger engine."""


class LedgerError(Exception):
    """Base class for errors raised by the ledger engine."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or out-of-range input, reported per field."""

    def __init__(
        self, field_errors: dict[str, str], message: str = "Invalid request data"
    ) -> None:
        super().__init__(message)
        self.field_errors = field_errors


class NotFoundError(LedgerError):
    """Entity is absent or not owned by the caller."""


class BadStateError(LedgerError):
    """Entity exists but is not in a state that permits the operation."""


class GoalImmutableError(BadStateError):
    """Calorie goal has already taken effect and can no longer be edited."""


class ConflictError(LedgerError):
    """Write collides with an existing record."""


class RateLimitedError(LedgerError):
    """Caller exceeded the request budget for the current window."""

    def __init__(self, retry_after_ms: int, message: str | None = None) -> None:
        super().__init__(message or "Too many requests. Please try again later.")
        self.retry_after_ms = retry_after_ms


class UnexpectedError(LedgerError):
    """Storage failure or broken invariant."""


class DuplicateRecordError(Exception):
    """Raised by repositories when a uniqueness constraint trips."""


class EstimationClientError(Exception):
    """Failure talking to the external estimation model."""

    retryable = False


class UpstreamUnauthorizedError(EstimationClientError):
    """Credentials were rejected by the model provider."""


class UpstreamClientError(EstimationClientError):
    """Provider rejected the request itself."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamParseError(EstimationClientError):
    """Provider answered with content that is not a usable estimate."""


class TransientUpstreamError(EstimationClientError):
    """Failure that may succeed when retried."""

    retryable = True


class UpstreamRateLimitedError(TransientUpstreamError):
    """Provider throttled the request."""

    def __init__(self, message: str, retry_after_seconds: float | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UpstreamServerError(TransientUpstreamError):
    """Provider failed with a 5xx response or the connection dropped."""


class UpstreamTimeoutError(TransientUpstreamError):
    """Provider did not answer within the request timeout."""
