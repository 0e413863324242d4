"""API error classes.

Every failure the donation core surfaces to a caller is one of these. The
exception handler in main.py renders them as {"error": {...}} envelopes.

Taxonomy:
- validation (400): missing or malformed input
- forbidden (403): ownership, upload token, or role mismatch
- not-found (404): unknown identifier, or a receipt that is not available
- expired (410): payment deadline passed; the donor must start over
- invalid-state (422): transition not permitted from the current status
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Not allowed to access or mutate resource (403).

    Messages stay generic. A guest presenting a wrong upload token gets the
    same text as one presenting none.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class AdminRequiredError(ForbiddenError):
    """Administrator role required (403)."""

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ADMIN_REQUIRED",
            message="Admin access required",
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ReceiptUnavailableError(NotFoundError):
    """Public receipt is not available (404).

    Raised identically for unknown ids and for donations in any status other
    than VERIFIED, so a prober cannot tell which case applies.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="RECEIPT_NOT_AVAILABLE",
            message="Receipt is not available",
            status_code=404,
        )


class DonationExpiredError(APIError):
    """Payment window has passed (410)."""

    def __init__(self) -> None:
        super().__init__(
            code="DONATION_EXPIRED",
            message="Payment window has expired. Please create a new donation.",
            status_code=410,
        )


class InvalidStateError(APIError):
    """Business rule violation (422).

    Use when request is syntactically valid but the record's current state
    does not permit it.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="INVALID_STATE_TRANSITION",
            message=message,
            status_code=422,
        )


class TooManyRequestsError(APIError):
    """Caller exceeded a credential throttle (429).

    Attributes:
        retry_after: Seconds until the fixed window resets.
    """

    def __init__(self, message: str, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            code="RATE_LIMITED",
            message=message,
            status_code=429,
            details=[{"retry_after": retry_after}],
        )
