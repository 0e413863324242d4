"""Donation status state machine.

- PENDING → PAYMENT_UPLOADED (donor attaches proof)
- PENDING → EXPIRED (deadline passed; applied lazily on the next proof attempt)
- PAYMENT_UPLOADED → VERIFIED | REJECTED (administrator decision)
- VERIFIED, REJECTED, EXPIRED → (terminal, no transitions)

Forward-only. Nothing ever returns to PENDING.
"""

from enum import Enum

from temple.core.errors import InvalidStateError

# =============================================================================
# Enums
# =============================================================================


class DonationStatus(Enum):
    """Donation status values.

    Values match the database check constraint on donations.status.
    """

    PENDING = "PENDING"
    PAYMENT_UPLOADED = "PAYMENT_UPLOADED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @classmethod
    def from_string(cls, value: str) -> "DonationStatus":
        """Convert a database string to enum.

        Raises:
            ValueError: If the string doesn't match any status.
        """
        for status in cls:
            if status.value == value:
                return status
        valid = [s.value for s in cls]
        raise ValueError(f"Invalid donation status: '{value}'. Valid: {valid}")

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self]


class PaymentMethod(Enum):
    """How the donor paid out of band."""

    UPI = "UPI"
    BANK_TRANSFER = "BANK_TRANSFER"


# =============================================================================
# Exceptions
# =============================================================================


class InvalidDonationTransitionError(InvalidStateError):
    """Raised when a transition is not allowed from the current status."""

    def __init__(
        self,
        current_status: DonationStatus,
        target_status: DonationStatus,
        message: str | None = None,
    ) -> None:
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            message
            or (
                f"Cannot move donation from {current_status.value} "
                f"to {target_status.value}"
            )
        )


# =============================================================================
# State Machine Definition
# =============================================================================


_VALID_TRANSITIONS: dict[DonationStatus, frozenset[DonationStatus]] = {
    DonationStatus.PENDING: frozenset(
        {DonationStatus.PAYMENT_UPLOADED, DonationStatus.EXPIRED}
    ),
    DonationStatus.PAYMENT_UPLOADED: frozenset(
        {DonationStatus.VERIFIED, DonationStatus.REJECTED}
    ),
    DonationStatus.VERIFIED: frozenset(),
    DonationStatus.REJECTED: frozenset(),
    DonationStatus.EXPIRED: frozenset(),
}


# =============================================================================
# Public Functions
# =============================================================================


def is_valid_transition(current: DonationStatus, target: DonationStatus) -> bool:
    """Check if a status transition is valid."""
    return target in _VALID_TRANSITIONS.get(current, frozenset())


def get_valid_transitions(status: DonationStatus) -> frozenset[DonationStatus]:
    """Statuses reachable in one step from status."""
    return _VALID_TRANSITIONS.get(status, frozenset())


def ensure_transition(
    current: DonationStatus,
    target: DonationStatus,
    message: str | None = None,
) -> None:
    """Raise unless current → target is allowed.

    Args:
        current: Status the record is in.
        target: Status the caller wants.
        message: Caller-facing text overriding the generic one.

    Raises:
        InvalidDonationTransitionError: If the transition is not allowed.
    """
    if not is_valid_transition(current, target):
        raise InvalidDonationTransitionError(current, target, message)
