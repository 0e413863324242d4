"""Donation workflow service.

Owns every state change of a Donation and every access decision on it:

- create: PENDING record bound to the caller's user id, or to a fresh guest
  upload token returned exactly once
- attach_payment_proof: ownership/token proof, lazy deadline check, then
  PENDING → PAYMENT_UPLOADED
- decide: administrator-only PAYMENT_UPLOADED → VERIFIED | REJECTED; the
  receipt number is minted here and nowhere else
- get_for_caller / get_public_receipt: full record for owner or admin; PII-free
  receipt for anyone, VERIFIED only

Transitions are written with DonationRepository.update_if_status, so two
racing requests cannot both move the same record out of the same status.

Deadline expiry is lazy: the only write to EXPIRED happens when a proof
attempt arrives after the deadline. That write is committed before the
error is raised so it survives the request's rollback.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from temple.core.auth import Principal
from temple.core.config import Settings, settings
from temple.core.errors import (
    AdminRequiredError,
    DonationExpiredError,
    ForbiddenError,
    NotFoundError,
    ReceiptUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from temple.core.pagination import PaginationParams
from temple.core.tokens import (
    deadline_from,
    generate_public_donation_id,
    generate_receipt_number,
    generate_upload_token,
    is_past_deadline,
    tokens_match,
    utc_now,
)
from temple.models.donation import Donation
from temple.repositories.donation_repository import DonationRepository, DonationStats
from temple.schemas.donation import CreateDonationRequest
from temple.services.donation_status import (
    DonationStatus,
    InvalidDonationTransitionError,
    ensure_transition,
)

logger = logging.getLogger(__name__)

_ALREADY_PROCESSED = "This donation has already been processed"
_PROOF_REQUIRED = "Only donations with uploaded payment proof can be verified or rejected"
_BAD_UPLOAD_TOKEN = "Invalid or missing upload token"


@dataclass(frozen=True)
class CreatedDonationResult:
    """Outcome of create().

    Attributes:
        donation: The persisted PENDING donation.
        upload_token: Guest bearer token, None for authenticated donors.
    """

    donation: Donation
    upload_token: str | None


def _ensure_admin(principal: Principal | None) -> Principal:
    if principal is None:
        raise UnauthorizedError()
    if not principal.is_admin:
        raise AdminRequiredError()
    return principal


def _is_owner(donation: Donation, principal: Principal) -> bool:
    if donation.user_id is not None and donation.user_id == principal.user_id:
        return True
    return bool(
        principal.email
        and donation.email
        and donation.email.lower() == principal.email.lower()
    )


class DonationService:
    """Donation state machine bound to one database session.

    Args:
        db: Request-scoped session; the caller commits.
        config: Settings supplying the payment window.
    """

    def __init__(self, db: AsyncSession, config: Settings = settings) -> None:
        self._db = db
        self._window = timedelta(minutes=config.donation_payment_window_minutes)

    async def _get_or_404(self, public_id: str) -> Donation:
        donation = await DonationRepository.get_by_public_id(self._db, public_id)
        if donation is None:
            raise NotFoundError("Donation", public_id)
        return donation

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create(
        self,
        request: CreateDonationRequest,
        principal: Principal | None,
    ) -> CreatedDonationResult:
        """Start a donation in PENDING with a fixed payment deadline.

        Args:
            request: Validated donor and payment fields.
            principal: Authenticated caller, or None for a guest.

        Returns:
            The donation and, for guests only, the upload token.
        """
        now = utc_now()
        upload_token = None if principal is not None else generate_upload_token()

        donation = await DonationRepository.create(
            self._db,
            public_id=generate_public_donation_id(),
            user_id=principal.user_id if principal is not None else None,
            upload_token=upload_token,
            name=request.name,
            email=str(request.email),
            phone=request.phone,
            pan=request.pan,
            address=request.address,
            city=request.city,
            pincode=request.pincode,
            category=request.category,
            amount=request.amount,
            payment_method=request.payment_method.value,
            expires_at=deadline_from(now, self._window),
            created_at=now,
        )
        logger.info(
            "Donation %s created by %s",
            donation.public_id,
            "user" if principal is not None else "guest",
        )
        return CreatedDonationResult(donation=donation, upload_token=upload_token)

    # -------------------------------------------------------------------------
    # Proof of payment
    # -------------------------------------------------------------------------

    @staticmethod
    def _ensure_can_mutate(
        donation: Donation,
        principal: Principal | None,
        upload_token: str | None,
    ) -> None:
        """Owner-bound records need the owner's session; guest records need the token.

        Raises:
            ForbiddenError: On any mismatch. The message never says whether
                a presented token was close, or whether one was expected.
        """
        if donation.user_id is not None:
            if principal is None or principal.user_id != donation.user_id:
                raise ForbiddenError("You do not have permission to update this donation")
            return

        if not tokens_match(upload_token, donation.upload_token):
            raise ForbiddenError(_BAD_UPLOAD_TOKEN)

    async def attach_payment_proof(
        self,
        public_id: str,
        *,
        payment_proof_url: str,
        transaction_id: str | None,
        upload_token: str | None,
        principal: Principal | None,
    ) -> Donation:
        """Record proof of payment: PENDING → PAYMENT_UPLOADED.

        Args:
            public_id: Donation to update.
            payment_proof_url: URL of the already-uploaded proof image.
            transaction_id: Optional external payment reference.
            upload_token: Guest bearer token (ignored for owner-bound records).
            principal: Authenticated caller, or None.

        Returns:
            The updated donation.

        Raises:
            NotFoundError: Unknown public id.
            ValidationError: Empty proof URL.
            ForbiddenError: Caller is not the owner / token mismatch.
            DonationExpiredError: Deadline passed (record is now EXPIRED).
            InvalidDonationTransitionError: Record is not PENDING.
        """
        if not payment_proof_url:
            raise ValidationError("Payment proof URL is required")

        donation = await self._get_or_404(public_id)
        self._ensure_can_mutate(donation, principal, upload_token)

        status = DonationStatus.from_string(donation.status)
        now = utc_now()

        if status is DonationStatus.PENDING and is_past_deadline(donation.expires_at, now):
            await DonationRepository.update_if_status(
                self._db,
                public_id,
                expected_status=DonationStatus.PENDING.value,
                status=DonationStatus.EXPIRED.value,
            )
            # Persist the expiry even though this request ends in an error
            await self._db.commit()
            logger.info("Donation %s expired at proof attempt", public_id)
            raise DonationExpiredError()

        if status is DonationStatus.EXPIRED:
            raise DonationExpiredError()

        ensure_transition(status, DonationStatus.PAYMENT_UPLOADED, _ALREADY_PROCESSED)

        updated = await DonationRepository.update_if_status(
            self._db,
            public_id,
            expected_status=DonationStatus.PENDING.value,
            status=DonationStatus.PAYMENT_UPLOADED.value,
            payment_proof_url=payment_proof_url,
            transaction_id=transaction_id,
        )
        if updated is None:
            # Another request moved it out of PENDING between our read and write
            raise InvalidDonationTransitionError(
                status, DonationStatus.PAYMENT_UPLOADED, _ALREADY_PROCESSED
            )

        logger.info("Payment proof attached to donation %s", public_id)
        return updated

    # -------------------------------------------------------------------------
    # Administrator decision
    # -------------------------------------------------------------------------

    async def decide(
        self,
        public_id: str,
        *,
        decision: DonationStatus,
        rejection_reason: str | None,
        principal: Principal | None,
    ) -> Donation:
        """Verify or reject: PAYMENT_UPLOADED → VERIFIED | REJECTED.

        A receipt number is generated only here, using the verification
        year, and the conditional update means it is written at most once.

        Raises:
            UnauthorizedError / AdminRequiredError: Caller is not an admin.
            ValidationError: decision is neither VERIFIED nor REJECTED.
            NotFoundError: Unknown public id.
            InvalidDonationTransitionError: Record is not PAYMENT_UPLOADED.
        """
        admin = _ensure_admin(principal)
        if decision not in (DonationStatus.VERIFIED, DonationStatus.REJECTED):
            raise ValidationError("Decision must be VERIFIED or REJECTED")

        donation = await self._get_or_404(public_id)
        status = DonationStatus.from_string(donation.status)
        ensure_transition(status, decision, _PROOF_REQUIRED)

        now = utc_now()
        values: dict[str, object] = {
            "status": decision.value,
            "verified_at": now,
            "verified_by": admin.user_id,
        }
        if decision is DonationStatus.VERIFIED:
            values["receipt_number"] = generate_receipt_number(now)
        else:
            values["rejection_reason"] = rejection_reason

        updated = await DonationRepository.update_if_status(
            self._db,
            public_id,
            expected_status=DonationStatus.PAYMENT_UPLOADED.value,
            **values,
        )
        if updated is None:
            raise InvalidDonationTransitionError(status, decision, _PROOF_REQUIRED)

        logger.info(
            "Donation %s %s by admin %s",
            public_id,
            decision.value.lower(),
            admin.user_id,
        )
        return updated

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_for_caller(self, public_id: str, principal: Principal | None) -> Donation:
        """Full record, for its owner (by id or email) or an administrator.

        Raises:
            UnauthorizedError: Anonymous caller.
            NotFoundError: Unknown public id.
            ForbiddenError: Neither owner nor admin.
        """
        if principal is None:
            raise UnauthorizedError()
        donation = await self._get_or_404(public_id)
        if not (principal.is_admin or _is_owner(donation, principal)):
            raise ForbiddenError("You do not have permission to view this donation")
        return donation

    async def get_public_receipt(self, public_id: str) -> Donation:
        """The donation behind a public receipt, VERIFIED only.

        Raises:
            ReceiptUnavailableError: Same error for unknown ids and for every
                non-VERIFIED status.
        """
        donation = await DonationRepository.get_by_public_id(self._db, public_id)
        if donation is None or donation.status != DonationStatus.VERIFIED.value:
            raise ReceiptUnavailableError()
        return donation

    async def list_mine(
        self, principal: Principal | None, pagination: PaginationParams
    ) -> tuple[list[Donation], int]:
        """The caller's donations (owned, or made as a guest with their email)."""
        if principal is None:
            raise UnauthorizedError()
        return await DonationRepository.list_for_owner(
            self._db,
            user_id=principal.user_id,
            email=principal.email,
            offset=pagination.offset,
            limit=pagination.limit,
        )

    async def list_all(
        self,
        principal: Principal | None,
        pagination: PaginationParams,
        status: DonationStatus | None = None,
    ) -> tuple[list[Donation], int]:
        """Administrator listing, optionally filtered by status."""
        _ensure_admin(principal)
        return await DonationRepository.list_all(
            self._db,
            status=status.value if status is not None else None,
            offset=pagination.offset,
            limit=pagination.limit,
        )

    async def get_stats(self, principal: Principal | None) -> DonationStats:
        """Administrator statistics, including PENDING rows already overdue."""
        _ensure_admin(principal)
        return await DonationRepository.get_stats(self._db, now=utc_now())
