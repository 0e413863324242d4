"""Repository for Donation persistence.

Point lookups by public id, and status transitions written as conditional
updates (``WHERE status = :expected``) so a transition only lands if the row
is still in the state the caller read.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from temple.models.donation import Donation

# Columns a status transition may write. Donor fields, owner binding,
# public_id and expires_at are fixed at creation.
_TRANSITION_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "payment_proof_url",
        "transaction_id",
        "receipt_number",
        "verified_at",
        "verified_by",
        "rejection_reason",
    }
)


@dataclass(frozen=True)
class DonationStats:
    """Aggregate counts for the admin dashboard.

    Attributes:
        total: All donations.
        pending: Status PENDING (includes overdue ones not yet touched).
        overdue_pending: PENDING rows already past their deadline.
        payment_uploaded: Awaiting administrator review.
        verified: Status VERIFIED.
        rejected: Status REJECTED.
        expired: Status EXPIRED.
        total_verified_amount: Sum of VERIFIED amounts.
    """

    total: int
    pending: int
    overdue_pending: int
    payment_uploaded: int
    verified: int
    rejected: int
    expired: int
    total_verified_amount: Decimal


class DonationRepository:
    """Stateless repository for donations table operations.

    All methods are static. The caller's AsyncSession controls the
    transaction.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        public_id: str,
        user_id: uuid.UUID | None,
        upload_token: str | None,
        name: str,
        email: str,
        phone: str,
        category: str,
        amount: Decimal,
        payment_method: str,
        expires_at: datetime,
        created_at: datetime,
        pan: str | None = None,
        address: str | None = None,
        city: str | None = None,
        pincode: str | None = None,
    ) -> Donation:
        """Insert a new PENDING donation.

        Raises:
            ValueError: If both user_id and upload_token are set.
            sqlalchemy.exc.IntegrityError: On public_id collision.
        """
        if user_id is not None and upload_token is not None:
            raise ValueError("A donation is bound to a user or a token, not both")

        donation = Donation(
            public_id=public_id,
            user_id=user_id,
            upload_token=upload_token,
            name=name,
            email=email,
            phone=phone,
            pan=pan,
            address=address,
            city=city,
            pincode=pincode,
            category=category,
            amount=amount,
            payment_method=payment_method,
            status="PENDING",
            expires_at=expires_at,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(donation)
        await db.flush()
        return donation

    @staticmethod
    async def get_by_public_id(db: AsyncSession, public_id: str) -> Donation | None:
        """Fetch a donation by its public id.

        Args:
            db: Async database session.
            public_id: The DON-... identifier.

        Returns:
            Donation if found, None otherwise.
        """
        stmt = select(Donation).where(Donation.public_id == public_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update_if_status(
        db: AsyncSession,
        public_id: str,
        *,
        expected_status: str,
        **values: object,
    ) -> Donation | None:
        """Apply a transition only if the row still has expected_status.

        Args:
            db: Async database session.
            public_id: The donation to update.
            expected_status: Status the caller observed when it read the row.
            **values: Columns to set; must be in _TRANSITION_FIELDS.

        Returns:
            The updated Donation, or None when no row matched (unknown id or
            another request changed the status first).

        Raises:
            ValueError: If values names a column outside _TRANSITION_FIELDS.
        """
        invalid = set(values) - _TRANSITION_FIELDS
        if invalid:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(invalid))}")

        stmt = (
            update(Donation)
            .where(
                Donation.public_id == public_id,
                Donation.status == expected_status,
            )
            .values(**values)
            .returning(Donation)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_owner(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        email: str | None,
        offset: int,
        limit: int,
    ) -> tuple[list[Donation], int]:
        """A donor's donations, newest first.

        Matches by owning user id, or case-insensitively by email so guest
        donations made with the account's address show up too.

        Returns:
            Tuple of (page of donations, total matching).
        """
        condition = Donation.user_id == user_id
        if email:
            condition = or_(condition, func.lower(Donation.email) == email.lower())

        total = await db.scalar(select(func.count()).select_from(Donation).where(condition))
        stmt = (
            select(Donation)
            .where(condition)
            .order_by(Donation.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    @staticmethod
    async def list_all(
        db: AsyncSession,
        *,
        status: str | None,
        offset: int,
        limit: int,
    ) -> tuple[list[Donation], int]:
        """All donations for administrators, optionally filtered by status.

        Returns:
            Tuple of (page of donations, total matching).
        """
        count_stmt = select(func.count()).select_from(Donation)
        stmt = select(Donation).order_by(Donation.created_at.desc())
        if status is not None:
            count_stmt = count_stmt.where(Donation.status == status)
            stmt = stmt.where(Donation.status == status)

        total = await db.scalar(count_stmt)
        result = await db.execute(stmt.offset(offset).limit(limit))
        return list(result.scalars().all()), int(total or 0)

    @staticmethod
    async def get_stats(db: AsyncSession, *, now: datetime) -> DonationStats:
        """Count donations per status and sum verified amounts.

        Args:
            db: Async database session.
            now: Reference instant for counting overdue PENDING rows.
        """
        rows = await db.execute(
            select(Donation.status, func.count()).group_by(Donation.status)
        )
        counts: dict[str, int] = {status: int(n) for status, n in rows.all()}

        overdue = await db.scalar(
            select(func.count())
            .select_from(Donation)
            .where(Donation.status == "PENDING", Donation.expires_at < now)
        )
        verified_sum = await db.scalar(
            select(func.coalesce(func.sum(Donation.amount), 0)).where(
                Donation.status == "VERIFIED"
            )
        )

        return DonationStats(
            total=sum(counts.values()),
            pending=counts.get("PENDING", 0),
            overdue_pending=int(overdue or 0),
            payment_uploaded=counts.get("PAYMENT_UPLOADED", 0),
            verified=counts.get("VERIFIED", 0),
            rejected=counts.get("REJECTED", 0),
            expired=counts.get("EXPIRED", 0),
            total_verified_amount=Decimal(verified_sum or 0),
        )
