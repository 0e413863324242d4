"""Donation model - time-gated, proof-of-payment donation record.

Owner binding is exactly one of user_id (authenticated donor) or
upload_token (guest donor). Records are never deleted; they are kept for
audit and receipts.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from temple.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class Donation(Base, TimestampMixin):
    """A donation moving through PENDING -> PAYMENT_UPLOADED -> VERIFIED/REJECTED.

    Attributes:
        id: Internal UUID primary key. Never exposed.
        public_id: Human-meaningful id used in URLs and receipts (DON-...).
        user_id: Owning user for authenticated donations. NULL for guests.
        upload_token: Guest bearer token for proof upload. NULL for owners.
        name / email / phone: Donor identity and contact.
        pan: Tax id (PII, never in the public receipt).
        address / city / pincode: Postal address (PII).
        category: Donation category (e.g., "Annadanam").
        amount: Positive amount, two decimal places.
        payment_method: UPI or BANK_TRANSFER.
        status: PENDING, PAYMENT_UPLOADED, VERIFIED, REJECTED, EXPIRED.
        expires_at: Payment deadline fixed at creation.
        payment_proof_url: URL of the uploaded proof image.
        transaction_id: Optional external payment reference.
        receipt_number: Assigned once, on the VERIFIED transition.
        verified_at: When an administrator verified or rejected.
        verified_by: Acting administrator's user id.
        rejection_reason: Reason given on REJECTED.
    """

    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint(
            "NOT (user_id IS NOT NULL AND upload_token IS NOT NULL)",
            name="ck_donations_single_owner_binding",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'PAYMENT_UPLOADED', 'VERIFIED', 'REJECTED', 'EXPIRED')",
            name="ck_donations_status",
        ),
        CheckConstraint(
            "payment_method IN ('UPI', 'BANK_TRANSFER')",
            name="ck_donations_payment_method",
        ),
        CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
        Index("ix_donations_user_id", "user_id"),
        Index("ix_donations_email_lower", text("lower(email)")),
        Index("ix_donations_status_created_at", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=_DEFAULT_UUID,
    )
    public_id: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    upload_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    # Donor
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    pan: Mapped[str | None] = mapped_column(String(16), nullable=True)
    address: Mapped[str | None] = mapped_column(Text(), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(12), nullable=True)

    # Payment
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="PENDING",
        default="PENDING",
    )
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    payment_proof_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Administrator decision
    receipt_number: Mapped[str | None] = mapped_column(
        String(32),
        unique=True,
        nullable=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    verified_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text(), nullable=True)
