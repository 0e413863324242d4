"""Donation request/response schemas.

Three read projections, by audience:
1. DonationRead: full record (PII included) for the owner or an administrator
2. PublicReceipt: PII-stripped view, VERIFIED donations only
3. CreatedDonation: DonationRead plus the guest upload token, returned once
   from POST /donations and never again

The upload token appears in CreatedDonation only. No other schema has the field.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl

from temple.services.donation_status import PaymentMethod

# =============================================================================
# Request Schemas
# =============================================================================


class CreateDonationRequest(BaseModel):
    """Request body for POST /donations.

    Attributes:
        name: Donor name.
        email: Donor email (also used to match donations to an account).
        phone: Donor phone number.
        pan: Optional tax id, needed for tax-exemption receipts.
        address / city / pincode: Optional postal address.
        category: Donation category.
        amount: Positive amount.
        payment_method: UPI or BANK_TRANSFER.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=32)
    pan: str | None = Field(default=None, max_length=16)
    address: str | None = Field(default=None, max_length=2000)
    city: str | None = Field(default=None, max_length=100)
    pincode: str | None = Field(default=None, max_length=12)
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: PaymentMethod


class AttachPaymentProofRequest(BaseModel):
    """Request body for POST /donations/{public_id}/payment-proof.

    The proof image has already been stored by the upload service; only its
    URL arrives here.

    Attributes:
        payment_proof_url: Where the uploaded screenshot lives.
        transaction_id: Optional UPI / bank reference.
        upload_token: Guest bearer token from the creation response.
    """

    model_config = ConfigDict(extra="forbid")

    payment_proof_url: HttpUrl
    transaction_id: str | None = Field(default=None, max_length=100)
    upload_token: str | None = Field(default=None, max_length=64)


class VerifyDonationRequest(BaseModel):
    """Request body for PATCH /donations/{public_id}/verify."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["VERIFIED", "REJECTED"]
    rejection_reason: str | None = Field(default=None, max_length=2000)


# =============================================================================
# Response Schemas
# =============================================================================


class DonationRead(BaseModel):
    """Full donation record, for its owner or an administrator."""

    model_config = ConfigDict(from_attributes=True)

    public_id: str
    user_id: uuid.UUID | None
    name: str
    email: str
    phone: str
    pan: str | None
    address: str | None
    city: str | None
    pincode: str | None
    category: str
    amount: Decimal
    payment_method: str
    status: str
    expires_at: datetime
    payment_proof_url: str | None
    transaction_id: str | None
    receipt_number: str | None
    verified_at: datetime | None
    verified_by: uuid.UUID | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime


class CreatedDonation(DonationRead):
    """Creation response.

    Attributes:
        upload_token: Present for guest donations only. Shown once.
    """

    upload_token: str | None = None


class PublicReceipt(BaseModel):
    """PII-stripped receipt. No phone, tax id, address or email."""

    model_config = ConfigDict(from_attributes=True)

    public_id: str
    name: str
    category: str
    amount: Decimal
    payment_method: str
    status: str
    receipt_number: str
    created_at: datetime
    verified_at: datetime


class DonationStatsRead(BaseModel):
    """Admin statistics."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    pending: int
    overdue_pending: int
    payment_uploaded: int
    verified: int
    rejected: int
    expired: int
    total_verified_amount: Decimal
