"""Pydantic request/response schemas for API endpoints."""

from temple.schemas.donation import (
    AttachPaymentProofRequest,
    CreateDonationRequest,
    CreatedDonation,
    DonationRead,
    DonationStatsRead,
    PublicReceipt,
    VerifyDonationRequest,
)

__all__ = [
    # Requests
    "AttachPaymentProofRequest",
    "CreateDonationRequest",
    "VerifyDonationRequest",
    # Responses
    "CreatedDonation",
    "DonationRead",
    "DonationStatsRead",
    "PublicReceipt",
]
