"""Donations API router.

Endpoints:
- POST /donations - Start a donation (guest or signed in)
- POST /donations/{public_id}/payment-proof - Attach proof of payment
- GET /donations/public/{public_id} - PII-free receipt, VERIFIED only
- GET /donations/my - Caller's own donations
- GET /donations/{public_id} - Full record, owner or admin
- GET /donations - Admin listing with optional status filter
- GET /donations/admin/stats - Admin statistics
- PATCH /donations/{public_id}/verify - Admin verify/reject

Fixed paths are declared before /{public_id} so they are not captured by it.
"""

from fastapi import APIRouter, Depends, Query, Request

from temple.api.deps import (
    AdminPrincipal,
    CurrentPrincipal,
    DonationServiceDep,
    OptionalPrincipal,
)
from temple.core.config import settings
from temple.core.pagination import PaginationParams, pagination_params
from temple.core.rate_limiting import limiter
from temple.core.responses import DataResponse, ListResponse, PaginationMeta
from temple.schemas.donation import (
    AttachPaymentProofRequest,
    CreateDonationRequest,
    CreatedDonation,
    DonationRead,
    DonationStatsRead,
    PublicReceipt,
    VerifyDonationRequest,
)
from temple.services.donation_status import DonationStatus

router = APIRouter()


# =============================================================================
# Donor endpoints
# =============================================================================


@router.post("", status_code=201)
@limiter.limit(settings.rate_limit_donation_create)
async def create_donation(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    body: CreateDonationRequest,
    principal: OptionalPrincipal,
    service: DonationServiceDep,
) -> DataResponse[CreatedDonation]:
    """Start a donation in PENDING.

    Guests receive an upload_token in this response and nowhere else; it
    is required to attach payment proof later.
    """
    result = await service.create(body, principal)
    created = CreatedDonation.model_validate(result.donation).model_copy(
        update={"upload_token": result.upload_token}
    )
    return DataResponse(data=created)


@router.post("/{public_id}/payment-proof")
@limiter.limit(settings.rate_limit_proof_upload)
async def attach_payment_proof(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    public_id: str,
    body: AttachPaymentProofRequest,
    principal: OptionalPrincipal,
    service: DonationServiceDep,
) -> DataResponse[DonationRead]:
    """Attach proof of payment before the deadline.

    Raises:
        ForbiddenError: Not the owner, or bad upload token (403).
        DonationExpiredError: Deadline passed (410).
        InvalidDonationTransitionError: Already processed (422).
    """
    donation = await service.attach_payment_proof(
        public_id,
        payment_proof_url=str(body.payment_proof_url),
        transaction_id=body.transaction_id,
        upload_token=body.upload_token,
        principal=principal,
    )
    return DataResponse(data=DonationRead.model_validate(donation))


@router.get("/public/{public_id}")
async def get_public_receipt(
    public_id: str,
    service: DonationServiceDep,
) -> DataResponse[PublicReceipt]:
    """Public receipt. Unknown and unverified donations both return 404."""
    donation = await service.get_public_receipt(public_id)
    return DataResponse(data=PublicReceipt.model_validate(donation))


@router.get("/my")
async def list_my_donations(
    principal: CurrentPrincipal,
    service: DonationServiceDep,
    pagination: PaginationParams = Depends(pagination_params),
) -> ListResponse[DonationRead]:
    """Donations owned by the caller or made as a guest with their email."""
    donations, total = await service.list_mine(principal, pagination)
    return ListResponse(
        data=[DonationRead.model_validate(d) for d in donations],
        meta=PaginationMeta(
            total=total, page=pagination.page, per_page=pagination.per_page
        ),
    )


# =============================================================================
# Administrator endpoints
# =============================================================================


@router.get("")
async def list_donations(
    principal: AdminPrincipal,
    service: DonationServiceDep,
    pagination: PaginationParams = Depends(pagination_params),
    status: DonationStatus | None = Query(default=None),
) -> ListResponse[DonationRead]:
    """All donations, newest first."""
    donations, total = await service.list_all(principal, pagination, status)
    return ListResponse(
        data=[DonationRead.model_validate(d) for d in donations],
        meta=PaginationMeta(
            total=total, page=pagination.page, per_page=pagination.per_page
        ),
    )


@router.get("/admin/stats")
async def get_donation_stats(
    principal: AdminPrincipal,
    service: DonationServiceDep,
) -> DataResponse[DonationStatsRead]:
    stats = await service.get_stats(principal)
    return DataResponse(data=DonationStatsRead.model_validate(stats))


@router.patch("/{public_id}/verify")
async def verify_donation(
    public_id: str,
    body: VerifyDonationRequest,
    principal: AdminPrincipal,
    service: DonationServiceDep,
) -> DataResponse[DonationRead]:
    """Verify (assigns the receipt number) or reject an uploaded payment.

    Raises:
        InvalidDonationTransitionError: Not in PAYMENT_UPLOADED (422).
    """
    donation = await service.decide(
        public_id,
        decision=DonationStatus(body.status),
        rejection_reason=body.rejection_reason,
        principal=principal,
    )
    return DataResponse(data=DonationRead.model_validate(donation))


# =============================================================================
# Owner or administrator
# =============================================================================


@router.get("/{public_id}")
async def get_donation(
    public_id: str,
    principal: CurrentPrincipal,
    service: DonationServiceDep,
) -> DataResponse[DonationRead]:
    donation = await service.get_for_caller(public_id, principal)
    return DataResponse(data=DonationRead.model_validate(donation))
