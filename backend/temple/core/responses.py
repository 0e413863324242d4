"""Response envelopes.

Success: {"data": ...}, with {"meta": {...}} added for listings.
Failure: {"error": {"code", "message", "details"?}}.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Pagination metadata for listings.

    Attributes:
        total: Matching donations across all pages.
        page: Current page number (1-indexed).
        per_page: Page size.
    """

    total: int
    page: int
    per_page: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page


class DataResponse(BaseModel, Generic[T]):
    """Envelope for a single resource."""

    data: T


class ListResponse(BaseModel, Generic[T]):
    """Envelope for a page of resources."""

    data: list[T]
    meta: PaginationMeta


class ErrorDetail(BaseModel):
    """Error body.

    Attributes:
        code: Machine-readable error code (e.g., "DONATION_EXPIRED").
        message: Human-readable message, safe to show the donor.
        details: Optional field-level errors or retry hints.
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Error envelope rendered by the exception handlers in main.py."""

    error: ErrorDetail
