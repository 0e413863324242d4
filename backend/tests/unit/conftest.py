"""Shared fixtures for donation unit tests.

FakeDonationRepository keeps Donation rows in a dict and honours the same
conditional-update contract as DonationRepository, so the service and API
layers can be tested without PostgreSQL.
"""

from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from temple.models.donation import Donation
from temple.repositories.donation_repository import _TRANSITION_FIELDS, DonationStats


class FakeDonationRepository:
    def __init__(self) -> None:
        self.rows: dict[str, Donation] = {}

    async def create(self, _db, **fields: object) -> Donation:
        if fields.get("user_id") is not None and fields.get("upload_token") is not None:
            raise ValueError("A donation is bound to a user or a token, not both")
        # Unset columns read as None on a transient instance
        donation = Donation(
            **fields, status="PENDING", updated_at=fields["created_at"]
        )
        self.rows[donation.public_id] = donation
        return donation

    async def get_by_public_id(self, _db, public_id: str) -> Donation | None:
        return self.rows.get(public_id)

    async def update_if_status(
        self, _db, public_id: str, *, expected_status: str, **values: object
    ) -> Donation | None:
        invalid = set(values) - _TRANSITION_FIELDS
        if invalid:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(invalid))}")
        donation = self.rows.get(public_id)
        if donation is None or donation.status != expected_status:
            return None
        for name, value in values.items():
            setattr(donation, name, value)
        return donation

    @staticmethod
    def _page(rows: list[Donation], offset: int, limit: int) -> tuple[list[Donation], int]:
        rows = sorted(rows, key=lambda d: d.created_at, reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def list_for_owner(self, _db, *, user_id, email, offset, limit):
        rows = [
            d
            for d in self.rows.values()
            if d.user_id == user_id or (email and d.email.lower() == email.lower())
        ]
        return self._page(rows, offset, limit)

    async def list_all(self, _db, *, status, offset, limit):
        rows = [d for d in self.rows.values() if status is None or d.status == status]
        return self._page(rows, offset, limit)

    async def get_stats(self, _db, *, now: datetime) -> DonationStats:
        rows = list(self.rows.values())

        def count(status: str) -> int:
            return sum(1 for d in rows if d.status == status)

        return DonationStats(
            total=len(rows),
            pending=count("PENDING"),
            overdue_pending=sum(
                1 for d in rows if d.status == "PENDING" and d.expires_at < now
            ),
            payment_uploaded=count("PAYMENT_UPLOADED"),
            verified=count("VERIFIED"),
            rejected=count("REJECTED"),
            expired=count("EXPIRED"),
            total_verified_amount=sum(
                (d.amount for d in rows if d.status == "VERIFIED"), Decimal("0")
            ),
        )


@pytest.fixture
def fake_repo() -> Iterator[FakeDonationRepository]:
    """Replace DonationRepository inside the donation service."""
    repo = FakeDonationRepository()
    with patch("temple.services.donation_service.DonationRepository", repo):
        yield repo


@pytest.fixture
def mock_db() -> AsyncMock:
    return AsyncMock()
