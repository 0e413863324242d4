"""Create donations table.

Revision ID: 001_donations
Revises:
Create Date: 2026-10-19

Time-gated donation records. Owner binding is a user id or a guest upload
token, never both.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_donations"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "donations",
        sa.Column(
            "id",
            sa.UUID(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("public_id", sa.String(32), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("upload_token", sa.String(64), nullable=True),
        # Donor
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("pan", sa.String(16), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("pincode", sa.String(12), nullable=True),
        # Payment
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default="PENDING"
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_proof_url", sa.Text(), nullable=True),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        # Administrator decision
        sa.Column("receipt_number", sa.String(32), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.UUID(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("public_id", name="uq_donations_public_id"),
        sa.UniqueConstraint("receipt_number", name="uq_donations_receipt_number"),
        sa.CheckConstraint(
            "NOT (user_id IS NOT NULL AND upload_token IS NOT NULL)",
            name="ck_donations_single_owner_binding",
        ),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PAYMENT_UPLOADED', 'VERIFIED', 'REJECTED', 'EXPIRED')",
            name="ck_donations_status",
        ),
        sa.CheckConstraint(
            "payment_method IN ('UPI', 'BANK_TRANSFER')",
            name="ck_donations_payment_method",
        ),
        sa.CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    )
    op.create_index("ix_donations_user_id", "donations", ["user_id"])
    op.create_index("ix_donations_email_lower", "donations", [sa.text("lower(email)")])
    op.create_index(
        "ix_donations_status_created_at", "donations", ["status", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_donations_status_created_at", table_name="donations")
    op.drop_index("ix_donations_email_lower", table_name="donations")
    op.drop_index("ix_donations_user_id", table_name="donations")
    op.drop_table("donations")
