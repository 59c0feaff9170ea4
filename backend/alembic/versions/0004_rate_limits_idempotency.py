"""create persisted rate limit windows and idempotency records

Revision ID: 0004_rate_limits_idempotency
Revises: 0003_payment_requests
Create Date: 2026-10-19 09:30:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0004_rate_limits_idempotency"
down_revision = "0003_payment_requests"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "rate_limit_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=255), nullable=False, unique=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", name="rate_limit_record_status"),
            nullable=False,
            server_default="active",
        ),
        *_timestamps(),
    )
    op.create_index("ix_rate_limit_records_id", "rate_limit_records", ["id"], unique=False)
    op.create_index("ix_rate_limit_records_action", "rate_limit_records", ["action"], unique=False)
    op.create_index("ix_rate_limit_records_identifier", "rate_limit_records", ["identifier"], unique=False)
    op.create_index("ix_rate_limit_records_expires_at", "rate_limit_records", ["expires_at"], unique=False)
    op.create_index("ix_rate_limit_records_status", "rate_limit_records", ["status"], unique=False)

    op.create_table(
        "idempotency_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=128), nullable=False, unique=True),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", name="idempotency_record_status"),
            nullable=False,
            server_default="active",
        ),
        *_timestamps(),
    )
    op.create_index("ix_idempotency_records_id", "idempotency_records", ["id"], unique=False)
    op.create_index("ix_idempotency_records_expires_at", "idempotency_records", ["expires_at"], unique=False)
    op.create_index("ix_idempotency_records_status", "idempotency_records", ["status"], unique=False)


def downgrade() -> None:
    op.drop_table("idempotency_records")
    op.drop_table("rate_limit_records")
    sa.Enum(name="idempotency_record_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="rate_limit_record_status").drop(op.get_bind(), checkfirst=True)
