"""create payment requests, bundle lines, payments and bank transfers

Revision ID: 0003_payment_requests
Revises: 0002_tuitions_and_adjustments
Create Date: 2026-10-19 09:20:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0003_payment_requests"
down_revision = "0002_tuitions_and_adjustments"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "payment_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=False, unique=True),
        sa.Column("base_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("unique_code", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "verified", "expired", "cancelled", name="payment_request_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "bank_account_id",
            sa.Integer(),
            sa.ForeignKey("bank_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "verified_by_employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("unique_code BETWEEN 1 AND 999", name="ck_payment_requests_unique_code_range"),
    )
    op.create_index("ix_payment_requests_id", "payment_requests", ["id"], unique=False)
    op.create_index("ix_payment_requests_student_id", "payment_requests", ["student_id"], unique=False)
    op.create_index("ix_payment_requests_total_amount", "payment_requests", ["total_amount"], unique=False)
    op.create_index("ix_payment_requests_status", "payment_requests", ["status"], unique=False)
    op.create_index("ix_payment_requests_expires_at", "payment_requests", ["expires_at"], unique=False)
    op.create_index("ix_payment_requests_bank_account_id", "payment_requests", ["bank_account_id"], unique=False)
    op.create_index(
        "uq_payment_requests_pending_total_amount",
        "payment_requests",
        ["total_amount"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "payment_request_tuitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "payment_request_id",
            sa.Integer(),
            sa.ForeignKey("payment_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tuition_id", sa.Integer(), sa.ForeignKey("tuitions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("payment_request_id", "tuition_id", name="uq_payment_request_tuition"),
    )
    op.create_index("ix_payment_request_tuitions_id", "payment_request_tuitions", ["id"], unique=False)
    op.create_index(
        "ix_payment_request_tuitions_payment_request_id",
        "payment_request_tuitions",
        ["payment_request_id"],
        unique=False,
    )
    op.create_index("ix_payment_request_tuitions_tuition_id", "payment_request_tuitions", ["tuition_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tuition_id", sa.Integer(), sa.ForeignKey("tuitions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "payment_request_id",
            sa.Integer(),
            sa.ForeignKey("payment_requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("method", sa.Enum("cash", "bank_transfer", "scholarship", name="payment_method"), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payments_id", "payments", ["id"], unique=False)
    op.create_index("ix_payments_tuition_id", "payments", ["tuition_id"], unique=False)
    op.create_index("ix_payments_employee_id", "payments", ["employee_id"], unique=False)
    op.create_index("ix_payments_payment_request_id", "payments", ["payment_request_id"], unique=False)
    op.create_index("ix_payments_method", "payments", ["method"], unique=False)
    op.create_index("ix_payments_paid_at", "payments", ["paid_at"], unique=False)

    op.create_table(
        "bank_transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reference", sa.String(length=255), nullable=True, unique=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sender_name", sa.String(length=255), nullable=True),
        sa.Column("sender_account", sa.String(length=100), nullable=True),
        sa.Column(
            "bank_account_id",
            sa.Integer(),
            sa.ForeignKey("bank_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "matched_payment_request_id",
            sa.Integer(),
            sa.ForeignKey("payment_requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_matched", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_bank_transfers_id", "bank_transfers", ["id"], unique=False)
    op.create_index("ix_bank_transfers_amount", "bank_transfers", ["amount"], unique=False)
    op.create_index("ix_bank_transfers_received_at", "bank_transfers", ["received_at"], unique=False)
    op.create_index("ix_bank_transfers_bank_account_id", "bank_transfers", ["bank_account_id"], unique=False)
    op.create_index(
        "ix_bank_transfers_matched_payment_request_id",
        "bank_transfers",
        ["matched_payment_request_id"],
        unique=False,
    )
    op.create_index("ix_bank_transfers_is_matched", "bank_transfers", ["is_matched"], unique=False)


def downgrade() -> None:
    op.drop_table("bank_transfers")
    op.drop_table("payments")
    op.drop_table("payment_request_tuitions")
    op.drop_index("uq_payment_requests_pending_total_amount", table_name="payment_requests")
    op.drop_table("payment_requests")
    sa.Enum(name="payment_method").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="payment_request_status").drop(op.get_bind(), checkfirst=True)
