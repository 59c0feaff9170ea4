"""create discounts, tuitions and scholarships

Revision ID: 0002_tuitions_and_adjustments
Revises: 0001_people_and_academics
Create Date: 2026-10-19 09:10:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_tuitions_and_adjustments"
down_revision = "0001_people_and_academics"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "discounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column(
            "academic_year_id",
            sa.Integer(),
            sa.ForeignKey("academic_years.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "class_academic_id",
            sa.Integer(),
            sa.ForeignKey("class_academics.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("target_periods", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_discounts_id", "discounts", ["id"], unique=False)
    op.create_index("ix_discounts_academic_year_id", "discounts", ["academic_year_id"], unique=False)
    op.create_index("ix_discounts_class_academic_id", "discounts", ["class_academic_id"], unique=False)

    op.create_table(
        "tuitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "class_academic_id",
            sa.Integer(),
            sa.ForeignKey("class_academics.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("period", sa.String(length=20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("fee_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("scholarship_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("discount_id", sa.Integer(), sa.ForeignKey("discounts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("paid_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("unpaid", "partial", "paid", name="tuition_status"),
            nullable=False,
            server_default="unpaid",
        ),
        sa.Column("due_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("class_academic_id", "student_id", "period", "year", name="uq_tuition_student_period"),
    )
    op.create_index("ix_tuitions_id", "tuitions", ["id"], unique=False)
    op.create_index("ix_tuitions_class_academic_id", "tuitions", ["class_academic_id"], unique=False)
    op.create_index("ix_tuitions_student_id", "tuitions", ["student_id"], unique=False)
    op.create_index("ix_tuitions_period", "tuitions", ["period"], unique=False)
    op.create_index("ix_tuitions_year", "tuitions", ["year"], unique=False)
    op.create_index("ix_tuitions_discount_id", "tuitions", ["discount_id"], unique=False)
    op.create_index("ix_tuitions_status", "tuitions", ["status"], unique=False)
    op.create_index("ix_tuitions_due_date", "tuitions", ["due_date"], unique=False)

    op.create_table(
        "scholarships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "class_academic_id",
            sa.Integer(),
            sa.ForeignKey("class_academics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("nominal", sa.Numeric(14, 2), nullable=False),
        sa.Column("is_full_scholarship", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_by_employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_scholarships_id", "scholarships", ["id"], unique=False)
    op.create_index("ix_scholarships_student_id", "scholarships", ["student_id"], unique=False)
    op.create_index("ix_scholarships_class_academic_id", "scholarships", ["class_academic_id"], unique=False)


def downgrade() -> None:
    op.drop_table("scholarships")
    op.drop_table("tuitions")
    op.drop_table("discounts")
    sa.Enum(name="tuition_status").drop(op.get_bind(), checkfirst=True)
