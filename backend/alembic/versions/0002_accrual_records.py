"""Accrual records keyed by (account_id, run_date) and batch run summaries.

Revision ID: 0002_accrual_records
Revises: 0001_init
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_accrual_records"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "accrual_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("run_date", sa.Date(), nullable=False),
        sa.Column("interest_posted", sa.BigInteger(), nullable=False),
        sa.Column("residual_after", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_accrual_records_account_id", "accrual_records", ["account_id"], unique=False)
    op.create_index("ix_accrual_records_run_date", "accrual_records", ["run_date"], unique=False)
    op.create_unique_constraint(
        "uq_accrual_records_account_run_date",
        "accrual_records",
        ["account_id", "run_date"],
    )

    op.create_table(
        "accrual_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("through_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="running"),
        sa.Column("accounts_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accounts_halted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_interest_posted", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("message", sa.String(length=512), nullable=True),
        sa.Column("started_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_accrual_runs_through_date", "accrual_runs", ["through_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_accrual_runs_through_date", table_name="accrual_runs")
    op.drop_table("accrual_runs")

    op.drop_constraint("uq_accrual_records_account_run_date", "accrual_records", type_="unique")
    op.drop_index("ix_accrual_records_run_date", table_name="accrual_records")
    op.drop_index("ix_accrual_records_account_id", table_name="accrual_records")
    op.drop_table("accrual_records")
