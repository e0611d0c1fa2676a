from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_families_name", "families", ["name"], unique=True)

    op.create_table(
        "tier_sets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="CASCADE"), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("family_id", "effective_from", name="uq_tier_sets_family_effective_from"),
    )
    op.create_index("ix_tier_sets_family_id", "tier_sets", ["family_id"], unique=False)
    op.create_index("ix_tier_sets_effective_from", "tier_sets", ["effective_from"], unique=False)

    op.create_table(
        "interest_tiers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tier_set_id", sa.Integer(), sa.ForeignKey("tier_sets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("lower_bound", sa.BigInteger(), nullable=False),
        sa.Column("upper_bound", sa.BigInteger(), nullable=True),
        sa.Column("annual_rate_bps", sa.Integer(), nullable=False),
    )
    op.create_index("ix_interest_tiers_tier_set_id", "interest_tiers", ["tier_set_id"], unique=False)

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("current_balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("as_of", sa.Date(), nullable=False),
        sa.Column("residual_carry", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.CheckConstraint("current_balance >= 0", name="ck_accounts_balance_non_negative"),
        sa.CheckConstraint("residual_carry >= 0 AND residual_carry < 1000000", name="ck_accounts_carry_range"),
    )
    op.create_index("ix_accounts_family_id", "accounts", ["family_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False, server_default="interest"),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_transactions_account_id", "transactions", ["account_id"], unique=False)
    op.create_index("ix_transactions_date", "transactions", ["date"], unique=False)

def downgrade():
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_index("ix_transactions_account_id", table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_accounts_family_id", table_name="accounts")
    op.drop_table("accounts")

    op.drop_index("ix_interest_tiers_tier_set_id", table_name="interest_tiers")
    op.drop_table("interest_tiers")

    op.drop_index("ix_tier_sets_effective_from", table_name="tier_sets")
    op.drop_index("ix_tier_sets_family_id", table_name="tier_sets")
    op.drop_table("tier_sets")

    op.drop_index("ix_families_name", table_name="families")
    op.drop_table("families")
