from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("user_id", "name", "type", name="uq_categories_user_name_type"),
        sa.CheckConstraint("type IN ('income', 'expense')", name="ck_categories_type"),
    )
    op.create_index("ix_categories_user_id", "categories", ["user_id"], unique=False)

    op.create_table(
        "recurring_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("recurrence", sa.String(length=10), nullable=False),
        sa.Column("last_occurrence", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_recurring_amount_positive"),
        sa.CheckConstraint(
            "recurrence IN ('daily', 'weekly', 'monthly', 'yearly')", name="ck_recurring_recurrence"
        ),
    )
    op.create_index("ix_recurring_transactions_user_id", "recurring_transactions", ["user_id"], unique=False)
    op.create_index("ix_recurring_transactions_category_id", "recurring_transactions", ["category_id"], unique=False)
    op.create_index("ix_recurring_transactions_start_date", "recurring_transactions", ["start_date"], unique=False)
    op.create_index(
        "ix_recurring_transactions_last_occurrence", "recurring_transactions", ["last_occurrence"], unique=False
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "recurring_id",
            sa.Integer(),
            sa.ForeignKey("recurring_transactions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("recurring_id", "date", name="uq_transactions_recurring_date"),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"], unique=False)
    op.create_index("ix_transactions_category_id", "transactions", ["category_id"], unique=False)
    op.create_index("ix_transactions_recurring_id", "transactions", ["recurring_id"], unique=False)
    op.create_index("ix_transactions_date", "transactions", ["date"], unique=False)

    op.create_table(
        "job_locks",
        sa.Column("lock_key", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("holder", sa.String(length=128), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    )

def downgrade():
    op.drop_table("job_locks")

    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_index("ix_transactions_recurring_id", table_name="transactions")
    op.drop_index("ix_transactions_category_id", table_name="transactions")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_recurring_transactions_last_occurrence", table_name="recurring_transactions")
    op.drop_index("ix_recurring_transactions_start_date", table_name="recurring_transactions")
    op.drop_index("ix_recurring_transactions_category_id", table_name="recurring_transactions")
    op.drop_index("ix_recurring_transactions_user_id", table_name="recurring_transactions")
    op.drop_table("recurring_transactions")

    op.drop_index("ix_categories_user_id", table_name="categories")
    op.drop_table("categories")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
