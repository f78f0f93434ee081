"""recurring expense schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

EXPENSE_TYPE = sa.Enum("subscription", "variable_recurring", "seasonal", name="expensetype")
PRIORITY = sa.Enum("essential", "important", "discretionary", name="priority")
CONFIDENCE = sa.Enum("high", "medium", "low", name="confidencelevel")
TREND = sa.Enum("increasing", "decreasing", "stable", name="trend")
ANOMALY_TYPE = sa.Enum(
    "amount_high", "amount_low", "early", "late", "missed", "duplicate_suspected", name="anomalytype"
)
SEVERITY = sa.Enum("low", "medium", "high", name="severity")
ACCOUNT_TYPE = sa.Enum("credit", "debit", "bank", "cash", "other", name="accounttype")


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("account_type", ACCOUNT_TYPE, nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("priority", PRIORITY, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("raw_description", sa.Text(), nullable=False),
        sa.Column("clean_merchant", sa.String(255), nullable=True),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transactions_date", "transactions", ["date"])
    op.create_index("idx_transaction_date_account", "transactions", ["date", "account_id"])
    op.create_index("idx_transaction_category", "transactions", ["category_id"])

    op.create_table(
        "recurring_expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("merchant_key", sa.String(100), nullable=False),
        sa.Column("merchant_display_name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("expense_type", EXPENSE_TYPE, nullable=False),
        sa.Column("priority", PRIORITY, nullable=False),
        sa.Column("confidence", CONFIDENCE, nullable=False),
        sa.Column("frequency_days", sa.Float(), nullable=False),
        sa.Column("frequency_variance_days", sa.Float(), nullable=True),
        sa.Column("typical_day_of_month", sa.Integer(), nullable=True),
        sa.Column("typical_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_variance_pct", sa.Float(), nullable=False),
        sa.Column("min_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("last_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("occurrence_count", sa.Integer(), nullable=False),
        sa.Column("first_occurrence_date", sa.Date(), nullable=False),
        sa.Column("last_occurrence_date", sa.Date(), nullable=False),
        sa.Column("sample_transaction_ids", sa.JSON(), nullable=False),
        sa.Column("next_predicted_date", sa.Date(), nullable=True),
        sa.Column("next_predicted_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("prediction_confidence", CONFIDENCE, nullable=True),
        sa.Column("trend", TREND, nullable=True),
        sa.Column("tracked", sa.Boolean(), nullable=False),
        sa.Column("user_confirmed", sa.Boolean(), nullable=False),
        sa.Column("user_excluded", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("detected_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_recurring_expenses_merchant_key", "recurring_expenses", ["merchant_key"], unique=True)
    op.create_index("ix_recurring_expenses_next_predicted_date", "recurring_expenses", ["next_predicted_date"])
    op.create_index("idx_recurring_confidence", "recurring_expenses", ["confidence"])
    op.create_index("idx_recurring_type", "recurring_expenses", ["expense_type"])

    op.create_table(
        "expense_corrections",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("merchant_key", sa.String(100), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("applied", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expense_corrections_merchant_key", "expense_corrections", ["merchant_key"], unique=True)
    op.create_index("ix_expense_corrections_applied", "expense_corrections", ["applied"])

    op.create_table(
        "recurring_anomalies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recurring_expense_id", sa.String(36), sa.ForeignKey("recurring_expenses.id"), nullable=False),
        sa.Column("transaction_id", sa.String(36), sa.ForeignKey("transactions.id"), nullable=True),
        sa.Column("anomaly_type", ANOMALY_TYPE, nullable=False),
        sa.Column("severity", SEVERITY, nullable=False),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("actual_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("deviation_ratio", sa.Float(), nullable=True),
        sa.Column("expected_date", sa.Date(), nullable=True),
        sa.Column("actual_date", sa.Date(), nullable=True),
        sa.Column("is_dismissed", sa.Boolean(), nullable=False),
        sa.Column("flagged_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_recurring_anomalies_recurring_expense_id", "recurring_anomalies", ["recurring_expense_id"])
    op.create_index("ix_recurring_anomalies_is_dismissed", "recurring_anomalies", ["is_dismissed"])
    op.create_index("ix_recurring_anomalies_flagged_at", "recurring_anomalies", ["flagged_at"])


def downgrade() -> None:
    op.drop_table("recurring_anomalies")
    op.drop_table("expense_corrections")
    op.drop_table("recurring_expenses")
    op.drop_table("transactions")
    op.drop_table("categories")
    op.drop_table("accounts")
