"""Vehicle expenses and consignment settlements

Revision ID: 20261018_expenses
Revises: 20261018_initial
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_expenses"
down_revision = "20261018_initial"
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "vehicle_expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("vehicle_id", sa.Integer(), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("expense_type", sa.String(length=64), nullable=False),
        sa.Column("location", sa.String(length=128), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_vehicle_expenses_vehicle_id", "vehicle_expenses", ["vehicle_id"])
    op.create_index("ix_vehicle_expenses_vehicle_date", "vehicle_expenses", ["vehicle_id", "expense_date"])

    op.create_table(
        "consignment_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("general_note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_consignment_records_created_at", "consignment_records", ["created_at"])

    op.create_table(
        "consignment_deductions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("vehicle_id", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["record_id"], ["consignment_records.id"]),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_consignment_deductions_record_id", "consignment_deductions", ["record_id"])
    op.create_index("ix_consignment_deductions_vehicle_id", "consignment_deductions", ["vehicle_id"])

    op.create_table(
        "external_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["record_id"], ["consignment_records.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_external_payments_record_id", "external_payments", ["record_id"])
    op.create_index("ix_external_payments_customer_id", "external_payments", ["customer_id"])


def downgrade():
    op.drop_table("external_payments")
    op.drop_table("consignment_deductions")
    op.drop_table("consignment_records")
    op.drop_table("vehicle_expenses")
