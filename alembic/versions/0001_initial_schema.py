"""Initial ClaimGate schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create orders, custom charges and provider counters."""
    # Status is text, not a database enum, so legacy spellings remain readable.
    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", sa.String(length=255), nullable=False),
        sa.Column("provider_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claim_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_by_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=255), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("items", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("location_details", postgresql.JSONB(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("vehicle_info", sa.String(length=255), nullable=True),
        sa.Column("categories", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_orders_status_created", "orders", ["status", "created_at"])
    op.create_index(
        "idx_orders_provider_status",
        "orders",
        ["provider_id", "status", "claim_expires_at"],
    )
    op.create_index("idx_orders_customer", "orders", ["customer_id", "created_at"])

    op.create_table(
        "custom_charges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", sa.String(length=255), nullable=False),
        sa.Column("provider_id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_intent_ref", sa.String(length=255), nullable=True, unique=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_charges_customer", "custom_charges", ["customer_id", "created_at"])
    op.create_index("idx_charges_provider", "custom_charges", ["provider_id", "created_at"])

    op.create_table(
        "providers",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("accepted_job_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_job_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop ClaimGate tables."""
    op.drop_table("providers")
    op.drop_index("idx_charges_provider", table_name="custom_charges")
    op.drop_index("idx_charges_customer", table_name="custom_charges")
    op.drop_table("custom_charges")
    op.drop_index("idx_orders_customer", table_name="orders")
    op.drop_index("idx_orders_provider_status", table_name="orders")
    op.drop_index("idx_orders_status_created", table_name="orders")
    op.drop_table("orders")
