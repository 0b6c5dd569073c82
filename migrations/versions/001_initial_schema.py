"""Initial schema: users, partnerships and bookings.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "user_type",
            sa.Enum("company", "vendor", name="actortype"),
            nullable=False,
        ),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("vendor_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_users_type", "users", ["user_type"])

    # ── partnerships ──────────────────────────────────────────────────
    op.create_table(
        "partnerships",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "company_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "vendor_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", name="partnershipstatus"),
            server_default="active",
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("company_id", "vendor_id", name="uq_partnerships_pair"),
    )
    op.create_index(
        "idx_partnerships_company", "partnerships", ["company_id", "status"]
    )
    op.create_index("idx_partnerships_vendor", "partnerships", ["vendor_id", "status"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "company_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "vendor_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("pickup_location", sa.Text, nullable=False),
        sa.Column("dropoff_location", sa.Text, nullable=False),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("passenger_count", sa.Integer, server_default="1", nullable=False),
        sa.Column("passenger_name", sa.String(255), nullable=True),
        sa.Column("passenger_phone", sa.String(40), nullable=True),
        sa.Column("vehicle_type", sa.String(40), nullable=True),
        sa.Column("special_requirements", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "accepted",
                "rejected",
                "in_progress",
                "completed",
                "cancelled",
                name="bookingstatus",
            ),
            server_default="pending",
            nullable=False,
        ),
        sa.Column("price", sa.Float, nullable=True),
        sa.Column("current_location", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_company", "bookings", ["company_id"])
    op.create_index("idx_bookings_vendor", "bookings", ["vendor_id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("partnerships")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS partnershipstatus")
    op.execute("DROP TYPE IF EXISTS actortype")
