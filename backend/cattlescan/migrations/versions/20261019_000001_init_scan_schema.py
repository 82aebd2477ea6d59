"""init scan schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "breeds",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("species", sa.String(length=16), nullable=False, server_default=sa.text("'Cattle'")),
        sa.Column("origin", sa.String(length=255)),
        sa.Column("status", sa.String(length=32)),
        sa.Column("description", sa.Text()),
        sa.Column("key_characteristics", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("native_region", sa.String(length=255)),
        sa.Column("avg_milk_yield_min", sa.Numeric(10, 2)),
        sa.Column("avg_milk_yield_max", sa.Numeric(10, 2)),
        sa.Column("milk_yield_unit", sa.String(length=32)),
        sa.Column("avg_body_weight_min", sa.Numeric(10, 2)),
        sa.Column("avg_body_weight_max", sa.Numeric(10, 2)),
        sa.Column("body_weight_unit", sa.String(length=32)),
        sa.Column("adaptability", sa.Text()),
        sa.Column("temperament", sa.String(length=32)),
        sa.Column("conservation_status", sa.String(length=32)),
        sa.Column("stock_img_url", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("species IN ('Cattle', 'Buffalo')", name="chk_breeds_species"),
    )
    op.create_index("idx_breeds_species", "breeds", ["species"])

    op.create_table(
        "cattle_scans",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("predictions", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("image_metadata", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("location", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("scanned_by_user_id", sa.String(length=64)),
        sa.Column("is_helpful", sa.Boolean()),
        sa.Column("reviewed_by_user_id", sa.String(length=64)),
        sa.Column("is_flagged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("flag_reason", sa.Text()),
        sa.Column("flagged_by_user_id", sa.String(length=64)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.CheckConstraint("image_url <> ''", name="chk_cattle_scans_image_url"),
    )
    op.create_index("idx_cattle_scans_created", "cattle_scans", ["created_at"])
    op.create_index("idx_cattle_scans_user", "cattle_scans", ["scanned_by_user_id"])

    op.create_table(
        "predicted_breeds",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "scan_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("cattle_scans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("breed_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("breeds.id")),
        sa.Column("label", sa.String(length=128), nullable=False),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("percentage >= 0 AND percentage <= 100", name="chk_predicted_breeds_percentage"),
    )
    op.create_index("idx_predicted_breeds_scan", "predicted_breeds", ["scan_id"])

    op.create_table(
        "confirmed_cattle_breeds",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("scan_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("cattle_scans.id")),
        sa.Column("breed_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("breeds.id"), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_confirmed_breed_created", "confirmed_cattle_breeds", ["breed_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_confirmed_breed_created", table_name="confirmed_cattle_breeds")
    op.drop_index("idx_predicted_breeds_scan", table_name="predicted_breeds")
    op.drop_index("idx_cattle_scans_user", table_name="cattle_scans")
    op.drop_index("idx_cattle_scans_created", table_name="cattle_scans")
    op.drop_index("idx_breeds_species", table_name="breeds")
    op.drop_table("confirmed_cattle_breeds")
    op.drop_table("predicted_breeds")
    op.drop_table("cattle_scans")
    op.drop_table("breeds")
