"""Initial schema - matches the models created by init_db().

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # --- spools ---
    op.create_table(
        "spools",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("material", sa.String(50), nullable=False),
        sa.Column("color_name", sa.String(100), nullable=False),
        sa.Column("color", sa.String(32), nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.Column("total_weight", sa.Float, nullable=False),
        sa.Column("remaining_weight", sa.Float, nullable=False),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("total_weight > 0", name="ck_spools_total_weight_positive"),
    )
    op.create_index("ix_spools_user_id", "spools", ["user_id"])

    # --- brand_shortcuts ---
    op.create_table(
        "brand_shortcuts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.UniqueConstraint("user_id", "brand", name="uq_brand_shortcuts_user_brand"),
    )
    op.create_index("ix_brand_shortcuts_user_id", "brand_shortcuts", ["user_id"])

    # --- prints ---
    op.create_table(
        "prints",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("spool_id", sa.Integer, sa.ForeignKey("spools.id", ondelete="SET NULL"), nullable=True),
        sa.Column("material", sa.String(50), nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.Column("color_name", sa.String(100), nullable=False),
        sa.Column("color", sa.String(32), nullable=False),
        sa.Column("weight_used", sa.Float, nullable=False),
        sa.Column("cost", sa.Float, nullable=False, server_default="0"),
        sa.Column("idempotency_key", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_prints_user_idempotency_key"),
    )
    op.create_index("ix_prints_user_id", "prints", ["user_id"])

    # --- print_line_items ---
    op.create_table(
        "print_line_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("print_id", sa.Integer, sa.ForeignKey("prints.id", ondelete="CASCADE"), nullable=False),
        sa.Column("spool_id", sa.Integer, sa.ForeignKey("spools.id", ondelete="SET NULL"), nullable=True),
        sa.Column("material", sa.String(50), nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.Column("color_name", sa.String(100), nullable=False),
        sa.Column("color", sa.String(32), nullable=False),
        sa.Column("weight_used", sa.Float, nullable=False),
        sa.Column("cost", sa.Float, nullable=False, server_default="0"),
    )
    op.create_index("ix_print_line_items_print_id", "print_line_items", ["print_id"])
    op.create_index("ix_print_line_items_spool_id", "print_line_items", ["spool_id"])


def downgrade() -> None:
    # Drop all tables in reverse dependency order
    op.drop_table("print_line_items")
    op.drop_table("prints")
    op.drop_table("brand_shortcuts")
    op.drop_table("spools")
    op.drop_table("users")
