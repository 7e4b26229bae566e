"""init: auth users + kv_store

Revision ID: 0001_init
Revises:
Create Date: 2025-10-02

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- auth users (fastapi-users UUID table) ---
    op.create_table(
        "user",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("hashed_password", sa.String(1024), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("is_superuser", sa.Boolean, nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    # --- every site record (posts, threads, markers, ...) ---
    op.create_table(
        "kv_store",
        sa.Column("key", sa.Text, primary_key=True),
        sa.Column("value", postgresql.JSONB(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("kv_store")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
