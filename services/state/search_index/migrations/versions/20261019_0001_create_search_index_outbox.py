"""create search index outbox"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the outbox table and its pending-scan index."""
    op.create_table(
        "search_index_outbox",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("next_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "dead_lettered", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("retry_count >= 0", name="ck_search_index_outbox_retry_count"),
        sa.CheckConstraint("max_retries > 0", name="ck_search_index_outbox_max_retries"),
    )
    op.create_index(
        "ix_search_index_outbox_pending",
        "search_index_outbox",
        ["processed_at", "dead_lettered", "created_at"],
    )


def downgrade() -> None:
    """Drop the outbox table."""
    op.drop_index("ix_search_index_outbox_pending", table_name="search_index_outbox")
    op.drop_table("search_index_outbox")
