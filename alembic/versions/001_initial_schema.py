"""Initial schema with queue table

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE queue_status AS ENUM ('ready', 'in-progress', 'failed');
        EXCEPTION
            WHEN duplicate_object THEN null;
        END $$;
    """)

    op.create_table(
        "queue",
        sa.Column(
            "id",
            sa.BigInteger,
            sa.Identity(always=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            postgresql.ENUM("ready", "in-progress", "failed", name="queue_status", create_type=False),
            nullable=False,
            server_default="ready",
        ),
        sa.Column("item", postgresql.JSONB, nullable=False),
        # Error message in case of permanent failure
        sa.Column("message", sa.Text, nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(status = 'failed') = (message IS NOT NULL)",
            name="ck_queue_message_iff_failed",
        ),
    )

    # Partial index for claim polling
    op.execute("""
        CREATE INDEX ix_queue_ready
        ON queue (id)
        WHERE status = 'ready'
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_queue_ready")
    op.drop_table("queue")
    op.execute("DROP TYPE IF EXISTS queue_status")
