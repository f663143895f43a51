"""
SQLAlchemy database models.
Defines the queue table.
"""

from typing import Any

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Enum,
    Identity,
    Index,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pgworkqueue.constants import (
    MESSAGE_CHECK_NAME,
    QUEUE_TABLE,
    STATUS_ENUM_NAME,
    JobStatus,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class QueueItem(Base):
    """
    A single job row in the queue.

    This is the authoritative source of truth for job state. Successful
    jobs are deleted, so only ready, in-progress and failed rows exist.

    Key constraints:
    - id is assigned by an identity column and never reused
    - message is non-null if and only if status is 'failed'
    """

    __tablename__ = QUEUE_TABLE

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            name=STATUS_ENUM_NAME,
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=JobStatus.READY,
        server_default=JobStatus.READY.value,
    )

    item: Mapped[Any] = mapped_column(
        JSONB(none_as_null=True),
        nullable=False,
    )

    # Error message in case of permanent failure
    message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "(status = 'failed') = (message IS NOT NULL)",
            name=MESSAGE_CHECK_NAME,
        ),
        # Claim polling walks ready rows in id order
        Index(
            "ix_queue_ready",
            "id",
            postgresql_where=text("status = 'ready'"),
        ),
    )

    def __repr__(self) -> str:
        return f"QueueItem(id={self.id}, status={self.status})"
