"""Progress of long-running fork creation on the git host."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pack_review.db.session import Base
from pack_review.db.time import utcnow

FORK_JOB_PENDING = "pending"
FORK_JOB_READY = "ready"
FORK_JOB_FAILED = "failed"


class ForkJob(Base):
    """One fork-creation request per user, polled by the fork sync worker."""

    __tablename__ = "fork_job"

    owner_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # pending -> ready | failed
    state: Mapped[str] = mapped_column(String(16), nullable=False, default=FORK_JOB_PENDING)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )
