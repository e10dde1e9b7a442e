"""Models for contributions and the polls that review them."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pack_review.db.ids import new_id
from pack_review.db.session import Base
from pack_review.db.time import utcnow

if TYPE_CHECKING:
    from .texture import Texture
    from .user import User


class Status(str, enum.Enum):
    """Lifecycle of a contribution."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class Resolution(str, enum.Enum):
    """Supported output resolutions; each maps to one branch of a fork."""

    x32 = "x32"
    x64 = "x64"


contribution_co_author = Table(
    "contribution_co_author",
    Base.metadata,
    Column(
        "contribution_id",
        String(32),
        ForeignKey("contribution.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", String(32), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True),
)

# Two tables rather than a direction column: a voter row can only exist in one
# of them at a time, which the resolver enforces when moving a voter.
poll_upvote = Table(
    "poll_upvote",
    Base.metadata,
    Column("poll_id", String(32), ForeignKey("poll.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(32), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True),
)

poll_downvote = Table(
    "poll_downvote",
    Base.metadata,
    Column("poll_id", String(32), ForeignKey("poll.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(32), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True),
)


class Poll(Base):
    """Council ballot attached to exactly one contribution."""

    __tablename__ = "poll"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    upvoters: Mapped[set[User]] = relationship(
        "User",
        secondary=poll_upvote,
        collection_class=set,
        lazy="selectin",
    )
    downvoters: Mapped[set[User]] = relationship(
        "User",
        secondary=poll_downvote,
        collection_class=set,
        lazy="selectin",
    )

    def clear(self) -> None:
        """Empty both vote sets."""
        self.upvoters.clear()
        self.downvoters.clear()

    @property
    def upvotes(self) -> int:
        return len(self.upvoters)

    @property
    def downvotes(self) -> int:
        return len(self.downvoters)


_ACTIVE_ONLY = text("status != 'ARCHIVED'")


class Contribution(Base):
    """One submitted texture revision for a target texture and resolution."""

    __tablename__ = "contribution"
    __table_args__ = (
        # Content hash is unique among non-archived rows only.
        Index(
            "uq_contribution_active_hash",
            "hash",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("ix_contribution_owner_resolution", "owner_id", "resolution"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("user_account.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Null until the contributor says which texture the file replaces.
    texture_id: Mapped[str | None] = mapped_column(
        String(32),
        ForeignKey("texture.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolution: Mapped[Resolution] = mapped_column(
        Enum(Resolution, native_enum=False, length=8),
        nullable=False,
    )
    hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # Storage locator for local uploads, raw URL for files found in a fork.
    file: Mapped[str] = mapped_column(Text, nullable=False)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    # Free-form .mcmeta JSON (animation parameters).
    mcmeta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[Status] = mapped_column(
        Enum(Status, native_enum=False, length=16),
        nullable=False,
        default=Status.DRAFT,
    )
    poll_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("poll.id"),
        nullable=False,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    owner: Mapped[User] = relationship("User", foreign_keys=[owner_id])
    co_authors: Mapped[set[User]] = relationship(
        "User",
        secondary=contribution_co_author,
        collection_class=set,
        lazy="selectin",
    )
    texture: Mapped[Texture | None] = relationship("Texture")
    poll: Mapped[Poll] = relationship(
        "Poll",
        cascade="all, delete-orphan",
        single_parent=True,
        lazy="joined",
        innerjoin=True,
    )

    @property
    def co_author_ids(self) -> set[str]:
        return {user.id for user in self.co_authors}

    def __repr__(self) -> str:
        return f"<Contribution {self.id} {self.status.value} {self.hash[:8]}>"
