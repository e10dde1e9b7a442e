"""SQLAlchemy models for users and their roles."""

from __future__ import annotations

import enum

from sqlalchemy import Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pack_review.db.ids import new_id
from pack_review.db.session import Base


class UserRole(str, enum.Enum):
    """Roles granting access to review actions."""

    USER = "USER"
    COUNCIL = "COUNCIL"
    ADMIN = "ADMIN"


class User(Base):
    """A contributor, council member or administrator.

    Login and session issuance live outside this service; the row only keeps
    what the review pipeline needs: the role and the GitHub identity used to
    reach the user's fork.
    """

    __tablename__ = "user_account"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, length=16),
        nullable=False,
        default=UserRole.USER,
    )
    github_login: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    # OAuth access token used to act on the user's fork.
    github_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.role.value}>"
