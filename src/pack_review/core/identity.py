"""Identity of the user performing an operation, and role checks."""

from __future__ import annotations

from dataclasses import dataclass

from pack_review.core.errors import Forbidden
from pack_review.models.user import User, UserRole


@dataclass(frozen=True)
class Actor:
    """The acting user as seen by the services: an id and a role."""

    id: str
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(id=user.id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def require_role(actor: Actor, role: UserRole) -> None:
    """Raise ``Forbidden`` unless the actor has ``role`` or is an admin."""
    if actor.role == role or actor.is_admin:
        return
    raise Forbidden(f"This action requires the {role.value.lower()} role")


def require_owner_or_admin(actor: Actor, owner_id: str) -> None:
    """Raise ``Forbidden`` unless the actor owns the record or is an admin."""
    if actor.id == owner_id or actor.is_admin:
        return
    raise Forbidden("You do not own this contribution")
