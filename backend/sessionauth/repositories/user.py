"""User repository for persistence-level lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import or_, select

from sessionauth.models.user import User
from sessionauth.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER handles tokens or sessions; only DB-level user access.
    """

    model = User

    # ``password`` goes through the model setter, which hashes it
    updatable_fields = frozenset({"password", "email", "username", "phone_number"})

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive)."""
        stmt = select(User).where(User.email == email.lower().strip())
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def get_by_identity(self, identity: str) -> User | None:
        """Fetch a user by login identity: email, username or phone number.

        :param identity: Raw identity as typed by the user.
        :returns: Matching user or ``None``.
        """
        needle = identity.strip()
        stmt = select(User).where(
            or_(
                User.email == needle.lower(),
                User.username == needle,
                User.phone_number == needle.replace(" ", ""),
            )
        )
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)
