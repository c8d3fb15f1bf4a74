"""SQLAlchemy adapter for the :class:`UserDirectory` port."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sessionauth.models.user import User
from sessionauth.services._shared.errors import NotFoundError
from sessionauth.services._shared.ports import UserDirectory
from sessionauth.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


class SQLAlchemyUserDirectory(UserDirectory):
    """
    User directory backed by the ``users`` table.

    Each call runs in its own Unit of Work: reads in a read-only scope,
    the password update in a read-write scope that commits on success.

    .. note::
       Requires an active Flask app context (Flask-SQLAlchemy session).
    """

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        return SQLAlchemyReadOnlyUnitOfWork()

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    @staticmethod
    def _coerce_id(user_id: Any) -> int | None:
        if isinstance(user_id, int):
            return user_id
        if isinstance(user_id, str) and user_id.isdigit():
            return int(user_id)
        return None

    def get_user(self, identity: str) -> User | None:
        if not identity:
            return None
        with self.ro_uow() as uow:
            return uow.users.get_by_identity(identity)

    def get_user_by_id(self, user_id: Any) -> User | None:
        pk = self._coerce_id(user_id)
        if pk is None:
            return None
        with self.ro_uow() as uow:
            return uow.users.get(pk)

    def get_user_by_email(self, email: str) -> User | None:
        if not email:
            return None
        with self.ro_uow() as uow:
            return uow.users.get_by_email(email)

    def update_user_by_id(self, user_id: Any, fields: Mapping[str, Any]) -> User:
        """
        Update whitelisted fields of a user.

        :raises NotFoundError: If the user does not exist.
        :raises ValueError: On non-updatable fields or invalid values.
        """
        pk = self._coerce_id(user_id)
        with self.rw_uow() as uow:
            user = uow.users.get_for_update(pk) if pk is not None else None
            if user is None:
                raise NotFoundError("User", user_id)
            uow.users.update(user, **dict(fields))
            return user
