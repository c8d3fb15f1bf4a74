from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from werkzeug.security import check_password_hash, generate_password_hash

from sessionauth.services._shared.errors import NotFoundError


class DirectoryUser(Protocol):
    """What the session layer reads from a user record."""

    id: Any
    email: str
    is_verified: bool

    def is_password_match(self, plaintext: str) -> bool: ...


class UserDirectory(Protocol):
    """
    Port to the external User directory.

    The session layer only reads users and updates their password.
    """

    def get_user(self, identity: str) -> DirectoryUser | None:
        """Resolve a login identity (email, username or phone number)."""

    def get_user_by_id(self, user_id: Any) -> DirectoryUser | None: ...

    def get_user_by_email(self, email: str) -> DirectoryUser | None: ...

    def update_user_by_id(self, user_id: Any, fields: Mapping[str, Any]) -> DirectoryUser:
        """
        Apply ``fields`` to the user and persist them.

        :raises NotFoundError: If the user does not exist.
        """


@dataclass
class InMemoryUser:
    """Plain user record for :class:`InMemoryUserDirectory`."""

    id: int
    email: str
    password_hash: str
    username: str | None = None
    phone_number: str | None = None
    is_verified: bool = True

    def is_password_match(self, plaintext: str) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, plaintext)


@dataclass
class InMemoryUserDirectory(UserDirectory):
    """Thread-safe in-memory directory used by concurrency tests."""

    users: dict[int, InMemoryUser] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(
        self,
        *,
        email: str,
        password: str,
        username: str | None = None,
        phone_number: str | None = None,
        is_verified: bool = True,
    ) -> InMemoryUser:
        with self._lock:
            user = InMemoryUser(
                id=len(self.users) + 1,
                email=email.strip().lower(),
                password_hash=generate_password_hash(password),
                username=username,
                phone_number=phone_number,
                is_verified=is_verified,
            )
            self.users[user.id] = user
            return user

    def remove(self, user_id: int) -> None:
        with self._lock:
            self.users.pop(user_id, None)

    def get_user(self, identity: str) -> InMemoryUser | None:
        needle = identity.strip()
        with self._lock:
            for user in self.users.values():
                if needle.lower() == user.email or needle in (user.username, user.phone_number):
                    return user
        return None

    def get_user_by_id(self, user_id: Any) -> InMemoryUser | None:
        try:
            key = int(user_id)
        except (TypeError, ValueError):
            return None
        with self._lock:
            return self.users.get(key)

    def get_user_by_email(self, email: str) -> InMemoryUser | None:
        needle = email.strip().lower()
        with self._lock:
            return next((u for u in self.users.values() if u.email == needle), None)

    def update_user_by_id(self, user_id: Any, fields: Mapping[str, Any]) -> InMemoryUser:
        user = self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        with self._lock:
            for key, value in fields.items():
                if key == "password":
                    user.password_hash = generate_password_hash(value)
                elif key in {"email", "username", "phone_number"}:
                    setattr(user, key, value)
                else:
                    raise ValueError(f"Unknown or non-updatable field: {key}")
        return user
