"""
Unit of Work contract used by the SQLAlchemy user directory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sessionauth.repositories import UserRepository


class UnitOfWork(ABC):
    """
    Transactional scope around a single directory call.

    Repositories reached through the unit share one session, so a lookup and
    the password update that follows it see the same rows. Concrete units
    decide what happens on exit (commit, or leave the transaction alone).
    """

    users: UserRepository

    def __enter__(self) -> UnitOfWork:
        return self

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
