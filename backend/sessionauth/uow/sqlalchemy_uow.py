"""
SQLAlchemy units of work over the Flask-scoped session.
"""

from __future__ import annotations

from contextlib import suppress

from sqlalchemy import event
from sqlalchemy.orm import Session

from sessionauth.core.extensions import db
from sessionauth.repositories import UserRepository
from sessionauth.uow.base import UnitOfWork


class _ScopedSessionUnit(UnitOfWork):
    """Bind the repositories to ``db.session`` as it is at construction time."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session if session is not None else db.session
        self.users = UserRepository(session=self.session)

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyUnitOfWork(_ScopedSessionUnit):
    """
    Read-write unit: commits on a clean exit, rolls back when the block raises.

    A failed commit is rolled back before the error propagates.
    """

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    def commit(self) -> None:
        self.session.commit()


class SQLAlchemyReadOnlyUnitOfWork(_ScopedSessionUnit):
    """
    Read-only unit for directory lookups.

    While the block runs, any flush carrying new, dirty or deleted objects is
    refused. Exit neither commits nor rolls back, so objects loaded here stay
    usable by the caller.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session)
        self._guarded = False

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        event.listen(self.session, "before_flush", self._refuse_writes)
        self._guarded = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._guarded:
            return
        with suppress(Exception):
            event.remove(self.session, "before_flush", self._refuse_writes)
        self._guarded = False

    @staticmethod
    def _refuse_writes(session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError(
                "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
            )

    def commit(self) -> None:
        """
        :raises RuntimeError: always; read-only units never commit.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")
