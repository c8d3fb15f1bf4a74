"""Unit tests for the read-only Unit of Work."""

import pytest
from sessionauth.models.user import User
from sessionauth.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from tests.factories.user import UserFactory


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            user = UserFactory.build()  # not persisted
            uow.session.add(user)
            uow.session.flush()
        session.expunge_all()

    def test_allows_reads(self, session):
        UserFactory()

        with ROuow() as uow:
            assert uow.session.query(User).count() >= 1

    def test_disallows_commit(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_guard_is_removed_on_exit(self, session):
        with ROuow():
            pass

        session.add(UserFactory.build())
        session.flush()
