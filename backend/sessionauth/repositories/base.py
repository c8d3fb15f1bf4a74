"""Generic repository base for SQLAlchemy 2.x.

Persistence only: lookups by primary key, whitelisted updates, staging of new
rows. Transactions belong to the Unit of Work.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import select
from sqlalchemy.orm import Session

from sessionauth.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Single-aggregate repository keyed by an ``id`` column.

    Subclasses set ``model`` and list their assignable attributes in
    ``updatable_fields``; anything else is refused by :meth:`update`.
    """

    model: type[E]
    updatable_fields: frozenset[str] = frozenset()

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        """Injected session, else the Flask-scoped one."""
        return self._session if self._session is not None else cast(Session, db.session)

    def _by_id(self, entity_id: Any, *, lock: bool = False) -> E | None:
        stmt = select(self.model).where(self.model.id == entity_id)  # type: ignore[attr-defined]
        if lock:
            # FOR UPDATE where the dialect has it; SQLite ignores it
            stmt = stmt.with_for_update()
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def get(self, entity_id: Any) -> E | None:
        return self._by_id(entity_id)

    def get_for_update(self, entity_id: Any) -> E | None:
        """Same as :meth:`get` but row-locked until the transaction ends."""
        return self._by_id(entity_id, lock=True)

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def update(self, instance: E, **fields: Any) -> E:
        """
        Assign whitelisted fields through the model (setters/validators run) and flush.

        :raises ValueError: If a key is not in ``updatable_fields``.
        """
        self._check_updatable(fields)
        for key, value in fields.items():
            setattr(instance, key, value)
        self.session.flush()
        return instance

    def _check_updatable(self, fields: Mapping[str, Any]) -> None:
        unknown = sorted(set(fields) - self.updatable_fields)
        if unknown:
            raise ValueError(f"Unknown or non-updatable fields: {unknown}")
