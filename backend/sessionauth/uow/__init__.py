"""Unit of Work abstractions and concrete implementations.

Re-exports the SQLAlchemy-backed unit of work used by the user directory
adapter, alongside the abstract contract.
"""

from .base import UnitOfWork
from .sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = [
    "UnitOfWork",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyReadOnlyUnitOfWork",
]
