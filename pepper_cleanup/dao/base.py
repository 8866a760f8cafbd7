"""Shared plumbing for data access objects."""

from abc import ABC
from contextlib import AbstractAsyncContextManager
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from pepper_cleanup.database import Database

# Pydantic domain model a DAO returns
T = TypeVar("T")


class BaseDAO(ABC, Generic[T]):
    """Base class for DAOs over the case store.

    Subclasses return pydantic domain models (type T); SQLAlchemy rows
    stay inside the DAO.
    """

    def __init__(self, database: Database):
        self._db = database

    @property
    def db(self) -> Database:
        return self._db

    def _session(self) -> AbstractAsyncContextManager[AsyncSession]:
        """One transaction per DAO call."""
        return self._db.session()
