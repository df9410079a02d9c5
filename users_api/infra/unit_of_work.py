"""Unit of Work abstraction used by the service layer."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from users_api.infra.db_errors import translate_database_errors
from users_api.repositories.interfaces import UserRepository
from users_api.repositories.sqlalchemy import SqlAlchemyUserRepository


class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """Defines the repository boundary exposed to services."""

    users: UserRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Unit of Work backed by SQLAlchemy async sessions.

    Commits on clean exit and rolls back on error. Commit failures are
    translated into domain errors like any other data-access failure.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self.users: UserRepository

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        session = self._session_factory()
        self._session = session
        self.users = SqlAlchemyUserRepository(session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session is None:
            return
        try:
            if exc_type:
                await self._session.rollback()
            else:
                await self.commit()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        if self._session is not None:
            with translate_database_errors():
                await self._session.commit()

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork session is not initialized. Use within context manager.")
        return self._session
