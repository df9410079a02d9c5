"""SQLAlchemy implementation of the user repository."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from users_api.infra.db_errors import translates_database_errors
from users_api.models.user import User
from users_api.repositories.interfaces import UserRepository


class SqlAlchemyUserRepository(UserRepository):
    """Default SQLAlchemy-backed implementation."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @translates_database_errors
    async def create(self, *, email: str, name: str | None) -> User:
        user = User(email=email, name=name)
        self._session.add(user)
        # flush so unique violations surface here, not at commit
        await self._session.flush()
        await self._session.refresh(user)
        return user

    @translates_database_errors
    async def list(self) -> list[User]:
        stmt = select(User).order_by(User.created_at.asc(), User.id.asc())
        return list((await self._session.scalars(stmt)).all())

    @translates_database_errors
    async def get(self, user_id: str) -> User | None:
        return await self._session.get(User, user_id)

    @translates_database_errors
    async def update(self, user_id: str, values: Mapping[str, Any]) -> User:
        # one() raises NoResultFound -> ResourceNotFoundError
        user = (await self._session.scalars(select(User).where(User.id == user_id))).one()
        for key, value in values.items():
            setattr(user, key, value)
        await self._session.flush()
        await self._session.refresh(user)
        return user

    @translates_database_errors
    async def delete(self, user_id: str) -> User:
        user = (await self._session.scalars(select(User).where(User.id == user_id))).one()
        await self._session.delete(user)
        await self._session.flush()
        return user
