"""User use cases backed by the Unit of Work."""

from __future__ import annotations

from collections.abc import Callable

from users_api.core.exceptions import ResourceNotFoundError
from users_api.infra.unit_of_work import UnitOfWork
from users_api.schemas.user import UserCreate, UserRead, UserUpdate

UnitOfWorkFactory = Callable[[], UnitOfWork]


def _user_not_found(user_id: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(f"User with ID {user_id} not found", context={"user_id": user_id})


class UsersService:
    """Thin pass-through to the repository; errors surface as domain errors.

    A missing user reads the same to clients whichever operation hit it.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def create(self, payload: UserCreate) -> UserRead:
        async with self._uow_factory() as uow:
            user = await uow.users.create(email=payload.email, name=payload.name)
            return UserRead.model_validate(user)

    async def list(self) -> list[UserRead]:
        async with self._uow_factory() as uow:
            return [UserRead.model_validate(u) for u in await uow.users.list()]

    async def get(self, user_id: str) -> UserRead:
        async with self._uow_factory() as uow:
            user = await uow.users.get(user_id)
            if user is None:
                raise _user_not_found(user_id)
            return UserRead.model_validate(user)

    async def update(self, user_id: str, payload: UserUpdate) -> UserRead:
        values = payload.model_dump(exclude_unset=True)
        async with self._uow_factory() as uow:
            try:
                user = await uow.users.update(user_id, values)
            except ResourceNotFoundError as exc:
                raise _user_not_found(user_id) from exc
            return UserRead.model_validate(user)

    async def remove(self, user_id: str) -> UserRead:
        async with self._uow_factory() as uow:
            try:
                user = await uow.users.delete(user_id)
            except ResourceNotFoundError as exc:
                raise _user_not_found(user_id) from exc
            return UserRead.model_validate(user)
