"""API dependency helpers and service providers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel

from users_api import db
from users_api.core.exceptions import ValidationError
from users_api.core.validation import ValidationPipe
from users_api.infra.unit_of_work import SqlAlchemyUnitOfWork
from users_api.services.users import UsersService

__all__ = [
    "get_users_service",
    "get_validation_pipe",
    "validated_body",
]

M = TypeVar("M", bound=BaseModel)

_default_pipe = ValidationPipe()


def _uow_factory() -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(db.SessionLocal)


def get_users_service() -> UsersService:
    return UsersService(_uow_factory)


def get_validation_pipe(request: Request) -> ValidationPipe:
    return getattr(request.app.state, "validation_pipe", _default_pipe)


def validated_body(model: type[M]) -> Callable[..., Awaitable[M]]:
    """Build a dependency that parses the JSON body and runs it through the pipe.

    The raw payload is kept on ``request.state.body`` so the error logger can
    include it (sanitized) if the request later fails.
    """

    async def _dependency(
        request: Request, pipe: ValidationPipe = Depends(get_validation_pipe)
    ) -> M:
        try:
            raw: Any = await request.json()
        except ValueError:
            raise ValidationError({"body": ["Request body must be valid JSON"]}) from None
        request.state.body = raw
        value = pipe.transform(raw, model)
        if not isinstance(value, model):
            raise ValidationError({"body": ["Request body must be a JSON object"]})
        return value

    return _dependency
