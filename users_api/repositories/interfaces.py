"""Repository abstractions for the service layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from users_api.models.user import User


class UserRepository(Protocol):
    """Repository boundary for the users resource.

    Implementations raise domain errors only; engine failures are translated
    before they leave the repository.
    """

    async def create(self, *, email: str, name: str | None) -> User: ...

    async def list(self) -> list[User]: ...

    async def get(self, user_id: str) -> User | None: ...

    async def update(self, user_id: str, values: Mapping[str, Any]) -> User: ...

    async def delete(self, user_id: str) -> User: ...
