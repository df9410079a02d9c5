from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from users_api.infra.db_errors import translate_database_errors


class HealthService:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def ok(self) -> dict:
        with translate_database_errors():
            await self._session.execute(text("SELECT 1"))
        return {"ok": True}
