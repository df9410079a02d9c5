# tests/conftest.py
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import exc as sa_exc

# Configure the environment before the app module reads settings on import
os.environ.setdefault("APP_ENV", "test")
os.environ["TESTING"] = "1"

from users_api.api.deps import get_users_service  # noqa: E402
from users_api.core.config import Settings  # noqa: E402
from users_api.infra.db_errors import translates_database_errors  # noqa: E402
from users_api.main import create_app  # noqa: E402
from users_api.middleware.rate_limit import reset_rate_limits  # noqa: E402
from users_api.services.users import UsersService  # noqa: E402


class FakePgError(Exception):
    """Stands in for a driver exception carrying PostgreSQL diagnostics."""

    def __init__(self, message, *, sqlstate=None, detail=None, table_name=None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.detail = detail
        self.table_name = table_name


@dataclass
class FakeUser:
    id: str
    email: str
    name: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryUserRepository:
    """Behaves like the SQLAlchemy repository, engine errors included."""

    def __init__(self, rows: dict[str, FakeUser]):
        self._rows = rows

    @translates_database_errors
    async def create(self, *, email, name):
        if any(u.email == email for u in self._rows.values()):
            orig = FakePgError(
                'duplicate key value violates unique constraint "ix_users_email"',
                sqlstate="23505",
                detail=f"Key (email)=({email}) already exists.",
                table_name="users",
            )
            raise sa_exc.IntegrityError("INSERT INTO users ...", {}, orig)
        user = FakeUser(id=f"u{len(self._rows) + 1}", email=email, name=name)
        self._rows[user.id] = user
        return user

    @translates_database_errors
    async def list(self):
        return list(self._rows.values())

    @translates_database_errors
    async def get(self, user_id):
        return self._rows.get(user_id)

    @translates_database_errors
    async def update(self, user_id, values):
        user = self._one(user_id)
        for key, value in values.items():
            setattr(user, key, value)
        user.updated_at = datetime.now(UTC)
        return user

    @translates_database_errors
    async def delete(self, user_id):
        return self._rows.pop(self._one(user_id).id)

    def _one(self, user_id):
        if user_id not in self._rows:
            raise sa_exc.NoResultFound("No row was found when one was required")
        return self._rows[user_id]


class InMemoryUnitOfWork:
    def __init__(self, rows):
        self.users = InMemoryUserRepository(rows)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def commit(self) -> None:
        return None

    async def rollback(self) -> None:
        return None


@pytest.fixture
def user_rows():
    return {}


@pytest.fixture
def settings():
    return Settings(app_env="test", testing=True, rate_limit_enabled=False)


@pytest.fixture
def make_client(user_rows):
    """Build an AsyncClient for an app created with the given settings."""

    def _make(settings: Settings):
        app = create_app(settings)
        app.dependency_overrides[get_users_service] = lambda: UsersService(
            lambda: InMemoryUnitOfWork(user_rows)
        )
        return app, AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


@pytest_asyncio.fixture
async def app_client(make_client, settings):
    _, client = make_client(settings)
    async with client as ac:
        yield ac


@pytest.fixture(autouse=True)
def _log_dir(tmp_path, monkeypatch):
    # production apps write rotating log files; keep them out of the checkout
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
