import socket

import pytest
from sqlalchemy import exc as sa_exc

from users_api.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ResourceNotFoundError,
    ValidationError,
)
from users_api.infra.db_errors import (
    sqlstate_of,
    translate_database_errors,
    translate_db_error,
    translates_database_errors,
)


class FakePgError(Exception):
    def __init__(self, message, *, sqlstate=None, detail=None, table_name=None, constraint_name=None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.detail = detail
        self.table_name = table_name
        self.constraint_name = constraint_name


def _integrity(sqlstate, detail=None, message="constraint failed", **kw):
    orig = FakePgError(message, sqlstate=sqlstate, detail=detail, **kw)
    return sa_exc.IntegrityError("INSERT INTO users ...", {}, orig)


def test_unique_violation_becomes_conflict():
    exc = _integrity(
        "23505",
        detail="Key (email)=(a@b.com) already exists.",
        message='duplicate key value violates unique constraint "ix_users_email"',
        table_name="users",
        constraint_name="ix_users_email",
    )
    out = translate_db_error(exc)
    assert isinstance(out, ConflictError)
    assert out.status == 409
    assert out.error_code == "E04003"
    assert out.message == "Unique constraint violation on: email"
    assert out.context["fields"] == "email"
    assert out.context["db_code"] == "23505"
    assert out.context["table"] == "users"
    assert out.context["constraint"] == "ix_users_email"


def test_unique_violation_on_composite_key_and_unknown_field():
    composite = translate_db_error(_integrity("23505", detail="Key (tenant_id, email)=(1, x) exists."))
    assert composite.message == "Unique constraint violation on: tenant_id, email"
    unknown = translate_db_error(_integrity("23505"))
    assert unknown.message == "Unique constraint violation on: unknown field"


def test_asyncpg_style_wrapping():
    # the adapter exception carries the driver error on __cause__
    driver = FakePgError("dup", sqlstate="23505", detail="Key (email)=(a@b.com) already exists.")
    adapter = Exception(
        "<class 'asyncpg.exceptions.UniqueViolationError'>: duplicate key value violates unique"
    )
    adapter.__cause__ = driver
    exc = sa_exc.IntegrityError("INSERT", {}, adapter)
    assert sqlstate_of(exc) == "23505"
    out = translate_db_error(exc)
    assert isinstance(out, ConflictError)
    assert out.context["message"] == "duplicate key value violates unique"


def test_foreign_key_violation():
    out = translate_db_error(_integrity("23503"))
    assert isinstance(out, ConflictError)
    assert out.message == "Foreign key constraint failed"


@pytest.mark.parametrize("code", ["42601", "23502", "22P02", "42703", "42P01"])
def test_invalid_operation_codes(code):
    exc = sa_exc.DataError("SELECT", {}, FakePgError("invalid input syntax", sqlstate=code))
    out = translate_db_error(exc)
    assert isinstance(out, ValidationError)
    assert out.status == 400
    assert out.message == "Invalid database operation"
    assert out.errors == {"database": ["Database error: invalid input syntax"]}


def test_unhandled_code_is_external_service_error():
    exc = sa_exc.InternalError("SELECT", {}, FakePgError("internal", sqlstate="XX000"))
    out = translate_db_error(exc)
    assert isinstance(out, ExternalServiceError)
    assert out.status == 503
    assert out.message == "Database operation failed"


@pytest.mark.parametrize(
    "exc",
    [
        sa_exc.OperationalError("SELECT 1", {}, FakePgError("connection refused")),
        sa_exc.OperationalError("SELECT 1", {}, FakePgError("gone", sqlstate="08006")),
        sa_exc.OperationalError("SELECT 1", {}, FakePgError("shutdown", sqlstate="57P01")),
        sa_exc.DisconnectionError("lost"),
        ConnectionRefusedError("refused"),
        socket.gaierror(-2, "Name or service not known"),
    ],
)
def test_connection_failures(exc):
    out = translate_db_error(exc)
    assert isinstance(out, ExternalServiceError)
    assert out.message == "Database connection failed"
    assert out.context["db_error_type"] == "CONNECTION_FAILURE"


def test_no_result_found():
    out = translate_db_error(sa_exc.NoResultFound("No row was found when one was required"))
    assert isinstance(out, ResourceNotFoundError)
    assert out.message == "Record not found"


def test_statement_error_is_invalid_data():
    exc = sa_exc.StatementError("bad param", "SELECT", {}, ValueError("x"))
    out = translate_db_error(exc)
    assert isinstance(out, ValidationError)
    assert out.errors == {"database": ["Invalid data provided"]}


def test_unrecognized_errors_pass_through():
    programming = sa_exc.ProgrammingError("SELECT", {}, FakePgError("weird"))
    assert translate_db_error(programming) is programming
    value_error = ValueError("not a db error")
    assert translate_db_error(value_error) is value_error
    domain = ConflictError()
    assert translate_db_error(domain) is domain


def test_context_manager_chains_original():
    original = _integrity("23505", detail="Key (email)=(a@b.com) already exists.")
    with pytest.raises(ConflictError) as info:
        with translate_database_errors():
            raise original
    assert info.value.__cause__ is original


def test_context_manager_leaves_other_errors_alone():
    with pytest.raises(KeyError):
        with translate_database_errors():
            raise KeyError("k")
    unknown = sa_exc.ProgrammingError("SELECT", {}, FakePgError("weird"))
    with pytest.raises(sa_exc.ProgrammingError):
        with translate_database_errors():
            raise unknown


def test_non_network_os_errors_pass_through():
    missing = FileNotFoundError("seed.json")
    assert translate_db_error(missing) is missing
    with pytest.raises(FileNotFoundError):
        with translate_database_errors():
            raise missing
    with pytest.raises(PermissionError):
        with translate_database_errors():
            raise PermissionError("denied")


@pytest.mark.asyncio
async def test_decorator_translates_coroutines():
    @translates_database_errors
    async def fetch():
        raise sa_exc.NoResultFound("none")

    with pytest.raises(ResourceNotFoundError):
        await fetch()
