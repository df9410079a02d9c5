import pytest

from users_api.core.exceptions import ConflictError, ResourceNotFoundError
from users_api.services.error_logger import ErrorLogger, RequestContext, determine_log_level
from users_api.services.exception_mapper import ExceptionMapper


class RecordingLogger:
    def __init__(self):
        self.calls = []

    def _record(self, level):
        def log(event, **kw):
            self.calls.append((level, event, kw))

        return log

    def __getattr__(self, level):
        if level in {"debug", "info", "warning", "error"}:
            return self._record(level)
        raise AttributeError(level)


class ExplodingLogger:
    def warning(self, *args, **kwargs):
        raise RuntimeError("logging backend down")

    error = warning


def _ctx(**overrides):
    base = dict(
        method="GET",
        path="/users/1",
        headers={"authorization": "Bearer t", "cookie": "sid=1", "accept": "application/json"},
        query={"token": "abc", "page": "2"},
        correlation_id="cid-9",
    )
    base.update(overrides)
    return RequestContext(**base)


def _log(exc, *, is_production=False, request=None):
    logger = RecordingLogger()
    response = ExceptionMapper(is_production=is_production).map_exception(exc, "cid-9")
    ErrorLogger(is_production=is_production, logger=logger).log_exception(
        exc, response, request or _ctx()
    )
    assert len(logger.calls) == 1
    return logger.calls[0]


@pytest.mark.parametrize(
    "status,level", [(503, "error"), (500, "error"), (404, "warning"), (302, "info"), (200, "debug")]
)
def test_determine_log_level(status, level):
    assert determine_log_level(status) == level


def test_client_error_logged_as_warning():
    level, event, kw = _log(ResourceNotFoundError("User not found"))
    assert level == "warning"
    assert event == "request_failed"
    assert kw["message"] == "Warning: User not found [404]"
    assert kw["status_code"] == 404
    assert kw["error_code"] == "E04001"
    assert kw["correlation_id"] == "cid-9"
    assert kw["path"] == "/users/1"


def test_server_error_logged_as_error_with_stack():
    level, _, kw = _log(RuntimeError("boom"))
    assert level == "error"
    assert kw["message"] == "Error: An unexpected error occurred [500]"
    assert kw["error"]["name"] == "RuntimeError"
    assert "stack" in kw["error"]


def test_production_omits_error_details():
    _, _, kw = _log(RuntimeError("boom"), is_production=True)
    assert "error" not in kw


def test_headers_and_query_are_sanitized():
    _, _, kw = _log(ResourceNotFoundError())
    assert kw["headers"] == {
        "authorization": "[REDACTED]",
        "cookie": "[REDACTED]",
        "accept": "application/json",
    }
    assert kw["query"] == {"token": "[REDACTED]", "page": "2"}


def test_body_only_for_mutating_methods():
    body = {"email": "a@b.com", "password": "x", "name": "Ann"}
    _, _, kw = _log(ConflictError(), request=_ctx(method="POST", body=body))
    assert kw["body"] == {"email": "[REDACTED]", "password": "[REDACTED]", "name": "Ann"}

    _, _, kw = _log(ConflictError(), request=_ctx(method="GET", body=body))
    assert "body" not in kw


def test_domain_context_is_logged_sanitized():
    exc = ConflictError("dup", context={"fields": "email", "secret": "s"})
    _, _, kw = _log(exc, is_production=True)
    assert kw["error_context"] == {"fields": "email", "secret": "[REDACTED]"}


def test_logging_failures_are_swallowed():
    response = ExceptionMapper(is_production=False).map_exception(RuntimeError("x"))
    ErrorLogger(is_production=False, logger=ExplodingLogger()).log_exception(
        RuntimeError("x"), response, _ctx()
    )
