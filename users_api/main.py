import sentry_sdk
import structlog
from fastapi import FastAPI
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.cors import CORSMiddleware

from users_api.api import errors as api_errors
from users_api.api.routers.healthz import router as healthz_router
from users_api.api.routers.readyz import router as readyz_router
from users_api.api.routers.users import router as users_router
from users_api.core.config import Settings, get_settings
from users_api.core.validation import ValidationPipe
from users_api.logging import setup_logging
from users_api.middleware.correlation_id import correlation_id_middleware
from users_api.middleware.rate_limit import rate_limit_middleware
from users_api.middleware.request_limits import (
    request_size_limit_middleware,
    request_timeout_middleware,
)
from users_api.middleware.security_headers import security_headers_middleware
from users_api.services.error_logger import ErrorLogger
from users_api.services.exception_mapper import ExceptionMapper


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    # Initialize structured logging first
    setup_logging(settings, log_file=settings.log_file)

    # Initialize Sentry (no-op if DSN is missing)
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.app_env,
            release=settings.release,
            integrations=[StarletteIntegration()],
            traces_sample_rate=settings.sentry_traces_rate,
            send_default_pii=False,
        )

    app = FastAPI(title="Users API")
    app.state.settings = settings
    app.state.validation_pipe = ValidationPipe()

    # Later registrations wrap earlier ones: guards run inside the exception
    # boundary, correlation id runs outermost.
    app.middleware("http")(request_timeout_middleware)
    app.middleware("http")(request_size_limit_middleware)
    app.middleware("http")(rate_limit_middleware)

    # The production flag is read once here and injected
    boundary = api_errors.ExceptionBoundary(
        ExceptionMapper(is_production=settings.is_production),
        ErrorLogger(is_production=settings.is_production),
    )
    api_errors.install(app, boundary)

    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(correlation_id_middleware)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD"],
            allow_headers=["*"],
            expose_headers=["X-Correlation-ID"],
        )

    app.include_router(users_router)
    app.include_router(healthz_router)
    app.include_router(readyz_router)

    # Debug-only endpoint to raise an error (disabled in prod)
    if not settings.is_production:

        @app.get("/debug/error", include_in_schema=False)
        def debug_error():
            raise RuntimeError("intentional error for error-handling checks")

    structlog.get_logger(__name__).info("app_startup", env=settings.app_env)
    return app


app = create_app()
