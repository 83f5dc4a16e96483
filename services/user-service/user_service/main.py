"""FastAPI application wiring for the user service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.errors import setup_exception_handlers
from .api.routes import router as api_router
from .config import Settings, get_settings
from .domain.authentication import AuthenticationService
from .domain.contracts import AccountStore
from .domain.service import AccountService
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.tokens import TokenService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def install_services(app: FastAPI, repository: AccountStore, settings: Settings) -> None:
    """Build the core services around a store and attach them to the app state."""
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService.from_settings(settings)
    app.state.token_service = tokens
    app.state.auth_service = AuthenticationService(repository, hasher, tokens)
    app.state.account_service = AccountService(repository, hasher)


def bootstrap_admin(service: AuthenticationService, settings: Settings) -> None:
    """Create the configured administrator account on first start."""
    if not settings.admin_email or not settings.admin_password:
        return
    created = service.ensure_admin(settings.admin_email, settings.admin_password)
    if created is not None:
        logger.info("bootstrap administrator %s created", created.email)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    app.state.pool = pool
    repository = AccountRepository(pool)
    if settings.db_auto_migrate:
        repository.ensure_schema()
    install_services(app, repository, settings)
    bootstrap_admin(app.state.auth_service, settings)
    logger.info("%s %s ready", settings.app_name, settings.version)
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

setup_exception_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(api_router)


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_level=settings.log_level.lower())
