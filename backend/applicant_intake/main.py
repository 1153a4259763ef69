"""FastAPI application factory with middleware, routers, and lifespan."""

import logging
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from . import __version__
from .applicants.routes import router as resume_router
from .applicants.schemas import FieldError, SubmissionErrors
from .config import Settings, setup_logging
from .database import Base, create_db_engine, create_session_factory, get_db
from .pages import router as pages_router
from .rate_limit import create_limiter
from .storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

# Template path (frontend/ is at project root, sibling of backend/)
_BASE_DIR = Path(__file__).parent.parent.parent
_TEMPLATE_DIR = _BASE_DIR / "frontend" / "templates"
_ALEMBIC_DIR = Path(__file__).parent.parent / "alembic"


def _run_migrations(engine: Engine) -> None:
    """Run Alembic migrations (upgrade head) on the application's engine."""
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(_ALEMBIC_DIR))
    with engine.begin() as connection:
        alembic_cfg.attributes["connection"] = connection
        command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle.

    Any failure here aborts startup: the server never accepts requests
    without a reachable database and a writable upload directory.
    """
    settings: Settings = app.state.settings
    app.state.started_at = time.time()

    owns_engine = app.state.engine is None
    if owns_engine:
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL missing. Configure .env file")
        app.state.engine = create_db_engine(settings)
        app.state.session_factory = create_session_factory(app.state.engine)
    engine: Engine = app.state.engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database connection error")
        raise
    logger.info("Database connected (%s)", engine.url.get_backend_name())

    if settings.auto_migrate:
        _run_migrations(engine)
    else:
        Base.metadata.create_all(bind=engine)

    app.state.blob_store.ensure_root()
    logger.info("Storing uploads in %s", app.state.blob_store.root.resolve())

    yield

    if owns_engine:
        engine.dispose()


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    # Window length of the limit that was hit, e.g. 60 for "10/minute".
    retry_after = exc.limit.limit.get_expiry() if exc.limit is not None else 60
    return JSONResponse(
        {"error": "Too many requests", "detail": str(exc.detail), "retry_after": retry_after},
        status_code=429,
        headers={"Retry-After": str(retry_after)},
    )


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``engine`` lets callers (tests, embedding apps) supply the database; when
    omitted the lifespan builds one from ``settings.database_url``.
    """
    settings = settings or Settings()
    if settings.configure_logging:
        setup_logging(settings)

    app = FastAPI(
        title="Applicant Intake",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine) if engine is not None else None
    app.state.blob_store = BlobStore(settings.upload_dir)

    # --- Exception handlers ---
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ())]
            errors.append(
                FieldError(
                    value=str(err.get("input", "")),
                    msg=err.get("msg", "Invalid value"),
                    path=loc[1] if len(loc) > 1 else "",
                    location=loc[0] if loc else "body",
                )
            )
        return JSONResponse(SubmissionErrors(errors=errors).model_dump(), status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return PlainTextResponse("Internal Server Error", status_code=500)

    # --- Middleware stack (LIFO: last added = outermost) ---

    app.state.limiter = create_limiter(settings)
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    if settings.trusted_hosts_list != ["*"]:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.trusted_hosts_list,
        )

    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response

    # --- Templates & uploaded files ---
    app.state.templates = Jinja2Templates(directory=str(_TEMPLATE_DIR))
    # The upload directory is created by the lifespan, after mounting.
    app.mount(
        settings.uploads_mount,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    app.include_router(pages_router)
    app.include_router(resume_router)

    # --- Health check ---
    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        db_status = "ok"
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError:
            db_status = "unreachable"

        status = "ok" if db_status == "ok" else "degraded"
        started_at = getattr(app.state, "started_at", 0.0)
        uptime = round(time.time() - started_at, 1) if started_at else 0.0

        return {
            "status": status,
            "db": db_status,
            "version": __version__,
            "uptime_seconds": uptime,
        }

    return app


def run() -> None:
    """Console entry point: read settings from the environment and serve."""
    settings = Settings()
    app = create_app(settings)
    if not settings.database_url:
        logger.error("DATABASE_URL is not defined in the environment variables")
        sys.exit(1)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
