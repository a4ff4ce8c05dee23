import time
import logging

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text

from .application.use_cases.seed_admin import SeedAdmin
from .config import Settings, settings as default_settings
from .infrastructure.db import build_engine, build_session_factory
from .infrastructure.mailer import SmtpMailer
from .infrastructure.metrics import (
    metrics_endpoint,
    http_requests_total,
    http_request_duration_seconds
)
from .infrastructure.models import Base
from .infrastructure.repositories import AdminRepository
from .infrastructure.security import PasswordHasher, TokenService
from .infrastructure.storage import HandbookStorage
from .interfaces.http.deps import track_visitor
from .interfaces.http.errors import register_error_handlers
from .interfaces.http.routers import admin as admin_router
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import student as student_router

VERSION = "0.1.0"


def configure_logging(level_name: str) -> None:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    if settings.SECRET_KEY == Settings.model_fields["SECRET_KEY"].default:
        logger.warning("default_secret_key_in_use", hint="set SECRET_KEY before deploying")

    app = FastAPI(title="Learning Portal", version=VERSION)

    engine = build_engine(settings.DATABASE_URL)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.tokens = TokenService(
        secret=settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expire_minutes=settings.JWT_EXPIRE_MINUTES,
    )
    app.state.storage = HandbookStorage(settings.UPLOAD_DIR, settings.MAX_UPLOAD_MB * 1024 * 1024)
    app.state.mailer = SmtpMailer(settings)
    app.state.limiter = limiter = Limiter(
        key_func=get_remote_address,
        application_limits=[settings.RATE_LIMIT],
        strategy="fixed-window",
        storage_uri="memory://",
        enabled=settings.RATE_LIMIT_ENABLED,
    )

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    register_error_handlers(app)

    @app.middleware("http")
    async def observe_requests(request: Request, call_next):
        start_time = time.time()
        method = request.method
        path = request.url.path

        response = await call_next(request)

        if response.headers.get("content-type", "").startswith("application/json"):
            response.headers["content-type"] = "application/json; charset=utf-8"

        duration = time.time() - start_time
        status_code = response.status_code
        http_requests_total.labels(method=method, endpoint=path, status=status_code).inc()
        http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)

        logger.info(
            "http_request",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=round(duration * 1000, 2)
        )
        return response

    @app.on_event("startup")
    def on_startup():
        logger.info("Starting learning portal", version=VERSION)
        Base.metadata.create_all(bind=engine)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
        seed_admin(app)

    # rate limits apply to /api/ only
    @app.get("/", dependencies=[Depends(track_visitor)])
    @limiter.exempt
    def index():
        return {"success": True, "message": "Learning portal API", "version": VERSION}

    @app.get("/health")
    @limiter.exempt
    def health():
        return {"status": "ok"}

    @app.get("/metrics")
    @limiter.exempt
    def metrics():
        """Prometheus metrics endpoint"""
        return metrics_endpoint()

    app.include_router(auth_router.router)
    app.include_router(student_router.router)
    app.include_router(admin_router.router)
    return app


def seed_admin(app: FastAPI) -> None:
    settings = app.state.settings
    db = app.state.session_factory()
    try:
        SeedAdmin(AdminRepository(db, app.state.hasher)).execute(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    except Exception as e:
        db.rollback()
        logger.error("admin_seed_failed", error=str(e))
    finally:
        db.close()


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run("learning_portal.main:app", host="0.0.0.0", port=default_settings.PORT)


if __name__ == "__main__":
    run()
