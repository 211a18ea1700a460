import logging
import os
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import payments
from app.config import settings
from app.db_init import init_db, seed_admin_user
from app.models import get_db
from app.services.errors import InternalError, ReconciliationError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")

RAILWAY_ENV_VARS = (
    "RAILWAY_PROJECT_ID",
    "RAILWAY_SERVICE_ID",
    "RAILWAY_ENVIRONMENT",
    "RAILWAY_ENVIRONMENT_NAME",
    "RAILWAY_PUBLIC_DOMAIN",
)


def _is_localhost(host: str | None) -> bool:
    return host in {"localhost", "127.0.0.1"}


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def _is_railway_runtime() -> bool:
    return any(os.getenv(env_name) for env_name in RAILWAY_ENV_VARS)


def _split_origins(cors_raw: str) -> list[str]:
    return [origin.strip() for origin in cors_raw.split(",") if origin.strip()]


def _validate_database_url_for_runtime(database_url: str) -> None:
    parsed = urlparse(database_url)
    scheme = parsed.scheme
    host = parsed.hostname
    db_name = parsed.path.lstrip("/")

    if not scheme:
        raise RuntimeError("DATABASE_URL is missing URL scheme (expected postgresql:// or postgresql+psycopg://).")
    if scheme == "sqlite":
        return
    if scheme not in {"postgres", "postgresql", "postgresql+psycopg"}:
        raise RuntimeError(
            f"DATABASE_URL has unsupported scheme '{scheme}' "
            "(expected postgresql:// or postgresql+psycopg://)."
        )
    if not host:
        raise RuntimeError("DATABASE_URL is missing host.")
    if not db_name:
        raise RuntimeError("DATABASE_URL is missing database name in path.")
    if _is_railway_runtime() and _is_localhost(host):
        raise RuntimeError(
            "Invalid DATABASE_URL for Railway runtime: host is localhost/127.0.0.1 "
            f"(host={host}, database={db_name}). Use the Railway Postgres reference variable."
        )


def _db_url_diagnostics(database_url: str) -> str:
    parsed = urlparse(database_url)
    host = parsed.hostname or "<missing>"
    db_name = parsed.path.lstrip("/") or "<missing>"
    scheme = parsed.scheme or "<missing>"

    tips = []
    if _is_localhost(host):
        tips.append("Host points to localhost; in Railway use Postgres service reference in DATABASE_URL.")
    if scheme != "sqlite" and "sslmode" not in parsed.query:
        tips.append("No sslmode in URL query; managed Postgres often requires sslmode=require.")
    if not tips:
        tips.append("URL structure looks valid; check network access and credentials.")

    return f"scheme={scheme}, host={host}, database={db_name}; tips={' | '.join(tips)}"


def _validate_required_env_for_runtime() -> None:
    errors = []
    is_railway = _is_railway_runtime()

    jwt_secret = settings.JWT_SECRET.strip()
    if not jwt_secret:
        errors.append("JWT_SECRET is required.")
    elif is_railway and jwt_secret == "change-me-in-production":
        errors.append("JWT_SECRET uses insecure default value in Railway runtime.")

    if not _is_http_url(settings.FRONTEND_URL):
        errors.append("FRONTEND_URL must be an absolute http(s) URL.")

    origins = _split_origins(settings.CORS_ORIGINS)
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one comma-separated origin URL.")
    else:
        invalid_origins = [origin for origin in origins if not _is_http_url(origin)]
        if invalid_origins:
            errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")

    if settings.NOTIFICATIONS_ENABLED and not settings.SMTP_HOST:
        logger.warning("NOTIFICATIONS_ENABLED is on but SMTP_HOST is not set; payment emails will fail.")

    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    database_url = "<unavailable>"
    logger.info("Application startup initiated.")
    try:
        database_url = settings.DATABASE_URL
        _validate_database_url_for_runtime(database_url)
        _validate_required_env_for_runtime()
        init_db()
    except Exception as exc:
        diagnostics = (
            _db_url_diagnostics(database_url)
            if database_url != "<unavailable>"
            else "DATABASE_URL unavailable (missing or unreadable)."
        )
        logger.exception("Startup failed: %s. DATABASE_URL diagnostics: %s", str(exc), diagnostics)
        raise
    db = next(get_db())
    try:
        seed_admin_user(db)
    finally:
        db.close()
    logger.info("Application startup completed successfully.")
    yield


app = FastAPI(
    title="Poly Spark Payments API",
    description=(
        "Mobile-money payment reconciliation for the storefront: customers submit transaction codes, "
        "administrators confirm or reject them. Send a bearer JWT for every `/api/payments` route."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Payments", "description": "Submit, verify and report on mobile-money payments."},
    ],
)


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    if isinstance(exc, InternalError):
        logger.error("Internal failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Invalid request", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Server error"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=_split_origins(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])


@app.get("/")
def root():
    return {"success": True, "status": "ok", "service": "Poly Spark Payments API"}


@app.get("/health")
def health():
    return {"status": "ok"}
