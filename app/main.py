"""
TrialRescue Backend API
Event ingestion, inactivity nudges and billing for the TrialRescue dashboard.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config

# Render captures stdout; one handler is enough
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True  # Override any existing configuration
)

logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Run Alembic migrations on startup. Uses alembic.ini and DATABASE_URL.
    Fails startup if migrations fail, so the DB is never left out of sync."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, skipping Alembic migrations")
        return
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        logger.error(
            "DATABASE_URL is not set. Alembic migrations will not run. "
            "Set DATABASE_URL to your Supabase connection string."
        )
        return
    try:
        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("sqlalchemy.url", normalize_database_url(db_url))
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic migrations completed successfully")
    except Exception as e:
        logger.exception("Alembic migration failed: %s", e)
        raise  # Fail startup so DB is not left out of sync; fix migration or env and redeploy


from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.api.routes import events, cron, webhooks, projects, settings, dodo as dodo_router, dashboard
from app.db.session import engine, normalize_database_url
from app.db.base import Base
# Import all models to ensure they're registered with Base
from app.models import Project, TrialSettings, ProjectUser, EmailLog, Event  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, then run Alembic migrations on every server restart."""
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
    except Exception:
        logger.exception("Error creating tables")
        raise
    run_migrations()
    yield


app = FastAPI(title="TrialRescue", lifespan=lifespan)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Every error leaves as {"error": "..."}."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed payloads are a 400, not FastAPI's default 422."""
    errors = exc.errors()
    message = "Invalid payload"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)
    return JSONResponse(status_code=400, content={"error": message})


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Server error"})


app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Ingestion is called from tenants' own apps, so any origin may POST events.
# Dashboard auth is a bearer token, not a cookie, so credentials are not needed.
_cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

# Register routers
app.include_router(events.router, prefix="/api", tags=["Events"])
app.include_router(cron.router, prefix="/api", tags=["Cron"])
app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(projects.router, prefix="/api", tags=["Projects"])
app.include_router(settings.router, prefix="/api", tags=["Settings"])
app.include_router(dodo_router.router, prefix="/api", tags=["Billing"])
app.include_router(dashboard.router, prefix="/api", tags=["Dashboard"])


@app.get("/health")
def health():
    return {"status": "ok"}
