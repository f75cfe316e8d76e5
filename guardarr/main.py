"""FastAPI application entry point."""
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url

from guardarr.config import settings
from guardarr.database import Base, SessionLocal, engine

# Import routers
from guardarr.routers import activity, enforcer, restrictions, rules, users
from guardarr.routers import settings as settings_router

# Import all models so Base.metadata knows about them
from guardarr.models.user import User  # noqa: F401
from guardarr.models.rule import Rule, UserRule  # noqa: F401
from guardarr.models.bypass import TemporaryBypass  # noqa: F401
from guardarr.models.applied_restriction import AppliedRestriction  # noqa: F401
from guardarr.models.activity import ActivityLog  # noqa: F401
from guardarr.models.setting import Setting  # noqa: F401

from guardarr.services.applied_state import AppliedStateTracker, SqlAppliedStateBackend
from guardarr.services.enforcer import EnforcementScheduler, Enforcer
from guardarr.services.plex_client import PlexClient

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Guardarr",
    description="Time-windowed parental controls for Plex shared users",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(rules.router, prefix="/api/rules", tags=["Rules"])
app.include_router(enforcer.router, prefix="/api/enforcer", tags=["Enforcer"])
app.include_router(restrictions.router, prefix="/api/active-restrictions", tags=["Restrictions"])
app.include_router(activity.router, prefix="/api/activity", tags=["Activity"])
app.include_router(settings_router.router, prefix="/api/settings", tags=["Settings"])


def build_enforcer() -> Enforcer:
    tracker = AppliedStateTracker(SqlAppliedStateBackend(SessionLocal))
    return Enforcer(SessionLocal, PlexClient(), tracker)


@app.on_event("startup")
def on_startup():
    """Create database tables (SQLite dev mode) and start the enforcement loop."""
    if settings.DATABASE_URL.startswith("sqlite"):
        database = make_url(settings.DATABASE_URL).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(bind=engine)

    app.state.enforcer = build_enforcer()
    app.state.scheduler = EnforcementScheduler(app.state.enforcer)
    if settings.ENFORCER_ENABLED:
        app.state.scheduler.start()
    else:
        logger.info("Enforcement loop disabled (ENFORCER_ENABLED=false)")


@app.on_event("shutdown")
def on_shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.stop()


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
