"""
Residential Admin - FastAPI Application Entrypoint

This module initializes the FastAPI application with:
- CORS and security middleware
- Envelope-producing exception handlers
- Versioned routers (auth, persons, roles, permissions, audit)
- Database lifecycle management and the audit recorder

Run locally:
    uvicorn residential_admin.app:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from residential_admin.audit.recorder import AuditRecorder
from residential_admin.audit.routes import router as audit_router
from residential_admin.auth.routes import router as auth_router
from residential_admin.config import DEFAULT_SECRET_KEY, settings
from residential_admin.database import get_engine, get_session_factory, init_db
from residential_admin.gateway.errors import register_exception_handlers
from residential_admin.gateway.middleware import SecurityMiddleware
from residential_admin.logger import configure_logging, get_logger
from residential_admin.persons.routes import router as persons_router
from residential_admin.rbac.routes import permissions_router, roles_router


logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Create the SQLModel engine unless one was already attached to
          app.state.db_engine, and create missing tables
        - Attach the session factory and the audit recorder to app.state

    Shutdown:
        - Dispose the engine if this lifespan created it
    """
    configure_logging()

    if settings.SECRET_KEY == DEFAULT_SECRET_KEY:
        logger.warning("SECRET_KEY is the development default; set SECRET_KEY for any shared deployment")

    engine = getattr(app.state, "db_engine", None)
    owns_engine = engine is None
    if owns_engine:
        engine = get_engine(settings.DATABASE_URL)
        app.state.db_engine = engine

    init_db(engine)
    app.state.db_session_factory = get_session_factory(engine)
    app.state.audit_recorder = AuditRecorder(app.state.db_session_factory)

    logger.info("%s %s started", settings.APP_NAME, settings.API_VERSION)

    yield

    if owns_engine:
        engine.dispose()
        app.state.db_engine = None


def create_app() -> FastAPI:
    """Build the application with middleware, handlers and routers."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Residential management API: persons, roles, permissions, authentication and audit",
        version=settings.API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(SecurityMiddleware)

    register_exception_handlers(app)

    for router in (auth_router, persons_router, roles_router, permissions_router, audit_router):
        app.include_router(router, prefix=settings.API_PREFIX)

    @app.get("/health")
    async def health_check():
        """Service status and database reachability."""
        database_ok = False
        factory = getattr(app.state, "db_session_factory", None)
        if factory is not None:
            db = factory()
            try:
                db.execute(text("SELECT 1"))
                database_ok = True
            except Exception as e:
                logger.error("Health check database query failed: %s", e)
            finally:
                db.close()

        return {
            "status": "healthy" if database_ok else "degraded",
            "version": settings.API_VERSION,
            "services": {"database": database_ok},
        }

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": settings.API_VERSION,
            "api": settings.API_PREFIX,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
