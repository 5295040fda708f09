import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.db.session import close_db, init_db

from app.api.v1.auth import router as auth_router
from app.api.v1.health import router as health_router
from app.api.v1.notes import router as notes_router
from app.api.v1.tenants import router as tenants_router
from app.api.v1.tenant_invitations import router as tenant_invitations_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    adapter = await init_db()
    logger.info("app.startup", extra={"environment": settings.ENVIRONMENT, "database": adapter.engine_name})
    try:
        yield
    finally:
        await close_db()
        logger.info("app.shutdown")


def create_application() -> FastAPI:
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(title="Multi-Tenant Notes API", lifespan=lifespan)

    origins = settings.cors_origin_list
    allow_all = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else origins,
        # browsers reject credentials with a wildcard origin
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "notes"}

    # Routers
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(tenants_router, prefix="/api/v1")
    app.include_router(tenant_invitations_router, prefix="/api/v1")
    app.include_router(notes_router, prefix="/api/v1")

    return app


app = create_application()
