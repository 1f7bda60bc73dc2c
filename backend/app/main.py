import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.audit.service import AuditMiddleware
from app.core.auth.router import router as auth_router
from app.core.memberships.router import router as members_router
from app.core.tenants.router import admin_router as stores_admin_router
from app.core.tenants.router import router as stores_router
from app.log import configure_logging
from app.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Storefront Platform API",
        version="0.1.0",
        docs_url="/docs" if settings.APP_DEBUG else None,
        redoc_url="/redoc" if settings.APP_DEBUG else None,
    )

    app.add_middleware(AuditMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_DEBUG else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(stores_router)
    app.include_router(members_router)
    app.include_router(stores_admin_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info("Storefront API configured (env=%s, store header=%s)", settings.APP_ENV, settings.STORE_ID_HEADER)
    return app


app = create_app()
