"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI

from src.core.config import settings
from src.core.exceptions import register_exception_handlers
from src.core.logging_config import configure_logging
from src.modules.appointments.router import router as appointments_router
from src.modules.catalog.admin_router import router as admin_catalog_router
from src.modules.catalog.router import router as catalog_router
from src.modules.payments.router import router as payments_router
from src.modules.schedule.router import router as schedule_router
from src.modules.users.router import router as users_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version="0.1.0",
    )
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(users_router)
    app.include_router(catalog_router)
    app.include_router(admin_catalog_router)
    app.include_router(schedule_router)
    app.include_router(appointments_router)
    app.include_router(payments_router)

    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout and refunds will fail")
    return app


app = create_app()
