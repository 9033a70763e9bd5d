import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException

from paygate.api import entitlements, health, paywall, tiers, usage
from paygate.core.config import Settings, settings, validate_config
from paygate.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from paygate.core.logging import configure_logging
from paygate.core.middleware.request_id import RequestIdMiddleware
from paygate.core.services import Services, build_services


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("paygate")
    logger.info("Starting paygate...")
    try:
        yield
    finally:
        logging.getLogger("paygate").info("Stopping paygate...")


def create_app(settings_obj: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """Build the HTTP surface around one set of services."""
    cfg = settings_obj or settings
    configure_logging(cfg.ENV)
    validate_config(strict=cfg.CONFIG_STRICT, settings_obj=cfg)

    app = FastAPI(title="paygate", lifespan=lifespan)
    app.state.services = services or build_services(cfg)

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health.router)
    app.include_router(tiers.router)
    app.include_router(entitlements.router)
    app.include_router(usage.router)
    app.include_router(paywall.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("paygate.main:app", host="0.0.0.0", port=8000, log_level="info")
