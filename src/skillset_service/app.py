"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from skillset_service.config import get_settings
from skillset_service.core.exceptions import register_exception_handlers
from skillset_service.core.lifespan import lifespan
from skillset_service.core.middleware import RequestValidationMiddleware
from skillset_service.routers import auth, contact, health, objects, price, tasks, uploads


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance with all routers registered.
    """
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.service.name} Service",
        version=settings.service.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Operations"])
    app.include_router(auth.router, tags=["Auth"])
    app.include_router(tasks.router, tags=["Tasks"])
    app.include_router(uploads.router, tags=["Uploads"])
    app.include_router(objects.router, tags=["Objects"])
    app.include_router(contact.router, tags=["Contact"])
    app.include_router(price.router, tags=["Price"])

    app.add_middleware(
        RequestValidationMiddleware,
        max_body_size=settings.request.max_body_size,
    )

    return app
