"""FastAPI application for the family tipping competition."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import db
from .config import settings
from .logging_config import configure_logging
from .middleware.logging import StructuredLoggingMiddleware
from .routers import admin, ladder, rounds, tips, users
from .routers.errors import register_error_handlers
from .services import Services, build_services
from .services.scheduler import SchedulerService
from .squiggle.client import SquiggleClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(service="footy-tipping-api", environment=settings.environment, log_level=settings.log_level)
    yield
    await db.close_db()


def create_app(services: Services | None = None, scheduler: SchedulerService | None = None) -> FastAPI:
    services = services or build_services()
    if scheduler is None:
        scheduler = SchedulerService(db._get_session_factory(), SquiggleClient(), services)

    app = FastAPI(title="footy-tipping", version="1.0.0", lifespan=lifespan)
    app.state.services = services
    app.state.scheduler = scheduler

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(rounds.router)
    app.include_router(tips.router)
    app.include_router(ladder.router)
    app.include_router(users.router)
    app.include_router(users.family_groups_router)
    app.include_router(admin.router)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
