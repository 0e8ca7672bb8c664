from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.application.realtime import RealtimeService, repository_stats_source
from portal.config import Settings, get_settings
from portal.infrastructure.database import SessionLocal, engine, initialize_database
from portal.infrastructure.models import AdministratorModel, MemberModel
from portal.infrastructure.realtime import SqlAlchemyChangeFeed, WebSocketChannelTransport
from portal.interfaces.api.routes import register_routes
from portal.utils import configure_logging

RealtimeBuilder = Callable[[Settings, WebSocketChannelTransport], RealtimeService]


def build_realtime_service(
    settings: Settings, transport: WebSocketChannelTransport
) -> RealtimeService:
    """Wire the realtime service to the application database."""

    initialize_database()
    return RealtimeService(
        transport=transport,
        feed=SqlAlchemyChangeFeed(SessionLocal, [MemberModel, AdministratorModel]),
        stats_source=repository_stats_source(SessionLocal),
        settings=settings,
    )


def create_app(realtime_builder: RealtimeBuilder = build_realtime_service) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the realtime service on startup and release resources on shutdown."""

        transport = WebSocketChannelTransport()
        service = realtime_builder(settings, transport)
        app.state.transport = transport
        app.state.realtime = service
        await service.start()
        try:
            yield
        finally:
            await service.stop()
            app.state.realtime = None
            engine.dispose()

    app = FastAPI(title="Church Portal Realtime", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_routes(app)
    return app


app = create_app()
