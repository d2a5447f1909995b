from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from salon_supervisor.routers.agent import router as router_agent
from salon_supervisor.routers.help_request import router as router_help_requests
from salon_supervisor.routers.knowledge_base import router as router_knowledge_base
from salon_supervisor.routers.livekit import router as router_livekit
from salon_supervisor.routers.notifications import router as router_notifications
from salon_supervisor.core.config import Settings, get_settings
from salon_supervisor.core.dependencies import ServiceContainer, build_container
from salon_supervisor.core.logging import setup_logging
from salon_supervisor.models.schemas import utc_now
import logging
import uvicorn

logger = logging.getLogger("fastapi_server")

_app: Optional[FastAPI] = None


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or get_settings()
    container = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.sweeper_enabled:
            container.sweeper.start()
        logger.info(f"{settings.app_name} started")
        try:
            yield
        finally:
            container.sweeper.shutdown()
            logger.info(f"{settings.app_name} stopped")

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.state.container = container

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],                      # Allow all HTTP methods
        allow_headers=["*"],                      # Allow all headers
    )
    # Include routers
    app.include_router(router_agent)
    app.include_router(router_help_requests)
    app.include_router(router_knowledge_base)
    app.include_router(router_livekit)
    app.include_router(router_notifications)

    @app.get("/")
    async def root():
        return {"status": "running"}

    @app.get("/health")
    async def health(request: Request):
        notifications = request.app.state.container.notifications
        return {
            "status": "healthy",
            "timestamp": utc_now(),
            "connectedClients": notifications.get_connected_clients_count(),
        }

    return app


def __getattr__(name: str):
    # `uvicorn salon_supervisor.main:app` builds the default app on first access
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def run():
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
