"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_generator.api import auth, builds, config, generation, health, sse, templates
from app_generator.config import settings
from app_generator.core.container import AppContainer
from app_generator.core.logging import setup_logging
from app_generator.middleware.error_codes import register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    container = getattr(app.state, "container", None)
    if container is None:
        container = AppContainer()
        app.state.container = container
    container.startup()
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} started")
    try:
        yield
    finally:
        container.shutdown()
        logger.info(f"{settings.APP_NAME} stopped")


def create_app(container: AppContainer | None = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Generate Cordova apps from templates, push them to GitHub and build them on Codemagic",
        version=settings.APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(auth.router, prefix="/api")
    app.include_router(generation.router, prefix="/api")
    app.include_router(builds.router, prefix="/api")
    app.include_router(templates.router, prefix="/api")
    app.include_router(config.router, prefix="/api")
    app.include_router(sse.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/api/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app_generator.main:app", host="0.0.0.0", port=8000, reload=True)
