# sessionshare/main.py

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sessionshare.config import Settings, get_settings
from sessionshare.db.base import build_engine, build_session_factory
from sessionshare.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from sessionshare.middleware.rate_limiter import RateLimitMiddleware
from sessionshare.observability.logger import configure_logging
from sessionshare.observability.tracing import init_otel
from sessionshare.routers.health import router as health_router
from sessionshare.routers.shares import router as shares_router
from sessionshare.services.share_service import ShareService
from sessionshare.utils.logger import log_info


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app.

    The lifespan creates one engine (the shared connection pool) and one
    ShareService, both kept on ``app.state`` for the process lifetime.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings)
        app.state.engine = engine
        app.state.share_service = ShareService.from_session_factory(
            build_session_factory(engine), settings
        )
        if settings.OTEL_ENABLED:
            init_otel(engine=engine, service_name=settings.SERVICE_NAME)
        log_info(f"Share service started (db dialect={engine.dialect.name})")
        try:
            yield
        finally:
            await engine.dispose()
            log_info("Database engine disposed")

    app = FastAPI(
        title="Session Share API",
        description="Publish session data under shareable links",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add middleware (order matters: last added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        api_limit=settings.RATE_LIMIT_API,
        general_limit=settings.RATE_LIMIT_GENERAL,
    )
    # Error handler should be outermost to catch all errors
    app.add_middleware(ErrorHandlerMiddleware, debug=settings.DEBUG)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(shares_router, prefix="/api")

    if settings.OTEL_ENABLED:
        init_otel(app=app, service_name=settings.SERVICE_NAME)

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
