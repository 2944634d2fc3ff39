"""
OTA Market Intelligence -- FastAPI Application
Serves the cleaned activity dataset and its summary statistics.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import asyncio
import logging
import time

from slowapi.errors import RateLimitExceeded
from sqlalchemy.engine import Engine

from market_intel.core.config import CleaningConfig, Settings, get_settings
from market_intel.core.monitoring import configure_logging
from market_intel.core.rate_limiting import limiter, rate_limit_handler
from market_intel.db.database import create_db_engine, init_db, make_session_factory
from market_intel.api import health, routes_market

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the application. Pass an engine to share an existing database
    (tests); otherwise one is created from settings at startup.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")

        owned_engine = engine is None
        db_engine = engine or create_db_engine(settings)

        # Retry DB init up to 3 times
        for attempt in range(1, 4):
            try:
                init_db(db_engine)
                logger.info("Database initialized successfully")
                break
            except Exception as e:
                if attempt < 3:
                    logger.warning(f"Database init attempt {attempt}/3 failed: {e}, retrying in 2s...")
                    await asyncio.sleep(2)
                else:
                    logger.error(f"Database init failed after 3 attempts, aborting startup: {e}")
                    raise RuntimeError(f"Database init failed: {e}")

        app.state.session_factory = make_session_factory(db_engine)
        app.state.cleaning_config = CleaningConfig.from_settings(settings)
        logger.info("Application startup complete -- ready to serve")

        yield

        if owned_engine:
            db_engine.dispose()
        logger.info("Application shutting down")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Cleaned OTA activity listings and market statistics.",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        """Log requests with timing and set basic security headers."""
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        request_id = request.headers.get("X-Request-ID", "")
        if request_id:
            response.headers["X-Request-ID"] = request_id

        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s")
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions gracefully."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(routes_market.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root -- API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
            "health": f"{settings.api_prefix}/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "market_intel.main:app",
        host=_settings.api_host,
        port=_settings.api_port,
        workers=_settings.api_workers,
        reload=_settings.debug,
        log_level=_settings.log_level.lower(),
    )
