"""
FastAPI application for the salon booking engine

Availability projection, reservation holds and the booking lifecycle
"""
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from contextlib import asynccontextmanager
import logging

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import DomainException
from booking_engine.core.middleware import correlation_id_middleware, request_logging_middleware
from booking_engine.core.monitoring import health_router
from booking_engine.api.v1.router import api_v1_router
from booking_engine.utils.my_logging import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    setup_logging(verbose=settings.DEBUG)
    logger.info(f"🚀 {settings.APP_NAME} starting up...")
    logger.info(f"🔒 Calendar lock backend: {settings.LOCK_BACKEND}")
    logger.info(f"⏳ Reservation holds last {settings.RESERVATION_HOLD_MINUTES} minutes")

    routes_list = []
    for route in app.routes:
        if isinstance(route, APIRoute):
            for method in route.methods:
                routes_list.append((method, route.path))

    for method, path in sorted(routes_list, key=lambda x: (x[1], x[0])):
        logger.debug(f"  {method:8} {path}")
    logger.info(f"✅ Total routes registered: {len(routes_list)}")

    yield

    # Shutdown
    logger.info(f"🛑 {settings.APP_NAME} shutting down...")


async def domain_exception_handler(request: Request, exc: DomainException):
    """Render domain errors as {"detail": {"message", "code", "details"}}"""
    http_exc = exc.to_http_exception()
    if http_exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.APP_NAME,
        description="Scheduling and reservation engine for service appointments",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "PUT"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(correlation_id_middleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Include routers
    app.include_router(health_router, prefix="/health", tags=["monitoring"])
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "api": "/api/v1/",
                "health": "/health",
                "docs": "/docs" if settings.DEBUG else "disabled"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "booking_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
