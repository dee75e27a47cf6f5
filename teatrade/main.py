"""
Tea Trade Platform - Backend API
Catalogs, stock lots and shipments for the tea trading platform
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from teatrade.api import admins, contacts, lots, reports, shipments, stocks, users
from teatrade.core.auth import CognitoTokenVerifier
from teatrade.core.config import Settings, get_settings
from teatrade.core.correlation import REQUEST_ID_HEADER, CorrelationIdMiddleware
from teatrade.core.database import Database
from teatrade.core.errors import register_exception_handlers
from teatrade.core.logging import configure_logging
from teatrade.core.rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    configure_logging(settings.LOG_LEVEL, settings.LOG_TIMEZONE)

    database = Database(settings.DATABASE_URL, echo=settings.DB_ECHO, pool_pre_ping=settings.DB_POOL_PRE_PING)
    database.create_all()

    app.state.database = database
    app.state.rate_limiters = {
        "contact": FixedWindowRateLimiter(settings.CONTACT_RATE_LIMIT, settings.CONTACT_RATE_WINDOW_SECONDS),
    }
    app.state.token_verifier = CognitoTokenVerifier.from_settings(settings)
    logger.info(f"{settings.API_TITLE} {settings.API_VERSION} started")

    yield

    app.state.token_verifier.close()
    database.dispose()
    logger.info(f"{settings.API_TITLE} stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Explicit settings (tests); defaults to the environment
    """
    settings = settings or get_settings()

    # Crear aplicación FastAPI
    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        debug=settings.API_DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(CorrelationIdMiddleware)
    # Added last so it wraps everything, error responses included
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "Retry-After", "Content-Disposition"],
    )

    register_exception_handlers(app)

    # Include API routers
    app.include_router(contacts.router, prefix="/contacts", tags=["Contacts"])
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(admins.router, prefix="/admins", tags=["Admins"])
    app.include_router(lots.routers["catalogs"], prefix="/catalogs", tags=["Catalogs"])
    app.include_router(lots.routers["sellingPrices"], prefix="/sellingPrices", tags=["Selling Prices"])
    app.include_router(lots.routers["outLots"], prefix="/outLots", tags=["Out Lots"])
    app.include_router(stocks.router, prefix="/stocks", tags=["Stocks"])
    app.include_router(shipments.router, prefix="/shipments", tags=["Shipments"])
    app.include_router(reports.router, prefix="/reports", tags=["Reports"])

    @app.get("/")
    async def root():
        """Root endpoint - API status"""
        return {
            "message": settings.API_TITLE,
            "status": "online",
            "version": settings.API_VERSION,
        }

    @app.get("/health")
    def health(request: Request):
        """Health check endpoint for monitoring - tests database connectivity"""
        db_status = "connected"
        db_latency_ms = None
        db_error = None

        try:
            db_latency_ms = request.app.state.database.ping()
        except SQLAlchemyError as e:
            logger.error(f"Health check database ping failed: {e}")
            db_status = "disconnected"
            db_error = str(e)

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "service": "teatrade-api",
            "version": settings.API_VERSION,
            "database": {
                "status": db_status,
                "latency_ms": db_latency_ms,
                "error": db_error,
            },
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    uvicorn.run("teatrade.main:app", host=settings.API_HOST, port=settings.API_PORT)
