"""
Supplier Price Sync - Main Application

FastAPI entry point: price list preview, commit, history and catalog
price sync.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime

from config import settings, check_connection
from exceptions import AppError

logging.basicConfig(format="%(message)s", level=settings.log_level)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def sync_settings() -> dict:
    """Sync behaviour switches, as reported at startup and on /health."""
    return {
        "auto_sync_prices": settings.auto_sync_prices,
        "auto_create_variants": settings.auto_create_variants,
        "supersede_previous_price_lists": settings.supersede_previous_price_lists,
        "default_currency_code": settings.default_currency_code,
        "max_workers": settings.sync_max_workers,
        "apply_workers": settings.sync_apply_workers,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration and store reachability on startup."""
    logger.info(
        "application_starting",
        environment=settings.environment,
        alerts=settings.telegram_configured,
        **sync_settings()
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            suppliers=db_status["suppliers_count"],
            active_price_lists=db_status["active_price_lists_count"]
        )
    else:
        logger.error(
            "database_unreachable",
            table=db_status.get("table"),
            error=db_status.get("error")
        )

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Supplier Price Sync",
    description="Supplier price list ingestion and catalog price sync",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """Store reachability plus the active sync configuration."""
    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status,
        "alerts_configured": settings.telegram_configured,
        "sync": sync_settings(),
    }


@app.get("/")
async def root():
    return {
        "name": "Supplier Price Sync API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "preview": "/api/suppliers/{supplier_id}/price-lists/preview",
            "price_lists": "/api/suppliers/{supplier_id}/price-lists",
            "upload": "/api/suppliers/{supplier_id}/price-lists/upload",
            "sync": "/api/suppliers/{supplier_id}/price-lists/{price_list_id}/sync",
            "parser_templates": "/api/parser-templates",
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """AppErrors that escape a route keep their status and error body."""
    logger.warning(
        "app_error",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything else is a 500 in the standard error format."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.price_lists import router as price_lists_router
from routes.parser_templates import router as parser_templates_router

app.include_router(price_lists_router, prefix="/api/suppliers", tags=["Price Lists"])
app.include_router(parser_templates_router, prefix="/api/parser-templates", tags=["Parser Templates"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
