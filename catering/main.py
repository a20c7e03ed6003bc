"""
Catering Orders - FastAPI Backend Application
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from catering.config import settings
from catering.errors import CateringError
from catering.api import business_services, daily_menus, invoices, ops, orders

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Catering Orders API", version="1.0.0", timezone=settings.timezone)
    yield
    logger.info("Shutting down Catering Orders API")


# Create FastAPI application
app = FastAPI(
    title="Catering Orders",
    description="Daily menus, employee orders, day locks and invoicing for B2B catering",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CateringError)
async def catering_error_handler(request: Request, exc: CateringError):
    """Render domain errors as {"detail", "code"} with the family's status"""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, detail=exc.detail)
    else:
        logger.info("Request rejected", path=request.url.path, code=exc.code, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from catering.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check Redis
    try:
        from catering.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(daily_menus.router, prefix="/daily-menus", tags=["Daily Menus"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(business_services.router, prefix="/businesses/{business_id}/services", tags=["Business Services"])
app.include_router(ops.router, prefix="/ops", tags=["Operations"])
app.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "catering.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
