"""
HERA Universal ERP Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from hera_erp.api import (
    anomaly_router,
    auth_router,
    entities_router,
    gl_posting_router,
    gl_router,
    gl_validation_router,
    organizations_router,
    receiving_router,
    schema_router,
    templates_router,
)
from hera_erp.config.settings import get_settings
from hera_erp.database import close_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.service_name}@{settings.service_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[FastApiIntegration()],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")
    if settings.sentry_dsn:
        logger.info("Sentry error reporting enabled")

    yield

    # Shutdown
    logger.info("Shutting down HERA ERP Service")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title="HERA Universal ERP Service",
    version=settings.service_version,
    description="Multi-tenant ERP API built on the universal entity/transaction schema",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Health check endpoint
@app.get("/health")
async def root_health_check():
    """Root health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment
    }


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "HERA Universal ERP Service",
        "docs": "/docs",
        "health": "/health"
    }


# Include routers (each router carries its own /api/v1 prefix)
# auth_router first: login/register need no token
app.include_router(auth_router)
app.include_router(organizations_router)
app.include_router(entities_router)
app.include_router(gl_router)
app.include_router(gl_validation_router)
app.include_router(gl_posting_router)
app.include_router(anomaly_router)
app.include_router(schema_router)
app.include_router(receiving_router)
app.include_router(templates_router)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hera_erp.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
