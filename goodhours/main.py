from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os

# Import core components
from goodhours.core.logging_config import setup_logging
from goodhours.core.settings import settings
from goodhours.middleware.logging import LoggingMiddleware

# Import configuration
from goodhours.config import init_firebase

# Register every model with the metadata before anything touches the schema
import goodhours.models.registry  # noqa: F401

# Import route modules
from goodhours.routes import (
    health, users, opportunities, signups, sessions,
    verification, trust, classrooms, reports, notifications, saved,
)
from goodhours.exceptions import GoodHoursException, InvalidStateException

# Set up logging first
logger = setup_logging()

_docs_enabled = settings.is_development or os.getenv("SHOW_DOCS", "").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 50)
    logger.info("GoodHours API starting up")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info(f"SQL Debug: {'enabled' if settings.sql_debug else 'disabled'}")
    logger.info(f"SendGrid Email: {'configured' if settings.sendgrid_api_key else 'not configured (logging only)'}")
    logger.info(f"Default required hours: {settings.default_required_hours}")
    logger.info("=" * 50)
    yield
    logger.info("GoodHours API shutting down gracefully")


app = FastAPI(
    title="GoodHours API",
    description="Student community-service hours: signups, verification and school certification",
    version="1.0.0",
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    lifespan=lifespan,
)

# Add middleware in correct order (last added = first executed)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_origins != ["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

# Initialize Firebase (skip in test environment)
if not settings.is_test:
    init_firebase()

# Include routers
app.include_router(health.router)
app.include_router(users.router)
app.include_router(opportunities.router)
app.include_router(signups.router)
app.include_router(sessions.router)
app.include_router(verification.router)
app.include_router(trust.router)
app.include_router(classrooms.router)
app.include_router(reports.router)
app.include_router(notifications.router)
app.include_router(saved.router)


# Exception handlers
@app.exception_handler(GoodHoursException)
async def goodhours_exception_handler(request: Request, exc: GoodHoursException):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    if isinstance(exc, InvalidStateException):
        logger.info(f"[{correlation_id}] {exc.code} on {request.url.path}: {exc.detail} (current={exc.current})")
    elif exc.status_code >= 500:
        logger.error(f"[{correlation_id}] {exc.code} on {request.url.path}: {exc.detail}")
    else:
        logger.warning(f"[{correlation_id}] {exc.code} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_dict(), "correlation_id": correlation_id},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    logger.error(f"[{correlation_id}] Unhandled exception on {request.url.path}: {str(exc)}", exc_info=True)
    content = {"detail": "Internal server error", "correlation_id": correlation_id}
    if settings.is_development:
        content.update({"error": str(exc), "type": type(exc).__name__})
    return JSONResponse(status_code=500, content=content)


@app.get("/")
async def root():
    return {"service": "GoodHours API", "status": "ok", "docs": "/docs" if _docs_enabled else None}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info" if settings.is_development else "warning"
    )
