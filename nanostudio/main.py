"""
Nano Studio API - Multi-provider Image Generation
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nanostudio.core.config import settings
from nanostudio.core.database import init_db
from nanostudio.core.exceptions import StudioError
from nanostudio.api import credits, generate, history

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {settings.APP_NAME}...")
    init_db()
    logger.info("Database tables created")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Image generation across Gemini, Kie jobs and Kie Midjourney",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(generate.router, prefix="/api", tags=["Image Generation"])
app.include_router(history.router, prefix="/api/history", tags=["History"])
app.include_router(credits.router, prefix="/api/credits", tags=["Credits"])


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.
    Returns detailed status of critical services.
    """
    status = {
        "status": "healthy",
        "version": "0.1.0",
        "environment": {
            "default_engine": settings.DEFAULT_ENGINE,
            "debit_policy": settings.CREDIT_DEBIT_POLICY,
        },
        "services": {}
    }

    # Check database connection
    try:
        from nanostudio.core.database import SessionLocal
        from sqlalchemy import text
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        status["services"]["database"] = "ok"
    except Exception as e:
        status["services"]["database"] = f"error: {str(e)}"
        status["status"] = "degraded"

    # Redis only backs the reconciler, so it is reported but never degrades
    try:
        from nanostudio.core.redis import redis_health_check
        redis_status = redis_health_check()
        if redis_status.get("connected"):
            status["services"]["redis"] = "ok"
        else:
            status["services"]["redis"] = f"unavailable: {redis_status.get('error', 'not connected')}"
    except Exception as e:
        status["services"]["redis"] = f"unavailable: {str(e)}"

    status["services"]["gemini_keys"] = len(settings.gemini_keys)
    status["services"]["kie"] = "configured" if settings.KIE_API_KEY else "missing key"

    return status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": settings.APP_NAME,
        "docs": "/docs",
        "health": "/health",
    }
