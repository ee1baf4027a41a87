"""
Body Composition Engine — Main Application Entry Point
=======================================================
This is the FastAPI application factory. It:
  1. Creates the FastAPI app instance with metadata
  2. Registers all API routers
  3. Configures logging and CORS from settings
  4. Provides health check endpoints

The engine itself (bodycomp.services) is pure and synchronous; this module
only exposes it over HTTP.

To run locally:
  uvicorn bodycomp.main:app --reload --host 0.0.0.0 --port 8000 --app-dir back-end
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bodycomp.core.config import settings
from bodycomp.routers import composition, formulas, reliability

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================================
# APPLICATION LIFESPAN (Startup / Shutdown)
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    logger.info(
        f"Default formula: {settings.DEFAULT_FORMULA}, "
        f"Kerr deviation warning above {settings.KERR_DEVIATION_WARN_PERCENT}%"
    )

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


# ============================================================
# CREATE THE FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Anthropometric body composition engine. Validates ISAK measurements, "
        "estimates composition with the most precise method the data supports "
        "(Kerr 5C, Durnin-Womersley, Sloan, BMI) and audits the result."
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ============================================================
# CORS MIDDLEWARE
# ============================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# REGISTER ROUTERS
# ============================================================
app.include_router(composition.router)   # /composition/*
app.include_router(reliability.router)   # /reliability/*
app.include_router(formulas.router)      # /formulas/*


# ============================================================
# ROOT / HEALTH CHECK ENDPOINT
# ============================================================
@app.get("/", tags=["Health"])
async def root():
    """Returns basic app info to confirm the API is running."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "ok"}
