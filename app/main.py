"""
OpenInApp: smart links that open the right app.
Main application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.redirect import router as redirect_router
from app.api.smart import router as smart_router
from app.api.links import router as links_router
from app.api.well_known import router as well_known_router
from app.middleware.security import SecurityHeadersMiddleware
from app.models.database import dispose_engine
from app.config import get_settings

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("openinapp_starting", base_url=get_settings().base_url)
    yield
    await dispose_engine()
    logger.info("openinapp_shutting_down")


app = FastAPI(
    title=get_settings().app_name,
    description="Smart links: one short URL that opens the native app when it can, the web when it can't.",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if get_settings().debug else None,
    redoc_url="/redoc" if get_settings().debug else None,
    openapi_url="/openapi.json" if get_settings().debug else None,
)

# Security headers on every response
app.add_middleware(SecurityHeadersMiddleware)

# CORS: the dashboard is served from the same base URL in production
ALLOWED_ORIGINS = ["*"] if get_settings().debug else [get_settings().base_url]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=not get_settings().debug,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
)

# --- Routes ---
app.include_router(redirect_router)
app.include_router(smart_router)
app.include_router(links_router)
app.include_router(well_known_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "openinapp", "version": VERSION}
