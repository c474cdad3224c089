"""
FastAPI main application for HomeQuote
"""
import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from homequote.core.config import settings
from homequote.core.database import AsyncSessionLocal, DATABASE_URL, create_tables
from homequote.core.logging import setup_logging
from homequote.engines.quotation import QuotationEngine, SQLCatalogGateway, SQLSessionStore
from homequote.middleware.logging_middleware import RequestLoggingMiddleware
from homequote.routers import quotation
from homequote.services.llm_service import LLMCollaborators

setup_logging()
logger = logging.getLogger(__name__)


def build_engine() -> QuotationEngine:
    """Wire the engine against the configured database and LLM collaborators"""
    llm = LLMCollaborators() if settings.openai_api_key else None
    return QuotationEngine(
        gateway=SQLCatalogGateway(AsyncSessionLocal),
        session_store=SQLSessionStore(AsyncSessionLocal),
        llm=llm,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting HomeQuote API...")

    sanitized = re.sub(r":\/\/[^:]*:[^@]*@", "://***:***@", DATABASE_URL)
    logger.info(f"Database: {sanitized}")
    if settings.openai_api_key:
        logger.info("OPENAI_API_KEY is set, LLM collaborators enabled per feature toggle")
    else:
        logger.warning("OPENAI_API_KEY is not set, running with deterministic fallbacks only")

    await create_tables()
    app.state.quotation_engine = build_engine()
    logger.info("Application started")

    yield

    logger.info("Shutting down HomeQuote API...")
    app.state.quotation_engine = None
    logger.info("Application stopped")


app = FastAPI(
    title=settings.app_name,
    description="Conversational furnishing quotation API",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers"""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "engine": "ready" if getattr(app.state, "quotation_engine", None) else "starting",
    }


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "docs": "/docs" if settings.environment == "development" else None,
        "endpoints": {
            "quotation": "/api/quotation/sessions",
        },
    }


app.include_router(quotation.router, prefix="/api/quotation", tags=["quotation"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "homequote.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_config=None,
        access_log=False,
    )
