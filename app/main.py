"""FastAPI application entry point for ClauseGuard."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import configure_logging, get_settings
from app.database import db
from core.embeddings.provider import create_embedding_provider
from core.pipeline.orchestrator import PipelineOptions, build_pipeline
from core.retrieval.vector_store import ClauseLibrary, PgVectorStore

logger = logging.getLogger("clauseguard.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    settings = get_settings()
    configure_logging(settings)
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.app_env})")

    library = None
    if settings.vector_store_backend == "pgvector":
        await db.connect()
        store = PgVectorStore(db.pool, settings.embedding_dimensions)
        await store.ensure_tables()
        options = PipelineOptions.from_settings(settings)
        library = ClauseLibrary(
            create_embedding_provider(settings),
            store=store,
            timeout_seconds=options.embedding_timeout_seconds,
            retry=options.retry,
        )
        loaded = await library.load()
        logger.info(f"Loaded {loaded} precedent clauses from pgvector")

    app.state.pipeline = build_pipeline(settings, library=library)

    yield

    logger.info(f"Shutting down {settings.app_name}")
    if db.is_connected:
        await db.disconnect()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Clause-level risk analysis for freelance and service contracts",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from app.api.routes import analysis, contracts, embeddings
app.include_router(analysis.router, prefix="/api/v1/analysis", tags=["analysis"])
app.include_router(embeddings.router, prefix="/api/v1/embeddings", tags=["embeddings"])
app.include_router(contracts.router, prefix="/api/v1/contracts", tags=["contracts"])
