"""
FastAPI Application

HTTP surface for the question pipeline:
- Lifespan management: the pipeline is built, connected and given its
  schema snapshot at startup, and closed at shutdown
- CORS middleware for the frontend
- Exception handlers rendering every failure as {"error": "..."}

Usage:
    uvicorn data_agent.api.main:app --reload --port 8000
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from data_agent import __version__
from data_agent.api.routes import ask, conversations, health, query, schema
from data_agent.config import get_settings
from data_agent.connectors.base import ConnectionError as ConnectorConnectionError
from data_agent.models.errors import ExecutionError, PipelineError, ValidationError
from data_agent.pipeline.orchestrator import QuestionPipeline, create_pipeline

logger = logging.getLogger(__name__)

CONNECTION_FAILED_MESSAGE = "Database connection failed. Please try again later."

app_state: dict[str, QuestionPipeline | None] = {
    "pipeline": None,
}


class PipelineUnavailable(Exception):
    """Raised by routes when the lifespan hook has not built a pipeline."""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Build the pipeline and load the schema.

    A database that is unreachable, or whose catalog cannot be read, stops
    startup.
    """
    config = get_settings()
    logger.info(f"Starting {config.app_name} API server...")

    pipeline = create_pipeline(config)
    try:
        schema_snapshot = await pipeline.start()
        app_state["pipeline"] = pipeline
        logger.info(
            f"{config.app_name} API server started with {len(schema_snapshot.tables)} tables"
        )

        yield

    finally:
        logger.info(f"Shutting down {config.app_name} API server...")
        app_state["pipeline"] = None
        try:
            await pipeline.close()
            logger.info("Pipeline resources closed")
        except Exception as e:
            logger.error(f"Error closing pipeline: {e}")


app = FastAPI(
    title="Data Agent API",
    description="Ask questions about a PostgreSQL database in plain language",
    version=__version__,
    lifespan=lifespan,
)

cors_origins_env = os.getenv("CORS_ORIGINS", "")
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    if cors_origins_env
    else ["http://localhost:5173", "http://localhost:3000"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 shape as pipeline validation."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


@app.exception_handler(ExecutionError)
async def execution_error_handler(request: Request, exc: ExecutionError) -> JSONResponse:
    """Query failed after the correction cycle."""
    logger.error(f"Execution error: {exc}", extra={"code": exc.code, "context": exc.context})
    message = exc.message
    if exc.code == "connection_error":
        message = CONNECTION_FAILED_MESSAGE
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message},
    )


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    logger.error(f"Pipeline error: {exc}", extra={"stage": exc.stage})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": exc.message},
    )


@app.exception_handler(ConnectorConnectionError)
async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    logger.error(f"Database connection error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": CONNECTION_FAILED_MESSAGE},
    )


@app.exception_handler(PipelineUnavailable)
async def pipeline_unavailable_handler(request: Request, exc: PipelineUnavailable) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Pipeline not initialized"},
    )


app.include_router(health.router, tags=["health"])
app.include_router(ask.router, tags=["ask"])
app.include_router(ask.router, prefix="/api", tags=["ask"])
app.include_router(schema.router, prefix="/api", tags=["schema"])
app.include_router(conversations.router, prefix="/api", tags=["conversations"])
app.include_router(query.router, prefix="/api", tags=["query"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "name": "Data Agent API",
        "version": __version__,
        "docs": "/docs",
    }


def get_pipeline() -> QuestionPipeline:
    """Initialized pipeline; used as a route dependency."""
    pipeline = app_state["pipeline"]
    if pipeline is None:
        raise PipelineUnavailable()
    return pipeline
