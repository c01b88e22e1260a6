"""
TinyFlow - FastAPI Application Entry Point.

Exposes the function registry for discovery and runs workflow
definitions on the async engine.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from tinyflow.config import settings
from tinyflow.api.routes import functions, workflows
from tinyflow.api.schemas import ErrorResponse
from tinyflow.registry import function_registry
from tinyflow.storage import run_storage


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"{len(function_registry)} functions registered")

    yield

    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## TinyFlow Engine API

Runs visual workflow graphs: named function nodes sharing a store and
routing on the action each function returns.

### Features
- **Functions**: Registered executables with declared params, outputs and actions
- **Control flow**: Batch, Parallel, Batch ForEach, ForEach, Switch, Condition, Counter, Loop Check
- **Routing**: Edges labelled by action (`default`, `error`, `next`, `complete`, ...)

### Quick Start
1. List available functions: `GET /functions`
2. Validate a workflow: `POST /workflows/validate`
3. Run a workflow: `POST /workflows/run`
4. Inspect a run: `GET /workflows/runs/{run_id}`
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(functions.router)
app.include_router(workflows.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "Async execution engine for visual workflow graphs",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "functions": "/functions",
            "validate": "/workflows/validate",
            "run": "/workflows/run",
            "runs": "/workflows/runs",
        },
    }


@app.get("/health", tags=["Root"])
async def health():
    """Report registry and run storage sizes."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "functions_count": len(function_registry),
        "categories": sorted(function_registry.by_category()),
        "runs_count": len(run_storage),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def unhandled_error(request, exc):
    """Report errors raised outside the executor as an ErrorResponse."""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    body = ErrorResponse(
        error=type(exc).__name__,
        detail=str(exc) if settings.DEBUG else None,
        status_code=500,
    )
    return JSONResponse(status_code=500, content=body.model_dump())
