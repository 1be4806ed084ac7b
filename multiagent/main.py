"""
FastAPI Backend for the Multi-Agent Orchestrator.

API server with endpoints for:
- Multi-agent query answering
- Dry-run scheduling of task plans
- Tool catalog and availability
- System health and configuration
"""

import logging
import traceback
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError

from multiagent.routers import multi_agent, system
from multiagent.agent.client import AgentClient
from multiagent.agent.orchestrator import MultiAgentOrchestrator
from multiagent.core.config import settings
from multiagent.core.tool_catalog import get_tool_catalog

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager - startup and shutdown."""
    # Startup
    logger.info("Starting Multi-Agent Orchestrator API...")

    agent_client = AgentClient()
    tool_catalog = get_tool_catalog(settings.tool_catalog_path)
    app.state.agent_client = agent_client
    app.state.orchestrator = MultiAgentOrchestrator(client=agent_client, tool_catalog=tool_catalog)

    logger.info(
        f"Agents at {agent_client.base_url}, "
        f"{len(tool_catalog.get_available_tools())} tools available"
    )
    logger.info(f"API ready at http://0.0.0.0:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down Multi-Agent Orchestrator API...")
    await agent_client.close()
    logger.info("Agent client closed")


# Create FastAPI app
app = FastAPI(
    title="Multi-Agent Orchestrator API",
    description="""
    Answers queries by decomposing them into dependent subtasks.

    ## Features
    - **Multi-Agent**: Plan, execute in parallel groups, verify and critique
    - **Plan**: Inspect how a task list would be scheduled
    - **System**: Health checks and configuration
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============== Exception Handlers ==============

def _get_error_id() -> str:
    """Generate a unique error ID for tracking."""
    return str(uuid.uuid4())[:8]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with user-friendly messages."""
    error_id = _get_error_id()

    logger.error(
        f"Validation error [{error_id}] on {request.method} {request.url.path}: "
        f"{exc.errors()}"
    )

    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": "Invalid request data. Please check your input and try again.",
            "error_id": error_id,
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    error_id = _get_error_id()

    logger.warning(
        f"HTTP {exc.status_code} [{error_id}] on {request.method} {request.url.path}: "
        f"{exc.detail}"
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": f"http_{exc.status_code}",
            "message": exc.detail,
            "error_id": error_id,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors.

    Clients get an error ID; technical details only in debug mode. The
    full stack trace only goes to the log.
    """
    error_id = _get_error_id()

    logger.error(
        f"Unhandled exception [{error_id}]\n"
        f"  Request: {request.method} {request.url.path}\n"
        f"  Exception Type: {type(exc).__name__}\n"
        f"  Exception Message: {str(exc)}\n"
        f"  Stack Trace:\n{traceback.format_exc()}"
    )

    content = {
        "error": "internal_server_error",
        "message": (
            "We encountered an issue processing your request. "
            f"Please try again. If the problem persists, report error ID: {error_id}"
        ),
        "error_id": error_id,
    }
    if settings.debug:
        content["technical_details"] = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "path": request.url.path,
            "method": request.method,
        }

    return JSONResponse(status_code=500, content=content)


# Include routers
app.include_router(
    multi_agent.router,
    prefix="/api/v1/multi-agent",
    tags=["Multi-Agent"]
)

app.include_router(
    system.router,
    prefix="/api/v1/system",
    tags=["System"]
)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Multi-Agent Orchestrator API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
        "health": "/api/v1/system/health"
    }


# Health check at root level for load balancers
@app.get("/health", tags=["Health"])
async def health():
    """Quick health check for load balancers."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "multiagent.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers if not settings.debug else 1
    )
