"""System and health check router."""

import logging
from datetime import datetime
from fastapi import APIRouter, Request

from multiagent.models.schemas import HealthResponse, ConfigResponse
from multiagent.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

# Track startup time
_startup_time = datetime.now()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns the health status of the API and whether the agent host answers.
    """
    client = request.app.state.agent_client

    agent_status = "healthy"
    try:
        if not await client.ping():
            agent_status = "unreachable"
    except Exception as e:
        agent_status = f"unhealthy: {str(e)}"

    uptime = (datetime.now() - _startup_time).total_seconds()

    return HealthResponse(
        status="healthy" if agent_status == "healthy" else "degraded",
        agents=agent_status,
        version="1.0.0",
        uptime_seconds=uptime
    )


@router.get("/config", response_model=ConfigResponse)
async def get_config(request: Request):
    """Get current configuration (non-sensitive)."""
    client = request.app.state.agent_client
    catalog = request.app.state.orchestrator.tool_catalog

    return ConfigResponse(
        agent_base_url=client.base_url,
        endpoints=dict(client.endpoints),
        agent_timeout_seconds=client.timeout,
        skip_critique_default=settings.skip_critique_default,
        tool_catalog_path=settings.tool_catalog_path,
        tool_servers=len(catalog.get_servers()),
        enabled_tool_servers=len(catalog.get_enabled_servers())
    )
