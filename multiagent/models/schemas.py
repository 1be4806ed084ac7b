"""Pydantic models for API request/response validation."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from multiagent.agent.schemas import PlannedTask, Task
from multiagent.models.tools import AgentModel, ToolDescriptor


# ============== Plan Models ==============

class PlanRequest(AgentModel):
    """Task list to schedule without running it."""
    tasks: List[PlannedTask] = Field(..., description="Tasks as a planner would return them")


class PlanResponse(AgentModel):
    """Schedule computed for a task list."""
    tasks: List[Task]
    total_steps: int
    parallel_groups: List[List[str]]
    topological_order: List[str]
    critical_path: List[str]
    graph: Dict[str, Any] = Field(default_factory=dict, description="Nodes and edges for display")


class PlanErrorResponse(BaseModel):
    """Why a task list cannot be scheduled."""
    error: str
    message: str
    errors: List[str] = Field(default_factory=list)


# ============== Tool Models ==============

class ToolsResponse(AgentModel):
    tools: List[ToolDescriptor]
    total: int


class StatusResponse(AgentModel):
    """Whether multi-agent mode can run."""
    available: bool
    tool_count: int


# ============== System Models ==============

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Health status")
    agents: str = Field(..., description="Remote agent connectivity")
    version: str = Field(..., description="API version")
    uptime_seconds: Optional[float] = None


class ConfigResponse(BaseModel):
    """Configuration response (non-sensitive)."""
    agent_base_url: str
    endpoints: Dict[str, str]
    agent_timeout_seconds: float
    skip_critique_default: bool
    tool_catalog_path: str
    tool_servers: int
    enabled_tool_servers: int
