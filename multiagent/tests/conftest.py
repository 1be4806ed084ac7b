"""
Test Configuration.

Pytest fixtures for the scheduler, orchestrator and FastAPI surface.
Remote agents are replaced by AsyncMocks; no network is touched.
"""

from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from multiagent.agent.orchestrator import MultiAgentOrchestrator
from multiagent.agent.schemas import (
    Task, PlannedTask, ToolDescriptor, ToolInputSchema,
    PlannerResponse, ExecutorResponse, MultiExecutorResponse,
    VerifierResponse, CriticResponse,
)
from multiagent.core.tool_catalog import ToolCatalog, ToolServer


def make_task(task_id: str, dependencies: Optional[List[str]] = None, tools: Optional[List[str]] = None) -> Task:
    """Build a pending executor task."""
    return Task(
        id=task_id,
        description=f"Do {task_id}",
        dependencies=dependencies or [],
        tools=tools or []
    )


def make_plan(*specs) -> PlannerResponse:
    """Planner response from (id, dependencies[, tools]) tuples."""
    tasks = []
    for spec in specs:
        task_id, dependencies = spec[0], spec[1]
        tools = spec[2] if len(spec) > 2 else []
        tasks.append(PlannedTask(
            id=task_id,
            description=f"Do {task_id}",
            dependencies=dependencies,
            tools=tools
        ))
    return PlannerResponse(tasks=tasks, reasoning="split into steps")


@pytest.fixture
def tool_catalog():
    """Catalog with one enabled and one disabled server."""
    return ToolCatalog([
        ToolServer(
            id="search-local",
            name="Search Server",
            tools=[
                ToolDescriptor(
                    name="web_search",
                    description="Search the web",
                    input_schema=ToolInputSchema(
                        properties={"query": {"type": "string"}},
                        required=["query"]
                    )
                ),
                ToolDescriptor(name="get_current_weather", description="Current conditions"),
            ]
        ),
        ToolServer(
            id="calculator",
            name="Calculator",
            enabled=False,
            tools=[ToolDescriptor(name="evaluate", description="Evaluate an expression")]
        ),
    ])


@pytest.fixture
def mock_agent_client():
    """Agent client whose calls all succeed with canned responses."""
    client = MagicMock()
    client.base_url = "http://agents.test"
    client.timeout = 540.0
    client.endpoints = {
        "planner": "multiAgentPlanner",
        "executor": "multiAgentExecutor",
        "multi_executor": "multiAgentMultiTaskExecutor",
        "verifier": "multiAgentVerifier",
        "critic": "multiAgentCritic",
    }

    client.plan = AsyncMock(return_value=make_plan(("task_a", [])))
    client.execute_task = AsyncMock(return_value=ExecutorResponse(result="result"))
    client.execute_tasks = AsyncMock(return_value=MultiExecutorResponse(task_results={}))
    client.verify = AsyncMock(return_value=VerifierResponse(final_answer="draft answer", confidence=0.9))
    client.critique = AsyncMock(return_value=CriticResponse(final_answer="final answer"))
    client.ping = AsyncMock(return_value=True)
    client.close = AsyncMock()

    return client


@pytest.fixture
def orchestrator(mock_agent_client, tool_catalog):
    """Orchestrator wired to the mock agents."""
    return MultiAgentOrchestrator(client=mock_agent_client, tool_catalog=tool_catalog)


@pytest.fixture
def app(mock_agent_client, orchestrator):
    """FastAPI application with mock agents on app state."""
    from multiagent.main import app as fastapi_app

    fastapi_app.state.agent_client = mock_agent_client
    fastapi_app.state.orchestrator = orchestrator

    return fastapi_app


@pytest.fixture
def client(app) -> TestClient:
    """Create a synchronous test client."""
    return TestClient(app)
