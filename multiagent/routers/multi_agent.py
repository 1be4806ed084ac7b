"""Multi-agent orchestration router."""

import logging
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from multiagent.agent.errors import PlanError, ValidationError
from multiagent.agent.orchestrator import MultiAgentOrchestrator
from multiagent.agent.scheduler import DependencyScheduler
from multiagent.agent.schemas import MultiAgentRequest, MultiAgentResponse
from multiagent.core.config import settings
from multiagent.models.schemas import (
    PlanRequest, PlanResponse, PlanErrorResponse, ToolsResponse, StatusResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _orchestrator(request: Request) -> MultiAgentOrchestrator:
    return request.app.state.orchestrator


@router.post("/query", response_model=MultiAgentResponse)
async def query(request: Request, body: MultiAgentRequest):
    """
    Answer a query with planning, parallel execution, verification and critique.

    Always answers 200; a failed run has success=false and an apology as
    its final answer.
    """
    if "skip_critique" not in body.model_fields_set:
        body.skip_critique = settings.skip_critique_default

    orchestrator = _orchestrator(request)
    response = await orchestrator.process_request(body)

    if not response.success:
        logger.warning(f"Multi-agent query failed after {len(response.execution_log)} steps")

    return response


@router.post(
    "/plan",
    response_model=PlanResponse,
    responses={422: {"model": PlanErrorResponse}}
)
async def plan(body: PlanRequest):
    """
    Schedule a task list without calling any agent.

    Returns the parallel groups, topological order and critical path.
    """
    tasks = [planned.to_task(index) for index, planned in enumerate(body.tasks)]
    scheduler = DependencyScheduler()

    try:
        execution_plan = scheduler.create_execution_plan(tasks)
    except PlanError as e:
        errors = e.errors if isinstance(e, ValidationError) else [str(e)]
        logger.info(f"Rejected task plan: {errors}")
        return JSONResponse(
            status_code=422,
            content=PlanErrorResponse(
                error="validation_error" if isinstance(e, ValidationError) else "cycle_error",
                message=str(e),
                errors=errors
            ).model_dump()
        )

    return PlanResponse(
        tasks=execution_plan.tasks,
        total_steps=execution_plan.total_steps,
        parallel_groups=execution_plan.group_ids(),
        topological_order=scheduler.topological_order(execution_plan.tasks),
        critical_path=scheduler.critical_path(),
        graph=scheduler.get_execution_visualization()
    )


@router.get("/tools", response_model=ToolsResponse)
async def list_tools(request: Request):
    """List the tools the executors may use."""
    tools = _orchestrator(request).tool_catalog.get_available_tools()
    return ToolsResponse(tools=tools, total=len(tools))


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request):
    """Check whether multi-agent mode is available."""
    orchestrator = _orchestrator(request)
    return StatusResponse(
        available=orchestrator.is_available(),
        tool_count=len(orchestrator.tool_catalog.get_available_tools())
    )
