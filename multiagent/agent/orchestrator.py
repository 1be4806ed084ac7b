"""Multi-Agent Orchestrator - Four-phase state machine over remote agents.

The orchestrator is responsible for:
1. Planning: asking the planner agent to decompose the query into tasks
2. Execution: running the scheduled parallel groups against the executors
3. Verification: consolidating completed task results into a draft answer
4. Critique: optionally polishing the draft into the final answer

Each run gets its own RunContext (scheduler, result store, execution log),
so one orchestrator can serve concurrent runs.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from pydantic import ValidationError as SchemaValidationError

from multiagent.agent.client import AgentClient, AgentCallError
from multiagent.agent.errors import PhaseError, TaskError
from multiagent.agent.events import ExecutionLogger, EventHandler
from multiagent.agent.scheduler import DependencyScheduler, ExecutionPlan
from multiagent.agent.schemas import (
    Task, TaskStatus, ToolDescriptor, OrchestratorPhase,
    MultiAgentRequest, MultiAgentResponse,
    PlannerRequest, ExecutorRequest, ExecutorTask, MultiExecutorRequest,
    VerifierRequest, VerifierResponse, TaskSummary, CriticRequest,
)
from multiagent.core.config import settings
from multiagent.core.tool_catalog import ToolCatalog, get_tool_catalog

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "Sorry, I encountered an error while processing your request "
    "with multi-agent orchestration."
)
NO_RESULT_ERROR = "No result returned for task"
DEPENDENCY_FAILED_ERROR = "Dependency task failed"

# Legal moves of the state machine; FAILED is reachable from anywhere
TRANSITIONS: Dict[Optional[OrchestratorPhase], set] = {
    None: {OrchestratorPhase.PLANNING},
    OrchestratorPhase.PLANNING: {OrchestratorPhase.EXECUTION},
    OrchestratorPhase.EXECUTION: {OrchestratorPhase.VERIFICATION},
    OrchestratorPhase.VERIFICATION: {OrchestratorPhase.CRITIQUE, OrchestratorPhase.DONE},
    OrchestratorPhase.CRITIQUE: {OrchestratorPhase.DONE},
    OrchestratorPhase.DONE: set(),
    OrchestratorPhase.FAILED: set(),
}


@dataclass
class RunContext:
    """Everything one orchestration run owns."""
    request: MultiAgentRequest
    scheduler: DependencyScheduler = field(default_factory=DependencyScheduler)
    events: ExecutionLogger = field(default_factory=ExecutionLogger)
    available_tools: List[ToolDescriptor] = field(default_factory=list)
    phase: Optional[OrchestratorPhase] = None
    run_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def agent_params(self) -> Dict[str, Any]:
        """Generation parameters forwarded to every agent."""
        return {
            "model_selection": self.request.model_selection,
            "temperature": self.request.temperature,
            "seed": self.request.seed,
        }

    def transition(self, phase: OrchestratorPhase):
        if phase != OrchestratorPhase.FAILED and phase not in TRANSITIONS[self.phase]:
            current = self.phase.value if self.phase else "start"
            raise PhaseError(current, f"illegal transition to {phase.value}")
        logger.debug(f"Run {self.run_id}: {self.phase} -> {phase.value}")
        self.phase = phase


class MultiAgentOrchestrator:
    """Drives a query through planning, execution, verification and critique."""

    def __init__(
        self,
        client: Optional[AgentClient] = None,
        tool_catalog: Optional[ToolCatalog] = None
    ):
        """Initialize the orchestrator.

        Args:
            client: Transport to the remote agents
            tool_catalog: Source of the tools the executors may use
        """
        self.client = client or AgentClient()
        self.tool_catalog = tool_catalog or get_tool_catalog(settings.tool_catalog_path)
        self._subscribers: List[tuple] = []

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register an event handler on every future run."""
        self._subscribers.append((event_type, handler))

    def is_available(self) -> bool:
        """Whether any tools are available to execute with."""
        return len(self.tool_catalog.get_available_tools()) > 0

    def _create_context(self, request: MultiAgentRequest) -> RunContext:
        context = RunContext(request=request)
        for event_type, handler in self._subscribers:
            context.events.subscribe(event_type, handler)
        return context

    async def process_query(
        self,
        query: str,
        session_id: Optional[str] = None,
        model_selection: Optional[Any] = None,
        temperature: Optional[float] = None,
        seed: Optional[int] = None,
        skip_critique: bool = False
    ) -> MultiAgentResponse:
        """Answer a query with the full multi-agent pipeline.

        Never raises: any failure becomes a response with success=False.
        """
        try:
            request = MultiAgentRequest(
                query=query,
                session_id=session_id,
                model_selection=model_selection,
                temperature=temperature,
                seed=seed,
                skip_critique=skip_critique
            )
        except SchemaValidationError as e:
            logger.error(f"Rejected multi-agent query: {e.error_count()} invalid fields")
            return MultiAgentResponse(final_answer=APOLOGY_MESSAGE, success=False)

        return await self.process_request(request)

    async def process_request(self, request: MultiAgentRequest) -> MultiAgentResponse:
        context = self._create_context(request)
        context.events.start_execution(request.query)

        logger.info(
            f"Run {context.run_id} (session {request.session_id or '-'}): "
            f"'{request.query[:50]}' temperature={request.temperature} seed={request.seed}"
        )

        try:
            # Phase 1: Planning
            plan = await self._planning_phase(context)

            # Phase 2: Execution
            tasks = await self._execution_phase(context, plan)

            # Phase 3: Verification
            verification = await self._verification_phase(context, tasks)

            # Phase 4: Critique
            if request.skip_critique:
                final_answer = verification.final_answer
                context.events.log_phase(OrchestratorPhase.CRITIQUE, {"skipped": True})
                context.events.complete_phase({"skipped": True, "answerLength": len(final_answer)})
            else:
                final_answer = await self._critique_phase(context, verification, tasks)

            context.transition(OrchestratorPhase.DONE)
            context.events.complete_execution(success=True)
            logger.info(f"Run {context.run_id} done: {context.events.get_execution_summary()}")

            return MultiAgentResponse(
                final_answer=final_answer,
                execution_log=context.events.get_execution_log(),
                tasks=tasks,
                success=True
            )

        except Exception as e:
            failed_in = context.phase
            logger.exception(f"Run {context.run_id} failed in {failed_in}: {e}")
            context.transition(OrchestratorPhase.FAILED)
            context.events.log_error("Multi-agent orchestration failed", e, phase=failed_in)
            return MultiAgentResponse(
                final_answer=APOLOGY_MESSAGE,
                execution_log=context.events.get_execution_log(),
                tasks=[],
                success=False
            )

    # ==================== Planning ====================

    async def _planning_phase(self, context: RunContext) -> ExecutionPlan:
        context.transition(OrchestratorPhase.PLANNING)
        context.events.log_phase(OrchestratorPhase.PLANNING, {"query": context.request.query})
        context.available_tools = self.tool_catalog.get_available_tools()

        planner_request = PlannerRequest(
            query=context.request.query,
            available_tools=context.available_tools,
            **context.agent_params()
        )

        try:
            planner_response = await self.client.plan(planner_request)
        except AgentCallError as e:
            raise PhaseError(OrchestratorPhase.PLANNING.value, str(e), e) from e

        if planner_response.reasoning:
            logger.debug(f"Planner reasoning: {planner_response.reasoning[:200]}")

        tasks = [planned.to_task(index) for index, planned in enumerate(planner_response.tasks)]
        plan = context.scheduler.create_execution_plan(tasks)

        context.events.complete_phase({"taskCount": len(plan.tasks), "totalSteps": plan.total_steps})
        return plan

    # ==================== Execution ====================

    def _function_tools(self, context: RunContext, names) -> List[Dict[str, Any]]:
        wanted = set(names)
        return [t.to_function_tool() for t in context.available_tools if t.name in wanted]

    def _executor_task(self, context: RunContext, task: Task) -> ExecutorTask:
        return ExecutorTask(
            id=task.id,
            description=task.description,
            tools=list(task.tools),
            dependency_results=context.scheduler.get_dependency_results(task.id)
        )

    def _complete(self, context: RunContext, task: Task, result: Any):
        task.status = TaskStatus.COMPLETED
        task.result = result
        context.scheduler.set_task_result(task.id, result)
        context.events.log_task_complete(task, result)

    def _fail(self, context: RunContext, task: Task, message: str):
        task.status = TaskStatus.FAILED
        task.error = message
        context.events.log_task_error(task, message)

    async def _execution_phase(self, context: RunContext, plan: ExecutionPlan) -> List[Task]:
        context.transition(OrchestratorPhase.EXECUTION)
        context.events.log_phase(OrchestratorPhase.EXECUTION, {"groups": plan.group_ids()})
        all_tasks = list(plan.tasks)

        for index, group in enumerate(plan.parallel_groups):
            logger.info(f"Run {context.run_id}: group {index + 1}/{plan.total_steps} {[t.id for t in group]}")

            if len(group) == 1:
                await self._run_each(context, group)
            else:
                await self._run_batch(context, group)

            failed = [t for t in group if t.status == TaskStatus.FAILED]
            if failed:
                context.events.log_error("Critical tasks failed", failed)
                for task in all_tasks:
                    if task.status == TaskStatus.PENDING:
                        task.status = TaskStatus.FAILED
                        task.error = DEPENDENCY_FAILED_ERROR
                break

        context.events.complete_phase({
            "completedTasks": len([t for t in all_tasks if t.status == TaskStatus.COMPLETED]),
            "failedTasks": len([t for t in all_tasks if t.status == TaskStatus.FAILED]),
        })
        return all_tasks

    async def _execute_task(self, context: RunContext, task: Task) -> Any:
        context.events.log_task_start(task)
        task.status = TaskStatus.EXECUTING

        request = ExecutorRequest(
            task=self._executor_task(context, task),
            pre_filtered_tools=self._function_tools(context, task.tools),
            **context.agent_params()
        )
        logger.debug(
            f"Executing task {task.id}: tools={task.tools} "
            f"dependencies={list(request.task.dependency_results)}"
        )

        try:
            response = await self.client.execute_task(request)
        except AgentCallError as e:
            raise TaskError(task.id, str(e) or "Unknown error") from e
        return response.result

    async def _run_batch(self, context: RunContext, group: List[Task]):
        """Dispatch a whole group in one multi-executor call."""
        executor_tasks = [self._executor_task(context, t) for t in group]
        required_tools = {name for t in group for name in t.tools}

        for task in group:
            context.events.log_task_start(task)
            task.status = TaskStatus.EXECUTING

        request = MultiExecutorRequest(
            tasks=executor_tasks,
            pre_filtered_tools=self._function_tools(context, required_tools),
            **context.agent_params()
        )

        try:
            response = await self.client.execute_tasks(request)
        except Exception as e:
            logger.warning(f"Multi-task execution of {[t.id for t in group]} failed: {e}")
            for task in group:
                self._fail(context, task, str(e) or "Multi-task execution error")
            return

        logger.info(
            f"Multi-task execution of {len(group)} tasks: success={response.success}, "
            f"tool calls={len(response.tool_calls or [])}"
        )

        for task in group:
            result = response.task_results.get(task.id)
            if result is None:
                self._fail(context, task, NO_RESULT_ERROR)
            else:
                self._complete(context, task, result)

    async def _run_each(self, context: RunContext, group: List[Task]):
        """Run each task of a group with its own executor call, all at once.

        Every call is awaited before returning; one failure does not cancel
        the others.
        """
        outcomes = await asyncio.gather(
            *[self._execute_task(context, task) for task in group],
            return_exceptions=True
        )
        for task, outcome in zip(group, outcomes):
            if isinstance(outcome, TaskError):
                self._fail(context, task, outcome.message)
            elif isinstance(outcome, Exception):
                self._fail(context, task, str(outcome) or type(outcome).__name__)
            else:
                self._complete(context, task, outcome)

    # ==================== Verification ====================

    async def _verification_phase(self, context: RunContext, tasks: List[Task]) -> VerifierResponse:
        context.transition(OrchestratorPhase.VERIFICATION)
        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        context.events.log_phase(OrchestratorPhase.VERIFICATION, {"taskCount": len(completed)})

        request = VerifierRequest(
            original_query=context.request.query,
            tasks=[TaskSummary(id=t.id, description=t.description, result=t.result) for t in completed],
            **context.agent_params()
        )

        try:
            verification = await self.client.verify(request)
        except AgentCallError as e:
            raise PhaseError(OrchestratorPhase.VERIFICATION.value, str(e), e) from e

        context.events.complete_phase(verification.model_dump(mode="json", by_alias=True, exclude_none=True))
        return verification

    # ==================== Critique ====================

    async def _critique_phase(
        self,
        context: RunContext,
        verification: VerifierResponse,
        tasks: List[Task]
    ) -> str:
        context.transition(OrchestratorPhase.CRITIQUE)
        context.events.log_phase(OrchestratorPhase.CRITIQUE)

        if verification.task_results is not None:
            task_results = verification.task_results
        else:
            task_results = [
                TaskSummary(id=t.id, description=t.description, result=t.result).to_payload()
                for t in tasks if t.status == TaskStatus.COMPLETED
            ]

        request = CriticRequest(
            original_query=context.request.query,
            verification=verification.model_dump(mode="json", by_alias=True, exclude_none=True),
            task_results=task_results,
            **context.agent_params()
        )

        try:
            response = await self.client.critique(request)
        except AgentCallError as e:
            raise PhaseError(OrchestratorPhase.CRITIQUE.value, str(e), e) from e

        final_answer = response.text
        context.events.complete_phase({"answerLength": len(final_answer)})
        return final_answer
