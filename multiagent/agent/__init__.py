"""Multi-Agent Task Orchestration.

This package turns one query into a dependency graph of subtasks and runs
it against remote agents:
- Planner: decomposes the query into tasks
- Executors: run tasks, one at a time or batched per parallel group
- Verifier: consolidates task results into a draft answer
- Critic: optionally polishes the draft

Key components:
- DependencyScheduler: validation, ordering and parallel grouping
- AgentClient: typed HTTP transport to the agents
- ExecutionLogger: lifecycle events of a run
- MultiAgentOrchestrator: the four-phase state machine
"""

from multiagent.agent.schemas import (
    # Tasks
    Task,
    TaskStatus,
    SystemRole,
    PlannedTask,
    ToolDescriptor,
    # Trace
    EventType,
    ExecutionStep,
    OrchestratorPhase,
    TaskExecutionLog,
    # Top-level
    MultiAgentRequest,
    MultiAgentResponse,
)

from multiagent.agent.errors import (
    OrchestrationError,
    PlanError,
    ValidationError,
    CycleError,
    TaskError,
    PhaseError,
)

from multiagent.agent.result_store import TaskResultStore
from multiagent.agent.scheduler import DependencyScheduler, ExecutionPlan
from multiagent.agent.events import ExecutionLogger
from multiagent.agent.client import AgentClient, AgentCallError
from multiagent.agent.orchestrator import MultiAgentOrchestrator, RunContext

__all__ = [
    # Schemas
    "Task",
    "TaskStatus",
    "SystemRole",
    "PlannedTask",
    "ToolDescriptor",
    "EventType",
    "ExecutionStep",
    "OrchestratorPhase",
    "TaskExecutionLog",
    "MultiAgentRequest",
    "MultiAgentResponse",
    # Errors
    "OrchestrationError",
    "PlanError",
    "ValidationError",
    "CycleError",
    "TaskError",
    "PhaseError",
    # Components
    "TaskResultStore",
    "DependencyScheduler",
    "ExecutionPlan",
    "ExecutionLogger",
    "AgentClient",
    "AgentCallError",
    "MultiAgentOrchestrator",
    "RunContext",
]
