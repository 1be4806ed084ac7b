"""Data models and agent message schemas for the multi-agent orchestrator."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union
from pydantic import ConfigDict, Field

from multiagent.models.tools import AgentModel, ToolInputSchema, ToolDescriptor


# ============== Enums ==============

class TaskStatus(str, Enum):
    """Lifecycle of a single task within a run."""
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class SystemRole(str, Enum):
    """Which agent a task is addressed to."""
    PLANNER = "planner"
    EXECUTOR = "executor"
    VERIFIER = "verifier"
    CRITIC = "critic"


class OrchestratorPhase(str, Enum):
    """States of the orchestration state machine."""
    PLANNING = "planning"
    EXECUTION = "execution"
    VERIFICATION = "verification"
    CRITIQUE = "critique"
    DONE = "done"
    FAILED = "failed"


class EventType(str, Enum):
    """Kinds of lifecycle events emitted during a run."""
    PHASE_START = "phase_start"
    PHASE_COMPLETE = "phase_complete"
    TASK_START = "task_start"
    TASK_COMPLETE = "task_complete"
    TASK_ERROR = "task_error"
    ERROR = "error"


# ============== Task Models ==============

class Task(AgentModel):
    """A unit of work produced by the planner and run by an executor."""
    id: str
    description: str
    dependencies: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[Any] = None
    error: Optional[str] = None
    system_role: SystemRole = SystemRole.EXECUTOR
    execution_order: int = 0


class PlannedTask(AgentModel):
    """Raw task descriptor as returned by the planner agent."""
    id: Optional[str] = None
    description: str
    dependencies: Optional[List[str]] = None
    tools: Optional[List[str]] = None

    def to_task(self, index: int) -> Task:
        return Task(
            id=self.id or f"task_{index}",
            description=self.description,
            dependencies=list(self.dependencies or []),
            tools=list(self.tools or []),
            status=TaskStatus.PENDING,
            system_role=SystemRole.EXECUTOR,
            execution_order=0,
        )


# ============== Agent Requests ==============

class AgentRequest(AgentModel):
    """Generation parameters shared by every agent request."""
    model_selection: Optional[Any] = None
    temperature: Optional[float] = None
    seed: Optional[int] = None


class PlannerRequest(AgentRequest):
    query: str
    available_tools: List[ToolDescriptor] = Field(default_factory=list)


class ExecutorTask(AgentModel):
    """Task as sent to an executor, with upstream results attached."""
    id: str
    description: str
    tools: List[str] = Field(default_factory=list)
    dependency_results: Dict[str, Any] = Field(default_factory=dict)


class ExecutorRequest(AgentRequest):
    task: ExecutorTask
    pre_filtered_tools: List[Dict[str, Any]] = Field(default_factory=list)


class MultiExecutorRequest(AgentRequest):
    tasks: List[ExecutorTask]
    pre_filtered_tools: List[Dict[str, Any]] = Field(default_factory=list)


class TaskSummary(AgentModel):
    """Completed task as handed to the verifier."""
    id: str
    description: str
    result: Optional[Any] = None

    def to_payload(self) -> Dict[str, Any]:
        # result is always sent, null included
        return self.model_dump(mode="json", by_alias=True)


class VerifierRequest(AgentRequest):
    original_query: str
    tasks: List[TaskSummary] = Field(default_factory=list)


class CriticRequest(AgentRequest):
    original_query: str
    verification: Dict[str, Any]
    task_results: List[Any] = Field(default_factory=list)


# ============== Agent Responses ==============

class PlannerResponse(AgentModel):
    tasks: List[PlannedTask]
    reasoning: Optional[str] = None


class ExecutorResponse(AgentModel):
    result: Any
    tool_calls: Optional[List[Any]] = None


class MultiExecutorResponse(AgentModel):
    task_results: Dict[str, Any] = Field(default_factory=dict)
    tool_calls: Optional[List[Any]] = None
    success: bool = True


class VerifierResponse(AgentModel):
    final_answer: str
    confidence: Optional[Union[float, str]] = None
    overall_correct: Optional[bool] = None
    task_results: Optional[List[Any]] = None
    reasoning: Optional[str] = None

    # Keep whatever else the verifier returned so the critic sees all of it
    model_config = ConfigDict(extra="allow")


class CriticResponse(AgentModel):
    final_answer: Optional[str] = None
    answer: Optional[str] = None

    @property
    def text(self) -> str:
        return self.final_answer or self.answer or "No answer generated"


# ============== Trace Models ==============

class ExecutionStep(AgentModel):
    """One lifecycle event recorded during a run."""
    timestamp: datetime = Field(default_factory=datetime.now)
    phase: OrchestratorPhase
    type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)
    task_id: Optional[str] = None
    duration: Optional[float] = Field(default=None, description="Milliseconds")


class TaskExecutionLog(AgentModel):
    """Timing record of a single task."""
    task_id: str
    description: str
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    status: TaskStatus = TaskStatus.EXECUTING
    result: Optional[Any] = None
    error: Optional[str] = None


# ============== Top-level ==============

class MultiAgentRequest(AgentModel):
    """Parameters of one orchestration run."""
    query: str = Field(..., min_length=1, max_length=10000)
    session_id: Optional[str] = None
    model_selection: Optional[Any] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    seed: Optional[int] = None
    skip_critique: bool = False


class MultiAgentResponse(AgentModel):
    """What the caller of an orchestration run gets back."""
    final_answer: str
    execution_log: List[ExecutionStep] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    success: bool
