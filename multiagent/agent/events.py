"""Execution logger - Structured lifecycle events for one orchestration run.

Every phase and task transition is recorded as an ExecutionStep. The steps
are kept for the response's execution log and pushed to any subscribers.
Subscribers are fire-and-forget: a failing or slow subscriber never affects
the run.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from multiagent.agent.schemas import (
    EventType, ExecutionStep, OrchestratorPhase, Task, TaskExecutionLog, TaskStatus
)

logger = logging.getLogger(__name__)

# Handlers receive the recorded step; may be plain or async callables
EventHandler = Callable[[ExecutionStep], Any]

ALL_EVENTS = "*"


def _duration_ms(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() * 1000


def _error_text(error: Any) -> str:
    return str(error) if isinstance(error, BaseException) else f"{error}"


class ExecutionLogger:
    """Records the execution log of a single run."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()
        self.clear()

    def clear(self):
        """Reset the log for a new run. Subscribers are kept."""
        self.execution_log: List[ExecutionStep] = []
        self.task_logs: Dict[str, TaskExecutionLog] = {}
        self.execution_start_time: Optional[datetime] = None
        self.current_phase: Optional[OrchestratorPhase] = None
        self.last_phase: Optional[OrchestratorPhase] = None
        self.phase_start_time: Optional[datetime] = None

    # ==================== Subscribers ====================

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for one event type, or "*" for all of them."""
        self._handlers[event_type].append(handler)

    def _dispatch(self, step: ExecutionStep) -> None:
        handlers = self._handlers.get(step.type.value, []) + self._handlers.get(ALL_EVENTS, [])
        for handler in handlers:
            try:
                outcome = handler(step)
                if inspect.iscoroutine(outcome):
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        outcome.close()
                        logger.warning(f"No running loop for async handler of {step.type.value}")
                        continue
                    task = loop.create_task(outcome)
                    self._pending.add(task)
                    task.add_done_callback(self._on_handler_done)
            except Exception as e:
                logger.warning(f"Event handler for {step.type.value} failed: {e}")

    def _on_handler_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Async event handler failed: {task.exception()}")

    # ==================== Recording ====================

    def _log(
        self,
        phase: OrchestratorPhase,
        type: EventType,
        data: Dict[str, Any],
        task_id: Optional[str] = None,
        duration: Optional[float] = None
    ) -> ExecutionStep:
        step = ExecutionStep(phase=phase, type=type, data=data, task_id=task_id, duration=duration)
        self.execution_log.append(step)

        if type == EventType.ERROR or type == EventType.TASK_ERROR:
            logger.error(f"[{phase.value}] {type.value}: {data}")
        elif type in (EventType.TASK_START, EventType.TASK_COMPLETE):
            logger.debug(f"[{phase.value}] {type.value} {task_id}")
        else:
            logger.info(f"[{phase.value}] {type.value}: {data}")

        self._dispatch(step)
        return step

    def start_execution(self, query: str) -> None:
        """Start a fresh run. Phases are opened by log_phase."""
        self.clear()
        self.execution_start_time = datetime.now()
        logger.debug(f"Execution started: '{query[:50]}'")

    def log_phase(self, phase: OrchestratorPhase, data: Optional[Dict[str, Any]] = None) -> None:
        """Open a phase, closing the previous one if it is still open."""
        self.complete_phase()
        self.current_phase = phase
        self.last_phase = phase
        self.phase_start_time = datetime.now()
        self._log(
            phase,
            EventType.PHASE_START,
            {"phase": phase.value, **(data or {}), "startTime": self.phase_start_time.isoformat()}
        )

    def complete_phase(self, data: Optional[Dict[str, Any]] = None) -> None:
        """Close the open phase, attaching its outcome summary."""
        if self.current_phase is None or self.phase_start_time is None:
            return
        duration = _duration_ms(self.phase_start_time, datetime.now())
        self._log(
            self.current_phase,
            EventType.PHASE_COMPLETE,
            {**(data or {}), "phase": self.current_phase.value, "duration": duration},
            duration=duration
        )
        self.current_phase = None
        self.phase_start_time = None

    def log_task_start(self, task: Task) -> None:
        self.task_logs[task.id] = TaskExecutionLog(task_id=task.id, description=task.description)
        self._log(
            OrchestratorPhase.EXECUTION,
            EventType.TASK_START,
            {
                "taskId": task.id,
                "description": task.description,
                "tools": list(task.tools),
                "dependencies": list(task.dependencies),
            },
            task_id=task.id
        )

    def _finish_task(self, task_id: str, status: TaskStatus, **fields) -> Optional[float]:
        task_log = self.task_logs.get(task_id)
        if task_log is None:
            return None
        task_log.end_time = datetime.now()
        task_log.duration = _duration_ms(task_log.start_time, task_log.end_time)
        task_log.status = status
        for name, value in fields.items():
            setattr(task_log, name, value)
        return task_log.duration

    def log_task_complete(self, task: Task, result: Any) -> None:
        duration = self._finish_task(task.id, TaskStatus.COMPLETED, result=result)
        self._log(
            OrchestratorPhase.EXECUTION,
            EventType.TASK_COMPLETE,
            {"taskId": task.id, "result": result, "duration": duration},
            task_id=task.id,
            duration=duration
        )

    def log_task_error(self, task: Task, error: Any) -> None:
        message = _error_text(error)
        duration = self._finish_task(task.id, TaskStatus.FAILED, error=message)
        self._log(
            OrchestratorPhase.EXECUTION,
            EventType.TASK_ERROR,
            {"taskId": task.id, "error": message, "duration": duration},
            task_id=task.id,
            duration=duration
        )

    def log_error(
        self,
        message: str,
        error: Any = None,
        phase: Optional[OrchestratorPhase] = None
    ) -> None:
        """Record an error, tagged with the given phase or the open one."""
        data: Dict[str, Any] = {"message": message}
        if isinstance(error, list):
            data["error"] = [
                {"taskId": t.id, "error": t.error} if isinstance(t, Task) else _error_text(t)
                for t in error
            ]
        elif error is not None:
            data["error"] = _error_text(error)
            if isinstance(error, BaseException):
                data["exceptionType"] = type(error).__name__
        tag = phase or self.current_phase or self.last_phase or OrchestratorPhase.PLANNING
        self._log(tag, EventType.ERROR, data)

    def complete_execution(self, success: bool) -> None:
        self.complete_phase()
        summary = self.get_execution_summary()
        self._log(
            self.last_phase or OrchestratorPhase.PLANNING,
            EventType.PHASE_COMPLETE,
            {
                "totalDuration": summary["totalDuration"],
                "totalTasks": summary["totalTasks"],
                "completedTasks": summary["completedTasks"],
                "failedTasks": summary["failedTasks"],
                "success": success,
            },
            duration=summary["totalDuration"]
        )

    # ==================== Queries ====================

    def get_execution_log(self) -> List[ExecutionStep]:
        return list(self.execution_log)

    def get_task_logs(self) -> List[TaskExecutionLog]:
        return list(self.task_logs.values())

    def get_execution_summary(self) -> Dict[str, Any]:
        """Aggregate timings of the run so far."""
        total = (
            _duration_ms(self.execution_start_time, datetime.now())
            if self.execution_start_time else 0.0
        )
        task_logs = self.get_task_logs()
        timed = [t for t in task_logs if t.duration is not None]

        phases: Dict[str, float] = {}
        for step in self.execution_log:
            if step.type == EventType.PHASE_COMPLETE and step.duration and "phase" in step.data:
                phases[step.phase.value] = step.duration

        longest = max(timed, key=lambda t: t.duration) if timed else None

        return {
            "totalDuration": total,
            "totalTasks": len(task_logs),
            "completedTasks": len([t for t in task_logs if t.status == TaskStatus.COMPLETED]),
            "failedTasks": len([t for t in task_logs if t.status == TaskStatus.FAILED]),
            "phases": phases,
            "averageTaskDuration": round(sum(t.duration for t in timed) / len(timed)) if timed else 0,
            "longestTask": longest.task_id if longest else None,
        }
