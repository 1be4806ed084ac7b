"""Dependency Graph Scheduler - Orders a task plan for parallel execution.

The scheduler is responsible for:
1. Validating a plan (dangling, duplicate and self dependencies)
2. Detecting dependency cycles
3. Computing a deterministic topological order (Kahn's algorithm)
4. Packing that order into groups of mutually independent tasks
5. Handing upstream results to the tasks that depend on them

The packing step is greedy: it is deterministic and simple, not a
minimum-group solver.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Set

from multiagent.agent.errors import ValidationError, CycleError
from multiagent.agent.result_store import TaskResultStore
from multiagent.agent.schemas import Task

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """Tasks ordered into sequential groups of parallel work."""
    tasks: List[Task] = field(default_factory=list)
    total_steps: int = 0
    parallel_groups: List[List[Task]] = field(default_factory=list)

    def group_ids(self) -> List[List[str]]:
        return [[t.id for t in group] for group in self.parallel_groups]


class DependencyScheduler:
    """Builds the execution plan for one run and tracks its results."""

    def __init__(self, result_store: Optional[TaskResultStore] = None):
        """Initialize the scheduler.

        Args:
            result_store: Store for task results; a fresh one if omitted
        """
        self.tasks: Dict[str, Task] = {}
        self.results = result_store if result_store is not None else TaskResultStore()
        self._ancestors: Dict[str, Set[str]] = {}

    def reset(self):
        """Forget all tasks and results."""
        self.tasks.clear()
        self.results.clear()
        self._ancestors = {}

    # ==================== Validation ====================

    def validate(self, tasks: List[Task]) -> List[str]:
        """Check a plan for structural errors.

        Args:
            tasks: Candidate plan

        Returns:
            Every violation found; empty when the plan is sound
        """
        errors: List[str] = []

        task_ids = {t.id for t in tasks}
        for task in tasks:
            for dependency in task.dependencies:
                if dependency not in task_ids:
                    errors.append(f"Task {task.id} depends on non-existent task {dependency}")

        seen_ids: Set[str] = set()
        for task in tasks:
            if task.id in seen_ids:
                errors.append(f"Duplicate task ID: {task.id}")
            seen_ids.add(task.id)

        for task in tasks:
            if task.id in task.dependencies:
                errors.append(f"Task {task.id} has self-dependency")

        return errors

    def has_cycle(self, tasks: List[Task]) -> bool:
        """Detect a dependency cycle with an iterative depth-first search.

        A task met again while it is still on the DFS stack closes a cycle.
        Every component is searched. Unknown dependency ids are ignored.
        """
        by_id = {t.id: t for t in tasks}
        visited: Set[str] = set()
        on_stack: Set[str] = set()

        for root in tasks:
            if root.id in visited:
                continue

            visited.add(root.id)
            on_stack.add(root.id)
            stack = [(root.id, iter(root.dependencies))]

            while stack:
                task_id, deps = stack[-1]
                advanced = False
                for dep in deps:
                    if dep in on_stack:
                        return True
                    if dep in visited or dep not in by_id:
                        continue
                    visited.add(dep)
                    on_stack.add(dep)
                    stack.append((dep, iter(by_id[dep].dependencies)))
                    advanced = True
                    break

                if not advanced:
                    on_stack.discard(task_id)
                    stack.pop()

        return False

    # ==================== Planning ====================

    def create_execution_plan(self, tasks: List[Task]) -> ExecutionPlan:
        """Validate, order and group a plan.

        Args:
            tasks: Tasks from the planner

        Returns:
            ExecutionPlan with parallel groups and execution_order set

        Raises:
            ValidationError: If the plan is structurally invalid
            CycleError: If dependencies are circular
        """
        self.reset()
        for task in tasks:
            self.tasks[task.id] = task

        errors = self.validate(tasks)
        if errors:
            raise ValidationError(errors)

        if self.has_cycle(tasks):
            raise CycleError()

        order = self.topological_order(tasks)
        self._ancestors = self._compute_ancestors(order)
        parallel_groups = self._create_parallel_groups(order)

        for index, group in enumerate(parallel_groups):
            for task in group:
                task.execution_order = index

        logger.info(
            f"Execution plan: {len(tasks)} tasks in {len(parallel_groups)} groups "
            f"{[[t.id for t in g] for g in parallel_groups]}"
        )

        return ExecutionPlan(
            tasks=tasks,
            total_steps=len(parallel_groups),
            parallel_groups=parallel_groups
        )

    def topological_order(self, tasks: List[Task]) -> List[str]:
        """Kahn's algorithm; ties are broken by input order (FIFO)."""
        in_degree: Dict[str, int] = {}
        dependents: Dict[str, List[str]] = {}

        for task in tasks:
            in_degree[task.id] = len(task.dependencies)
            dependents[task.id] = []

        for task in tasks:
            for dep in task.dependencies:
                dependents.setdefault(dep, []).append(task.id)

        queue = deque(task_id for task_id, degree in in_degree.items() if degree == 0)
        order: List[str] = []

        while queue:
            current = queue.popleft()
            order.append(current)
            for dependent in dependents.get(current, []):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        return order

    def _compute_ancestors(self, order: List[str]) -> Dict[str, Set[str]]:
        """Transitive dependency sets, built along the topological order."""
        ancestors: Dict[str, Set[str]] = {}
        for task_id in order:
            closure: Set[str] = set()
            for dep in self.tasks[task_id].dependencies:
                closure.add(dep)
                closure |= ancestors.get(dep, set())
            ancestors[task_id] = closure
        return ancestors

    def _related(self, a: str, b: str) -> bool:
        return a in self._ancestors.get(b, ()) or b in self._ancestors.get(a, ())

    def _create_parallel_groups(self, order: List[str]) -> List[List[Task]]:
        groups: List[List[Task]] = []

        for task_id in order:
            task = self.tasks[task_id]
            target: Optional[List[Task]] = None

            for group in groups:
                if all(not self._related(task_id, other.id) for other in group):
                    target = group
                    break

            if target is None:
                target = []
                groups.append(target)

            target.append(task)

        return groups

    def depends_on(self, task_id: str, potential_dependency: str) -> bool:
        """Whether task_id depends on potential_dependency, directly or not."""
        return potential_dependency in self._ancestors.get(task_id, ())

    # ==================== Results ====================

    def get_dependency_results(self, task_id: str) -> Dict[str, Any]:
        """Results of the task's dependencies that have completed so far."""
        task = self.tasks.get(task_id)
        if task is None:
            return {}
        return self.results.collect(task.dependencies)

    def set_task_result(self, task_id: str, result: Any) -> None:
        self.results.set(task_id, result)

    # ==================== Diagnostics ====================

    def critical_path(self) -> List[str]:
        """Longest dependency chain, from the dependent end down to a root.

        Used for diagnostics only; never for ordering.
        """
        if not self.tasks:
            return []

        order = self.topological_order(list(self.tasks.values()))
        chains: Dict[str, List[str]] = {}
        for task_id in order:
            best: List[str] = []
            for dep in self.tasks[task_id].dependencies:
                chain = chains.get(dep, [])
                if len(chain) > len(best):
                    best = chain
            chains[task_id] = [task_id] + best

        longest: List[str] = []
        for task_id in self.tasks:
            chain = chains.get(task_id, [])
            if len(chain) > len(longest):
                longest = chain
        return longest

    def get_execution_visualization(self) -> Dict[str, Any]:
        """Grid layout of the registered tasks plus dependency edges."""
        nodes = [
            {
                "id": task.id,
                "task": task.model_dump(mode="json", by_alias=True),
                "x": (index % 5) * 120,
                "y": (index // 5) * 80,
                "width": 100,
                "height": 50,
            }
            for index, task in enumerate(self.tasks.values())
        ]

        edges = [
            {"source": dep, "target": task.id, "points": []}
            for task in self.tasks.values()
            for dep in task.dependencies
        ]

        return {"nodes": nodes, "edges": edges}
