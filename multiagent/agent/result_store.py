"""Per-run storage of task results."""

from typing import Any, Dict, Iterable


class TaskResultStore:
    """Maps task id to the result its executor produced.

    One store belongs to exactly one run. Dependents read from it to get
    the context their upstream tasks produced.
    """

    def __init__(self):
        self._results: Dict[str, Any] = {}

    def set(self, task_id: str, result: Any) -> None:
        self._results[task_id] = result

    def get(self, task_id: str, default: Any = None) -> Any:
        return self._results.get(task_id, default)

    def collect(self, task_ids: Iterable[str]) -> Dict[str, Any]:
        """Results of the given ids that have been recorded so far."""
        return {tid: self._results[tid] for tid in task_ids if tid in self._results}

    def clear(self) -> None:
        self._results.clear()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._results

    def __len__(self) -> int:
        return len(self._results)
