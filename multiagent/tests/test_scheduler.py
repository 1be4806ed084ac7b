"""Unit tests for the dependency graph scheduler."""

import pytest

from multiagent.agent.errors import ValidationError, CycleError
from multiagent.agent.result_store import TaskResultStore
from multiagent.agent.scheduler import DependencyScheduler

from conftest import make_task


def assert_groups_sound(scheduler, plan):
    """No related tasks share a group; concatenated groups are topological."""
    position = {}
    for index, group in enumerate(plan.parallel_groups):
        for task in group:
            position[task.id] = index
        for a in group:
            for b in group:
                if a.id != b.id:
                    assert not scheduler.depends_on(a.id, b.id)

    for task in plan.tasks:
        for dep in task.dependencies:
            assert position[dep] < position[task.id]


class TestValidation:
    """Tests for plan validation."""

    def test_valid_plan_has_no_errors(self):
        """Test a sound plan yields no errors."""
        tasks = [make_task("a"), make_task("b", ["a"])]
        assert DependencyScheduler().validate(tasks) == []

    def test_dangling_dependency(self):
        """Test an unknown dependency id is reported."""
        errors = DependencyScheduler().validate([make_task("a", ["ghost"])])
        assert errors == ["Task a depends on non-existent task ghost"]

    def test_duplicate_id(self):
        """Test duplicate ids are reported once per extra occurrence."""
        errors = DependencyScheduler().validate([make_task("a"), make_task("a")])
        assert errors == ["Duplicate task ID: a"]

    def test_self_dependency(self):
        """Test a task depending on itself is reported."""
        errors = DependencyScheduler().validate([make_task("a", ["a"])])
        assert errors == ["Task a has self-dependency"]

    def test_errors_reported_in_check_order(self):
        """Test dangling, then duplicate, then self-dependency errors."""
        tasks = [make_task("a", ["a"]), make_task("b", ["x"]), make_task("b")]
        errors = DependencyScheduler().validate(tasks)
        assert errors == [
            "Task b depends on non-existent task x",
            "Duplicate task ID: b",
            "Task a has self-dependency",
        ]

    def test_create_plan_raises_validation_error(self):
        """Test create_execution_plan carries every error."""
        scheduler = DependencyScheduler()
        with pytest.raises(ValidationError) as exc_info:
            scheduler.create_execution_plan([make_task("a", ["ghost"]), make_task("a")])

        assert len(exc_info.value.errors) == 2
        assert str(exc_info.value).startswith("Invalid task plan: ")


class TestCycleDetection:
    """Tests for cycle detection."""

    def test_two_cycle(self):
        """Test a <-> b is a cycle."""
        tasks = [make_task("a", ["b"]), make_task("b", ["a"])]
        assert DependencyScheduler().has_cycle(tasks) is True

    def test_long_cycle_in_second_component(self):
        """Test cycles are found outside the first component."""
        tasks = [
            make_task("solo"),
            make_task("x", ["z"]),
            make_task("y", ["x"]),
            make_task("z", ["y"]),
        ]
        assert DependencyScheduler().has_cycle(tasks) is True

    def test_diamond_is_not_a_cycle(self):
        """Test shared ancestors are not mistaken for cycles."""
        tasks = [
            make_task("a"),
            make_task("b", ["a"]),
            make_task("c", ["a"]),
            make_task("d", ["b", "c"]),
        ]
        assert DependencyScheduler().has_cycle(tasks) is False

    def test_unknown_dependencies_ignored(self):
        """Test has_cycle does not trip on dangling ids."""
        assert DependencyScheduler().has_cycle([make_task("a", ["ghost"])]) is False

    def test_deep_chain_does_not_recurse(self):
        """Test a chain far deeper than the recursion limit."""
        tasks = [make_task("t0")] + [make_task(f"t{i}", [f"t{i - 1}"]) for i in range(1, 5000)]
        assert DependencyScheduler().has_cycle(tasks) is False

    def test_create_plan_raises_cycle_error(self):
        """Test create_execution_plan rejects cycles."""
        with pytest.raises(CycleError, match="Circular dependencies detected in task plan"):
            DependencyScheduler().create_execution_plan([make_task("a", ["b"]), make_task("b", ["a"])])


class TestExecutionPlan:
    """Tests for ordering and parallel grouping."""

    def test_topological_order_uses_input_order_for_ties(self):
        """Test Kahn ordering seeded in input order."""
        tasks = [make_task("c", ["a", "b"]), make_task("a"), make_task("b")]
        assert DependencyScheduler().topological_order(tasks) == ["a", "b", "c"]

    def test_two_roots_then_join(self):
        """Test A, B -> C gives [[A, B], [C]]."""
        scheduler = DependencyScheduler()
        plan = scheduler.create_execution_plan([
            make_task("a"), make_task("b"), make_task("c", ["a", "b"])
        ])

        assert plan.group_ids() == [["a", "b"], ["c"]]
        assert plan.total_steps == 2
        assert [t.execution_order for t in plan.tasks] == [0, 0, 1]

    def test_chain_with_independent_task(self):
        """Test an independent task joins the first group."""
        scheduler = DependencyScheduler()
        plan = scheduler.create_execution_plan([
            make_task("a"), make_task("b", ["a"]), make_task("c", ["b"]), make_task("d")
        ])

        assert plan.group_ids() == [["a", "d"], ["b"], ["c"]]
        assert_groups_sound(scheduler, plan)

    def test_siblings_share_a_group(self):
        """Test tasks with the same parent run together."""
        scheduler = DependencyScheduler()
        plan = scheduler.create_execution_plan([
            make_task("a"), make_task("b", ["a"]), make_task("c", ["b"]), make_task("d", ["a"])
        ])

        assert plan.group_ids() == [["a"], ["b", "d"], ["c"]]

    def test_larger_graph_is_sound(self):
        """Test grouping invariants on a wider DAG."""
        scheduler = DependencyScheduler()
        plan = scheduler.create_execution_plan([
            make_task("fetch_a"),
            make_task("fetch_b"),
            make_task("parse_a", ["fetch_a"]),
            make_task("parse_b", ["fetch_b"]),
            make_task("merge", ["parse_a", "parse_b"]),
            make_task("side"),
            make_task("report", ["merge", "side"]),
        ])

        assert sum(len(g) for g in plan.parallel_groups) == 7
        assert_groups_sound(scheduler, plan)

    def test_planning_is_deterministic(self):
        """Test identical input gives an identical plan."""
        def build():
            return DependencyScheduler().create_execution_plan([
                make_task("a"), make_task("b", ["a"]), make_task("c"), make_task("d", ["c", "b"])
            ]).group_ids()

        assert build() == build()

    def test_replanning_same_tasks_is_stable(self):
        """Test one scheduler planning the same list twice gives the same plan."""
        scheduler = DependencyScheduler()
        tasks = [make_task("a"), make_task("b", ["a"]), make_task("c"), make_task("d", ["c", "b"])]

        first = scheduler.create_execution_plan(tasks)
        second = scheduler.create_execution_plan(tasks)

        assert second.group_ids() == first.group_ids() == [["a", "c"], ["b"], ["d"]]
        assert [t.execution_order for t in second.tasks] == [0, 1, 0, 2]
        assert scheduler.topological_order(tasks) == ["a", "c", "b", "d"]

    def test_empty_plan(self):
        """Test an empty task list gives an empty plan."""
        plan = DependencyScheduler().create_execution_plan([])
        assert plan.total_steps == 0
        assert plan.parallel_groups == []

    def test_depends_on_is_transitive(self):
        """Test depends_on follows chains."""
        scheduler = DependencyScheduler()
        scheduler.create_execution_plan([make_task("a"), make_task("b", ["a"]), make_task("c", ["b"])])

        assert scheduler.depends_on("c", "a")
        assert not scheduler.depends_on("a", "c")


class TestResults:
    """Tests for result propagation."""

    def test_dependency_results_only_for_completed(self):
        """Test only recorded dependency results are returned."""
        scheduler = DependencyScheduler()
        scheduler.create_execution_plan([make_task("a"), make_task("b"), make_task("c", ["a", "b"])])
        scheduler.set_task_result("a", {"temp": 21})

        assert scheduler.get_dependency_results("c") == {"a": {"temp": 21}}

    def test_unknown_task_has_no_results(self):
        """Test unknown ids give an empty mapping."""
        assert DependencyScheduler().get_dependency_results("nope") == {}

    def test_set_result_overwrites(self):
        """Test setting a result twice keeps the last one."""
        scheduler = DependencyScheduler()
        scheduler.create_execution_plan([make_task("a"), make_task("b", ["a"])])
        scheduler.set_task_result("a", 1)
        scheduler.set_task_result("a", 2)

        assert scheduler.get_dependency_results("b") == {"a": 2}

    def test_new_plan_clears_results(self):
        """Test create_execution_plan starts from an empty store."""
        store = TaskResultStore()
        scheduler = DependencyScheduler(result_store=store)
        scheduler.create_execution_plan([make_task("a"), make_task("b", ["a"])])
        scheduler.set_task_result("a", "old")

        scheduler.create_execution_plan([make_task("a"), make_task("b", ["a"])])

        assert len(store) == 0
        assert scheduler.get_dependency_results("b") == {}


class TestDiagnostics:
    """Tests for critical path and visualization."""

    def test_critical_path_listed_from_dependent_end(self):
        """Test the longest chain is returned leaf first."""
        scheduler = DependencyScheduler()
        scheduler.create_execution_plan([
            make_task("a"), make_task("b", ["a"]), make_task("c", ["b"]), make_task("d")
        ])

        assert scheduler.critical_path() == ["c", "b", "a"]

    def test_critical_path_empty(self):
        """Test no tasks means no path."""
        assert DependencyScheduler().critical_path() == []

    def test_visualization_grid(self):
        """Test nodes are laid out five per row."""
        scheduler = DependencyScheduler()
        scheduler.create_execution_plan(
            [make_task(f"t{i}") for i in range(6)] + [make_task("last", ["t0"])]
        )
        graph = scheduler.get_execution_visualization()

        sixth = graph["nodes"][5]
        assert (sixth["x"], sixth["y"]) == (0, 80)
        assert (graph["nodes"][1]["x"], graph["nodes"][1]["width"], graph["nodes"][1]["height"]) == (120, 100, 50)
        assert graph["edges"] == [{"source": "t0", "target": "last", "points": []}]
