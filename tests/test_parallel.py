"""Test ParallelBlock fan-out, error aggregation and environment isolation."""
import pytest
import random
import sys
import threading
import time
from pathlib import Path
from typing import Any, List

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from silk.errors import (
    AggregateError,
    DivisionByZeroError,
    ErrorKind,
    InternalError,
    RecursionDepthError,
    UndefinedFunctionError,
    UndefinedVariableError,
)
from silk.nodes import (
    Assignment,
    BinaryExpr,
    FunctionCall,
    FunctionDeclaration,
    Number,
    ParallelBlock,
    Program,
    ReturnStatement,
    String,
    Variable,
)
from silk.runtime.executor import ExecutionConfig, Executor
from silk.runtime.parallel import ParallelRunner


def num(value):
    return Number(value=value)


def var(name):
    return Variable(name=name)


def assign(name, value):
    return Assignment(target=Variable(name=name), value=value)


def call(name, *args):
    return FunctionCall(name=name, args=list(args))


def jitter(args):
    time.sleep(random.random() * 0.01)
    return None


class TestParallelRunner:
    """Tests for ParallelRunner."""

    def test_default_workers(self):
        """Test the default limit is at least one worker."""
        assert ParallelRunner().max_workers >= 1

    def test_invalid_workers(self):
        """Test a zero limit is rejected."""
        with pytest.raises(ValueError):
            ParallelRunner(0)

    def test_outcomes_in_child_order(self):
        """Test outcomes are indexed by child, not completion order."""
        def work(index):
            time.sleep((5 - index) * 0.005)
            if index == 1:
                raise DivisionByZeroError()
            return {f"v{index}": index}

        outcomes = ParallelRunner(5).run(5, work)
        assert [o.index for o in outcomes] == [0, 1, 2, 3, 4]
        assert outcomes[1].success is False
        assert outcomes[4].writes == {"v4": 4}

    def test_empty_run(self):
        """Test running no children."""
        assert ParallelRunner(2).run(0, lambda index: {}) == []

    def test_foreign_exception_becomes_outcome(self):
        """Test a non-engine exception fails only its own child."""
        def work(index):
            if index == 0:
                raise ValueError("bad child")
            if index == 1:
                raise DivisionByZeroError()
            return {"ok": index}

        outcomes = ParallelRunner(3).run(3, work)
        assert isinstance(outcomes[0].error, InternalError)
        assert isinstance(outcomes[0].error.__cause__, ValueError)
        assert isinstance(outcomes[1].error, DivisionByZeroError)
        assert outcomes[2].writes == {"ok": 2}

    def test_not_in_child_outside_run(self):
        """Test the calling thread is not treated as a child."""
        runner = ParallelRunner(2)
        seen = runner.run(2, lambda index: {"child": runner.in_child()})
        assert [o.writes["child"] for o in seen] == [True, True]
        assert runner.in_child() is False


class TestParallelBlock:
    """Tests for ParallelBlock semantics."""

    def test_all_children_succeed(self, executor: Executor, collected: List[Any]):
        """Test a successful block yields no value and no error."""
        executor.register_builtin("jitter", jitter)
        block = ParallelBlock(body=[
            Program(body=[call("jitter"), call("collect", num(i))]) for i in range(5)
        ])
        result = executor.execute(block)
        assert result.success is True
        assert result.error is None
        assert result.value is None
        assert sorted(collected) == [0.0, 1.0, 2.0, 3.0, 4.0]

    def test_empty_block(self, executor: Executor):
        """Test an empty block succeeds."""
        result = executor.execute(ParallelBlock(body=[]))
        assert result.success is True

    def test_aggregate_of_three_errors(self, executor: Executor):
        """Test every child error is reported regardless of completion order."""
        executor.register_builtin("jitter", jitter)
        block = ParallelBlock(body=[
            Program(body=[call("jitter"), var("missing")]),
            Program(body=[call("jitter"), BinaryExpr(op="/", left=num(1), right=num(0))]),
            Program(body=[call("jitter"), call("nowhere")]),
        ])
        for _ in range(5):
            result = executor.execute(block)
            assert result.success is False
            assert isinstance(result.error, AggregateError)
            assert result.error.kind == ErrorKind.AGGREGATE
            assert len(result.error) == 3
            kinds = [type(e) for e in result.error]
            assert kinds == [UndefinedVariableError, DivisionByZeroError, UndefinedFunctionError]
            assert result.errors == [
                "undefined variable: missing",
                "division by zero",
                "undefined function: nowhere",
            ]

    def test_failure_does_not_abort_siblings(self, executor: Executor, collected: List[Any]):
        """Test siblings keep running after one child fails."""
        executor.register_builtin("jitter", jitter)
        block = ParallelBlock(body=[
            var("missing"),
            Program(body=[call("jitter"), call("collect", num(1))]),
            Program(body=[call("jitter"), call("collect", num(2))]),
        ])
        result = executor.execute(block)
        assert isinstance(result.error, AggregateError)
        assert len(result.error) == 1
        assert sorted(collected) == [1.0, 2.0]

    def test_error_aborts_enclosing_program(self, executor: Executor, collected: List[Any]):
        """Test statements after a failed block do not run."""
        program = Program(body=[
            ParallelBlock(body=[var("missing")]),
            call("collect", num(1)),
        ])
        result = executor.execute(program)
        assert isinstance(result.error, AggregateError)
        assert collected == []

    def test_distinct_writes_all_present(self):
        """Test N children writing distinct names lose no writes."""
        for workers in (1, 4, 16):
            executor = Executor(ExecutionConfig(max_workers=workers))
            count = 200
            block = ParallelBlock(body=[assign(f"v{i}", num(i)) for i in range(count)])
            for _ in range(5):
                result = executor.execute(block)
                assert result.success is True
                variables = executor.variables
                for i in range(count):
                    assert variables[f"v{i}"] == float(i)

    def test_children_read_enclosing_bindings(self, executor: Executor):
        """Test children start from a copy of the current frame."""
        program = Program(body=[
            assign("base", num(100)),
            ParallelBlock(body=[
                assign(f"r{i}", BinaryExpr(op="+", left=var("base"), right=num(i))) for i in range(4)
            ]),
        ])
        result = executor.execute(program)
        assert result.success is True
        assert [executor.get_variable(f"r{i}") for i in range(4)] == [100.0, 101.0, 102.0, 103.0]

    def test_children_do_not_see_sibling_writes(self, executor: Executor):
        """Test a child cannot read what a sibling wrote."""
        executor.register_builtin("jitter", jitter)
        block = ParallelBlock(body=[
            assign("shared", num(1)),
            Program(body=[call("jitter"), call("jitter"), var("shared")]),
        ])
        result = executor.execute(block)
        assert isinstance(result.error, AggregateError)
        assert isinstance(result.error.errors[0], UndefinedVariableError)
        assert executor.get_variable("shared") == 1.0

    def test_conflicting_writes_later_child_wins(self, executor: Executor):
        """Test same-name writes merge in child order."""
        executor.register_builtin("jitter", jitter)
        block = ParallelBlock(body=[
            Program(body=[call("jitter"), assign("x", num(i))]) for i in range(6)
        ])
        for _ in range(5):
            executor.execute(block)
            assert executor.get_variable("x") == 5.0

    def test_failed_child_writes_discarded(self, executor: Executor):
        """Test writes from a failing child are not merged."""
        block = ParallelBlock(body=[
            Program(body=[assign("partial", num(1)), var("missing")]),
            assign("ok", num(2)),
        ])
        result = executor.execute(block)
        assert isinstance(result.error, AggregateError)
        assert "partial" not in executor.variables
        assert executor.get_variable("ok") == 2.0

    def test_recursion_in_child_is_aggregated(self, executor: Executor):
        """Test runaway recursion in one child is reported with its siblings' errors."""
        program = Program(body=[
            FunctionDeclaration(name="f", body=[call("f")]),
            ParallelBlock(body=[call("f"), var("missing")]),
        ])
        result = executor.execute(program)
        assert isinstance(result.error, AggregateError)
        assert len(result.error) == 2
        assert isinstance(result.error.errors[0], RecursionDepthError)
        assert isinstance(result.error.errors[1], UndefinedVariableError)

    def test_unchanged_bindings_not_rewritten(self, executor: Executor):
        """Test a child's untouched copy does not clobber a sibling's write."""
        program = Program(body=[
            assign("x", num(0)),
            ParallelBlock(body=[
                assign("x", num(1)),
                assign("y", var("x")),
            ]),
        ])
        executor.execute(program)
        assert executor.get_variable("x") == 1.0
        assert executor.get_variable("y") == 0.0

    def test_concurrency_is_bounded(self, small_executor: Executor):
        """Test no more than max_workers children run at once."""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def busy(args):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return None

        small_executor.register_builtin("busy", busy)
        result = small_executor.execute(ParallelBlock(body=[call("busy") for _ in range(8)]))
        assert result.success is True
        assert 1 <= state["peak"] <= 2

    def test_nested_concurrency_is_bounded(self, small_executor: Executor):
        """Test the worker limit holds across nested blocks."""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def busy(args):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1
            return None

        small_executor.register_builtin("busy", busy)
        block = ParallelBlock(body=[
            ParallelBlock(body=[call("busy") for _ in range(2)]) for _ in range(2)
        ])
        for _ in range(3):
            result = small_executor.execute(block)
            assert result.success is True
        assert 1 <= state["peak"] <= 2

    def test_nested_blocks_do_not_deadlock(self):
        """Test nested parallel blocks complete with a single worker."""
        executor = Executor(ExecutionConfig(max_workers=1))
        block = ParallelBlock(body=[
            ParallelBlock(body=[assign(f"inner{i}_{j}", num(j)) for j in range(3)]) for i in range(3)
        ])
        result = executor.execute(block)
        assert result.success is True
        assert executor.get_variable("inner2_2") == 2.0

    def test_nested_block_errors_are_aggregated(self, executor: Executor):
        """Test an inner aggregate becomes one entry of the outer aggregate."""
        block = ParallelBlock(body=[
            ParallelBlock(body=[var("a"), var("b")]),
            var("c"),
        ])
        result = executor.execute(block)
        outer = result.error
        assert isinstance(outer, AggregateError)
        assert len(outer) == 2
        assert isinstance(outer.errors[0], AggregateError)
        assert len(outer.errors[0]) == 2

    def test_block_inside_function_merges_into_call_frame(self, executor: Executor):
        """Test parallel writes inside a call stay in that call's frame."""
        program = Program(body=[
            FunctionDeclaration(
                name="fan",
                params=[Variable(name="n")],
                body=[
                    ParallelBlock(body=[
                        assign("a", var("n")),
                        assign("b", BinaryExpr(op="*", left=var("n"), right=num(2))),
                    ]),
                    ReturnStatement(value=BinaryExpr(op="+", left=var("a"), right=var("b"))),
                ],
            ),
            assign("total", call("fan", num(3))),
        ])
        result = executor.execute(program)
        assert result.success is True
        assert executor.get_variable("total") == 9.0
        assert "a" not in executor.variables

    def test_function_calls_in_parallel(self, executor: Executor, collected: List[Any]):
        """Test each parallel call gets its own frame."""
        executor.register_builtin("jitter", jitter)
        program = Program(body=[
            FunctionDeclaration(
                name="compute",
                params=[Variable(name="n")],
                body=[call("jitter"), call("collect", var("n"))],
            ),
            ParallelBlock(body=[call("compute", num(i)) for i in range(1, 6)]),
        ])
        result = executor.execute(program)
        assert result.success is True
        assert sorted(collected) == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_function_declared_in_child(self, executor: Executor):
        """Test declarations from a parallel child reach the shared registry."""
        program = Program(body=[
            ParallelBlock(body=[
                FunctionDeclaration(name=f"f{i}", body=[String(value=f"from f{i}")]) for i in range(8)
            ]),
            call("f7"),
        ])
        result = executor.execute(program)
        assert result.success is True
        assert result.value == "from f7"
        assert len(executor.functions) == 8

    def test_return_in_child_ends_only_child(self, executor: Executor, collected: List[Any]):
        """Test a return inside a child stops that child, not the block."""
        program = Program(body=[
            ParallelBlock(body=[
                Program(body=[assign("a", num(1)), ReturnStatement(value=num(0)), call("collect", num(9))]),
                assign("b", num(2)),
            ]),
            String(value="after"),
        ])
        result = executor.execute(program)
        assert result.success is True
        assert result.value == "after"
        assert collected == []
        assert executor.get_variable("a") == 1.0
        assert executor.get_variable("b") == 2.0


class TestConcurrentSessions:
    """Tests for independent sessions in one process."""

    def test_sessions_run_side_by_side(self):
        """Test two sessions executing concurrently keep separate state."""
        results = {}

        def run(label, value):
            executor = Executor()
            block = ParallelBlock(body=[assign(f"{label}{i}", num(value + i)) for i in range(50)])
            executor.execute(block)
            results[label] = executor.variables

        threads = [threading.Thread(target=run, args=(label, value)) for label, value in (("a", 0), ("b", 1000))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results["a"]) == 50
        assert len(results["b"]) == 50
        assert results["a"]["a10"] == 10.0
        assert results["b"]["b10"] == 1010.0
