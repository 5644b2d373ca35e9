"""
Silk Executor

The Executor is an execution session: it owns the function and builtin
registries, the top-level environment and the configuration, all of which
persist across ``execute`` calls. Separate Executors share nothing, so several
sessions can run side by side in one process.

Key classes:
- ExecutionConfig: Configuration for a session
- ExecutionResult: Value or error of one execute call
- Executor: Session object and public entry point
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from silk.errors import AggregateError, InternalError, ReturnSignal, SilkError
from silk.nodes import FunctionDeclaration
from silk.runtime.environment import DEFAULT_POOL_SIZE, Environment, FramePool
from silk.runtime.evaluator import NodeEvaluator
from silk.runtime.parallel import ParallelRunner, default_max_workers
from silk.runtime.registry import Builtin, BuiltinRegistry, FunctionRegistry

logger = logging.getLogger(__name__)


@dataclass
class ExecutionConfig:
    """Configuration for an execution session."""
    max_workers: int = field(default_factory=default_max_workers)
    frame_pooling: bool = True
    frame_pool_size: int = DEFAULT_POOL_SIZE
    builtin_cache: bool = True

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.frame_pool_size < 0:
            raise ValueError("frame_pool_size must be >= 0")


@dataclass
class ExecutionResult:
    """Result of executing a node tree."""
    success: bool
    value: Any = None
    error: Optional[SilkError] = None
    execution_time_ms: float = 0.0

    @property
    def errors(self) -> List[str]:
        """Error messages, with aggregate errors flattened to their members."""
        if self.error is None:
            return []
        if isinstance(self.error, AggregateError):
            return [str(e) for e in self.error.errors]
        return [str(self.error)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "value": self.value,
            "error": self.error.to_dict() if self.error is not None else None,
            "errors": self.errors,
            "execution_time_ms": self.execution_time_ms,
        }


class Executor:
    """
    Main Silk execution engine.

    Usage:
        executor = Executor()
        executor.register_builtin("print", lambda args: print(*args))
        result = executor.execute(program)
        if result.success:
            print(executor.get_variable("z"))
    """

    def __init__(self, config: ExecutionConfig = None):
        self.config = config or ExecutionConfig()
        self.functions = FunctionRegistry()
        self.builtins = BuiltinRegistry(cache=self.config.builtin_cache)
        pool = FramePool(self.config.frame_pool_size) if self.config.frame_pooling else None
        self.environment = Environment(pool=pool)
        self.parallel = ParallelRunner(self.config.max_workers)
        self.evaluator = NodeEvaluator(self.functions, self.builtins, self.environment, self.parallel)
        self._run_lock = threading.RLock()

    def register_builtin(self, name: str, fn: Builtin) -> None:
        """Bind a native callable; replaces any prior binding for the name."""
        self.builtins.register(name, fn)

    def register_function(self, name: str, declaration: FunctionDeclaration) -> None:
        """Bind a user function; replaces any prior binding for the name."""
        self.functions.register(name, declaration)

    def execute(self, node: Any) -> ExecutionResult:
        """
        Execute a node tree against this session's top-level environment.

        A top-level ReturnStatement ends the program and its value becomes
        the result value. Runtime failures are reported on the result rather
        than raised.

        Calls are serialized per session. A builtin may call back into
        ``execute`` on the same thread; the nested call runs in whatever
        frame is current at the call site. Calling ``execute`` from inside a
        parallel child raises RuntimeError.
        """
        if self.parallel.in_child():
            raise RuntimeError("execute cannot be called from inside a parallel block")

        start = time.time()
        with self._run_lock:
            depth = self.environment.depth
            try:
                value = self.evaluator.evaluate(node)
            except ReturnSignal as signal:
                value = signal.value
            except SilkError as exc:
                return self._failure(node, exc, start, depth)
            except Exception as exc:
                return self._failure(node, InternalError(exc), start, depth)

        elapsed = (time.time() - start) * 1000
        logger.debug(f"Executed {type(node).__name__} in {elapsed:.2f}ms")
        return ExecutionResult(success=True, value=value, execution_time_ms=elapsed)

    def _failure(self, node: Any, error: SilkError, start: float, depth: int) -> ExecutionResult:
        self.environment.unwind(depth)
        elapsed = (time.time() - start) * 1000
        logger.debug(f"Execution of {type(node).__name__} failed after {elapsed:.2f}ms: {error}")
        return ExecutionResult(success=False, error=error, execution_time_ms=elapsed)

    @property
    def variables(self) -> Dict[str, Any]:
        """Snapshot of the top-level bindings."""
        return self.environment.base.snapshot()

    def get_variable(self, name: str) -> Any:
        """
        Read a top-level binding.

        Raises:
            UndefinedVariableError: If the name is not bound
        """
        return self.environment.base.get(name)
