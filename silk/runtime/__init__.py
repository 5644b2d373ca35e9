"""
Silk Runtime Engine

This package provides the core runtime for executing Silk program trees:
- Executor: Execution session (registries, top-level environment, config)
- NodeEvaluator: Tree-walking node dispatch
- Environment: Frame stack with optional frame pooling
- FunctionRegistry / BuiltinRegistry: Name lookup tables
- ParallelRunner: Bounded fan-out for ParallelBlock children
"""

from silk.runtime.executor import Executor, ExecutionResult, ExecutionConfig
from silk.runtime.evaluator import NodeEvaluator
from silk.runtime.environment import Environment, Frame, FramePool
from silk.runtime.registry import FunctionRegistry, BuiltinRegistry
from silk.runtime.parallel import ParallelRunner, ChildOutcome

__all__ = [
    "Executor",
    "ExecutionResult",
    "ExecutionConfig",
    "NodeEvaluator",
    "Environment",
    "Frame",
    "FramePool",
    "FunctionRegistry",
    "BuiltinRegistry",
    "ParallelRunner",
    "ChildOutcome",
]
