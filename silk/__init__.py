"""
Silk - tree-walking execution engine for a small imperative AST.

Program trees are built elsewhere (by hand, by a generator, or validated from
dicts with ``node_from_obj``) and executed by an ``Executor`` session.
"""

from silk.errors import (
    AggregateError,
    ArithmeticOverflowError,
    ArityMismatchError,
    BuiltinError,
    DivisionByZeroError,
    ErrorKind,
    InternalError,
    RecursionDepthError,
    SilkError,
    TypeMismatchError,
    UndefinedFunctionError,
    UndefinedVariableError,
    UnknownNodeError,
    UnknownOperatorError,
)
from silk.nodes import (
    NODE_TYPES,
    Assignment,
    BinaryExpr,
    ComparisonExpr,
    ForLoop,
    FunctionCall,
    FunctionDeclaration,
    IfStatement,
    Number,
    ParallelBlock,
    Program,
    ReturnStatement,
    String,
    Variable,
    WhileLoop,
    node_from_json,
    node_from_obj,
    node_to_obj,
)
from silk.runtime import ExecutionConfig, ExecutionResult, Executor

__version__ = "0.1.0"

__all__ = [
    "Executor",
    "ExecutionConfig",
    "ExecutionResult",
    "NODE_TYPES",
    "Program",
    "Number",
    "String",
    "Variable",
    "BinaryExpr",
    "ComparisonExpr",
    "Assignment",
    "IfStatement",
    "ForLoop",
    "WhileLoop",
    "ParallelBlock",
    "FunctionDeclaration",
    "FunctionCall",
    "ReturnStatement",
    "node_from_obj",
    "node_from_json",
    "node_to_obj",
    "ErrorKind",
    "SilkError",
    "AggregateError",
    "ArithmeticOverflowError",
    "ArityMismatchError",
    "BuiltinError",
    "DivisionByZeroError",
    "InternalError",
    "RecursionDepthError",
    "TypeMismatchError",
    "UndefinedFunctionError",
    "UndefinedVariableError",
    "UnknownNodeError",
    "UnknownOperatorError",
]
