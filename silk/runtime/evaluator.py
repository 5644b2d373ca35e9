"""
Silk Node Evaluator

Tree-walking evaluation of program nodes against an Environment. Every
variant in NODE_TYPES has exactly one handler; failures are raised as
SilkError subclasses and propagate to the caller unchanged, except inside a
ParallelBlock, which collects its children's errors into an AggregateError.

Key classes:
- NodeEvaluator: Dispatches a node to its handler and returns its value
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from silk.errors import (
    AggregateError,
    ArithmeticOverflowError,
    ArityMismatchError,
    BuiltinError,
    DivisionByZeroError,
    RecursionDepthError,
    ReturnSignal,
    SilkError,
    TypeMismatchError,
    UndefinedFunctionError,
    UnknownNodeError,
    UnknownOperatorError,
)
from silk.nodes import (
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
)
from silk.runtime.environment import Environment
from silk.runtime.parallel import ParallelRunner
from silk.runtime.registry import Builtin, BuiltinRegistry, FunctionRegistry

logger = logging.getLogger(__name__)

ARITHMETIC_OPERATORS = ("+", "-", "*", "/")
COMPARISON_OPERATORS = (">", "<", "==")


def is_number(value: Any) -> bool:
    """True for int/float values; booleans are not numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class NodeEvaluator:
    """
    Evaluates program nodes for one call chain.

    The registries and the parallel runner are shared across a session; the
    environment belongs to this evaluator alone. Parallel children run on
    their own evaluators over forked environments.
    """

    _HANDLERS: Dict[type, str] = {
        Program: "_eval_program",
        Number: "_eval_literal",
        String: "_eval_literal",
        Variable: "_eval_variable",
        BinaryExpr: "_eval_binary",
        ComparisonExpr: "_eval_comparison",
        Assignment: "_eval_assignment",
        IfStatement: "_eval_if",
        ForLoop: "_eval_for",
        WhileLoop: "_eval_while",
        ParallelBlock: "_eval_parallel",
        FunctionDeclaration: "_eval_function_declaration",
        FunctionCall: "_eval_function_call",
        ReturnStatement: "_eval_return",
    }

    def __init__(self,
                 functions: FunctionRegistry,
                 builtins: BuiltinRegistry,
                 environment: Environment,
                 parallel: ParallelRunner):
        self.functions = functions
        self.builtins = builtins
        self.environment = environment
        self.parallel = parallel

    def evaluate(self, node: Any) -> Any:
        """
        Evaluate a node and return its value.

        Raises:
            SilkError: On any runtime failure
            ReturnSignal: When a ReturnStatement is reached; the enclosing
                function call (or the Executor at top level) consumes it
        """
        handler = self._HANDLERS.get(type(node))
        if handler is None:
            raise UnknownNodeError(node)
        try:
            return getattr(self, handler)(node)
        except RecursionError as exc:
            raise RecursionDepthError() from exc

    def execute_block(self, body: Sequence[Any]) -> Any:
        """Run statements in order and return the last value."""
        result = None
        for stmt in body:
            result = self.evaluate(stmt)
        return result

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _eval_program(self, node: Program) -> Any:
        return self.execute_block(node.body)

    def _eval_literal(self, node: Any) -> Any:
        return node.value

    def _eval_variable(self, node: Variable) -> Any:
        return self.environment.get(node.name)

    def _eval_assignment(self, node: Assignment) -> Any:
        value = self.evaluate(node.value)
        self.environment.set(node.target.name, value)
        return value

    def _eval_binary(self, node: BinaryExpr) -> Any:
        if node.op not in ARITHMETIC_OPERATORS:
            raise UnknownOperatorError(node.op)

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        try:
            return _arithmetic(node.op, left, right)
        except OverflowError as exc:
            raise ArithmeticOverflowError(node.op) from exc

    def _eval_comparison(self, node: ComparisonExpr) -> bool:
        if node.op not in COMPARISON_OPERATORS:
            raise UnknownOperatorError(node.op, comparison=True)

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        if not (is_number(left) and is_number(right)):
            raise TypeMismatchError("operands must be numbers")

        if node.op == ">":
            return left > right
        if node.op == "<":
            return left < right
        return left == right

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    def _condition(self, node: Any) -> bool:
        value = self.evaluate(node)
        if not isinstance(value, bool):
            raise TypeMismatchError("condition must evaluate to a boolean")
        return value

    def _eval_if(self, node: IfStatement) -> Any:
        if self._condition(node.condition):
            return self.evaluate(node.consequent)
        if node.alternate is not None:
            return self.evaluate(node.alternate)
        return None

    def _eval_for(self, node: ForLoop) -> None:
        if node.init is not None:
            self.evaluate(node.init)
        while self._condition(node.condition):
            self.execute_block(node.body)
            if node.post is not None:
                self.evaluate(node.post)
        return None

    def _eval_while(self, node: WhileLoop) -> None:
        while self._condition(node.condition):
            self.execute_block(node.body)
        return None

    def _eval_return(self, node: ReturnStatement) -> Any:
        raise ReturnSignal(self.evaluate(node.value))

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _eval_function_declaration(self, node: FunctionDeclaration) -> None:
        self.functions.register(node.name, node)
        return None

    def _eval_function_call(self, node: FunctionCall) -> Any:
        builtin = self.builtins.lookup(node.name)
        if builtin is not None:
            args = [self.evaluate(arg) for arg in node.args]
            return self._call_builtin(node.name, builtin, args)

        declaration = self.functions.get(node.name)
        if declaration is None:
            raise UndefinedFunctionError(node.name)
        if len(node.args) != declaration.arity:
            raise ArityMismatchError(node.name, declaration.arity, len(node.args))

        # Arguments see the caller's frame, not the callee's.
        args = [self.evaluate(arg) for arg in node.args]
        bindings = {param.name: value for param, value in zip(declaration.params, args)}

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Calling {node.name} with {bindings} at depth {self.environment.depth}")
        with self.environment.frame(bindings):
            try:
                return self.execute_block(declaration.body)
            except ReturnSignal as signal:
                return signal.value

    def _call_builtin(self, name: str, fn: Builtin, args: List[Any]) -> Any:
        try:
            return fn(args)
        except SilkError:
            raise
        except Exception as exc:
            raise BuiltinError(name, exc) from exc

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    def _eval_parallel(self, node: ParallelBlock) -> None:
        """
        Run children concurrently on isolated copies of the current frame.

        Bindings written by successful children are merged back in child
        order once every child has finished; a later child wins on a shared
        name. Any failure then raises an AggregateError with every error.
        """
        outcomes = self.parallel.run(len(node.body), lambda index: self._run_child(node.body[index]))

        frame = self.environment.current
        errors = []
        for outcome in outcomes:
            if outcome.success:
                for name, value in outcome.writes.items():
                    frame.set(name, value)
            else:
                errors.append(outcome.error)

        if errors:
            raise AggregateError(errors)
        logger.debug(f"Parallel block merged {sum(len(o.writes) for o in outcomes)} bindings")
        return None

    def _run_child(self, child: Any) -> Dict[str, Any]:
        environment = self.environment.fork()
        evaluator = NodeEvaluator(self.functions, self.builtins, environment, self.parallel)
        try:
            evaluator.evaluate(child)
        except ReturnSignal:
            pass
        return environment.base.writes()


def _type_name(value: Any) -> str:
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+":
        if is_number(left) and is_number(right):
            return left + right
        if isinstance(left, str) and isinstance(right, str):
            return left + right
        raise TypeMismatchError(
            f"unsupported operand types for +: {_type_name(left)} and {_type_name(right)}"
        )

    if not (is_number(left) and is_number(right)):
        raise TypeMismatchError("operands must be numbers")
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise DivisionByZeroError()
    return left / right
