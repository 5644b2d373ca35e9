"""
Silk Runtime Errors

Every failure raised by the engine derives from SilkError and carries an
ErrorKind, so callers can branch on the kind of failure without matching
message text.

Key classes:
- ErrorKind: Taxonomy of failure kinds
- SilkError: Base class for all engine errors
- AggregateError: Bundle of failures collected from a parallel block
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List


class ErrorKind(Enum):
    UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    ARITY_MISMATCH = "ARITY_MISMATCH"
    ARITHMETIC = "ARITHMETIC"
    UNKNOWN_CONSTRUCT = "UNKNOWN_CONSTRUCT"
    AGGREGATE = "AGGREGATE"
    BUILTIN = "BUILTIN"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    INTERNAL = "INTERNAL"


class SilkError(Exception):
    """Base class for errors raised while executing a program tree."""

    kind: ErrorKind = ErrorKind.UNKNOWN_CONSTRUCT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "type": type(self).__name__, "message": self.message}


class UndefinedVariableError(SilkError):
    kind = ErrorKind.UNRESOLVED_REFERENCE

    def __init__(self, name: str):
        super().__init__(f"undefined variable: {name}")
        self.name = name


class UndefinedFunctionError(SilkError):
    kind = ErrorKind.UNRESOLVED_REFERENCE

    def __init__(self, name: str):
        super().__init__(f"undefined function: {name}")
        self.name = name


class TypeMismatchError(SilkError):
    kind = ErrorKind.TYPE_MISMATCH


class ArityMismatchError(SilkError):
    kind = ErrorKind.ARITY_MISMATCH

    def __init__(self, name: str, expected: int, got: int):
        super().__init__(f"function {name} expects {expected} arguments, but got {got}")
        self.name = name
        self.expected = expected
        self.got = got


class DivisionByZeroError(SilkError):
    kind = ErrorKind.ARITHMETIC

    def __init__(self):
        super().__init__("division by zero")


class ArithmeticOverflowError(SilkError):
    kind = ErrorKind.ARITHMETIC

    def __init__(self, operator: str):
        super().__init__(f"numeric result out of range for {operator}")
        self.operator = operator


class RecursionDepthError(SilkError):
    """Call nesting went deeper than the interpreter stack allows."""

    kind = ErrorKind.RESOURCE_EXHAUSTED

    def __init__(self):
        super().__init__("maximum call depth exceeded")


class UnknownOperatorError(SilkError):
    kind = ErrorKind.UNKNOWN_CONSTRUCT

    def __init__(self, operator: str, comparison: bool = False):
        label = "unknown comparison operator" if comparison else "unknown operator"
        super().__init__(f"{label}: {operator}")
        self.operator = operator


class UnknownNodeError(SilkError):
    kind = ErrorKind.UNKNOWN_CONSTRUCT

    def __init__(self, node: Any):
        super().__init__(f"unknown node type: {type(node).__name__}")
        self.node = node


class BuiltinError(SilkError):
    """A native builtin raised something other than a SilkError."""

    kind = ErrorKind.BUILTIN

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"builtin {name} failed: {cause}")
        self.name = name


class InternalError(SilkError):
    """An unexpected non-engine exception, reported with the original as its cause."""

    kind = ErrorKind.INTERNAL

    def __init__(self, cause: BaseException):
        super().__init__(f"internal error: {type(cause).__name__}: {cause}")
        self.__cause__ = cause


class AggregateError(SilkError):
    """
    One or more children of a parallel block failed.

    The errors are kept in child order, independent of the order in which
    the children finished.
    """

    kind = ErrorKind.AGGREGATE

    def __init__(self, errors: Iterable[SilkError]):
        self.errors: List[SilkError] = list(errors)
        rendered = ", ".join(str(e) for e in self.errors)
        super().__init__(f"multiple errors occurred: [{rendered}]")

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data


class ReturnSignal(Exception):
    """Internal exception carrying a return value up to the enclosing call."""

    def __init__(self, value: Any):
        super().__init__("return")
        self.value = value
