"""
Silk Node Model

Program trees are built from a closed set of immutable node variants. Each
variant is a frozen pydantic model tagged by its ``kind`` literal, so a plain
dict/JSON tree can be validated into nodes with the discriminated ``Node``
union and dumped back without loss.

Key objects:
- Node: Discriminated union over every variant
- NODE_TYPES: Tuple of all variant classes
- node_from_obj / node_to_obj: Dict <-> node conversion
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class BaseNode(BaseModel):
    """Base class for all node variants."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class Program(BaseNode):
    kind: Literal["Program"] = "Program"
    body: Tuple[Node, ...] = ()


class Number(BaseNode):
    kind: Literal["Number"] = "Number"
    value: float


class String(BaseNode):
    kind: Literal["String"] = "String"
    value: str


class Variable(BaseNode):
    kind: Literal["Variable"] = "Variable"
    name: str


class BinaryExpr(BaseNode):
    kind: Literal["BinaryExpr"] = "BinaryExpr"
    op: str
    left: Node
    right: Node


class ComparisonExpr(BaseNode):
    kind: Literal["ComparisonExpr"] = "ComparisonExpr"
    op: str
    left: Node
    right: Node


class Assignment(BaseNode):
    kind: Literal["Assignment"] = "Assignment"
    target: Variable
    value: Node


class IfStatement(BaseNode):
    kind: Literal["IfStatement"] = "IfStatement"
    condition: Node
    consequent: Node
    alternate: Optional[Node] = None


class ForLoop(BaseNode):
    """Classic three-part loop; ``init`` and ``post`` may be omitted."""

    kind: Literal["ForLoop"] = "ForLoop"
    init: Optional[Node] = None
    condition: Node
    post: Optional[Node] = None
    body: Tuple[Node, ...] = ()


class WhileLoop(BaseNode):
    kind: Literal["WhileLoop"] = "WhileLoop"
    condition: Node
    body: Tuple[Node, ...] = ()


class ParallelBlock(BaseNode):
    kind: Literal["ParallelBlock"] = "ParallelBlock"
    body: Tuple[Node, ...] = ()


class FunctionDeclaration(BaseNode):
    kind: Literal["FunctionDeclaration"] = "FunctionDeclaration"
    name: str
    params: Tuple[Variable, ...] = ()
    body: Tuple[Node, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.params)


class FunctionCall(BaseNode):
    kind: Literal["FunctionCall"] = "FunctionCall"
    name: str
    args: Tuple[Node, ...] = ()


class ReturnStatement(BaseNode):
    kind: Literal["ReturnStatement"] = "ReturnStatement"
    value: Node


Node = Annotated[
    Union[
        Program,
        Number,
        String,
        Variable,
        BinaryExpr,
        ComparisonExpr,
        Assignment,
        IfStatement,
        ForLoop,
        WhileLoop,
        ParallelBlock,
        FunctionDeclaration,
        FunctionCall,
        ReturnStatement,
    ],
    Field(discriminator="kind"),
]

NODE_TYPES = (
    Program,
    Number,
    String,
    Variable,
    BinaryExpr,
    ComparisonExpr,
    Assignment,
    IfStatement,
    ForLoop,
    WhileLoop,
    ParallelBlock,
    FunctionDeclaration,
    FunctionCall,
    ReturnStatement,
)

for _node_type in NODE_TYPES:
    _node_type.model_rebuild()

_NODE_ADAPTER: TypeAdapter = TypeAdapter(Node)


def node_from_obj(obj: Dict[str, Any]) -> BaseNode:
    """
    Validate a dict tree into nodes.

    Raises:
        pydantic.ValidationError: If the tree is malformed or uses an unknown kind
    """
    return _NODE_ADAPTER.validate_python(obj)


def node_from_json(data: Union[str, bytes]) -> BaseNode:
    """Validate a JSON document into nodes."""
    return _NODE_ADAPTER.validate_json(data)


def node_to_obj(node: BaseNode) -> Dict[str, Any]:
    """Dump a node tree to JSON-compatible dicts."""
    return node.model_dump(mode="json")
