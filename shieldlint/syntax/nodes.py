"""Syntax node model for parsed PHP source.

Nodes are immutable and compare by identity, which lets tree walks keep a
visited set keyed on ``id(node)``. Every node records the 1-based line it
starts on and the line it ends on (0 when unknown, e.g. synthetic trees).
"""

from dataclasses import dataclass, fields
from typing import Iterator, Optional


class SyntaxNode:
    """Base class for all syntax nodes."""

    line: int
    end_line: int

    @property
    def kind(self) -> str:
        return type(self).__name__

    def children(self) -> Iterator["SyntaxNode"]:
        """Yield direct child nodes in source order."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, SyntaxNode):
                yield value
            elif isinstance(value, (tuple, list)):
                for item in value:
                    if isinstance(item, SyntaxNode):
                        yield item


# Expressions


@dataclass(frozen=True, eq=False)
class Concat(SyntaxNode):
    left: SyntaxNode
    right: SyntaxNode
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class InterpolatedString(SyntaxNode):
    """Double-quoted or heredoc string with embedded expressions."""

    parts: tuple
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class FunctionCall(SyntaxNode):
    """Call of a named function; ``name`` is empty for dynamic callees."""

    name: str
    args: tuple = ()
    callee: Optional[SyntaxNode] = None
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class MethodCall(SyntaxNode):
    receiver: SyntaxNode
    name: str
    args: tuple = ()
    nullsafe: bool = False
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class StaticCall(SyntaxNode):
    type_name: str
    name: str
    args: tuple = ()
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class NamedArgument(SyntaxNode):
    name: str
    value: SyntaxNode
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class NewExpression(SyntaxNode):
    type_name: str
    args: tuple = ()
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class ArrayItem(SyntaxNode):
    value: SyntaxNode
    key: Optional[SyntaxNode] = None
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class ArrayLiteral(SyntaxNode):
    items: tuple = ()
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class ArrayAccess(SyntaxNode):
    base: SyntaxNode
    key: Optional[SyntaxNode] = None
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class Assignment(SyntaxNode):
    target: SyntaxNode
    value: SyntaxNode
    operator: str = "="
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class Ternary(SyntaxNode):
    cond: SyntaxNode
    then: Optional[SyntaxNode]
    else_: SyntaxNode
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class BinaryOp(SyntaxNode):
    left: SyntaxNode
    right: SyntaxNode
    operator: str = ""
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class UnaryOp(SyntaxNode):
    operator: str
    operand: SyntaxNode
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class Cast(SyntaxNode):
    inner: SyntaxNode
    type_name: str = ""
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class Variable(SyntaxNode):
    """Variable reference; ``name`` excludes the leading ``$``."""

    name: str
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class PropertyAccess(SyntaxNode):
    base: SyntaxNode
    name: str
    nullsafe: bool = False
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class StringLiteral(SyntaxNode):
    value: str
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class IntLiteral(SyntaxNode):
    value: int
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class ConstantRef(SyntaxNode):
    """Bare constant such as ``true``, ``null`` or ``PASSWORD_BCRYPT``."""

    name: str
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class ClassConstantRef(SyntaxNode):
    """``Type::NAME``, including ``Type::class``."""

    type_name: str
    name: str
    line: int = 0
    end_line: int = 0


# Declarations and statements


@dataclass(frozen=True, eq=False)
class PropertyDecl(SyntaxNode):
    name: str
    default: Optional[SyntaxNode] = None
    visibility: str = "public"
    is_static: bool = False
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class MethodDecl(SyntaxNode):
    name: str
    body: tuple = ()
    visibility: str = "public"
    is_static: bool = False
    params: tuple = ()
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class ClassDecl(SyntaxNode):
    name: str
    extends: Optional[str] = None
    implements: tuple = ()
    namespace: Optional[str] = None
    members: tuple = ()
    line: int = 0
    end_line: int = 0

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}\\{self.name}"
        return self.name


@dataclass(frozen=True, eq=False)
class Return(SyntaxNode):
    value: Optional[SyntaxNode] = None
    line: int = 0
    end_line: int = 0


@dataclass(frozen=True, eq=False)
class Block(SyntaxNode):
    """Any statement or expression without a dedicated variant.

    ``kind`` carries the grammar's node type, e.g. ``echo_statement``.
    """

    block_kind: str
    body: tuple = ()
    line: int = 0
    end_line: int = 0

    @property
    def kind(self) -> str:
        return self.block_kind


def short_name(type_name: str) -> str:
    """Last segment of a possibly namespaced class name."""
    return type_name.rstrip("\\").rsplit("\\", 1)[-1]


def string_value(node: Optional[SyntaxNode]) -> Optional[str]:
    """Literal value of a plain string node, else None."""
    if isinstance(node, StringLiteral):
        return node.value
    return None


def argument(call: SyntaxNode, index: int, name: Optional[str] = None) -> Optional[SyntaxNode]:
    """Positional (or named) argument of a call, unwrapped."""
    args = getattr(call, "args", ())
    if name is not None:
        for arg in args:
            if isinstance(arg, NamedArgument) and arg.name == name:
                return arg.value
    positional = [arg for arg in args if not isinstance(arg, NamedArgument)]
    if 0 <= index < len(positional):
        return positional[index]
    return None
