"""Lookups over parsed syntax trees."""

from typing import Iterable, Iterator, Optional, Union

from shieldlint.syntax.nodes import (
    ClassDecl,
    FunctionCall,
    MethodCall,
    MethodDecl,
    PropertyDecl,
    StaticCall,
    SyntaxNode,
    short_name,
)

Tree = Union[SyntaxNode, Iterable[SyntaxNode]]


def walk(tree: Tree) -> Iterator[SyntaxNode]:
    """Pre-order, left-to-right traversal of one node or a statement list."""
    roots = [tree] if isinstance(tree, SyntaxNode) else list(tree)
    stack = list(reversed(roots))
    seen: set[int] = set()
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(reversed(list(node.children())))


def find_nodes_of_kind(tree: Tree, kind) -> list[SyntaxNode]:
    """All nodes of ``kind``: a node class, a tuple of classes, or a kind name."""
    if isinstance(kind, str):
        return [node for node in walk(tree) if node.kind == kind]
    return [node for node in walk(tree) if isinstance(node, kind)]


def find_static_calls(
    tree: Tree, type_name: str, method_name: Optional[str] = None
) -> list[StaticCall]:
    """Static calls on ``type_name``, matched on the last name segment.

    PHP class and method names are case-insensitive, so are the matches.
    """
    wanted_type = short_name(type_name).lower()
    wanted_method = method_name.lower() if method_name else None
    return [
        node
        for node in find_nodes_of_kind(tree, StaticCall)
        if short_name(node.type_name).lower() == wanted_type
        and (wanted_method is None or node.name.lower() == wanted_method)
    ]


def find_method_calls_by_name(tree: Tree, method_name: str) -> list[MethodCall]:
    wanted = method_name.lower()
    return [node for node in find_nodes_of_kind(tree, MethodCall) if node.name.lower() == wanted]


def find_function_calls(tree: Tree, *names: str) -> list[FunctionCall]:
    wanted = {name.lower() for name in names}
    return [
        node
        for node in find_nodes_of_kind(tree, FunctionCall)
        if short_name(node.name).lower() in wanted
    ]


def find_classes(tree: Tree) -> list[ClassDecl]:
    return find_nodes_of_kind(tree, ClassDecl)


def find_property(class_decl: ClassDecl, name: str) -> Optional[PropertyDecl]:
    for member in class_decl.members:
        if isinstance(member, PropertyDecl) and member.name == name:
            return member
    return None


def find_method(class_decl: ClassDecl, name: str) -> Optional[MethodDecl]:
    wanted = name.lower()
    for member in class_decl.members:
        if isinstance(member, MethodDecl) and member.name.lower() == wanted:
            return member
    return None


def methods(class_decl: ClassDecl) -> list[MethodDecl]:
    return [member for member in class_decl.members if isinstance(member, MethodDecl)]
