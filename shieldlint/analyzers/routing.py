"""Route definitions in ``routes/*.php`` files.

Routes are fluent chains rooted at the ``Route`` facade, e.g.
``Route::middleware('auth')->post('/x', ...)->name('x')``. Groups pass
their middleware down to every chain inside their closure.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from shieldlint.syntax.finders import walk
from shieldlint.syntax.nodes import (
    ArrayItem,
    ArrayLiteral,
    ClassConstantRef,
    MethodCall,
    StaticCall,
    StringLiteral,
    SyntaxNode,
    argument,
    short_name,
)

ROUTE_VERBS = frozenset({"get", "post", "put", "patch", "delete", "options", "any", "match", "resource", "apiresource"})
STATE_CHANGING_VERBS = frozenset({"post", "put", "patch", "delete", "any", "match", "resource", "apiresource"})


@dataclass(frozen=True)
class RouteChain:
    """One ``Route::...`` chain and whether a middleware requirement covers it."""

    calls: tuple  # outermost call first, the Route:: static call last
    guarded: bool

    @property
    def root(self) -> StaticCall:
        return self.calls[-1]

    @property
    def verb_call(self) -> Optional[SyntaxNode]:
        verbs = [call for call in self.calls if call.name.lower() in ROUTE_VERBS]
        return verbs[-1] if verbs else None

    @property
    def is_group(self) -> bool:
        return any(call.name.lower() == "group" for call in self.calls)


def call_chain(top: SyntaxNode) -> list:
    """Calls of a fluent chain from outermost to root."""
    chain = [top]
    current = top
    while isinstance(current, MethodCall) and isinstance(current.receiver, (MethodCall, StaticCall)):
        current = current.receiver
        chain.append(current)
    return chain


def iter_route_chains(
    nodes: Iterable[SyntaxNode],
    satisfies: Callable[[SyntaxNode], bool],
    guarded: bool = False,
) -> Iterator[RouteChain]:
    """Every route chain under ``nodes`` in source order.

    ``satisfies`` decides whether one call of a chain adds the required
    middleware; closures passed to ``group()`` inherit the chain's state.
    """
    for node in nodes:
        if not isinstance(node, (MethodCall, StaticCall)):
            yield from iter_route_chains(node.children(), satisfies, guarded)
            continue
        chain = call_chain(node)
        root = chain[-1]
        routed = isinstance(root, StaticCall) and short_name(root.type_name) == "Route"
        chain_guarded = guarded or (routed and any(satisfies(call) for call in chain))
        if routed:
            yield RouteChain(tuple(chain), chain_guarded)
        for call in chain:
            inner = chain_guarded if call.name.lower() == "group" else guarded
            yield from iter_route_chains(call.args, satisfies, inner)


def middleware_names(call: SyntaxNode) -> list[str]:
    """Middleware a chain call adds, as strings and class basenames."""
    name = call.name.lower()
    sources = []
    if name == "middleware":
        sources = list(call.args)
    elif name == "group":
        attributes = argument(call, 0)
        if isinstance(attributes, ArrayLiteral):
            sources = [
                item.value
                for item in attributes.items
                if isinstance(item, ArrayItem)
                and isinstance(item.key, StringLiteral)
                and item.key.value == "middleware"
            ]
    names = []
    for source in sources:
        for node in walk(source):
            if isinstance(node, StringLiteral):
                names.append(node.value)
            elif isinstance(node, ClassConstantRef):
                names.append(short_name(node.type_name))
    return names


def route_uri(call: SyntaxNode) -> Optional[str]:
    """URI of a verb call, or the prefix of a group/prefix call."""
    first = argument(call, 0)
    if isinstance(first, ArrayLiteral):
        for item in first.items:
            if (
                isinstance(item, ArrayItem)
                and isinstance(item.key, StringLiteral)
                and item.key.value in ("prefix", "as")
                and isinstance(item.value, StringLiteral)
            ):
                return item.value.value
        return None
    if isinstance(first, StringLiteral):
        return first.value
    return None
