"""Pattern matchers over syntax subtrees.

All matchers are pure: they never mutate nodes and keep no state between
calls. Tree walks skip subtrees already visited within the same call.
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

from shieldlint.syntax.finders import walk
from shieldlint.syntax.nodes import (
    ArrayAccess,
    Concat,
    FunctionCall,
    InterpolatedString,
    MethodCall,
    PropertyAccess,
    StaticCall,
    SyntaxNode,
    Variable,
    short_name,
)

MAX_CHAIN_DEPTH = 256

# Query builder methods that return the builder, so chains can pass through them.
QUERY_BUILDER_METHODS = frozenset({
    "where", "orwhere", "wherein", "wherenotin", "wherenull", "wherenotnull",
    "wherebetween", "wherenotbetween", "wheredate", "wherecolumn", "wherehas",
    "wheredoesnthave", "whereexists", "wherekey", "wherelike", "whereraw",
    "orwhereraw", "select", "addselect", "selectraw", "distinct", "from",
    "join", "leftjoin", "rightjoin", "crossjoin", "groupby", "having",
    "orderby", "orderbydesc", "latest", "oldest", "limit", "take", "skip",
    "offset", "with", "withtrashed", "onlytrashed", "lockforupdate",
    "sharedlock", "when", "unless", "tap", "useindex", "forceindex",
})

QUERY_ROOT_METHODS = frozenset({"query", "table", "newquery", "connection"})

DB_FACADES = frozenset({"DB"})


@dataclass(frozen=True)
class InputSources:
    """Registry of expressions that read user-controlled input.

    ``scoped_accessors`` read all input when called without arguments and
    one named field when given one; only the former counts as tainted.
    """

    superglobals: frozenset = frozenset({"_GET", "_POST", "_REQUEST", "_COOKIE", "_FILES"})
    request_helpers: frozenset = frozenset({"request"})
    request_variables: frozenset = frozenset({"request"})
    request_facades: frozenset = frozenset({"Request", "Input"})
    scoped_accessors: frozenset = frozenset({"input", "get", "post", "query", "json", "cookie", "header"})
    bulk_accessors: frozenset = frozenset({"all"})
    blacklist_accessors: frozenset = frozenset({"except"})
    safe_accessors: frozenset = frozenset({"only", "validated", "safe"})
    extra_taint_checks: tuple = field(default=(), compare=False)

    def extended(self, **names: Iterable[str]) -> "InputSources":
        """Copy of this registry with extra names merged into the given sets."""
        changes = {key: getattr(self, key) | frozenset(values) for key, values in names.items()}
        return replace(self, **changes)


DEFAULT_INPUT_SOURCES = InputSources()


def contains_concatenation(node: Optional[SyntaxNode]) -> bool:
    if node is None:
        return False
    return any(isinstance(n, Concat) for n in walk(node))


def contains_interpolated_string(node: Optional[SyntaxNode]) -> bool:
    if node is None:
        return False
    return any(isinstance(n, InterpolatedString) for n in walk(node))


def find_first_vulnerable_node(node: Optional[SyntaxNode]) -> Optional[SyntaxNode]:
    """First concatenation or interpolated string, depth-first left-to-right."""
    if node is None:
        return None
    for candidate in walk(node):
        if isinstance(candidate, (Concat, InterpolatedString)):
            return candidate
    return None


def is_request_object(node: Optional[SyntaxNode], sources: InputSources = DEFAULT_INPUT_SOURCES) -> bool:
    """``request()``, ``$request`` or ``$this->request``."""
    if isinstance(node, FunctionCall):
        return short_name(node.name).lower() in sources.request_helpers and not node.args
    if isinstance(node, Variable):
        return node.name in sources.request_variables
    if isinstance(node, PropertyAccess):
        return (
            isinstance(node.base, Variable)
            and node.base.name == "this"
            and node.name in sources.request_variables
        )
    return False


def request_accessor(node: Optional[SyntaxNode], sources: InputSources = DEFAULT_INPUT_SOURCES) -> Optional[str]:
    """Lower-cased accessor name when ``node`` calls a method on the current request."""
    if isinstance(node, MethodCall) and node.name and is_request_object(node.receiver, sources):
        return node.name.lower()
    if isinstance(node, StaticCall) and short_name(node.type_name) in sources.request_facades:
        return node.name.lower()
    return None


def classify_input(
    node: Optional[SyntaxNode], sources: InputSources = DEFAULT_INPUT_SOURCES
) -> Optional[str]:
    """Kind of user input ``node`` reads, if any.

    Returns ``"superglobal"``, ``"bulk"`` (all input at once), ``"blacklist"``
    (all input minus named fields), ``"scoped"`` (a single named field),
    ``"safe"`` (an allow-listed subset) or None.
    """
    if isinstance(node, Variable) and node.name in sources.superglobals:
        return "superglobal"
    if isinstance(node, ArrayAccess) and isinstance(node.base, Variable) and node.base.name in sources.superglobals:
        return "superglobal"

    accessor = request_accessor(node, sources)
    if accessor is not None:
        if accessor in _lower(sources.bulk_accessors):
            return "bulk"
        if accessor in _lower(sources.scoped_accessors):
            return "scoped" if node.args else "bulk"
        if accessor in _lower(sources.blacklist_accessors):
            return "blacklist"
        if accessor in _lower(sources.safe_accessors):
            return "safe"
        return None

    if isinstance(node, FunctionCall) and node.args and short_name(node.name).lower() in sources.request_helpers:
        return "scoped"
    if isinstance(node, PropertyAccess) and node.name and is_request_object(node.base, sources):
        return "scoped"

    for check in sources.extra_taint_checks:
        kind = check(node)
        if kind:
            return kind
    return None


def find_first_tainted_input_node(
    node: Optional[SyntaxNode],
    sources: InputSources = DEFAULT_INPUT_SOURCES,
    include_scoped: bool = False,
) -> Optional[SyntaxNode]:
    """First node reading unnarrowed user input.

    Accessors given a field name are the safe idiom and are skipped unless
    ``include_scoped`` is set, for sinks where even one field is dangerous.
    """
    if node is None:
        return None
    wanted = {"superglobal", "bulk"}
    if include_scoped:
        wanted.add("scoped")
    for candidate in walk(node):
        if classify_input(candidate, sources) in wanted:
            return candidate
    return None


def find_first_blacklisted_input_node(
    node: Optional[SyntaxNode], sources: InputSources = DEFAULT_INPUT_SOURCES
) -> Optional[SyntaxNode]:
    """First ``except([...])``-style read of all input minus a deny list."""
    if node is None:
        return None
    for candidate in walk(node):
        if classify_input(candidate, sources) == "blacklist":
            return candidate
    return None


def is_fluent_chain_rooted_at(
    node: Optional[SyntaxNode],
    root_predicate: Callable[[SyntaxNode], bool],
    chain_methods: frozenset = QUERY_BUILDER_METHODS,
    max_depth: int = MAX_CHAIN_DEPTH,
) -> bool:
    """Whether the receiver chain of ``node`` ends at a node accepted by ``root_predicate``.

    Given a method call, the walk starts at its receiver and follows calls
    named in ``chain_methods``. Chains longer than ``max_depth`` never match.
    """
    current = node.receiver if isinstance(node, MethodCall) else node
    for _ in range(max_depth):
        if isinstance(current, MethodCall) and current.name.lower() in chain_methods:
            current = current.receiver
            continue
        return current is not None and bool(root_predicate(current))
    return False


def is_query_builder_root(node: SyntaxNode, db_facades: frozenset = DB_FACADES) -> bool:
    """``DB::...``, ``Model::query()`` / ``Model::where()``, ``->table()`` or ``->query()``."""
    if isinstance(node, StaticCall):
        if short_name(node.type_name) in db_facades:
            return True
        name = node.name.lower()
        return name in QUERY_ROOT_METHODS or name in QUERY_BUILDER_METHODS
    if isinstance(node, MethodCall):
        return node.name.lower() in QUERY_ROOT_METHODS
    return False


def _lower(names: frozenset) -> set[str]:
    return {name.lower() for name in names}
