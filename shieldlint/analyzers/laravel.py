"""Laravel conventions shared by several rules."""

import json
from pathlib import Path
from typing import Any, Optional

from shieldlint.exceptions import AnalysisError
from shieldlint.syntax.nodes import (
    ArrayItem,
    ArrayLiteral,
    ClassDecl,
    ConstantRef,
    FunctionCall,
    IntLiteral,
    Return,
    StringLiteral,
    SyntaxNode,
    argument,
    short_name,
)

NON_MODEL_SUFFIXES = (
    "Service", "Repository", "Helper", "Handler", "Provider", "Facade",
    "Controller", "Middleware", "Policy", "Event", "Listener", "Job", "Mail",
    "Notification", "Command", "Request", "Rule", "Exception", "Trait",
    "Interface", "Contract", "Test", "Seeder", "Migration", "Observer",
    "Scope", "Cast", "Enum", "Factory", "Action",
)

# Framework classes whose static ``create``/``make`` are not Eloquent.
NON_MODEL_CLASSES = frozenset({
    "DB", "Cache", "Validator", "View", "Response", "Redirect", "Route",
    "Storage", "File", "Http", "Str", "Arr", "Collection", "Carbon",
    "CarbonImmutable", "Date", "Log", "Mail", "Queue", "Event", "Gate",
    "Auth", "Hash", "Crypt", "Session", "Cookie", "Config", "App",
    "Artisan", "Bus", "Notification", "Password", "Schema", "URL", "Lang",
    "Request", "Input", "self", "static", "parent",
})

MODEL_BASE_CLASSES = frozenset({"Model", "Authenticatable", "Pivot", "MorphPivot"})


def is_eloquent_model(class_decl: ClassDecl) -> bool:
    """Class extends an Eloquent base or lives in ``App\\Models``."""
    if class_decl.extends and short_name(class_decl.extends) in MODEL_BASE_CLASSES:
        return True
    return bool(class_decl.namespace and class_decl.namespace.startswith("App\\Models"))


def looks_like_model(type_name: str) -> bool:
    """Best guess whether a static call target is an Eloquent model.

    Unknown classes count as models so that mass assignment through an
    unrecognised class is reported rather than missed.
    """
    if type_name.startswith("App\\Models\\"):
        return True
    name = short_name(type_name)
    if not name or name in NON_MODEL_CLASSES:
        return False
    return not any(name.endswith(suffix) and name != suffix for suffix in NON_MODEL_SUFFIXES)


# Config arrays


def config_array(statements: list[SyntaxNode]) -> Optional[ArrayLiteral]:
    """The array a config file returns."""
    for statement in statements:
        if isinstance(statement, Return) and isinstance(statement.value, ArrayLiteral):
            return statement.value
    return None


def array_entry(array: Optional[SyntaxNode], key: str) -> Optional[ArrayItem]:
    """Item of ``array`` under ``key``; dotted keys descend into nested arrays."""
    head, _, rest = key.partition(".")
    if not isinstance(array, ArrayLiteral):
        return None
    for item in array.items:
        if isinstance(item, ArrayItem) and isinstance(item.key, StringLiteral) and item.key.value == head:
            if not rest:
                return item
            return array_entry(item.value, rest)
    return None


def literal_value(node: Optional[SyntaxNode]) -> Any:
    """Python value of a literal, resolving ``env('KEY', default)`` to its default.

    Returns ``NotImplemented`` for anything that is not a literal.
    """
    if isinstance(node, StringLiteral):
        return node.value
    if isinstance(node, IntLiteral):
        return node.value
    if isinstance(node, ConstantRef):
        lowered = node.name.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        if lowered == "null":
            return None
        return NotImplemented
    if isinstance(node, FunctionCall) and node.name.lower() == "env":
        default = argument(node, 1)
        return None if default is None else literal_value(default)
    if isinstance(node, ArrayLiteral):
        return [literal_value(item.value) for item in node.items if isinstance(item, ArrayItem)]
    return NotImplemented


def env_key(node: Optional[SyntaxNode]) -> Optional[str]:
    """Variable name read by ``env('KEY', ...)``."""
    if isinstance(node, FunctionCall) and node.name.lower() == "env":
        name = argument(node, 0)
        if isinstance(name, StringLiteral):
            return name.value
    return None


def string_items(array: Optional[SyntaxNode]) -> list[tuple[str, ArrayItem]]:
    """Plain string values of a list-style array literal."""
    if not isinstance(array, ArrayLiteral):
        return []
    return [
        (item.value.value, item)
        for item in array.items
        if isinstance(item, ArrayItem) and isinstance(item.value, StringLiteral)
    ]


# Composer


def load_json(path: Path) -> Optional[dict]:
    """Decode a JSON document; None when absent, AnalysisError when malformed."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise AnalysisError(f"Cannot read {path.name}: {e}") from e
    except json.JSONDecodeError as e:
        raise AnalysisError(f"{path.name} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError(f"{path.name} does not contain a JSON object")
    return data


def json_key_line(lines: list[str], key: str) -> int:
    """1-based line where ``"key"`` first appears, or 1."""
    needle = f'"{key}"'
    for index, line in enumerate(lines):
        if needle in line:
            return index + 1
    return 1
