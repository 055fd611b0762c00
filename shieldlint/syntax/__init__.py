"""Syntax tree model and PHP parser."""

from shieldlint.syntax.finders import (
    find_classes,
    find_function_calls,
    find_method_calls_by_name,
    find_nodes_of_kind,
    find_static_calls,
    walk,
)
from shieldlint.syntax.php_parser import PhpParser

__all__ = [
    "PhpParser",
    "find_classes",
    "find_function_calls",
    "find_method_calls_by_name",
    "find_nodes_of_kind",
    "find_static_calls",
    "walk",
]
