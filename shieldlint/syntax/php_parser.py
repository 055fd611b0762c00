"""PHP parser using tree-sitter.

Converts the concrete tree-sitter tree into the immutable node model in
``shieldlint.syntax.nodes``. Handles:
- expressions used by the matchers (calls, concatenation, interpolation,
  arrays, property access, casts, ternaries)
- class, property and method declarations
- namespaces and ``use`` imports, resolving aliases in class references
"""

import logging
import threading
from pathlib import Path
from typing import Optional

import tree_sitter_php
from tree_sitter import Language, Node, Parser

from shieldlint.exceptions import ParseError
from shieldlint.syntax.nodes import (
    ArrayAccess,
    ArrayItem,
    ArrayLiteral,
    Assignment,
    BinaryOp,
    Block,
    Cast,
    ClassConstantRef,
    ClassDecl,
    Concat,
    ConstantRef,
    FunctionCall,
    IntLiteral,
    InterpolatedString,
    MethodCall,
    MethodDecl,
    NamedArgument,
    NewExpression,
    PropertyAccess,
    PropertyDecl,
    Return,
    StaticCall,
    StringLiteral,
    SyntaxNode,
    Ternary,
    UnaryOp,
    Variable,
)

logger = logging.getLogger(__name__)

# Literal fragments inside strings; anything else is an embedded expression.
LITERAL_STRING_PARTS = {"string_content", "string_value", "escape_sequence", "text", "string"}

SKIPPED_NODE_TYPES = {"comment", "php_tag", "text_interpolation", "text", "?>"}

RELATIVE_SCOPES = {"self", "static", "parent"}


class PhpParser:
    """Parser for PHP code using tree-sitter."""

    def __init__(self, facade_aliases: Optional[dict[str, str]] = None):
        self._language = Language(tree_sitter_php.language_php())
        self._facade_aliases = dict(facade_aliases or {})
        self._cache: dict[str, tuple[tuple[int, int], list[SyntaxNode]]] = {}
        self._lock = threading.Lock()

    def parse(self, file_path) -> list[SyntaxNode]:
        """Parse a file into its top-level statements.

        Unreadable or unparsable files yield an empty list so callers can
        skip them and carry on with the rest of the project.
        """
        path = Path(file_path)
        try:
            stat = path.stat()
            signature = (stat.st_mtime_ns, stat.st_size)
            with self._lock:
                cached = self._cache.get(str(path))
            if cached and cached[0] == signature:
                return cached[1]
            source = path.read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            return []

        try:
            statements = self.parse_source(source)
        except ParseError as e:
            logger.warning(f"Skipping unparsable file {path}: {e}")
            statements = []

        with self._lock:
            self._cache[str(path)] = (signature, statements)
        return statements

    def parse_source(self, source) -> list[SyntaxNode]:
        """Parse PHP source text (str or bytes)."""
        if isinstance(source, str):
            source = source.encode("utf-8")
        # Parser objects are not shared between threads.
        parser = Parser(self._language)
        tree = parser.parse(source)
        if tree.root_node.has_error:
            logger.debug("Syntax errors present, keeping recovered tree")
        try:
            return _Converter(source, self._facade_aliases).program(tree.root_node)
        except RecursionError as e:
            raise ParseError("syntax tree nested too deeply") from e


class _Converter:
    """Single-use tree-sitter to node-model conversion for one file."""

    def __init__(self, source: bytes, aliases: dict[str, str]):
        self.source = source
        self.aliases = {alias.lower(): target for alias, target in aliases.items()}
        self.namespace: Optional[str] = None

    # Helpers

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def span(self, node: Node) -> dict:
        return {"line": node.start_point[0] + 1, "end_line": node.end_point[0] + 1}

    def resolve(self, name: str) -> str:
        """Expand an imported alias to the name it was imported as."""
        name = name.strip()
        if name.startswith("\\"):
            return name.lstrip("\\")
        if name.lower() in RELATIVE_SCOPES:
            return name
        head, _, rest = name.partition("\\")
        target = self.aliases.get(head.lower())
        if target is None:
            return name
        return f"{target}\\{rest}" if rest else target

    def named(self, node: Node) -> list[Node]:
        return [child for child in node.named_children if child.type != "comment"]

    def convert_all(self, nodes) -> tuple:
        converted = []
        for child in nodes:
            result = self.convert(child)
            if result is None:
                continue
            if isinstance(result, list):
                converted.extend(result)
            else:
                converted.append(result)
        return tuple(converted)

    # Entry points

    def program(self, root: Node) -> list[SyntaxNode]:
        statements: list[SyntaxNode] = []
        for child in root.named_children:
            if child.type == "namespace_definition":
                statements.extend(self.namespace_definition(child))
                continue
            result = self.convert(child)
            if isinstance(result, list):
                statements.extend(result)
            elif result is not None:
                statements.append(result)
        return statements

    def convert(self, node: Optional[Node]):
        if node is None or node.type in SKIPPED_NODE_TYPES:
            return None
        handler = getattr(self, f"_{node.type}", None)
        if handler is not None:
            return handler(node)
        return Block(node.type, self.convert_all(self.named(node)), **self.span(node))

    # Namespaces and imports

    def namespace_definition(self, node: Node) -> list[SyntaxNode]:
        name_node = node.child_by_field_name("name")
        self.namespace = self.text(name_node).lstrip("\\") or None
        body = node.child_by_field_name("body")
        if body is None:
            return []
        return list(self.convert_all(self.named(body)))

    def _namespace_use_declaration(self, node: Node):
        for clause in node.named_children:
            if clause.type != "namespace_use_clause":
                continue
            names = [c for c in clause.named_children if c.type in ("qualified_name", "name")]
            if not names:
                continue
            imported = self.text(names[0]).lstrip("\\")
            alias_node = clause.child_by_field_name("alias")
            aliasing = next((c for c in clause.named_children if c.type == "namespace_aliasing_clause"), None)
            if alias_node is None and aliasing is not None and aliasing.named_children:
                alias_node = aliasing.named_children[-1]
            elif alias_node is None and len(names) > 1:
                alias_node = names[-1]
            alias = self.text(alias_node) if alias_node is not None else imported.rsplit("\\", 1)[-1]
            self.aliases[alias.lower()] = imported
        return None

    # Statements

    def _expression_statement(self, node: Node):
        children = self.named(node)
        if len(children) == 1:
            return self.convert(children[0])
        return Block(node.type, self.convert_all(children), **self.span(node))

    def _return_statement(self, node: Node):
        children = self.named(node)
        value = self.convert(children[0]) if children else None
        return Return(value, **self.span(node))

    def _class_declaration(self, node: Node):
        name = self.text(node.child_by_field_name("name"))
        extends = None
        implements: list[str] = []
        for child in node.named_children:
            if child.type == "base_clause":
                parents = [c for c in child.named_children if c.type in ("name", "qualified_name")]
                if parents:
                    extends = self.resolve(self.text(parents[0]))
            elif child.type == "class_interface_clause":
                implements.extend(
                    self.resolve(self.text(c))
                    for c in child.named_children
                    if c.type in ("name", "qualified_name")
                )
        body = node.child_by_field_name("body")
        members = self.convert_all(self.named(body)) if body is not None else ()
        return ClassDecl(
            name=name,
            extends=extends,
            implements=tuple(implements),
            namespace=self.namespace,
            members=members,
            **self.span(node),
        )

    def modifiers(self, node: Node) -> tuple[str, bool]:
        visibility = "public"
        is_static = False
        for child in node.children:
            if child.type == "visibility_modifier":
                visibility = self.text(child).lower()
            elif child.type == "static_modifier":
                is_static = True
        return visibility, is_static

    def _property_declaration(self, node: Node):
        visibility, is_static = self.modifiers(node)
        declared = []
        for element in node.named_children:
            if element.type != "property_element":
                continue
            parts = self.named(element)
            variable = next((c for c in parts if c.type == "variable_name"), None)
            if variable is None:
                continue
            default = None
            after = parts[parts.index(variable) + 1:]
            if after:
                value = after[0]
                if value.type == "property_initializer":
                    inner = self.named(value)
                    value = inner[0] if inner else None
                default = self.convert(value)
            declared.append(
                PropertyDecl(
                    name=self.text(variable).lstrip("$"),
                    default=default,
                    visibility=visibility,
                    is_static=is_static,
                    **self.span(element),
                )
            )
        return declared

    def _method_declaration(self, node: Node):
        visibility, is_static = self.modifiers(node)
        params = []
        parameters = node.child_by_field_name("parameters")
        if parameters is not None:
            for param in parameters.named_children:
                name_node = param.child_by_field_name("name")
                if name_node is not None:
                    params.append(self.text(name_node).lstrip("$"))
        body = node.child_by_field_name("body")
        statements = self.convert_all(self.named(body)) if body is not None else ()
        return MethodDecl(
            name=self.text(node.child_by_field_name("name")),
            body=statements,
            visibility=visibility,
            is_static=is_static,
            params=tuple(params),
            **self.span(node),
        )

    # Calls

    def arguments(self, node: Optional[Node]) -> tuple:
        if node is None:
            return ()
        args = []
        for arg in node.named_children:
            if arg.type != "argument":
                converted = self.convert(arg)
                if converted is not None:
                    args.append(converted)
                continue
            name_node = arg.child_by_field_name("name")
            values = [c for c in self.named(arg) if c != name_node]
            if not values:
                continue
            value = self.convert(values[-1])
            if value is None:
                continue
            if name_node is not None:
                value = NamedArgument(self.text(name_node), value, **self.span(arg))
            args.append(value)
        return tuple(args)

    def _function_call_expression(self, node: Node):
        function = node.child_by_field_name("function")
        args = self.arguments(node.child_by_field_name("arguments"))
        if function is not None and function.type in ("name", "qualified_name"):
            return FunctionCall(self.text(function).lstrip("\\"), args, **self.span(node))
        return FunctionCall("", args, callee=self.convert(function), **self.span(node))

    def member_call(self, node: Node, nullsafe: bool):
        name_node = node.child_by_field_name("name")
        name = self.text(name_node) if name_node is not None and name_node.type == "name" else ""
        return MethodCall(
            receiver=self.convert(node.child_by_field_name("object")),
            name=name,
            args=self.arguments(node.child_by_field_name("arguments")),
            nullsafe=nullsafe,
            **self.span(node),
        )

    def _member_call_expression(self, node: Node):
        return self.member_call(node, nullsafe=False)

    def _nullsafe_member_call_expression(self, node: Node):
        return self.member_call(node, nullsafe=True)

    def _scoped_call_expression(self, node: Node):
        name_node = node.child_by_field_name("name")
        return StaticCall(
            type_name=self.resolve(self.text(node.child_by_field_name("scope"))),
            name=self.text(name_node) if name_node is not None else "",
            args=self.arguments(node.child_by_field_name("arguments")),
            **self.span(node),
        )

    def _object_creation_expression(self, node: Node):
        type_name = ""
        args: tuple = ()
        for child in node.named_children:
            if child.type in ("name", "qualified_name") and not type_name:
                type_name = self.resolve(self.text(child))
            elif child.type == "arguments":
                args = self.arguments(child)
        return NewExpression(type_name, args, **self.span(node))

    # Property and constant access

    def member_access(self, node: Node, nullsafe: bool):
        name_node = node.child_by_field_name("name")
        name = self.text(name_node) if name_node is not None and name_node.type == "name" else ""
        return PropertyAccess(
            base=self.convert(node.child_by_field_name("object")),
            name=name,
            nullsafe=nullsafe,
            **self.span(node),
        )

    def _member_access_expression(self, node: Node):
        return self.member_access(node, nullsafe=False)

    def _nullsafe_member_access_expression(self, node: Node):
        return self.member_access(node, nullsafe=True)

    def _class_constant_access_expression(self, node: Node):
        parts = self.named(node)
        if len(parts) < 2:
            if parts and self.text(node).rstrip().lower().endswith("::class"):
                return ClassConstantRef(self.resolve(self.text(parts[0])), "class", **self.span(node))
            return Block(node.type, self.convert_all(parts), **self.span(node))
        return ClassConstantRef(
            self.resolve(self.text(parts[0])), self.text(parts[-1]), **self.span(node)
        )

    def _variable_name(self, node: Node):
        return Variable(self.text(node).lstrip("$"), **self.span(node))

    def _name(self, node: Node):
        return ConstantRef(self.text(node), **self.span(node))

    def _qualified_name(self, node: Node):
        return ConstantRef(self.text(node).lstrip("\\"), **self.span(node))

    def _boolean(self, node: Node):
        return ConstantRef(self.text(node), **self.span(node))

    def _null(self, node: Node):
        return ConstantRef(self.text(node), **self.span(node))

    def _subscript_expression(self, node: Node):
        parts = self.named(node)
        base = self.convert(parts[0]) if parts else None
        key = self.convert(parts[1]) if len(parts) > 1 else None
        return ArrayAccess(base, key, **self.span(node))

    # Operators

    def operator_of(self, node: Node) -> str:
        operator = node.child_by_field_name("operator")
        if operator is not None:
            return self.text(operator)
        for child in node.children:
            if not child.is_named:
                return self.text(child)
        return ""

    def _binary_expression(self, node: Node):
        left = self.convert(node.child_by_field_name("left"))
        right = self.convert(node.child_by_field_name("right"))
        operator = self.operator_of(node)
        if operator == ".":
            return Concat(left, right, **self.span(node))
        return BinaryOp(left, right, operator, **self.span(node))

    def _unary_op_expression(self, node: Node):
        parts = self.named(node)
        operand = self.convert(parts[-1]) if parts else None
        operator = self.operator_of(node)
        if operator == "-" and isinstance(operand, IntLiteral):
            return IntLiteral(-operand.value, **self.span(node))
        return UnaryOp(operator, operand, **self.span(node))

    def _assignment_expression(self, node: Node):
        return Assignment(
            target=self.convert(node.child_by_field_name("left")),
            value=self.convert(node.child_by_field_name("right")),
            **self.span(node),
        )

    def _augmented_assignment_expression(self, node: Node):
        return Assignment(
            target=self.convert(node.child_by_field_name("left")),
            value=self.convert(node.child_by_field_name("right")),
            operator=self.operator_of(node),
            **self.span(node),
        )

    def _conditional_expression(self, node: Node):
        return Ternary(
            cond=self.convert(node.child_by_field_name("condition")),
            then=self.convert(node.child_by_field_name("body")),
            else_=self.convert(node.child_by_field_name("alternative")),
            **self.span(node),
        )

    def _cast_expression(self, node: Node):
        type_node = node.child_by_field_name("type")
        return Cast(
            inner=self.convert(node.child_by_field_name("value")),
            type_name=self.text(type_node).strip("() ").lower(),
            **self.span(node),
        )

    def _parenthesized_expression(self, node: Node):
        parts = self.named(node)
        return self.convert(parts[0]) if parts else None

    # Literals

    def _integer(self, node: Node):
        return IntLiteral(parse_php_int(self.text(node)), **self.span(node))

    def _string(self, node: Node):
        raw = self.text(node)
        if raw[:1] in ("b", "B"):
            raw = raw[1:]
        if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
            raw = raw[1:-1]
        return StringLiteral(raw.replace("\\'", "'").replace("\\\\", "\\"), **self.span(node))

    def _encapsed_string(self, node: Node):
        return self.interpolated(node, node.named_children)

    def _heredoc(self, node: Node):
        body = next((c for c in node.named_children if c.type == "heredoc_body"), None)
        if body is None:
            return StringLiteral("", **self.span(node))
        return self.interpolated(node, body.named_children)

    def _nowdoc(self, node: Node):
        body = next((c for c in node.named_children if c.type == "nowdoc_body"), None)
        return StringLiteral(self.text(body), **self.span(node))

    def interpolated(self, node: Node, fragments) -> SyntaxNode:
        parts: list[SyntaxNode] = []
        interpolated = False
        for fragment in fragments:
            if fragment.type in LITERAL_STRING_PARTS:
                parts.append(StringLiteral(self.text(fragment), **self.span(fragment)))
                continue
            converted = self.convert(fragment)
            if converted is not None:
                interpolated = True
                parts.append(converted)
        if interpolated:
            return InterpolatedString(tuple(parts), **self.span(node))
        raw = self.text(node)
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':
            value = raw[1:-1]
        else:
            value = "".join(part.value for part in parts if isinstance(part, StringLiteral))
        return StringLiteral(value, **self.span(node))

    def _array_creation_expression(self, node: Node):
        items = []
        for element in node.named_children:
            if element.type != "array_element_initializer":
                continue
            parts = self.named(element)
            has_key = any(not c.is_named and self.text(c) == "=>" for c in element.children)
            if has_key and len(parts) >= 2:
                item = ArrayItem(self.convert(parts[-1]), key=self.convert(parts[0]), **self.span(element))
            elif parts:
                item = ArrayItem(self.convert(parts[-1]), **self.span(element))
            else:
                continue
            items.append(item)
        return ArrayLiteral(tuple(items), **self.span(node))


def parse_php_int(text: str) -> int:
    """Integer literal value; PHP allows ``_`` separators and ``0``-prefixed octal."""
    digits = text.replace("_", "").lower()
    try:
        if digits.startswith(("0x", "0b", "0o")):
            return int(digits, 0)
        if len(digits) > 1 and digits.startswith("0"):
            return int(digits, 8)
        return int(digits)
    except ValueError:
        return 0
