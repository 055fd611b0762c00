"""Tests for the PHP parser."""

import pytest

from shieldlint.syntax.finders import find_classes, find_nodes_of_kind, find_property, find_static_calls
from shieldlint.syntax.nodes import (
    ArrayLiteral,
    Assignment,
    ClassConstantRef,
    Concat,
    FunctionCall,
    InterpolatedString,
    MethodCall,
    MethodDecl,
    StaticCall,
    StringLiteral,
    Variable,
)
from shieldlint.syntax.php_parser import PhpParser, parse_php_int


class TestPhpParser:
    """Tests for PhpParser."""

    @pytest.fixture
    def parser(self):
        return PhpParser()

    def test_parse_function_call(self, parser):
        """Parses a plain function call statement."""
        statements = parser.parse_source("<?php foo($a);")

        assert len(statements) == 1
        call = statements[0]
        assert isinstance(call, FunctionCall)
        assert call.name == "foo"
        assert isinstance(call.args[0], Variable)
        assert call.args[0].name == "a"
        assert call.line == 1

    def test_parse_concatenation(self, parser):
        """Dot operator becomes a Concat node."""
        statements = parser.parse_source('<?php $sql = "SELECT " . $id;')

        assignment = statements[0]
        assert isinstance(assignment, Assignment)
        assert isinstance(assignment.value, Concat)

    def test_parse_interpolated_string(self, parser):
        """Double-quoted strings with variables become InterpolatedString."""
        statements = parser.parse_source('<?php $sql = "SELECT * FROM users WHERE id = $id";')

        value = statements[0].value
        assert isinstance(value, InterpolatedString)
        assert any(isinstance(part, Variable) and part.name == "id" for part in value.parts)

    def test_parse_plain_strings(self, parser):
        """Strings without embedded expressions stay literals."""
        statements = parser.parse_source("<?php $a = 'single'; $b = \"double\";")

        assert isinstance(statements[0].value, StringLiteral)
        assert statements[0].value.value == "single"
        assert isinstance(statements[1].value, StringLiteral)
        assert statements[1].value.value == "double"

    def test_parse_static_and_method_calls(self, parser, sample_sql):
        """Static calls and fluent method chains are converted."""
        statements = parser.parse_source(sample_sql)

        selects = find_static_calls(statements, "DB", "select")
        assert len(selects) == 2
        assert selects[0].line == 7

        raw = [call for call in find_nodes_of_kind(statements, MethodCall) if call.name == "whereRaw"]
        assert len(raw) == 1
        assert isinstance(raw[0].receiver, StaticCall)
        assert raw[0].receiver.name == "table"

    def test_use_statement_resolves_alias(self, parser):
        """Imported aliases expand to the imported class name."""
        source = "<?php\nuse Illuminate\\Support\\Facades\\DB as Database;\nDatabase::raw('1');\n"
        statements = parser.parse_source(source)

        call = find_nodes_of_kind(statements, StaticCall)[0]
        assert call.type_name == "Illuminate\\Support\\Facades\\DB"

    def test_parse_class_declaration(self, parser, sample_model):
        """Classes carry namespace, parent and property declarations."""
        statements = parser.parse_source(sample_model)

        classes = find_classes(statements)
        assert len(classes) == 1
        post = classes[0]
        assert post.name == "Post"
        assert post.namespace == "App\\Models"
        assert post.extends == "Illuminate\\Database\\Eloquent\\Model"

        fillable = find_property(post, "fillable")
        assert fillable is not None
        assert fillable.visibility == "protected"
        assert isinstance(fillable.default, ArrayLiteral)
        assert len(fillable.default.items) == 4

    def test_parse_method_declaration(self, parser, sample_controller):
        """Methods keep their visibility, parameters and body."""
        statements = parser.parse_source(sample_controller)

        methods = find_nodes_of_kind(statements, MethodDecl)
        assert [method.name for method in methods] == ["store", "update"]
        assert methods[0].params == ("request",)
        assert methods[0].line == 10
        assert methods[0].body

    def test_class_constant_reference(self, parser):
        """``Foo::class`` becomes a ClassConstantRef."""
        statements = parser.parse_source("<?php $m = [\\App\\Http\\Middleware\\EncryptCookies::class];")

        refs = find_nodes_of_kind(statements, ClassConstantRef)
        assert len(refs) == 1
        assert refs[0].type_name == "App\\Http\\Middleware\\EncryptCookies"

    def test_parse_missing_file(self, parser, tmp_path):
        """Unreadable files yield no statements."""
        assert parser.parse(tmp_path / "missing.php") == []

    def test_parse_file_is_cached(self, parser, tmp_path):
        """Unchanged files are converted once."""
        path = tmp_path / "a.php"
        path.write_text("<?php foo();", encoding="utf-8")

        first = parser.parse(path)
        second = parser.parse(path)

        assert first is second

    def test_recovers_from_syntax_errors(self, parser):
        """Broken files still yield the parsable statements."""
        statements = parser.parse_source("<?php\nbar($x);\nfunction {\n")

        names = [call.name for call in find_nodes_of_kind(statements, FunctionCall)]
        assert "bar" in names


class TestParsePhpInt:
    """Tests for integer literal parsing."""

    def test_decimal(self):
        """Parses decimal with separators."""
        assert parse_php_int("65_536") == 65536

    def test_prefixed(self):
        """Parses hex, binary and octal forms."""
        assert parse_php_int("0x1F") == 31
        assert parse_php_int("0b101") == 5
        assert parse_php_int("017") == 15
