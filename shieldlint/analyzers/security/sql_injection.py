"""SQL built from concatenation, interpolation or raw user input."""

from typing import Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.matchers import DEFAULT_INPUT_SOURCES, find_first_tainted_input_node, find_first_vulnerable_node
from shieldlint.syntax.finders import find_function_calls, find_method_calls_by_name, find_nodes_of_kind, find_static_calls
from shieldlint.syntax.nodes import (
    Assignment,
    FunctionCall,
    MethodCall,
    NamedArgument,
    NewExpression,
    StaticCall,
    SyntaxNode,
    Variable,
    argument,
    short_name,
)

# Native function -> (index of the SQL argument when the connection is passed,
# argument count with the connection when the connection may be omitted)
SQL_ARGUMENT_POSITIONS = {
    "mysqli_query": (1, None),
    "mysqli_real_query": (1, None),
    "mysqli_multi_query": (1, None),
    "mysqli_prepare": (1, None),
    "pg_query": (1, 2),
    "pg_send_query": (1, None),
    "pg_prepare": (2, 3),
    "pg_send_prepare": (2, None),
    "pg_query_params": (1, 3),
    "pg_send_query_params": (1, None),
}


def sql_position(call: FunctionCall) -> int:
    """Positional index of the SQL string in a native database call.

    ``pg_query``, ``pg_prepare`` and ``pg_query_params`` may omit the
    connection, which shifts the query one position to the left.
    """
    index, full_arity = SQL_ARGUMENT_POSITIONS.get(short_name(call.name).lower(), (1, 2))
    positional = [arg for arg in call.args if not isinstance(arg, NamedArgument)]
    if full_arity is not None and len(positional) < full_arity:
        return index - 1
    return index


class SqlInjectionRule(Rule):
    """Raw query methods and native database calls fed with built SQL strings.

    Only the SQL argument of a call is inspected, so bindings passed in a
    separate array never count as injection.
    """

    metadata = RuleMetadata(
        id="sql-injection",
        name="SQL Injection Analyzer",
        description="Detects raw SQL queries built from concatenation, interpolation or user input",
        category=Category.SECURITY,
        default_severity=Severity.CRITICAL,
        tags=frozenset({"sql", "injection", "database", "security"}),
        docs_url="https://laravel.com/docs/queries#raw-expressions",
        time_to_fix=30,
    )

    passed_summary = "No SQL injection vulnerabilities detected"
    failed_summary = "Found {count} potential SQL injection vulnerabilities"

    class Options(RuleOptions):
        raw_methods: tuple[str, ...] = ("raw", "whereRaw", "orWhereRaw", "havingRaw", "orderByRaw", "selectRaw", "groupByRaw")
        db_query_methods: tuple[str, ...] = ("select", "insert", "update", "delete", "statement", "selectOne", "scalar")
        db_facades: tuple[str, ...] = ("DB",)
        mysqli_functions: tuple[str, ...] = ("mysqli_query", "mysqli_real_query", "mysqli_multi_query", "mysqli_prepare")
        postgres_functions: tuple[str, ...] = (
            "pg_query", "pg_send_query", "pg_prepare", "pg_send_prepare", "pg_query_params", "pg_send_query_params",
        )
        native_methods: tuple[str, ...] = ("query", "exec", "prepare", "real_query", "multi_query")
        native_classes: tuple[str, ...] = ("PDO", "mysqli")

    def applies(self, context: ScanContext) -> bool:
        return bool(context.php_files)

    def skip_reason(self, context: ScanContext) -> str:
        return "No PHP files found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for path in context.php_files:
            tree = self.parse(path)
            if tree:
                findings.extend(self.check_file(context, path, tree))
        return findings

    def vulnerable_node(self, sql: Optional[SyntaxNode]) -> Optional[SyntaxNode]:
        """Node that makes ``sql`` unsafe: a built string or any read of user input."""
        return find_first_vulnerable_node(sql) or find_first_tainted_input_node(
            sql, DEFAULT_INPUT_SOURCES, include_scoped=True
        )

    def check_file(self, context: ScanContext, path, tree) -> list[Finding]:
        findings = []
        reported: set[int] = set()

        def report(call, label: str, recommendation: str, sql_index: int = 0) -> None:
            if id(call) in reported:
                return
            sql = argument(call, sql_index, name="query")
            node = self.vulnerable_node(sql)
            if node is None:
                return
            reported.add(id(call))
            findings.append(self._issue(context, path, node.line or call.line, label, recommendation))

        for facade in self.options.db_facades:
            for call in find_static_calls(tree, facade, "unprepared"):
                reported.add(id(call))
                findings.append(self._issue(
                    context, path, call.line, f"{facade}::unprepared()",
                    "Avoid DB::unprepared(); use DB::statement() or DB::select() with parameter binding",
                ))
            for method in self.options.raw_methods + self.options.db_query_methods:
                for call in find_static_calls(tree, facade, method):
                    report(call, f"{facade}::{method}()", f"Use parameter binding: {facade}::{method}('... ?', [$value])")

        raw_methods = {method.lower(): method for method in self.options.raw_methods}
        for call in find_nodes_of_kind(tree, (MethodCall, StaticCall)):
            method = raw_methods.get(call.name.lower())
            if method is not None:
                report(call, f"{method}()", f"Use parameter binding: ->{method}('column = ?', [$value])")

        native = self.options.mysqli_functions + self.options.postgres_functions
        for call in find_function_calls(tree, *native):
            name = short_name(call.name)
            report(call, f"{name}()", "Use Laravel's DB facade or Eloquent with parameter binding", sql_position(call))

        native_variables = self._native_connection_variables(tree)
        for method in self.options.native_methods:
            for call in find_method_calls_by_name(tree, method):
                receiver = call.receiver
                if isinstance(receiver, Variable) and receiver.name in native_variables:
                    report(call, f"->{method}()", "Use prepared statements with bound parameters")
        return findings

    def _native_connection_variables(self, tree) -> set[str]:
        """Variables assigned ``new PDO(...)`` or ``new mysqli(...)`` in this file."""
        names = set()
        classes = {name.lower() for name in self.options.native_classes}
        for node in find_nodes_of_kind(tree, Assignment):
            if (
                isinstance(node.value, NewExpression)
                and short_name(node.value.type_name).lower() in classes
                and isinstance(node.target, Variable)
            ):
                names.add(node.target.name)
        return names

    def _issue(self, context: ScanContext, path, line: int, label: str, recommendation: str) -> Finding:
        return self.finding(
            context,
            f"Potential SQL injection: {label} with string concatenation or user input",
            path,
            line,
            severity=Severity.CRITICAL,
            recommendation=recommendation,
            metadata={"method": label},
        )
