"""Mass assignment of unfiltered request input."""

from typing import Iterable, Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import is_eloquent_model, looks_like_model
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.matchers import (
    DEFAULT_INPUT_SOURCES,
    InputSources,
    find_first_blacklisted_input_node,
    find_first_tainted_input_node,
    is_fluent_chain_rooted_at,
    is_query_builder_root,
)
from shieldlint.syntax.finders import find_classes, find_nodes_of_kind, find_property
from shieldlint.syntax.nodes import ArrayLiteral, MethodCall, StaticCall, SyntaxNode


def input_risk(
    args: Iterable[SyntaxNode], sources: InputSources = DEFAULT_INPUT_SOURCES
) -> Optional[tuple[Severity, SyntaxNode, str]]:
    """Severity, offending node and kind when call arguments carry raw input.

    Unfiltered input (``all()``, superglobals) is Critical; a deny list
    (``except([...])``) is High since new fields slip through.
    """
    args = list(args)
    tainted = find_first_tainted_input_node(args, sources)
    if tainted is not None:
        return Severity.CRITICAL, tainted, "unfiltered"
    blacklisted = find_first_blacklisted_input_node(args, sources)
    if blacklisted is not None:
        return Severity.HIGH, blacklisted, "blacklist"
    return None


class MassAssignmentRule(Rule):
    """Eloquent and query builder writes fed with request input, and unprotected models."""

    metadata = RuleMetadata(
        id="mass-assignment",
        name="Mass Assignment Vulnerability Analyzer",
        description="Detects request data passed straight into model and query builder writes",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"mass-assignment", "eloquent", "security", "models"}),
        docs_url="https://laravel.com/docs/eloquent#mass-assignment",
        time_to_fix=20,
    )

    passed_summary = "No mass assignment vulnerabilities detected"
    failed_summary = "Found {count} potential mass assignment issue{s}"

    class Options(RuleOptions):
        static_methods: tuple[str, ...] = (
            "create", "forceCreate", "firstOrCreate", "updateOrCreate", "firstOrNew",
            "make", "insert", "upsert", "insertOrIgnore",
        )
        instance_methods: tuple[str, ...] = ("fill", "forceFill", "update")
        builder_methods: tuple[str, ...] = (
            "update", "insert", "upsert", "insertOrIgnore", "insertUsing", "insertGetId", "updateOrInsert",
        )

    def applies(self, context: ScanContext) -> bool:
        return bool(context.php_files)

    def skip_reason(self, context: ScanContext) -> str:
        return "No PHP files found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        models = set(context.model_files)
        for path in context.php_files:
            tree = self.parse(path)
            if not tree:
                continue
            if path in models:
                findings.extend(self.check_models(context, path, tree))
            findings.extend(self.check_calls(context, path, tree))
        return findings

    def check_calls(self, context: ScanContext, path, tree) -> list[Finding]:
        static_methods = {name.lower() for name in self.options.static_methods}
        instance_methods = {name.lower() for name in self.options.instance_methods}
        builder_methods = {name.lower() for name in self.options.builder_methods}
        findings = []
        for call in find_nodes_of_kind(tree, (StaticCall, MethodCall)):
            name = call.name.lower()
            if isinstance(call, StaticCall):
                if name not in static_methods or not looks_like_model(call.type_name):
                    continue
                call_type = "static"
            elif name in builder_methods and is_fluent_chain_rooted_at(call, is_query_builder_root):
                call_type = "builder"
            elif name in instance_methods:
                call_type = "instance"
            else:
                continue
            finding = self.check_call(context, path, call, call_type)
            if finding is not None:
                findings.append(finding)
        return findings

    def check_call(self, context: ScanContext, path, call, call_type: str) -> Optional[Finding]:
        risk = input_risk(call.args)
        if risk is None:
            return None
        severity, node, kind = risk
        label = {"static": "Static call to", "instance": "Instance call to", "builder": "Query builder call to"}[call_type]
        if kind == "blacklist":
            message = f"{label} {call.name}() with blacklist filtering of request data"
            recommendation = "Use $request->only([...]) or $request->validated() instead of except()"
        else:
            message = f"{label} {call.name}() with unfiltered request data"
            recommendation = "Use $request->validated() or $request->only([...]) to allow specific fields"
        return self.finding(
            context,
            message,
            path,
            call.line or node.line,
            severity=severity,
            recommendation=recommendation,
            metadata={"method": call.name, "call_type": call_type, "input": kind},
        )

    def check_models(self, context: ScanContext, path, tree) -> list[Finding]:
        findings = []
        for class_decl in find_classes(tree):
            if not is_eloquent_model(class_decl):
                continue
            fillable = find_property(class_decl, "fillable")
            guarded = find_property(class_decl, "guarded")
            if fillable is None and guarded is None:
                findings.append(self.finding(
                    context,
                    f"Model {class_decl.name} has no $fillable or $guarded protection",
                    path,
                    class_decl.line,
                    severity=Severity.HIGH,
                    recommendation="Define protected $fillable with the attributes that may be mass assigned",
                    metadata={"model": class_decl.name},
                ))
            elif isinstance(guarded.default if guarded else None, ArrayLiteral) and not guarded.default.items:
                findings.append(self.finding(
                    context,
                    f"Model {class_decl.name} disables mass assignment protection with $guarded = []",
                    path,
                    guarded.line,
                    severity=Severity.CRITICAL,
                    recommendation="Replace $guarded = [] with an explicit $fillable list",
                    metadata={"model": class_decl.name},
                ))
        return findings
