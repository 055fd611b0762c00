"""Global ``Model::unguard()`` calls."""

from shieldlint.analyzers.base import Rule, RuleMetadata, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.syntax.finders import find_nodes_of_kind
from shieldlint.syntax.nodes import StaticCall, short_name

ELOQUENT_CLASSES = {"model", "eloquent"}

CRITICAL_LOCATIONS = ("app/http/controllers", "http/controllers", "app/models", "models", "app/services", "services")
MEDIUM_LOCATIONS = ("database/seeders", "database/seeds")
LOW_LOCATIONS = ("tests", "test.php")


def severity_for_location(relative_path: str) -> Severity:
    """Unguarding in request-handling code is worse than in seeders or tests."""
    normalized = relative_path.replace("\\", "/").lower()
    if any(part in normalized for part in CRITICAL_LOCATIONS):
        return Severity.CRITICAL
    if any(part in normalized for part in MEDIUM_LOCATIONS):
        return Severity.MEDIUM
    if any(part in normalized for part in LOW_LOCATIONS):
        return Severity.LOW
    return Severity.HIGH


class UnguardedModelsRule(Rule):
    metadata = RuleMetadata(
        id="unguarded-models",
        name="Unguarded Models Analyzer",
        description="Detects Model::unguard() usage that disables mass assignment protection",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"eloquent", "mass-assignment", "models", "security", "unguard"}),
        docs_url="https://laravel.com/docs/eloquent#allowing-mass-assignment",
        time_to_fix=20,
    )

    passed_summary = "No unguarded models detected"
    failed_summary = "Found {count} instance{s} of unguarded models"

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

    def check_file(self, context: ScanContext, path, tree) -> list[Finding]:
        unguards, reguards = [], []
        for call in find_nodes_of_kind(tree, StaticCall):
            if short_name(call.type_name).lower() not in ELOQUENT_CLASSES:
                continue
            name = call.name.lower()
            if name == "unguard":
                unguards.append(call)
            elif name == "reguard":
                reguards.append(call.line)

        reguards.sort()
        relative = context.relative(path)
        findings = []
        for call in sorted(unguards, key=lambda c: c.line):
            # Each reguard() after an unguard() closes exactly one of them.
            later = next((line for line in reguards if line > call.line), None)
            if later is not None:
                reguards.remove(later)
                continue
            findings.append(self.finding(
                context,
                f"Model mass assignment protection disabled without re-guarding ({short_name(call.type_name)}::unguard())",
                path,
                call.line,
                severity=severity_for_location(relative),
                recommendation="Call Model::reguard() right after the import, or use Model::unguarded(fn () => ...) "
                "or forceFill() instead of unguarding globally",
            ))
        return findings
