"""Foreign keys exposed to mass assignment through ``$fillable``."""

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import is_eloquent_model, string_items
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.syntax.finders import find_classes, find_property


class FillableForeignKeyRule(Rule):
    metadata = RuleMetadata(
        id="fillable-foreign-key",
        name="Fillable Foreign Key Analyzer",
        description="Detects foreign keys in model $fillable arrays that let users reassign relationships",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"mass-assignment", "eloquent", "models", "security", "foreign-keys"}),
        docs_url="https://laravel.com/docs/eloquent#mass-assignment",
        time_to_fix=15,
    )

    passed_summary = "No fillable foreign keys detected"
    failed_summary = "Found {count} fillable foreign key{s}"

    class Options(RuleOptions):
        ownership_keys: dict[str, str] = {
            "user_id": "user ownership",
            "author_id": "author relationship",
            "owner_id": "owner relationship",
            "creator_id": "creator relationship",
            "parent_id": "hierarchical relationship",
        }

    def applies(self, context: ScanContext) -> bool:
        return bool(context.model_files)

    def skip_reason(self, context: ScanContext) -> str:
        return "No models found in app/Models"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for path in context.model_files:
            for class_decl in find_classes(self.parse(path)):
                if not is_eloquent_model(class_decl):
                    continue
                fillable = find_property(class_decl, "fillable")
                if fillable is None:
                    continue
                for field_name, item in string_items(fillable.default):
                    if field_name.endswith("_id"):
                        findings.append(self.field_finding(context, path, class_decl.name, field_name, item.line or fillable.line))
        return findings

    def field_finding(self, context: ScanContext, path, model: str, field_name: str, line: int) -> Finding:
        relationship = self.options.ownership_keys.get(field_name)
        if relationship is not None:
            return self.finding(
                context,
                f'Critical: "{field_name}" ({relationship}) is fillable in model "{model}" '
                "- this allows users to impersonate others",
                path,
                line,
                severity=Severity.CRITICAL,
                recommendation=f'Remove "{field_name}" from $fillable and set it explicitly: $model->{field_name} = auth()->id();',
                metadata={"model": model, "field": field_name},
            )
        return self.finding(
            context,
            f'Potential foreign key "{field_name}" is fillable in model "{model}"',
            path,
            line,
            severity=Severity.HIGH,
            recommendation=f'Remove "{field_name}" from $fillable or validate that users may set this relationship',
            metadata={"model": model, "field": field_name},
        )
