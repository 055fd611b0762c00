"""Debug mode and debug output left enabled."""

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import array_entry, config_array, json_key_line, literal_value, load_json
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import parse_env_lines, read_lines
from shieldlint.syntax.finders import find_function_calls
from shieldlint.syntax.nodes import ConstantRef, IntLiteral, StringLiteral, argument

TRUTHY = {"true", "1", "on", "yes"}


class DebugModeRule(Rule):
    """``APP_DEBUG``, debug helpers and debug tooling in production code."""

    metadata = RuleMetadata(
        id="debug-mode",
        name="Debug Mode Analyzer",
        description="Detects debug mode and debug output that expose internals in production",
        category=Category.SECURITY,
        default_severity=Severity.CRITICAL,
        tags=frozenset({"debug", "security", "configuration", "information-disclosure"}),
        docs_url="https://laravel.com/docs/configuration#debug-mode",
        time_to_fix=10,
    )

    passed_summary = "Debug mode is properly configured"
    failed_summary = "Found {count} debug mode issue{s}"

    class Options(RuleOptions):
        development_environments: tuple[str, ...] = ("local", "development", "testing")
        high_risk_functions: tuple[str, ...] = ("dd", "dump", "var_dump", "print_r", "ray")
        medium_risk_functions: tuple[str, ...] = ("var_export", "debug_backtrace", "debug_print_backtrace")
        debug_packages: tuple[str, ...] = (
            "barryvdh/laravel-debugbar",
            "spatie/laravel-ray",
            "laravel/telescope",
            "itsgoingd/clockwork",
        )
        ignored_path_parts: tuple[str, ...] = ("tests", "seeders", "factories", "Seeders", "Factories")

    def applies(self, context: ScanContext) -> bool:
        return bool(
            context.php_files
            or context.exists(".env")
            or context.exists("config", "app.php")
            or context.exists("composer.json")
        )

    def skip_reason(self, context: ScanContext) -> str:
        return "No environment, configuration or PHP files found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        env = context.path(".env")
        if env.exists():
            findings.extend(self.check_env(context, env))
        app_config = context.path("config", "app.php")
        if app_config.exists():
            findings.extend(self.check_app_config(context, app_config))
        for path in context.php_files:
            if path == app_config or self._ignored(context, path):
                continue
            findings.extend(self.check_debug_calls(context, path))
        composer = context.path("composer.json")
        if composer.exists():
            findings.extend(self.check_composer(context, composer))
        return findings

    def _ignored(self, context: ScanContext, path) -> bool:
        parts = set(context.relative(path).split("/")[:-1])
        return bool(parts & set(self.options.ignored_path_parts))

    def check_env(self, context: ScanContext, path) -> list[Finding]:
        values = parse_env_lines(read_lines(path))
        if "APP_DEBUG" not in values:
            return []
        debug, line = values["APP_DEBUG"]
        environment = values.get("APP_ENV", ("production", 0))[0].lower()
        if debug.lower() not in TRUTHY or environment in self.options.development_environments:
            return []
        return [self.finding(
            context,
            f"APP_DEBUG is enabled in the {environment} environment",
            path,
            line,
            severity=Severity.CRITICAL,
            recommendation="Set APP_DEBUG=false outside local development",
            metadata={"app_env": environment},
        )]

    def check_app_config(self, context: ScanContext, path) -> list[Finding]:
        entry = array_entry(config_array(self.parse(path)), "debug")
        if entry is None or literal_value(entry.value) is not True:
            return []
        return [self.finding(
            context,
            "Debug mode is hardcoded or defaults to true in config/app.php",
            path,
            entry.line,
            severity=Severity.CRITICAL,
            recommendation="Use 'debug' => (bool) env('APP_DEBUG', false)",
        )]

    def check_debug_calls(self, context: ScanContext, path) -> list[Finding]:
        tree = self.parse(path)
        if not tree:
            return []
        findings = []
        high = self.options.high_risk_functions
        medium = self.options.medium_risk_functions
        for call in find_function_calls(tree, *high, *medium):
            name = call.name.rsplit("\\", 1)[-1].lower()
            findings.append(self.finding(
                context,
                f"Debug function {name}() found in code",
                path,
                call.line,
                severity=Severity.HIGH if name in high else Severity.MEDIUM,
                recommendation="Remove debug output before deploying; use logging instead",
                metadata={"function": name},
            ))

        for call in find_function_calls(tree, "error_reporting"):
            level = argument(call, 0)
            if isinstance(level, ConstantRef) and level.name == "E_ALL":
                findings.append(self.finding(
                    context,
                    "error_reporting(E_ALL) enables verbose error output",
                    path,
                    call.line,
                    severity=Severity.MEDIUM,
                    recommendation="Let the framework control error reporting per environment",
                ))

        for call in find_function_calls(tree, "ini_set"):
            option, value = argument(call, 0), argument(call, 1)
            if not (isinstance(option, StringLiteral) and option.value == "display_errors"):
                continue
            if self._enables(value):
                findings.append(self.finding(
                    context,
                    "display_errors is switched on with ini_set()",
                    path,
                    call.line,
                    severity=Severity.HIGH,
                    recommendation="Do not display errors to users; log them instead",
                ))
        return findings

    @staticmethod
    def _enables(value) -> bool:
        if isinstance(value, StringLiteral):
            return value.value.lower() in TRUTHY
        if isinstance(value, IntLiteral):
            return value.value == 1
        if isinstance(value, ConstantRef):
            return value.name.lower() == "true"
        return False

    def check_composer(self, context: ScanContext, path) -> list[Finding]:
        composer = load_json(path) or {}
        required = composer.get("require") or {}
        lines = read_lines(path)
        return [
            self.finding(
                context,
                f"Debug package {package} is a production dependency",
                path,
                json_key_line(lines, package),
                severity=Severity.MEDIUM,
                recommendation=f"Move {package} to require-dev",
                metadata={"package": package},
            )
            for package in self.options.debug_packages
            if package in required
        ]
