"""Application encryption key and cipher."""

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import array_entry, config_array, env_key, literal_value
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import parse_env_lines, read_lines


class AppKeyRule(Rule):
    """``APP_KEY`` in env files and the key and cipher in ``config/app.php``."""

    metadata = RuleMetadata(
        id="app-key",
        name="App Key Security Analyzer",
        description="Ensures the application encryption key is set, generated and not hardcoded",
        category=Category.SECURITY,
        default_severity=Severity.CRITICAL,
        tags=frozenset({"encryption", "app-key", "security", "configuration"}),
        docs_url="https://laravel.com/docs/encryption#configuration",
        time_to_fix=5,
    )

    passed_summary = "Application key is properly configured"
    failed_summary = "Found {count} application key issue{s}"

    class Options(RuleOptions):
        env_files: tuple[str, ...] = (".env", ".env.example", ".env.production", ".env.prod")
        placeholder_keys: tuple[str, ...] = ("base64:your-key-here", "SomeRandomString", "null", '""', "''")
        supported_ciphers: tuple[str, ...] = ("aes-128-cbc", "aes-256-cbc", "aes-128-gcm", "aes-256-gcm")
        min_raw_key_length: int = 32

    def applies(self, context: ScanContext) -> bool:
        return any(context.exists(name) for name in self.options.env_files) or context.exists("config", "app.php")

    def skip_reason(self, context: ScanContext) -> str:
        return "No environment files or config/app.php found"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for name in self.options.env_files:
            path = context.path(name)
            if path.exists():
                findings.extend(self.check_env_file(context, path))
        app_config = context.path("config", "app.php")
        if app_config.exists():
            findings.extend(self.check_app_config(context, app_config))
        return findings

    def check_env_file(self, context: ScanContext, path) -> list[Finding]:
        lines = read_lines(path)
        values = parse_env_lines(lines)
        if "APP_KEY" not in values:
            # Example files document keys; only real env files must define one.
            if path.name.endswith(".example"):
                return []
            return [self.finding(
                context,
                "APP_KEY is not defined in environment file",
                path,
                1,
                severity=Severity.CRITICAL,
                recommendation='Add APP_KEY to the environment file and run "php artisan key:generate"',
            )]

        key, line = values["APP_KEY"]
        raw = lines[line - 1].split("=", 1)[1].strip()
        if not key and path.name.endswith(".example"):
            return []
        if key in self.options.placeholder_keys or raw in self.options.placeholder_keys:
            message, severity = "APP_KEY is set to a placeholder/example value", Severity.CRITICAL
        elif not key:
            message, severity = "APP_KEY is not set or is empty", Severity.CRITICAL
        elif not key.startswith("base64:") and len(key) < self.options.min_raw_key_length:
            message, severity = "APP_KEY does not follow the expected format or is too short", Severity.HIGH
        else:
            return []
        return [self.finding(
            context,
            message,
            path,
            line,
            severity=severity,
            recommendation='Run "php artisan key:generate" to generate a secure application key',
            metadata={"file": path.name},
        )]

    def check_app_config(self, context: ScanContext, path) -> list[Finding]:
        array = config_array(self.parse(path))
        findings = []

        key = array_entry(array, "key")
        if key is not None and env_key(key.value) is None:
            value = literal_value(key.value)
            if isinstance(value, str) and value:
                findings.append(self.finding(
                    context,
                    "Application key is hardcoded in config/app.php instead of using environment variable",
                    path,
                    key.line,
                    severity=Severity.CRITICAL,
                    recommendation="Use 'key' => env('APP_KEY')",
                ))

        cipher = array_entry(array, "cipher")
        value = literal_value(cipher.value) if cipher is not None else None
        if isinstance(value, str) and value.lower() not in self.options.supported_ciphers:
            findings.append(self.finding(
                context,
                f"Unsupported or weak cipher algorithm: {value.lower()}",
                path,
                cipher.line,
                severity=Severity.HIGH,
                recommendation='Use "AES-256-CBC" or "AES-256-GCM"',
                metadata={"cipher": value.lower()},
            ))
        return findings
