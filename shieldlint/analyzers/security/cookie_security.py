"""Session cookie flags and cookie encryption middleware."""

from typing import Any

from shieldlint.analyzers.base import Rule, RuleMetadata, ScanContext
from shieldlint.analyzers.laravel import array_entry, config_array, env_key, literal_value
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import read_lines
from shieldlint.syntax.finders import find_method_calls_by_name, find_nodes_of_kind
from shieldlint.syntax.nodes import ClassConstantRef, argument, short_name

ENCRYPT_COOKIES = "EncryptCookies"

# Marks settings whose value is decided by the environment at runtime.
UNKNOWN = object()


def effective_value(node) -> Any:
    """Literal value of a config entry; ``env()`` without a default is UNKNOWN."""
    if env_key(node) is not None and argument(node, 1) is None:
        return UNKNOWN
    value = literal_value(node)
    return UNKNOWN if value is NotImplemented else value


class CookieSecurityRule(Rule):
    metadata = RuleMetadata(
        id="cookie-security",
        name="Cookie Security Analyzer",
        description="Ensures session cookies are HttpOnly, secure and SameSite, and cookies are encrypted",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"cookies", "encryption", "session", "security", "configuration"}),
        docs_url="https://laravel.com/docs/session#configuration",
        time_to_fix=10,
    )

    passed_summary = "Cookie security is properly configured"
    failed_summary = "Found {count} cookie security issue{s}"

    def applies(self, context: ScanContext) -> bool:
        return (
            context.exists("config", "session.php")
            or context.exists("app", "Http", "Kernel.php")
            or context.exists("bootstrap", "app.php")
        )

    def skip_reason(self, context: ScanContext) -> str:
        return "No session configuration or HTTP kernel found"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        session = context.path("config", "session.php")
        if session.exists():
            findings.extend(self.check_session(context, session))
        kernel = context.path("app", "Http", "Kernel.php")
        bootstrap = context.path("bootstrap", "app.php")
        if kernel.exists():
            findings.extend(self.check_kernel(context, kernel))
        elif bootstrap.exists():
            findings.extend(self.check_bootstrap(context, bootstrap))
        return findings

    def check_session(self, context: ScanContext, path) -> list[Finding]:
        array = config_array(self.parse(path))
        findings = []

        http_only = array_entry(array, "http_only")
        if http_only is not None and effective_value(http_only.value) is False:
            findings.append(self.finding(
                context,
                "Session cookies are not secured with HttpOnly flag",
                path,
                http_only.line,
                severity=Severity.CRITICAL,
                recommendation="Set 'http_only' => true so scripts cannot read the session cookie",
                metadata={"config_key": "http_only"},
            ))

        secure = array_entry(array, "secure")
        if secure is not None and effective_value(secure.value) is False:
            findings.append(self.finding(
                context,
                "Session cookies are not restricted to HTTPS (secure flag disabled)",
                path,
                secure.line,
                severity=Severity.HIGH,
                recommendation="Set 'secure' => env('SESSION_SECURE_COOKIE', true)",
                metadata={"config_key": "secure"},
            ))

        same_site = array_entry(array, "same_site")
        if same_site is not None:
            value = effective_value(same_site.value)
            if value is None or (isinstance(value, str) and value.lower() in ("null", "none")):
                findings.append(self.finding(
                    context,
                    "Session cookies have weak SameSite protection",
                    path,
                    same_site.line,
                    severity=Severity.MEDIUM,
                    recommendation="Use 'same_site' => 'lax' or 'strict'",
                    metadata={"config_key": "same_site", "current_value": str(value).lower()},
                ))
        return findings

    def check_kernel(self, context: ScanContext, path) -> list[Finding]:
        findings = []
        registered = any(
            short_name(ref.type_name) == ENCRYPT_COOKIES
            for ref in find_nodes_of_kind(self.parse(path), ClassConstantRef)
        )
        commented = [
            index
            for index, line in enumerate(read_lines(path))
            if ENCRYPT_COOKIES in line and line.lstrip().startswith(("//", "#"))
        ]
        for index in commented:
            findings.append(self.finding(
                context,
                "EncryptCookies middleware is commented out",
                path,
                index + 1,
                severity=Severity.CRITICAL,
                recommendation="Uncomment EncryptCookies in the web middleware group",
                metadata={"middleware": ENCRYPT_COOKIES, "status": "commented"},
            ))
        if not registered and not commented:
            findings.append(self.finding(
                context,
                "EncryptCookies middleware is not registered in HTTP Kernel",
                path,
                1,
                severity=Severity.CRITICAL,
                recommendation="Add \\App\\Http\\Middleware\\EncryptCookies::class to the web middleware group",
                metadata={"middleware": ENCRYPT_COOKIES, "status": "missing"},
            ))
        return findings

    def check_bootstrap(self, context: ScanContext, path) -> list[Finding]:
        """Laravel 11+ registers EncryptCookies by default unless the web group is replaced."""
        tree = self.parse(path)
        for call in find_method_calls_by_name(tree, "web"):
            removed = argument(call, 1, name="remove")
            if removed is not None and any(
                short_name(ref.type_name) == ENCRYPT_COOKIES
                for ref in find_nodes_of_kind(removed, ClassConstantRef)
            ):
                return [self.finding(
                    context,
                    "EncryptCookies middleware is removed from the web middleware group",
                    path,
                    call.line,
                    severity=Severity.CRITICAL,
                    recommendation="Do not remove EncryptCookies; list unencrypted cookies with encryptCookies(except: [...])",
                    metadata={"middleware": ENCRYPT_COOKIES, "status": "removed"},
                )]
        for call in find_method_calls_by_name(tree, "group"):
            name = argument(call, 0)
            replaced = literal_value(name) == "web"
            if replaced and not any(
                short_name(ref.type_name) == ENCRYPT_COOKIES
                for ref in find_nodes_of_kind(list(call.args), ClassConstantRef)
            ):
                return [self.finding(
                    context,
                    "EncryptCookies middleware is not registered globally",
                    path,
                    call.line,
                    severity=Severity.CRITICAL,
                    recommendation="Include EncryptCookies when redefining the web middleware group",
                    metadata={"middleware": ENCRYPT_COOKIES, "status": "missing"},
                )]
        return []
