"""CSRF protection gaps in templates, scripts, middleware and routes."""

import re

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import string_items
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.routing import iter_route_chains, middleware_names
from shieldlint.analyzers.text import balanced_region_end, read_lines
from shieldlint.syntax.finders import find_classes, find_method_calls_by_name, find_nodes_of_kind, find_property
from shieldlint.syntax.nodes import ArrayLiteral, ClassConstantRef, argument, short_name

CSRF_MIDDLEWARE = {"VerifyCsrfToken", "ValidateCsrfToken"}

FORM_OPEN = re.compile(r"<form\b", re.IGNORECASE)
FORM_METHOD = re.compile(r"""method\s*=\s*["']\s*(POST|PUT|PATCH|DELETE)\s*["']""", re.IGNORECASE)
FORM_TOKEN = re.compile(r"""@csrf(\(\))?|<x-csrf\s*/?>|csrf_field\(\)|<input[^>]*name\s*=\s*["']_token["']""")
BLADE_AJAX = re.compile(r"\$\.ajax\s*\(|\bfetch\s*\(", re.IGNORECASE)
JS_AJAX = re.compile(r"\bfetch\s*\(|axios\.(post|put|patch|delete)\s*\(|\.ajax\s*\(", re.IGNORECASE)
AJAX_METHOD = re.compile(r"""(method|type)\s*:\s*["']?\s*(POST|PUT|PATCH|DELETE)\b""", re.IGNORECASE)
AJAX_TOKEN = re.compile(r"X-CSRF-TOKEN|X-XSRF-TOKEN|csrf[-_]?token|_token|@csrf", re.IGNORECASE)
GLOBAL_TOKEN = re.compile(r"(axios\.defaults\.headers|\$\.ajaxSetup)[\s\S]{0,200}(X-CSRF-TOKEN|X-XSRF-TOKEN)", re.IGNORECASE)


class CsrfRule(Rule):
    """Forms, AJAX calls and middleware configuration without CSRF protection."""

    metadata = RuleMetadata(
        id="csrf-protection",
        name="CSRF Protection Analyzer",
        description="Detects forms, AJAX requests and middleware configuration that bypass CSRF protection",
        category=Category.SECURITY,
        default_severity=Severity.CRITICAL,
        tags=frozenset({"csrf", "security", "forms", "middleware"}),
        docs_url="https://laravel.com/docs/csrf",
        time_to_fix=20,
    )

    passed_summary = "No CSRF protection issues detected"
    failed_summary = "Found {count} potential CSRF protection issue{s}"

    class Options(RuleOptions):
        allowed_exception_services: tuple[str, ...] = (
            "stripe", "mailgun", "mailslurp", "twilio", "slack", "github",
            "gitlab", "bitbucket", "webhooks", "paddle", "paypal", "braintree", "plaid",
        )
        ajax_scan_lines: int = 30

    def applies(self, context: ScanContext) -> bool:
        return bool(
            context.blade_files
            or context.js_files
            or context.route_files
            or context.exists("app", "Http", "Kernel.php")
            or context.exists("bootstrap", "app.php")
        )

    def skip_reason(self, context: ScanContext) -> str:
        return "No Blade templates, JavaScript files, routes, or CSRF middleware found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for path in context.blade_files:
            lines = read_lines(path)
            findings.extend(self.check_blade_forms(context, path, lines))
            findings.extend(self.check_ajax(context, path, lines, BLADE_AJAX, Severity.HIGH))

        if not any(GLOBAL_TOKEN.search("\n".join(read_lines(path))) for path in context.js_files):
            for path in context.js_files:
                findings.extend(self.check_ajax(context, path, read_lines(path), JS_AJAX, Severity.MEDIUM))

        for name in sorted(CSRF_MIDDLEWARE):
            path = context.path("app", "Http", "Middleware", f"{name}.php")
            if path.exists():
                findings.extend(self.check_middleware_exceptions(context, path))

        kernel = context.path("app", "Http", "Kernel.php")
        if kernel.exists():
            findings.extend(self.check_kernel(context, kernel))

        bootstrap = context.path("bootstrap", "app.php")
        if bootstrap.exists():
            findings.extend(self.check_bootstrap(context, bootstrap))

        for path in context.route_files:
            if path.name not in ("web.php", "api.php"):
                findings.extend(self.check_custom_routes(context, path))
        return findings

    # Templates and scripts

    def check_blade_forms(self, context: ScanContext, path, lines: list[str]) -> list[Finding]:
        findings = []
        for index, line in enumerate(lines):
            if not FORM_OPEN.search(line):
                continue
            tag_end = next((i for i in range(index, min(index + 10, len(lines))) if ">" in lines[i]), index)
            opening_tag = " ".join(lines[index:tag_end + 1])
            method = FORM_METHOD.search(opening_tag)
            if not method:
                continue
            close = next((i for i in range(index, len(lines)) if "</form>" in lines[i].lower()), len(lines) - 1)
            if any(FORM_TOKEN.search(lines[i]) for i in range(index, close + 1)):
                continue
            findings.append(self.finding(
                context,
                "Form without CSRF protection - missing @csrf directive",
                path,
                index + 1,
                severity=Severity.HIGH,
                recommendation="Add @csrf inside the form",
                metadata={"file": path.name, "method": method.group(1).upper()},
            ))
        return findings

    def check_ajax(self, context: ScanContext, path, lines: list[str], pattern, severity: Severity) -> list[Finding]:
        findings = []
        for index, line in enumerate(lines):
            match = pattern.search(line)
            if not match:
                continue
            end = balanced_region_end(lines, index, "(", ")", self.options.ajax_scan_lines)
            region = lines[index:end + 1]
            explicit = "axios" in match.group(0).lower()
            if not (explicit or any(AJAX_METHOD.search(text) for text in region)):
                continue
            if any(AJAX_TOKEN.search(text) for text in region):
                continue
            library = "axios" if explicit else ("fetch" if "fetch" in match.group(0).lower() else "jQuery")
            findings.append(self.finding(
                context,
                "AJAX request without CSRF token" if severity >= Severity.HIGH
                else "JavaScript AJAX request may be missing CSRF token",
                path,
                index + 1,
                severity=severity,
                recommendation='Send the token in an X-CSRF-TOKEN header read from <meta name="csrf-token">',
                metadata={"file": path.name, "ajax_type": library},
            ))
        return findings

    # Middleware configuration

    def check_middleware_exceptions(self, context: ScanContext, path) -> list[Finding]:
        findings = []
        for class_decl in find_classes(self.parse(path)):
            prop = find_property(class_decl, "except")
            if prop is None:
                continue
            for pattern, item in string_items(prop.default):
                finding = self._exception_finding(context, path, pattern, item.line or prop.line)
                if finding is not None:
                    findings.append(finding)
        return findings

    def _exception_finding(self, context: ScanContext, path, pattern: str, line: int):
        where = "" if path.name != "app.php" else " in bootstrap/app.php"
        if pattern.strip() in ("*", "/*"):
            return self.finding(
                context,
                f"Critical: All routes excluded from CSRF protection with wildcard{where}",
                path,
                line,
                severity=Severity.CRITICAL,
                recommendation="Remove the wildcard and list only the specific URIs that must skip CSRF verification",
                metadata={"exception": pattern},
            )
        if "*" in pattern and self.is_broad_exception(pattern):
            return self.finding(
                context,
                f"Broad CSRF exception pattern{where}: {pattern}",
                path,
                line,
                severity=Severity.HIGH,
                recommendation="Narrow the exception to specific paths, e.g. webhooks/stripe/*",
                metadata={"exception": pattern},
            )
        return None

    def is_broad_exception(self, pattern: str) -> bool:
        """Single-segment wildcards outside api/ and known webhook services."""
        clean = pattern.strip("/")
        if clean.startswith("api/"):
            return False
        if any(clean.startswith(f"{service}/") for service in self.options.allowed_exception_services):
            return False
        segments = [segment for segment in pattern.replace("*", "").split("/") if segment]
        return len(segments) < 2

    def check_kernel(self, context: ScanContext, path) -> list[Finding]:
        findings = []
        registered = {
            short_name(ref.type_name)
            for ref in find_nodes_of_kind(self.parse(path), ClassConstantRef)
        } & CSRF_MIDDLEWARE
        lines = read_lines(path)
        commented = [
            (index, name)
            for index, line in enumerate(lines)
            for name in sorted(CSRF_MIDDLEWARE)
            if name in line and line.lstrip().startswith(("//", "#"))
        ]
        for index, name in commented:
            findings.append(self.finding(
                context,
                f"{name} middleware is commented out",
                path,
                index + 1,
                severity=Severity.CRITICAL,
                recommendation=f"Uncomment {name} in the web middleware group",
                metadata={"middleware": name},
            ))
        if not registered and not commented:
            findings.append(self.finding(
                context,
                "CSRF middleware is not registered in HTTP Kernel",
                path,
                1,
                severity=Severity.CRITICAL,
                recommendation="Add \\App\\Http\\Middleware\\VerifyCsrfToken::class to the web middleware group",
            ))
        return findings

    def check_bootstrap(self, context: ScanContext, path) -> list[Finding]:
        """Laravel 11+ middleware configuration in ``bootstrap/app.php``."""
        tree = self.parse(path)
        findings = []

        for call in find_method_calls_by_name(tree, "remove"):
            if self._references_csrf(call.args):
                findings.append(self.finding(
                    context,
                    "Critical: ValidateCsrfToken middleware has been removed",
                    path,
                    call.line,
                    severity=Severity.CRITICAL,
                    recommendation="Do not remove ValidateCsrfToken; exclude specific URIs with validateCsrfTokens(except: [...])",
                ))

        for call in find_method_calls_by_name(tree, "web"):
            removed = argument(call, 1, name="remove")
            if removed is not None and self._references_csrf([removed]):
                findings.append(self.finding(
                    context,
                    "Critical: ValidateCsrfToken removed from web middleware group",
                    path,
                    call.line,
                    severity=Severity.CRITICAL,
                    recommendation="Keep ValidateCsrfToken in the web middleware group",
                ))

        for call in find_method_calls_by_name(tree, "use"):
            stack = argument(call, 0)
            if isinstance(stack, ArrayLiteral) and not self._references_csrf([stack]):
                findings.append(self.finding(
                    context,
                    "Critical: ValidateCsrfToken missing from global middleware stack",
                    path,
                    call.line,
                    severity=Severity.CRITICAL,
                    recommendation="Include ValidateCsrfToken when replacing the middleware stack with use([...])",
                ))

        for call in find_method_calls_by_name(tree, "validateCsrfTokens"):
            for pattern, item in string_items(argument(call, 0, name="except")):
                finding = self._exception_finding(context, path, pattern, item.line or call.line)
                if finding is not None:
                    findings.append(finding)
        return findings

    @staticmethod
    def _references_csrf(nodes) -> bool:
        return any(
            short_name(ref.type_name) in CSRF_MIDDLEWARE
            for ref in find_nodes_of_kind(list(nodes), ClassConstantRef)
        )

    # Custom route files

    def check_custom_routes(self, context: ScanContext, path) -> list[Finding]:
        """Route files outside web.php do not get the web group automatically."""
        findings = []
        for chain in iter_route_chains(self.parse(path), self._adds_web):
            verb = chain.verb_call
            if chain.guarded or verb is None or verb.name.lower() not in ("post", "put", "patch", "delete"):
                continue
            method = verb.name.upper()
            findings.append(self.finding(
                context,
                f'{method} route in custom route file missing CSRF protection - no "web" middleware detected',
                path,
                verb.line,
                severity=Severity.HIGH,
                recommendation="Apply the web middleware group to this route file or route",
                metadata={"method": method, "file": path.name},
            ))
        return findings

    @staticmethod
    def _adds_web(call) -> bool:
        return any(name == "web" or name in CSRF_MIDDLEWARE for name in middleware_names(call))
