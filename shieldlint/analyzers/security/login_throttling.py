"""Login endpoints open to brute force."""

import logging
from typing import Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.routing import RouteChain, iter_route_chains, middleware_names, route_uri
from shieldlint.analyzers.text import read_text
from shieldlint.syntax.finders import find_classes, methods

logger = logging.getLogger(__name__)

LOGIN_VERBS = {"post", "any"}


class LoginThrottlingRule(Rule):
    """Login routes and authentication controllers without rate limiting.

    Throttle middleware in the HTTP kernel (or ``bootstrap/app.php``) and any
    use of the ``RateLimiter`` facade count as global throttling, which
    covers every login route. Controllers are checked on their own.
    """

    metadata = RuleMetadata(
        id="login-throttling",
        name="Login Throttling Analyzer",
        description="Detects missing rate limiting on authentication endpoints to prevent brute force attacks",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"authentication", "rate-limiting", "brute-force", "security", "throttling"}),
        docs_url="https://laravel.com/docs/rate-limiting",
        time_to_fix=20,
    )

    passed_summary = "Login throttling/rate limiting is properly configured"
    failed_summary = "Found {count} login throttling issues"

    class Options(RuleOptions):
        login_uri_keywords: tuple[str, ...] = ("login", "signin", "auth", "authenticate")
        throttle_middleware_prefixes: tuple[str, ...] = ("throttle",)
        auth_controllers: tuple[str, ...] = (
            "app/Http/Controllers/Auth/LoginController.php",
            "app/Http/Controllers/AuthController.php",
            "app/Http/Controllers/LoginController.php",
        )
        login_methods: tuple[str, ...] = ("login", "authenticate", "postLogin", "attempt")
        controller_throttle_markers: tuple[str, ...] = ("ThrottlesLogins", "RateLimiter", "throttle", "AuthenticatesUsers")

    def applies(self, context: ScanContext) -> bool:
        return bool(context.route_files) or any(context.exists(path) for path in self.options.auth_controllers)

    def skip_reason(self, context: ScanContext) -> str:
        return "No routes or authentication controllers found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []

        if self.has_global_throttling(context):
            logger.debug("Global throttling found; login routes are covered")
        else:
            for path in context.route_files:
                if path.name == "api.php":
                    continue
                for chain in iter_route_chains(self.parse(path), self._adds_throttle):
                    finding = self.check_route(context, path, chain)
                    if finding is not None:
                        findings.append(finding)

        for relative in self.options.auth_controllers:
            path = context.path(relative)
            if path.exists():
                findings.extend(self.check_controller(context, path))
        return findings

    def has_global_throttling(self, context: ScanContext) -> bool:
        kernel = context.path("app", "Http", "Kernel.php")
        if kernel.exists():
            content = read_text(kernel) or ""
            if "ThrottleRequests" in content or "\\throttle" in content:
                return True
        else:
            content = read_text(context.path("bootstrap", "app.php")) or ""
            if "ThrottleRequests" in content or "throttle" in content:
                return True
        return any("RateLimiter" in (read_text(path) or "") for path in context.php_files)

    def _adds_throttle(self, call) -> bool:
        prefixes = tuple(prefix.lower() for prefix in self.options.throttle_middleware_prefixes)
        return any(name.lower().startswith(prefixes) for name in middleware_names(call))

    def check_route(self, context: ScanContext, path, chain: RouteChain) -> Optional[Finding]:
        verb = chain.verb_call
        if verb is None or chain.guarded or verb.name.lower() not in LOGIN_VERBS:
            return None
        uri = route_uri(verb)
        if uri is None or not any(keyword in uri.lower() for keyword in self.options.login_uri_keywords):
            return None
        return self.finding(
            context,
            f'Login route "{uri}" lacks rate limiting protection',
            path,
            verb.line,
            severity=Severity.HIGH,
            recommendation='Add ->middleware("throttle:5,1") or similar rate limiting to prevent brute force attacks',
            metadata={"uri": uri, "method": verb.name.upper()},
        )

    def check_controller(self, context: ScanContext, path) -> list[Finding]:
        content = read_text(path) or ""
        if any(marker in content for marker in self.options.controller_throttle_markers):
            return []
        login_methods = {name.lower() for name in self.options.login_methods}
        findings = []
        for class_decl in find_classes(self.parse(path)):
            for method in methods(class_decl):
                if method.name.lower() not in login_methods:
                    continue
                findings.append(self.finding(
                    context,
                    f"Authentication method {class_decl.name}::{method.name}() lacks rate limiting",
                    path,
                    method.line,
                    severity=Severity.HIGH,
                    recommendation="Implement rate limiting using RateLimiter facade or throttle middleware "
                    "to prevent brute force attacks",
                    metadata={"controller": class_decl.name, "method": method.name},
                ))
        return findings
