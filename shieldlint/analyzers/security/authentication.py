"""Missing authentication and authorization checks."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.routing import (
    STATE_CHANGING_VERBS,
    RouteChain,
    iter_route_chains,
    middleware_names,
    route_uri,
)
from shieldlint.analyzers.text import read_text
from shieldlint.syntax.finders import find_classes, find_method, methods, walk
from shieldlint.syntax.nodes import (
    Block,
    ClassConstantRef,
    ClassDecl,
    FunctionCall,
    MethodCall,
    MethodDecl,
    PropertyAccess,
    StaticCall,
    StringLiteral,
    short_name,
)

logger = logging.getLogger(__name__)

GATE_METHODS = {"authorize", "allows", "denies", "check", "any", "none", "inspect"}
POLICY_METHODS = {"authorize", "authorizeresource", "can", "cannot", "cant"}
AUTH_CHECK_METHODS = {"check", "guest", "id"}


@dataclass(frozen=True)
class RouteTally:
    """Findings and route counts gathered while walking one route file."""

    findings: tuple = ()
    protected_routes: int = 0
    unprotected_routes: int = 0

    def with_route(self, protected: bool) -> "RouteTally":
        if protected:
            return replace(self, protected_routes=self.protected_routes + 1)
        return replace(self, unprotected_routes=self.unprotected_routes + 1)

    def with_finding(self, finding: Finding) -> "RouteTally":
        return replace(self, findings=self.findings + (finding,))


class AuthenticationRule(Rule):
    """Routes, controllers and ``Auth::user()`` usage lacking authentication."""

    metadata = RuleMetadata(
        id="authentication-authorization",
        name="Authentication & Authorization Analyzer",
        description="Detects missing authentication and authorization protection on routes and controllers",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"authentication", "authorization", "security", "middleware"}),
        docs_url="https://laravel.com/docs/authentication#protecting-routes",
        time_to_fix=25,
    )

    passed_summary = "No authentication/authorization issues detected"
    failed_summary = "Found {count} potential authentication/authorization issue{s}"

    class Options(RuleOptions):
        auth_middleware_prefixes: tuple[str, ...] = ("auth",)
        public_route_keywords: tuple[str, ...] = (
            "login", "register", "password", "forgot-password",
            "reset-password", "verify", "health", "status",
        )
        sensitive_methods: tuple[str, ...] = ("destroy", "delete", "update", "edit", "store", "create")
        token_guard_packages: tuple[str, ...] = ("sanctum", "passport")

    def applies(self, context: ScanContext) -> bool:
        return bool(context.route_files or context.php_files)

    def skip_reason(self, context: ScanContext) -> str:
        return "No routes or controllers found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []

        for path in context.route_files:
            tally = self.check_route_file(context, path)
            logger.debug(
                f"{context.relative(path)}: {tally.protected_routes} protected, "
                f"{tally.unprotected_routes} unprotected routes"
            )
            findings.extend(tally.findings)

        controllers = set(context.controller_files)
        for path in context.php_files:
            tree = self.parse(path)
            if not tree:
                continue
            if path in controllers:
                findings.extend(self.check_controllers(context, path, tree))
            findings.extend(self.check_auth_user_usage(context, path, tree))

        return findings

    # Route files

    def check_route_file(self, context: ScanContext, path) -> RouteTally:
        tally = RouteTally()
        if path.name == "api.php":
            content = (read_text(path) or "").lower()
            if any(package in content for package in self.options.token_guard_packages):
                return tally
        for chain in iter_route_chains(self.parse(path), self._adds_auth):
            tally = self._tally_route(context, path, chain, tally)
        return tally

    def _tally_route(self, context: ScanContext, path, chain: RouteChain, tally: RouteTally) -> RouteTally:
        verb = chain.verb_call
        if verb is not None:
            tally = tally.with_route(chain.guarded)
            if not chain.guarded and verb.name.lower() in STATE_CHANGING_VERBS and not self._is_public(verb):
                method = verb.name.upper()
                tally = tally.with_finding(self.finding(
                    context,
                    f"{method} route without authentication middleware",
                    path,
                    verb.line,
                    severity=Severity.HIGH,
                    recommendation='Add ->middleware("auth") or wrap in Route::middleware(["auth"])->group()',
                    metadata={"method": method},
                ))
        if chain.is_group and not chain.guarded and not any(self._is_public(call) for call in chain.calls):
            tally = tally.with_finding(self.finding(
                context,
                "Route group without authentication middleware",
                path,
                chain.root.line,
                severity=Severity.MEDIUM,
                recommendation='Add "middleware" => "auth" to the route group or chain ->middleware("auth")',
                metadata={"route_type": "group", "file": path.name},
            ))
        return tally

    def _is_auth_middleware(self, name: str) -> bool:
        prefixes = tuple(prefix.lower() for prefix in self.options.auth_middleware_prefixes)
        return name.lower().startswith(prefixes) or name == "Authenticate"

    def _adds_auth(self, call) -> bool:
        return any(self._is_auth_middleware(name) for name in middleware_names(call))

    def _mentions_auth(self, tree) -> bool:
        for node in walk(tree):
            if isinstance(node, StringLiteral) and self._is_auth_middleware(node.value):
                return True
            if isinstance(node, ClassConstantRef) and self._is_auth_middleware(short_name(node.type_name)):
                return True
        return False

    def _is_public(self, call) -> bool:
        uri = route_uri(call)
        if uri is None:
            return False
        uri = uri.lower()
        return any(keyword in uri for keyword in self.options.public_route_keywords)

    # Controllers

    def check_controllers(self, context: ScanContext, path, tree) -> list[Finding]:
        sensitive = {name.lower() for name in self.options.sensitive_methods}
        findings = []
        for class_decl in find_classes(tree):
            if self.controller_requires_auth(class_decl):
                continue
            for method in methods(class_decl):
                if method.visibility != "public" or method.name.lower() not in sensitive:
                    continue
                if self.has_authorization_check(method):
                    continue
                findings.append(self.finding(
                    context,
                    f"Sensitive method {class_decl.name}::{method.name}() without authentication check",
                    path,
                    method.line,
                    severity=Severity.HIGH,
                    recommendation='Add $this->middleware("auth") in the constructor, implement HasMiddleware, '
                    "or authorize the action with $this->authorize() or Gate",
                    metadata={"controller": class_decl.name, "method": method.name},
                ))
        return findings

    def controller_requires_auth(self, class_decl: ClassDecl) -> bool:
        """Auth middleware or resource authorization registered for every action."""
        constructor = find_method(class_decl, "__construct")
        if constructor is not None:
            for node in walk(constructor.body):
                if isinstance(node, MethodCall) and node.name.lower() == "middleware":
                    if any(self._mentions_auth(arg) for arg in node.args):
                        return True
                if isinstance(node, MethodCall) and node.name.lower() == "authorizeresource":
                    return True
        # Laravel 11 controllers implementing HasMiddleware
        middleware = find_method(class_decl, "middleware")
        return middleware is not None and middleware.is_static and self._mentions_auth(middleware.body)

    @staticmethod
    def has_authorization_check(method: MethodDecl) -> bool:
        for node in walk(method.body):
            if isinstance(node, StaticCall) and short_name(node.type_name) == "Gate" and node.name.lower() in GATE_METHODS:
                return True
            if isinstance(node, MethodCall) and node.name.lower() in POLICY_METHODS:
                return True
        return False

    # Auth::user() without a guard

    def check_auth_user_usage(self, context: ScanContext, path, tree) -> list[Finding]:
        findings = []
        scopes = [method.body for class_decl in find_classes(tree) for method in methods(class_decl)]
        scopes.append(tuple(node for node in tree if not isinstance(node, ClassDecl)))
        for scope in scopes:
            guards = self._guard_lines(scope)
            for node in walk(scope):
                if not isinstance(node, (MethodCall, PropertyAccess)) or node.nullsafe:
                    continue
                base = node.receiver if isinstance(node, MethodCall) else node.base
                label = self._auth_user_call(base)
                if label is None or any(line <= node.line for line in guards):
                    continue
                check = "Auth::check()" if label.startswith("Auth") else "auth()->check()"
                findings.append(self.finding(
                    context,
                    f"Unsafe {label} usage without null check",
                    path,
                    node.line,
                    severity=Severity.MEDIUM,
                    recommendation=f"Check if user is authenticated before accessing: if ({check}) or use {label}?->property",
                    metadata={"method": label, "check_method": check, "file": path.name},
                ))
        return findings

    @staticmethod
    def _auth_user_call(node) -> Optional[str]:
        if isinstance(node, StaticCall) and short_name(node.type_name) == "Auth" and node.name.lower() == "user":
            return "Auth::user()"
        if (
            isinstance(node, MethodCall)
            and node.name.lower() == "user"
            and isinstance(node.receiver, FunctionCall)
            and node.receiver.name.lower() == "auth"
        ):
            return "auth()->user()"
        return None

    def _guard_lines(self, scope) -> list[int]:
        """Lines of ``Auth::check()``-style calls and ``if (Auth::user())`` conditions."""
        lines = []
        for node in walk(scope):
            if isinstance(node, StaticCall) and short_name(node.type_name) == "Auth" and node.name.lower() in AUTH_CHECK_METHODS:
                lines.append(node.line)
            elif (
                isinstance(node, MethodCall)
                and node.name.lower() in AUTH_CHECK_METHODS
                and isinstance(node.receiver, FunctionCall)
                and node.receiver.name.lower() == "auth"
            ):
                lines.append(node.line)
            elif isinstance(node, Block) and node.kind == "if_statement" and node.body:
                if any(self._auth_user_call(candidate) for candidate in walk(node.body[0])):
                    lines.append(node.line)
        return lines
