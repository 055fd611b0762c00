"""Password hashing configuration and usage."""

from typing import Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import array_entry, config_array, literal_value
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import read_lines
from shieldlint.matchers import classify_input
from shieldlint.syntax.finders import find_function_calls, find_nodes_of_kind, walk
from shieldlint.syntax.nodes import (
    ArrayAccess,
    ArrayItem,
    Assignment,
    ConstantRef,
    FunctionCall,
    PropertyAccess,
    StringLiteral,
    SyntaxNode,
    Variable,
    argument,
)

WEAK_DRIVERS = {"md5", "sha1", "sha256"}
WEAK_ALGORITHMS = {"PASSWORD_MD5", "PASSWORD_SHA1", "PASSWORD_SHA256"}
STRONG_ALGORITHMS = {"PASSWORD_DEFAULT", "PASSWORD_BCRYPT", "PASSWORD_ARGON2I", "PASSWORD_ARGON2ID"}
STRONG_ALGORITHM_IDS = {"2y", "argon2i", "argon2id"}
HASHED_NAMES = ("hashed", "encrypted", "encoded", "hash")


def mentions_password(node: Optional[SyntaxNode]) -> bool:
    """Whether an expression reads something named like a password."""
    for candidate in walk(node) if node is not None else ():
        if isinstance(candidate, Variable) and "password" in candidate.name.lower():
            return not candidate.name.lower().startswith(HASHED_NAMES)
        if isinstance(candidate, PropertyAccess) and "password" in candidate.name.lower():
            return True
        if isinstance(candidate, StringLiteral) and candidate.value.lower() == "password":
            return True
    return False


def password_hash_algorithm_issue(call: FunctionCall) -> Optional[str]:
    """Why the algorithm of a ``password_hash()`` call is unsafe, if it is."""
    algorithm = argument(call, 1, name="algo")
    if algorithm is None:
        return "password_hash() called without an explicit algorithm: weak or unknown algorithm"
    if isinstance(algorithm, ConstantRef):
        name = algorithm.name.upper()
        if name in STRONG_ALGORITHMS or name == "NULL":
            return None
        if name in WEAK_ALGORITHMS:
            return f"Weak password_hash algorithm {name} used"
        return f"Unknown password_hash algorithm {algorithm.name} used"
    if isinstance(algorithm, StringLiteral) and algorithm.value.lower() in STRONG_ALGORITHM_IDS:
        return None
    return "password_hash() called with a weak or unknown algorithm"


def _password_target(node: SyntaxNode) -> bool:
    if isinstance(node, PropertyAccess):
        return node.name.lower() == "password"
    if isinstance(node, ArrayAccess):
        return isinstance(node.key, StringLiteral) and node.key.value.lower() == "password"
    if isinstance(node, Variable):
        return node.name.lower() == "password"
    return False


class HashingStrengthRule(Rule):
    """Weak hashing drivers, cost factors and password hashing calls."""

    metadata = RuleMetadata(
        id="hashing-strength",
        name="Hashing Strength Analyzer",
        description="Detects weak password hashing configuration and insecure hashing in code",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"hashing", "passwords", "security", "bcrypt", "argon2"}),
        docs_url="https://laravel.com/docs/hashing",
        time_to_fix=15,
    )

    passed_summary = "Password hashing is configured securely"
    failed_summary = "Found {count} hashing strength issue{s}"

    class Options(RuleOptions):
        bcrypt_min_rounds: int = 12
        argon2_min_memory: int = 65536
        argon2_min_time: int = 2
        argon2_min_threads: int = 2
        weak_hash_functions: tuple[str, ...] = ("md5", "sha1")
        allowed_weak_hash_patterns: tuple[str, ...] = ("cache", "fingerprint", "checksum", "etag", "gravatar")
        ignored_path_parts: tuple[str, ...] = ("tests", "Tests")

    def applies(self, context: ScanContext) -> bool:
        return bool(context.php_files) or context.exists("config", "hashing.php")

    def skip_reason(self, context: ScanContext) -> str:
        return "No hashing configuration or PHP files found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        config = context.path("config", "hashing.php")
        if config.exists():
            findings.extend(self.check_config(context, config))
        ignored = set(self.options.ignored_path_parts)
        for path in context.php_files:
            if path == config or ignored & set(context.relative(path).split("/")[:-1]):
                continue
            findings.extend(self.check_code(context, path))
        return findings

    # config/hashing.php

    def check_config(self, context: ScanContext, path) -> list[Finding]:
        array = config_array(self.parse(path))
        if array is None:
            return []
        options = self.options
        findings = []

        driver = array_entry(array, "driver")
        value = literal_value(driver.value) if driver else None
        if isinstance(value, str) and value.lower() in WEAK_DRIVERS:
            findings.append(self.finding(
                context,
                f'Weak hashing driver "{value.lower()}" configured',
                path,
                driver.line,
                severity=Severity.CRITICAL,
                recommendation='Use "bcrypt" or "argon2id" as the hashing driver',
                metadata={"driver": value.lower()},
            ))

        rounds = array_entry(array, "bcrypt.rounds")
        findings.extend(self._below_minimum(
            context, path, rounds, options.bcrypt_min_rounds, Severity.HIGH,
            "Bcrypt rounds ({value}) is below recommended minimum of {minimum}",
        ))

        argon = array_entry(array, "argon") or array_entry(array, "argon2id")
        if argon is not None:
            for key, minimum, severity, label in (
                ("memory", options.argon2_min_memory, Severity.HIGH, "Argon2 memory ({value} KB)"),
                ("time", options.argon2_min_time, Severity.MEDIUM, "Argon2 time cost ({value})"),
                ("threads", options.argon2_min_threads, Severity.LOW, "Argon2 threads ({value})"),
            ):
                findings.extend(self._below_minimum(
                    context, path, array_entry(argon.value, key), minimum, severity,
                    label + " is below recommended minimum of {minimum}",
                ))
        return findings

    def _below_minimum(self, context, path, entry, minimum, severity, template) -> list[Finding]:
        if entry is None:
            return []
        value = literal_value(entry.value)
        if isinstance(value, str) and value.isdigit():
            value = int(value)
        if not isinstance(value, int) or isinstance(value, bool) or value >= minimum:
            return []
        return [self.finding(
            context,
            template.format(value=value, minimum=minimum),
            path,
            entry.line,
            severity=severity,
            recommendation=f"Raise the value to at least {minimum}",
            metadata={"value": value, "minimum": minimum},
        )]

    # Code

    def check_code(self, context: ScanContext, path) -> list[Finding]:
        tree = self.parse(path)
        if not tree:
            return []
        lines = read_lines(path)
        findings = []

        for call in find_function_calls(tree, *self.options.weak_hash_functions, "hash"):
            name = call.name.rsplit("\\", 1)[-1].lower()
            subject = argument(call, 0)
            if name == "hash":
                algorithm = argument(call, 0)
                if not (isinstance(algorithm, StringLiteral) and algorithm.value.lower() in self.options.weak_hash_functions):
                    continue
                name, subject = algorithm.value.lower(), argument(call, 1)
            if not mentions_password(subject) or self._allowed(lines, call.line):
                continue
            findings.append(self.finding(
                context,
                f"Weak hashing function {name}() used for password",
                path,
                call.line,
                severity=Severity.CRITICAL,
                recommendation="Use Hash::make() or bcrypt() for password hashing",
                metadata={"function": name},
            ))

        for call in find_function_calls(tree, "password_hash"):
            reason = password_hash_algorithm_issue(call)
            if reason is None:
                continue
            findings.append(self.finding(
                context,
                reason,
                path,
                call.line,
                severity=Severity.CRITICAL,
                recommendation="Use PASSWORD_BCRYPT or PASSWORD_ARGON2ID, or Hash::make()",
            ))

        for node in find_nodes_of_kind(tree, (Assignment, ArrayItem)):
            if isinstance(node, Assignment):
                target, value = node.target, node.value
            else:
                target, value = node.key, node.value
            is_password = (
                _password_target(target)
                or (isinstance(target, StringLiteral) and target.value.lower() == "password")
            )
            if not is_password or classify_input(value) is None or classify_input(value) == "safe":
                continue
            findings.append(self.finding(
                context,
                "Potential plain-text password storage detected",
                path,
                node.line,
                severity=Severity.CRITICAL,
                recommendation="Always hash passwords using Hash::make() or bcrypt()",
            ))
        return findings

    def _allowed(self, lines: list[str], line_number: int) -> bool:
        if not 1 <= line_number <= len(lines):
            return False
        line = lines[line_number - 1].lower()
        return any(pattern in line for pattern in self.options.allowed_weak_hash_patterns)
