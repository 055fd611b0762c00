"""Strict-Transport-Security for HTTPS-only applications."""

import logging
import re
from typing import Optional

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import array_entry, config_array, literal_value, load_json
from shieldlint.analyzers.results import Category, Finding, Location, Severity
from shieldlint.analyzers.text import parse_env_lines, read_lines
from shieldlint.headers import fetch_headers

logger = logging.getLogger(__name__)

HSTS = "Strict-Transport-Security"
MAX_AGE = re.compile(r"max-age\s*=\s*(\d+)", re.IGNORECASE)


class HstsHeaderRule(Rule):
    """HSTS header presence and strength when the app is served over HTTPS only.

    Applications that are not HTTPS-only pass without further checks, as do
    projects relying on a security headers package.
    """

    metadata = RuleMetadata(
        id="hsts-header",
        name="HSTS Header Analyzer",
        description="Ensures HTTPS-only applications send a strong Strict-Transport-Security header",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"hsts", "https", "headers", "security", "tls"}),
        docs_url="https://developer.mozilla.org/docs/Web/HTTP/Headers/Strict-Transport-Security",
        time_to_fix=15,
    )

    uses_header_probe = True

    passed_summary = "HSTS header configuration is properly set"
    failed_summary = "Found {count} HSTS header configuration issue{s}"

    class Options(RuleOptions):
        min_max_age: int = 15768000  # six months
        security_header_packages: tuple[str, ...] = (
            "bepsvpt/secure-headers",
            "spatie/laravel-csp",
            "beyondcode/laravel-secure-headers",
        )
        app_url: Optional[str] = None
        probe_timeout: float = 5.0
        probe_verify: bool = True

    def applies(self, context: ScanContext) -> bool:
        return (
            context.exists("config", "session.php")
            or context.exists(".env")
            or bool(self.options.app_url)
        )

    def skip_reason(self, context: ScanContext) -> str:
        return "No session configuration, .env file or application URL to determine HTTPS usage"

    def analyze(self, context: ScanContext) -> list[Finding]:
        if not self.is_https_only(context):
            logger.debug("Application is not HTTPS-only; HSTS not required")
            return []
        if self.has_security_headers_package(context):
            return []

        findings = self.check_middleware(context)
        findings.extend(self.check_session(context))
        if self.options.app_url and self.options.app_url.startswith("https://"):
            findings.extend(self.check_live_response(context, self.options.app_url))
        return findings

    def is_https_only(self, context: ScanContext) -> bool:
        session = context.path("config", "session.php")
        if session.exists():
            entry = array_entry(config_array(self.parse(session)), "secure")
            if entry is not None and literal_value(entry.value) is True:
                return True
        env = parse_env_lines(read_lines(context.path(".env")))
        if env.get("APP_URL", ("", 0))[0].lower().startswith("https:"):
            return True
        if env.get("FORCE_HTTPS", ("", 0))[0].lower() == "true":
            return True
        return bool(self.options.app_url and self.options.app_url.startswith("https://"))

    def has_security_headers_package(self, context: ScanContext) -> bool:
        composer = load_json(context.path("composer.json")) or {}
        required = composer.get("require") or {}
        return any(package in required for package in self.options.security_header_packages)

    def check_middleware(self, context: ScanContext) -> list[Finding]:
        findings = []
        configured = False
        for path in context.php_files:
            lines = read_lines(path)
            for index, line in enumerate(lines):
                if HSTS.lower() not in line.lower():
                    continue
                configured = True
                findings.extend(self.check_header_value(context, path, index + 1, line))
        if not configured:
            middleware = context.path("app", "Http", "Middleware")
            findings.append(self.finding(
                context,
                "HTTPS-only application missing HSTS (Strict-Transport-Security) header",
                middleware,
                1,
                severity=Severity.HIGH,
                recommendation="Add middleware setting Strict-Transport-Security: max-age=31536000; includeSubDomains",
            ))
        return findings

    def check_header_value(self, context: ScanContext, path, line: int, value: str) -> list[Finding]:
        findings = []
        max_age = MAX_AGE.search(value)
        if max_age and int(max_age.group(1)) < self.options.min_max_age:
            findings.append(self.finding(
                context,
                f"HSTS max-age ({max_age.group(1)} seconds) is below recommended minimum of 6 months",
                path,
                line,
                severity=Severity.MEDIUM,
                recommendation=f"Set HSTS max-age to at least {self.options.min_max_age}, ideally 31536000",
                metadata={"max_age": int(max_age.group(1))},
            ))
        if "includesubdomains" not in value.lower():
            findings.append(self.finding(
                context,
                'HSTS header missing "includeSubDomains" directive',
                path,
                line,
                severity=Severity.LOW,
                recommendation='Add "includeSubDomains" to the HSTS header',
            ))
        return findings

    def check_session(self, context: ScanContext) -> list[Finding]:
        session = context.path("config", "session.php")
        if not session.exists():
            return []
        entry = array_entry(config_array(self.parse(session)), "secure")
        if entry is None or literal_value(entry.value) is not False:
            return []
        return [self.finding(
            context,
            "HTTPS-only application has secure cookies disabled",
            session,
            entry.line,
            severity=Severity.HIGH,
            recommendation="Set 'secure' => true in config/session.php",
        )]

    def check_live_response(self, context: ScanContext, url: str) -> list[Finding]:
        headers = fetch_headers(url, timeout=self.options.probe_timeout, verify=self.options.probe_verify)
        if headers is None:
            return []
        value = headers.get(HSTS.lower())
        location = Location(url, 1)
        if value is None:
            return [Finding(
                severity=Severity.HIGH,
                message=f"Live response from {url} has no Strict-Transport-Security header",
                location=location,
                recommendation="Send Strict-Transport-Security on every HTTPS response",
            )]
        return [
            Finding(
                severity=finding.severity,
                message=f"{finding.message} (live response)",
                location=location,
                recommendation=finding.recommendation,
                code_snippet=f"{HSTS}: {value}",
                metadata=finding.metadata,
            )
            for finding in self.check_header_value(context, context.root, 1, value)
        ]
