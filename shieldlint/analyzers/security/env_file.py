"""Environment file placement, contents and permissions."""

import re
import stat

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import read_lines, read_text

GITIGNORE_ENV = re.compile(r"^\s*(?:\.env|\*\.env)\s*$", re.MULTILINE)


class EnvFileSecurityRule(Rule):
    """Exposed, committed or loosely protected ``.env`` files.

    Findings never echo env file lines; snippets name the key or the
    permissions instead.
    """

    metadata = RuleMetadata(
        id="env-file",
        name="Environment File Analyzer",
        description="Validates .env file security, location, and prevents exposure of sensitive data",
        category=Category.SECURITY,
        default_severity=Severity.CRITICAL,
        tags=frozenset({"env", "environment", "secrets", "security", "configuration"}),
        docs_url="https://laravel.com/docs/configuration#environment-configuration",
        time_to_fix=10,
    )

    passed_summary = "Environment files are properly secured"
    failed_summary = "Found {count} environment file security issue{s}"

    class Options(RuleOptions):
        public_dirs: tuple[str, ...] = ("public", "public_html", "www", "html")
        sensitive_keys: tuple[str, ...] = (
            "APP_KEY", "DB_PASSWORD", "AWS_SECRET_ACCESS_KEY", "MAIL_PASSWORD", "REDIS_PASSWORD",
            "SESSION_SECRET", "JWT_SECRET", "STRIPE_SECRET", "PUSHER_APP_SECRET", "DATABASE_URL",
            "API_KEY", "SECRET_KEY", "PRIVATE_KEY", "OAUTH_CLIENT_SECRET",
        )
        placeholder_keywords: tuple[str, ...] = ("null", '""', "''", "your-", "change-", "example")
        min_secret_length: int = 21

    def applies(self, context: ScanContext) -> bool:
        return (
            context.exists(".env")
            or context.exists(".env.example")
            or context.exists(".gitignore")
            or context.path(".git").is_dir()
            or any(context.path(name).is_dir() for name in self.options.public_dirs)
        )

    def skip_reason(self, context: ScanContext) -> str:
        return "No environment files, git repository, or public directories found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        findings.extend(self.check_public_env(context))
        findings.extend(self.check_env_example(context))
        findings.extend(self.check_gitignore(context))
        findings.extend(self.check_permissions(context))
        return findings

    def check_public_env(self, context: ScanContext) -> list[Finding]:
        findings = []
        for name in self.options.public_dirs:
            path = context.path(name, ".env")
            if path.exists():
                findings.append(self.finding(
                    context,
                    ".env file found in publicly accessible directory",
                    path,
                    1,
                    severity=Severity.CRITICAL,
                    recommendation="IMMEDIATELY remove .env from public directory. "
                    "It should be in the application root, one level above public/",
                    metadata={"path": context.relative(path)},
                    snippet=context.relative(path),
                ))
        return findings

    def check_env_example(self, context: ScanContext) -> list[Finding]:
        path = context.path(".env.example")
        if not path.exists():
            if not context.exists(".env"):
                return []
            return [self.finding(
                context,
                "Missing .env.example file",
                path,
                1,
                severity=Severity.LOW,
                recommendation="Create .env.example as a template for environment configuration "
                "(without sensitive values)",
                metadata={"file": ".env.example", "exists": False, "env_file_exists": True},
            )]

        patterns = {
            key: re.compile(rf"^{re.escape(key)}\s*=\s*(.+)$", re.IGNORECASE)
            for key in self.options.sensitive_keys
        }
        findings = []
        for index, line in enumerate(read_lines(path)):
            for key, pattern in patterns.items():
                match = pattern.match(line.strip())
                if match is None:
                    continue
                value = match.group(1).strip().strip("\"'")
                if self.looks_real(value):
                    findings.append(self.finding(
                        context,
                        f'Sensitive key "{key}" may contain real credentials in .env.example',
                        path,
                        index + 1,
                        severity=Severity.HIGH,
                        recommendation="Replace with placeholder value. .env.example should not contain real credentials",
                        metadata={"key": key, "value_length": len(value), "file": ".env.example"},
                        snippet=key,
                    ))
        return findings

    def looks_real(self, value: str) -> bool:
        """Long values that are neither placeholders nor generated ``base64:`` keys."""
        if not value or value.startswith("base64:"):
            return False
        lowered = value.lower()
        if any(keyword in lowered for keyword in self.options.placeholder_keywords):
            return False
        return len(value) >= self.options.min_secret_length

    def check_gitignore(self, context: ScanContext) -> list[Finding]:
        path = context.path(".gitignore")
        content = read_text(path) if path.exists() else None
        if content is None or GITIGNORE_ENV.search(content):
            return []
        return [self.finding(
            context,
            ".env file is not excluded in .gitignore",
            path,
            1,
            severity=Severity.CRITICAL,
            recommendation='Add ".env" to .gitignore to prevent accidentally committing secrets to version control',
            metadata={"file": ".gitignore", "missing_pattern": ".env"},
            snippet=".env",
        )]

    def check_permissions(self, context: ScanContext) -> list[Finding]:
        path = context.path(".env")
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except OSError:
            return []
        octal = f"{mode:03o}"
        world = {"world_readable": bool(mode & stat.S_IROTH), "world_writable": bool(mode & stat.S_IWOTH)}
        if any(world.values()):
            return [self.finding(
                context,
                f".env file has insecure permissions ({octal})",
                path,
                1,
                severity=Severity.CRITICAL,
                recommendation="Restrict .env permissions: chmod 600 .env",
                metadata={"permissions": octal, **world},
                snippet=f"permissions: {octal}",
            )]
        group = {"group_readable": bool(mode & stat.S_IRGRP), "group_writable": bool(mode & stat.S_IWGRP)}
        if any(group.values()):
            return [self.finding(
                context,
                f".env file has overly permissive permissions ({octal})",
                path,
                1,
                severity=Severity.MEDIUM,
                recommendation="Consider restricting .env permissions: chmod 600 .env (readable only by owner)",
                metadata={"permissions": octal, **group},
                snippet=f"permissions: {octal}",
            )]
        return []
