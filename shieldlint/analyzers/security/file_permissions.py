"""Permissions of the project's key files and directories."""

import stat
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Severity

PERMISSION_BITS = 0o777
EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class PathPolicy(BaseModel):
    """Allowed permissions for one path.

    ``max`` and ``recommended`` are modes; strings such as ``"644"`` are
    read as octal.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["file", "directory"] = "file"
    max: int
    recommended: int
    critical: bool = False
    executable: bool = False

    @field_validator("max", "recommended", mode="before")
    @classmethod
    def parse_octal(cls, v: Union[int, str]) -> int:
        if isinstance(v, str):
            return int(v, 8)
        return v


def _directory(max_mode: int, recommended: int) -> PathPolicy:
    return PathPolicy(type="directory", max=max_mode, recommended=recommended)


DEFAULT_POLICIES = {
    "app": _directory(0o775, 0o755),
    "config": _directory(0o775, 0o755),
    "database": _directory(0o775, 0o755),
    "resources": _directory(0o775, 0o755),
    "routes": _directory(0o775, 0o755),
    "bootstrap": _directory(0o775, 0o755),
    "public": _directory(0o775, 0o755),
    # Storage has to stay writable by the web server group
    "storage": _directory(0o775, 0o775),
    "storage/app": _directory(0o775, 0o775),
    "storage/framework": _directory(0o775, 0o775),
    "storage/logs": _directory(0o775, 0o775),
    ".env": PathPolicy(max=0o600, recommended=0o600, critical=True),
    ".env.production": PathPolicy(max=0o600, recommended=0o600, critical=True),
    ".env.prod": PathPolicy(max=0o600, recommended=0o600, critical=True),
    "config/app.php": PathPolicy(max=0o644, recommended=0o644),
    "config/database.php": PathPolicy(max=0o644, recommended=0o644),
    "config/services.php": PathPolicy(max=0o644, recommended=0o644),
    "artisan": PathPolicy(max=0o775, recommended=0o755, executable=True),
}


class FilePermissionsRule(Rule):
    """World-writable or over-permissive files and directories.

    Each path reports at most one finding, the most severe that applies.
    """

    metadata = RuleMetadata(
        id="file-permissions",
        name="File Permissions Analyzer",
        description="Validates that project files and directories use secure permissions",
        category=Category.SECURITY,
        default_severity=Severity.CRITICAL,
        tags=frozenset({"permissions", "file-security", "security", "access-control"}),
        docs_url="https://laravel.com/docs/installation#directory-permissions",
        time_to_fix=15,
    )

    passed_summary = "File and directory permissions are secure"
    failed_summary = "Found {count} file permission security issue{s}"

    class Options(RuleOptions):
        # Merged over the default policies, keyed by project-relative path
        paths: dict[str, PathPolicy] = {}

    def policies(self) -> dict[str, PathPolicy]:
        return {**DEFAULT_POLICIES, **self.options.paths}

    def applies(self, context: ScanContext) -> bool:
        return any(context.exists(relative) for relative in self.policies())

    def skip_reason(self, context: ScanContext) -> str:
        return "No configured files or directories found to analyze"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for relative, policy in self.policies().items():
            path = context.path(relative)
            try:
                mode = stat.S_IMODE(path.stat().st_mode) & PERMISSION_BITS
            except OSError:
                continue
            finding = self.check_path(context, path, relative, policy, mode)
            if finding is not None:
                findings.append(finding)
        return findings

    def check_path(self, context: ScanContext, path, relative: str, policy: PathPolicy, mode: int) -> Optional[Finding]:
        octal = f"{mode:03o}"
        kind = policy.type.capitalize()
        recommended = f"{policy.recommended:o}"

        if mode & stat.S_IWOTH:
            return self._issue(
                context, path, mode, policy,
                f'{kind} "{relative}" is world-writable (permissions: {octal})',
                Severity.CRITICAL,
                f"Change permissions to {recommended}: chmod {recommended} {relative}",
            )
        if policy.critical and mode & stat.S_IROTH:
            return self._issue(
                context, path, mode, policy,
                f'Critical file "{relative}" is world-readable (permissions: {octal})',
                Severity.CRITICAL,
                f"Remove world read permissions: chmod {recommended} {relative}",
            )
        exceeded = mode & ~policy.max & PERMISSION_BITS
        if exceeded:
            return self._issue(
                context, path, mode, policy,
                f'{kind} "{relative}" has overly permissive permissions ({octal})',
                Severity.CRITICAL if policy.critical else Severity.HIGH,
                f"Change permissions to {policy.max:o} or {recommended}: chmod {recommended} {relative}",
                exceeded_bits=f"{exceeded:03o}",
            )
        if policy.critical and mode & stat.S_IWGRP:
            return self._issue(
                context, path, mode, policy,
                f'Critical file "{relative}" is group-writable (permissions: {octal})',
                Severity.MEDIUM,
                f"Remove group write permissions: chmod {recommended} {relative}",
            )
        if policy.type == "file" and not policy.executable and mode & EXECUTE_BITS:
            return self._issue(
                context, path, mode, policy,
                f'Non-executable file "{relative}" has execute permissions ({octal})',
                Severity.MEDIUM,
                f"Remove execute permissions: chmod {recommended} {relative}",
            )
        return None

    def _issue(self, context, path, mode, policy, message, severity, recommendation, **extra) -> Finding:
        octal = f"{mode:03o}"
        return self.finding(
            context,
            message,
            path,
            1,
            severity=severity,
            recommendation=recommendation,
            metadata={
                "path": context.relative(path),
                "permissions": octal,
                "type": policy.type,
                "world_writable": bool(mode & stat.S_IWOTH),
                "world_readable": bool(mode & stat.S_IROTH),
                "group_writable": bool(mode & stat.S_IWGRP),
                "group_readable": bool(mode & stat.S_IRGRP),
                **extra,
            },
            snippet=f"permissions: {octal}",
        )
