"""Composer stability settings and unstable version constraints."""

import re

from shieldlint.analyzers.base import Rule, RuleMetadata, ScanContext
from shieldlint.analyzers.laravel import json_key_line, load_json
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import read_lines

STABILITY_FLAG = re.compile(r"@(dev|alpha|beta|rc)", re.IGNORECASE)
UNSTABLE_VERSION = re.compile(r"^dev-|alpha|beta|rc", re.IGNORECASE)


class StableDependencyRule(Rule):
    metadata = RuleMetadata(
        id="stable-dependencies",
        name="Stable Dependencies Analyzer",
        description="Detects unstable Composer stability settings and dependency versions",
        category=Category.SECURITY,
        default_severity=Severity.LOW,
        tags=frozenset({"dependencies", "composer", "stability", "versions"}),
        docs_url="https://getcomposer.org/doc/04-schema.md#minimum-stability",
        time_to_fix=10,
    )

    passed_summary = "All dependencies use stable versions"
    failed_summary = "Found {count} dependency stability issue{s}"

    def applies(self, context: ScanContext) -> bool:
        return context.exists("composer.json")

    def skip_reason(self, context: ScanContext) -> str:
        return "No composer.json file found"

    def analyze(self, context: ScanContext) -> list[Finding]:
        findings = self.check_composer_json(context, context.path("composer.json"))
        lock = context.path("composer.lock")
        if lock.exists():
            findings.extend(self.check_composer_lock(context, lock))
        return findings

    def check_composer_json(self, context: ScanContext, path) -> list[Finding]:
        data = load_json(path) or {}
        lines = read_lines(path)
        findings = []

        stability = data.get("minimum-stability", "stable")
        if stability != "stable":
            findings.append(self.finding(
                context,
                f'Composer minimum-stability is set to "{stability}" instead of "stable"',
                path,
                json_key_line(lines, "minimum-stability"),
                severity=Severity.MEDIUM,
                recommendation='Set "minimum-stability": "stable" in composer.json',
                metadata={"minimum_stability": stability},
            ))

        if data.get("prefer-stable") is not True:
            findings.append(self.finding(
                context,
                "Composer prefer-stable is not enabled",
                path,
                json_key_line(lines, "prefer-stable"),
                severity=Severity.LOW,
                recommendation='Set "prefer-stable": true in composer.json',
            ))

        required = data.get("require")
        for package, version in (required.items() if isinstance(required, dict) else ()):
            if package == "php" or package.startswith("ext-") or not isinstance(version, str):
                continue
            flag = STABILITY_FLAG.search(version)
            if "dev-" in version.lower():
                message = f'Package "{package}" requires unstable dev version: {version}'
                recommendation = f'Update "{package}" to a stable version constraint'
            elif flag:
                message = f'Package "{package}" requires unstable version: {version}'
                recommendation = f'Remove the @{flag.group(1)} flag and require a stable version of "{package}"'
            else:
                continue
            findings.append(self.finding(
                context,
                message,
                path,
                json_key_line(lines, package),
                severity=Severity.MEDIUM,
                recommendation=recommendation,
                metadata={"package": package, "version": version},
            ))
        return findings

    def check_composer_lock(self, context: ScanContext, path) -> list[Finding]:
        lock = load_json(path) or {}
        packages = lock.get("packages")
        unstable = [
            f"{package.get('name', 'Unknown')} ({package.get('version')})"
            for package in (packages if isinstance(packages, list) else ())
            if isinstance(package, dict)
            and isinstance(package.get("version"), str)
            and UNSTABLE_VERSION.search(package["version"])
        ]
        if not unstable:
            return []
        examples = ", ".join(unstable[:3])
        more = f" and {len(unstable) - 3} more" if len(unstable) > 3 else ""
        return [self.finding(
            context,
            f"Found {len(unstable)} unstable package version{'s' if len(unstable) != 1 else ''} installed",
            path,
            1,
            severity=Severity.LOW,
            recommendation=f'Update to stable versions: {examples}{more}. Run "composer update --prefer-stable"',
            metadata={"packages": unstable},
        )]
