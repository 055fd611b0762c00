"""Licenses of installed Composer packages."""

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.laravel import json_key_line, load_json
from shieldlint.analyzers.results import Category, Finding, Severity
from shieldlint.analyzers.text import read_lines
from shieldlint.exceptions import AnalysisError


def package_licenses(package: dict) -> list[str]:
    license_field = package.get("license")
    if isinstance(license_field, str):
        return [license_field]
    if isinstance(license_field, list):
        return [value for value in license_field if isinstance(value, str)]
    return []


class LicenseRule(Rule):
    """Copyleft and unknown licenses in ``composer.lock``."""

    metadata = RuleMetadata(
        id="license-compliance",
        name="License Compliance Analyzer",
        description="Detects dependencies whose licenses may be incompatible with commercial use",
        category=Category.SECURITY,
        default_severity=Severity.HIGH,
        tags=frozenset({"licenses", "legal", "compliance", "dependencies", "gpl"}),
        docs_url="https://getcomposer.org/doc/04-schema.md#license",
        time_to_fix=60,
    )

    passed_summary = "All dependencies use acceptable licenses"
    failed_summary = "Found {count} package{s} with potentially problematic licenses"

    class Options(RuleOptions):
        whitelisted_licenses: tuple[str, ...] = (
            "Apache-2.0", "Apache2", "BSD-2-Clause", "BSD-3-Clause",
            "LGPL-2.1-only", "LGPL-2.1", "LGPL-2.1-or-later",
            "LGPL-3.0", "LGPL-3.0-only", "LGPL-3.0-or-later",
            "MIT", "ISC", "CC0-1.0", "Unlicense", "WTFPL",
        )
        restrictive_licenses: tuple[str, ...] = (
            "GPL-2.0", "GPL-2.0-only", "GPL-2.0-or-later",
            "GPL-3.0", "GPL-3.0-only", "GPL-3.0-or-later",
            "AGPL-3.0", "AGPL-3.0-only", "AGPL-3.0-or-later",
        )

    def applies(self, context: ScanContext) -> bool:
        return context.exists("composer.lock")

    def skip_reason(self, context: ScanContext) -> str:
        return "No composer.lock file found"

    def analyze(self, context: ScanContext) -> list[Finding]:
        path = context.path("composer.lock")
        lock = load_json(path)
        if lock is None:
            return []
        packages = lock.get("packages")
        if not isinstance(packages, list):
            raise AnalysisError("composer.lock has no packages list")
        lines = read_lines(path)
        findings = self.check_packages(context, path, lines, packages, dev=False)
        dev_packages = lock.get("packages-dev")
        if isinstance(dev_packages, list):
            findings.extend(self.check_packages(context, path, lines, dev_packages, dev=True))
        return findings

    def check_packages(self, context: ScanContext, path, lines: list[str], packages: list, dev: bool) -> list[Finding]:
        allowed = {name.upper() for name in self.options.whitelisted_licenses}
        restrictive = {name.upper() for name in self.options.restrictive_licenses}
        findings = []
        for package in packages:
            if not isinstance(package, dict):
                continue
            name = package.get("name") if isinstance(package.get("name"), str) else "Unknown"
            line = json_key_line(lines, name)
            licenses = package_licenses(package)

            if not licenses:
                if not dev:
                    findings.append(self.finding(
                        context,
                        f'Package "{name}" has no license information',
                        path,
                        line,
                        severity=Severity.MEDIUM,
                        recommendation=f'Investigate the license of "{name}" or contact the package maintainer',
                        metadata={"package": name},
                    ))
                continue

            normalized = {license_name.upper() for license_name in licenses}
            # A dual-licensed package is fine when one option is acceptable.
            if normalized & allowed:
                continue
            listed = ", ".join(licenses)
            if normalized & restrictive:
                findings.append(self.finding(
                    context,
                    f'{"Dev package" if dev else "Package"} "{name}" uses restrictive license: {listed}',
                    path,
                    line,
                    severity=Severity.LOW if dev else Severity.CRITICAL,
                    recommendation=(
                        f'Dev dependency "{name}" is GPL/AGPL licensed; make sure it is not distributed with the application'
                        if dev
                        else f'GPL/AGPL licenses may require releasing your source. Review "{name}" or find an alternative'
                    ),
                    metadata={"package": name, "licenses": licenses, "dev": dev},
                ))
            elif not dev:
                findings.append(self.finding(
                    context,
                    f'Package "{name}" uses non-standard license: {listed}',
                    path,
                    line,
                    severity=Severity.LOW,
                    recommendation=f'Review the "{name}" license terms. Common safe licenses: MIT, Apache-2.0, BSD',
                    metadata={"package": name, "licenses": licenses},
                ))
        return findings
