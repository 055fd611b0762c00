"""Rule registry.

``RULES`` lists every rule class in catalog order; scan results keep
this order.
"""

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Finding, Location, Outcome, Severity, Status, aggregate
from shieldlint.analyzers.security import (
    AppKeyRule,
    AuthenticationRule,
    CookieSecurityRule,
    CsrfRule,
    DebugModeRule,
    EnvFileSecurityRule,
    FilePermissionsRule,
    FillableForeignKeyRule,
    HashingStrengthRule,
    HstsHeaderRule,
    LicenseRule,
    LoginThrottlingRule,
    MassAssignmentRule,
    SqlInjectionRule,
    StableDependencyRule,
    UnguardedModelsRule,
    XssRule,
)

RULES: list[type[Rule]] = [
    AuthenticationRule,
    CsrfRule,
    DebugModeRule,
    HashingStrengthRule,
    SqlInjectionRule,
    MassAssignmentRule,
    UnguardedModelsRule,
    FillableForeignKeyRule,
    XssRule,
    LicenseRule,
    StableDependencyRule,
    HstsHeaderRule,
    CookieSecurityRule,
    AppKeyRule,
    LoginThrottlingRule,
    EnvFileSecurityRule,
    FilePermissionsRule,
]


def get_rule(rule_id: str) -> type[Rule]:
    """Rule class registered under ``rule_id``."""
    for rule_class in RULES:
        if rule_class.metadata.id == rule_id:
            return rule_class
    raise KeyError(f"Unknown rule: {rule_id}")


__all__ = [
    "RULES",
    "Category",
    "Finding",
    "Location",
    "Outcome",
    "Rule",
    "RuleMetadata",
    "RuleOptions",
    "ScanContext",
    "Severity",
    "Status",
    "aggregate",
    "get_rule",
]
