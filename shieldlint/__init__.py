"""Static security rules for Laravel applications."""

from shieldlint.analyzers import RULES, get_rule
from shieldlint.config import Settings, get_settings
from shieldlint.runner import RuleResult, ScanReport, ScanRunner, scan

__version__ = "0.1.0"

__all__ = [
    "RULES",
    "RuleResult",
    "ScanReport",
    "ScanRunner",
    "Settings",
    "get_rule",
    "get_settings",
    "scan",
]
