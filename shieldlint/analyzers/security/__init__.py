"""Security rules."""

from shieldlint.analyzers.security.app_key import AppKeyRule
from shieldlint.analyzers.security.authentication import AuthenticationRule
from shieldlint.analyzers.security.cookie_security import CookieSecurityRule
from shieldlint.analyzers.security.csrf import CsrfRule
from shieldlint.analyzers.security.debug_mode import DebugModeRule
from shieldlint.analyzers.security.env_file import EnvFileSecurityRule
from shieldlint.analyzers.security.file_permissions import FilePermissionsRule
from shieldlint.analyzers.security.fillable_foreign_key import FillableForeignKeyRule
from shieldlint.analyzers.security.hashing import HashingStrengthRule
from shieldlint.analyzers.security.hsts_header import HstsHeaderRule
from shieldlint.analyzers.security.license import LicenseRule
from shieldlint.analyzers.security.login_throttling import LoginThrottlingRule
from shieldlint.analyzers.security.mass_assignment import MassAssignmentRule
from shieldlint.analyzers.security.sql_injection import SqlInjectionRule
from shieldlint.analyzers.security.stable_dependency import StableDependencyRule
from shieldlint.analyzers.security.unguarded_models import UnguardedModelsRule
from shieldlint.analyzers.security.xss import XssRule

__all__ = [
    "AppKeyRule",
    "AuthenticationRule",
    "CookieSecurityRule",
    "CsrfRule",
    "DebugModeRule",
    "EnvFileSecurityRule",
    "FilePermissionsRule",
    "FillableForeignKeyRule",
    "HashingStrengthRule",
    "HstsHeaderRule",
    "LicenseRule",
    "LoginThrottlingRule",
    "MassAssignmentRule",
    "SqlInjectionRule",
    "StableDependencyRule",
    "UnguardedModelsRule",
    "XssRule",
]
