"""Exception types raised by analysis code."""


class ShieldlintError(Exception):
    """Base class for shieldlint errors."""


class ParseError(ShieldlintError):
    """A source file could not be turned into a syntax tree."""


class AnalysisError(ShieldlintError):
    """A rule cannot produce a verdict, e.g. a malformed lock file."""


class ConfigurationError(ShieldlintError):
    """Rule options failed validation."""
