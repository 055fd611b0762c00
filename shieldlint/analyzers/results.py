"""Finding and outcome model.

A rule collects ``Finding`` values while it runs and folds them into a
single ``Outcome`` with ``aggregate``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional


class Severity(str, Enum):
    """Finding severity levels, ordered from least to most severe."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {severity: index for index, severity in enumerate(Severity)}


class Category(str, Enum):
    """Rule categories."""

    SECURITY = "security"
    PERFORMANCE = "performance"
    RELIABILITY = "reliability"
    CODE_QUALITY = "code_quality"
    BEST_PRACTICES = "best_practices"


class Status(str, Enum):
    """Terminal state of one rule in one scan."""

    PASSED = "passed"
    FAILED = "failed"
    WARNING = "warning"
    SKIPPED = "skipped"
    ERRORED = "errored"


@dataclass(frozen=True)
class Location:
    """Where a finding was detected; paths are relative to the project root."""

    file_path: str
    line_number: int
    column_number: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.file_path}:{self.line_number}"


@dataclass(frozen=True)
class Finding:
    """A single detected issue."""

    severity: Severity
    message: str
    location: Location
    recommendation: str
    code_snippet: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Outcome:
    """Rule-level verdict.

    Failed and Warning outcomes always carry findings; the other statuses
    never do.
    """

    status: Status
    summary: str
    findings: tuple = ()

    def __post_init__(self):
        if self.status in (Status.FAILED, Status.WARNING):
            if not self.findings:
                raise ValueError(f"{self.status.value} outcome requires at least one finding")
        elif self.findings:
            raise ValueError(f"{self.status.value} outcome cannot carry findings")

    @classmethod
    def passed(cls, summary: str) -> "Outcome":
        return cls(Status.PASSED, summary)

    @classmethod
    def failed(cls, summary: str, findings: Iterable[Finding]) -> "Outcome":
        return cls(Status.FAILED, summary, tuple(findings))

    @classmethod
    def warning(cls, summary: str, findings: Iterable[Finding]) -> "Outcome":
        return cls(Status.WARNING, summary, tuple(findings))

    @classmethod
    def skipped(cls, reason: str) -> "Outcome":
        return cls(Status.SKIPPED, reason)

    @classmethod
    def errored(cls, message: str) -> "Outcome":
        return cls(Status.ERRORED, message)

    @property
    def max_severity(self) -> Optional[Severity]:
        if not self.findings:
            return None
        return max(finding.severity for finding in self.findings)


def format_summary(template: str, count: int) -> str:
    """Fill ``{count}`` and the plural suffix ``{s}`` in a summary template."""
    return template.format(count=count, s="" if count == 1 else "s")


def aggregate(findings: Iterable[Finding], passed_summary: str, failed_summary_template: str) -> Outcome:
    """Fold findings into one outcome.

    No findings pass; any finding at High or above fails; otherwise warn.
    """
    findings = tuple(findings)
    if not findings:
        return Outcome.passed(passed_summary)

    summary = format_summary(failed_summary_template, len(findings))
    if max(finding.severity for finding in findings) >= Severity.HIGH:
        return Outcome.failed(summary, findings)
    return Outcome.warning(summary, findings)
