"""Base rule interfaces for project scans."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from shieldlint.analyzers.results import Category, Finding, Location, Outcome, Severity, aggregate
from shieldlint.analyzers.suppression import IgnoreRule, is_line_suppressed
from shieldlint.analyzers.text import cached_lines, code_snippet
from shieldlint.exceptions import AnalysisError, ConfigurationError
from shieldlint.syntax.nodes import SyntaxNode
from shieldlint.syntax.php_parser import PhpParser

logger = logging.getLogger(__name__)


def _never_excluded(path: Path) -> bool:
    return False


@dataclass(frozen=True)
class ScanContext:
    """Shared, read-only view of the project being scanned."""

    root: Path
    php_files: tuple = ()
    route_files: tuple = ()
    controller_files: tuple = ()
    model_files: tuple = ()
    config_files: tuple = ()
    blade_files: tuple = ()
    js_files: tuple = ()
    exclude: Callable[[Path], bool] = field(default=_never_excluded, compare=False)

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def exists(self, *parts: str) -> bool:
        return self.path(*parts).exists()

    def is_excluded(self, path) -> bool:
        return self.exclude(Path(path))

    def relative(self, path) -> str:
        """Project-relative POSIX path, or the path unchanged when outside the root."""
        try:
            return Path(path).resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return str(path)


@dataclass(frozen=True)
class RuleMetadata:
    """Identity and documentation of a rule."""

    id: str
    name: str
    description: str
    category: Category
    default_severity: Severity
    tags: frozenset = frozenset()
    docs_url: Optional[str] = None
    time_to_fix: Optional[int] = None  # minutes


class RuleOptions(BaseModel):
    """Tunable thresholds and name lists for one rule."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class Rule:
    """Base class for rules.

    Subclasses set ``metadata``, may declare an ``Options`` model with their
    defaults, and implement ``analyze`` returning the findings for one scan.
    Rules hold no per-scan state: everything collected during ``analyze``
    lives in locals or in accumulators passed between helper calls.
    """

    metadata: RuleMetadata
    Options: type[RuleOptions] = RuleOptions

    # Rules that may probe the running application get the app_url and probe_* options.
    uses_header_probe: bool = False

    passed_summary: str = "No issues found"
    failed_summary: str = "Found {count} issue{s}"

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        parser: Optional[PhpParser] = None,
        ignore: Sequence[IgnoreRule] = (),
    ):
        try:
            self.options = self.Options(**dict(options or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid options for {self.metadata.id}: {e}") from e
        self.parser = parser if parser is not None else PhpParser()
        self.ignore = tuple(ignore)

    @property
    def id(self) -> str:
        return self.metadata.id

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"

    # Lifecycle

    def applies(self, context: ScanContext) -> bool:
        """Whether the project has what this rule inspects. Existence checks only."""
        return True

    def skip_reason(self, context: ScanContext) -> str:
        return "Not applicable to this project"

    def analyze(self, context: ScanContext) -> list[Finding]:
        raise NotImplementedError

    def conclude(self, context: ScanContext, findings: list[Finding]) -> Outcome:
        return aggregate(findings, self.passed_summary, self.failed_summary)

    def execute(self, context: ScanContext) -> Outcome:
        """Run the analysis; failures become an Errored outcome."""
        try:
            findings = self.suppress(context, self.analyze(context))
            return self.conclude(context, findings)
        except AnalysisError as e:
            logger.warning(f"Rule {self.id} could not complete: {e}")
            return Outcome.errored(str(e))
        except Exception as e:
            logger.exception("Rule %s failed", self.id)
            return Outcome.errored(f"{type(e).__name__}: {e}")

    def evaluate(self, context: ScanContext) -> Outcome:
        """Skip inapplicable rules, execute the rest."""
        try:
            applicable = self.applies(context)
        except Exception as e:
            logger.exception("Applicability check for %s failed", self.id)
            return Outcome.errored(f"{type(e).__name__}: {e}")
        if not applicable:
            reason = self.skip_reason(context)
            logger.debug(f"Skipping {self.id}: {reason}")
            return Outcome.skipped(reason)
        return self.execute(context)

    def suppress(self, context: ScanContext, findings: list[Finding]) -> list[Finding]:
        """Drop findings silenced inline or by a configured ignore entry."""
        kept = []
        for finding in findings:
            lines = cached_lines(context.path(finding.location.file_path))
            if is_line_suppressed(lines, finding.location.line_number, self.id):
                continue
            if any(entry.matches(finding) for entry in self.ignore):
                continue
            kept.append(finding)
        if len(kept) < len(findings):
            logger.debug(f"Rule {self.id}: {len(findings) - len(kept)} findings suppressed")
        return kept

    # Helpers for subclasses

    def parse(self, path) -> list[SyntaxNode]:
        return self.parser.parse(path)

    def finding(
        self,
        context: ScanContext,
        message: str,
        path,
        line: int,
        severity: Optional[Severity] = None,
        recommendation: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
        column: Optional[int] = None,
        snippet: Optional[str] = None,
    ) -> Finding:
        """Finding located in ``path``.

        The snippet defaults to the offending line; pass ``snippet`` for files
        whose lines must not be echoed, such as env files.
        """
        return Finding(
            severity=severity or self.metadata.default_severity,
            message=message,
            location=Location(context.relative(path), max(line, 1), column),
            recommendation=recommendation,
            code_snippet=snippet if snippet is not None else code_snippet(path, line),
            metadata=dict(metadata or {}),
        )
