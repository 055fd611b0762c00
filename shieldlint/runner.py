"""Scan orchestration.

Selects the enabled rules, drives each through its lifecycle against one
``ScanContext`` and collects the outcomes in catalog order.
"""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from shieldlint.analyzers import RULES
from shieldlint.analyzers.base import Rule, RuleMetadata, ScanContext
from shieldlint.analyzers.results import Outcome, Severity, Status
from shieldlint.analyzers.suppression import IgnoreRule
from shieldlint.config import Settings, get_settings
from shieldlint.discovery import build_context
from shieldlint.exceptions import ConfigurationError
from shieldlint.schemas import RuleResultSchema, ScanReportSchema
from shieldlint.syntax.php_parser import PhpParser

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class RuleResult:
    """Outcome of one rule in one scan."""

    metadata: RuleMetadata
    outcome: Outcome
    duration: float = 0.0


@dataclass
class ScanReport:
    """All rule results of a scan."""

    root: Path
    results: list[RuleResult] = field(default_factory=list)
    fail_on: Severity = Severity.CRITICAL
    dont_report: frozenset = frozenset()

    @property
    def reported(self) -> list[RuleResult]:
        return [result for result in self.results if result.metadata.id not in self.dont_report]

    @property
    def counts(self) -> dict[Status, int]:
        counts = {status: 0 for status in Status}
        for result in self.reported:
            counts[result.outcome.status] += 1
        return counts

    @property
    def failed(self) -> bool:
        """Whether any reported finding reaches the ``fail_on`` severity."""
        for result in self.reported:
            for finding in result.outcome.findings:
                if finding.severity >= self.fail_on:
                    return True
        return False

    def to_schema(self) -> ScanReportSchema:
        return ScanReportSchema(
            root=str(self.root),
            failed=self.failed,
            counts=self.counts,
            results=[RuleResultSchema.model_validate(result) for result in self.reported],
        )


class ScanRunner:
    """Runs the rule catalog against a project."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rule_classes: Optional[list[type[Rule]]] = None,
        parser: Optional[PhpParser] = None,
    ):
        self.settings = settings or get_settings()
        self.rule_classes = list(RULES if rule_classes is None else rule_classes)
        self.parser = parser or PhpParser(facade_aliases=self.settings.facade_aliases)

    def build_context(self, root) -> ScanContext:
        return build_context(root, self.settings.paths_analyze, self.settings.excluded_paths)

    def build_rules(self) -> list:
        """Enabled rules in catalog order; misconfigured ones become Errored results."""
        selected = []
        for rule_class in self.rule_classes:
            metadata = rule_class.metadata
            if not self.settings.is_enabled(metadata.id, metadata.category):
                logger.debug(f"Rule {metadata.id} disabled by configuration")
                continue
            try:
                options = self.settings.rule_options(metadata.id)
                if rule_class.uses_header_probe:
                    options.setdefault("app_url", self.settings.app_url)
                    options.setdefault("probe_timeout", self.settings.header_probe_timeout)
                    options.setdefault("probe_verify", self.settings.header_probe_verify)
                selected.append(rule_class(options, parser=self.parser, ignore=self.ignore_rules(metadata.id)))
            except ConfigurationError as e:
                logger.error(str(e))
                selected.append(RuleResult(metadata, Outcome.errored(str(e))))

        known = {rule_class.metadata.id for rule_class in self.rule_classes}
        for rule_id, entries in self.settings.ignore_errors.items():
            if rule_id not in known:
                logger.warning(f"ignore_errors names unknown rule {rule_id}")
            elif not entries:
                logger.warning(f"ignore_errors for {rule_id} has no entries")
        return selected

    def ignore_rules(self, rule_id: str) -> list[IgnoreRule]:
        """Valid ignore_errors entries for one rule; invalid ones are logged and dropped."""
        entries = []
        for raw in self.settings.ignore_errors.get(rule_id, []):
            try:
                entries.append(IgnoreRule.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Invalid ignore_errors entry for {rule_id}: {e}")
        return entries

    def run(self, root=None, context: Optional[ScanContext] = None) -> ScanReport:
        if context is None:
            if root is None:
                raise ValueError("run() needs a project root or a prepared context")
            context = self.build_context(root)

        entries = self.build_rules()
        logger.info(f"Running {len(entries)} rules against {context.root}")
        started = time.perf_counter()

        if self.settings.max_workers == 1 and self.settings.rule_timeout_seconds is None:
            results = [
                entry if isinstance(entry, RuleResult) else self._run_rule(entry, context)
                for entry in entries
            ]
        else:
            results = self._run_pooled(entries, context)

        report = ScanReport(
            root=context.root,
            results=results,
            fail_on=self.settings.fail_on,
            dont_report=frozenset(self.settings.dont_report),
        )
        counts = ", ".join(f"{count} {status.value}" for status, count in report.counts.items() if count)
        logger.info(f"Scan finished in {time.perf_counter() - started:.2f}s: {counts or 'no rules run'}")
        return report

    def _run_pooled(self, entries: list, context: ScanContext) -> list[RuleResult]:
        """Run rules on a worker pool.

        A rule's timeout counts from the moment a worker starts it. A timed-out
        rule keeps its thread, so rules still queued behind it are moved to a
        fresh pool instead of waiting for a worker that may never free up.
        """
        timeout = self.settings.rule_timeout_seconds
        results: list = [entry if isinstance(entry, RuleResult) else None for entry in entries]
        queued = [index for index, result in enumerate(results) if result is None]
        running: dict[Future, int] = {}
        started: dict[int, float] = {}
        executors = []
        try:
            while queued or running:
                if queued:
                    executor = ThreadPoolExecutor(
                        max_workers=self.settings.max_workers, thread_name_prefix="shieldlint"
                    )
                    executors.append(executor)
                    for index in queued:
                        future = executor.submit(self._run_started, entries[index], context, started, index)
                        running[future] = index
                    queued = []

                done, _ = wait(running, timeout=self._wait_budget(running, started, timeout), return_when=FIRST_COMPLETED)
                for future in done:
                    results[running.pop(future)] = future.result()
                if timeout is None:
                    continue

                now = time.perf_counter()
                expired = [
                    future for future, index in running.items()
                    if index in started and now - started[index] >= timeout
                ]
                for future in expired:
                    index = running.pop(future)
                    logger.error(f"Rule {entries[index].id} exceeded {timeout}s")
                    results[index] = RuleResult(entries[index].metadata, Outcome.errored("timeout"), float(timeout))
                if expired:
                    for future, index in list(running.items()):
                        if future.cancel():
                            del running[future]
                            queued.append(index)
                    queued.sort()
            return results
        finally:
            # Timed-out rules cannot be interrupted; do not block on them.
            for executor in executors:
                executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _wait_budget(running: dict, started: dict, timeout: Optional[float]) -> Optional[float]:
        """Seconds until the earliest running rule reaches its timeout."""
        if timeout is None:
            return None
        now = time.perf_counter()
        budgets = [started[index] + timeout - now for index in running.values() if index in started]
        if len(budgets) < len(running):
            # Rules not started yet get their clock once a worker picks them up.
            budgets.append(min(timeout, POLL_INTERVAL))
        return max(min(budgets), 0.0)

    def _run_started(self, rule: Rule, context: ScanContext, started: dict, index: int) -> RuleResult:
        started[index] = time.perf_counter()
        return self._run_rule(rule, context)

    def _run_rule(self, rule: Rule, context: ScanContext) -> RuleResult:
        logger.debug(f"Running {rule.id}")
        started = time.perf_counter()
        outcome = rule.evaluate(context)
        duration = time.perf_counter() - started
        logger.info(f"{rule.id}: {outcome.status.value} ({duration:.2f}s)")
        return RuleResult(rule.metadata, outcome, duration)


def scan(root, settings: Optional[Settings] = None) -> ScanReport:
    """Scan the project at ``root`` with every enabled rule."""
    return ScanRunner(settings).run(root)
