"""Rule execution and report aggregation."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import StrEnum

from docklint.dockerfile_parser import Instruction, ParsedDockerfile, parse_dockerfile
from docklint.rules import default_rules
from docklint.rules.base import Finding, Rule, Severity

logger = logging.getLogger(__name__)

UNKNOWN_INSTRUCTION_RULE_ID = "unknown-instruction"
TIMEOUT_RULE_ID = "timeout"


class ReportStatus(StrEnum):
    """Overall outcome derived from the worst finding."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    PASS = "PASS"


@dataclass(slots=True)
class AnalysisReport:
    """Findings of one analysis run, keyed by rule id in registration order."""

    results: dict[str, list[Finding]]
    timed_out: bool = False
    skipped_rule_ids: list[str] = field(default_factory=list)
    source: str = "<text>"

    @property
    def findings(self) -> list[Finding]:
        return [finding for findings in self.results.values() for finding in findings]

    @property
    def overall_status(self) -> ReportStatus:
        severities = {finding.severity for finding in self.findings}
        if Severity.ERROR in severities:
            return ReportStatus.ERROR
        if Severity.WARNING in severities:
            return ReportStatus.WARNING
        return ReportStatus.PASS

    def passed(self, rule_id: str) -> bool:
        """Whether a rule ran and produced no findings."""
        return rule_id in self.results and not self.results[rule_id]


class RuleEngine:
    """Runs independent rules over one instruction sequence.

    Rules never see each other's findings, so they are dispatched to a thread
    pool and merged back in registration order. A rule that raises is
    reported as a single ERROR finding instead of aborting the run.
    """

    def __init__(
        self,
        rules: Iterable[Rule] | None = None,
        *,
        max_workers: int | None = None,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._max_workers = max_workers
        self._rules: list[Rule] = []
        for rule in rules or []:
            self.register_rule(rule)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    def register_rule(self, rule: Rule) -> None:
        """Add a rule; rule ids must be unique."""
        if any(existing.rule_id == rule.rule_id for existing in self._rules):
            raise ValueError(f"Rule '{rule.rule_id}' is already registered")
        self._rules.append(rule)

    def run(
        self,
        instructions: Iterable[Instruction],
        *,
        deadline_seconds: float | None = None,
        source: str = "<text>",
    ) -> AnalysisReport:
        """Run every registered rule and aggregate the findings.

        When ``deadline_seconds`` elapses before all rules finish, the report
        holds the findings gathered so far, lists the abandoned rules and
        carries a ``timeout`` ERROR marker.
        """
        if deadline_seconds is not None and deadline_seconds <= 0:
            raise ValueError(f"deadline_seconds must be > 0, got {deadline_seconds}")
        sequence = tuple(instructions)
        if self._max_workers == 1:
            completed = self._run_inline(sequence, deadline_seconds)
        else:
            completed = self._run_threaded(sequence, deadline_seconds)

        results: dict[str, list[Finding]] = {}
        skipped: list[str] = []
        for rule in self._rules:
            if rule.rule_id in completed:
                results[rule.rule_id] = completed[rule.rule_id]
            else:
                skipped.append(rule.rule_id)

        if skipped:
            logger.warning(
                "Deadline of %ss exceeded; skipped rules: %s",
                deadline_seconds,
                ", ".join(skipped),
            )
            results[TIMEOUT_RULE_ID] = [
                Finding(
                    rule_id=TIMEOUT_RULE_ID,
                    severity=Severity.ERROR,
                    line=0,
                    message=(
                        f"TIMEOUT: analysis deadline of {deadline_seconds}s exceeded; "
                        f"skipped rules: {', '.join(skipped)}"
                    ),
                )
            ]
        return AnalysisReport(
            results=results,
            timed_out=bool(skipped),
            skipped_rule_ids=skipped,
            source=source,
        )

    def _run_inline(
        self,
        sequence: tuple[Instruction, ...],
        deadline_seconds: float | None,
    ) -> dict[str, list[Finding]]:
        started = time.monotonic()
        completed: dict[str, list[Finding]] = {}
        for rule in self._rules:
            if deadline_seconds is not None and time.monotonic() - started >= deadline_seconds:
                break
            completed[rule.rule_id] = _inspect_isolated(rule, sequence)
        return completed

    def _run_threaded(
        self,
        sequence: tuple[Instruction, ...],
        deadline_seconds: float | None,
    ) -> dict[str, list[Finding]]:
        if not self._rules:
            return {}
        executor = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="docklint-rule",
        )
        try:
            futures = {
                executor.submit(_inspect_isolated, rule, sequence): rule.rule_id
                for rule in self._rules
            }
            done, _ = wait(futures, timeout=deadline_seconds)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return {futures[future]: future.result() for future in done}


def analyze(
    parsed: ParsedDockerfile,
    engine: RuleEngine | None = None,
    *,
    deadline_seconds: float | None = None,
    source: str = "<text>",
) -> AnalysisReport:
    """Run the engine over a parsed Dockerfile, keeping parser warnings first."""
    active_engine = engine if engine is not None else RuleEngine(default_rules())
    report = active_engine.run(
        parsed.instructions,
        deadline_seconds=deadline_seconds,
        source=source,
    )
    if parsed.warnings:
        results = {
            UNKNOWN_INSTRUCTION_RULE_ID: [
                Finding(
                    rule_id=UNKNOWN_INSTRUCTION_RULE_ID,
                    severity=Severity.WARNING,
                    line=warning.line,
                    message=warning.message,
                )
                for warning in parsed.warnings
            ]
        }
        results.update(report.results)
        report.results = results
    return report


def analyze_text(text: str, engine: RuleEngine | None = None) -> AnalysisReport:
    """Parse and analyze Dockerfile text."""
    return analyze(parse_dockerfile(text), engine)


def _inspect_isolated(rule: Rule, sequence: tuple[Instruction, ...]) -> list[Finding]:
    try:
        return list(rule.inspect(sequence))
    except Exception as exc:
        logger.warning(
            "Rule %s failed: %s: %s",
            rule.rule_id,
            exc.__class__.__name__,
            exc,
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )
        return [
            Finding(
                rule_id=rule.rule_id,
                severity=Severity.ERROR,
                line=0,
                message=f"internal rule fault: {exc.__class__.__name__}: {exc}",
            )
        ]
