"""Output rendering."""

from __future__ import annotations

import json
from typing import Any

import click

from docklint.engine import AnalysisReport, ReportStatus
from docklint.rules.base import Finding, Severity

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_ERROR = 2

_SEVERITY_COLORS = {
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}
_STATUS_COLORS = {
    ReportStatus.ERROR: "red",
    ReportStatus.WARNING: "yellow",
    ReportStatus.PASS: "green",
}


def render_text(report: AnalysisReport) -> str:
    """Render findings grouped by severity, one line per finding."""
    findings = report.findings
    lines: list[str] = []
    counts: dict[Severity, int] = {}
    for severity in Severity:
        group = sorted(
            (finding for finding in findings if finding.severity == severity),
            key=lambda item: item.line,
        )
        counts[severity] = len(group)
        if not group:
            continue
        header = f"{severity.value} ({len(group)}):"
        lines.append(click.style(header, fg=_SEVERITY_COLORS[severity], bold=True))
        lines.extend(format_finding(finding) for finding in group)

    if not findings:
        lines.append("No findings.")

    status = report.overall_status
    summary = (
        f"Status: {status.value} ({counts[Severity.ERROR]} errors, "
        f"{counts[Severity.WARNING]} warnings, {counts[Severity.INFO]} info)"
    )
    if report.timed_out:
        summary += " [TIMEOUT]"
    lines.append(click.style(summary, fg=_STATUS_COLORS[status], bold=True))
    return "\n".join(lines)


def render_json(report: AnalysisReport) -> str:
    """Render the ordered list of finding records for CI and automation."""
    return json.dumps([_serialize_finding(item) for item in report.findings], sort_keys=True)


def render(report: AnalysisReport, output_format: str) -> str:
    """Render a report as ``text`` or ``json``."""
    if output_format == "json":
        return render_json(report)
    if output_format == "text":
        return render_text(report)
    raise ValueError(f"Unknown output format '{output_format}'. Expected one of: json, text")


def format_finding(finding: Finding) -> str:
    return f"{finding.line}: [{finding.severity.value}] {finding.rule_id}: {finding.message}"


def exit_code(report: AnalysisReport, *, strict: bool = False) -> int:
    """Map a report to the process exit code."""
    if report.timed_out:
        return EXIT_ERROR
    status = report.overall_status
    if status == ReportStatus.ERROR:
        return EXIT_FAILURE
    if status == ReportStatus.WARNING and strict:
        return EXIT_FAILURE
    return EXIT_OK


def _serialize_finding(finding: Finding) -> dict[str, Any]:
    return {
        "rule_id": finding.rule_id,
        "severity": finding.severity.value,
        "line": finding.line,
        "message": finding.message,
    }
