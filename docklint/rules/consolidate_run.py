"""Consolidated RUN rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction
from docklint.rules.base import Finding, Severity
from docklint.rules.shell import is_package_install


class ConsolidateRunRule:
    """Flags consecutive RUN instructions that each invoke a package manager."""

    rule_id = "consolidate-run"
    severity = Severity.WARNING

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        findings: list[Finding] = []
        group: list[Instruction] = []

        for instruction in (*instructions, None):
            if instruction is not None and is_package_install(instruction):
                group.append(instruction)
                continue
            if len(group) >= 2:
                lines = ", ".join(str(item.line) for item in group)
                findings.append(
                    Finding(
                        rule_id=self.rule_id,
                        severity=self.severity,
                        line=group[0].line,
                        message=(
                            f"{len(group)} consecutive RUN instructions invoke package "
                            f"managers (lines {lines}); combine them into a single RUN."
                        ),
                    )
                )
            group = []
        return findings
