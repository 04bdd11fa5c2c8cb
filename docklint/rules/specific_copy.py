"""Specific COPY rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction
from docklint.rules.base import Finding, Severity
from docklint.rules.shell import copy_sources

WHOLE_CONTEXT = {".", "./"}


class SpecificCopyRule:
    """Flags COPY/ADD instructions that take the entire build context."""

    rule_id = "specific-copy"
    severity = Severity.WARNING

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        findings: list[Finding] = []
        for instruction in instructions:
            if instruction.opcode not in {"COPY", "ADD"}:
                continue
            if not WHOLE_CONTEXT.intersection(copy_sources(instruction)):
                continue
            findings.append(
                Finding(
                    rule_id=self.rule_id,
                    severity=self.severity,
                    line=instruction.line,
                    message=(
                        f"{instruction.opcode} takes the entire build context; "
                        "copy only the files the image needs."
                    ),
                )
            )
        return findings
