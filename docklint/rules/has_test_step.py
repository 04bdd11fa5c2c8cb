"""Build-time test step rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction
from docklint.rules.base import Finding, Severity
from docklint.rules.shell import runs_tests

ENTRY_OPCODES = {"CMD", "ENTRYPOINT"}


class HasTestStepRule:
    """Suggests running the test suite during the image build."""

    rule_id = "has-test-step"
    severity = Severity.INFO

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        if not instructions:
            return []
        final_entry: Instruction | None = None
        for instruction in instructions:
            if instruction.opcode in ENTRY_OPCODES:
                final_entry = instruction

        for instruction in instructions:
            if final_entry is not None and instruction.line >= final_entry.line:
                break
            if runs_tests(instruction):
                return []

        return [
            Finding(
                rule_id=self.rule_id,
                severity=self.severity,
                line=final_entry.line if final_entry is not None else 0,
                message=(
                    "No RUN instruction executes a test runner before the final CMD/ENTRYPOINT; "
                    "run the test suite as part of the build."
                ),
            )
        ]
