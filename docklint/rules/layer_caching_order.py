"""Layer caching order rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction, split_stages
from docklint.rules.base import Finding, Severity
from docklint.rules.shell import copy_sources, is_dependency_install

WHOLE_CONTEXT = {".", "./"}


class LayerCachingOrderRule:
    """Flags whole-context copies placed before dependency installation."""

    rule_id = "layer-caching-order"
    severity = Severity.WARNING

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        findings: list[Finding] = []
        _, stages = split_stages(instructions)

        for stage in stages:
            whole_copy: Instruction | None = None
            for instruction in stage.instructions:
                if whole_copy is None:
                    if instruction.opcode in {"COPY", "ADD"} and WHOLE_CONTEXT.intersection(
                        copy_sources(instruction)
                    ):
                        whole_copy = instruction
                    continue
                if is_dependency_install(instruction):
                    findings.append(
                        Finding(
                            rule_id=self.rule_id,
                            severity=self.severity,
                            line=whole_copy.line,
                            message=(
                                "Whole build context is copied before the dependency install "
                                f"at line {instruction.line}; copy the dependency manifests "
                                "first so the install layer stays cached."
                            ),
                        )
                    )
                    break
        return findings
