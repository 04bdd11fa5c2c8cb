"""Explicit base image tag rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction, split_stages
from docklint.rules.base import Finding, Severity


class ExplicitTagRule:
    """Requires every FROM to pin a tag other than ``latest`` or a digest."""

    rule_id = "explicit-tag"
    severity = Severity.ERROR

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        findings: list[Finding] = []
        _, stages = split_stages(instructions)
        aliases: set[str] = set()

        for stage in stages:
            base = stage.base
            is_stage_ref = base.name in aliases and base.tag is None
            if base.alias is not None:
                aliases.add(base.alias)
            if is_stage_ref or base.name == "scratch" or not base.resolved:
                continue
            if base.digest is not None:
                continue

            if base.tag is None:
                message = f"Base image '{base.name}' has no tag; pin an explicit version."
            elif base.tag.lower() == "latest":
                message = (
                    f"Base image '{base.name}' uses the 'latest' tag; pin an explicit version."
                )
            else:
                continue
            findings.append(
                Finding(
                    rule_id=self.rule_id,
                    severity=self.severity,
                    line=base.line,
                    message=message,
                )
            )
        return findings
