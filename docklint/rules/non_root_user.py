"""Non-root user rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction, split_stages, stage_lineage
from docklint.rules.base import Finding, Severity

ROOT_USERS = {"root", "0"}


class NonRootUserRule:
    """Requires the final stage to switch to a non-root USER.

    Later USER instructions override earlier ones, so only the last USER that
    applies to the final stage (including stages it builds on) counts.
    """

    rule_id = "non-root-user"
    severity = Severity.ERROR

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        _, stages = split_stages(instructions)
        if stages:
            final_stage = stages[-1]
            applicable: list[Instruction] = []
            for stage in reversed(stage_lineage(stages, final_stage)):
                applicable.extend(stage.instructions)
            anchor = final_stage.base.line
        else:
            applicable = list(instructions)
            anchor = 0

        users = [instruction for instruction in applicable if instruction.opcode == "USER"]
        if not users:
            return [
                Finding(
                    rule_id=self.rule_id,
                    severity=self.severity,
                    line=anchor,
                    message="No USER instruction in the final stage; the container runs as root.",
                )
            ]

        last = users[-1]
        user = last.arguments[0] if last.arguments else ""
        name = user.split(":", 1)[0]
        if name.lower() not in ROOT_USERS:
            return []
        return [
            Finding(
                rule_id=self.rule_id,
                severity=self.severity,
                line=last.line,
                message=(
                    f"Last USER instruction runs the container as '{user}'; "
                    "use a non-root user."
                ),
            )
        ]
