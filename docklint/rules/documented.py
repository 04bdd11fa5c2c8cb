"""Documentation coverage rule."""

from __future__ import annotations

from docklint.dockerfile_parser import Instruction
from docklint.rules.base import Finding, Severity

DEFAULT_THRESHOLD = 0.5


class DocumentedRule:
    """Reports when too few instructions carry an explanatory comment."""

    rule_id = "documented"
    severity = Severity.INFO

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"documentation threshold must be within [0, 1], got {threshold}")
        self._threshold = threshold

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        if not instructions:
            return []
        commented = sum(1 for instruction in instructions if instruction.commented)
        ratio = commented / len(instructions)
        if ratio >= self._threshold:
            return []
        return [
            Finding(
                rule_id=self.rule_id,
                severity=self.severity,
                line=0,
                message=(
                    f"{commented} of {len(instructions)} instructions ({ratio:.0%}) are preceded "
                    f"by a comment; expected at least {self._threshold:.0%}."
                ),
            )
        ]
