"""Base rule protocol and finding model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from docklint.dockerfile_parser import Instruction


class Severity(StrEnum):
    """Finding severity, most severe first."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(frozen=True, slots=True)
class Finding:
    """A single rule violation or observation.

    ``line`` is the first physical line of the offending instruction, or ``0``
    for findings about the Dockerfile as a whole.
    """

    rule_id: str
    severity: Severity
    line: int
    message: str


class Rule(Protocol):
    """Protocol for independent, side-effect free Dockerfile checks."""

    rule_id: str
    severity: Severity

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        """Inspect the full instruction sequence and return findings."""
