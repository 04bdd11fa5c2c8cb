"""Secrets-in-ENV rule."""

from __future__ import annotations

import re

from docklint.dockerfile_parser import Instruction, parse_key_values
from docklint.rules.base import Finding, Severity

SECRET_NAME_MARKERS = ("PASSWORD", "PASSWD", "SECRET", "KEY", "TOKEN")
PLACEHOLDER_VALUES = {
    "changeme",
    "change-me",
    "change_me",
    "placeholder",
    "dummy",
    "example",
    "none",
    "null",
    "redacted",
    "todo",
}
PLACEHOLDER_RE = re.compile(r"^(?:<[^>]*>|\$.*|[*x.]+|\{\{.*\}\})$", re.IGNORECASE)


class EnvNoSecretsRule:
    """Flags ENV (and ARG default) values that bake secrets into the image."""

    rule_id = "env-no-secrets"
    severity = Severity.ERROR

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        findings: list[Finding] = []
        for instruction in instructions:
            if instruction.opcode not in {"ENV", "ARG"}:
                continue
            for name, value in parse_key_values(instruction).items():
                if not _is_secret_name(name) or _is_placeholder(value):
                    continue
                findings.append(
                    Finding(
                        rule_id=self.rule_id,
                        severity=self.severity,
                        line=instruction.line,
                        message=(
                            f"{instruction.opcode} sets secret-like variable '{name}' to a literal "
                            "value; inject it at runtime or use a build secret."
                        ),
                    )
                )
        return findings


def _is_secret_name(name: str) -> bool:
    upper = name.upper()
    return any(marker in upper for marker in SECRET_NAME_MARKERS)


def _is_placeholder(value: str) -> bool:
    stripped = value.strip()
    if not stripped:
        return True
    if stripped.lower() in PLACEHOLDER_VALUES:
        return True
    return bool(PLACEHOLDER_RE.match(stripped))
