"""Minimal base image rule."""

from __future__ import annotations

from collections.abc import Iterable

from docklint.dockerfile_parser import Instruction, split_stages, stage_lineage
from docklint.rules.base import Finding, Severity

DEFAULT_DENYLIST = (
    "ubuntu",
    "debian",
    "centos",
    "fedora",
    "rockylinux",
    "almalinux",
    "amazonlinux",
    "python",
    "node",
    "ruby",
    "golang",
    "openjdk",
    "php",
    "perl",
)
SLIM_MARKERS = ("slim", "alpine", "minimal", "distroless", "busybox", "micro", "chiseled")


class MinimalBaseImageRule:
    """Warns when the final stage builds on a full distribution image."""

    rule_id = "minimal-base-image"
    severity = Severity.WARNING

    def __init__(self, denylist: Iterable[str] | None = None) -> None:
        entries = DEFAULT_DENYLIST if denylist is None else denylist
        self._denylist = frozenset(entry.strip().lower() for entry in entries if entry.strip())

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        _, stages = split_stages(instructions)
        if not stages:
            return []

        base = stage_lineage(stages, stages[-1])[-1].base
        if not base.resolved or base.digest is not None:
            return []
        if not self._is_denied(base.short_name, base.tag):
            return []

        return [
            Finding(
                rule_id=self.rule_id,
                severity=self.severity,
                line=base.line,
                message=(
                    f"Final stage is based on full image '{base.text}'; "
                    "use a slim, alpine or distroless variant."
                ),
            )
        ]

    def _is_denied(self, name: str, tag: str | None) -> bool:
        if tag is not None and f"{name}:{tag.lower()}" in self._denylist:
            return True
        if name not in self._denylist:
            return False
        if tag is None:
            return True
        lowered = tag.lower()
        return not any(marker in lowered for marker in SLIM_MARKERS)
