"""Dockerignore presence rule."""

from __future__ import annotations

from pathlib import Path

from docklint.dockerfile_parser import Instruction
from docklint.fs import FileSystem, LocalFileSystem
from docklint.rules.base import Finding, Severity

DOCKERIGNORE_NAME = ".dockerignore"


class DockerignorePresentRule:
    """Warns when no ignore file accompanies the build context."""

    rule_id = "dockerignore-present"
    severity = Severity.WARNING

    def __init__(
        self,
        *,
        fs: FileSystem | None = None,
        dockerfile: Path | None = None,
        context_dir: Path | None = None,
        ignore_file: Path | None = None,
    ) -> None:
        self._fs = fs or LocalFileSystem()
        self._dockerfile = dockerfile
        self._context_dir = context_dir
        self._ignore_file = ignore_file

    def candidates(self) -> list[Path]:
        """Ignore-file locations that satisfy the check, in lookup order."""
        if self._ignore_file is not None:
            return [self._ignore_file]
        paths: list[Path] = []
        context_dir = self._context_dir
        if context_dir is None and self._dockerfile is not None:
            context_dir = self._dockerfile.parent
        if context_dir is not None:
            paths.append(context_dir / DOCKERIGNORE_NAME)
        if self._dockerfile is not None:
            paths.append(self._dockerfile.with_name(f"{self._dockerfile.name}{DOCKERIGNORE_NAME}"))
        return paths

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        candidates = self.candidates()
        if not candidates:
            return []
        if any(self._fs.exists(path) for path in candidates):
            return []
        return [
            Finding(
                rule_id=self.rule_id,
                severity=self.severity,
                line=0,
                message=(
                    f"No ignore file found at {candidates[0]}; add a .dockerignore to keep "
                    "the build context small and free of local artifacts."
                ),
            )
        ]
