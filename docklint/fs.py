"""Filesystem access used by the loader and the dockerignore check."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class FileSystem(Protocol):
    """Read-only filesystem collaborator."""

    def read_file(self, path: Path) -> bytes:
        """Return file bytes, raising ``FileNotFoundError`` when missing."""

    def exists(self, path: Path) -> bool:
        """Return whether ``path`` exists as a regular file."""


class LocalFileSystem:
    """FileSystem backed by the local disk."""

    def read_file(self, path: Path) -> bytes:
        return path.read_bytes()

    def exists(self, path: Path) -> bool:
        return path.is_file()
