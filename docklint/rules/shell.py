"""Shell-command heuristics shared by RUN-inspecting rules.

These are textual pattern matches over common package managers, download
tools and test runners. Unusual invocations (wrapper scripts, variables
holding the command, custom build tools) are not recognized. Segments that
opt out of tests (`-DskipTests`, `-Dmaven.test.skip=true`, `gradle -x test`)
never count as a test run.
"""

from __future__ import annotations

import re

from docklint.dockerfile_parser import Instruction

SEGMENT_SPLIT_RE = re.compile(r"&&|\|\||;|\n")

PACKAGE_INSTALL_RE = re.compile(
    r"\b(?:apt-get|apt|aptitude)\s+(?:-\S+\s+)*(?:install|update|upgrade|dist-upgrade)\b"
    r"|\bapk\s+(?:-\S+\s+)*(?:add|update|upgrade)\b"
    r"|\b(?:yum|dnf|microdnf|tdnf|zypper)\s+(?:-\S+\s+)*(?:install|update|upgrade|in)\b"
    r"|\bpip3?\s+install\b"
    r"|\bpython3?\s+-m\s+pip\s+install\b"
    r"|\b(?:npm|pnpm)\s+(?:install|ci|i|add)\b"
    r"|\byarn\s+(?:install|add)\b"
    r"|\b(?:gem|conda|mamba|micromamba)\s+install\b"
    r"|\bbundle\s+install\b"
    r"|\bcomposer\s+(?:install|require)\b"
    r"|\b(?:poetry|pipenv)\s+install\b"
    r"|\bgo\s+(?:get|install|mod\s+download)\b"
    r"|\bcargo\s+(?:install|fetch)\b",
    re.IGNORECASE,
)

DEPENDENCY_INSTALL_RE = re.compile(
    r"\bpip3?\s+install\b[^&;|\n]*\s(?:-r|--requirement)\b"
    r"|\bpython3?\s+-m\s+pip\s+install\b[^&;|\n]*\s(?:-r|--requirement)\b"
    r"|\b(?:poetry|pipenv)\s+install\b"
    r"|\buv\s+(?:sync|pip\s+sync)\b"
    r"|\b(?:npm|pnpm)\s+(?:ci|install|i)\b"
    r"|\byarn\s+install\b"
    r"|\bbundle\s+install\b"
    r"|\bcomposer\s+install\b"
    r"|\bgo\s+mod\s+download\b"
    r"|\bcargo\s+fetch\b"
    r"|\bmvn\b[^&;|\n]*\bdependency:(?:go-offline|resolve)\b",
    re.IGNORECASE,
)

TEST_RUNNER_RE = re.compile(
    r"\b(?:pytest|py\.test|tox|nox)\b"
    r"|\bpython3?\s+-m\s+(?:pytest|unittest)\b"
    r"|\b(?:npm|pnpm|yarn)\s+(?:run\s+)?test\b"
    r"|\b(?:go|cargo|dotnet)\s+test\b"
    r"|\bmvn\b[^&;|\n]*\b(?:test|verify)\b"
    r"|\bgradlew?\b[^&;|\n]*\b(?:test|check)\b"
    r"|\bmake\s+(?:test|check)\b"
    r"|\b(?:rspec|phpunit|jest|mocha|vitest|ctest)\b",
    re.IGNORECASE,
)

TEST_SKIP_RE = re.compile(r"skipTests|\btest\.skip\b|(?:^|\s)-x\s+test\b", re.IGNORECASE)


def command_text(instruction: Instruction) -> str:
    """Return the command a RUN instruction executes."""
    if instruction.exec_form:
        return " ".join(instruction.arguments)
    return instruction.raw


def command_segments(instruction: Instruction) -> list[str]:
    """Split a RUN command into its ``&&``/``;``/``||`` separated parts."""
    return [
        segment.strip()
        for segment in SEGMENT_SPLIT_RE.split(command_text(instruction))
        if segment.strip()
    ]


def is_package_install(instruction: Instruction) -> bool:
    return instruction.opcode == "RUN" and bool(
        PACKAGE_INSTALL_RE.search(command_text(instruction))
    )


def is_dependency_install(instruction: Instruction) -> bool:
    return instruction.opcode == "RUN" and bool(
        DEPENDENCY_INSTALL_RE.search(command_text(instruction))
    )


def runs_tests(instruction: Instruction) -> bool:
    """Whether a RUN executes a test runner (installing one does not count)."""
    if instruction.opcode != "RUN":
        return False
    for segment in command_segments(instruction):
        if PACKAGE_INSTALL_RE.search(segment):
            continue
        if TEST_SKIP_RE.search(segment):
            continue
        if TEST_RUNNER_RE.search(segment):
            return True
    return False


def copy_sources(instruction: Instruction) -> list[str]:
    """Return COPY/ADD source arguments; empty for copies from other stages."""
    options, positional = instruction.split_options()
    if "from" in options:
        return []
    return positional[:-1]
