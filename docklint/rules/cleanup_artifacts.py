"""Artifact cleanup rule."""

from __future__ import annotations

from pathlib import PurePosixPath

from docklint.dockerfile_parser import Instruction, shell_words
from docklint.rules.base import Finding, Severity
from docklint.rules.shell import command_segments

APT_LISTS = "/var/lib/apt/lists"
ARCHIVE_SUFFIXES = (
    ".tar",
    ".tgz",
    ".gz",
    ".xz",
    ".txz",
    ".bz2",
    ".tbz2",
    ".zst",
    ".zip",
)


class CleanupArtifactsRule:
    """Flags downloaded or extracted files that are deleted in a later RUN.

    Deleting a file in a separate layer does not shrink the image; the layer
    that created it still ships it.
    """

    rule_id = "cleanup-artifacts"
    severity = Severity.WARNING

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        findings: list[Finding] = []
        created: dict[str, int] = {}

        for instruction in instructions:
            if instruction.opcode == "FROM":
                created.clear()
                continue
            if instruction.opcode != "RUN":
                continue

            produced: list[str] = []
            removed: list[str] = []
            for segment in command_segments(instruction):
                words = shell_words(segment)
                if words and words[0] == "sudo":
                    words = words[1:]
                if not words:
                    continue
                tool = PurePosixPath(words[0]).name
                if tool == "rm":
                    removed.extend(
                        _normalize(word) for word in words[1:] if not word.startswith("-")
                    )
                else:
                    produced.extend(_normalize(path) for path in _artifacts(tool, words[1:]))

            for path in removed:
                key = next((item for item in created if _same_artifact(item, path)), None)
                if key is None:
                    continue
                findings.append(
                    Finding(
                        rule_id=self.rule_id,
                        severity=self.severity,
                        line=instruction.line,
                        message=(
                            f"'{key}' created by the RUN at line {created.pop(key)} is removed "
                            "in a separate RUN; create, use and delete it in the same RUN."
                        ),
                    )
                )

            for path in produced:
                if any(_same_artifact(path, item) for item in removed):
                    continue
                created.setdefault(path, instruction.line)

        return findings


def _artifacts(tool: str, args: list[str]) -> list[str]:
    if tool == "curl":
        return _download_outputs(args, output_flag="o", remote_flag="O", long_output="--output")
    if tool == "wget":
        return _download_outputs(
            args, output_flag="O", remote_flag=None, long_output="--output-document"
        )
    if tool in {"apt-get", "apt"} and "update" in args:
        return [APT_LISTS]
    if tool == "tar" and _extracts(args):
        return [arg for arg in args if not arg.startswith("-") and _is_archive(arg)]
    if tool == "unzip":
        operands = [arg for arg in args if not arg.startswith("-")]
        return operands[:1]
    return []


def _download_outputs(
    args: list[str],
    *,
    output_flag: str,
    remote_flag: str | None,
    long_output: str,
) -> list[str]:
    outputs: list[str] = []
    urls: list[str] = []
    remote_name = remote_flag is None
    expect_output = False

    for arg in args:
        if expect_output:
            outputs.append(arg)
            expect_output = False
            continue
        if arg.startswith(long_output + "="):
            outputs.append(arg.split("=", 1)[1])
            continue
        if arg == long_output:
            expect_output = True
            continue
        if arg == "--remote-name":
            remote_name = True
            continue
        if arg.startswith("-") and not arg.startswith("--"):
            cluster = arg[1:]
            if output_flag in cluster:
                _, _, tail = cluster.partition(output_flag)
                if tail:
                    outputs.append(tail)
                else:
                    expect_output = True
            if remote_flag is not None and remote_flag in cluster.split(output_flag)[0]:
                remote_name = True
            continue
        if "://" in arg:
            urls.append(arg)

    if not outputs and remote_name:
        for url in urls:
            name = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
            if name and "://" not in name:
                outputs.append(name)
    return [output for output in outputs if output and output != "-"]


def _extracts(args: list[str]) -> bool:
    for position, arg in enumerate(args):
        if arg in {"--extract", "--get"}:
            return True
        if arg.startswith("--"):
            continue
        if arg.startswith("-") and "x" in arg[1:]:
            return True
        # old-style bundled flags: ``tar xzf archive.tgz``
        if position == 0 and "x" in arg and arg.isalpha():
            return True
    return False


def _is_archive(path: str) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(suffix) for suffix in ARCHIVE_SUFFIXES)


def _normalize(path: str) -> str:
    while path.endswith("/*") or (path.endswith("/") and len(path) > 1):
        path = path[:-2] if path.endswith("/*") else path[:-1]
    return path


def _same_artifact(left: str, right: str) -> bool:
    if left == right:
        return True
    if left.startswith("/") and right.startswith("/"):
        return False
    return PurePosixPath(left).name == PurePosixPath(right).name
