"""Dockerfile parser primitives."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from re import Match, compile

from docklint.fs import FileSystem, LocalFileSystem

KNOWN_OPCODES = frozenset(
    {
        "ADD",
        "ARG",
        "CMD",
        "COPY",
        "ENTRYPOINT",
        "ENV",
        "EXPOSE",
        "FROM",
        "HEALTHCHECK",
        "LABEL",
        "MAINTAINER",
        "ONBUILD",
        "RUN",
        "SHELL",
        "STOPSIGNAL",
        "USER",
        "VOLUME",
        "WORKDIR",
    }
)
HEREDOC_OPCODES = frozenset({"RUN", "COPY", "ADD"})
PARSER_DIRECTIVES = frozenset({"syntax", "escape", "check"})

DIRECTIVE_RE = compile(r"^#\s*(?P<name>[A-Za-z][A-Za-z0-9_-]*)\s*=\s*(?P<value>.*?)\s*$")
OPCODE_RE = compile(r"^[A-Za-z]+$")
HEREDOC_RE = compile(
    r"(?:(?<=\s)|^)<<(?P<dash>-?)(?P<quote>[\"']?)(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?P=quote)"
)
VARIABLE_RE = compile(
    r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?::?(?P<op>[-+])(?P<word>[^}]*))?\}"
    r"|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))"
)


class ParseError(ValueError):
    """Malformed Dockerfile input."""

    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"line {line}: {reason}")
        self.line = line
        self.reason = reason


@dataclass(frozen=True, slots=True)
class Instruction:
    """One logical build step."""

    opcode: str
    arguments: tuple[str, ...]
    line: int
    end_line: int
    raw: str = ""
    exec_form: bool = False
    commented: bool = False

    @property
    def is_known(self) -> bool:
        return self.opcode in KNOWN_OPCODES

    def split_options(self) -> tuple[dict[str, str], list[str]]:
        """Split leading ``--name=value`` flags from positional arguments."""
        options: dict[str, str] = {}
        positional: list[str] = []
        for index, argument in enumerate(self.arguments):
            if self.exec_form or not argument.startswith("--"):
                positional.extend(self.arguments[index:])
                break
            name, _, value = argument[2:].partition("=")
            options[name.lower()] = value
        return (options, positional)


@dataclass(frozen=True, slots=True)
class ParseWarning:
    """Non-fatal parser observation."""

    line: int
    message: str


@dataclass(frozen=True, slots=True)
class ParsedDockerfile:
    """Parser output: instruction sequence plus non-fatal warnings."""

    instructions: tuple[Instruction, ...]
    warnings: tuple[ParseWarning, ...] = ()
    escape: str = "\\"


@dataclass(slots=True)
class Stage:
    """A build stage opened by ``FROM``."""

    index: int
    base: ImageReference
    instructions: list[Instruction] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ImageReference:
    """Parsed ``FROM`` target."""

    text: str
    name: str
    tag: str | None
    digest: str | None
    alias: str | None
    resolved: bool
    line: int

    @property
    def short_name(self) -> str:
        """Image name without the default registry and ``library/`` namespace."""
        name = self.name
        for prefix in ("docker.io/", "index.docker.io/", "registry-1.docker.io/"):
            if name.startswith(prefix):
                name = name[len(prefix) :]
                break
        if name.startswith("library/"):
            name = name[len("library/") :]
        return name


def load_dockerfile(path: Path, fs: FileSystem | None = None) -> ParsedDockerfile:
    """Read and parse a Dockerfile through the filesystem collaborator."""
    data = (fs or LocalFileSystem()).read_file(path)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(1, f"file is not valid UTF-8 ({exc.reason})") from exc
    return parse_dockerfile(text)


def parse_dockerfile(text: str) -> ParsedDockerfile:
    """Parse Dockerfile text into an ordered instruction sequence."""
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = text.splitlines()
    total = len(lines)
    escape = "\\"
    index = 0

    while index < total:
        match = DIRECTIVE_RE.match(lines[index].strip())
        if match is None or match.group("name").lower() not in PARSER_DIRECTIVES:
            break
        if match.group("name").lower() == "escape":
            value = match.group("value")
            if value not in {"\\", "`"}:
                raise ParseError(index + 1, f"invalid escape directive value {value!r}")
            escape = value
        index += 1

    instructions: list[Instruction] = []
    warnings: list[ParseWarning] = []
    after_comment = False

    while index < total:
        stripped = lines[index].strip()
        if not stripped:
            after_comment = False
            index += 1
            continue
        if stripped.startswith("#"):
            after_comment = True
            index += 1
            continue

        start = index + 1
        commented = after_comment
        after_comment = False
        pieces: list[str] = []
        current = stripped
        while _continues(current, escape):
            pieces.append(current.rstrip()[:-1].strip())
            index += 1
            while index < total and _is_skippable(lines[index]):
                index += 1
            if index >= total:
                raise ParseError(start, "unterminated line continuation")
            current = lines[index].strip()
        pieces.append(current)
        logical = " ".join(piece for piece in pieces if piece)
        index += 1

        parts = logical.split(None, 1)
        keyword = parts[0] if parts else ""
        rest = parts[1] if len(parts) > 1 else ""
        if not keyword or not OPCODE_RE.match(keyword):
            raise ParseError(start, f"invalid instruction keyword {keyword!r}")
        opcode = keyword.upper()
        rest = rest.strip()
        if opcode == "FROM" and not any(not token.startswith("--") for token in rest.split()):
            raise ParseError(start, "FROM requires a base image")
        if opcode == "USER" and not rest:
            raise ParseError(start, "USER requires an argument")
        if opcode not in KNOWN_OPCODES:
            warnings.append(ParseWarning(start, f"unknown instruction {keyword!r}"))

        arguments, exec_form = _split_arguments(rest)
        raw = rest
        if opcode in HEREDOC_OPCODES and not exec_form:
            raw, index = _consume_heredocs(rest, lines, index, start)

        instructions.append(
            Instruction(
                opcode=opcode,
                arguments=arguments,
                line=start,
                end_line=index,
                raw=raw,
                exec_form=exec_form,
                commented=commented,
            )
        )

    return ParsedDockerfile(
        instructions=tuple(instructions),
        warnings=tuple(warnings),
        escape=escape,
    )


def split_stages(
    instructions: tuple[Instruction, ...] | list[Instruction],
) -> tuple[dict[str, str], list[Stage]]:
    """Group instructions by build stage.

    Returns the global ``ARG`` defaults declared before the first ``FROM``
    together with the stages in document order.
    """
    global_args: dict[str, str] = {}
    stages: list[Stage] = []
    for instruction in instructions:
        if instruction.opcode == "FROM":
            stages.append(
                Stage(
                    index=len(stages),
                    base=parse_image_reference(instruction, global_args),
                )
            )
            continue
        if not stages:
            if instruction.opcode == "ARG":
                global_args.update(
                    {key: value for key, value in parse_key_values(instruction).items() if value}
                )
            continue
        stages[-1].instructions.append(instruction)
    return (global_args, stages)


def stage_lineage(stages: list[Stage], stage: Stage) -> list[Stage]:
    """Return ``stage`` and the earlier stages it builds on, nearest first."""
    aliases = {
        item.base.alias: item for item in stages[: stage.index] if item.base.alias is not None
    }
    chain = [stage]
    current = stage
    while current.base.tag is None and current.base.digest is None:
        parent = aliases.get(current.base.name)
        if parent is None or parent.index >= current.index:
            break
        chain.append(parent)
        current = parent
    return chain


def parse_image_reference(instruction: Instruction, build_args: dict[str, str]) -> ImageReference:
    """Parse the image, tag, digest and alias of a ``FROM`` instruction."""
    _, positional = instruction.split_options()
    text = positional[0] if positional else ""
    alias = None
    if len(positional) >= 3 and positional[1].lower() == "as":
        alias = positional[2].lower()

    expanded, resolved = expand_variables(text, build_args)
    name = expanded
    digest = None
    if "@" in name:
        name, _, digest = name.partition("@")
    tag = None
    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        name, tag = name[:colon], name[colon + 1 :]

    return ImageReference(
        text=expanded,
        name=name.lower(),
        tag=tag or None,
        digest=digest or None,
        alias=alias,
        resolved=resolved,
        line=instruction.line,
    )


def expand_variables(text: str, values: dict[str, str]) -> tuple[str, bool]:
    """Substitute ``$NAME``/``${NAME}`` references, reporting unresolved ones."""
    resolved = True

    def replace(match: Match[str]) -> str:
        nonlocal resolved
        name = match.group("braced") or match.group("bare")
        value = values.get(name, "")
        operator = match.group("op")
        if operator == "-" and not value:
            return match.group("word") or ""
        if operator == "+":
            return (match.group("word") or "") if value else ""
        if name not in values:
            resolved = False
        return value

    return (VARIABLE_RE.sub(replace, text), resolved)


def parse_key_values(instruction: Instruction) -> dict[str, str]:
    """Parse ``ENV``/``ARG``/``LABEL`` style ``KEY=value`` pairs.

    Supports the legacy ``ENV KEY value with spaces`` form and bare
    ``ARG NAME`` declarations, which map to an empty value.
    """
    tokens = shell_words(instruction.raw)
    if not tokens:
        return {}
    if instruction.opcode == "ENV" and "=" not in tokens[0]:
        parts = instruction.raw.strip().split(None, 1)
        value = parts[1] if len(parts) > 1 else ""
        return {parts[0]: _unquote(value.strip())}

    pairs: dict[str, str] = {}
    for token in tokens:
        key, _, value = token.partition("=")
        if key:
            pairs[key] = value
    return pairs


def _continues(line: str, escape: str) -> bool:
    return line.rstrip().endswith(escape)


def _is_skippable(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _consume_heredocs(rest: str, lines: list[str], index: int, start: int) -> tuple[str, int]:
    bodies: list[str] = []
    for marker in HEREDOC_RE.finditer(rest):
        if _is_quoted(rest, marker.start()):
            continue
        terminator = marker.group("name")
        strip_tabs = marker.group("dash") == "-"
        body: list[str] = []
        while True:
            if index >= len(lines):
                raise ParseError(start, f"unterminated heredoc {terminator!r}")
            candidate = lines[index]
            index += 1
            check = candidate.lstrip("\t") if strip_tabs else candidate
            if check.rstrip() == terminator:
                break
            body.append(candidate)
        bodies.append("\n".join(body))
    if not bodies:
        return (rest, index)
    return ("\n".join([rest, *bodies]), index)


def _is_quoted(text: str, position: int) -> bool:
    quote: str | None = None
    escaped = False
    for char in text[:position]:
        if escaped:
            escaped = False
        elif char == "\\" and quote != "'":
            escaped = True
        elif quote is not None:
            if char == quote:
                quote = None
        elif char in {'"', "'"}:
            quote = char
    return quote is not None


def _split_arguments(rest: str) -> tuple[tuple[str, ...], bool]:
    if rest.startswith("[") and rest.endswith("]"):
        try:
            decoded = json.loads(rest)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list) and all(isinstance(item, str) for item in decoded):
            return (tuple(decoded), True)
    return (tuple(rest.split()), False)


def shell_words(text: str) -> list[str]:
    """Split on whitespace while keeping quoted segments together."""
    words: list[str] = []
    current: list[str] = []
    quote: str | None = None
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\" and quote != "'":
            escaped = True
            continue
        if quote is not None:
            if char == quote:
                quote = None
            else:
                current.append(char)
            continue
        if char in {'"', "'"}:
            quote = char
            continue
        if char.isspace():
            if current:
                words.append("".join(current))
                current = []
            continue
        current.append(char)
    if current:
        words.append("".join(current))
    return words


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value
