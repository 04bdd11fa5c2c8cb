"""Dockerfile parser tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from docklint.dockerfile_parser import (
    ParseError,
    load_dockerfile,
    parse_dockerfile,
    parse_image_reference,
    parse_key_values,
    split_stages,
    stage_lineage,
)


def test_parse_merges_continuations_and_keeps_first_line() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "FROM python:3.12-slim",
                "RUN apt-get update && \\",
                "    apt-get install -y curl",
                'CMD ["python", "-m", "app"]',
            ]
        )
    )

    assert [item.opcode for item in parsed.instructions] == ["FROM", "RUN", "CMD"]
    run = parsed.instructions[1]
    assert run.line == 2
    assert run.end_line == 3
    assert run.raw == "apt-get update && apt-get install -y curl"
    assert run.arguments[:2] == ("apt-get", "update")

    cmd = parsed.instructions[2]
    assert cmd.line == 4
    assert cmd.exec_form is True
    assert cmd.arguments == ("python", "-m", "app")
    assert parsed.warnings == ()


def test_parse_skips_comments_and_blank_lines_and_tracks_documentation() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "# base image",
                "FROM alpine:3.20",
                "",
                "RUN echo hi",
                "# trailing comment then blank",
                "",
                "user app",
            ]
        )
    )

    assert [(item.opcode, item.line) for item in parsed.instructions] == [
        ("FROM", 2),
        ("RUN", 4),
        ("USER", 7),
    ]
    assert [item.commented for item in parsed.instructions] == [True, False, False]


def test_parse_skips_comment_lines_inside_continuation() -> None:
    parsed = parse_dockerfile("FROM alpine:3.20\nRUN first \\\n# note\n\n  && second\n")
    run = parsed.instructions[1]
    assert run.raw == "first && second"
    assert run.end_line == 5


def test_unterminated_continuation_raises_parse_error() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_dockerfile("FROM alpine:3.20\nRUN echo \\\n")
    assert exc_info.value.line == 2
    assert "unterminated line continuation" in str(exc_info.value)


def test_invalid_keyword_raises_parse_error() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_dockerfile("FROM alpine:3.20\n=oops value\n")
    assert exc_info.value.line == 2


def test_from_without_image_raises_parse_error() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_dockerfile("FROM\n")
    assert exc_info.value.line == 1
    assert exc_info.value.reason == "FROM requires a base image"


def test_unknown_instruction_is_a_warning_not_a_failure() -> None:
    parsed = parse_dockerfile("FROM alpine:3.20\nFROBNICATE everything\nUSER app\n")
    assert len(parsed.instructions) == 3
    assert parsed.instructions[1].opcode == "FROBNICATE"
    assert parsed.instructions[1].is_known is False
    assert len(parsed.warnings) == 1
    assert parsed.warnings[0].line == 2
    assert "FROBNICATE" in parsed.warnings[0].message


def test_escape_directive_switches_continuation_character() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "# escape=`",
                "FROM mcr.microsoft.com/windows/servercore:ltsc2022",
                "RUN dir `",
                "    c:\\",
            ]
        )
    )
    assert parsed.escape == "`"
    assert parsed.instructions[0].commented is False
    assert parsed.instructions[1].raw == "dir c:\\"


def test_invalid_escape_directive_is_rejected() -> None:
    with pytest.raises(ParseError):
        parse_dockerfile("# escape=x\nFROM alpine:3.20\n")


def test_heredoc_body_belongs_to_its_instruction() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "FROM alpine:3.20",
                "RUN <<EOF",
                "apk add --no-cache curl",
                "rm -rf /tmp/cache",
                "EOF",
                "USER app",
            ]
        )
    )
    assert [item.opcode for item in parsed.instructions] == ["FROM", "RUN", "USER"]
    run = parsed.instructions[1]
    assert run.end_line == 5
    assert "apk add --no-cache curl" in run.raw
    assert parsed.instructions[2].line == 6


def test_herestring_is_not_a_heredoc() -> None:
    parsed = parse_dockerfile('FROM alpine:3.20\nRUN cat <<<"value"\nUSER app\n')
    assert len(parsed.instructions) == 3


def test_heredoc_marker_must_start_an_unquoted_word() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "FROM alpine:3.20",
                "RUN echo $((1<<BITS)) > /n",
                "RUN echo 'shift <<EOF' && echo \"a <<END\"",
                "USER app",
            ]
        )
    )
    assert [(item.opcode, item.line) for item in parsed.instructions] == [
        ("FROM", 1),
        ("RUN", 2),
        ("RUN", 3),
        ("USER", 4),
    ]
    assert parsed.instructions[1].raw == "echo $((1<<BITS)) > /n"


def test_from_with_only_flags_raises_parse_error() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_dockerfile("FROM --platform=linux/amd64\n")
    assert exc_info.value.reason == "FROM requires a base image"


def test_user_without_argument_raises_parse_error() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_dockerfile("FROM alpine:3.20\nUSER\n")
    assert exc_info.value.line == 2
    assert exc_info.value.reason == "USER requires an argument"


def test_invalid_exec_form_falls_back_to_shell_form() -> None:
    parsed = parse_dockerfile('FROM alpine:3.20\nCMD ["app",]\n')
    cmd = parsed.instructions[1]
    assert cmd.exec_form is False
    assert cmd.arguments == ('["app",]',)


def test_byte_order_mark_is_ignored() -> None:
    parsed = parse_dockerfile("\ufeffFROM alpine:3.20\n")
    assert parsed.instructions[0].opcode == "FROM"


def test_split_options_separates_flags() -> None:
    parsed = parse_dockerfile("FROM alpine:3.20\nCOPY --chown=app:app --from=build /out /app\n")
    options, positional = parsed.instructions[1].split_options()
    assert options == {"chown": "app:app", "from": "build"}
    assert positional == ["/out", "/app"]


def test_split_stages_resolves_global_args_and_aliases() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "ARG PY=3.12",
                "ARG UNSET",
                "FROM python:${PY}-slim AS build",
                "RUN pip wheel .",
                "FROM build",
                "USER app",
            ]
        )
    )
    global_args, stages = split_stages(parsed.instructions)

    assert global_args == {"PY": "3.12"}
    assert len(stages) == 2
    assert stages[0].base.name == "python"
    assert stages[0].base.tag == "3.12-slim"
    assert stages[0].base.alias == "build"
    assert [item.opcode for item in stages[0].instructions] == ["RUN"]
    assert stages[1].base.name == "build"
    assert [stage.index for stage in stage_lineage(stages, stages[1])] == [1, 0]


def test_image_reference_handles_registry_ports_digests_and_unresolved_args() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "FROM localhost:5000/team/app",
                "FROM --platform=linux/amd64 alpine@sha256:abc123",
                "FROM ${BASE_IMAGE}",
                "FROM docker.io/library/debian:bookworm",
            ]
        )
    )
    refs = [parse_image_reference(item, {}) for item in parsed.instructions]

    assert refs[0].name == "localhost:5000/team/app"
    assert refs[0].tag is None
    assert refs[1].name == "alpine"
    assert refs[1].digest == "sha256:abc123"
    assert refs[2].resolved is False
    assert refs[3].short_name == "debian"
    assert refs[3].tag == "bookworm"


def test_parse_key_values_supports_both_env_forms() -> None:
    parsed = parse_dockerfile(
        "\n".join(
            [
                "FROM alpine:3.20",
                "ENV GREETING hello world",
                'ENV A=1 B="two words" C=',
                "ARG VERSION",
            ]
        )
    )
    assert parse_key_values(parsed.instructions[1]) == {"GREETING": "hello world"}
    assert parse_key_values(parsed.instructions[2]) == {"A": "1", "B": "two words", "C": ""}
    assert parse_key_values(parsed.instructions[3]) == {"VERSION": ""}


def test_load_dockerfile_reads_through_filesystem(tmp_path: Path) -> None:
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text("FROM alpine:3.20\nUSER app\n", encoding="utf-8")

    parsed = load_dockerfile(dockerfile)
    assert [item.opcode for item in parsed.instructions] == ["FROM", "USER"]

    with pytest.raises(FileNotFoundError):
        load_dockerfile(tmp_path / "missing")


def test_load_dockerfile_rejects_non_utf8(tmp_path: Path) -> None:
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_bytes(b"FROM alpine:3.20\nLABEL x=\xff\n")
    with pytest.raises(ParseError):
        load_dockerfile(dockerfile)
