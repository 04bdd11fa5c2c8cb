"""Rule tests for the Dockerfile rule set and registry."""

from __future__ import annotations

from pathlib import Path

import pytest

from docklint.dockerfile_parser import parse_dockerfile
from docklint.rules import RuleOptions, build_rules, default_rules, list_rule_info
from docklint.rules.base import Finding, Rule, Severity
from docklint.rules.cleanup_artifacts import CleanupArtifactsRule
from docklint.rules.consolidate_run import ConsolidateRunRule
from docklint.rules.dockerignore_present import DockerignorePresentRule
from docklint.rules.documented import DocumentedRule
from docklint.rules.env_no_secrets import EnvNoSecretsRule
from docklint.rules.explicit_tag import ExplicitTagRule
from docklint.rules.has_test_step import HasTestStepRule
from docklint.rules.layer_caching_order import LayerCachingOrderRule
from docklint.rules.minimal_base_image import MinimalBaseImageRule
from docklint.rules.non_root_user import NonRootUserRule
from docklint.rules.specific_copy import SpecificCopyRule


def test_registry_lists_all_rules_in_order() -> None:
    assert [info.rule_id for info in list_rule_info()] == [
        "minimal-base-image",
        "explicit-tag",
        "layer-caching-order",
        "consolidate-run",
        "cleanup-artifacts",
        "specific-copy",
        "non-root-user",
        "env-no-secrets",
        "documented",
        "dockerignore-present",
        "has-test-step",
    ]
    rules = default_rules()
    assert len({rule.rule_id for rule in rules}) == len(rules) == 11


def test_build_rules_applies_enable_disable_and_severity_overrides() -> None:
    rules = build_rules(
        enabled_rule_ids=["explicit-tag", "documented", "specific-copy"],
        disabled_rule_ids=["specific-copy"],
        severity_overrides={"documented": "warning"},
        options=RuleOptions(documentation_threshold=1.0),
    )
    assert [rule.rule_id for rule in rules] == ["explicit-tag", "documented"]

    findings = _inspect(rules[1], "FROM alpine:3.20\nUSER app\n")
    assert [finding.severity for finding in findings] == [Severity.WARNING]


def test_build_rules_rejects_unknown_ids_and_severities() -> None:
    with pytest.raises(ValueError, match="Unknown rule ids: nope"):
        build_rules(disabled_rule_ids=["nope"])
    with pytest.raises(ValueError, match="Severity override"):
        build_rules(severity_overrides={"documented": "fatal"})


def test_minimal_base_image_flags_full_distro_in_final_stage() -> None:
    rule = MinimalBaseImageRule()
    findings = _inspect(rule, "FROM ubuntu:22.04\nUSER app\n")
    assert len(findings) == 1
    assert findings[0].severity == Severity.WARNING
    assert findings[0].line == 1

    assert _inspect(rule, "FROM python:3.12-slim\n") == []
    assert _inspect(rule, "FROM mycorp/base:1.0\n") == []
    assert len(_inspect(rule, "FROM docker.io/library/debian:bookworm\n")) == 1


def test_minimal_base_image_only_checks_final_stage_lineage() -> None:
    rule = MinimalBaseImageRule()
    multi_stage = "\n".join(
        [
            "FROM golang:1.22 AS build",
            "RUN go build -o /out/app ./...",
            "FROM gcr.io/distroless/static:nonroot",
            "COPY --from=build /out/app /app",
        ]
    )
    assert _inspect(rule, multi_stage) == []

    derived = "FROM node:20 AS base\nRUN npm ci\nFROM base\n"
    findings = _inspect(rule, derived)
    assert len(findings) == 1
    assert findings[0].line == 1
    assert "node:20" in findings[0].message


def test_minimal_base_image_supports_exact_denylist_entries() -> None:
    rule = MinimalBaseImageRule(["alpine:3.19"])
    assert len(_inspect(rule, "FROM alpine:3.19\n")) == 1
    assert _inspect(rule, "FROM alpine:3.20\n") == []
    assert _inspect(rule, "FROM ubuntu:22.04\n") == []


def test_explicit_tag_flags_missing_and_latest_tags() -> None:
    rule = ExplicitTagRule()
    findings = _inspect(rule, "FROM ubuntu\n")
    assert [(item.severity, item.line) for item in findings] == [(Severity.ERROR, 1)]
    assert "no tag" in findings[0].message

    findings = _inspect(rule, "FROM node:latest AS build\nRUN npm ci\nFROM build\n")
    assert [(item.severity, item.line) for item in findings] == [(Severity.ERROR, 1)]
    assert "latest" in findings[0].message


def test_explicit_tag_exempts_scratch_digests_and_unresolved_args() -> None:
    rule = ExplicitTagRule()
    assert _inspect(rule, "FROM scratch\n") == []
    assert _inspect(rule, "FROM alpine@sha256:0123abcd\n") == []
    assert _inspect(rule, "ARG BASE\nFROM ${BASE}\n") == []

    findings = _inspect(rule, "ARG TAG=latest\nFROM redis:${TAG}\n")
    assert [item.line for item in findings] == [2]


def test_explicit_tag_reports_each_offending_from() -> None:
    text = "FROM python:latest AS a\nFROM node:latest AS b\nFROM alpine:3.20\n"
    findings = _inspect(ExplicitTagRule(), text)
    assert [item.line for item in findings] == [1, 2]


def test_layer_caching_order_flags_whole_copy_before_install() -> None:
    rule = LayerCachingOrderRule()
    bad = "\n".join(
        [
            "FROM python:3.12-slim",
            "WORKDIR /app",
            "COPY . .",
            "RUN pip install --no-cache-dir -r requirements.txt",
        ]
    )
    findings = _inspect(rule, bad)
    assert len(findings) == 1
    assert findings[0].line == 3
    assert "line 4" in findings[0].message

    good = "\n".join(
        [
            "FROM python:3.12-slim",
            "COPY requirements.txt .",
            "RUN pip install -r requirements.txt",
            "COPY . .",
        ]
    )
    assert _inspect(rule, good) == []


def test_layer_caching_order_is_scoped_to_a_stage() -> None:
    text = "\n".join(
        [
            "FROM node:20-alpine AS assets",
            "COPY . .",
            "FROM node:20-alpine",
            "COPY package.json package-lock.json ./",
            "RUN npm ci",
        ]
    )
    assert _inspect(LayerCachingOrderRule(), text) == []


def test_consolidate_run_flags_consecutive_package_manager_runs() -> None:
    rule = ConsolidateRunRule()
    text = "\n".join(
        [
            "FROM debian:bookworm-slim",
            "RUN apt-get update",
            "RUN apt-get install -y curl",
            "RUN apt-get install -y git",
            "USER app",
        ]
    )
    findings = _inspect(rule, text)
    assert len(findings) == 1
    assert findings[0].line == 2
    assert "3 consecutive" in findings[0].message
    assert "2, 3, 4" in findings[0].message


def test_consolidate_run_ignores_single_or_separated_runs() -> None:
    rule = ConsolidateRunRule()
    separated = (
        "FROM debian:bookworm-slim\n"
        "RUN apt-get update\n"
        "ENV X=1\n"
        "RUN apt-get install -y curl\n"
    )
    assert _inspect(rule, separated) == []

    combined = (
        "FROM debian:bookworm-slim\n"
        "RUN apt-get update && apt-get install -y curl\n"
        "RUN echo done\n"
    )
    assert _inspect(rule, combined) == []


def test_cleanup_artifacts_flags_removal_in_later_run() -> None:
    text = "\n".join(
        [
            "FROM debian:bookworm-slim",
            "RUN curl -fsSL -o /tmp/app.tgz https://example.com/app.tgz",
            "RUN tar -xzf /tmp/app.tgz -C /opt",
            "RUN rm /tmp/app.tgz",
        ]
    )
    findings = _inspect(CleanupArtifactsRule(), text)
    assert len(findings) == 1
    assert findings[0].line == 4
    assert "/tmp/app.tgz" in findings[0].message
    assert "line 2" in findings[0].message


def test_cleanup_artifacts_accepts_same_run_cleanup() -> None:
    text = (
        "FROM debian:bookworm-slim\n"
        "RUN curl -fsSLO https://example.com/app.tgz && tar -xzf app.tgz && rm app.tgz\n"
    )
    assert _inspect(CleanupArtifactsRule(), text) == []


def test_cleanup_artifacts_tracks_apt_lists_and_wget_downloads() -> None:
    text = "\n".join(
        [
            "FROM debian:bookworm-slim",
            "RUN apt-get update && apt-get install -y wget",
            "RUN wget -q https://example.com/dist/tool.zip && unzip tool.zip -d /opt",
            "RUN rm -rf /var/lib/apt/lists/*",
            "RUN rm -f tool.zip",
        ]
    )
    findings = _inspect(CleanupArtifactsRule(), text)
    assert [item.line for item in findings] == [4, 5]


def test_cleanup_artifacts_resets_between_stages() -> None:
    text = "\n".join(
        [
            "FROM debian:bookworm-slim AS fetch",
            "RUN curl -o /tmp/app.tgz https://example.com/app.tgz",
            "FROM debian:bookworm-slim",
            "RUN rm -f /tmp/app.tgz",
        ]
    )
    assert _inspect(CleanupArtifactsRule(), text) == []


def test_specific_copy_flags_whole_context_copies() -> None:
    rule = SpecificCopyRule()
    text = "\n".join(
        [
            "FROM python:3.12-slim",
            "COPY . /app",
            "COPY ./ /srv",
            "COPY --chown=app:app . /home/app",
            "COPY --from=build . /dist",
            "COPY src/ /app/src/",
        ]
    )
    findings = _inspect(rule, text)
    assert [item.line for item in findings] == [2, 3, 4]
    assert all(item.severity == Severity.WARNING for item in findings)


def test_non_root_user_requires_user_in_final_stage() -> None:
    rule = NonRootUserRule()
    findings = _inspect(rule, 'FROM python:3.12-slim\nCMD ["app"]\n')
    assert len(findings) == 1
    assert findings[0].severity == Severity.ERROR
    assert findings[0].line == 1

    builder_only = "FROM node:20 AS build\nUSER node\nFROM nginx:1.27-alpine\n"
    assert [item.line for item in _inspect(rule, builder_only)] == [3]


def test_non_root_user_last_user_wins() -> None:
    rule = NonRootUserRule()
    text = "FROM python:3.12-slim\nUSER appuser\nRUN id\nUSER root\n"
    findings = _inspect(rule, text)
    assert [item.line for item in findings] == [4]

    assert _inspect(rule, "FROM python:3.12-slim\nUSER root\nUSER appuser\n") == []
    assert len(_inspect(rule, "FROM python:3.12-slim\nUSER 0:0\n")) == 1
    assert _inspect(rule, "FROM python:3.12-slim\nUSER app:0\n") == []


def test_non_root_user_follows_stage_inheritance() -> None:
    text = "FROM python:3.12-slim AS base\nUSER app\nFROM base\nCMD [\"app\"]\n"
    assert _inspect(NonRootUserRule(), text) == []


def test_env_no_secrets_flags_literal_secret_values() -> None:
    rule = EnvNoSecretsRule()
    text = "\n".join(
        [
            "FROM python:3.12-slim",
            "ENV DB_PASSWORD=hunter2",
            "ENV API_TOKEN=${API_TOKEN}",
            'ENV SECRET_KEY=""',
            "ENV APP_SECRET changeme",
            "ENV LOG_LEVEL=debug",
            "ARG GITHUB_TOKEN",
            "ARG NPM_TOKEN=abc123",
            "ENV SIGNING_KEY=<set-at-runtime>",
        ]
    )
    findings = _inspect(rule, text)
    assert [item.line for item in findings] == [2, 8]
    assert all(item.severity == Severity.ERROR for item in findings)
    assert "hunter2" not in findings[0].message
    assert "DB_PASSWORD" in findings[0].message


def test_documented_threshold() -> None:
    half = "# base\nFROM alpine:3.20\nRUN echo a\n# user\nUSER app\nCMD [\"sh\"]\n"
    assert _inspect(DocumentedRule(), half) == []

    findings = _inspect(DocumentedRule(0.75), half)
    assert len(findings) == 1
    assert findings[0].severity == Severity.INFO
    assert findings[0].line == 0
    assert "2 of 4" in findings[0].message

    assert _inspect(DocumentedRule(), "") == []
    with pytest.raises(ValueError):
        DocumentedRule(1.5)


def test_dockerignore_present_uses_filesystem_collaborator() -> None:
    dockerfile = Path("/proj/Dockerfile")
    missing = DockerignorePresentRule(fs=_FakeFileSystem(), dockerfile=dockerfile)
    findings = missing.inspect(())
    assert len(findings) == 1
    assert findings[0].severity == Severity.WARNING
    assert "/proj/.dockerignore" in findings[0].message

    present = DockerignorePresentRule(
        fs=_FakeFileSystem({"/proj/.dockerignore": b"*.pyc\n"}),
        dockerfile=dockerfile,
    )
    assert present.inspect(()) == []

    per_file = DockerignorePresentRule(
        fs=_FakeFileSystem({"/proj/Dockerfile.dockerignore": b".git\n"}),
        dockerfile=dockerfile,
    )
    assert per_file.inspect(()) == []


def test_dockerignore_present_honors_context_and_explicit_ignore_file() -> None:
    fs = _FakeFileSystem({"/ctx/.dockerignore": b""})
    in_context = DockerignorePresentRule(
        fs=fs,
        dockerfile=Path("/proj/docker/Dockerfile"),
        context_dir=Path("/ctx"),
    )
    assert in_context.inspect(()) == []

    explicit = DockerignorePresentRule(fs=fs, ignore_file=Path("/elsewhere/.dockerignore"))
    assert len(explicit.inspect(())) == 1

    from_stdin = DockerignorePresentRule(fs=fs)
    assert from_stdin.inspect(()) == []


def test_has_test_step_requires_test_runner_before_final_entrypoint() -> None:
    rule = HasTestStepRule()
    install_only = 'FROM python:3.12-slim\nRUN pip install pytest\nCMD ["app"]\n'
    findings = _inspect(rule, install_only)
    assert [(item.severity, item.line) for item in findings] == [(Severity.INFO, 3)]

    tested = 'FROM python:3.12-slim\nRUN python -m pytest -q\nCMD ["app"]\n'
    assert _inspect(rule, tested) == []

    too_late = 'FROM node:20-alpine\nCMD ["node", "server.js"]\nRUN npm test\n'
    assert [item.line for item in _inspect(rule, too_late)] == [2]

    no_entry = "FROM golang:1.22-alpine\nRUN go test ./...\n"
    assert _inspect(rule, no_entry) == []


def test_has_test_step_ignores_builds_that_skip_tests() -> None:
    rule = HasTestStepRule()
    for command in (
        "mvn package -Dmaven.test.skip=true",
        "mvn -B verify -DskipTests",
        "./gradlew build -x test",
    ):
        text = f'FROM eclipse-temurin:21-jdk\nRUN {command}\nCMD ["java", "-jar", "app.jar"]\n'
        assert [item.line for item in _inspect(rule, text)] == [3], command

    verified = 'FROM eclipse-temurin:21-jdk\nRUN mvn -B verify\nCMD ["java", "-jar", "app.jar"]\n'
    assert _inspect(rule, verified) == []


def _inspect(rule: Rule, text: str) -> list[Finding]:
    return rule.inspect(parse_dockerfile(text).instructions)


class _FakeFileSystem:
    """In-memory filesystem collaborator."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self._files = files or {}

    def read_file(self, path: Path) -> bytes:
        try:
            return self._files[str(path)]
        except KeyError:
            raise FileNotFoundError(str(path)) from None

    def exists(self, path: Path) -> bool:
        return str(path) in self._files
