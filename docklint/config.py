"""Configuration loading for docklint."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from docklint.rules.documented import DEFAULT_THRESHOLD
from docklint.rules.minimal_base_image import DEFAULT_DENYLIST

CONFIG_FILENAMES = (".docklint.toml", "docklint.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("docklint",)
OUTPUT_FORMATS = {"text", "json"}
SEVERITY_NAMES = {"error", "warning", "info"}


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "text"
    strict: bool = False
    denylist_base_images: list[str] = field(default_factory=lambda: list(DEFAULT_DENYLIST))
    documentation_threshold: float = DEFAULT_THRESHOLD
    deadline_seconds: float | None = None
    workers: int | None = None
    rule_enable: list[str] | None = None
    rule_disable: list[str] = field(default_factory=list)
    severity_overrides: dict[str, str] = field(default_factory=dict)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "strict": self.strict,
            "denylist_base_images": list(self.denylist_base_images),
            "documentation_threshold": self.documentation_threshold,
            "deadline_seconds": self.deadline_seconds,
            "workers": self.workers,
            "rules": {
                "enable": list(self.rule_enable) if self.rule_enable is not None else None,
                "disable": list(self.rule_disable),
                "severity": dict(self.severity_overrides),
            },
            "source": self.source,
        }


def load_app_config(root: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or project-local files with precedence."""
    root = root.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (root / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = root / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = root / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'format = "text"',
            "strict = false",
            "documentation_threshold = 0.5",
            "# deadline_seconds = 5.0",
            "# workers = 4",
            "denylist_base_images = [",
            '  "ubuntu",',
            '  "debian",',
            '  "python",',
            '  "node",',
            "]",
            "",
            "[rules]",
            "enable = [",
            '  "minimal-base-image",',
            '  "explicit-tag",',
            '  "layer-caching-order",',
            '  "consolidate-run",',
            '  "cleanup-artifacts",',
            '  "specific-copy",',
            '  "non-root-user",',
            '  "env-no-secrets",',
            '  "documented",',
            '  "dockerignore-present",',
            '  "has-test-step",',
            "]",
            "disable = []",
            "",
            "[rules.severity]",
            '# documented = "warning"',
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    rules_mapping = _as_table(mapping.get("rules"), "rules")

    threshold = _as_float(
        mapping.get("documentation_threshold", DEFAULT_THRESHOLD),
        "documentation_threshold",
    )
    if not 0.0 <= threshold <= 1.0:
        raise ValueError("documentation_threshold must be between 0 and 1")

    raw_deadline = mapping.get("deadline_seconds")
    deadline: float | None = None
    if raw_deadline is not None:
        deadline = _as_float(raw_deadline, "deadline_seconds")
        if deadline <= 0:
            raise ValueError("deadline_seconds must be > 0")

    raw_workers = mapping.get("workers")
    workers: int | None = None
    if raw_workers is not None:
        workers = _as_int(raw_workers, "workers")
        if workers < 1:
            raise ValueError("workers must be >= 1")

    raw_denylist = mapping.get("denylist_base_images")
    denylist = (
        list(DEFAULT_DENYLIST)
        if raw_denylist is None
        else _as_str_list(raw_denylist, "denylist_base_images")
    )

    return AppConfig(
        format=_as_choice(mapping.get("format", "text"), OUTPUT_FORMATS, "format"),
        strict=_as_bool(mapping.get("strict", False), "strict"),
        denylist_base_images=denylist,
        documentation_threshold=threshold,
        deadline_seconds=deadline,
        workers=workers,
        rule_enable=_as_str_list_or_none(rules_mapping.get("enable"), "rules.enable"),
        rule_disable=_as_str_list(rules_mapping.get("disable"), "rules.disable"),
        severity_overrides=_parse_severity_overrides(rules_mapping.get("severity")),
        source=source,
    )


def _parse_severity_overrides(value: Any) -> dict[str, str]:
    table = _as_table(value, "rules.severity")
    overrides: dict[str, str] = {}
    for rule_id, raw in table.items():
        overrides[rule_id] = _as_choice(raw, SEVERITY_NAMES, f"rules.severity.{rule_id}")
    return overrides


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"{field_name} must be a list of strings")
        items.append(item)
    return items


def _as_str_list_or_none(value: Any, field_name: str) -> list[str] | None:
    if value is None:
        return None
    return _as_str_list(value, field_name)


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a boolean")
    return raw


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    return float(raw)
