"""Rules package."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from docklint.dockerfile_parser import Instruction
from docklint.fs import FileSystem
from docklint.rules.base import Finding, Rule, Severity
from docklint.rules.cleanup_artifacts import CleanupArtifactsRule
from docklint.rules.consolidate_run import ConsolidateRunRule
from docklint.rules.dockerignore_present import DockerignorePresentRule
from docklint.rules.documented import DEFAULT_THRESHOLD, DocumentedRule
from docklint.rules.env_no_secrets import EnvNoSecretsRule
from docklint.rules.explicit_tag import ExplicitTagRule
from docklint.rules.has_test_step import HasTestStepRule
from docklint.rules.layer_caching_order import LayerCachingOrderRule
from docklint.rules.minimal_base_image import DEFAULT_DENYLIST, MinimalBaseImageRule
from docklint.rules.non_root_user import NonRootUserRule
from docklint.rules.specific_copy import SpecificCopyRule


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and selection."""

    rule_id: str
    name: str
    description: str
    category: str
    severity: Severity


@dataclass(slots=True)
class RuleOptions:
    """Inputs some rules need beyond the instruction sequence."""

    denylist_base_images: list[str] = field(default_factory=lambda: list(DEFAULT_DENYLIST))
    documentation_threshold: float = DEFAULT_THRESHOLD
    fs: FileSystem | None = None
    dockerfile: Path | None = None
    context_dir: Path | None = None
    ignore_file: Path | None = None


@dataclass(frozen=True, slots=True)
class _RuleSpec:
    rule_id: str
    factory: Callable[[RuleOptions], Rule]
    name: str
    description: str
    category: str
    severity: Severity


@dataclass(slots=True)
class _SeverityOverride:
    _rule: Rule
    severity: Severity
    rule_id: str = field(init=False)

    def __post_init__(self) -> None:
        self.rule_id = self._rule.rule_id

    def inspect(self, instructions: tuple[Instruction, ...]) -> list[Finding]:
        return [
            Finding(
                rule_id=finding.rule_id,
                severity=self.severity,
                line=finding.line,
                message=finding.message,
            )
            for finding in self._rule.inspect(instructions)
        ]


def default_rules() -> list[Rule]:
    """Return the full rule set with default options."""
    return build_rules()


def build_rules(
    *,
    enabled_rule_ids: list[str] | None = None,
    disabled_rule_ids: list[str] | None = None,
    severity_overrides: dict[str, str] | None = None,
    options: RuleOptions | None = None,
) -> list[Rule]:
    """Build rule instances in registry order applying enable/disable filters."""
    effective_options = options or RuleOptions()
    specs = _ordered_rule_specs()
    registry = {spec.rule_id: spec for spec in specs}
    overrides = severity_overrides or {}
    requested_ids = (
        set(enabled_rule_ids or []) | set(disabled_rule_ids or []) | set(overrides)
    )

    unknown = [rule_id for rule_id in requested_ids if rule_id not in registry]
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ValueError(f"Unknown rule ids: {joined}")

    disabled_set = set(disabled_rule_ids or [])
    enabled_set = set(enabled_rule_ids) if enabled_rule_ids is not None else set(registry)
    selected_ids = [
        spec.rule_id
        for spec in specs
        if spec.rule_id in enabled_set and spec.rule_id not in disabled_set
    ]

    built: list[Rule] = []
    for rule_id in selected_ids:
        rule = registry[rule_id].factory(effective_options)
        override = overrides.get(rule_id)
        if override is None:
            built.append(rule)
            continue
        severity = _parse_severity(override, rule_id)
        if severity == rule.severity:
            built.append(rule)
        else:
            built.append(_SeverityOverride(rule, severity))
    return built


def list_rule_info() -> list[RuleInfo]:
    """Return metadata for all known rules in registry order."""
    return [
        RuleInfo(
            rule_id=spec.rule_id,
            name=spec.name,
            description=spec.description,
            category=spec.category,
            severity=spec.severity,
        )
        for spec in _ordered_rule_specs()
    ]


def _ordered_rule_specs() -> list[_RuleSpec]:
    return [
        _spec(
            MinimalBaseImageRule,
            lambda options: MinimalBaseImageRule(options.denylist_base_images),
            category="size",
        ),
        _spec(ExplicitTagRule, lambda _: ExplicitTagRule(), category="reproducibility"),
        _spec(LayerCachingOrderRule, lambda _: LayerCachingOrderRule(), category="caching"),
        _spec(ConsolidateRunRule, lambda _: ConsolidateRunRule(), category="size"),
        _spec(CleanupArtifactsRule, lambda _: CleanupArtifactsRule(), category="size"),
        _spec(SpecificCopyRule, lambda _: SpecificCopyRule(), category="caching"),
        _spec(NonRootUserRule, lambda _: NonRootUserRule(), category="security"),
        _spec(EnvNoSecretsRule, lambda _: EnvNoSecretsRule(), category="security"),
        _spec(
            DocumentedRule,
            lambda options: DocumentedRule(options.documentation_threshold),
            category="maintainability",
        ),
        _spec(
            DockerignorePresentRule,
            lambda options: DockerignorePresentRule(
                fs=options.fs,
                dockerfile=options.dockerfile,
                context_dir=options.context_dir,
                ignore_file=options.ignore_file,
            ),
            category="size",
        ),
        _spec(HasTestStepRule, lambda _: HasTestStepRule(), category="maintainability"),
    ]


def _spec(
    rule_cls: type,
    factory: Callable[[RuleOptions], Rule],
    *,
    category: str,
) -> _RuleSpec:
    doc = (rule_cls.__doc__ or "").strip()
    return _RuleSpec(
        rule_id=rule_cls.rule_id,
        factory=factory,
        name=rule_cls.__name__,
        description=doc.splitlines()[0] if doc else "",
        category=category,
        severity=rule_cls.severity,
    )


def _parse_severity(raw: str, rule_id: str) -> Severity:
    try:
        return Severity(raw.upper())
    except ValueError as exc:
        choices = ", ".join(item.value.lower() for item in Severity)
        raise ValueError(
            f"Severity override for '{rule_id}' must be one of: {choices}"
        ) from exc
