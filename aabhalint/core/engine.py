from __future__ import annotations

import logging
import re
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

from .condition import evaluate_condition, validate_condition
from .fixes import resolve_fix
from .models import AnnotationRecord, Finding, FixRequest
from .values import ABSENT, UNKNOWN, lookup, to_plain

logger = logging.getLogger(__name__)

_REQUIRED_RULE_KEYS = {"id", "kind", "title", "severity", "reports"}
_REQUIRED_REPORT_KEYS = {"message_id", "message", "condition"}
_VALID_SEVERITIES = {"suggestion", "problem"}
_VALID_ON_UNKNOWN = {"skip", "report"}

DOCS_URL = "https://docs.aabha.dev/rules/{rule_id}"


@dataclass
class EvalResult:
    """Result of a policy evaluation: findings + any warnings produced."""
    findings: list[Finding]
    warnings: list[str] = field(default_factory=list)


class PolicyLoadError(Exception):
    """Raised when a policy file is malformed."""


class _FormatData(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


@dataclass(frozen=True)
class Report:
    message_id: str
    message: str
    condition: dict
    fix_requests: tuple[FixRequest, ...] = ()


@dataclass(frozen=True)
class PolicyCheck:
    """One declared check: a kind filter, an applicability condition and its reports."""
    rule_id: str
    kind: str
    title: str
    severity: str
    reports: tuple[Report, ...]
    when: dict | None = None
    data: dict = field(default_factory=dict)
    on_unknown: str = "skip"

    @property
    def docs_url(self) -> str:
        return DOCS_URL.format(rule_id=self.rule_id)

    def evaluate(self, record: AnnotationRecord) -> list[Finding]:
        if record.kind != self.kind:
            return []

        applies = True if self.when is None else evaluate_condition(self.when, record.metadata)
        if applies is False:
            return []

        findings: list[Finding] = []
        data: dict | None = None
        for report in self.reports:
            outcome = evaluate_condition(report.condition, record.metadata)
            if outcome is False:
                continue
            if applies is None or outcome is None:
                if self.on_unknown != "report":
                    logger.debug("%s: %s undetermined on %s, skipped", self.rule_id, report.message_id, record.class_name)
                    continue
                confidence = "low"
            else:
                confidence = "high"

            if data is None:
                data = self._interpolation_data(record)
            findings.append(Finding(
                rule_id=self.rule_id,
                message_id=report.message_id,
                message=report.message.format_map(_FormatData(data)),
                severity=self.severity,
                confidence=confidence,
                location=record.location,
                data=dict(data),
                fix_requests=report.fix_requests,
            ))
        return findings

    def _interpolation_data(self, record: AnnotationRecord) -> dict[str, Any]:
        data: dict[str, Any] = {"className": record.class_name}
        for name, spec in self.data.items():
            fields = spec["field"] if isinstance(spec["field"], list) else [spec["field"]]
            value: Any = spec.get("default", "")
            for dotted in fields:
                candidate = lookup(record.metadata, dotted)
                if candidate not in (ABSENT, UNKNOWN, None, ""):
                    value = to_plain(candidate)
                    break
            data[name] = value
        return data


class PolicyEngine:
    """Loads YAML policy rules and evaluates them against annotation records."""

    def __init__(self, policy_path: Path) -> None:
        try:
            with open(policy_path, encoding="utf-8") as f:
                policy = yaml.safe_load(f)
        except OSError as e:
            raise PolicyLoadError(f"{policy_path}: cannot read policy ({e})") from e
        except yaml.YAMLError as e:
            raise PolicyLoadError(f"{policy_path}: invalid YAML ({e})") from e

        if not isinstance(policy, dict):
            raise PolicyLoadError(f"{policy_path}: expected a YAML mapping at top level")

        annotations = policy.get("annotations", {})
        if not isinstance(annotations, dict) or not all(
            isinstance(k, str) and isinstance(v, str) and v for k, v in annotations.items()
        ):
            raise PolicyLoadError(f"{policy_path}: 'annotations' must map decorator names to kind strings")

        rules = policy.get("rules", [])
        if not isinstance(rules, list):
            raise PolicyLoadError(f"{policy_path}: 'rules' must be a list")

        errors = _validate_rules(rules, set(annotations.values()))
        if errors:
            joined = "\n  ".join(errors)
            raise PolicyLoadError(f"{policy_path}: policy validation failed:\n  {joined}")

        self.policy_path = Path(policy_path)
        self.annotations: dict[str, str] = dict(annotations)
        self.checks: list[PolicyCheck] = [
            _build_check(rule) for rule in rules if rule.get("enabled", True)
        ]

    def select(self, rule_ids: Iterable[str] | None) -> None:
        """Restrict evaluation to the given rule ids, keeping their given order."""
        if not rule_ids:
            return
        registry = {check.rule_id: check for check in self.checks}
        selected: list[PolicyCheck] = []
        for rule_id in rule_ids:
            if rule_id not in registry:
                available = ", ".join(sorted(registry))
                raise ValueError(f"Unknown rule '{rule_id}'. Available: {available}")
            selected.append(registry[rule_id])
        self.checks = selected

    def evaluate(self, records: list[AnnotationRecord]) -> EvalResult:
        warnings: list[str] = []
        findings: list[Finding] = []

        for record in records:
            if record.metadata is UNKNOWN:
                loc = record.location
                warnings.append(
                    f"{loc.path}:{loc.line}: @{record.name} on class {record.class_name} "
                    f"has non-literal metadata; checks cannot inspect it"
                )

            for check in self.checks:
                for finding in check.evaluate(record):
                    if finding.fix_requests:
                        finding.fix = resolve_fix(record, finding.fix_requests)
                    findings.append(finding)

        return EvalResult(findings=findings, warnings=warnings)


def _build_check(rule: dict) -> PolicyCheck:
    reports = tuple(
        Report(
            message_id=r["message_id"],
            message=r["message"],
            condition=r["condition"],
            fix_requests=tuple(
                FixRequest(anchor=fx["anchor"], text=fx["insert"], skip_if=fx.get("skip_if"))
                for fx in r.get("fix", [])
            ),
        )
        for r in rule["reports"]
    )
    return PolicyCheck(
        rule_id=rule["id"],
        kind=rule["kind"],
        title=rule["title"],
        severity=rule["severity"],
        reports=reports,
        when=rule.get("when"),
        data=rule.get("data", {}),
        on_unknown=rule.get("on_unknown", "skip"),
    )


def _validate_rules(rules: list, kinds: set[str]) -> list[str]:
    """Validate that every rule has required keys and well-formed conditions."""
    errors: list[str] = []
    seen_ids: set[str] = set()
    for i, rule in enumerate(rules):
        if not isinstance(rule, dict):
            errors.append(f"rules[{i}]: expected dict, got {type(rule).__name__}")
            continue
        prefix = f"rules[{i}] (id={rule.get('id', '?')})"
        missing = _REQUIRED_RULE_KEYS - rule.keys()
        if missing:
            errors.append(f"{prefix}: missing keys: {sorted(missing)}")
        if "id" in rule:
            if rule["id"] in seen_ids:
                errors.append(f"{prefix}: duplicate rule id")
            seen_ids.add(rule["id"])
        if "kind" in rule and rule["kind"] not in kinds:
            errors.append(f"{prefix}: kind '{rule['kind']}' is not declared under 'annotations'")
        if "severity" in rule and rule["severity"] not in _VALID_SEVERITIES:
            errors.append(f"{prefix}: unknown severity '{rule['severity']}' (valid: {sorted(_VALID_SEVERITIES)})")
        if rule.get("on_unknown", "skip") not in _VALID_ON_UNKNOWN:
            errors.append(f"{prefix}: unknown on_unknown '{rule['on_unknown']}' (valid: {sorted(_VALID_ON_UNKNOWN)})")
        if "when" in rule:
            for err in validate_condition(rule["when"]):
                errors.append(f"{prefix}: when: {err}")
        errors.extend(f"{prefix}: {err}" for err in _validate_data(rule.get("data", {})))
        if "reports" in rule:
            errors.extend(f"{prefix}: {err}" for err in _validate_reports(rule["reports"]))
    return errors


def _validate_data(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return [f"data: expected dict, got {type(data).__name__}"]
    errors: list[str] = []
    for name, spec in data.items():
        if not isinstance(spec, dict) or "field" not in spec:
            errors.append(f"data.{name}: expected a mapping with a 'field' key")
        elif not isinstance(spec["field"], (str, list)):
            errors.append(f"data.{name}: 'field' must be a dotted path or a list of them")
    return errors


def _validate_reports(reports: Any) -> list[str]:
    if not isinstance(reports, list) or not reports:
        return ["reports: expected a non-empty list"]
    errors: list[str] = []
    for j, report in enumerate(reports):
        path = f"reports[{j}]"
        if not isinstance(report, dict):
            errors.append(f"{path}: expected dict, got {type(report).__name__}")
            continue
        missing = _REQUIRED_REPORT_KEYS - report.keys()
        if missing:
            errors.append(f"{path}: missing keys: {sorted(missing)}")
        if "message" in report:
            errors.extend(f"{path}: {err}" for err in _validate_template(str(report["message"])))
        if "condition" in report:
            errors.extend(f"{path}: {err}" for err in validate_condition(report["condition"]))
        fixes = report.get("fix", [])
        if not isinstance(fixes, list):
            errors.append(f"{path}.fix: expected list, got {type(fixes).__name__}")
            continue
        for k, fx in enumerate(fixes):
            errors.extend(f"{path}.fix[{k}]: {err}" for err in _validate_fix(fx))
    return errors


def _validate_template(message: str) -> list[str]:
    """Placeholders must be bare names: ``{name}``, optionally with ``!r``/``!s``/``!a``."""
    try:
        parsed = list(string.Formatter().parse(message))
    except ValueError as e:
        return [f"malformed message template: {e}"]
    errors: list[str] = []
    for _, field_name, format_spec, _ in parsed:
        if field_name is None:
            continue
        if not field_name.isidentifier():
            errors.append(f"message placeholder '{{{field_name}}}' must be a plain name")
        elif format_spec:
            errors.append(f"message placeholder '{{{field_name}}}' must not carry a format spec")
    return errors


def _validate_fix(fx: Any) -> list[str]:
    if not isinstance(fx, dict):
        return [f"expected dict, got {type(fx).__name__}"]
    errors: list[str] = []
    for key in ("anchor", "insert"):
        if not isinstance(fx.get(key), str):
            errors.append(f"missing or non-string '{key}'")
    for key in ("anchor", "skip_if"):
        if isinstance(fx.get(key), str):
            try:
                re.compile(fx[key])
            except re.error as e:
                errors.append(f"invalid regular expression in '{key}': {e}")
    return errors
