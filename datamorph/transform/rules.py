"""Declarative rule engine.

A rule file is a YAML (or JSON) document with a ``transformations`` list.
Rules run strictly in file order and each sees the output of all enabled
rules before it.

Example rule file:
    transformations:
      - name: Active only
        condition: data.active === true
      - name: Rename
        mapping:
          fullName: name
      - name: Greeting
        calculate:
          field: greeting
          expression: "'Hello ' + data.name"
"""

import copy
import logging
import time
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Union

import yaml

from datamorph.errors import ConversionError, RuntimeTransformError, ValidationError
from datamorph.sandbox import compile_expression, to_python, truthy
from datamorph.utils.file_io import read_text

logger = logging.getLogger(__name__)

RULE_KINDS = ("filter", "mapping", "calculate")
LEGACY_KEYS = {"condition": "filter", "mapping": "mapping", "calculate": "calculate"}
INVALID_DOCUMENT = "Invalid rule file: missing or invalid 'transformations' array"

# Label used in "Failed to apply <label> rule" messages
FAILURE_LABELS = {"filter": "filter", "mapping": "mapping", "calculate": "calculation"}


@dataclass(frozen=True)
class FilterRule:
    """Keep records for which ``condition`` is truthy."""

    name: str
    condition: str
    enabled: bool = True
    kind: str = dataclass_field(default="filter", init=False)


@dataclass(frozen=True)
class MapRule:
    """Copy existing fields into new names (``new_field -> existing_field``)."""

    name: str
    mapping: dict
    enabled: bool = True
    kind: str = dataclass_field(default="mapping", init=False)


@dataclass(frozen=True)
class CalculatedFieldRule:
    """Store the value of ``expression`` in ``field``."""

    name: str
    field: str
    expression: str
    enabled: bool = True
    kind: str = dataclass_field(default="calculate", init=False)


Rule = Union[FilterRule, MapRule, CalculatedFieldRule]


# ============================================
# Loading
# ============================================

def _rule_kind(raw: dict, label: str) -> str:
    kind = raw.get("kind")
    if kind is not None:
        if kind not in RULE_KINDS:
            raise ValidationError(
                f"Rule '{label}' has unknown kind '{kind}' "
                f"(expected one of: {', '.join(RULE_KINDS)})"
            )
        return kind

    matches = [LEGACY_KEYS[key] for key in LEGACY_KEYS if key in raw]
    if len(matches) != 1:
        raise ValidationError(
            f"Rule '{label}' must have exactly one of 'condition', 'mapping' "
            f"or 'calculate' (found {len(matches)})"
        )
    return matches[0]


def _require_string(value: Any, what: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Rule '{label}': {what} must be a non-empty string")
    return value


def parse_rule(raw: Any, position: int) -> Rule:
    """Build a typed rule from one entry of the ``transformations`` list.

    Args:
        raw: The rule object as loaded from the document
        position: 1-based position, used to name unnamed rules

    Raises:
        ValidationError: If the entry matches no rule kind or has bad fields
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Rule #{position} must be a mapping, got {type(raw).__name__}")

    name = raw.get("name")
    label = str(name) if name else f"#{position}"
    if name is not None and not isinstance(name, str):
        name = str(name)

    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValidationError(f"Rule '{label}': 'enabled' must be true or false")

    kind = _rule_kind(raw, label)

    if kind == "filter":
        condition = _require_string(raw.get("condition"), "'condition'", label)
        return FilterRule(name=name or label, condition=condition, enabled=enabled)

    if kind == "mapping":
        mapping = raw.get("mapping")
        if not isinstance(mapping, dict) or not mapping:
            raise ValidationError(f"Rule '{label}': 'mapping' must be a non-empty mapping")
        for new_field, old_field in mapping.items():
            if not isinstance(new_field, str) or not isinstance(old_field, str):
                raise ValidationError(
                    f"Rule '{label}': mapping entries must map field names to field names"
                )
        return MapRule(name=name or label, mapping=dict(mapping), enabled=enabled)

    calc = raw.get("calculate")
    if calc is None:
        calc = raw
    if not isinstance(calc, dict):
        raise ValidationError(f"Rule '{label}': 'calculate' must be a mapping")
    return CalculatedFieldRule(
        name=name or label,
        field=_require_string(calc.get("field"), "'field'", label),
        expression=_require_string(calc.get("expression"), "'expression'", label),
        enabled=enabled,
    )


def parse_rules(document: Any) -> list[Rule]:
    """Validate a loaded rule document and return its rules in order.

    Raises:
        ValidationError: If ``transformations`` is missing or not a list, or
            any rule is invalid
    """
    if not isinstance(document, dict) or not isinstance(document.get("transformations"), list):
        raise ValidationError(INVALID_DOCUMENT)

    rules = [
        parse_rule(raw, position)
        for position, raw in enumerate(document["transformations"], start=1)
    ]
    logger.debug(
        f"Parsed {len(rules)} rules",
        extra={"rule_count": len(rules), "enabled": sum(r.enabled for r in rules)},
    )
    return rules


def load_rules(path: str) -> list[Rule]:
    """Read and validate a YAML or JSON rule file.

    Raises:
        ConversionIOError: If the file cannot be read
        ValidationError: If the document is not valid YAML or not a rule file
    """
    text = read_text(path)
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid rule file: {e}", file_path=str(path)) from e

    try:
        return parse_rules(document)
    except ValidationError as e:
        e.file_path = str(path)
        raise


# ============================================
# Application
# ============================================

def _apply_filter(data: Any, rule: FilterRule) -> Any:
    if not isinstance(data, list):
        return data
    expression = compile_expression(rule.condition)
    return [item for item in data if truthy(expression.evaluate(copy.deepcopy(item)))]


def _map_record(record: Any, mapping: dict) -> Any:
    if not isinstance(record, dict):
        return record
    mapped = dict(record)
    for new_field, old_field in mapping.items():
        if old_field in mapped:
            mapped[new_field] = mapped[old_field]
    return mapped


def _apply_mapping(data: Any, rule: MapRule) -> Any:
    if isinstance(data, list):
        return [_map_record(item, rule.mapping) for item in data]
    return _map_record(data, rule.mapping)


def _calculate_record(record: Any, rule: CalculatedFieldRule, expression) -> Any:
    if not isinstance(record, dict):
        return record
    value = to_python(expression.evaluate(copy.deepcopy(record)))
    calculated = dict(record)
    calculated[rule.field] = value
    return calculated


def _apply_calculation(data: Any, rule: CalculatedFieldRule) -> Any:
    if not isinstance(data, (list, dict)):
        return data
    expression = compile_expression(rule.expression)
    if isinstance(data, list):
        return [_calculate_record(item, rule, expression) for item in data]
    return _calculate_record(data, rule, expression)


APPLIERS = {
    "filter": _apply_filter,
    "mapping": _apply_mapping,
    "calculate": _apply_calculation,
}


def apply_rule(data: Any, rule: Rule) -> Any:
    """Apply one enabled rule.

    Raises:
        RuntimeTransformError: ``Failed to apply <kind> rule: <cause>``
    """
    try:
        return APPLIERS[rule.kind](data, rule)
    except ConversionError as e:
        raise RuntimeTransformError(
            f"Failed to apply {FAILURE_LABELS[rule.kind]} rule: {e.message}"
        ) from e


def apply_rules(data: Any, rules: list[Rule]) -> Any:
    """Fold ``rules`` over ``data`` in order, skipping disabled rules.

    Args:
        data: A list of records or a single record
        rules: Parsed rules, e.g. from ``load_rules``

    Returns:
        The transformed data; the input is not modified
    """
    result = data
    for rule in rules:
        if not rule.enabled:
            logger.debug(f"Skipping disabled rule: {rule.name}", extra={"rule": rule.name})
            continue

        start = time.perf_counter()
        before = len(result) if isinstance(result, list) else 1
        result = apply_rule(result, rule)
        after = len(result) if isinstance(result, list) else 1

        logger.debug(
            f"Applied {rule.kind} rule '{rule.name}'",
            extra={
                "rule": rule.name,
                "kind": rule.kind,
                "input_count": before,
                "output_count": after,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
    return result


def apply_rules_file(data: Any, path: str) -> Any:
    """Load a rule file and apply it to ``data``."""
    return apply_rules(data, load_rules(path))
