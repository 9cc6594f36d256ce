"""Data transformation modules.

Handles:
- JSON flattening to grid records and back
- Declarative rule files (filter, mapping, calculated field)
- Scripted transforms
"""

from .flatten import flatten_json, flatten_records, to_flat_records, unflatten_records
from .rules import (
    FilterRule,
    MapRule,
    CalculatedFieldRule,
    parse_rules,
    load_rules,
    apply_rules,
    apply_rules_file,
)
from .script import compile_script, run_script

__all__ = [
    # Flattening
    "flatten_json",
    "flatten_records",
    "to_flat_records",
    "unflatten_records",
    # Rules
    "FilterRule",
    "MapRule",
    "CalculatedFieldRule",
    "parse_rules",
    "load_rules",
    "apply_rules",
    "apply_rules_file",
    # Scripts
    "compile_script",
    "run_script",
]
