# config/access_policy.py
"""
Access policy for generated queries.

The policy is built once at startup, either from the bundled table lists in
``data.schemas`` or from a YAML file, and then shared read-only by every
request.
"""
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

import yaml

from data.schemas import (
    FIELD_RESTRICTIONS,
    FORBIDDEN_TABLES,
    RESTRICTED_TABLES,
    SAFE_TABLES,
)


@dataclass(frozen=True)
class PolicyLimits:
    """Static analysis ceilings for a single query."""
    max_depth: int = 6
    max_complexity: float = 100
    max_field_count: int = 50

    def __post_init__(self):
        """Validate limits are positive."""
        if self.max_depth <= 0:
            raise ValueError("max_depth must be > 0")
        if self.max_complexity <= 0:
            raise ValueError("max_complexity must be > 0")
        if self.max_field_count <= 0:
            raise ValueError("max_field_count must be > 0")


@dataclass(frozen=True)
class FieldRestriction:
    """Per-table field rules: forbidden fields are errors, unlisted fields are warnings."""
    forbidden: FrozenSet[str] = frozenset()
    allowed: FrozenSet[str] = frozenset()

    def __post_init__(self):
        overlap = self.forbidden & self.allowed
        if overlap:
            raise ValueError(f"Fields both allowed and forbidden: {sorted(overlap)}")


@dataclass(frozen=True)
class AccessPolicy:
    """Complete access policy."""
    allowed_tables: FrozenSet[str]
    restricted_tables: FrozenSet[str]
    forbidden_tables: FrozenSet[str]
    field_restrictions: Mapping[str, FieldRestriction] = field(default_factory=dict)
    limits: PolicyLimits = field(default_factory=PolicyLimits)

    def __post_init__(self):
        """Validate table lists are disjoint and freeze the restriction map."""
        if self.forbidden_tables & (self.allowed_tables | self.restricted_tables):
            overlap = self.forbidden_tables & (self.allowed_tables | self.restricted_tables)
            raise ValueError(f"Tables cannot be both forbidden and accessible: {sorted(overlap)}")
        unknown = set(self.field_restrictions) - (self.allowed_tables | self.restricted_tables)
        if unknown:
            raise ValueError(f"Field restrictions for unknown tables: {sorted(unknown)}")
        object.__setattr__(self, "field_restrictions", MappingProxyType(dict(self.field_restrictions)))

    @property
    def known_tables(self) -> FrozenSet[str]:
        return self.allowed_tables | self.restricted_tables | self.forbidden_tables

    def is_forbidden(self, table: str) -> bool:
        return table in self.forbidden_tables

    def restriction_for(self, table: str) -> Optional[FieldRestriction]:
        return self.field_restrictions.get(table)


def _restrictions(raw: Mapping[str, Mapping[str, Iterable[str]]]) -> Dict[str, FieldRestriction]:
    return {
        table: FieldRestriction(
            forbidden=frozenset(rules.get("forbidden", ())),
            allowed=frozenset(rules.get("allowed", ())),
        )
        for table, rules in raw.items()
    }


def default_access_policy() -> AccessPolicy:
    """Build the policy from the bundled payroll table lists."""
    return AccessPolicy(
        allowed_tables=frozenset(SAFE_TABLES),
        restricted_tables=frozenset(RESTRICTED_TABLES),
        forbidden_tables=frozenset(FORBIDDEN_TABLES),
        field_restrictions=_restrictions(FIELD_RESTRICTIONS),
        limits=PolicyLimits(),
    )


def load_access_policy(path: str) -> AccessPolicy:
    """Load and validate an access policy from a YAML file.

    Strict validation: unknown keys anywhere in the file are rejected so a
    typo cannot silently widen access.

    Args:
        path: Path to YAML policy file

    Returns:
        Validated AccessPolicy

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If the policy is invalid
    """
    policy_path = Path(path)
    if not policy_path.exists():
        raise FileNotFoundError(f"Access policy file not found: {path}")

    with open(policy_path, 'r', encoding='utf-8') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in policy file {path}: {e}")

    if not raw:
        raise ValueError("Access policy file is empty")
    if not isinstance(raw, dict):
        raise ValueError("Access policy must be a mapping")

    allowed_top_keys = {'tables', 'field_restrictions', 'limits'}
    unknown_keys = set(raw.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown policy keys: {unknown_keys}")

    if 'tables' not in raw:
        raise ValueError("Missing required 'tables' section")
    tables = raw['tables']
    if not isinstance(tables, dict):
        raise ValueError("'tables' must be a dictionary")

    allowed_table_keys = {'allowed', 'restricted', 'forbidden'}
    unknown_table_keys = set(tables.keys()) - allowed_table_keys
    if unknown_table_keys:
        raise ValueError(f"Unknown tables keys: {unknown_table_keys}")

    table_sets = {}
    for key in allowed_table_keys:
        values = tables.get(key, [])
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(f"'tables.{key}' must be a list of table names")
        table_sets[key] = frozenset(values)

    restrictions_data = raw.get('field_restrictions', {}) or {}
    if not isinstance(restrictions_data, dict):
        raise ValueError("'field_restrictions' must be a dictionary")
    for table, rules in restrictions_data.items():
        _validate_restriction(rules, f"field_restrictions.{table}")

    limits = _parse_limits(raw.get('limits', {}) or {})

    return AccessPolicy(
        allowed_tables=table_sets['allowed'],
        restricted_tables=table_sets['restricted'],
        forbidden_tables=table_sets['forbidden'],
        field_restrictions=_restrictions(restrictions_data),
        limits=limits,
    )


def _validate_restriction(rules, path: str) -> None:
    if not isinstance(rules, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    unknown_keys = set(rules.keys()) - {'forbidden', 'allowed'}
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
    for key in ('forbidden', 'allowed'):
        values = rules.get(key, [])
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(f"'{path}.{key}' must be a list of field names")


def _parse_limits(data) -> PolicyLimits:
    if not isinstance(data, dict):
        raise ValueError("'limits' must be a dictionary")
    allowed_keys = {'max_depth', 'max_complexity', 'max_field_count'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in limits: {unknown_keys}")

    defaults = PolicyLimits()
    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"'limits.{key}' must be a number")

    return PolicyLimits(
        max_depth=int(data.get('max_depth', defaults.max_depth)),
        max_complexity=float(data.get('max_complexity', defaults.max_complexity)),
        max_field_count=int(data.get('max_field_count', defaults.max_field_count)),
    )
