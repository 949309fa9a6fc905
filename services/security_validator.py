# services/security_validator.py
"""
Static security validation of generated GraphQL documents.

Every check runs, even when an earlier one has already failed, so a single
pass produces the complete list of problems for the caller and the audit
trail. The validator itself never raises.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from graphql import print_ast
from graphql.language.ast import (
    ArgumentNode,
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    ListValueNode,
    ObjectValueNode,
    OperationDefinitionNode,
    OperationType,
    SelectionSetNode,
)

from config.access_policy import AccessPolicy
from data.schemas import RELATIONSHIP_TARGETS
from models.pipeline import QueryMetrics, RoleContext, SecurityVerdict
from services.schema_context import to_snake_case

logger = logging.getLogger(__name__)

WARNING_RATIO = 0.8
INTROSPECTION_FIELDS = {"__schema", "__type"}
SENSITIVE_WORDS = {"password", "passwords", "passwd", "secret", "secrets", "token", "tokens", "apikey"}
SENSITIVE_PAIRS = {("api", "key"), ("private", "key")}
DESTRUCTIVE_WORDS = {"delete", "drop", "truncate", "alter", "create", "insert", "update"}
_TABLE_SUFFIXES = ("_aggregate", "_by_pk")


def name_words(name: str) -> List[str]:
    """Split a GraphQL name into lower-case words on underscores and camel humps."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name)
    return [word for word in spaced.lower().split("_") if word]


@dataclass
class _Walk:
    """Accumulator for a single traversal."""
    depth: int = 0
    complexity: float = 0
    field_count: int = 0
    tables: Set[str] = field(default_factory=set)
    unknown_roots: Set[str] = field(default_factory=set)
    fields_by_table: Dict[str, Set[str]] = field(default_factory=dict)
    names: Set[str] = field(default_factory=set)


class SecurityValidator:
    """Validates parsed queries against an immutable AccessPolicy."""

    def __init__(self, policy: AccessPolicy, relationship_targets: Optional[Mapping[str, str]] = None):
        self.policy = policy
        self.relationship_targets = dict(
            RELATIONSHIP_TARGETS if relationship_targets is None else relationship_targets
        )

    # --- public API ---

    def validate(self, document: DocumentNode, context: Optional[RoleContext] = None) -> SecurityVerdict:
        errors: List[str] = []
        warnings: List[str] = []
        try:
            self._check_structure(document, errors)
            self._check_operations(document, errors)

            walk = self._safe_walk(document, errors)
            metrics = QueryMetrics(
                depth=walk.depth,
                complexity=walk.complexity,
                field_count=walk.field_count,
                tables_accessed=frozenset(walk.tables),
            )

            self._check_limits(metrics, errors, warnings)
            self._check_tables(walk, errors, warnings)
            self._check_fields(walk, errors, warnings)
            self._check_patterns(walk, errors, warnings)
        except Exception as e:
            logger.error(f"Security validation aborted: {e}")
            errors.append(f"Security validation failed: {e}")
            metrics = QueryMetrics()

        verdict = SecurityVerdict(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            metrics=metrics,
        )
        user = context.user_id if context else "unknown"
        logger.info(
            f"Security verdict for {user}: {'valid' if verdict.is_valid else 'invalid'} "
            f"({len(errors)} errors, {len(warnings)} warnings)"
        )
        return verdict

    def generate_security_report(self, verdict: SecurityVerdict) -> str:
        limits = self.policy.limits
        metrics = verdict.metrics
        lines = [
            "Security Validation Report:",
            f"- Status: {'APPROVED' if verdict.is_valid else 'REJECTED'}",
            f"- Complexity: {metrics.complexity:g}/{limits.max_complexity:g}",
            f"- Depth: {metrics.depth}/{limits.max_depth}",
            f"- Fields: {metrics.field_count}/{limits.max_field_count}",
            f"- Tables: {', '.join(sorted(metrics.tables_accessed)) or 'none'}",
        ]
        if verdict.errors:
            lines.append("")
            lines.append("Errors:")
            lines.extend(f"- {error}" for error in verdict.errors)
        if verdict.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"- {warning}" for warning in verdict.warnings)
        return "\n".join(lines)

    # --- checks ---

    def _check_structure(self, document, errors: List[str]):
        if not isinstance(document, DocumentNode):
            errors.append("Query is not a parsed GraphQL document")
            return
        if not document.definitions:
            errors.append("Query document contains no definitions")
            return
        try:
            print_ast(document)
        except Exception as e:
            errors.append(f"Query document cannot be serialized: {e}")

    def _check_operations(self, document, errors: List[str]):
        definitions = getattr(document, "definitions", None) or ()
        operations = [d for d in definitions if isinstance(d, OperationDefinitionNode)]
        if definitions and not operations:
            errors.append("Query document contains no operation")
        for operation in operations:
            if operation.operation != OperationType.QUERY:
                errors.append(
                    f"Operation type '{operation.operation.value}' is not allowed; only queries are permitted"
                )

    def _check_limits(self, metrics: QueryMetrics, errors: List[str], warnings: List[str]):
        limits = self.policy.limits
        checks = (
            ("depth", metrics.depth, limits.max_depth),
            ("complexity", metrics.complexity, limits.max_complexity),
            ("field count", metrics.field_count, limits.max_field_count),
        )
        for label, value, limit in checks:
            if value > limit:
                errors.append(f"Query {label} {value:g} exceeds maximum allowed {label} of {limit:g}")
            elif value > limit * WARNING_RATIO:
                warnings.append(f"Query {label} is high ({value:g}/{limit:g}) and may impact performance")

    def _check_tables(self, walk: _Walk, errors: List[str], warnings: List[str]):
        for table in sorted(walk.tables):
            if self.policy.is_forbidden(table):
                errors.append(f"Access to table '{table}' is forbidden")
        for root in sorted(walk.unknown_roots):
            warnings.append(f"Field '{root}' is not a recognized table")

    def _check_fields(self, walk: _Walk, errors: List[str], warnings: List[str]):
        for table in sorted(walk.fields_by_table):
            restriction = self.policy.restriction_for(table)
            if restriction is None:
                continue
            for name in sorted(walk.fields_by_table[table]):
                normalized = to_snake_case(name)
                if name in restriction.forbidden or normalized in restriction.forbidden:
                    errors.append(f"Field '{name}' in table '{table}' is forbidden")
                elif normalized not in restriction.allowed and name != "__typename":
                    warnings.append(f"Field '{name}' in table '{table}' may contain sensitive data")

    def _check_patterns(self, walk: _Walk, errors: List[str], warnings: List[str]):
        for name in sorted(walk.names & INTROSPECTION_FIELDS):
            errors.append(f"Introspection field '{name}' is not allowed")

        for name in sorted(walk.names - INTROSPECTION_FIELDS):
            words = name_words(name)
            pairs = set(zip(words, words[1:]))
            if SENSITIVE_WORDS.intersection(words) or SENSITIVE_PAIRS & pairs:
                errors.append(f"Query references sensitive name '{name}'")
            elif DESTRUCTIVE_WORDS.intersection(words):
                warnings.append(f"Query contains potentially dangerous name '{name}'")

    # --- traversal ---

    def _safe_walk(self, document, errors: List[str]) -> _Walk:
        walk = _Walk()
        definitions = getattr(document, "definitions", None) or ()
        try:
            fragments = {
                d.name.value: d for d in definitions if isinstance(d, FragmentDefinitionNode)
            }
            for definition in definitions:
                if isinstance(definition, OperationDefinitionNode):
                    if definition.name:
                        walk.names.add(definition.name.value)
                    self._walk(definition.selection_set, 0, None, fragments, frozenset(), walk)
        except RecursionError:
            errors.append("Query is too deeply nested to analyze")
        except Exception as e:
            errors.append(f"Could not analyze query structure: {e}")
        return walk

    def _resolve_table(self, name: str, nested: bool) -> Optional[str]:
        snake = to_snake_case(name)
        for suffix in _TABLE_SUFFIXES:
            if snake.endswith(suffix):
                snake = snake[: -len(suffix)]
        if snake in self.policy.known_tables:
            return snake
        if nested and name in self.relationship_targets:
            target = to_snake_case(self.relationship_targets[name])
            if target in self.policy.known_tables:
                return target
        return None

    def _walk(
        self,
        selection_set: Optional[SelectionSetNode],
        depth: int,
        parent_table: Optional[str],
        fragments: Dict[str, FragmentDefinitionNode],
        visiting: frozenset,
        walk: _Walk,
    ):
        if selection_set is None:
            return
        for selection in selection_set.selections:
            if isinstance(selection, FieldNode):
                name = selection.name.value
                arguments = selection.arguments or ()
                walk.field_count += 1
                walk.complexity += 1 + 0.5 * len(arguments)
                walk.depth = max(walk.depth, depth + 1)
                walk.names.add(name)
                if selection.alias:
                    walk.names.add(selection.alias.value)
                for argument in arguments:
                    self._collect_argument_names(argument, walk)

                if parent_table is not None:
                    walk.fields_by_table.setdefault(parent_table, set()).add(name)

                table = self._resolve_table(name, nested=depth > 0)
                if table:
                    walk.tables.add(table)
                    walk.fields_by_table.setdefault(table, set())
                elif depth == 0 and not name.startswith("__"):
                    walk.unknown_roots.add(name)

                self._walk(selection.selection_set, depth + 1, table, fragments, visiting, walk)

            elif isinstance(selection, InlineFragmentNode):
                self._walk(selection.selection_set, depth, parent_table, fragments, visiting, walk)

            elif isinstance(selection, FragmentSpreadNode):
                fragment_name = selection.name.value
                fragment = fragments.get(fragment_name)
                if fragment is None or fragment_name in visiting:
                    continue
                self._walk(
                    fragment.selection_set, depth, parent_table, fragments,
                    visiting | {fragment_name}, walk,
                )

    def _collect_argument_names(self, argument: ArgumentNode, walk: _Walk):
        walk.names.add(argument.name.value)
        stack = [argument.value]
        while stack:
            value = stack.pop()
            if isinstance(value, ObjectValueNode):
                for object_field in value.fields:
                    walk.names.add(object_field.name.value)
                    stack.append(object_field.value)
            elif isinstance(value, ListValueNode):
                stack.extend(value.values)
