# models/pipeline.py
"""Internal value objects passed between pipeline stages."""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from graphql.language.ast import DocumentNode


@dataclass(frozen=True)
class PageContext:
    """What the caller is looking at when asking a question."""
    pathname: str = "/"
    title: str = "Payroll Matrix"
    page_type: str = "general"
    relevant_tables: Tuple[str, ...] = ()
    suggested_queries: Tuple[str, ...] = ()
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class GenerationRequest:
    user_id: str
    user_role: str
    natural_language_text: str
    page_context: PageContext = field(default_factory=PageContext)


@dataclass(frozen=True)
class FieldInfo:
    name: str
    type: str
    nullable: bool = True


@dataclass(frozen=True)
class RelationshipInfo:
    name: str
    target_table: str
    cardinality: str  # "object" or "array"


@dataclass(frozen=True)
class TableInfo:
    name: str
    fields: Tuple[FieldInfo, ...] = ()
    relationships: Tuple[RelationshipInfo, ...] = ()


@dataclass(frozen=True)
class SchemaContext:
    tables: Tuple[TableInfo, ...] = ()

    def table(self, name: str) -> Optional[TableInfo]:
        for table in self.tables:
            if table.name == name:
                return table
        return None


@dataclass(frozen=True)
class GeneratedQuery:
    """A query recovered from model output.

    ``raw_text`` is the unrepaired completion; ``document`` is always a
    successfully parsed AST.
    """
    raw_text: str
    document: DocumentNode
    query: str
    explanation: str
    variables: Dict[str, Any] = field(default_factory=dict)
    repairs: Tuple[str, ...] = ()
    used_fallback: bool = False


@dataclass(frozen=True)
class QueryMetrics:
    depth: int = 0
    complexity: float = 0
    field_count: int = 0
    tables_accessed: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class SecurityVerdict:
    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    metrics: QueryMetrics = field(default_factory=QueryMetrics)


@dataclass
class RateWindow:
    """Mutable per-user counter, owned by a single RateLimiter."""
    user_id: str
    window_start: float
    request_count: int = 1


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None


@dataclass(frozen=True)
class RoleContext:
    """Caller identity as supplied by the identity provider."""
    user_id: str
    user_role: str
    authorization: Optional[str] = None


@dataclass(frozen=True)
class HasuraConnection:
    url: str
    admin_secret: Optional[str] = None


@dataclass(frozen=True)
class ExecutionResult:
    data: Optional[Dict[str, Any]] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
