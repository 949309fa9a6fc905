# services/schema_context.py
"""
Schema context for prompt grounding.

Three tiers, tried in order:
1. live Hasura introspection (cached per endpoint),
2. the bundled data dictionary,
3. a minimal hard-coded stub.

``build_context`` never raises.
"""
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from graphql import get_introspection_query

from config.settings import settings
from data.schemas import (
    BUSINESS_CONTEXT,
    BUSINESS_TABLES,
    DATA_DICTIONARY,
    MAX_SUPPORTING_TABLES,
    MINIMAL_SCHEMA_CONTEXT,
    QUERY_PATTERNS,
)
from models.pipeline import FieldInfo, HasuraConnection, RelationshipInfo, SchemaContext, TableInfo

logger = logging.getLogger(__name__)

_SKIPPED_ROOT_SUFFIXES = ("_aggregate", "Aggregate", "_by_pk", "ByPk", "_stream", "Stream")


def to_snake_case(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


def _unwrap(type_ref: Dict[str, Any]) -> Tuple[Dict[str, Any], bool, bool]:
    """Return (named type, nullable, is_list) for an introspection type ref."""
    nullable, is_list = True, False
    current = type_ref
    first = True
    while current and current.get("kind") in ("NON_NULL", "LIST"):
        if current["kind"] == "NON_NULL" and first:
            nullable = False
        if current["kind"] == "LIST":
            is_list = True
        first = False
        current = current.get("ofType") or {}
    return current, nullable, is_list


def parse_introspection(payload: Dict[str, Any]) -> SchemaContext:
    """Turn an introspection result into tables with fields and relationships."""
    schema = payload["__schema"]
    types = {t["name"]: t for t in schema.get("types", []) if t.get("name")}
    query_type_name = (schema.get("queryType") or {}).get("name", "query_root")
    query_root = types.get(query_type_name) or {}

    tables: List[TableInfo] = []
    for root in query_root.get("fields") or []:
        name = root["name"]
        if name.startswith("__") or name.endswith(_SKIPPED_ROOT_SUFFIXES):
            continue
        named, _, _ = _unwrap(root["type"])
        object_type = types.get(named.get("name"))
        if not object_type or object_type.get("kind") != "OBJECT":
            continue

        fields, relationships = [], []
        for field in object_type.get("fields") or []:
            target, nullable, is_list = _unwrap(field["type"])
            if target.get("kind") in ("SCALAR", "ENUM"):
                fields.append(FieldInfo(name=field["name"], type=target.get("name", "String"), nullable=nullable))
            elif target.get("kind") == "OBJECT" and not field["name"].endswith(_SKIPPED_ROOT_SUFFIXES):
                relationships.append(RelationshipInfo(
                    name=field["name"],
                    target_table=target.get("name", ""),
                    cardinality="array" if is_list else "object",
                ))
        tables.append(TableInfo(name=name, fields=tuple(fields), relationships=tuple(relationships)))

    return SchemaContext(tables=tuple(tables))


def static_schema_context() -> SchemaContext:
    """The bundled data dictionary as a SchemaContext."""
    tables = []
    for name, info in DATA_DICTIONARY.items():
        fields = tuple(
            FieldInfo(name=col, type=col_type.rstrip("!"), nullable=not col_type.endswith("!"))
            for col, col_type in info["columns"].items()
        )
        relationships = tuple(
            RelationshipInfo(name=rel, target_table=target, cardinality=cardinality)
            for rel, (target, cardinality) in info.get("relationships", {}).items()
        )
        tables.append(TableInfo(name=name, fields=fields, relationships=relationships))
    return SchemaContext(tables=tuple(tables))


def _table_doc(table: TableInfo, with_relationships: bool = True) -> str:
    lines = [f"### {table.name}"]
    if table.fields:
        lines.append("Fields:")
        lines.extend(
            f"- {f.name}: {f.type}{'' if f.nullable else '!'}" for f in table.fields
        )
    if with_relationships and table.relationships:
        lines.append("Relationships:")
        lines.extend(
            f"- {r.name} -> {r.target_table} ({r.cardinality})" for r in table.relationships
        )
    return "\n".join(lines) + "\n"


def render_schema_context(context: SchemaContext, title: str) -> str:
    """Render business tables in full, then a capped list of supporting tables."""
    business = [t for t in context.tables if to_snake_case(t.name) in BUSINESS_TABLES]
    supporting = [t for t in context.tables if to_snake_case(t.name) not in BUSINESS_TABLES]

    parts = [f"# {title}\n", "## Core Business Tables\n"]
    parts.extend(_table_doc(t) for t in business)
    if supporting:
        parts.append("## Supporting Tables\n")
        parts.extend(_table_doc(t, with_relationships=False) for t in supporting[:MAX_SUPPORTING_TABLES])
        if len(supporting) > MAX_SUPPORTING_TABLES:
            parts.append(f"({len(supporting) - MAX_SUPPORTING_TABLES} more supporting tables omitted)\n")
    parts.append(QUERY_PATTERNS)
    parts.append(BUSINESS_CONTEXT)
    return "\n".join(parts)


class SchemaContextBuilder:
    """Builds the schema section of the generation prompt."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        cache_ttl: Optional[float] = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http_client = http_client
        self.cache_ttl = settings.SCHEMA_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self.timeout = timeout
        self._clock = clock
        self._cache: Dict[str, Tuple[float, str]] = {}

    async def build_context(self, connection: Optional[HasuraConnection] = None) -> str:
        if connection and connection.url:
            cached = self._cache.get(connection.url)
            if cached and self._clock() - cached[0] < self.cache_ttl:
                return cached[1]
            try:
                live = await self._introspect(connection)
                rendered = render_schema_context(live, "GraphQL Schema Context (live introspection)")
                self._cache[connection.url] = (self._clock(), rendered)
                logger.info(f"Schema context built from introspection: {len(live.tables)} tables")
                return rendered
            except Exception as e:
                logger.warning(f"Schema introspection failed, using bundled schema: {e}")

        try:
            return render_schema_context(static_schema_context(), "Available Tables and Fields")
        except Exception as e:
            logger.error(f"Bundled schema formatting failed, using minimal schema: {e}")
            return MINIMAL_SCHEMA_CONTEXT

    async def _introspect(self, connection: HasuraConnection) -> SchemaContext:
        headers = {"Content-Type": "application/json"}
        if connection.admin_secret:
            headers["x-hasura-admin-secret"] = connection.admin_secret
        body = {"query": get_introspection_query(descriptions=False)}

        if self.http_client is not None:
            response = await self.http_client.post(connection.url, json=body, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(connection.url, json=body, headers=headers)
        response.raise_for_status()

        payload = response.json()
        if payload.get("errors") or not payload.get("data"):
            raise ValueError(f"Introspection returned errors: {payload.get('errors')}")
        context = parse_introspection(payload["data"])
        if not context.tables:
            raise ValueError("Introspection returned no queryable tables")
        return context

    def clear_cache(self):
        self._cache.clear()
