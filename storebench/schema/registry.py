"""
Schema registry: the canonical people schema and its per-engine DDL.

One logical schema is translated into three physical forms:

- PostgreSQL: `CREATE TYPE ... AS ENUM` for enum fields, then `CREATE TABLE`
  with a primary key on the identifier.
- ClickHouse: `CREATE TABLE ... ENGINE = MergeTree` ordered by the identifier.
- MongoDB: a list of `createIndex` directives; the store enforces no schema.

Column order and names are identical across all three; only physical types
differ.
"""

from __future__ import annotations

import json
import re
from typing import Callable, Dict, List

from storebench.domain.models import (
    CLICKHOUSE,
    ENGINES,
    MONGODB,
    POSTGRES,
    FieldSpec,
    LogicalSchema,
    SemanticType,
)
from storebench.errors import SchemaTranslationError

# ClickHouse Enum8 holds values -128..127, Enum16 -32768..32767.
_ENUM8_MAX_VALUES = 127
_ENUM16_MAX_VALUES = 32767

# Lowercase only: unquoted SQL identifiers fold to lowercase on PostgreSQL.
_TABLE_NAME = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

PEOPLE_SCHEMA = LogicalSchema(
    name="people",
    fields=(
        FieldSpec(name="user_id", semantic_type=SemanticType.IDENTIFIER, length=15, unique=True),
        FieldSpec(name="username", semantic_type=SemanticType.SHORT_TEXT, length=64),
        FieldSpec(
            name="sex",
            semantic_type=SemanticType.ENUM,
            values=("Male", "Female"),
            low_cardinality=True,
        ),
        FieldSpec(name="email", semantic_type=SemanticType.SHORT_TEXT, length=254),
        FieldSpec(name="phone", semantic_type=SemanticType.SHORT_TEXT, length=32, nullable=True),
        FieldSpec(name="dob", semantic_type=SemanticType.DATE),
        FieldSpec(
            name="job_title",
            semantic_type=SemanticType.LONG_TEXT,
            nullable=True,
            low_cardinality=True,
        ),
    ),
)


def check_table_name(table: str) -> str:
    """Reject table names that would need quoting on any engine."""
    if not _TABLE_NAME.match(table):
        raise ValueError(
            f"Invalid table name {table!r}: use lowercase letters, digits and underscores"
        )
    return table


def _quote_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _pg_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _primary_key(schema: LogicalSchema, engine: str) -> FieldSpec:
    for spec in schema.fields:
        if spec.semantic_type is SemanticType.IDENTIFIER:
            return spec
    raise SchemaTranslationError(schema.name, engine, "schema declares no identifier field")


def _check_common(spec: FieldSpec, engine: str) -> None:
    if spec.semantic_type is SemanticType.IDENTIFIER and not spec.length:
        raise SchemaTranslationError(spec.name, engine, "identifier requires a fixed length")
    if spec.semantic_type is SemanticType.ENUM:
        if not spec.values:
            raise SchemaTranslationError(spec.name, engine, "enum declares no values")
        if len(spec.values) > _ENUM16_MAX_VALUES:
            raise SchemaTranslationError(
                spec.name, engine, f"enum has {len(spec.values)} values (max {_ENUM16_MAX_VALUES})"
            )


def pg_enum_type_name(table: str, spec: FieldSpec) -> str:
    return f"{table}_{spec.name}"


# --- PostgreSQL ---------------------------------------------------------------


def _pg_column_type(spec: FieldSpec, table: str) -> str:
    kind = spec.semantic_type
    if kind is SemanticType.IDENTIFIER:
        return f"CHAR({spec.length})"
    if kind is SemanticType.SHORT_TEXT:
        return f"VARCHAR({spec.length})" if spec.length else "TEXT"
    if kind is SemanticType.ENUM:
        return pg_enum_type_name(table, spec)
    if kind is SemanticType.LONG_TEXT:
        return "TEXT"
    if kind is SemanticType.DATE:
        return "DATE"
    raise SchemaTranslationError(spec.name, POSTGRES, f"unsupported semantic type {kind.value}")


def _emit_postgres(schema: LogicalSchema, table: str) -> str:
    statements: List[str] = []
    columns: List[str] = []
    for spec in schema.fields:
        _check_common(spec, POSTGRES)
        if spec.semantic_type is SemanticType.ENUM:
            labels = ", ".join(_pg_literal(v) for v in spec.values)
            statements.append(f"CREATE TYPE {pg_enum_type_name(table, spec)} AS ENUM ({labels});")

        column = f"{spec.name} {_pg_column_type(spec, table)}"
        if spec.semantic_type is SemanticType.IDENTIFIER:
            column += " PRIMARY KEY"
        else:
            if not spec.nullable:
                column += " NOT NULL"
            if spec.unique:
                column += " UNIQUE"
        columns.append(column)

    columns_sql = ",\n  ".join(columns)
    statements.append(f"CREATE TABLE {table} (\n  {columns_sql}\n);")
    return "\n".join(statements)


# --- ClickHouse ---------------------------------------------------------------


def _ch_column_type(spec: FieldSpec) -> str:
    kind = spec.semantic_type
    if kind is SemanticType.IDENTIFIER:
        if spec.nullable:
            raise SchemaTranslationError(
                spec.name, CLICKHOUSE, "sorting key column cannot be Nullable"
            )
        return f"FixedString({spec.length})"
    if kind is SemanticType.ENUM:
        width = 8 if len(spec.values) <= _ENUM8_MAX_VALUES else 16
        members = ", ".join(f"{_quote_literal(v)} = {i}" for i, v in enumerate(spec.values, 1))
        base = f"Enum{width}({members})"
    elif kind is SemanticType.DATE:
        # Date covers 1970..2149 only; birth dates need Date32.
        base = "Date32"
    elif kind in (SemanticType.SHORT_TEXT, SemanticType.LONG_TEXT):
        base = "String"
        if spec.low_cardinality:
            inner = "Nullable(String)" if spec.nullable else "String"
            return f"LowCardinality({inner})"
    else:
        raise SchemaTranslationError(
            spec.name, CLICKHOUSE, f"unsupported semantic type {kind.value}"
        )
    return f"Nullable({base})" if spec.nullable else base


def _emit_clickhouse(schema: LogicalSchema, table: str) -> str:
    key = _primary_key(schema, CLICKHOUSE)
    columns: List[str] = []
    for spec in schema.fields:
        _check_common(spec, CLICKHOUSE)
        columns.append(f"{spec.name} {_ch_column_type(spec)}")
    columns_sql = ",\n  ".join(columns)
    return (
        f"CREATE TABLE {table} (\n  {columns_sql}\n)\n"
        f"ENGINE = MergeTree\n"
        f"PRIMARY KEY ({key.name})\n"
        f"ORDER BY ({key.name});"
    )


# --- MongoDB ------------------------------------------------------------------


def index_directives(schema: LogicalSchema) -> List[Dict[str, object]]:
    """
    Index-creation directives for the document store.

    The identifier and unique fields get unique indexes; enum and date fields
    get plain ascending indexes to serve the benchmark filters and sorts.
    """
    directives: List[Dict[str, object]] = []
    for spec in schema.fields:
        _check_common(spec, MONGODB)
        if spec.semantic_type is SemanticType.IDENTIFIER or spec.unique:
            directives.append(
                {"keys": {spec.name: 1}, "options": {"unique": True, "name": f"{spec.name}_uq"}}
            )
        elif spec.semantic_type in (SemanticType.ENUM, SemanticType.DATE):
            directives.append({"keys": {spec.name: 1}, "options": {"name": f"{spec.name}_idx"}})
    return directives


def _emit_mongodb(schema: LogicalSchema, table: str) -> str:
    lines = [f"// collection {table}: fields {', '.join(schema.field_names)}"]
    for directive in index_directives(schema):
        lines.append(
            f"db.{table}.createIndex({json.dumps(directive['keys'])}, "
            f"{json.dumps(directive['options'], sort_keys=True)});"
        )
    return "\n".join(lines)


_EMITTERS: Dict[str, Callable[[LogicalSchema, str], str]] = {
    POSTGRES: _emit_postgres,
    CLICKHOUSE: _emit_clickhouse,
    MONGODB: _emit_mongodb,
}


def emit_ddl(engine: str, schema: LogicalSchema = PEOPLE_SCHEMA, table: str | None = None) -> str:
    """
    Emit engine-specific DDL for a logical schema.

    Raises
    ------
    SchemaTranslationError
        If the engine is unknown or a field has no mapping on it.
    """
    emitter = _EMITTERS.get(engine)
    if emitter is None:
        raise SchemaTranslationError(
            "*", engine, f"unknown engine (available: {', '.join(ENGINES)})"
        )
    return emitter(schema, check_table_name(table or schema.name))


__all__ = [
    "PEOPLE_SCHEMA",
    "check_table_name",
    "emit_ddl",
    "index_directives",
    "pg_enum_type_name",
]
