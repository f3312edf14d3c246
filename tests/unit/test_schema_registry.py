from __future__ import annotations

import re

import pytest

from storebench.domain.models import FieldSpec, LogicalSchema, SemanticType
from storebench.errors import EXIT_SCHEMA_TRANSLATION, SchemaTranslationError
from storebench.schema import PEOPLE_SCHEMA, emit_ddl, index_directives

EXPECTED_FIELDS = ["user_id", "username", "sex", "email", "phone", "dob", "job_title"]


def _table_columns(ddl: str) -> list[str]:
    body = ddl[ddl.index("CREATE TABLE") :]
    inner = body[body.index("(") + 1 : body.index("\n)")]
    return [line.strip().split()[0] for line in inner.strip().splitlines()]


@pytest.mark.parametrize("engine", ["postgres", "clickhouse"])
def test_sql_ddl_preserves_field_count_and_order(engine: str) -> None:
    ddl = emit_ddl(engine, PEOPLE_SCHEMA)
    assert _table_columns(ddl) == EXPECTED_FIELDS


def test_mongodb_directives_name_every_field_in_order() -> None:
    ddl = emit_ddl("mongodb", PEOPLE_SCHEMA)
    header = ddl.splitlines()[0]
    assert header.endswith("fields " + ", ".join(EXPECTED_FIELDS))
    assert "db.people.createIndex" in ddl


def test_postgres_type_mapping() -> None:
    ddl = emit_ddl("postgres", PEOPLE_SCHEMA, "people")
    assert "CREATE TYPE people_sex AS ENUM ('Male', 'Female');" in ddl
    assert ddl.index("CREATE TYPE") < ddl.index("CREATE TABLE")
    assert "user_id CHAR(15) PRIMARY KEY" in ddl
    assert "username VARCHAR(64) NOT NULL" in ddl
    assert "sex people_sex NOT NULL" in ddl
    assert "dob DATE NOT NULL" in ddl
    assert re.search(r"phone VARCHAR\(32\)(,|\n)", ddl)
    assert re.search(r"job_title TEXT\n", ddl)


def test_clickhouse_type_mapping() -> None:
    ddl = emit_ddl("clickhouse", PEOPLE_SCHEMA, "people")
    assert "user_id FixedString(15)" in ddl
    assert "sex Enum8('Male' = 1, 'Female' = 2)" in ddl
    assert "dob Date32" in ddl
    assert "phone Nullable(String)" in ddl
    assert "job_title LowCardinality(Nullable(String))" in ddl
    assert "ENGINE = MergeTree" in ddl
    assert ddl.rstrip().endswith("ORDER BY (user_id);")


def test_table_override_is_used() -> None:
    ddl = emit_ddl("postgres", PEOPLE_SCHEMA, "people_copy")
    assert "CREATE TABLE people_copy (" in ddl
    assert "people_copy_sex" in ddl


def test_index_directives_unique_identifier() -> None:
    directives = index_directives(PEOPLE_SCHEMA)
    by_name = {d["options"]["name"]: d for d in directives}
    assert by_name["user_id_uq"]["options"]["unique"] is True
    assert "sex_idx" in by_name
    assert "dob_idx" in by_name


def test_unknown_engine_raises_schema_translation_error() -> None:
    with pytest.raises(SchemaTranslationError) as excinfo:
        emit_ddl("cassandra", PEOPLE_SCHEMA)
    assert excinfo.value.exit_code == EXIT_SCHEMA_TRANSLATION
    assert excinfo.value.engine == "cassandra"


def test_nullable_identifier_rejected_on_clickhouse_only() -> None:
    schema = LogicalSchema(
        name="things",
        fields=(
            FieldSpec(
                name="id", semantic_type=SemanticType.IDENTIFIER, length=8, nullable=True
            ),
        ),
    )
    with pytest.raises(SchemaTranslationError) as excinfo:
        emit_ddl("clickhouse", schema)
    assert excinfo.value.field == "id"
    # The other engines still translate it.
    assert "CREATE TABLE things" in emit_ddl("postgres", schema)


def test_enum_without_values_is_rejected() -> None:
    schema = LogicalSchema(
        name="things",
        fields=(
            FieldSpec(name="id", semantic_type=SemanticType.IDENTIFIER, length=4),
            FieldSpec(name="kind", semantic_type=SemanticType.ENUM),
        ),
    )
    for engine in ("postgres", "clickhouse", "mongodb"):
        with pytest.raises(SchemaTranslationError):
            emit_ddl(engine, schema)


def test_large_enum_uses_enum16() -> None:
    values = tuple(f"v{i}" for i in range(200))
    schema = LogicalSchema(
        name="things",
        fields=(
            FieldSpec(name="id", semantic_type=SemanticType.IDENTIFIER, length=4),
            FieldSpec(name="kind", semantic_type=SemanticType.ENUM, values=values),
        ),
    )
    assert "kind Enum16(" in emit_ddl("clickhouse", schema)


def test_invalid_table_name_rejected() -> None:
    with pytest.raises(ValueError):
        emit_ddl("postgres", PEOPLE_SCHEMA, "people; DROP TABLE x")


def test_duplicate_field_names_rejected() -> None:
    with pytest.raises(ValueError):
        LogicalSchema(
            name="dup",
            fields=(
                FieldSpec(name="a", semantic_type=SemanticType.LONG_TEXT),
                FieldSpec(name="a", semantic_type=SemanticType.LONG_TEXT),
            ),
        )
