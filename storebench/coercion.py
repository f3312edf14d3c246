"""
Type coercion: raw CSV cells to engine-native values.

`coerce` never raises for bad data. A record either becomes a CoercedRecord
aligned to the schema, or a CoercionFailure naming the line, the first
offending field and the raw value; the loader decides what to do with it.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict, List

from storebench.domain.models import (
    MONGODB,
    CoercedRecord,
    CoercionFailure,
    CoercionOutcome,
    FieldSpec,
    LogicalSchema,
    SemanticType,
    SourceRecord,
)

DATE_FORMAT = "%m/%d/%Y"

# Lone surrogates left by decoding with errors="surrogateescape".
_UNDECODABLE = re.compile("[\udc80-\udcff]")


class _CellError(ValueError):
    """Internal signal carrying the reason one cell failed."""


def parse_date(raw: str) -> date:
    """Parse a month/day/year cell; nothing else is accepted."""
    try:
        return datetime.strptime(raw, DATE_FORMAT).date()
    except ValueError as exc:
        raise _CellError(f"expected month/day/year date: {exc}") from None


def _coerce_identifier(spec: FieldSpec, raw: str) -> str:
    if spec.length is not None and len(raw) != spec.length:
        raise _CellError(f"identifier must be exactly {spec.length} characters, got {len(raw)}")
    return raw


def _coerce_short_text(spec: FieldSpec, raw: str) -> str:
    if spec.length is not None and len(raw) > spec.length:
        raise _CellError(f"text longer than {spec.length} characters")
    return raw


def _coerce_enum(spec: FieldSpec, raw: str) -> str:
    if raw not in spec.values:
        raise _CellError(f"not one of {list(spec.values)} (case-sensitive)")
    return raw


def _coerce_long_text(spec: FieldSpec, raw: str) -> str:
    return raw


def _coerce_date(spec: FieldSpec, raw: str) -> date:
    return parse_date(raw)


_CONVERTERS: Dict[SemanticType, Callable[[FieldSpec, str], Any]] = {
    SemanticType.IDENTIFIER: _coerce_identifier,
    SemanticType.SHORT_TEXT: _coerce_short_text,
    SemanticType.ENUM: _coerce_enum,
    SemanticType.LONG_TEXT: _coerce_long_text,
    SemanticType.DATE: _coerce_date,
}


def _printable(cell: str) -> str:
    return cell.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def _to_engine(value: Any, spec: FieldSpec, engine: str) -> Any:
    # BSON has no pure date type; store midnight UTC.
    if engine == MONGODB and spec.semantic_type is SemanticType.DATE and value is not None:
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


def coerce(source: SourceRecord, schema: LogicalSchema, engine: str) -> CoercionOutcome:
    """
    Convert one source record into an engine-ready record.

    Parameters
    ----------
    source : SourceRecord
        Raw cells positionally aligned to `schema`.
    schema : LogicalSchema
        The logical schema driving conversion.
    engine : str
        Target engine key; selects the native representation of dates.

    Returns
    -------
    CoercedRecord | CoercionFailure
    """
    if len(source.cells) != len(schema.fields):
        return CoercionFailure(
            line_number=source.line_number,
            field="*",
            raw_value=None,
            reason=f"expected {len(schema.fields)} cells, got {len(source.cells)}",
        )

    values: List[Any] = []
    for spec, cell in zip(schema.fields, source.cells):
        if _UNDECODABLE.search(cell):
            return CoercionFailure(
                source.line_number, spec.name, _printable(cell), "not valid UTF-8"
            )
        raw = cell.strip()
        if raw == "":
            if spec.nullable:
                values.append(None)
                continue
            return CoercionFailure(
                source.line_number, spec.name, cell, "empty value for non-null field"
            )
        try:
            value = _CONVERTERS[spec.semantic_type](spec, raw)
        except _CellError as exc:
            return CoercionFailure(source.line_number, spec.name, cell, str(exc))
        values.append(_to_engine(value, spec, engine))

    return CoercedRecord(line_number=source.line_number, values=tuple(values))


__all__ = ["DATE_FORMAT", "coerce", "parse_date"]
