"""
Schema package for storebench.

Holds the canonical logical schema and its translation to engine-specific DDL.
"""

from storebench.schema.registry import PEOPLE_SCHEMA, emit_ddl, index_directives

__all__ = ["PEOPLE_SCHEMA", "emit_ddl", "index_directives"]
