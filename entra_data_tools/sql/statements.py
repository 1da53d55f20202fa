"""SQL text builders for the CRUD tools.

Table names, key column names and column names are interpolated into the
statement text as given. Only values are bound, one ``?`` placeholder each.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from entra_data_tools.results import InvalidColumnMapError

LIST_TABLES_SQL = """
    SELECT
        TABLE_SCHEMA,
        TABLE_NAME,
        TABLE_TYPE
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_TYPE = 'BASE TABLE'
    ORDER BY TABLE_SCHEMA, TABLE_NAME
"""


@dataclass(frozen=True)
class Statement:
    """SQL text plus its positional parameters."""

    sql: str
    params: tuple[Any, ...] = field(default_factory=tuple)


def parse_column_map(json_data: str) -> dict[str, Any]:
    """Decode a JSON object of column:value pairs, keeping key order."""

    data = json.loads(json_data)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidColumnMapError(
            f"Expected a JSON object of column:value pairs, got {type(data).__name__}."
        )
    return data


def build_insert(table: str, data: dict[str, Any]) -> Statement:
    columns = ",".join(data.keys())
    placeholders = ",".join("?" for _ in data)
    sql = (
        "SET NOCOUNT ON; "
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders}); "
        "SELECT SCOPE_IDENTITY();"
    )
    return Statement(sql, tuple(data.values()))


def build_select_by_key(table: str, key_column: str, record_id: str) -> Statement:
    return Statement(f"SELECT * FROM {table} WHERE {key_column} = ?", (record_id,))


def build_update(table: str, key_column: str, record_id: str, data: dict[str, Any]) -> Statement:
    set_clause = ",".join(f"{column}=?" for column in data)
    sql = f"UPDATE {table} SET {set_clause} WHERE {key_column} = ?"
    return Statement(sql, (*data.values(), record_id))


def build_delete(table: str, key_column: str, record_id: str) -> Statement:
    return Statement(f"DELETE FROM {table} WHERE {key_column} = ?", (record_id,))


def build_count(table: str) -> Statement:
    return Statement(f"SELECT COUNT(*) FROM {table}")


def build_list_tables() -> Statement:
    return Statement(LIST_TABLES_SQL)


__all__ = [
    "LIST_TABLES_SQL",
    "Statement",
    "build_count",
    "build_delete",
    "build_insert",
    "build_list_tables",
    "build_select_by_key",
    "build_update",
    "parse_column_map",
]
