"""
CRUD tools for a single Azure SQL database.

Each tool opens its own token-authenticated connection, runs one statement
and renders the outcome as text. Failures never propagate: they are rendered
as ``"Error <operation>: <message>"``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from entra_data_tools._json import dumps_preserving_nulls
from entra_data_tools._logging import get_logger, preview
from entra_data_tools.results import ToolResult
from entra_data_tools.sql.connection import AzureSQLConnectionFactory, DBAPIConnection
from entra_data_tools.sql.statements import (
    Statement,
    build_count,
    build_delete,
    build_insert,
    build_list_tables,
    build_select_by_key,
    build_update,
    parse_column_map,
)

logger = get_logger(__name__)

RECORD_NOT_FOUND = "Record not found."
RECORD_UPDATED = "Record updated successfully."
NO_RECORD_UPDATED = "No record updated."
RECORD_DELETED = "Record deleted successfully."
NO_RECORD_DELETED = "No record deleted."


def _execute(cursor: Any, statement: Statement) -> None:
    if statement.params:
        cursor.execute(statement.sql, statement.params)
    else:
        cursor.execute(statement.sql)


def _advance_to_result_set(cursor: Any) -> bool:
    """Skip row-count-only results until one with columns is current."""

    while cursor.description is None:
        if not cursor.nextset():
            return False
    return True


def _column_names(cursor: Any) -> list[str]:
    return [column[0] for column in cursor.description]


def _scalar(connection: DBAPIConnection, statement: Statement) -> Any:
    cursor = connection.cursor()
    try:
        _execute(cursor, statement)
        if not _advance_to_result_set(cursor):
            return None
        row = cursor.fetchone()
        return row[0] if row is not None else None
    finally:
        cursor.close()


def _first_row(connection: DBAPIConnection, statement: Statement) -> dict[str, Any] | None:
    cursor = connection.cursor()
    try:
        _execute(cursor, statement)
        if not _advance_to_result_set(cursor):
            return None
        row = cursor.fetchone()
        if row is None:
            return None
        return dict(zip(_column_names(cursor), row))
    finally:
        cursor.close()


def _all_rows(connection: DBAPIConnection, statement: Statement) -> list[dict[str, Any]]:
    cursor = connection.cursor()
    try:
        _execute(cursor, statement)
        if not _advance_to_result_set(cursor):
            return []
        columns = _column_names(cursor)
        return [dict(zip(columns, row)) for row in cursor.fetchall()]
    finally:
        cursor.close()


def _rowcount(connection: DBAPIConnection, statement: Statement) -> int:
    cursor = connection.cursor()
    try:
        _execute(cursor, statement)
        return cursor.rowcount
    finally:
        cursor.close()


class SqlCrudTools:
    """Relational tool group bound to one connection factory."""

    def __init__(self, connections: AzureSQLConnectionFactory) -> None:
        self.connections = connections

    async def _invoke(self, operation: str, body: Callable[[], Awaitable[str]]) -> ToolResult:
        try:
            return ToolResult.success(await body())
        except Exception as exc:
            logger.error(f"Error {operation}: {exc}", exc_info=True)
            return ToolResult.failure(operation, exc)

    async def _run(self, worker: Callable[[DBAPIConnection, Statement], Any], statement: Statement) -> Any:
        async with self.connections.open() as connection:
            return await asyncio.to_thread(worker, connection, statement)

    # -----------------------------
    # CREATE
    # -----------------------------
    async def create_record_result(self, table: str, json_data: str) -> ToolResult:
        logger.info(f"CreateRecord on {table}")

        async def body() -> str:
            statement = build_insert(table, parse_column_map(json_data))
            new_id = await self._run(_scalar, statement)
            return f"Inserted record with ID: {'' if new_id is None else new_id}"

        return await self._invoke("inserting record", body)

    async def create_record(self, table: str, json_data: str) -> str:
        return (await self.create_record_result(table, json_data)).render()

    # -----------------------------
    # READ
    # -----------------------------
    async def read_record_result(self, table: str, key_column: str, record_id: str) -> ToolResult:
        logger.info(f"ReadRecord on {table} where {key_column}={record_id!r}")

        async def body() -> str:
            row = await self._run(_first_row, build_select_by_key(table, key_column, record_id))
            if row is None:
                return RECORD_NOT_FOUND
            return dumps_preserving_nulls(row)

        return await self._invoke("reading record", body)

    async def read_record(self, table: str, key_column: str, record_id: str) -> str:
        return (await self.read_record_result(table, key_column, record_id)).render()

    # -----------------------------
    # UPDATE
    # -----------------------------
    async def update_record_result(
        self, table: str, key_column: str, record_id: str, json_data: str
    ) -> ToolResult:
        logger.info(f"UpdateRecord on {table} where {key_column}={record_id!r}")

        async def body() -> str:
            statement = build_update(table, key_column, record_id, parse_column_map(json_data))
            rows = await self._run(_rowcount, statement)
            return RECORD_UPDATED if rows > 0 else NO_RECORD_UPDATED

        return await self._invoke("updating record", body)

    async def update_record(self, table: str, key_column: str, record_id: str, json_data: str) -> str:
        return (await self.update_record_result(table, key_column, record_id, json_data)).render()

    # -----------------------------
    # DELETE
    # -----------------------------
    async def delete_record_result(self, table: str, key_column: str, record_id: str) -> ToolResult:
        logger.info(f"DeleteRecord on {table} where {key_column}={record_id!r}")

        async def body() -> str:
            rows = await self._run(_rowcount, build_delete(table, key_column, record_id))
            return RECORD_DELETED if rows > 0 else NO_RECORD_DELETED

        return await self._invoke("deleting record", body)

    async def delete_record(self, table: str, key_column: str, record_id: str) -> str:
        return (await self.delete_record_result(table, key_column, record_id)).render()

    # -----------------------------
    # COUNT RECORDS
    # -----------------------------
    async def count_records_result(self, table: str) -> ToolResult:
        logger.info(f"CountRecords on {table}")

        async def body() -> str:
            count = await self._run(_scalar, build_count(table))
            return f"Table '{table}' contains {count} records."

        return await self._invoke("counting records", body)

    async def count_records(self, table: str) -> str:
        return (await self.count_records_result(table)).render()

    # -----------------------------
    # LIST TABLES
    # -----------------------------
    async def list_tables_result(self) -> ToolResult:
        logger.info("ListTables")

        async def body() -> str:
            rows = await self._run(_all_rows, build_list_tables())
            tables = [
                {
                    "schema": row["TABLE_SCHEMA"],
                    "tableName": row["TABLE_NAME"],
                    "tableType": row["TABLE_TYPE"],
                }
                for row in rows
            ]
            return dumps_preserving_nulls(tables)

        return await self._invoke("listing tables", body)

    async def list_tables(self) -> str:
        return (await self.list_tables_result()).render()

    # -----------------------------
    # EXECUTE QUERY
    # -----------------------------
    async def execute_query_result(self, sql_query: str) -> ToolResult:
        logger.info(f"ExecuteQuery: {preview(sql_query)}")

        async def body() -> str:
            rows = await self._run(_all_rows, Statement(sql_query))
            return dumps_preserving_nulls(rows)

        return await self._invoke("executing query", body)

    async def execute_query(self, sql_query: str) -> str:
        return (await self.execute_query_result(sql_query)).render()


__all__ = [
    "NO_RECORD_DELETED",
    "NO_RECORD_UPDATED",
    "RECORD_DELETED",
    "RECORD_NOT_FOUND",
    "RECORD_UPDATED",
    "SqlCrudTools",
]
