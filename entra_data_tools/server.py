# =============================================================================
# entra_data_tools/server.py  -  FastMCP tool server
# =============================================================================
#
# Registers the relational tools (CreateRecord ... ExecuteQuery) and the
# directory tools (LookupUser ... GetUserManager) on one FastMCP server.
# Each tool is a thin wrapper: it forwards its string arguments to the tool
# group held by the ToolContext and returns the rendered string.
#
# Tool and parameter names follow the published tool contract, so hosts that
# call e.g. ReadRecord(table, keyColumn, id) keep working.
#
# RUNNING THIS SERVER:
#   entra-data-tools                      (streamable HTTP on 0.0.0.0:8000)
#   entra-data-tools --transport stdio
#   python -m entra_data_tools --port 9000 --env-file .env.azure
# =============================================================================

import argparse
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator, Sequence

from fastmcp import FastMCP
from pydantic import Field
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from entra_data_tools._logging import configure_logging, get_logger
from entra_data_tools._settings import EntraToolsSettings
from entra_data_tools.context import ToolContext

logger = get_logger(__name__)

SERVER_NAME = "entra-data-tools"
STATUS_TEXT = "MCP Server on Azure App Service - Ready for use with HTTP transport"

TABLE = Annotated[str, Field(description="Table name.")]
KEY_COLUMN = Annotated[str, Field(description="Primary key column name.")]
RECORD_ID = Annotated[str, Field(description="Record ID.")]


def create_server(context: ToolContext) -> FastMCP:
    """Build the FastMCP server with every tool bound to ``context``."""

    # The lifespan runs once per client session; shared clients close with the last one.
    active_sessions = 0

    @asynccontextmanager
    async def lifespan(_: FastMCP) -> AsyncIterator[None]:
        nonlocal active_sessions
        if active_sessions == 0:
            logger.info(f"Starting {SERVER_NAME}")
        active_sessions += 1
        try:
            yield
        finally:
            active_sessions -= 1
            if active_sessions == 0:
                logger.info("Shutting down...")
                await context.aclose()

    mcp = FastMCP(SERVER_NAME, lifespan=lifespan)
    sql = context.sql
    directory = context.directory

    # =========================================================================
    # Relational data tools
    # =========================================================================
    @mcp.tool(name="CreateRecord", description="Insert a new record into a SQL table using Entra authentication.")
    async def create_record(
        table: TABLE,
        jsonData: Annotated[str, Field(description="JSON object of column:value pairs.")],
    ) -> str:
        return await sql.create_record(table, jsonData)

    @mcp.tool(name="ReadRecord", description="Read a record from a SQL table using Entra authentication.")
    async def read_record(table: TABLE, keyColumn: KEY_COLUMN, id: RECORD_ID) -> str:
        return await sql.read_record(table, keyColumn, id)

    @mcp.tool(name="UpdateRecord", description="Update a record in a SQL table using Entra authentication.")
    async def update_record(
        table: TABLE,
        keyColumn: KEY_COLUMN,
        id: RECORD_ID,
        jsonData: Annotated[str, Field(description="JSON object of column:value pairs to update.")],
    ) -> str:
        return await sql.update_record(table, keyColumn, id, jsonData)

    @mcp.tool(name="DeleteRecord", description="Delete a record from a SQL table using Entra authentication.")
    async def delete_record(table: TABLE, keyColumn: KEY_COLUMN, id: RECORD_ID) -> str:
        return await sql.delete_record(table, keyColumn, id)

    @mcp.tool(
        name="CountRecords",
        description="Count the number of records in a SQL table using Entra authentication.",
    )
    async def count_records(
        table: Annotated[str, Field(description="Table name (include schema if needed, e.g., 'SalesLT.Product').")],
    ) -> str:
        return await sql.count_records(table)

    @mcp.tool(name="ListTables", description="List all tables in the SQL database using Entra authentication.")
    async def list_tables() -> str:
        return await sql.list_tables()

    @mcp.tool(name="ExecuteQuery", description="Execute a custom SQL SELECT query using Entra authentication.")
    async def execute_query(
        sqlQuery: Annotated[str, Field(description="SQL SELECT query to execute.")],
    ) -> str:
        return await sql.execute_query(sqlQuery)

    # =========================================================================
    # Directory lookup tools
    # =========================================================================
    @mcp.tool(
        name="LookupUser",
        description="Lookup a user in Microsoft Entra ID by UPN, email, display name, or object ID.",
    )
    async def lookup_user(
        query: Annotated[str, Field(description="Search text (UPN, email, display name, or object ID).")],
    ) -> str:
        return await directory.lookup_user(query)

    @mcp.tool(name="LookupGroup", description="Lookup a group in Microsoft Entra ID by name or object ID.")
    async def lookup_group(
        query: Annotated[str, Field(description="Group name or object ID.")],
    ) -> str:
        return await directory.lookup_group(query)

    @mcp.tool(name="LookupServicePrincipal", description="Lookup a service principal in Entra ID by name or appId.")
    async def lookup_service_principal(
        query: Annotated[str, Field(description="Display name or appId.")],
    ) -> str:
        return await directory.lookup_service_principal(query)

    @mcp.tool(name="LookupApplication", description="Lookup an Entra application by name or appId.")
    async def lookup_application(
        query: Annotated[str, Field(description="Display name or appId.")],
    ) -> str:
        return await directory.lookup_application(query)

    @mcp.tool(name="GetUserManager", description="Get the manager of a user in Microsoft Entra ID.")
    async def get_user_manager(
        userQuery: Annotated[str, Field(description="User's email, UPN, or object ID.")],
    ) -> str:
        return await directory.get_user_manager(userQuery)

    # =========================================================================
    # Health check
    # =========================================================================
    @mcp.custom_route("/status", methods=["GET"])
    async def status(_: Request) -> PlainTextResponse:
        return PlainTextResponse(STATUS_TEXT)

    return mcp


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="Entra-authenticated SQL and directory MCP tools")
    parser.add_argument("--transport", choices=["streamable-http", "sse", "stdio"], default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--env-file", default=None, help="Load settings from this .env file")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> EntraToolsSettings:
    """Settings from env/.env with command line overrides applied."""

    settings = EntraToolsSettings(_env_file=args.env_file) if args.env_file else EntraToolsSettings()
    overrides = {
        name: value
        for name, value in (
            ("transport", args.transport),
            ("host", args.host),
            ("port", args.port),
            ("log_level", args.log_level),
        )
        if value is not None
    }
    return settings.model_copy(update=overrides) if overrides else settings


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = load_settings(args)
    configure_logging(settings.log_level)

    mcp = create_server(ToolContext.from_settings(settings))
    if settings.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        logger.info(f"Serving {SERVER_NAME} over {settings.transport} on {settings.host}:{settings.port}")
        mcp.run(transport=settings.transport, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
