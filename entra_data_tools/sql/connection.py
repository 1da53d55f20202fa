"""
Azure SQL connection factory with Entra token authentication.

Every call opens a brand-new connection authenticated with a freshly fetched
access token and closes it when the caller is done. Connections are never
pooled or shared between tool invocations.
"""

from __future__ import annotations

import asyncio
import datetime
import struct
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Protocol

from azure.core.credentials_async import AsyncTokenCredential

from entra_data_tools._logging import get_logger
from entra_data_tools._settings import DEFAULT_SQL_SCOPE
from entra_data_tools.results import SQLConfigurationError
from entra_data_tools.sql.connection_string import to_odbc_connection_string

logger = get_logger(__name__)

# pyodbc pre-connect attribute carrying the Entra access token
SQL_COPT_SS_ACCESS_TOKEN = 1256

# SQL Server type codes pyodbc has no built-in reader for
SQL_SS_TIMESTAMPOFFSET = -155

# year, month, day, hour, minute, second, fraction (ns), tz hour, tz minute
_TIMESTAMPOFFSET_STRUCT = struct.Struct("<6hI2h")


class DBAPIConnection(Protocol):
    """The slice of a DB-API connection the tools rely on."""

    def cursor(self) -> Any: ...

    def close(self) -> None: ...


ConnectFunc = Callable[[str, dict[int, bytes], int], DBAPIConnection]


def pack_access_token(token: str) -> bytes:
    """Encode a bearer token the way the SQL Server ODBC driver expects it."""

    token_bytes = token.encode("utf-16-le")
    return struct.pack(f"<I{len(token_bytes)}s", len(token_bytes), token_bytes)


def datetimeoffset_from_bytes(raw: bytes | None) -> datetime.datetime | None:
    """Decode a ``SQL_SS_TIMESTAMPOFFSET`` struct into an aware datetime."""

    if raw is None:
        return None
    year, month, day, hour, minute, second, fraction, tz_hour, tz_minute = _TIMESTAMPOFFSET_STRUCT.unpack(raw)
    offset = datetime.timedelta(hours=tz_hour, minutes=tz_minute)
    return datetime.datetime(
        year, month, day, hour, minute, second, fraction // 1000, tzinfo=datetime.timezone(offset)
    )


def register_output_converters(connection: Any) -> None:
    """Teach a pyodbc connection to read column types it cannot decode natively."""

    connection.add_output_converter(SQL_SS_TIMESTAMPOFFSET, datetimeoffset_from_bytes)


def pyodbc_connect(connection_string: str, attrs_before: dict[int, bytes], timeout: int) -> DBAPIConnection:
    """Open a pyodbc connection in autocommit mode."""

    try:
        import pyodbc
    except ImportError as exc:  # pragma: no cover - environment specific
        raise SQLConfigurationError(
            "pyodbc is required for database access. Install with `pip install pyodbc` "
            "(requires the Microsoft ODBC Driver 18 for SQL Server)."
        ) from exc
    connection = pyodbc.connect(
        connection_string,
        attrs_before=attrs_before,
        autocommit=True,
        timeout=timeout,
    )
    register_output_converters(connection)
    return connection


class AzureSQLConnectionFactory:
    """Opens per-call database connections using an Entra access token.

    Example:
        ```python
        factory = AzureSQLConnectionFactory(
            "Server=tcp:myserver.database.windows.net,1433;Initial Catalog=sales",
            credential=DefaultAzureCredential(),
        )

        async with factory.open() as conn:
            cursor = conn.cursor()
        ```
    """

    def __init__(
        self,
        connection_string: str,
        *,
        credential: AsyncTokenCredential,
        scope: str = DEFAULT_SQL_SCOPE,
        driver: str = "ODBC Driver 18 for SQL Server",
        timeout: int = 30,
        connect: ConnectFunc | None = None,
    ) -> None:
        self._connection_string = connection_string or ""
        self._credential = credential
        self.scope = scope
        self.driver = driver
        self.timeout = timeout
        self._connect = connect or pyodbc_connect

    @property
    def is_configured(self) -> bool:
        return bool(self._connection_string.strip())

    async def get_access_token(self) -> str:
        """Fetch a fresh token scoped to the database resource."""

        token = await self._credential.get_token(self.scope)
        return token.token

    @asynccontextmanager
    async def open(self) -> AsyncIterator[DBAPIConnection]:
        """Yield an open connection and close it on every exit path."""

        odbc_connection_string = to_odbc_connection_string(self._connection_string, driver=self.driver)
        access_token = await self.get_access_token()
        attrs_before = {SQL_COPT_SS_ACCESS_TOKEN: pack_access_token(access_token)}

        connection = await asyncio.to_thread(self._connect, odbc_connection_string, attrs_before, self.timeout)
        logger.debug("Opened SQL connection")
        try:
            yield connection
        finally:
            await asyncio.to_thread(connection.close)
            logger.debug("Closed SQL connection")


__all__ = [
    "AzureSQLConnectionFactory",
    "DBAPIConnection",
    "SQL_COPT_SS_ACCESS_TOKEN",
    "SQL_SS_TIMESTAMPOFFSET",
    "datetimeoffset_from_bytes",
    "pack_access_token",
    "pyodbc_connect",
    "register_output_converters",
]
