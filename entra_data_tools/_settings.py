"""Runtime settings for the Entra data tools server."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SQL_SCOPE = "https://database.windows.net/.default"
DEFAULT_GRAPH_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class EntraToolsSettings(BaseSettings):
    """Settings for the relational and directory tool groups.

    The settings are first loaded from environment variables with the prefix 'ENTRA_TOOLS_'.
    If the environment variables are not found, the settings can be loaded from a .env file
    with the encoding 'utf-8'. A missing connection string is not an error: it defaults to an
    empty string and the relational tools report the connection failure when invoked.

    Keyword Args:
        sql_connection_string: Connection string of the target database (ADO.NET or ODBC style).
            Can be set via ENTRA_TOOLS_SQL_CONNECTION_STRING, or the App Service variables
            SQLAZURECONNSTR_DefaultConnection, CUSTOMCONNSTR_DefaultConnection and
            ConnectionStrings__DefaultConnection.
        sql_scope: Token scope used for database access.
        odbc_driver: ODBC driver added when the connection string does not name one.
        sql_connect_timeout: Login timeout in seconds.
        graph_scope: Token scope used for Microsoft Graph.
        graph_base_url: Microsoft Graph endpoint, including the API version.
        graph_timeout: HTTP timeout in seconds for Graph requests.
        directory_fallback_on_any_error: Fall back to filtered search on any direct lookup
            failure instead of only on not-found responses.
        host, port, transport: Hosting options for the MCP server.
        log_level: Level applied to the package logger.

    Examples:
        .. code-block:: python

            from entra_data_tools import EntraToolsSettings

            # Using environment variables
            settings = EntraToolsSettings()

            # Or loading from a specific .env file
            settings = EntraToolsSettings(_env_file=".env.azure")

            # Or passing parameters directly
            settings = EntraToolsSettings(
                sql_connection_string="Server=tcp:myserver.database.windows.net,1433;Initial Catalog=sales"
            )
    """

    model_config = SettingsConfigDict(
        env_prefix="ENTRA_TOOLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    sql_connection_string: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices(
            "ENTRA_TOOLS_SQL_CONNECTION_STRING",
            "SQLAZURECONNSTR_DefaultConnection",
            "CUSTOMCONNSTR_DefaultConnection",
            "ConnectionStrings__DefaultConnection",
        ),
    )
    sql_scope: str = DEFAULT_SQL_SCOPE
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    sql_connect_timeout: int = 30

    graph_scope: str = DEFAULT_GRAPH_SCOPE
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    graph_timeout: float = 30.0
    directory_fallback_on_any_error: bool = False

    host: str = "0.0.0.0"
    port: int = 8000
    transport: Literal["streamable-http", "sse", "stdio"] = "streamable-http"
    log_level: str = "INFO"

    @property
    def connection_string(self) -> str:
        """Clear-text connection string (empty when unconfigured)."""

        return self.sql_connection_string.get_secret_value()


__all__ = [
    "DEFAULT_GRAPH_BASE_URL",
    "DEFAULT_GRAPH_SCOPE",
    "DEFAULT_SQL_SCOPE",
    "EntraToolsSettings",
]
