"""Explicitly constructed runtime context shared by the tool groups."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from azure.core.credentials_async import AsyncTokenCredential

from entra_data_tools._logging import get_logger
from entra_data_tools._settings import EntraToolsSettings
from entra_data_tools.directory.client import DirectoryClientProvider, GraphDirectoryClient
from entra_data_tools.directory.tools import EntraDirectoryTools
from entra_data_tools.sql.connection import AzureSQLConnectionFactory, ConnectFunc
from entra_data_tools.sql.tools import SqlCrudTools

logger = get_logger(__name__)


@dataclass
class ToolContext:
    """Settings, credential and both tool groups, built once at startup."""

    settings: EntraToolsSettings
    credential: AsyncTokenCredential
    sql: SqlCrudTools
    directory: EntraDirectoryTools
    owns_credential: bool = field(default=False, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: EntraToolsSettings | None = None,
        *,
        credential: AsyncTokenCredential | None = None,
        sql_connect: ConnectFunc | None = None,
        graph_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ToolContext":
        settings = settings or EntraToolsSettings()
        owns_credential = credential is None
        if credential is None:
            from azure.identity.aio import DefaultAzureCredential

            credential = DefaultAzureCredential()

        if not settings.connection_string:
            logger.warning("No SQL connection string configured; relational tools will report errors")

        connections = AzureSQLConnectionFactory(
            settings.connection_string,
            credential=credential,
            scope=settings.sql_scope,
            driver=settings.odbc_driver,
            timeout=settings.sql_connect_timeout,
            connect=sql_connect,
        )

        def graph_client_factory() -> GraphDirectoryClient:
            return GraphDirectoryClient(
                credential,
                base_url=settings.graph_base_url,
                scope=settings.graph_scope,
                timeout=settings.graph_timeout,
                transport=graph_transport,
            )

        directory = EntraDirectoryTools(
            DirectoryClientProvider(graph_client_factory),
            fallback_on_any_error=settings.directory_fallback_on_any_error,
        )
        return cls(
            settings=settings,
            credential=credential,
            sql=SqlCrudTools(connections),
            directory=directory,
            owns_credential=owns_credential,
        )

    async def aclose(self) -> None:
        """Close the Graph client and, if created here, the credential."""

        await self.directory.provider.aclose()
        if self.owns_credential:
            await self.credential.close()


__all__ = ["ToolContext"]
