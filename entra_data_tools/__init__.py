"""Entra-authenticated SQL and directory tools exposed over MCP."""

import importlib.metadata

from ._settings import EntraToolsSettings
from .context import ToolContext
from .directory import EntraDirectoryTools, GraphDirectoryClient
from .results import LookupOutcome, ToolError, ToolResult
from .sql import AzureSQLConnectionFactory, SqlCrudTools

try:
    __version__ = importlib.metadata.version("entra-data-tools")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"  # Fallback for development mode

__all__ = [
    "AzureSQLConnectionFactory",
    "EntraDirectoryTools",
    "EntraToolsSettings",
    "GraphDirectoryClient",
    "LookupOutcome",
    "SqlCrudTools",
    "ToolContext",
    "ToolError",
    "ToolResult",
    "__version__",
]
