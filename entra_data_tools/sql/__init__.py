"""Relational data tools backed by Azure SQL with Entra authentication."""

from .connection import AzureSQLConnectionFactory, pack_access_token
from .connection_string import to_odbc_connection_string
from .statements import Statement, parse_column_map
from .tools import SqlCrudTools

__all__ = [
    "AzureSQLConnectionFactory",
    "SqlCrudTools",
    "Statement",
    "pack_access_token",
    "parse_column_map",
    "to_odbc_connection_string",
]
