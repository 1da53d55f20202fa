"""Directory lookup tools backed by Microsoft Graph."""

from .client import (
    DirectoryClientProvider,
    DirectoryError,
    DirectoryNotFoundError,
    GraphDirectoryClient,
)
from .tools import EntraDirectoryTools

__all__ = [
    "DirectoryClientProvider",
    "DirectoryError",
    "DirectoryNotFoundError",
    "EntraDirectoryTools",
    "GraphDirectoryClient",
]
