"""
Microsoft Graph directory client.

A thin async wrapper over the Graph REST API for the handful of directory
reads the lookup tools need. Authentication uses an Azure token credential;
a bearer token for the Graph default scope is attached to every request.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator, Callable, Optional
from urllib.parse import quote

import httpx
from azure.core.credentials_async import AsyncTokenCredential

from entra_data_tools._logging import get_logger
from entra_data_tools._settings import DEFAULT_GRAPH_BASE_URL, DEFAULT_GRAPH_SCOPE
from entra_data_tools.results import EntraToolsError

logger = get_logger(__name__)


class DirectoryError(EntraToolsError):
    """Raised when Graph answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @classmethod
    def from_response(cls, response: httpx.Response) -> "DirectoryError":
        code: str | None = None
        message = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            code = body["error"].get("code")
            message = body["error"].get("message") or ""
        if not message:
            message = f"Graph request failed with status {response.status_code}"
        if code:
            message = f"{code}: {message}"
        error_cls = DirectoryNotFoundError if response.status_code == 404 else cls
        return error_cls(message, status_code=response.status_code, code=code)


class DirectoryNotFoundError(DirectoryError):
    """Raised for 404 responses."""


class AzureCredentialAuth(httpx.Auth):
    """httpx auth flow that attaches an Entra bearer token."""

    def __init__(self, credential: AsyncTokenCredential, scope: str) -> None:
        self._credential = credential
        self._scope = scope

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = await self._credential.get_token(self._scope)
        request.headers["Authorization"] = f"Bearer {token.token}"
        yield request


def _key(value: str) -> str:
    return quote(value, safe="@")


class GraphDirectoryClient:
    """Async Graph client for users, groups, service principals and applications."""

    def __init__(
        self,
        credential: AsyncTokenCredential,
        *,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        scope: str = DEFAULT_GRAPH_SCOPE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            auth=AzureCredentialAuth(credential, scope),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def _get(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        response = await self._http.get(path, params=params)
        if response.is_error:
            raise DirectoryError.from_response(response)
        return response.json()

    async def _list(self, collection: str, filter_expression: str) -> list[dict[str, Any]]:
        body = await self._get(collection, params={"$filter": filter_expression})
        return list(body.get("value") or [])

    # Users
    async def get_user(self, key: str) -> dict[str, Any]:
        """Fetch a user by object id or user principal name."""

        return await self._get(f"users/{_key(key)}")

    async def list_users(self, filter_expression: str) -> list[dict[str, Any]]:
        return await self._list("users", filter_expression)

    async def get_manager(self, user_id: str) -> Optional[dict[str, Any]]:
        """Return the user's manager, or None when no manager is assigned."""

        try:
            return await self._get(f"users/{_key(user_id)}/manager")
        except DirectoryNotFoundError:
            return None

    # Groups
    async def get_group(self, key: str) -> dict[str, Any]:
        return await self._get(f"groups/{_key(key)}")

    async def list_groups(self, filter_expression: str) -> list[dict[str, Any]]:
        return await self._list("groups", filter_expression)

    # Service principals and applications
    async def list_service_principals(self, filter_expression: str) -> list[dict[str, Any]]:
        return await self._list("servicePrincipals", filter_expression)

    async def list_applications(self, filter_expression: str) -> list[dict[str, Any]]:
        return await self._list("applications", filter_expression)

    async def aclose(self) -> None:
        await self._http.aclose()


class DirectoryClientProvider:
    """Creates the shared Graph client on first use and hands out the same instance."""

    def __init__(self, factory: Callable[[], GraphDirectoryClient]) -> None:
        self._factory = factory
        self._client: GraphDirectoryClient | None = None
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._client is not None

    async def get(self) -> GraphDirectoryClient:
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = self._factory()
                    logger.info("Created Microsoft Graph directory client")
        return self._client

    async def aclose(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


__all__ = [
    "AzureCredentialAuth",
    "DirectoryClientProvider",
    "DirectoryError",
    "DirectoryNotFoundError",
    "GraphDirectoryClient",
]
