from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pytest
from azure.core.credentials import AccessToken

from entra_data_tools.directory.client import DirectoryClientProvider, GraphDirectoryClient
from entra_data_tools.directory.tools import EntraDirectoryTools
from entra_data_tools.sql.connection import AzureSQLConnectionFactory
from entra_data_tools.sql.tools import SqlCrudTools

CONNECTION_STRING = "Server=tcp:unit.database.windows.net,1433;Initial Catalog=sales;Encrypt=True"


class FakeCredential:
    """Async token credential handing out numbered tokens."""

    def __init__(self) -> None:
        self.requested_scopes: list[tuple[str, ...]] = []
        self.closed = False

    async def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        self.requested_scopes.append(scopes)
        return AccessToken(f"token-{len(self.requested_scopes)}", 9999999999)

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeResult:
    columns: list[str] | None = None
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    rowcount: int = -1
    error: Exception | None = None


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.description: list[tuple[Any, ...]] | None = None
        self.rowcount = -1
        self._rows: list[tuple[Any, ...]] = []
        self.closed = False

    def execute(self, sql: str, params: Any = ()) -> "FakeCursor":
        self.connection.executed.append((sql, tuple(params)))
        result = self.connection.results.pop(0) if self.connection.results else FakeResult()
        if result.error is not None:
            raise result.error
        self.description = [(name, None, None, None, None, None, None) for name in result.columns] if result.columns else None
        self._rows = list(result.rows)
        self.rowcount = result.rowcount
        return self

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._rows.pop(0) if self._rows else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        rows, self._rows = self._rows, []
        return rows

    def nextset(self) -> bool:
        return False

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, results: list[FakeResult]) -> None:
        self.results = results
        self.executed: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


class FakeDatabase:
    """Stand-in for ``pyodbc.connect`` that records every connection it opens."""

    def __init__(self) -> None:
        self.queued: list[FakeResult] = []
        self.connections: list[FakeConnection] = []
        self.connect_calls: list[tuple[str, dict[int, bytes], int]] = []
        self.connect_error: Exception | None = None

    def queue(self, *results: FakeResult) -> None:
        self.queued.extend(results)

    def connect(self, connection_string: str, attrs_before: dict[int, bytes], timeout: int) -> FakeConnection:
        self.connect_calls.append((connection_string, attrs_before, timeout))
        if self.connect_error is not None:
            raise self.connect_error
        connection = FakeConnection(self.queued)
        self.queued = []
        self.connections.append(connection)
        return connection

    @property
    def executed(self) -> list[tuple[str, tuple[Any, ...]]]:
        return [statement for connection in self.connections for statement in connection.executed]


@pytest.fixture
def credential() -> FakeCredential:
    return FakeCredential()


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def sql_tools(credential: FakeCredential, database: FakeDatabase) -> SqlCrudTools:
    factory = AzureSQLConnectionFactory(CONNECTION_STRING, credential=credential, connect=database.connect)
    return SqlCrudTools(factory)


class GraphStub:
    """Minimal Graph service for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.groups: dict[str, dict[str, Any]] = {}
        self.managers: dict[str, dict[str, Any]] = {}
        self.search_results: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.overrides: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    @property
    def filters(self) -> list[str]:
        return [request.url.params["$filter"] for request in self.requests if "$filter" in request.url.params]

    @staticmethod
    def not_found(resource: str) -> httpx.Response:
        return httpx.Response(
            404,
            json={"error": {"code": "Request_ResourceNotFound", "message": f"Resource '{resource}' does not exist."}},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1.0/")
        if path in self.overrides:
            return self.overrides[path](request)

        segments = path.split("/")
        collection = segments[0]
        if len(segments) == 1:
            items = self.search_results.get(collection, [])
            return httpx.Response(200, json={"@odata.context": "ctx", "value": items})
        key = segments[1]
        if collection == "users" and len(segments) == 3 and segments[2] == "manager":
            manager = self.managers.get(key)
            return httpx.Response(200, json=manager) if manager else self.not_found("manager")
        store = self.users if collection == "users" else self.groups
        if key in store:
            return httpx.Response(200, json=store[key])
        return self.not_found(key)


@pytest.fixture
def graph() -> GraphStub:
    return GraphStub()


@pytest.fixture
def graph_client_factory(credential: FakeCredential, graph: GraphStub) -> Callable[[], GraphDirectoryClient]:
    def factory() -> GraphDirectoryClient:
        return GraphDirectoryClient(credential, transport=httpx.MockTransport(graph.handler))

    return factory


@pytest.fixture
def directory_tools(graph_client_factory: Callable[[], GraphDirectoryClient]) -> EntraDirectoryTools:
    return EntraDirectoryTools(DirectoryClientProvider(graph_client_factory))
