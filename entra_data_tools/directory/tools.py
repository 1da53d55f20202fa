"""
Directory lookup tools for Microsoft Entra ID.

Users and groups are first fetched directly by key (object id or principal
name). Only a not-found answer sends the lookup on to a `startswith` filter
search; service principals and applications always go straight to the
filtered search. Results are indented JSON with null members omitted.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from entra_data_tools._json import dumps_omitting_nulls
from entra_data_tools._logging import get_logger
from entra_data_tools.directory.client import DirectoryClientProvider, DirectoryError, GraphDirectoryClient
from entra_data_tools.directory.odata import app_search_filter, group_search_filter, user_search_filter
from entra_data_tools.results import LookupOutcome, ToolResult

logger = get_logger(__name__)

# 404: no such object. 400: the query is not a well-formed key (e.g. a display name).
FALLBACK_STATUS_CODES = frozenset({400, 404})

# Annotations kept on serialized entities; other @odata.* members are response plumbing.
_KEPT_ANNOTATIONS = frozenset({"@odata.type"})

Entity = dict[str, Any]


def clean_entity(entity: Entity) -> Entity:
    """Drop OData control annotations from a Graph entity."""

    return {
        key: value
        for key, value in entity.items()
        if not key.startswith("@odata.") or key in _KEPT_ANNOTATIONS
    }


def render_entities(payload: Entity | list[Entity]) -> str:
    if isinstance(payload, list):
        return dumps_omitting_nulls([clean_entity(item) for item in payload])
    return dumps_omitting_nulls(clean_entity(payload))


class EntraDirectoryTools:
    """Directory tool group sharing one lazily created Graph client."""

    def __init__(self, provider: DirectoryClientProvider, *, fallback_on_any_error: bool = False) -> None:
        self.provider = provider
        self.fallback_on_any_error = fallback_on_any_error

    async def _invoke(self, operation: str, body: Callable[[GraphDirectoryClient], Awaitable[str]]) -> ToolResult:
        try:
            client = await self.provider.get()
            return ToolResult.success(await body(client))
        except Exception as exc:
            logger.error(f"Error {operation}: {exc}", exc_info=True)
            return ToolResult.failure(operation, exc)

    async def direct_lookup(self, fetch: Callable[[str], Awaitable[Entity]], key: str) -> LookupOutcome[Entity]:
        """Fetch by key, mapping not-found answers to an explicit outcome."""

        if not key.strip():
            return LookupOutcome.not_found("empty key")
        try:
            return LookupOutcome.found(await fetch(key))
        except DirectoryError as exc:
            if exc.status_code in FALLBACK_STATUS_CODES or self.fallback_on_any_error:
                return LookupOutcome.not_found(str(exc))
            raise
        except Exception as exc:
            if self.fallback_on_any_error:
                return LookupOutcome.not_found(str(exc))
            raise

    @staticmethod
    def log_fallback(kind: str, key: str, outcome: LookupOutcome[Entity]) -> None:
        logger.info(f"No {kind} matched {key!r} directly ({outcome.reason}); searching by prefix")

    async def resolve_user(self, client: GraphDirectoryClient, query: str) -> Entity | None:
        """Single user by key, else the first filter-search match."""

        outcome = await self.direct_lookup(client.get_user, query)
        if outcome.is_found:
            return outcome.value
        self.log_fallback("user", query, outcome)
        matches = await client.list_users(user_search_filter(query))
        return matches[0] if matches else None

    # -----------------------------
    # LOOKUP USER
    # -----------------------------
    async def lookup_user_result(self, query: str) -> ToolResult:
        logger.info(f"LookupUser {query!r}")

        async def body(client: GraphDirectoryClient) -> str:
            outcome = await self.direct_lookup(client.get_user, query)
            if outcome.is_found:
                return render_entities(outcome.value)
            self.log_fallback("user", query, outcome)
            return render_entities(await client.list_users(user_search_filter(query)))

        return await self._invoke("looking up user", body)

    async def lookup_user(self, query: str) -> str:
        return (await self.lookup_user_result(query)).render()

    # -----------------------------
    # LOOKUP GROUP
    # -----------------------------
    async def lookup_group_result(self, query: str) -> ToolResult:
        logger.info(f"LookupGroup {query!r}")

        async def body(client: GraphDirectoryClient) -> str:
            outcome = await self.direct_lookup(client.get_group, query)
            if outcome.is_found:
                return render_entities(outcome.value)
            self.log_fallback("group", query, outcome)
            return render_entities(await client.list_groups(group_search_filter(query)))

        return await self._invoke("looking up group", body)

    async def lookup_group(self, query: str) -> str:
        return (await self.lookup_group_result(query)).render()

    # -----------------------------
    # LOOKUP SERVICE PRINCIPAL
    # -----------------------------
    async def lookup_service_principal_result(self, query: str) -> ToolResult:
        logger.info(f"LookupServicePrincipal {query!r}")

        async def body(client: GraphDirectoryClient) -> str:
            return render_entities(await client.list_service_principals(app_search_filter(query)))

        return await self._invoke("looking up service principal", body)

    async def lookup_service_principal(self, query: str) -> str:
        return (await self.lookup_service_principal_result(query)).render()

    # -----------------------------
    # LOOKUP APPLICATION
    # -----------------------------
    async def lookup_application_result(self, query: str) -> ToolResult:
        logger.info(f"LookupApplication {query!r}")

        async def body(client: GraphDirectoryClient) -> str:
            return render_entities(await client.list_applications(app_search_filter(query)))

        return await self._invoke("looking up application", body)

    async def lookup_application(self, query: str) -> str:
        return (await self.lookup_application_result(query)).render()

    # -----------------------------
    # GET USER MANAGER
    # -----------------------------
    async def get_user_manager_result(self, user_query: str) -> ToolResult:
        logger.info(f"GetUserManager {user_query!r}")

        async def body(client: GraphDirectoryClient) -> str:
            user = await self.resolve_user(client, user_query)
            if user is None:
                return f"User '{user_query}' not found."

            manager = await client.get_manager(user["id"])
            if not manager:
                return f"No manager found for user '{user.get('displayName') or ''}'."
            return render_entities(manager)

        return await self._invoke("getting user manager", body)

    async def get_user_manager(self, user_query: str) -> str:
        return (await self.get_user_manager_result(user_query)).render()


__all__ = ["EntraDirectoryTools", "FALLBACK_STATUS_CODES", "clean_entity", "render_entities"]
