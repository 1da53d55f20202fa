"""OData `$filter` expressions for directory searches."""

from __future__ import annotations

USER_SEARCH_FIELDS = ("displayName", "mail", "userPrincipalName")
GROUP_SEARCH_FIELDS = ("displayName",)


def quote_literal(value: str) -> str:
    """Render ``value`` as an OData string literal."""

    return "'" + value.replace("'", "''") + "'"


def startswith(field: str, value: str) -> str:
    return f"startswith({field},{quote_literal(value)})"


def equals(field: str, value: str) -> str:
    return f"{field} eq {quote_literal(value)}"


def any_of(*clauses: str) -> str:
    return " or ".join(clauses)


def user_search_filter(query: str) -> str:
    return any_of(*(startswith(field, query) for field in USER_SEARCH_FIELDS))


def group_search_filter(query: str) -> str:
    return any_of(*(startswith(field, query) for field in GROUP_SEARCH_FIELDS))


def app_search_filter(query: str) -> str:
    """Display-name prefix or exact appId, shared by applications and service principals."""

    return any_of(startswith("displayName", query), equals("appId", query))


__all__ = [
    "app_search_filter",
    "any_of",
    "equals",
    "group_search_filter",
    "quote_literal",
    "startswith",
    "user_search_filter",
]
