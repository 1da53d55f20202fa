import asyncio
import json
import logging

import httpx
import pytest

from entra_data_tools.directory.client import DirectoryClientProvider
from entra_data_tools.directory.odata import app_search_filter, user_search_filter
from entra_data_tools.directory.tools import EntraDirectoryTools

ALICE = {
    "@odata.context": "https://graph.microsoft.com/v1.0/$metadata#users/$entity",
    "id": "11111111-1111-1111-1111-111111111111",
    "displayName": "Alice Smith",
    "mail": "alice@contoso.com",
    "userPrincipalName": "alice@contoso.com",
    "mobilePhone": None,
    "officeLocation": None,
}
BOB = {
    "@odata.type": "#microsoft.graph.user",
    "id": "22222222-2222-2222-2222-222222222222",
    "displayName": "Bob Jones",
    "jobTitle": None,
}


@pytest.mark.asyncio
async def test_lookup_user_direct_hit_skips_search(directory_tools, graph, credential):
    graph.users["alice@contoso.com"] = ALICE

    result = json.loads(await directory_tools.lookup_user("alice@contoso.com"))

    assert result == {
        "id": ALICE["id"],
        "displayName": "Alice Smith",
        "mail": "alice@contoso.com",
        "userPrincipalName": "alice@contoso.com",
    }
    assert graph.paths == ["/v1.0/users/alice@contoso.com"]
    assert graph.filters == []
    assert graph.requests[0].headers["Authorization"] == "Bearer token-1"
    assert credential.requested_scopes == [("https://graph.microsoft.com/.default",)]


@pytest.mark.asyncio
async def test_lookup_user_falls_back_to_prefix_search(directory_tools, graph):
    graph.search_results["users"] = [ALICE, {"id": "3", "displayName": "Alicia Keys", "mail": None}]

    result = json.loads(await directory_tools.lookup_user("Ali"))

    assert [user["displayName"] for user in result] == ["Alice Smith", "Alicia Keys"]
    assert "mail" not in result[1]
    assert graph.filters == [
        "startswith(displayName,'Ali') or startswith(mail,'Ali') or startswith(userPrincipalName,'Ali')"
    ]


@pytest.mark.asyncio
async def test_lookup_user_with_no_matches_returns_empty_array(directory_tools, graph):
    assert json.loads(await directory_tools.lookup_user("zzz")) == []


@pytest.mark.asyncio
async def test_fallback_search_logs_why_the_direct_lookup_missed(directory_tools, graph, caplog):
    caplog.set_level(logging.INFO, logger="entra_data_tools")

    await directory_tools.lookup_group("Eng")

    messages = [record.getMessage() for record in caplog.records]
    assert any("No group matched 'Eng' directly" in m and "Request_ResourceNotFound" in m for m in messages)


@pytest.mark.asyncio
async def test_malformed_key_falls_back_to_search(directory_tools, graph):
    graph.overrides["users/Alice Smith"] = lambda request: httpx.Response(
        400, json={"error": {"code": "Request_BadRequest", "message": "Invalid object identifier 'Alice Smith'."}}
    )
    graph.search_results["users"] = [ALICE]

    result = json.loads(await directory_tools.lookup_user("Alice Smith"))

    assert result[0]["id"] == ALICE["id"]


@pytest.mark.asyncio
async def test_authorization_failure_is_not_masked_as_empty_result(directory_tools, graph):
    graph.overrides["users/alice@contoso.com"] = lambda request: httpx.Response(
        403, json={"error": {"code": "Authorization_RequestDenied", "message": "Insufficient privileges."}}
    )

    result = await directory_tools.lookup_user("alice@contoso.com")

    assert result == "Error looking up user: Authorization_RequestDenied: Insufficient privileges."
    assert graph.filters == []


@pytest.mark.asyncio
async def test_fallback_on_any_error_restores_lenient_behaviour(graph_client_factory, graph):
    tools = EntraDirectoryTools(DirectoryClientProvider(graph_client_factory), fallback_on_any_error=True)
    graph.overrides["users/alice@contoso.com"] = lambda request: httpx.Response(503)
    graph.search_results["users"] = [ALICE]

    result = json.loads(await tools.lookup_user("alice@contoso.com"))

    assert result[0]["displayName"] == "Alice Smith"
    assert len(graph.filters) == 1


@pytest.mark.asyncio
async def test_lookup_group_direct_then_search(directory_tools, graph):
    graph.groups["g-1"] = {"id": "g-1", "displayName": "Engineering", "description": None}
    graph.search_results["groups"] = [{"id": "g-2", "displayName": "Eng Leads"}]

    direct = json.loads(await directory_tools.lookup_group("g-1"))
    searched = json.loads(await directory_tools.lookup_group("Eng"))

    assert direct == {"id": "g-1", "displayName": "Engineering"}
    assert searched == [{"id": "g-2", "displayName": "Eng Leads"}]
    assert graph.filters == ["startswith(displayName,'Eng')"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "collection"),
    [("lookup_service_principal", "servicePrincipals"), ("lookup_application", "applications")],
)
async def test_app_lookups_never_fetch_by_key(directory_tools, graph, method, collection):
    app_id = "00000003-0000-0000-c000-000000000000"
    graph.search_results[collection] = [{"id": "sp-1", "appId": app_id, "displayName": "Microsoft Graph", "notes": None}]

    result = json.loads(await getattr(directory_tools, method)(app_id))

    assert result == [{"id": "sp-1", "appId": app_id, "displayName": "Microsoft Graph"}]
    assert graph.paths == [f"/v1.0/{collection}"]
    assert graph.filters == [f"startswith(displayName,'{app_id}') or appId eq '{app_id}'"]


@pytest.mark.asyncio
async def test_get_user_manager_reports_resolved_display_name(directory_tools, graph):
    graph.users["alice@contoso.com"] = ALICE

    result = await directory_tools.get_user_manager("alice@contoso.com")

    assert result == "No manager found for user 'Alice Smith'."
    assert graph.paths[-1] == f"/v1.0/users/{ALICE['id']}/manager"


@pytest.mark.asyncio
async def test_get_user_manager_uses_first_search_match(directory_tools, graph):
    graph.search_results["users"] = [ALICE, BOB]
    graph.managers[ALICE["id"]] = BOB

    result = json.loads(await directory_tools.get_user_manager("Alice"))

    assert result == {"@odata.type": "#microsoft.graph.user", "id": BOB["id"], "displayName": "Bob Jones"}


@pytest.mark.asyncio
async def test_get_user_manager_unknown_user(directory_tools, graph):
    assert await directory_tools.get_user_manager("nobody") == "User 'nobody' not found."


@pytest.mark.asyncio
async def test_transport_errors_become_error_text(directory_tools, graph):
    def unreachable(request):
        raise httpx.ConnectError("Name or service not known", request=request)

    graph.overrides["applications"] = unreachable

    result = await directory_tools.lookup_application("Payroll")

    assert result == "Error looking up application: Name or service not known"


@pytest.mark.asyncio
async def test_provider_creates_single_client_under_concurrency(graph_client_factory):
    created = []

    def factory():
        client = graph_client_factory()
        created.append(client)
        return client

    provider = DirectoryClientProvider(factory)
    clients = await asyncio.gather(*(provider.get() for _ in range(5)))

    assert len(created) == 1
    assert all(client is created[0] for client in clients)
    await provider.aclose()
    assert not provider.initialized


def test_filters_escape_single_quotes():
    assert user_search_filter("O'Brien").startswith("startswith(displayName,'O''Brien')")
    assert app_search_filter("a'b") == "startswith(displayName,'a''b') or appId eq 'a''b'"
