import httpx

from autopostr.services.asset_discovery import AssetDiscoveryClient

ACCOUNTS_PATH = "/v19.0/me/accounts"
NEXT_URL = "https://graph.facebook.com/v19.0/me/accounts?after=cursor1&access_token=user-token"


def _accounts(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("after") == "cursor1":
        return httpx.Response(200, json={"data": [{"id": "p2", "name": "Second", "access_token": "tok2"}]})
    return httpx.Response(200, json={
        "data": [
            {"id": "p1", "name": "First", "access_token": "tok1", "tasks": ["CREATE_CONTENT"]},
            {"id": "broken", "name": "No token"},
        ],
        "paging": {"next": NEXT_URL},
    })


async def test_discover_follows_paging_and_links_accounts_to_pages(graph):
    graph.on("GET", ACCOUNTS_PATH, handler=_accounts)
    graph.on("GET", "/v19.0/p1", response={"instagram_business_account": {"id": "ig1", "username": "first_ig"}, "id": "p1"})
    graph.on("GET", "/v19.0/p2", response={"id": "p2"})

    result = await AssetDiscoveryClient(graph.client()).discover("user-token")

    assert [p.id for p in result.pages] == ["p1", "p2"]
    assert result.pages[0].tasks == ["CREATE_CONTENT"]
    assert len(result.ig_accounts) == 1
    account = result.ig_accounts[0]
    assert account.ig_user_id == "ig1"
    assert account.username == "first_ig"
    # every linked account points at a discovered page and carries its token
    page_ids = {p.id for p in result.pages}
    assert account.page_id in page_ids
    assert account.page_access_token == "tok1"
    assert account.page_name == "First"


async def test_probe_failure_is_swallowed(graph):
    graph.on("GET", ACCOUNTS_PATH, response={"data": [
        {"id": "p1", "name": "First", "access_token": "tok1"},
        {"id": "p2", "name": "Second", "access_token": "tok2"},
    ]})
    graph.on("GET", "/v19.0/p1", status_code=403, response={"error": {"message": "Permissions error"}})
    graph.on("GET", "/v19.0/p2", response={"instagram_business_account": {"id": "ig2"}})

    result = await AssetDiscoveryClient(graph.client()).discover("user-token")

    assert len(result.pages) == 2
    assert [a.ig_user_id for a in result.ig_accounts] == ["ig2"]
    assert result.ig_accounts[0].username == ""


async def test_probe_uses_page_token(graph):
    graph.on("GET", ACCOUNTS_PATH, response={"data": [{"id": "p1", "name": "First", "access_token": "page-tok"}]})
    graph.on("GET", "/v19.0/p1", response={"id": "p1"})

    await AssetDiscoveryClient(graph.client()).discover("user-token")

    probe = graph.requests[-1]
    assert probe.url.params["access_token"] == "page-tok"
    assert probe.url.params["fields"] == "instagram_business_account{id,username}"


async def test_as_dict_shape(graph):
    graph.on("GET", ACCOUNTS_PATH, response={"data": []})
    result = await AssetDiscoveryClient(graph.client()).discover("user-token")
    assert result.as_dict() == {"pages": [], "ig_accounts": []}
