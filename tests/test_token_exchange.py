import httpx
import pytest

from autopostr.infrastructure.graph_client import GraphAPIError
from autopostr.services.token_exchange import ConnectConfigError, TokenExchangeClient, TokenExchangeError

TOKEN_PATH = "/v19.0/oauth/access_token"


def _exchange_handler(short_response, long_response, long_status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("grant_type") == "fb_exchange_token":
            return httpx.Response(long_status, json=long_response)
        return httpx.Response(200, json=short_response)

    return handler


async def test_exchange_code_returns_long_lived_token(graph):
    graph.on("GET", TOKEN_PATH, handler=_exchange_handler(
        {"access_token": "short-token", "token_type": "bearer"},
        {"access_token": "long-token", "expires_in": 5183944},
    ))
    token = await TokenExchangeClient(graph.client()).exchange_code("the-code", "https://app/cb")

    assert token.access_token == "long-token"
    assert token.expires_at is not None
    first, second = graph.requests
    assert first.url.params["code"] == "the-code"
    assert first.url.params["redirect_uri"] == "https://app/cb"
    assert second.url.params["fb_exchange_token"] == "short-token"


async def test_long_lived_failure_does_not_fall_back_to_short_token(graph):
    graph.on("GET", TOKEN_PATH, handler=_exchange_handler(
        {"access_token": "short-token"},
        {"error": {"message": "Invalid OAuth access token", "code": 190}},
        long_status=400,
    ))
    with pytest.raises(TokenExchangeError) as exc_info:
        await TokenExchangeClient(graph.client()).exchange_code("code", "https://app/cb")
    assert exc_info.value.status_code == 400
    assert "Token exchange failed" in str(exc_info.value)


async def test_missing_access_token_is_an_exchange_error(graph):
    graph.on("GET", TOKEN_PATH, response={"token_type": "bearer"})
    with pytest.raises(TokenExchangeError):
        await TokenExchangeClient(graph.client()).exchange_code("code", "https://app/cb")
    assert len(graph.requests) == 1


async def test_missing_credentials_fail_before_any_call(graph):
    client = TokenExchangeClient(graph.client())
    client.app_id = None
    with pytest.raises(ConnectConfigError):
        await client.exchange_code("code", "https://app/cb")
    assert graph.requests == []


async def test_exchange_error_is_a_graph_error(graph):
    graph.on("GET", TOKEN_PATH, status_code=500, response={"error": {"message": "boom"}})
    with pytest.raises(GraphAPIError):
        await TokenExchangeClient(graph.client()).exchange_code("code", "https://app/cb")
