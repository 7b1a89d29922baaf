# autopostr/infrastructure/graph_client.py
import os
from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

GRAPH_BASE_URL = os.getenv("GRAPH_BASE_URL", "https://graph.facebook.com")
GRAPH_API_VERSION = os.getenv("GRAPH_API_VERSION", "v19.0")
GRAPH_TIMEOUT_SECONDS = float(os.getenv("GRAPH_TIMEOUT_SECONDS", "30"))


class GraphAPIError(Exception):
    """Non-2xx response or an `error` object from the Graph API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GraphClient:
    """
    Thin async wrapper over the Graph API.
    Callers pass the access token themselves, as a query parameter on reads
    and in the JSON body on publish calls. A fresh AsyncClient is opened per
    call. `transport` lets tests plug in httpx.MockTransport.
    """

    def __init__(
        self,
        api_version: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_version = api_version or GRAPH_API_VERSION
        self.base_url = (base_url or GRAPH_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else GRAPH_TIMEOUT_SECONDS
        self.transport = transport

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._request("POST", path, params=params, json=payload)

    async def _request(self, method: str, path: str, params=None, json=None) -> Dict[str, Any]:
        url = self.url(path)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("graph_request_error", method=method, path=path.split("?")[0], error=str(exc))
            raise GraphAPIError(f"Graph API request failed: {exc}") from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = {"raw": response.text[:500]}

        if response.is_error or (isinstance(body, dict) and "error" in body):
            logger.warning("graph_request_failed", method=method, path=path.split("?")[0], status_code=response.status_code)
            raise GraphAPIError(_error_message(body), status_code=response.status_code, body=body)

        if not isinstance(body, dict):
            raise GraphAPIError("Unexpected Graph API response", status_code=response.status_code, body=body)
        return body


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return f"Graph API error: {body}"
