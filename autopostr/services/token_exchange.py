# autopostr/services/token_exchange.py
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog

from autopostr.infrastructure.graph_client import GraphAPIError, GraphClient

logger = structlog.get_logger(__name__)

META_APP_ID = os.getenv("META_APP_ID")
META_APP_SECRET = os.getenv("META_APP_SECRET")


class TokenExchangeError(GraphAPIError):
    pass


class ConnectConfigError(RuntimeError):
    pass


@dataclass
class LongLivedToken:
    access_token: str
    expires_in: Optional[int] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if not self.expires_in:
            return None
        return datetime.utcnow() + timedelta(seconds=int(self.expires_in))


class TokenExchangeClient:
    """
    Turns an authorization code into a long-lived user token.

    Two calls, in order: code -> short-lived token, then short-lived ->
    long-lived (~60 days). Either step failing, or answering without an
    `access_token`, raises TokenExchangeError with the upstream body. There
    is no fallback to the short-lived token and nothing is retried.
    """

    def __init__(self, graph: GraphClient, app_id: Optional[str] = None, app_secret: Optional[str] = None):
        self.graph = graph
        self.app_id = app_id or META_APP_ID
        self.app_secret = app_secret or META_APP_SECRET

    def _require_credentials(self) -> None:
        if not self.app_id or not self.app_secret:
            raise ConnectConfigError("Facebook app credentials not configured")

    async def exchange_code(self, code: str, redirect_uri: str) -> LongLivedToken:
        self._require_credentials()
        short_token = await self._short_lived(code, redirect_uri)
        return await self._long_lived(short_token)

    async def _short_lived(self, code: str, redirect_uri: str) -> str:
        params = {
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        }
        data = await self._call(params, step="code")
        return data["access_token"]

    async def _long_lived(self, short_token: str) -> LongLivedToken:
        params = {
            "grant_type": "fb_exchange_token",
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "fb_exchange_token": short_token,
        }
        data = await self._call(params, step="long_lived")
        return LongLivedToken(access_token=data["access_token"], expires_in=data.get("expires_in"))

    async def _call(self, params: dict, step: str) -> dict:
        try:
            data = await self.graph.get("oauth/access_token", params=params)
        except GraphAPIError as exc:
            logger.warning("token_exchange_failed", step=step, status_code=exc.status_code)
            raise TokenExchangeError(f"Token exchange failed: {exc.body or exc}", status_code=exc.status_code, body=exc.body) from exc

        if not data.get("access_token"):
            logger.warning("token_exchange_failed", step=step, reason="missing_access_token")
            raise TokenExchangeError(f"Token exchange failed: {data}", body=data)
        logger.info("token_exchange_step_ok", step=step)
        return data
