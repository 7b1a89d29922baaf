# autopostr/services/connect_service.py
import os
import uuid
from typing import Any, Dict, Optional

import httpx
import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.infrastructure.connections_repo import ConnectionsRepository
from autopostr.infrastructure.crypto import encrypt_token
from autopostr.infrastructure.graph_client import GraphAPIError, GraphClient
from autopostr.services.asset_discovery import AssetDiscoveryClient
from autopostr.services.connect_attempts import (
    IN_PROGRESS,
    ConnectAttemptTracker,
    InvalidStateError,
    mint_state,
    validate_state,
)
from autopostr.services.token_exchange import ConnectConfigError, TokenExchangeClient

logger = structlog.get_logger(__name__)

META_APP_ID = os.getenv("META_APP_ID")
META_REDIRECT_URI = os.getenv("META_REDIRECT_URI")
META_DIALOG_URL = os.getenv("META_DIALOG_URL", "https://www.facebook.com/v19.0/dialog/oauth")
META_SCOPES = os.getenv(
    "META_SCOPES",
    "pages_show_list,pages_read_engagement,pages_manage_posts,pages_manage_metadata,"
    "public_profile,instagram_basic,instagram_content_publish",
)

PLATFORM = "facebook"


class FacebookConnectService:
    """
    Authorize URL -> callback (state check, token exchange, profile, discovery).
    The user-level Connection is persisted on a successful callback; pages
    and linked accounts wait for the selection step.
    """

    def __init__(
        self,
        session: AsyncSession,
        graph: Optional[GraphClient] = None,
        tracker: Optional[ConnectAttemptTracker] = None,
        app_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ):
        self.session = session
        self.graph = graph or GraphClient()
        self.tracker = tracker or ConnectAttemptTracker(PLATFORM)
        self.app_id = app_id or META_APP_ID
        self.redirect_uri = redirect_uri or META_REDIRECT_URI
        self.repo = ConnectionsRepository(session)

    async def authorize(self, user_id: uuid.UUID, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        redirect_uri = redirect_uri or self.redirect_uri
        if not self.app_id or not redirect_uri:
            raise ConnectConfigError("Facebook OAuth not configured")

        state = mint_state(str(user_id))
        await self.tracker.begin(str(user_id), attempt_id=state)
        params = {
            "client_id": self.app_id,
            "redirect_uri": redirect_uri,
            "scope": META_SCOPES,
            "response_type": "code",
            "state": state,
        }
        url = httpx.URL(META_DIALOG_URL).copy_merge_params(params)
        return {"authorize_url": str(url), "state": state, "redirect_uri": redirect_uri}

    async def handle_callback(
        self,
        user_id: uuid.UUID,
        code: str,
        state: str,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        # forged, foreign and superseded states stop here, before any network I/O
        validate_state(state, str(user_id))
        attempt = await self.tracker.current(str(user_id))
        if attempt.status != IN_PROGRESS or attempt.attempt_id != state:
            logger.warning("facebook_callback_stale_state", user_id=str(user_id), attempt_status=attempt.status)
            raise InvalidStateError("Invalid state parameter")
        redirect_uri = redirect_uri or self.redirect_uri
        if not redirect_uri:
            raise ConnectConfigError("Facebook OAuth not configured")

        try:
            token = await TokenExchangeClient(self.graph).exchange_code(code, redirect_uri)
            profile = await self.graph.get("me", params={"fields": "id,name", "access_token": token.access_token})
            connection = await self.repo.upsert_connection(
                user_id,
                PLATFORM,
                str(profile.get("id") or user_id),
                profile.get("name"),
                encrypt_token(token.access_token),
                token.expires_at,
            )
            discovery = await AssetDiscoveryClient(self.graph).discover(token.access_token)
        except (GraphAPIError, ConnectConfigError):
            await self.tracker.abandon(str(user_id), state)
            raise

        if not await self.tracker.complete(str(user_id), state):
            # cancelled while the exchange was running
            raise InvalidStateError("Invalid state parameter")
        logger.info(
            "facebook_callback_processed",
            user_id=str(user_id),
            connection_id=str(connection.id),
            pages=len(discovery.pages),
            ig_accounts=len(discovery.ig_accounts),
        )
        return {"connection": connection, "discovery": discovery, "state": state}
