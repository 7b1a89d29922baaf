# autopostr/routers/connections_router.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from autopostr.dependencies.auth import get_current_user
from autopostr.dependencies.clients import get_graph_client
from autopostr.dependencies.db import get_session_dep
from autopostr.infrastructure.graph_client import GraphAPIError, GraphClient
from autopostr.schemas.connection_schema import (
    AccountRead,
    AuthorizeRequest,
    CallbackRequest,
    ConnectionRead,
    PageRead,
    SelectionRequest,
)
from autopostr.services.asset_discovery import DiscoveredAccount, DiscoveredPage
from autopostr.services.connect_attempts import AttemptInProgressError, ConnectAttemptTracker, InvalidStateError
from autopostr.services.connect_service import ConnectConfigError, FacebookConnectService
from autopostr.services.connection_service import ConnectionService, TargetNotFoundError
from autopostr.services.selection import SelectionError, SelectionGateway

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/connections", tags=["connections"])


@router.post("/facebook/authorize")
async def facebook_authorize(
    payload: Optional[AuthorizeRequest] = None,
    session: AsyncSession = Depends(get_session_dep),
    graph: GraphClient = Depends(get_graph_client),
    current_user=Depends(get_current_user),
):
    svc = FacebookConnectService(session, graph=graph)
    try:
        result = await svc.authorize(current_user.id, redirect_uri=payload.redirect_uri if payload else None)
    except AttemptInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ConnectConfigError as exc:
        logger.error("facebook_oauth_not_configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return {"ok": True, **result}


@router.post("/facebook/callback")
async def facebook_callback(
    payload: CallbackRequest,
    session: AsyncSession = Depends(get_session_dep),
    graph: GraphClient = Depends(get_graph_client),
    current_user=Depends(get_current_user),
):
    svc = FacebookConnectService(session, graph=graph)
    try:
        result = await svc.handle_callback(current_user.id, payload.code, payload.state, redirect_uri=payload.redirect_uri)
    except InvalidStateError as exc:
        logger.warning("facebook_callback_state_rejected", user_id=str(current_user.id))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ConnectConfigError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    except GraphAPIError as exc:
        logger.warning("facebook_callback_upstream_failed", user_id=str(current_user.id), error=str(exc))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    connection = ConnectionRead.model_validate(result["connection"], from_attributes=True)
    return {
        "ok": True,
        "connection": connection.model_dump(mode="json"),
        **result["discovery"].as_dict(),
    }


@router.delete("/facebook/attempt")
async def cancel_facebook_attempt(current_user=Depends(get_current_user)):
    await ConnectAttemptTracker("facebook").cancel(str(current_user.id))
    return {"ok": True}


@router.post("/facebook/selection")
async def save_facebook_selection(
    payload: SelectionRequest,
    session: AsyncSession = Depends(get_session_dep),
    current_user=Depends(get_current_user),
):
    pages = [DiscoveredPage(id=p.id, name=p.name, access_token=p.access_token, tasks=p.tasks) for p in payload.pages]
    accounts = [
        DiscoveredAccount(
            ig_user_id=a.ig_user_id,
            username=a.username,
            page_id=a.page_id,
            page_name=a.page_name,
            page_access_token=a.page_access_token,
        )
        for a in payload.ig_accounts
    ]
    try:
        saved = await SelectionGateway(session).save(current_user.id, pages, accounts)
    except SelectionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"ok": True, "saved": saved}


@router.get("")
async def list_connections(session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    state = await ConnectionService(session).list_state(current_user.id)
    return {
        "ok": True,
        "connections": [ConnectionRead.model_validate(c, from_attributes=True).model_dump(mode="json") for c in state["connections"]],
        "pages": [PageRead.model_validate(p, from_attributes=True).model_dump(mode="json") for p in state["pages"]],
        "ig_accounts": [AccountRead.model_validate(a, from_attributes=True).model_dump(mode="json") for a in state["ig_accounts"]],
    }


@router.put("/pages/{page_id}/default")
async def set_default_page(page_id: str, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        page = await ConnectionService(session).set_default_page(current_user.id, page_id)
    except TargetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"ok": True, "page": PageRead.model_validate(page, from_attributes=True).model_dump(mode="json")}


@router.put("/accounts/{ig_user_id}/default")
async def set_default_account(ig_user_id: str, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        account = await ConnectionService(session).set_default_account(current_user.id, ig_user_id)
    except TargetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"ok": True, "ig_account": AccountRead.model_validate(account, from_attributes=True).model_dump(mode="json")}


@router.delete("/{platform}")
async def disconnect_platform(platform: str, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        count = await ConnectionService(session).deactivate_platform(current_user.id, platform)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"ok": True, "deactivated": count}
