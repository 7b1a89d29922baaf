# autopostr/routers/post_router.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.dependencies.auth import get_current_user
from autopostr.dependencies.clients import get_graph_client
from autopostr.dependencies.db import get_session_dep
from autopostr.infrastructure.graph_client import GraphClient
from autopostr.schemas.post_schema import FacebookPostCreate, InstagramPostCreate, PostRead
from autopostr.services.connection_service import TargetNotFoundError
from autopostr.services.post_service import PostService, PublishFailedError, PublishValidationError

router = APIRouter(tags=["posts"])


def _published(post) -> dict:
    return {"ok": True, "post": PostRead.model_validate(post, from_attributes=True).model_dump(mode="json")}


def _failed(exc: PublishFailedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": str(exc), "post_id": str(exc.post_id) if exc.post_id else None},
    )


@router.post("/facebook/posts")
async def publish_facebook(
    payload: FacebookPostCreate,
    session: AsyncSession = Depends(get_session_dep),
    graph: GraphClient = Depends(get_graph_client),
    current_user=Depends(get_current_user),
):
    svc = PostService(session, graph=graph)
    try:
        post = await svc.publish_facebook(current_user.id, payload)
    except PublishValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except TargetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except PublishFailedError as exc:
        return _failed(exc)
    return _published(post)


@router.post("/instagram/posts")
async def publish_instagram(
    payload: InstagramPostCreate,
    session: AsyncSession = Depends(get_session_dep),
    graph: GraphClient = Depends(get_graph_client),
    current_user=Depends(get_current_user),
):
    svc = PostService(session, graph=graph)
    try:
        post = await svc.publish_instagram(current_user.id, payload)
    except PublishValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except TargetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except PublishFailedError as exc:
        return _failed(exc)
    return _published(post)


@router.get("/posts", response_model=List[PostRead])
async def list_posts(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session_dep),
    current_user=Depends(get_current_user),
):
    return await PostService(session).list_posts(current_user.id, status=status_filter, limit=limit)
