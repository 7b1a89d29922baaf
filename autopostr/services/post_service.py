# autopostr/services/post_service.py
import asyncio
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.infrastructure.graph_client import GraphAPIError, GraphClient
from autopostr.models.post import ScheduledPost
from autopostr.schemas.post_schema import FacebookPostCreate, InstagramPostCreate
from autopostr.services.connection_service import ConnectionService

logger = structlog.get_logger(__name__)

MIN_SCHEDULE_LEAD_SECONDS = 10 * 60
INSTAGRAM_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")
# the platform needs a moment before a fresh container can be published
CONTAINER_SETTLE_SECONDS = 1.0

TERMINAL_STATUSES = ("published", "failed")


class PublishValidationError(ValueError):
    pass


class PublishFailedError(Exception):
    def __init__(self, message: str, post_id: Optional[uuid.UUID] = None):
        super().__init__(message)
        self.post_id = post_id


class InvalidTransitionError(Exception):
    pass


class PostNotFoundError(LookupError):
    pass


def check_schedule_lead(scheduled_unix: Optional[int], now: Optional[float] = None) -> None:
    if scheduled_unix is None:
        return
    now = time.time() if now is None else now
    if scheduled_unix < now + MIN_SCHEDULE_LEAD_SECONDS:
        raise PublishValidationError("Scheduled time must be at least 10 minutes in the future")


def check_instagram_image(image_url: str) -> None:
    lowered = image_url.lower()
    if not any(ext in lowered for ext in INSTAGRAM_IMAGE_EXTENSIONS):
        raise PublishValidationError("Instagram only supports JPEG and PNG images")


class PostService:
    def __init__(self, session: AsyncSession, graph: Optional[GraphClient] = None, settle_seconds: float = CONTAINER_SETTLE_SECONDS):
        self.session = session
        self.graph = graph or GraphClient()
        self.connections = ConnectionService(session)
        self.settle_seconds = settle_seconds

    # --- facebook pages ---
    async def publish_facebook(self, user_id: uuid.UUID, payload: FacebookPostCreate) -> ScheduledPost:
        if not (payload.message or payload.link or payload.photo_url or payload.video_url):
            raise PublishValidationError("At least one of message, link, photo_url, or video_url is required")
        check_schedule_lead(payload.scheduled_unix)
        token = await self.connections.resolve_page_token(user_id, payload.page_id)

        endpoint, body = self._facebook_request(payload, token)
        try:
            response = await self.graph.post(endpoint, payload=body)
        except GraphAPIError as exc:
            post = await self._record(user_id, "facebook_page", payload.page_id, payload.message,
                                      payload.photo_url or payload.video_url, payload.link,
                                      payload.scheduled_unix, result=None, error=str(exc))
            logger.warning("facebook_publish_failed", user_id=str(user_id), page_id=payload.page_id, post_id=str(post.id))
            raise PublishFailedError(f"Facebook API error: {exc}", post_id=post.id) from exc

        post = await self._record(user_id, "facebook_page", payload.page_id, payload.message,
                                  payload.photo_url or payload.video_url, payload.link,
                                  payload.scheduled_unix, result=response, error=None)
        logger.info("facebook_publish_ok", user_id=str(user_id), page_id=payload.page_id, post_id=str(post.id), scheduled=bool(payload.scheduled_unix))
        return post

    def _facebook_request(self, payload: FacebookPostCreate, token: str):
        page_id = payload.page_id
        if payload.photo_url:
            endpoint = f"{page_id}/photos"
            body: Dict[str, Any] = {"url": payload.photo_url, "caption": payload.message or ""}
        elif payload.video_url:
            endpoint = f"{page_id}/videos"
            body = {"file_url": payload.video_url, "description": payload.message or ""}
        else:
            endpoint = f"{page_id}/feed"
            body = {}
            if payload.message:
                body["message"] = payload.message
            if payload.link:
                body["link"] = payload.link
        body["access_token"] = token
        if payload.scheduled_unix:
            body["published"] = False
            body["scheduled_publish_time"] = payload.scheduled_unix
        return endpoint, body

    # --- instagram ---
    async def publish_instagram(self, user_id: uuid.UUID, payload: InstagramPostCreate) -> ScheduledPost:
        if not payload.image_url and not payload.video_url:
            raise PublishValidationError("Either image_url or video_url is required")
        if payload.image_url:
            check_instagram_image(payload.image_url)
        check_schedule_lead(payload.scheduled_unix)
        token = await self.connections.resolve_account_token(user_id, payload.ig_user_id)

        container_body: Dict[str, Any] = {"access_token": token}
        if payload.image_url:
            container_body["image_url"] = payload.image_url
        if payload.video_url:
            container_body["video_url"] = payload.video_url
            container_body["media_type"] = "VIDEO"
        if payload.caption:
            container_body["caption"] = payload.caption

        media_url = payload.image_url or payload.video_url
        result: Dict[str, Any] = {"scheduled": bool(payload.scheduled_unix)}
        try:
            container = await self.graph.post(f"{payload.ig_user_id}/media", payload=container_body)
            result["container_id"] = container.get("id")
            if not payload.scheduled_unix:
                await asyncio.sleep(self.settle_seconds)
                published = await self.graph.post(
                    f"{payload.ig_user_id}/media_publish",
                    payload={"creation_id": container.get("id"), "access_token": token},
                )
                result["media_id"] = published.get("id")
        except GraphAPIError as exc:
            post = await self._record(user_id, "instagram", payload.ig_user_id, payload.caption, media_url, None,
                                      payload.scheduled_unix, result=result if result.get("container_id") else None, error=str(exc))
            logger.warning("instagram_publish_failed", user_id=str(user_id), ig_user_id=payload.ig_user_id, post_id=str(post.id))
            raise PublishFailedError(f"Instagram publish failed: {exc}", post_id=post.id) from exc

        post = await self._record(user_id, "instagram", payload.ig_user_id, payload.caption, media_url, None,
                                  payload.scheduled_unix, result=result, error=None)
        logger.info("instagram_publish_ok", user_id=str(user_id), ig_user_id=payload.ig_user_id, post_id=str(post.id), scheduled=bool(payload.scheduled_unix))
        return post

    # --- scheduled post rows ---
    async def _record(self, user_id, target_type, target_id, message, media_url, link_url,
                      scheduled_unix, result, error) -> ScheduledPost:
        now = datetime.utcnow()
        if error:
            status = "failed"
        elif scheduled_unix:
            status = "queued"
        else:
            status = "published"
        post = ScheduledPost(
            user_id=user_id,
            target_type=target_type,
            target_id=target_id,
            message=message,
            media_url=media_url,
            link_url=link_url,
            status=status,
            run_at=datetime.utcfromtimestamp(scheduled_unix) if scheduled_unix else now,
            published_at=now if status == "published" else None,
            result_json=result,
            error_message=error,
        )
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def list_posts(self, user_id: uuid.UUID, status: Optional[str] = None, limit: int = 50) -> List[ScheduledPost]:
        q = select(ScheduledPost).where(ScheduledPost.user_id == user_id)
        if status:
            q = q.where(ScheduledPost.status == status)
        q = q.order_by(ScheduledPost.created_at.desc()).limit(limit)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def record_result(
        self,
        post_id: uuid.UUID,
        status: str,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> ScheduledPost:
        """queued -> published | failed, once. There is no way back to queued."""
        post = await self.session.get(ScheduledPost, post_id)
        if post is None:
            raise PostNotFoundError("Post not found")
        if status not in TERMINAL_STATUSES:
            raise InvalidTransitionError(f"Cannot move a post to '{status}'")
        if post.status != "queued":
            raise InvalidTransitionError(f"Post is already {post.status}")

        post.status = status
        post.updated_at = datetime.utcnow()
        if status == "published":
            post.published_at = post.updated_at
            post.error_message = None
        else:
            post.error_message = error or "Publish failed"
        if result is not None:
            post.result_json = {**(post.result_json or {}), **result}
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        logger.info("post_result_recorded", post_id=str(post_id), status=status)
        return post
