import json
import time

import pytest
from sqlmodel import Session, select

from autopostr.infrastructure import database
from autopostr.infrastructure.crypto import encrypt_token
from autopostr.models.connection import Connection, FacebookPage, LinkedAccount
from autopostr.models.post import ScheduledPost
from autopostr.schemas.post_schema import FacebookPostCreate, InstagramPostCreate
from autopostr.services.post_service import (
    InvalidTransitionError,
    PostService,
    PublishFailedError,
    PublishValidationError,
    check_schedule_lead,
)


@pytest.fixture
def page(db_engine, user):
    with Session(db_engine, expire_on_commit=False) as session:
        conn = Connection(user_id=user.id, platform="facebook", platform_user_id="fb1", access_token_enc=encrypt_token("user-tok"))
        session.add(conn)
        session.commit()
        session.refresh(conn)
        p = FacebookPage(
            user_id=user.id,
            connection_id=conn.id,
            page_id="p1",
            name="Bakery",
            page_access_token_enc=encrypt_token("page-tok-1"),
        )
        session.add(p)
        session.add(LinkedAccount(user_id=user.id, ig_user_id="ig1", username="bakery", page_id="p1"))
        session.commit()
        session.refresh(p)
        return p


def _posts(db_engine):
    with Session(db_engine) as session:
        return session.exec(select(ScheduledPost)).all()


def test_schedule_lead_boundaries():
    now = 1_700_000_000
    check_schedule_lead(None, now=now)
    check_schedule_lead(now + 600, now=now)
    with pytest.raises(PublishValidationError):
        check_schedule_lead(now + 599, now=now)


def test_facebook_text_post_published(client, graph, page, db_engine):
    graph.on("POST", "/v19.0/p1/feed", response={"id": "p1_987"})
    r = client.post("/facebook/posts", json={"page_id": "p1", "message": "Fresh bread", "link": "https://bakery.example"})
    assert r.status_code == 200
    post = r.json()["post"]
    assert post["status"] == "published"
    assert post["result_json"] == {"id": "p1_987"}

    sent = json.loads(graph.requests[0].content)
    assert sent == {"message": "Fresh bread", "link": "https://bakery.example", "access_token": "page-tok-1"}


def test_facebook_photo_goes_to_photos_edge(client, graph, page):
    graph.on("POST", "/v19.0/p1/photos", response={"id": "photo1", "post_id": "p1_1"})
    r = client.post("/facebook/posts", json={"page_id": "p1", "message": "Look", "photo_url": "https://cdn.example/a.jpg"})
    assert r.status_code == 200
    sent = json.loads(graph.requests[0].content)
    assert sent["url"] == "https://cdn.example/a.jpg"
    assert sent["caption"] == "Look"


def test_facebook_scheduled_post_is_queued(client, graph, page):
    graph.on("POST", "/v19.0/p1/feed", response={"id": "p1_555"})
    when = int(time.time()) + 3600
    r = client.post("/facebook/posts", json={"page_id": "p1", "message": "Later", "scheduled_unix": when})
    assert r.status_code == 200
    assert r.json()["post"]["status"] == "queued"
    sent = json.loads(graph.requests[0].content)
    assert sent["published"] is False
    assert sent["scheduled_publish_time"] == when


def test_schedule_too_soon_is_rejected_without_external_call(client, graph, page, db_engine):
    graph.on("POST", "/v19.0/p1/feed", response={"id": "p1_1"})
    r = client.post("/facebook/posts", json={"page_id": "p1", "message": "Soon", "scheduled_unix": int(time.time()) + 60})
    assert r.status_code == 400
    assert "10 minutes" in r.json()["error"]
    assert graph.requests == []
    assert _posts(db_engine) == []


def test_facebook_post_needs_content(client, page):
    r = client.post("/facebook/posts", json={"page_id": "p1"})
    assert r.status_code == 400


def test_facebook_unknown_page_is_404(client, graph):
    r = client.post("/facebook/posts", json={"page_id": "other", "message": "hi"})
    assert r.status_code == 404
    assert graph.requests == []


def test_facebook_failure_records_failed_post(client, graph, page, db_engine):
    graph.on("POST", "/v19.0/p1/feed", status_code=400, response={"error": {"message": "(#200) Permissions error"}})
    r = client.post("/facebook/posts", json={"page_id": "p1", "message": "hi"})
    assert r.status_code == 502
    body = r.json()
    assert "Permissions error" in body["error"]
    [stored] = _posts(db_engine)
    assert str(stored.id).replace("-", "") == body["post_id"].replace("-", "")
    assert stored.status == "failed"
    assert "Permissions error" in stored.error_message


def test_instagram_scheduled_too_soon_via_api(client, graph, page):
    r = client.post(
        "/instagram/posts",
        json={"ig_user_id": "ig1", "image_url": "https://cdn.example/a.png", "scheduled_unix": int(time.time()) + 30},
    )
    assert r.status_code == 400
    assert graph.requests == []


def test_list_posts(client, graph, page):
    graph.on("POST", "/v19.0/p1/feed", response={"id": "p1_1"})
    client.post("/facebook/posts", json={"page_id": "p1", "message": "one"})
    client.post("/facebook/posts", json={"page_id": "p1", "message": "two"})
    r = client.get("/posts", params={"status": "published"})
    assert r.status_code == 200
    assert sorted(p["message"] for p in r.json()) == ["one", "two"]
    assert client.get("/posts", params={"status": "failed"}).json() == []


async def test_instagram_immediate_publish(graph, page, user):
    graph.on("POST", "/v19.0/ig1/media", response={"id": "container-1"})
    graph.on("POST", "/v19.0/ig1/media_publish", response={"id": "media-1"})

    async with database.get_session() as session:
        svc = PostService(session, graph=graph.client(), settle_seconds=0)
        post = await svc.publish_instagram(
            user.id, InstagramPostCreate(ig_user_id="ig1", caption="Hello", image_url="https://cdn.example/a.JPG")
        )

    assert post.status == "published"
    assert post.result_json == {"scheduled": False, "container_id": "container-1", "media_id": "media-1"}
    container_body = json.loads(graph.requests[0].content)
    assert container_body == {"access_token": "page-tok-1", "image_url": "https://cdn.example/a.JPG", "caption": "Hello"}
    assert json.loads(graph.requests[1].content) == {"creation_id": "container-1", "access_token": "page-tok-1"}


async def test_instagram_scheduled_creates_container_only(graph, page, user):
    graph.on("POST", "/v19.0/ig1/media", response={"id": "container-2"})

    async with database.get_session() as session:
        svc = PostService(session, graph=graph.client(), settle_seconds=0)
        post = await svc.publish_instagram(
            user.id,
            InstagramPostCreate(ig_user_id="ig1", video_url="https://cdn.example/v.mp4", scheduled_unix=int(time.time()) + 7200),
        )

    assert post.status == "queued"
    assert graph.paths() == ["/v19.0/ig1/media"]
    assert json.loads(graph.requests[0].content)["media_type"] == "VIDEO"


async def test_instagram_rejects_unsupported_image(graph, page, user):
    async with database.get_session() as session:
        svc = PostService(session, graph=graph.client(), settle_seconds=0)
        with pytest.raises(PublishValidationError):
            await svc.publish_instagram(user.id, InstagramPostCreate(ig_user_id="ig1", image_url="https://cdn.example/a.gif"))
    assert graph.requests == []


async def test_instagram_publish_failure_keeps_container_id(graph, page, user):
    graph.on("POST", "/v19.0/ig1/media", response={"id": "container-3"})
    graph.on("POST", "/v19.0/ig1/media_publish", status_code=400, response={"error": {"message": "Media not ready"}})

    async with database.get_session() as session:
        svc = PostService(session, graph=graph.client(), settle_seconds=0)
        with pytest.raises(PublishFailedError) as exc_info:
            await svc.publish_instagram(user.id, InstagramPostCreate(ig_user_id="ig1", image_url="https://cdn.example/a.png"))
        stored = await session.get(ScheduledPost, exc_info.value.post_id)

    assert stored.status == "failed"
    assert stored.result_json["container_id"] == "container-3"


async def test_post_result_transitions_are_one_way(graph, page, user):
    graph.on("POST", "/v19.0/p1/feed", response={"id": "p1_1"})
    async with database.get_session() as session:
        svc = PostService(session, graph=graph.client())
        queued = await svc.publish_facebook(
            user.id, FacebookPostCreate(page_id="p1", message="later", scheduled_unix=int(time.time()) + 3600)
        )
        done = await svc.record_result(queued.id, "published", result={"permalink": "https://fb.example/1"})
        assert done.status == "published"
        assert done.published_at is not None
        assert done.result_json == {"id": "p1_1", "permalink": "https://fb.example/1"}

        with pytest.raises(InvalidTransitionError):
            await svc.record_result(queued.id, "failed", error="late")
        with pytest.raises(InvalidTransitionError):
            await svc.record_result(queued.id, "queued")


def test_automation_records_post_result(client, graph, page, automation_headers):
    graph.on("POST", "/v19.0/p1/feed", response={"id": "p1_1"})
    post_id = client.post(
        "/facebook/posts", json={"page_id": "p1", "message": "later", "scheduled_unix": int(time.time()) + 3600}
    ).json()["post"]["id"]

    r = client.post(f"/automation/posts/{post_id}/result", json={"status": "failed", "error": "Token expired"}, headers=automation_headers)
    assert r.status_code == 200
    assert r.json()["post"]["status"] == "failed"
    assert r.json()["post"]["error_message"] == "Token expired"

    again = client.post(f"/automation/posts/{post_id}/result", json={"status": "published"}, headers=automation_headers)
    assert again.status_code == 409


def test_automation_requires_key(client):
    r = client.get("/automation/schedules")
    assert r.status_code == 401
    r = client.get("/automation/schedules", headers={"X-Automation-Key": "wrong"})
    assert r.status_code == 401
