"""Tests for in-app notifications."""

import uuid

import pytest

from appointly.db.enums import NotificationType
from appointly.services import notification_service
from appointly.utils.datetime_utils import ensure_utc


def _notify(db, user, title="Hello"):
    return notification_service.create_notification(
        db=db,
        user_id=user.id,
        type=NotificationType.SYSTEM,
        title=title,
        description="Body",
    )


def test_mark_read_is_idempotent(db, test_user):
    notification = _notify(db, test_user)

    first = notification_service.mark_read(db, notification.id, test_user.id)
    first_read_at = ensure_utc(first.read_at)
    second = notification_service.mark_read(db, notification.id, test_user.id)

    assert second is not None
    assert second.read is True
    assert ensure_utc(second.read_at) == first_read_at


def test_mark_read_scoped_to_owner(db, test_user, make_user):
    notification = _notify(db, test_user)
    intruder = make_user(name="Intruder")

    assert notification_service.mark_read(db, notification.id, intruder.id) is None
    db.refresh(notification)
    assert notification.read is False
    assert notification.read_at is None


def test_unread_count_and_mark_all(db, test_user, make_user):
    other = make_user(name="Other")
    for i in range(3):
        _notify(db, test_user, title=f"n{i}")
    _notify(db, other)

    assert notification_service.get_unread_count(db, test_user.id) == 3
    assert notification_service.mark_all_read(db, test_user.id) == 3
    assert notification_service.get_unread_count(db, test_user.id) == 0
    assert notification_service.mark_all_read(db, test_user.id) == 0
    assert notification_service.get_unread_count(db, other.id) == 1


@pytest.mark.asyncio
async def test_list_notifications_endpoint(authed_client, db, test_user):
    _notify(db, test_user, title="first")
    read = _notify(db, test_user, title="second")
    notification_service.mark_read(db, read.id, test_user.id)

    response = await authed_client.get("/notifications")
    unread_only = await authed_client.get("/notifications", params={"unread_only": "true"})

    assert response.status_code == 200
    assert response.json()["unread_count"] == 1
    assert len(response.json()["items"]) == 2
    assert [n["title"] for n in unread_only.json()["items"]] == ["first"]


@pytest.mark.asyncio
async def test_mark_read_endpoint_twice(authed_client, db, test_user):
    notification = _notify(db, test_user)

    first = await authed_client.post(f"/notifications/{notification.id}/read")
    second = await authed_client.post(f"/notifications/{notification.id}/read")

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["read_at"] == second.json()["read_at"]

    count = await authed_client.get("/notifications/unread-count")
    assert count.json() == {"count": 0}


@pytest.mark.asyncio
async def test_mark_read_unknown_is_404(authed_client):
    response = await authed_client.post(f"/notifications/{uuid.uuid4()}/read")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_read_all_endpoint(authed_client, db, test_user):
    _notify(db, test_user)
    _notify(db, test_user)

    response = await authed_client.post("/notifications/read-all")

    assert response.json() == {"marked": 2}
