"""Tests for the notification inbox and manager announcements."""

import pytest

from app.db.models import Notification


def _seed(db, user, count=2, *, is_read=False):
    rows = [
        Notification(
            organization_id=user.organization_id,
            user_id=user.id,
            type="system",
            title=f"Notice {i}",
            is_read=is_read,
        )
        for i in range(count)
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.mark.asyncio
async def test_list_returns_own_notifications_with_unread_count(authed_client, db, test_user, second_user):
    _seed(db, test_user, 2)
    _seed(db, test_user, 1, is_read=True)
    _seed(db, second_user, 4)

    response = await authed_client.get("/notifications")

    body = response.json()
    assert body["total"] == 3
    assert body["unread_count"] == 2
    assert {n["type"] for n in body["data"]} == {"system"}
    assert "metadata" in body["data"][0]

    unread = await authed_client.get("/notifications", params={"unread_only": True})
    assert unread.json()["total"] == 2


@pytest.mark.asyncio
async def test_mark_all_read_only_touches_caller(authed_client, db, test_user, second_user):
    _seed(db, test_user, 3)
    _seed(db, second_user, 2)

    response = await authed_client.patch("/notifications", json={"markAllRead": True})

    assert response.json() == {"count": 3}
    db.expire_all()
    mine = db.query(Notification).filter(Notification.user_id == test_user.id).all()
    theirs = db.query(Notification).filter(Notification.user_id == second_user.id).all()
    assert all(n.is_read and n.read_at is not None for n in mine)
    assert not any(n.is_read for n in theirs)


@pytest.mark.asyncio
async def test_mark_read_ignores_other_users_ids(authed_client, db, test_user, second_user):
    mine = _seed(db, test_user, 1)[0]
    theirs = _seed(db, second_user, 1)[0]

    response = await authed_client.patch(
        "/notifications", json={"ids": [str(mine.id), str(theirs.id)]}
    )

    assert response.json() == {"count": 1}
    db.expire_all()
    assert db.get(Notification, theirs.id).is_read is False


@pytest.mark.asyncio
async def test_patch_without_ids_or_flag_is_rejected(authed_client):
    response = await authed_client.patch("/notifications", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_selected_and_all(authed_client, db, test_user, second_user):
    rows = _seed(db, test_user, 3)
    _seed(db, second_user, 1)

    response = await authed_client.request(
        "DELETE", "/notifications", json={"ids": [str(rows[0].id)]}
    )
    assert response.json() == {"count": 1}

    response = await authed_client.request("DELETE", "/notifications", json={"deleteAll": True})
    assert response.json() == {"count": 2}

    db.expire_all()
    assert db.query(Notification).count() == 1

    response = await authed_client.request("DELETE", "/notifications", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_plain_user_cannot_announce(authed_client):
    response = await authed_client.post("/notifications", json={"title": "Hi", "all_users": True})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manager_announcement_to_everyone(manager_client, db, manager_user, test_user, admin_user):
    response = await manager_client.post(
        "/notifications", json={"title": "Pipeline review at 3pm", "all_users": True}
    )

    assert response.status_code == 202
    assert response.json() == {"recipients": 2}

    db.expire_all()
    sent = db.query(Notification).all()
    assert {n.user_id for n in sent} == {test_user.id, admin_user.id}
    assert sent[0].type == "system"
    assert sent[0].meta == {"sent_by": str(manager_user.id)}


@pytest.mark.asyncio
async def test_announcement_to_explicit_users(manager_client, db, test_user, other_org, user_factory):
    outsider = user_factory(org=other_org)

    response = await manager_client.post(
        "/notifications",
        json={"title": "Welcome", "user_ids": [str(test_user.id), str(outsider.id)]},
    )

    assert response.json() == {"recipients": 1}
    db.expire_all()
    assert [n.user_id for n in db.query(Notification).all()] == [test_user.id]


@pytest.mark.asyncio
async def test_announcement_to_admins(admin_client, db, admin_user, manager_user, test_user):
    response = await admin_client.post(
        "/notifications", json={"title": "Billing", "admins_only": True}
    )

    assert response.json() == {"recipients": 2}
    db.expire_all()
    assert {n.user_id for n in db.query(Notification).all()} == {admin_user.id, manager_user.id}


@pytest.mark.asyncio
async def test_announcement_needs_a_target(manager_client, other_org, user_factory):
    response = await manager_client.post("/notifications", json={"title": "Nobody"})
    assert response.status_code == 400

    outsider = user_factory(org=other_org)
    response = await manager_client.post(
        "/notifications", json={"title": "Nobody", "user_ids": [str(outsider.id)]}
    )
    assert response.status_code == 400
