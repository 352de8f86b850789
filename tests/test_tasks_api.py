"""Tests for the tasks API: assignment rules, completion and buckets."""

from datetime import timedelta

import pytest

from app.db.base import utcnow
from app.db.models import Activity, AuditLog, Notification, Task


def _notifications(db, type_value):
    db.expire_all()
    return db.query(Notification).filter(Notification.type == type_value).all()


@pytest.mark.asyncio
async def test_user_cannot_assign_task_to_someone_else(authed_client, second_user, db):
    response = await authed_client.post(
        "/tasks", json={"title": "Call Acme", "assigned_to_id": str(second_user.id)}
    )

    assert response.status_code == 403
    assert db.query(Task).count() == 0


@pytest.mark.asyncio
async def test_manager_assignment_notifies_assignee(manager_client, db, test_user):
    response = await manager_client.post(
        "/tasks", json={"title": "Call Acme", "assigned_to_id": str(test_user.id)}
    )

    assert response.status_code == 201
    assert response.json()["assigned_to_name"] == "Uma User"
    assigned = _notifications(db, "task_assigned")
    assert [n.user_id for n in assigned] == [test_user.id]
    assert assigned[0].message == "Call Acme"
    assert assigned[0].meta["assigned_by"] is not None


@pytest.mark.asyncio
async def test_self_assignment_is_silent(authed_client, db, test_user):
    await authed_client.post("/tasks", json={"title": "Note to self", "assigned_to_id": str(test_user.id)})

    assert _notifications(db, "task_assigned") == []


@pytest.mark.asyncio
async def test_completion_by_assignee_notifies_owner(db, manager_user, test_user, client_factory):
    async with client_factory(manager_user) as manager:
        task = (
            await manager.post("/tasks", json={"title": "Send proposal", "assigned_to_id": str(test_user.id)})
        ).json()

    async with client_factory(test_user) as assignee:
        response = await assignee.put(f"/tasks/{task['id']}", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["completed_at"] is not None

    completed = _notifications(db, "task_completed")
    assert [n.user_id for n in completed] == [manager_user.id]

    assert db.query(Activity).filter(Activity.activity_type == "task_completed").count() == 1
    actions = {e.action for e in db.query(AuditLog).filter(AuditLog.entity == "task").all()}
    assert actions == {"created", "completed"}


@pytest.mark.asyncio
async def test_owner_completing_own_task_is_silent(authed_client, db):
    task = (await authed_client.post("/tasks", json={"title": "Tidy pipeline"})).json()

    await authed_client.put(f"/tasks/{task['id']}", json={"status": "completed"})

    assert _notifications(db, "task_completed") == []


@pytest.mark.asyncio
async def test_reopening_clears_completed_at(authed_client, db):
    task = (await authed_client.post("/tasks", json={"title": "Tidy pipeline"})).json()
    await authed_client.put(f"/tasks/{task['id']}", json={"status": "completed"})

    response = await authed_client.put(f"/tasks/{task['id']}", json={"status": "pending"})

    assert response.json()["completed_at"] is None
    updated = db.query(AuditLog).filter(AuditLog.action == "updated").one()
    assert updated.details == {"changes": ["status"]}


@pytest.mark.asyncio
async def test_reassignment_is_audited(manager_client, db, test_user, second_user):
    task = (
        await manager_client.post("/tasks", json={"title": "Demo", "assigned_to_id": str(test_user.id)})
    ).json()

    await manager_client.put(f"/tasks/{task['id']}", json={"assigned_to_id": str(second_user.id)})

    entry = db.query(AuditLog).filter(AuditLog.action == "assigned").one()
    assert entry.details == {
        "previous_assignee_id": str(test_user.id),
        "assigned_to_id": str(second_user.id),
    }
    assert {n.user_id for n in _notifications(db, "task_assigned")} == {test_user.id, second_user.id}


@pytest.mark.asyncio
async def test_bucket_filter_and_counts(authed_client, db, test_org, test_user):
    now = utcnow()
    db.add_all(
        [
            Task(organization_id=test_org.id, title="Late", owner_id=test_user.id, due_date=now - timedelta(days=2)),
            Task(organization_id=test_org.id, title="Soon", owner_id=test_user.id, due_date=now + timedelta(days=3)),
            Task(
                organization_id=test_org.id,
                title="Done",
                owner_id=test_user.id,
                status="completed",
                due_date=now - timedelta(days=5),
            ),
        ]
    )
    db.commit()

    response = await authed_client.get("/tasks", params={"filter": "overdue"})

    body = response.json()
    assert [t["title"] for t in body["items"]] == ["Late"]
    assert body["counts"]["overdue"] == 1
    assert body["counts"]["upcoming"] == 1
    assert body["counts"]["completed"] == 1


@pytest.mark.asyncio
async def test_invalid_bucket_is_rejected(authed_client):
    response = await authed_client.get("/tasks", params={"filter": "someday"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_assignee_may_delete_task(db, manager_user, test_user, client_factory):
    async with client_factory(manager_user) as manager:
        task = (
            await manager.post("/tasks", json={"title": "Demo", "assigned_to_id": str(test_user.id)})
        ).json()

    async with client_factory(test_user) as assignee:
        response = await assignee.delete(f"/tasks/{task['id']}")

    assert response.status_code == 204
    assert db.query(Task).count() == 0
