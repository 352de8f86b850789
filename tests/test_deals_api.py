"""Tests for the deals API: stage changes, audit and won/lost announcements."""

import pytest

from app.db.models import Activity, AuditLog, Deal, Notification


async def _create_deal(client, **overrides):
    payload = {"title": "Acme renewal", "value": 12500, "stage": "negotiation"}
    payload.update(overrides)
    response = await client.post("/deals", json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_moving_to_won_closes_audits_and_announces(
    authed_client, db, test_user, second_user, manager_user, admin_user
):
    deal = await _create_deal(authed_client)

    response = await authed_client.put(f"/deals/{deal['id']}", json={"stage": "won"})

    assert response.status_code == 200
    body = response.json()
    assert body["stage"] == "won"
    assert body["actual_close"] is not None

    db.expire_all()
    activities = db.query(Activity).filter(Activity.activity_type == "deal_updated").all()
    assert len(activities) == 1
    assert activities[0].subject == "Deal moved to won"
    assert activities[0].created_by_user_id is None

    stage_entries = db.query(AuditLog).filter(AuditLog.action == "stage_changed").all()
    assert len(stage_entries) == 1
    assert stage_entries[0].details["previous_stage"] == "negotiation"
    assert stage_entries[0].details["new_stage"] == "won"
    assert db.query(AuditLog).filter(AuditLog.action == "updated").count() == 0

    won = db.query(Notification).filter(Notification.type == "deal_won").all()
    assert {n.user_id for n in won} == {second_user.id, manager_user.id, admin_user.id}
    assert won[0].message == "Acme renewal for USD 12,500.00"
    assert won[0].link == f"/deals/{deal['id']}"


@pytest.mark.asyncio
async def test_actual_close_is_kept_when_already_set(authed_client, db):
    deal = await _create_deal(authed_client, stage="won")
    first_close = deal["actual_close"]
    assert first_close is not None

    await authed_client.put(f"/deals/{deal['id']}", json={"stage": "lost"})
    response = await authed_client.put(f"/deals/{deal['id']}", json={"stage": "won"})

    assert response.json()["actual_close"] == first_close


@pytest.mark.asyncio
async def test_lost_deal_announcement_includes_reason(authed_client, db, second_user):
    deal = await _create_deal(authed_client)

    await authed_client.put(
        f"/deals/{deal['id']}", json={"stage": "lost", "lost_reason": "Budget cut"}
    )

    db.expire_all()
    lost = db.query(Notification).filter(Notification.user_id == second_user.id).one()
    assert lost.type == "deal_lost"
    assert lost.message == "Acme renewal: Budget cut"


@pytest.mark.asyncio
async def test_non_stage_update_is_audited_as_updated(authed_client, db):
    deal = await _create_deal(authed_client)

    await authed_client.put(f"/deals/{deal['id']}", json={"value": 20000, "probability": 80})

    db.expire_all()
    entry = db.query(AuditLog).filter(AuditLog.action == "updated").one()
    assert sorted(entry.details["changes"]) == ["probability", "value"]
    assert db.query(Activity).count() == 0
    assert db.query(Notification).count() == 0


@pytest.mark.asyncio
async def test_intermediate_stage_change_does_not_announce(authed_client, db):
    deal = await _create_deal(authed_client, stage="lead")

    await authed_client.put(f"/deals/{deal['id']}", json={"stage": "qualified"})

    db.expire_all()
    assert db.query(AuditLog).filter(AuditLog.action == "stage_changed").count() == 1
    assert db.query(Activity).count() == 1
    assert db.query(Notification).count() == 0


@pytest.mark.asyncio
async def test_reassigning_owner_notifies_new_owner(manager_client, db, test_user):
    deal = await _create_deal(manager_client)

    await manager_client.put(f"/deals/{deal['id']}", json={"owner_id": str(test_user.id)})

    db.expire_all()
    assigned = db.query(Notification).filter(Notification.type == "deal_assigned").one()
    assert assigned.user_id == test_user.id
    assert assigned.message == "You are now the owner of Acme renewal"


@pytest.mark.asyncio
async def test_create_deal_with_unknown_contact_is_rejected(authed_client):
    response = await authed_client.post(
        "/deals", json={"title": "Orphan", "contact_id": "00000000-0000-0000-0000-000000000001"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_deals_by_stage(authed_client):
    await _create_deal(authed_client, title="Early", stage="lead")
    await _create_deal(authed_client, title="Late", stage="proposal")

    response = await authed_client.get("/deals", params={"stage": "lead"})

    assert [d["title"] for d in response.json()["items"]] == ["Early"]


@pytest.mark.asyncio
async def test_deal_detail_includes_timeline(authed_client, db):
    deal = await _create_deal(authed_client)
    await authed_client.put(f"/deals/{deal['id']}", json={"stage": "proposal"})

    response = await authed_client.get(f"/deals/{deal['id']}")

    body = response.json()
    assert body["tasks"] == []
    assert [a["activity_type"] for a in body["activities"]] == ["deal_updated"]


@pytest.mark.asyncio
async def test_delete_deal_by_non_owner_is_forbidden(db, test_user, second_user, client_factory):
    async with client_factory(second_user) as owner:
        deal = await _create_deal(owner)

    async with client_factory(test_user) as other:
        response = await other.delete(f"/deals/{deal['id']}")

    assert response.status_code == 403
    assert db.query(Deal).count() == 1
