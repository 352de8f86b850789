"""Tests for row visibility and tenant isolation."""

import uuid

import pytest
from sqlalchemy import text

from app.core.visibility import (
    apply_visibility_filter,
    can_access_resource,
    parse_visible_to,
    resolve_viewer_id,
)
from app.db.enums import Role, Visibility
from app.db.models import Contact, Task
from app.schemas.auth import UserSession


def _contact(db, org, owner, *, visibility=Visibility.ORG, visible_to=None, first_name="Jane"):
    contact = Contact(
        organization_id=org.id,
        first_name=first_name,
        owner_id=owner.id if owner else None,
        visibility=visibility.value,
        visible_to=visible_to,
    )
    db.add(contact)
    db.commit()
    return contact


def _visible_names(db, org, viewer_id):
    query = apply_visibility_filter(db.query(Contact), Contact, org.id, viewer_id)
    return sorted(c.first_name for c in query.all())


def _session(user) -> UserSession:
    return UserSession(
        user_id=user.id, org_id=user.organization_id, role=Role(user.role), email=user.email, name=user.name
    )


# =============================================================================
# parse_visible_to
# =============================================================================

@pytest.mark.parametrize("raw", ["not json", "{\"a\": 1}", "42", b"\xff\xfe", ["not-a-uuid"]])
def test_malformed_visible_to_grants_nothing(raw):
    parsed = parse_visible_to(raw)
    assert parsed.user_ids == frozenset()


def test_malformed_visible_to_reports_error():
    assert parse_visible_to("not json").error == "malformed JSON"
    assert parse_visible_to({"a": 1}).error == "not a list"
    assert parse_visible_to(None).ok


def test_visible_to_keeps_valid_ids():
    user_id = uuid.uuid4()
    parsed = parse_visible_to(f'["{user_id}", "junk"]')

    assert parsed.user_ids == frozenset({user_id})
    assert parsed.error == "1 invalid user id(s) ignored"


# =============================================================================
# Query filter
# =============================================================================

def test_org_rows_are_visible_to_everyone(db, test_org, test_user, second_user):
    _contact(db, test_org, second_user, first_name="Shared")

    assert _visible_names(db, test_org, test_user.id) == ["Shared"]


def test_private_rows_need_ownership_or_grant(db, test_org, test_user, second_user, manager_user):
    _contact(db, test_org, second_user, visibility=Visibility.PRIVATE, first_name="Hidden")
    _contact(db, test_org, test_user, visibility=Visibility.PRIVATE, first_name="Mine")
    _contact(
        db,
        test_org,
        second_user,
        visibility=Visibility.PRIVATE,
        visible_to=[test_user.id],
        first_name="Granted",
    )

    assert _visible_names(db, test_org, test_user.id) == ["Granted", "Mine"]
    assert _visible_names(db, test_org, manager_user.id) == []
    # Manager "show all" path
    assert _visible_names(db, test_org, None) == ["Granted", "Hidden", "Mine"]


def test_tenant_filter_applies_without_viewer(db, test_org, other_org, test_user, user_factory):
    outsider = user_factory(org=other_org)
    _contact(db, test_org, test_user, first_name="Ours")
    _contact(db, other_org, outsider, first_name="Theirs")

    assert _visible_names(db, test_org, None) == ["Ours"]


def test_legacy_text_in_visible_to_column_grants_nothing(db, test_org, test_user, second_user):
    contact = _contact(db, test_org, second_user, visibility=Visibility.PRIVATE, first_name="Legacy")
    db.execute(
        text("UPDATE contacts SET visible_to = :raw WHERE id = :id"),
        {"raw": f"{test_user.id},garbage", "id": contact.id.hex},
    )
    db.commit()
    db.expire_all()

    assert _visible_names(db, test_org, test_user.id) == []
    assert db.get(Contact, contact.id).visible_to == []


@pytest.mark.parametrize(
    "template",
    [
        '{{"{id}": true}}',
        '["{id}",]',
        '"{id}"',
        '[{{"id": "{id}"}}]',
    ],
)
def test_malformed_text_quoting_the_viewer_grants_nothing(db, test_org, test_user, second_user, template):
    contact = _contact(db, test_org, second_user, visibility=Visibility.PRIVATE, first_name="Tampered")
    db.execute(
        text("UPDATE contacts SET visible_to = :raw WHERE id = :id"),
        {"raw": template.format(id=test_user.id), "id": contact.id.hex},
    )
    db.commit()
    db.expire_all()

    # List filter and per-row check agree
    assert _visible_names(db, test_org, test_user.id) == []
    assert not can_access_resource(test_user.id, Role.USER, db.get(Contact, contact.id))


def test_visible_to_text_is_normalised_on_write(db, test_org, test_user, second_user, manager_user):
    granted = _contact(db, test_org, second_user, visibility=Visibility.PRIVATE, first_name="Granted")
    granted.visible_to = f'["{test_user.id}"]'
    tampered = _contact(db, test_org, second_user, visibility=Visibility.PRIVATE, first_name="Tampered")
    tampered.visible_to = f'{{"{manager_user.id}": true}}'
    db.commit()

    stored = dict(db.execute(text("SELECT first_name, visible_to FROM contacts")).all())
    assert stored["Granted"] == f'["{test_user.id}"]'
    assert stored["Tampered"] == "[]"
    assert _visible_names(db, test_org, test_user.id) == ["Granted"]
    assert _visible_names(db, test_org, manager_user.id) == []


def test_assignee_sees_private_task(db, test_org, test_user, second_user):
    task = Task(
        organization_id=test_org.id,
        title="Private follow-up",
        owner_id=second_user.id,
        assigned_to_id=test_user.id,
        visibility=Visibility.PRIVATE.value,
    )
    db.add(task)
    db.commit()

    visible = apply_visibility_filter(db.query(Task), Task, test_org.id, test_user.id).all()
    assert [t.id for t in visible] == [task.id]
    assert can_access_resource(test_user.id, Role.USER, task)


# =============================================================================
# Per-row checks
# =============================================================================

def test_can_access_resource(db, test_org, test_user, second_user):
    private = _contact(db, test_org, second_user, visibility=Visibility.PRIVATE)

    assert not can_access_resource(test_user.id, Role.USER, private)
    assert can_access_resource(second_user.id, Role.USER, private)
    assert can_access_resource(test_user.id, Role.MANAGER, private)
    assert can_access_resource(test_user.id, "admin", private)
    assert not can_access_resource(test_user.id, "superuser", private)


def test_resolve_viewer_id(manager_user, test_user):
    assert resolve_viewer_id(_session(manager_user), show_all=True) is None
    assert resolve_viewer_id(_session(manager_user)) == manager_user.id
    # Plain users cannot widen their view
    assert resolve_viewer_id(_session(test_user), show_all=True) == test_user.id


# =============================================================================
# API
# =============================================================================

@pytest.mark.asyncio
async def test_private_contact_detail_is_not_found(authed_client, db, test_org, second_user):
    private = _contact(db, test_org, second_user, visibility=Visibility.PRIVATE)

    response = await authed_client.get(f"/contacts/{private.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_other_org_contact_is_not_found(manager_client, db, other_org, user_factory):
    outsider = user_factory(org=other_org)
    contact = _contact(db, other_org, outsider)

    response = await manager_client.get(f"/contacts/{contact.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_show_all_is_manager_only(authed_client, manager_client, db, test_org, second_user):
    _contact(db, test_org, second_user, visibility=Visibility.PRIVATE, first_name="Hidden")

    as_user = await authed_client.get("/contacts", params={"show_all": True})
    as_manager = await manager_client.get("/contacts", params={"show_all": True})

    assert as_user.json()["total"] == 0
    assert [c["first_name"] for c in as_manager.json()["items"]] == ["Hidden"]
