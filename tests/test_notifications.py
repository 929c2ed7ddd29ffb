"""Tests for the notification centre and reminder generation."""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from resolve.models.database_models import Case, Notification
from resolve.services import notifications
from resolve.utils.helpers import utcnow
from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2


async def _signed_in(client: AsyncClient, headers=AUTH_HEADERS) -> None:
    await client.get("/api/auth/user", headers=headers)


async def _add(db_session, user_id="user-1", **fields) -> Notification:
    values = {"title": "Heads up", "message": "Something happened", "type": "system", **fields}
    notification = Notification(user_id=user_id, **values)
    db_session.add(notification)
    await db_session.commit()
    return notification


async def _create_case(client: AsyncClient, deadline=None, title="Unpaid retention") -> int:
    body = {
        "title": title,
        "issue_type": "payment_dispute",
        "description": "Head contractor is sitting on our retention money.",
    }
    if deadline is not None:
        body["deadline_date"] = deadline.isoformat()
    resp = await client.post("/api/cases", json=body, headers=AUTH_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_orders_by_priority_then_newest(client: AsyncClient, db_session):
    await _signed_in(client)
    now = utcnow()
    low = await _add(db_session, priority="low", created_at=now)
    old_high = await _add(db_session, priority="high", created_at=now - timedelta(hours=2))
    new_high = await _add(db_session, priority="high", created_at=now - timedelta(hours=1))
    critical = await _add(db_session, priority="critical", created_at=now - timedelta(days=1))

    resp = await client.get("/api/notifications", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert [n["id"] for n in resp.json()] == [critical.id, new_high.id, old_high.id, low.id]


@pytest.mark.asyncio
async def test_list_hides_expired_and_archived(client: AsyncClient, db_session):
    await _signed_in(client)
    live = await _add(db_session)
    await _add(db_session, expires_at=utcnow() - timedelta(minutes=1))
    archived = await _add(db_session, status="archived")

    resp = await client.get("/api/notifications", headers=AUTH_HEADERS)
    assert [n["id"] for n in resp.json()] == [live.id]

    resp = await client.get("/api/notifications", params={"status": "archived"}, headers=AUTH_HEADERS)
    assert [n["id"] for n in resp.json()] == [archived.id]


@pytest.mark.asyncio
async def test_list_filters_and_pages(client: AsyncClient, db_session):
    await _signed_in(client)
    await _add(db_session, type="deadline", category="payment_disputes")
    tip = await _add(db_session, type="legal_tip", category="general", priority="low")

    resp = await client.get("/api/notifications", params={"type": "legal_tip"}, headers=AUTH_HEADERS)
    assert [n["id"] for n in resp.json()] == [tip.id]
    resp = await client.get("/api/notifications", params={"priority": "low"}, headers=AUTH_HEADERS)
    assert [n["id"] for n in resp.json()] == [tip.id]
    resp = await client.get("/api/notifications", params={"limit": 1, "offset": 1}, headers=AUTH_HEADERS)
    assert [n["id"] for n in resp.json()] == [tip.id]


@pytest.mark.asyncio
async def test_list_rejects_unknown_priority(client: AsyncClient):
    resp = await client.get("/api/notifications", params={"priority": "urgent"}, headers=AUTH_HEADERS)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_is_per_user(client: AsyncClient, db_session):
    await _signed_in(client)
    await _add(db_session)
    resp = await client.get("/api/notifications", headers=AUTH_HEADERS_USER2)
    assert resp.json() == []


@pytest.mark.asyncio
async def test_list_requires_auth(client: AsyncClient):
    assert (await client.get("/api/notifications")).status_code == 401


@pytest.mark.asyncio
async def test_summary_counts(client: AsyncClient, db_session):
    await _signed_in(client)
    await _add(db_session, priority="critical", type="deadline")
    await _add(db_session, priority="high", type="deadline", status="read")
    await _add(db_session, priority="low", type="legal_tip")
    await _add(db_session, priority="critical", expires_at=utcnow() - timedelta(hours=1))

    resp = await client.get("/api/notifications/summary", headers=AUTH_HEADERS)
    assert resp.json() == {
        "total": 3,
        "unread": 2,
        "critical": 1,
        "high": 1,
        "by_type": {"deadline": 2, "legal_tip": 1},
    }


# ---------------------------------------------------------------------------
# Read / archive / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mark_read(client: AsyncClient, db_session):
    await _signed_in(client)
    notification = await _add(db_session)

    resp = await client.patch(f"/api/notifications/{notification.id}/read", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "read"
    assert resp.json()["read_at"] is not None


@pytest.mark.asyncio
async def test_mark_all_read(client: AsyncClient, db_session):
    await _signed_in(client)
    await _add(db_session)
    await _add(db_session)
    await _add(db_session, status="read")

    resp = await client.post("/api/notifications/read-all", headers=AUTH_HEADERS)
    assert resp.json() == {"updated": 2}
    summary = (await client.get("/api/notifications/summary", headers=AUTH_HEADERS)).json()
    assert summary["unread"] == 0


@pytest.mark.asyncio
async def test_archive(client: AsyncClient, db_session):
    await _signed_in(client)
    notification = await _add(db_session)

    resp = await client.patch(f"/api/notifications/{notification.id}/archive", headers=AUTH_HEADERS)
    assert resp.json()["status"] == "archived"
    assert resp.json()["archived_at"] is not None
    assert (await client.get("/api/notifications", headers=AUTH_HEADERS)).json() == []


@pytest.mark.asyncio
async def test_delete(client: AsyncClient, db_session):
    await _signed_in(client)
    notification = await _add(db_session)

    resp = await client.delete(f"/api/notifications/{notification.id}", headers=AUTH_HEADERS)
    assert resp.status_code == 204
    again = await client.delete(f"/api/notifications/{notification.id}", headers=AUTH_HEADERS)
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_other_user_cannot_touch_notification(client: AsyncClient, db_session):
    await _signed_in(client)
    notification = await _add(db_session)

    assert (await client.patch(f"/api/notifications/{notification.id}/read",
                               headers=AUTH_HEADERS_USER2)).status_code == 403
    assert (await client.delete(f"/api/notifications/{notification.id}",
                                headers=AUTH_HEADERS_USER2)).status_code == 403


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("hours_ahead, days, priority, title", [
    (-30, -1, "critical", "🚨 Deadline Passed"),
    (12, 1, "critical", "🚨 Deadline Today!"),
    (60, 3, "high", "⚠️ Deadline Approaching"),
    (140, 6, "medium", "📅 Deadline Reminder"),
])
def test_deadline_reminder_bands(hours_ahead, days, priority, title):
    now = utcnow()
    case = Case(id=1, title="Retention")
    assert notifications.days_until(now + timedelta(hours=hours_ahead), now) == days
    reminder = notifications.deadline_reminder(case, days)
    assert reminder[0].value == priority
    assert reminder[1] == title


def test_no_reminder_beyond_a_week():
    assert notifications.deadline_reminder(Case(title="Later"), 8) is None


@pytest.mark.asyncio
async def test_refresh_creates_deadline_reminder_once(client: AsyncClient):
    case_id = await _create_case(client, deadline=utcnow() + timedelta(hours=60))
    await _create_case(client, deadline=utcnow() + timedelta(days=30), title="Far off")

    resp = await client.post("/api/notifications/refresh", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"created": 2, "deadline": 1, "smart": 1}

    listed = (await client.get("/api/notifications", params={"type": "deadline"}, headers=AUTH_HEADERS)).json()
    assert len(listed) == 1
    reminder = listed[0]
    assert reminder["priority"] == "high"
    assert reminder["message"] == 'Your case "Unpaid retention" deadline is in 3 days.'
    assert reminder["related_id"] == case_id
    assert reminder["related_type"] == "case"
    assert reminder["action_url"] == f"/cases/{case_id}"
    assert reminder["details"]["days_until_deadline"] == 3

    again = await client.post("/api/notifications/refresh", headers=AUTH_HEADERS)
    assert again.json() == {"created": 0, "deadline": 0, "smart": 0}


@pytest.mark.asyncio
async def test_resolved_case_gets_no_reminder(client: AsyncClient):
    case_id = await _create_case(client, deadline=utcnow() + timedelta(hours=12))
    await client.put(f"/api/cases/{case_id}", json={"status": "resolved"}, headers=AUTH_HEADERS)

    resp = await client.post("/api/notifications/refresh", headers=AUTH_HEADERS)
    assert resp.json()["deadline"] == 0


@pytest.mark.asyncio
async def test_deadline_reminder_repeats_after_a_day(client: AsyncClient, db_session):
    await _create_case(client, deadline=utcnow() + timedelta(days=3))
    now = utcnow()
    assert await notifications.create_deadline_notifications(db_session, "user-1", now=now) == 1
    assert await notifications.create_deadline_notifications(db_session, "user-1", now=now + timedelta(hours=2)) == 0
    assert await notifications.create_deadline_notifications(db_session, "user-1", now=now + timedelta(hours=25)) == 1


@pytest.mark.asyncio
async def test_idle_case_nudge_and_weekly_tip(client: AsyncClient, db_session):
    case_id = await _create_case(client)
    later = utcnow() + timedelta(days=8, minutes=1)

    assert await notifications.create_smart_notifications(db_session, "user-1", now=later) == 2
    listed = await notifications.list_notifications(db_session, "user-1", now=later)
    by_type = {n.type: n for n in listed}

    nudge = by_type["action_required"]
    assert nudge.related_id == case_id
    assert nudge.message == 'Your case "Unpaid retention" has been open for 8 days. Consider taking the next step.'
    assert by_type["legal_tip"].priority == "low"
    assert by_type["legal_tip"].title in {tip.title for tip in notifications.LEGAL_TIPS}

    # Nothing new while both are live; both come back once they expire.
    assert await notifications.create_smart_notifications(db_session, "user-1", now=later + timedelta(days=1)) == 0
    assert await notifications.create_smart_notifications(db_session, "user-1", now=later + timedelta(days=8)) == 2


@pytest.mark.asyncio
async def test_new_case_gets_no_nudge(client: AsyncClient, db_session):
    await _create_case(client)
    await notifications.create_smart_notifications(db_session, "user-1")
    listed = await notifications.list_notifications(db_session, "user-1")
    assert [n.type for n in listed] == ["legal_tip"]
