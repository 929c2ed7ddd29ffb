"""Tests for the intake applications workflow."""
import pytest
from httpx import AsyncClient

from tests.conftest import ADMIN_HEADERS, AUTH_HEADERS, AUTH_HEADERS_USER2, MODERATOR_HEADERS

APPLICATION_BODY = {
    "full_name": "Sam Sparky",
    "phone": "0400 123 456",
    "email": "sam@sparky.example",
    "trade": "Electrician",
    "state": "QLD",
    "issue_type": "payment_dispute",
    "amount": 12500,
    "start_date": "March 2026",
    "description": "Builder withheld the final progress payment after handover.",
}


async def _apply(client: AsyncClient, headers=None, **overrides):
    return await client.post("/api/applications", json={**APPLICATION_BODY, **overrides}, headers=headers or {})


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_anonymous_application(client: AsyncClient, mailer):
    resp = await _apply(client)
    assert resp.status_code == 201
    data = resp.json()
    assert data["user_id"] is None
    assert data["status"] == "pending"
    assert data["workflow_stage"] == "submitted"
    assert data["payment_amount"] == 299.0
    assert data["intake_completed"] is False

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "sam@sparky.example"
    assert mailer.sent[0]["subject"] == "Application Received - Resolve AI"
    assert f"#{data['id']}" in mailer.sent[0]["html"]


@pytest.mark.asyncio
async def test_signed_in_application_is_linked(client: AsyncClient):
    resp = await _apply(client, headers=AUTH_HEADERS)
    assert resp.status_code == 201
    assert resp.json()["user_id"] == "user-1"


@pytest.mark.asyncio
@pytest.mark.parametrize("override", [
    {"state": "XYZ"},
    {"email": "not-an-email"},
    {"description": "short"},
    {"full_name": ""},
])
async def test_application_validation(client: AsyncClient, mailer, override):
    resp = await _apply(client, **override)
    assert resp.status_code == 422
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_applicant_name_is_escaped_in_email(client: AsyncClient, mailer):
    await _apply(client, full_name="<b>Sam</b>")
    assert "<b>Sam</b>" not in mailer.sent[0]["html"]
    assert "&lt;b&gt;Sam&lt;/b&gt;" in mailer.sent[0]["html"]


# ---------------------------------------------------------------------------
# List / read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_lists_only_own_applications(client: AsyncClient):
    own = (await _apply(client, headers=AUTH_HEADERS)).json()["id"]
    await _apply(client, headers=AUTH_HEADERS_USER2)
    await _apply(client)

    resp = await client.get("/api/applications", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert [a["id"] for a in resp.json()] == [own]


@pytest.mark.asyncio
async def test_reviewers_list_every_application_newest_first(client: AsyncClient):
    first = (await _apply(client)).json()["id"]
    second = (await _apply(client, headers=AUTH_HEADERS)).json()["id"]

    for headers in (ADMIN_HEADERS, MODERATOR_HEADERS):
        resp = await client.get("/api/applications", headers=headers)
        assert [a["id"] for a in resp.json()] == [second, first]


@pytest.mark.asyncio
async def test_list_filters_by_status(client: AsyncClient):
    first = (await _apply(client)).json()["id"]
    await _apply(client)
    await client.put(f"/api/applications/{first}/status", json={"status": "approved"}, headers=MODERATOR_HEADERS)

    resp = await client.get("/api/applications", params={"status": "approved"}, headers=ADMIN_HEADERS)
    assert [a["id"] for a in resp.json()] == [first]


@pytest.mark.asyncio
async def test_list_requires_auth(client: AsyncClient):
    assert (await client.get("/api/applications")).status_code == 401


@pytest.mark.asyncio
async def test_get_application_access(client: AsyncClient):
    app_id = (await _apply(client, headers=AUTH_HEADERS)).json()["id"]

    assert (await client.get(f"/api/applications/{app_id}", headers=AUTH_HEADERS)).status_code == 200
    assert (await client.get(f"/api/applications/{app_id}", headers=AUTH_HEADERS_USER2)).status_code == 403
    assert (await client.get(f"/api/applications/{app_id}", headers=MODERATOR_HEADERS)).status_code == 200
    assert (await client.get("/api/applications/999999", headers=ADMIN_HEADERS)).status_code == 404


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_moderator_approves_application(client: AsyncClient, mailer):
    app_id = (await _apply(client)).json()["id"]
    mailer.sent.clear()

    resp = await client.put(
        f"/api/applications/{app_id}/status",
        json={"status": "approved"},
        headers=MODERATOR_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"

    assert [m["subject"] for m in mailer.sent] == ["Case Approved - Resolve AI"]
    assert f"/application/{app_id}/complete" in mailer.sent[0]["html"]


@pytest.mark.asyncio
async def test_admin_rejects_with_reason(client: AsyncClient, mailer):
    app_id = (await _apply(client)).json()["id"]
    mailer.sent.clear()

    resp = await client.put(
        f"/api/applications/{app_id}/status",
        json={"status": "rejected", "reason": "Outside our service area"},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["status_reason"] == "Outside our service area"
    assert mailer.sent[0]["subject"] == "Application Update - Resolve AI"
    assert "Outside our service area" in mailer.sent[0]["html"]


@pytest.mark.asyncio
async def test_rejection_without_reason_uses_default(client: AsyncClient, mailer):
    app_id = (await _apply(client)).json()["id"]
    await client.put(f"/api/applications/{app_id}/status", json={"status": "rejected"}, headers=ADMIN_HEADERS)
    assert "Application did not meet criteria" in mailer.sent[-1]["html"]


@pytest.mark.asyncio
async def test_repeating_a_decision_sends_no_second_email(client: AsyncClient, mailer):
    app_id = (await _apply(client)).json()["id"]
    for _ in range(2):
        await client.put(f"/api/applications/{app_id}/status", json={"status": "approved"}, headers=ADMIN_HEADERS)
    assert [m["subject"] for m in mailer.sent].count("Case Approved - Resolve AI") == 1


@pytest.mark.asyncio
async def test_regular_user_cannot_review(client: AsyncClient):
    app_id = (await _apply(client, headers=AUTH_HEADERS)).json()["id"]
    resp = await client.put(f"/api/applications/{app_id}/status", json={"status": "approved"}, headers=AUTH_HEADERS)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_review_rejects_unknown_status(client: AsyncClient):
    app_id = (await _apply(client)).json()["id"]
    resp = await client.put(f"/api/applications/{app_id}/status", json={"status": "maybe"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_review_of_missing_application(client: AsyncClient):
    resp = await client.put("/api/applications/424242/status", json={"status": "approved"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_pending_applications_in_admin_stats(client: AsyncClient):
    await _apply(client)
    await _apply(client)
    stats = (await client.get("/api/admin/stats", headers=ADMIN_HEADERS)).json()
    assert stats["pending_applications"] == 2
