from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import status

from app.config import local_today
from app.core.security import create_access_token
from tests.factories import auth_headers, create_admin, create_companion, create_profile

BOOKINGS = "/api/v1/bookings"


@pytest.fixture
async def renter(db):
    return await create_profile(db, full_name="Rina Renter", city="Jakarta", interests=["music"])


@pytest.fixture
async def companion(db):
    return await create_companion(
        db, full_name="Citra Companion", city="Jakarta", interests=["music"], hourly_rate=120_000
    )


@pytest.fixture
async def admin(db):
    return await create_admin(db, full_name="Ops Admin")


def booking_payload(companion, days_ahead=1, hours=2, **extra):
    return {
        "companion_id": str(companion.user_id),
        "booking_date": (local_today() + timedelta(days=days_ahead)).isoformat(),
        "booking_time": "19:00:00",
        "duration_hours": hours,
        **extra,
    }


@pytest.fixture
async def booking(client, renter, companion):
    response = await client.post(
        f"{BOOKINGS}/", json=booking_payload(companion), headers=auth_headers(renter)
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


# ==================== BASICS ====================


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in response.headers


async def test_requests_without_token_are_unauthenticated(client):
    response = await client.get(f"{BOOKINGS}/")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "unauthenticated"


async def test_token_for_unknown_user_is_rejected(client):
    token = create_access_token({"sub": str(uuid4())})
    headers = {"Authorization": f"Bearer {token}"}
    response = await client.get(f"{BOOKINGS}/", headers=headers)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.parametrize(
    "claims,expires",
    [
        ({"sub": "not-a-uuid"}, None),
        ({}, None),
        ({"sub": str(uuid4())}, timedelta(minutes=-5)),
    ],
)
async def test_malformed_or_expired_tokens_are_rejected(client, claims, expires):
    token = create_access_token(claims, expires_delta=expires)
    response = await client.get(f"{BOOKINGS}/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "unauthenticated"


async def test_suspended_user_is_rejected(client, db):
    suspended = await create_profile(db, is_active=False)
    response = await client.get(f"{BOOKINGS}/", headers=auth_headers(suspended))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ==================== BOOKINGS ====================


async def test_create_booking(booking, renter, companion):
    assert booking["status"] == "pending"
    assert booking["renter_id"] == str(renter.user_id)
    assert booking["companion_id"] == str(companion.user_id)
    assert booking["total_price"] == 240_000
    assert booking["payment_status"] == "unpaid"


async def test_create_booking_in_the_past_is_rejected(client, renter, companion):
    response = await client.post(
        f"{BOOKINGS}/",
        json=booking_payload(companion, days_ahead=-1),
        headers=auth_headers(renter),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_list_my_bookings_as_renter_and_companion(client, booking, renter, companion):
    as_renter = await client.get(f"{BOOKINGS}/", headers=auth_headers(renter))
    assert as_renter.status_code == status.HTTP_200_OK
    assert as_renter.json()["total"] == 1
    assert as_renter.json()["bookings"][0]["companion_name"] == "Citra Companion"

    as_companion = await client.get(
        f"{BOOKINGS}/", params={"as": "companion"}, headers=auth_headers(companion)
    )
    assert as_companion.json()["total"] == 1
    assert as_companion.json()["bookings"][0]["renter_name"] == "Rina Renter"

    companion_as_renter = await client.get(f"{BOOKINGS}/", headers=auth_headers(companion))
    assert companion_as_renter.json()["total"] == 0


async def test_companion_approves_then_detail_shows_history(client, booking, renter, companion):
    response = await client.post(
        f"{BOOKINGS}/{booking['id']}/approve",
        json={"notes": "Looking forward"},
        headers=auth_headers(companion),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "approved"

    detail = await client.get(f"{BOOKINGS}/{booking['id']}", headers=auth_headers(renter))
    assert detail.status_code == status.HTTP_200_OK
    history = detail.json()["status_history"]
    assert [h["status"] for h in history] == ["pending", "approved"]
    assert history[1]["notes"] == "Looking forward"


async def test_renter_cannot_approve(client, booking, renter):
    response = await client.post(
        f"{BOOKINGS}/{booking['id']}/approve", json={}, headers=auth_headers(renter)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    body = response.json()
    assert body["code"] == "unauthorized"
    assert body["retryable"] is False


async def test_reject_without_reason(client, booking, companion):
    response = await client.post(
        f"{BOOKINGS}/{booking['id']}/reject", json={"reason": "  "}, headers=auth_headers(companion)
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "missing_reason"


async def test_transitions_accept_requests_without_body(client, booking, renter, companion):
    approved = await client.post(
        f"{BOOKINGS}/{booking['id']}/approve", headers=auth_headers(companion)
    )
    assert approved.status_code == status.HTTP_200_OK
    assert approved.json()["status"] == "approved"

    cancelled = await client.post(f"{BOOKINGS}/{booking['id']}/cancel", headers=auth_headers(renter))
    assert cancelled.status_code == status.HTTP_200_OK
    assert cancelled.json()["status"] == "cancelled"


async def test_reject_without_body_needs_a_reason(client, booking, companion):
    response = await client.post(
        f"{BOOKINGS}/{booking['id']}/reject", headers=auth_headers(companion)
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "missing_reason"


async def test_double_cancel_is_invalid_transition(client, booking, renter):
    url = f"{BOOKINGS}/{booking['id']}/cancel"
    first = await client.post(url, json={"reason": "Sick"}, headers=auth_headers(renter))
    assert first.status_code == status.HTTP_200_OK
    assert first.json()["status"] == "cancelled"

    second = await client.post(url, json={}, headers=auth_headers(renter))
    assert second.status_code == status.HTTP_409_CONFLICT
    assert second.json()["code"] == "invalid_transition"

    history = await client.get(f"{BOOKINGS}/{booking['id']}/history", headers=auth_headers(renter))
    assert [h["status"] for h in history.json()] == ["pending", "cancelled"]


async def test_stranger_cannot_view_booking(client, booking, db):
    stranger = await create_profile(db)
    response = await client.get(f"{BOOKINGS}/{booking['id']}", headers=auth_headers(stranger))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "forbidden"


async def test_unknown_booking_is_not_found(client, renter):
    response = await client.get(f"{BOOKINGS}/{uuid4()}", headers=auth_headers(renter))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "not_found"


async def test_booking_stats(client, booking, companion):
    response = await client.get(f"{BOOKINGS}/stats", headers=auth_headers(companion))
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["pending_count"] == 1
    assert body["revenue_estimate"] == 240_000


# ==================== NOTIFICATIONS ====================


async def test_companion_is_notified_and_can_mark_read(client, booking, companion):
    headers = auth_headers(companion)
    listing = await client.get("/api/v1/notifications/", headers=headers)
    assert listing.status_code == status.HTTP_200_OK
    body = listing.json()
    assert body["unread_count"] == 1
    notification = body["notifications"][0]
    assert notification["type"] == "booking_request"
    assert notification["booking_id"] == booking["id"]

    mark = await client.patch(f"/api/v1/notifications/{notification['id']}/read", headers=headers)
    assert mark.status_code == status.HTTP_204_NO_CONTENT

    after = await client.get("/api/v1/notifications/", params={"unread_only": True}, headers=headers)
    assert after.json()["total"] == 0


async def test_cannot_mark_someone_elses_notification(client, booking, companion, renter):
    listing = await client.get("/api/v1/notifications/", headers=auth_headers(companion))
    notification_id = listing.json()["notifications"][0]["id"]
    response = await client.patch(
        f"/api/v1/notifications/{notification_id}/read", headers=auth_headers(renter)
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_mark_all_read(client, booking, renter, companion):
    await client.post(
        f"{BOOKINGS}/{booking['id']}/approve", json={}, headers=auth_headers(companion)
    )
    headers = auth_headers(renter)
    before = await client.get("/api/v1/notifications/", headers=headers)
    assert before.json()["unread_count"] == 1

    response = await client.post("/api/v1/notifications/read-all", headers=headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    after = await client.get("/api/v1/notifications/", headers=headers)
    assert after.json()["unread_count"] == 0
    assert after.json()["total"] == 1
    assert after.json()["notifications"][0]["read_at"] is not None


# ==================== SEARCH ====================


async def test_recommended_profiles(client, renter, companion, db):
    stranger = await create_companion(db, city="Medan")
    response = await client.get("/api/v1/search/recommended", headers=auth_headers(renter))
    assert response.status_code == status.HTTP_200_OK
    ranked = response.json()
    assert [p["user_id"] for p in ranked] == [str(companion.user_id), str(stranger.user_id)]
    assert ranked[0]["score"] == 5
    assert ranked[1]["score"] == 0


# ==================== ADMIN ====================


async def test_admin_endpoints_require_stored_admin_role(client, renter):
    response = await client.get("/api/v1/admin/dashboard", headers=auth_headers(renter))
    assert response.status_code == status.HTTP_403_FORBIDDEN


async def test_admin_dashboard(client, booking, admin):
    response = await client.get("/api/v1/admin/dashboard", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["total_bookings"] == 1
    assert body["pending_bookings"] == 1
    assert body["total_companions"] == 1


async def test_admin_approves_and_action_is_audited(client, booking, admin):
    headers = auth_headers(admin)
    response = await client.post(
        f"/api/v1/admin/bookings/{booking['id']}/approve",
        json={"notes": "Manually checked"},
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "approved"

    logs = await client.get("/api/v1/admin/audit-logs", headers=headers)
    assert logs.status_code == status.HTTP_200_OK
    entries = logs.json()
    assert len(entries) == 1
    assert entries[0]["action"] == "booking_approve"
    assert entries[0]["resource_id"] == booking["id"]


async def test_admin_booking_list_with_search(client, booking, admin):
    headers = auth_headers(admin)
    found = await client.get(
        "/api/v1/admin/bookings", params={"search": "rina"}, headers=headers
    )
    assert found.json()["total"] == 1

    missing = await client.get(
        "/api/v1/admin/bookings", params={"status": "approved"}, headers=headers
    )
    assert missing.json()["total"] == 0


async def test_admin_views_any_booking_detail(client, booking, admin):
    response = await client.get(f"{BOOKINGS}/{booking['id']}", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()["status_history"]) == 1


async def test_admin_verifies_and_suspends(client, companion, admin):
    headers = auth_headers(admin)
    verified = await client.post(f"/api/v1/admin/users/{companion.user_id}/verify", headers=headers)
    assert verified.status_code == status.HTTP_200_OK
    assert verified.json()["is_verified"] is True

    suspended = await client.post(
        f"/api/v1/admin/users/{companion.user_id}/suspend", headers=headers
    )
    assert suspended.json()["is_active"] is False

    users = await client.get("/api/v1/admin/users", headers=headers)
    assert [u["user_id"] for u in users.json()["companions"]] == [str(companion.user_id)]

    # Suspended accounts lose API access
    locked_out = await client.get(f"{BOOKINGS}/", headers=auth_headers(companion))
    assert locked_out.status_code == status.HTTP_401_UNAUTHORIZED
