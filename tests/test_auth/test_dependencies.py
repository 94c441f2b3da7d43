"""Tests for the auth dependencies, exercised through /api/v1/auth/me."""

import uuid
from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.auth.jwt import create_access_token, create_token_pair
from hotel_booking.models.user import User

ME = "/api/v1/auth/me"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestGetCurrentUser:
    async def test_expired_token_rejected(self, client: AsyncClient, guest_user: User):
        token = create_access_token({"sub": str(guest_user.id)}, expires_delta=timedelta(seconds=-1))
        response = await client.get(ME, headers=_bearer(token))
        assert response.status_code == 401

    async def test_malformed_token_rejected(self, client: AsyncClient):
        response = await client.get(ME, headers=_bearer("not.a.valid.jwt"))
        assert response.status_code == 401

    async def test_refresh_token_rejected(self, client: AsyncClient, guest_user: User):
        tokens = create_token_pair(str(guest_user.id))
        response = await client.get(ME, headers=_bearer(tokens["refresh_token"]))
        assert response.status_code == 401

    async def test_non_uuid_subject_rejected(self, client: AsyncClient):
        response = await client.get(ME, headers=_bearer(create_access_token({"sub": "user-123"})))
        assert response.status_code == 401

    async def test_unknown_user_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": str(uuid.uuid4())})
        response = await client.get(ME, headers=_bearer(token))
        assert response.status_code == 401

    async def test_inactive_user_rejected(self, client: AsyncClient, db_session: AsyncSession, guest_user: User):
        guest_user.is_active = False
        await db_session.flush()

        token = create_access_token({"sub": str(guest_user.id)})
        response = await client.get(ME, headers=_bearer(token))
        assert response.status_code == 401


class TestRequireAdmin:
    async def test_admin_passes(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/v1/bookings", headers=admin_headers)
        assert response.status_code == 200

    async def test_guest_is_forbidden(self, client: AsyncClient, guest_headers: dict):
        response = await client.get("/api/v1/bookings", headers=guest_headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"
