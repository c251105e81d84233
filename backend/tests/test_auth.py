"""Tests for authentication endpoints and helpers."""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bbm.auth import tokens
from bbm.auth.deps import location_scope
from bbm.auth.tokens import consume_refresh_token, create_refresh_token, rotate_refresh_token
from bbm.config import settings
from bbm.models.enums import Location, UserRole
from bbm.models.refresh_token import RefreshToken
from bbm.models.system_log import LogAction, SystemLog
from bbm.models.user import User

from conftest import TEST_PASSWORD, bearer, make_user


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD):
    return await client.post("/auth/login", json={"email": email, "password": password})


@pytest.mark.auth
@pytest.mark.asyncio
class TestAuthEndpoints:
    """Test authentication endpoints."""

    async def test_register_creates_operational_user(self, client: AsyncClient):
        response = await client.post(
            "/auth/register",
            json={
                "email": "newuser@example.com",
                "password": "SecurePassword123!",
                "name": "New User",
                "location": "TUG_ASSIST",
            },
        )

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "newuser@example.com"
        assert user["role"] == UserRole.OPERATIONAL
        assert user["location"] == "TUG_ASSIST"
        assert "hashed_password" not in user

    async def test_register_duplicate_email(self, client: AsyncClient, admin_user: User):
        response = await client.post(
            "/auth/register",
            json={"email": admin_user.email, "password": "AnotherPassword1", "name": "Dup"},
        )

        assert response.status_code == 400
        assert "already registered" in response.json()["error"]["message"].lower()

    async def test_register_short_password(self, client: AsyncClient):
        response = await client.post(
            "/auth/register",
            json={"email": "short@example.com", "password": "abc", "name": "Short"},
        )
        assert response.status_code == 422

    async def test_login_sets_refresh_cookie(self, client: AsyncClient, admin_user: User):
        response = await login(client, admin_user.email)

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == admin_user.email
        assert "refresh_token" not in data

        set_cookie = response.headers["set-cookie"]
        assert f"{settings.refresh_cookie_name}=" in set_cookie
        assert "httponly" in set_cookie.lower()

    async def test_login_wrong_password_is_audited(
        self, client: AsyncClient, db_session: AsyncSession, admin_user: User
    ):
        response = await login(client, admin_user.email, "wrongpassword")

        assert response.status_code == 401
        result = await db_session.execute(
            select(SystemLog).where(SystemLog.action == LogAction.LOGIN_FAILED)
        )
        entry = result.scalar_one()
        assert entry.user_id == admin_user.id
        assert admin_user.email in entry.details

    async def test_login_unknown_email(self, client: AsyncClient):
        response = await login(client, "nobody@example.com")
        assert response.status_code == 401

    async def test_login_inactive_user_is_forbidden(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        user = await make_user(db_session, "gone@example.com", "Gone", is_active=False)

        response = await login(client, user.email)

        assert response.status_code == 403

    async def test_get_current_user(self, client: AsyncClient, admin_user: User):
        response = await client.get("/auth/me", headers=bearer(admin_user))

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["id"] == admin_user.id
        assert user["role"] == UserRole.ADMIN

    async def test_me_rejects_garbage_token(self, client: AsyncClient):
        response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_refresh_rotates_cookie(self, client: AsyncClient, admin_user: User):
        await login(client, admin_user.email)
        old_cookie = client.cookies.get(settings.refresh_cookie_name)

        response = await client.post("/auth/refresh")

        assert response.status_code == 200
        assert response.json()["access_token"]
        new_cookie = client.cookies.get(settings.refresh_cookie_name)
        assert new_cookie and new_cookie != old_cookie

        # The old token was consumed by the rotation
        client.cookies.clear()
        replay = await client.post(
            "/auth/refresh",
            headers={"Cookie": f"{settings.refresh_cookie_name}={old_cookie}"},
        )
        assert replay.status_code == 401

    async def test_refresh_without_cookie(self, client: AsyncClient):
        response = await client.post("/auth/refresh")
        assert response.status_code == 401

    async def test_logout_revokes_refresh_token(
        self, client: AsyncClient, db_session: AsyncSession, admin_user: User
    ):
        access_token = (await login(client, admin_user.email)).json()["access_token"]

        response = await client.post(
            "/auth/logout", headers={"Authorization": f"Bearer {access_token}"}
        )

        assert response.status_code == 200
        remaining = await db_session.execute(
            select(RefreshToken).where(RefreshToken.user_id == admin_user.id)
        )
        assert remaining.scalars().all() == []
        assert (await client.post("/auth/refresh")).status_code == 401

    async def test_deactivated_user_token_stops_working(
        self, client: AsyncClient, db_session: AsyncSession, operator_user: User
    ):
        headers = bearer(operator_user)
        operator_user.is_active = False
        await db_session.commit()

        response = await client.get("/auth/me", headers=headers)
        assert response.status_code == 401


@pytest.mark.unit
class TestPasswordHashing:
    """Test password hashing utilities."""

    def test_hash_password(self):
        from bbm.auth.password import hash_password, verify_password

        password = "MySecurePassword123!"
        hashed = hash_password(password)

        assert hashed != password
        assert verify_password(password, hashed)
        assert not verify_password("WrongPassword", hashed)

    def test_verify_against_malformed_hash(self):
        from bbm.auth.password import verify_password

        assert not verify_password("anything", "not-a-bcrypt-hash")


@pytest.mark.unit
class TestJWTTokens:
    """Test JWT token generation and validation."""

    def test_create_access_token(self):
        from bbm.auth.jwt import create_access_token, decode_token

        token = create_access_token(
            user_id=7, email="ops@example.com", role=UserRole.OPERATIONAL, location="GENSET"
        )
        payload = decode_token(token)

        assert payload["sub"] == "7"
        assert payload["email"] == "ops@example.com"
        assert payload["role"] == 2
        assert payload["location"] == "GENSET"
        assert payload["type"] == "access"

    def test_expired_token_decodes_to_empty(self):
        from bbm.auth.jwt import create_access_token, decode_token

        token = create_access_token(
            user_id=1, email="a@example.com", role=1, expires_delta=timedelta(seconds=-5)
        )
        assert decode_token(token) == {}


@pytest.mark.asyncio
class TestRefreshTokenStore:

    async def test_expired_token_is_deleted_on_use(
        self, db_session: AsyncSession, admin_user: User
    ):
        token = await create_refresh_token(
            db_session, admin_user.id, expires_in=timedelta(seconds=-1)
        )

        assert await rotate_refresh_token(db_session, token) is None

        result = await db_session.execute(select(RefreshToken))
        assert result.scalars().all() == []

    async def test_unknown_token(self, db_session: AsyncSession):
        assert await rotate_refresh_token(db_session, "nope") is None

    async def test_rotation_returns_owner(self, db_session: AsyncSession, admin_user: User):
        token = await create_refresh_token(db_session, admin_user.id)

        new_token, user_id = await rotate_refresh_token(db_session, token)

        assert user_id == admin_user.id
        assert new_token != token
        stored = await db_session.execute(select(RefreshToken.token))
        assert stored.scalars().all() == [new_token]

    async def test_token_is_consumed_once(self, db_session: AsyncSession, admin_user: User):
        token = await create_refresh_token(db_session, admin_user.id)
        row = (await db_session.execute(
            select(RefreshToken).where(RefreshToken.token == token)
        )).scalar_one()

        assert await consume_refresh_token(db_session, row.id) is True
        assert await consume_refresh_token(db_session, row.id) is False

    async def test_losing_a_concurrent_rotation_mints_nothing(
        self, db_session: AsyncSession, admin_user: User, monkeypatch
    ):
        token = await create_refresh_token(db_session, admin_user.id)
        original = tokens.consume_refresh_token

        async def consumed_elsewhere(db, token_id):
            # Another refresh with the same cookie deletes the row first
            await db.execute(delete(RefreshToken).where(RefreshToken.id == token_id))
            return await original(db, token_id)

        monkeypatch.setattr(tokens, "consume_refresh_token", consumed_elsewhere)

        assert await rotate_refresh_token(db_session, token) is None
        remaining = await db_session.execute(select(RefreshToken))
        assert remaining.scalars().all() == []


@pytest.mark.unit
class TestLocationScope:

    def test_admin_sees_what_they_ask_for(self):
        admin = User(role=UserRole.ADMIN, location=None)
        assert location_scope(admin) is None
        assert location_scope(admin, Location.TUG_ASSIST) == Location.TUG_ASSIST

    def test_assigned_operator_is_confined(self):
        operator = User(role=UserRole.OPERATIONAL, location=Location.GENSET)
        assert location_scope(operator, Location.TUG_ASSIST) == Location.GENSET
        assert location_scope(operator) == Location.GENSET

    def test_unassigned_operator_sees_both(self):
        operator = User(role=UserRole.OPERATIONAL, location=None)
        assert location_scope(operator) is None
