from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from timequest.core.security import create_access_token, decode_access_token


@pytest.mark.anyio
async def test_register_and_login_flow(client: AsyncClient) -> None:
    email = "alice@example.com"
    password = "StrongPass123"

    register = await client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": "Alice"},
    )
    assert register.status_code == 201
    assert register.json()["access_token"]

    login = await client.post(
        "/auth/login",
        json={"email": email.upper(), "password": password},
    )
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["token_type"] == "bearer"

    profile = await client.get(
        "/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert profile.status_code == 200
    payload = profile.json()
    assert payload["email"] == email
    assert payload["name"] == "Alice"
    assert payload["xp"] == 0
    assert payload["level"] == 1


@pytest.mark.anyio
async def test_duplicate_registration_rejected(client: AsyncClient) -> None:
    body = {"email": "bob@example.com", "password": "StrongPass123"}
    assert (await client.post("/auth/register", json=body)).status_code == 201

    again = await client.post("/auth/register", json=body)
    assert again.status_code == 409


@pytest.mark.anyio
async def test_login_with_wrong_password(client: AsyncClient) -> None:
    await client.post(
        "/auth/register",
        json={"email": "carol@example.com", "password": "StrongPass123"},
    )
    login = await client.post(
        "/auth/login",
        json={"email": "carol@example.com", "password": "WrongPass123"},
    )
    assert login.status_code == 401


@pytest.mark.anyio
async def test_protected_route_requires_token(client: AsyncClient) -> None:
    response = await client.get("/timers")
    assert response.status_code == 401

    bogus = await client.get("/timers", headers={"Authorization": "Bearer nope"})
    assert bogus.status_code == 401


@pytest.mark.anyio
async def test_short_password_is_invalid_input(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/register", json={"email": "dave@example.com", "password": "short"}
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_input"
    assert "password" in response.json()["detail"]


@pytest.mark.anyio
async def test_expired_token_rejected(client: AsyncClient) -> None:
    await client.post(
        "/auth/register",
        json={"email": "erin@example.com", "password": "StrongPass123"},
    )
    login = await client.post(
        "/auth/login",
        json={"email": "erin@example.com", "password": "StrongPass123"},
    )
    token = login.json()["access_token"]
    user_id = decode_access_token(token)["sub"]

    stale = create_access_token(user_id, now=datetime(2020, 1, 1, tzinfo=timezone.utc))
    response = await client.get(
        "/auth/me", headers={"Authorization": f"Bearer {stale}"}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"
