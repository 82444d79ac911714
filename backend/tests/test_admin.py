from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timequest.models import User

from .conftest import FakeClock
from .helpers import register_and_login, start_timer


@pytest.mark.anyio
async def test_admin_summary_counts(
    client: AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FakeClock,
) -> None:
    admin_headers = await register_and_login(
        client, "admin@example.com", "AdminPass123"
    )
    admin_profile = await client.get("/auth/me", headers=admin_headers)
    admin_id = admin_profile.json()["id"]

    async with session_factory() as session:
        admin_user = await session.get(User, admin_id)
        assert admin_user is not None
        admin_user.is_admin = True
        await session.commit()

    user_headers = await register_and_login(client, "member@example.com", "UserPass123")

    await start_timer(client, admin_headers, note="Admin Run")

    completed_id = await start_timer(client, admin_headers, note="Admin Done")
    clock.advance(minutes=2)
    await client.post(f"/timers/{completed_id}/complete", headers=admin_headers)

    cancel_id = await start_timer(client, admin_headers, note="Admin Cancel")
    await client.post(f"/timers/{cancel_id}/cancel", headers=admin_headers)

    paused_id = await start_timer(client, user_headers, note="User Pause")
    await client.post(f"/timers/{paused_id}/pause", headers=user_headers)
    await start_timer(client, user_headers, note="User Run")

    summary = await client.get("/admin/timers/summary", headers=admin_headers)
    assert summary.status_code == 200
    assert summary.json() == {
        "total": 5,
        "running": 2,  # admin running + user running
        "paused": 1,
        "completed": 1,
        "canceled": 1,
        "active_users": 2,
    }

    forbidden = await client.get("/admin/timers/summary", headers=user_headers)
    assert forbidden.status_code == 403


@pytest.mark.anyio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("http://testserver/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
