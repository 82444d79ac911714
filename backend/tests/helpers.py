from typing import Dict, Optional

from httpx import AsyncClient


async def register_and_login(
    client: AsyncClient, email: str, password: str, name: Optional[str] = None
) -> Dict[str, str]:
    register = await client.post(
        "/auth/register", json={"email": email, "password": password, "name": name}
    )
    assert register.status_code == 201
    login = await client.post(
        "/auth/login", json={"email": email, "password": password}
    )
    assert login.status_code == 200
    token = login.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


async def start_timer(client: AsyncClient, headers: Dict[str, str], **payload) -> str:
    response = await client.post("/timers", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()["timer"]["id"]
