import pytest
from httpx import AsyncClient

from .helpers import register_and_login, start_timer


@pytest.mark.anyio
async def test_projects_and_tasks(client: AsyncClient) -> None:
    headers = await register_and_login(client, "pm@example.com", "ProjectPass123")

    created = await client.post(
        "/projects", json={"name": "Website", "client": "Acme"}, headers=headers
    )
    assert created.status_code == 201
    project = created.json()
    assert project["task_count"] == 0

    await client.post("/projects", json={"name": "Internal"}, headers=headers)

    task = await client.post(
        "/tasks",
        json={"project_id": project["id"], "title": "Landing page", "status": "todo"},
        headers=headers,
    )
    assert task.status_code == 201
    task_id = task.json()["id"]

    await start_timer(client, headers, project_id=project["id"], task_id=task_id)

    listing = await client.get("/projects", headers=headers)
    assert [item["name"] for item in listing.json()] == ["Internal", "Website"]
    website = next(item for item in listing.json() if item["name"] == "Website")
    assert website["task_count"] == 1
    assert website["timer_count"] == 1

    search = await client.get("/projects", params={"q": "acme"}, headers=headers)
    assert [item["id"] for item in search.json()] == [project["id"]]

    tasks = await client.get(
        "/tasks", params={"project_id": project["id"]}, headers=headers
    )
    assert [item["title"] for item in tasks.json()] == ["Landing page"]


@pytest.mark.anyio
async def test_task_in_foreign_project_is_not_found(client: AsyncClient) -> None:
    owner = await register_and_login(client, "own@example.com", "OwnerPass123")
    other = await register_and_login(client, "oth@example.com", "OtherPass123")
    project = await client.post("/projects", json={"name": "Secret"}, headers=owner)

    response = await client.post(
        "/tasks",
        json={"project_id": project.json()["id"], "title": "Sneaky"},
        headers=other,
    )
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"

    assert (await client.get("/projects", headers=other)).json() == []


@pytest.mark.anyio
async def test_timer_with_mismatched_task_is_invalid_input(client: AsyncClient) -> None:
    headers = await register_and_login(client, "mix@example.com", "MixPass1234")
    first = (await client.post("/projects", json={"name": "One"}, headers=headers)).json()
    second = (await client.post("/projects", json={"name": "Two"}, headers=headers)).json()
    task = (
        await client.post(
            "/tasks", json={"project_id": first["id"], "title": "T"}, headers=headers
        )
    ).json()

    response = await client.post(
        "/timers",
        json={"project_id": second["id"], "task_id": task["id"]},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {
        "detail": "Task does not belong to the specified project",
        "kind": "invalid_input",
    }

    timers = await client.get("/timers", headers=headers)
    assert timers.json()["total"] == 0
