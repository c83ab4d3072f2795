from __future__ import annotations

import asyncio
import os
from collections.abc import Coroutine
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest
from fastapi.testclient import TestClient

from careers.core.config import get_settings
from careers.main import app
from careers.services.repository import get_repository

T = TypeVar("T")


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("CAREERS_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require CAREERS_DATABASE_URL or DATABASE_URL")
    return url


@pytest.fixture(autouse=True)
def reset_tables(database_url: str) -> None:
    _run(_truncate_career_tables(database_url))


@pytest.fixture
def api_client(database_url: str) -> TestClient:
    os.environ["CAREERS_DATABASE_URL"] = database_url
    get_settings.cache_clear()
    get_repository.cache_clear()

    with TestClient(app) as client:
        yield client

    get_repository.cache_clear()
    get_settings.cache_clear()


def test_position_catalog_and_application_lifecycle(api_client: TestClient, database_url: str) -> None:
    engineering = api_client.post("/admin/catalog/categories", json={"name": "Engineering"}).json()
    design = api_client.post("/admin/catalog/categories", json={"name": "Design"}).json()
    assert engineering["sort_order"] == 1
    assert design["sort_order"] == 2

    created = api_client.post(
        "/admin/positions",
        json={
            "title": "Backend Engineer",
            "category_id": engineering["id"],
            "salary_min": 90000,
            "salary_max": 130000,
            "status": "open",
        },
    )
    assert created.status_code == 201
    position = created.json()
    assert position["published_at"] is not None

    for index in range(2):
        api_client.post(
            "/admin/positions",
            json={"title": f"Engineer {index}", "category_id": engineering["id"], "status": "open"},
        )
    api_client.post("/admin/positions", json={"title": "Designer", "category_id": design["id"], "status": "open"})
    api_client.post("/admin/positions", json={"title": "Draft Engineer", "category_id": engineering["id"]})

    page = api_client.get("/positions", params={"category": "engineering", "limit": 2, "sort": "title"}).json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert [row["title"] for row in page["positions"]] == ["Backend Engineer", "Engineer 0"]

    salary_page = api_client.get("/positions", params={"salary_min": 120000}).json()
    assert [row["title"] for row in salary_page["positions"]] == ["Backend Engineer"]

    wildcard = api_client.get("/positions", params={"search": "%"}).json()
    assert wildcard["total"] == 0

    detail = api_client.get("/positions/backend-engineer").json()
    assert detail["views_count"] == 1
    assert detail["category"]["slug"] == "engineering"

    related = api_client.get(
        f"/positions/{position['id']}/related",
        params={"category_id": engineering["id"]},
    ).json()
    assert [row["title"] for row in related] == ["Engineer 1", "Engineer 0", "Designer"]

    submitted = api_client.post(
        "/applications",
        json={
            "position_id": position["id"],
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
        },
    )
    assert submitted.status_code == 201
    application_id = submitted.json()["application_id"]

    assert api_client.post(
        f"/admin/applications/{application_id}/transitions", json={"status": "reviewing"}
    ).status_code == 200
    assert api_client.post(
        f"/admin/applications/{application_id}/transitions", json={"status": "offered"}
    ).status_code == 409
    assert api_client.delete(f"/admin/applications/{application_id}").status_code == 409
    assert api_client.post(
        f"/admin/applications/{application_id}/transitions", json={"status": "rejected"}
    ).status_code == 200
    assert api_client.delete(f"/admin/applications/{application_id}").status_code == 204

    activities = api_client.get(f"/admin/applications/{application_id}/activities").json()
    assert [(row["activity_type"], row["old_status"], row["new_status"]) for row in activities] == [
        ("created", None, "submitted"),
        ("status_change", "submitted", "reviewing"),
        ("status_change", "reviewing", "rejected"),
        ("deleted", "rejected", None),
    ]

    applications_count = _run(
        _fetchval(database_url, "select applications_count from positions where id = $1::uuid", position["id"])
    )
    assert applications_count == 1

    refused = api_client.delete(f"/admin/catalog/categories/{engineering['id']}")
    assert refused.status_code == 409
    assert refused.json()["detail"]["reason"] == "in_use"


def test_activity_rows_cannot_be_rewritten(api_client: TestClient, database_url: str) -> None:
    api_client.post("/admin/positions", json={"title": "Analyst", "status": "open"})
    position = api_client.get("/positions/analyst").json()
    application_id = api_client.post(
        "/applications",
        json={"position_id": position["id"], "first_name": "A", "last_name": "B", "email": "a@b.co"},
    ).json()["application_id"]

    with pytest.raises(asyncpg.PostgresError):
        _run(_execute(database_url, "delete from application_activities where application_id = $1::uuid", application_id))


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


async def _fetchval(database_url: str, query: str, *args: Any) -> Any:
    conn = await asyncpg.connect(database_url)
    try:
        return await conn.fetchval(query, *args)
    finally:
        await conn.close()


async def _execute(database_url: str, query: str, *args: Any) -> str:
    conn = await asyncpg.connect(database_url)
    try:
        return await conn.execute(query, *args)
    finally:
        await conn.close()


async def _truncate_career_tables(database_url: str) -> None:
    conn = await asyncpg.connect(database_url)
    try:
        await conn.execute(
            """
            truncate table
              application_activities,
              applications,
              position_skills,
              positions,
              categories,
              locations,
              position_types,
              levels,
              skills
            restart identity cascade
            """
        )
    finally:
        await conn.close()
