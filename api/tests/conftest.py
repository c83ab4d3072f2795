from __future__ import annotations

import uuid
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from careers.core.slugs import slugify
from careers.main import app
from careers.services.catalog import FACET_WILDCARD, PageWindow, PositionFilterSpec
from careers.services.lifecycle import (
    TransitionNotAllowedError,
    can_delete_application,
    ensure_application_transition,
    ensure_lifecycle_transition,
    ensure_position_transition,
    is_catalog_visible,
)
from careers.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    get_repository,
)

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

# Mirrors the SQL orders: nulls last, ties broken by id ascending.
_SORT_KEYS = {
    "newest": ("created_at", True),
    "oldest": ("created_at", False),
    "title": ("title", False),
    "salary_high": ("salary_max", True),
    "salary_low": ("salary_min", False),
    "deadline": ("application_deadline", False),
}


def make_reference(kind: str, name: str, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "kind": kind,
        "name": name,
        "slug": slugify(name),
        "description": None,
        "sort_order": 0,
        "lifecycle": "active",
        "is_active": True,
        "attributes": {},
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    row.update(overrides)
    row["is_active"] = row["lifecycle"] == "active"
    return row


def make_position(title: str, *, minutes: int = 0, **overrides: Any) -> dict[str, Any]:
    created_at = BASE_TIME + timedelta(minutes=minutes)
    row = {
        "id": str(uuid.uuid4()),
        "title": title,
        "slug": slugify(title),
        "summary": None,
        "description": f"{title} description",
        "requirements": None,
        "benefits": None,
        "category": None,
        "location": None,
        "type": None,
        "level": None,
        "salary_min": None,
        "salary_max": None,
        "salary_currency": "USD",
        "salary_type": "yearly",
        "application_deadline": None,
        "start_date": None,
        "remote_allowed": False,
        "travel_required": False,
        "travel_percentage": 0,
        "featured": False,
        "urgent": False,
        "status": "open",
        "lifecycle": "active",
        "is_active": True,
        "views_count": 0,
        "applications_count": 0,
        "skills": [],
        "published_at": created_at,
        "created_at": created_at,
        "updated_at": created_at,
    }
    row.update(overrides)
    row["is_active"] = row["lifecycle"] == "active"
    return row


def summary(reference: dict[str, Any]) -> dict[str, Any]:
    return {"id": reference["id"], "name": reference["name"], "slug": reference["slug"]}


class FakeCareerRepository:
    """In-memory stand-in for PostgresRepository used by service and route tests."""

    def __init__(self) -> None:
        self.positions: list[dict[str, Any]] = []
        self.references: dict[str, list[dict[str, Any]]] = {
            "categories": [],
            "locations": [],
            "types": [],
            "levels": [],
            "skills": [],
        }
        self.applications: list[dict[str, Any]] = []
        self.activities: list[dict[str, Any]] = []
        self.view_updates: list[tuple[str, int]] = []
        self.search_calls: list[dict[str, Any]] = []
        self.failure: Exception | None = None
        self.view_failure: Exception | None = None
        self.closed = False
        self._activity_seq = 0

    def _maybe_fail(self) -> None:
        if self.failure is not None:
            raise self.failure

    async def close(self) -> None:
        self.closed = True

    # Positions

    async def search_positions(
        self,
        spec: PositionFilterSpec,
        *,
        sort: str,
        window: PageWindow,
        catalog_only: bool = True,
    ) -> tuple[list[dict[str, Any]], int]:
        self._maybe_fail()
        self.search_calls.append({"spec": spec, "sort": sort, "window": window, "catalog_only": catalog_only})
        rows = [row for row in self.positions if self._matches(row, spec, catalog_only)]
        rows = self._sort(rows, sort)
        return rows[window.offset : window.offset + window.limit], len(rows)

    async def list_recent_catalog_positions(
        self,
        *,
        limit: int,
        category_id: str | None = None,
        exclude_category_id: str | None = None,
        exclude_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        self._maybe_fail()
        excluded = set(exclude_ids or [])
        rows = []
        for row in self.positions:
            if not is_catalog_visible(status=row["status"], lifecycle=row["lifecycle"]):
                continue
            row_category = row["category"]["id"] if row["category"] else None
            if category_id and row_category != category_id:
                continue
            if exclude_category_id and row_category == exclude_category_id:
                continue
            if row["id"] in excluded:
                continue
            rows.append(row)
        return self._sort(rows, "newest")[:limit]

    async def list_featured_positions(self, *, limit: int) -> list[dict[str, Any]]:
        self._maybe_fail()
        rows = [
            row
            for row in self.positions
            if row["featured"] and is_catalog_visible(status=row["status"], lifecycle=row["lifecycle"])
        ]
        return self._sort(rows, "newest")[:limit]

    async def get_catalog_position_by_slug(self, slug: str) -> dict[str, Any] | None:
        self._maybe_fail()
        for row in self.positions:
            if row["slug"] == slug and is_catalog_visible(status=row["status"], lifecycle=row["lifecycle"]):
                return dict(row)
        return None

    async def get_position(self, position_id: str) -> dict[str, Any]:
        self._maybe_fail()
        return dict(self._position(position_id))

    async def record_position_view(self, *, position_id: str, views_count: int) -> None:
        if self.view_failure is not None:
            raise self.view_failure
        self.view_updates.append((position_id, views_count))
        self._position(position_id)["views_count"] = views_count

    async def create_position(self, fields: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail()
        slug = fields.get("slug") or slugify(fields["title"])
        if any(row["slug"] == slug for row in self.positions):
            raise RepositoryConflictError("position already exists")
        row = make_position(
            fields["title"],
            slug=slug,
            status=fields.get("status") or "draft",
            published_at=None,
            featured=fields.get("featured", False),
            remote_allowed=fields.get("remote_allowed", False),
            salary_min=fields.get("salary_min"),
            salary_max=fields.get("salary_max"),
        )
        if row["status"] == "open":
            row["published_at"] = datetime.now(timezone.utc)
        self.positions.append(row)
        return dict(row)

    async def update_position(self, position_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        row = self._position(position_id)
        row.update({key: value for key, value in fields.items() if key in row})
        return dict(row)

    async def set_position_status(self, position_id: str, status: str) -> dict[str, Any]:
        row = self._position(position_id)
        try:
            ensure_position_transition(row["status"], status)
        except TransitionNotAllowedError as exc:
            raise RepositoryConflictError(str(exc)) from exc
        row["status"] = status
        if status == "open" and row["published_at"] is None:
            row["published_at"] = datetime.now(timezone.utc)
        return dict(row)

    async def set_position_lifecycle(self, position_id: str, lifecycle: str) -> dict[str, Any]:
        row = self._position(position_id)
        try:
            ensure_lifecycle_transition(row["lifecycle"], lifecycle)
        except TransitionNotAllowedError as exc:
            raise RepositoryConflictError(str(exc)) from exc
        row["lifecycle"] = lifecycle
        row["is_active"] = lifecycle == "active"
        return dict(row)

    async def replace_position_skills(self, position_id: str, skills: list[dict[str, Any]]) -> dict[str, Any]:
        row = self._position(position_id)
        by_id = {skill["id"]: skill for skill in self.references["skills"]}
        row["skills"] = [
            {
                "skill_id": item["skill_id"],
                "name": by_id[item["skill_id"]]["name"],
                "slug": by_id[item["skill_id"]]["slug"],
                "level": item.get("level") or "required",
                "proficiency": item.get("proficiency"),
            }
            for item in skills
        ]
        return dict(row)

    # Reference catalog

    async def list_reference(self, kind: str, *, include_retired: bool = False) -> list[dict[str, Any]]:
        self._maybe_fail()
        rows = [row for row in self.references[kind] if include_retired or row["lifecycle"] == "active"]
        return sorted(rows, key=lambda row: (row["sort_order"], row["name"]))

    async def get_reference(self, kind: str, reference_id: str) -> dict[str, Any]:
        return dict(self._reference(kind, reference_id))

    async def create_reference(
        self,
        kind: str,
        *,
        name: str,
        description: str | None,
        sort_order: int | None,
        attributes: dict[str, Any],
    ) -> dict[str, Any]:
        self._maybe_fail()
        slug = slugify(name)
        if any(row["slug"] == slug for row in self.references[kind]):
            raise RepositoryConflictError(f"{kind} already exists")
        if sort_order is None:
            sort_order = max((row["sort_order"] for row in self.references[kind]), default=0) + 1
        row = make_reference(kind, name, description=description, sort_order=sort_order, attributes=attributes)
        self.references[kind].append(row)
        return dict(row)

    async def update_reference(self, kind: str, reference_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        row = self._reference(kind, reference_id)
        if fields.get("name"):
            row["name"] = fields["name"]
            row["slug"] = slugify(fields["name"])
        for key in ("description", "sort_order", "attributes"):
            if key in fields and fields[key] is not None:
                row[key] = fields[key]
        return dict(row)

    async def set_reference_lifecycle(self, kind: str, reference_id: str, lifecycle: str) -> dict[str, Any]:
        row = self._reference(kind, reference_id)
        try:
            ensure_lifecycle_transition(row["lifecycle"], lifecycle)
        except TransitionNotAllowedError as exc:
            raise RepositoryConflictError(str(exc)) from exc
        row["lifecycle"] = lifecycle
        row["is_active"] = lifecycle == "active"
        return dict(row)

    async def count_reference_usage(self, kind: str, reference_id: str) -> int:
        self._maybe_fail()
        self._reference(kind, reference_id)
        if kind == "skills":
            return sum(
                1 for row in self.positions if any(skill["skill_id"] == reference_id for skill in row["skills"])
            )
        field = {"categories": "category", "locations": "location", "types": "type", "levels": "level"}[kind]
        return sum(1 for row in self.positions if row[field] and row[field]["id"] == reference_id)

    async def delete_reference(self, kind: str, reference_id: str) -> None:
        usage = await self.count_reference_usage(kind, reference_id)
        if usage > 0:
            raise RepositoryConflictError(f"{kind} entry is still referenced by {usage} positions")
        self.references[kind] = [row for row in self.references[kind] if row["id"] != reference_id]

    # Applications

    async def create_application(self, fields: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail()
        position = next((row for row in self.positions if row["id"] == fields["position_id"]), None)
        if position is None or not is_catalog_visible(status=position["status"], lifecycle=position["lifecycle"]):
            raise RepositoryNotFoundError("position is not accepting applications")
        now = datetime.now(timezone.utc)
        row = {
            "id": str(uuid.uuid4()),
            "position": {"id": position["id"], "title": position["title"], "slug": position["slug"]},
            "notes": None,
            "status": "submitted",
            "applied_at": now,
            "last_activity_at": now,
            "created_at": now,
            "updated_at": now,
            **fields,
        }
        self.applications.append(row)
        self._append_activity(row["id"], "created", None, "submitted", "Application submitted", None)
        position["applications_count"] += 1
        return dict(row)

    async def list_applications(
        self,
        *,
        position_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        self._maybe_fail()
        rows = [
            row
            for row in self.applications
            if (position_id is None or row["position_id"] == position_id) and (status is None or row["status"] == status)
        ]
        rows.sort(key=lambda row: row["applied_at"], reverse=True)
        return [dict(row) for row in rows[offset : offset + limit]]

    async def get_application(self, application_id: str) -> dict[str, Any]:
        self._maybe_fail()
        return dict(self._application(application_id))

    async def transition_application(self, *, application_id: str, status: str, notes: str | None) -> dict[str, Any]:
        self._maybe_fail()
        row = self._application(application_id)
        try:
            ensure_application_transition(row["status"], status)
        except TransitionNotAllowedError as exc:
            raise RepositoryConflictError(str(exc)) from exc
        previous = row["status"]
        row["status"] = status
        row["last_activity_at"] = max(row["last_activity_at"], datetime.now(timezone.utc))
        if notes is not None:
            row["notes"] = notes
        self._append_activity(
            application_id,
            "status_change",
            previous,
            status,
            f"Status changed from {previous} to {status}",
            notes,
        )
        return dict(row)

    async def delete_application(self, application_id: str) -> None:
        self._maybe_fail()
        row = self._application(application_id)
        if not can_delete_application(row["status"]):
            raise RepositoryConflictError(f"application in status {row['status']} cannot be deleted")
        self.applications.remove(row)
        self._append_activity(application_id, "deleted", row["status"], None, "Application deleted", None)

    async def list_application_activities(self, application_id: str) -> list[dict[str, Any]]:
        self._maybe_fail()
        rows = [row for row in self.activities if row["application_id"] == application_id]
        return sorted(rows, key=lambda row: (row["created_at"], row["id"]))

    # Helpers

    def add_position(self, title: str, **overrides: Any) -> dict[str, Any]:
        row = make_position(title, **overrides)
        self.positions.append(row)
        return row

    def add_reference(self, kind: str, name: str, **overrides: Any) -> dict[str, Any]:
        row = make_reference(kind, name, **overrides)
        self.references[kind].append(row)
        return row

    def _append_activity(
        self,
        application_id: str,
        activity_type: str,
        old_status: str | None,
        new_status: str | None,
        description: str,
        notes: str | None,
    ) -> None:
        self._activity_seq += 1
        self.activities.append(
            {
                "id": self._activity_seq,
                "application_id": application_id,
                "activity_type": activity_type,
                "old_status": old_status,
                "new_status": new_status,
                "description": description,
                "notes": notes,
                "created_at": datetime.now(timezone.utc),
            }
        )

    def _position(self, position_id: str) -> dict[str, Any]:
        for row in self.positions:
            if row["id"] == position_id:
                return row
        raise RepositoryNotFoundError("position not found")

    def _reference(self, kind: str, reference_id: str) -> dict[str, Any]:
        for row in self.references[kind]:
            if row["id"] == reference_id:
                return row
        raise RepositoryNotFoundError(f"{kind} entry not found")

    def _application(self, application_id: str) -> dict[str, Any]:
        for row in self.applications:
            if row["id"] == application_id:
                return row
        raise RepositoryNotFoundError("application not found")

    @staticmethod
    def _matches(row: dict[str, Any], spec: PositionFilterSpec, catalog_only: bool) -> bool:
        if catalog_only and not is_catalog_visible(status=row["status"], lifecycle=row["lifecycle"]):
            return False
        if not catalog_only and spec.status and row["status"] != spec.status:
            return False
        for field_name, key in (
            ("category", "category"),
            ("location", "location"),
            ("position_type", "type"),
            ("level", "level"),
        ):
            facet = (getattr(spec, field_name) or "").strip()
            if facet and facet.lower() != FACET_WILDCARD:
                if row[key] is None or row[key]["slug"] != facet:
                    return False
        search = (spec.search or "").strip().lower()
        if search:
            haystack = " ".join(filter(None, [row["title"], row["description"], row["summary"]])).lower()
            if search not in haystack:
                return False
        if spec.remote is not None and row["remote_allowed"] != spec.remote:
            return False
        if spec.featured is not None and row["featured"] != spec.featured:
            return False
        upper = row["salary_max"] if row["salary_max"] is not None else row["salary_min"]
        lower = row["salary_min"] if row["salary_min"] is not None else row["salary_max"]
        if spec.salary_min is not None and (upper is None or upper < spec.salary_min):
            return False
        if spec.salary_max is not None and (lower is None or lower > spec.salary_max):
            return False
        return True

    @staticmethod
    def _sort(rows: list[dict[str, Any]], sort: str) -> list[dict[str, Any]]:
        key, descending = _SORT_KEYS.get(sort, _SORT_KEYS["newest"])
        ordered = sorted(rows, key=lambda row: row["id"])
        present = [row for row in ordered if row[key] is not None]
        missing = [row for row in ordered if row[key] is None]
        return sorted(present, key=lambda row: row[key], reverse=descending) + missing


@pytest.fixture
def fake_repository() -> FakeCareerRepository:
    return FakeCareerRepository()


@pytest.fixture
def client(fake_repository: FakeCareerRepository) -> Iterator[TestClient]:
    app.dependency_overrides[get_repository] = lambda: fake_repository
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
