from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from uuid import UUID

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from careers.core.config import get_settings
from careers.core.slugs import is_valid_slug, slugify
from careers.services.catalog import (
    CATALOG_VISIBLE_SQL,
    POSITION_COLUMNS_SQL,
    POSITION_FROM_SQL,
    PageWindow,
    PositionFilterSpec,
    compose_position_query,
)
from careers.services.lifecycle import (
    TransitionNotAllowedError,
    can_delete_application,
    ensure_application_transition,
    ensure_lifecycle_transition,
    ensure_position_transition,
)
from careers.services.reference import resolve_reference_table


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates state transition or uniqueness rules."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


class RepositoryWriteError(RepositoryError):
    """Raised when the database rejects a statement; keeps the server diagnostics."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail
        self.hint = hint

    @classmethod
    def from_postgres(cls, exc: asyncpg.PostgresError) -> RepositoryWriteError:
        return cls(
            getattr(exc, "message", None) or str(exc),
            code=getattr(exc, "sqlstate", None),
            detail=getattr(exc, "detail", None),
            hint=getattr(exc, "hint", None),
        )


POSITION_UUID_COLUMNS = {"category_id", "location_id", "type_id", "level_id"}
POSITION_REQUIRED_COLUMNS = {
    "title",
    "slug",
    "description",
    "salary_currency",
    "salary_type",
    "remote_allowed",
    "travel_required",
    "travel_percentage",
    "featured",
    "urgent",
}
POSITION_WRITABLE_COLUMNS = (
    "title",
    "slug",
    "summary",
    "description",
    "requirements",
    "benefits",
    "category_id",
    "location_id",
    "type_id",
    "level_id",
    "salary_min",
    "salary_max",
    "salary_currency",
    "salary_type",
    "application_deadline",
    "start_date",
    "remote_allowed",
    "travel_required",
    "travel_percentage",
    "featured",
    "urgent",
)
APPLICATION_INSERT_COLUMNS = (
    "position_id",
    "first_name",
    "last_name",
    "email",
    "phone",
    "linkedin_url",
    "portfolio_url",
    "github_url",
    "cover_letter",
    "resume_url",
    "additional_documents",
    "source",
)
APPLICATION_COLUMNS_SQL = """
select
  a.id::text as id,
  a.position_id::text as position_id,
  p.title as position_title,
  p.slug as position_slug,
  a.first_name,
  a.last_name,
  a.email,
  a.phone,
  a.linkedin_url,
  a.portfolio_url,
  a.github_url,
  a.cover_letter,
  a.resume_url,
  a.additional_documents,
  a.notes,
  a.source,
  a.status::text as status,
  a.applied_at,
  a.last_activity_at,
  a.created_at,
  a.updated_at
from applications a
left join positions p on p.id = a.position_id
"""
REFERENCE_COLUMNS_SQL = """
  id::text as id,
  name,
  slug,
  description,
  sort_order,
  lifecycle::text as lifecycle,
  attributes,
  created_at,
  updated_at
"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Positions

    async def search_positions(
        self,
        spec: PositionFilterSpec,
        *,
        sort: str,
        window: PageWindow,
        catalog_only: bool = True,
    ) -> tuple[list[dict[str, Any]], int]:
        query = compose_position_query(spec, sort=sort, window=window, catalog_only=catalog_only)
        rows_sql, rows_params = query.rows_statement()
        count_sql, count_params = query.count_statement()
        async with self._connection(entity="position") as conn:
            total = await conn.fetchval(count_sql, *count_params)
            rows = await conn.fetch(rows_sql, *rows_params)
        return [self._position_row_to_dict(row) for row in rows], int(total or 0)

    async def list_recent_catalog_positions(
        self,
        *,
        limit: int,
        category_id: str | None = None,
        exclude_category_id: str | None = None,
        exclude_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        conditions = [CATALOG_VISIBLE_SQL]
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if category_id:
            conditions.append(f"p.category_id = {bind(category_id)}::uuid")
        if exclude_category_id:
            conditions.append(f"p.category_id is distinct from {bind(exclude_category_id)}::uuid")
        if exclude_ids:
            conditions.append(f"not (p.id::text = any({bind(list(exclude_ids))}::text[]))")
        limit_token = bind(limit)

        async with self._connection(entity="position") as conn:
            rows = await conn.fetch(
                f"""
                {POSITION_COLUMNS_SQL}{POSITION_FROM_SQL}
                where {" and ".join(conditions)}
                order by p.created_at desc, p.id asc
                limit {limit_token}
                """,
                *params,
            )
        return [self._position_row_to_dict(row) for row in rows]

    async def list_featured_positions(self, *, limit: int) -> list[dict[str, Any]]:
        async with self._connection(entity="position") as conn:
            rows = await conn.fetch(
                f"""
                {POSITION_COLUMNS_SQL}{POSITION_FROM_SQL}
                where {CATALOG_VISIBLE_SQL} and p.featured
                order by p.created_at desc, p.id asc
                limit $1
                """,
                limit,
            )
        return [self._position_row_to_dict(row) for row in rows]

    async def get_catalog_position_by_slug(self, slug: str) -> dict[str, Any] | None:
        async with self._connection(entity="position") as conn:
            row = await conn.fetchrow(
                f"""
                {POSITION_COLUMNS_SQL}{POSITION_FROM_SQL}
                where p.slug = $1 and {CATALOG_VISIBLE_SQL}
                """,
                slug,
            )
            if not row:
                return None
            skills = await self._fetch_position_skills(conn=conn, position_id=row["id"])
        return self._position_row_to_dict(row, skills=skills)

    async def get_position(self, position_id: str) -> dict[str, Any]:
        position_id = self._ensure_id(position_id, "position")
        async with self._connection(entity="position") as conn:
            return await self._fetch_position(conn=conn, position_id=position_id)

    async def record_position_view(self, *, position_id: str, views_count: int) -> None:
        position_id = self._ensure_id(position_id, "position")
        # Last write wins: concurrent readers may overwrite each other's increment.
        async with self._connection(entity="position") as conn:
            await conn.execute(
                """
                update positions
                set views_count = $2
                where id = $1::uuid
                """,
                position_id,
                views_count,
            )

    async def create_position(self, fields: dict[str, Any]) -> dict[str, Any]:
        values = {key: fields.get(key) for key in POSITION_WRITABLE_COLUMNS if key in fields}
        values["slug"] = self._resolve_position_slug(values.get("slug"), values.get("title"))
        status = fields.get("status") or "draft"
        if status not in {"draft", "open"}:
            raise RepositoryValidationError("positions are created as draft or open")

        columns = list(values)
        placeholders = [self._placeholder(column, index) for index, column in enumerate(columns, start=1)]
        status_token = f"${len(columns) + 1}"
        async with self._connection(entity="position") as conn:
            position_id = await conn.fetchval(
                f"""
                insert into positions ({", ".join(columns)}, status, published_at)
                values (
                  {", ".join(placeholders)},
                  {status_token}::position_status,
                  case when {status_token}::position_status = 'open' then now() else null end
                )
                returning id::text
                """,
                *values.values(),
                status,
            )
            return await self._fetch_position(conn=conn, position_id=position_id)

    async def update_position(self, position_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        position_id = self._ensure_id(position_id, "position")
        values = {
            key: value
            for key, value in fields.items()
            if key in POSITION_WRITABLE_COLUMNS and (value is not None or key not in POSITION_REQUIRED_COLUMNS)
        }
        if "slug" in values:
            values["slug"] = self._resolve_position_slug(values["slug"], None)
        if "title" in values and not values["title"]:
            raise RepositoryValidationError("position title is required")

        async with self._connection(entity="position") as conn:
            if not values:
                return await self._fetch_position(conn=conn, position_id=position_id)
            assignments = [
                f"{column} = {self._placeholder(column, index)}" for index, column in enumerate(values, start=2)
            ]
            result = await conn.execute(
                f"""
                update positions
                set {", ".join(assignments)}
                where id = $1::uuid
                """,
                position_id,
                *values.values(),
            )
            if result.endswith(" 0"):
                raise RepositoryNotFoundError("position not found")
            return await self._fetch_position(conn=conn, position_id=position_id)

    async def set_position_status(self, position_id: str, status: str) -> dict[str, Any]:
        position_id = self._ensure_id(position_id, "position")
        async with self._connection(entity="position") as conn:
            async with conn.transaction():
                current = await conn.fetchval(
                    "select status::text from positions where id = $1::uuid",
                    position_id,
                )
                if current is None:
                    raise RepositoryNotFoundError("position not found")
                try:
                    ensure_position_transition(current, status)
                except TransitionNotAllowedError as exc:
                    raise RepositoryConflictError(str(exc)) from exc
                await conn.execute(
                    """
                    update positions
                    set
                      status = $2::position_status,
                      published_at = case
                        when $2::position_status = 'open' then coalesce(published_at, now())
                        else published_at
                      end
                    where id = $1::uuid
                    """,
                    position_id,
                    status,
                )
                return await self._fetch_position(conn=conn, position_id=position_id)

    async def set_position_lifecycle(self, position_id: str, lifecycle: str) -> dict[str, Any]:
        position_id = self._ensure_id(position_id, "position")
        async with self._connection(entity="position") as conn:
            async with conn.transaction():
                current = await conn.fetchval(
                    "select lifecycle::text from positions where id = $1::uuid",
                    position_id,
                )
                if current is None:
                    raise RepositoryNotFoundError("position not found")
                try:
                    ensure_lifecycle_transition(current, lifecycle)
                except TransitionNotAllowedError as exc:
                    raise RepositoryConflictError(str(exc)) from exc
                await conn.execute(
                    "update positions set lifecycle = $2::record_lifecycle where id = $1::uuid",
                    position_id,
                    lifecycle,
                )
                return await self._fetch_position(conn=conn, position_id=position_id)

    async def replace_position_skills(self, position_id: str, skills: list[dict[str, Any]]) -> dict[str, Any]:
        position_id = self._ensure_id(position_id, "position")
        skill_ids = [skill["skill_id"] for skill in skills]
        if len(set(skill_ids)) != len(skill_ids):
            raise RepositoryValidationError("duplicate skill in position skills")

        async with self._connection(entity="position skill") as conn:
            async with conn.transaction():
                exists = await conn.fetchval("select 1 from positions where id = $1::uuid", position_id)
                if not exists:
                    raise RepositoryNotFoundError("position not found")
                await conn.execute("delete from position_skills where position_id = $1::uuid", position_id)
                for skill in skills:
                    await conn.execute(
                        """
                        insert into position_skills (position_id, skill_id, level, proficiency)
                        values ($1::uuid, $2::uuid, $3::skill_requirement, $4::skill_proficiency)
                        """,
                        position_id,
                        skill["skill_id"],
                        skill.get("level") or "required",
                        skill.get("proficiency"),
                    )
                return await self._fetch_position(conn=conn, position_id=position_id)

    # Reference catalog

    async def list_reference(self, kind: str, *, include_retired: bool = False) -> list[dict[str, Any]]:
        table = resolve_reference_table(kind)
        async with self._connection(entity=kind) as conn:
            rows = await conn.fetch(
                f"""
                select {REFERENCE_COLUMNS_SQL}
                from {table.table}
                where $1::boolean or lifecycle = 'active'
                order by sort_order asc, name asc, id asc
                """,
                include_retired,
            )
        return [self._reference_row_to_dict(kind, row) for row in rows]

    async def get_reference(self, kind: str, reference_id: str) -> dict[str, Any]:
        reference_id = self._ensure_id(reference_id, f"{kind} entry")
        table = resolve_reference_table(kind)
        async with self._connection(entity=kind) as conn:
            row = await conn.fetchrow(
                f"select {REFERENCE_COLUMNS_SQL} from {table.table} where id = $1::uuid",
                reference_id,
            )
        if not row:
            raise RepositoryNotFoundError(f"{kind} entry not found")
        return self._reference_row_to_dict(kind, row)

    async def create_reference(
        self,
        kind: str,
        *,
        name: str,
        description: str | None,
        sort_order: int | None,
        attributes: dict[str, Any],
    ) -> dict[str, Any]:
        table = resolve_reference_table(kind)
        slug = slugify(name)
        if not slug:
            raise RepositoryValidationError("name must contain at least one letter or digit")
        async with self._connection(entity=kind) as conn:
            row = await conn.fetchrow(
                f"""
                insert into {table.table} (name, slug, description, sort_order, attributes)
                values (
                  $1,
                  $2,
                  $3,
                  coalesce($4::integer, (select coalesce(max(sort_order), 0) + 1 from {table.table})),
                  $5::jsonb
                )
                returning {REFERENCE_COLUMNS_SQL}
                """,
                name.strip(),
                slug,
                description,
                sort_order,
                json.dumps(attributes),
            )
        return self._reference_row_to_dict(kind, row)

    async def update_reference(self, kind: str, reference_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        reference_id = self._ensure_id(reference_id, f"{kind} entry")
        table = resolve_reference_table(kind)
        values: dict[str, Any] = {}
        if fields.get("name") is not None:
            values["name"] = fields["name"].strip()
            values["slug"] = slugify(fields["name"])
            if not values["slug"]:
                raise RepositoryValidationError("name must contain at least one letter or digit")
        if "description" in fields:
            values["description"] = fields["description"]
        if fields.get("sort_order") is not None:
            values["sort_order"] = fields["sort_order"]
        if fields.get("attributes") is not None:
            values["attributes"] = json.dumps(fields["attributes"])

        if not values:
            return await self.get_reference(kind, reference_id)

        assignments = []
        for index, column in enumerate(values, start=2):
            cast = "::jsonb" if column == "attributes" else ""
            assignments.append(f"{column} = ${index}{cast}")
        async with self._connection(entity=kind) as conn:
            row = await conn.fetchrow(
                f"""
                update {table.table}
                set {", ".join(assignments)}
                where id = $1::uuid
                returning {REFERENCE_COLUMNS_SQL}
                """,
                reference_id,
                *values.values(),
            )
        if not row:
            raise RepositoryNotFoundError(f"{kind} entry not found")
        return self._reference_row_to_dict(kind, row)

    async def set_reference_lifecycle(self, kind: str, reference_id: str, lifecycle: str) -> dict[str, Any]:
        reference_id = self._ensure_id(reference_id, f"{kind} entry")
        table = resolve_reference_table(kind)
        async with self._connection(entity=kind) as conn:
            async with conn.transaction():
                current = await conn.fetchval(
                    f"select lifecycle::text from {table.table} where id = $1::uuid",
                    reference_id,
                )
                if current is None:
                    raise RepositoryNotFoundError(f"{kind} entry not found")
                try:
                    ensure_lifecycle_transition(current, lifecycle)
                except TransitionNotAllowedError as exc:
                    raise RepositoryConflictError(str(exc)) from exc
                row = await conn.fetchrow(
                    f"""
                    update {table.table}
                    set lifecycle = $2::record_lifecycle
                    where id = $1::uuid
                    returning {REFERENCE_COLUMNS_SQL}
                    """,
                    reference_id,
                    lifecycle,
                )
        return self._reference_row_to_dict(kind, row)

    async def count_reference_usage(self, kind: str, reference_id: str) -> int:
        reference_id = self._ensure_id(reference_id, f"{kind} entry")
        table = resolve_reference_table(kind)
        async with self._connection(entity=kind) as conn:
            exists = await conn.fetchval(f"select 1 from {table.table} where id = $1::uuid", reference_id)
            if not exists:
                raise RepositoryNotFoundError(f"{kind} entry not found")
            return int(await conn.fetchval(table.usage_sql, reference_id) or 0)

    async def delete_reference(self, kind: str, reference_id: str) -> None:
        reference_id = self._ensure_id(reference_id, f"{kind} entry")
        table = resolve_reference_table(kind)
        async with self._connection(entity=kind) as conn:
            async with conn.transaction():
                usage = int(await conn.fetchval(table.usage_sql, reference_id) or 0)
                if usage > 0:
                    raise RepositoryConflictError(f"{kind} entry is still referenced by {usage} positions")
                result = await conn.execute(f"delete from {table.table} where id = $1::uuid", reference_id)
        if result.endswith(" 0"):
            raise RepositoryNotFoundError(f"{kind} entry not found")

    # Applications

    async def create_application(self, fields: dict[str, Any]) -> dict[str, Any]:
        values = [fields.get(column) for column in APPLICATION_INSERT_COLUMNS]
        values[APPLICATION_INSERT_COLUMNS.index("additional_documents")] = json.dumps(
            fields.get("additional_documents") or []
        )
        now = datetime.now(timezone.utc)
        placeholders = ", ".join(
            f"${index}::uuid" if column == "position_id" else f"${index}::jsonb" if column == "additional_documents" else f"${index}"
            for index, column in enumerate(APPLICATION_INSERT_COLUMNS, start=1)
        )
        applied_token = f"${len(APPLICATION_INSERT_COLUMNS) + 1}"

        async with self._connection(entity="application") as conn:
            async with conn.transaction():
                accepting = await conn.fetchval(
                    f"select 1 from positions p where p.id = $1::uuid and {CATALOG_VISIBLE_SQL}",
                    fields["position_id"],
                )
                if not accepting:
                    raise RepositoryNotFoundError("position is not accepting applications")

                application_id = await conn.fetchval(
                    f"""
                    insert into applications ({", ".join(APPLICATION_INSERT_COLUMNS)}, status, applied_at, last_activity_at)
                    values ({placeholders}, 'submitted', {applied_token}, {applied_token})
                    returning id::text
                    """,
                    *values,
                    now,
                )
                await self._append_activity(
                    conn=conn,
                    application_id=application_id,
                    activity_type="created",
                    old_status=None,
                    new_status="submitted",
                    description="Application submitted",
                    notes=None,
                )
                await conn.execute(
                    "update positions set applications_count = applications_count + 1 where id = $1::uuid",
                    fields["position_id"],
                )
                row = await self._fetch_application_row(conn=conn, application_id=application_id)
        return self._application_row_to_dict(row)

    async def list_applications(
        self,
        *,
        position_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        async with self._connection(entity="application") as conn:
            rows = await conn.fetch(
                f"""
                {APPLICATION_COLUMNS_SQL}
                where ($1::uuid is null or a.position_id = $1::uuid)
                  and ($2::text is null or a.status::text = $2::text)
                order by a.applied_at desc, a.id asc
                limit $3
                offset $4
                """,
                position_id,
                status,
                limit,
                offset,
            )
        return [self._application_row_to_dict(row) for row in rows]

    async def get_application(self, application_id: str) -> dict[str, Any]:
        application_id = self._ensure_id(application_id, "application")
        async with self._connection(entity="application") as conn:
            row = await self._fetch_application_row(conn=conn, application_id=application_id)
        if not row:
            raise RepositoryNotFoundError("application not found")
        return self._application_row_to_dict(row)

    async def transition_application(
        self,
        *,
        application_id: str,
        status: str,
        notes: str | None,
    ) -> dict[str, Any]:
        application_id = self._ensure_id(application_id, "application")
        async with self._connection(entity="application") as conn:
            async with conn.transaction():
                current = await conn.fetchval(
                    "select status::text from applications where id = $1::uuid",
                    application_id,
                )
                if current is None:
                    raise RepositoryNotFoundError("application not found")
                try:
                    ensure_application_transition(current, status)
                except TransitionNotAllowedError as exc:
                    raise RepositoryConflictError(str(exc)) from exc

                await conn.execute(
                    """
                    update applications
                    set
                      status = $2::application_status,
                      last_activity_at = greatest(last_activity_at, now()),
                      notes = coalesce($3, notes)
                    where id = $1::uuid
                    """,
                    application_id,
                    status,
                    notes,
                )
                await self._append_activity(
                    conn=conn,
                    application_id=application_id,
                    activity_type="status_change",
                    old_status=current,
                    new_status=status,
                    description=f"Status changed from {current} to {status}",
                    notes=notes,
                )
                row = await self._fetch_application_row(conn=conn, application_id=application_id)
        return self._application_row_to_dict(row)

    async def delete_application(self, application_id: str) -> None:
        application_id = self._ensure_id(application_id, "application")
        async with self._connection(entity="application") as conn:
            async with conn.transaction():
                current = await conn.fetchval(
                    "select status::text from applications where id = $1::uuid",
                    application_id,
                )
                if current is None:
                    raise RepositoryNotFoundError("application not found")
                if not can_delete_application(current):
                    raise RepositoryConflictError(f"application in status {current} cannot be deleted")
                await conn.execute("delete from applications where id = $1::uuid", application_id)
                await self._append_activity(
                    conn=conn,
                    application_id=application_id,
                    activity_type="deleted",
                    old_status=current,
                    new_status=None,
                    description="Application deleted",
                    notes=None,
                )

    async def list_application_activities(self, application_id: str) -> list[dict[str, Any]]:
        try:
            application_id = self._ensure_id(application_id, "application")
        except RepositoryNotFoundError:
            return []
        async with self._connection(entity="application") as conn:
            rows = await conn.fetch(
                """
                select
                  id,
                  application_id::text as application_id,
                  activity_type,
                  old_status::text as old_status,
                  new_status::text as new_status,
                  description,
                  notes,
                  created_at
                from application_activities
                where application_id = $1::uuid
                order by created_at asc, id asc
                """,
                application_id,
            )
        return [self._activity_row_to_dict(row) for row in rows]

    # Internals

    async def _append_activity(
        self,
        *,
        conn: asyncpg.Connection,
        application_id: str,
        activity_type: str,
        old_status: str | None,
        new_status: str | None,
        description: str,
        notes: str | None,
    ) -> None:
        await conn.execute(
            """
            insert into application_activities (
              application_id,
              activity_type,
              old_status,
              new_status,
              description,
              notes
            )
            values ($1::uuid, $2, $3::application_status, $4::application_status, $5, $6)
            """,
            application_id,
            activity_type,
            old_status,
            new_status,
            description,
            notes,
        )

    async def _fetch_application_row(self, *, conn: asyncpg.Connection, application_id: str) -> asyncpg.Record | None:
        return await conn.fetchrow(f"{APPLICATION_COLUMNS_SQL}where a.id = $1::uuid", application_id)

    async def _fetch_position(self, *, conn: asyncpg.Connection, position_id: str) -> dict[str, Any]:
        row = await conn.fetchrow(
            f"{POSITION_COLUMNS_SQL}{POSITION_FROM_SQL}where p.id = $1::uuid",
            position_id,
        )
        if not row:
            raise RepositoryNotFoundError("position not found")
        skills = await self._fetch_position_skills(conn=conn, position_id=position_id)
        return self._position_row_to_dict(row, skills=skills)

    async def _fetch_position_skills(self, *, conn: asyncpg.Connection, position_id: str) -> list[dict[str, Any]]:
        rows = await conn.fetch(
            """
            select
              s.id::text as skill_id,
              s.name,
              s.slug,
              ps.level::text as level,
              ps.proficiency::text as proficiency
            from position_skills ps
            join skills s on s.id = ps.skill_id
            where ps.position_id = $1::uuid
            order by
              case ps.level when 'required' then 0 when 'preferred' then 1 else 2 end,
              s.sort_order asc,
              s.name asc
            """,
            position_id,
        )
        return [dict(row) for row in rows]

    @asynccontextmanager
    async def _connection(self, *, entity: str) -> AsyncIterator[asyncpg.Connection]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except RepositoryError:
            raise
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryValidationError(f"invalid {entity} value: {exc}") from exc
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"{entity} already exists: {exc.detail or exc}") from exc
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryValidationError(f"{entity} references a missing record: {exc.detail or exc}") from exc
        except pg_exc.PostgresConnectionError as exc:
            raise RepositoryUnavailableError("database unavailable") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryWriteError.from_postgres(exc) from exc
        except (OSError, asyncpg.InterfaceError, TimeoutError) as exc:
            raise RepositoryUnavailableError("database unavailable") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("CAREERS_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _ensure_id(value: str, entity: str) -> str:
        try:
            return str(UUID(value))
        except (TypeError, ValueError) as exc:
            raise RepositoryNotFoundError(f"{entity} not found") from exc

    @staticmethod
    def _placeholder(column: str, index: int) -> str:
        if column in POSITION_UUID_COLUMNS:
            return f"${index}::uuid"
        return f"${index}"

    @staticmethod
    def _resolve_position_slug(slug: str | None, title: str | None) -> str:
        if slug:
            if not is_valid_slug(slug):
                raise RepositoryValidationError("slug must be lowercase letters, digits and dashes")
            return slug
        derived = slugify(title or "")
        if not derived:
            raise RepositoryValidationError("cannot derive a slug from the position title")
        return derived

    @staticmethod
    def _reference_summary(row: asyncpg.Record, prefix: str) -> dict[str, Any] | None:
        reference_id = row[f"{prefix}_id"]
        if reference_id is None:
            return None
        return {"id": reference_id, "name": row[f"{prefix}_name"], "slug": row[f"{prefix}_slug"]}

    @classmethod
    def _position_row_to_dict(
        cls,
        row: asyncpg.Record,
        *,
        skills: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "slug": row["slug"],
            "summary": row["summary"],
            "description": row["description"] or "",
            "requirements": row["requirements"],
            "benefits": row["benefits"],
            "category": cls._reference_summary(row, "category"),
            "location": cls._reference_summary(row, "location"),
            "type": cls._reference_summary(row, "type"),
            "level": cls._reference_summary(row, "level"),
            "salary_min": row["salary_min"],
            "salary_max": row["salary_max"],
            "salary_currency": row["salary_currency"],
            "salary_type": row["salary_type"],
            "application_deadline": row["application_deadline"],
            "start_date": row["start_date"],
            "remote_allowed": bool(row["remote_allowed"]),
            "travel_required": bool(row["travel_required"]),
            "travel_percentage": row["travel_percentage"],
            "featured": bool(row["featured"]),
            "urgent": bool(row["urgent"]),
            "status": row["status"],
            "lifecycle": row["lifecycle"],
            "is_active": row["lifecycle"] == "active",
            "views_count": row["views_count"],
            "applications_count": row["applications_count"],
            "skills": list(skills or []),
            "published_at": row["published_at"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _reference_row_to_dict(kind: str, row: asyncpg.Record) -> dict[str, Any]:
        attributes = row["attributes"]
        if isinstance(attributes, str):
            try:
                attributes = json.loads(attributes)
            except json.JSONDecodeError:
                attributes = {}
        if not isinstance(attributes, dict):
            attributes = {}
        return {
            "id": row["id"],
            "kind": kind,
            "name": row["name"],
            "slug": row["slug"],
            "description": row["description"],
            "sort_order": row["sort_order"],
            "lifecycle": row["lifecycle"],
            "is_active": row["lifecycle"] == "active",
            "attributes": attributes,
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _application_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        documents = row["additional_documents"]
        if isinstance(documents, str):
            try:
                documents = json.loads(documents)
            except json.JSONDecodeError:
                documents = []
        if not isinstance(documents, list):
            documents = []
        position = None
        if row["position_title"] is not None:
            position = {"id": row["position_id"], "title": row["position_title"], "slug": row["position_slug"]}
        return {
            "id": row["id"],
            "position_id": row["position_id"],
            "position": position,
            "first_name": row["first_name"],
            "last_name": row["last_name"],
            "email": row["email"],
            "phone": row["phone"],
            "linkedin_url": row["linkedin_url"],
            "portfolio_url": row["portfolio_url"],
            "github_url": row["github_url"],
            "cover_letter": row["cover_letter"],
            "resume_url": row["resume_url"],
            "additional_documents": [item for item in documents if isinstance(item, dict)],
            "notes": row["notes"],
            "source": row["source"],
            "status": row["status"],
            "applied_at": row["applied_at"],
            "last_activity_at": row["last_activity_at"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _activity_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": int(row["id"]),
            "application_id": row["application_id"],
            "activity_type": row["activity_type"],
            "old_status": row["old_status"],
            "new_status": row["new_status"],
            "description": row["description"],
            "notes": row["notes"],
            "created_at": row["created_at"],
        }


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )
