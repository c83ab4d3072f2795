from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

POSITION_SORTS = ("newest", "oldest", "title", "salary_high", "salary_low", "deadline")
DEFAULT_POSITION_SORT = "newest"
FACET_WILDCARD = "all"

POSITION_FROM_SQL = """
from positions p
left join categories c on c.id = p.category_id
left join locations l on l.id = p.location_id
left join position_types t on t.id = p.type_id
left join levels lv on lv.id = p.level_id
"""

POSITION_COLUMNS_SQL = """
select
  p.id::text as id,
  p.title,
  p.slug,
  p.summary,
  p.description,
  p.requirements,
  p.benefits,
  c.id::text as category_id,
  c.name as category_name,
  c.slug as category_slug,
  l.id::text as location_id,
  l.name as location_name,
  l.slug as location_slug,
  t.id::text as type_id,
  t.name as type_name,
  t.slug as type_slug,
  lv.id::text as level_id,
  lv.name as level_name,
  lv.slug as level_slug,
  p.salary_min,
  p.salary_max,
  p.salary_currency,
  p.salary_type,
  p.application_deadline,
  p.start_date,
  p.remote_allowed,
  p.travel_required,
  p.travel_percentage,
  p.featured,
  p.urgent,
  p.status::text as status,
  p.lifecycle::text as lifecycle,
  p.views_count,
  p.applications_count,
  p.published_at,
  p.created_at,
  p.updated_at
"""

CATALOG_VISIBLE_SQL = "p.status = 'open' and p.lifecycle = 'active'"

# Every order ends on p.id so that equal sort keys paginate deterministically.
_SORT_ORDER_SQL = {
    "newest": "p.created_at desc, p.id asc",
    "oldest": "p.created_at asc, p.id asc",
    "title": "p.title asc, p.id asc",
    "salary_high": "p.salary_max desc nulls last, p.id asc",
    "salary_low": "p.salary_min asc nulls last, p.id asc",
    "deadline": "p.application_deadline asc nulls last, p.id asc",
}

_FACET_COLUMNS = (
    ("category", "c.slug"),
    ("location", "l.slug"),
    ("position_type", "t.slug"),
    ("level", "lv.slug"),
)


@dataclass(slots=True, frozen=True)
class PositionFilterSpec:
    category: str | None = None
    location: str | None = None
    position_type: str | None = None
    level: str | None = None
    remote: bool | None = None
    featured: bool | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    search: str | None = None
    status: str | None = None


@dataclass(slots=True, frozen=True)
class PageWindow:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True)
class PositionQuery:
    where_sql: str
    order_by_sql: str
    params: list[Any]
    window: PageWindow

    def rows_statement(self) -> tuple[str, list[Any]]:
        limit_token = f"${len(self.params) + 1}"
        offset_token = f"${len(self.params) + 2}"
        sql = (
            f"{POSITION_COLUMNS_SQL}{POSITION_FROM_SQL}"
            f"where {self.where_sql}\n"
            f"order by {self.order_by_sql}\n"
            f"limit {limit_token}\n"
            f"offset {offset_token}"
        )
        return sql, [*self.params, self.window.limit, self.window.offset]

    def count_statement(self) -> tuple[str, list[Any]]:
        sql = f"select count(*){POSITION_FROM_SQL}where {self.where_sql}"
        return sql, list(self.params)


def resolve_page_window(page: int | None, limit: int | None, *, default_limit: int, max_limit: int) -> PageWindow:
    resolved_page = page if page and page > 0 else 1
    resolved_limit = limit if limit and limit > 0 else default_limit
    return PageWindow(page=resolved_page, limit=max(1, min(resolved_limit, max_limit)))


def total_pages(total: int, limit: int) -> int:
    if total <= 0 or limit <= 0:
        return 0
    return math.ceil(total / limit)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _normalize_facet(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped or stripped.lower() == FACET_WILDCARD:
        return None
    return stripped


def compose_position_query(
    spec: PositionFilterSpec,
    *,
    sort: str,
    window: PageWindow,
    catalog_only: bool = True,
) -> PositionQuery:
    """Build the where/order clauses for a position listing.

    Public search and the staff listing both come through here; ``catalog_only``
    adds the open+active visibility predicate, and only the staff listing may
    narrow by ``spec.status``.
    """
    conditions: list[str] = []
    params: list[Any] = []

    def bind(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    if catalog_only:
        conditions.append(CATALOG_VISIBLE_SQL)
    elif spec.status:
        conditions.append(f"p.status = {bind(spec.status)}::position_status")

    search = (spec.search or "").strip()
    if search:
        token = bind(f"%{escape_like(search)}%")
        conditions.append(
            f"(p.title ilike {token} or p.description ilike {token} or coalesce(p.summary, '') ilike {token})"
        )

    for field_name, column in _FACET_COLUMNS:
        facet = _normalize_facet(getattr(spec, field_name))
        if facet:
            conditions.append(f"{column} = {bind(facet)}")

    if spec.remote is not None:
        conditions.append(f"p.remote_allowed = {bind(spec.remote)}")
    if spec.featured is not None:
        conditions.append(f"p.featured = {bind(spec.featured)}")
    if spec.salary_min is not None:
        conditions.append(f"coalesce(p.salary_max, p.salary_min) >= {bind(spec.salary_min)}")
    if spec.salary_max is not None:
        conditions.append(f"coalesce(p.salary_min, p.salary_max) <= {bind(spec.salary_max)}")

    where_sql = " and ".join(conditions) if conditions else "true"
    order_by_sql = _SORT_ORDER_SQL.get(sort, _SORT_ORDER_SQL[DEFAULT_POSITION_SORT])
    return PositionQuery(where_sql=where_sql, order_by_sql=order_by_sql, params=params, window=window)
