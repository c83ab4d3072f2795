from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ReferenceTable:
    kind: str
    table: str
    usage_sql: str


def _position_usage(column: str) -> str:
    return f"select count(*) from positions where {column} = $1::uuid"


REFERENCE_TABLES: dict[str, ReferenceTable] = {
    "categories": ReferenceTable("categories", "categories", _position_usage("category_id")),
    "locations": ReferenceTable("locations", "locations", _position_usage("location_id")),
    "types": ReferenceTable("types", "position_types", _position_usage("type_id")),
    "levels": ReferenceTable("levels", "levels", _position_usage("level_id")),
    "skills": ReferenceTable(
        "skills",
        "skills",
        "select count(distinct position_id) from position_skills where skill_id = $1::uuid",
    ),
}


def resolve_reference_table(kind: str) -> ReferenceTable:
    try:
        return REFERENCE_TABLES[kind]
    except KeyError as exc:
        raise ValueError(f"unknown reference kind: {kind}") from exc
